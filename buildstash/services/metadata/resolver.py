"""
Metadata resolver.

Drives the provenance detector chain and folds the answers into a single
VCProvenance. Caller-supplied values always win; each detector can only
fill fields that are still blank, in precedence order. Derived fields
(host, repo name, commit URL) are synthesized last.
"""

from collections.abc import Sequence

from ...core.di import resolve_or_default
from ...core.interfaces.detector import IVCSDetector
from ...core.interfaces.logger import ILogger
from ...core.models.context import BuildContext
from ...core.models.vcs import VCProvenance
from ...utils.vcs_url import build_commit_url, clean_branch, detect_host, extract_repo_name

PERFORCE = "perforce"


def _get_logger() -> ILogger:
    from ..logging import NullLogger

    return resolve_or_default(ILogger, NullLogger)  # type: ignore[type-abstract]


def default_detectors() -> list[IVCSDetector]:
    """Detectors registered in the container, or the built-in chain."""
    from ...core.container import get_container
    from ...plugins.vcs import BUILTIN_DETECTORS

    detectors = get_container().get_detectors()
    if detectors:
        return detectors
    return [detector_class() for detector_class in BUILTIN_DETECTORS]


def derive_fields(provenance: VCProvenance) -> VCProvenance:
    """Fill host and repo name from the provenance's own repo URL."""
    repo_url = provenance.repo_url
    if not repo_url:
        return provenance
    if provenance.host_type == PERFORCE or provenance.host == PERFORCE:
        return provenance
    return provenance.with_defaults(
        host=detect_host(repo_url),
        repo_name=extract_repo_name(repo_url),
    )


def synthesize_commit_url(provenance: VCProvenance) -> VCProvenance:
    """Fill the commit URL when the host has a known web layout."""
    if provenance.commit_url or not provenance.repo_url or not provenance.commit_sha:
        return provenance
    host = detect_host(provenance.repo_url) or provenance.host
    return provenance.with_defaults(
        commit_url=build_commit_url(host, provenance.repo_url, provenance.commit_sha)
    )


class MetadataResolver:
    """
    Resolves version-control provenance for a build.

    Never raises: a detector that fails is logged at debug level and
    counted as having found nothing.
    """

    def __init__(
        self,
        detectors: Sequence[IVCSDetector] | None = None,
        logger: ILogger | None = None,
    ) -> None:
        self._detectors = list(detectors) if detectors is not None else None
        self._logger = logger

    @property
    def logger(self) -> ILogger:
        if self._logger is None:
            self._logger = _get_logger()
        return self._logger

    @property
    def detectors(self) -> list[IVCSDetector]:
        if self._detectors is None:
            self._detectors = default_detectors()
        return self._detectors

    def resolve(
        self,
        context: BuildContext,
        partial: VCProvenance | None = None,
    ) -> VCProvenance:
        """
        Complete ``partial`` with whatever the detectors can find.

        Args:
            context: Caller build context (SCM object, build record, env)
            partial: Caller-supplied provenance; its set fields are final

        Returns:
            Provenance with every discoverable blank field filled
        """
        result = derive_fields(partial or VCProvenance())

        for detector in self.detectors:
            if result.is_complete:
                break
            found = self._attempt(detector, context)
            if found is None:
                continue
            before = set(result.missing_fields())
            result = result.fill_from(found)
            filled = sorted(before - set(result.missing_fields()))
            self.logger.debug("Detector %s filled: %s", detector.name, ", ".join(filled) or "-")

        result = synthesize_commit_url(result)
        self.logger.debug(
            "Resolved provenance: host_type=%s host=%s repo=%s branch=%s commit=%s",
            result.host_type,
            result.host,
            result.repo_name,
            result.branch,
            result.commit_sha,
        )
        return result

    def _attempt(self, detector: IVCSDetector, context: BuildContext) -> VCProvenance | None:
        try:
            found = detector.attempt(context)
        except Exception as e:
            self.logger.debug("Detector %s failed: %s", detector.name, e)
            return None
        if found is None:
            self.logger.debug("Detector %s found nothing", detector.name)
            return None
        if found.branch:
            found = found.model_copy(update={"branch": clean_branch(found.branch)})
        return derive_fields(found)
