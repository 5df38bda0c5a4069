"""
Publication pipeline.

Sequences the stages of one publication: resolve provenance, assemble the
UploadRequest, plan, transfer, finalize. Each stage raises its own typed
error; nothing here prints, the caller reports the BuildRecord.
"""

from __future__ import annotations

import os
import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from ...core.di import resolve_or_default
from ...core.exceptions import UploadValidationError
from ...core.interfaces.logger import ILogger
from ...core.interfaces.workspace import IFileHandle, IUrlBaseResolver
from ...core.models.context import BuildContext, RunInfo
from ...core.models.registry import BuildRecord
from ...core.models.upload import (
    STRUCTURE_FILE,
    STRUCTURE_FILE_EXPANSION,
    FileDescriptor,
    UploadRequest,
    VersionInfo,
)
from ...core.models.vcs import VCProvenance
from ..metadata import MetadataResolver
from .ci import DEFAULT_SOURCE, build_ci_provenance
from .planner import UploadPlanner, build_upload_payload
from .transfer import TransferOrchestrator

if TYPE_CHECKING:
    from ...registry_client import RegistryClient


def _get_logger() -> ILogger:
    from ..logging import NullLogger

    return resolve_or_default(ILogger, NullLogger)  # type: ignore[type-abstract]


@dataclass
class PublicationInputs:
    """What the caller wants published.

    Attributes:
        primary: Handle of the primary file
        version: Version components
        platform: Target platform
        stream: Release stream
        expansion: Handle of the expansion file, if any
        labels: Labels to attach
        architectures: Architecture tags to attach
        notes: Free-text notes
        vc: Caller-supplied provenance; set fields are never replaced
        run: CI run facts, if running under CI
    """

    primary: IFileHandle
    version: VersionInfo
    platform: str
    stream: str
    expansion: IFileHandle | None = None
    labels: list[str] = field(default_factory=list)
    architectures: list[str] = field(default_factory=list)
    notes: str | None = None
    vc: VCProvenance | None = None
    run: RunInfo | None = None


def describe_file(role: str, handle: IFileHandle) -> FileDescriptor:
    """
    Build the FileDescriptor for a handle.

    Raises:
        UploadValidationError: If the file does not exist or cannot be sized
    """
    try:
        if not handle.exists():
            raise UploadValidationError(f"{role} file not found: {handle.name}", field=role)
        size = handle.length()
    except OSError as e:
        raise UploadValidationError(
            f"{role} file could not be read: {e}", field=role, cause=e
        ) from e
    return FileDescriptor(
        filename=os.path.basename(handle.name),
        size_bytes=size,
        handle=handle,
    )


class PublicationPipeline:
    """
    Publishes one build end to end.

    Usage:
        pipeline = PublicationPipeline.from_config(client, url_base=resolver)
        record = pipeline.publish(inputs, context)
    """

    def __init__(
        self,
        client: RegistryClient,
        *,
        resolver: MetadataResolver | None = None,
        planner: UploadPlanner | None = None,
        orchestrator: TransferOrchestrator | None = None,
        url_base: IUrlBaseResolver | None = None,
        source: str = DEFAULT_SOURCE,
        logger: ILogger | None = None,
    ) -> None:
        self._client = client
        self._logger = logger or _get_logger()
        self._resolver = resolver or MetadataResolver(logger=self._logger)
        self._planner = planner or UploadPlanner(client, logger=self._logger)
        self._orchestrator = orchestrator or TransferOrchestrator(client, logger=self._logger)
        self._url_base = url_base
        self._source = source

    @classmethod
    def from_config(
        cls,
        client: RegistryClient,
        *,
        url_base: IUrlBaseResolver | None = None,
        cancel_event: threading.Event | None = None,
        start_dir: str | None = None,
    ) -> PublicationPipeline:
        """Build a pipeline whose transfer settings come from configuration."""
        from ...config import load_config

        config = load_config(start_dir=start_dir)
        transfer = config.get("transfer", {})
        upload = config.get("upload", {})
        orchestrator = TransferOrchestrator(
            client,
            max_workers=transfer.get("max_workers", 4),
            max_attempts=transfer.get("max_attempts", 3),
            backoff_base=transfer.get("backoff_base", 1.0),
            backoff_max=transfer.get("backoff_max", 30.0),
            timeout=transfer.get("timeout"),
            cancel_event=cancel_event,
        )
        return cls(
            client,
            orchestrator=orchestrator,
            url_base=url_base,
            source=upload.get("source") or DEFAULT_SOURCE,
        )

    def cancel(self) -> None:
        """Cancel an in-flight transfer."""
        self._orchestrator.cancel()

    def resolve_provenance(
        self, context: BuildContext, partial: VCProvenance | None = None
    ) -> VCProvenance:
        return self._resolver.resolve(context, partial)

    def build_request(self, inputs: PublicationInputs, context: BuildContext) -> UploadRequest:
        """
        Assemble the immutable UploadRequest for a publication.

        Raises:
            UploadValidationError: If a file is missing
        """
        primary = describe_file("primary", inputs.primary)
        expansion = describe_file("expansion", inputs.expansion) if inputs.expansion else None

        return UploadRequest(
            structure=STRUCTURE_FILE_EXPANSION if expansion else STRUCTURE_FILE,
            primary_file=primary,
            expansion_file=expansion,
            version=inputs.version,
            platform=inputs.platform,
            stream=inputs.stream,
            labels=inputs.labels,
            architectures=inputs.architectures,
            notes=inputs.notes,
            ci=build_ci_provenance(inputs.run, self._url_base, source=self._source),
            vc=self.resolve_provenance(context, inputs.vc),
        )

    def preview(self, inputs: PublicationInputs, context: BuildContext) -> dict[str, Any]:
        """Validate and return the upload payload without contacting the registry."""
        request = self.build_request(inputs, context)
        self._planner.validate(request)
        return build_upload_payload(request)

    def publish(self, inputs: PublicationInputs, context: BuildContext) -> BuildRecord:
        """
        Run every stage and return the published BuildRecord.

        Raises:
            UploadValidationError: Invalid request, before any network call
            PlanningError: Negotiation failed
            TransferError: A file or part failed after its retries
            FinalizeError: The completion call failed
        """
        request = self.build_request(inputs, context)
        return self.publish_request(request)

    def publish_request(self, request: UploadRequest) -> BuildRecord:
        """Plan, transfer and finalize an already assembled request."""
        pending = self._planner.plan(request)
        self._logger.info(
            "Publishing %s %s (%s/%s) as upload %s",
            request.primary_file.filename,
            request.version.display,
            request.platform,
            request.stream,
            pending.pending_upload_id,
        )
        handles = {role: descriptor.handle for role, descriptor in request.files.items()}
        record = self._orchestrator.run(pending, handles)
        self._logger.info("Published build %s", record.build_id or "(pending)")
        return record
