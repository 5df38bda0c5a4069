"""
Upload planner.

Translates a finalized UploadRequest into the registry's wire payload and
negotiates the server-issued transfer plan in a single round trip. Any
problem found here stops the publication before a byte is sent.
"""

from typing import Any

from ...core.di import resolve_or_default
from ...core.exceptions import BuildstashNetworkError, PlanningError, UploadValidationError
from ...core.interfaces.logger import ILogger
from ...core.models.registry import (
    FileUploadInfo,
    PendingUpload,
    UploadPlan,
    UploadRequestResponse,
)
from ...core.models.upload import FileDescriptor, UploadRequest
from ...core.validation import validate_upload_request
from ...registry_client import RegistryClient

# UploadRequest attribute path -> payload key, sent only when set
_VERSION_KEYS = (
    ("extra", "version_component_extra"),
    ("meta", "version_component_meta"),
    ("custom_build_number", "custom_build_number"),
)
_CI_KEYS = (
    ("pipeline", "ci_pipeline"),
    ("run_id", "ci_run_id"),
    ("run_url", "ci_run_url"),
    ("pipeline_url", "ci_pipeline_url"),
    ("build_duration", "ci_build_duration"),
)
_VC_KEYS = (
    ("host_type", "vc_host_type"),
    ("host", "vc_host"),
    ("repo_name", "vc_repo_name"),
    ("repo_url", "vc_repo_url"),
    ("branch", "vc_branch"),
    ("commit_sha", "vc_commit_sha"),
    ("commit_url", "vc_commit_url"),
)


def _get_logger() -> ILogger:
    from ..logging import NullLogger

    return resolve_or_default(ILogger, NullLogger)  # type: ignore[type-abstract]


def _put_optional(payload: dict[str, Any], source: Any, keys: tuple[tuple[str, str], ...]) -> None:
    for attr, key in keys:
        value = getattr(source, attr)
        if value is not None and str(value).strip():
            payload[key] = value


def build_upload_payload(request: UploadRequest) -> dict[str, Any]:
    """
    Build the ``POST /uploads`` body for a request.

    Optional fields that are unset are left out rather than sent as null.
    """
    payload: dict[str, Any] = {
        "structure": request.structure,
        "primary_file": request.primary_file.to_payload(),
        "version_component_1_major": request.version.major,
        "version_component_2_minor": request.version.minor,
        "version_component_3_patch": request.version.patch,
    }
    if "expansion" in request.files:
        payload["expansion_files"] = [request.files["expansion"].to_payload()]

    _put_optional(payload, request.version, _VERSION_KEYS)

    if request.labels:
        payload["labels"] = list(request.labels)
    if request.architectures:
        payload["architectures"] = list(request.architectures)

    payload["source"] = request.ci.source
    _put_optional(payload, request.ci, _CI_KEYS)
    _put_optional(payload, request.vc, _VC_KEYS)

    payload["platform"] = request.platform
    payload["stream"] = request.stream
    if request.notes and request.notes.strip():
        payload["notes"] = request.notes
    return payload


class UploadPlanner:
    """
    Negotiates a PendingUpload for an UploadRequest.

    Raises UploadValidationError for local problems and PlanningError for
    everything the registry round trip can go wrong with.
    """

    def __init__(self, client: RegistryClient, logger: ILogger | None = None) -> None:
        self._client = client
        self._logger = logger or _get_logger()

    def validate(self, request: UploadRequest) -> None:
        """Raise UploadValidationError if the request cannot be planned."""
        result = validate_upload_request(request)
        if not result:
            raise UploadValidationError(
                "Upload request is invalid: " + "; ".join(result.errors),
                validation_errors=result.errors,
            )

    def plan(self, request: UploadRequest) -> PendingUpload:
        """
        Negotiate the upload with the registry.

        Args:
            request: Finalized upload request

        Returns:
            PendingUpload with one UploadPlan per file
        """
        self.validate(request)
        payload = build_upload_payload(request)

        self._logger.debug(
            "Requesting upload: structure=%s primary=%s (%d bytes)",
            request.structure,
            request.primary_file.filename,
            request.primary_file.size_bytes,
        )
        try:
            response = self._client.request_upload(payload)
        except BuildstashNetworkError as e:
            raise PlanningError(f"Upload request failed: {e.message}", context=e.context, cause=e) from e

        pending = self._to_pending(request, response)
        for plan in pending.plans:
            self._logger.debug(
                "Plan for %s %s: chunked=%s parts=%d part_size_mb=%d",
                plan.role,
                plan.filename,
                plan.chunked,
                plan.part_count,
                plan.part_size_mb,
            )
        return pending

    def _to_pending(self, request: UploadRequest, response: UploadRequestResponse) -> PendingUpload:
        pending_id = (response.pending_upload_id or "").strip()
        if not pending_id:
            raise PlanningError("Registry response has no pending_upload_id")

        if response.primary_file is None:
            raise PlanningError("Registry response has no primary_file plan", file_role="primary")
        primary = self._to_plan("primary", request.primary_file, response.primary_file)

        expansion = None
        files = request.files
        if "expansion" in files:
            if not response.expansion_files:
                raise PlanningError(
                    "Registry response has no expansion_files plan", file_role="expansion"
                )
            expansion = self._to_plan("expansion", files["expansion"], response.expansion_files[0])

        return PendingUpload(
            pending_upload_id=pending_id,
            primary=primary,
            expansion=expansion,
            message=response.message,
        )

    def _to_plan(self, role: str, descriptor: FileDescriptor, info: FileUploadInfo) -> UploadPlan:
        filename = info.filename or descriptor.filename
        size = descriptor.size_bytes

        if not info.chunked_upload:
            presigned = info.presigned_data
            if presigned is None or not presigned.url:
                raise PlanningError(
                    "Direct upload plan has no presigned URL",
                    file_role=role,
                    context={"filename": filename},
                )
            return UploadPlan(
                role=role,
                filename=filename,
                size_bytes=size,
                chunked=False,
                presigned=presigned,
            )

        parts = info.chunked_number_parts or 0
        part_size_mb = info.chunked_part_size_mb or 0
        if parts < 1:
            raise PlanningError(
                "Chunked upload plan needs a positive part count",
                file_role=role,
                context={"parts": parts},
            )
        return UploadPlan(
            role=role,
            filename=filename,
            size_bytes=size,
            chunked=True,
            part_count=parts,
            part_size_mb=part_size_mb,
        )
