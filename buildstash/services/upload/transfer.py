"""
Transfer orchestrator.

Executes a PendingUpload: one PUT per direct file, and for chunked files
one "fresh part URL, then PUT the byte range" unit per part. All units of
all files share one bounded worker pool. Each part retries on its own; a
part that runs out of attempts aborts the whole publication and finalize
is never called.

Part results land in a per-file list indexed by part number, so workers
never contend, and finalize re-sorts them before anything is sent.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable, Mapping
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Any

from tenacity import Retrying, retry_if_exception, stop_after_attempt, wait_exponential

from ...core.di import resolve_or_default
from ...core.exceptions import (
    BuildstashNetworkError,
    FinalizeError,
    PublicationCancelledError,
    RegistryAPIError,
    RegistryConnectionError,
    TransferError,
    UploadValidationError,
)
from ...core.interfaces.logger import ILogger
from ...core.interfaces.workspace import IFileHandle
from ...core.models.registry import (
    BuildRecord,
    FileTransfer,
    PendingUpload,
    UploadPart,
    UploadPlan,
)
from ...registry_client import RegistryClient

# Polling interval while waiting on workers, so cancellation is noticed
POLL_INTERVAL = 0.5

# Whole-file headers that must not be replayed on a single part
_PART_EXCLUDED_HEADERS = frozenset({"content-length", "content-md5", "x-amz-checksum-sha256"})


def _get_logger() -> ILogger:
    from ..logging import NullLogger

    return resolve_or_default(ILogger, NullLogger)  # type: ignore[type-abstract]


def is_retryable(error: BaseException) -> bool:
    """Transport failures and transient HTTP statuses are retried."""
    if isinstance(error, RegistryConnectionError):
        return True
    if isinstance(error, RegistryAPIError):
        return error.is_transient
    return False


def build_complete_payload(
    pending: PendingUpload,
    transfers: Mapping[str, FileTransfer],
) -> dict[str, Any]:
    """
    Build the ``POST /uploads/{id}/complete`` body.

    Chunked files list their parts in ascending part number; the list must
    be exactly 1..N for the plan's N parts.

    Raises:
        FinalizeError: If a chunked file's parts are missing or duplicated
    """
    body: dict[str, Any] = {}
    for plan in pending.plans:
        if not plan.chunked:
            continue
        transfer = transfers.get(plan.role)
        if transfer is None:
            raise FinalizeError(
                f"No transfer recorded for {plan.role} file",
                pending_upload_id=pending.pending_upload_id,
                context={"file_role": plan.role},
            )
        parts = sorted(transfer.parts, key=lambda part: part.part_number)
        numbers = [part.part_number for part in parts]
        if numbers != list(range(1, plan.part_count + 1)):
            raise FinalizeError(
                "Part list is incomplete or has duplicates",
                pending_upload_id=pending.pending_upload_id,
                context={"file_role": plan.role, "parts": numbers, "expected": plan.part_count},
            )
        entry = {"filename": plan.filename, "parts": [part.to_payload() for part in parts]}
        if plan.role == "primary":
            body["primary_file"] = entry
        else:
            body.setdefault("expansion_files", []).append(entry)
    return body


@dataclass
class _RunState:
    """Per-transfer abort flag and deadline shared with the workers."""

    abort: threading.Event = field(default_factory=threading.Event)
    deadline: float | None = None


class TransferOrchestrator:
    """
    Runs the transfer and finalize stages of a publication.

    Args:
        client: Registry client used for part URLs, PUTs and finalize
        max_workers: Upper bound on concurrent units of work
        max_attempts: Attempts per part or direct PUT
        backoff_base: First retry delay in seconds (doubles per attempt)
        backoff_max: Cap on a single retry delay
        timeout: Deadline in seconds for the transfer stage, None for none
        cancel_event: External cancellation token
    """

    def __init__(
        self,
        client: RegistryClient,
        *,
        max_workers: int = 4,
        max_attempts: int = 3,
        backoff_base: float = 1.0,
        backoff_max: float = 30.0,
        timeout: float | None = None,
        cancel_event: threading.Event | None = None,
        logger: ILogger | None = None,
    ) -> None:
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._client = client
        self._max_workers = max_workers
        self._max_attempts = max_attempts
        self._backoff_base = backoff_base
        self._backoff_max = backoff_max
        self._timeout = timeout
        self._cancel_event = cancel_event or threading.Event()
        self._logger = logger or _get_logger()

    def cancel(self) -> None:
        """Stop issuing new requests; outstanding ones fail at their next checkpoint."""
        self._cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def run(self, pending: PendingUpload, handles: Mapping[str, IFileHandle]) -> BuildRecord:
        """Transfer every file, then finalize."""
        transfers = self.transfer(pending, handles)
        return self.finalize(pending, transfers)

    def transfer(
        self,
        pending: PendingUpload,
        handles: Mapping[str, IFileHandle],
    ) -> dict[str, FileTransfer]:
        """
        Upload every file of a pending upload.

        Args:
            pending: Negotiated upload
            handles: File handle per role ("primary", "expansion")

        Returns:
            FileTransfer per role, parts sorted by part number

        Raises:
            TransferError: A unit failed after its retries
            PublicationCancelledError: Cancelled or past the deadline
        """
        for plan in pending.plans:
            if plan.role not in handles:
                raise UploadValidationError(
                    f"No file handle supplied for the {plan.role} file",
                    field=plan.role,
                )

        state = _RunState(
            deadline=time.monotonic() + self._timeout if self._timeout else None,
        )
        slots: dict[str, list[UploadPart | None]] = {
            plan.role: [None] * plan.part_count for plan in pending.plans if plan.chunked
        }
        futures: dict[Future, tuple[UploadPlan, int | None]] = {}

        executor = ThreadPoolExecutor(
            max_workers=self._max_workers, thread_name_prefix="buildstash-transfer"
        )
        try:
            for plan in pending.plans:
                handle = handles[plan.role]
                if plan.chunked:
                    for part_number in range(1, plan.part_count + 1):
                        future = executor.submit(
                            self._upload_part,
                            state,
                            pending.pending_upload_id,
                            plan,
                            handle,
                            part_number,
                        )
                        futures[future] = (plan, part_number)
                else:
                    futures[executor.submit(self._upload_direct, state, plan, handle)] = (plan, None)

            self._collect(state, futures, slots)
        except BaseException:
            state.abort.set()
            executor.shutdown(wait=False, cancel_futures=True)
            raise
        executor.shutdown(wait=True)

        transfers = {}
        for plan in pending.plans:
            parts = tuple(part for part in slots.get(plan.role, []) if part is not None)
            transfers[plan.role] = FileTransfer(
                role=plan.role,
                filename=plan.filename,
                chunked=plan.chunked,
                parts=parts,
            )
            self._logger.info("Transferred %s file %s", plan.role, plan.filename)
        return transfers

    def finalize(
        self,
        pending: PendingUpload,
        transfers: Mapping[str, FileTransfer],
    ) -> BuildRecord:
        """
        Commit the upload.

        Raises:
            FinalizeError: The part lists are inconsistent or the call failed
        """
        body = build_complete_payload(pending, transfers)
        self._logger.debug("Finalizing upload %s", pending.pending_upload_id)
        try:
            record = self._client.complete_upload(pending.pending_upload_id, body)
        except BuildstashNetworkError as e:
            raise FinalizeError(
                f"Completing upload failed: {e.message}",
                pending_upload_id=pending.pending_upload_id,
                context=e.context,
                cause=e,
            ) from e
        if not record.build_id:
            self._logger.warning(
                "Upload %s completed without a build id", pending.pending_upload_id
            )
        return record

    # -------------------------------------------------------------------------
    # Scheduling
    # -------------------------------------------------------------------------

    def _collect(
        self,
        state: _RunState,
        futures: dict[Future, tuple[UploadPlan, int | None]],
        slots: dict[str, list[UploadPart | None]],
    ) -> None:
        outstanding = set(futures)
        while outstanding:
            done, outstanding = wait(
                outstanding, timeout=self._poll_timeout(state), return_when=FIRST_COMPLETED
            )
            for future in done:
                plan, part_number = futures[future]
                result = future.result()
                if part_number is not None:
                    slots[plan.role][part_number - 1] = result
            if outstanding:
                self._check_cancelled(state)

    def _poll_timeout(self, state: _RunState) -> float:
        if state.deadline is None:
            return POLL_INTERVAL
        return max(min(POLL_INTERVAL, state.deadline - time.monotonic()), 0.0)

    def _check_cancelled(self, state: _RunState, **context: Any) -> None:
        if self._cancel_event.is_set():
            raise PublicationCancelledError("Publication cancelled", **context)
        if state.abort.is_set():
            raise PublicationCancelledError("Publication aborted after a failure", **context)
        if state.deadline is not None and time.monotonic() >= state.deadline:
            raise PublicationCancelledError(
                "Publication deadline exceeded",
                context={"timeout": self._timeout},
                **context,
            )

    def _retrying(self, state: _RunState, what: str) -> Retrying:
        # Cancellation, deadlines and sibling failures all end in state.abort
        def sleep(seconds: float) -> None:
            if state.abort.wait(seconds) or self._cancel_event.is_set():
                self._check_cancelled(state)

        def before_sleep(retry_state) -> None:
            error = retry_state.outcome.exception() if retry_state.outcome else None
            self._logger.debug(
                "Retrying %s after attempt %d: %s", what, retry_state.attempt_number, error
            )

        return Retrying(
            stop=stop_after_attempt(self._max_attempts),
            wait=wait_exponential(multiplier=self._backoff_base, max=self._backoff_max),
            retry=retry_if_exception(is_retryable),
            sleep=sleep,
            before_sleep=before_sleep,
            reraise=True,
        )

    def _run_unit(
        self,
        state: _RunState,
        plan: UploadPlan,
        part_number: int | None,
        attempt: Callable[[], Any],
    ) -> Any:
        what = f"{plan.role} part {part_number}" if part_number else f"{plan.role} upload"
        try:
            return self._retrying(state, what)(attempt)
        except PublicationCancelledError:
            raise
        except (BuildstashNetworkError, OSError, ValueError) as e:
            message = getattr(e, "message", str(e))
            self._logger.error("Transfer of %s %s failed: %s", what, plan.filename, e)
            raise TransferError(
                f"Upload failed: {message}",
                file_role=plan.role,
                filename=plan.filename,
                part_number=part_number,
                context={"attempts": self._max_attempts},
                cause=e,
            ) from e

    # -------------------------------------------------------------------------
    # Units of work
    # -------------------------------------------------------------------------

    def _upload_direct(self, state: _RunState, plan: UploadPlan, handle: IFileHandle) -> None:
        presigned = plan.presigned
        if presigned is None or not presigned.url:
            raise TransferError(
                "Direct upload plan has no presigned URL", file_role=plan.role, filename=plan.filename
            )

        def attempt() -> None:
            self._check_cancelled(state, file_role=plan.role, filename=plan.filename)
            data = handle.read_range(0, plan.size_bytes)
            self._client.put_presigned(presigned.url, data, presigned.headers)

        self._run_unit(state, plan, None, attempt)
        self._logger.debug("Direct upload of %s complete (%d bytes)", plan.filename, plan.size_bytes)

    def _upload_part(
        self,
        state: _RunState,
        pending_upload_id: str,
        plan: UploadPlan,
        handle: IFileHandle,
        part_number: int,
    ) -> UploadPart:
        start, end = plan.part_range(part_number)
        headers = {
            name: value
            for name, value in (plan.presigned.headers if plan.presigned else {}).items()
            if name.lower() not in _PART_EXCLUDED_HEADERS
        }
        data: bytes | None = None

        def attempt() -> UploadPart:
            nonlocal data
            self._check_cancelled(
                state, file_role=plan.role, filename=plan.filename, part_number=part_number
            )
            # A retry always asks for a fresh URL; part URLs are single-use
            part_url = self._client.request_part_url(
                pending_upload_id,
                file_role=plan.role,
                filename=plan.filename,
                part_number=part_number,
                content_length=end - start,
            )
            if not part_url.part_presigned_url:
                raise RegistryAPIError("Part URL response has no part_presigned_url")
            if data is None:
                data = handle.read_range(start, end)
            self._check_cancelled(
                state, file_role=plan.role, filename=plan.filename, part_number=part_number
            )
            etag = self._client.put_presigned(part_url.part_presigned_url, data, headers)
            if not etag:
                raise RegistryAPIError("Storage response has no ETag header")
            return UploadPart(part_number=part_number, etag=etag)

        part = self._run_unit(state, plan, part_number, attempt)
        self._logger.debug(
            "Part %d/%d of %s uploaded (bytes %d-%d)",
            part_number,
            plan.part_count,
            plan.filename,
            start,
            end,
        )
        return part
