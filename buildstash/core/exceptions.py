"""
Custom exception hierarchy for buildstash.

Every stage of a publication (validation, planning, transfer, finalize)
raises its own typed exception so callers can tell which stage failed and
whether a retry of the whole publication makes sense.
"""

from __future__ import annotations


class BuildstashException(Exception):
    """
    Base exception for all buildstash errors.

    Attributes:
        message: Human-readable error description
        context: Additional debugging context (stage, file role, part, URL)
        exit_code: Suggested exit code for CLI (default: 1)
        recoverable: Whether retry/recovery may be possible
    """

    exit_code: int = 1
    recoverable: bool = True

    def __init__(
        self,
        message: str,
        *,
        context: dict | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.message = message
        self.context = context or {}
        if cause is not None:
            self.__cause__ = cause
        super().__init__(message)

    def __str__(self) -> str:
        if self.context:
            ctx_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({ctx_str})"
        return self.message


# =============================================================================
# Configuration Errors
# =============================================================================


class BuildstashConfigError(BuildstashException):
    """Base class for configuration-related errors."""

    pass


class ConfigValidationError(BuildstashConfigError, ValueError):
    """
    Invalid or missing configuration value.

    Inherits from ValueError so callers that catch ValueError for bad input
    also see configuration mistakes.
    """

    def __init__(
        self,
        message: str,
        *,
        key: str | None = None,
        value: str | None = None,
        context: dict | None = None,
        cause: Exception | None = None,
    ) -> None:
        ctx = context or {}
        if key:
            ctx["key"] = key
        if value is not None:
            ctx["value"] = value
        super().__init__(message, context=ctx, cause=cause)


# =============================================================================
# Network Errors (Buildstash registry)
# =============================================================================


class BuildstashNetworkError(BuildstashException):
    """Base class for network-related errors."""

    pass


class RegistryConnectionError(BuildstashNetworkError):
    """
    Error connecting to the registry or to presigned storage.

    Raised for connection timeouts, DNS failures, SSL errors, etc.
    """

    def __init__(
        self,
        message: str,
        *,
        url: str | None = None,
        context: dict | None = None,
        cause: Exception | None = None,
    ) -> None:
        ctx = context or {}
        if url:
            ctx["url"] = url
        super().__init__(message, context=ctx, cause=cause)


class RegistryAPIError(BuildstashNetworkError):
    """
    The registry (or presigned storage) returned an error response.

    Includes HTTP status code for programmatic handling.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        url: str | None = None,
        context: dict | None = None,
        cause: Exception | None = None,
    ) -> None:
        ctx = context or {}
        if status_code:
            ctx["status_code"] = status_code
        if url:
            ctx["url"] = url
        super().__init__(message, context=ctx, cause=cause)
        self.status_code = status_code

    @property
    def is_transient(self) -> bool:
        """Server-side and throttling failures are worth another attempt."""
        if self.status_code is None:
            return False
        return self.status_code >= 500 or self.status_code in (408, 429)


class RegistryTimeoutError(RegistryConnectionError):
    """
    Registry request timed out.

    Raised when a request exceeds the configured timeout.
    """

    def __init__(
        self,
        message: str,
        *,
        url: str | None = None,
        timeout: float | None = None,
        context: dict | None = None,
        cause: Exception | None = None,
    ) -> None:
        ctx = context or {}
        if timeout is not None:
            ctx["timeout"] = timeout
        super().__init__(message, url=url, context=ctx, cause=cause)


# =============================================================================
# Publication Errors
# =============================================================================


class PublicationError(BuildstashException):
    """Base class for errors raised while publishing a build."""

    pass


class UploadValidationError(PublicationError, ValueError):
    """
    The upload request is incomplete or references a missing file.

    Raised before any network call is made. Never retried.
    """

    recoverable: bool = False

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        validation_errors: list[str] | None = None,
        context: dict | None = None,
        cause: Exception | None = None,
    ) -> None:
        ctx = context or {}
        if field:
            ctx["field"] = field
        if validation_errors:
            ctx["validation_errors"] = validation_errors
        super().__init__(message, context=ctx, cause=cause)


class PlanningError(PublicationError):
    """
    Negotiating the upload with the registry failed.

    Raised for transport failures, non-2xx responses and malformed or
    internally inconsistent upload plans. No bytes have been sent.
    """

    def __init__(
        self,
        message: str,
        *,
        file_role: str | None = None,
        context: dict | None = None,
        cause: Exception | None = None,
    ) -> None:
        ctx = {"stage": "plan"}
        if file_role:
            ctx["file_role"] = file_role
        ctx.update(context or {})
        super().__init__(message, context=ctx, cause=cause)


class TransferError(PublicationError):
    """
    A direct upload or a multipart part failed after exhausting its retries.

    The publication is aborted and finalize is never attempted.
    """

    def __init__(
        self,
        message: str,
        *,
        file_role: str | None = None,
        filename: str | None = None,
        part_number: int | None = None,
        context: dict | None = None,
        cause: Exception | None = None,
    ) -> None:
        ctx = {"stage": "transfer"}
        if file_role:
            ctx["file_role"] = file_role
        if filename:
            ctx["filename"] = filename
        if part_number is not None:
            ctx["part_number"] = part_number
        ctx.update(context or {})
        super().__init__(message, context=ctx, cause=cause)
        self.file_role = file_role
        self.part_number = part_number


class PublicationCancelledError(TransferError):
    """The publication was cancelled or ran past its deadline."""

    recoverable: bool = False
    exit_code: int = 130


class FinalizeError(PublicationError):
    """
    The completion call failed after every part was transferred.

    The pending upload is not reusable; a retry must start a new publication.
    """

    def __init__(
        self,
        message: str,
        *,
        pending_upload_id: str | None = None,
        context: dict | None = None,
        cause: Exception | None = None,
    ) -> None:
        ctx = {"stage": "finalize"}
        if pending_upload_id:
            ctx["pending_upload_id"] = pending_upload_id
        ctx.update(context or {})
        super().__init__(message, context=ctx, cause=cause)

