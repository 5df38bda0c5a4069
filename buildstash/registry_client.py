"""Client for the Buildstash registry API and its presigned storage URLs."""

import json
import socket
import urllib.error
import urllib.request
from typing import Any

from pydantic import ValidationError

from .core.exceptions import (
    RegistryAPIError,
    RegistryConnectionError,
    RegistryTimeoutError,
)
from .core.models.registry import (
    BuildRecord,
    PartUrlResponse,
    UploadRequestResponse,
)

USER_AGENT = "buildstash-cli"


def _get_logger():
    from .core.di import resolve_or_default
    from .core.interfaces.logger import ILogger
    from .services.logging import NullLogger

    return resolve_or_default(ILogger, NullLogger)


def get_api_url() -> str:
    """Get the registry API base URL from config or environment."""
    from .config import config_get

    return config_get("api.url")


def get_api_key() -> str | None:
    """Get the API key from config or environment."""
    from .config import config_get

    return config_get("api.key")


def _is_html(body: str) -> bool:
    stripped = body.strip()
    return stripped.startswith("<!") or stripped.lower().startswith("<html")


def _preview(body: str) -> str:
    return body[:100].replace("\n", " ")


def _transport_error(
    prefix: str, error: OSError, *, url: str | None = None, timeout: float | None = None
) -> RegistryConnectionError:
    """Map a transport failure to a typed error; wrapped timeouts stay timeouts."""
    reason = getattr(error, "reason", error)
    if isinstance(reason, TimeoutError):
        return RegistryTimeoutError(f"{prefix}: timed out", url=url, timeout=timeout, cause=error)
    return RegistryConnectionError(f"{prefix}: {reason}", url=url, cause=error)


class RegistryClient:
    """
    Client for the Buildstash registry.

    JSON calls go to the API under the bearer API key. Storage PUTs go to
    presigned URLs and carry only the headers the registry handed out.
    Failures raise RegistryConnectionError, RegistryTimeoutError or
    RegistryAPIError; callers wrap them into stage errors.
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float = 30.0,
        storage_timeout: float = 300.0,
    ):
        self.api_key = api_key if api_key is not None else get_api_key()
        self.base_url = (base_url or get_api_url()).rstrip("/")
        self.timeout = timeout
        self.storage_timeout = storage_timeout

    def is_configured(self) -> bool:
        """Check if an API key is available."""
        return bool(self.api_key)

    def _parse_json_response(
        self, response_body: str, http_status: int
    ) -> tuple[Any | None, str | None]:
        """Parse JSON response with descriptive error messages.

        Returns (parsed, error_message).
        """
        if not response_body or not response_body.strip():
            return None, f"Server returned empty response (HTTP {http_status})"

        # Misconfigured proxies answer with HTML pages
        if _is_html(response_body):
            return None, f"Server returned HTML instead of JSON: '{_preview(response_body)}...'"

        try:
            return json.loads(response_body), None
        except json.JSONDecodeError as e:
            return None, (
                f"Invalid JSON in response (HTTP {http_status}) at position {e.pos}: "
                f"'{_preview(response_body)}...'"
            )

    def _error_detail(self, error: urllib.error.HTTPError) -> str:
        error_body = error.read().decode(errors="replace") if error.fp else ""
        error_data, _ = self._parse_json_response(error_body, error.code)
        if isinstance(error_data, dict):
            detail = error_data.get("message") or error_data.get("detail") or error_data.get("error")
            return str(detail) if detail else str(error)
        if error_body:
            if error.code == 403 and _is_html(error_body):
                return (
                    "Access denied by proxy or firewall (received HTML 403). "
                    "Check network configuration."
                )
            if len(error_body) > 100:
                return f"Non-JSON response: '{_preview(error_body)}...'"
            return error_body
        return str(error)

    def _request(
        self,
        method: str,
        path: str,
        body: dict | None = None,
    ) -> dict:
        """Make an authenticated JSON request and return the decoded object."""
        url = f"{self.base_url}{path}"
        body_bytes = json.dumps(body).encode() if body is not None else None

        _get_logger().debug(
            "API request: %s %s (body: %d bytes)",
            method,
            url,
            len(body_bytes) if body_bytes else 0,
        )

        req = urllib.request.Request(url, data=body_bytes, method=method)
        req.add_header("Authorization", f"Bearer {self.api_key or ''}")
        req.add_header("Accept", "application/json")
        req.add_header("User-Agent", USER_AGENT)
        if body_bytes:
            req.add_header("Content-Type", "application/json")

        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:
                http_status = resp.status
                response_body = resp.read().decode()
        except urllib.error.HTTPError as e:
            detail = self._error_detail(e)
            _get_logger().debug("API error: %s %s -> HTTP %d: %s", method, path, e.code, detail[:200])
            raise RegistryAPIError(
                f"HTTP {e.code}: {detail}", status_code=e.code, url=url, cause=e
            ) from e
        except (socket.timeout, TimeoutError) as e:
            _get_logger().debug("Registry request to %s timed out", url)
            raise RegistryTimeoutError(
                "Registry request timed out", url=url, timeout=self.timeout, cause=e
            ) from e
        except (urllib.error.URLError, ConnectionError) as e:
            _get_logger().debug("Registry connection error to %s: %s", url, e)
            raise _transport_error("Connection error", e, url=url, timeout=self.timeout) from e

        _get_logger().debug(
            "API response: %s %s -> HTTP %d (%d bytes)",
            method,
            path,
            http_status,
            len(response_body),
        )

        result, error = self._parse_json_response(response_body, http_status)
        if error:
            raise RegistryAPIError(error, status_code=http_status, url=url)
        if not isinstance(result, dict):
            raise RegistryAPIError(
                f"Expected a JSON object, got {type(result).__name__}",
                status_code=http_status,
                url=url,
            )
        return result

    def _parse(self, model: type, data: dict, url: str):
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise RegistryAPIError(
                f"Unexpected {model.__name__} payload: {e.error_count()} invalid field(s)",
                url=url,
                cause=e,
            ) from e

    # -------------------------------------------------------------------------
    # Registry API
    # -------------------------------------------------------------------------

    def request_upload(self, payload: dict) -> UploadRequestResponse:
        """
        Negotiate a new upload (``POST /uploads``).

        Args:
            payload: Build metadata and file descriptors

        Returns:
            Pending upload id plus one FileUploadInfo per file
        """
        data = self._request("POST", "/uploads", payload)
        return self._parse(UploadRequestResponse, data, f"{self.base_url}/uploads")

    def request_part_url(
        self,
        pending_upload_id: str,
        *,
        file_role: str,
        filename: str,
        part_number: int,
        content_length: int,
    ) -> PartUrlResponse:
        """
        Get a single-use presigned URL for one part (``POST /uploads/{id}/parts``).
        """
        path = f"/uploads/{pending_upload_id}/parts"
        body = {
            "file_role": file_role,
            "filename": filename,
            "part_number": part_number,
            "content_length": content_length,
        }
        data = self._request("POST", path, body)
        return self._parse(PartUrlResponse, data, f"{self.base_url}{path}")

    def complete_upload(self, pending_upload_id: str, body: dict) -> BuildRecord:
        """
        Finalize an upload (``POST /uploads/{id}/complete``).

        Args:
            pending_upload_id: Id returned by request_upload
            body: Ordered part lists for chunked files

        Returns:
            The published build record
        """
        path = f"/uploads/{pending_upload_id}/complete"
        data = self._request("POST", path, body)
        return self._parse(BuildRecord, data, f"{self.base_url}{path}")

    # -------------------------------------------------------------------------
    # Presigned storage
    # -------------------------------------------------------------------------

    def put_presigned(
        self,
        url: str,
        data: bytes,
        headers: dict[str, str] | None = None,
    ) -> str | None:
        """
        PUT bytes to a presigned storage URL.

        Only the presigned headers are sent; the bearer key never goes to
        storage.

        Returns:
            The ETag from the storage response, if it sent one
        """
        _get_logger().debug("Storage PUT: %d bytes", len(data))

        req = urllib.request.Request(url, data=data, method="PUT")
        for name, value in (headers or {}).items():
            req.add_header(name, value)
        if not req.has_header("Content-length"):
            req.add_header("Content-Length", str(len(data)))

        try:
            with urllib.request.urlopen(req, timeout=self.storage_timeout) as resp:
                etag = resp.headers.get("ETag")
                resp.read()
        except urllib.error.HTTPError as e:
            detail = self._error_detail(e)
            _get_logger().debug("Storage PUT failed -> HTTP %d: %s", e.code, detail[:200])
            raise RegistryAPIError(
                f"Storage rejected upload: HTTP {e.code}: {detail}",
                status_code=e.code,
                cause=e,
            ) from e
        except (socket.timeout, TimeoutError) as e:
            raise RegistryTimeoutError(
                "Storage upload timed out", timeout=self.storage_timeout, cause=e
            ) from e
        except (urllib.error.URLError, ConnectionError) as e:
            raise _transport_error(
                "Storage connection error", e, timeout=self.storage_timeout
            ) from e

        return etag
