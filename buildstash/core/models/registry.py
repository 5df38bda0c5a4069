"""
Registry protocol models.

Wire models parse the registry's JSON responses; the domain models below
them (UploadPlan, PendingUpload, UploadPart, FileTransfer) are what the
planner and orchestrator pass around.
"""

from __future__ import annotations

from typing import Any

from pydantic import Field, field_validator

from .base import ImmutableModel, WireModel
from .upload import FileRole

MIB = 1024 * 1024


def normalize_header_value(value: Any) -> str | None:
    """Collapse a presigned header value to a single string.

    Storage providers return either a plain string or a list whose first
    element is the value; anything else is stringified.
    """
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        if not value:
            return None
        value = value[0]
    if isinstance(value, str):
        return value
    return str(value)


# =============================================================================
# Wire models
# =============================================================================


class PresignedData(WireModel):
    """A presigned URL with the exact headers the PUT must carry."""

    url: str | None = None
    headers: dict[str, str] = Field(default_factory=dict)

    @field_validator("headers", mode="before")
    @classmethod
    def normalize_headers(cls, v: Any) -> dict[str, str]:
        if not v:
            return {}
        if not isinstance(v, dict):
            raise ValueError("presigned headers must be an object")
        headers = {}
        for key, raw in v.items():
            value = normalize_header_value(raw)
            if value is not None:
                headers[str(key)] = value
        return headers


class FileUploadInfo(WireModel):
    """Server-issued upload instructions for one file."""

    filename: str | None = None
    chunked_upload: bool = False
    chunked_number_parts: int | None = None
    chunked_part_size_mb: int | None = None
    presigned_data: PresignedData | None = None


class UploadRequestResponse(WireModel):
    """Response of ``POST /uploads``."""

    message: str | None = None
    pending_upload_id: str | None = None
    primary_file: FileUploadInfo | None = None
    expansion_files: list[FileUploadInfo] = Field(default_factory=list)

    @field_validator("expansion_files", mode="before")
    @classmethod
    def none_to_empty(cls, v: Any) -> Any:
        return v or []


class PartUrlResponse(WireModel):
    """Response of ``POST /uploads/{id}/parts``."""

    message: str | None = None
    part_presigned_url: str | None = None
    part_number: int | None = None


class BuildRecord(WireModel):
    """Response of ``POST /uploads/{id}/complete``: the published build."""

    message: str | None = None
    build_id: str | None = None
    pending_processing: bool = False
    build_info_url: str | None = None
    download_url: str | None = None


# =============================================================================
# Domain models
# =============================================================================


class UploadPlan(ImmutableModel):
    """How one file is to be transferred."""

    role: FileRole
    filename: str
    size_bytes: int = Field(ge=0)
    chunked: bool = False
    part_count: int = 0
    part_size_mb: int = 0
    presigned: PresignedData | None = None

    @property
    def part_size_bytes(self) -> int:
        return self.part_size_mb * MIB

    def part_range(self, part_number: int) -> tuple[int, int]:
        """Byte range ``[start, end)`` of a 1-based part.

        Parts are ``part_size_mb`` long and the last one runs to the end of
        the file. When the part size is unknown, or too large to give every
        part a byte, the file is split evenly across the parts instead.
        """
        if not 1 <= part_number <= self.part_count:
            raise ValueError(f"part {part_number} outside 1..{self.part_count}")
        step = self.part_size_bytes
        if step < 1 or (self.part_count - 1) * step >= self.size_bytes:
            step = (self.size_bytes + self.part_count - 1) // self.part_count
        start = min((part_number - 1) * step, self.size_bytes)
        if part_number == self.part_count:
            end = self.size_bytes
        else:
            end = min(start + step, self.size_bytes)
        return start, end


class PendingUpload(ImmutableModel):
    """A negotiated, not yet finalized publication."""

    pending_upload_id: str = Field(min_length=1)
    primary: UploadPlan
    expansion: UploadPlan | None = None
    message: str | None = None

    @property
    def plans(self) -> list[UploadPlan]:
        """Plans in role order, primary first."""
        return [self.primary] if self.expansion is None else [self.primary, self.expansion]


class UploadPart(ImmutableModel):
    """A transferred part and the ETag storage returned for it."""

    part_number: int = Field(ge=1)
    etag: str

    def to_payload(self) -> dict[str, Any]:
        return {"part_number": self.part_number, "eTag": self.etag}


class FileTransfer(ImmutableModel):
    """Outcome of transferring one file."""

    role: FileRole
    filename: str
    chunked: bool
    parts: tuple[UploadPart, ...] = ()
