"""
Upload request models.

An UploadRequest is assembled once per publication (caller inputs plus
resolved provenance) and then only read: the planner turns it into the
wire payload and the orchestrator never touches it again.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import ConfigDict, Field, field_validator

from .base import ImmutableModel
from .vcs import VCProvenance

Structure = Literal["file", "file+expansion"]
FileRole = Literal["primary", "expansion"]

STRUCTURE_FILE: Structure = "file"
STRUCTURE_FILE_EXPANSION: Structure = "file+expansion"


def _dedupe(values: Any) -> Any:
    """Strip, drop blanks and de-duplicate while preserving first-seen order."""
    if isinstance(values, str):
        values = values.splitlines()
    if not values:
        return []
    seen: dict[str, None] = {}
    for value in values:
        if isinstance(value, str):
            value = value.strip()
            if value:
                seen.setdefault(value, None)
        else:
            return values  # let strict validation report it
    return list(seen)


class FileDescriptor(ImmutableModel):
    """A file to publish: its basename, size and the handle that reads it.

    The handle is owned by the caller; only byte ranges are read through it.
    """

    model_config = ConfigDict(frozen=True, strict=True, extra="forbid", arbitrary_types_allowed=True)

    filename: str = Field(min_length=1)
    size_bytes: int = Field(ge=0)
    handle: Any = Field(default=None, exclude=True, repr=False)

    def to_payload(self) -> dict[str, Any]:
        return {"filename": self.filename, "size_bytes": self.size_bytes}


class VersionInfo(ImmutableModel):
    """Semantic version components plus optional extra/meta/custom build number."""

    major: str
    minor: str
    patch: str
    extra: str | None = None
    meta: str | None = None
    custom_build_number: str | None = None

    @property
    def display(self) -> str:
        version = f"{self.major}.{self.minor}.{self.patch}"
        if self.extra:
            version += f"-{self.extra}"
        if self.meta:
            version += f"+{self.meta}"
        return version


class CIProvenance(ImmutableModel):
    """CI run facts attached to a build."""

    source: str = "jenkins"
    pipeline: str | None = None
    run_id: str | None = None
    run_url: str | None = None
    pipeline_url: str | None = None
    build_duration: str | None = None  # HH:MM:SS


class UploadRequest(ImmutableModel):
    """Everything the registry needs to accept one build."""

    structure: Structure = STRUCTURE_FILE
    primary_file: FileDescriptor
    expansion_file: FileDescriptor | None = None
    version: VersionInfo
    platform: str
    stream: str
    labels: list[str] = Field(default_factory=list)
    architectures: list[str] = Field(default_factory=list)
    notes: str | None = None
    ci: CIProvenance = Field(default_factory=CIProvenance)
    vc: VCProvenance = Field(default_factory=VCProvenance)

    @field_validator("labels", "architectures", mode="before")
    @classmethod
    def normalize_lists(cls, v: Any) -> Any:
        return _dedupe(v)

    @property
    def files(self) -> dict[str, FileDescriptor]:
        """Files keyed by role, primary first."""
        files = {"primary": self.primary_file}
        if self.structure == STRUCTURE_FILE_EXPANSION and self.expansion_file is not None:
            files["expansion"] = self.expansion_file
        return files
