"""
Version-control provenance models.

Provides the Pydantic model carrying where a build's sources came from.
"""

from __future__ import annotations

from typing import Any, ClassVar

from .base import ImmutableModel


def is_blank(value: Any) -> bool:
    """Check if a provenance value is missing (None or whitespace only)."""
    return value is None or (isinstance(value, str) and not value.strip())


class VCProvenance(ImmutableModel):
    """Version-control facts about a build.

    Every field is optional. Values are never overwritten once set; merging
    only fills fields that are still blank.
    """

    FIELDS: ClassVar[tuple[str, ...]] = (
        "host_type",
        "host",
        "repo_name",
        "repo_url",
        "branch",
        "commit_sha",
        "commit_url",
    )

    host_type: str | None = None
    host: str | None = None
    repo_name: str | None = None
    repo_url: str | None = None
    branch: str | None = None
    commit_sha: str | None = None
    commit_url: str | None = None

    def missing_fields(self) -> list[str]:
        """Names of fields that are still blank."""
        return [name for name in self.FIELDS if is_blank(getattr(self, name))]

    @property
    def is_complete(self) -> bool:
        return not self.missing_fields()

    @property
    def is_empty(self) -> bool:
        return len(self.missing_fields()) == len(self.FIELDS)

    def fill_from(self, other: VCProvenance | None) -> VCProvenance:
        """Return a copy with blank fields taken from ``other``.

        Fields already set on ``self`` always win.
        """
        if other is None:
            return self
        updates = {
            name: getattr(other, name)
            for name in self.missing_fields()
            if not is_blank(getattr(other, name))
        }
        if not updates:
            return self
        return self.model_copy(update=updates)

    def with_defaults(self, **values: str | None) -> VCProvenance:
        """Return a copy with the given values applied to blank fields only."""
        return self.fill_from(VCProvenance(**values))
