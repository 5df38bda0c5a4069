"""
Base Pydantic models for buildstash.

Provides common configuration and base classes for all buildstash models.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class BuildstashBaseModel(BaseModel):
    """Base model for all buildstash Pydantic models.

    Configuration:
        - strict: Strict type coercion (no implicit conversions)
        - validate_assignment: Validate on attribute assignment
        - extra: Reject unknown fields
        - populate_by_name: Allow field aliases
        - use_enum_values: Serialize enums as values
    """

    model_config = ConfigDict(
        strict=True,
        validate_assignment=True,
        extra="forbid",
        populate_by_name=True,
        use_enum_values=True,
        revalidate_instances="never",
    )


class ImmutableModel(BuildstashBaseModel):
    """Immutable base model for values that should not change after creation."""

    model_config = ConfigDict(
        frozen=True,
        strict=True,
        extra="forbid",
        populate_by_name=True,
        use_enum_values=True,
        revalidate_instances="never",
    )


class WireModel(BaseModel):
    """Base model for registry responses.

    Responses are parsed leniently: unknown keys are ignored and JSON scalars
    are coerced, so a server adding fields never breaks a publication.
    """

    model_config = ConfigDict(
        frozen=True,
        strict=False,
        extra="ignore",
        populate_by_name=True,
        coerce_numbers_to_str=True,
    )
