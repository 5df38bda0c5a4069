"""
Configuration models.

Provides Pydantic models for buildstash configuration with validation.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import ConfigDict, Field, field_validator

from .base import BuildstashBaseModel

LogLevel = Literal["debug", "info", "warning", "error"]

DEFAULT_API_URL = "https://app.buildstash.com/api/v1"


class ConfigBaseModel(BuildstashBaseModel):
    """Base model for config sections with relaxed strict mode for TOML loading."""

    model_config = ConfigDict(
        strict=False,  # TOML and env values arrive as strings
        validate_assignment=True,
        extra="ignore",
        populate_by_name=True,
        use_enum_values=True,
        revalidate_instances="never",
    )


class ApiConfig(ConfigBaseModel):
    """Registry API configuration section."""

    url: Annotated[str, Field(max_length=2048)] = DEFAULT_API_URL
    key: str | None = None
    timeout: Annotated[float, Field(gt=0)] = 30.0

    @field_validator("url", mode="before")
    @classmethod
    def validate_url(cls, v: str | None) -> str:
        """Validate and normalize the registry URL."""
        if v is None or v == "":
            return DEFAULT_API_URL
        if not v.startswith(("http://", "https://")):
            raise ValueError("Buildstash API URL must start with http:// or https://")
        return v.rstrip("/")


class TransferConfig(ConfigBaseModel):
    """Transfer orchestration configuration section."""

    max_workers: Annotated[int, Field(ge=1, le=64)] = 4
    max_attempts: Annotated[int, Field(ge=1, le=10)] = 3
    backoff_base: Annotated[float, Field(ge=0)] = 1.0
    backoff_max: Annotated[float, Field(ge=0)] = 30.0
    timeout: Annotated[float, Field(ge=0)] | None = None  # whole-publication deadline
    storage_timeout: Annotated[float, Field(gt=0)] = 300.0


class UploadConfig(ConfigBaseModel):
    """Upload defaults configuration section."""

    source: str = "jenkins"
    platform: str | None = None
    stream: str | None = None
    labels: list[str] = Field(default_factory=list)
    architectures: list[str] = Field(default_factory=list)

    @field_validator("labels", "architectures", mode="before")
    @classmethod
    def parse_separated(cls, v: Any) -> list[str]:
        """Parse newline or comma separated strings to a list."""
        if isinstance(v, str):
            return [x.strip() for x in v.replace(",", "\n").splitlines() if x.strip()]
        return v if v else []


class LoggingConfig(ConfigBaseModel):
    """Logging configuration section."""

    level: LogLevel = "warning"
    console: bool = False
    file: bool = True


class BuildstashConfig(ConfigBaseModel):
    """Complete buildstash configuration.

    Mirrors the sections of BuildstashSettings for callers that build a
    configuration programmatically.
    """

    api: ApiConfig = Field(default_factory=ApiConfig)
    transfer: TransferConfig = Field(default_factory=TransferConfig)
    upload: UploadConfig = Field(default_factory=UploadConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    def get(self, key: str, default: Any = None) -> Any:
        """Get config value by dot-notation key.

        Args:
            key: Dot-notation key (e.g., 'transfer.max_workers')
            default: Default value if key not found

        Returns:
            Config value or default
        """
        obj: Any = self
        for part in key.split("."):
            if hasattr(obj, part):
                obj = getattr(obj, part)
            elif isinstance(obj, dict) and part in obj:
                obj = obj[part]
            else:
                return default
        return obj
