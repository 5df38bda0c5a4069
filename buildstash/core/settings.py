"""
Pydantic Settings for buildstash configuration.

Provides settings loading from TOML files, environment variables, and defaults.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

try:
    import tomllib
except ImportError:
    import tomli as tomllib

from pydantic import model_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource

from .models.config import ApiConfig, LoggingConfig, TransferConfig, UploadConfig

CONFIG_DIR_NAME = ".buildstash"
CONFIG_FILE_NAME = "config.toml"

# Legacy flat variables -> (section, field)
LEGACY_ENV_VARS = {
    "BUILDSTASH_API_KEY": ("api", "key"),
    "BUILDSTASH_URL": ("api", "url"),
}


def _get_logger():
    from ..services.logging import NullLogger
    from .di import resolve_or_default
    from .interfaces.logger import ILogger

    return resolve_or_default(ILogger, NullLogger)


def find_config_file(start_dir: str | None = None) -> Path | None:
    """
    Find .buildstash/config.toml by walking up from start_dir (or cwd).

    A pyproject.toml with a [tool.buildstash] table also counts.

    Returns:
        Path to config file, or None if not found.
    """
    start = Path(start_dir) if start_dir else Path.cwd()

    for parent in [start, *list(start.parents)]:
        config_path = parent / CONFIG_DIR_NAME / CONFIG_FILE_NAME
        if config_path.exists():
            return config_path

        pyproject = parent / "pyproject.toml"
        if pyproject.exists():
            try:
                with open(pyproject, "rb") as f:
                    data = tomllib.load(f)
                if "buildstash" in data.get("tool", {}):
                    return pyproject
            except tomllib.TOMLDecodeError as e:
                _get_logger().debug("Failed to parse pyproject.toml at %s: %s", pyproject, e)
            except OSError as e:
                _get_logger().debug("Failed to read pyproject.toml at %s: %s", pyproject, e)

    return None


class TomlConfigSource(PydanticBaseSettingsSource):
    """Custom settings source that loads from TOML config files."""

    def __init__(
        self,
        settings_cls: type[BaseSettings],
        config_path: Path | None = None,
        start_dir: str | None = None,
    ):
        super().__init__(settings_cls)
        self._config_path = config_path
        self._start_dir = start_dir
        self._data: dict[str, Any] | None = None

    def _load_toml(self) -> dict[str, Any]:
        """Load and cache TOML data."""
        if self._data is not None:
            return self._data

        self._data = {}

        path = self._config_path
        if path is None:
            path = find_config_file(self._start_dir)

        if path is None:
            return self._data

        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)

            if path.name == "pyproject.toml":
                data = data.get("tool", {}).get("buildstash", {})

            self._data = data
            self._data["_config_file"] = str(path)

        except tomllib.TOMLDecodeError as e:
            _get_logger().warning("Failed to parse config file %s: %s", path, e)
            self._data["_config_error"] = f"Failed to parse config file: {e}"
        except OSError as e:
            _get_logger().warning("Failed to read config file %s: %s", path, e)
            self._data["_config_error"] = f"Failed to read config file: {e}"

        return self._data

    def get_field_value(self, field: Any, field_name: str) -> tuple[Any, str, bool]:
        """Get field value from TOML data."""
        data = self._load_toml()
        return data.get(field_name), field_name, False

    def __call__(self) -> dict[str, Any]:
        """Return TOML sections for settings initialization."""
        return {k: v for k, v in self._load_toml().items() if not k.startswith("_")}


class BuildstashSettings(BaseSettings):
    """Buildstash configuration settings with TOML and environment variable support.

    Priority (highest to lowest):
    1. Explicit init values
    2. Environment variables (BUILDSTASH_<section>__<field>)
    3. TOML config file (.buildstash/config.toml or pyproject.toml [tool.buildstash])
    4. Legacy environment variables (BUILDSTASH_API_KEY, BUILDSTASH_URL), only
       for fields no other source set
    5. Model defaults
    """

    model_config = {
        "env_prefix": "BUILDSTASH_",
        "env_nested_delimiter": "__",
        "extra": "ignore",
    }

    api: ApiConfig = ApiConfig()
    transfer: TransferConfig = TransferConfig()
    upload: UploadConfig = UploadConfig()
    logging: LoggingConfig = LoggingConfig()

    _config_file: str | None = None
    _config_error: str | None = None

    @model_validator(mode="before")
    @classmethod
    def handle_legacy_env_vars(cls, data: Any) -> Any:
        """Apply legacy flat environment variables to fields still unset."""
        if not isinstance(data, dict):
            return data
        for env_name, (section, field_name) in LEGACY_ENV_VARS.items():
            value = os.environ.get(env_name)
            if not value:
                continue
            current = data.get(section, {})
            if isinstance(current, dict):
                if current.get(field_name) is None:
                    data[section] = {**current, field_name: value}
            elif getattr(current, field_name, None) is None:
                data[section] = current.model_copy(update={field_name: value})
        return data

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Customize settings sources to add TOML loading.

        The config location is passed through module-level variables set by
        load_settings(), since this hook only receives the class.
        """
        toml_source = TomlConfigSource(
            settings_cls,
            config_path=_current_config_path,
            start_dir=_current_start_dir,
        )
        return (
            init_settings,
            env_settings,
            toml_source,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert settings to a plain nested dict."""
        result: dict[str, Any] = {
            "api": self.api.model_dump(),
            "transfer": self.transfer.model_dump(),
            "upload": self.upload.model_dump(),
            "logging": self.logging.model_dump(),
        }
        if self._config_file:
            result["_config_file"] = self._config_file
        if self._config_error:
            result["_config_error"] = self._config_error
        return result


_current_config_path: Path | None = None
_current_start_dir: str | None = None


def load_settings(
    config_path: Path | None = None, start_dir: str | None = None
) -> BuildstashSettings:
    """Load buildstash settings from config file and environment.

    Args:
        config_path: Explicit path to config file
        start_dir: Directory to start searching from (if config_path not given)

    Returns:
        BuildstashSettings instance with all sources merged
    """
    global _current_config_path, _current_start_dir

    _current_config_path = config_path
    _current_start_dir = start_dir

    try:
        settings = BuildstashSettings()

        toml_data = TomlConfigSource(BuildstashSettings, config_path, start_dir)._load_toml()
        if "_config_file" in toml_data:
            settings._config_file = toml_data["_config_file"]
        if "_config_error" in toml_data:
            settings._config_error = toml_data["_config_error"]

        return settings
    finally:
        _current_config_path = None
        _current_start_dir = None
