"""Configuration loading and management for buildstash."""

from pathlib import Path
from typing import Any

from .core.exceptions import ConfigValidationError
from .core.settings import CONFIG_DIR_NAME, CONFIG_FILE_NAME, find_config_file, load_settings

# Config keys that can be set via `buildstash config`
CONFIGURABLE_KEYS = {
    "api.url": {
        "type": str,
        "default": "https://app.buildstash.com/api/v1",
        "description": "Buildstash API base URL",
    },
    "api.key": {
        "type": str,
        "default": None,
        "description": "Buildstash application API key (prefer BUILDSTASH_API_KEY in CI)",
    },
    "api.timeout": {
        "type": float,
        "default": 30.0,
        "description": "Timeout in seconds for registry API calls",
    },
    "transfer.max_workers": {
        "type": int,
        "default": 4,
        "description": "Maximum concurrent part uploads",
    },
    "transfer.max_attempts": {
        "type": int,
        "default": 3,
        "description": "Attempts per part or direct upload before giving up",
    },
    "transfer.backoff_base": {
        "type": float,
        "default": 1.0,
        "description": "Initial retry delay in seconds (doubles each attempt)",
    },
    "transfer.backoff_max": {
        "type": float,
        "default": 30.0,
        "description": "Maximum retry delay in seconds",
    },
    "transfer.timeout": {
        "type": float,
        "default": None,
        "description": "Deadline in seconds for the whole transfer (unset = none)",
    },
    "transfer.storage_timeout": {
        "type": float,
        "default": 300.0,
        "description": "Timeout in seconds for a single PUT to presigned storage",
    },
    "upload.source": {
        "type": str,
        "default": "jenkins",
        "description": "Source tag sent with every build",
    },
    "upload.platform": {
        "type": str,
        "default": None,
        "description": "Default platform when --platform is not given",
    },
    "upload.stream": {
        "type": str,
        "default": None,
        "description": "Default stream when --stream is not given",
    },
    "upload.labels": {
        "type": list,
        "default": [],
        "description": "Labels added to every build (comma-separated)",
    },
    "upload.architectures": {
        "type": list,
        "default": [],
        "description": "Architectures added to every build (comma-separated)",
    },
    "logging.level": {
        "type": str,
        "default": "warning",
        "description": "Log level (debug, info, warning, error)",
    },
    "logging.console": {
        "type": bool,
        "default": False,
        "description": "Output debug logs to stderr",
    },
    "logging.file": {
        "type": bool,
        "default": True,
        "description": "Output debug logs to ~/.buildstash/buildstash.log",
    },
}


def _get_default_config() -> dict:
    """Get default config from Pydantic models."""
    from .core.models.config import BuildstashConfig

    return BuildstashConfig().model_dump()


def _get_nested(d: dict, key: str, default=None):
    """Get a nested key like 'transfer.max_workers'."""
    for part in key.split("."):
        if isinstance(d, dict) and part in d:
            d = d[part]
        else:
            return default
    return d


def _set_nested(d: dict, key: str, value):
    """Set a nested key like 'transfer.max_workers'."""
    parts = key.split(".")
    for part in parts[:-1]:
        if part not in d:
            d[part] = {}
        d = d[part]
    d[parts[-1]] = value


def load_config(config_path: Path | None = None, start_dir: str | None = None) -> dict:
    """
    Load configuration from file and environment.

    Args:
        config_path: Explicit path to config file
        start_dir: Directory to start searching from (if config_path not given)

    Returns:
        Configuration dict with defaults applied
    """
    settings = load_settings(config_path=config_path, start_dir=start_dir)
    return settings.to_dict()


def get_config_path_for_write(start_dir: str | None = None) -> Path:
    """
    Get the path where config should be written.

    Prefers an existing .buildstash/config.toml, otherwise creates one in
    start_dir or cwd.
    """
    existing = find_config_file(start_dir)
    if existing and existing.name == CONFIG_FILE_NAME:
        return existing

    base = Path(start_dir) if start_dir else Path.cwd()
    config_dir = base / CONFIG_DIR_NAME
    config_dir.mkdir(exist_ok=True)
    return config_dir / CONFIG_FILE_NAME


def _format_toml_value(val: Any) -> str:
    if isinstance(val, bool):
        return str(val).lower()
    if isinstance(val, str):
        escaped = val.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    if isinstance(val, list):
        return "[" + ", ".join(_format_toml_value(v) for v in val) + "]"
    return str(val)


def save_config(config: dict, config_path: Path):
    """
    Save configuration to a config.toml file.

    Only non-default values are written.
    """
    defaults = _get_default_config()
    lines = []

    for section in ("api", "transfer", "upload", "logging"):
        section_lines = []
        for key, val in config.get(section, {}).items():
            if val is None or val == defaults.get(section, {}).get(key):
                continue
            section_lines.append(f"{key} = {_format_toml_value(val)}")
        if section_lines:
            lines.append(f"[{section}]")
            lines.extend(section_lines)
            lines.append("")

    config_path.write_text("\n".join(lines))


def config_get(key: str, start_dir: str | None = None):
    """Get a config value."""
    config = load_config(start_dir=start_dir)
    return _get_nested(config, key)


def _parse_value(key: str, value: str) -> Any:
    key_type = CONFIGURABLE_KEYS[key]["type"]
    if key_type is bool:
        if value.lower() in ("true", "1", "yes", "on"):
            return True
        if value.lower() in ("false", "0", "no", "off"):
            return False
        raise ConfigValidationError(f"Invalid boolean value: {value}", key=key, value=value)
    if key_type is list:
        if value.strip() == "":
            return []
        return [v.strip() for v in value.split(",") if v.strip()]
    if key_type in (int, float):
        try:
            return key_type(value)
        except ValueError as e:
            raise ConfigValidationError(
                f"Invalid {key_type.__name__} value for {key}: {value}", key=key, value=value, cause=e
            ) from e
    return value


def config_set(key: str, value: str, start_dir: str | None = None):
    """Set a config value and save to .buildstash/config.toml."""
    from .core.models.config import BuildstashConfig
    from .core.settings import BuildstashSettings, TomlConfigSource

    if key not in CONFIGURABLE_KEYS:
        raise ConfigValidationError(
            f"Unknown config key: {key}. Valid keys: {', '.join(CONFIGURABLE_KEYS.keys())}",
            key=key,
        )

    typed_value = _parse_value(key, value)

    config_path = get_config_path_for_write(start_dir)

    # Only file contents are rewritten; values from the environment stay out of it
    file_data = TomlConfigSource(BuildstashSettings, config_path=config_path)()
    _set_nested(file_data, key, typed_value)
    config = BuildstashConfig.model_validate(file_data).model_dump()

    save_config(config, config_path)

    return config_path, typed_value


def config_list():
    """List all configurable keys with descriptions."""
    return CONFIGURABLE_KEYS
