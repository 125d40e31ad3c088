"""Configuration loading for blobmirror.

Values are read, in increasing order of precedence, from a JSON file, from
environment variables and from explicit overrides (the CLI options).
"""

import json
import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional

from .exceptions import ConfigError
from .utils import DEFAULT_DEBOUNCE_SECONDS

logger = logging.getLogger(__name__)

CONFIG_DIR = Path.home() / ".config" / "blobmirror"
DEFAULT_CONFIG_FILE = CONFIG_DIR / "config.json"

ENV_VARS = {
    "root_folder": "BLOBMIRROR_ROOT_FOLDER",
    "storage_account": "BLOBMIRROR_STORAGE_ACCOUNT",
    "account_key": "BLOBMIRROR_ACCOUNT_KEY",
    "container_name": "BLOBMIRROR_CONTAINER",
    "debounce_seconds": "BLOBMIRROR_DEBOUNCE",
    "endpoint": "BLOBMIRROR_ENDPOINT",
}

REQUIRED_KEYS = ("root_folder", "storage_account", "account_key", "container_name")


@dataclass(frozen=True)
class MirrorConfig:
    """Settings for one mirrored folder."""

    root_folder: str
    """Local folder whose contents are mirrored"""

    storage_account: str
    """Storage account name"""

    account_key: str
    """Base64 account key"""

    container_name: str
    """Container receiving the blobs"""

    debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS
    """Window over which changes to one path are coalesced"""

    endpoint: Optional[str] = None
    """Blob service URL override (e.g. a local emulator)"""

    def to_dict(self, redact: bool = True) -> dict[str, Any]:
        """Convert to a dictionary, hiding the account key by default."""
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        if redact and data["account_key"]:
            data["account_key"] = "***"
        return data


def _read_config_file(path: Path) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in config file {path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a JSON object")

    unknown = sorted(set(data) - set(ENV_VARS))
    if unknown:
        logger.warning("Ignoring unknown config keys in %s: %s", path, ", ".join(unknown))
    return {key: value for key, value in data.items() if key in ENV_VARS}


def _collect_values(
    config_file: Optional[Path],
    env: Optional[Mapping[str, str]],
    overrides: Mapping[str, Any],
) -> dict[str, Any]:
    """Merge the config file, environment and overrides, later sources winning."""
    if env is None:
        env = os.environ

    values: dict[str, Any] = {}
    if config_file is not None:
        if not config_file.exists():
            raise ConfigError(f"Config file not found: {config_file}")
        values.update(_read_config_file(config_file))
    elif DEFAULT_CONFIG_FILE.exists():
        values.update(_read_config_file(DEFAULT_CONFIG_FILE))

    for key, var in ENV_VARS.items():
        if env.get(var):
            values[key] = env[var]

    for key, value in overrides.items():
        if key not in ENV_VARS:
            raise ConfigError(f"Unknown configuration key: {key}")
        if value is not None:
            values[key] = value
    return values


def _check_required(values: Mapping[str, Any], keys: Iterable[str]) -> None:
    missing = [key for key in keys if not values.get(key)]
    if missing:
        hints = ", ".join(f"{key} ({ENV_VARS[key]})" for key in missing)
        raise ConfigError(f"Missing required configuration: {hints}")


def load_config(
    config_file: Optional[Path] = None,
    env: Optional[Mapping[str, str]] = None,
    **overrides: Any,
) -> MirrorConfig:
    """Load and validate the configuration.

    Args:
        config_file: JSON file to read. When omitted, the default file is
            used if it exists.
        env: Environment to read variables from (default: ``os.environ``)
        **overrides: Explicit values; ``None`` values are ignored

    Returns:
        Validated configuration

    Raises:
        ConfigError: If a required value is missing or a value is invalid
    """
    values = _collect_values(config_file, env, overrides)
    _check_required(values, REQUIRED_KEYS)

    if "debounce_seconds" in values:
        try:
            values["debounce_seconds"] = float(values["debounce_seconds"])
        except (TypeError, ValueError) as e:
            raise ConfigError(
                f"Invalid debounce value: {values['debounce_seconds']!r}"
            ) from e
        if values["debounce_seconds"] < 0:
            raise ConfigError("Debounce value must not be negative")

    values["root_folder"] = str(values["root_folder"])
    return MirrorConfig(**values)


def load_root_folder(
    config_file: Optional[Path] = None,
    env: Optional[Mapping[str, str]] = None,
    **overrides: Any,
) -> str:
    """Load only the root folder, from the same sources as :func:`load_config`.

    Storage credentials are not required.

    Raises:
        ConfigError: If no root folder is configured
    """
    values = _collect_values(config_file, env, overrides)
    _check_required(values, ("root_folder",))
    return str(values["root_folder"])
