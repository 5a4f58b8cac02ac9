"""
Configuration loading and validation for FeedVault.

Centralises config parsing so it happens once at startup rather than
redundantly in every component constructor.
"""

import json
import os
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

from .constants import DEFAULT_CONFIG_PATH

# Required top-level keys and the sub-keys that must exist within them.
_REQUIRED_SCHEMA: Dict[str, List[str]] = {
    "server": ["host", "port"],
    "database": ["path"],
    "archive": ["base_directory", "cleanup_after_upload"],
    "workers": ["count", "queue_size"],
    "miniflux": ["api_url", "api_token", "webhook_secret"],
    "chibisafe": ["api_url", "api_key"],
    "discord": ["webhook_url"],
}

# Keys that must parse as numbers once placeholders are resolved.
_NUMERIC_KEYS: List[tuple] = [
    ("server", "port"),
    ("workers", "count"),
    ("workers", "queue_size"),
    ("workers", "enqueue_timeout_seconds"),
    ("workers", "task_timeout_seconds"),
    ("archive", "download_timeout_seconds"),
    ("miniflux", "timeout_seconds"),
    ("chibisafe", "timeout_seconds"),
    ("chibisafe", "settings_ttl_seconds"),
    ("discord", "throttle_seconds"),
]

_TRUE_STRINGS = frozenset({"1", "true", "yes", "on"})


class ConfigError(Exception):
    """Raised when the configuration file is missing or invalid."""


def load_config(config_path: str = DEFAULT_CONFIG_PATH) -> Dict[str, Any]:
    """
    Load configuration from a JSON file and resolve ``${ENV_VAR:-default}``
    placeholders in all string values.

    Args:
        config_path: Path to the config file (relative to project root)

    Returns:
        Fully-resolved configuration dictionary.

    Raises:
        ConfigError: If the file cannot be read or parsed.
    """
    base_dir = Path(__file__).parent.parent
    full_path = base_dir / config_path

    if not full_path.exists():
        raise ConfigError(f"Configuration file not found: {full_path}")

    try:
        with open(full_path, "r") as f:
            config = json.load(f)
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Invalid JSON in {full_path}: {exc}") from exc

    return _resolve(config)


def validate_config(config: Dict[str, Any]) -> List[str]:
    """
    Validate a config dict against the required schema.

    Returns:
        A list of human-readable error strings.  Empty means valid.
    """
    errors: List[str] = []

    for section, sub_keys in _REQUIRED_SCHEMA.items():
        if section not in config:
            errors.append(f"Missing required config section: '{section}'")
            continue
        for sub in sub_keys:
            if sub not in config[section]:
                errors.append(f"Missing required key '{sub}' in config section '{section}'")

    base_dir = str(config.get("archive", {}).get("base_directory", ""))
    if not base_dir:
        errors.append("archive.base_directory must not be empty. Set ARCHIVE_DIR.")
    elif base_dir.startswith("${"):
        errors.append(
            f"archive.base_directory is an unresolved placeholder: '{base_dir}'. "
            "Set the ARCHIVE_DIR environment variable."
        )

    for section, key in _NUMERIC_KEYS:
        value = config.get(section, {}).get(key)
        if value is None or value == "":
            continue
        try:
            float(value)
        except (TypeError, ValueError):
            errors.append(f"{section}.{key} must be a number, got '{value}'")

    return errors


def config_int(config: Dict[str, Any], section: str, key: str, default: int) -> int:
    """Read ``config[section][key]`` as an int, falling back to *default*."""
    value = config.get(section, {}).get(key)
    if value is None or value == "":
        return default
    return int(float(value))


def config_float(
    config: Dict[str, Any], section: str, key: str, default: Optional[float]
) -> Optional[float]:
    """Read ``config[section][key]`` as a float, falling back to *default*."""
    value = config.get(section, {}).get(key)
    if value is None or value == "":
        return default
    return float(value)


def config_bool(config: Dict[str, Any], section: str, key: str, default: bool = False) -> bool:
    """Read a boolean that may arrive as a JSON bool or a resolved env string."""
    value = config.get(section, {}).get(key)
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in _TRUE_STRINGS


def config_str(config: Dict[str, Any], section: str, key: str, default: str = "") -> str:
    value = config.get(section, {}).get(key)
    if value is None:
        return default
    return str(value).strip()


# ── Private helpers ──────────────────────────────────────────────

_PLACEHOLDER_RE = re.compile(r"\$\{(\w+)(?::-([^}]*))?\}")


def _resolve(obj: Any) -> Any:
    """Recursively resolve ``${ENV_VAR:-default}`` in string values."""
    if isinstance(obj, str):
        return _PLACEHOLDER_RE.sub(_replace_match, obj)
    elif isinstance(obj, dict):
        return {k: _resolve(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_resolve(v) for v in obj]
    return obj


def _replace_match(m: re.Match) -> str:
    var = m.group(1)
    default = m.group(2) if m.group(2) is not None else ""
    return os.environ.get(var, default)
