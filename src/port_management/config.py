"""Load CLI defaults from environment and optional properties file."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from .reservation import DEFAULT_ADDRESS, DEFAULT_PORT

ADDRESS_KEY = "PORT_MANAGEMENT_ADDRESS"
PORT_KEY = "PORT_MANAGEMENT_PORT"
LOG_LEVEL_KEY = "PORT_MANAGEMENT_LOG_LEVEL"

_DEFAULT_LOG_LEVEL = "WARNING"


def load_properties_file(path: Path) -> dict[str, str]:
    """Load key=value from a .properties-like file (skip comments and empty lines)."""
    result: dict[str, str] = {}
    if not path.exists():
        return result
    for line in path.read_text().splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" in line:
            key, _, value = line.partition("=")
            result[key.strip()] = value.strip()
    return result


def get_config(properties_path: Path | None = None) -> dict[str, str]:
    """Merge env and optional properties file; env takes precedence."""
    config: dict[str, str] = {}
    if properties_path:
        config.update(load_properties_file(properties_path))
    for key, value in os.environ.items():
        if value is not None and value != "":
            config[key] = value
    return config


def get_default_address(config: dict[str, str]) -> str:
    return config.get(ADDRESS_KEY) or DEFAULT_ADDRESS


def get_default_port(config: dict[str, str]) -> int:
    """PORT_MANAGEMENT_PORT as int (default 0, "let the OS pick")."""
    raw = config.get(PORT_KEY)
    if not raw:
        return DEFAULT_PORT
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{PORT_KEY} must be an integer, got {raw!r}") from None


def get_log_level(config: dict[str, str]) -> int:
    """Numeric logging level for PORT_MANAGEMENT_LOG_LEVEL (name or number)."""
    raw = (config.get(LOG_LEVEL_KEY) or _DEFAULT_LOG_LEVEL).strip()
    if raw.isdigit():
        return int(raw)
    level = logging.getLevelName(raw.upper())
    if not isinstance(level, int):
        raise ValueError(f"{LOG_LEVEL_KEY}: unknown log level {raw!r}")
    return level
