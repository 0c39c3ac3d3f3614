"""Load a YAML file of named reservations and reserve them together."""

from __future__ import annotations

import logging
from pathlib import Path  # noqa: TC003
from typing import Any

import yaml

from .reservation import DEFAULT_ADDRESS, DEFAULT_PORT, Manager, Reservation, get_manager

logger = logging.getLogger(__name__)


def load_reservation_file(path: Path) -> dict[str, Any]:
    """
    Load a reservations YAML file. Returns a dict with:
      - defaults: { address: str, port: int } (optional)
      - reservations: dict[name, { address: str, port: int }]
    Missing file or empty => empty dict. Malformed or non-mapping YAML => ValueError.
    """
    if not path.exists():
        return {}
    try:
        raw = yaml.safe_load(path.read_text())
    except yaml.YAMLError as e:
        raise ValueError(f"{path}: invalid YAML: {e}") from e
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ValueError(f"{path} must be a YAML object")
    return raw


def get_reservation_targets(config: dict[str, Any]) -> dict[str, tuple[str, int]]:
    """
    Return {name: (address, port)} for every entry under `reservations`.
    Missing fields come from `defaults`, then from "::" and port 0.
    """
    defaults = config.get("defaults")
    if not isinstance(defaults, dict):
        defaults = {}
    entries = config.get("reservations") or {}
    if not isinstance(entries, dict):
        raise ValueError("'reservations' must be a mapping of name to {address, port}")

    targets: dict[str, tuple[str, int]] = {}
    for name, entry in entries.items():
        if entry is None:
            entry = {}
        if not isinstance(entry, dict):
            raise ValueError(f"reservation {name!r} must be a mapping")
        address = entry.get("address", defaults.get("address", DEFAULT_ADDRESS))
        port = entry.get("port", defaults.get("port", DEFAULT_PORT))
        if isinstance(port, bool) or not isinstance(port, int):
            raise ValueError(f"reservation {name!r}: port must be an integer, got {port!r}")
        targets[str(name)] = (str(address), port)
    return targets


def reserve_all(
    targets: dict[str, tuple[str, int]],
    manager: Manager | None = None,
) -> dict[str, Reservation]:
    """Reserve every target in order. On failure, release what was already reserved and re-raise."""
    if manager is None:
        manager = get_manager()
    reservations: dict[str, Reservation] = {}
    try:
        for name, (address, port) in targets.items():
            reservations[name] = manager.reserve(address, port)
            logger.debug("%s => [%s]:%s", name, reservations[name].address, reservations[name].port)
    except BaseException:
        for reservation in reservations.values():
            reservation.release()
        raise
    return reservations
