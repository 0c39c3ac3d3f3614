"""Exceptions raised by port reservations."""

from __future__ import annotations

import errno

ADDRESS_IN_USE_ERRNOS = {errno.EADDRINUSE, getattr(errno, "WSAEADDRINUSE", errno.EADDRINUSE)}


class PortManagementError(Exception):
    """Base class for port management failures."""


class BindError(PortManagementError, OSError):
    """The placeholder socket could not be bound (or the address could not be resolved)."""

    address: str | None = None
    port: int | None = None


class AddressInUseError(BindError):
    """Something else already holds the requested address/port."""


class InvalidArgumentError(PortManagementError, ValueError):
    """Malformed reserve input, or convert called without a body."""


class ReservationStateError(PortManagementError, RuntimeError):
    """Operation not allowed in the reservation's current state (e.g. double release)."""


def bind_error(exc: OSError, address: str, port: int) -> BindError:
    """Wrap an OSError from resolve/bind, keeping errno and naming the target."""
    cls = AddressInUseError if exc.errno in ADDRESS_IN_USE_ERRNOS else BindError
    err = cls(exc.errno, f"{exc.strerror or exc} [{address}]:{port}")
    err.address = address
    err.port = port
    return err
