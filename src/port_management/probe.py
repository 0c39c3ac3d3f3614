"""Check whether an address/port can be bound right now."""

from __future__ import annotations

import socket
from collections.abc import Iterator
from contextlib import contextmanager

from .errors import ADDRESS_IN_USE_ERRNOS


def _family_for(address: str) -> socket.AddressFamily:
    return socket.getaddrinfo(address, None, socket.AF_UNSPEC, socket.SOCK_STREAM, 0, socket.AI_PASSIVE)[0][0]


def port_available(address: str, port: int) -> bool:
    """
    Try a plain bind (no SO_REUSEADDR) to (address, port) and close it again.
    Returns False if the address is in use; other errors propagate.
    """
    try:
        with socket.socket(_family_for(address), socket.SOCK_STREAM) as s:
            s.bind((address, port))
    except OSError as exc:
        if exc.errno in ADDRESS_IN_USE_ERRNOS:
            return False
        raise
    return True


@contextmanager
def bound_port(address: str = "127.0.0.1") -> Iterator[int]:
    """Yield an OS-assigned port that stays bound (and listening) on `address` until exit."""
    with socket.socket(_family_for(address), socket.SOCK_STREAM) as s:
        s.bind((address, 0))
        s.listen(1)
        yield s.getsockname()[1]
