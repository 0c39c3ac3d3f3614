"""
Port reservations: hold an address/port with a placeholder socket until the real listener takes over.

Every reserve/release/convert/active check made through managers that share a lock
runs under that lock. By default this is one process-wide RLock, so closing a
placeholder and binding the real listener inside `Reservation.convert` is atomic
with respect to every other reservation in the process.

Callbacks are not treated the same way:
- `Manager.reserve(on_bound=...)` calls `on_bound` *outside* the lock.
- `Reservation.convert(body)` calls `body` *inside* the lock, after the placeholder is closed.

Prefer `with manager.reserve() as reservation:` or an explicit `release()`/`convert()`.
A `weakref.finalize` backstop closes a forgotten placeholder once the reservation is
garbage collected, but there is no guarantee about when that happens.
"""

from __future__ import annotations

import enum
import logging
import os
import socket
import threading
import weakref
from typing import Any, Callable, ClassVar, TypeVar

from .errors import InvalidArgumentError, ReservationStateError, bind_error

logger = logging.getLogger(__name__)

DEFAULT_ADDRESS = "::"
DEFAULT_PORT = 0

_T = TypeVar("_T")

_GLOBAL_LOCK = threading.RLock()


class ReservationState(enum.Enum):
    ACTIVE = "active"
    RELEASED = "released"


def _validate_target(address: Any, port: Any) -> None:
    if not isinstance(address, str) or not address.strip():
        raise InvalidArgumentError(f"address must be a non-empty string, got {address!r}")
    if isinstance(port, bool) or not isinstance(port, int):
        raise InvalidArgumentError(f"port must be an integer, got {port!r}")
    if not 0 <= port <= 65535:
        raise InvalidArgumentError(f"port must be in [0, 65535], got {port}")


def _resolve(address: str, port: int) -> tuple[Any, ...]:
    """(family, type, proto, sockaddr) to bind. May block on DNS; callers must not hold the lock."""
    family, type_, proto, _, sockaddr = socket.getaddrinfo(
        address, port, socket.AF_UNSPEC, socket.SOCK_STREAM, 0, socket.AI_PASSIVE
    )[0]
    return family, type_, proto, sockaddr


def _bind_placeholder(family: Any, type_: Any, proto: int, sockaddr: Any) -> socket.socket:
    """
    Bind a listening TCP socket to sockaddr that nothing will ever accept on.
    Listening is what makes the bind exclusive on Linux, even against SO_REUSEADDR binds.
    """
    sock = socket.socket(family, type_, proto)
    try:
        if os.name != "nt":
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind(sockaddr)
        sock.listen(1)
    except OSError:
        sock.close()
        raise
    return sock


def _close_forgotten_hold(hold: socket.socket, address: str, port: int) -> None:
    # Must not reference the Reservation, or it would never be collected.
    if hold.fileno() != -1:
        logger.debug("finalizer closing placeholder [%s]:%s", address, port)
        hold.close()


class Reservation:
    """
    A placeholder TCP socket bound to a reserved address/port.
    While active, nothing else on the host can bind the same address/port.
    """

    def __init__(self, address: str = DEFAULT_ADDRESS, port: int = DEFAULT_PORT, *, lock: Any = None) -> None:
        _validate_target(address, port)
        self._lock = lock if lock is not None else _GLOBAL_LOCK
        try:
            target = _resolve(address, port)
        except OSError as exc:
            raise bind_error(exc, address, port) from exc
        with self._lock:
            try:
                self._hold: socket.socket | None = _bind_placeholder(*target)
            except OSError as exc:
                raise bind_error(exc, address, port) from exc
            self._address, self._port = self._hold.getsockname()[:2]
            logger.debug("reserved [%s]:%s => [%s]:%s", address, port, self._address, self._port)
        self._finalizer = weakref.finalize(self, _close_forgotten_hold, self._hold, self._address, self._port)

    @property
    def address(self) -> str:
        """Actual bound address (after resolution)."""
        return self._address

    @property
    def port(self) -> int:
        """Actual bound port (never 0)."""
        return self._port

    def _hold_open(self) -> bool:
        return self._hold is not None and self._hold.fileno() != -1

    def is_active(self) -> bool:
        """True if-and-only-if the placeholder socket is still open."""
        with self._lock:
            return self._hold_open()

    @property
    def active(self) -> bool:
        return self.is_active()

    @property
    def state(self) -> ReservationState:
        return ReservationState.ACTIVE if self.is_active() else ReservationState.RELEASED

    def release(self) -> None:
        """Release the reservation without replacing it. Releasing twice raises ReservationStateError."""
        with self._lock:
            logger.debug("releasing [%s]:%s", self._address, self._port)
            if self._hold is None:
                raise ReservationStateError(f"reservation [{self._address}]:{self._port} is already released")
            if self._hold.fileno() == -1:
                raise ReservationStateError(
                    f"placeholder for [{self._address}]:{self._port} was closed outside its reservation"
                )
            self._finalizer.detach()
            self._hold.close()
            self._hold = None
            logger.debug("released [%s]:%s", self._address, self._port)

    def convert(self, body: Callable[[str, int], _T]) -> _T:
        """
        Release the placeholder and call `body(address, port)` in one critical section.

        No other reservation sharing this lock can be made until `body` returns, so
        `body` can bind the real server to the freed port. Returns whatever `body` returns.
        Converting an already released reservation only logs a warning.
        """
        if body is None or not callable(body):
            raise InvalidArgumentError("convert requires a callable body")

        with self._lock:
            if self._hold_open():
                logger.debug("converting active reservation [%s]:%s", self._address, self._port)
                self.release()
            else:
                logger.warning("converting inactive reservation [%s]:%s", self._address, self._port)

            result = body(self._address, self._port)
            logger.debug("converted [%s]:%s", self._address, self._port)
            return result

    def __enter__(self) -> Reservation:
        return self

    def __exit__(self, *exc_info: object) -> None:
        with self._lock:
            if self._hold_open():
                self.release()

    def __repr__(self) -> str:
        return f"<Reservation [{self._address}]:{self._port} {self.state.value}>"


class Manager:
    """Creates reservations. Holds no reservation state; `Manager.INSTANCE` is the process-wide one."""

    INSTANCE: ClassVar[Manager]

    def __init__(self, lock: Any = None) -> None:
        self._lock = lock if lock is not None else _GLOBAL_LOCK

    def reserve(
        self,
        address: str = DEFAULT_ADDRESS,
        port: int = DEFAULT_PORT,
        on_bound: Callable[[str, int], object] | None = None,
    ) -> Reservation:
        """
        Reserve a port on `address` by binding a placeholder socket to it.

        port=0 lets the OS pick. Bind failures raise AddressInUseError/BindError right away.
        `on_bound(address, port)` receives the *actual* address/port outside the lock; its
        return value is ignored and if it raises, the reservation is released first.
        """
        if on_bound is not None and not callable(on_bound):
            raise InvalidArgumentError("on_bound must be callable")
        reservation = Reservation(address, port, lock=self._lock)
        if on_bound is not None:
            try:
                on_bound(reservation.address, reservation.port)
            except BaseException:
                reservation.release()
                raise
        return reservation


Manager.INSTANCE = Manager()


def get_manager() -> Manager:
    """Return the process-wide manager."""
    return Manager.INSTANCE
