"""Mixin giving plugin classes access to the process-wide port manager."""

from __future__ import annotations

from typing import Any

from .reservation import Manager, get_manager


class PortManagementSupport:
    """
    Mix into a plugin class to get `self.port_management`, the shared Manager:

        class HttpInput(BaseInput, PortManagementSupport):
            def register(self):
                self._reservation = self.port_management.reserve(port=self.port)

    A class whose only base is this mixin is rejected when it is defined.
    """

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        if all(base is PortManagementSupport for base in cls.__bases__):
            raise TypeError(f"`{cls.__name__}` must combine PortManagementSupport with a plugin class")

    @property
    def port_management(self) -> Manager:
        return get_manager()
