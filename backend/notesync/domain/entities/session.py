"""Explicit device state shared by the sync components.

Replaces the ambient "is the API available" flag: whoever needs to know
whether the device is online, or who is signed in, is handed these
objects instead of reading a global.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)

ConnectivityListener = Callable[[bool], None]


@dataclass
class AuthSession:
    """The signed-in user and the bearer token used for remote calls."""

    owner_id: str | None = None
    access_token: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.owner_id and self.access_token)

    def sign_in(self, owner_id: str, access_token: str) -> None:
        self.owner_id = owner_id
        self.access_token = access_token

    def sign_out(self) -> None:
        self.owner_id = None
        self.access_token = None


@dataclass
class HealthStatus:
    """Result of a cheap reachability probe."""

    ok: bool
    count: int | None = None


class ConnectivityState:
    """Online/offline flag with synchronous change listeners."""

    def __init__(self, online: bool = False) -> None:
        self._online = online
        self._listeners: list[ConnectivityListener] = []

    @property
    def is_online(self) -> bool:
        return self._online

    def set_online(self, online: bool) -> bool:
        """Record the current state. Returns True only on an actual transition."""
        if online == self._online:
            return False
        self._online = online
        logger.info("Connectivity changed: %s", "online" if online else "offline")
        for listener in list(self._listeners):
            listener(online)
        return True

    def add_listener(self, listener: ConnectivityListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: ConnectivityListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)
