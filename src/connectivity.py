"""Online/offline state tracking."""

import logging
from collections.abc import Callable

import requests

from src.config import CONNECTIVITY_PROBE_URL

logger = logging.getLogger(__name__)

Listener = Callable[[bool], None]


def probe_connectivity(url: str = CONNECTIVITY_PROBE_URL, timeout: float = 3) -> bool:
    """Return True if the probe URL answers at all."""
    try:
        requests.head(url, timeout=timeout)
    except requests.RequestException as e:
        logger.info(f"Connectivity probe to {url} failed: {e}")
        return False
    return True


class ConnectivityMonitor:
    """Tracks whether the network is reachable.

    State changes arrive through set_online/set_offline; the last call wins.
    Subscribers are notified only when the value actually changes.
    """

    def __init__(self, online: bool = True) -> None:
        self._online = online
        self._listeners: list[Listener] = []

    @classmethod
    def from_platform(cls, url: str = CONNECTIVITY_PROBE_URL) -> "ConnectivityMonitor":
        return cls(online=probe_connectivity(url))

    @property
    def is_online(self) -> bool:
        return self._online

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def set_online(self) -> None:
        self._update(True)

    def set_offline(self) -> None:
        self._update(False)

    def _update(self, online: bool) -> None:
        if online == self._online:
            return
        self._online = online
        logger.info(f"Connectivity changed: {'online' if online else 'offline'}")
        for listener in list(self._listeners):
            listener(online)
