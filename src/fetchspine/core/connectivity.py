"""Connectivity checks: is the host currently able to reach the network?

The request layer consults a ``ConnectivityChecker`` before the first
attempt (to skip calls that cannot succeed) and when classifying
connectivity failures (offline vs. plain network error).  Hosts without a
reliable signal use ``AlwaysOnline``; hosts that receive link up/down
notifications drive a ``ManualConnectivity``.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class ConnectivityChecker(Protocol):
    """Capability interface for the host's reachability state."""

    def is_online(self) -> bool:
        """True if the host believes it can reach the network."""
        ...


class AlwaysOnline:
    """Permissive checker for hosts that cannot detect connectivity."""

    def is_online(self) -> bool:
        return True

    def __repr__(self) -> str:
        return "AlwaysOnline()"


class ManualConnectivity:
    """Checker whose state is set explicitly by the host application.

    Example:
        >>> connectivity = ManualConnectivity()
        >>> connectivity.set_online(False)
        >>> connectivity.is_online()
        False
    """

    def __init__(self, online: bool = True):
        self._online = online

    def is_online(self) -> bool:
        return self._online

    def set_online(self, online: bool) -> None:
        self._online = online

    def __repr__(self) -> str:
        return f"ManualConnectivity(online={self._online})"


__all__ = ["ConnectivityChecker", "AlwaysOnline", "ManualConnectivity"]
