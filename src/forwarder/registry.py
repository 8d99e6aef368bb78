"""Mutable in-memory registry.

Administrative values can be changed at any time; forwarders see the change on
their next call.
"""

from __future__ import annotations

import threading

from src.core.settings import RegistrySettings


class StaticRegistry:
    def __init__(self, *, bridge: str, escape_hatch_authority: str, escape_hatch_destination: str) -> None:
        self._lock = threading.Lock()
        self._bridge = bridge
        self._authority = escape_hatch_authority
        self._destination = escape_hatch_destination

    @classmethod
    def from_settings(cls, s: RegistrySettings) -> "StaticRegistry":
        return cls(
            bridge=s.bridge,
            escape_hatch_authority=s.escape_hatch_authority,
            escape_hatch_destination=s.escape_hatch_destination,
        )

    def bridge(self) -> str:
        return self._bridge

    def escape_hatch_authority(self) -> str:
        return self._authority

    def escape_hatch_destination(self) -> str:
        return self._destination

    def set_bridge(self, address: str) -> None:
        with self._lock:
            self._bridge = address

    def set_escape_hatch(self, *, authority: str | None = None, destination: str | None = None) -> None:
        with self._lock:
            if authority is not None:
                self._authority = authority
            if destination is not None:
                self._destination = destination
