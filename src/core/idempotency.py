"""Command outcome journal.

The worker records what became of each command envelope (keyed by `event_id`).
A redelivered or replayed command with a recorded outcome is acknowledged
without running again: a second `forward` would relay whatever arrived since.
"""

from __future__ import annotations

import time
from typing import Callable, Optional, Protocol

EXECUTED = "executed"
REJECTED = "rejected"
OUTCOMES = (EXECUTED, REJECTED)


def _check_outcome(outcome: str) -> str:
    if outcome not in OUTCOMES:
        raise ValueError(f"unknown command outcome: {outcome!r}")
    return outcome


class CommandJournal(Protocol):
    def outcome(self, command_id: str) -> Optional[str]:
        ...

    def record(self, command_id: str, outcome: str, *, ttl_seconds: int) -> bool:
        """Store `outcome` unless one is already held. True if this call stored it."""
        ...


class InMemoryCommandJournal:
    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._entries: dict[str, tuple[str, float]] = {}

    def outcome(self, command_id: str) -> Optional[str]:
        entry = self._entries.get(command_id)
        if entry is None:
            return None
        outcome, expires_at = entry
        if expires_at <= self._clock():
            del self._entries[command_id]
            return None
        return outcome

    def record(self, command_id: str, outcome: str, *, ttl_seconds: int) -> bool:
        _check_outcome(outcome)
        if self.outcome(command_id) is not None:
            return False
        self._entries[command_id] = (outcome, self._clock() + ttl_seconds)
        return True


class RedisCommandJournal:
    """Outcomes under `command:<group>:<stream>:<event_id>`, expiring after the TTL."""

    def __init__(self, redis_client, *, group: str, stream: str):
        self._client = redis_client
        self._prefix = f"command:{group}:{stream}"

    def key(self, command_id: str) -> str:
        return f"{self._prefix}:{command_id}"

    def outcome(self, command_id: str) -> Optional[str]:
        return self._client.get(self.key(command_id))

    def record(self, command_id: str, outcome: str, *, ttl_seconds: int) -> bool:
        # First writer wins when two consumers race on one command.
        return bool(self._client.set(self.key(command_id), _check_outcome(outcome), ex=ttl_seconds, nx=True))
