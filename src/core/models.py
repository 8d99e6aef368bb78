from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .ids import new_event_id, new_trace_id


@dataclass(frozen=True)
class EventEnvelope:
    event_id: str
    trace_id: str
    produced_at: datetime
    schema: str
    schema_version: int
    payload: Dict[str, Any]
    source_service: Optional[str] = None

    def to_wire(self) -> Dict[str, Any]:
        """JSON-friendly dict (ISO8601 UTC timestamp)."""
        d = asdict(self)
        produced_at = self.produced_at
        if produced_at.tzinfo is None:
            produced_at = produced_at.replace(tzinfo=timezone.utc)
        d["produced_at"] = produced_at.isoformat()
        return d

    @classmethod
    def from_wire(cls, d: Dict[str, Any]) -> "EventEnvelope":
        return cls(
            event_id=d["event_id"],
            trace_id=d["trace_id"],
            produced_at=datetime.fromisoformat(str(d["produced_at"]).replace("Z", "+00:00")),
            schema=d["schema"],
            schema_version=int(d["schema_version"]),
            payload=d["payload"],
            source_service=d.get("source_service"),
        )


def make_envelope(
    schema: str,
    payload: Dict[str, Any],
    *,
    trace_id: Optional[str] = None,
    source_service: Optional[str] = None,
) -> EventEnvelope:
    return EventEnvelope(
        event_id=new_event_id(),
        trace_id=trace_id or new_trace_id(),
        produced_at=datetime.now(timezone.utc),
        schema=schema,
        schema_version=1,
        payload=payload,
        source_service=source_service,
    )
