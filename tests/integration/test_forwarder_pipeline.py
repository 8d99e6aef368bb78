"""End-to-end check: golden commands -> dev environment -> published events.

Uses the repository's own config/settings.yaml and golden command fixtures.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

from src.contracts import streams
from src.contracts.validation import validate_envelope_dict
from src.core.models import EventEnvelope
from src.core.settings import load_settings
from src.forwarder.bootstrap import build_environment
from src.forwarder.service import handle_command


ROOT = Path(__file__).resolve().parents[2]
GOLDEN_DIR = ROOT / "contracts" / "golden_events" / "v1"


class MockMessageBus:
    """Records published events in wire form."""

    def __init__(self) -> None:
        self._published: list[tuple[str, dict]] = []

    def publish(self, stream: str, event: EventEnvelope) -> None:
        self._published.append((stream, event.to_wire()))

    def get_published(self, stream: Optional[str] = None) -> list[tuple[str, dict]]:
        if stream is None:
            return list(self._published)
        return [(s, e) for s, e in self._published if s == stream]


def _load(name: str) -> EventEnvelope:
    return EventEnvelope.from_wire(json.loads((GOLDEN_DIR / name).read_text(encoding="utf-8")))


def test_golden_commands_drive_dev_environment() -> None:
    env = build_environment(load_settings(ROOT / "config" / "settings.yaml"))
    bus = MockMessageBus()
    env.ledger.subscribe(lambda ev: bus.publish(ev.schema, ev))

    forwarder = next(iter(env.forwarders.values()))
    token = next(iter(env.tokens.values()))
    env.ledger.mint_native("0xe000000000000000000000000000000000000001", 10)
    env.ledger.send_value("0xe000000000000000000000000000000000000001", forwarder.address, 10)
    token.mint(forwarder.address, 250)

    handle_command(_load("01_forward_requested_native_valid.json"), env)
    handle_command(_load("02_forward_requested_token_valid.json"), env)
    handle_command(_load("03_escape_hatch_requested_valid.json"), env)

    forwarded = bus.get_published(streams.FORWARDER_FORWARDED_V1)
    assert [e["payload"]["balance"] for _, e in forwarded] == [10, 250]
    assert [e["trace_id"] for _, e in forwarded] == ["trace-golden-evt-01", "trace-golden-evt-02"]

    hatch = bus.get_published(streams.FORWARDER_ESCAPE_HATCH_CALLED_V1)
    assert [e["payload"]["amount"] for _, e in hatch] == [0]

    for _, wire in bus.get_published():
        validate_envelope_dict(wire)

    donations = env.bridge.donations
    assert [(d.giver_id, d.receiver_id, d.amount) for d in donations] == [(5, 9, 10), (5, 9, 250)]
    assert forwarder.balance() == 0
    assert token.balance_of(env.bridge.address) == 250
