"""Dev environment assembly.

Builds an in-memory ledger from Settings: registry, recording bridge, tokens,
a poisoned template and one initialized clone per configured pair.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from src.chain.ledger import Ledger
from src.chain.token import InMemoryToken
from src.core.ids import new_address
from src.core.settings import Settings

from .bridge import RecordingBridge
from .forwarder import Forwarder
from .registry import StaticRegistry

logger = logging.getLogger(__name__)


@dataclass
class Environment:
    ledger: Ledger
    registry: StaticRegistry
    bridge: RecordingBridge
    template: Forwarder
    forwarders: dict[str, Forwarder] = field(default_factory=dict)
    tokens: dict[str, InMemoryToken] = field(default_factory=dict)

    def add_forwarder(self, giver_id: int, receiver_id: int, *, address: str | None = None) -> Forwarder:
        """Clone the template and bind the clone to the shared registry."""
        address = address or new_address()
        fwd = self.template.clone(address)
        fwd.initialize(self.registry, giver_id, receiver_id)
        self.forwarders[address] = fwd
        return fwd


def build_environment(settings: Settings, *, ledger: Ledger | None = None) -> Environment:
    ledger = ledger or Ledger()
    registry = StaticRegistry.from_settings(settings.registry)
    env = Environment(
        ledger=ledger,
        registry=registry,
        bridge=RecordingBridge(ledger, settings.registry.bridge),
        template=Forwarder(ledger, settings.template_address),
    )
    for address in settings.tokens:
        env.tokens[address] = InMemoryToken(ledger, address)
    for f in settings.forwarders:
        env.add_forwarder(f.giver_id, f.receiver_id, address=f.address)

    logger.info(
        f"Environment ready: env={settings.env} forwarders={len(env.forwarders)} "
        f"tokens={len(env.tokens)} bridge={settings.registry.bridge}"
    )
    return env
