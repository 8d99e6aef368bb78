"""Per-pair donation forwarder.

A forwarder is bound to one (giver_id, receiver_id) pair. It relays its whole
native or token balance to whichever bridge the registry currently names, and
lets the registry's escape-hatch authority drain it to a safe destination.

The registry slot tracks the lifecycle:
- POISONED_REGISTRY: constructed directly (a template); can never initialize
- None: a clone awaiting `initialize`
- a Registry: initialized; fixed from then on

Nothing read from the registry is cached, so a new bridge, authority or
destination takes effect on the next call.
"""

from __future__ import annotations

import logging
from typing import Optional

from src.chain.ledger import NATIVE, Ledger, UnknownContract
from src.contracts.streams import FORWARDER_ESCAPE_HATCH_CALLED_V1, FORWARDER_FORWARDED_V1
from src.core.models import EventEnvelope, make_envelope

from .errors import (
    AlreadyInitialized,
    ApproveFailed,
    BridgeCallFailed,
    ForwarderError,
    InvalidRegistry,
    NotAuthorized,
    RegistryUnreachable,
    TokenTransferFailed,
)
from .interfaces import Bridge, Registry, Token

logger = logging.getLogger(__name__)

SOURCE_SERVICE = "forwarder"

# Pair ids are unsigned 64-bit on the donation ledger.
MAX_PAIR_ID = 2**64 - 1


class _PoisonedRegistry:
    """Registry slot of template instances. Every query fails."""

    def _unreachable(self) -> str:
        raise RegistryUnreachable("template forwarder has no usable registry")

    bridge = _unreachable
    escape_hatch_authority = _unreachable
    escape_hatch_destination = _unreachable

    def __repr__(self) -> str:
        return "POISONED_REGISTRY"


POISONED_REGISTRY = _PoisonedRegistry()


def _check_pair_id(value: int, name: str) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValueError(f"{name} must be int")
    if not (0 <= value <= MAX_PAIR_ID):
        raise ValueError(f"{name} must be within [0, 2**64)")
    return value


class Forwarder:
    """Forwarding contract deployed at `address` on `ledger`.

    Direct construction yields a poisoned template; use `clone` to obtain
    instances that can be initialized.
    """

    def __init__(self, ledger: Ledger, address: str) -> None:
        self._setup(ledger, address, POISONED_REGISTRY)

    def _setup(self, ledger: Ledger, address: str, registry: Optional[Registry]) -> None:
        self._ledger = ledger
        self.address = address
        self._registry = registry
        self._giver_id = 0
        self._receiver_id = 0
        ledger.deploy(address, self)

    def clone(self, address: str) -> "Forwarder":
        """Deploy an empty instance at `address`, ready for `initialize`."""
        inst = type(self).__new__(type(self))
        inst._setup(self._ledger, address, None)
        return inst

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    @property
    def giver_id(self) -> int:
        return self._giver_id

    @property
    def receiver_id(self) -> int:
        return self._receiver_id

    @property
    def registry(self) -> Optional[Registry]:
        return self._registry

    @property
    def is_template(self) -> bool:
        return self._registry is POISONED_REGISTRY

    @property
    def is_initialized(self) -> bool:
        return self._registry is not None and self._registry is not POISONED_REGISTRY

    def balance(self, asset: str = NATIVE) -> int:
        if asset == NATIVE:
            return self._ledger.balance_of(self.address)
        return self._token(asset).balance_of(self.address)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def initialize(self, registry: Optional[Registry], giver_id: int, receiver_id: int) -> None:
        """Bind this instance to a registry and a giver/receiver pair. Once only."""

        with self._ledger.transaction():
            if self._registry is not None:
                raise AlreadyInitialized(f"forwarder {self.address} cannot be initialized", forwarder=self.address)
            if registry is None:
                raise InvalidRegistry("registry is required", forwarder=self.address)
            _check_pair_id(giver_id, "giver_id")
            _check_pair_id(receiver_id, "receiver_id")

            # The bridge query doubles as a check that this really is a registry.
            if not isinstance(registry, Registry):
                raise RegistryUnreachable(f"{registry!r} does not implement the registry interface", forwarder=self.address)
            try:
                bridge = registry.bridge()
            except ForwarderError:
                raise
            except Exception as e:
                raise RegistryUnreachable(f"registry bridge query failed: {e}", forwarder=self.address) from e
            if not bridge or bridge == NATIVE:
                raise RegistryUnreachable("registry returned no bridge", forwarder=self.address)

            self._registry = registry
            self._giver_id = giver_id
            self._receiver_id = receiver_id

        logger.info(f"Forwarder initialized: address={self.address} giver_id={giver_id} receiver_id={receiver_id}")

    def receive(self, *, sender: str, value: int) -> None:
        """Accept native currency. No side effects beyond the balance increase."""

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def _require_registry(self) -> Registry:
        if self._registry is None:
            raise RegistryUnreachable(f"forwarder {self.address} is not initialized", forwarder=self.address)
        return self._registry

    def _bridge(self, address: str) -> Bridge:
        try:
            contract = self._ledger.contract_at(address)
        except UnknownContract as e:
            raise BridgeCallFailed(f"no bridge deployed at {address!r}", forwarder=self.address) from e
        if not isinstance(contract, Bridge):
            raise BridgeCallFailed(f"contract at {address!r} is not a bridge", forwarder=self.address)
        return contract

    def _token(self, address: str) -> Token:
        contract = self._ledger.contract_at(address)
        if not isinstance(contract, Token):
            raise UnknownContract(f"contract at {address} is not a token")
        return contract

    def forward(self, asset: str, *, trace_id: Optional[str] = None) -> EventEnvelope:
        """Send the full current balance of `asset` to the registry's bridge.

        Zero balances are forwarded too. Returns the Forwarded event; on any
        failure nothing moves and no event is emitted.
        """

        with self._ledger.transaction():
            bridge_address = self._require_registry().bridge()
            bridge = self._bridge(bridge_address)

            if asset == NATIVE:
                balance = self._ledger.balance_of(self.address)
                self._ledger.transfer_native(self.address, bridge_address, balance)
                ok = bridge.donate_native(self._giver_id, self._receiver_id, sender=self.address, value=balance)
            else:
                token = self._token(asset)
                balance = token.balance_of(self.address)
                if not token.approve(bridge_address, balance, sender=self.address):
                    raise ApproveFailed(f"approve of {balance} for {bridge_address} failed", forwarder=self.address)
                ok = bridge.donate_token(self._giver_id, self._receiver_id, asset, balance, sender=self.address)

            if not ok:
                raise BridgeCallFailed(f"bridge {bridge_address} rejected donation of {balance}", forwarder=self.address)

            event = make_envelope(
                FORWARDER_FORWARDED_V1,
                {
                    "forwarder": self.address,
                    "to": bridge_address,
                    "asset": asset,
                    "balance": balance,
                    "result": True,
                },
                trace_id=trace_id,
                source_service=SOURCE_SERVICE,
            )
            self._ledger.emit(event)

        logger.info(f"Forwarded: forwarder={self.address} bridge={bridge_address} asset={asset} balance={balance}")
        return event

    def escape_hatch(self, asset: str, *, caller: str, trace_id: Optional[str] = None) -> EventEnvelope:
        """Drain the full balance of `asset` to the registry's escape-hatch destination.

        Only the registry's current escape-hatch authority may call this.
        """

        with self._ledger.transaction():
            registry = self._require_registry()
            authority = registry.escape_hatch_authority()
            if not authority or caller != authority:
                logger.warning(f"Escape hatch refused: forwarder={self.address} caller={caller}")
                raise NotAuthorized(f"{caller} is not the escape hatch authority", forwarder=self.address)
            destination = registry.escape_hatch_destination()

            if asset == NATIVE:
                amount = self._ledger.balance_of(self.address)
                self._ledger.send_value(self.address, destination, amount)
            else:
                token = self._token(asset)
                amount = token.balance_of(self.address)
                if not token.transfer(destination, amount, sender=self.address):
                    raise TokenTransferFailed(f"transfer of {amount} to {destination} failed", forwarder=self.address)

            event = make_envelope(
                FORWARDER_ESCAPE_HATCH_CALLED_V1,
                {"forwarder": self.address, "asset": asset, "amount": amount},
                trace_id=trace_id,
                source_service=SOURCE_SERVICE,
            )
            self._ledger.emit(event)

        logger.info(f"Escape hatch: forwarder={self.address} asset={asset} amount={amount} destination={destination}")
        return event
