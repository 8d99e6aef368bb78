from __future__ import annotations

import pytest

from src.chain.ledger import NATIVE, Ledger, TransferRejected
from src.chain.token import InMemoryToken
from src.contracts import streams
from src.contracts.validation import validate_envelope_dict
from src.forwarder.bridge import RecordingBridge
from src.forwarder.errors import BridgeCallFailed, NotAuthorized, TokenTransferFailed
from src.forwarder.forwarder import Forwarder
from src.forwarder.registry import StaticRegistry


BRIDGE = "0xb000000000000000000000000000000000000001"
AUTHORITY = "0xa000000000000000000000000000000000000001"
AUTHORITY_2 = "0xa000000000000000000000000000000000000002"
DESTINATION = "0xd000000000000000000000000000000000000001"
DESTINATION_2 = "0xd000000000000000000000000000000000000002"
TEMPLATE = "0xf000000000000000000000000000000000000000"
CLONE = "0xf000000000000000000000000000000000000001"
STRANGER = "0xe000000000000000000000000000000000000001"
TOKEN = "0xc000000000000000000000000000000000000001"


class _RefusingTransferToken(InMemoryToken):
    def transfer(self, to: str, amount: int, *, sender: str) -> bool:
        return False


def _setup():
    ledger = Ledger()
    bridge = RecordingBridge(ledger, BRIDGE)
    token = InMemoryToken(ledger, TOKEN)
    registry = StaticRegistry(bridge=BRIDGE, escape_hatch_authority=AUTHORITY, escape_hatch_destination=DESTINATION)
    fwd = Forwarder(ledger, TEMPLATE).clone(CLONE)
    fwd.initialize(registry, 5, 9)
    return ledger, registry, bridge, token, fwd


def test_escape_hatch_rejects_non_authority() -> None:
    ledger, _, _, token, fwd = _setup()
    ledger.mint_native(CLONE, 10)
    token.mint(CLONE, 20)

    for asset in (NATIVE, TOKEN):
        with pytest.raises(NotAuthorized):
            fwd.escape_hatch(asset, caller=STRANGER)

    assert ledger.balance_of(CLONE) == 10
    assert token.balance_of(CLONE) == 20
    assert ledger.events == []


def test_escape_hatch_drains_native_balance() -> None:
    ledger, _, _, _, fwd = _setup()
    ledger.mint_native(CLONE, 10)

    ev = fwd.escape_hatch(NATIVE, caller=AUTHORITY)

    assert ledger.balance_of(CLONE) == 0
    assert ledger.balance_of(DESTINATION) == 10
    assert ev.schema == streams.FORWARDER_ESCAPE_HATCH_CALLED_V1
    assert ev.payload == {"forwarder": CLONE, "asset": NATIVE, "amount": 10}
    validate_envelope_dict(ev.to_wire())


def test_escape_hatch_drains_token_balance() -> None:
    ledger, _, _, token, fwd = _setup()
    token.mint(CLONE, 250)

    ev = fwd.escape_hatch(TOKEN, caller=AUTHORITY)

    assert token.balance_of(CLONE) == 0
    assert token.balance_of(DESTINATION) == 250
    assert ev.payload == {"forwarder": CLONE, "asset": TOKEN, "amount": 250}
    assert ledger.events == [ev]


def test_escape_hatch_emits_with_zero_balance() -> None:
    _, _, _, _, fwd = _setup()
    ev = fwd.escape_hatch(NATIVE, caller=AUTHORITY)
    assert ev.payload["amount"] == 0


def test_escape_hatch_after_only_failed_forwards() -> None:
    ledger, _, bridge, _, fwd = _setup()
    ledger.mint_native(CLONE, 8)
    bridge.accept = False
    for _ in range(3):
        with pytest.raises(BridgeCallFailed):
            fwd.forward(NATIVE)

    ev = fwd.escape_hatch(NATIVE, caller=AUTHORITY)
    assert ev.payload["amount"] == 8
    assert ledger.balance_of(DESTINATION) == 8
    assert [e.schema for e in ledger.events] == [streams.FORWARDER_ESCAPE_HATCH_CALLED_V1]


def test_escape_hatch_reads_authority_and_destination_live() -> None:
    ledger, registry, _, _, fwd = _setup()
    ledger.mint_native(CLONE, 6)
    registry.set_escape_hatch(authority=AUTHORITY_2, destination=DESTINATION_2)

    with pytest.raises(NotAuthorized):
        fwd.escape_hatch(NATIVE, caller=AUTHORITY)

    fwd.escape_hatch(NATIVE, caller=AUTHORITY_2)
    assert ledger.balance_of(DESTINATION_2) == 6
    assert ledger.balance_of(DESTINATION) == 0


def test_escape_hatch_native_to_rejecting_contract_is_fatal() -> None:
    ledger, registry, _, _, fwd = _setup()
    ledger.mint_native(CLONE, 6)
    # Bridge contract has no receive hook.
    registry.set_escape_hatch(destination=BRIDGE)

    with pytest.raises(TransferRejected):
        fwd.escape_hatch(NATIVE, caller=AUTHORITY)

    assert ledger.balance_of(CLONE) == 6
    assert ledger.events == []


def test_escape_hatch_token_transfer_failure() -> None:
    ledger, _, _, _, fwd = _setup()
    stubborn = _RefusingTransferToken(ledger, "0xc000000000000000000000000000000000000002")
    stubborn.mint(CLONE, 9)

    with pytest.raises(TokenTransferFailed):
        fwd.escape_hatch(stubborn.address, caller=AUTHORITY)

    assert stubborn.balance_of(CLONE) == 9
    assert ledger.events == []
