from __future__ import annotations

import pytest

from src.chain.ledger import InsufficientBalance, Ledger, UnknownContract
from src.chain.token import InMemoryToken
from src.contracts import streams
from src.core.models import make_envelope


A = "0xa000000000000000000000000000000000000001"
B = "0xb000000000000000000000000000000000000001"
TOKEN = "0xc000000000000000000000000000000000000001"


def _event(amount: int):
    return make_envelope(
        streams.FORWARDER_ESCAPE_HATCH_CALLED_V1,
        {"forwarder": A, "asset": TOKEN, "amount": amount},
    )


def test_transaction_rolls_back_state_records_and_events() -> None:
    ledger = Ledger()
    token = InMemoryToken(ledger, TOKEN)
    ledger.mint_native(A, 10)
    token.mint(A, 5)
    seen = []
    ledger.subscribe(seen.append)

    with pytest.raises(RuntimeError):
        with ledger.transaction():
            ledger.transfer_native(A, B, 4)
            token.approve(B, 5, sender=A)
            token.transfer(B, 2, sender=A)
            ledger.append_record(B, "donation")
            ledger.emit(_event(1))
            raise RuntimeError("abort")

    assert ledger.balance_of(A) == 10
    assert ledger.balance_of(B) == 0
    assert token.balance_of(A) == 5
    assert token.allowance(A, B) == 0
    assert ledger.records(B) == []
    assert ledger.events == []
    assert seen == []


def test_nested_transactions_commit_with_outermost() -> None:
    ledger = Ledger()
    ledger.mint_native(A, 10)
    seen = []
    ledger.subscribe(seen.append)

    with ledger.transaction():
        with ledger.transaction():
            ledger.transfer_native(A, B, 3)
            ledger.emit(_event(3))
        assert seen == []
        assert ledger.in_transaction is True

    assert ledger.in_transaction is False
    assert ledger.balance_of(B) == 3
    assert [e.payload["amount"] for e in seen] == [3]
    assert ledger.events == seen


def test_emit_outside_transaction_fails() -> None:
    with pytest.raises(RuntimeError):
        Ledger().emit(_event(0))


def test_transfer_native_requires_funds() -> None:
    ledger = Ledger()
    ledger.mint_native(A, 1)
    with pytest.raises(InsufficientBalance):
        ledger.transfer_native(A, B, 2)
    with pytest.raises(ValueError):
        ledger.transfer_native(A, B, -1)
    assert ledger.balance_of(A) == 1


def test_deploy_and_lookup() -> None:
    ledger = Ledger()
    token = InMemoryToken(ledger, TOKEN)
    assert ledger.contract_at(TOKEN) is token
    assert ledger.has_contract(TOKEN) is True
    with pytest.raises(ValueError):
        InMemoryToken(ledger, TOKEN)
    with pytest.raises(UnknownContract):
        ledger.contract_at(B)


def test_token_reports_failure_instead_of_raising() -> None:
    ledger = Ledger()
    token = InMemoryToken(ledger, TOKEN)
    token.mint(A, 3)
    assert token.transfer(B, 4, sender=A) is False
    assert token.transfer_from(A, B, 1, sender=B) is False

    assert token.approve(B, 2, sender=A) is True
    assert token.transfer_from(A, B, 2, sender=B) is True
    assert token.allowance(A, B) == 0
    assert token.balance_of(B) == 2
