"""Recording bridge: accepts donations and keeps one record per call.

Records live in the ledger so a donation inside a rolled-back transaction
leaves no trace.
"""

from __future__ import annotations

from dataclasses import dataclass

from src.chain.ledger import NATIVE, Ledger


@dataclass(frozen=True)
class Donation:
    giver_id: int
    receiver_id: int
    asset: str
    amount: int
    sender: str


class RecordingBridge:
    def __init__(self, ledger: Ledger, address: str, *, accept: bool = True) -> None:
        self._ledger = ledger
        self.address = address
        # When False every donation is refused (returns False).
        self.accept = accept
        ledger.deploy(address, self)

    @property
    def donations(self) -> list[Donation]:
        return self._ledger.records(self.address)

    def donate_native(self, giver_id: int, receiver_id: int, *, sender: str, value: int) -> bool:
        """Native donation; `value` has already been moved to this bridge."""
        if not self.accept:
            return False
        self._ledger.append_record(self.address, Donation(giver_id, receiver_id, NATIVE, value, sender))
        return True

    def donate_token(self, giver_id: int, receiver_id: int, token: str, amount: int, *, sender: str) -> bool:
        """Token donation; pulls `amount` from `sender` using its allowance."""
        if not self.accept:
            return False
        with self._ledger.transaction():
            contract = self._ledger.contract_at(token)
            if not contract.transfer_from(sender, self.address, amount, sender=self.address):
                return False
            self._ledger.append_record(self.address, Donation(giver_id, receiver_id, token, amount, sender))
        return True
