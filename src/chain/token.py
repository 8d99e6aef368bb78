"""In-memory fungible token.

Mirrors the usual token surface where state-changing calls report success with
a bool instead of raising: insufficient balance or allowance returns False.
"""

from __future__ import annotations

from .ledger import Ledger


class InMemoryToken:
    def __init__(self, ledger: Ledger, address: str, *, symbol: str = "TKN") -> None:
        self._ledger = ledger
        self.address = address
        self.symbol = symbol
        ledger.deploy(address, self)

    def mint(self, holder: str, amount: int) -> None:
        self._ledger.mint_token(self.address, holder, amount)

    def balance_of(self, holder: str) -> int:
        return self._ledger.token_balance(self.address, holder)

    def allowance(self, owner: str, spender: str) -> int:
        return self._ledger.allowance(self.address, owner, spender)

    def approve(self, spender: str, amount: int, *, sender: str) -> bool:
        if amount < 0:
            return False
        self._ledger.set_allowance(self.address, sender, spender, amount)
        return True

    def transfer(self, to: str, amount: int, *, sender: str) -> bool:
        if amount < 0 or self.balance_of(sender) < amount:
            return False
        self._ledger.move_token(self.address, sender, to, amount)
        return True

    def transfer_from(self, owner: str, to: str, amount: int, *, sender: str) -> bool:
        allowed = self.allowance(owner, sender)
        if amount < 0 or allowed < amount or self.balance_of(owner) < amount:
            return False
        with self._ledger.transaction():
            self._ledger.set_allowance(self.address, owner, sender, allowed - amount)
            self._ledger.move_token(self.address, owner, to, amount)
        return True
