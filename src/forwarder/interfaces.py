"""Collaborator interfaces consumed by the forwarder.

The registry is held by reference and re-queried on every use. Bridges and
tokens are resolved by address on the ledger.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class Registry(Protocol):
    """Shared administrative configuration. Values may change between calls."""

    def bridge(self) -> str:
        ...

    def escape_hatch_authority(self) -> str:
        ...

    def escape_hatch_destination(self) -> str:
        ...


@runtime_checkable
class Bridge(Protocol):
    """Records donations against giver/receiver ids.

    Native and token donations have different signatures; callers pick one
    explicitly.
    """

    def donate_native(self, giver_id: int, receiver_id: int, *, sender: str, value: int) -> bool:
        ...

    def donate_token(self, giver_id: int, receiver_id: int, token: str, amount: int, *, sender: str) -> bool:
        ...


@runtime_checkable
class Token(Protocol):
    def balance_of(self, holder: str) -> int:
        ...

    def approve(self, spender: str, amount: int, *, sender: str) -> bool:
        ...

    def transfer(self, to: str, amount: int, *, sender: str) -> bool:
        ...

    def transfer_from(self, owner: str, to: str, amount: int, *, sender: str) -> bool:
        ...
