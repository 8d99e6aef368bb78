"""In-memory execution environment: balances, deployed contracts, committed events."""

from .ledger import (
    NATIVE,
    InsufficientBalance,
    Ledger,
    LedgerError,
    TransferRejected,
    UnknownContract,
)
from .token import InMemoryToken

__all__ = [
    "NATIVE",
    "InsufficientBalance",
    "Ledger",
    "LedgerError",
    "TransferRejected",
    "UnknownContract",
    "InMemoryToken",
]
