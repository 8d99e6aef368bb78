"""Ledger: the execution environment contracts run against.

Holds native-currency balances, token balances and allowances, append-only
per-contract records, the set of deployed contracts, and the committed event log.

Every state-changing operation by a contract runs inside `transaction()`:
- state is snapshotted on entry and restored if the block raises
- events emitted inside the block are released to subscribers only on commit
- nested transactions join the outermost one
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from src.core.models import EventEnvelope

logger = logging.getLogger(__name__)


# Asset selector for the environment's native currency.
NATIVE = "0x0000000000000000000000000000000000000000"


class LedgerError(RuntimeError):
    """Base for execution-environment failures."""


class InsufficientBalance(LedgerError):
    pass


class TransferRejected(LedgerError):
    """Recipient contract does not accept native-currency transfers."""


class UnknownContract(LedgerError):
    pass


EventListener = Callable[[EventEnvelope], None]


@dataclass(frozen=True)
class _Snapshot:
    native: Dict[str, int]
    token_balances: Dict[Tuple[str, str], int]
    allowances: Dict[Tuple[str, str, str], int]
    record_lengths: Dict[str, int]


def _require_amount(amount: int) -> int:
    if not isinstance(amount, int) or isinstance(amount, bool):
        raise ValueError("amount must be int")
    if amount < 0:
        raise ValueError("amount must be >= 0")
    return amount


class Ledger:
    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._native: Dict[str, int] = {}
        self._token_balances: Dict[Tuple[str, str], int] = {}
        self._allowances: Dict[Tuple[str, str, str], int] = {}
        self._records: Dict[str, List[Any]] = {}
        self._contracts: Dict[str, object] = {}
        self._events: List[EventEnvelope] = []
        self._pending: Optional[List[EventEnvelope]] = None
        self._depth = 0
        self._listeners: List[EventListener] = []
        self._undelivered: List[EventEnvelope] = []

    # ------------------------------------------------------------------
    # Transactions & events
    # ------------------------------------------------------------------

    def _snapshot(self) -> _Snapshot:
        return _Snapshot(
            native=dict(self._native),
            token_balances=dict(self._token_balances),
            allowances=dict(self._allowances),
            record_lengths={k: len(v) for k, v in self._records.items()},
        )

    def _restore(self, snap: _Snapshot) -> None:
        self._native = snap.native
        self._token_balances = snap.token_balances
        self._allowances = snap.allowances
        for key in list(self._records):
            keep = snap.record_lengths.get(key, 0)
            del self._records[key][keep:]

    @contextmanager
    def transaction(self) -> Iterator["Ledger"]:
        with self._lock:
            if self._depth:
                self._depth += 1
                try:
                    yield self
                finally:
                    self._depth -= 1
                return

            snap = self._snapshot()
            self._pending = []
            self._depth = 1
            try:
                yield self
            except BaseException:
                self._restore(snap)
                raise
            finally:
                self._depth = 0
                committed, self._pending = self._pending or [], None
            self._events.extend(committed)

        # Committed state stands whatever a listener does.
        for ev in committed:
            failed = False
            for listener in list(self._listeners):
                try:
                    listener(ev)
                except Exception:
                    failed = True
                    logger.exception(f"Event listener failed: event_id={ev.event_id} schema={ev.schema}")
            if failed:
                self._undelivered.append(ev)

    @property
    def in_transaction(self) -> bool:
        return self._depth > 0

    def emit(self, event: EventEnvelope) -> None:
        if self._pending is None:
            raise RuntimeError("events can only be emitted inside a transaction")
        self._pending.append(event)

    def subscribe(self, listener: EventListener) -> None:
        self._listeners.append(listener)

    @property
    def undelivered(self) -> List[EventEnvelope]:
        """Committed events at least one listener failed to take."""
        return list(self._undelivered)

    @property
    def events(self) -> List[EventEnvelope]:
        return list(self._events)

    def events_for(self, schema: str) -> List[EventEnvelope]:
        return [e for e in self._events if e.schema == schema]

    # ------------------------------------------------------------------
    # Contracts
    # ------------------------------------------------------------------

    def deploy(self, address: str, contract: object) -> None:
        if not address or address == NATIVE:
            raise ValueError(f"invalid contract address: {address!r}")
        with self._lock:
            if address in self._contracts:
                raise ValueError(f"address already has a contract: {address}")
            self._contracts[address] = contract

    def has_contract(self, address: str) -> bool:
        return address in self._contracts

    def contract_at(self, address: str) -> Any:
        try:
            return self._contracts[address]
        except KeyError:
            raise UnknownContract(f"no contract at {address}") from None

    # ------------------------------------------------------------------
    # Native currency
    # ------------------------------------------------------------------

    def balance_of(self, holder: str) -> int:
        return self._native.get(holder, 0)

    def mint_native(self, holder: str, amount: int) -> None:
        """Credit native currency out of thin air (dev faucet)."""
        _require_amount(amount)
        with self._lock:
            self._native[holder] = self.balance_of(holder) + amount

    def transfer_native(self, sender: str, to: str, amount: int) -> None:
        """Move value without invoking the recipient (value attached to a call)."""
        _require_amount(amount)
        with self.transaction():
            have = self.balance_of(sender)
            if have < amount:
                raise InsufficientBalance(f"{sender} has {have}, needs {amount}")
            self._native[sender] = have - amount
            self._native[to] = self.balance_of(to) + amount

    def send_value(self, sender: str, to: str, value: int) -> None:
        """Plain value transfer. Contract recipients must expose `receive`."""
        with self.transaction():
            self.transfer_native(sender, to, value)
            contract = self._contracts.get(to)
            if contract is None:
                return
            hook = getattr(contract, "receive", None)
            if hook is None:
                raise TransferRejected(f"contract at {to} does not accept native currency")
            hook(sender=sender, value=value)

    # ------------------------------------------------------------------
    # Token storage (used by token contracts)
    # ------------------------------------------------------------------

    def token_balance(self, token: str, holder: str) -> int:
        return self._token_balances.get((token, holder), 0)

    def mint_token(self, token: str, holder: str, amount: int) -> None:
        _require_amount(amount)
        with self._lock:
            self._token_balances[(token, holder)] = self.token_balance(token, holder) + amount

    def move_token(self, token: str, sender: str, to: str, amount: int) -> None:
        _require_amount(amount)
        with self.transaction():
            have = self.token_balance(token, sender)
            if have < amount:
                raise InsufficientBalance(f"{sender} holds {have} of {token}, needs {amount}")
            self._token_balances[(token, sender)] = have - amount
            self._token_balances[(token, to)] = self.token_balance(token, to) + amount

    def allowance(self, token: str, owner: str, spender: str) -> int:
        return self._allowances.get((token, owner, spender), 0)

    def set_allowance(self, token: str, owner: str, spender: str, amount: int) -> None:
        _require_amount(amount)
        with self.transaction():
            self._allowances[(token, owner, spender)] = amount

    # ------------------------------------------------------------------
    # Append-only contract records
    # ------------------------------------------------------------------

    def append_record(self, address: str, record: Any) -> None:
        with self.transaction():
            self._records.setdefault(address, []).append(record)

    def records(self, address: str) -> List[Any]:
        return list(self._records.get(address, []))
