from __future__ import annotations

import secrets
import uuid


def new_event_id() -> str:
    return str(uuid.uuid4())


def new_trace_id() -> str:
    return str(uuid.uuid4())


def new_address() -> str:
    """Random 20-byte hex address (dev ledger only)."""
    return "0x" + secrets.token_hex(20)
