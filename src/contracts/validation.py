from __future__ import annotations

from datetime import datetime
from typing import Any

from . import streams


ENVELOPE_REQUIRED_KEYS = {
    "event_id",
    "trace_id",
    "produced_at",
    "schema",
    "schema_version",
    "payload",
}
ENVELOPE_OPTIONAL_KEYS = {"source_service"}


def _require_exact_keys(obj: dict[str, Any], *, required: set[str], optional: set[str] | None = None) -> None:
    optional = optional or set()
    keys = set(obj.keys())
    missing = required - keys
    extra = keys - required - optional
    if missing:
        raise ValueError(f"missing keys: {sorted(missing)}")
    if extra:
        raise ValueError(f"extra keys not allowed in v1: {sorted(extra)}")


def _require_str(d: dict[str, Any], k: str) -> str:
    v = d.get(k)
    if not isinstance(v, str) or not v.strip():
        raise ValueError(f"{k} must be non-empty string")
    return v


def _require_int(d: dict[str, Any], k: str) -> int:
    v = d.get(k)
    # bool is an int subclass; never a valid amount.
    if not isinstance(v, int) or isinstance(v, bool):
        raise ValueError(f"{k} must be int")
    return v


def _require_amount(d: dict[str, Any], k: str) -> int:
    v = _require_int(d, k)
    if v < 0:
        raise ValueError(f"{k} must be >= 0")
    return v


def _require_address(d: dict[str, Any], k: str) -> str:
    v = _require_str(d, k)
    if not v.startswith("0x"):
        raise ValueError(f"{k} must be a 0x-prefixed address")
    return v


def _parse_iso8601(s: str) -> datetime:
    try:
        dt = datetime.fromisoformat(s.replace("Z", "+00:00"))
    except Exception as e:  # pragma: no cover
        raise ValueError(f"invalid ISO8601 timestamp: {s}") from e
    if dt.tzinfo is None:
        raise ValueError("timestamp must include timezone")
    return dt


def validate_envelope_dict(event: dict[str, Any]) -> None:
    """Strict v1 validation.

    - v1 does not allow extra fields (schema evolution uses v2 streams)
    - payload must match schema-specific rules
    """

    _require_exact_keys(event, required=ENVELOPE_REQUIRED_KEYS, optional=ENVELOPE_OPTIONAL_KEYS)
    _require_str(event, "event_id")
    _require_str(event, "trace_id")
    produced_at = _require_str(event, "produced_at")
    _parse_iso8601(produced_at)

    schema = _require_str(event, "schema")
    schema_version = _require_int(event, "schema_version")
    if schema_version != 1 or not schema.endswith(".v1"):
        raise ValueError("schema_version must be 1 and schema must end with .v1")

    payload = event.get("payload")
    if not isinstance(payload, dict):
        raise ValueError("payload must be object")
    validate_payload(schema, payload)


def validate_payload(schema: str, payload: dict[str, Any]) -> None:
    if schema == streams.FORWARDER_FORWARD_REQUESTED_V1:
        _require_exact_keys(payload, required={"forwarder", "asset"})
        _require_address(payload, "forwarder")
        _require_address(payload, "asset")
        return

    if schema == streams.FORWARDER_ESCAPE_HATCH_REQUESTED_V1:
        _require_exact_keys(payload, required={"forwarder", "asset", "caller"})
        _require_address(payload, "forwarder")
        _require_address(payload, "asset")
        _require_address(payload, "caller")
        return

    if schema == streams.FORWARDER_FORWARDED_V1:
        _require_exact_keys(payload, required={"forwarder", "to", "asset", "balance", "result"})
        _require_address(payload, "forwarder")
        _require_address(payload, "to")
        _require_address(payload, "asset")
        _require_amount(payload, "balance")
        if payload.get("result") is not True:
            # Failed forwards abort without an event.
            raise ValueError("result must be true")
        return

    if schema == streams.FORWARDER_ESCAPE_HATCH_CALLED_V1:
        _require_exact_keys(payload, required={"forwarder", "asset", "amount"})
        _require_address(payload, "forwarder")
        _require_address(payload, "asset")
        _require_amount(payload, "amount")
        return

    # For new schemas: add v2 stream, then update this mapping.
    raise ValueError(f"unknown schema: {schema}")
