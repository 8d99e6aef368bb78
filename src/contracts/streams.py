from __future__ import annotations

# v1 stream names (frozen semantics for v1). Stream name equals schema name.

# Commands (inbound).
FORWARDER_FORWARD_REQUESTED_V1 = "forwarder.forward.requested.v1"
FORWARDER_ESCAPE_HATCH_REQUESTED_V1 = "forwarder.escape_hatch.requested.v1"

# Events (emitted only by committed operations).
FORWARDER_FORWARDED_V1 = "forwarder.forwarded.v1"
FORWARDER_ESCAPE_HATCH_CALLED_V1 = "forwarder.escape_hatch_called.v1"

COMMAND_STREAMS = (FORWARDER_FORWARD_REQUESTED_V1, FORWARDER_ESCAPE_HATCH_REQUESTED_V1)


def dlq_stream(base_stream: str) -> str:
    return f"dlq.{base_stream}.v1"
