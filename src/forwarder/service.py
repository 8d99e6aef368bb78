"""Forwarder service - executes forward / escape-hatch commands from Redis Streams.

This service:
1. Subscribes to forwarder.forward.requested.v1 and forwarder.escape_hatch.requested.v1
2. Runs the command against the addressed forwarder
3. Publishes committed events (forwarder.forwarded.v1 / forwarder.escape_hatch_called.v1)

Rejected commands (domain errors) are dead-lettered, never retried.
Consumer Group: settings.redis.stream.consumer_group
"""

from __future__ import annotations

import logging
import os

from src.chain.ledger import LedgerError
from src.contracts import streams
from src.core.message_bus import RedisStreamBus
from src.core.models import EventEnvelope
from src.core.settings import load_settings

from .bootstrap import Environment, build_environment
from .errors import ForwarderError

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def handle_command(envelope: EventEnvelope, env: Environment) -> EventEnvelope:
    """Execute one command envelope; returns the emitted event."""
    payload = envelope.payload
    fwd = env.forwarders.get(payload["forwarder"])
    if fwd is None:
        raise ForwarderError(f"unknown forwarder: {payload['forwarder']}")

    if envelope.schema == streams.FORWARDER_FORWARD_REQUESTED_V1:
        return fwd.forward(payload["asset"], trace_id=envelope.trace_id)
    if envelope.schema == streams.FORWARDER_ESCAPE_HATCH_REQUESTED_V1:
        return fwd.escape_hatch(payload["asset"], caller=payload["caller"], trace_id=envelope.trace_id)
    raise ValueError(f"unsupported command schema: {envelope.schema}")


def main() -> None:
    """Run the forwarder service."""
    s = load_settings()
    logger.info("Starting forwarder service...")
    logger.info(f"Redis URL: {s.redis_url}")

    bus = RedisStreamBus(s.redis_url)
    env = build_environment(s)
    # Stream name equals schema name in v1.
    env.ledger.subscribe(lambda ev: bus.publish(ev.schema, ev))

    consumer = os.getenv("HOSTNAME", "forwarder-1")
    logger.info(f"Subscribing to streams: {list(streams.COMMAND_STREAMS)}")

    try:
        bus.run_worker(
            streams=streams.COMMAND_STREAMS,
            group=s.redis_consumer_group,
            consumer=consumer,
            handler=lambda ev: handle_command(ev, env),
            permanent_errors=(ForwarderError, LedgerError, ValueError),
        )
    except KeyboardInterrupt:
        logger.info("Shutting down forwarder service...")


if __name__ == "__main__":
    main()
