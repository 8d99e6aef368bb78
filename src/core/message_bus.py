from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Sequence

from .models import EventEnvelope
from .idempotency import EXECUTED, REJECTED, RedisCommandJournal

from src.contracts.streams import dlq_stream
from src.contracts.validation import validate_envelope_dict

logger = logging.getLogger(__name__)


class MessageBus:
    """Abstraction for service-to-service communication."""

    def publish(self, stream: str, event: EventEnvelope) -> None:  # pragma: no cover
        raise NotImplementedError


@dataclass(frozen=True)
class ReceivedMessage:
    stream: str
    message_id: str
    body: str
    envelope: EventEnvelope | None
    error: str | None = None


class RedisStreamBus(MessageBus):
    """Redis Streams implementation.

    Wire format: one field `event` holding the JSON envelope. Commands and events
    share the format; the stream name equals the schema name.
    """

    def __init__(
        self,
        redis_url: str,
        *,
        block_ms: int = 5000,
        read_count: int = 10,
        max_attempts: int = 5,
        dedupe_ttl_seconds: int = 7 * 24 * 3600,
        retry_backoff_seconds: float = 0.5,
        client=None,
    ):
        self.redis_url = redis_url
        self._client = client
        self.block_ms = block_ms
        self.read_count = read_count
        self.max_attempts = max_attempts
        self.dedupe_ttl_seconds = dedupe_ttl_seconds
        self.retry_backoff_seconds = retry_backoff_seconds

    def _get_client(self):
        if self._client is None:
            import redis  # type: ignore

            self._client = redis.Redis.from_url(self.redis_url, decode_responses=True)
        return self._client

    def _ensure_group(self, stream: str, group: str) -> None:
        client = self._get_client()
        try:
            client.xgroup_create(name=stream, groupname=group, id="$", mkstream=True)
        except Exception as e:
            # BUSYGROUP means it already exists.
            if "BUSYGROUP" not in str(e):
                raise

    def publish(self, stream: str, event: EventEnvelope) -> None:
        wire = event.to_wire()
        validate_envelope_dict(wire)
        body = json.dumps(wire, ensure_ascii=False)
        self._get_client().xadd(stream, {"event": body})

    def poll(self, *, streams: Sequence[str], group: str, consumer: str) -> list[ReceivedMessage]:
        for stream in streams:
            self._ensure_group(stream, group)
        client = self._get_client()
        resp = client.xreadgroup(
            groupname=group,
            consumername=consumer,
            streams={s: ">" for s in streams},
            count=self.read_count,
            block=self.block_ms,
        )
        out: list[ReceivedMessage] = []
        for (sname, items) in resp or []:
            for (msg_id, fields) in items:
                body = dict(fields).get("event") or ""
                try:
                    wire = json.loads(body)
                    validate_envelope_dict(wire)
                except Exception as e:
                    out.append(ReceivedMessage(stream=sname, message_id=msg_id, body=body, envelope=None, error=str(e)))
                    continue
                out.append(ReceivedMessage(stream=sname, message_id=msg_id, body=body, envelope=EventEnvelope.from_wire(wire)))
        return out

    def ack(self, *, stream: str, group: str, message_id: str) -> None:
        self._get_client().xack(stream, group, message_id)

    def _attempt_key(self, *, group: str, stream: str, event_id: str) -> str:
        return f"attempt:{group}:{stream}:{event_id}"

    def _dlq(self, *, base_stream: str, event_json: str, error: str, original_message_id: str) -> None:
        self._get_client().xadd(
            dlq_stream(base_stream),
            {
                "event": event_json,
                "error": error,
                "failed_at": datetime.now(timezone.utc).isoformat(),
                "original_stream": base_stream,
                "original_message_id": original_message_id,
            },
        )

    def run_worker(
        self,
        *,
        streams: Sequence[str],
        group: str,
        consumer: str,
        handler: Callable[[EventEnvelope], None],
        permanent_errors: tuple[type[BaseException], ...] = (),
        stop_after_messages: int | None = None,
    ) -> None:
        """Run an at-least-once worker with idempotency + retry + DLQ.

        - Strict contract validation (v1: no extra fields)
        - A command whose event_id already has a journaled outcome is skipped
        - `permanent_errors` go to the DLQ on first failure; the command must be
          resubmitted once the underlying condition is fixed
        - Any other handler exception: retry up to max_attempts, then DLQ
        """

        client = self._get_client()
        processed = 0

        while True:
            batch = self.poll(streams=streams, group=group, consumer=consumer)
            if not batch:
                continue

            for msg in batch:
                stream = msg.stream
                if msg.envelope is None:
                    self._dlq(base_stream=stream, event_json=msg.body, error=f"contract_invalid: {msg.error}", original_message_id=msg.message_id)
                    self.ack(stream=stream, group=group, message_id=msg.message_id)
                    continue

                env = msg.envelope
                journal = RedisCommandJournal(client, group=group, stream=stream)
                prior = journal.outcome(env.event_id)
                if prior is not None:
                    logger.info(f"Duplicate command skipped: event_id={env.event_id} outcome={prior}")
                    self.ack(stream=stream, group=group, message_id=msg.message_id)
                    continue

                try:
                    handler(env)
                except permanent_errors as e:
                    logger.warning(f"Command rejected: event_id={env.event_id} error={type(e).__name__}: {e}")
                    self._dlq(
                        base_stream=stream,
                        event_json=msg.body,
                        error=f"rejected: {type(e).__name__}: {e}",
                        original_message_id=msg.message_id,
                    )
                    journal.record(env.event_id, REJECTED, ttl_seconds=self.dedupe_ttl_seconds)
                    self.ack(stream=stream, group=group, message_id=msg.message_id)
                    processed += 1
                    if stop_after_messages is not None and processed >= stop_after_messages:
                        return
                    continue
                except Exception as e:
                    attempt_key = self._attempt_key(group=group, stream=stream, event_id=env.event_id)
                    attempt = int(client.incr(attempt_key))
                    # Avoid unbounded growth of retry counters.
                    client.expire(attempt_key, self.dedupe_ttl_seconds)
                    if attempt >= self.max_attempts:
                        self._dlq(
                            base_stream=stream,
                            event_json=msg.body,
                            error=f"handler_failed_after_{attempt}: {e}",
                            original_message_id=msg.message_id,
                        )
                        self.ack(stream=stream, group=group, message_id=msg.message_id)
                        continue

                    # Ack and requeue the same event (same event_id). The journal stops double execution.
                    self.ack(stream=stream, group=group, message_id=msg.message_id)
                    time.sleep(self.retry_backoff_seconds)
                    client.xadd(stream, {"event": msg.body})
                    continue

                journal.record(env.event_id, EXECUTED, ttl_seconds=self.dedupe_ttl_seconds)
                self.ack(stream=stream, group=group, message_id=msg.message_id)

                processed += 1
                if stop_after_messages is not None and processed >= stop_after_messages:
                    return
