"""Dispatch queue backed by a Redis Stream and a consumer group."""

from __future__ import annotations

import json
import logging
import os
import socket
import time
from collections.abc import Sequence
from datetime import datetime, timezone
from typing import Any

from redis import Redis
from redis.exceptions import RedisError, ResponseError

from app.domain.entities import DispatchJob
from app.domain.exceptions import QueueUnavailableError

from .base import DeadLetter, Lease

logger = logging.getLogger(__name__)

CONSUMER_GROUP = "delivery-workers"


def _decode(value: Any) -> str:
    return value.decode() if hasattr(value, "decode") else str(value)


def _field(fields: dict[Any, Any], name: str) -> str | None:
    raw = fields.get(name.encode()) if name.encode() in fields else fields.get(name)
    return _decode(raw) if raw is not None else None


class RedisDispatchQueue:
    """Redis Streams implementation of the dispatch queue.

    Keys used for a queue named ``notification``:

    * ``notification`` - the stream read by the consumer group
    * ``notification:delayed`` - sorted set of retries scored by ready time
    * ``notification:dead`` - stream of dead-lettered jobs
    """

    def __init__(
        self,
        client: Redis,
        *,
        stream: str,
        group: str = CONSUMER_GROUP,
        consumer: str | None = None,
        lease_timeout: float = 30.0,
    ) -> None:
        self._redis = client
        self._stream = stream
        self._group = group
        self._consumer = consumer or f"{socket.gethostname()}-{os.getpid()}"
        self._lease_timeout_ms = int(lease_timeout * 1000)
        self._delayed_key = f"{stream}:delayed"
        self._dead_key = f"{stream}:dead"
        self._group_ready = False

    @classmethod
    def from_url(cls, url: str, **kwargs: Any) -> "RedisDispatchQueue":
        return cls(Redis.from_url(url), **kwargs)

    def enqueue(self, job: DispatchJob) -> None:
        try:
            self._redis.xadd(self._stream, {"payload": json.dumps(job.to_dict())})
        except RedisError as exc:
            raise QueueUnavailableError(f"Could not enqueue job on '{self._stream}'") from exc

    def enqueue_bulk(self, jobs: Sequence[DispatchJob]) -> None:
        if not jobs:
            return
        try:
            pipeline = self._redis.pipeline(transaction=True)
            for job in jobs:
                pipeline.xadd(self._stream, {"payload": json.dumps(job.to_dict())})
            pipeline.execute()
        except RedisError as exc:
            raise QueueUnavailableError(
                f"Could not enqueue {len(jobs)} jobs on '{self._stream}'"
            ) from exc

    def reserve(self, timeout: float) -> Lease | None:
        try:
            self._ensure_consumer_group()
            self._promote_due()
            lease = self._claim_expired()
            if lease is not None:
                return lease
            block_ms = int(timeout * 1000)
            entries = self._redis.xreadgroup(
                self._group,
                self._consumer,
                {self._stream: ">"},
                count=1,
                block=block_ms if block_ms > 0 else None,
            )
        except RedisError as exc:
            raise QueueUnavailableError(f"Could not read from '{self._stream}'") from exc

        for _stream_name, messages in entries or []:
            for entry_id, fields in messages:
                job = self._parse(entry_id, fields)
                if job is not None:
                    return Lease(job=job, receipt=_decode(entry_id))
        return None

    def ack(self, lease: Lease) -> None:
        try:
            pipeline = self._redis.pipeline(transaction=True)
            pipeline.xack(self._stream, self._group, lease.receipt)
            pipeline.xdel(self._stream, lease.receipt)
            pipeline.execute()
        except RedisError as exc:
            raise QueueUnavailableError(f"Could not acknowledge {lease.receipt}") from exc

    def retry(self, lease: Lease, *, delay: float) -> None:
        payload = json.dumps(lease.job.next_attempt().to_dict())
        try:
            if not self._owns(lease):
                logger.warning("Ignoring retry for reclaimed entry %s", lease.receipt)
                return
            pipeline = self._redis.pipeline(transaction=True)
            pipeline.xack(self._stream, self._group, lease.receipt)
            pipeline.xdel(self._stream, lease.receipt)
            pipeline.zadd(self._delayed_key, {payload: time.time() + max(delay, 0.0)})
            pipeline.execute()
        except RedisError as exc:
            raise QueueUnavailableError(f"Could not schedule retry for {lease.receipt}") from exc

    def dead_letter(self, lease: Lease, *, reason: str) -> None:
        entry = {
            "payload": json.dumps(lease.job.to_dict()),
            "reason": reason,
            "failed_at": datetime.now(timezone.utc).isoformat(),
        }
        try:
            if not self._owns(lease):
                logger.warning("Ignoring dead-letter for reclaimed entry %s", lease.receipt)
                return
            pipeline = self._redis.pipeline(transaction=True)
            pipeline.xack(self._stream, self._group, lease.receipt)
            pipeline.xdel(self._stream, lease.receipt)
            pipeline.xadd(self._dead_key, entry)
            pipeline.execute()
        except RedisError as exc:
            raise QueueUnavailableError(f"Could not dead-letter {lease.receipt}") from exc

    def dead_letters(self, limit: int = 100) -> list[DeadLetter]:
        try:
            entries = self._redis.xrange(self._dead_key, count=limit)
        except RedisError as exc:
            raise QueueUnavailableError(f"Could not read '{self._dead_key}'") from exc
        letters: list[DeadLetter] = []
        for _entry_id, fields in entries:
            payload = _field(fields, "payload")
            if payload is None:
                continue
            failed_at = _field(fields, "failed_at")
            letters.append(
                DeadLetter(
                    job=DispatchJob.from_dict(json.loads(payload)),
                    reason=_field(fields, "reason") or "",
                    failed_at=datetime.fromisoformat(failed_at)
                    if failed_at
                    else datetime.now(timezone.utc),
                )
            )
        return letters

    def _ensure_consumer_group(self) -> None:
        if self._group_ready:
            return
        try:
            self._redis.xgroup_create(self._stream, self._group, id="0", mkstream=True)
            logger.info("Created consumer group %s on %s", self._group, self._stream)
        except ResponseError as exc:
            if "BUSYGROUP" not in str(exc):
                raise
        self._group_ready = True

    def _promote_due(self) -> None:
        due = self._redis.zrangebyscore(self._delayed_key, "-inf", time.time(), start=0, num=100)
        for member in due:
            # MULTI/EXEC: the member leaves the delayed set only together with the XADD.
            # A concurrent promotion may add it twice; the idempotency key absorbs that.
            pipeline = self._redis.pipeline(transaction=True)
            pipeline.zrem(self._delayed_key, member)
            pipeline.xadd(self._stream, {"payload": _decode(member)})
            pipeline.execute()

    def _owns(self, lease: Lease) -> bool:
        """Whether ``lease`` is still pending for this consumer (not reclaimed elsewhere)."""

        pending = self._redis.xpending_range(
            self._stream, self._group, min=lease.receipt, max=lease.receipt, count=1
        )
        return bool(pending) and _decode(pending[0]["consumer"]) == self._consumer

    def _claim_expired(self) -> Lease | None:
        result = self._redis.xautoclaim(
            self._stream,
            self._group,
            self._consumer,
            min_idle_time=self._lease_timeout_ms,
            start_id="0-0",
            count=1,
        )
        messages = result[1] if len(result) > 1 else []
        for entry_id, fields in messages:
            job = self._parse(entry_id, fields)
            if job is None:
                continue
            logger.warning(
                "Reclaimed job %s for user %s after lease timeout", _decode(entry_id), job.user_id
            )
            return Lease(job=job.next_attempt(), receipt=_decode(entry_id))
        return None

    def _parse(self, entry_id: Any, fields: dict[Any, Any] | None) -> DispatchJob | None:
        payload = _field(fields or {}, "payload")
        if payload:
            try:
                return DispatchJob.from_dict(json.loads(payload))
            except (ValueError, KeyError, TypeError):
                logger.exception("Discarding malformed queue entry %s", _decode(entry_id))
        else:
            logger.warning("Queue entry %s has no payload; acknowledging", _decode(entry_id))
        self._redis.xack(self._stream, self._group, entry_id)
        return None


__all__ = ["CONSUMER_GROUP", "RedisDispatchQueue"]
