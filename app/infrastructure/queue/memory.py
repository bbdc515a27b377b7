"""Thread-safe in-process dispatch queue used for single-node runs and tests."""

from __future__ import annotations

import heapq
import itertools
import logging
import threading
import time
from collections import deque
from collections.abc import Callable, Sequence
from datetime import datetime, timezone

from app.domain.entities import DispatchJob

from .base import DeadLetter, Lease

logger = logging.getLogger(__name__)


class InMemoryDispatchQueue:
    """FIFO queue with delayed retries and lease expiry.

    Nothing survives a process restart; use the Redis backend when producers and
    workers run in different processes.
    """

    def __init__(
        self,
        *,
        lease_timeout: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._lease_timeout = lease_timeout
        self._clock = clock
        self._condition = threading.Condition()
        self._sequence = itertools.count(1)
        self._ready: deque[tuple[str, DispatchJob]] = deque()
        self._delayed: list[tuple[float, int, str, DispatchJob]] = []
        self._leased: dict[str, tuple[float, DispatchJob]] = {}
        self._dead: list[DeadLetter] = []

    def enqueue(self, job: DispatchJob) -> None:
        with self._condition:
            self._ready.append((self._next_receipt(), job))
            self._condition.notify()

    def enqueue_bulk(self, jobs: Sequence[DispatchJob]) -> None:
        with self._condition:
            for job in jobs:
                self._ready.append((self._next_receipt(), job))
            self._condition.notify(len(jobs))

    def reserve(self, timeout: float) -> Lease | None:
        deadline = self._clock() + max(timeout, 0.0)
        with self._condition:
            while True:
                now = self._clock()
                self._promote_due(now)
                self._reclaim_expired(now)
                if self._ready:
                    receipt, job = self._ready.popleft()
                    self._leased[receipt] = (now + self._lease_timeout, job)
                    return Lease(job=job, receipt=receipt)
                remaining = deadline - now
                if remaining <= 0:
                    return None
                self._condition.wait(timeout=min(remaining, self._next_wakeup(now)))

    def ack(self, lease: Lease) -> None:
        with self._condition:
            if self._leased.pop(lease.receipt, None) is None:
                logger.debug("Ignoring ack for expired lease %s", lease.receipt)

    def retry(self, lease: Lease, *, delay: float) -> None:
        with self._condition:
            if self._leased.pop(lease.receipt, None) is None:
                logger.warning("Ignoring retry for expired lease %s", lease.receipt)
                return
            ready_at = self._clock() + max(delay, 0.0)
            heapq.heappush(
                self._delayed,
                (ready_at, next(self._sequence), self._next_receipt(), lease.job.next_attempt()),
            )
            self._condition.notify()

    def dead_letter(self, lease: Lease, *, reason: str) -> None:
        with self._condition:
            if self._leased.pop(lease.receipt, None) is None:
                logger.warning("Ignoring dead-letter for expired lease %s", lease.receipt)
                return
            self._dead.append(
                DeadLetter(job=lease.job, reason=reason, failed_at=datetime.now(timezone.utc))
            )

    def dead_letters(self, limit: int = 100) -> list[DeadLetter]:
        with self._condition:
            return list(self._dead[:limit])

    def pending_count(self) -> int:
        """Return jobs that are ready, delayed or currently leased."""

        with self._condition:
            return len(self._ready) + len(self._delayed) + len(self._leased)

    def _next_receipt(self) -> str:
        return f"mem-{next(self._sequence)}"

    def _promote_due(self, now: float) -> None:
        while self._delayed and self._delayed[0][0] <= now:
            _, _, receipt, job = heapq.heappop(self._delayed)
            self._ready.append((receipt, job))

    def _reclaim_expired(self, now: float) -> None:
        expired = [receipt for receipt, (until, _) in self._leased.items() if until <= now]
        for receipt in expired:
            _, job = self._leased.pop(receipt)
            logger.warning(
                "Lease %s for user %s expired; returning job to the queue",
                receipt,
                job.user_id,
            )
            self._ready.append((self._next_receipt(), job.next_attempt()))

    def _next_wakeup(self, now: float) -> float:
        candidates = [self._lease_timeout]
        if self._delayed:
            candidates.append(self._delayed[0][0] - now)
        if self._leased:
            candidates.append(min(until for until, _ in self._leased.values()) - now)
        return max(min(candidates), 0.01)


__all__ = ["InMemoryDispatchQueue"]
