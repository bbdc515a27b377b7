"""Standalone delivery worker process.

Run with ``python -m app.worker`` next to an API started with
``RUN_EMBEDDED_WORKER=false`` and ``QUEUE_BACKEND=redis``.
"""

from __future__ import annotations

import argparse
import logging
import signal
import threading
from collections.abc import Callable

from sqlalchemy.orm import Session

from app.application.use_cases.notifications import DeliveryWorker
from app.config import Settings, get_settings
from app.infrastructure.database import SessionLocal, initialize_database
from app.infrastructure.dispatch import build_dispatch_queue, build_realtime_channel
from app.infrastructure.notifications import RealtimeChannel
from app.infrastructure.queue import DispatchQueue
from app.utils import configure_logging

logger = logging.getLogger(__name__)


def build_worker(
    settings: Settings,
    queue: DispatchQueue,
    channel: RealtimeChannel,
    session_factory: Callable[[], Session] = SessionLocal,
) -> DeliveryWorker:
    """Create a :class:`DeliveryWorker` configured from ``settings``."""

    return DeliveryWorker(
        queue,
        channel,
        session_factory,
        channel_name=settings.realtime_channel_name,
        max_attempts=settings.worker_max_attempts,
        backoff_seconds=settings.worker_backoff_seconds,
        poll_interval=settings.worker_poll_interval_seconds,
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run notification delivery workers.")
    parser.add_argument(
        "--concurrency",
        type=int,
        default=None,
        help="Number of worker threads (default: WORKER_CONCURRENCY)",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    """Start the configured number of worker threads and wait for a signal."""

    args = parse_args(argv)
    settings = get_settings()
    configure_logging(settings.log_level)

    if settings.queue_backend != "redis":
        raise SystemExit(
            "The standalone worker needs QUEUE_BACKEND=redis; the in-memory queue "
            "is only reachable from the API process."
        )

    initialize_database()
    worker = build_worker(
        settings, build_dispatch_queue(settings), build_realtime_channel(settings)
    )
    concurrency = args.concurrency or settings.worker_concurrency

    stop_event = threading.Event()
    signal.signal(signal.SIGTERM, lambda *_: stop_event.set())
    signal.signal(signal.SIGINT, lambda *_: stop_event.set())

    threads = [
        threading.Thread(target=worker.run, args=(stop_event,), name=f"delivery-worker-{index}")
        for index in range(concurrency)
    ]
    for thread in threads:
        thread.start()
    logger.info("Started %s delivery worker(s)", concurrency)

    stop_event.wait()
    for thread in threads:
        thread.join()


if __name__ == "__main__":
    main()
