"""Shared fixtures for the notification dispatch tests."""

from __future__ import annotations

import os
import shutil
import sys
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

_TEST_DIR = Path(tempfile.mkdtemp(prefix="notification-tests-"))
TEST_DB_PATH = _TEST_DIR / "test.db"
os.environ["DATABASE_URL"] = f"sqlite:///{TEST_DB_PATH}"
os.environ["QUEUE_BACKEND"] = "memory"
os.environ["RUN_EMBEDDED_WORKER"] = "false"
os.environ["APP_TIMEZONE"] = "UTC"

from app.application.use_cases.notifications import DeliveryWorker  # noqa: E402
from app.domain.entities import DispatchJob, NotificationCategory  # noqa: E402
from app.domain.exceptions import QueueUnavailableError  # noqa: E402
from app.infrastructure import database  # noqa: E402
from app.infrastructure.models import UserModel  # noqa: E402
from app.infrastructure.queue import InMemoryDispatchQueue  # noqa: E402
from app.infrastructure.repositories import NotificationRepository  # noqa: E402


class RecordingQueue(InMemoryDispatchQueue):
    """In-memory queue that remembers every enqueue call."""

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self.enqueued: list[DispatchJob] = []
        self.bulk_calls: list[list[DispatchJob]] = []

    def enqueue(self, job: DispatchJob) -> None:
        self.enqueued.append(job)
        super().enqueue(job)

    def enqueue_bulk(self, jobs) -> None:
        self.bulk_calls.append(list(jobs))
        super().enqueue_bulk(jobs)


class FailingQueue(RecordingQueue):
    """Queue whose bulk calls listed in ``failing_calls`` (0-based) are rejected."""

    def __init__(self, failing_calls=(), fail_single: bool = False, **kwargs) -> None:
        super().__init__(**kwargs)
        self.failing_calls = set(failing_calls)
        self.fail_single = fail_single
        self._bulk_attempts = 0

    def enqueue(self, job: DispatchJob) -> None:
        if self.fail_single:
            raise QueueUnavailableError("queue offline")
        super().enqueue(job)

    def enqueue_bulk(self, jobs) -> None:
        call = self._bulk_attempts
        self._bulk_attempts += 1
        if call in self.failing_calls:
            raise QueueUnavailableError("queue offline")
        super().enqueue_bulk(jobs)


class RecordingChannel:
    """Realtime channel fake collecting published payloads."""

    def __init__(self, *, fail: bool = False) -> None:
        self.fail = fail
        self.published: list[tuple[str, dict]] = []

    def publish(self, channel_name: str, payload: dict) -> None:
        if self.fail:
            raise ConnectionError("pub/sub unavailable")
        self.published.append((channel_name, payload))


@pytest.fixture(autouse=True)
def reset_database():
    """Give every test empty tables."""

    from app.infrastructure import models  # noqa: F401

    database.Base.metadata.drop_all(bind=database.engine, checkfirst=True)
    database.Base.metadata.create_all(bind=database.engine)
    yield


def pytest_sessionfinish(session, exitstatus):
    database.engine.dispose()
    shutil.rmtree(_TEST_DIR, ignore_errors=True)


@pytest.fixture()
def session_factory():
    return database.SessionLocal


@pytest.fixture()
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def queue() -> RecordingQueue:
    return RecordingQueue()


@pytest.fixture()
def channel() -> RecordingChannel:
    return RecordingChannel()


@pytest.fixture()
def worker(queue, channel, session_factory) -> DeliveryWorker:
    return DeliveryWorker(queue, channel, session_factory, backoff_seconds=0.0)


def create_users(session, count: int) -> list[int]:
    """Insert ``count`` directory users and return their ids."""

    models = [
        UserModel(name=f"User {index}", email=f"user{index}@example.com")
        for index in range(count)
    ]
    session.add_all(models)
    session.commit()
    return [model.id for model in models]


def store_notifications(session, user_id: int, count: int) -> list[int]:
    """Persist ``count`` notifications for ``user_id`` the way the worker does."""

    repository = NotificationRepository(session)
    base = datetime(2024, 1, 1, tzinfo=timezone.utc)
    ids = []
    for index in range(count):
        job = DispatchJob.create(
            user_id=user_id,
            category=NotificationCategory.BOOKING,
            title=f"Booking {index}",
            message=f"Booking number {index} confirmed",
            enqueued_at=base + timedelta(seconds=index),
        )
        notification, _ = repository.create_from_job(job)
        ids.append(notification.id)
    return ids


@pytest.fixture()
def make_users(db_session):
    return lambda count: create_users(db_session, count)


@pytest.fixture()
def make_notifications(db_session):
    return lambda user_id, count: store_notifications(db_session, user_id, count)


@pytest.fixture()
def failing_queue():
    """Factory for queues that reject selected enqueue calls."""

    return FailingQueue


@pytest.fixture()
def recording_channel():
    """Factory for realtime channel fakes."""

    return RecordingChannel
