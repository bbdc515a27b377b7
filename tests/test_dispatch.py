"""Tests for the enqueue side: single-recipient notify, broadcast fanout and admin send."""

from __future__ import annotations

import math

import pytest

from app.application.use_cases.notifications import (
    DispatchOutcome,
    NotificationContent,
    broadcast,
    chunked,
    notify_user,
    send_notification,
)
from app.domain.entities import (
    JOB_SOURCE_BROADCAST,
    JOB_SOURCE_DIRECT,
    NotificationCategory,
    NotificationPreferences,
)
from app.domain.exceptions import (
    NotFoundError,
    PartialFanoutError,
    QueueUnavailableError,
    ValidationError,
)
from app.infrastructure.repositories import (
    NotificationPreferencesRepository,
    NotificationRepository,
)


def _content(category=NotificationCategory.BOOKING, **overrides) -> NotificationContent:
    fields = {"title": "New booking", "message": "Your stay is confirmed"}
    fields.update(overrides)
    return NotificationContent.build(category=category, **fields)


def test_notify_user_enqueues_one_job(db_session, queue, make_users):
    (user_id,) = make_users(1)

    outcome = notify_user(
        db_session,
        queue,
        user_id=user_id,
        content=_content(link="/bookings/1", image="https://cdn.example.com/1.png"),
    )

    assert outcome is DispatchOutcome.ACCEPTED
    assert len(queue.enqueued) == 1
    job = queue.enqueued[0]
    assert job.user_id == user_id
    assert job.category is NotificationCategory.BOOKING
    assert job.link == "/bookings/1"
    assert job.image == "https://cdn.example.com/1.png"
    assert job.source == JOB_SOURCE_DIRECT
    assert job.attempts == 0
    assert len(job.idempotency_key) == 64


def test_notify_user_does_not_persist_anything(db_session, queue, make_users):
    (user_id,) = make_users(1)

    notify_user(db_session, queue, user_id=user_id, content=_content())

    assert NotificationRepository(db_session).count_for_user(user_id) == 0


def test_disabled_category_is_skipped_end_to_end(db_session, queue, worker, make_users):
    (user_id,) = make_users(1)
    NotificationPreferencesRepository(db_session).save(
        NotificationPreferences(user_id=user_id, new_booking=False)
    )

    outcome = notify_user(db_session, queue, user_id=user_id, content=_content())
    processed = worker.run_until_idle()

    assert outcome is DispatchOutcome.SKIPPED
    assert queue.enqueued == []
    assert processed == 0
    assert NotificationRepository(db_session).count_for_user(user_id) == 0


def test_other_categories_still_pass_when_one_is_disabled(db_session, queue, make_users):
    (user_id,) = make_users(1)
    NotificationPreferencesRepository(db_session).save(
        NotificationPreferences(user_id=user_id, new_booking=False)
    )

    outcome = notify_user(
        db_session, queue, user_id=user_id, content=_content(NotificationCategory.REVIEW)
    )

    assert outcome is DispatchOutcome.ACCEPTED


def test_notify_unknown_user_raises_not_found(db_session, queue):
    with pytest.raises(NotFoundError):
        notify_user(db_session, queue, user_id=999, content=_content())

    assert queue.enqueued == []


def test_notify_without_recipient_check_accepts_unknown_id(db_session, queue):
    outcome = notify_user(
        db_session, queue, user_id=999, content=_content(), check_recipient=False
    )

    assert outcome is DispatchOutcome.ACCEPTED
    assert queue.enqueued[0].user_id == 999


def test_queue_failure_propagates(db_session, failing_queue, make_users):
    (user_id,) = make_users(1)
    queue = failing_queue(fail_single=True)

    with pytest.raises(QueueUnavailableError):
        notify_user(db_session, queue, user_id=user_id, content=_content())


@pytest.mark.parametrize(
    ("fields", "message"),
    [
        ({"category": "BOGUS"}, "Unknown notification category"),
        ({"title": "   "}, "title must not be empty"),
        ({"title": "x" * 121}, "at most 120"),
        ({"message": ""}, "message must not be empty"),
        ({"link": "x" * 501}, "link must be at most"),
    ],
)
def test_content_validation(fields, message):
    raw = {"category": "BOOKING", "title": "Hi", "message": "Body"}
    raw.update(fields)

    with pytest.raises(ValidationError, match=message):
        NotificationContent.build(**raw)


def test_content_normalizes_category_and_blank_references():
    content = NotificationContent.build(
        category=" payment ", title=" Paid ", message=" Done ", link="  ", image=None
    )

    assert content.category is NotificationCategory.PAYMENT
    assert content.title == "Paid"
    assert content.message == "Done"
    assert content.link is None


def test_chunked_splits_into_bounded_lists():
    assert list(chunked(range(7), 3)) == [[0, 1, 2], [3, 4, 5], [6]]
    assert list(chunked([], 3)) == []
    with pytest.raises(ValueError):
        list(chunked(range(3), 0))


@pytest.mark.parametrize(("users", "chunk_size"), [(650, 300), (300, 300), (1, 300), (10, 3)])
def test_broadcast_chunks_cover_every_user_once(db_session, queue, make_users, users, chunk_size):
    user_ids = make_users(users)

    result = broadcast(
        db_session,
        queue,
        content=_content(NotificationCategory.SYSTEM, title="Maintenance"),
        chunk_size=chunk_size,
    )

    assert len(queue.bulk_calls) == math.ceil(users / chunk_size)
    assert all(len(call) <= chunk_size for call in queue.bulk_calls)
    recipients = [job.user_id for call in queue.bulk_calls for job in call]
    assert sorted(recipients) == sorted(user_ids)
    assert len(set(recipients)) == len(recipients)
    assert result.recipients == users
    assert result.chunks == len(queue.bulk_calls)
    assert all(job.source == JOB_SOURCE_BROADCAST for call in queue.bulk_calls for job in call)


def test_broadcast_chunk_sizes_for_650_users(db_session, queue, make_users):
    make_users(650)

    broadcast(db_session, queue, content=_content(NotificationCategory.SYSTEM), chunk_size=300)

    assert [len(call) for call in queue.bulk_calls] == [300, 300, 50]


def test_broadcast_ignores_preferences_at_enqueue_time(db_session, queue, make_users):
    user_ids = make_users(2)
    NotificationPreferencesRepository(db_session).save(
        NotificationPreferences(user_id=user_ids[0], policy_change=False)
    )

    result = broadcast(db_session, queue, content=_content(NotificationCategory.SYSTEM))

    assert result.recipients == 2


def test_broadcast_with_empty_directory_is_a_noop(db_session, queue, caplog):
    with caplog.at_level("WARNING"):
        result = broadcast(db_session, queue, content=_content(NotificationCategory.ALERT))

    assert result.recipients == 0
    assert queue.bulk_calls == []
    assert "No users found" in caplog.text


def test_partial_fanout_keeps_successful_chunks(db_session, failing_queue, make_users):
    make_users(7)
    queue = failing_queue(failing_calls={1})

    with pytest.raises(PartialFanoutError) as excinfo:
        broadcast(db_session, queue, content=_content(NotificationCategory.ALERT), chunk_size=3)

    error = excinfo.value
    assert error.total_recipients == 7
    assert [(chunk.start, chunk.end) for chunk in error.failed_chunks] == [(3, 6)]
    assert [len(call) for call in queue.bulk_calls] == [3, 1]
    assert queue.pending_count() == 4


def test_broadcast_jobs_have_distinct_idempotency_keys(db_session, queue, make_users):
    make_users(5)

    broadcast(db_session, queue, content=_content(NotificationCategory.SYSTEM))

    keys = {job.idempotency_key for call in queue.bulk_calls for job in call}
    assert len(keys) == 5


@pytest.mark.parametrize("category", [NotificationCategory.SYSTEM, NotificationCategory.ALERT])
def test_send_notification_fans_out_global_categories(db_session, queue, make_users, category):
    user_ids = make_users(3)

    outcome = send_notification(
        db_session, queue, user_id=user_ids[0], content=_content(category), chunk_size=2
    )

    assert outcome is DispatchOutcome.ACCEPTED
    assert queue.enqueued == []
    assert sum(len(call) for call in queue.bulk_calls) == 3


def test_send_notification_targets_single_user_otherwise(db_session, queue, make_users):
    user_ids = make_users(3)

    send_notification(
        db_session, queue, user_id=user_ids[1], content=_content(NotificationCategory.COUPON)
    )

    assert queue.bulk_calls == []
    assert [job.user_id for job in queue.enqueued] == [user_ids[1]]


def test_send_notification_checks_recipient(db_session, queue):
    with pytest.raises(NotFoundError):
        send_notification(db_session, queue, user_id=42, content=_content())
