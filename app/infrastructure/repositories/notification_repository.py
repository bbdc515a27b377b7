"""Persistence helpers for notification entities."""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.domain.entities import DispatchJob, Notification, NotificationCategory
from app.domain.exceptions import PersistenceError
from app.infrastructure.models import NotificationModel
from app.utils import (
    ensure_app_naive_datetime,
    ensure_app_timezone,
    now_in_app_timezone,
)


class NotificationRepository:
    """Provide storage operations for :class:`Notification` objects."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def create_from_job(self, job: DispatchJob) -> tuple[Notification, bool]:
        """Persist the notification described by ``job``.

        Returns the stored notification and ``True`` when a row was inserted, or
        the previously stored row and ``False`` when the job's idempotency key
        was already used by an earlier delivery of the same job.
        """

        model = NotificationModel(
            user_id=job.user_id,
            category=job.category.value,
            title=job.title,
            message=job.message,
            link=job.link,
            image=job.image,
            read=False,
            created_at=ensure_app_naive_datetime(now_in_app_timezone()),
            idempotency_key=job.idempotency_key,
        )
        try:
            try:
                self.session.add(model)
                self.session.commit()
            except IntegrityError as exc:
                self.session.rollback()
                existing = self.get_by_idempotency_key(job.idempotency_key)
                if existing is None:
                    raise PersistenceError(
                        f"Notification for user {job.user_id} violates a store constraint"
                    ) from exc
                return existing, False
            self.session.refresh(model)
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise PersistenceError(
                f"Could not store notification for user {job.user_id}"
            ) from exc

        return self._to_entity(model), True

    def get(self, notification_id: int) -> Notification | None:
        model = self.session.get(NotificationModel, notification_id)
        return self._to_entity(model) if model else None

    def get_by_idempotency_key(self, key: str) -> Notification | None:
        query = select(NotificationModel).where(NotificationModel.idempotency_key == key)
        model = self.session.execute(query).scalar_one_or_none()
        return self._to_entity(model) if model else None

    def list_page(
        self,
        user_id: int,
        *,
        before_id: int | None = None,
        limit: int = 10,
    ) -> Sequence[Notification]:
        """Return up to ``limit`` notifications newest-first, older than ``before_id``."""

        query = select(NotificationModel).where(NotificationModel.user_id == user_id)
        if before_id is not None:
            query = query.where(NotificationModel.id < before_id)
        query = query.order_by(NotificationModel.id.desc()).limit(limit)
        return [self._to_entity(model) for model in self.session.scalars(query)]

    def list_unread_for_user(
        self, user_id: int, *, limit: int | None = 50
    ) -> Sequence[Notification]:
        query = (
            select(NotificationModel)
            .where(NotificationModel.user_id == user_id)
            .where(NotificationModel.read.is_(False))
            .order_by(NotificationModel.id.desc())
        )
        if limit is not None:
            query = query.limit(limit)
        return [self._to_entity(model) for model in self.session.scalars(query)]

    def count_for_user(self, user_id: int) -> int:
        query = select(func.count(NotificationModel.id)).where(
            NotificationModel.user_id == user_id
        )
        return int(self.session.execute(query).scalar_one())

    def mark_read(self, notification_id: int) -> int:
        """Flip ``read`` to true only when it is still false; return rows changed."""

        return self._mark_read_where(NotificationModel.id == notification_id)

    def mark_many_read(self, notification_ids: Iterable[int], *, user_id: int) -> int:
        ids = [
            notification_id for notification_id in notification_ids if notification_id is not None
        ]
        if not ids:
            return 0
        return self._mark_read_where(
            NotificationModel.id.in_(ids), NotificationModel.user_id == user_id
        )

    def mark_all_read(self, user_id: int) -> int:
        return self._mark_read_where(NotificationModel.user_id == user_id)

    def delete_all_for_user(self, user_id: int) -> int:
        result = self.session.execute(
            delete(NotificationModel).where(NotificationModel.user_id == user_id)
        )
        self.session.commit()
        return result.rowcount or 0

    def _mark_read_where(self, *criteria) -> int:
        statement = (
            update(NotificationModel)
            .where(*criteria)
            .where(NotificationModel.read.is_(False))
            .values(read=True)
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(statement)
        self.session.commit()
        return result.rowcount or 0

    @staticmethod
    def _to_entity(model: NotificationModel) -> Notification:
        return Notification(
            id=model.id,
            user_id=model.user_id,
            category=NotificationCategory(model.category),
            title=model.title,
            message=model.message,
            link=model.link,
            image=model.image,
            read=bool(model.read),
            created_at=ensure_app_timezone(model.created_at),
        )


__all__ = ["NotificationRepository"]
