"""Persistence layer for the user directory."""

from __future__ import annotations

from collections.abc import Iterator

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.domain.entities import User
from app.infrastructure.models import UserModel


class UserRepository:
    """Read access to directory users plus creation for seeding."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def exists(self, user_id: int) -> bool:
        query = select(UserModel.id).where(UserModel.id == user_id)
        return self.session.execute(query).first() is not None

    def iter_ids(self, *, batch_size: int = 1000) -> Iterator[int]:
        """Stream every user id in ascending order without loading all rows."""

        query = (
            select(UserModel.id)
            .order_by(UserModel.id)
            .execution_options(yield_per=batch_size)
        )
        for (user_id,) in self.session.execute(query):
            yield user_id

    def create(self, user: User) -> User:
        model = UserModel(name=user.name, email=user.email, is_active=user.is_active)
        if user.id is not None:
            model.id = user.id
        self.session.add(model)
        self.session.commit()
        self.session.refresh(model)
        return self._to_entity(model)

    @staticmethod
    def _to_entity(model: UserModel) -> User:
        return User(
            id=model.id,
            name=model.name,
            email=model.email,
            is_active=model.is_active,
            created_at=model.created_at,
        )


__all__ = ["UserRepository"]
