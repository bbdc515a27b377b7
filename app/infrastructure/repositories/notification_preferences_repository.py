"""Persistence helpers for notification preference records."""

from __future__ import annotations

from dataclasses import asdict

from sqlalchemy.orm import Session

from app.domain.entities import PREFERENCE_FLAGS, NotificationPreferences
from app.infrastructure.models import NotificationPreferencesModel


class NotificationPreferencesRepository:
    """Load and store :class:`NotificationPreferences` rows."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def get_for_user(self, user_id: int) -> NotificationPreferences | None:
        model = self.session.get(NotificationPreferencesModel, user_id)
        if model is None:
            return None
        flags = {name: bool(getattr(model, name)) for name in PREFERENCE_FLAGS}
        return NotificationPreferences(user_id=model.user_id, **flags)

    def save(self, preferences: NotificationPreferences) -> NotificationPreferences:
        model = self.session.get(NotificationPreferencesModel, preferences.user_id)
        if model is None:
            model = NotificationPreferencesModel(user_id=preferences.user_id)
        for name, value in asdict(preferences).items():
            if name in PREFERENCE_FLAGS:
                setattr(model, name, value)
        self.session.add(model)
        self.session.commit()
        return preferences


__all__ = ["NotificationPreferencesRepository"]
