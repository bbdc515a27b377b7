"""Queue payload describing a notification that still has to be delivered."""

from __future__ import annotations

import hashlib
from dataclasses import asdict, dataclass, replace
from datetime import datetime
from typing import Any

from .notification import NotificationCategory

JOB_SOURCE_DIRECT = "direct"
JOB_SOURCE_BROADCAST = "broadcast"


def build_idempotency_key(
    *,
    user_id: int,
    category: NotificationCategory,
    title: str,
    message: str,
    link: str | None,
    image: str | None,
    enqueued_at: datetime,
) -> str:
    """Return a deterministic key identifying one enqueued delivery."""

    parts = (
        str(user_id),
        category.value,
        title,
        message,
        link or "",
        image or "",
        enqueued_at.isoformat(),
    )
    return hashlib.sha256("\x1f".join(parts).encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class DispatchJob:
    """A single recipient delivery travelling through the dispatch queue."""

    user_id: int
    category: NotificationCategory
    title: str
    message: str
    link: str | None
    image: str | None
    enqueued_at: datetime
    idempotency_key: str
    source: str = JOB_SOURCE_DIRECT
    attempts: int = 0

    @classmethod
    def create(
        cls,
        *,
        user_id: int,
        category: NotificationCategory,
        title: str,
        message: str,
        link: str | None = None,
        image: str | None = None,
        enqueued_at: datetime,
        source: str = JOB_SOURCE_DIRECT,
    ) -> "DispatchJob":
        key = build_idempotency_key(
            user_id=user_id,
            category=category,
            title=title,
            message=message,
            link=link,
            image=image,
            enqueued_at=enqueued_at,
        )
        return cls(
            user_id=user_id,
            category=category,
            title=title,
            message=message,
            link=link,
            image=image,
            enqueued_at=enqueued_at,
            idempotency_key=key,
            source=source,
        )

    def next_attempt(self) -> "DispatchJob":
        return replace(self, attempts=self.attempts + 1)

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-serializable representation of the job."""

        data = asdict(self)
        data["category"] = self.category.value
        data["enqueued_at"] = self.enqueued_at.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DispatchJob":
        return cls(
            user_id=int(data["user_id"]),
            category=NotificationCategory.parse(data["category"]),
            title=data["title"],
            message=data["message"],
            link=data.get("link"),
            image=data.get("image"),
            enqueued_at=datetime.fromisoformat(data["enqueued_at"]),
            idempotency_key=data["idempotency_key"],
            source=data.get("source", JOB_SOURCE_DIRECT),
            attempts=int(data.get("attempts", 0)),
        )


__all__ = [
    "DispatchJob",
    "JOB_SOURCE_BROADCAST",
    "JOB_SOURCE_DIRECT",
    "build_idempotency_key",
]
