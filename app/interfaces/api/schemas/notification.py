"""Pydantic models describing notification payloads."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from app.domain.entities import NotificationCategory


class NotificationCreate(BaseModel):
    """Content of a notification to send to one user or to everybody."""

    category: NotificationCategory
    title: str = Field(..., min_length=1, max_length=120)
    message: str = Field(..., min_length=1)
    link: str | None = Field(
        default=None, max_length=500, description="Target URI opened by the client"
    )
    image: str | None = Field(
        default=None,
        max_length=500,
        description="Image reference shown with the notification",
    )


class NotificationRead(BaseModel):
    """Representation of a stored notification delivered to the client."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    category: NotificationCategory
    title: str
    message: str
    link: str | None = None
    image: str | None = None
    read: bool = False
    created_at: datetime


class NotificationPageRead(BaseModel):
    data: list[NotificationRead]
    total: int
    cursor: str | None = None


class NotifyResponse(BaseModel):
    accepted: bool
    message: str


class BroadcastResponse(BaseModel):
    ok: bool = True
    recipients: int
    chunks: int


class MarkReadResponse(BaseModel):
    ok: bool = True
    already_read: bool
    message: str


class MarkAllReadResponse(BaseModel):
    ok: bool = True
    count: int
    message: str


class ClearNotificationsResponse(BaseModel):
    ok: bool = True
    deleted_count: int


class DeadLetterRead(BaseModel):
    """A job the delivery worker gave up on."""

    user_id: int
    category: NotificationCategory
    title: str
    attempts: int
    source: str
    reason: str
    enqueued_at: datetime
    failed_at: datetime


__all__ = [
    "BroadcastResponse",
    "ClearNotificationsResponse",
    "DeadLetterRead",
    "MarkAllReadResponse",
    "MarkReadResponse",
    "NotificationCreate",
    "NotificationPageRead",
    "NotificationRead",
    "NotifyResponse",
]
