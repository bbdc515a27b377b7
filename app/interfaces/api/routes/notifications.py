"""Endpoints and websocket handler for notifications."""

from __future__ import annotations

import logging
from typing import NoReturn

from fastapi import (
    APIRouter,
    Depends,
    HTTPException,
    Query,
    WebSocket,
    WebSocketDisconnect,
    status,
)
from sqlalchemy.orm import Session

from app.application.use_cases.notifications import (
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    DispatchOutcome,
    NotificationContent,
    broadcast as broadcast_uc,
    clear_all as clear_all_uc,
    list_notifications as list_notifications_uc,
    mark_all_read as mark_all_read_uc,
    mark_read as mark_read_uc,
    notify_user as notify_user_uc,
    send_notification as send_notification_uc,
)
from app.config import Settings
from app.domain.exceptions import (
    NotFoundError,
    NotificationError,
    NothingToClearError,
    PartialFanoutError,
    QueueUnavailableError,
    ValidationError,
)
from app.infrastructure.database import SessionLocal, get_db
from app.infrastructure.notifications import notification_manager, serialize_notification
from app.infrastructure.queue import DispatchQueue
from app.infrastructure.repositories import NotificationRepository, UserRepository
from app.interfaces.api.dependencies import get_app_settings, get_dispatch_queue
from app.interfaces.api.schemas import (
    BroadcastResponse,
    ClearNotificationsResponse,
    DeadLetterRead,
    MarkAllReadResponse,
    MarkReadResponse,
    NotificationCreate,
    NotificationPageRead,
    NotificationRead,
    NotifyResponse,
)

router = APIRouter(prefix="/notifications", tags=["notifications"])
logger = logging.getLogger(__name__)


def _raise_http_error(exc: NotificationError) -> NoReturn:
    if isinstance(exc, NotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    if isinstance(exc, (ValidationError, NothingToClearError)):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    if isinstance(exc, QueueUnavailableError):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Notification queue unavailable, try again later",
            headers={"Retry-After": "5"},
        ) from exc
    if isinstance(exc, PartialFanoutError):
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={
                "message": "Broadcast was only partially enqueued",
                "total_recipients": exc.total_recipients,
                "failed_chunks": [
                    {"start": chunk.start, "end": chunk.end, "reason": chunk.reason}
                    for chunk in exc.failed_chunks
                ],
            },
        ) from exc
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc


def _to_content(payload: NotificationCreate) -> NotificationContent:
    try:
        return NotificationContent.build(
            category=payload.category,
            title=payload.title,
            message=payload.message,
            link=payload.link,
            image=payload.image,
        )
    except ValidationError as exc:
        _raise_http_error(exc)


def _notify_response(outcome: DispatchOutcome) -> NotifyResponse:
    if outcome is DispatchOutcome.ACCEPTED:
        return NotifyResponse(accepted=True, message="Notification queued")
    return NotifyResponse(accepted=False, message="Notification disabled by user preferences")


@router.post(
    "/users/{user_id}",
    response_model=NotifyResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
def notify_user(
    user_id: int,
    payload: NotificationCreate,
    db: Session = Depends(get_db),
    queue: DispatchQueue = Depends(get_dispatch_queue),
) -> NotifyResponse:
    """Queue a notification for one user, honouring their preferences."""

    content = _to_content(payload)
    try:
        outcome = notify_user_uc(db, queue, user_id=user_id, content=content)
    except NotificationError as exc:
        _raise_http_error(exc)
    return _notify_response(outcome)


@router.post(
    "/users/{user_id}/send",
    response_model=NotifyResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
def send_notification(
    user_id: int,
    payload: NotificationCreate,
    db: Session = Depends(get_db),
    queue: DispatchQueue = Depends(get_dispatch_queue),
    settings: Settings = Depends(get_app_settings),
) -> NotifyResponse:
    """Send to ``user_id``, or to every user for SYSTEM and ALERT notifications."""

    content = _to_content(payload)
    try:
        outcome = send_notification_uc(
            db,
            queue,
            user_id=user_id,
            content=content,
            chunk_size=settings.fanout_chunk_size,
        )
    except NotificationError as exc:
        _raise_http_error(exc)
    return _notify_response(outcome)


@router.post(
    "/broadcast",
    response_model=BroadcastResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
def broadcast(
    payload: NotificationCreate,
    db: Session = Depends(get_db),
    queue: DispatchQueue = Depends(get_dispatch_queue),
    settings: Settings = Depends(get_app_settings),
) -> BroadcastResponse:
    """Queue one notification per registered user."""

    content = _to_content(payload)
    try:
        result = broadcast_uc(db, queue, content=content, chunk_size=settings.fanout_chunk_size)
    except NotificationError as exc:
        _raise_http_error(exc)
    return BroadcastResponse(recipients=result.recipients, chunks=result.chunks)


@router.get("/users/{user_id}", response_model=NotificationPageRead)
def list_notifications(
    user_id: int,
    cursor: str | None = Query(default=None),
    limit: int = Query(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
) -> NotificationPageRead:
    """Return a newest-first page of the user's notifications."""

    try:
        page = list_notifications_uc(db, user_id=user_id, cursor=cursor, limit=limit)
    except NotificationError as exc:
        _raise_http_error(exc)
    return NotificationPageRead(
        data=[NotificationRead.model_validate(item) for item in page.items],
        total=page.total,
        cursor=page.cursor,
    )


@router.patch("/{notification_id}/read", response_model=MarkReadResponse)
def mark_read(notification_id: int, db: Session = Depends(get_db)) -> MarkReadResponse:
    try:
        result = mark_read_uc(db, notification_id=notification_id)
    except NotificationError as exc:
        _raise_http_error(exc)
    message = (
        "Notification already marked as read"
        if result.already_read
        else "Notification marked as read"
    )
    return MarkReadResponse(already_read=result.already_read, message=message)


@router.patch("/users/{user_id}/read-all", response_model=MarkAllReadResponse)
def mark_all_read(user_id: int, db: Session = Depends(get_db)) -> MarkAllReadResponse:
    count = mark_all_read_uc(db, user_id=user_id)
    return MarkAllReadResponse(count=count, message=f"Marked {count} notifications as read")


@router.delete("/users/{user_id}", response_model=ClearNotificationsResponse)
def clear_notifications(
    user_id: int, db: Session = Depends(get_db)
) -> ClearNotificationsResponse:
    try:
        deleted = clear_all_uc(db, user_id=user_id)
    except NotificationError as exc:
        _raise_http_error(exc)
    return ClearNotificationsResponse(deleted_count=deleted)


@router.get("/dead-letters", response_model=list[DeadLetterRead])
def list_dead_letters(
    limit: int = Query(default=100, ge=1, le=1000),
    queue: DispatchQueue = Depends(get_dispatch_queue),
) -> list[DeadLetterRead]:
    """Jobs the delivery worker gave up on, oldest first."""

    try:
        letters = queue.dead_letters(limit)
    except NotificationError as exc:
        _raise_http_error(exc)
    return [
        DeadLetterRead(
            user_id=letter.job.user_id,
            category=letter.job.category,
            title=letter.job.title,
            attempts=letter.job.attempts + 1,
            source=letter.job.source,
            reason=letter.reason,
            enqueued_at=letter.job.enqueued_at,
            failed_at=letter.failed_at,
        )
        for letter in letters
    ]


@router.websocket("/ws")
async def notifications_websocket(websocket: WebSocket) -> None:
    """Websocket endpoint that streams notifications to one user."""

    raw_user_id = websocket.query_params.get("user_id")
    if not raw_user_id or not raw_user_id.isdecimal():
        await websocket.close(code=1008)
        return
    user_id = int(raw_user_id)

    with SessionLocal() as session:
        if not UserRepository(session).exists(user_id):
            await websocket.close(code=1008)
            return
        pending_notifications = NotificationRepository(session).list_unread_for_user(user_id)

    await notification_manager.connect(user_id, websocket)
    try:
        if pending_notifications:
            await websocket.send_json(
                {
                    "type": "init",
                    "data": [serialize_notification(n) for n in pending_notifications],
                }
            )
        while True:
            try:
                message = await websocket.receive_json()
            except WebSocketDisconnect:
                raise
            except ValueError:
                continue

            if not isinstance(message, dict):
                continue

            message_type = message.get("type")
            if message_type == "ping":
                await websocket.send_json({"type": "pong"})
                continue

            if message_type == "ack":
                ids = message.get("ids", [])
                if isinstance(ids, list) and ids:
                    with SessionLocal() as ack_session:
                        NotificationRepository(ack_session).mark_many_read(
                            [i for i in ids if isinstance(i, int)], user_id=user_id
                        )
    except WebSocketDisconnect:
        logger.debug("Websocket for user %s disconnected", user_id)
    finally:
        notification_manager.disconnect(user_id, websocket)
