"""
Notifications Router - /me/notifications endpoints.

Listing, unread count, read state and deletion. All writes are idempotent.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from pulseconnect.core.deps import get_current_actor, get_db
from pulseconnect.db.enums import NotificationKind
from pulseconnect.schemas.auth import ActorSession
from pulseconnect.schemas.notification import (
    NotificationListResponse,
    NotificationRead,
    UnreadCountResponse,
)
from pulseconnect.services import notification_service


router = APIRouter()


@router.get("/notifications", response_model=NotificationListResponse)
def list_notifications(
    unread_only: bool = Query(False),
    kind: list[NotificationKind] | None = Query(None),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    session: ActorSession = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """Get the caller's notifications, newest first."""
    notifications = notification_service.list_notifications(
        db=db,
        user_id=session.actor_id,
        unread_only=unread_only,
        kinds=[k.value for k in kind] if kind else None,
        limit=limit,
        offset=offset,
    )
    unread_count = notification_service.get_unread_count(db=db, user_id=session.actor_id)
    return NotificationListResponse(
        items=[NotificationRead.model_validate(n) for n in notifications],
        unread_count=unread_count,
    )


@router.get("/notifications/count", response_model=UnreadCountResponse)
def get_unread_count(
    session: ActorSession = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """Get unread notification count (for polling)."""
    count = notification_service.get_unread_count(db=db, user_id=session.actor_id)
    return UnreadCountResponse(count=count)


@router.patch("/notifications/{notification_id}/read", response_model=NotificationRead)
def mark_notification_read(
    notification_id: UUID,
    session: ActorSession = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """Mark a notification as read."""
    return notification_service.mark_read(
        db=db, notification_id=notification_id, user_id=session.actor_id
    )


@router.post("/notifications/read-all")
def mark_all_read(
    session: ActorSession = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """Mark all notifications as read."""
    count = notification_service.mark_all_read(db=db, user_id=session.actor_id)
    return {"marked_read": count}


@router.delete("/notifications/{notification_id}", status_code=204)
def delete_notification(
    notification_id: UUID,
    session: ActorSession = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """Delete a notification. Deleting twice is fine."""
    notification_service.delete(
        db=db, notification_id=notification_id, user_id=session.actor_id
    )
