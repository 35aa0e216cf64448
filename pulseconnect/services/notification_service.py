"""
Notification Service - in-app notifications for donors and hospitals.

Provides the enqueue call used by donation_events and the idempotent
read/delete operations behind /me/notifications.
"""

from uuid import UUID

from sqlalchemy import update
from sqlalchemy.orm import Session

from pulseconnect.db.base import utcnow
from pulseconnect.db.enums import ActorRole, NotificationKind
from pulseconnect.db.models import Notification
from pulseconnect.services.errors import NotFound
from pulseconnect.services.store import guarded


# =============================================================================
# Enqueue
# =============================================================================


def notify(
    db: Session,
    user_id: UUID,
    role: ActorRole,
    kind: NotificationKind,
    title: str,
    message: str,
    entity_type: str | None = None,
    entity_id: UUID | None = None,
    timeout: float | None = None,
) -> Notification:
    """
    Create a notification for one user.

    Commits on its own so it can run after the triggering transition
    committed; a failure here never undoes that transition.
    """
    with guarded(db, timeout):
        notification = Notification(
            user_id=user_id,
            role=role.value,
            kind=kind.value,
            title=title,
            message=message,
            entity_type=entity_type,
            entity_id=entity_id,
        )
        db.add(notification)
        db.commit()
    db.refresh(notification)
    return notification


# =============================================================================
# Reads
# =============================================================================


def list_notifications(
    db: Session,
    user_id: UUID,
    unread_only: bool = False,
    kinds: list[str] | None = None,
    limit: int = 20,
    offset: int = 0,
    timeout: float | None = None,
) -> list[Notification]:
    """Get notifications for user, newest first."""
    with guarded(db, timeout):
        query = db.query(Notification).filter(Notification.user_id == user_id)

        if unread_only:
            query = query.filter(Notification.is_read.is_(False))

        if kinds:
            query = query.filter(Notification.kind.in_(kinds))

        return (
            query.order_by(Notification.created_at.desc(), Notification.id.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )


def get_unread_count(db: Session, user_id: UUID, timeout: float | None = None) -> int:
    """Get count of unread notifications."""
    with guarded(db, timeout):
        return db.query(Notification).filter(
            Notification.user_id == user_id,
            Notification.is_read.is_(False),
        ).count()


# =============================================================================
# Read state / deletion (idempotent)
# =============================================================================


def mark_read(
    db: Session,
    notification_id: UUID,
    user_id: UUID,
    timeout: float | None = None,
) -> Notification:
    """Mark a notification as read. Re-marking is a no-op."""
    with guarded(db, timeout):
        db.execute(
            update(Notification)
            .where(
                Notification.id == notification_id,
                Notification.user_id == user_id,
                Notification.is_read.is_(False),
            )
            .values(is_read=True, read_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        db.commit()

    notification = db.query(Notification).filter(
        Notification.id == notification_id,
        Notification.user_id == user_id,
    ).first()
    if not notification:
        raise NotFound(f"Notification {notification_id} not found")
    db.refresh(notification)
    return notification


def mark_all_read(db: Session, user_id: UUID, timeout: float | None = None) -> int:
    """Mark all notifications as read. Returns count updated."""
    with guarded(db, timeout):
        result = db.execute(
            update(Notification)
            .where(
                Notification.user_id == user_id,
                Notification.is_read.is_(False),
            )
            .values(is_read=True, read_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        db.commit()
    return result.rowcount


def delete(
    db: Session,
    notification_id: UUID,
    user_id: UUID,
    timeout: float | None = None,
) -> bool:
    """Delete a notification. Returns False when it was already gone."""
    with guarded(db, timeout):
        deleted = db.query(Notification).filter(
            Notification.id == notification_id,
            Notification.user_id == user_id,
        ).delete(synchronize_session=False)
        db.commit()
    return bool(deleted)
