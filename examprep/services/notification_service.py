"""Service layer for user notifications."""
import logging

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session as DbSession

from examprep.models.db.notification import Notification

logger = logging.getLogger(__name__)


class DatabaseNotifier:
    """Delivers notifications by storing them for the recipient.

    Shares the caller's session, so it must only be called once the caller
    has committed its own work; a failed insert is rolled back alone.
    """

    def __init__(self, db: DbSession) -> None:
        self.db = db

    def notify(self, user_id: int, title: str, message: str, kind: str = "info") -> None:
        notification = Notification(
            user_id=user_id, title=title, message=message, kind=kind
        )
        self.db.add(notification)
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
        logger.debug("Notified user %s: %s", user_id, title)


def list_notifications(db: DbSession, user_id: int, limit: int = 100) -> list[Notification]:
    """Get a user's notifications, newest first."""
    return list(
        db.execute(
            select(Notification)
            .where(Notification.user_id == user_id)
            .order_by(Notification.created_at.desc(), Notification.id.desc())
            .limit(limit)
        ).scalars().all()
    )


def mark_as_read(db: DbSession, notification_id: int, user_id: int) -> bool:
    """Mark one of the user's notifications as read."""
    notification = db.get(Notification, notification_id)
    if notification is None or notification.user_id != user_id:
        return False

    notification.is_read = True
    db.commit()
    return True
