"""
In-app notifications raised by candidates, events and messages.

Notifying is a side effect of another write: inserts run in a savepoint, and
failures are rolled back, logged, and never fail the request that triggered
them.
"""
import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from lodgeportal.models.enums import NotificationType
from lodgeportal.models.notification import Notification
from lodgeportal.services import user_store

logger = logging.getLogger(__name__)


async def notify_user(
    db: AsyncSession,
    user_id: str,
    type: NotificationType,
    title: str,
    message: str,
    related_id: Optional[str] = None,
    lodge_id: Optional[str] = None,
    from_user_id: Optional[str] = None,
    from_user_name: Optional[str] = None,
) -> Optional[Notification]:
    """Create one notification; returns None when the write fails."""
    notification = Notification(
        user_id=user_id,
        type=type,
        title=title,
        message=message,
        related_id=related_id,
        lodge_id=lodge_id,
        from_user_id=from_user_id,
        from_user_name=from_user_name,
        read=False,
    )
    try:
        async with db.begin_nested():
            db.add(notification)
            await db.flush()
    except SQLAlchemyError:
        logger.exception("Failed to notify %s (%s)", user_id, type.value)
        return None
    return notification


async def notify_lodge(
    db: AsyncSession,
    lodge_id: str,
    type: NotificationType,
    title: str,
    message: str,
    related_id: Optional[str] = None,
    exclude_id: Optional[str] = None,
    from_user_id: Optional[str] = None,
    from_user_name: Optional[str] = None,
) -> int:
    """Notify every person belonging to a lodge. Returns how many were created."""
    try:
        people = await user_store.people_in_lodge(db, lodge_id)
        notifications = [
            Notification(
                user_id=person.id,
                type=type,
                title=title,
                message=message,
                related_id=related_id,
                lodge_id=lodge_id,
                from_user_id=from_user_id,
                from_user_name=from_user_name,
                read=False,
            )
            for person in people
            if person.id != exclude_id
        ]
        async with db.begin_nested():
            db.add_all(notifications)
            await db.flush()
    except SQLAlchemyError:
        logger.exception("Failed to notify members of lodge %s", lodge_id)
        return 0

    logger.info("Sent %s %s notifications to lodge %s", len(notifications), type.value, lodge_id)
    return len(notifications)
