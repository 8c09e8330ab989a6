"""
Notification endpoints. Every route only touches the caller's own notifications.
"""
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from lodgeportal.db.base import get_db
from lodgeportal.core.deps import AuthUser, get_current_user
from lodgeportal.models.base import enum_value
from lodgeportal.models.notification import Notification
from lodgeportal.schemas.common import MessageResponse
from lodgeportal.schemas.message import NotificationOut, NotificationUpdate

router = APIRouter()


def notification_to_response(notification: Notification) -> NotificationOut:
    return NotificationOut(
        id=notification.id,
        userId=notification.user_id,
        type=enum_value(notification.type),
        title=notification.title,
        message=notification.message,
        relatedId=notification.related_id,
        lodgeId=notification.lodge_id,
        fromUserId=notification.from_user_id,
        fromUserName=notification.from_user_name,
        read=notification.read,
        created=notification.created,
    )


async def _load_own(db: AsyncSession, notification_id: str, user: AuthUser) -> Notification:
    notification = await db.get(Notification, notification_id)
    if notification is None or notification.user_id != user.user_id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Notification not found"
        )
    return notification


@router.get("", response_model=list[NotificationOut])
async def list_notifications(
    unread: bool = False,
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser = Depends(get_current_user)
):
    """The caller's notifications, newest first."""
    query = (
        select(Notification)
        .where(Notification.user_id == current_user.user_id)
        .order_by(Notification.created.desc(), Notification.id.desc())
    )
    if unread:
        query = query.where(Notification.read == False)  # noqa: E712
    result = await db.execute(query)
    return [notification_to_response(n) for n in result.scalars().all()]


@router.post("/read-all", response_model=MessageResponse)
async def mark_all_read(
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser = Depends(get_current_user)
):
    """Mark every notification of the caller as read."""
    await db.execute(
        update(Notification)
        .where(Notification.user_id == current_user.user_id, Notification.read == False)  # noqa: E712
        .values(read=True)
        .execution_options(synchronize_session="fetch")
    )
    await db.flush()
    return MessageResponse(message="All notifications marked as read")


@router.patch("/{notification_id}", response_model=NotificationOut)
async def update_notification(
    notification_id: str,
    body: NotificationUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser = Depends(get_current_user)
):
    """Mark one notification read (or unread)."""
    notification = await _load_own(db, notification_id, current_user)
    notification.read = body.read
    await db.flush()
    return notification_to_response(notification)


@router.delete("/{notification_id}", response_model=MessageResponse)
async def delete_notification(
    notification_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser = Depends(get_current_user)
):
    """Delete one of the caller's notifications."""
    notification = await _load_own(db, notification_id, current_user)
    await db.delete(notification)
    await db.flush()
    return MessageResponse(message="Notification deleted successfully")
