"""
Direct message endpoints.

Clients poll GET /api/messages and GET /api/messages/unread; there is no push
channel.
"""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from lodgeportal.db.base import get_db
from lodgeportal.core.deps import AuthUser, get_current_user
from lodgeportal.models.message import Message
from lodgeportal.models.enums import NotificationType
from lodgeportal.schemas.common import MessageResponse
from lodgeportal.schemas.message import (
    MessageCreate,
    MessageOut,
    ConversationOut,
    UnreadCountResponse,
)
from lodgeportal.services import user_store, messaging, notifications

logger = logging.getLogger(__name__)

router = APIRouter()


def message_to_response(message: Message) -> MessageOut:
    """Convert Message model to MessageOut schema."""
    return MessageOut(
        id=message.id,
        senderId=message.sender_id,
        senderName=message.sender_name,
        senderRole=message.sender_role,
        senderProfileImage=message.sender_profile_image,
        recipientId=message.recipient_id,
        recipientName=message.recipient_name,
        recipientProfileImage=message.recipient_profile_image,
        subject=message.subject,
        content=message.content,
        timestamp=message.timestamp,
        isRead=message.is_read,
    )


@router.get("", response_model=list[MessageOut])
async def list_messages(
    contactId: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser = Depends(get_current_user)
):
    """
    The caller's messages, newest first.
    With ``contactId``, only the thread with that contact; incoming messages
    in the thread are marked read.
    """
    messages = await messaging.messages_for(db, current_user.user_id, contactId)

    if contactId:
        unread = [m for m in messages if m.recipient_id == current_user.user_id and not m.is_read]
        for message in unread:
            message.is_read = True
        if unread:
            await db.flush()

    return [message_to_response(m) for m in messages]


@router.post("", response_model=MessageOut, status_code=status.HTTP_201_CREATED)
async def send_message(
    message_data: MessageCreate,
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser = Depends(get_current_user)
):
    """Send a message and notify the recipient."""
    if not message_data.recipientId or not message_data.subject or not message_data.content:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing required fields: recipientId, subject and content"
        )

    sender = await user_store.locate(db, current_user.user_id)
    if sender is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Sender not found"
        )
    recipient = await user_store.locate(db, message_data.recipientId)
    if recipient is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Recipient not found"
        )

    sender_name = user_store.display_name(sender.record)
    message = Message(
        sender_id=sender.record.id,
        sender_name=sender_name,
        sender_role=user_store.role_of(sender.record),
        sender_profile_image=sender.record.profile_image,
        recipient_id=recipient.record.id,
        recipient_name=user_store.display_name(recipient.record),
        recipient_profile_image=recipient.record.profile_image,
        subject=message_data.subject,
        content=message_data.content,
        is_read=False,
    )
    db.add(message)
    await db.flush()

    await notifications.notify_user(
        db,
        recipient.record.id,
        NotificationType.MESSAGE,
        title="New Message",
        message=f"{sender_name}: {message.subject}",
        related_id=message.id,
        from_user_id=sender.record.id,
        from_user_name=sender_name,
    )

    return message_to_response(message)


@router.get("/unread", response_model=UnreadCountResponse)
async def get_unread_count(
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser = Depends(get_current_user)
):
    """Number of unread messages addressed to the caller."""
    return UnreadCountResponse(count=await messaging.unread_count(db, current_user.user_id))


@router.get("/conversations", response_model=list[ConversationOut])
async def list_conversations(
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser = Depends(get_current_user)
):
    """The caller's messages grouped per contact, most recent conversation first."""
    messages = await messaging.messages_for(db, current_user.user_id)
    return [
        ConversationOut(
            conversationId=conversation.key,
            contactId=conversation.contact_id,
            contactName=conversation.contact_name,
            lastMessage=message_to_response(conversation.last_message),
            messageCount=conversation.message_count,
            unreadCount=conversation.unread_count,
        )
        for conversation in messaging.group_conversations(messages, current_user.user_id)
    ]


@router.delete("/{message_id}", response_model=MessageResponse)
async def delete_message(
    message_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser = Depends(get_current_user)
):
    """Delete a message. Only its sender or recipient may do so."""
    message = await db.get(Message, message_id)
    if message is None or current_user.user_id not in (message.sender_id, message.recipient_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Message not found"
        )

    await db.delete(message)
    await db.flush()

    return MessageResponse(message="Message deleted successfully")
