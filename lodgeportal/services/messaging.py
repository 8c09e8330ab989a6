"""
Direct-message threads.
"""
from dataclasses import dataclass, field
from typing import Iterable, Optional

from sqlalchemy import select, or_, and_, func
from sqlalchemy.ext.asyncio import AsyncSession

from lodgeportal.models.message import Message


@dataclass
class Conversation:
    key: str
    contact_id: str
    contact_name: str
    last_message: Message
    message_count: int = 0
    unread_count: int = 0
    messages: list[Message] = field(default_factory=list)


def group_conversations(messages: Iterable[Message], viewer_id: str) -> list[Conversation]:
    """
    Group messages by participant pair.

    ``messages`` must already be ordered newest first; the first message seen
    for a pair becomes its last message, and conversations keep that order.
    """
    conversations: dict[str, Conversation] = {}
    for message in messages:
        key = message.conversation_key
        conversation = conversations.get(key)
        if conversation is None:
            incoming = message.sender_id != viewer_id
            conversation = Conversation(
                key=key,
                contact_id=message.sender_id if incoming else message.recipient_id,
                contact_name=message.sender_name if incoming else message.recipient_name,
                last_message=message,
            )
            conversations[key] = conversation
        conversation.messages.append(message)
        conversation.message_count += 1
        if message.recipient_id == viewer_id and not message.is_read:
            conversation.unread_count += 1
    return list(conversations.values())


async def messages_for(
    db: AsyncSession,
    user_id: str,
    contact_id: Optional[str] = None,
) -> list[Message]:
    """Messages sent or received by a user, newest first, optionally with one contact."""
    if contact_id:
        condition = or_(
            and_(Message.sender_id == user_id, Message.recipient_id == contact_id),
            and_(Message.sender_id == contact_id, Message.recipient_id == user_id),
        )
    else:
        condition = or_(Message.sender_id == user_id, Message.recipient_id == user_id)
    result = await db.execute(
        select(Message).where(condition).order_by(Message.timestamp.desc(), Message.id.desc())
    )
    return list(result.scalars().all())


async def unread_count(db: AsyncSession, user_id: str) -> int:
    result = await db.execute(
        select(func.count()).select_from(Message).where(
            Message.recipient_id == user_id,
            Message.is_read == False,  # noqa: E712
        )
    )
    return result.scalar() or 0
