"""
Pydantic schemas for direct messages and notifications.
"""
from typing import Optional
from datetime import datetime
from pydantic import BaseModel, Field


class MessageCreate(BaseModel):
    recipientId: Optional[str] = None
    subject: Optional[str] = None
    content: Optional[str] = None


class MessageOut(BaseModel):
    id: str = Field(..., alias="_id")
    senderId: str
    senderName: str
    senderRole: Optional[str] = None
    senderProfileImage: Optional[str] = None
    recipientId: str
    recipientName: str
    recipientProfileImage: Optional[str] = None
    subject: str
    content: str
    timestamp: datetime
    isRead: bool

    class Config:
        populate_by_name = True


class ConversationOut(BaseModel):
    conversationId: str
    contactId: str
    contactName: str
    lastMessage: MessageOut
    messageCount: int
    unreadCount: int


class UnreadCountResponse(BaseModel):
    count: int


class NotificationOut(BaseModel):
    id: str = Field(..., alias="_id")
    userId: str
    type: str
    title: str
    message: str
    relatedId: Optional[str] = None
    lodgeId: Optional[str] = None
    fromUserId: Optional[str] = None
    fromUserName: Optional[str] = None
    read: bool
    created: datetime

    class Config:
        populate_by_name = True


class NotificationUpdate(BaseModel):
    read: bool = True
