"""
Direct message between two people.
"""
from typing import Optional
from datetime import datetime
from sqlalchemy import String, Text, Boolean, DateTime
from sqlalchemy.orm import Mapped, mapped_column
from lodgeportal.models.base import BaseModel, utcnow


class Message(BaseModel):
    __tablename__ = "messages"

    sender_id: Mapped[str] = mapped_column(String(24), nullable=False, index=True)
    sender_name: Mapped[str] = mapped_column(String(200), nullable=False)
    sender_role: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    sender_profile_image: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    recipient_id: Mapped[str] = mapped_column(String(24), nullable=False, index=True)
    recipient_name: Mapped[str] = mapped_column(String(200), nullable=False)
    recipient_profile_image: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    subject: Mapped[str] = mapped_column(String(300), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    @property
    def conversation_key(self) -> str:
        """Composite key of the two participants, independent of direction."""
        return "_".join(sorted((self.sender_id, self.recipient_id)))

    def __repr__(self) -> str:
        return f"<Message {self.sender_id} -> {self.recipient_id}>"
