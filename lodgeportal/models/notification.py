"""
In-app notification.
"""
from typing import Optional
from sqlalchemy import String, Text, Boolean, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column
from lodgeportal.models.base import BaseModel
from lodgeportal.models.enums import NotificationType


class Notification(BaseModel):
    __tablename__ = "notifications"

    user_id: Mapped[str] = mapped_column(String(24), nullable=False, index=True)
    type: Mapped[NotificationType] = mapped_column(
        SQLEnum(NotificationType, name="notificationtype", values_callable=lambda x: [e.value for e in x]),
        nullable=False
    )
    title: Mapped[str] = mapped_column(String(300), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)

    # Id of the candidate, message or event the notification points at
    related_id: Mapped[Optional[str]] = mapped_column(String(24), nullable=True)
    lodge_id: Mapped[Optional[str]] = mapped_column(String(24), nullable=True)
    from_user_id: Mapped[Optional[str]] = mapped_column(String(24), nullable=True)
    from_user_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

    read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    def __repr__(self) -> str:
        return f"<Notification {self.type} for {self.user_id}>"
