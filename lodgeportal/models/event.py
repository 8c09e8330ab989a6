"""
Event model.
"""
from typing import Optional
from sqlalchemy import String, Text, Boolean, JSON
from sqlalchemy.orm import Mapped, mapped_column
from lodgeportal.models.base import BaseModel


class Event(BaseModel):
    """A lodge event, or a district-wide event when lodge_id is empty."""
    __tablename__ = "events"

    title: Mapped[str] = mapped_column(String(300), nullable=False)
    # Date and time are stored as entered (YYYY-MM-DD / HH:MM), which sort lexically
    date: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    time: Mapped[str] = mapped_column(String(20), nullable=False)
    location: Mapped[str] = mapped_column(String(300), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)

    lodge_id: Mapped[Optional[str]] = mapped_column(String(24), nullable=True, index=True)
    district_id: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    is_district_wide: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_by: Mapped[Optional[str]] = mapped_column(String(24), nullable=True)

    attendees: Mapped[list] = mapped_column(JSON, default=list, nullable=False)

    def __repr__(self) -> str:
        return f"<Event {self.title} on {self.date}>"
