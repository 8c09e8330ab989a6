"""
Candidate model - a prospective member under review by a lodge.
"""
from typing import Optional
from datetime import date, datetime
from sqlalchemy import String, Text, Date, DateTime, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column
from lodgeportal.models.base import BaseModel, utcnow
from lodgeportal.models.enums import CandidateStatus


class Candidate(BaseModel):
    __tablename__ = "candidates"

    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    date_of_birth: Mapped[str] = mapped_column(String(20), nullable=False)
    living_location: Mapped[str] = mapped_column(String(200), nullable=False)
    profession: Mapped[str] = mapped_column(String(200), nullable=False)
    notes: Mapped[str] = mapped_column(Text, default="", nullable=False)

    status: Mapped[CandidateStatus] = mapped_column(
        SQLEnum(CandidateStatus, name="candidatestatus", values_callable=lambda x: [e.value for e in x]),
        default=CandidateStatus.PENDING,
        nullable=False,
        index=True
    )

    submitted_by: Mapped[str] = mapped_column(String(200), default="System", nullable=False)
    submission_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    id_photo_url: Mapped[str] = mapped_column(Text, default="/default-avatar.png", nullable=False)

    # Submitting lodge, by name and by id
    lodge: Mapped[str] = mapped_column(String(200), default="", nullable=False)
    lodge_id: Mapped[Optional[str]] = mapped_column(String(24), nullable=True, index=True)

    # Review window; days left is derived from end_date at read time
    start_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    end_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    def __repr__(self) -> str:
        return f"<Candidate {self.first_name} {self.last_name} ({self.status})>"
