"""
Base model with common fields.
"""
import enum
import uuid
from datetime import datetime, timezone
from typing import Any
from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column
from lodgeportal.db.base import Base


def generate_id() -> str:
    """Generate a 24-character hex id, the same shape as a document-store id."""
    return uuid.uuid4().hex[:24]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def enum_value(value: Any) -> Any:
    """Return the raw value of an enum member, or the value unchanged."""
    return value.value if isinstance(value, enum.Enum) else value


class TimestampMixin:
    """Mixin for created/updated timestamps."""
    created: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False
    )
    updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False
    )


class BaseModel(Base, TimestampMixin):
    """Abstract base model with id and timestamps."""
    __abstract__ = True

    id: Mapped[str] = mapped_column(
        String(24),
        primary_key=True,
        default=generate_id
    )
