"""
The three overlapping user stores.

The same person can have a row in ``members`` (legacy member store), ``users``
(admin accounts) and ``unifiedusers`` (consolidated store used for login).
Rows describing the same person share one id. Nothing at the database level
keeps the copies consistent; services/user_store.py propagates updates.
"""
from typing import Optional
from datetime import datetime
from sqlalchemy import String, Text, DateTime, JSON, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column
from lodgeportal.models.base import BaseModel, utcnow
from lodgeportal.models.enums import Role, AccountStatus


class UserRecordMixin:
    """Columns shared by every user-like table."""

    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    password_hash: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Either name or first/last name is set, depending on which store wrote the row
    name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    first_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    last_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    role: Mapped[Role] = mapped_column(
        SQLEnum(Role, name="userrole", values_callable=lambda x: [e.value for e in x]),
        default=Role.LODGE_MEMBER,
        nullable=False,
        index=True
    )
    status: Mapped[AccountStatus] = mapped_column(
        SQLEnum(AccountStatus, name="accountstatus", values_callable=lambda x: [e.value for e in x]),
        default=AccountStatus.ACTIVE,
        nullable=False
    )

    # Contact and profile
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    city: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    state: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    zip_code: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    country: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    occupation: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    bio: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    interests: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    profile_image: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Lodge associations. primary_lodge is usually a lodge id but some
    # legacy rows hold the lodge name instead.
    primary_lodge: Mapped[Optional[str]] = mapped_column(String(200), nullable=True, index=True)
    primary_lodge_position: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    lodges: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    lodge_memberships: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    administered_lodges: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    lodge_roles: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)

    member_since: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    last_login: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class Member(BaseModel, UserRecordMixin):
    """Legacy member store."""
    __tablename__ = "members"

    def __repr__(self) -> str:
        return f"<Member {self.email} ({self.role})>"


class User(BaseModel, UserRecordMixin):
    """Admin account store."""
    __tablename__ = "users"

    def __repr__(self) -> str:
        return f"<User {self.email} ({self.role})>"


class UnifiedUser(BaseModel, UserRecordMixin):
    """Consolidated store; login reads from here."""
    __tablename__ = "unifiedusers"

    def __repr__(self) -> str:
        return f"<UnifiedUser {self.email} ({self.role})>"


# Lookup priority order used everywhere a person is resolved by id
USER_MODELS = (Member, User, UnifiedUser)
