"""
Pydantic schemas for member endpoints.

Wire names are camelCase and ids are exposed as ``_id``.
"""
from typing import Optional, Any
from datetime import datetime
from pydantic import BaseModel, Field, EmailStr


class MemberCreate(BaseModel):
    """Create a new member. Required fields are checked by the handler."""
    firstName: Optional[str] = Field(None, max_length=100)
    lastName: Optional[str] = Field(None, max_length=100)
    email: Optional[EmailStr] = None
    password: Optional[str] = None
    phone: Optional[str] = Field(None, max_length=50)
    address: Optional[str] = None
    city: Optional[str] = Field(None, max_length=100)
    state: Optional[str] = Field(None, max_length=100)
    zipCode: Optional[str] = Field(None, max_length=20)
    country: Optional[str] = Field(None, max_length=100)
    occupation: Optional[str] = Field(None, max_length=200)
    bio: Optional[str] = None
    status: str = Field(default="active")
    primaryLodge: Optional[str] = None
    primaryLodgePosition: Optional[str] = None


class ProfileUpdate(BaseModel):
    """Fields a person may change on their own record."""
    firstName: Optional[str] = Field(None, min_length=1, max_length=100)
    lastName: Optional[str] = Field(None, min_length=1, max_length=100)
    phone: Optional[str] = Field(None, max_length=50)
    address: Optional[str] = None
    city: Optional[str] = Field(None, max_length=100)
    state: Optional[str] = Field(None, max_length=100)
    zipCode: Optional[str] = Field(None, max_length=20)
    country: Optional[str] = Field(None, max_length=100)
    occupation: Optional[str] = Field(None, max_length=200)
    bio: Optional[str] = None
    interests: Optional[list[str]] = None
    profileImage: Optional[str] = None


class MemberUpdate(ProfileUpdate):
    """Admin update. Roles are changed through the role endpoint only."""
    email: Optional[EmailStr] = None
    status: Optional[str] = None
    role: Optional[str] = None
    primaryLodge: Optional[str] = None
    primaryLodgePosition: Optional[str] = None
    lodges: Optional[list[str]] = None
    # Lodge id -> position title, for people holding offices in several lodges
    lodgeRoles: Optional[dict[str, str]] = None


class MemberResponse(BaseModel):
    """Member response."""
    id: str = Field(..., alias="_id")
    email: str
    name: str
    firstName: Optional[str] = None
    lastName: Optional[str] = None
    role: str
    status: str
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zipCode: Optional[str] = None
    country: Optional[str] = None
    occupation: Optional[str] = None
    bio: Optional[str] = None
    interests: list[str] = []
    profileImage: Optional[str] = None
    primaryLodge: Optional[str] = None
    primaryLodgePosition: Optional[str] = None
    lodges: list[str] = []
    lodgeMemberships: list[dict[str, Any]] = []
    administeredLodges: list[str] = []
    lodgeRoles: dict[str, Any] = {}
    memberSince: Optional[datetime] = None
    lastLogin: Optional[datetime] = None
    created: datetime
    updated: datetime

    class Config:
        from_attributes = True
        populate_by_name = True


class RoleChangeRequest(BaseModel):
    newRole: Optional[str] = None
    targetUserId: Optional[str] = None
    lodgeId: Optional[str] = None


class LodgeAdminTransferRequest(BaseModel):
    newAdminId: Optional[str] = None
    lodgeId: Optional[str] = None


class PasswordChangeRequest(BaseModel):
    """A person changing their own password. Checked by the handler."""
    currentPassword: Optional[str] = None
    newPassword: Optional[str] = None


class PasswordResetRequest(BaseModel):
    """An admin setting a new password for someone else."""
    newPassword: Optional[str] = None
