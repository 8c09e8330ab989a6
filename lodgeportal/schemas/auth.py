"""
Pydantic schemas for authentication.
"""
from typing import Optional
from pydantic import BaseModel, Field


class LoginRequest(BaseModel):
    """Login request. Fields are checked by the handler so a missing one is a 400."""
    email: Optional[str] = None
    password: Optional[str] = None


class SessionUser(BaseModel):
    """The signed-in person as seen by the client."""
    id: str = Field(..., alias="_id")
    email: str
    name: str
    role: str
    lodgeId: Optional[str] = None
    administeredLodges: list[str] = []
    profileImage: Optional[str] = None

    class Config:
        populate_by_name = True


class LoginResponse(BaseModel):
    success: bool = True
    user: SessionUser
    token: str


class AuthCheckResponse(BaseModel):
    authenticated: bool = True
    userId: str
    role: str
    email: Optional[str] = None
    name: Optional[str] = None
    lodgeId: Optional[str] = None
