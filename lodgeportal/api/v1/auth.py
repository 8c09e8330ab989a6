"""
Authentication endpoints.

Endpoints:
- POST /api/auth/login - Login against the unified user store
- GET /api/auth/check - Validate the bearer token
- POST /api/auth/refresh - Re-issue a token from the stored record

Logout is handled client-side by dropping the token.
"""
import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from lodgeportal.db.base import get_db
from lodgeportal.core.deps import AuthUser, get_current_user
from lodgeportal.core.security import verify_password, create_access_token
from lodgeportal.models.base import enum_value, utcnow
from lodgeportal.models.enums import AccountStatus
from lodgeportal.models.user_record import UnifiedUser
from lodgeportal.schemas.auth import LoginRequest, LoginResponse, SessionUser, AuthCheckResponse
from lodgeportal.services import user_store
from lodgeportal.services.user_store import UserRecord

logger = logging.getLogger(__name__)

router = APIRouter()


def token_claims(record: UserRecord) -> dict[str, Any]:
    return {
        "email": record.email,
        "role": user_store.role_of(record),
        "name": user_store.display_name(record),
        "lodgeId": record.primary_lodge,
    }


def create_session_token(record: UserRecord) -> str:
    return create_access_token(subject=record.id, additional_claims=token_claims(record))


def session_user(record: UserRecord) -> SessionUser:
    return SessionUser(
        id=record.id,
        email=record.email,
        name=user_store.display_name(record),
        role=user_store.role_of(record),
        lodgeId=record.primary_lodge,
        administeredLodges=list(record.administered_lodges or []),
        profileImage=record.profile_image,
    )


@router.post("/login", response_model=LoginResponse)
async def login(
    credentials: LoginRequest,
    db: AsyncSession = Depends(get_db)
):
    """Authenticate with email and password."""
    if not credentials.email or not credentials.password:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email and password are required"
        )

    result = await db.execute(
        select(UnifiedUser).where(func.lower(UnifiedUser.email) == credentials.email.strip().lower())
    )
    user = result.scalars().first()

    if user is None or not verify_password(credentials.password, user.password_hash):
        logger.info("Failed login for %s", credentials.email)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password"
        )

    if enum_value(user.status) != AccountStatus.ACTIVE.value:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is not active"
        )

    user.last_login = utcnow()
    await db.flush()

    return LoginResponse(
        success=True,
        user=session_user(user),
        token=create_session_token(user),
    )


@router.get("/check", response_model=AuthCheckResponse)
async def check(current_user: AuthUser = Depends(get_current_user)):
    """Return the identity carried by the token."""
    return AuthCheckResponse(
        authenticated=True,
        userId=current_user.user_id,
        role=current_user.role,
        email=current_user.email,
        name=current_user.name,
        lodgeId=current_user.lodge_id,
    )


@router.post("/refresh", response_model=LoginResponse)
async def refresh_token(
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser = Depends(get_current_user)
):
    """
    Issue a fresh token reflecting the current stored role.

    Reads the same unifiedusers row that login reads.
    """
    user = await db.get(UnifiedUser, current_user.user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )
    if enum_value(user.status) != AccountStatus.ACTIVE.value:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is not active"
        )
    return LoginResponse(
        success=True,
        user=session_user(user),
        token=create_session_token(user),
    )
