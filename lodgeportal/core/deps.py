"""
Request dependencies: bearer-token authentication and role gates.
"""
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from lodgeportal.core.security import decode_token
from lodgeportal.models.enums import Role

security = HTTPBearer(auto_error=False)


@dataclass
class AuthUser:
    """Identity carried by a verified access token."""
    user_id: str
    role: str
    email: Optional[str] = None
    name: Optional[str] = None
    lodge_id: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role in Role.admin_values()


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> AuthUser:
    """Resolve the caller from the Authorization header."""
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise _unauthorized("Unauthorized - No token provided")

    payload = decode_token(credentials.credentials)
    if payload is None:
        raise _unauthorized("Unauthorized - Invalid token")

    user_id = payload.get("sub")
    role = payload.get("role")
    if not user_id or not isinstance(role, str):
        raise _unauthorized("Unauthorized - Invalid token")

    return AuthUser(
        user_id=user_id,
        role=role.upper(),
        email=payload.get("email"),
        name=payload.get("name"),
        lodge_id=payload.get("lodgeId"),
    )


def require_roles(*roles: Role):
    """Build a dependency that only lets the given roles through."""
    allowed = {r.value for r in roles}

    async def dependency(current_user: AuthUser = Depends(get_current_user)) -> AuthUser:
        if current_user.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return current_user

    return dependency
