"""Role & lodge-scope helpers shared by the routers."""
from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from lodgeportal.core.deps import AuthUser
from lodgeportal.models.enums import Role
from lodgeportal.services import user_store
from lodgeportal.services.user_store import LocatedRecord

DISTRICT_MANAGERS = (Role.SUPER_ADMIN.value, Role.DISTRICT_ADMIN.value)


def is_district_manager(user: AuthUser) -> bool:
    return user.role in DISTRICT_MANAGERS


def require_admin(user: AuthUser, detail: str = "Insufficient permissions") -> None:
    if not user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


async def get_caller_record(db: AsyncSession, user: AuthUser) -> LocatedRecord:
    """The caller's own row. A token for a deleted person is a 404."""
    located = await user_store.locate(db, user.user_id)
    if located is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return located


async def administered_lodges(db: AsyncSession, user: AuthUser) -> list[str]:
    """Lodges the caller administers according to the stored record, not the token."""
    located = await user_store.locate(db, user.user_id)
    if located is None:
        return []
    return list(located.record.administered_lodges or [])


async def can_manage_lodge(db: AsyncSession, user: AuthUser, lodge_id: Optional[str]) -> bool:
    """Super and district admins manage every lodge; lodge admins only their own."""
    if is_district_manager(user):
        return True
    if user.role != Role.LODGE_ADMIN.value or not lodge_id:
        return False
    return lodge_id in await administered_lodges(db, user)


async def require_lodge_access(
    db: AsyncSession,
    user: AuthUser,
    lodge_id: Optional[str],
    detail: str = "Not authorized to manage this lodge",
) -> None:
    if not await can_manage_lodge(db, user, lodge_id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


async def caller_district_lodges(db: AsyncSession, user: AuthUser) -> list[str]:
    """Ids of the lodges sharing a district with the caller's primary lodge."""
    located = await user_store.locate(db, user.user_id)
    lodge_id = user.lodge_id
    if located is not None and located.record.primary_lodge:
        lodge_id = located.record.primary_lodge
    return await user_store.district_lodge_ids(db, lodge_id)
