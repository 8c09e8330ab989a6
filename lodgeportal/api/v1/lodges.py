"""
Lodge endpoints.
"""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from lodgeportal.db.base import get_db
from lodgeportal.core.config import settings
from lodgeportal.core.deps import AuthUser, get_current_user, require_roles
from lodgeportal.core.permissions import require_lodge_access, caller_district_lodges
from lodgeportal.models.base import utcnow
from lodgeportal.models.enums import Role, LodgePosition
from lodgeportal.models.lodge import Lodge
from lodgeportal.schemas.common import MessageResponse
from lodgeportal.schemas.lodge import (
    LodgeCreate,
    LodgeUpdate,
    LodgeResponse,
    LodgePositionsResponse,
    OccupiedPosition,
)
from lodgeportal.schemas.member import MemberResponse
from lodgeportal.api.v1.members import member_to_response
from lodgeportal.services import user_store

logger = logging.getLogger(__name__)

router = APIRouter()

FIELD_MAP = {
    "name": "name",
    "location": "location",
    "number": "number",
    "lat": "lat",
    "lng": "lng",
    "description": "description",
    "foundedYear": "founded_year",
    "logoImage": "logo_image",
    "backgroundImage": "background_image",
    "isActive": "is_active",
    "district": "district",
}


def lodge_to_response(lodge: Lodge, member_count: int = 0) -> LodgeResponse:
    """Convert Lodge model to LodgeResponse schema."""
    return LodgeResponse(
        id=lodge.id,
        name=lodge.name,
        number=lodge.number,
        location=lodge.location,
        lat=lodge.lat,
        lng=lodge.lng,
        description=lodge.description,
        foundedYear=lodge.founded_year,
        logoImage=lodge.logo_image,
        backgroundImage=lodge.background_image,
        isActive=lodge.is_active,
        district=lodge.district,
        isDistrictLodge=lodge.name == settings.DISTRICT_LODGE_NAME,
        memberCount=member_count,
        createdBy=lodge.created_by,
        created=lodge.created,
        updated=lodge.updated,
    )


async def _load(db: AsyncSession, lodge_id: str) -> Lodge:
    lodge = await db.get(Lodge, lodge_id)
    if lodge is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Lodge not found"
        )
    return lodge


async def _member_counts(db: AsyncSession) -> dict[str, int]:
    """Distinct people per lodge id across the three stores."""
    people: dict[str, set[str]] = {}
    for record in await user_store.all_records(db):
        for lodge_id in user_store.lodge_ids(record):
            people.setdefault(lodge_id, set()).add(record.id)
    return {lodge_id: len(ids) for lodge_id, ids in people.items()}


@router.get("", response_model=list[LodgeResponse])
async def list_lodges(
    district: bool = False,
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser = Depends(get_current_user)
):
    """
    List lodges with their member counts.
    ``district=true`` limits a district admin to the lodges of their district.
    """
    query = select(Lodge).order_by(Lodge.name.asc())
    if district and current_user.role == Role.DISTRICT_ADMIN.value:
        scope = await caller_district_lodges(db, current_user)
        query = query.where(Lodge.id.in_(scope))

    result = await db.execute(query)
    counts = await _member_counts(db)
    return [lodge_to_response(lodge, counts.get(lodge.id, 0)) for lodge in result.scalars().all()]


@router.post("", response_model=LodgeResponse, status_code=status.HTTP_201_CREATED)
async def create_lodge(
    lodge_data: LodgeCreate,
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser = Depends(require_roles(Role.SUPER_ADMIN, Role.DISTRICT_ADMIN))
):
    """
    Create a lodge.
    Requires a super or district admin.
    """
    result = await db.execute(
        select(func.count()).select_from(Lodge).where(func.lower(Lodge.name) == lodge_data.name.strip().lower())
    )
    if (result.scalar() or 0) > 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="A lodge with this name already exists"
        )

    lodge = Lodge(
        name=lodge_data.name.strip(),
        location=lodge_data.location,
        number=lodge_data.number or "N/A",
        lat=lodge_data.lat if lodge_data.lat is not None else settings.DEFAULT_LODGE_LAT,
        lng=lodge_data.lng if lodge_data.lng is not None else settings.DEFAULT_LODGE_LNG,
        description=lodge_data.description,
        founded_year=lodge_data.foundedYear,
        logo_image=lodge_data.logoImage,
        background_image=lodge_data.backgroundImage,
        is_active=lodge_data.isActive,
        district=lodge_data.district,
        created_by=current_user.user_id,
    )
    db.add(lodge)
    await db.flush()

    logger.info("Lodge %s (%s) created by %s", lodge.id, lodge.name, current_user.user_id)
    return lodge_to_response(lodge)


@router.get("/district", response_model=LodgeResponse)
async def get_district_lodge(
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser = Depends(get_current_user)
):
    """The district grand lodge."""
    lodge = await user_store.district_lodge(db)
    if lodge is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="District lodge not found"
        )
    people = await user_store.people_in_lodge(db, lodge.id)
    return lodge_to_response(lodge, len(people))


@router.get("/{lodge_id}", response_model=LodgeResponse)
async def get_lodge(
    lodge_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser = Depends(get_current_user)
):
    """Get a lodge by ID."""
    lodge = await _load(db, lodge_id)
    people = await user_store.people_in_lodge(db, lodge.id)
    return lodge_to_response(lodge, len(people))


@router.patch("/{lodge_id}", response_model=LodgeResponse)
async def update_lodge(
    lodge_id: str,
    lodge_data: LodgeUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser = Depends(get_current_user)
):
    """
    Update a lodge.
    Requires a super or district admin, or an admin of this lodge.
    """
    lodge = await _load(db, lodge_id)
    await require_lodge_access(db, current_user, lodge_id, "Not authorized to update this lodge")

    for field, column in FIELD_MAP.items():
        if field in lodge_data.model_fields_set and getattr(lodge_data, field) is not None:
            setattr(lodge, column, getattr(lodge_data, field))

    lodge.updated = utcnow()
    await db.flush()

    people = await user_store.people_in_lodge(db, lodge.id)
    return lodge_to_response(lodge, len(people))


@router.delete("/{lodge_id}", response_model=MessageResponse)
async def delete_lodge(
    lodge_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser = Depends(require_roles(Role.SUPER_ADMIN))
):
    """
    Delete a lodge.
    Requires a super admin. The district lodge cannot be deleted.
    """
    lodge = await _load(db, lodge_id)
    if lodge.name == settings.DISTRICT_LODGE_NAME:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="The district lodge cannot be deleted"
        )

    await db.delete(lodge)
    await db.flush()

    logger.info("Lodge %s deleted by %s", lodge_id, current_user.user_id)
    return MessageResponse(message="Lodge deleted successfully")


def _position(value: Optional[str], member_id: str, member_name: str) -> Optional[OccupiedPosition]:
    if not value or value == LodgePosition.MEMBER.value:
        return None
    try:
        position = LodgePosition(value)
    except ValueError:
        return OccupiedPosition(position=value, label=value.replace("_", " ").title(),
                                memberId=member_id, memberName=member_name)
    category = position.category
    return OccupiedPosition(
        position=position.value,
        label=position.label,
        category=category.value if category else None,
        memberId=member_id,
        memberName=member_name,
    )


@router.get("/{lodge_id}/positions", response_model=LodgePositionsResponse)
async def get_lodge_positions(
    lodge_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser = Depends(get_current_user)
):
    """Officer positions already held in a lodge. Plain membership is not a position."""
    await _load(db, lodge_id)

    occupied: dict[str, OccupiedPosition] = {}
    for person in await user_store.people_in_lodge(db, lodge_id):
        name = user_store.display_name(person)
        held = []
        if person.primary_lodge == lodge_id:
            held.append(person.primary_lodge_position)
        for membership in person.lodge_memberships or []:
            if isinstance(membership, dict) and membership.get("lodge") == lodge_id:
                held.append(membership.get("position"))

        for value in held:
            position = _position(value, person.id, name)
            if position is not None and position.position not in occupied:
                occupied[position.position] = position

    return LodgePositionsResponse(lodgeId=lodge_id, occupiedPositions=list(occupied.values()))


@router.get("/{lodge_id}/members", response_model=list[MemberResponse])
async def get_lodge_members(
    lodge_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser = Depends(get_current_user)
):
    """Everyone belonging to a lodge, from any of the three stores."""
    await _load(db, lodge_id)
    people = await user_store.people_in_lodge(db, lodge_id)
    people.sort(key=lambda p: user_store.display_name(p).lower())
    return [member_to_response(p) for p in people]
