"""
Dashboard statistics.

Super admins get system-wide counts, district admins the lodges of their
district, lodge admins the lodges they administer. Everyone else gets zeros.
Member counts come from the members table.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from lodgeportal.db.base import get_db
from lodgeportal.core.deps import AuthUser, get_current_user
from lodgeportal.core.permissions import administered_lodges, caller_district_lodges
from lodgeportal.models.base import enum_value
from lodgeportal.models.candidate import Candidate
from lodgeportal.models.enums import Role, AccountStatus, CandidateStatus
from lodgeportal.models.event import Event
from lodgeportal.models.lodge import Lodge
from lodgeportal.models.user_record import Member
from lodgeportal.schemas.stats import StatsResponse
from lodgeportal.services import user_store

logger = logging.getLogger(__name__)

router = APIRouter()


async def _count(db: AsyncSession, model, *conditions) -> int:
    result = await db.execute(select(func.count()).select_from(model).where(*conditions))
    return result.scalar() or 0


async def _scope(db: AsyncSession, current_user: AuthUser) -> tuple[str, Optional[list[str]]]:
    """Scope name and lodge ids; None means every lodge."""
    if current_user.role == Role.SUPER_ADMIN.value:
        return "system", None
    if current_user.role == Role.DISTRICT_ADMIN.value:
        return "district", await caller_district_lodges(db, current_user)
    if current_user.role == Role.LODGE_ADMIN.value:
        return "lodge", await administered_lodges(db, current_user)
    return "none", []


@router.get("", response_model=StatsResponse)
async def get_stats(
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser = Depends(get_current_user)
):
    """Member, lodge, event and candidate counts for the caller's scope."""
    scope, lodge_ids = await _scope(db, current_user)
    if lodge_ids is not None and not lodge_ids:
        return StatsResponse(scope=scope)

    members = await user_store.all_records(db, Member)
    if lodge_ids is None:
        lodge_filter = event_filter = candidate_filter = ()
    else:
        members = [
            m for m in members
            if any(user_store.belongs_to_lodge(m, lodge) for lodge in lodge_ids)
        ]
        lodge_filter = (Lodge.id.in_(lodge_ids),)
        event_filter = (Event.lodge_id.in_(lodge_ids),)
        candidate_filter = (Candidate.lodge_id.in_(lodge_ids),)

    inactive = len([m for m in members if enum_value(m.status) == AccountStatus.INACTIVE.value])
    stats = StatsResponse(
        scope=scope,
        totalMembers=len(members),
        activeMembers=len(members) - inactive,
        inactiveMembers=inactive,
        totalLodges=await _count(db, Lodge, *lodge_filter),
        totalEvents=await _count(db, Event, *event_filter),
        pendingCandidates=await _count(
            db, Candidate, Candidate.status == CandidateStatus.PENDING, *candidate_filter
        ),
    )
    logger.debug("Stats for %s (%s): %s", current_user.user_id, scope, stats)
    return stats
