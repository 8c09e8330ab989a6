"""
Candidate endpoints.

Candidates stay listed while their review window is open; ``daysLeft`` is
computed at read time from the end of the window.
"""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from lodgeportal.db.base import get_db
from lodgeportal.core.deps import AuthUser, get_current_user
from lodgeportal.core.permissions import require_admin, require_lodge_access
from lodgeportal.models.base import enum_value, utcnow
from lodgeportal.models.candidate import Candidate
from lodgeportal.models.enums import CandidateStatus, NotificationType, Role
from lodgeportal.models.lodge import Lodge
from lodgeportal.schemas.candidate import (
    CandidateCreate,
    CandidateUpdate,
    CandidateStatusUpdate,
    CandidateResponse,
    CandidateTiming,
)
from lodgeportal.schemas.common import MessageResponse
from lodgeportal.services import user_store, notifications
from lodgeportal.services.candidates import days_left, is_open, default_window

logger = logging.getLogger(__name__)

router = APIRouter()

REQUIRED_FIELDS = ("firstName", "lastName", "dateOfBirth", "livingLocation", "profession")


def candidate_to_response(candidate: Candidate) -> CandidateResponse:
    """Convert Candidate model to CandidateResponse schema."""
    timing = None
    if candidate.start_date and candidate.end_date:
        timing = CandidateTiming(startDate=candidate.start_date, endDate=candidate.end_date)
    return CandidateResponse(
        id=candidate.id,
        firstName=candidate.first_name,
        lastName=candidate.last_name,
        dateOfBirth=candidate.date_of_birth,
        livingLocation=candidate.living_location,
        profession=candidate.profession,
        notes=candidate.notes,
        status=enum_value(candidate.status),
        submittedBy=candidate.submitted_by,
        submissionDate=candidate.submission_date,
        idPhotoUrl=candidate.id_photo_url,
        lodge=candidate.lodge,
        lodgeId=candidate.lodge_id,
        timing=timing,
        daysLeft=days_left(candidate.end_date),
        created=candidate.created,
        updated=candidate.updated,
    )


async def _load(db: AsyncSession, candidate_id: str) -> Candidate:
    candidate = await db.get(Candidate, candidate_id)
    if candidate is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Candidate not found"
        )
    return candidate


async def _require_candidate_access(db: AsyncSession, user: AuthUser, candidate: Candidate) -> None:
    """Admins only; lodge admins only for candidates of their lodges."""
    require_admin(user, "Not authorized to manage candidates")
    if user.role == Role.LODGE_ADMIN.value:
        await require_lodge_access(
            db, user, candidate.lodge_id, "Not authorized to manage candidates of other lodges"
        )


@router.get("", response_model=list[CandidateResponse])
async def list_candidates(
    lodgeId: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser = Depends(get_current_user)
):
    """Candidates whose review window is still open, newest first."""
    query = select(Candidate).order_by(Candidate.submission_date.desc(), Candidate.id.desc())
    if lodgeId:
        query = query.where(Candidate.lodge_id == lodgeId)
    result = await db.execute(query)
    return [candidate_to_response(c) for c in result.scalars().all() if is_open(c)]


@router.post("", response_model=CandidateResponse, status_code=status.HTTP_201_CREATED)
async def create_candidate(
    candidate_data: CandidateCreate,
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser = Depends(get_current_user)
):
    """
    Submit a candidate.

    The submitter's name and lodge come from their stored record unless the
    body names a lodge. Members of the lodge are notified.
    """
    missing = [field for field in REQUIRED_FIELDS if not getattr(candidate_data, field)]
    if missing:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Missing required fields: {', '.join(missing)}"
        )

    submitted_by = "System"
    lodge_name = candidate_data.lodge or ""
    lodge_id = candidate_data.lodgeId

    located = await user_store.locate(db, current_user.user_id)
    if located is not None:
        submitted_by = user_store.display_name(located.record)
        primary = located.record.primary_lodge
        primary_lodge = await db.get(Lodge, primary) if primary else None
        if primary_lodge is not None:
            lodge_name = lodge_name or primary_lodge.name
            lodge_id = lodge_id or primary_lodge.id

    if candidate_data.timing is not None:
        start_date, end_date = candidate_data.timing.startDate, candidate_data.timing.endDate
    else:
        start_date, end_date = default_window()

    candidate = Candidate(
        first_name=candidate_data.firstName,
        last_name=candidate_data.lastName,
        date_of_birth=candidate_data.dateOfBirth,
        living_location=candidate_data.livingLocation,
        profession=candidate_data.profession,
        notes=candidate_data.notes or "",
        status=CandidateStatus.PENDING,
        submitted_by=submitted_by,
        submission_date=utcnow(),
        id_photo_url=candidate_data.idPhotoUrl or "/default-avatar.png",
        lodge=lodge_name,
        lodge_id=lodge_id,
        start_date=start_date,
        end_date=end_date,
    )
    db.add(candidate)
    await db.flush()

    if lodge_id:
        await notifications.notify_lodge(
            db,
            lodge_id,
            NotificationType.CANDIDATE,
            title="New Candidate Added",
            message=(
                f"A new candidate, {candidate.first_name} {candidate.last_name}, "
                f"has been added to {lodge_name or 'your lodge'}."
            ),
            related_id=candidate.id,
            from_user_id=current_user.user_id,
            from_user_name=submitted_by,
        )

    logger.info("Candidate %s submitted by %s for lodge %s", candidate.id, current_user.user_id, lodge_id)
    return candidate_to_response(candidate)


@router.get("/{candidate_id}", response_model=CandidateResponse)
async def get_candidate(
    candidate_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser = Depends(get_current_user)
):
    """Get a candidate by ID."""
    return candidate_to_response(await _load(db, candidate_id))


@router.put("/{candidate_id}", response_model=CandidateResponse)
async def update_candidate(
    candidate_id: str,
    candidate_data: CandidateUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser = Depends(get_current_user)
):
    """
    Update a candidate.
    Requires an admin role; lodge admins only for their lodges.
    """
    candidate = await _load(db, candidate_id)
    await _require_candidate_access(db, current_user, candidate)

    if candidate_data.firstName is not None:
        candidate.first_name = candidate_data.firstName
    if candidate_data.lastName is not None:
        candidate.last_name = candidate_data.lastName
    if candidate_data.dateOfBirth is not None:
        candidate.date_of_birth = candidate_data.dateOfBirth
    if candidate_data.livingLocation is not None:
        candidate.living_location = candidate_data.livingLocation
    if candidate_data.profession is not None:
        candidate.profession = candidate_data.profession
    if candidate_data.notes is not None:
        candidate.notes = candidate_data.notes
    if candidate_data.idPhotoUrl is not None:
        candidate.id_photo_url = candidate_data.idPhotoUrl
    if candidate_data.timing is not None:
        candidate.start_date = candidate_data.timing.startDate
        candidate.end_date = candidate_data.timing.endDate

    candidate.updated = utcnow()
    await db.flush()

    return candidate_to_response(candidate)


@router.patch("/{candidate_id}/status", response_model=CandidateResponse)
async def update_candidate_status(
    candidate_id: str,
    status_data: CandidateStatusUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser = Depends(get_current_user)
):
    """
    Approve, reject or reopen a candidate.
    Requires an admin role; lodge admins only for their lodges.
    """
    candidate = await _load(db, candidate_id)
    await _require_candidate_access(db, current_user, candidate)

    try:
        new_status = CandidateStatus((status_data.status or "").lower())
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid status. Allowed statuses: {[s.value for s in CandidateStatus]}"
        )

    candidate.status = new_status
    candidate.updated = utcnow()
    await db.flush()

    logger.info("Candidate %s marked %s by %s", candidate.id, new_status.value, current_user.user_id)
    return candidate_to_response(candidate)


@router.delete("/{candidate_id}", response_model=MessageResponse)
async def delete_candidate(
    candidate_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser = Depends(get_current_user)
):
    """
    Delete a candidate.
    Requires an admin role; lodge admins only for their lodges.
    """
    candidate = await _load(db, candidate_id)
    await _require_candidate_access(db, current_user, candidate)

    await db.delete(candidate)
    await db.flush()

    return MessageResponse(message="Candidate deleted successfully")
