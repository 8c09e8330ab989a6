"""
Event endpoints.

An event belongs to one lodge, or to the whole district when
``isDistrictWide`` is set.
"""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from lodgeportal.db.base import get_db
from lodgeportal.core.deps import AuthUser, get_current_user
from lodgeportal.core.permissions import (
    require_admin,
    require_lodge_access,
    is_district_manager,
    caller_district_lodges,
)
from lodgeportal.models.base import utcnow
from lodgeportal.models.enums import NotificationType, Role
from lodgeportal.models.event import Event
from lodgeportal.models.lodge import Lodge
from lodgeportal.schemas.common import MessageResponse
from lodgeportal.schemas.event import (
    EventCreate,
    EventUpdate,
    EventResponse,
    Attendee,
    AttendeesResponse,
)
from lodgeportal.services import user_store, notifications
from lodgeportal.services.errors import ServiceError

logger = logging.getLogger(__name__)

router = APIRouter()

REQUIRED_FIELDS = ("title", "date", "time", "location", "description")


def event_to_response(event: Event) -> EventResponse:
    """Convert Event model to EventResponse schema."""
    attendees = list(event.attendees or [])
    return EventResponse(
        id=event.id,
        title=event.title,
        date=event.date,
        time=event.time,
        location=event.location,
        description=event.description,
        lodgeId=event.lodge_id,
        districtId=event.district_id,
        isDistrictWide=event.is_district_wide,
        createdBy=event.created_by,
        attendees=attendees,
        attendeeCount=len(attendees),
        created=event.created,
        updated=event.updated,
    )


async def _load(db: AsyncSession, event_id: str) -> Event:
    event = await db.get(Event, event_id)
    if event is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Event not found"
        )
    return event


async def _require_event_access(db: AsyncSession, user: AuthUser, event: Event) -> None:
    require_admin(user, "Not authorized to manage events")
    if event.is_district_wide or not event.lodge_id:
        if not is_district_manager(user):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Only district or super admins can manage district-wide events"
            )
        return
    await require_lodge_access(db, user, event.lodge_id, "Not authorized to manage events of this lodge")


@router.get("", response_model=list[EventResponse])
async def list_events(
    lodgeId: Optional[str] = None,
    district: bool = False,
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser = Depends(get_current_user)
):
    """
    Events of a lodge (``lodgeId``) or of the caller's district (``district=true``),
    always including district-wide events. Super admins may omit both to see all.
    """
    query = select(Event).order_by(Event.date.asc(), Event.time.asc())

    if lodgeId:
        query = query.where(or_(Event.lodge_id == lodgeId, Event.is_district_wide == True))  # noqa: E712
    elif district:
        scope = await caller_district_lodges(db, current_user)
        query = query.where(or_(Event.lodge_id.in_(scope), Event.is_district_wide == True))  # noqa: E712
    elif current_user.role != Role.SUPER_ADMIN.value:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Either lodgeId or district=true is required"
        )

    result = await db.execute(query)
    return [event_to_response(e) for e in result.scalars().all()]


@router.post("", response_model=EventResponse, status_code=status.HTTP_201_CREATED)
async def create_event(
    event_data: EventCreate,
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser = Depends(get_current_user)
):
    """
    Create an event.
    Requires an admin role with access to the lodge; district-wide events
    require a super or district admin.
    """
    require_admin(current_user, "Not authorized to create events")

    missing = [field for field in REQUIRED_FIELDS if not getattr(event_data, field)]
    if not event_data.isDistrictWide and not event_data.lodgeId:
        missing.append("lodgeId")
    if missing:
        raise ServiceError(400, "Missing required fields", details={"missingFields": missing})

    lodge = None
    if event_data.isDistrictWide:
        if not is_district_manager(current_user):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Only district or super admins can create district-wide events"
            )
    else:
        lodge = await db.get(Lodge, event_data.lodgeId)
        if lodge is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Lodge not found"
            )
        await require_lodge_access(db, current_user, lodge.id, "Not authorized to create events for this lodge")

    event = Event(
        title=event_data.title,
        date=event_data.date,
        time=event_data.time,
        location=event_data.location,
        description=event_data.description,
        lodge_id=lodge.id if lodge else None,
        district_id=lodge.district if lodge else None,
        is_district_wide=event_data.isDistrictWide,
        created_by=current_user.user_id,
        attendees=[],
    )
    db.add(event)
    await db.flush()

    if lodge is not None:
        await notifications.notify_lodge(
            db,
            lodge.id,
            NotificationType.EVENT,
            title="New Event",
            message=f"{event.title} on {event.date} at {event.time}, {event.location}.",
            related_id=event.id,
            exclude_id=current_user.user_id,
            from_user_id=current_user.user_id,
            from_user_name=current_user.name,
        )

    logger.info("Event %s created by %s", event.id, current_user.user_id)
    return event_to_response(event)


@router.get("/{event_id}", response_model=EventResponse)
async def get_event(
    event_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser = Depends(get_current_user)
):
    """Get an event by ID."""
    return event_to_response(await _load(db, event_id))


@router.patch("/{event_id}", response_model=EventResponse)
async def update_event(
    event_id: str,
    event_data: EventUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser = Depends(get_current_user)
):
    """Update an event. Requires admin access to the event's lodge."""
    event = await _load(db, event_id)
    await _require_event_access(db, current_user, event)

    if event_data.title is not None:
        event.title = event_data.title
    if event_data.date is not None:
        event.date = event_data.date
    if event_data.time is not None:
        event.time = event_data.time
    if event_data.location is not None:
        event.location = event_data.location
    if event_data.description is not None:
        event.description = event_data.description
    if event_data.isDistrictWide is not None:
        if event_data.isDistrictWide and not is_district_manager(current_user):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Only district or super admins can make events district-wide"
            )
        event.is_district_wide = event_data.isDistrictWide

    event.updated = utcnow()
    await db.flush()

    return event_to_response(event)


@router.delete("/{event_id}", response_model=MessageResponse)
async def delete_event(
    event_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser = Depends(get_current_user)
):
    """Delete an event. Requires admin access to the event's lodge."""
    event = await _load(db, event_id)
    await _require_event_access(db, current_user, event)

    await db.delete(event)
    await db.flush()

    logger.info("Event %s deleted by %s", event_id, current_user.user_id)
    return MessageResponse(message="Event deleted successfully")


@router.post("/{event_id}/register", response_model=EventResponse)
async def register_for_event(
    event_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser = Depends(get_current_user)
):
    """Add the caller to the attendees."""
    event = await _load(db, event_id)
    attendees = list(event.attendees or [])
    if current_user.user_id in attendees:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Already registered for this event"
        )

    event.attendees = attendees + [current_user.user_id]
    event.updated = utcnow()
    await db.flush()

    return event_to_response(event)


@router.post("/{event_id}/unregister", response_model=EventResponse)
async def unregister_from_event(
    event_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser = Depends(get_current_user)
):
    """Remove the caller from the attendees."""
    event = await _load(db, event_id)
    attendees = list(event.attendees or [])
    if current_user.user_id not in attendees:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Not registered for this event"
        )

    event.attendees = [a for a in attendees if a != current_user.user_id]
    event.updated = utcnow()
    await db.flush()

    return event_to_response(event)


@router.get("/{event_id}/attendees", response_model=AttendeesResponse)
async def get_event_attendees(
    event_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser = Depends(get_current_user)
):
    """Attendees resolved against the user stores; unknown ids are skipped."""
    event = await _load(db, event_id)

    attendees = []
    for attendee_id in event.attendees or []:
        located = await user_store.locate(db, attendee_id)
        if located is None:
            continue
        attendees.append(Attendee(
            id=located.record.id,
            name=user_store.display_name(located.record),
            email=located.record.email,
            profileImage=located.record.profile_image,
        ))

    return AttendeesResponse(eventId=event.id, attendees=attendees, count=len(attendees))
