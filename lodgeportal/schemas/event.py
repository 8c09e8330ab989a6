"""
Pydantic schemas for event endpoints.
"""
from typing import Optional
from datetime import datetime
from pydantic import BaseModel, Field


class EventCreate(BaseModel):
    """Required fields are checked by the handler and reported as missingFields."""
    title: Optional[str] = None
    date: Optional[str] = None
    time: Optional[str] = None
    location: Optional[str] = None
    description: Optional[str] = None
    lodgeId: Optional[str] = None
    isDistrictWide: bool = False


class EventUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=300)
    date: Optional[str] = None
    time: Optional[str] = None
    location: Optional[str] = None
    description: Optional[str] = None
    isDistrictWide: Optional[bool] = None


class EventResponse(BaseModel):
    id: str = Field(..., alias="_id")
    title: str
    date: str
    time: str
    location: str
    description: str
    lodgeId: Optional[str] = None
    districtId: Optional[str] = None
    isDistrictWide: bool
    createdBy: Optional[str] = None
    attendees: list[str] = []
    attendeeCount: int = 0
    created: datetime
    updated: datetime

    class Config:
        populate_by_name = True


class Attendee(BaseModel):
    id: str = Field(..., alias="_id")
    name: str
    email: Optional[str] = None
    profileImage: Optional[str] = None

    class Config:
        populate_by_name = True


class AttendeesResponse(BaseModel):
    eventId: str
    attendees: list[Attendee]
    count: int
