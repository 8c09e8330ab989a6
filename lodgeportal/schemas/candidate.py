"""
Pydantic schemas for candidate endpoints.
"""
from typing import Optional
from datetime import date, datetime
from pydantic import BaseModel, Field


class CandidateTiming(BaseModel):
    startDate: date
    endDate: date


class CandidateCreate(BaseModel):
    """Required fields are checked by the handler so a missing one is a 400."""
    firstName: Optional[str] = None
    lastName: Optional[str] = None
    dateOfBirth: Optional[str] = None
    livingLocation: Optional[str] = None
    profession: Optional[str] = None
    notes: Optional[str] = None
    idPhotoUrl: Optional[str] = None
    lodge: Optional[str] = None
    lodgeId: Optional[str] = None
    timing: Optional[CandidateTiming] = None


class CandidateUpdate(BaseModel):
    firstName: Optional[str] = Field(None, min_length=1, max_length=100)
    lastName: Optional[str] = Field(None, min_length=1, max_length=100)
    dateOfBirth: Optional[str] = None
    livingLocation: Optional[str] = None
    profession: Optional[str] = None
    notes: Optional[str] = None
    idPhotoUrl: Optional[str] = None
    timing: Optional[CandidateTiming] = None


class CandidateStatusUpdate(BaseModel):
    status: Optional[str] = None


class CandidateResponse(BaseModel):
    id: str = Field(..., alias="_id")
    firstName: str
    lastName: str
    dateOfBirth: str
    livingLocation: str
    profession: str
    notes: str
    status: str
    submittedBy: str
    submissionDate: datetime
    idPhotoUrl: str
    lodge: str
    lodgeId: Optional[str] = None
    timing: Optional[CandidateTiming] = None
    daysLeft: int = 0
    created: datetime
    updated: datetime

    class Config:
        populate_by_name = True
