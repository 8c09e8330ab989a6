"""
Pydantic schemas for lodge endpoints.
"""
from typing import Optional
from datetime import datetime
from pydantic import BaseModel, Field


class LodgeCreate(BaseModel):
    """Create a lodge. Name and location are required."""
    name: str = Field(..., min_length=1, max_length=200)
    location: str = Field(..., min_length=1, max_length=200)
    number: Optional[str] = Field(None, max_length=50)
    lat: Optional[float] = None
    lng: Optional[float] = None
    description: str = ""
    foundedYear: str = ""
    logoImage: Optional[str] = None
    backgroundImage: Optional[str] = None
    isActive: bool = True
    district: Optional[str] = None


class LodgeUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    location: Optional[str] = Field(None, min_length=1, max_length=200)
    number: Optional[str] = Field(None, max_length=50)
    lat: Optional[float] = None
    lng: Optional[float] = None
    description: Optional[str] = None
    foundedYear: Optional[str] = None
    logoImage: Optional[str] = None
    backgroundImage: Optional[str] = None
    isActive: Optional[bool] = None
    district: Optional[str] = None


class LodgeResponse(BaseModel):
    id: str = Field(..., alias="_id")
    name: str
    number: str
    location: str
    lat: float
    lng: float
    description: str
    foundedYear: str
    logoImage: Optional[str] = None
    backgroundImage: Optional[str] = None
    isActive: bool
    district: Optional[str] = None
    isDistrictLodge: bool = False
    memberCount: int = 0
    createdBy: Optional[str] = None
    created: datetime
    updated: datetime

    class Config:
        populate_by_name = True


class OccupiedPosition(BaseModel):
    position: str
    label: str
    category: Optional[str] = None
    memberId: str
    memberName: str


class LodgePositionsResponse(BaseModel):
    lodgeId: str
    occupiedPositions: list[OccupiedPosition]
