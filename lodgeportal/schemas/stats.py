"""
Pydantic schemas for dashboard statistics.
"""
from pydantic import BaseModel


class StatsResponse(BaseModel):
    """Counts scoped to what the caller administers."""
    scope: str
    totalMembers: int = 0
    activeMembers: int = 0
    inactiveMembers: int = 0
    totalLodges: int = 0
    totalEvents: int = 0
    pendingCandidates: int = 0
