"""
Version 1 API routers.

Routes:
- /api/auth
- /api/members (including role changes and lodge admin transfer)
- /api/lodges
- /api/candidates
- /api/events
- /api/messages
- /api/notifications
- /api/stats
"""
from fastapi import APIRouter

from lodgeportal.api.v1.auth import router as auth_router
from lodgeportal.api.v1.members import router as members_router
from lodgeportal.api.v1.lodges import router as lodges_router
from lodgeportal.api.v1.candidates import router as candidates_router
from lodgeportal.api.v1.events import router as events_router
from lodgeportal.api.v1.messages import router as messages_router
from lodgeportal.api.v1.notifications import router as notifications_router
from lodgeportal.api.v1.stats import router as stats_router

api_router = APIRouter()

api_router.include_router(auth_router, prefix="/auth", tags=["auth"])
api_router.include_router(members_router, prefix="/members", tags=["members"])
api_router.include_router(lodges_router, prefix="/lodges", tags=["lodges"])
api_router.include_router(candidates_router, prefix="/candidates", tags=["candidates"])
api_router.include_router(events_router, prefix="/events", tags=["events"])
api_router.include_router(messages_router, prefix="/messages", tags=["messages"])
api_router.include_router(notifications_router, prefix="/notifications", tags=["notifications"])
api_router.include_router(stats_router, prefix="/stats", tags=["stats"])

__all__ = [
    "api_router",
]
