"""
SQLAlchemy models for LodgePortal.

- People: three overlapping stores (members, users, unifiedusers)
- Lodges
- Candidates
- Events
- Messages and notifications
"""
from lodgeportal.models.enums import (
    Role,
    AccountStatus,
    CandidateStatus,
    NotificationType,
    LodgePosition,
    PositionCategory,
)
from lodgeportal.models.user_record import Member, User, UnifiedUser, USER_MODELS
from lodgeportal.models.lodge import Lodge
from lodgeportal.models.candidate import Candidate
from lodgeportal.models.event import Event
from lodgeportal.models.message import Message
from lodgeportal.models.notification import Notification

__all__ = [
    # Enums
    "Role",
    "AccountStatus",
    "CandidateStatus",
    "NotificationType",
    "LodgePosition",
    "PositionCategory",
    # People
    "Member",
    "User",
    "UnifiedUser",
    "USER_MODELS",
    # Lodges
    "Lodge",
    # Candidates, events, messaging
    "Candidate",
    "Event",
    "Message",
    "Notification",
]
