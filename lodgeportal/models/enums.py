"""
Enumerations shared by the models, schemas and services.
"""
import enum


class Role(str, enum.Enum):
    """Account role. Stored identically in all three user tables."""
    SUPER_ADMIN = "SUPER_ADMIN"
    DISTRICT_ADMIN = "DISTRICT_ADMIN"
    LODGE_ADMIN = "LODGE_ADMIN"
    LODGE_MEMBER = "LODGE_MEMBER"

    @classmethod
    def values(cls) -> list[str]:
        return [r.value for r in cls]

    @classmethod
    def admin_values(cls) -> tuple[str, ...]:
        return (cls.SUPER_ADMIN.value, cls.DISTRICT_ADMIN.value, cls.LODGE_ADMIN.value)


class AccountStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    PENDING = "pending"


class CandidateStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class NotificationType(str, enum.Enum):
    CANDIDATE = "candidate"
    MESSAGE = "message"
    EVENT = "event"
    ROLE = "role"


class PositionCategory(str, enum.Enum):
    ELECTED_OFFICERS = "Elected Officers"
    APPOINTED_OFFICERS = "Appointed Officers"
    OTHER_POSITIONS = "Other Positions"


class LodgePosition(str, enum.Enum):
    """Officer position held within a lodge."""
    WORSHIPFUL_MASTER = "WORSHIPFUL_MASTER"
    SENIOR_WARDEN = "SENIOR_WARDEN"
    JUNIOR_WARDEN = "JUNIOR_WARDEN"
    TREASURER = "TREASURER"
    SECRETARY = "SECRETARY"
    SENIOR_DEACON = "SENIOR_DEACON"
    JUNIOR_DEACON = "JUNIOR_DEACON"
    SENIOR_STEWARD = "SENIOR_STEWARD"
    JUNIOR_STEWARD = "JUNIOR_STEWARD"
    CHAPLAIN = "CHAPLAIN"
    MARSHAL = "MARSHAL"
    TYLER = "TYLER"
    MUSICIAN = "MUSICIAN"
    MASTER_OF_CEREMONIES = "MASTER_OF_CEREMONIES"
    HISTORIAN = "HISTORIAN"
    LODGE_EDUCATION_OFFICER = "LODGE_EDUCATION_OFFICER"
    ALMONER = "ALMONER"
    MEMBER = "MEMBER"

    @property
    def label(self) -> str:
        return self.value.replace("_", " ").title().replace(" Of ", " of ")

    @property
    def category(self) -> PositionCategory | None:
        return POSITION_CATEGORIES.get(self)


_ELECTED = (
    LodgePosition.WORSHIPFUL_MASTER,
    LodgePosition.SENIOR_WARDEN,
    LodgePosition.JUNIOR_WARDEN,
    LodgePosition.TREASURER,
    LodgePosition.SECRETARY,
)
_APPOINTED = (
    LodgePosition.SENIOR_DEACON,
    LodgePosition.JUNIOR_DEACON,
    LodgePosition.SENIOR_STEWARD,
    LodgePosition.JUNIOR_STEWARD,
    LodgePosition.CHAPLAIN,
    LodgePosition.MARSHAL,
    LodgePosition.TYLER,
    LodgePosition.MUSICIAN,
)
_OTHER = (
    LodgePosition.MASTER_OF_CEREMONIES,
    LodgePosition.HISTORIAN,
    LodgePosition.LODGE_EDUCATION_OFFICER,
    LodgePosition.ALMONER,
)

POSITION_CATEGORIES: dict[LodgePosition, PositionCategory] = {
    **{p: PositionCategory.ELECTED_OFFICERS for p in _ELECTED},
    **{p: PositionCategory.APPOINTED_OFFICERS for p in _APPOINTED},
    **{p: PositionCategory.OTHER_POSITIONS for p in _OTHER},
}
