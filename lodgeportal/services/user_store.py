"""
Access to the three overlapping user stores.

Every lookup walks the tables in the same priority order as USER_MODELS:
members, users, unifiedusers. Updates to secondary copies are best effort:
a failure on one table is rolled back to a savepoint, logged, and the
remaining tables are still written.
"""
import logging
from dataclasses import dataclass
from typing import Any, Iterable, Optional, Union

from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from lodgeportal.core.config import settings
from lodgeportal.models.base import enum_value, utcnow
from lodgeportal.models.enums import Role, AccountStatus
from lodgeportal.models.lodge import Lodge
from lodgeportal.models.user_record import Member, User, UnifiedUser, USER_MODELS

logger = logging.getLogger(__name__)

UserRecord = Union[Member, User, UnifiedUser]

COLLECTION_NAMES = {
    Member: "members",
    User: "users",
    UnifiedUser: "unifiedusers",
}

# Fields copied when one store's row is used to create another store's row
PROFILE_FIELDS = (
    "email",
    "password_hash",
    "name",
    "first_name",
    "last_name",
    "role",
    "status",
    "phone",
    "address",
    "city",
    "state",
    "zip_code",
    "country",
    "occupation",
    "bio",
    "interests",
    "profile_image",
    "primary_lodge",
    "primary_lodge_position",
    "lodges",
    "lodge_memberships",
    "administered_lodges",
    "lodge_roles",
    "member_since",
    "last_login",
)


@dataclass
class LocatedRecord:
    """A user row together with the name of the table it came from."""
    record: UserRecord
    collection: str

    @property
    def in_users(self) -> bool:
        return self.collection == "users"


def collection_name(record: UserRecord) -> str:
    return COLLECTION_NAMES[type(record)]


def model_for(collection: str):
    for model, name in COLLECTION_NAMES.items():
        if name == collection:
            return model
    raise KeyError(collection)


def display_name(record: Any) -> str:
    """Full name from first/last name, falling back to name."""
    first = (getattr(record, "first_name", None) or "").strip()
    last = (getattr(record, "last_name", None) or "").strip()
    if first and last:
        return f"{first} {last}"
    return getattr(record, "name", None) or "Unknown Member"


def split_name(name: str) -> tuple[str, str]:
    parts = name.split(" ")
    return parts[0] if parts else "", " ".join(parts[1:])


def placeholder_email(user_id: str) -> str:
    return f"unknown-{user_id}@{settings.PLACEHOLDER_EMAIL_DOMAIN}"


def role_of(record: Any) -> str:
    return enum_value(record.role) or Role.LODGE_MEMBER.value


def lodge_ids(record: Any) -> set[str]:
    """Every lodge id a record references as primary lodge or membership."""
    ids: set[str] = set()
    if record.primary_lodge:
        ids.add(str(record.primary_lodge))
    ids.update(str(lodge) for lodge in (record.lodges or []))
    for membership in record.lodge_memberships or []:
        if isinstance(membership, dict) and membership.get("lodge"):
            ids.add(str(membership["lodge"]))
    return ids


def belongs_to_lodge(record: Any, lodge_id: str) -> bool:
    return lodge_id in lodge_ids(record)


def administers(record: Any, lodge_id: str) -> bool:
    return lodge_id in (record.administered_lodges or [])


def _assign(record: UserRecord, values: dict[str, Any]) -> None:
    for key, value in values.items():
        # JSON columns are not mutation-tracked; always assign fresh containers
        if isinstance(value, list):
            value = list(value)
        elif isinstance(value, dict):
            value = dict(value)
        setattr(record, key, value)


async def locate(db: AsyncSession, user_id: str) -> Optional[LocatedRecord]:
    """Find a person by id, checking members, then users, then unifiedusers."""
    if not user_id:
        return None
    for model in USER_MODELS:
        record = await db.get(model, user_id)
        if record is not None:
            return LocatedRecord(record=record, collection=COLLECTION_NAMES[model])
    return None


async def find_all_copies(db: AsyncSession, user_id: str) -> list[UserRecord]:
    """Every row holding this id, in priority order."""
    copies = []
    for model in USER_MODELS:
        record = await db.get(model, user_id)
        if record is not None:
            copies.append(record)
    return copies


async def find_by_role(db: AsyncSession, role: Role) -> list[UserRecord]:
    """Rows with the given role across all three tables."""
    records: list[UserRecord] = []
    for model in USER_MODELS:
        result = await db.execute(
            select(model).where(model.role == role).order_by(model.created.asc(), model.id.asc())
        )
        records.extend(result.scalars().all())
    return records


async def all_records(db: AsyncSession, model=None) -> list[UserRecord]:
    models = (model,) if model is not None else USER_MODELS
    records: list[UserRecord] = []
    for m in models:
        result = await db.execute(select(m).order_by(m.created.asc(), m.id.asc()))
        records.extend(result.scalars().all())
    return records


def unique_people(records: Iterable[UserRecord]) -> list[UserRecord]:
    """Keep the first row seen for each id."""
    seen: set[str] = set()
    people = []
    for record in records:
        if record.id in seen:
            continue
        seen.add(record.id)
        people.append(record)
    return people


async def people_in_lodge(db: AsyncSession, lodge_id: str) -> list[UserRecord]:
    """Distinct people referencing a lodge in any of the three tables."""
    records = await all_records(db)
    return unique_people(r for r in records if belongs_to_lodge(r, lodge_id))


async def update_record(db: AsyncSession, record: UserRecord, values: dict[str, Any]) -> None:
    """Write to one row; errors propagate."""
    _assign(record, values)
    record.updated = utcnow()
    await db.flush()


async def apply_update(
    db: AsyncSession,
    user_id: str,
    values: dict[str, Any],
    skip: Optional[str] = None,
) -> list[str]:
    """
    Write the same values to every table holding this id.

    Returns the names of the tables that were written. Each table is written
    inside its own savepoint, so a failure on one table is rolled back and
    logged while the session stays usable for the others.
    """
    written = []
    for model in USER_MODELS:
        name = COLLECTION_NAMES[model]
        if name == skip:
            continue
        record = await db.get(model, user_id)
        if record is None:
            continue
        try:
            async with db.begin_nested():
                _assign(record, values)
                record.updated = utcnow()
                await db.flush()
        except SQLAlchemyError:
            logger.exception("Failed to sync %s in %s", user_id, name)
            continue
        written.append(name)
    return written


async def update_person(db: AsyncSession, located: LocatedRecord, values: dict[str, Any]) -> list[str]:
    """Update the located row, then every other copy on a best-effort basis."""
    await update_record(db, located.record, values)
    synced = await apply_update(db, located.record.id, values, skip=located.collection)
    return [located.collection] + synced


async def email_taken(db: AsyncSession, email: str, exclude_id: Optional[str] = None) -> bool:
    """Whether any store holds this email (case-insensitive) for another id."""
    for model in USER_MODELS:
        query = select(model.id).where(func.lower(model.email) == email.strip().lower())
        if exclude_id:
            query = query.where(model.id != exclude_id)
        result = await db.execute(query.limit(1))
        if result.first() is not None:
            return True
    return False


async def count_super_admins(db: AsyncSession) -> int:
    """Super admins counted in the users table only."""
    result = await db.execute(
        select(func.count()).select_from(User).where(User.role == Role.SUPER_ADMIN)
    )
    return result.scalar() or 0


async def ensure_user_record(
    db: AsyncSession,
    source: UserRecord,
    **overrides: Any,
) -> tuple[User, bool]:
    """
    Make sure a users row exists for the person behind ``source``.

    Returns the row and whether it was created. Missing name and email are
    filled with placeholders.
    """
    existing = await db.get(User, source.id)
    if existing is not None:
        return existing, False

    values = {field: getattr(source, field, None) for field in PROFILE_FIELDS}
    values["name"] = display_name(source)
    values["email"] = source.email or placeholder_email(source.id)
    values["status"] = AccountStatus.ACTIVE
    values["interests"] = list(source.interests or [])
    membership_lodges = [
        str(m["lodge"]) for m in (source.lodge_memberships or [])
        if isinstance(m, dict) and m.get("lodge")
    ]
    values["lodges"] = membership_lodges or list(source.lodges or [])
    values["administered_lodges"] = list(source.administered_lodges or [])
    values["lodge_memberships"] = list(source.lodge_memberships or [])
    values["lodge_roles"] = dict(source.lodge_roles or {})
    values["member_since"] = source.member_since or utcnow()
    values.update(overrides)

    user = User(id=source.id, **values)
    db.add(user)
    await db.flush()
    logger.info("Created users record for %s (%s)", source.id, user.email)
    return user, True


async def delete_everywhere(db: AsyncSession, user_id: str) -> list[str]:
    """Delete every row for this id. Returns the tables deleted from."""
    deleted = []
    for record in await find_all_copies(db, user_id):
        await db.delete(record)
        deleted.append(collection_name(record))
    await db.flush()
    return deleted


async def district_lodge(db: AsyncSession) -> Optional[Lodge]:
    """The lodge whose name marks it as the district grand lodge."""
    result = await db.execute(
        select(Lodge).where(Lodge.name == settings.DISTRICT_LODGE_NAME).limit(1)
    )
    return result.scalar_one_or_none()


async def district_lodge_ids(db: AsyncSession, lodge_id: Optional[str]) -> list[str]:
    """
    Ids of the lodges in the same district as ``lodge_id``.

    A lodge with no district label only covers itself.
    """
    if not lodge_id:
        return []
    lodge = await db.get(Lodge, lodge_id)
    if lodge is None:
        return [lodge_id]
    if not lodge.district:
        return [lodge.id]
    result = await db.execute(select(Lodge.id).where(Lodge.district == lodge.district))
    return list(result.scalars().all())
