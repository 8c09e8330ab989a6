"""
Role changes and admin-seat transfers across the three user stores.

A role change is written to the table the target was found in first and then
copied to every other table holding the same id. Promotions to an admin seat
demote whoever held that seat before, so that:

- after a LODGE_ADMIN promotion scoped to a lodge, no other row lists that
  lodge in ``administered_lodges``;
- the last SUPER_ADMIN (counted in the users table) is never demoted;
- a DISTRICT_ADMIN caller never produces a SUPER_ADMIN;
- a district admin handing off their seat leaves exactly one DISTRICT_ADMIN.

None of this runs under a lock: two concurrent transfers touching the same
seat can interleave.
"""
import logging
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from lodgeportal.core.deps import AuthUser
from lodgeportal.models.base import enum_value
from lodgeportal.models.enums import Role, AccountStatus
from lodgeportal.models.lodge import Lodge
from lodgeportal.models.user_record import Member, User
from lodgeportal.services import user_store
from lodgeportal.services.errors import ServiceError
from lodgeportal.services.user_store import UserRecord, LocatedRecord

logger = logging.getLogger(__name__)

ROLE_MANAGERS = (Role.SUPER_ADMIN.value, Role.DISTRICT_ADMIN.value)
SEAT_ROLES = (Role.DISTRICT_ADMIN, Role.LODGE_ADMIN)
ADMIN_ROLES = (Role.SUPER_ADMIN, Role.DISTRICT_ADMIN, Role.LODGE_ADMIN)


def _parse_role(value: Any) -> Role:
    try:
        return Role(str(value).upper())
    except ValueError:
        raise ServiceError(400, "Invalid role", details={"allowedRoles": Role.values()})


def _current_role(record: UserRecord) -> Role:
    try:
        return Role(user_store.role_of(record))
    except ValueError:
        return Role.LODGE_MEMBER


def _summary(record: UserRecord, role: Optional[Role] = None) -> dict[str, Any]:
    return {
        "_id": record.id,
        "name": user_store.display_name(record),
        "email": record.email,
        "role": (role or _current_role(record)).value,
    }


def require_role_manager(caller: AuthUser, action: str) -> None:
    if caller.role not in ROLE_MANAGERS:
        raise ServiceError(
            403,
            f"Forbidden - Only super admins and district admins can {action}",
        )


async def _ensure_not_last_super_admin(db: AsyncSession) -> None:
    count = await user_store.count_super_admins(db)
    if count <= 1:
        logger.warning("Refusing to demote the last super admin (count=%s)", count)
        raise ServiceError(
            400,
            "Cannot demote the last super admin. Please promote another member to super admin first.",
        )


async def _demote_previous_holders(
    db: AsyncSession,
    role: Role,
    target: UserRecord,
    exclude_ids: set[str],
) -> list[str]:
    """
    Demote the current holders of an admin seat to LODGE_MEMBER.

    DISTRICT_ADMIN has one seat. LODGE_ADMIN holders are only considered when
    they share the target's primary lodge; a target without a primary lodge
    demotes nobody here.
    """
    holders = await user_store.find_by_role(db, role)
    if role == Role.LODGE_ADMIN:
        scope = target.primary_lodge
        if not scope:
            return []
        holders = [h for h in holders if h.primary_lodge == scope]

    demoted = []
    for holder in user_store.unique_people(holders):
        if holder.id in exclude_ids:
            continue
        logger.info(
            "Demoting previous %s %s (%s)",
            role.value, holder.id, user_store.display_name(holder),
        )
        await user_store.apply_update(
            db,
            holder.id,
            {"role": Role.LODGE_MEMBER, "administered_lodges": []},
        )
        demoted.append(holder.id)
    return demoted


async def _release_lodge(db: AsyncSession, lodge_id: str, keep_id: str) -> list[str]:
    """
    Remove a lodge from everyone's administered lodges except ``keep_id``.

    Each row is handled on its own since copies may disagree. Lodge admins
    left with nothing to administer become members.
    """
    released = []
    for record in await user_store.all_records(db):
        if record.id == keep_id or not user_store.administers(record, lodge_id):
            continue
        remaining = [lodge for lodge in record.administered_lodges if lodge != lodge_id]
        values: dict[str, Any] = {"administered_lodges": remaining}
        if not remaining and _current_role(record) == Role.LODGE_ADMIN:
            values["role"] = Role.LODGE_MEMBER
        logger.info(
            "Removing lodge %s from %s in %s",
            lodge_id, record.id, user_store.collection_name(record),
        )
        await user_store.update_record(db, record, values)
        released.append(record.id)
    return released


async def _pick_district_successor(
    db: AsyncSession,
    outgoing_id: str,
    district: Optional[Lodge],
) -> Optional[Member]:
    """
    Choose who takes over the district admin seat.

    Active members other than the outgoing admin who hold no district or super
    role are eligible. Members of the district lodge come first; ties go to
    the oldest record.
    """
    result = await db.execute(select(Member).order_by(Member.created.asc(), Member.id.asc()))
    eligible = [
        m for m in result.scalars().all()
        if m.id != outgoing_id
        and _current_role(m) not in (Role.DISTRICT_ADMIN, Role.SUPER_ADMIN)
        and enum_value(m.status) == AccountStatus.ACTIVE.value
    ]
    if district is not None:
        in_district = [m for m in eligible if user_store.belongs_to_lodge(m, district.id)]
        if in_district:
            return in_district[0]
    return eligible[0] if eligible else None


async def _hand_off_district_seat(
    db: AsyncSession,
    caller: AuthUser,
    located: LocatedRecord,
) -> dict[str, Any]:
    """The caller steps down to LODGE_ADMIN and a successor takes the district seat."""
    district = await user_store.district_lodge(db)
    successor = await _pick_district_successor(db, caller.user_id, district)
    if successor is None:
        raise ServiceError(400, "No suitable member found in the district to transfer the role to")

    district_id = district.id if district is not None else None
    outgoing = located.record

    outgoing_values = {
        "role": Role.LODGE_ADMIN,
        "administered_lodges": [
            lodge for lodge in (outgoing.administered_lodges or []) if lodge != district_id
        ],
    }
    await user_store.update_record(db, outgoing, outgoing_values)
    await user_store.apply_update(db, outgoing.id, outgoing_values, skip=located.collection)

    incoming_lodges = list(successor.administered_lodges or [])
    if district_id and district_id not in incoming_lodges:
        incoming_lodges.append(district_id)
    incoming_values = {"role": Role.DISTRICT_ADMIN, "administered_lodges": incoming_lodges}
    await user_store.update_record(db, successor, incoming_values)
    await user_store.apply_update(db, successor.id, incoming_values, skip="members")
    await user_store.ensure_user_record(db, successor)

    # Stale district admin rows anywhere else lose the seat too
    await _demote_previous_holders(db, Role.DISTRICT_ADMIN, successor, exclude_ids={successor.id})

    successor_name = user_store.display_name(successor)
    logger.info("District admin role transferred from %s to %s", outgoing.id, successor.id)
    return {
        "success": True,
        "message": f"District admin role transferred successfully to {successor_name}",
        "transferDetails": {
            "from": outgoing.id,
            "to": successor.id,
            "newDistrictAdmin": successor_name,
        },
    }


async def change_role(
    db: AsyncSession,
    caller: AuthUser,
    target_user_id: Optional[str],
    new_role: Optional[str],
    lodge_id: Optional[str] = None,
) -> dict[str, Any]:
    """Change a person's role, demoting the previous holder of an admin seat."""
    require_role_manager(caller, "change roles")

    if not new_role or not target_user_id:
        raise ServiceError(400, "Missing required fields: newRole and targetUserId")
    role = _parse_role(new_role)

    located = await user_store.locate(db, target_user_id)
    if located is None:
        raise ServiceError(404, "Target member not found")
    target = located.record
    current = _current_role(target)
    is_self = target.id == caller.user_id

    if caller.role == Role.DISTRICT_ADMIN.value:
        if role == Role.SUPER_ADMIN:
            raise ServiceError(403, "Forbidden - District admins cannot promote to super admin")
        if current == Role.SUPER_ADMIN:
            raise ServiceError(403, "Forbidden - District admins cannot modify super admin roles")
        if current == Role.DISTRICT_ADMIN and role != Role.DISTRICT_ADMIN:
            if is_self and role == Role.LODGE_ADMIN:
                return await _hand_off_district_seat(db, caller, located)
            if is_self:
                raise ServiceError(
                    403,
                    "Forbidden - District admins can only step down by handing the seat to another member",
                )
            raise ServiceError(403, "Forbidden - Cannot demote another district admin")

    if caller.role == Role.SUPER_ADMIN.value and current == Role.SUPER_ADMIN and role != Role.SUPER_ADMIN:
        await _ensure_not_last_super_admin(db)

    if role in SEAT_ROLES:
        await _demote_previous_holders(db, role, target, exclude_ids={target.id})
        if role == Role.LODGE_ADMIN and lodge_id:
            await _release_lodge(db, lodge_id, keep_id=target.id)

    values: dict[str, Any] = {"role": role}
    if role == Role.LODGE_ADMIN and lodge_id:
        values["administered_lodges"] = [lodge_id]
    elif role == Role.LODGE_MEMBER:
        values["administered_lodges"] = []

    await user_store.update_record(db, target, values)
    synced = await user_store.apply_update(db, target.id, values, skip=located.collection)

    if role in ADMIN_ROLES:
        await user_store.ensure_user_record(db, target)
    elif role == Role.LODGE_MEMBER:
        await _drop_admin_account(db, target.id)

    logger.info(
        "Role of %s changed from %s to %s by %s (primary=%s, synced=%s)",
        target.id, current.value, role.value, caller.user_id, located.collection, synced,
    )
    return {
        "success": True,
        "message": f"Role updated successfully to {role.value}",
        "member": _summary(target, role),
    }


async def _drop_admin_account(db: AsyncSession, user_id: str) -> None:
    """Plain members do not keep a users row."""
    user_row = await db.get(User, user_id)
    if user_row is None:
        return
    await db.delete(user_row)
    await db.flush()
    logger.info("Removed users record of %s after demotion", user_id)


async def role_info(db: AsyncSession, caller: AuthUser, user_id: str) -> dict[str, Any]:
    """Current role of a person and the roles the caller may assign."""
    require_role_manager(caller, "view role information")

    located = await user_store.locate(db, user_id)
    if located is None:
        raise ServiceError(404, "Member not found")
    record = located.record
    current = _current_role(record)

    available = Role.values()
    if caller.role == Role.DISTRICT_ADMIN.value:
        if current == Role.SUPER_ADMIN:
            raise ServiceError(403, "Forbidden - Cannot view super admin role information")
        if record.id == caller.user_id:
            available = [Role.LODGE_ADMIN.value]
        elif current == Role.DISTRICT_ADMIN:
            available = []
        else:
            available = [Role.LODGE_MEMBER.value, Role.LODGE_ADMIN.value, Role.DISTRICT_ADMIN.value]

    super_admins = await user_store.count_super_admins(db)
    district_admins = len([
        u for u in await user_store.find_by_role(db, Role.DISTRICT_ADMIN)
        if isinstance(u, User)
    ])
    return {
        "member": {
            "_id": record.id,
            "name": user_store.display_name(record),
            "email": record.email,
            "currentRole": current.value,
            "isInUserCollection": located.in_users,
        },
        "availableRoles": available,
        "adminCounts": {
            "superAdmins": super_admins,
            "districtAdmins": district_admins,
        },
    }


async def transfer_lodge_admin(
    db: AsyncSession,
    caller: AuthUser,
    new_admin_id: Optional[str],
    lodge_id: Optional[str],
) -> dict[str, Any]:
    """A lodge admin hands their lodge over to another member."""
    if caller.role != Role.LODGE_ADMIN.value:
        raise ServiceError(403, "Only lodge admins can transfer privileges")
    if not new_admin_id:
        raise ServiceError(400, "New admin ID is required")
    if not lodge_id:
        raise ServiceError(400, "Lodge ID is required")
    if new_admin_id == caller.user_id:
        raise ServiceError(400, "Cannot transfer admin privileges to yourself")

    current = await user_store.locate(db, caller.user_id)
    if current is None:
        raise ServiceError(404, "Current admin not found in database")
    if not user_store.administers(current.record, lodge_id):
        raise ServiceError(403, "You do not administer this lodge")

    incoming = await user_store.locate(db, new_admin_id)
    if incoming is None:
        raise ServiceError(404, "New admin candidate not found in database")
    if _current_role(incoming.record) in (Role.SUPER_ADMIN, Role.DISTRICT_ADMIN):
        raise ServiceError(400, "Cannot hand a lodge to a district or super admin")

    # The new admin must belong to the lodge they will run
    for copy in await user_store.find_all_copies(db, new_admin_id):
        if user_store.belongs_to_lodge(copy, lodge_id):
            continue
        await user_store.update_record(db, copy, {
            "primary_lodge": copy.primary_lodge or lodge_id,
            "lodges": list(copy.lodges or []) + [lodge_id],
        })

    for copy in await user_store.find_all_copies(db, caller.user_id):
        remaining = [lodge for lodge in (copy.administered_lodges or []) if lodge != lodge_id]
        values: dict[str, Any] = {"administered_lodges": remaining}
        if not remaining:
            values["role"] = Role.LODGE_MEMBER
        await user_store.update_record(db, copy, values)

    for copy in await user_store.find_all_copies(db, new_admin_id):
        administered = list(copy.administered_lodges or [])
        if lodge_id not in administered:
            administered.append(lodge_id)
        await user_store.update_record(db, copy, {
            "role": Role.LODGE_ADMIN,
            "administered_lodges": administered,
        })
    await user_store.ensure_user_record(db, incoming.record)
    await _release_lodge(db, lodge_id, keep_id=new_admin_id)

    logger.info("Lodge %s handed from %s to %s", lodge_id, caller.user_id, new_admin_id)
    return {
        "success": True,
        "message": "Lodge admin privileges transferred successfully",
        "previousAdmin": _summary(current.record),
        "newAdmin": _summary(incoming.record),
    }
