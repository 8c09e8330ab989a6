"""
Member endpoints.

A person may have a row in members, users and unifiedusers. Reads resolve
the first copy found (members, then users, then unifiedusers); writes go to
that copy and are then copied to the others.
"""
import logging
from typing import Optional, Any
from math import ceil
from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.ext.asyncio import AsyncSession

from lodgeportal.db.base import get_db
from lodgeportal.core.deps import AuthUser, get_current_user, require_roles
from lodgeportal.core.permissions import (
    require_admin,
    administered_lodges,
    caller_district_lodges,
    get_caller_record,
)
from lodgeportal.core.config import settings
from lodgeportal.core.security import get_password_hash, verify_password
from lodgeportal.models.base import enum_value, generate_id, utcnow
from lodgeportal.models.enums import Role, AccountStatus
from lodgeportal.models.user_record import Member, UnifiedUser
from lodgeportal.schemas.common import PaginatedResponse, MessageResponse
from lodgeportal.schemas.member import (
    MemberCreate,
    MemberUpdate,
    MemberResponse,
    ProfileUpdate,
    RoleChangeRequest,
    LodgeAdminTransferRequest,
    PasswordChangeRequest,
    PasswordResetRequest,
)
from lodgeportal.services import user_store, role_transfer
from lodgeportal.services.errors import ServiceError
from lodgeportal.services.user_store import UserRecord

logger = logging.getLogger(__name__)

router = APIRouter()

# Request field -> column
FIELD_MAP = {
    "firstName": "first_name",
    "lastName": "last_name",
    "email": "email",
    "phone": "phone",
    "address": "address",
    "city": "city",
    "state": "state",
    "zipCode": "zip_code",
    "country": "country",
    "occupation": "occupation",
    "bio": "bio",
    "interests": "interests",
    "profileImage": "profile_image",
    "status": "status",
    "primaryLodge": "primary_lodge",
    "primaryLodgePosition": "primary_lodge_position",
    "lodges": "lodges",
    "lodgeRoles": "lodge_roles",
}


def member_to_response(record: UserRecord) -> MemberResponse:
    """Convert any user row to MemberResponse schema."""
    return MemberResponse(
        id=record.id,
        email=record.email,
        name=user_store.display_name(record),
        firstName=record.first_name,
        lastName=record.last_name,
        role=user_store.role_of(record),
        status=enum_value(record.status),
        phone=record.phone,
        address=record.address,
        city=record.city,
        state=record.state,
        zipCode=record.zip_code,
        country=record.country,
        occupation=record.occupation,
        bio=record.bio,
        interests=list(record.interests or []),
        profileImage=record.profile_image,
        primaryLodge=record.primary_lodge,
        primaryLodgePosition=record.primary_lodge_position,
        lodges=[str(lodge) for lodge in (record.lodges or [])],
        lodgeMemberships=[m for m in (record.lodge_memberships or []) if isinstance(m, dict)],
        administeredLodges=list(record.administered_lodges or []),
        lodgeRoles=dict(record.lodge_roles or {}),
        memberSince=record.member_since,
        lastLogin=record.last_login,
        created=record.created,
        updated=record.updated,
    )


def _matches_search(record: UserRecord, search: str) -> bool:
    needle = search.lower()
    haystack = (user_store.display_name(record), record.email or "")
    return any(needle in value.lower() for value in haystack)


def _changes(data: Any, located: Optional[user_store.LocatedRecord] = None) -> dict[str, Any]:
    """Column values for the fields present in an update body."""
    values: dict[str, Any] = {}
    for field, column in FIELD_MAP.items():
        if field not in data.model_fields_set:
            continue
        value = getattr(data, field, None)
        if value is None and column in ("interests", "lodges"):
            value = []
        elif value is None and column == "lodge_roles":
            value = {}
        values[column] = value

    if "status" in values:
        try:
            values["status"] = AccountStatus(str(values["status"]).lower())
        except ValueError:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Invalid status '{values['status']}'. Allowed statuses: {[s.value for s in AccountStatus]}"
            )
    if "email" in values and values["email"]:
        values["email"] = values["email"].strip().lower()

    if located is not None and ("first_name" in values or "last_name" in values):
        first = values.get("first_name", located.record.first_name) or ""
        last = values.get("last_name", located.record.last_name) or ""
        values["name"] = f"{first} {last}".strip() or located.record.name
    return values


async def _load(db: AsyncSession, member_id: str) -> user_store.LocatedRecord:
    located = await user_store.locate(db, member_id)
    if located is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Member not found"
        )
    return located


@router.get("", response_model=PaginatedResponse[MemberResponse])
async def list_members(
    page: int = Query(1, ge=1),
    perPage: int = Query(50, ge=1, le=500),
    email: Optional[str] = None,
    search: Optional[str] = None,
    status_filter: Optional[str] = Query(None, alias="status"),
    role: Optional[str] = None,
    lodgeId: Optional[str] = None,
    district: bool = False,
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser = Depends(get_current_user)
):
    """
    List people across the three stores, one entry per id.

    Lodge admins only see members of the lodges they administer. District
    admins asking for ``district=true`` see members of the lodges in their
    district.
    """
    people = user_store.unique_people(await user_store.all_records(db))

    if current_user.role == Role.LODGE_ADMIN.value:
        scope = await administered_lodges(db, current_user)
        people = [p for p in people if any(user_store.belongs_to_lodge(p, lodge) for lodge in scope)]
    elif district and current_user.role == Role.DISTRICT_ADMIN.value:
        scope = await caller_district_lodges(db, current_user)
        people = [p for p in people if any(user_store.belongs_to_lodge(p, lodge) for lodge in scope)]

    if email:
        people = [p for p in people if (p.email or "").lower() == email.strip().lower()]
    if lodgeId:
        people = [p for p in people if user_store.belongs_to_lodge(p, lodgeId)]
    if status_filter:
        people = [p for p in people if enum_value(p.status) == status_filter.lower()]
    if role:
        people = [p for p in people if user_store.role_of(p) == role.upper()]
    if search:
        people = [p for p in people if _matches_search(p, search)]

    people.sort(key=lambda p: user_store.display_name(p).lower())

    total_items = len(people)
    start = (page - 1) * perPage
    items = [member_to_response(p) for p in people[start:start + perPage]]

    return PaginatedResponse[MemberResponse](
        page=page,
        perPage=perPage,
        totalItems=total_items,
        totalPages=ceil(total_items / perPage) if total_items > 0 else 1,
        items=items
    )


@router.post("", response_model=MemberResponse, status_code=status.HTTP_201_CREATED)
async def create_member(
    member_data: MemberCreate,
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser = Depends(get_current_user)
):
    """
    Create a member.
    Requires an admin role; lodge admins can only add members to their lodges.

    Writes the members row and a matching unifiedusers row so the new member
    can sign in.
    """
    require_admin(current_user, "Not authorized to create members")

    missing = [
        field for field in ("firstName", "lastName", "email", "password")
        if not getattr(member_data, field)
    ]
    if missing:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Missing required fields: {', '.join(missing)}"
        )

    email = member_data.email.strip().lower()
    if await user_store.email_taken(db, email):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="A member with this email already exists"
        )

    try:
        account_status = AccountStatus(member_data.status.lower())
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid status '{member_data.status}'"
        )

    primary_lodge = member_data.primaryLodge
    if current_user.role == Role.LODGE_ADMIN.value:
        scope = await administered_lodges(db, current_user)
        if primary_lodge is None and scope:
            primary_lodge = scope[0]
        if primary_lodge not in scope:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Lodge admins can only add members to their own lodges"
            )

    now = utcnow()
    values = dict(
        email=email,
        password_hash=get_password_hash(member_data.password),
        name=f"{member_data.firstName} {member_data.lastName}",
        first_name=member_data.firstName,
        last_name=member_data.lastName,
        role=Role.LODGE_MEMBER,
        status=account_status,
        phone=member_data.phone,
        address=member_data.address,
        city=member_data.city,
        state=member_data.state,
        zip_code=member_data.zipCode,
        country=member_data.country,
        occupation=member_data.occupation,
        bio=member_data.bio,
        primary_lodge=primary_lodge,
        primary_lodge_position=member_data.primaryLodgePosition,
        member_since=now,
    )

    member_id = generate_id()
    member = Member(
        id=member_id,
        lodges=[primary_lodge] if primary_lodge else [],
        lodge_memberships=(
            [{"lodge": primary_lodge, "position": member_data.primaryLodgePosition or "MEMBER", "isActive": True}]
            if primary_lodge else []
        ),
        **values
    )
    unified = UnifiedUser(
        id=member_id,
        lodges=list(member.lodges),
        lodge_memberships=[dict(m) for m in member.lodge_memberships],
        **values
    )
    db.add_all([member, unified])
    await db.flush()

    logger.info("Member %s (%s) created by %s", member_id, email, current_user.user_id)
    return member_to_response(member)


@router.get("/me", response_model=MemberResponse)
async def get_me(
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser = Depends(get_current_user)
):
    """Get the caller's own record."""
    located = await get_caller_record(db, current_user)
    return member_to_response(located.record)


@router.patch("/me", response_model=MemberResponse)
async def update_me(
    profile: ProfileUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser = Depends(get_current_user)
):
    """Update the caller's own profile fields in every store."""
    located = await get_caller_record(db, current_user)
    values = _changes(profile, located)
    if values:
        await user_store.update_person(db, located, values)
    return member_to_response(located.record)


@router.post("/transfer-lodge-admin")
async def transfer_lodge_admin(
    body: LodgeAdminTransferRequest,
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser = Depends(get_current_user)
):
    """Hand the caller's lodge admin seat for one lodge to another member."""
    return await role_transfer.transfer_lodge_admin(db, current_user, body.newAdminId, body.lodgeId)


@router.get("/{member_id}", response_model=MemberResponse)
async def get_member(
    member_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser = Depends(get_current_user)
):
    """Get a member by ID."""
    located = await _load(db, member_id)
    return member_to_response(located.record)


@router.patch("/{member_id}", response_model=MemberResponse)
async def update_member(
    member_id: str,
    member_data: MemberUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser = Depends(get_current_user)
):
    """
    Update a member.
    Requires an admin role; lodge admins only for members of their lodges.
    Role changes go through PUT /{id}/role.
    """
    require_admin(current_user, "Not authorized to update members")
    located = await _load(db, member_id)
    record = located.record

    if current_user.role == Role.LODGE_ADMIN.value:
        scope = await administered_lodges(db, current_user)
        if not any(user_store.belongs_to_lodge(record, lodge) for lodge in scope):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Not authorized to update members of other lodges"
            )

    if member_data.role is not None and member_data.role.upper() != user_store.role_of(record):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Roles cannot be changed here; use the role endpoint"
        )

    values = _changes(member_data, located)
    if values.get("email") and await user_store.email_taken(db, values["email"], exclude_id=record.id):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="A member with this email already exists"
        )

    if values:
        synced = await user_store.update_person(db, located, values)
        logger.info("Member %s updated by %s in %s", record.id, current_user.user_id, synced)
    return member_to_response(record)


@router.delete("/{member_id}", response_model=MessageResponse)
async def delete_member(
    member_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser = Depends(require_roles(Role.SUPER_ADMIN, Role.DISTRICT_ADMIN))
):
    """
    Delete a member from every store.
    Requires a super or district admin. Anyone holding an admin role must be
    demoted through the role endpoint before they can be deleted.
    """
    located = await _load(db, member_id)
    target_role = user_store.role_of(located.record)

    if member_id == current_user.user_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot delete your own account"
        )
    if target_role in Role.admin_values():
        logger.warning(
            "Refusing to delete %s (%s) requested by %s",
            member_id, target_role, current_user.user_id,
        )
        raise ServiceError(
            403,
            "Cannot delete member with administrative privileges",
            details=(
                f"This member has the role '{target_role}'. Please remove their "
                "administrative privileges before deleting the member."
            ),
        )

    deleted = await user_store.delete_everywhere(db, member_id)
    logger.info("Member %s deleted from %s by %s", member_id, deleted, current_user.user_id)
    return MessageResponse(message="Member deleted successfully")


@router.get("/{member_id}/role")
async def get_member_role(
    member_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser = Depends(get_current_user)
):
    """Current role and the roles the caller may assign."""
    return await role_transfer.role_info(db, current_user, member_id)


@router.put("/{member_id}/role")
async def change_member_role(
    member_id: str,
    body: RoleChangeRequest,
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser = Depends(get_current_user)
):
    """
    Change a member's role.

    The target comes from the body; the path id must agree with it when both
    are given.
    """
    role_transfer.require_role_manager(current_user, "change roles")
    if body.targetUserId and body.targetUserId != member_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="targetUserId does not match the member in the URL"
        )
    return await role_transfer.change_role(
        db,
        current_user,
        body.targetUserId,
        body.newRole,
        body.lodgeId,
    )


def _check_new_password(password: Optional[str]) -> None:
    if not password or len(password) < settings.MIN_PASSWORD_LENGTH:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Password must be at least {settings.MIN_PASSWORD_LENGTH} characters long"
        )


@router.post("/{member_id}/change-password", response_model=MessageResponse)
async def change_password(
    member_id: str,
    password_data: PasswordChangeRequest,
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser = Depends(get_current_user)
):
    """
    Change the caller's own password.

    The current password is checked against the sign-in copy in unifiedusers
    when there is one. The new hash is written to every store.
    """
    if member_id != current_user.user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not authorized"
        )
    if not password_data.currentPassword:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Current password is required"
        )
    _check_new_password(password_data.newPassword)

    located = await _load(db, member_id)
    sign_in = await db.get(UnifiedUser, member_id) or located.record
    if not verify_password(password_data.currentPassword, sign_in.password_hash):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Current password is incorrect"
        )

    synced = await user_store.update_person(
        db, located, {"password_hash": get_password_hash(password_data.newPassword)}
    )
    logger.info("Password of %s changed in %s", member_id, synced)
    return MessageResponse(message="Password changed successfully")


@router.post("/{member_id}/reset-password", response_model=MessageResponse)
async def reset_password(
    member_id: str,
    password_data: PasswordResetRequest,
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser = Depends(get_current_user)
):
    """
    Set a new password for another person.
    Super and district admins may reset anyone below super admin; super admins
    may also reset each other. Lodge admins only reset plain members of the
    lodges they administer.
    """
    require_admin(current_user, "Not authorized to reset passwords")
    _check_new_password(password_data.newPassword)

    located = await _load(db, member_id)
    record = located.record
    target_role = user_store.role_of(record)

    if target_role == Role.SUPER_ADMIN.value and current_user.role != Role.SUPER_ADMIN.value:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only super admins can reset super admin passwords"
        )
    if current_user.role == Role.LODGE_ADMIN.value:
        scope = await administered_lodges(db, current_user)
        in_scope = any(user_store.belongs_to_lodge(record, lodge) for lodge in scope)
        if not in_scope or target_role != Role.LODGE_MEMBER.value:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Not authorized to reset this member's password"
            )

    synced = await user_store.update_person(
        db, located, {"password_hash": get_password_hash(password_data.newPassword)}
    )
    logger.info("Password of %s reset by %s in %s", member_id, current_user.user_id, synced)
    return MessageResponse(message="Password reset successful")
