"""
Tests for role changes and admin-seat transfers across the three user stores.
"""
from datetime import timedelta

import pytest
from httpx import AsyncClient

from lodgeportal.models import Member, User, UnifiedUser, Role, AccountStatus
from lodgeportal.services import user_store
from tests.conftest import create_person, headers_for, reject_writes, BASE_TIME


async def role_holders(db, role: Role) -> set[str]:
    return {record.id for record in await user_store.find_by_role(db, role)}


async def roles_everywhere(db, person_id: str) -> set[str]:
    return {user_store.role_of(r) for r in await user_store.find_all_copies(db, person_id)}


async def administrators_of(db, lodge_id: str) -> set[str]:
    return {
        record.id for record in await user_store.all_records(db)
        if user_store.administers(record, lodge_id)
    }


def role_url(person_id: str) -> str:
    return f"/api/members/{person_id}/role"


class TestRoleChangeValidation:
    """Request validation and caller gates."""

    @pytest.mark.asyncio
    async def test_missing_new_role_is_400(self, client: AsyncClient, super_headers, member):
        resp = await client.put(role_url(member.id), headers=super_headers, json={"targetUserId": member.id})
        assert resp.status_code == 400, resp.text
        assert resp.json()["detail"] == "Missing required fields: newRole and targetUserId"

    @pytest.mark.asyncio
    async def test_missing_target_is_400(self, client: AsyncClient, super_headers, member):
        resp = await client.put(role_url(member.id), headers=super_headers, json={"newRole": "LODGE_ADMIN"})
        assert resp.status_code == 400, resp.text

    @pytest.mark.asyncio
    async def test_invalid_role_is_400(self, client: AsyncClient, super_headers, member):
        resp = await client.put(
            role_url(member.id),
            headers=super_headers,
            json={"newRole": "GRAND_MASTER", "targetUserId": member.id},
        )
        assert resp.status_code == 400, resp.text
        assert "allowedRoles" in resp.json()["details"]

    @pytest.mark.asyncio
    async def test_member_caller_is_forbidden(self, client: AsyncClient, member_headers, member):
        resp = await client.put(
            role_url(member.id),
            headers=member_headers,
            json={"newRole": "LODGE_ADMIN", "targetUserId": member.id},
        )
        assert resp.status_code == 403, resp.text

    @pytest.mark.asyncio
    async def test_lodge_admin_caller_is_forbidden(self, client: AsyncClient, lodge_admin_headers, member):
        resp = await client.put(
            role_url(member.id),
            headers=lodge_admin_headers,
            json={"newRole": "LODGE_ADMIN", "targetUserId": member.id},
        )
        assert resp.status_code == 403, resp.text

    @pytest.mark.asyncio
    async def test_unknown_target_is_404(self, client: AsyncClient, super_headers):
        missing_id = "0" * 24
        resp = await client.put(
            role_url(missing_id),
            headers=super_headers,
            json={"newRole": "LODGE_ADMIN", "targetUserId": missing_id},
        )
        assert resp.status_code == 404, resp.text

    @pytest.mark.asyncio
    async def test_no_token_is_401(self, client: AsyncClient, member):
        resp = await client.put(role_url(member.id), json={"newRole": "LODGE_ADMIN", "targetUserId": member.id})
        assert resp.status_code == 401, resp.text

    @pytest.mark.asyncio
    async def test_target_in_body_must_match_url(self, client: AsyncClient, super_headers, member, lodge_admin):
        resp = await client.put(
            role_url(member.id),
            headers=super_headers,
            json={"newRole": "LODGE_ADMIN", "targetUserId": lodge_admin.id},
        )
        assert resp.status_code == 400, resp.text

    @pytest.mark.asyncio
    async def test_member_caller_with_mismatched_target_is_forbidden(
        self, client: AsyncClient, member_headers, member, lodge_admin
    ):
        resp = await client.put(
            role_url(member.id),
            headers=member_headers,
            json={"newRole": "LODGE_ADMIN", "targetUserId": lodge_admin.id},
        )
        assert resp.status_code == 403, resp.text
        assert resp.json()["detail"].startswith("Forbidden - Only super admins and district admins")


class TestDistrictAdminRestrictions:
    """What a district admin may not do."""

    @pytest.mark.asyncio
    async def test_cannot_promote_to_super_admin(self, client: AsyncClient, db_session, district_headers, member):
        resp = await client.put(
            role_url(member.id),
            headers=district_headers,
            json={"newRole": "SUPER_ADMIN", "targetUserId": member.id},
        )
        assert resp.status_code == 403, resp.text
        assert await roles_everywhere(db_session, member.id) == {Role.LODGE_MEMBER.value}
        assert member.id not in await role_holders(db_session, Role.SUPER_ADMIN)

    @pytest.mark.asyncio
    async def test_cannot_modify_super_admin(self, client: AsyncClient, db_session, district_headers, super_admin):
        resp = await client.put(
            role_url(super_admin.id),
            headers=district_headers,
            json={"newRole": "LODGE_MEMBER", "targetUserId": super_admin.id},
        )
        assert resp.status_code == 403, resp.text
        assert await roles_everywhere(db_session, super_admin.id) == {Role.SUPER_ADMIN.value}

    @pytest.mark.asyncio
    async def test_cannot_demote_other_district_admin(
        self, client: AsyncClient, db_session, district_headers, district_lodge
    ):
        other = await create_person(
            db_session, "Omar", "Otherdistrict", role=Role.DISTRICT_ADMIN,
            primary_lodge=district_lodge.id,
        )
        resp = await client.put(
            role_url(other.id),
            headers=district_headers,
            json={"newRole": "LODGE_ADMIN", "targetUserId": other.id},
        )
        assert resp.status_code == 403, resp.text
        assert await roles_everywhere(db_session, other.id) == {Role.DISTRICT_ADMIN.value}

    @pytest.mark.asyncio
    async def test_cannot_step_down_to_member(self, client: AsyncClient, db_session, district_headers, district_admin, member):
        resp = await client.put(
            role_url(district_admin.id),
            headers=district_headers,
            json={"newRole": "LODGE_MEMBER", "targetUserId": district_admin.id},
        )
        assert resp.status_code == 403, resp.text
        assert await roles_everywhere(db_session, district_admin.id) == {Role.DISTRICT_ADMIN.value}

    @pytest.mark.asyncio
    async def test_can_promote_member_to_lodge_admin(
        self, client: AsyncClient, db_session, district_headers, member, lodge_a
    ):
        resp = await client.put(
            role_url(member.id),
            headers=district_headers,
            json={"newRole": "LODGE_ADMIN", "targetUserId": member.id, "lodgeId": lodge_a.id},
        )
        assert resp.status_code == 200, resp.text
        assert await roles_everywhere(db_session, member.id) == {Role.LODGE_ADMIN.value}


class TestDistrictSeatHandOff:
    """A district admin making themself LODGE_ADMIN hands the seat to someone else."""

    @pytest.mark.asyncio
    async def test_hand_off_prefers_district_lodge_members(
        self, client: AsyncClient, db_session, district_admin, district_lodge, member, super_admin
    ):
        # Newer than `member`, but belongs to the district lodge
        successor = await create_person(
            db_session, "Bea", "Successor", stores=("members", "unifiedusers"),
            primary_lodge=district_lodge.id, created=BASE_TIME + timedelta(days=5),
        )

        resp = await client.put(
            role_url(district_admin.id),
            headers=headers_for(district_admin),
            json={"newRole": "LODGE_ADMIN", "targetUserId": district_admin.id},
        )
        assert resp.status_code == 200, resp.text
        data = resp.json()
        assert data["success"] is True
        assert data["transferDetails"]["from"] == district_admin.id
        assert data["transferDetails"]["to"] == successor.id
        assert data["transferDetails"]["newDistrictAdmin"] == "Bea Successor"

        assert await role_holders(db_session, Role.DISTRICT_ADMIN) == {successor.id}
        assert await roles_everywhere(db_session, district_admin.id) == {Role.LODGE_ADMIN.value}
        assert await roles_everywhere(db_session, successor.id) == {Role.DISTRICT_ADMIN.value}

        for copy in await user_store.find_all_copies(db_session, district_admin.id):
            assert district_lodge.id not in copy.administered_lodges
        for copy in await user_store.find_all_copies(db_session, successor.id):
            assert district_lodge.id in copy.administered_lodges

        # The successor had no users row; one is created for the new admin
        users_row = await db_session.get(User, successor.id)
        assert users_row is not None
        assert users_row.role == Role.DISTRICT_ADMIN

    @pytest.mark.asyncio
    async def test_hand_off_falls_back_to_oldest_active_member(
        self, client: AsyncClient, db_session, district_admin, lodge_b, member
    ):
        await create_person(
            db_session, "Ivy", "Inactive", stores=("members",), primary_lodge=lodge_b.id,
            status=AccountStatus.INACTIVE, created=BASE_TIME - timedelta(days=10),
        )
        await create_person(
            db_session, "Nate", "Newer", stores=("members",), primary_lodge=lodge_b.id,
            created=BASE_TIME + timedelta(days=30),
        )

        resp = await client.put(
            role_url(district_admin.id),
            headers=headers_for(district_admin),
            json={"newRole": "LODGE_ADMIN", "targetUserId": district_admin.id},
        )
        assert resp.status_code == 200, resp.text
        assert resp.json()["transferDetails"]["to"] == member.id
        assert await role_holders(db_session, Role.DISTRICT_ADMIN) == {member.id}

    @pytest.mark.asyncio
    async def test_hand_off_without_successor_changes_nothing(
        self, client: AsyncClient, db_session, district_admin, super_admin
    ):
        resp = await client.put(
            role_url(district_admin.id),
            headers=headers_for(district_admin),
            json={"newRole": "LODGE_ADMIN", "targetUserId": district_admin.id},
        )
        assert resp.status_code == 400, resp.text
        assert await role_holders(db_session, Role.DISTRICT_ADMIN) == {district_admin.id}
        assert await roles_everywhere(db_session, district_admin.id) == {Role.DISTRICT_ADMIN.value}

    @pytest.mark.asyncio
    async def test_hand_off_clears_stale_district_admin_rows(
        self, client: AsyncClient, db_session, district_admin, district_lodge, member
    ):
        # A leftover district admin that only exists in unifiedusers
        stale = await create_person(
            db_session, "Stan", "Stale", role=Role.DISTRICT_ADMIN, stores=("unifiedusers",),
            primary_lodge=district_lodge.id,
        )

        resp = await client.put(
            role_url(district_admin.id),
            headers=headers_for(district_admin),
            json={"newRole": "LODGE_ADMIN", "targetUserId": district_admin.id},
        )
        assert resp.status_code == 200, resp.text
        new_admin = resp.json()["transferDetails"]["to"]
        assert new_admin != stale.id
        assert await role_holders(db_session, Role.DISTRICT_ADMIN) == {new_admin}
        assert await roles_everywhere(db_session, stale.id) == {Role.LODGE_MEMBER.value}


class TestSuperAdminSafety:
    """The last super admin in the users store cannot be demoted."""

    @pytest.mark.asyncio
    async def test_last_super_admin_cannot_be_demoted(self, client: AsyncClient, db_session, super_admin, super_headers):
        resp = await client.put(
            role_url(super_admin.id),
            headers=super_headers,
            json={"newRole": "LODGE_MEMBER", "targetUserId": super_admin.id},
        )
        assert resp.status_code == 400, resp.text
        assert await roles_everywhere(db_session, super_admin.id) == {Role.SUPER_ADMIN.value}
        assert await db_session.get(User, super_admin.id) is not None
        assert await user_store.count_super_admins(db_session) == 1

    @pytest.mark.asyncio
    async def test_super_admin_only_outside_users_does_not_count(
        self, client: AsyncClient, db_session, super_admin, super_headers
    ):
        # Present in members only, so the users-based count is still one
        await create_person(db_session, "Shadow", "Super", role=Role.SUPER_ADMIN, stores=("members",))
        resp = await client.put(
            role_url(super_admin.id),
            headers=super_headers,
            json={"newRole": "DISTRICT_ADMIN", "targetUserId": super_admin.id},
        )
        assert resp.status_code == 400, resp.text

    @pytest.mark.asyncio
    async def test_demoting_one_of_two_super_admins(self, client: AsyncClient, db_session, super_admin, super_headers):
        second = await create_person(db_session, "Sue", "Second", role=Role.SUPER_ADMIN)
        resp = await client.put(
            role_url(second.id),
            headers=super_headers,
            json={"newRole": "LODGE_MEMBER", "targetUserId": second.id},
        )
        assert resp.status_code == 200, resp.text
        assert resp.json()["member"]["role"] == "LODGE_MEMBER"

        # Members do not keep a users row
        assert await db_session.get(User, second.id) is None
        assert (await db_session.get(Member, second.id)).role == Role.LODGE_MEMBER
        assert (await db_session.get(UnifiedUser, second.id)).role == Role.LODGE_MEMBER
        assert await user_store.count_super_admins(db_session) == 1


class TestAdminSeatDemotion:
    """Promotions demote whoever held the seat before."""

    @pytest.mark.asyncio
    async def test_lodge_admin_promotion_leaves_one_administrator(
        self, client: AsyncClient, db_session, super_headers, lodge_admin, member, lodge_a, lodge_b
    ):
        other = await create_person(
            db_session, "Ola", "Twolodges", role=Role.LODGE_ADMIN,
            primary_lodge=lodge_b.id, administered=[lodge_b.id, lodge_a.id],
        )

        resp = await client.put(
            role_url(member.id),
            headers=super_headers,
            json={"newRole": "LODGE_ADMIN", "targetUserId": member.id, "lodgeId": lodge_a.id},
        )
        assert resp.status_code == 200, resp.text
        data = resp.json()
        assert data["member"] == {
            "_id": member.id,
            "name": "Mia Member",
            "email": member.email,
            "role": "LODGE_ADMIN",
        }

        assert await administrators_of(db_session, lodge_a.id) == {member.id}

        # Previous admin of the same primary lodge is demoted everywhere
        assert await roles_everywhere(db_session, lodge_admin.id) == {Role.LODGE_MEMBER.value}
        for copy in await user_store.find_all_copies(db_session, lodge_admin.id):
            assert copy.administered_lodges == []

        # An admin of another lodge only loses this lodge
        assert await roles_everywhere(db_session, other.id) == {Role.LODGE_ADMIN.value}
        for copy in await user_store.find_all_copies(db_session, other.id):
            assert copy.administered_lodges == [lodge_b.id]

        # Every copy of the new admin agrees, including a newly created users row
        copies = await user_store.find_all_copies(db_session, member.id)
        assert {user_store.collection_name(c) for c in copies} == {"members", "users", "unifiedusers"}
        for copy in copies:
            assert copy.role == Role.LODGE_ADMIN
            assert copy.administered_lodges == [lodge_a.id]

    @pytest.mark.asyncio
    async def test_district_admin_promotion_demotes_previous_holder(
        self, client: AsyncClient, db_session, super_headers, district_admin, member
    ):
        resp = await client.put(
            role_url(member.id),
            headers=super_headers,
            json={"newRole": "DISTRICT_ADMIN", "targetUserId": member.id},
        )
        assert resp.status_code == 200, resp.text
        assert await role_holders(db_session, Role.DISTRICT_ADMIN) == {member.id}
        assert await roles_everywhere(db_session, district_admin.id) == {Role.LODGE_MEMBER.value}

    @pytest.mark.asyncio
    async def test_demotion_to_member_clears_administered_lodges(
        self, client: AsyncClient, db_session, super_headers, lodge_admin, lodge_a
    ):
        resp = await client.put(
            role_url(lodge_admin.id),
            headers=super_headers,
            json={"newRole": "LODGE_MEMBER", "targetUserId": lodge_admin.id},
        )
        assert resp.status_code == 200, resp.text
        assert await administrators_of(db_session, lodge_a.id) == set()
        assert await db_session.get(User, lodge_admin.id) is None

    @pytest.mark.asyncio
    async def test_target_found_only_in_unified_store(
        self, client: AsyncClient, db_session, super_headers, lodge_a
    ):
        unified_only = await create_person(
            db_session, "Uma", "Unified", stores=("unifiedusers",), primary_lodge=lodge_a.id,
        )
        resp = await client.put(
            role_url(unified_only.id),
            headers=super_headers,
            json={"newRole": "LODGE_ADMIN", "targetUserId": unified_only.id, "lodgeId": lodge_a.id},
        )
        assert resp.status_code == 200, resp.text
        users_row = await db_session.get(User, unified_only.id)
        assert users_row is not None
        assert users_row.administered_lodges == [lodge_a.id]
        assert await db_session.get(Member, unified_only.id) is None


class TestRoleInfo:
    """GET /api/members/{id}/role."""

    @pytest.mark.asyncio
    async def test_super_admin_sees_all_roles(self, client: AsyncClient, super_headers, member, district_admin):
        resp = await client.get(role_url(member.id), headers=super_headers)
        assert resp.status_code == 200, resp.text
        data = resp.json()
        assert data["member"]["currentRole"] == "LODGE_MEMBER"
        assert data["member"]["isInUserCollection"] is False
        assert set(data["availableRoles"]) == set(Role.values())
        assert data["adminCounts"] == {"superAdmins": 1, "districtAdmins": 1}

    @pytest.mark.asyncio
    async def test_district_admin_self(self, client: AsyncClient, district_headers, district_admin):
        resp = await client.get(role_url(district_admin.id), headers=district_headers)
        assert resp.status_code == 200, resp.text
        assert resp.json()["availableRoles"] == ["LODGE_ADMIN"]

    @pytest.mark.asyncio
    async def test_district_admin_viewing_member(self, client: AsyncClient, district_headers, member):
        resp = await client.get(role_url(member.id), headers=district_headers)
        assert resp.status_code == 200, resp.text
        assert set(resp.json()["availableRoles"]) == {"LODGE_MEMBER", "LODGE_ADMIN", "DISTRICT_ADMIN"}

    @pytest.mark.asyncio
    async def test_district_admin_viewing_other_district_admin(
        self, client: AsyncClient, db_session, district_headers, district_lodge
    ):
        other = await create_person(db_session, "Omar", "Otherdistrict", role=Role.DISTRICT_ADMIN)
        resp = await client.get(role_url(other.id), headers=district_headers)
        assert resp.status_code == 200, resp.text
        assert resp.json()["availableRoles"] == []

    @pytest.mark.asyncio
    async def test_district_admin_cannot_view_super_admin(self, client: AsyncClient, district_headers, super_admin):
        resp = await client.get(role_url(super_admin.id), headers=district_headers)
        assert resp.status_code == 403, resp.text

    @pytest.mark.asyncio
    async def test_member_cannot_view_roles(self, client: AsyncClient, member_headers, member):
        resp = await client.get(role_url(member.id), headers=member_headers)
        assert resp.status_code == 403, resp.text


class TestLodgeAdminTransfer:
    """POST /api/members/transfer-lodge-admin."""

    URL = "/api/members/transfer-lodge-admin"

    @pytest.mark.asyncio
    async def test_transfer_to_lodge_member(
        self, client: AsyncClient, db_session, lodge_admin, lodge_admin_headers, member, lodge_a
    ):
        resp = await client.post(
            self.URL,
            headers=lodge_admin_headers,
            json={"newAdminId": member.id, "lodgeId": lodge_a.id},
        )
        assert resp.status_code == 200, resp.text
        data = resp.json()
        assert data["previousAdmin"]["_id"] == lodge_admin.id
        assert data["newAdmin"]["role"] == "LODGE_ADMIN"

        assert await administrators_of(db_session, lodge_a.id) == {member.id}
        assert await roles_everywhere(db_session, lodge_admin.id) == {Role.LODGE_MEMBER.value}
        assert await roles_everywhere(db_session, member.id) == {Role.LODGE_ADMIN.value}
        assert await db_session.get(User, member.id) is not None

    @pytest.mark.asyncio
    async def test_new_admin_joins_the_lodge(
        self, client: AsyncClient, db_session, lodge_admin_headers, lodge_a, lodge_b
    ):
        outsider = await create_person(db_session, "Otto", "Outsider", primary_lodge=lodge_b.id)
        resp = await client.post(
            self.URL,
            headers=lodge_admin_headers,
            json={"newAdminId": outsider.id, "lodgeId": lodge_a.id},
        )
        assert resp.status_code == 200, resp.text
        for copy in await user_store.find_all_copies(db_session, outsider.id):
            assert user_store.belongs_to_lodge(copy, lodge_a.id)
            assert copy.primary_lodge == lodge_b.id

    @pytest.mark.asyncio
    async def test_admin_of_two_lodges_keeps_the_other(
        self, client: AsyncClient, db_session, lodge_a, lodge_b, member
    ):
        admin = await create_person(
            db_session, "Tia", "Twolodges", role=Role.LODGE_ADMIN,
            primary_lodge=lodge_a.id, administered=[lodge_a.id, lodge_b.id],
        )
        resp = await client.post(
            self.URL,
            headers=headers_for(admin),
            json={"newAdminId": member.id, "lodgeId": lodge_a.id},
        )
        assert resp.status_code == 200, resp.text
        assert await roles_everywhere(db_session, admin.id) == {Role.LODGE_ADMIN.value}
        for copy in await user_store.find_all_copies(db_session, admin.id):
            assert copy.administered_lodges == [lodge_b.id]

    @pytest.mark.asyncio
    async def test_only_lodge_admins_may_transfer(self, client: AsyncClient, member_headers, member, lodge_a):
        resp = await client.post(
            self.URL,
            headers=member_headers,
            json={"newAdminId": member.id, "lodgeId": lodge_a.id},
        )
        assert resp.status_code == 403, resp.text

    @pytest.mark.asyncio
    async def test_must_administer_the_lodge(self, client: AsyncClient, lodge_admin_headers, member, lodge_b):
        resp = await client.post(
            self.URL,
            headers=lodge_admin_headers,
            json={"newAdminId": member.id, "lodgeId": lodge_b.id},
        )
        assert resp.status_code == 403, resp.text

    @pytest.mark.asyncio
    async def test_missing_fields(self, client: AsyncClient, lodge_admin_headers, lodge_a):
        resp = await client.post(self.URL, headers=lodge_admin_headers, json={"lodgeId": lodge_a.id})
        assert resp.status_code == 400, resp.text

    @pytest.mark.asyncio
    async def test_unknown_new_admin(self, client: AsyncClient, lodge_admin_headers, lodge_a):
        resp = await client.post(
            self.URL,
            headers=lodge_admin_headers,
            json={"newAdminId": "f" * 24, "lodgeId": lodge_a.id},
        )
        assert resp.status_code == 404, resp.text


class TestSecondaryStoreSync:
    """Failures while copying to secondary stores are logged, not raised."""

    @pytest.mark.asyncio
    async def test_apply_update_skips_failing_store(self, db_session, member, caplog):
        await reject_writes(db_session, "members")

        written = await user_store.apply_update(db_session, member.id, {"occupation": "Architect"})

        # members failed, unifiedusers still written
        assert written == ["unifiedusers"]
        assert (await db_session.get(UnifiedUser, member.id)).occupation == "Architect"
        assert (await db_session.get(Member, member.id)).occupation is None
        assert "Failed to sync" in caplog.text

    @pytest.mark.asyncio
    async def test_role_change_survives_rejected_secondary_write(
        self, client: AsyncClient, db_session, member, super_headers, caplog
    ):
        await reject_writes(db_session, "unifiedusers")

        resp = await client.put(
            role_url(member.id),
            headers=super_headers,
            json={"newRole": "LODGE_ADMIN", "targetUserId": member.id},
        )
        assert resp.status_code == 200, resp.text
        assert resp.json()["member"]["role"] == "LODGE_ADMIN"

        assert (await db_session.get(Member, member.id)).role == Role.LODGE_ADMIN
        assert (await db_session.get(User, member.id)).role == Role.LODGE_ADMIN
        assert (await db_session.get(UnifiedUser, member.id)).role == Role.LODGE_MEMBER
        assert "Failed to sync" in caplog.text
