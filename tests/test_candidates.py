"""
Tests for candidate endpoints and review window helpers.
"""
from datetime import date, datetime, timedelta, timezone

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from lodgeportal.models import Candidate, CandidateStatus, Notification
from lodgeportal.services.candidates import days_left, is_open, default_window

CANDIDATE = {
    "firstName": "Karim",
    "lastName": "Haddad",
    "dateOfBirth": "1990-04-12",
    "livingLocation": "Beirut",
    "profession": "Architect",
}


async def add_candidate(db, lodge, end_date, first_name="Rami"):
    candidate = Candidate(
        first_name=first_name,
        last_name="Khoury",
        date_of_birth="1985-01-01",
        living_location="Tripoli",
        profession="Teacher",
        lodge=lodge.name,
        lodge_id=lodge.id,
        submission_date=datetime.now(timezone.utc),
        start_date=end_date - timedelta(days=20) if end_date else None,
        end_date=end_date,
    )
    db.add(candidate)
    await db.flush()
    return candidate


class TestReviewWindow:
    """Unit tests for days left and window defaults."""

    def test_days_left_rounds_up(self):
        now = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)
        assert days_left(date(2024, 3, 3), now=now) == 2
        assert days_left(date(2024, 3, 2), now=now) == 1

    def test_days_left_never_negative(self):
        now = datetime(2024, 3, 5, tzinfo=timezone.utc)
        assert days_left(date(2024, 3, 1), now=now) == 0

    def test_days_left_without_end_date(self):
        assert days_left(None) == 0

    def test_is_open(self):
        now = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)
        assert is_open(Candidate(end_date=date(2024, 3, 2)), now=now) is True
        assert is_open(Candidate(end_date=date(2024, 3, 1)), now=now) is False
        assert is_open(Candidate(end_date=None), now=now) is True

    def test_default_window_is_twenty_days(self):
        start, end = default_window(date(2024, 1, 10))
        assert start == date(2024, 1, 10)
        assert end == date(2024, 1, 30)


class TestListCandidates:
    """Test GET /api/candidates."""

    @pytest.mark.asyncio
    async def test_expired_candidates_hidden(self, client: AsyncClient, db_session, member_headers, lodge_a):
        today = datetime.now(timezone.utc).date()
        open_one = await add_candidate(db_session, lodge_a, today + timedelta(days=5), "Open")
        await add_candidate(db_session, lodge_a, today - timedelta(days=1), "Closed")

        response = await client.get("/api/candidates", headers=member_headers)
        assert response.status_code == 200
        data = response.json()
        assert [c["_id"] for c in data] == [open_one.id]
        assert data[0]["daysLeft"] == 5

    @pytest.mark.asyncio
    async def test_filter_by_lodge(self, client: AsyncClient, db_session, member_headers, lodge_a, lodge_b):
        today = datetime.now(timezone.utc).date()
        await add_candidate(db_session, lodge_a, today + timedelta(days=3), "Cedar")
        other = await add_candidate(db_session, lodge_b, today + timedelta(days=3), "Phoenix")

        response = await client.get(f"/api/candidates?lodgeId={lodge_b.id}", headers=member_headers)
        assert [c["_id"] for c in response.json()] == [other.id]


class TestCreateCandidate:
    """Test POST /api/candidates."""

    @pytest.mark.asyncio
    async def test_create_uses_submitter_lodge_and_default_window(
        self, client: AsyncClient, db_session, member, member_headers, lodge_admin, lodge_a
    ):
        response = await client.post("/api/candidates", headers=member_headers, json=CANDIDATE)
        assert response.status_code == 201, response.text
        data = response.json()
        assert data["status"] == "pending"
        assert data["submittedBy"] == "Mia Member"
        assert data["lodge"] == "Lodge Cedars"
        assert data["lodgeId"] == lodge_a.id
        assert data["idPhotoUrl"] == "/default-avatar.png"
        assert data["daysLeft"] in (19, 20)

        # Everyone in the lodge is notified
        result = await db_session.execute(
            select(Notification).where(Notification.related_id == data["_id"])
        )
        recipients = {n.user_id for n in result.scalars().all()}
        assert recipients == {member.id, lodge_admin.id}

    @pytest.mark.asyncio
    async def test_missing_fields(self, client: AsyncClient, member_headers):
        response = await client.post(
            "/api/candidates",
            headers=member_headers,
            json={"firstName": "Karim", "lastName": "Haddad"},
        )
        assert response.status_code == 400
        assert response.json()["detail"] == (
            "Missing required fields: dateOfBirth, livingLocation, profession"
        )

    @pytest.mark.asyncio
    async def test_explicit_timing(self, client: AsyncClient, member_headers):
        today = datetime.now(timezone.utc).date()
        body = dict(CANDIDATE, timing={
            "startDate": today.isoformat(),
            "endDate": (today + timedelta(days=7)).isoformat(),
        })
        response = await client.post("/api/candidates", headers=member_headers, json=body)
        assert response.status_code == 201, response.text
        assert response.json()["daysLeft"] in (6, 7)


class TestManageCandidates:
    """Test candidate update, status and delete permissions."""

    @pytest.mark.asyncio
    async def test_status_change(self, client: AsyncClient, db_session, lodge_admin_headers, lodge_a):
        candidate = await add_candidate(db_session, lodge_a, datetime.now(timezone.utc).date() + timedelta(days=5))
        response = await client.patch(
            f"/api/candidates/{candidate.id}/status",
            headers=lodge_admin_headers,
            json={"status": "APPROVED"},
        )
        assert response.status_code == 200, response.text
        assert response.json()["status"] == "approved"
        assert candidate.status == CandidateStatus.APPROVED

    @pytest.mark.asyncio
    async def test_invalid_status(self, client: AsyncClient, db_session, super_headers, lodge_a):
        candidate = await add_candidate(db_session, lodge_a, None)
        response = await client.patch(
            f"/api/candidates/{candidate.id}/status",
            headers=super_headers,
            json={"status": "maybe"},
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_member_cannot_update(self, client: AsyncClient, db_session, member_headers, lodge_a):
        candidate = await add_candidate(db_session, lodge_a, None)
        response = await client.put(
            f"/api/candidates/{candidate.id}",
            headers=member_headers,
            json={"notes": "Looks good"},
        )
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_lodge_admin_limited_to_own_lodge(
        self, client: AsyncClient, db_session, lodge_admin_headers, lodge_a, lodge_b
    ):
        own = await add_candidate(db_session, lodge_a, None, "Own")
        other = await add_candidate(db_session, lodge_b, None, "Other")

        response = await client.put(
            f"/api/candidates/{own.id}",
            headers=lodge_admin_headers,
            json={"notes": "Interviewed"},
        )
        assert response.status_code == 200, response.text
        assert response.json()["notes"] == "Interviewed"

        response = await client.delete(f"/api/candidates/{other.id}", headers=lodge_admin_headers)
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_delete(self, client: AsyncClient, db_session, district_headers, lodge_a):
        candidate = await add_candidate(db_session, lodge_a, None)
        response = await client.delete(f"/api/candidates/{candidate.id}", headers=district_headers)
        assert response.status_code == 200
        assert await db_session.get(Candidate, candidate.id) is None

    @pytest.mark.asyncio
    async def test_not_found(self, client: AsyncClient, member_headers):
        response = await client.get(f"/api/candidates/{'c' * 24}", headers=member_headers)
        assert response.status_code == 404
