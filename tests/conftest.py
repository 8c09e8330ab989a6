"""
Test configuration and fixtures for LodgePortal tests.
"""
import os

# Use a file-based SQLite DB to avoid :memory: multiple-connection issues
# with SQLAlchemy + aiosqlite (each new connection would see an empty DB).
TEST_DATABASE_URL = "sqlite+aiosqlite:///./test.db"
os.environ.setdefault("DATABASE_URL", TEST_DATABASE_URL)

import pytest_asyncio
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, Iterable, Optional
from httpx import AsyncClient, ASGITransport
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool

from lodgeportal.main import app
from lodgeportal.db.base import Base, get_db
from lodgeportal.core.config import settings
from lodgeportal.core.security import get_password_hash, create_access_token
from lodgeportal.models import (
    Member,
    User,
    UnifiedUser,
    Lodge,
    Role,
    AccountStatus,
)
from lodgeportal.models.base import generate_id

STORES = {
    "members": Member,
    "users": User,
    "unifiedusers": UnifiedUser,
}
ALL_STORES = ("members", "users", "unifiedusers")

# Fixed base time so "oldest first" ordering is deterministic
BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


async def create_person(
    db: AsyncSession,
    first_name: str,
    last_name: str = "Tester",
    role: Role = Role.LODGE_MEMBER,
    stores: Iterable[str] = ALL_STORES,
    primary_lodge: Optional[str] = None,
    administered: Optional[list[str]] = None,
    status: AccountStatus = AccountStatus.ACTIVE,
    password: str = "TestPass123",
    created: Optional[datetime] = None,
    person_id: Optional[str] = None,
):
    """Create the same person in each of the given stores. Returns the first row."""
    person_id = person_id or generate_id()
    created = created or datetime.now(timezone.utc)
    password_hash = get_password_hash(password)
    rows = []
    for store in stores:
        model = STORES[store]
        row = model(
            id=person_id,
            email=f"{first_name.lower()}.{last_name.lower()}@example.com",
            password_hash=password_hash,
            name=f"{first_name} {last_name}",
            first_name=first_name,
            last_name=last_name,
            role=role,
            status=status,
            primary_lodge=primary_lodge,
            lodges=[primary_lodge] if primary_lodge else [],
            lodge_memberships=(
                [{"lodge": primary_lodge, "position": "MEMBER", "isActive": True}]
                if primary_lodge else []
            ),
            administered_lodges=list(administered or []),
            interests=[],
            lodge_roles={},
            member_since=created,
            created=created,
            updated=created,
        )
        db.add(row)
        rows.append(row)
    await db.flush()
    return rows[0]


def token_for(person) -> str:
    """Create an access token carrying the person's current role."""
    role = person.role.value if isinstance(person.role, Role) else person.role
    return create_access_token(
        subject=person.id,
        additional_claims={
            "email": person.email,
            "role": role,
            "name": person.name,
            "lodgeId": person.primary_lodge,
        },
    )


def headers_for(person) -> dict:
    return {"Authorization": f"Bearer {token_for(person)}"}


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """Create a test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=NullPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()
    # Clean up test database file
    try:
        os.remove("./test.db")
    except OSError:
        pass


@pytest_asyncio.fixture(scope="function")
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async_session_maker = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False
    )
    async with async_session_maker() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create a test client with database session override."""
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def district_lodge(db_session: AsyncSession) -> Lodge:
    """The district grand lodge, found by its configured name."""
    lodge = Lodge(
        name=settings.DISTRICT_LODGE_NAME,
        location="Beirut",
        district="Syria-Lebanon",
    )
    db_session.add(lodge)
    await db_session.flush()
    return lodge


@pytest_asyncio.fixture
async def lodge_a(db_session: AsyncSession) -> Lodge:
    lodge = Lodge(name="Lodge Cedars", number="12", location="Beirut", district="Syria-Lebanon")
    db_session.add(lodge)
    await db_session.flush()
    return lodge


@pytest_asyncio.fixture
async def lodge_b(db_session: AsyncSession) -> Lodge:
    lodge = Lodge(name="Lodge Phoenix", number="31", location="Tripoli", district="Syria-Lebanon")
    db_session.add(lodge)
    await db_session.flush()
    return lodge


@pytest_asyncio.fixture
async def super_admin(db_session: AsyncSession):
    return await create_person(
        db_session, "Sam", "Super", role=Role.SUPER_ADMIN,
        created=BASE_TIME,
    )


@pytest_asyncio.fixture
async def district_admin(db_session: AsyncSession, district_lodge: Lodge):
    return await create_person(
        db_session, "Dana", "District", role=Role.DISTRICT_ADMIN,
        primary_lodge=district_lodge.id, administered=[district_lodge.id],
        created=BASE_TIME + timedelta(days=1),
    )


@pytest_asyncio.fixture
async def lodge_admin(db_session: AsyncSession, lodge_a: Lodge):
    return await create_person(
        db_session, "Leo", "Lodgeadmin", role=Role.LODGE_ADMIN,
        primary_lodge=lodge_a.id, administered=[lodge_a.id],
        created=BASE_TIME + timedelta(days=2),
    )


@pytest_asyncio.fixture
async def member(db_session: AsyncSession, lodge_a: Lodge):
    return await create_person(
        db_session, "Mia", "Member", stores=("members", "unifiedusers"),
        primary_lodge=lodge_a.id,
        created=BASE_TIME + timedelta(days=3),
    )


@pytest_asyncio.fixture
async def super_headers(super_admin) -> dict:
    return headers_for(super_admin)


@pytest_asyncio.fixture
async def district_headers(district_admin) -> dict:
    return headers_for(district_admin)


@pytest_asyncio.fixture
async def lodge_admin_headers(lodge_admin) -> dict:
    return headers_for(lodge_admin)


@pytest_asyncio.fixture
async def member_headers(member) -> dict:
    return headers_for(member)


async def reject_writes(db: AsyncSession, table: str, event: str = "UPDATE") -> None:
    """Make SQLite abort every INSERT or UPDATE on a table."""
    await db.execute(text(
        f"CREATE TRIGGER reject_{event.lower()}_{table} BEFORE {event} ON {table} "
        f"BEGIN SELECT RAISE(ABORT, '{table} unavailable'); END"
    ))
