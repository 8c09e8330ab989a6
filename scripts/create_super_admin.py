#!/usr/bin/env python3
"""
Create or reset a super admin account.

The account is written to members, users and unifiedusers with one shared id,
so it can sign in (unifiedusers) and counts as a super admin (users).

Usage:
    python scripts/create_super_admin.py --email admin@example.org --password 'S3cret!' \
        [--first-name Grand] [--last-name Secretary] [--database-url URL]

Arguments:
    --database-url: SQLAlchemy async URL (default: DATABASE_URL from settings)
"""
import argparse
import asyncio
import logging
import sys

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from lodgeportal.core.config import settings
from lodgeportal.core.logging import configure_logging
from lodgeportal.core.security import get_password_hash
from lodgeportal.db.base import Base
from lodgeportal.models.base import generate_id, utcnow
from lodgeportal.models.enums import Role, AccountStatus
from lodgeportal.models.user_record import USER_MODELS

logger = logging.getLogger("create_super_admin")


async def find_existing_id(session: AsyncSession, email: str):
    for model in USER_MODELS:
        result = await session.execute(
            select(model.id).where(func.lower(model.email) == email.lower()).limit(1)
        )
        existing = result.scalar_one_or_none()
        if existing is not None:
            return existing
    return None


async def create_super_admin(
    database_url: str,
    email: str,
    password: str,
    first_name: str,
    last_name: str,
) -> str:
    """Create the account, or reset its password and role if the email exists. Returns the id."""
    engine = create_async_engine(database_url, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    try:
        async with session_maker() as session:
            email = email.strip().lower()
            user_id = await find_existing_id(session, email) or generate_id()
            values = dict(
                email=email,
                password_hash=get_password_hash(password),
                name=f"{first_name} {last_name}".strip(),
                first_name=first_name,
                last_name=last_name,
                role=Role.SUPER_ADMIN,
                status=AccountStatus.ACTIVE,
            )

            for model in USER_MODELS:
                record = await session.get(model, user_id)
                if record is None:
                    session.add(model(id=user_id, member_since=utcnow(), **values))
                    logger.info("Created %s row for %s", model.__tablename__, email)
                else:
                    for key, value in values.items():
                        setattr(record, key, value)
                    record.updated = utcnow()
                    logger.info("Reset %s row for %s", model.__tablename__, email)

            await session.commit()
            return user_id
    finally:
        await engine.dispose()


def main():
    parser = argparse.ArgumentParser(description="Create or reset a LodgePortal super admin")
    parser.add_argument("--email", required=True)
    parser.add_argument("--password", required=True)
    parser.add_argument("--first-name", default="Super")
    parser.add_argument("--last-name", default="Admin")
    parser.add_argument("--database-url", default=settings.DATABASE_URL)
    args = parser.parse_args()

    configure_logging()
    if len(args.password) < 8:
        logger.error("Password must be at least 8 characters")
        sys.exit(1)

    user_id = asyncio.run(create_super_admin(
        args.database_url, args.email, args.password, args.first_name, args.last_name
    ))
    logger.info("Super admin %s ready (id %s)", args.email, user_id)


if __name__ == "__main__":
    main()
