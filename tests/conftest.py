import asyncio
import os

# Settings are read at import time; keep the suite on an in-memory database.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from helpdesk.core.database import get_session
from helpdesk.main import app
from helpdesk.models import Account, Base, Profile
from helpdesk.services.access import Actor
from helpdesk.services.auth import create_access_token


async def _make_factory():
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    return engine, async_sessionmaker(engine, expire_on_commit=False)


async def seed_profile(
    session: AsyncSession,
    full_name: str,
    role: str = "user",
    email: str | None = None,
    department: str | None = None,
) -> Profile:
    email = email or f"{full_name.lower().replace(' ', '.')}@example.com"
    account = Account(email=email, hashed_password="not-a-hash", is_active=True)
    session.add(account)
    await session.flush()
    profile = Profile(id=account.id, full_name=full_name, role=role, department=department)
    session.add(profile)
    await session.commit()
    return profile


async def seed_actor(session: AsyncSession, full_name: str, role: str = "user") -> Actor:
    profile = await seed_profile(session, full_name, role)
    account = await session.get(Account, profile.id)
    return Actor(account_id=account.id, email=account.email, profile=profile)


def auth_headers(profile: Profile) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(profile.id, profile.role)}"}


@pytest.fixture
def run_db():
    """Run ``scenario(session)`` against a fresh in-memory database."""

    def _run(scenario):
        async def _main():
            engine, factory = await _make_factory()
            try:
                async with factory() as session:
                    return await scenario(session)
            finally:
                await engine.dispose()

        return asyncio.run(_main())

    return _run


@pytest.fixture
def run_api():
    """Run ``scenario(client, factory)`` against the app on a fresh database."""

    def _run(scenario):
        async def _main():
            engine, factory = await _make_factory()

            async def _session_override():
                async with factory() as session:
                    yield session

            app.dependency_overrides[get_session] = _session_override
            transport = httpx.ASGITransport(app=app)
            try:
                async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
                    return await scenario(client, factory)
            finally:
                app.dependency_overrides.clear()
                await engine.dispose()

        return asyncio.run(_main())

    return _run
