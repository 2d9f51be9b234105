"""
Tribeworks Test Configuration and Fixtures
Shared pytest fixtures for all test modules.
"""
import os
import tempfile
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from backend.models import Base, Bounty, Grant, Organization, User
from tests.fixtures import (
    BountyFactory,
    CuratorFactory,
    FakeSender,
    GrantFactory,
    MemberFactory,
    OrganizationFactory,
    UserFactory,
)


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest_asyncio.fixture(scope="function")
async def async_engine():
    """Create an async SQLite engine for testing."""
    # Use a unique temp file for each test to ensure complete isolation
    fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    engine = create_async_engine(
        f"sqlite+aiosqlite:///{db_path}",
        connect_args={"check_same_thread": False},
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()

    try:
        os.unlink(db_path)
    except OSError:
        pass


@pytest_asyncio.fixture(scope="function")
async def async_session_maker(async_engine):
    return async_sessionmaker(
        bind=async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture(scope="function")
async def async_session(async_session_maker) -> AsyncGenerator[AsyncSession, None]:
    """Create an async session for testing."""
    async with async_session_maker() as session:
        yield session
        await session.rollback()


# =============================================================================
# Notification Fakes
# =============================================================================


@pytest.fixture
def fake_sender() -> FakeSender:
    return FakeSender()


# =============================================================================
# Database Model Fixtures
# =============================================================================


@pytest_asyncio.fixture
async def db_org(async_session: AsyncSession) -> Organization:
    org = OrganizationFactory.create(name="Protocol Labs")
    async_session.add(org)
    await async_session.commit()
    return org


@pytest_asyncio.fixture
async def db_owner(async_session: AsyncSession, db_org: Organization) -> User:
    """Owner of db_org; may review and administer its grants and bounties."""
    user = UserFactory.create(email="owner@example.com", first_name="Olive")
    async_session.add(user)
    await async_session.flush()
    async_session.add(MemberFactory.create(db_org.id, user.id, role="owner"))
    await async_session.commit()
    return user


@pytest_asyncio.fixture
async def db_org_member(async_session: AsyncSession, db_org: Organization) -> User:
    """Plain member of db_org: no review rights, still barred from entering."""
    user = UserFactory.create(email="member@example.com")
    async_session.add(user)
    await async_session.flush()
    async_session.add(MemberFactory.create(db_org.id, user.id, role="member"))
    await async_session.commit()
    return user


@pytest_asyncio.fixture
async def db_builder(async_session: AsyncSession) -> User:
    """User with no ties to db_org."""
    user = UserFactory.create(email="builder@example.com", first_name="Bea", username="bea")
    async_session.add(user)
    await async_session.commit()
    return user


@pytest_asyncio.fixture
async def db_builders(async_session: AsyncSession) -> list[User]:
    users = UserFactory.create_batch(3)
    async_session.add_all(users)
    await async_session.commit()
    return users


@pytest_asyncio.fixture
async def db_curators(async_session: AsyncSession) -> list[User]:
    """Two users to act as curators (not org members)."""
    users = [
        UserFactory.create(email="curator-a@example.com"),
        UserFactory.create(email="curator-b@example.com"),
    ]
    async_session.add_all(users)
    await async_session.commit()
    return users


@pytest_asyncio.fixture
async def db_grant(async_session: AsyncSession, db_org: Organization, db_curators: list[User]) -> Grant:
    grant = GrantFactory.create(db_org.id, slug="ecosystem-fund")
    async_session.add(grant)
    await async_session.flush()
    for curator in db_curators:
        async_session.add(CuratorFactory.for_grant(grant.id, curator.id))
    await async_session.commit()
    return grant


@pytest_asyncio.fixture
async def db_bounty(async_session: AsyncSession, db_org: Organization, db_curators: list[User]) -> Bounty:
    bounty = BountyFactory.create(db_org.id, slug="dashboard-bounty")
    async_session.add(bounty)
    await async_session.flush()
    for curator in db_curators:
        async_session.add(CuratorFactory.for_bounty(bounty.id, curator.id))
    await async_session.commit()
    return bounty


# =============================================================================
# API Fixtures
# =============================================================================


@pytest_asyncio.fixture
async def client(async_session: AsyncSession, fake_sender: FakeSender) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client bound to the app, sharing the test session and fake sender."""
    from backend.api.deps import get_notification_sender
    from backend.database import get_db
    from backend.main import app

    async def override_get_db():
        yield async_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notification_sender] = lambda: fake_sender

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
