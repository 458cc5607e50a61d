"""
Test configuration and fixtures for pytest.

Every test gets a fresh in-memory SQLite database with the full schema and
a small church directory:

    branch 1  Headquarters (is_headquarters)
    branch 5  East Branch      MC 3  Grace MC
    branch 9  West Branch      MC 7  Hope MC
"""

from types import SimpleNamespace
from typing import AsyncGenerator

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import app.models  # noqa
from app.db.async_session import configure_sqlite_engine, get_async_db
from app.db.base_class import Base
from app.main import app
from app.models import Branch, MissionalCommunity, User
from app.schemas.directory import DirectoryUser


@pytest_asyncio.fixture
async def async_engine():
    """Create an in-memory async SQLAlchemy engine with all tables."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        echo=False,
        poolclass=StaticPool,
        connect_args={
            "check_same_thread": False,
        },
    )
    configure_sqlite_engine(engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def async_db_session(async_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create an async SQLAlchemy session for tests."""
    async_session_factory = async_sessionmaker(
        bind=async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    async with async_session_factory() as session:
        yield session


def _user(user_id, name, role, branch_id=None, mc_id=None):
    return User(
        id=user_id,
        name=name,
        email=f"{name.lower().replace(' ', '.')}@church.test",
        role=role,
        branch_id=branch_id,
        mc_id=mc_id,
    )


@pytest_asyncio.fixture
async def directory(async_db_session: AsyncSession) -> SimpleNamespace:
    """Seed branches, MCs and one user per interesting role/placement."""
    async_db_session.add_all([
        Branch(id=1, name="Headquarters", is_headquarters=True),
        Branch(id=5, name="East Branch"),
        Branch(id=9, name="West Branch"),
    ])
    await async_db_session.flush()
    async_db_session.add_all([
        MissionalCommunity(id=3, name="Grace MC", branch_id=5),
        MissionalCommunity(id=7, name="Hope MC", branch_id=9),
    ])
    await async_db_session.flush()

    users = {
        "super_admin": _user(1, "Sarah Super", "super_admin", branch_id=1),
        "east_admin": _user(2, "Ed East", "branch_admin", branch_id=5),
        "west_admin": _user(3, "Wendy West", "branch_admin", branch_id=9),
        "grace_leader": _user(4, "Gary Grace", "mc_leader", branch_id=5, mc_id=3),
        "hope_leader": _user(5, "Holly Hope", "mc_leader", branch_id=9, mc_id=7),
        "east_member": _user(6, "Erin Member", "member", branch_id=5, mc_id=3),
        "west_member": _user(7, "Will Member", "member", branch_id=9, mc_id=7),
        "unassigned_member": _user(8, "Uma Loose", "member", branch_id=5),
    }
    async_db_session.add_all(users.values())
    await async_db_session.commit()

    return SimpleNamespace(**{key: DirectoryUser.model_validate(user) for key, user in users.items()})


@pytest_asyncio.fixture
async def async_client(async_db_session, directory):
    """Create an httpx client bound to the app, sharing the test session."""

    async def override_get_async_db():
        yield async_db_session

    app.dependency_overrides[get_async_db] = override_get_async_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    # Clear dependency overrides
    app.dependency_overrides = {}
