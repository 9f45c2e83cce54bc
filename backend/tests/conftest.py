"""Pytest configuration and fixtures for Punt tests.

Every test gets a fresh in-memory SQLite database. The HTTP client shares
the test's session, so fixtures and requests see the same rows without
committing.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("AUTO_CREATE_TABLES", "false")

from typing import AsyncGenerator, Callable

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from punt.auth.jwt import create_access_token
from punt.auth.presets import ADMIN, DEFAULT_ROLE_NAMES, MEMBER, OWNER
from punt.database import Base, get_db
from punt.main import app
from punt.models.project import Project
from punt.models.role import ProjectMember, Role
from punt.models.user import User
from punt.services.roles import create_default_roles_for_project


# ── Test Database Setup ──────────────────────────────────────────

@pytest_asyncio.fixture
async def test_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    session_factory = async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False
    )
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def client(db_session) -> AsyncGenerator[AsyncClient, None]:
    """Create test client with overridden database dependency."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


# ── Test Data Fixtures ───────────────────────────────────────────

@pytest.fixture
def make_user(db_session: AsyncSession) -> Callable:
    async def _make(
        name: str,
        is_system_admin: bool = False,
        is_active: bool = True,
        api_key_hash: str | None = None,
    ) -> User:
        user = User(
            email=f"{name.lower().replace(' ', '.')}@example.com",
            name=name,
            is_system_admin=is_system_admin,
            is_active=is_active,
            api_key_hash=api_key_hash,
        )
        db_session.add(user)
        await db_session.flush()
        return user

    return _make


@pytest.fixture
def make_member(db_session: AsyncSession) -> Callable:
    async def _make(user: User, project: Project, role: Role, overrides=None) -> ProjectMember:
        member = ProjectMember(
            user_id=user.id, project_id=project.id, role=role, overrides=overrides
        )
        db_session.add(member)
        await db_session.flush()
        return member

    return _make


@pytest_asyncio.fixture
async def project(db_session: AsyncSession) -> Project:
    """A project with its default roles provisioned."""
    project = Project(key="PUNT", name="Punt")
    db_session.add(project)
    await db_session.flush()
    await create_default_roles_for_project(db_session, project.id)
    return project


@pytest_asyncio.fixture
async def roles(db_session: AsyncSession, project: Project) -> dict[str, Role]:
    """Default roles of `project`, keyed by preset name."""
    result = await db_session.execute(
        select(Role)
        .where(Role.project_id == project.id, Role.is_default.is_(True))
        .order_by(Role.position)
    )
    return dict(zip(DEFAULT_ROLE_NAMES, result.scalars().all()))


@pytest_asyncio.fixture
async def owner(make_user, make_member, project, roles) -> User:
    user = await make_user("Olivia Owner")
    await make_member(user, project, roles[OWNER])
    return user


@pytest_asyncio.fixture
async def admin(make_user, make_member, project, roles) -> User:
    user = await make_user("Adrian Admin")
    await make_member(user, project, roles[ADMIN])
    return user


@pytest_asyncio.fixture
async def member(make_user, make_member, project, roles) -> User:
    user = await make_user("Mia Member")
    await make_member(user, project, roles[MEMBER])
    return user


@pytest_asyncio.fixture
async def outsider(make_user) -> User:
    return await make_user("Oscar Outsider")


@pytest_asyncio.fixture
async def system_admin(make_user) -> User:
    return await make_user("Sam Sysadmin", is_system_admin=True)


@pytest.fixture
def auth_headers() -> Callable[[User], dict]:
    """Authorization headers carrying a session token for a user."""

    def _headers(user: User) -> dict:
        return {"Authorization": f"Bearer {create_access_token(user.id)}"}

    return _headers


# ── Test Markers ─────────────────────────────────────────────────

def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: HTTP tests against the app")
