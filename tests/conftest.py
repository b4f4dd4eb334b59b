"""Pytest configuration and shared fixtures."""

from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

import jwt
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

from bluecarbon.core.config import get_settings
from bluecarbon.core.database import get_session
from bluecarbon.core.security import Actor
from bluecarbon.handlers.credits import issue_credits
from bluecarbon.handlers.projects import create_project, transition_project
from bluecarbon.handlers.storage import LocalBlobStorage, get_storage
from bluecarbon.models import Profile
from bluecarbon.models.profile import UserRole
from bluecarbon.models.project import ProjectAction, ProjectCreate, ProjectType


def auth_headers(user_id: str, email: Optional[str] = None) -> Dict[str, str]:
    """Bearer header carrying a token shaped like the auth service's."""
    settings = get_settings()
    claims = {
        "sub": user_id,
        "email": email or f"{user_id}@example.org",
        "aud": settings.jwt_audience,
        "exp": datetime.now(timezone.utc) + timedelta(minutes=30),
    }
    token = jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)
    return {"Authorization": f"Bearer {token}"}


def project_data(**overrides) -> ProjectCreate:
    values = {
        "name": "Mangrove Belt Restoration",
        "description": "Replanting along the estuary",
        "project_type": ProjectType.MANGROVE,
        "area_hectares": 50.0,
        "latitude": 21.95,
        "longitude": 89.18,
        "address": "Sundarbans, West Bengal",
        "projected_sequestration": 600.0,
    }
    values.update(overrides)
    return ProjectCreate(**values)


async def add_profile(session: AsyncSession, user_id: str, role: UserRole) -> Actor:
    """Insert a profile directly and return the matching actor."""
    email = f"{user_id}@example.org"
    session.add(Profile(user_id=user_id, full_name=user_id.title(), contact_email=email, role=role))
    await session.commit()
    return Actor(user_id=user_id, email=email, role=role)


@pytest_asyncio.fixture
async def engine(tmp_path):
    """Throwaway SQLite database per test."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'registry.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, expire_on_commit=False, class_=AsyncSession)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def storage(tmp_path):
    return LocalBlobStorage(str(tmp_path / "storage"))


@pytest_asyncio.fixture
async def admin(session):
    return await add_profile(session, "admin-1", UserRole.ADMIN)


@pytest_asyncio.fixture
async def ngo(session):
    return await add_profile(session, "ngo-1", UserRole.NGO)


@pytest_asyncio.fixture
async def buyer(session):
    return await add_profile(session, "buyer-1", UserRole.COMMUNITY)


@pytest_asyncio.fixture
async def approved_project(session, ngo, admin):
    project = await create_project(session, ngo, project_data())
    return await transition_project(session, admin, project.id, ProjectAction.APPROVE)


@pytest_asyncio.fixture
async def issued_credit(session, admin, approved_project):
    """100 credits owned by the issuing admin."""
    return await issue_credits(session, admin, approved_project.id, 100.0, vintage_year=2024)


@pytest_asyncio.fixture
async def client(session_factory, storage):
    """In-process API client bound to the test database."""
    from main import app

    async def override_session():
        async with session_factory() as s:
            try:
                yield s
            except Exception:
                await s.rollback()
                raise

    app.dependency_overrides[get_session] = override_session
    app.dependency_overrides[get_storage] = lambda: storage
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()
