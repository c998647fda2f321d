"""
Shared fixtures: an in-memory database per test, an API client wired to it,
and ready-made student/tutor profiles with bearer tokens.
"""
import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["SECRET_KEY"] = "test-secret-key"

from datetime import datetime, timedelta, timezone
import uuid

import pytest
import pytz
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401
from app.core.auth import create_access_token
from app.core.database import Base, get_db
from app.main import app
from app.models.profile import Profile, UserRole, UserRoleGrant, GrantedRole
from app.models.tutor_profile import TutorProfile
from app.models.student_profile import StudentProfile
from app.services.availability_service import default_availability


@pytest.fixture
async def engine():
    test_engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(session_factory):
    """API client whose requests use the test database"""
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as test_client:
        yield test_client
    app.dependency_overrides.clear()


async def create_profile(
    session_factory,
    role: UserRole,
    full_name: str,
    email: str = None,
    timezone_name: str = "America/New_York",
    **role_fields
) -> Profile:
    """Insert a profile and its role-specific profile"""
    user_id = uuid.uuid4()
    async with session_factory() as session:
        profile = Profile(
            id=user_id,
            role=role,
            full_name=full_name,
            email=email or f"{user_id.hex[:8]}@example.com",
            timezone=timezone_name,
            phone_number=role_fields.pop("phone_number", None),
        )
        session.add(profile)
        if role == UserRole.TUTOR:
            role_fields.setdefault("availability", default_availability().model_dump())
            session.add(TutorProfile(user_id=user_id, timezone=timezone_name, **role_fields))
        else:
            session.add(StudentProfile(user_id=user_id, subjects_interested=[], **role_fields))
        await session.commit()
    return profile


def auth_headers(profile: Profile) -> dict:
    token = create_access_token(profile.id, profile.email)
    return {"Authorization": f"Bearer {token}"}


def next_weekday_at(weekday: int, hour: int, minute: int = 0, tz_name: str = "America/New_York") -> datetime:
    """A UTC instant on the given weekday (0 = Monday) at least a week ahead, at hour:minute local time"""
    tz = pytz.timezone(tz_name)
    today = datetime.now(tz).date() + timedelta(days=7)
    day = today + timedelta(days=(weekday - today.weekday()) % 7)
    local = tz.localize(datetime(day.year, day.month, day.day, hour, minute))
    return local.astimezone(timezone.utc)


@pytest.fixture
async def student(session_factory):
    return await create_profile(
        session_factory, UserRole.STUDENT, "Sam Student", email="sam@example.com", phone_number="5551234567"
    )


@pytest.fixture
async def other_student(session_factory):
    return await create_profile(session_factory, UserRole.STUDENT, "Olivia Other", email="olivia@example.com")


@pytest.fixture
async def tutor(session_factory):
    return await create_profile(
        session_factory,
        UserRole.TUTOR,
        "Tara Tutor",
        email="tara@example.com",
        subjects=["Math", "Physics"],
        hourly_rate_cents=6000,
        experience_years=5,
        teaching_style="Patient and structured",
        education="MSc Mathematics",
    )


@pytest.fixture
async def founder(session_factory):
    profile = await create_profile(session_factory, UserRole.STUDENT, "Fiona Founder", email="fiona@example.com")
    async with session_factory() as session:
        session.add(UserRoleGrant(user_id=profile.id, role=GrantedRole.FOUNDER))
        await session.commit()
    return profile


@pytest.fixture
def student_headers(student):
    return auth_headers(student)


@pytest.fixture
def other_student_headers(other_student):
    return auth_headers(other_student)


@pytest.fixture
def tutor_headers(tutor):
    return auth_headers(tutor)


@pytest.fixture
def founder_headers(founder):
    return auth_headers(founder)
