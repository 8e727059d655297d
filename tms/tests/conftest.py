"""
Shared fixtures: in-memory database, API client, identity tokens, seeded content.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("ENVIRONMENT", "test")

from datetime import datetime, timedelta
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from tms.config.settings import settings
from tms.database import get_db
from tms.main import app
from tms.orm.base import Base
from tms.schemas.assessment import AssessmentCreate, QuestionCreate
from tms.schemas.course import CourseCreate, SectionCreate
from tms.security.rate_limit import limiter
from tms.services import assessment_service, course_service

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker, None]:
    """One shared in-memory database per test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """API client whose requests each get a fresh session on the test database."""
    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    limiter.reset()

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


def make_token(user_id: str, role: str = "student", expires_in: timedelta = timedelta(hours=1), **claims) -> str:
    payload = {
        "sub": user_id,
        "email": f"{user_id}@example.com",
        "role": role,
        "exp": datetime.utcnow() + expires_in,
    }
    payload.update(claims)
    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def auth_header(user_id: str, role: str = "student") -> dict:
    return {"Authorization": f"Bearer {make_token(user_id, role)}"}


@pytest.fixture
def teacher_headers() -> dict:
    return auth_header("teacher-1", "teacher")


@pytest.fixture
def student_headers() -> dict:
    return auth_header("learner-1", "student")


@pytest_asyncio.fixture
async def course(db: AsyncSession):
    """Course with four sections."""
    return await course_service.create_course(db, CourseCreate(
        course_code="SAFE-101",
        title="Workplace Safety",
        category="compliance",
        sections=[SectionCreate(title=f"Section {i}") for i in range(1, 5)],
    ))


@pytest_asyncio.fixture
async def assessment(db: AsyncSession, course):
    """
    Three questions:
    1. objective, 5 points, answer B
    2. objective, 5 points, answer A
    3. free-text, 10 points
    """
    return await assessment_service.create_assessment(db, AssessmentCreate(
        course_id=course.id,
        title="Safety Basics Quiz",
        duration=30,
        passing_score=70,
        questions=[
            QuestionCreate(
                question_text="Which extinguisher is for electrical fires?",
                options={"A": "Water", "B": "CO2", "C": "Foam", "D": "Sand"},
                correct_label="B",
                points=5,
            ),
            QuestionCreate(
                question_text="Who reports a hazard?",
                options={"A": "Everyone", "B": "Managers only"},
                correct_label="a",
                points=5,
            ),
            QuestionCreate(
                question_type="free-text",
                question_text="Describe the evacuation procedure.",
                points=10,
            ),
        ],
    ))


@pytest.fixture
def question_ids(assessment):
    return [q.id for q in sorted(assessment.questions, key=lambda q: q.order_index)]
