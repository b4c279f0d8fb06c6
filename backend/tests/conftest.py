import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("SECRET", "test-secret-test-secret-test-secret")

import uuid

import httpx
import pytest
from fastapi import HTTPException, status
from fastapi_users.password import PasswordHelper
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from exam_engine.app import app
from exam_engine.db import Base, get_async_session
from exam_engine.models.user_model import User
from exam_engine.permissions import UserRole
from exam_engine.security import current_active_user

PASSWORD = "correct horse battery staple"


def exam_payload(**overrides):
    """Two one-mark questions, correct options [0, 2], published."""
    payload = {
        "title": "Sample Exam",
        "duration": 30,
        "pass_marks": 1,
        "is_published": True,
        "questions": [
            {"text": "q1", "options": ["a", "b", "c", "d"], "correct_option": 0, "marks": 1},
            {"text": "q2", "options": ["a", "b", "c", "d"], "correct_option": 2, "marks": 1},
        ],
    }
    payload.update(overrides)
    return payload


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
async def db_session(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
async def users(session_maker):
    hashed = PasswordHelper().hash(PASSWORD)
    out = {}
    async with session_maker() as session:
        for role in UserRole:
            user = User(
                id=uuid.uuid4(),
                email=f"{role.value}@example.com",
                hashed_password=hashed,
                full_name=f"Test {role.value}",
                role=role,
                is_active=True,
                is_superuser=False,
                is_verified=True,
            )
            session.add(user)
            out[role] = user
        other = User(
            id=uuid.uuid4(),
            email="other-student@example.com",
            hashed_password=hashed,
            full_name="Other Student",
            role=UserRole.STUDENT,
            is_active=True,
            is_superuser=False,
            is_verified=True,
        )
        session.add(other)
        out["other"] = other
        await session.commit()
    return out


class Harness:
    """In-process HTTP client for the app, with a switchable signed-in user."""

    def __init__(self, client: httpx.AsyncClient, users: dict):
        self.client = client
        self.users = users
        self.user = None

    def login_as(self, key):
        self.user = self.users[key]
        return self.user

    def logout(self):
        self.user = None


@pytest.fixture
async def http(session_maker):
    async def override_session():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_async_session] = override_session
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
async def api(http, users):
    harness = Harness(http, users)

    def override_user():
        if harness.user is None:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
        return harness.user

    app.dependency_overrides[current_active_user] = override_user
    return harness


@pytest.fixture
async def published_exam(api):
    api.login_as(UserRole.TEACHER)
    resp = await api.client.post("/api/exams/", json=exam_payload())
    assert resp.status_code == 201, resp.text
    api.logout()
    return resp.json()
