"""
Shared fixtures: in-memory SQLite store, ASGI client, user factory.
"""
import os

# TEST ONLY: valores fijados antes de importar app.*
os.environ["ENV"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ.setdefault("JWT_SECRET", "test-jwt-secret-not-for-production")
os.environ.setdefault("ENCRYPTION_KEY", "0f" * 32)
os.environ["RATE_LIMIT_API"] = "10000"
os.environ["RATE_LIMIT_ADMIN"] = "10000"
os.environ["RATE_LIMIT_AUTH"] = "10000"

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine, AsyncSession
from sqlalchemy.pool import StaticPool

from app.core.db import create_all, get_db
from app.core.rate_limit import rate_limiter
from app.core.security import hash_password
from app.main import app
from app.models.user import User, RoleEnum
from app.services.user_store import SqlUserStore

DEFAULT_PASSWORD = "correct-horse-battery"


@pytest.fixture(autouse=True)
def clear_rate_limits():
    rate_limiter.reset()
    yield
    rate_limiter.reset()


@pytest.fixture
async def engine():
    eng = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    await create_all(eng)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def store(db_session):
    return SqlUserStore(db_session)


@pytest.fixture
def make_user(store):
    async def _make(email: str = "ana@prospecter.io", password: str = DEFAULT_PASSWORD,
                    role: RoleEnum = RoleEnum.user, **fields) -> User:
        values = {"full_name": "Ana Test", "is_active": True, "two_factor_enabled": False}
        values.update(fields)
        user = User(email=email, role=role, hashed_password=hash_password(password), **values)
        return await store.add_user(user)
    return _make


@pytest.fixture
async def client(session_factory):
    async def _get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()
