import os
import sys
from contextlib import asynccontextmanager

# In-memory database and no outbound email for the whole test run
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["DB_AUTO_CREATE"] = "false"
os.environ.pop("RESEND_API_KEY", None)
os.environ.pop("CRON_SECRET", None)

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

# Add parent directory to path to allow importing models and main
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from database import get_session, get_session_scope
from main import app
from services.realtime import broker


async def _make_user(session: AsyncSession, email: str, name=None, with_token: bool = True):
    """Create a profile and, optionally, a live session token for it."""
    from models import AuthSession, Profile, generate_session_token, hash_token

    user = Profile(email=email, name=name)
    session.add(user)
    await session.commit()
    await session.refresh(user)

    if not with_token:
        return user, None

    token = generate_session_token()
    session.add(AuthSession(email=user.email, user_id=user.id, session_token_hash=hash_token(token)))
    await session.commit()
    return user, token


@pytest_asyncio.fixture(name="session", scope="function")
async def session_fixture():
    test_engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    async_session = sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)
    async with async_session() as session:
        yield session

    await test_engine.dispose()


@pytest_asyncio.fixture(name="client")
async def client_fixture(session: AsyncSession):
    def get_session_override():
        return session

    @asynccontextmanager
    async def shared_scope():
        yield session

    app.dependency_overrides[get_session] = get_session_override
    app.dependency_overrides[get_session_scope] = lambda: shared_scope

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest_asyncio.fixture(name="auth_user_and_token")
async def auth_user_and_token_fixture(session: AsyncSession):
    """Create authenticated user and return (user, token) tuple."""
    return await _make_user(session, "owner@example.com", name="Owner")


@pytest_asyncio.fixture(name="other_user")
async def other_user_fixture(session: AsyncSession):
    """A second authenticated user (for ownership-boundary tests)."""
    return await _make_user(session, "other@example.com", name="Other")


@pytest.fixture(autouse=True)
def reset_broker():
    yield
    broker._subscribers.clear()


@pytest.fixture(name="make_user")
def make_user_fixture(session: AsyncSession):
    """Factory for extra users: ``await make_user(email, name=...)`` -> (profile, token)."""
    async def factory(email: str, name=None, with_token: bool = True):
        return await _make_user(session, email, name=name, with_token=with_token)
    return factory
