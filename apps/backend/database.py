from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool
import os

from observability.logging import get_logger

logger = get_logger(__name__)

# Default to a local SQLite file if not set
DATABASE_URL = os.getenv("DATABASE_URL")
if not DATABASE_URL:
    DATABASE_URL = "sqlite+aiosqlite:///./dev_tracker.db"

# Ensure asyncpg driver is used in the connection string
if DATABASE_URL.startswith("postgres://"):
    DATABASE_URL = DATABASE_URL.replace("postgres://", "postgresql+asyncpg://", 1)
elif DATABASE_URL.startswith("postgresql://"):
    DATABASE_URL = DATABASE_URL.replace("postgresql://", "postgresql+asyncpg://", 1)

IS_SQLITE = DATABASE_URL.startswith("sqlite")

# Connection Pool Configuration (ignored for SQLite)
POOL_SIZE = int(os.getenv("DB_POOL_SIZE", "5"))
MAX_OVERFLOW = int(os.getenv("DB_MAX_OVERFLOW", "10"))
POOL_TIMEOUT = int(os.getenv("DB_POOL_TIMEOUT", "30"))
POOL_RECYCLE = int(os.getenv("DB_POOL_RECYCLE", "3600"))
POOL_PRE_PING = os.getenv("DB_POOL_PRE_PING", "true").lower() == "true"

# Echo SQL queries (for debugging only)
ECHO_SQL = os.getenv("DB_ECHO", "false").lower() == "true"

# Each request gets a new connection; useful for serverless deploys and E2E runs
USE_NULL_POOL = os.getenv("DB_USE_NULL_POOL", "false").lower() == "true"

# Create tables on startup when no migration step runs before the app
AUTO_CREATE = os.getenv("DB_AUTO_CREATE", "true").lower() == "true"

engine_kwargs = {
    "echo": ECHO_SQL,
    "future": True,
}

if IS_SQLITE:
    engine_kwargs["connect_args"] = {"check_same_thread": False}
elif USE_NULL_POOL:
    engine_kwargs["poolclass"] = NullPool
    engine_kwargs["pool_pre_ping"] = POOL_PRE_PING
    logger.info("Using NullPool (serverless mode)")
else:
    engine_kwargs["pool_pre_ping"] = POOL_PRE_PING
    engine_kwargs["pool_recycle"] = POOL_RECYCLE
    engine_kwargs["pool_size"] = POOL_SIZE
    engine_kwargs["max_overflow"] = MAX_OVERFLOW
    engine_kwargs["pool_timeout"] = POOL_TIMEOUT
    logger.info(
        "Connection pool configured",
        extra={"pool_size": POOL_SIZE, "max_overflow": MAX_OVERFLOW, "pool_timeout": POOL_TIMEOUT},
    )

engine = create_async_engine(DATABASE_URL, **engine_kwargs)

async_session_maker = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_db():
    async with engine.begin() as conn:
        # This creates tables if they don't exist
        await conn.run_sync(SQLModel.metadata.create_all)


async def get_session() -> AsyncIterator[AsyncSession]:
    async with async_session_maker() as session:
        yield session


@asynccontextmanager
async def session_scope() -> AsyncIterator[AsyncSession]:
    """Standalone session for work that runs outside a request (side effects, jobs)."""
    async with async_session_maker() as session:
        yield session


def get_session_scope():
    """Dependency returning the factory used for out-of-request sessions."""
    return session_scope


def _pool_stat(pool, name: str) -> int:
    stat = getattr(pool, name, None)
    return stat() if callable(stat) else 0


async def check_db_health() -> dict:
    """
    Check database connection pool health.
    Returns pool statistics for monitoring.
    """
    pool = engine.pool
    return {
        "pool_size": _pool_stat(pool, "size"),
        "checked_in": _pool_stat(pool, "checkedin"),
        "checked_out": _pool_stat(pool, "checkedout"),
        "overflow": _pool_stat(pool, "overflow"),
        "pool_class": pool.__class__.__name__,
    }
