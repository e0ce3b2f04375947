"""Database and Redis handles shared by the admin API and the eligibility service.

The schema is owned by Alembic (`alembic upgrade head`); startup only
checks that PostgreSQL answers and that Redis is reachable for the
per-product locks.
"""

from __future__ import annotations

import contextlib
import logging
from collections.abc import AsyncGenerator

import redis.asyncio as aioredis
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from catalog.config import settings

logger = logging.getLogger(__name__)

# ── PostgreSQL ───────────────────────────────────────────────────────

engine: AsyncEngine = create_async_engine(
    settings.db.database_url,
    echo=settings.log_level == "DEBUG",
    pool_size=10,
    max_overflow=20,
    pool_pre_ping=True,
    pool_recycle=3600,
)

# Objects stay readable after commit: routes build responses from them
# once the primary save is committed and the eligibility service has run.
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session; commits on success, rolls back on any error."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


# ── Redis (per-product locks) ────────────────────────────────────────

redis_client: aioredis.Redis = aioredis.from_url(
    settings.db.redis_url,
    decode_responses=True,
)


# ── Lifespan ─────────────────────────────────────────────────────────


async def check_connections() -> None:
    """Fail startup if PostgreSQL is down; only warn if Redis is.

    Without Redis the eligibility locks fail open and recomputes rely on
    row locks alone.
    """
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
    try:
        await redis_client.ping()
    except RedisError:
        logger.warning("Redis at %s unreachable, product locks will fail open", settings.db.redis_url)


async def close_connections() -> None:
    await engine.dispose()
    await redis_client.aclose()


@contextlib.asynccontextmanager
async def db_lifespan() -> AsyncGenerator[None, None]:
    """Wrap the FastAPI lifespan: check connections on entry, dispose on exit."""
    await check_connections()
    try:
        yield
    finally:
        await close_connections()
