"""Engine and session lifecycle for the rule store.

One async engine per process, built from `Settings` by `init_db()` and
released by `close_db()`. PostgreSQL URLs run on asyncpg, SQLite URLs on
aiosqlite. An in-memory SQLite database lives on a single shared
connection, otherwise each session would open its own empty database.

Pool settings (`DATABASE_POOL_SIZE`, `DATABASE_MAX_OVERFLOW`) only apply to
server databases.

```python
from ruleset_engine.database import get_db, init_db

await init_db()
async with get_db() as session:
    rule_set = await SqlRuleRepository(session).find_rule_set(1)
```
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from ruleset_engine.config import Settings, get_settings
from ruleset_engine.database.models import Base

logger = logging.getLogger(__name__)

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None

_NOT_INITIALIZED = "Rule store is not initialized, call init_db() first"


def _engine_options(settings: Settings) -> dict[str, Any]:
    options: dict[str, Any] = {"echo": settings.database_echo}
    if settings.is_sqlite:
        if ":memory:" in settings.database_url or settings.database_url.endswith("://"):
            options["poolclass"] = StaticPool
            options["connect_args"] = {"check_same_thread": False}
        return options

    options.update(
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
        pool_pre_ping=True,
    )
    return options


def _require_engine() -> AsyncEngine:
    if _engine is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _engine


async def init_db(settings: Settings | None = None) -> None:
    """Build the engine and session factory from settings."""
    global _engine, _session_factory

    settings = settings or get_settings()
    backend = "sqlite" if settings.is_sqlite else "postgresql"
    logger.info(f"Opening rule store ({backend})")

    _engine = create_async_engine(settings.database_url, **_engine_options(settings))
    _session_factory = async_sessionmaker(
        _engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def close_db() -> None:
    """Dispose of the engine. Calling it twice is harmless."""
    global _engine, _session_factory

    if _engine is None:
        return

    logger.info("Closing rule store")
    await _engine.dispose()
    _engine = None
    _session_factory = None


async def create_tables() -> None:
    """Create the rule store schema on the current engine.

    Meant for local setups and tests; deployed databases are migrated
    separately.
    """
    async with _require_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    logger.info("Rule store schema created")


async def drop_tables() -> None:
    """Drop the rule store schema. Test teardown only."""
    async with _require_engine().begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    logger.warning("Rule store schema dropped")


@asynccontextmanager
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Open a session, rolling back if the block raises.

    The engine only reads, so nothing is committed here.

    Raises:
        RuntimeError: If `init_db()` has not been called
    """
    if _session_factory is None:
        raise RuntimeError(_NOT_INITIALIZED)

    session = _session_factory()
    try:
        yield session
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session for `Depends`, see `api.dependencies`."""
    async with get_db() as session:
        yield session
