"""
Async database access for the planner API.

One engine per process, created by ``init_database`` at app start and
disposed by ``close_database``. Request handlers get a session through
``get_db_session_dependency``; repositories commit their own writes.
"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator, Optional

from sqlalchemy import event, text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from ..models import Base
from .config import get_settings

logger = logging.getLogger(__name__)

_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker] = None


def get_database_url() -> str:
    return get_settings().database_url


def _is_sqlite(database_url: str) -> bool:
    return make_url(database_url).get_backend_name() == "sqlite"


def _sqlite_file(database_url: str) -> Optional[Path]:
    database = make_url(database_url).database
    if not database or database == ":memory:":
        return None
    return Path(database)


def _on_sqlite_connect(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA busy_timeout=5000")
    cursor.close()


def create_engine_for(database_url: str) -> AsyncEngine:
    """Build an engine with the pool and pragmas suited to *database_url*."""
    if not _is_sqlite(database_url):
        return create_async_engine(database_url, pool_pre_ping=True)

    path = _sqlite_file(database_url)
    if path is not None:
        path.parent.mkdir(parents=True, exist_ok=True)
    engine = create_async_engine(database_url, poolclass=NullPool)
    if path is not None:
        event.listen(engine.sync_engine, "connect", _on_sqlite_connect)
    return engine


async def init_database(database_url: Optional[str] = None) -> None:
    """Create the process engine and any missing tables."""
    global _engine, _session_factory

    database_url = database_url or get_database_url()
    logger.info(f"Opening planner database {make_url(database_url).render_as_string()}")

    _engine = create_engine_for(database_url)
    _session_factory = async_sessionmaker(_engine, class_=AsyncSession, expire_on_commit=False)

    async with _engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info(f"Planner tables ready: {', '.join(sorted(Base.metadata.tables))}")


async def close_database() -> None:
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
        logger.info("Planner database closed")
    _engine = None
    _session_factory = None


@asynccontextmanager
async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Session context manager; uncommitted work is rolled back on error."""
    if _session_factory is None:
        await init_database()

    async with _session_factory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def get_db_session_dependency() -> AsyncGenerator[AsyncSession, None]:
    async with get_db_session() as session:
        yield session


async def health_check() -> bool:
    """True if a trivial query succeeds."""
    try:
        async with get_db_session() as session:
            return (await session.execute(text("SELECT 1"))).scalar() == 1
    except Exception as e:
        logger.error(f"Database health check failed: {type(e).__name__}: {e}")
        return False
