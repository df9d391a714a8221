"""Database connection and session management."""

from __future__ import annotations

import asyncio

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool, StaticPool

from reelrelay.config import settings
from reelrelay.observability.logging import get_logger
from reelrelay.storage.models import Base

logger = get_logger(__name__)

__all__ = [
    "get_async_engine",
    "get_async_session_factory",
    "init_async_db",
    "shutdown_async_db",
    "to_async_url",
]

_async_engine: AsyncEngine | None = None
_async_engine_url: str | None = None
_async_engine_loop_id: int | None = (
    None  # Track loop where engine was created to avoid cross-loop reuse
)
_AsyncSessionLocal: async_sessionmaker[AsyncSession] | None = None
_async_engines_to_dispose: dict[int, AsyncEngine] = {}


def _stash_async_engine(engine: AsyncEngine) -> None:
    """Keep a strong ref until shutdown to avoid leaked aiosqlite threads in tests."""
    _async_engines_to_dispose[id(engine)] = engine


def _is_sqlite_file(url: str) -> bool:
    return url.startswith("sqlite") and ":memory:" not in url


def to_async_url(url: str) -> str:
    """Rewrite sync driver URLs to their async equivalents."""
    if url.startswith("postgresql+psycopg2://"):
        return url.replace("postgresql+psycopg2://", "postgresql+asyncpg://")
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://")
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+asyncpg://")
    if url.startswith("sqlite://"):
        return url.replace("sqlite://", "sqlite+aiosqlite://")
    return url


def get_async_engine() -> AsyncEngine:
    """Get or create async engine."""
    global _async_engine, _async_engine_url, _AsyncSessionLocal, _async_engine_loop_id

    def _current_loop_id() -> int | None:
        try:
            return id(asyncio.get_running_loop())
        except RuntimeError:
            return None

    curr_loop_id = _current_loop_id()
    url = to_async_url(settings.database_url)

    # If engine was created on a different event loop, discard and rebuild to avoid
    # asyncpg cross-loop errors like "Future attached to a different loop".
    loop_mismatch = (
        _async_engine is not None
        and _async_engine_loop_id is not None
        and curr_loop_id is not None
        and curr_loop_id != _async_engine_loop_id
    )
    if (loop_mismatch or _async_engine_url != url) and _async_engine is not None:
        _stash_async_engine(_async_engine)
        _async_engine = None
        _AsyncSessionLocal = None
        _async_engine_url = None
        _async_engine_loop_id = None

    if _async_engine is None:
        logger.info("Creating async database engine")
        kw: dict = {"pool_pre_ping": True}

        if url.startswith("sqlite"):
            kw["connect_args"] = {"check_same_thread": False}
            if ":memory:" in url:
                kw["poolclass"] = StaticPool
            elif settings.environment == "test":
                # anyio tests run each test on its own event loop; pooled aiosqlite
                # connections would outlive the loop and hang interpreter exit.
                kw["poolclass"] = NullPool
        else:
            kw["pool_size"] = settings.db_pool_size
            kw["max_overflow"] = settings.db_max_overflow

        _async_engine = create_async_engine(url, **kw)
        _async_engine_url = url
        _async_engine_loop_id = curr_loop_id
        _AsyncSessionLocal = None
    return _async_engine


def get_async_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get or create async session factory."""
    global _AsyncSessionLocal
    if _AsyncSessionLocal is None:
        _AsyncSessionLocal = async_sessionmaker(
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
            bind=get_async_engine(),
            class_=AsyncSession,
        )
    return _AsyncSessionLocal


async def init_async_db() -> None:
    """Open the async engine and check connectivity.

    SQLite databases get their tables created here so dev/test runs work
    without migrations. Other backends are owned by Alembic and only get a
    connectivity check.
    """
    await shutdown_async_db()
    engine = get_async_engine()
    async with engine.begin() as conn:
        if engine.url.get_backend_name() != "sqlite":
            await conn.execute(text("SELECT 1"))
            logger.info("Async database reachable; schema managed by Alembic")
            return
        await conn.run_sync(Base.metadata.create_all)
        if _is_sqlite_file(settings.database_url):
            await conn.execute(text("PRAGMA journal_mode=WAL"))
            await conn.execute(text("PRAGMA foreign_keys=ON"))
            await conn.execute(text("PRAGMA busy_timeout=3000"))
            logger.info("Enabled WAL mode for SQLite database")
    logger.info("Async database tables created")


async def shutdown_async_db() -> None:
    """Dispose the async engine and clear session factory caches.

    Leaked aiosqlite connections raise unraisable exceptions at interpreter
    shutdown once the event loop has been closed, so tests call this on teardown.
    """
    global _async_engine, _async_engine_url, _AsyncSessionLocal, _async_engine_loop_id
    global _async_engines_to_dispose

    _AsyncSessionLocal = None
    if _async_engine is not None:
        _stash_async_engine(_async_engine)

    engines = list(_async_engines_to_dispose.values())
    _async_engines_to_dispose = {}
    for engine in engines:
        try:
            await engine.dispose()
        except Exception:  # pragma: no cover - best-effort cleanup
            logger.debug("Failed to dispose async engine", exc_info=True)

    _async_engine = None
    _async_engine_url = None
    _async_engine_loop_id = None
