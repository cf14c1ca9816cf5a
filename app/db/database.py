"""
Database Connection and Session Management

The engine and session factory are process-wide and created lazily on first
use. `dispose_engine()` releases the pool at application shutdown.
"""
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base

from app.core.config import settings
from app.core.logging import get_logger

logger = get_logger(__name__)

Base = declarative_base()

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def get_engine() -> AsyncEngine:
    """מחזיר engine יחיד לתהליך, נוצר בקריאה הראשונה"""
    global _engine
    if _engine is None:
        _engine = create_async_engine(
            settings.DATABASE_URL,
            echo=settings.DEBUG,
            pool_pre_ping=True
        )
        logger.info("Database engine created", extra_data={"dialect": _engine.dialect.name})
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Process-wide session factory bound to the shared engine"""
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(
            bind=get_engine(),
            class_=AsyncSession,
            expire_on_commit=False
        )
    return _session_factory


async def dispose_engine() -> None:
    """סגירת ה-pool ב-shutdown; קריאה נוספת ל-get_engine תיצור engine חדש"""
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
        logger.info("Database connections disposed")
    _engine = None
    _session_factory = None


@asynccontextmanager
async def with_transaction(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncIterator[AsyncSession]:
    """
    Run a block inside one database transaction.

    Everything staged on the yielded session is committed when the block
    exits normally; any exception (including cancellation) rolls all of it
    back and propagates. The session is closed on exit and must not be used
    outside the block.
    """
    async with session_factory() as session:
        async with session.begin():
            yield session


@asynccontextmanager
async def get_task_session() -> AsyncIterator[AsyncSession]:
    """
    Create a fresh database session for Celery tasks.

    Celery runs each task in a new event loop (see app.workers.tasks.run_async),
    and pooled asyncpg connections cannot be shared across loops, so tasks get
    their own short-lived engine instead of the process-wide one.
    """
    task_engine = create_async_engine(
        settings.DATABASE_URL,
        echo=settings.DEBUG,
        pool_pre_ping=True,
        pool_size=5,
        max_overflow=10
    )
    task_session_maker = async_sessionmaker(
        bind=task_engine,
        class_=AsyncSession,
        expire_on_commit=False
    )

    try:
        async with task_session_maker() as session:
            yield session
    finally:
        await task_engine.dispose()
