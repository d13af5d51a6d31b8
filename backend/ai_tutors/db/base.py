"""Database base class and session management.

This module provides:
- SQLAlchemy base class for declarative models
- Database session factory
- Engine management for the Tutor database
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from ..core.config import get_settings


class Base(DeclarativeBase):
    """Base class for all ORM models."""
    pass


def utc_now() -> datetime:
    """Current UTC time as a naive datetime, matching the DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# =============================================================================
# Tutor Database
# =============================================================================

_tutor_engine = None
_tutor_session_maker = None


def get_tutor_engine():
    """Get or create the Tutor database engine."""
    global _tutor_engine

    if _tutor_engine is None:
        settings = get_settings()
        engine_kwargs = {"echo": settings.DEBUG}
        # SQLite pools reject the sizing arguments
        if not settings.TUTOR_DB_URL.startswith("sqlite"):
            engine_kwargs.update(
                pool_size=settings.DB_POOL_SIZE,
                max_overflow=settings.DB_MAX_OVERFLOW,
                pool_timeout=settings.DB_POOL_TIMEOUT,
            )
        _tutor_engine = create_async_engine(settings.TUTOR_DB_URL, **engine_kwargs)

    return _tutor_engine


def get_tutor_session_maker() -> async_sessionmaker[AsyncSession]:
    """Get or create the Tutor session maker."""
    global _tutor_session_maker

    if _tutor_session_maker is None:
        engine = get_tutor_engine()
        _tutor_session_maker = async_sessionmaker(
            bind=engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    return _tutor_session_maker


@asynccontextmanager
async def get_tutor_session():
    """Get a Tutor database session as an async context manager."""
    session_maker = get_tutor_session_maker()
    async with session_maker() as session:
        yield session


# =============================================================================
# Utility Functions
# =============================================================================


async def init_databases(engine=None):
    """Initialize the Tutor database (create tables)."""
    from .tutor import models as tutor_models  # noqa: F401

    engine = engine or get_tutor_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_all():
    """Close all database connections."""
    global _tutor_engine, _tutor_session_maker

    if _tutor_engine:
        await _tutor_engine.dispose()
        _tutor_engine = None

    _tutor_session_maker = None
