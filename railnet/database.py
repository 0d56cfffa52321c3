"""Database engine and session management."""

from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from railnet.config import get_settings
from railnet.models import Base

settings = get_settings()

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def create_session_factory(
    url: str,
    echo: bool = False,
) -> tuple[AsyncEngine, async_sessionmaker[AsyncSession]]:
    """Create an engine and a session factory bound to it."""
    engine = create_async_engine(url, echo=echo, pool_pre_ping=True)
    factory = async_sessionmaker(engine, expire_on_commit=False)
    return engine, factory


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get the application session factory, creating it on first use."""
    global _engine, _session_factory
    if _session_factory is None:
        _engine, _session_factory = create_session_factory(
            settings.database_url, echo=settings.DB_ECHO
        )
    return _session_factory


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency yielding a database session."""
    factory = get_session_factory()
    async with factory() as session:
        yield session


async def init_models(engine: AsyncEngine | None = None) -> None:
    """Create all tables."""
    if engine is None:
        get_session_factory()
        engine = _engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Dispose of the engine."""
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_factory = None
