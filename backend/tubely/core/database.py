"""Async SQLAlchemy engine, session factory, and request session dependency.

The engine and session factory are owned by the application lifespan and live
on ``app.state``; nothing here opens a connection at import time.
"""

from typing import AsyncGenerator

from fastapi import Request
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Declarative base for ORM models."""

    pass


def create_session_factory(
    database_url: str,
    echo: bool = False,
) -> tuple[AsyncEngine, async_sessionmaker[AsyncSession]]:
    """Create the async engine and its session factory.

    Args:
        database_url: Async SQLAlchemy URL (e.g. postgresql+asyncpg://...)
        echo: Echo SQL statements

    Returns:
        Tuple of (engine, session factory)
    """
    engine = create_async_engine(database_url, echo=echo)
    session_factory = async_sessionmaker(engine, expire_on_commit=False)
    return engine, session_factory


async def init_models(engine: AsyncEngine) -> None:
    """Create all tables registered on ``Base``."""
    # Import models so they are registered on the metadata
    from tubely.modules.video import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Yield a database session for one request.

    Commits when the handler returns and rolls back when it raises.
    """
    session_factory: async_sessionmaker[AsyncSession] = request.app.state.session_factory
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
