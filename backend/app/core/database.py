"""
Database configuration and session management.
Uses SQLAlchemy with async support. SQLite for dev, PostgreSQL-ready.
"""

import logging
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool

from app.config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()

engine_options = {"echo": settings.debug, "future": True}
if settings.database_url.startswith("sqlite"):
    # aiosqlite connections are bound to the loop that opened them
    engine_options["poolclass"] = NullPool

# Create async engine
engine = create_async_engine(settings.database_url, **engine_options)

# Session factory
async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


async def init_db():
    """Initialize database tables."""
    async with engine.begin() as conn:
        # Import all models to register them
        from app.models import user, house, invitation, task, device, shopping, notification  # noqa: F401
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables created")


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency that provides a database session."""
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()
