"""Async SQLAlchemy engine and session factory.

The engine is built from settings by the application factory and handed to
the services that need it:

    engine = build_engine(settings)
    sessions = build_session_factory(engine)
    store = DocumentStore(sessions)
"""
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from docvault.config import Settings


def build_engine(settings: Settings) -> AsyncEngine:
    """Create the async engine. PostgreSQL gets a sized pool, SQLite the driver default."""
    if settings.DATABASE_URL.startswith("sqlite"):
        return create_async_engine(settings.DATABASE_URL, echo=False)
    return create_async_engine(
        settings.DATABASE_URL,
        echo=False,
        pool_size=10,
        max_overflow=20,
        pool_pre_ping=True,
    )


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
