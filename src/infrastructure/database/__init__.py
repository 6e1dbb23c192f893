"""
Database Infrastructure
=======================

Manages database connections, session lifecycle, and engine configuration.

Uses SQLAlchemy 2.0 with asyncpg for async PostgreSQL operations. The
engine is owned by a ``Database`` object created by the composition root
(``src.main``) and handed to whatever needs it; there is no module-level
engine.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncGenerator, Optional

from fastapi import Request
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from src.config import Settings


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy models.

    SQLAlchemy 2.0 style using DeclarativeBase.
    All models inherit from this class.
    """
    pass


class Database:
    """
    Owns the async engine and session maker for one process.

    Usage:
        database = Database("postgresql+asyncpg://...")
        async with database.session_scope() as session:
            ...
        await database.close()
    """

    def __init__(self, url: str, echo: bool = False, **engine_kwargs: Any):
        self.engine: AsyncEngine = create_async_engine(url, echo=echo, **engine_kwargs)
        self.session_maker: async_sessionmaker[AsyncSession] = async_sessionmaker(
            bind=self.engine,
            class_=AsyncSession,
            expire_on_commit=False,  # Prevent lazy loading after commit
            autoflush=False,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        """Build the engine from application settings."""
        # Fix asyncpg SSL: replace sslmode with ssl for asyncpg compatibility
        database_url = settings.database_url.replace("sslmode=", "ssl=")

        engine_kwargs: dict[str, Any] = {"pool_pre_ping": True}
        if not settings.is_sqlite:
            engine_kwargs["pool_size"] = settings.db_pool_size
            engine_kwargs["max_overflow"] = settings.db_max_overflow

        return cls(database_url, echo=settings.debug, **engine_kwargs)

    @asynccontextmanager
    async def session_scope(self) -> AsyncGenerator[AsyncSession, None]:
        """
        One transaction: commits on success, rolls back on any exception.

        Usage:
            async with database.session_scope() as session:
                result = await session.execute(select(CaseModel))

        Yields:
            AsyncSession: SQLAlchemy async session
        """
        async with self.session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def create_tables(self) -> None:
        """
        Create all database tables.

        This should only be used for development/testing.
        Production should use migrations (Alembic).
        """
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self) -> None:
        """Dispose of pooled connections."""
        await self.engine.dispose()


async def get_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency yielding a session bound to one request transaction.

    Usage in FastAPI:
        @router.get("/cases")
        async def list_cases(session: AsyncSession = Depends(get_session)):
            ...

    Yields:
        AsyncSession: SQLAlchemy async session
    """
    database: Database = request.app.state.database

    async with database.session_scope() as session:
        yield session


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Normalise a stored timestamp to an aware UTC datetime.

    SQLite drops tzinfo on ``DateTime(timezone=True)`` columns.
    """
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)
