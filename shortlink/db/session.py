"""
Database Session Management with Connection Pooling

This module handles async database connections using SQLAlchemy's async engine.
Uses a database abstraction layer to support different database backends.

Key Features:
- Database abstraction: Easy to switch between SQLite, PostgreSQL, etc.
- Connection pooling: Configured per database type
- Explicit handle: each Database owns its engine and session factory and is
  passed to the components that need it (no module-level engine)
- Error handling: Automatic rollback on exceptions
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession as SQLModelAsyncSession

from shortlink.db import models  # noqa: F401  (registers tables on SQLModel.metadata)
from shortlink.db.interface import DatabaseAdapter
from shortlink.db.sqlite_adapter import get_database_adapter


class Database:
    """
    Engine + session factory for one database.

    Usage:
        database = Database("sqlite+aiosqlite:///./shortlinks.db")
        await database.create_all()
        async with database.session() as session:
            ...
        await database.dispose()
    """

    def __init__(
        self,
        database_url: str,
        adapter: Optional[DatabaseAdapter] = None,
        pool_size: int = 10,
        **engine_kwargs
    ):
        self.database_url = database_url
        self.adapter = adapter or get_database_adapter(database_url, pool_size=pool_size)
        self.engine = self.adapter.create_engine(database_url, **engine_kwargs)

        # expire_on_commit=False keeps loaded rows usable after the session
        # closes; links are handed to the cache and to callers
        self.session_maker = async_sessionmaker(
            self.engine,
            class_=SQLModelAsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """
        Open a session that commits on success and rolls back on exception.

        The session is closed by the context manager in both cases.
        """
        async with self.session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def create_all(self) -> None:
        """Create missing tables (development and tests; production uses Alembic)."""
        async with self.engine.begin() as connection:
            await connection.run_sync(SQLModel.metadata.create_all)

    async def dispose(self) -> None:
        """Close every pooled connection."""
        await self.engine.dispose()
