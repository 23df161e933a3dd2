"""
SQLite Database Adapter

This module implements the DatabaseAdapter interface for SQLite.
All SQLite-specific configuration and behavior is encapsulated here.

SQLite is a file-based database that's perfect for:
- Local development
- Testing
- Single-instance deployments

Key characteristics:
- File-based (single .db file)
- Single writer at a time (file locking); concurrent writers wait on the
  busy timeout instead of failing, so unique-constraint violations surface
  as IntegrityError rather than "database is locked"
"""

from typing import Any

from sqlalchemy.pool import NullPool

from shortlink.db.interface import DatabaseAdapter
from shortlink.db.postgres_adapter import PostgreSQLAdapter

BUSY_TIMEOUT_SECONDS = 30


class SQLiteAdapter(DatabaseAdapter):
    """
    SQLite database adapter implementation.

    This adapter handles all SQLite-specific configuration and operations.
    """

    def get_pool_class(self) -> type[NullPool]:
        """
        Get the connection pool class for SQLite.

        SQLite uses NullPool because the file-based database doesn't benefit
        from connection pooling and handles one writer at a time.

        Returns:
            NullPool class
        """
        return NullPool

    def get_connect_args(self) -> dict[str, Any]:
        """
        Get SQLite-specific connection arguments.

        Returns:
            Dictionary with SQLite connection arguments
        """
        return {
            "check_same_thread": False,
            "timeout": BUSY_TIMEOUT_SECONDS,
        }

    def get_engine_kwargs(self) -> dict[str, Any]:
        """
        Get SQLite-specific engine configuration.

        Returns:
            Dictionary with SQLite engine options
        """
        return {
            "echo": False  # Set to True only for SQL debugging in development
        }

    def on_connect(self, dbapi_connection, connection_record) -> None:
        """Enable WAL so readers are not blocked by the click flush writer."""
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute(f"PRAGMA busy_timeout={BUSY_TIMEOUT_SECONDS * 1000}")
        cursor.close()

    def get_dialect_name(self) -> str:
        """
        Get the SQLAlchemy dialect name for SQLite.

        Returns:
            'sqlite'
        """
        return "sqlite"


def get_database_adapter(database_url: str, pool_size: int = 10) -> DatabaseAdapter:
    """
    Factory function to get the database adapter for a connection string.

    Args:
        database_url: SQLAlchemy URL; the scheme selects the adapter
        pool_size: Connection pool size for server databases

    Returns:
        DatabaseAdapter instance (SQLiteAdapter unless the URL is PostgreSQL)
    """
    if database_url.startswith("postgresql"):
        return PostgreSQLAdapter(pool_size=pool_size)
    return SQLiteAdapter()
