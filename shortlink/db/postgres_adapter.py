"""
PostgreSQL Database Adapter

Server database for multi-instance deployments. Uses SQLAlchemy's default
async queue pool so that each process holds a bounded set of connections.
"""

from typing import Any, Optional

from sqlalchemy.pool import Pool

from shortlink.db.interface import DatabaseAdapter


class PostgreSQLAdapter(DatabaseAdapter):
    """PostgreSQL (asyncpg) adapter."""

    def __init__(self, pool_size: int = 10, max_overflow: int = 10):
        self.pool_size = pool_size
        self.max_overflow = max_overflow

    def get_pool_class(self) -> Optional[type[Pool]]:
        return None

    def get_connect_args(self) -> dict[str, Any]:
        return {}

    def get_engine_kwargs(self) -> dict[str, Any]:
        return {
            "echo": False,
            "pool_size": self.pool_size,
            "max_overflow": self.max_overflow,
            "pool_pre_ping": True,
        }

    def get_dialect_name(self) -> str:
        return "postgresql"
