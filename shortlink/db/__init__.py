"""
Database module with abstraction layer.

This module provides:
- DatabaseAdapter interface: Abstract base class for database implementations
- SQLiteAdapter / PostgreSQLAdapter: backend-specific implementations
- Database: engine and session factory handle passed to the services

To add a new database backend:
1. Create a new adapter class inheriting from DatabaseAdapter
2. Implement all abstract methods
3. Register it in get_database_adapter() in sqlite_adapter.py
"""

from shortlink.db.interface import DatabaseAdapter
from shortlink.db.session import Database

__all__ = [
    "DatabaseAdapter",
    "Database",
]
