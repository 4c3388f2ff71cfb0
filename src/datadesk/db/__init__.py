"""Database adapters for datadesk.

This package provides a consistent interface for database operations across
SQLite and PostgreSQL backends, including the per-backend metadata strategy.

Example:
    >>> from datadesk.db import DatabaseConfig, create_database
    >>>
    >>> config = DatabaseConfig(db_type="sqlite", db_path="data/my_database.db")
    >>> adapter = create_database(config)
    >>> adapter.connect()
    >>> adapter.get_tables()
    ['tree_nodes', 'users']
    >>> adapter.close()
"""

from .factory import (
    DatabaseConfig,
    config_from_env,
    create_database,
    get_adapter,
    parse_database_type,
    users_table_ddl,
)
from .interface import DatabaseAdapter
from .sqlite_adapter import SQLiteAdapter
from .types import (
    ColumnDefinition,
    ConnectionError,
    DatabaseError,
    DatabaseType,
    IntegrityError,
    Row,
    TransactionError,
)

__all__ = [
    # Factory
    "DatabaseConfig",
    "config_from_env",
    "create_database",
    "get_adapter",
    "parse_database_type",
    "users_table_ddl",
    # Interface
    "DatabaseAdapter",
    "SQLiteAdapter",
    # Types and exceptions
    "ColumnDefinition",
    "DatabaseType",
    "DatabaseError",
    "ConnectionError",
    "IntegrityError",
    "TransactionError",
    "Row",
]
