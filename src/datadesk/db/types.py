"""Shared types and exceptions for the database access layer."""

from dataclasses import dataclass
from enum import Enum
from typing import Any


class DatabaseType(str, Enum):
    """Supported database backends."""

    SQLITE = "sqlite"
    POSTGRESQL = "postgresql"


class DatabaseError(Exception):
    """Base exception for database operations."""

    pass


class ConnectionError(DatabaseError):
    """Error connecting to database."""

    pass


class IntegrityError(DatabaseError):
    """Database integrity constraint violation."""

    pass


class TransactionError(DatabaseError):
    """Transaction could not be started, committed or rolled back."""

    pass


class Row(dict):
    """A query result row.

    Ordered mapping of column name to value. Columns keep the order the
    backend reported them in, so a row can also be addressed by position.
    An empty row stands for "nothing found".
    """

    def value(self, key: str | int, default: Any = None) -> Any:
        """Get a value by column name or by position.

        Args:
            key: Column name, or zero-based column index
            default: Returned when the column does not exist

        Returns:
            Column value, or default
        """
        if isinstance(key, int):
            values = list(self.values())
            if -len(values) <= key < len(values):
                return values[key]
            return default
        return self.get(key, default)

    @property
    def columns(self) -> list[str]:
        """Column names in result order."""
        return list(self.keys())

    def is_empty(self) -> bool:
        return len(self) == 0


@dataclass
class ColumnDefinition:
    """Description of one table column, used for DDL.

    Attributes:
        name: Column name (letters, digits, '_' and '-')
        type: Backend type string, e.g. 'INTEGER' or 'TEXT'
        is_primary_key: Column is part of the primary key (may be composite)
        is_auto_increment: Emit AUTOINCREMENT (SQLite integer rowid alias only)
        is_not_null: Emit NOT NULL
        is_unique: Emit UNIQUE
        default_value: Emitted as DEFAULT '<value>' when non-empty
    """

    name: str
    type: str
    is_primary_key: bool = False
    is_auto_increment: bool = False
    is_not_null: bool = True
    is_unique: bool = False
    default_value: str = ""
