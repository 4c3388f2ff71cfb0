"""Abstract database adapter interface.

This module defines the interface that all database adapters must implement,
providing a consistent API for database operations across SQLite and PostgreSQL.

Metadata introspection is a strategy: the base class implements the portable
path (information_schema queries and zero-row ``WHERE 1=0`` probes), and each
backend overrides whatever it can answer natively. Callers never switch on
the backend type themselves.
"""

from abc import ABC, abstractmethod
from typing import Any

from .types import DatabaseError, DatabaseType, Row


class DatabaseAdapter(ABC):
    """Abstract database adapter interface.

    All database implementations (SQLite, PostgreSQL) must implement this interface
    to ensure consistent behavior across different database backends.

    Adapters run in autocommit mode: a statement issued outside ``begin()``
    is committed immediately.
    """

    @property
    @abstractmethod
    def db_type(self) -> DatabaseType:
        """Backend family of this adapter."""
        pass

    @property
    def is_sqlite(self) -> bool:
        return self.db_type == DatabaseType.SQLITE

    @abstractmethod
    def connect(self) -> None:
        """Establish database connection.

        Raises:
            ConnectionError: If connection fails
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """Close database connection."""
        pass

    @property
    @abstractmethod
    def is_open(self) -> bool:
        """Whether the connection is established."""
        pass

    @abstractmethod
    def begin(self) -> None:
        """Start an explicit transaction.

        Raises:
            TransactionError: If the transaction cannot be started
        """
        pass

    @abstractmethod
    def commit(self) -> None:
        """Commit current transaction.

        Raises:
            DatabaseError: If commit fails
        """
        pass

    @abstractmethod
    def rollback(self) -> None:
        """Rollback current transaction.

        Raises:
            DatabaseError: If rollback fails
        """
        pass

    @property
    @abstractmethod
    def in_transaction(self) -> bool:
        """Whether an explicit transaction is open on the connection."""
        pass

    @abstractmethod
    def execute(self, query: str, params: tuple | None = None) -> Any:
        """Execute a query and return cursor.

        Args:
            query: SQL query to execute, using ? placeholders
            params: Query parameters (optional)

        Returns:
            Database cursor

        Raises:
            DatabaseError: If execution fails
            IntegrityError: If integrity constraint violated
        """
        pass

    @abstractmethod
    def last_insert_id(self, cursor: Any) -> int:
        """Identity generated by the last INSERT, or -1 if unavailable."""
        pass

    @abstractmethod
    def cursor(self) -> Any:
        """Get raw database cursor for complex operations.

        Raises:
            DatabaseError: If cursor creation fails
        """
        pass

    @abstractmethod
    def exists(self) -> bool:
        """Check if database exists and is accessible.

        For SQLite: Checks if database file exists
        For PostgreSQL: Checks if database exists and has tables
        """
        pass

    @abstractmethod
    def get_indexes(self, table_name: str) -> list[str]:
        """Get names of all indexes defined on a table."""
        pass

    # Row access

    def fetchone(self, query: str, params: tuple | None = None) -> Row | None:
        """Execute query and fetch one result as a Row.

        Returns:
            Single row, or None if no results
        """
        cursor = self.execute(query, params)
        row = cursor.fetchone()
        if row is None:
            return None
        return Row(row)

    def fetchall(self, query: str, params: tuple | None = None) -> list[Row]:
        """Execute query and fetch all results as a list of Rows."""
        cursor = self.execute(query, params)
        return [Row(row) for row in cursor.fetchall()]

    def fetchscalar(self, query: str, params: tuple | None = None) -> Any:
        """Execute query and return first column of first row.

        Useful for queries that return a single value like COUNT(*), MAX(), etc.

        Returns:
            First column of first row, or None if no results
        """
        result = self.fetchone(query, params)
        if result is None:
            return None
        return result.value(0)

    def describe(self, query: str, params: tuple | None = None) -> list[str]:
        """Column names a query would return, taken from the cursor description."""
        cursor = self.execute(query, params)
        return [column[0] for column in cursor.description or []]

    # Portable metadata path

    def get_tables(self) -> list[str]:
        """Get list of all user tables in database."""
        rows = self.fetchall(
            """
            SELECT table_name
            FROM information_schema.tables
            WHERE table_type = 'BASE TABLE'
            AND table_schema NOT IN ('information_schema', 'pg_catalog')
            ORDER BY table_name
            """
        )
        return [row.value(0) for row in rows]

    def get_views(self) -> list[str]:
        """Get list of all views in database."""
        rows = self.fetchall(
            """
            SELECT table_name
            FROM information_schema.tables
            WHERE table_type = 'VIEW'
            AND table_schema NOT IN ('information_schema', 'pg_catalog')
            ORDER BY table_name
            """
        )
        return [row.value(0) for row in rows]

    def get_table_schema(self, table_name: str) -> list[Row]:
        """Get schema information for a specific table.

        Returns:
            List of column definitions with keys:
                - cid: Column position
                - name: Column name
                - type: Column data type
                - notnull: Whether column is NOT NULL (1 or 0)
                - default: Default value (or None)
                - pk: Whether column is primary key (1 or 0)
        """
        primary_keys = set(self.get_primary_keys(table_name))
        rows = self.fetchall(
            """
            SELECT column_name, data_type, is_nullable, column_default
            FROM information_schema.columns
            WHERE table_name = ?
            ORDER BY ordinal_position
            """,
            (table_name,),
        )
        schema = []
        for cid, row in enumerate(rows):
            name = row.value(0)
            schema.append(
                Row(
                    cid=cid,
                    name=name,
                    type=row.value(1),
                    notnull=1 if row.value(2) == "NO" else 0,
                    default=row.value(3),
                    pk=1 if name in primary_keys else 0,
                )
            )
        return schema

    def get_column_names(self, table_name: str) -> list[str]:
        """Column names of a table, read from a zero-row probe select."""
        return self.describe(f"SELECT * FROM {table_name} WHERE 1=0")

    def get_primary_keys(self, table_name: str) -> list[str]:
        rows = self.fetchall(
            """
            SELECT kcu.column_name
            FROM information_schema.table_constraints tc
            JOIN information_schema.key_column_usage kcu
                ON tc.constraint_name = kcu.constraint_name
            WHERE tc.table_name = ? AND tc.constraint_type = 'PRIMARY KEY'
            ORDER BY kcu.ordinal_position
            """,
            (table_name,),
        )
        return [row.value(0) for row in rows]

    def get_foreign_keys(self, table_name: str) -> list[str]:
        """Local column names taking part in foreign keys, without duplicates."""
        rows = self.fetchall(
            """
            SELECT kcu.column_name
            FROM information_schema.table_constraints tc
            JOIN information_schema.key_column_usage kcu
                ON tc.constraint_name = kcu.constraint_name
            WHERE tc.table_name = ? AND tc.constraint_type = 'FOREIGN KEY'
            """,
            (table_name,),
        )
        return list(dict.fromkeys(row.value(0) for row in rows))

    def get_constraints(self, table_name: str) -> list[Row]:
        return self.fetchall(
            """
            SELECT constraint_name, constraint_type
            FROM information_schema.table_constraints
            WHERE table_name = ?
            """,
            (table_name,),
        )

    def get_table_ddl(self, table_name: str) -> str | None:
        """Stored CREATE statement of a table, where the backend keeps one."""
        return None

    def get_column_info(self, table_name: str, column_name: str) -> Row | None:
        """Schema row of one column, matched case-insensitively."""
        for column in self.get_table_schema(table_name):
            if str(column["name"]).lower() == column_name.lower():
                return column
        return None

    def get_column_default(self, table_name: str, column_name: str) -> Any:
        """Declared default of a column as stored by the backend, or None."""
        column = self.get_column_info(table_name, column_name)
        return None if column is None else column["default"]

    def is_auto_increment(self, table_name: str, column_name: str) -> bool:
        row = self.fetchone(
            """
            SELECT is_identity, column_default
            FROM information_schema.columns
            WHERE table_name = ? AND column_name = ?
            """,
            (table_name, column_name),
        )
        if row is None:
            return False
        default = str(row.value(1) or "")
        return row.value(0) == "YES" or default.startswith("nextval(")

    def get_size_info(self) -> dict[str, int]:
        """Storage size figures for the whole database, where available."""
        return {}

    # Backend-specific statements

    def truncate(self, table_name: str) -> int:
        """Remove every row of a table.

        Returns:
            Number of rows affected as reported by the driver
        """
        cursor = self.execute(f"TRUNCATE TABLE {table_name}")
        return cursor.rowcount

    def upsert_sql(self, table_name: str, columns: list[str], conflict_columns: list[str]) -> str:
        """Build an insert-or-update statement with ? placeholders."""
        placeholders = ", ".join("?" for _ in columns)
        return f"REPLACE INTO {table_name} ({', '.join(columns)}) VALUES ({placeholders})"

    def _require_connection(self) -> Any:
        conn = getattr(self, "_conn", None)
        if not conn:
            raise DatabaseError("No active connection")
        return conn

    def __enter__(self):
        """Context manager entry."""
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        if self.in_transaction:
            if exc_type is not None:
                self.rollback()
            else:
                self.commit()
        self.close()
        return False
