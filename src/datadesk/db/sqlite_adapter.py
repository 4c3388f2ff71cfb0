"""SQLite database adapter implementation.

This adapter wraps SQLite3 functionality to provide a consistent interface
for database operations across different database backends. Metadata comes
from the native catalog (``sqlite_master``) and PRAGMAs instead of the
portable information_schema path.
"""

import sqlite3
from pathlib import Path
from typing import Any

from common.logger import get_logger

from .interface import DatabaseAdapter
from .types import ConnectionError as DBConnectionError
from .types import DatabaseError, DatabaseType, Row, TransactionError
from .types import IntegrityError as DBIntegrityError

logger = get_logger(__name__)


class SQLiteAdapter(DatabaseAdapter):
    """SQLite database adapter.

    Wraps sqlite3 functionality to implement the DatabaseAdapter interface.
    """

    def __init__(self, db_path: str | Path):
        """Initialize SQLite adapter.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self._conn: sqlite3.Connection | None = None

    @property
    def db_type(self) -> DatabaseType:
        return DatabaseType.SQLITE

    def connect(self) -> None:
        """Establish database connection."""
        try:
            # Create parent directory if it doesn't exist
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise DBConnectionError(f"Failed to create database directory: {e}") from e

        try:
            # isolation_level=None: no implicit BEGIN, transactions are explicit
            self._conn = sqlite3.connect(str(self.db_path), isolation_level=None)
            self._conn.row_factory = sqlite3.Row
        except sqlite3.Error as e:
            raise DBConnectionError(f"Failed to connect to SQLite database: {e}") from e

    def close(self) -> None:
        """Close database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    def begin(self) -> None:
        """Start an explicit transaction."""
        conn = self._require_connection()
        try:
            conn.execute("BEGIN")
        except sqlite3.Error as e:
            raise TransactionError(f"Failed to begin transaction: {e}") from e

    def commit(self) -> None:
        """Commit current transaction."""
        conn = self._require_connection()
        try:
            conn.commit()
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to commit transaction: {e}") from e

    def rollback(self) -> None:
        """Rollback current transaction."""
        conn = self._require_connection()
        try:
            conn.rollback()
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to rollback transaction: {e}") from e

    @property
    def in_transaction(self) -> bool:
        return self._conn is not None and self._conn.in_transaction

    def execute(self, query: str, params: tuple | None = None) -> Any:
        """Execute a query and return cursor."""
        conn = self._require_connection()
        try:
            cursor = conn.cursor()
            if params:
                cursor.execute(query, params)
            else:
                cursor.execute(query)
            return cursor
        except sqlite3.IntegrityError as e:
            raise DBIntegrityError(f"Integrity constraint violation: {e}") from e
        except sqlite3.Error as e:
            raise DatabaseError(f"Query execution failed: {e}") from e

    def last_insert_id(self, cursor: Any) -> int:
        if cursor is None or cursor.lastrowid is None:
            return -1
        return cursor.lastrowid

    def cursor(self) -> Any:
        """Get raw database cursor for complex operations."""
        return self._require_connection().cursor()

    def exists(self) -> bool:
        """Check if SQLite database file exists."""
        return self.db_path.exists()

    # Native metadata path

    def get_tables(self) -> list[str]:
        """Get list of all user tables, skipping SQLite's internal sqlite_* tables."""
        rows = self.fetchall(
            "SELECT name FROM sqlite_master "
            "WHERE type='table' AND name NOT LIKE 'sqlite_%' ORDER BY name"
        )
        return [row["name"] for row in rows]

    def get_views(self) -> list[str]:
        rows = self.fetchall("SELECT name FROM sqlite_master WHERE type='view' ORDER BY name")
        return [row["name"] for row in rows]

    def get_table_schema(self, table_name: str) -> list[Row]:
        """Get schema information for a specific table."""
        cursor = self.execute(f"PRAGMA table_info({table_name})")

        # Convert to standard format
        schema = []
        for row in cursor.fetchall():
            schema.append(
                Row(
                    cid=row[0],
                    name=row[1],
                    type=row[2],
                    notnull=row[3],
                    default=row[4],
                    pk=row[5],
                )
            )
        return schema

    def get_column_names(self, table_name: str) -> list[str]:
        return [column["name"] for column in self.get_table_schema(table_name)]

    def get_primary_keys(self, table_name: str) -> list[str]:
        return [column["name"] for column in self.get_table_schema(table_name) if column["pk"]]

    def get_foreign_keys(self, table_name: str) -> list[str]:
        rows = self.fetchall(f"PRAGMA foreign_key_list({table_name})")
        return list(dict.fromkeys(row["from"] for row in rows))

    def get_indexes(self, table_name: str) -> list[str]:
        rows = self.fetchall(f"PRAGMA index_list({table_name})")
        return [row["name"] for row in rows]

    def get_constraints(self, table_name: str) -> list[Row]:
        return self.fetchall(f"PRAGMA foreign_key_list({table_name})")

    def get_table_ddl(self, table_name: str) -> str | None:
        return self.fetchscalar(
            "SELECT sql FROM sqlite_master WHERE type='table' AND name = ?", (table_name,)
        )

    def is_auto_increment(self, table_name: str, column_name: str) -> bool:
        """Whether a column is SQLite's integer rowid alias.

        Matches the literal text "<column> integer primary key" in the stored
        CREATE statement. Extra whitespace, quoting or a table-level PRIMARY KEY
        clause defeat the match, so this is a heuristic only.
        """
        ddl = self.get_table_ddl(table_name)
        if not ddl:
            return False
        return f"{column_name.lower()} integer primary key" in ddl.lower()

    def get_size_info(self) -> dict[str, int]:
        info = {}
        page_size = self.fetchscalar("PRAGMA page_size")
        page_count = self.fetchscalar("PRAGMA page_count")
        if page_size is not None:
            info["page_size"] = page_size
        if page_count is not None:
            info["page_count"] = page_count
        if "page_size" in info and "page_count" in info:
            info["database_size_bytes"] = page_size * page_count
        return info

    # Backend-specific statements

    def truncate(self, table_name: str) -> int:
        """Delete all rows and reset the AUTOINCREMENT counter.

        SQLite has no TRUNCATE statement.
        """
        affected = self.execute(f"DELETE FROM {table_name}").rowcount
        try:
            self.execute("DELETE FROM sqlite_sequence WHERE name = ?", (table_name,))
        except DatabaseError as e:
            # sqlite_sequence only exists once an AUTOINCREMENT table has been created
            logger.debug(f"No autoincrement sequence reset for {table_name}: {e}")
        return affected

    def upsert_sql(self, table_name: str, columns: list[str], conflict_columns: list[str]) -> str:
        placeholders = ", ".join("?" for _ in columns)
        updates = [f"{col} = excluded.{col}" for col in columns if col not in conflict_columns]
        query = (
            f"INSERT INTO {table_name} ({', '.join(columns)}) VALUES ({placeholders}) "
            f"ON CONFLICT({', '.join(conflict_columns)}) "
        )
        if updates:
            return query + f"DO UPDATE SET {', '.join(updates)}"
        return query + "DO NOTHING"

    def __repr__(self) -> str:
        """String representation."""
        status = "connected" if self._conn else "disconnected"
        return f"SQLiteAdapter(db_path={self.db_path}, status={status})"
