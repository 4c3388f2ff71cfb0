"""PostgreSQL database adapter implementation.

This adapter wraps psycopg3 functionality to provide a consistent interface
for database operations across different database backends. It relies on the
portable information_schema path of DatabaseAdapter for most metadata and
only answers primary keys and indexes from the pg_catalog.
"""

from typing import Any

try:
    import psycopg
    from psycopg import pq
    from psycopg.rows import dict_row
    from psycopg_pool import ConnectionPool
except ImportError as e:
    raise ImportError(
        "PostgreSQL dependencies not installed. "
        'Install with: pip install -e ".[postgresql]"'
    ) from e

from .interface import DatabaseAdapter
from .types import ConnectionError as DBConnectionError
from .types import DatabaseError, DatabaseType, Row, TransactionError
from .types import IntegrityError as DBIntegrityError


class PostgreSQLAdapter(DatabaseAdapter):
    """PostgreSQL database adapter.

    Wraps psycopg3 functionality to implement the DatabaseAdapter interface.
    Uses connection pooling for efficient connection management.
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = 5432,
        database: str = "datadesk",
        user: str = "postgres",
        password: str = "",
        pool_size: int = 5,
        pool_max_overflow: int = 10,
    ):
        """Initialize PostgreSQL adapter.

        Args:
            host: PostgreSQL server host
            port: PostgreSQL server port
            database: Database name
            user: Database user
            password: Database password
            pool_size: Minimum number of connections in pool
            pool_max_overflow: Maximum overflow connections beyond pool_size
        """
        self.host = host
        self.port = port
        self.database = database
        self.user = user
        self.password = password
        self.pool_size = pool_size
        self.pool_max_overflow = pool_max_overflow

        self._pool: ConnectionPool | None = None
        self._conn: Any = None  # psycopg.Connection

    @property
    def db_type(self) -> DatabaseType:
        return DatabaseType.POSTGRESQL

    def connect(self) -> None:
        """Establish database connection and connection pool."""
        try:
            conninfo = (
                f"host={self.host} port={self.port} dbname={self.database} "
                f"user={self.user} password={self.password}"
            )

            self._pool = ConnectionPool(
                conninfo,
                min_size=self.pool_size,
                max_size=self.pool_size + self.pool_max_overflow,
            )
            self._conn = self._pool.getconn()

            # Statements outside an explicit BEGIN commit immediately
            self._conn.autocommit = True
            self._conn.row_factory = dict_row

        except psycopg.Error as e:
            raise DBConnectionError(f"Failed to connect to PostgreSQL database: {e}") from e

    def close(self) -> None:
        """Close database connection and connection pool."""
        if self._conn and self._pool:
            self._pool.putconn(self._conn)
            self._conn = None

        if self._pool:
            self._pool.close()
            self._pool = None

    @property
    def is_open(self) -> bool:
        return self._conn is not None and not self._conn.closed

    def begin(self) -> None:
        conn = self._require_connection()
        try:
            conn.execute("BEGIN")
        except psycopg.Error as e:
            raise TransactionError(f"Failed to begin transaction: {e}") from e

    def commit(self) -> None:
        """Commit current transaction."""
        conn = self._require_connection()
        try:
            conn.execute("COMMIT")
        except psycopg.Error as e:
            raise DatabaseError(f"Failed to commit transaction: {e}") from e

    def rollback(self) -> None:
        """Rollback current transaction."""
        conn = self._require_connection()
        try:
            conn.execute("ROLLBACK")
        except psycopg.Error as e:
            raise DatabaseError(f"Failed to rollback transaction: {e}") from e

    @property
    def in_transaction(self) -> bool:
        if not self._conn:
            return False
        return self._conn.info.transaction_status != pq.TransactionStatus.IDLE

    def execute(self, query: str, params: tuple | None = None) -> Any:
        """Execute a query and return cursor.

        Note: PostgreSQL uses %s placeholders, but this method expects queries
        with ? placeholders (SQLite style) and converts them automatically.
        """
        conn = self._require_connection()
        try:
            pg_query = query.replace("?", "%s")

            cursor = conn.cursor()
            if params:
                cursor.execute(pg_query, params)
            else:
                cursor.execute(pg_query)
            return cursor
        except psycopg.errors.IntegrityError as e:
            raise DBIntegrityError(f"Integrity constraint violation: {e}") from e
        except psycopg.Error as e:
            raise DatabaseError(f"Query execution failed: {e}") from e

    def last_insert_id(self, cursor: Any) -> int:
        """Value of the sequence most recently advanced in this session."""
        conn = self._require_connection()
        try:
            # Savepoint inside an open transaction, so a failing lastval() cannot abort it
            with conn.transaction():
                row = conn.execute("SELECT lastval() AS id").fetchone()
        except psycopg.Error:
            return -1
        return row["id"] if row else -1

    def cursor(self) -> Any:
        """Get raw database cursor for complex operations."""
        return self._require_connection().cursor()

    def exists(self) -> bool:
        """Check that the server is reachable and the database has tables."""
        if not self.is_open:
            return False
        try:
            return len(self.get_tables()) > 0
        except DatabaseError:
            return False

    def get_tables(self) -> list[str]:
        rows = self.fetchall(
            """
            SELECT table_name
            FROM information_schema.tables
            WHERE table_schema = 'public'
            AND table_type = 'BASE TABLE'
            ORDER BY table_name
            """
        )
        return [row["table_name"] for row in rows]

    def get_primary_keys(self, table_name: str) -> list[str]:
        rows = self.fetchall(
            """
            SELECT a.attname
            FROM pg_index i
            JOIN pg_attribute a ON a.attrelid = i.indrelid AND a.attnum = ANY(i.indkey)
            WHERE i.indrelid = ?::regclass AND i.indisprimary
            """,
            (table_name,),
        )
        return [row["attname"] for row in rows]

    def get_indexes(self, table_name: str) -> list[str]:
        rows = self.fetchall(
            "SELECT indexname FROM pg_indexes WHERE tablename = ?", (table_name,)
        )
        return [row["indexname"] for row in rows]

    def get_table_schema(self, table_name: str) -> list[Row]:
        # information_schema stores unquoted identifiers folded to lower case
        return super().get_table_schema(table_name.lower())

    def __repr__(self) -> str:
        """String representation."""
        status = "connected" if self._conn else "disconnected"
        return (
            f"PostgreSQLAdapter(host={self.host}, port={self.port}, "
            f"database={self.database}, status={status})"
        )
