"""Backend selection for datadesk connections.

DatabaseConfig describes one connection: the backend, where its data lives,
the name it is registered under and how many rows a batch insert commits at
a time. create_database turns a config into an unconnected adapter, and
users_table_ddl gives each backend's form of the users table that the
default connection bootstraps.
"""

from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from common.constants import DEFAULT_BATCH_SIZE, DEFAULT_CONNECTION_NAME, USERS_TABLE
from common.env import env

from .interface import DatabaseAdapter
from .sqlite_adapter import SQLiteAdapter
from .types import DatabaseType

# (id column, timestamp type) of the users table per backend
_USERS_COLUMN_TYPES = {
    DatabaseType.SQLITE: ("INTEGER PRIMARY KEY AUTOINCREMENT", "DATETIME"),
    DatabaseType.POSTGRESQL: ("SERIAL PRIMARY KEY", "TIMESTAMP"),
}


def parse_database_type(value: DatabaseType | str) -> DatabaseType:
    """Map 'sqlite' / 'postgresql' (any case) to a DatabaseType.

    Raises:
        ValueError: For any other name
    """
    if isinstance(value, DatabaseType):
        return value
    try:
        return DatabaseType(value.strip().lower())
    except ValueError as e:
        supported = ", ".join(t.value for t in DatabaseType)
        raise ValueError(f"Unsupported database type: {value} (expected one of: {supported})") from e


@dataclass
class DatabaseConfig:
    """Settings for one named connection.

    Only the chosen backend's fields matter: db_path for SQLite; host, port,
    database, user, password and the pool sizes for PostgreSQL.

    Raises:
        ValueError: On construction, if a required field is missing or a
            value is out of range
    """

    db_type: DatabaseType | str
    db_path: Path | str | None = None
    host: str | None = None
    port: int = 5432
    database: str | None = None
    user: str | None = None
    password: str | None = None
    pool_size: int = 5
    pool_max_overflow: int = 10
    connection_name: str = DEFAULT_CONNECTION_NAME
    batch_size: int = DEFAULT_BATCH_SIZE

    def __post_init__(self):
        self.db_type = parse_database_type(self.db_type)

        if not self.connection_name:
            raise ValueError("Connection name is empty")
        if self.batch_size < 1:
            raise ValueError(f"Batch size must be at least 1, got {self.batch_size}")

        if self.db_type == DatabaseType.SQLITE:
            if not self.db_path:
                raise ValueError("SQLite needs a database file path (db_path)")
            self.db_path = Path(self.db_path)
            return

        missing = [name for name in ("host", "database", "user") if not getattr(self, name)]
        if missing:
            raise ValueError(f"PostgreSQL needs {', '.join(missing)}")


def create_database(config: DatabaseConfig) -> DatabaseAdapter:
    """Build the adapter for config. It is returned unconnected.

    Raises:
        ImportError: For PostgreSQL when the postgresql extra is not installed
    """
    if config.db_type == DatabaseType.SQLITE:
        return SQLiteAdapter(config.db_path)

    # psycopg is only needed once a PostgreSQL connection is requested
    try:
        from .postgres_adapter import PostgreSQLAdapter
    except ImportError as e:
        raise ImportError(
            "PostgreSQL support requires psycopg. Install with: pip install 'datadesk[postgresql]'"
        ) from e

    return PostgreSQLAdapter(
        host=config.host,
        port=config.port,
        database=config.database,
        user=config.user,
        password=config.password,
        pool_size=config.pool_size,
        pool_max_overflow=config.pool_max_overflow,
    )


def users_table_ddl(db_type: DatabaseType) -> str:
    """CREATE TABLE statement for the users table on the given backend."""
    id_column, timestamp_type = _USERS_COLUMN_TYPES[db_type]
    return (
        f"CREATE TABLE {USERS_TABLE} ("
        f"id {id_column}, "
        "login TEXT UNIQUE NOT NULL, "
        "password TEXT NOT NULL, "
        f"created_at {timestamp_type} DEFAULT CURRENT_TIMESTAMP)"
    )


def _int_setting(name: str, read: Callable[[], int]) -> int:
    try:
        return read()
    except ValueError as e:
        raise ValueError(f"{name} must be an integer") from e


def config_from_env() -> DatabaseConfig:
    """DatabaseConfig from DATABASE_TYPE, DATABASE_PATH, CONNECTION_NAME,
    BATCH_SIZE and the POSTGRES_* variables.

    Raises:
        ValueError: If a variable is malformed or the resulting config is invalid
    """
    db_type = parse_database_type(env.database_type())
    common = {
        "connection_name": env.connection_name(),
        "batch_size": _int_setting("BATCH_SIZE", env.batch_size),
    }

    if db_type == DatabaseType.SQLITE:
        return DatabaseConfig(db_type=db_type, db_path=env.database_path(), **common)

    return DatabaseConfig(
        db_type=db_type,
        host=env.postgres_host(),
        port=_int_setting("POSTGRES_PORT", env.postgres_port),
        database=env.postgres_database(),
        user=env.postgres_user(),
        password=env.postgres_password(),
        pool_size=_int_setting("POSTGRES_POOL_SIZE", env.postgres_pool_size),
        pool_max_overflow=_int_setting("POSTGRES_POOL_MAX_OVERFLOW", env.postgres_pool_max_overflow),
        **common,
    )


def get_adapter() -> DatabaseAdapter:
    """Unconnected adapter for the environment's configuration."""
    return create_database(config_from_env())
