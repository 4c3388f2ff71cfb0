"""Named connection registry.

Every manager in datadesk addresses the database through a connection name.
The registry maps those names to open adapters and owns their lifecycle.
Build one registry per application (or per test) and hand it to the managers.
"""

from pathlib import Path

from common.constants import DEFAULT_CONNECTION_NAME, USERS_TABLE
from common.logger import get_logger

from .db import DatabaseAdapter, DatabaseConfig, DatabaseError, create_database, users_table_ddl
from .db.sqlite_adapter import SQLiteAdapter

logger = get_logger(__name__)


class ConnectionRegistry:
    """Table of open connections keyed by name.

    At most one adapter is registered per name. Opening a name that is
    already registered closes the previous adapter first.
    """

    def __init__(self):
        self._connections: dict[str, DatabaseAdapter] = {}
        self.last_error = ""

    def open(self, name: str, path: str | Path) -> bool:
        """Open (or create) a SQLite database file under a connection name.

        Args:
            name: Connection name
            path: Path to the database file; missing directories are created

        Returns:
            True if the connection is open and registered
        """
        return self.register(name, SQLiteAdapter(path))

    def open_config(self, name: str, config: DatabaseConfig) -> bool:
        """Open a connection described by a DatabaseConfig."""
        try:
            adapter = create_database(config)
        except (ValueError, ImportError) as e:
            self.last_error = str(e)
            logger.warning(f"Cannot create adapter for '{name}': {e}")
            return False
        return self.register(name, adapter)

    def register(self, name: str, adapter: DatabaseAdapter) -> bool:
        """Register an adapter under a name, connecting it if needed.

        The default connection name also bootstraps the users table.
        """
        if not name:
            self.last_error = "Connection name is empty"
            return False

        self.close(name)

        try:
            if not adapter.is_open:
                adapter.connect()
        except DatabaseError as e:
            self.last_error = str(e)
            logger.warning(f"Failed to open connection '{name}': {e}")
            return False

        self._connections[name] = adapter
        self.last_error = ""
        logger.info(f"Opened connection '{name}': {adapter!r}")

        if name == DEFAULT_CONNECTION_NAME:
            self._create_users_table(adapter)
        return True

    def get(self, name: str) -> DatabaseAdapter | None:
        """Adapter registered under name, or None."""
        return self._connections.get(name)

    def contains(self, name: str) -> bool:
        return name in self._connections

    def is_open(self, name: str) -> bool:
        adapter = self._connections.get(name)
        return adapter is not None and adapter.is_open

    def names(self) -> list[str]:
        return list(self._connections)

    def close(self, name: str) -> None:
        """Close and forget one connection. Unknown names are ignored."""
        adapter = self._connections.pop(name, None)
        if adapter is None:
            return
        adapter.close()
        logger.info(f"Closed connection '{name}'")

    def close_all(self) -> None:
        """Close every registered connection."""
        for name in list(self._connections):
            self.close(name)

    def _create_users_table(self, adapter: DatabaseAdapter) -> None:
        try:
            if USERS_TABLE in adapter.get_tables():
                logger.debug(f"Table {USERS_TABLE} already exists")
                return
            adapter.execute(users_table_ddl(adapter.db_type))
            logger.info(f"Created table {USERS_TABLE}")
        except DatabaseError as e:
            self.last_error = str(e)
            logger.warning(f"Error creating table {USERS_TABLE}: {e}")

    def __contains__(self, name: str) -> bool:
        return name in self._connections

    def __len__(self) -> int:
        return len(self._connections)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close_all()
        return False

    def __repr__(self) -> str:
        return f"ConnectionRegistry(connections={self.names()})"


class ConnectionClient:
    """Base for managers that work against one named connection.

    Failures are reported through ``last_error`` rather than raised.
    """

    def __init__(self, registry: ConnectionRegistry, connection_name: str = DEFAULT_CONNECTION_NAME):
        self.registry = registry
        self._connection_name = connection_name
        self.last_error = ""

    @property
    def connection_name(self) -> str:
        return self._connection_name

    def set_connection_name(self, connection_name: str) -> None:
        self._connection_name = connection_name

    def clear_error(self) -> None:
        self.last_error = ""

    def _adapter(self) -> DatabaseAdapter | None:
        """Open adapter for the configured name; sets last_error when there is none."""
        adapter = self.registry.get(self._connection_name)
        if adapter is None or not adapter.is_open:
            self.last_error = f"Database is not open for connection '{self._connection_name}'"
            return None
        return adapter
