"""Convenience facade over one named connection.

Example:
    >>> with DatabaseManager() as db:
    ...     db.open("data/my_database.db")
    ...     db.modifier.insert_record("users", {"login": "ann", "password": "secret"})
    ...     db.reader.count_records("users")
"""

from pathlib import Path

from common.constants import TREE_TABLE
from common.env import env
from common.logger import get_logger

from .db import config_from_env
from .hierarchy import HierarchyStore
from .modifier import RowModifier
from .reader import RowReader
from .registry import ConnectionRegistry
from .schema import SchemaManager

logger = get_logger(__name__)


class DatabaseManager:
    """Registry plus a SchemaManager, RowReader and RowModifier for one connection.

    Args:
        connection_name: Name to register the connection under; defaults to
            the CONNECTION_NAME setting
        registry: Registry to use; a private one is created when omitted
    """

    def __init__(self, connection_name: str | None = None, registry: ConnectionRegistry | None = None):
        self.connection_name = connection_name or env.connection_name()
        self.registry = registry if registry is not None else ConnectionRegistry()
        self.schema = SchemaManager(self.registry, self.connection_name)
        self.reader = RowReader(self.registry, self.connection_name)
        self.modifier = RowModifier(self.registry, self.connection_name)

    def open(self, path: str | Path | None = None) -> bool:
        """Open the connection.

        With a path, opens that SQLite file. Without one, the backend and its
        settings come from the environment (DATABASE_TYPE, DATABASE_PATH,
        BATCH_SIZE, POSTGRES_*).
        """
        if path is not None:
            return self.registry.open(self.connection_name, path)

        try:
            config = config_from_env()
        except ValueError as e:
            self.registry.last_error = str(e)
            logger.warning(f"Invalid database configuration: {e}")
            return False

        if not self.registry.open_config(self.connection_name, config):
            return False
        self.modifier.batch_size = config.batch_size
        return True

    def close(self) -> None:
        """Roll back any open transaction, then close the connection."""
        self.modifier.close()
        self.registry.close(self.connection_name)

    @property
    def is_open(self) -> bool:
        return self.registry.is_open(self.connection_name)

    @property
    def last_error(self) -> str:
        return self.registry.last_error

    def hierarchy(self, table_name: str = TREE_TABLE) -> HierarchyStore:
        """HierarchyStore over table_name on this connection."""
        return HierarchyStore(self.reader, self.modifier, self.schema, table_name)

    def __enter__(self) -> "DatabaseManager":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def __repr__(self) -> str:
        status = "open" if self.is_open else "closed"
        return f"DatabaseManager(connection_name={self.connection_name!r}, status={status})"
