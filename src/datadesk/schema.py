"""Table schema (DDL) management.

SchemaManager creates, alters and drops tables, columns and indexes on one
named connection. It never touches row data and never opens connections
itself. Every method reports failure through a falsy return value and
``last_error``; nothing is raised for bad names, missing tables or backend
errors.
"""

from common.constants import DEFAULT_CONNECTION_NAME
from common.logger import get_logger

from .db import ColumnDefinition, DatabaseError
from .registry import ConnectionClient, ConnectionRegistry

logger = get_logger(__name__)


def is_valid_identifier(name: str) -> bool:
    """Whitelist check: non-empty, only letters, digits, '_' and '-'."""
    if not name:
        return False
    return all(ch.isalnum() or ch in "_-" for ch in name)


def default_clause(value: str) -> str:
    """DEFAULT clause with the value as a quoted string literal."""
    text = value.replace("'", "''")
    return f" DEFAULT '{text}'"


def build_create_table_query(table_name: str, columns: list[ColumnDefinition]) -> str:
    """Build CREATE TABLE for a column list.

    A single primary key column is declared inline; several primary key
    columns become a trailing composite PRIMARY KEY clause.
    """
    primary_keys = [column.name for column in columns if column.is_primary_key]

    definitions = []
    for column in columns:
        definition = f"{column.name} {column.type}"
        if column.is_primary_key and len(primary_keys) == 1:
            definition += " PRIMARY KEY"
            if column.is_auto_increment:
                definition += " AUTOINCREMENT"
        if column.is_not_null:
            definition += " NOT NULL"
        if column.is_unique:
            definition += " UNIQUE"
        if column.default_value:
            definition += default_clause(column.default_value)
        definitions.append(definition)

    if len(primary_keys) > 1:
        definitions.append(f"PRIMARY KEY ({', '.join(primary_keys)})")

    return f"CREATE TABLE {table_name} ({', '.join(definitions)})"


class SchemaManager(ConnectionClient):
    """DDL operations against one named connection."""

    def __init__(self, registry: ConnectionRegistry, connection_name: str = DEFAULT_CONNECTION_NAME):
        super().__init__(registry, connection_name)

    # Tables

    def create_table(self, table_name: str, columns: list[ColumnDefinition]) -> bool:
        """Create a table; fails if it already exists or the input is invalid."""
        if not is_valid_identifier(table_name):
            self.last_error = f"Invalid table name: {table_name}"
            return False
        if not columns:
            self.last_error = "Column list cannot be empty"
            return False
        if self.table_exists(table_name):
            self.last_error = f"Table {table_name} already exists"
            return False

        return self._execute(build_create_table_query(table_name, columns))

    def drop_table(self, table_name: str) -> bool:
        if not is_valid_identifier(table_name):
            self.last_error = f"Invalid table name: {table_name}"
            return False
        if not self.table_exists(table_name):
            self.last_error = f"Table {table_name} does not exist"
            return False

        return self._execute(f"DROP TABLE {table_name}")

    def rename_table(self, old_name: str, new_name: str) -> bool:
        if not is_valid_identifier(old_name) or not is_valid_identifier(new_name):
            self.last_error = "Invalid table name"
            return False
        if not self.table_exists(old_name):
            self.last_error = f"Table {old_name} does not exist"
            return False
        if self.table_exists(new_name):
            self.last_error = f"Table {new_name} already exists"
            return False

        return self._execute(f"ALTER TABLE {old_name} RENAME TO {new_name}")

    def table_exists(self, table_name: str) -> bool:
        """Case-insensitive lookup in the live table list."""
        if not is_valid_identifier(table_name):
            return False
        return table_name.lower() in (name.lower() for name in self.get_table_names())

    # Columns

    def add_column(self, table_name: str, column: ColumnDefinition) -> bool:
        """Add a column to an existing table.

        Some backends (SQLite among them) refuse NOT NULL without a DEFAULT
        on a table that has rows; that error is passed through unchanged.
        """
        if not is_valid_identifier(table_name) or not is_valid_identifier(column.name):
            self.last_error = "Invalid table or column name"
            return False
        if not self.table_exists(table_name):
            self.last_error = f"Table {table_name} does not exist"
            return False
        if self._has_column(table_name, column.name):
            self.last_error = f"Column {column.name} already exists in table {table_name}"
            return False

        query = f"ALTER TABLE {table_name} ADD COLUMN {column.name} {column.type}"
        if column.is_not_null:
            query += " NOT NULL"
        if column.default_value:
            query += default_clause(column.default_value)
        if column.is_unique:
            query += " UNIQUE"
        return self._execute(query)

    def drop_column(self, table_name: str, column_name: str) -> bool:
        if not is_valid_identifier(table_name) or not is_valid_identifier(column_name):
            self.last_error = "Invalid table or column name"
            return False
        if not self.table_exists(table_name):
            self.last_error = f"Table {table_name} does not exist"
            return False
        if not self._has_column(table_name, column_name):
            self.last_error = f"Column {column_name} does not exist in table {table_name}"
            return False

        return self._execute(f"ALTER TABLE {table_name} DROP COLUMN {column_name}")

    def rename_column(self, table_name: str, old_name: str, new_name: str) -> bool:
        if not all(is_valid_identifier(name) for name in (table_name, old_name, new_name)):
            self.last_error = "Invalid table or column name"
            return False
        if not self.table_exists(table_name):
            self.last_error = f"Table {table_name} does not exist"
            return False
        if not self._has_column(table_name, old_name):
            self.last_error = f"Column {old_name} does not exist in table {table_name}"
            return False
        if self._has_column(table_name, new_name):
            self.last_error = f"Column {new_name} already exists in table {table_name}"
            return False

        return self._execute(f"ALTER TABLE {table_name} RENAME COLUMN {old_name} TO {new_name}")

    # Introspection

    def get_table_names(self) -> list[str]:
        adapter = self._adapter()
        if adapter is None:
            return []
        try:
            return adapter.get_tables()
        except DatabaseError as e:
            self.last_error = str(e)
            return []

    def get_column_names(self, table_name: str) -> list[str]:
        if not is_valid_identifier(table_name):
            return []
        adapter = self._adapter()
        if adapter is None:
            return []
        try:
            return adapter.get_column_names(table_name)
        except DatabaseError as e:
            self.last_error = str(e)
            return []

    def get_table_structure(self, table_name: str) -> list[ColumnDefinition]:
        """Simplified column descriptions of a table.

        Primary key membership is not reported (is_primary_key stays False);
        use RowReader.get_primary_key_columns for that.
        """
        if not is_valid_identifier(table_name):
            return []
        adapter = self._adapter()
        if adapter is None:
            return []
        try:
            schema = adapter.get_table_schema(table_name)
        except DatabaseError as e:
            self.last_error = str(e)
            return []

        return [
            ColumnDefinition(
                name=column["name"],
                type=column["type"],
                is_not_null=bool(column["notnull"]),
                default_value="" if column["default"] is None else str(column["default"]),
            )
            for column in schema
        ]

    # Indexes

    def create_index(self, index_name: str, table_name: str, columns: list[str]) -> bool:
        """Create a plain (non-unique) index."""
        if not is_valid_identifier(table_name) or not index_name:
            self.last_error = "Invalid table or index name"
            return False
        if not self.table_exists(table_name):
            self.last_error = f"Table {table_name} does not exist"
            return False
        if not columns:
            self.last_error = "Index column list cannot be empty"
            return False

        return self._execute(f"CREATE INDEX {index_name} ON {table_name} ({', '.join(columns)})")

    def drop_index(self, index_name: str) -> bool:
        if not index_name:
            self.last_error = "Index name cannot be empty"
            return False
        return self._execute(f"DROP INDEX {index_name}")

    def _has_column(self, table_name: str, column_name: str) -> bool:
        return column_name.lower() in (name.lower() for name in self.get_column_names(table_name))

    def _execute(self, query: str) -> bool:
        adapter = self._adapter()
        if adapter is None:
            return False
        try:
            adapter.execute(query)
        except DatabaseError as e:
            self.last_error = str(e)
            logger.warning(f"DDL failed: {query}: {e}")
            return False
        logger.debug(f"DDL executed: {query}")
        return True
