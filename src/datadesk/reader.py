"""Read-only query layer.

RowReader runs SELECTs and metadata lookups against one named connection and
hands back fresh Row objects. It never raises for a closed connection or a
failing query: list results come back empty, counts come back as -1 and
``last_error`` holds the reason. ``last_error`` is reset at the start of
every call.

Structural lookups go through the adapter's metadata strategy, so SQLite
answers from PRAGMAs and sqlite_master while other backends use
information_schema or zero-row probes.
"""

from collections.abc import Callable
from typing import Any, TypeVar

from common.constants import DEFAULT_CONNECTION_NAME
from common.logger import get_logger

from .db import DatabaseAdapter, DatabaseError, Row
from .registry import ConnectionClient, ConnectionRegistry

logger = get_logger(__name__)

T = TypeVar("T")


class RowReader(ConnectionClient):
    """Generic, schema-agnostic row reader."""

    def __init__(self, registry: ConnectionRegistry, connection_name: str = DEFAULT_CONNECTION_NAME):
        super().__init__(registry, connection_name)

    # Basic selection

    def select_all(self, table_name: str) -> list[Row]:
        return self.execute_select_query(f"SELECT * FROM {table_name}")

    def select_where(self, table_name: str, where_clause: str) -> list[Row]:
        """Select rows matching a raw WHERE clause (used verbatim)."""
        return self.execute_select_query(f"SELECT * FROM {table_name} WHERE {where_clause}")

    def select_custom(self, query: str) -> list[Row]:
        return self.execute_select_query(query)

    def select_ordered(self, table_name: str, order_by: str, ascending: bool = True) -> list[Row]:
        direction = "ASC" if ascending else "DESC"
        return self.execute_select_query(f"SELECT * FROM {table_name} ORDER BY {order_by} {direction}")

    def select_limited(self, table_name: str, limit: int, offset: int = 0) -> list[Row]:
        return self.execute_select_query(
            f"SELECT * FROM {table_name} LIMIT {int(limit)} OFFSET {int(offset)}"
        )

    def select_distinct(self, table_name: str, columns: list[str]) -> list[Row]:
        selected = ", ".join(columns) if columns else "*"
        return self.execute_select_query(f"SELECT DISTINCT {selected} FROM {table_name}")

    def select_grouped(
        self, table_name: str, group_by_columns: list[str], aggregate_columns: list[str]
    ) -> list[Row]:
        """Select group columns plus aggregate expressions, e.g. ``COUNT(*) AS n``."""
        parts = []
        if group_by_columns:
            parts.append(", ".join(group_by_columns))
        if aggregate_columns:
            parts.append(", ".join(aggregate_columns))
        selected = ", ".join(parts) or "*"

        query = f"SELECT {selected} FROM {table_name}"
        if group_by_columns:
            query += f" GROUP BY {', '.join(group_by_columns)}"
        return self.execute_select_query(query)

    def select_with_having(self, table_name: str, group_by: str, having_clause: str) -> list[Row]:
        """Group rows and filter groups; each row carries its group size as ``cnt``."""
        return self.execute_select_query(
            f"SELECT {group_by}, COUNT(*) AS cnt FROM {table_name} "
            f"GROUP BY {group_by} HAVING {having_clause}"
        )

    def select_with_pagination(
        self, table_name: str, page: int, page_size: int, order_by: str = ""
    ) -> list[Row]:
        """Select one page of rows. Pages are 1-based; page 1 starts at offset 0."""
        offset = max(0, (page - 1) * page_size)
        query = f"SELECT * FROM {table_name}"
        if order_by:
            query += f" ORDER BY {order_by}"
        query += f" LIMIT {int(page_size)} OFFSET {offset}"
        return self.execute_select_query(query)

    # Lookup

    def find_by_id(self, table_name: str, id_column: str, record_id: Any) -> Row:
        """First row whose id column equals record_id, or an empty Row."""
        rows = self.execute_select_query(
            f"SELECT * FROM {table_name} WHERE {id_column} = ? LIMIT 1", (record_id,)
        )
        return rows[0] if rows else Row()

    def find_by_column(self, table_name: str, column_name: str, value: Any) -> list[Row]:
        return self.execute_select_query(
            f"SELECT * FROM {table_name} WHERE {column_name} = ?", (value,)
        )

    # Existence and counts

    def count_records(self, table_name: str) -> int:
        """Number of rows in a table; -1 when the count could not be taken."""
        return self._count(f"SELECT COUNT(*) FROM {table_name}")

    def count_records_where(self, table_name: str, where_clause: str) -> int:
        """Number of rows matching a raw WHERE clause; -1 on failure, 0 for none."""
        return self._count(f"SELECT COUNT(*) FROM {table_name} WHERE {where_clause}")

    def record_exists(self, table_name: str, where_clause: str) -> bool:
        rows = self.execute_select_query(f"SELECT 1 FROM {table_name} WHERE {where_clause} LIMIT 1")
        return len(rows) > 0

    def table_exists(self, table_name: str) -> bool:
        return table_name in self.get_table_names()

    def view_exists(self, view_name: str) -> bool:
        return view_name in self.get_view_names()

    # Aggregates

    def get_min_value(self, table_name: str, column_name: str) -> Any:
        return self._scalar(f"SELECT MIN({column_name}) AS min_value FROM {table_name}")

    def get_max_value(self, table_name: str, column_name: str) -> Any:
        return self._scalar(f"SELECT MAX({column_name}) AS max_value FROM {table_name}")

    def get_sum_value(self, table_name: str, column_name: str) -> Any:
        return self._scalar(f"SELECT SUM({column_name}) AS sum_value FROM {table_name}")

    def get_avg_value(self, table_name: str, column_name: str) -> Any:
        return self._scalar(f"SELECT AVG({column_name}) AS avg_value FROM {table_name}")

    # Metadata

    def get_table_names(self) -> list[str]:
        """User tables; SQLite's internal sqlite_* tables are filtered out."""
        return self._introspect([], lambda adapter: adapter.get_tables())

    def get_view_names(self) -> list[str]:
        return self._introspect([], lambda adapter: adapter.get_views())

    def get_column_names(self, table_name: str) -> list[str]:
        return self._introspect([], lambda adapter: adapter.get_column_names(table_name))

    def get_table_structure(self, table_name: str) -> list[Row]:
        """Column rows with keys cid, name, type, notnull, default, pk."""
        if not table_name:
            return []
        return self._introspect([], lambda adapter: adapter.get_table_schema(table_name))

    def get_primary_key_columns(self, table_name: str) -> list[str]:
        return self._introspect([], lambda adapter: adapter.get_primary_keys(table_name))

    def get_foreign_key_columns(self, table_name: str) -> list[str]:
        return self._introspect([], lambda adapter: adapter.get_foreign_keys(table_name))

    def get_index_names(self, table_name: str) -> list[str]:
        return self._introspect([], lambda adapter: adapter.get_indexes(table_name))

    def get_column_type(self, table_name: str, column_name: str) -> str:
        column = self._introspect(None, lambda adapter: adapter.get_column_info(table_name, column_name))
        return column["type"] if column else ""

    def is_column_nullable(self, table_name: str, column_name: str) -> bool:
        column = self._introspect(None, lambda adapter: adapter.get_column_info(table_name, column_name))
        return column is not None and not column["notnull"]

    def is_column_primary_key(self, table_name: str, column_name: str) -> bool:
        return column_name in self.get_primary_key_columns(table_name)

    def is_column_auto_increment(self, table_name: str, column_name: str) -> bool:
        return self._introspect(
            False, lambda adapter: adapter.is_auto_increment(table_name, column_name)
        )

    def get_column_default_value(self, table_name: str, column_name: str) -> str:
        """Default as the backend stores it, e.g. ``'abc'`` with quotes on SQLite."""
        default = self._introspect(
            None, lambda adapter: adapter.get_column_default(table_name, column_name)
        )
        return "" if default is None else str(default)

    def get_table_constraints(self, table_name: str) -> list[Row]:
        return self._introspect([], lambda adapter: adapter.get_constraints(table_name))

    # Statistics and analysis

    def get_table_row_counts(self) -> dict[str, int]:
        return {table: self.count_records(table) for table in self.get_table_names()}

    def get_table_size_info(self, table_name: str) -> dict[str, int]:
        """Database page figures (SQLite only) plus the table's row count."""
        info = dict(self._introspect({}, lambda adapter: adapter.get_size_info()))
        info["row_count"] = self.count_records(table_name)
        return info

    def get_column_statistics(self, table_name: str, column_name: str) -> Row:
        """One row with min_value, max_value, avg_value, total_count, null_count, distinct_count."""
        rows = self.execute_select_query(
            f"SELECT MIN({column_name}) AS min_value, MAX({column_name}) AS max_value, "
            f"AVG({column_name}) AS avg_value, COUNT(*) AS total_count, "
            f"SUM(CASE WHEN {column_name} IS NULL THEN 1 ELSE 0 END) AS null_count, "
            f"COUNT(DISTINCT {column_name}) AS distinct_count FROM {table_name}"
        )
        return rows[0] if rows else Row()

    def get_data_distribution(self, table_name: str, column_name: str) -> list[Row]:
        """Rows of (value, freq), most frequent first."""
        return self.execute_select_query(
            f"SELECT {column_name} AS value, COUNT(*) AS freq FROM {table_name} "
            f"GROUP BY {column_name} ORDER BY freq DESC"
        )

    def find_duplicate_records(self, table_name: str, columns: list[str]) -> list[Row]:
        """Value combinations occurring more than once, with their count as ``cnt``."""
        if not columns:
            return []
        selected = ", ".join(columns)
        return self.execute_select_query(
            f"SELECT {selected}, COUNT(*) AS cnt FROM {table_name} "
            f"GROUP BY {selected} HAVING COUNT(*) > 1"
        )

    def search_in_text(self, table_name: str, column_name: str, search_term: str) -> list[Row]:
        """Rows whose column contains search_term as a substring."""
        return self.select_by_pattern(table_name, column_name, f"%{search_term}%")

    def select_by_pattern(self, table_name: str, column_name: str, pattern: str) -> list[Row]:
        """Rows whose column matches a LIKE pattern (``%`` and ``_`` wildcards)."""
        return self.execute_select_query(
            f"SELECT * FROM {table_name} WHERE {column_name} LIKE ?", (pattern,)
        )

    # Execution helpers

    def execute_select_query(self, query: str, params: tuple | None = None) -> list[Row]:
        """Run a SELECT and return every row; empty list on failure."""
        return self._introspect([], lambda adapter: adapter.fetchall(query, params))

    def _count(self, query: str) -> int:
        value = self._introspect(-1, lambda adapter: adapter.fetchscalar(query) or 0)
        return int(value)

    def _scalar(self, query: str) -> Any:
        return self._introspect(None, lambda adapter: adapter.fetchscalar(query))

    def _introspect(self, default: T, operation: Callable[[DatabaseAdapter], T]) -> T:
        self.last_error = ""
        adapter = self._adapter()
        if adapter is None:
            return default
        try:
            return operation(adapter)
        except DatabaseError as e:
            self.last_error = str(e)
            logger.debug(f"Read on '{self.connection_name}' failed: {e}")
            return default
