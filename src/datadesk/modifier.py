"""Mutation layer: inserts, updates, deletes, upserts, batches and transactions.

RowModifier works against one named connection and keeps the outcome of the
last statement in ``last_error``, ``last_insert_id`` and ``affected_rows``.
Expected failures (bad input, constraint violations, closed connection,
wrong transaction state) come back as a falsy or -1 result; the only
exceptions that escape are those raised by caller code run inside
``execute_in_transaction`` or a ``transaction()`` block, after rollback.

Transaction state machine, per modifier instance:

    Idle --begin--> Active --commit/rollback--> Idle

A second begin while Active is an error, not a savepoint. A modifier that is
closed, leaves its ``with`` block or is garbage collected while Active rolls
the transaction back. If the connection is closed or reopened under an
Active modifier, the next call reports the transaction as lost and the
modifier returns to Idle without claiming a commit or rollback.
"""

from collections.abc import Callable, Iterable, Sequence
from typing import Any

from common.constants import DEFAULT_CONNECTION_NAME
from common.env import env
from common.logger import get_logger

from .db import DatabaseAdapter, DatabaseError, TransactionError
from .registry import ConnectionClient, ConnectionRegistry

logger = get_logger(__name__)


def escape_value(value: Any) -> str:
    """Render a value as an inline SQL literal.

    Only for WHERE fragments built by value; statements that take values
    through placeholders never go through here.
    """
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, (bytes, bytearray)):
        return f"X'{bytes(value).hex()}'"
    text = str(value).replace("'", "''")
    return f"'{text}'"


def build_placeholders(count: int) -> str:
    return ", ".join("?" for _ in range(count))


class Transaction:
    """Scoped transaction handle returned by RowModifier.transaction().

    Leaving the ``with`` block without calling commit() rolls back, whether
    the block ended normally, returned early or raised.
    """

    def __init__(self, modifier: "RowModifier"):
        self._modifier = modifier
        self._finished = False

    @property
    def active(self) -> bool:
        return not self._finished and self._modifier.in_transaction

    def commit(self) -> bool:
        if self._finished:
            self._modifier.last_error = "Transaction already finished"
            return False
        self._finished = self._modifier.commit_transaction()
        return self._finished

    def rollback(self) -> bool:
        if self._finished:
            self._modifier.last_error = "Transaction already finished"
            return False
        self._finished = self._modifier.rollback_transaction()
        return self._finished

    def __enter__(self) -> "Transaction":
        if not self._modifier.begin_transaction():
            raise TransactionError(self._modifier.last_error)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if not self._finished:
            if exc_type is None:
                logger.debug("Transaction block ended without commit, rolling back")
            self.rollback()
        return False


class RowModifier(ConnectionClient):
    """Generic, schema-agnostic data modifier."""

    def __init__(self, registry: ConnectionRegistry, connection_name: str = DEFAULT_CONNECTION_NAME):
        super().__init__(registry, connection_name)
        self.last_insert_id = -1
        self.affected_rows = 0
        self.batch_size: int | None = None
        self._transaction_adapter: DatabaseAdapter | None = None

    # Inserts

    def insert_record(self, table_name: str, values: dict[str, Any]) -> bool:
        """Insert one row from a column -> value mapping. Values are bound."""
        if not table_name or not values:
            self.last_error = "Table name or values are empty"
            return False

        columns = list(values)
        query = (
            f"INSERT INTO {table_name} ({', '.join(columns)}) "
            f"VALUES ({build_placeholders(len(columns))})"
        )
        return self._run(query, tuple(values.values())) is not None

    def insert_records(
        self, table_name: str, columns: list[str], rows: Iterable[Sequence[Any]]
    ) -> int:
        """Insert many rows with one statement shape.

        Rows whose length differs from len(columns) are skipped.

        Returns:
            Number of rows inserted
        """
        rows = list(rows)
        if not table_name or not columns or not rows:
            self.last_error = "Table name, columns or values are empty"
            return 0

        query = self._insert_query(table_name, columns)
        self.last_error = ""
        inserted = 0
        for row in rows:
            if len(row) != len(columns):
                continue
            if self._run(query, tuple(row), reset_error=False) is not None:
                inserted += 1
        return inserted

    def insert_record_and_return_id(self, table_name: str, values: dict[str, Any]) -> int:
        """Insert one row and return the identity the backend assigned, or -1."""
        if not self.insert_record(table_name, values):
            return -1
        return self.last_insert_id

    # Updates

    def update_records(self, table_name: str, values: dict[str, Any], where_clause: str = "") -> int:
        """Update rows matching a raw WHERE clause (all rows when empty).

        Returns:
            Number of rows affected, or -1 on failure
        """
        if not table_name or not values:
            self.last_error = "Table name or values are empty"
            return -1

        assignments = ", ".join(f"{column} = ?" for column in values)
        query = f"UPDATE {table_name} SET {assignments}"
        if where_clause:
            query += f" WHERE {where_clause}"

        if self._run(query, tuple(values.values())) is None:
            return -1
        return self.affected_rows

    def update_record_by_id(
        self, table_name: str, record_id: Any, values: dict[str, Any], id_column: str = "id"
    ) -> bool:
        """Update one row by id. True only if a row was actually changed."""
        where_clause = f"{id_column} = {escape_value(record_id)}"
        return self.update_records(table_name, values, where_clause) > 0

    def update_column(
        self, table_name: str, column_name: str, value: Any, where_clause: str = ""
    ) -> int:
        return self.update_records(table_name, {column_name: value}, where_clause)

    # Deletes

    def delete_records(self, table_name: str, where_clause: str = "") -> int:
        """Delete rows matching a raw WHERE clause (all rows when empty).

        Returns:
            Number of rows deleted, or -1 on failure
        """
        if not table_name:
            self.last_error = "Table name is empty"
            return -1

        query = f"DELETE FROM {table_name}"
        if where_clause:
            query += f" WHERE {where_clause}"

        if self._run(query) is None:
            return -1
        return self.affected_rows

    def delete_record_by_id(self, table_name: str, record_id: Any, id_column: str = "id") -> bool:
        where_clause = f"{id_column} = {escape_value(record_id)}"
        return self.delete_records(table_name, where_clause) > 0

    def delete_all_records(self, table_name: str) -> bool:
        return self.delete_records(table_name) >= 0

    def truncate_table(self, table_name: str) -> bool:
        """Remove every row; on SQLite also reset the AUTOINCREMENT counter."""
        if not table_name:
            self.last_error = "Table name is empty"
            return False

        adapter = self._adapter()
        if adapter is None:
            return False
        try:
            self.affected_rows = max(adapter.truncate(table_name), 0)
        except DatabaseError as e:
            self._fail(e)
            return False
        self.last_error = ""
        return True

    # Upserts

    def upsert_record(
        self, table_name: str, values: dict[str, Any], conflict_columns: list[str]
    ) -> bool:
        """Insert a row, or update it when it collides on conflict_columns.

        SQLite gets INSERT ... ON CONFLICT DO UPDATE for every non-conflict
        column; other backends get REPLACE INTO.
        """
        if not table_name or not values or not conflict_columns:
            self.last_error = "Table name, values or conflict columns are empty"
            return False

        adapter = self._adapter()
        if adapter is None:
            return False
        query = adapter.upsert_sql(table_name, list(values), conflict_columns)
        return self._run(query, tuple(values.values())) is not None

    def insert_if_not_exists(
        self, table_name: str, values: dict[str, Any], check_columns: list[str]
    ) -> bool:
        """Insert unless a row already matches values on check_columns.

        Only check columns present in values take part in the match.

        Returns:
            True if a row was inserted; False if one already existed or on failure
        """
        if not table_name or not values or not check_columns:
            self.last_error = "Table name, values or check columns are empty"
            return False

        predicates = [
            f"{column} = {escape_value(values[column])}" for column in check_columns if column in values
        ]
        if not predicates:
            self.last_error = "None of the check columns have a value"
            return False

        adapter = self._adapter()
        if adapter is None:
            return False
        try:
            existing = adapter.fetchscalar(
                f"SELECT COUNT(*) FROM {table_name} WHERE {' AND '.join(predicates)}"
            )
        except DatabaseError as e:
            self._fail(e)
            return False

        if existing:
            return False
        return self.insert_record(table_name, values)

    # Transactions

    @property
    def in_transaction(self) -> bool:
        return self._transaction_adapter is not None and not self._transaction_is_stale()

    def begin_transaction(self) -> bool:
        if self._transaction_adapter is not None and not self._drop_lost_transaction():
            self.last_error = "Transaction already in progress"
            return False

        adapter = self._adapter()
        if adapter is None:
            return False
        try:
            adapter.begin()
        except DatabaseError as e:
            self._fail(e)
            return False

        self._transaction_adapter = adapter
        self.last_error = ""
        logger.debug(f"Transaction started on '{self.connection_name}'")
        return True

    def commit_transaction(self) -> bool:
        if self._transaction_adapter is None:
            self.last_error = "No transaction in progress"
            return False
        if self._drop_lost_transaction():
            return False

        try:
            self._transaction_adapter.commit()
        except DatabaseError as e:
            self._fail(e)
            return False

        self._transaction_adapter = None
        logger.debug(f"Transaction committed on '{self.connection_name}'")
        return True

    def rollback_transaction(self) -> bool:
        if self._transaction_adapter is None:
            self.last_error = "No transaction in progress"
            return False
        if self._drop_lost_transaction():
            return False

        try:
            self._transaction_adapter.rollback()
        except DatabaseError as e:
            self._fail(e)
            return False

        self._transaction_adapter = None
        logger.debug(f"Transaction rolled back on '{self.connection_name}'")
        return True

    def execute_in_transaction(self, operations: Callable[[], bool]) -> bool:
        """Run operations inside one transaction.

        Commits when operations returns a truthy value, rolls back otherwise.
        If operations raises, the transaction is rolled back and the
        exception propagates.
        """
        if not self.begin_transaction():
            return False

        try:
            success = operations()
        except BaseException:
            self.rollback_transaction()
            raise

        if success:
            return self.commit_transaction()
        self.rollback_transaction()
        return False

    def transaction(self) -> Transaction:
        """Scoped transaction for use in a ``with`` block.

        Example:
            >>> with modifier.transaction() as tx:
            ...     modifier.insert_record("users", {"login": "ann", "password": "x"})
            ...     tx.commit()

        Raises:
            TransactionError: On entering the block, if the transaction cannot begin
        """
        return Transaction(self)

    # Batches

    def batch_insert(
        self,
        table_name: str,
        columns: list[str],
        rows: Iterable[Sequence[Any]],
        batch_size: int | None = None,
    ) -> int:
        """Insert many rows, committing every batch_size inserted rows.

        When no transaction is active and batch_size > 0 the batch runs in
        its own transactions, so a failure loses at most the current batch.
        Inside a caller's transaction nothing is committed here. Rows with
        the wrong number of values are skipped.

        Args:
            batch_size: Rows per commit; defaults to self.batch_size, then
                the BATCH_SIZE setting

        Returns:
            Number of rows inserted and committed (or pending in the caller's transaction)
        """
        if batch_size is None:
            batch_size = self.batch_size if self.batch_size is not None else env.batch_size()

        rows = list(rows)
        if not table_name or not columns or not rows:
            self.last_error = "Table name, columns or values are empty"
            return 0

        query = self._insert_query(table_name, columns)
        self.last_error = ""
        owns_transaction = not self.in_transaction and batch_size > 0 and self.begin_transaction()

        inserted = 0
        current_batch = 0
        for row in rows:
            if len(row) != len(columns):
                continue
            if self._run(query, tuple(row), reset_error=False) is None:
                continue

            inserted += 1
            current_batch += 1
            if owns_transaction and current_batch >= batch_size:
                if not self.commit_transaction():
                    self.rollback_transaction()
                    return inserted - current_batch
                logger.debug(f"Committed batch of {current_batch} rows into {table_name}")
                current_batch = 0
                owns_transaction = self.begin_transaction()

        if owns_transaction and not self.commit_transaction():
            self.rollback_transaction()
            return inserted - current_batch
        return inserted

    def batch_update(
        self, table_name: str, updates: list[dict[str, Any]], id_column: str = "id"
    ) -> int:
        """Apply per-row updates keyed by id_column; entries without it are skipped.

        Returns:
            Number of rows updated
        """
        if not table_name or not updates:
            self.last_error = "Table name or updates are empty"
            return 0

        owns_transaction = not self.in_transaction and self.begin_transaction()

        updated = 0
        for update in updates:
            if id_column not in update:
                continue
            values = {column: value for column, value in update.items() if column != id_column}
            if self.update_record_by_id(table_name, update[id_column], values, id_column):
                updated += 1

        if owns_transaction and not self.commit_transaction():
            self.rollback_transaction()
            return 0
        return updated

    def batch_delete(self, table_name: str, ids: list[Any], id_column: str = "id") -> int:
        """Delete rows whose id_column is in ids with a single statement."""
        if not table_name or not ids:
            self.last_error = "Table name or IDs are empty"
            return 0

        id_list = ", ".join(escape_value(record_id) for record_id in ids)
        return self.delete_records(table_name, f"{id_column} IN ({id_list})")

    # Specialised updates

    def increment_value(
        self, table_name: str, column_name: str, increment: int = 1, where_clause: str = ""
    ) -> int:
        if not table_name or not column_name:
            self.last_error = "Table name or column name is empty"
            return -1

        query = f"UPDATE {table_name} SET {column_name} = {column_name} + {int(increment)}"
        if where_clause:
            query += f" WHERE {where_clause}"

        if self._run(query) is None:
            return -1
        return self.affected_rows

    def decrement_value(
        self, table_name: str, column_name: str, decrement: int = 1, where_clause: str = ""
    ) -> int:
        return self.increment_value(table_name, column_name, -int(decrement), where_clause)

    def replace_null_values(self, table_name: str, column_name: str, default_value: Any) -> int:
        """Set column to default_value wherever it is NULL."""
        if not table_name or not column_name:
            self.last_error = "Table name or column name is empty"
            return -1

        query = (
            f"UPDATE {table_name} SET {column_name} = {escape_value(default_value)} "
            f"WHERE {column_name} IS NULL"
        )
        if self._run(query) is None:
            return -1
        return self.affected_rows

    def copy_records(
        self, table_name: str, where_clause: str = "", modifications: dict[str, Any] | None = None
    ) -> int:
        """Duplicate matching rows within the same table.

        Each copy drops the ``id`` column (so the backend assigns a new one)
        and then applies modifications on top.

        Returns:
            Number of rows copied
        """
        if not table_name:
            self.last_error = "Table name is empty"
            return 0

        adapter = self._adapter()
        if adapter is None:
            return 0
        try:
            source_rows = adapter.fetchall(f"SELECT * FROM {table_name} WHERE {where_clause or '1=1'}")
        except DatabaseError as e:
            self._fail(e)
            return 0

        owns_transaction = not self.in_transaction and self.begin_transaction()

        copied = 0
        for row in source_rows:
            values = dict(row)
            values.pop("id", None)
            values.update(modifications or {})
            if self.insert_record(table_name, values):
                copied += 1

        if owns_transaction and not self.commit_transaction():
            self.rollback_transaction()
            return 0
        return copied

    # Raw execution

    def execute_modify_query(self, query: str) -> int:
        """Run arbitrary mutation SQL; returns affected rows or -1."""
        if not query:
            self.last_error = "Query string is empty"
            return -1
        if self._run(query) is None:
            return -1
        return self.affected_rows

    def execute_prepared_query(self, query: str, bind_values: Sequence[Any]) -> int:
        """Run mutation SQL with ? placeholders; returns affected rows or -1."""
        if not query:
            self.last_error = "Query string is empty"
            return -1
        if self._run(query, tuple(bind_values)) is None:
            return -1
        return self.affected_rows

    # Status

    def clear_last_error(self) -> None:
        self.clear_error()

    def was_last_operation_successful(self) -> bool:
        return not self.last_error

    def close(self) -> None:
        """Roll back a transaction this modifier left open."""
        if self._transaction_adapter is None or self._drop_lost_transaction():
            return
        logger.warning(f"Rolling back unfinished transaction on '{self.connection_name}'")
        self.rollback_transaction()

    def __enter__(self) -> "RowModifier":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def __del__(self):
        if getattr(self, "_transaction_adapter", None) is not None:
            self.close()

    # Internals

    def _transaction_is_stale(self) -> bool:
        """True when the connection the transaction began on was closed or replaced."""
        adapter = self._transaction_adapter
        if adapter is None:
            return False
        current = self.registry.get(self.connection_name)
        return not (current is adapter and adapter.is_open and adapter.in_transaction)

    def _drop_lost_transaction(self) -> bool:
        """Return to Idle if the active transaction no longer exists on the connection."""
        if not self._transaction_is_stale():
            return False
        self._transaction_adapter = None
        self.last_error = (
            f"Transaction lost: connection '{self.connection_name}' was closed or reopened"
        )
        logger.warning(self.last_error)
        return True

    def _insert_query(self, table_name: str, columns: list[str]) -> str:
        return (
            f"INSERT INTO {table_name} ({', '.join(columns)}) "
            f"VALUES ({build_placeholders(len(columns))})"
        )

    def _run(self, query: str, params: tuple | None = None, reset_error: bool = True) -> Any:
        """Execute one statement and record its statistics.

        A statement issued after the active transaction was lost is refused
        rather than autocommitted.

        Returns:
            The cursor, or None on failure
        """
        if reset_error:
            self.last_error = ""

        adapter = None if self._drop_lost_transaction() else self._adapter()
        if adapter is None:
            self.affected_rows = 0
            self.last_insert_id = -1
            return None

        try:
            cursor = adapter.execute(query, params)
        except DatabaseError as e:
            self.affected_rows = 0
            self.last_insert_id = -1
            self._fail(e)
            return None

        self.affected_rows = max(cursor.rowcount, 0)
        self.last_insert_id = adapter.last_insert_id(cursor)
        return cursor

    def _fail(self, error: DatabaseError) -> None:
        self.last_error = str(error)
        logger.warning(f"Modification on '{self.connection_name}' failed: {error}")
