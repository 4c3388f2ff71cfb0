"""datadesk: a small, schema-agnostic SQL access layer.

Components share an explicit ConnectionRegistry and address the database by
connection name:

- SchemaManager: DDL (tables, columns, indexes)
- RowReader: selects, aggregates, metadata and statistics
- RowModifier: inserts, updates, deletes, upserts, batches, transactions
- HierarchyStore: a self-referential tree table with an in-memory mirror
"""

from .db import ColumnDefinition, DatabaseError, Row, TransactionError
from .hierarchy import HierarchyStore, TreeNode
from .manager import DatabaseManager
from .modifier import RowModifier, Transaction, escape_value
from .reader import RowReader
from .registry import ConnectionRegistry
from .schema import SchemaManager

__all__ = [
    "ColumnDefinition",
    "ConnectionRegistry",
    "DatabaseError",
    "DatabaseManager",
    "HierarchyStore",
    "Row",
    "RowModifier",
    "RowReader",
    "SchemaManager",
    "Transaction",
    "TransactionError",
    "TreeNode",
    "escape_value",
]
