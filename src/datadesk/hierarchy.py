"""Self-referential tree table with an in-memory mirror.

Each row of the backing table points at its parent through ``parent_id``;
``0``, ``NULL`` or an empty value marks a root. HierarchyStore loads the
rows into TreeNode objects and keeps that mirror in step with every change
it makes to the table. The mirror is only touched after the database change
has succeeded.

The parent graph is expected to be acyclic; nothing here enforces it.
"""

from dataclasses import dataclass, field
from typing import Any

from common.constants import ROOT_PARENT_IDS, TREE_TABLE
from common.logger import get_logger

from .db import ColumnDefinition
from .modifier import RowModifier, escape_value
from .reader import RowReader
from .schema import SchemaManager

logger = get_logger(__name__)


@dataclass(eq=False)
class TreeNode:
    """One row of the tree table.

    ``children`` holds the attached child nodes; ``parent`` is a
    back-reference and is None for roots.
    """

    id: str
    name: str
    parent_id: str = "0"
    children: list["TreeNode"] = field(default_factory=list, repr=False)
    parent: "TreeNode | None" = field(default=None, repr=False)

    @property
    def is_root(self) -> bool:
        return self.parent is None


def node_key(value: Any) -> str:
    """Mirror key for a database id; NULL becomes the empty string."""
    if value is None:
        return ""
    return str(value)


def db_value(key: str) -> Any:
    """Database value for a mirror key. Numeric keys go back as integers."""
    if key in ROOT_PARENT_IDS:
        return 0
    if key.lstrip("-").isdigit():
        return int(key)
    return key


class HierarchyStore:
    """Tree of named nodes stored in one table.

    Args:
        reader: RowReader on the connection holding the table
        modifier: RowModifier on the same connection
        schema: SchemaManager on the same connection
        table_name: Backing table, ``tree_nodes`` by default
    """

    def __init__(
        self,
        reader: RowReader,
        modifier: RowModifier,
        schema: SchemaManager,
        table_name: str = TREE_TABLE,
    ):
        self.reader = reader
        self.modifier = modifier
        self.schema = schema
        self.table_name = table_name
        self.last_error = ""
        self._nodes: dict[str, TreeNode] = {}
        self._roots: list[TreeNode] = []

    def ensure_table(self) -> bool:
        """Create the backing table if it does not exist yet."""
        if self.schema.table_exists(self.table_name):
            return True

        columns = [
            ColumnDefinition("id", "INTEGER", is_primary_key=True, is_auto_increment=True),
            ColumnDefinition("name", "TEXT"),
            ColumnDefinition("parent_id", "INTEGER", is_not_null=False),
        ]
        if not self.schema.create_table(self.table_name, columns):
            self.last_error = self.schema.last_error
            return False
        logger.info(f"Created table {self.table_name}")
        return True

    def load(self) -> bool:
        """Rebuild the mirror from the table.

        Rows are sorted by the text of their parent id and attached in that
        order. The sort only groups siblings: a row whose parent has not been
        built yet when it is reached is left out of the mirror.
        """
        rows = self.reader.select_all(self.table_name)
        if self.reader.last_error:
            self.last_error = self.reader.last_error
            return False

        self._nodes = {}
        self._roots = []
        dropped = 0

        for row in sorted(rows, key=lambda row: node_key(row["parent_id"])):
            node = TreeNode(
                id=node_key(row["id"]),
                name=node_key(row["name"]),
                parent_id=node_key(row["parent_id"]),
            )

            if node.parent_id in ROOT_PARENT_IDS:
                self._roots.append(node)
            else:
                parent = self._nodes.get(node.parent_id)
                if parent is None:
                    logger.debug(f"Node {node.id} skipped, parent {node.parent_id} not loaded yet")
                    dropped += 1
                    continue
                node.parent = parent
                parent.children.append(node)

            self._nodes[node.id] = node

        self.last_error = ""
        logger.debug(f"Loaded {len(self._nodes)} nodes from {self.table_name} ({dropped} dropped)")
        return True

    def add_node_to_root(self, name: str) -> TreeNode | None:
        return self._add_node(name, None)

    def add_node_to_parent(self, name: str, parent_id: Any) -> TreeNode | None:
        parent = self._nodes.get(node_key(parent_id))
        if parent is None:
            self.last_error = f"Parent node {parent_id} not found"
            return None
        return self._add_node(name, parent)

    def delete_node(self, node_id: Any) -> bool:
        """Delete a node and move its children up to the node's parent.

        Re-parenting and the delete run in one transaction; if either fails
        both are rolled back and the mirror is left as it was.
        """
        node = self._nodes.get(node_key(node_id))
        if node is None:
            self.last_error = f"Node {node_id} not found"
            return False

        grandparent_id = node.parent_id

        def reparent_and_delete() -> bool:
            moved = self.modifier.update_records(
                self.table_name,
                {"parent_id": db_value(grandparent_id)},
                f"parent_id = {escape_value(db_value(node.id))}",
            )
            if moved < 0:
                return False
            return self.modifier.delete_record_by_id(self.table_name, db_value(node.id))

        if not self.modifier.execute_in_transaction(reparent_and_delete):
            self.last_error = self.modifier.last_error or f"Failed to delete node {node.id}"
            logger.warning(f"Failed to delete node {node.id}: {self.last_error}")
            return False

        parent = node.parent
        siblings = self._roots if parent is None else parent.children
        for child in node.children:
            child.parent = parent
            child.parent_id = grandparent_id
            siblings.append(child)
        node.children = []
        siblings.remove(node)
        del self._nodes[node.id]

        self.last_error = ""
        return True

    def rename_node(self, node_id: Any, new_name: str) -> bool:
        node = self._nodes.get(node_key(node_id))
        if node is None:
            self.last_error = f"Node {node_id} not found"
            return False

        if not self.modifier.update_record_by_id(self.table_name, db_value(node.id), {"name": new_name}):
            self.last_error = self.modifier.last_error or f"Node {node.id} not found in {self.table_name}"
            return False

        node.name = new_name
        self.last_error = ""
        return True

    def get_node(self, node_id: Any) -> TreeNode | None:
        return self._nodes.get(node_key(node_id))

    @property
    def roots(self) -> list[TreeNode]:
        return list(self._roots)

    @property
    def nodes(self) -> dict[str, TreeNode]:
        return dict(self._nodes)

    def __len__(self) -> int:
        return len(self._nodes)

    def _add_node(self, name: str, parent: TreeNode | None) -> TreeNode | None:
        parent_id = "0" if parent is None else parent.id
        record_id = self.modifier.insert_record_and_return_id(
            self.table_name, {"name": name, "parent_id": db_value(parent_id)}
        )
        if record_id < 0:
            self.last_error = self.modifier.last_error
            return None

        node = TreeNode(id=str(record_id), name=name, parent_id=parent_id, parent=parent)
        if parent is None:
            self._roots.append(node)
        else:
            parent.children.append(node)
        self._nodes[node.id] = node

        self.last_error = ""
        return node
