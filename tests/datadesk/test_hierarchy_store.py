"""Tests for HierarchyStore."""

import pytest

from datadesk.hierarchy import HierarchyStore, TreeNode, db_value, node_key
from datadesk.modifier import RowModifier
from datadesk.reader import RowReader
from datadesk.registry import ConnectionRegistry
from datadesk.schema import SchemaManager


@pytest.fixture
def registry(tmp_path):
    registry = ConnectionRegistry()
    registry.open("test", tmp_path / "tree.db")
    yield registry
    registry.close_all()


@pytest.fixture
def reader(registry):
    return RowReader(registry, "test")


@pytest.fixture
def modifier(registry):
    return RowModifier(registry, "test")


@pytest.fixture
def store(registry, reader, modifier):
    store = HierarchyStore(reader, modifier, SchemaManager(registry, "test"))
    store.ensure_table()
    return store


@pytest.fixture
def family(store):
    """root(1) -> parent(2) -> child-a(3), child-b(4)."""
    root = store.add_node_to_root("root")
    parent = store.add_node_to_parent("parent", root.id)
    store.add_node_to_parent("child-a", parent.id)
    store.add_node_to_parent("child-b", parent.id)
    return store


class TestKeys:
    """Tests for id conversion helpers."""

    def test_node_key(self):
        """Test mirror keys for database values."""
        assert node_key(5) == "5"
        assert node_key(None) == ""
        assert node_key("7") == "7"

    def test_db_value(self):
        """Test database values for mirror keys."""
        assert db_value("5") == 5
        assert db_value("0") == 0
        assert db_value("") == 0
        assert db_value("NULL") == 0
        assert db_value("abc") == "abc"


class TestEnsureTable:
    """Tests for creating the backing table."""

    def test_creates_table(self, store, reader):
        """Test the table layout."""
        assert reader.get_column_names("tree_nodes") == ["id", "name", "parent_id"]
        assert reader.is_column_auto_increment("tree_nodes", "id")
        assert reader.is_column_nullable("tree_nodes", "parent_id")
        assert not reader.is_column_nullable("tree_nodes", "name")

    def test_is_idempotent(self, store):
        """Test that an existing table is left alone."""
        store.add_node_to_root("keep")
        assert store.ensure_table()
        assert store.load()
        assert [node.name for node in store.roots] == ["keep"]


class TestAddNodes:
    """Tests for adding nodes."""

    def test_add_node_to_root(self, store, reader):
        """Test adding a root node."""
        node = store.add_node_to_root("docs")

        assert isinstance(node, TreeNode)
        assert node.id == "1"
        assert node.is_root
        assert store.roots == [node]
        assert reader.find_by_id("tree_nodes", "id", 1)["parent_id"] == 0

    def test_add_node_to_parent(self, store, reader):
        """Test adding a child node."""
        root = store.add_node_to_root("docs")
        child = store.add_node_to_parent("guides", root.id)

        assert child.parent is root
        assert root.children == [child]
        assert child.parent_id == "1"
        assert reader.find_by_id("tree_nodes", "id", child.id)["parent_id"] == 1

    def test_add_node_to_missing_parent(self, store, reader):
        """Test that the parent must be in the tree."""
        assert store.add_node_to_parent("orphan", 42) is None
        assert store.last_error == "Parent node 42 not found"
        assert reader.count_records("tree_nodes") == 0

    def test_add_node_failure(self, store, registry):
        """Test that a failed insert adds nothing to the mirror."""
        registry.close("test")
        assert store.add_node_to_root("docs") is None
        assert store.last_error == "Database is not open for connection 'test'"
        assert len(store) == 0


class TestLoad:
    """Tests for building the mirror from the table."""

    def test_load_rebuilds_tree(self, family, reader, modifier):
        """Test that a fresh store sees the same tree."""
        store = HierarchyStore(reader, modifier, family.schema)
        assert store.load()

        assert len(store) == 4
        (root,) = store.roots
        assert root.name == "root"
        (parent,) = root.children
        assert [child.name for child in parent.children] == ["child-a", "child-b"]
        assert store.get_node(3).parent is parent

    def test_null_and_zero_parents_are_roots(self, store, modifier):
        """Test the root markers."""
        modifier.insert_record("tree_nodes", {"name": "zero", "parent_id": 0})
        modifier.insert_record("tree_nodes", {"name": "null", "parent_id": None})

        store.load()

        assert sorted(node.name for node in store.roots) == ["null", "zero"]

    def test_child_sorted_before_parent_is_dropped(self, store, modifier):
        """Parent ids sort as text, so "10" comes before "2" and node 11 is skipped."""
        rows = [(1, "root", 0), (2, "a", 1), (10, "b", 2), (11, "c", 10)]
        for record_id, name, parent_id in rows:
            modifier.insert_record("tree_nodes", {"id": record_id, "name": name, "parent_id": parent_id})

        store.load()

        assert sorted(store.nodes) == ["1", "10", "2"]
        assert store.get_node(11) is None
        assert store.get_node(10).parent is store.get_node(2)

    def test_load_missing_table(self, registry, reader, modifier):
        """Test that loading without a table fails with an error."""
        store = HierarchyStore(reader, modifier, SchemaManager(registry, "test"), "ghost")
        assert not store.load()
        assert "no such table" in store.last_error


class TestDeleteNode:
    """Tests for deleting nodes."""

    def test_delete_reparents_children(self, family, reader):
        """Deleting a node with two children moves both to its parent and removes one row."""
        before = reader.count_records("tree_nodes")

        assert family.delete_node(2)

        assert reader.count_records("tree_nodes") == before - 1
        root = family.get_node(1)
        assert [child.name for child in root.children] == ["child-a", "child-b"]
        for child_id in (3, 4):
            child = family.get_node(child_id)
            assert child.parent is root
            assert child.parent_id == "1"
            assert reader.find_by_id("tree_nodes", "id", child_id)["parent_id"] == 1
        assert family.get_node(2) is None

    def test_delete_root_promotes_children(self, family, reader):
        """Test that children of a deleted root become roots."""
        assert family.delete_node(1)

        assert [node.name for node in family.roots] == ["parent"]
        assert family.get_node(2).is_root
        assert reader.find_by_id("tree_nodes", "id", 2)["parent_id"] == 0

    def test_delete_leaf(self, family):
        """Test deleting a node without children."""
        assert family.delete_node(4)
        assert [child.id for child in family.get_node(2).children] == ["3"]

    def test_delete_unknown_node(self, family):
        """Test that the node must be in the tree."""
        assert not family.delete_node(99)
        assert family.last_error == "Node 99 not found"

    def test_failed_delete_leaves_everything_untouched(self, family, reader, modifier):
        """If the row cannot be deleted the re-parenting is rolled back too."""
        # Remove node 2's row behind the store's back
        modifier.execute_modify_query("DELETE FROM tree_nodes WHERE id = 2")

        assert not family.delete_node(2)

        assert family.last_error == "Failed to delete node 2"
        assert reader.find_by_id("tree_nodes", "id", 3)["parent_id"] == 2
        assert family.get_node(3).parent is family.get_node(2)
        assert len(family) == 4
        assert not modifier.in_transaction


class TestRenameNode:
    """Tests for renaming nodes."""

    def test_rename_node(self, family, reader):
        """Test renaming updates the row and the mirror."""
        assert family.rename_node(3, "renamed")
        assert family.get_node(3).name == "renamed"
        assert reader.find_by_id("tree_nodes", "id", 3)["name"] == "renamed"

    def test_rename_unknown_node(self, family):
        """Test renaming a node that is not in the tree."""
        assert not family.rename_node(99, "x")
        assert family.last_error == "Node 99 not found"

    def test_rename_failure_keeps_mirror(self, family, modifier):
        """Test that the label only changes when the update succeeds."""
        modifier.execute_modify_query("DELETE FROM tree_nodes WHERE id = 4")

        assert not family.rename_node(4, "x")
        assert family.get_node(4).name == "child-b"
