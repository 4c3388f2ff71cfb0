"""Tests for SchemaManager."""

import pytest

from datadesk.db import ColumnDefinition
from datadesk.registry import ConnectionRegistry
from datadesk.schema import SchemaManager, build_create_table_query, is_valid_identifier


@pytest.fixture
def registry(tmp_path):
    registry = ConnectionRegistry()
    registry.open("test", tmp_path / "schema.db")
    yield registry
    registry.close_all()


@pytest.fixture
def schema(registry):
    return SchemaManager(registry, "test")


@pytest.fixture
def people(schema):
    """A people table with an autoincrement id and a name."""
    schema.create_table(
        "people",
        [
            ColumnDefinition("id", "INTEGER", is_primary_key=True, is_auto_increment=True),
            ColumnDefinition("name", "TEXT"),
        ],
    )
    return "people"


class TestIdentifiers:
    """Tests for the name whitelist."""

    @pytest.mark.parametrize("name", ["users", "tree_nodes", "log-2024", "T1"])
    def test_valid_names(self, name):
        """Test names made of letters, digits, '_' and '-'."""
        assert is_valid_identifier(name)

    @pytest.mark.parametrize("name", ["", "two words", "drop;table", "a.b", "x'y"])
    def test_invalid_names(self, name):
        """Test names containing anything else."""
        assert not is_valid_identifier(name)


class TestBuildCreateTableQuery:
    """Tests for CREATE TABLE generation."""

    def test_single_primary_key_inline(self):
        """Test that a single primary key is declared on the column."""
        query = build_create_table_query(
            "t",
            [
                ColumnDefinition("id", "INTEGER", is_primary_key=True, is_auto_increment=True),
                ColumnDefinition("name", "TEXT"),
            ],
        )
        assert query == (
            "CREATE TABLE t (id INTEGER PRIMARY KEY AUTOINCREMENT NOT NULL, name TEXT NOT NULL)"
        )

    def test_composite_primary_key_trailing(self):
        """Test that several primary keys become a table constraint."""
        query = build_create_table_query(
            "t",
            [
                ColumnDefinition("a", "INTEGER", is_primary_key=True),
                ColumnDefinition("b", "INTEGER", is_primary_key=True),
            ],
        )
        assert query == "CREATE TABLE t (a INTEGER NOT NULL, b INTEGER NOT NULL, PRIMARY KEY (a, b))"

    def test_column_flags(self):
        """Test UNIQUE, DEFAULT and nullable columns."""
        query = build_create_table_query(
            "t",
            [
                ColumnDefinition("code", "TEXT", is_unique=True),
                ColumnDefinition("state", "TEXT", is_not_null=False, default_value="new"),
            ],
        )
        assert query == "CREATE TABLE t (code TEXT NOT NULL UNIQUE, state TEXT DEFAULT 'new')"

    def test_default_with_quote(self):
        """Test that a quote inside a default is doubled."""
        query = build_create_table_query(
            "t", [ColumnDefinition("owner", "TEXT", is_not_null=False, default_value="O'Brien")]
        )
        assert query == "CREATE TABLE t (owner TEXT DEFAULT 'O''Brien')"



class TestTables:
    """Tests for table DDL."""

    def test_create_table(self, schema, people):
        """Test creating a table."""
        assert schema.table_exists("people")
        assert schema.get_table_names() == ["people"]

    def test_create_existing_table_fails(self, schema, people):
        """Test that creating a table twice is rejected."""
        assert not schema.create_table("people", [ColumnDefinition("x", "TEXT")])
        assert schema.last_error == "Table people already exists"

    def test_create_table_invalid_name(self, schema):
        """Test that invalid names are rejected before any SQL runs."""
        assert not schema.create_table("bad name", [ColumnDefinition("x", "TEXT")])
        assert schema.last_error == "Invalid table name: bad name"

    def test_create_table_without_columns(self, schema):
        """Test that a column list is required."""
        assert not schema.create_table("empty", [])
        assert schema.last_error == "Column list cannot be empty"

    def test_create_table_backend_error(self, schema):
        """Test that a rejected statement is reported, not raised."""
        columns = [ColumnDefinition("id", "TEXT", is_primary_key=True, is_auto_increment=True)]
        assert not schema.create_table("broken", columns)
        assert "AUTOINCREMENT" in schema.last_error

    def test_table_exists_is_case_insensitive(self, schema, people):
        """Test table lookups ignore case."""
        assert schema.table_exists("PEOPLE")
        assert not schema.table_exists("animals")

    def test_drop_table(self, schema, people):
        """Test dropping a table."""
        assert schema.drop_table("people")
        assert not schema.table_exists("people")

    def test_drop_missing_table(self, schema):
        """Test dropping a table that does not exist."""
        assert not schema.drop_table("ghost")
        assert schema.last_error == "Table ghost does not exist"

    def test_rename_table(self, schema, people):
        """Test renaming a table."""
        assert schema.rename_table("people", "persons")
        assert schema.table_exists("persons")
        assert not schema.table_exists("people")

    def test_rename_to_existing_table(self, schema, people):
        """Test that the rename target must be free."""
        schema.create_table("persons", [ColumnDefinition("x", "TEXT")])
        assert not schema.rename_table("people", "persons")
        assert schema.last_error == "Table persons already exists"

    def test_closed_connection(self, registry):
        """Test operations on a connection that is not open."""
        schema = SchemaManager(registry, "nowhere")
        assert not schema.create_table("t", [ColumnDefinition("x", "TEXT")])
        assert schema.get_table_names() == []
        assert "not open" in schema.last_error


class TestColumns:
    """Tests for column DDL."""

    def test_add_column(self, schema, people):
        """Test adding a nullable column."""
        assert schema.add_column("people", ColumnDefinition("email", "TEXT", is_not_null=False))
        assert schema.get_column_names("people") == ["id", "name", "email"]

    def test_add_not_null_column_with_default(self, schema, people):
        """Test adding a NOT NULL column that carries a default."""
        assert schema.add_column("people", ColumnDefinition("role", "TEXT", default_value="member"))
        structure = {column.name: column for column in schema.get_table_structure("people")}
        assert structure["role"].default_value == "'member'"

    def test_add_column_with_quoted_default(self, schema, people, registry):
        """Test that a default containing a quote is stored verbatim."""
        assert schema.add_column("people", ColumnDefinition("owner", "TEXT", default_value="O'Brien"))

        adapter = registry.get("test")
        adapter.execute("INSERT INTO people (name) VALUES (?)", ("ann",))
        assert adapter.fetchscalar("SELECT owner FROM people") == "O'Brien"

    def test_create_table_with_quoted_default(self, schema, registry):
        """Test creating a table whose default contains a quote."""
        assert schema.create_table(
            "notes", [ColumnDefinition("author", "TEXT", is_not_null=False, default_value="O'Brien")]
        )

        adapter = registry.get("test")
        adapter.execute("INSERT INTO notes DEFAULT VALUES")
        assert adapter.fetchscalar("SELECT author FROM notes") == "O'Brien"


    def test_add_not_null_column_without_default_fails(self, schema, people):
        """SQLite refuses NOT NULL without DEFAULT; the error is passed through."""
        assert not schema.add_column("people", ColumnDefinition("age", "INTEGER"))
        assert "NOT NULL" in schema.last_error

    def test_add_duplicate_column(self, schema, people):
        """Test that an existing column cannot be added again."""
        assert not schema.add_column("people", ColumnDefinition("NAME", "TEXT", is_not_null=False))
        assert schema.last_error == "Column NAME already exists in table people"

    def test_drop_column(self, schema, people):
        """Test dropping a column."""
        schema.add_column("people", ColumnDefinition("email", "TEXT", is_not_null=False))
        assert schema.drop_column("people", "email")
        assert schema.get_column_names("people") == ["id", "name"]

    def test_drop_missing_column(self, schema, people):
        """Test dropping a column that does not exist."""
        assert not schema.drop_column("people", "email")
        assert schema.last_error == "Column email does not exist in table people"

    def test_rename_column(self, schema, people):
        """Test renaming a column."""
        assert schema.rename_column("people", "name", "full_name")
        assert schema.get_column_names("people") == ["id", "full_name"]

    def test_rename_column_to_existing(self, schema, people):
        """Test that the new column name must be free."""
        assert not schema.rename_column("people", "name", "id")
        assert schema.last_error == "Column id already exists in table people"


class TestStructure:
    """Tests for structure introspection."""

    def test_get_table_structure(self, schema, people):
        """Test the simplified column description."""
        structure = schema.get_table_structure("people")

        assert [column.name for column in structure] == ["id", "name"]
        assert structure[1].type == "TEXT"
        assert structure[1].is_not_null

    def test_structure_does_not_report_primary_keys(self, schema, people):
        """Primary key membership is left to RowReader."""
        assert not any(column.is_primary_key for column in schema.get_table_structure("people"))

    def test_structure_of_missing_table(self, schema):
        """Test that a missing table has no structure."""
        assert schema.get_table_structure("ghost") == []


class TestIndexes:
    """Tests for index DDL."""

    def test_create_and_drop_index(self, schema, people, registry):
        """Test creating and dropping an index."""
        assert schema.create_index("idx_people_name", "people", ["name"])
        assert "idx_people_name" in registry.get("test").get_indexes("people")

        assert schema.drop_index("idx_people_name")
        assert "idx_people_name" not in registry.get("test").get_indexes("people")

    def test_create_index_on_missing_table(self, schema):
        """Test that the indexed table must exist."""
        assert not schema.create_index("idx", "ghost", ["x"])
        assert schema.last_error == "Table ghost does not exist"

    def test_create_index_without_columns(self, schema, people):
        """Test that an index needs columns."""
        assert not schema.create_index("idx", "people", [])
        assert schema.last_error == "Index column list cannot be empty"

    def test_drop_missing_index(self, schema):
        """Test that dropping an unknown index reports the backend error."""
        assert not schema.drop_index("idx_ghost")
        assert "no such index" in schema.last_error
