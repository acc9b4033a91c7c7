"""Tests for the table registry and the default table list."""

import pytest

from db_backup.backup.registry import ColumnDef, ForeignKey, TableDef, TableRegistry
from db_backup.backup.tables import DEFAULT_REGISTRY


def _table(name: str, *parents: str) -> TableDef:
    return TableDef(
        name=name,
        columns=[ColumnDef.pk(), *(ColumnDef(name=f"{p}Id") for p in parents)],
        foreign_keys=[ForeignKey(table=p, field=f"{p}Id") for p in parents],
    )


class TestRegistryValidation:
    """Construction rejects registries that cannot be emitted in order."""

    def test_parents_first_accepted(self):
        registry = TableRegistry(tables=[_table("authors"), _table("books", "authors")])
        assert registry.names() == ["authors", "books"]

    def test_child_before_parent_rejected(self):
        with pytest.raises(ValueError, match="before its parent"):
            TableRegistry(tables=[_table("books", "authors"), _table("authors")])

    def test_unregistered_parent_rejected(self):
        with pytest.raises(ValueError, match="unregistered table 'publishers'"):
            TableRegistry(tables=[_table("books", "publishers")])

    def test_duplicate_rejected(self):
        with pytest.raises(ValueError, match="registered twice"):
            TableRegistry(tables=[_table("authors"), _table("authors")])

    def test_self_reference_allowed(self):
        comments = TableDef(
            name="comments",
            columns=[ColumnDef.pk(), ColumnDef(name="parentId")],
            foreign_keys=[ForeignKey(table="comments", field="parentId")],
        )
        registry = TableRegistry(tables=[comments])
        assert registry.get("comments").dependencies() == set()


class TestRegistryLookup:
    def test_get_and_contains(self):
        registry = TableRegistry(tables=[_table("authors"), _table("books", "authors")])
        assert "books" in registry
        assert "chapters" not in registry
        assert registry.get("books").dependencies() == {"authors"}
        assert registry.get("chapters") is None
        assert len(registry) == 2

    def test_dependencies_by_name(self):
        registry = TableRegistry(tables=[_table("authors"), _table("books", "authors")])
        assert registry.dependencies("books") == {"authors"}
        assert registry.dependencies("authors") == set()
        assert registry.dependencies("chapters") == set()

    def test_referenced_tables(self):
        registry = TableRegistry(
            tables=[_table("authors"), _table("books", "authors"), _table("chapters", "books")]
        )
        assert registry.referenced_tables() == {"authors", "books"}

    def test_primary_key(self):
        assert _table("authors").primary_key == ["id"]


class TestDefaultRegistry:
    """The application's table list is complete and correctly ordered."""

    def test_size(self):
        assert len(DEFAULT_REGISTRY) >= 60

    def test_users_first(self):
        assert DEFAULT_REGISTRY.names()[0] == "users"

    def test_categories_before_cards(self):
        names = DEFAULT_REGISTRY.names()
        assert names.index("categories") < names.index("cards")
        assert names.index("cards") < names.index("userCards")

    def test_every_parent_precedes_child(self):
        position = {name: i for i, name in enumerate(DEFAULT_REGISTRY.names())}
        for table in DEFAULT_REGISTRY.tables:
            for parent in table.dependencies():
                assert position[parent] < position[table.name], (table.name, parent)

    def test_every_table_has_id_primary_key(self):
        for table in DEFAULT_REGISTRY.tables:
            assert table.primary_key == ["id"], table.name

    def test_fk_columns_are_declared(self):
        for table in DEFAULT_REGISTRY.tables:
            for fk in table.foreign_keys:
                assert fk.field in table.column_names, (table.name, fk.field)

    def test_sensitive_tables_registered(self):
        for name in ("users", "accounts", "sessions"):
            assert name in DEFAULT_REGISTRY
