"""Declarative table registry.

The registry lists every table a backup covers, in dependency order
(parents before children), together with a static column/type
description used to emit ``CREATE TABLE`` statements.  Construction fails
if a foreign key points at an unregistered table or at a table listed
later.

Usage:
    from db_backup.backup.registry import ColumnDef, ForeignKey, TableDef, TableRegistry

    registry = TableRegistry(tables=[
        TableDef(name="authors", columns=[ColumnDef.pk(), ColumnDef(name="name", type="TEXT")]),
        TableDef(
            name="books",
            columns=[ColumnDef.pk(), ColumnDef(name="authorId", type="TEXT")],
            foreign_keys=[ForeignKey(table="authors", field="authorId")],
        ),
    ])
"""

from pydantic import BaseModel, Field, model_validator


class ColumnDef(BaseModel):
    """Static description of a column."""

    name: str
    type: str = "TEXT"
    nullable: bool = True
    primary_key: bool = False
    default: str | None = None         # raw SQL default expression

    @classmethod
    def pk(cls, name: str = "id", type: str = "TEXT") -> "ColumnDef":
        return cls(name=name, type=type, nullable=False, primary_key=True)


class ForeignKey(BaseModel):
    """Foreign key from this table to a parent table."""

    table: str                  # parent table name
    field: str                  # FK column in this table
    references: str = "id"      # referenced column in the parent
    on_delete: str = "CASCADE"


class IndexDef(BaseModel):
    """Secondary index."""

    columns: list[str]
    unique: bool = False


class TableDef(BaseModel):
    """Definition of a table for backup and export."""

    name: str
    columns: list[ColumnDef] = Field(default_factory=list)
    foreign_keys: list[ForeignKey] = Field(default_factory=list)
    indexes: list[IndexDef] = Field(default_factory=list)

    @property
    def column_names(self) -> list[str]:
        return [c.name for c in self.columns]

    @property
    def primary_key(self) -> list[str]:
        return [c.name for c in self.columns if c.primary_key]

    def dependencies(self) -> set[str]:
        """Parent tables this table references (self references excluded)."""
        return {fk.table for fk in self.foreign_keys if fk.table != self.name}


class TableRegistry(BaseModel):
    """Ordered table registry.  Tables are ordered by dependency (parents first)."""

    tables: list[TableDef]

    @model_validator(mode="after")
    def _check_order(self) -> "TableRegistry":
        seen: set[str] = set()
        all_names = {t.name for t in self.tables}
        for table in self.tables:
            if table.name in seen:
                raise ValueError(f"Table '{table.name}' registered twice")
            for parent in sorted(table.dependencies()):
                if parent not in all_names:
                    raise ValueError(
                        f"Table '{table.name}' references unregistered table '{parent}'"
                    )
                if parent not in seen:
                    raise ValueError(
                        f"Table '{table.name}' is listed before its parent '{parent}'"
                    )
            seen.add(table.name)
        return self

    def names(self) -> list[str]:
        return [t.name for t in self.tables]

    def get(self, name: str) -> TableDef | None:
        for t in self.tables:
            if t.name == name:
                return t
        return None

    def __contains__(self, name: object) -> bool:
        return any(t.name == name for t in self.tables)

    def __len__(self) -> int:
        return len(self.tables)

    def referenced_tables(self) -> set[str]:
        """Every table that is the target of at least one foreign key."""
        return {dep for t in self.tables for dep in t.dependencies()}

    def dependencies(self, name: str) -> set[str]:
        """Parents of ``name``; empty for unknown tables."""
        table = self.get(name)
        return table.dependencies() if table else set()
