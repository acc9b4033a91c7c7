"""SQL script generation from a validated archive.

Turns an archive into a PostgreSQL script: complete (structure + data),
structure only, or data only.  Table order is the archive's data order,
which the validator has already checked against the registry; the dumper
never re-derives it.  Output is deterministic for a given archive and
options (the header uses the archive's creation time, not the clock).

Script layout:

1. header comments, ``BEGIN;``
2. structure: ``DROP TABLE IF EXISTS`` + ``CREATE TABLE`` per table, then
   foreign keys and indexes once all tables exist
3. data: ``DELETE FROM`` in reverse order when drop statements are on, then
   batched multi-row ``INSERT`` per table
4. ``COMMIT;``

Usage:
    from db_backup.export.sql_dumper import SQLDumper
    from db_backup.backup.models import ExportOptions, ExportType

    sql = SQLDumper(registry).generate(archive, ExportOptions.for_type(ExportType.DATA))
"""

import math
from datetime import date, datetime
from decimal import Decimal

from db_backup.backup.models import Archive, ExportOptions, ExportType, Record, Scalar, format_timestamp
from db_backup.backup.registry import TableDef, TableRegistry
from db_backup.errors import DataRetrievalError, UnsupportedValueError


def quote_identifier(name: str) -> str:
    """Double-quote an identifier, doubling embedded quotes.

    Example:
        >>> quote_identifier('userCards')
        '"userCards"'
    """
    return '"' + name.replace('"', '""') + '"'


def quote_literal(text: str) -> str:
    """Single-quote a string literal, doubling embedded quotes.

    Backslashes are left alone (``standard_conforming_strings`` is on by
    default in PostgreSQL).
    """
    return "'" + text.replace("'", "''") + "'"


def escape_value(value: Scalar, table: str, column: str) -> str:
    """Render one record value as a SQL literal.

    Raises:
        UnsupportedValueError: If ``value`` is outside the scalar union
            (nested dicts, lists, arbitrary objects).  Nothing is stringified
            implicitly.

    Examples:
        >>> escape_value(None, "t", "c")
        'NULL'
        >>> escape_value(True, "t", "c")
        'TRUE'
        >>> escape_value("O'Brien", "t", "c")
        "'O''Brien'"
        >>> escape_value(0.1, "t", "c")
        '0.1'
    """
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if math.isnan(value):
            return "'NaN'"
        if math.isinf(value):
            return "'Infinity'" if value > 0 else "'-Infinity'"
        return repr(value)
    if isinstance(value, Decimal):
        if not value.is_finite():
            return quote_literal(str(value))
        return str(value)
    if isinstance(value, str):
        return quote_literal(value)
    if isinstance(value, (datetime, date)):
        return quote_literal(format_timestamp(value))
    raise UnsupportedValueError(table, column, value)


def batch_columns(records: list[Record]) -> list[str]:
    """Column projection for a batch: first record's keys, then new keys
    in the order they are first seen."""
    columns: list[str] = []
    seen: set[str] = set()
    for record in records:
        for key in record:
            if key not in seen:
                seen.add(key)
                columns.append(key)
    return columns


class SQLDumper:
    """Generate SQL scripts from archives using the registry's static
    table descriptions.

    Args:
        registry: Table registry providing column types, foreign keys and
            indexes.
    """

    def __init__(self, registry: TableRegistry) -> None:
        self.registry = registry

    def _table_def(self, table: str) -> TableDef:
        table_def = self.registry.get(table)
        if table_def is None:
            raise DataRetrievalError(f"Table '{table}' is not in the registry", table=table)
        return table_def

    # ------------------------------------------------------------------
    # Structure
    # ------------------------------------------------------------------

    def create_table_sql(self, table_def: TableDef) -> list[str]:
        lines = [
            f"-- Table structure for {table_def.name}",
            f"DROP TABLE IF EXISTS {quote_identifier(table_def.name)} CASCADE;",
            f"CREATE TABLE {quote_identifier(table_def.name)} (",
        ]
        parts: list[str] = []
        for col in table_def.columns:
            part = f"  {quote_identifier(col.name)} {col.type}"
            if not col.nullable:
                part += " NOT NULL"
            if col.default is not None:
                part += f" DEFAULT {col.default}"
            parts.append(part)
        if table_def.primary_key:
            pk_cols = ", ".join(quote_identifier(c) for c in table_def.primary_key)
            parts.append(f"  PRIMARY KEY ({pk_cols})")
        lines.append(",\n".join(parts))
        lines.append(");")
        lines.append("")
        return lines

    def constraint_sql(self, table_def: TableDef) -> list[str]:
        lines: list[str] = []
        table = quote_identifier(table_def.name)
        for fk in table_def.foreign_keys:
            name = quote_identifier(f"{table_def.name}_{fk.field}_fkey")
            lines.append(
                f"ALTER TABLE {table} ADD CONSTRAINT {name} "
                f"FOREIGN KEY ({quote_identifier(fk.field)}) "
                f"REFERENCES {quote_identifier(fk.table)} ({quote_identifier(fk.references)}) "
                f"ON DELETE {fk.on_delete};"
            )
        for index in table_def.indexes:
            suffix = "key" if index.unique else "idx"
            name = quote_identifier(f"{table_def.name}_{'_'.join(index.columns)}_{suffix}")
            unique = "UNIQUE " if index.unique else ""
            cols = ", ".join(quote_identifier(c) for c in index.columns)
            lines.append(f"CREATE {unique}INDEX {name} ON {table} ({cols});")
        return lines

    # ------------------------------------------------------------------
    # Data
    # ------------------------------------------------------------------

    def insert_sql(self, table: str, records: list[Record], batch_size: int) -> list[str]:
        """Multi-row INSERT statements of at most ``batch_size`` rows.

        Raises:
            UnsupportedValueError: A value cannot be escaped.
        """
        lines: list[str] = []
        table_ident = quote_identifier(table)
        for start in range(0, len(records), batch_size):
            batch = records[start:start + batch_size]
            columns = batch_columns(batch)
            column_list = ", ".join(quote_identifier(c) for c in columns)
            rows = [
                "(" + ", ".join(escape_value(record.get(col), table, col) for col in columns) + ")"
                for record in batch
            ]
            lines.append(f"-- Insert batch {start // batch_size + 1} for {table}")
            lines.append(f"INSERT INTO {table_ident} ({column_list}) VALUES\n  " + ",\n  ".join(rows) + ";")
            lines.append("")
        return lines

    # ------------------------------------------------------------------
    # Script
    # ------------------------------------------------------------------

    def generate(self, archive: Archive, options: ExportOptions | None = None) -> str:
        """Build the SQL script for ``archive``.

        Args:
            archive: An archive that passed ``validate_for_sql_export``.
            options: Export options (defaults to a complete export).

        Returns:
            The script text.

        Raises:
            UnsupportedValueError: A record value is outside the scalar
                union; the error names the table and column.
            DataRetrievalError: A table is not in the registry.
        """
        options = options or ExportOptions()
        export_type = options.export_type
        metadata = archive.metadata
        tables = list(archive.data)
        table_defs = [self._table_def(t) for t in tables]

        lines: list[str] = [
            "-- PostgreSQL Database Backup",
            f"-- Backup ID: {metadata.id}",
            f"-- Backup Name: {metadata.name}",
            f"-- Created At: {format_timestamp(metadata.created_at)}",
            f"-- Export Type: {export_type.value.upper()}",
            f"-- Tables: {len(tables)}, Records: {archive.total_records}",
            "",
            "BEGIN;",
            "",
        ]

        if export_type.includes_structure:
            lines.append("-- ===========================")
            lines.append("-- Schema")
            lines.append("-- ===========================")
            lines.append("")
            for table_def in table_defs:
                lines.extend(self.create_table_sql(table_def))

            if options.include_constraints:
                constraint_lines: list[str] = []
                for table_def in table_defs:
                    constraint_lines.extend(self.constraint_sql(table_def))
                if constraint_lines:
                    lines.append("-- Constraints and indexes")
                    lines.extend(constraint_lines)
                    lines.append("")

        if export_type.includes_data:
            replica = options.include_constraints
            if replica:
                lines.append("-- Disable foreign key checks")
                lines.append("SET session_replication_role = replica;")
                lines.append("")

            if options.include_drop_statements:
                lines.append("-- Clear existing data (children first)")
                for table in reversed(tables):
                    lines.append(f"DELETE FROM {quote_identifier(table)};")
                lines.append("")

            for table in tables:
                records = archive.data[table]
                lines.append("-- ===========================")
                lines.append(f"-- Table: {table}")
                lines.append(f"-- Records: {len(records)}")
                lines.append("-- ===========================")
                lines.append("")
                lines.extend(self.insert_sql(table, records, options.batch_size))

            if replica:
                lines.append("-- Re-enable foreign key checks")
                lines.append("SET session_replication_role = DEFAULT;")
                lines.append("")

        lines.append("COMMIT;")
        lines.append("")
        lines.append(f"-- {export_type.value.capitalize()} export completed successfully")
        lines.append("")
        return "\n".join(lines)
