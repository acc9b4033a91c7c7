"""SQL script generation from archives."""

from db_backup.export.sql_dumper import SQLDumper, escape_value, quote_identifier

__all__ = ["SQLDumper", "escape_value", "quote_identifier"]
