"""Snapshot collection, archive models, validation and storage.

The table structure and FK relationships come from a ``TableRegistry``;
``DEFAULT_REGISTRY`` describes the application's tables in dependency
order.

Usage:
    from db_backup.backup import ArchiveStore, SnapshotCollector, DEFAULT_REGISTRY
    from db_backup.backup import validate_for_sql_export
"""

from db_backup.backup.collector import SnapshotCollector
from db_backup.backup.models import Archive, BackupMetadata, ExportOptions, ExportType
from db_backup.backup.registry import ColumnDef, ForeignKey, IndexDef, TableDef, TableRegistry
from db_backup.backup.sanitize import Sanitizer
from db_backup.backup.store import ArchiveStore
from db_backup.backup.tables import DEFAULT_REGISTRY
from db_backup.backup.validator import (
    validate_backup_file,
    validate_for_sql_export,
    validate_structure,
)

__all__ = [
    "Archive",
    "BackupMetadata",
    "ExportOptions",
    "ExportType",
    "ColumnDef",
    "ForeignKey",
    "IndexDef",
    "TableDef",
    "TableRegistry",
    "DEFAULT_REGISTRY",
    "Sanitizer",
    "SnapshotCollector",
    "ArchiveStore",
    "validate_structure",
    "validate_for_sql_export",
    "validate_backup_file",
]
