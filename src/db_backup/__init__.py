"""db-backup: Versioned database archives and deterministic SQL exports.

Snapshots every registered table through an async adapter, redacts
credentials, stores the result as a JSON archive, and re-derives complete,
structure-only or data-only SQL scripts from stored archives.

Usage:
    from db_backup import BackupService, Operator, create_backup_service, get_adapter
    from db_backup import load_backup_config, format_error
"""

__version__ = "0.1.0"

# Adapters
from db_backup.adapters.base import DatabaseClient
from db_backup.adapters.postgres import AsyncPostgresAdapter

# Config
from db_backup.config.loader import load_backup_config
from db_backup.config.models import BackupConfig, DatabaseProfile

# Errors
from db_backup.errors import BackupError, format_error

# Backup models
from db_backup.backup.models import Archive, BackupMetadata, ExportType, Operator

# Service and factory
from db_backup.service import BackupService
from db_backup.factory import (
    ProfileNotFoundError,
    create_backup_service,
    get_adapter,
    resolve_url,
)

__all__ = [
    # Adapters
    "DatabaseClient",
    "AsyncPostgresAdapter",
    # Config
    "load_backup_config",
    "BackupConfig",
    "DatabaseProfile",
    # Errors
    "BackupError",
    "format_error",
    # Backup models
    "Archive",
    "BackupMetadata",
    "ExportType",
    "Operator",
    # Service and factory
    "BackupService",
    "create_backup_service",
    "get_adapter",
    "resolve_url",
    "ProfileNotFoundError",
]
