"""Backup configuration (backup.toml)."""

from db_backup.config.loader import load_backup_config
from db_backup.config.models import BackupConfig, BackupSettings, DatabaseProfile, RateLimitSettings

__all__ = [
    "BackupConfig",
    "BackupSettings",
    "DatabaseProfile",
    "RateLimitSettings",
    "load_backup_config",
]
