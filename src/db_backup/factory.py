"""Adapter and service factory.

Supports two configuration modes:
1. Profile mode (backup.toml + --profile or DB_PROFILE): named database profiles
2. URL mode (DB_BACKUP_DATABASE_URL env var or an explicit URL): single connection
"""

import os
from pathlib import Path
from urllib.parse import quote

from db_backup.adapters.base import DatabaseClient
from db_backup.adapters.postgres import AsyncPostgresAdapter
from db_backup.backup.collector import SnapshotCollector
from db_backup.backup.registry import TableRegistry
from db_backup.backup.sanitize import Sanitizer
from db_backup.backup.store import ArchiveStore
from db_backup.backup.tables import DEFAULT_REGISTRY
from db_backup.config.loader import load_backup_config
from db_backup.config.models import BackupConfig, DatabaseProfile
from db_backup.export.sql_dumper import SQLDumper
from db_backup.rate_limit import RateLimiter
from db_backup.service import BackupService

PROFILE_ENV_VAR = "DB_PROFILE"
DATABASE_URL_ENV_VAR = "DB_BACKUP_DATABASE_URL"


# ============================================================================
# Profile Resolution
# ============================================================================


class ProfileNotFoundError(Exception):
    """Raised when no database profile is configured."""

    pass


def get_active_profile_name(explicit: str | None = None) -> str:
    """Get active profile name from an explicit value or env var.

    Priority:
    1. ``explicit`` (the CLI's --profile)
    2. DB_PROFILE env var
    3. Raise ProfileNotFoundError

    Returns:
        Profile name

    Raises:
        ProfileNotFoundError: If no profile is configured
    """
    if explicit:
        return explicit

    env_profile = os.environ.get(PROFILE_ENV_VAR)
    if env_profile:
        return env_profile

    raise ProfileNotFoundError(
        "No database profile configured.\n"
        f"Pass --profile <name> or set {PROFILE_ENV_VAR}=<name>"
    )


def get_active_profile(
    profile_name: str | None = None,
    config: BackupConfig | None = None,
) -> tuple[str, DatabaseProfile]:
    """Get active profile name and configuration.

    Returns:
        Tuple of (profile_name, DatabaseProfile)

    Raises:
        ProfileNotFoundError: If no profile configured or the name is not
            in backup.toml
    """
    profile_name = get_active_profile_name(profile_name)
    config = config or load_backup_config()

    if profile_name not in config.profiles:
        available = ", ".join(config.profiles) or "(none)"
        raise ProfileNotFoundError(
            f"Profile '{profile_name}' not found in backup.toml.\n"
            f"Available profiles: {available}"
        )

    return profile_name, config.profiles[profile_name]


def resolve_url(profile: DatabaseProfile) -> str:
    """Resolve profile URL with password substitution.

    Args:
        profile: Database profile from config

    Returns:
        Connection URL with password substituted

    Example:
        >>> p = DatabaseProfile(url="postgresql://u:[YOUR-PASSWORD]@h/db", db_password="p@ss")
        >>> resolve_url(p)
        'postgresql://u:p%40ss@h/db'
    """
    url = profile.url
    if profile.db_password and "[YOUR-PASSWORD]" in url:
        url = url.replace("[YOUR-PASSWORD]", quote(profile.db_password, safe=""))
    return url


# ============================================================================
# Factories
# ============================================================================


def get_adapter(
    profile_name: str | None = None,
    database_url: str | None = None,
    config: BackupConfig | None = None,
) -> DatabaseClient:
    """Create a read adapter for the configured database.

    An explicit ``database_url`` wins; otherwise the active profile is
    used, falling back to the DB_BACKUP_DATABASE_URL env var when no
    profile is configured.

    Returns:
        DatabaseClient instance (AsyncPostgresAdapter)

    Raises:
        ProfileNotFoundError: If no database configuration found

    Example:
        >>> adapter = get_adapter("local")
        >>> rows = await adapter.select("users", "*")
    """
    if database_url:
        return AsyncPostgresAdapter(database_url=database_url)

    try:
        _, profile = get_active_profile(profile_name, config)
        return AsyncPostgresAdapter(database_url=resolve_url(profile))
    except (ProfileNotFoundError, FileNotFoundError):
        env_url = os.environ.get(DATABASE_URL_ENV_VAR)
        if env_url and not profile_name:
            return AsyncPostgresAdapter(database_url=env_url)
        raise


def create_backup_service(
    adapter: DatabaseClient | None,
    config: BackupConfig,
    registry: TableRegistry = DEFAULT_REGISTRY,
    rate_limiter: RateLimiter | None = None,
    directory: str | Path | None = None,
) -> BackupService:
    """Wire a ``BackupService`` from configuration.

    Args:
        adapter: Read adapter for the live database.  ``None`` for callers
            that only list, delete or export stored archives.
        config: Loaded configuration (backup settings and rate limits).
        registry: Tables to back up, in dependency order.
        rate_limiter: Process-wide limiter; a new one is built from
            ``config.rate_limits`` when omitted.
        directory: Overrides ``config.backup.directory``.
    """
    settings = config.backup
    sanitizer = Sanitizer(mode=settings.redaction)
    collector = SnapshotCollector(
        adapter,
        registry,
        sanitizer=sanitizer,
        max_concurrency=settings.max_concurrency,
    )
    store = ArchiveStore(directory or settings.directory, max_bytes=settings.max_archive_bytes)
    return BackupService(
        collector,
        store,
        rate_limiter or RateLimiter(config.rate_limits.cooldowns()),
        registry,
        dumper=SQLDumper(registry),
        sanitize=settings.sanitize,
        max_export_records=settings.max_export_records,
        batch_size=settings.batch_size,
    )
