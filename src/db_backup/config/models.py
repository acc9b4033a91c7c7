"""Pydantic models for backup configuration."""

from typing import Literal

from pydantic import BaseModel, Field

from db_backup.rate_limit import CREATE_BACKUP, DEFAULT_COOLDOWNS, DOWNLOAD


# ============================================================================
# Configuration Models
# ============================================================================


class DatabaseProfile(BaseModel):
    """Database connection profile from backup.toml."""

    url: str
    description: str = ""
    db_password: str | None = None  # For [YOUR-PASSWORD] placeholder substitution


class BackupSettings(BaseModel):
    """``[backup]`` section: storage location and resource ceilings."""

    directory: str = "backups"
    max_archive_bytes: int = Field(default=500 * 1024 * 1024, gt=0)
    max_export_records: int = Field(default=1_000_000, gt=0)
    batch_size: int = Field(default=1000, ge=1)
    sanitize: bool = True
    redaction: Literal["omit", "mask"] = "omit"
    max_concurrency: int = Field(default=8, ge=1)


class RateLimitSettings(BaseModel):
    """``[rate_limits]`` section: cooldown seconds per operation kind."""

    create_backup: float = Field(default=DEFAULT_COOLDOWNS[CREATE_BACKUP], ge=0)
    download: float = Field(default=DEFAULT_COOLDOWNS[DOWNLOAD], ge=0)

    def cooldowns(self) -> dict[str, float]:
        return {CREATE_BACKUP: self.create_backup, DOWNLOAD: self.download}


class BackupConfig(BaseModel):
    """Complete configuration from backup.toml."""

    profiles: dict[str, DatabaseProfile] = Field(default_factory=dict)
    backup: BackupSettings = Field(default_factory=BackupSettings)
    rate_limits: RateLimitSettings = Field(default_factory=RateLimitSettings)
