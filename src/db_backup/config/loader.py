"""Load backup configuration from TOML."""

import os
import tomllib
from pathlib import Path

from pydantic import ValidationError as PydanticValidationError

from db_backup.config.models import BackupConfig

CONFIG_ENV_VAR = "DB_BACKUP_CONFIG"
DEFAULT_CONFIG_FILE = "backup.toml"


def load_backup_config(config_path: str | Path | None = None) -> BackupConfig:
    """Load backup configuration from a TOML file.

    Args:
        config_path: Path to the config file.  Defaults to the
            ``DB_BACKUP_CONFIG`` env var, then ``backup.toml`` in the
            current working directory.

    Returns:
        BackupConfig with profiles, backup settings and rate limits

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If config format is invalid
    """
    if config_path is None:
        config_path = os.environ.get(CONFIG_ENV_VAR) or Path.cwd() / DEFAULT_CONFIG_FILE
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(
            f"Backup config not found: {config_path}\n"
            f"Copy backup.toml.example to backup.toml and configure your profiles."
        )

    try:
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ValueError(f"Invalid TOML in {config_path.name}: {e}") from e

    try:
        return BackupConfig(
            profiles=data.get("profiles", {}),
            backup=data.get("backup", {}),
            rate_limits=data.get("rate_limits", {}),
        )
    except PydanticValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise ValueError(f"Invalid config in {config_path.name}: {problems}") from e
