"""Structured operation logging.

All backup operations log through ``loguru``.  Context (operation name,
operator, duration, sizes) is bound onto the record so sinks that
serialize records keep it as structured fields.

Usage:
    from db_backup.log import log_operation

    log_operation("create_backup", {"operator": "u1", "duration_ms": 120})
    log_operation("create_backup", {"operator": "u1"}, error=exc)
"""

import sys
from typing import Any

from loguru import logger

from db_backup.errors import BackupError


def configure_logging(level: str = "INFO", serialize: bool = False) -> None:
    """Replace loguru's default sink with a stderr sink at ``level``.

    Args:
        level: Minimum level to emit.
        serialize: Emit JSON records instead of formatted text.
    """
    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        serialize=serialize,
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
            "<level>{level: <8}</level> | "
            "{extra[operation]} | {message}"
        ),
    )
    logger.configure(extra={"operation": "-"})


def log_operation(
    operation: str,
    details: dict[str, Any],
    error: BaseException | None = None,
) -> None:
    """Log a backup operation outcome with bound context.

    Args:
        operation: Operation name, e.g. ``"create_backup"``.
        details: Structured fields (operator, duration_ms, backup_id, ...).
        error: Failure to record.  When given, the record is logged at
            ERROR (WARNING for caller errors) with the error code.
    """
    bound = logger.bind(operation=operation, **details)

    if error is None:
        bound.info(f"{operation} succeeded")
        return

    if isinstance(error, BackupError):
        bound = bound.bind(error_code=error.code)
        if error.status_code < 500:
            bound.warning(f"{operation} rejected: {error.message}")
        else:
            bound.error(f"{operation} failed: {error.message}")
    else:
        bound.bind(error_code="INTERNAL_ERROR").error(
            f"{operation} failed: {type(error).__name__}: {error}"
        )
