"""Error taxonomy for backup and export operations.

Every error carries a stable machine-readable ``code``, an HTTP-equivalent
``status_code`` and a human-readable message.  ``to_dict()`` renders the
response body; internal detail (tracebacks, wrapped exceptions) never
appears in it.

Usage:
    from db_backup.errors import NotFoundError, format_error

    try:
        store.load("backup-2026-01-01T00-00-00-000000Z")
    except NotFoundError as e:
        body, status = format_error(e)
"""

from typing import Any


class BackupError(Exception):
    """Base class for all backup subsystem errors."""

    code: str = "BACKUP_ERROR"
    status_code: int = 500

    def __init__(self, message: str, code: str | None = None, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code

    def extra(self) -> dict[str, Any]:
        """Additional public fields included in the response body."""
        return {}

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.message, "code": self.code, **self.extra()}


class UnauthorizedError(BackupError):
    """Caller is not an authenticated admin."""

    code = "UNAUTHORIZED"
    status_code = 401


class ValidationError(BackupError):
    """Bad caller input (name, description, id, export type)."""

    code = "VALIDATION_ERROR"
    status_code = 400

    def __init__(self, message: str, details: list[str] | None = None) -> None:
        super().__init__(message)
        self.details = details or []

    def extra(self) -> dict[str, Any]:
        return {"details": self.details} if self.details else {}


class InvalidIdError(ValidationError):
    """Backup id does not match the filesystem-safe id pattern."""

    code = "INVALID_ID"


class UnsupportedFormatError(ValidationError):
    """Requested export type or download format is not supported."""

    code = "UNSUPPORTED_FORMAT"


class RateLimitedError(BackupError):
    """Operation attempted inside its cooldown window."""

    code = "RATE_LIMITED"
    status_code = 429

    def __init__(self, operation: str, retry_after: int) -> None:
        super().__init__(
            f"Rate limit exceeded: please wait {retry_after} seconds before "
            f"'{operation}' again"
        )
        self.operation = operation
        self.retry_after = retry_after

    def extra(self) -> dict[str, Any]:
        return {"retryAfter": self.retry_after}


class NotFoundError(BackupError):
    """Referenced archive does not exist."""

    code = "NOT_FOUND"
    status_code = 404


class SizeLimitExceededError(BackupError):
    """Serialized archive is larger than the configured ceiling."""

    code = "SIZE_LIMIT_EXCEEDED"
    status_code = 413

    def __init__(self, size_bytes: int, limit_bytes: int) -> None:
        super().__init__(
            f"Backup size {size_bytes} bytes exceeds limit of {limit_bytes} bytes"
        )
        self.size_bytes = size_bytes
        self.limit_bytes = limit_bytes

    def extra(self) -> dict[str, Any]:
        return {"limitBytes": self.limit_bytes}


class DataRetrievalError(BackupError):
    """A table read or a value-escaping step failed."""

    code = "DATA_RETRIEVAL_ERROR"
    status_code = 500

    def __init__(self, message: str, table: str | None = None, column: str | None = None) -> None:
        super().__init__(message)
        self.table = table
        self.column = column

    def extra(self) -> dict[str, Any]:
        fields: dict[str, Any] = {}
        if self.table is not None:
            fields["table"] = self.table
        if self.column is not None:
            fields["column"] = self.column
        return fields


class UnsupportedValueError(DataRetrievalError):
    """A record value is outside the scalar union and cannot be escaped."""

    code = "UNSUPPORTED_VALUE"

    def __init__(self, table: str, column: str, value: Any) -> None:
        super().__init__(
            f"Cannot export value of type {type(value).__name__} "
            f"in {table}.{column}",
            table=table,
            column=column,
        )


class InvalidArchiveError(BackupError):
    """Archive failed structural or semantic validation."""

    code = "INVALID_ARCHIVE"
    status_code = 400

    def __init__(self, errors: list[str]) -> None:
        super().__init__(f"Invalid backup archive: {'; '.join(errors)}")
        self.errors = list(errors)

    def extra(self) -> dict[str, Any]:
        return {"details": self.errors}


class StorageError(BackupError):
    """The storage medium failed a read, write, list or delete."""

    code = "STORAGE_ERROR"
    status_code = 500


def format_error(error: BaseException) -> tuple[dict[str, Any], int]:
    """Map any exception to a response body and status code.

    Unknown exceptions become a generic ``INTERNAL_ERROR`` so nothing
    internal leaks to the caller.

    Returns:
        Tuple of ``(body, status_code)``.

    Example:
        >>> format_error(NotFoundError("Backup not found"))
        ({'error': 'Backup not found', 'code': 'NOT_FOUND'}, 404)
        >>> format_error(RuntimeError("boom"))
        ({'error': 'An unexpected error occurred', 'code': 'INTERNAL_ERROR'}, 500)
    """
    if isinstance(error, BackupError):
        return error.to_dict(), error.status_code
    return {"error": "An unexpected error occurred", "code": "INTERNAL_ERROR"}, 500
