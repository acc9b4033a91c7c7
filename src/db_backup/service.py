"""Backup service: the single entry point the outer layer calls.

Composes the rate limiter, snapshot collector, validator, store and SQL
dumper.  Caller-input and rate-limit checks run before any I/O.  Every
outcome is logged with operation, operator and duration; failures are
re-raised as typed ``BackupError`` subclasses (unexpected exceptions are
wrapped with the step they happened in).

Usage:
    from db_backup.service import BackupService

    service = BackupService(collector, store, RateLimiter(), DEFAULT_REGISTRY)
    result = await service.create_backup(operator, "nightly")
    export = await service.export_sql(operator, result.id, "data")
"""

import asyncio
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from db_backup.backup.collector import SnapshotCollector
from db_backup.backup.models import (
    Archive,
    BackupMetadata,
    BackupResult,
    BackupSummary,
    CreateBackupRequest,
    ExportOptions,
    ExportType,
    Operator,
    SQLExport,
    is_valid_backup_id,
)
from db_backup.backup.registry import TableRegistry
from db_backup.backup.store import ArchiveStore
from db_backup.backup.validator import (
    validate_backup_file,
    validate_for_sql_export,
    validate_structure,
)
from db_backup.errors import (
    BackupError,
    InvalidIdError,
    NotFoundError,
    UnauthorizedError,
    UnsupportedFormatError,
    ValidationError,
)
from db_backup.export.sql_dumper import SQLDumper
from db_backup.log import log_operation
from db_backup.rate_limit import CREATE_BACKUP, DOWNLOAD, RateLimiter


def export_filename(backup_id: str, export_type: ExportType | str) -> str:
    """Suggested download name: ``{id}.sql`` or ``{id}_{type}.sql``."""
    export_type = ExportType(export_type)
    if export_type is ExportType.COMPLETE:
        return f"{backup_id}.sql"
    return f"{backup_id}_{export_type.value}.sql"


class _Operation:
    """Per-call bookkeeping: current step, start time, log fields."""

    def __init__(self, name: str, start: float, details: dict[str, Any]) -> None:
        self.name = name
        self.start = start
        self.details = details
        self.step = "start"


class BackupService:
    """Create, list, delete and export backups on behalf of an operator.

    Args:
        collector: Reads every registered table.
        store: Archive persistence.
        rate_limiter: Shared per-process limiter.
        registry: Table registry (structure for exports, order checks).
        dumper: SQL generator; built from ``registry`` when omitted.
        sanitize: Redact sensitive fields when collecting.
        max_export_records: Ceiling on records in a SQL export.
        batch_size: Rows per INSERT statement.
        clock: Monotonic clock used for durations.
    """

    def __init__(
        self,
        collector: SnapshotCollector,
        store: ArchiveStore,
        rate_limiter: RateLimiter,
        registry: TableRegistry,
        dumper: SQLDumper | None = None,
        sanitize: bool = True,
        max_export_records: int | None = None,
        batch_size: int = 1000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.collector = collector
        self.store = store
        self.rate_limiter = rate_limiter
        self.registry = registry
        self.dumper = dumper or SQLDumper(registry)
        self.sanitize = sanitize
        self.max_export_records = max_export_records
        self.batch_size = batch_size
        self.clock = clock

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _elapsed_ms(self, op: _Operation) -> int:
        return int((self.clock() - op.start) * 1000)

    @contextmanager
    def _operation(
        self, op_name: str, operator: Operator | None, /, **details: Any
    ) -> Iterator[_Operation]:
        """Run an operation body, logging and typing any failure.

        ``BackupError`` propagates unchanged; anything else is wrapped in a
        ``BackupError`` naming the step that failed.
        """
        op = _Operation(op_name, self.clock(), {"operator": getattr(operator, "id", None), **details})
        try:
            yield op
        except BackupError as e:
            log_operation(op_name, {**op.details, "step": op.step, "duration_ms": self._elapsed_ms(op)}, error=e)
            raise
        except Exception as e:
            log_operation(op_name, {**op.details, "step": op.step, "duration_ms": self._elapsed_ms(op)}, error=e)
            raise BackupError(f"{op_name} failed during {op.step}: {type(e).__name__}") from e

    def _succeeded(self, op: _Operation, **fields: Any) -> int:
        duration_ms = self._elapsed_ms(op)
        log_operation(op.name, {**op.details, **fields, "duration_ms": duration_ms})
        return duration_ms

    @staticmethod
    def _authorize(operator: Operator | None) -> Operator:
        if operator is None or not operator.id:
            raise UnauthorizedError("Authentication required")
        if not operator.is_admin:
            raise UnauthorizedError("Admin access required")
        return operator

    @staticmethod
    def _check_id(backup_id: str) -> None:
        if not is_valid_backup_id(backup_id):
            raise InvalidIdError(f"Invalid backup ID: '{backup_id}'")

    def _require(self, backup_id: str) -> None:
        if not self.store.exists(backup_id):
            raise NotFoundError(f"Backup not found: {backup_id}")

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def create_backup(
        self,
        operator: Operator,
        name: str,
        description: str | None = None,
    ) -> BackupResult:
        """Snapshot every registered table and persist it as a new archive.

        Raises:
            UnauthorizedError: Operator is missing or not an admin.
            ValidationError: Bad name or description.
            RateLimitedError: Called again inside the cooldown.
            DataRetrievalError: A table read failed; nothing is saved.
            SizeLimitExceededError: Archive is over the size ceiling.
            BackupError: Any other failure, with the failing step.
        """
        with self._operation("create_backup", operator, name=name) as op:
            op.step = "authorize"
            operator = self._authorize(operator)

            op.step = "validate_input"
            try:
                request = CreateBackupRequest(name=name, description=description)
            except PydanticValidationError as e:
                raise ValidationError(
                    "Invalid backup request",
                    details=[f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()],
                ) from e

            op.step = "rate_limit"
            self.rate_limiter.acquire(operator.id, CREATE_BACKUP)

            op.step = "collect"
            data = await self.collector.collect(sanitize=self.sanitize)

            op.step = "validate_archive"
            metadata = BackupMetadata.new(
                name=request.name,
                description=request.description,
                created_by=operator.id,
            )
            archive = Archive(metadata=metadata, data=data)
            validate_structure(archive)
            op.details["backup_id"] = metadata.id

            op.step = "save"
            size = await asyncio.to_thread(self.store.save, archive)

        duration_ms = self._succeeded(
            op,
            size_bytes=size,
            table_count=archive.table_count,
            total_records=archive.total_records,
        )
        return BackupResult(
            id=metadata.id,
            name=metadata.name,
            description=metadata.description,
            created_at=metadata.created_at,
            size_bytes=size,
            table_count=archive.table_count,
            total_records=archive.total_records,
            duration_ms=duration_ms,
        )

    def list_backups(self, operator: Operator) -> list[BackupSummary]:
        """Summaries of every stored archive, newest first."""
        with self._operation("list_backups", operator) as op:
            self._authorize(operator)
            op.step = "list"
            summaries = self.store.list()

        self._succeeded(op, count=len(summaries))
        return summaries

    def get_backup(self, operator: Operator, backup_id: str) -> BackupSummary:
        """Summary of one archive.

        Raises:
            InvalidIdError: Malformed id.
            NotFoundError: No such archive.
        """
        with self._operation("get_backup", operator, backup_id=backup_id) as op:
            self._authorize(operator)
            self._check_id(backup_id)
            op.step = "read"
            self._require(backup_id)
            summary = self.store.summarize(self.store.path_for(backup_id))

        self._succeeded(op)
        return summary

    def delete_backup(self, operator: Operator, backup_id: str) -> None:
        """Remove an archive.  A second delete of the same id is a
        ``NotFoundError``, never a crash."""
        with self._operation("delete_backup", operator, backup_id=backup_id) as op:
            self._authorize(operator)
            self._check_id(backup_id)
            op.step = "delete"
            self.store.delete(backup_id)

        self._succeeded(op)

    async def export_sql(
        self,
        operator: Operator,
        backup_id: str,
        export_type: ExportType | str = ExportType.COMPLETE,
    ) -> SQLExport:
        """Generate a SQL script from a stored archive.

        Raises:
            UnauthorizedError: Operator is missing or not an admin.
            InvalidIdError: Malformed id.
            UnsupportedFormatError: Unknown export type.
            RateLimitedError: Called again inside the download cooldown.
            NotFoundError: No such archive.
            InvalidArchiveError: Archive fails SQL export validation.
            UnsupportedValueError: A record value cannot be rendered.
        """
        with self._operation(
            "export_sql", operator, backup_id=backup_id, export_type=str(export_type)
        ) as op:
            op.step = "authorize"
            operator = self._authorize(operator)

            op.step = "validate_input"
            self._check_id(backup_id)
            try:
                export_type = ExportType(export_type)
            except ValueError as e:
                supported = ", ".join(t.value for t in ExportType)
                raise UnsupportedFormatError(
                    f"Unsupported export type: '{export_type}' (supported: {supported})"
                ) from e

            op.step = "rate_limit"
            self.rate_limiter.acquire(operator.id, DOWNLOAD)

            op.step = "load"
            archive = await asyncio.to_thread(self.store.load, backup_id)

            op.step = "validate_archive"
            validate_for_sql_export(archive, self.registry, self.max_export_records)

            op.step = "generate"
            options = ExportOptions.for_type(export_type, batch_size=self.batch_size)
            content = self.dumper.generate(archive, options)

        export = SQLExport(filename=export_filename(backup_id, export_type), content=content)
        self._succeeded(op, size_bytes=export.size_bytes, total_records=archive.total_records)
        return export

    def validate_backup(self, operator: Operator, backup_id: str) -> dict:
        """Check a stored archive and report errors and orphan warnings.

        Returns:
            Dict with ``valid``, ``errors`` and ``warnings``.
        """
        with self._operation("validate_backup", operator, backup_id=backup_id) as op:
            self._authorize(operator)
            self._check_id(backup_id)
            op.step = "read"
            self._require(backup_id)
            report = validate_backup_file(self.store.path_for(backup_id), self.registry)

        self._succeeded(op, valid=report["valid"], warnings=len(report["warnings"]))
        return report
