"""Archive models: metadata, archive document, export options, summaries.

An archive is a metadata block plus a data block mapping table name to
records.  The data dict's insertion order is the dependency order
(parents before children) and is preserved through save/load.

Usage:
    from db_backup.backup.models import Archive, BackupMetadata, ExportOptions, ExportType

    metadata = BackupMetadata.new(name="nightly", created_by="admin-1")
    archive = Archive(metadata=metadata, data={"categories": [{"id": "c1"}]})
    options = ExportOptions.for_type(ExportType.DATA)
"""

import re
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import StrEnum
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

FORMAT_VERSION = "1.0"
SUPPORTED_VERSIONS = frozenset({FORMAT_VERSION})
DATABASE_SCHEMA = "postgresql"

BACKUP_ID_PATTERN = re.compile(r"^backup-[\d\-TZ]+$")

# Values a record column may hold.  Anything else is rejected at export time.
Scalar = Union[None, bool, int, float, Decimal, str, datetime, date]
Record = dict[str, Any]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime | date) -> str:
    """Canonical ISO-8601 text for temporal values.

    Aware datetimes are normalized to UTC; naive datetimes and dates are
    rendered as-is.  The same text is written to archive files and SQL
    scripts, so a value exports identically before and after a save/load.
    """
    if isinstance(value, datetime) and value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.isoformat()


def generate_backup_id(now: datetime | None = None) -> str:
    """Build a filesystem-safe id from a UTC timestamp.

    Example:
        >>> generate_backup_id(datetime(2026, 1, 2, 3, 4, 5, 6, tzinfo=timezone.utc))
        'backup-2026-01-02T03-04-05-000006Z'
    """
    now = (now or utcnow()).astimezone(timezone.utc)
    return f"backup-{now.strftime('%Y-%m-%dT%H-%M-%S-%f')}Z"


def is_valid_backup_id(backup_id: str) -> bool:
    return bool(backup_id) and BACKUP_ID_PATTERN.match(backup_id) is not None


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class BackupMetadata(_CamelModel):
    """Immutable description of one archive, fixed at creation time."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    id: str
    name: str
    description: str = ""
    created_by: str = "system"
    created_at: datetime = Field(default_factory=utcnow)
    version: str | None = FORMAT_VERSION
    database_schema: str = DATABASE_SCHEMA
    table_counts: dict[str, int] = Field(default_factory=dict)

    @field_validator("created_at")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)

    @classmethod
    def new(
        cls,
        name: str,
        description: str | None = None,
        created_by: str | None = None,
        now: datetime | None = None,
    ) -> "BackupMetadata":
        """Create metadata for a new archive with a fresh id."""
        now = now or utcnow()
        return cls(
            id=generate_backup_id(now),
            name=name,
            description=description or "",
            created_by=created_by or "system",
            created_at=now,
        )


class Archive(BaseModel):
    """Metadata block plus data block (table name -> ordered records)."""

    metadata: BackupMetadata
    data: dict[str, list[Record]] = Field(default_factory=dict)

    @property
    def table_names(self) -> list[str]:
        return list(self.data)

    @property
    def table_count(self) -> int:
        return len(self.data)

    @property
    def total_records(self) -> int:
        return sum(len(rows) for rows in self.data.values())

    def table_counts(self) -> dict[str, int]:
        return {table: len(rows) for table, rows in self.data.items()}


class ExportType(StrEnum):
    COMPLETE = "complete"
    STRUCTURE = "structure"
    DATA = "data"

    @property
    def includes_structure(self) -> bool:
        return self in (ExportType.COMPLETE, ExportType.STRUCTURE)

    @property
    def includes_data(self) -> bool:
        return self in (ExportType.COMPLETE, ExportType.DATA)


class ExportOptions(BaseModel):
    """Options for SQL generation.

    ``include_drop_statements`` is forced on for data-only exports and
    ``include_constraints`` is forced off for structure-only exports.
    """

    export_type: ExportType = ExportType.COMPLETE
    include_drop_statements: bool = False
    include_constraints: bool = True
    batch_size: int = Field(default=1000, ge=1)

    @model_validator(mode="after")
    def _force_type_rules(self) -> "ExportOptions":
        if self.export_type is ExportType.DATA:
            self.include_drop_statements = True
        if self.export_type is ExportType.STRUCTURE:
            self.include_constraints = False
        return self

    @classmethod
    def for_type(cls, export_type: ExportType | str, batch_size: int = 1000) -> "ExportOptions":
        """Default options for an export type: drops only for data exports,
        constraints unless structure-only."""
        export_type = ExportType(export_type)
        return cls(
            export_type=export_type,
            include_drop_statements=export_type is ExportType.DATA,
            include_constraints=export_type is not ExportType.STRUCTURE,
            batch_size=batch_size,
        )


class BackupSummary(_CamelModel):
    """Listing entry for a stored archive."""

    id: str
    name: str
    description: str = ""
    created_at: datetime
    size_bytes: int
    table_count: int
    total_records: int


class BackupResult(BackupSummary):
    """Result of a successful create_backup."""

    duration_ms: int = 0


class SQLExport(BaseModel):
    """A generated SQL script ready to hand to the caller."""

    filename: str
    content: str
    content_type: str = "application/sql"

    @property
    def size_bytes(self) -> int:
        return len(self.content.encode("utf-8"))


class Operator(BaseModel):
    """The authenticated caller, as resolved by the outer HTTP layer."""

    id: str
    role: str = "admin"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


class CreateBackupRequest(BaseModel):
    """Caller input for create_backup."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=100, pattern=r"^[a-zA-Z0-9\s\-_]+$")
    description: str | None = Field(default=None, max_length=500)
