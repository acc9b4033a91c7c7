"""Archive persistence on a directory of JSON files.

One file per archive, named ``<id>.json``.  The file is a JSON object
whose second line holds the compact metadata block, followed by the data
block, so listing reads only the head of each file.  Saves are written to
a hidden temporary file in the same directory and renamed into place, so
``list``/``load`` never observe a partial file.

Usage:
    from db_backup.backup.store import ArchiveStore

    store = ArchiveStore("backups", max_bytes=500 * 1024 * 1024)
    size = store.save(archive)
    archive = store.load(archive.metadata.id)
    for summary in store.list():
        print(summary.id, summary.size_bytes)
"""

import json
import os
import tempfile
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Any

from loguru import logger
from pydantic import ValidationError as PydanticValidationError

from db_backup.backup.models import (
    Archive,
    BackupMetadata,
    BackupSummary,
    format_timestamp,
    is_valid_backup_id,
)
from db_backup.backup.validator import validate_document
from db_backup.errors import (
    InvalidArchiveError,
    InvalidIdError,
    NotFoundError,
    SizeLimitExceededError,
    StorageError,
)

ARCHIVE_SUFFIX = ".json"
DEFAULT_MAX_BYTES = 500 * 1024 * 1024

_METADATA_PREFIX = '"metadata": '


def _encode_value(value: Any) -> Any:
    """``json`` fallback for values outside plain JSON types."""
    if isinstance(value, (datetime, date)):
        return format_timestamp(value)
    if isinstance(value, Decimal):
        if not value.is_finite():
            return float(value)
        if value == value.to_integral_value():
            return int(value)
        # Decimals a float cannot carry exactly are written as text.
        if Decimal(repr(float(value))) == value:
            return float(value)
        return str(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def serialize_archive(archive: Archive) -> bytes:
    """Render an archive as the on-disk document.

    The metadata block (with per-table record counts) is written on its
    own line directly after the opening brace.
    """
    metadata = archive.metadata.model_copy(update={"table_counts": archive.table_counts()})
    metadata_json = json.dumps(
        metadata.model_dump(mode="python", by_alias=True),
        default=_encode_value,
        ensure_ascii=False,
    )
    data_json = json.dumps(archive.data, indent=2, default=_encode_value, ensure_ascii=False)
    text = f'{{\n{_METADATA_PREFIX}{metadata_json},\n"data": {data_json}\n}}\n'
    return text.encode("utf-8")


def deserialize_archive(content: bytes | str) -> Archive:
    """Parse an on-disk document into an ``Archive``.

    Raises:
        InvalidArchiveError: If the content is not valid JSON or does not
            have the archive shape.
    """
    try:
        document = json.loads(content, parse_float=Decimal)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise InvalidArchiveError([f"Invalid JSON: {e}"]) from e

    validate_document(document)
    try:
        return Archive.model_validate(document)
    except PydanticValidationError as e:
        raise InvalidArchiveError([f"Invalid backup document: {e.error_count()} field errors"]) from e


class ArchiveStore:
    """Save, load, list and delete archives in ``directory``.

    The directory is created lazily on the first write.

    Args:
        directory: Directory holding archive files.
        max_bytes: Hard ceiling on the serialized archive size.
    """

    def __init__(self, directory: str | Path, max_bytes: int = DEFAULT_MAX_BYTES) -> None:
        self.directory = Path(directory)
        self.max_bytes = max_bytes

    def path_for(self, backup_id: str) -> Path:
        """Resolve the file path for ``backup_id``.

        Raises:
            InvalidIdError: If the id does not match the id pattern (which
                also rules out path traversal).
        """
        if not is_valid_backup_id(backup_id):
            raise InvalidIdError(f"Invalid backup ID: '{backup_id}'")
        return self.directory / f"{backup_id}{ARCHIVE_SUFFIX}"

    def exists(self, backup_id: str) -> bool:
        return self.path_for(backup_id).is_file()

    def save(self, archive: Archive) -> int:
        """Persist ``archive`` and return its size in bytes.

        The archive is serialized in memory first; nothing touches the
        directory if it is over the ceiling.

        Raises:
            SizeLimitExceededError: Serialized size exceeds ``max_bytes``.
            StorageError: An archive with the same id already exists, or
                the write failed.
        """
        path = self.path_for(archive.metadata.id)
        content = serialize_archive(archive)
        size = len(content)

        if size > self.max_bytes:
            raise SizeLimitExceededError(size, self.max_bytes)

        if path.exists():
            raise StorageError(f"Backup already exists: {archive.metadata.id}")

        tmp_name: str | None = None
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "wb",
                dir=self.directory,
                prefix=f".{archive.metadata.id}.",
                suffix=".tmp",
                delete=False,
            ) as tmp:
                tmp_name = tmp.name
                tmp.write(content)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.replace(tmp_name, path)
            tmp_name = None
        except OSError as e:
            raise StorageError(f"Failed to write backup {archive.metadata.id}: {e.strerror or e}") from e
        finally:
            if tmp_name is not None:
                Path(tmp_name).unlink(missing_ok=True)

        return size

    def load(self, backup_id: str) -> Archive:
        """Read an archive back.

        Raises:
            InvalidIdError: Malformed id.
            NotFoundError: No archive with this id.
            InvalidArchiveError: The file is not a readable archive.
        """
        path = self.path_for(backup_id)
        try:
            content = path.read_bytes()
        except FileNotFoundError as e:
            raise NotFoundError(f"Backup not found: {backup_id}") from e
        except OSError as e:
            raise StorageError(f"Failed to read backup {backup_id}: {e.strerror or e}") from e
        return deserialize_archive(content)

    def delete(self, backup_id: str) -> None:
        """Remove an archive.

        Raises:
            InvalidIdError: Malformed id.
            NotFoundError: No archive with this id (also on a repeated delete).
        """
        path = self.path_for(backup_id)
        try:
            path.unlink()
        except FileNotFoundError as e:
            raise NotFoundError(f"Backup not found: {backup_id}") from e
        except OSError as e:
            raise StorageError(f"Failed to delete backup {backup_id}: {e.strerror or e}") from e

    def _read_metadata(self, path: Path) -> tuple[BackupMetadata, dict[str, int]]:
        """Read metadata and per-table counts, from the head when possible."""
        try:
            with open(path, "r", encoding="utf-8") as f:
                first = f.readline()
                second = f.readline()
        except UnicodeDecodeError as e:
            raise InvalidArchiveError([f"Not UTF-8 text: {e}"]) from e

        if first.strip() == "{" and second.startswith(_METADATA_PREFIX):
            try:
                block = json.loads(second[len(_METADATA_PREFIX):].rstrip().rstrip(","))
                metadata = BackupMetadata.model_validate(block)
                if "tableCounts" in block:
                    return metadata, dict(metadata.table_counts)
            except (json.JSONDecodeError, PydanticValidationError):
                pass

        # Files written elsewhere: fall back to a full parse.
        archive = deserialize_archive(path.read_bytes())
        return archive.metadata, archive.table_counts()

    def summarize(self, path: Path) -> BackupSummary:
        metadata, counts = self._read_metadata(path)
        return BackupSummary(
            id=path.stem,
            name=metadata.name or path.stem,
            description=metadata.description,
            created_at=metadata.created_at,
            size_bytes=path.stat().st_size,
            table_count=len(counts),
            total_records=sum(counts.values()),
        )

    def list(self) -> list[BackupSummary]:
        """Summaries of every readable archive, newest first.

        Unreadable files are skipped with a warning.
        """
        if not self.directory.is_dir():
            return []

        summaries: list[BackupSummary] = []
        for path in self.directory.iterdir():
            if path.name.startswith(".") or path.suffix != ARCHIVE_SUFFIX or not path.is_file():
                continue
            try:
                summaries.append(self.summarize(path))
            except (OSError, InvalidArchiveError, PydanticValidationError) as e:
                logger.bind(operation="list_backups", file=path.name).warning(
                    f"Skipping unreadable backup file: {e}"
                )

        summaries.sort(key=lambda s: s.created_at, reverse=True)
        return summaries
