"""Structural and semantic checks on archives before they are trusted.

``validate_structure`` guards every save; ``validate_for_sql_export``
additionally guarantees the SQL dumper can rely on the archive's table
order.  Both collect every problem and raise a single
``InvalidArchiveError``; nothing is silently corrected.

Usage:
    from db_backup.backup.validator import validate_for_sql_export

    validate_for_sql_export(archive, registry)   # raises InvalidArchiveError
"""

import json
from decimal import Decimal
from pathlib import Path
from typing import Any

from db_backup.backup.models import SUPPORTED_VERSIONS, Archive, is_valid_backup_id
from db_backup.backup.registry import TableRegistry
from db_backup.errors import InvalidArchiveError

REQUIRED_METADATA = ("id", "name", "createdAt", "version")


def _structure_errors(archive: Archive) -> list[str]:
    errors: list[str] = []
    metadata = archive.metadata

    if not metadata.id:
        errors.append("Missing metadata field: id")
    elif not is_valid_backup_id(metadata.id):
        errors.append(f"Invalid backup id format: '{metadata.id}'")

    if not metadata.name or not metadata.name.strip():
        errors.append("Missing metadata field: name")

    if archive.data is None:
        errors.append("Backup file missing required section: data")

    return errors


def validate_structure(archive: Archive) -> None:
    """Check id, name, and the presence of the data block.

    Raises:
        InvalidArchiveError: Listing every problem found.
    """
    errors = _structure_errors(archive)
    if errors:
        raise InvalidArchiveError(errors)


def validate_for_sql_export(
    archive: Archive,
    registry: TableRegistry,
    max_records: int | None = None,
) -> None:
    """Check that an archive can be turned into a SQL script.

    On top of ``validate_structure``:

    - the format marker is present and supported
    - every table is registered (structure comes from the registry)
    - every table referenced by a registry foreign key is present in the
      data block, even if empty, so emission order is always resolvable
    - the total record count is within ``max_records`` when given

    Raises:
        InvalidArchiveError: Listing every problem found.
    """
    errors = _structure_errors(archive)

    version = archive.metadata.version
    if not version:
        errors.append("Missing format marker: version")
    elif version not in SUPPORTED_VERSIONS:
        errors.append(
            f"Unsupported backup version '{version}' "
            f"(expected one of {', '.join(sorted(SUPPORTED_VERSIONS))})"
        )

    data = archive.data or {}
    for table in data:
        if table not in registry:
            errors.append(f"Unknown table in backup: {table}")

    for table in sorted(registry.referenced_tables()):
        if table not in data:
            errors.append(f"Missing referenced table: {table}")

    # parents must precede children in the data block
    position = {name: i for i, name in enumerate(data)}
    for name in data:
        table_def = registry.get(name)
        if table_def is None:
            continue
        for parent in sorted(table_def.dependencies()):
            if parent in position and position[parent] > position[name]:
                errors.append(f"Table '{name}' appears before its parent '{parent}'")

    if max_records is not None and archive.total_records > max_records:
        errors.append(
            f"Backup too large for SQL export ({archive.total_records} records, "
            f"limit {max_records})"
        )

    if errors:
        raise InvalidArchiveError(errors)


def validate_document(document: Any) -> None:
    """Check a parsed JSON document before it is turned into an ``Archive``.

    Raises:
        InvalidArchiveError: If the document is not an object with
            ``metadata`` and ``data`` sections, is missing required metadata
            fields, or has a table whose value is not a list of objects.
    """
    if not isinstance(document, dict):
        raise InvalidArchiveError(["Invalid backup file format"])

    errors: list[str] = []
    metadata = document.get("metadata")
    data = document.get("data")

    if not isinstance(metadata, dict):
        errors.append("Backup file missing required section: metadata")
    else:
        for field in REQUIRED_METADATA:
            if not metadata.get(field):
                errors.append(f"Missing metadata field: {field}")

    if not isinstance(data, dict):
        errors.append("Backup file missing required section: data")
    else:
        for table, rows in data.items():
            if not isinstance(rows, list):
                errors.append(f"Invalid table data for {table}: expected array")
            elif any(not isinstance(r, dict) for r in rows):
                errors.append(f"Invalid table data for {table}: expected array of objects")

    if errors:
        raise InvalidArchiveError(errors)


def validate_backup_file(backup_path: str | Path, registry: TableRegistry) -> dict:
    """Validate a backup file on disk and report errors and warnings.

    Warnings cover orphaned foreign key values (a child row pointing at a
    parent id that is not in the backup); they do not make the file
    invalid.

    Args:
        backup_path: Path to the archive JSON file.
        registry: Registry to validate against.

    Returns:
        Dict with ``valid`` (bool), ``errors`` (list[str]),
        and ``warnings`` (list[str]).
    """
    errors: list[str] = []
    warnings: list[str] = []

    try:
        with open(backup_path, "r", encoding="utf-8") as f:
            document = json.load(f, parse_float=Decimal)
    except FileNotFoundError:
        errors.append(f"Backup file not found: {backup_path}")
        return {"valid": False, "errors": errors, "warnings": warnings}
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        errors.append(f"Invalid JSON: {e}")
        return {"valid": False, "errors": errors, "warnings": warnings}

    try:
        validate_document(document)
        archive = Archive.model_validate(document)
        validate_for_sql_export(archive, registry)
    except InvalidArchiveError as e:
        errors.extend(e.errors)
        return {"valid": False, "errors": errors, "warnings": warnings}
    except ValueError as e:
        errors.append(f"Invalid backup document: {e}")
        return {"valid": False, "errors": errors, "warnings": warnings}

    for table_name, rows in archive.data.items():
        table_def = registry.get(table_name)
        if table_def is None:
            continue
        for fk in table_def.foreign_keys:
            parent_rows = archive.data.get(fk.table, [])
            parent_keys = {r.get(fk.references) for r in parent_rows}
            for row in rows:
                ref_val = row.get(fk.field)
                if ref_val is not None and ref_val not in parent_keys:
                    warnings.append(
                        f"Orphaned {table_name} '{row.get('id', 'unknown')}': "
                        f"{fk.field} not in backup"
                    )

    return {"valid": True, "errors": errors, "warnings": warnings}
