"""CLI module for database backups and SQL exports.

Provides commands to snapshot the configured database into a JSON
archive, manage stored archives, and derive SQL scripts from them.

Usage:
    DB_PROFILE=local db-backup create nightly --description "before migration"
    db-backup list
    db-backup export backup-2026-01-02T03-04-05-000006Z --type data
    db-backup validate backup-2026-01-02T03-04-05-000006Z
    db-backup delete backup-2026-01-02T03-04-05-000006Z
    db-backup tables

Commands:
    create    - Snapshot every registered table into a new archive
    list      - List stored archives, newest first
    delete    - Delete a stored archive
    export    - Generate a SQL script (complete, structure or data)
    validate  - Check an archive and report orphaned references
    tables    - Show the table registry in dependency order
"""

import argparse
import asyncio
import os
import sys
from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from db_backup.backup.models import ExportType, Operator
from db_backup.backup.tables import DEFAULT_REGISTRY
from db_backup.config.loader import load_backup_config
from db_backup.config.models import BackupConfig
from db_backup.errors import BackupError
from db_backup.factory import ProfileNotFoundError, create_backup_service, get_adapter
from db_backup.log import configure_logging
from db_backup.service import BackupService

console = Console()

OPERATOR_ENV_VAR = "DB_BACKUP_OPERATOR"


# ============================================================================
# Helpers
# ============================================================================


def _load_config(args: argparse.Namespace) -> BackupConfig:
    """Load config; fall back to defaults when no file was asked for and none exists."""
    try:
        return load_backup_config(args.config)
    except FileNotFoundError:
        if args.config or os.environ.get("DB_BACKUP_CONFIG"):
            raise
        return BackupConfig()


def _operator(args: argparse.Namespace) -> Operator:
    return Operator(id=args.operator)


def _build_service(args: argparse.Namespace, config: BackupConfig, adapter=None) -> BackupService:
    return create_backup_service(adapter, config, directory=args.directory)


def _print_error(error: BaseException) -> None:
    if isinstance(error, BackupError):
        console.print(f"[bold red]x[/bold red] {error.code}: {escape(error.message)}")
        for detail in error.extra().get("details", []):
            console.print(f"    - {escape(str(detail))}")
    else:
        console.print(f"[bold red]x[/bold red] {escape(str(error))}")


def _format_size(size_bytes: int) -> str:
    size = float(size_bytes)
    for unit in ("B", "KB", "MB", "GB"):
        if size < 1024 or unit == "GB":
            return f"{size:.0f} {unit}" if unit == "B" else f"{size:.1f} {unit}"
        size /= 1024
    return f"{size_bytes} B"


# ============================================================================
# Async command implementations
# ============================================================================


async def _async_create(args: argparse.Namespace) -> int:
    """Async implementation for create command.

    Args:
        args: Parsed arguments with name, description and profile.

    Returns:
        0 on success, 1 on failure.
    """
    try:
        config = _load_config(args)
        adapter = get_adapter(profile_name=args.profile, config=config)
    except (ProfileNotFoundError, FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        return 1

    service = _build_service(args, config, adapter)
    console.print("Collecting tables...", style="dim")

    try:
        result = await service.create_backup(_operator(args), args.name, args.description)
    except BackupError as e:
        _print_error(e)
        return 1
    finally:
        await adapter.close()

    console.print()
    console.print(f"[bold green]v[/bold green] Backup created: [bold cyan]{result.id}[/bold cyan]")
    console.print(f"  Tables: {result.table_count}")
    console.print(f"  Records: {result.total_records}")
    console.print(f"  Size: {_format_size(result.size_bytes)}")
    console.print(f"  Duration: {result.duration_ms} ms")
    return 0


async def _async_export(args: argparse.Namespace) -> int:
    """Async implementation for export command.

    Writes the script to ``--output`` (``-`` for stdout) or to the
    suggested filename in the current directory.

    Returns:
        0 on success, 1 on failure.
    """
    try:
        config = _load_config(args)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        return 1

    service = _build_service(args, config)

    try:
        export = await service.export_sql(_operator(args), args.backup_id, args.type)
    except BackupError as e:
        _print_error(e)
        return 1

    if args.output == "-":
        sys.stdout.write(export.content)
        return 0

    output = Path(args.output) if args.output else Path(export.filename)
    output.write_text(export.content, encoding="utf-8")
    console.print(
        f"[bold green]v[/bold green] Wrote [cyan]{output}[/cyan] "
        f"({_format_size(export.size_bytes)})"
    )
    return 0


# ============================================================================
# Command handlers
# ============================================================================


def cmd_create(args: argparse.Namespace) -> int:
    """Snapshot the database into a new archive.

    Wraps the async implementation with ``asyncio.run()``.
    """
    return asyncio.run(_async_create(args))


def cmd_list(args: argparse.Namespace) -> int:
    """List stored archives, newest first.

    Reads only local files; no database calls.
    """
    try:
        service = _build_service(args, _load_config(args))
        summaries = service.list_backups(_operator(args))
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        return 1
    except BackupError as e:
        _print_error(e)
        return 1

    if not summaries:
        console.print("[yellow]No backups found.[/yellow]")
        return 0

    table = Table(title="Backups", show_header=True, header_style="bold")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Created")
    table.add_column("Tables", justify="right")
    table.add_column("Records", justify="right")
    table.add_column("Size", justify="right")

    for s in summaries:
        table.add_row(
            s.id,
            s.name,
            s.created_at.strftime("%Y-%m-%d %H:%M:%S"),
            str(s.table_count),
            str(s.total_records),
            _format_size(s.size_bytes),
        )

    console.print(table)
    return 0


def cmd_delete(args: argparse.Namespace) -> int:
    """Delete a stored archive."""
    if not args.yes:
        response = console.input(f"Delete [cyan]{args.backup_id}[/cyan]? " + escape("[y/N] "))
        if response.lower() not in ("y", "yes"):
            console.print("Cancelled.")
            return 0

    try:
        service = _build_service(args, _load_config(args))
        service.delete_backup(_operator(args), args.backup_id)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        return 1
    except BackupError as e:
        _print_error(e)
        return 1

    console.print(f"[bold green]v[/bold green] Deleted {args.backup_id}")
    return 0


def cmd_export(args: argparse.Namespace) -> int:
    """Generate a SQL script from a stored archive.

    Wraps the async implementation with ``asyncio.run()``.
    """
    return asyncio.run(_async_export(args))


def cmd_validate(args: argparse.Namespace) -> int:
    """Validate a stored archive.

    Returns:
        0 if valid (warnings allowed), 1 otherwise.
    """
    try:
        service = _build_service(args, _load_config(args))
        report = service.validate_backup(_operator(args), args.backup_id)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        return 1
    except BackupError as e:
        _print_error(e)
        return 1

    if report["valid"]:
        console.print(f"[bold green]v[/bold green] {args.backup_id} is valid")
    else:
        console.print(f"[bold red]x[/bold red] {args.backup_id} is invalid")
        for error in report["errors"]:
            console.print(f"    - {escape(error)}")

    if report["warnings"]:
        console.print(f"\n[yellow]Warnings ({len(report['warnings'])}):[/yellow]")
        for warning in report["warnings"][:20]:
            console.print(f"    - {escape(warning)}")
        if len(report["warnings"]) > 20:
            console.print(f"    ... and {len(report['warnings']) - 20} more")

    return 0 if report["valid"] else 1


def cmd_tables(args: argparse.Namespace) -> int:
    """Show the table registry in dependency order.

    Reads only the static registry; no database calls.
    """
    table = Table(title="Backup Tables", show_header=True, header_style="bold")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Table", style="cyan")
    table.add_column("Columns", justify="right")
    table.add_column("References")

    for i, table_def in enumerate(DEFAULT_REGISTRY.tables, start=1):
        table.add_row(
            str(i),
            table_def.name,
            str(len(table_def.columns)),
            ", ".join(sorted(table_def.dependencies())),
        )

    console.print(table)
    return 0


# ============================================================================
# Entry point
# ============================================================================


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="db-backup",
        description="Database backup archives and SQL exports",
    )

    parser.add_argument(
        "--config",
        default=None,
        help="Path to backup.toml (default: $DB_BACKUP_CONFIG or ./backup.toml)",
    )
    parser.add_argument(
        "--profile",
        default=None,
        help="Database profile from backup.toml (default: $DB_PROFILE)",
    )
    parser.add_argument(
        "--directory",
        default=None,
        help="Archive directory (overrides [backup].directory)",
    )
    parser.add_argument(
        "--operator",
        default=os.environ.get(OPERATOR_ENV_VAR, "cli"),
        help=f"Operator id recorded in archives and rate limits (default: ${OPERATOR_ENV_VAR} or 'cli')",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        help="Log level for stderr output (default: WARNING)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # create command
    p_create = subparsers.add_parser(
        "create",
        help="Snapshot every registered table into a new archive",
    )
    p_create.add_argument("name", help="Backup name (letters, digits, spaces, - and _)")
    p_create.add_argument(
        "--description",
        "-d",
        default=None,
        help="Optional description (max 500 characters)",
    )
    p_create.set_defaults(func=cmd_create)

    # list command
    p_list = subparsers.add_parser(
        "list",
        help="List stored archives",
    )
    p_list.set_defaults(func=cmd_list)

    # delete command
    p_delete = subparsers.add_parser(
        "delete",
        help="Delete a stored archive",
    )
    p_delete.add_argument("backup_id", help="Backup ID")
    p_delete.add_argument(
        "--yes",
        "-y",
        action="store_true",
        help="Skip confirmation prompt",
    )
    p_delete.set_defaults(func=cmd_delete)

    # export command
    p_export = subparsers.add_parser(
        "export",
        help="Generate a SQL script from an archive",
    )
    p_export.add_argument("backup_id", help="Backup ID")
    p_export.add_argument(
        "--type",
        "-t",
        default=ExportType.COMPLETE.value,
        help="Export type: complete, structure or data (default: complete)",
    )
    p_export.add_argument(
        "--output",
        "-o",
        default=None,
        help="Output file ('-' for stdout, default: suggested filename)",
    )
    p_export.set_defaults(func=cmd_export)

    # validate command
    p_validate = subparsers.add_parser(
        "validate",
        help="Validate an archive",
    )
    p_validate.add_argument("backup_id", help="Backup ID")
    p_validate.set_defaults(func=cmd_validate)

    # tables command
    p_tables = subparsers.add_parser(
        "tables",
        help="Show the table registry",
    )
    p_tables.set_defaults(func=cmd_tables)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point.

    Parses command line arguments and dispatches to appropriate handler.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level.upper())
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
