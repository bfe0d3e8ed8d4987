"""CLI for restoring the school database from weekly snapshots.

Usage:
    RESTORE_PROFILE=local snapshot-restore restore backup_week_2.json
    snapshot-restore restore backup_week_2.json --yes --json
    snapshot-restore restore backup_week_2.json --resume
    snapshot-restore preview backup_week_2.json
    snapshot-restore logs --limit 20
    snapshot-restore order
    snapshot-restore profiles

Commands:
    restore   - Replace all data with the contents of a snapshot
    preview   - Show snapshot metadata and per-table row counts
    logs      - Show recent backup/restore audit records
    order     - Show the dependency-derived insert and delete orders
    profiles  - List available profiles
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.prompt import Confirm
from rich.table import Table

from snapshot_restore.adapters.base import DatabaseClient
from snapshot_restore.config.loader import load_restore_config
from snapshot_restore.factory import ProfileNotFoundError, build_orchestrator
from snapshot_restore.restore.catalog import SCHOOL_SCHEMA, topological_order
from snapshot_restore.restore.errors import (
    InvalidSnapshotNameError,
    RestoreInProgressError,
    SnapshotDownloadError,
    SnapshotParseError,
)
from snapshot_restore.restore.models import ProgressEvent
from snapshot_restore.restore.orchestrator import RestoreOrchestrator
from snapshot_restore.restore.progress import ProgressReporter, encode_event

console = Console()
err_console = Console(stderr=True)


# ============================================================================
# Helpers
# ============================================================================


def _open(args: argparse.Namespace) -> tuple[RestoreOrchestrator, DatabaseClient] | None:
    """Build the orchestrator for the selected profile, printing config errors."""
    config_path = Path(args.config) if getattr(args, "config", None) else None
    try:
        return build_orchestrator(
            profile_name=getattr(args, "profile", None),
            env_prefix=getattr(args, "env_prefix", ""),
            config_path=config_path,
        )
    except ProfileNotFoundError as e:
        err_console.print(f"[yellow]{escape(str(e))}[/yellow]")
    except (FileNotFoundError, ValueError, ImportError) as e:
        err_console.print(f"[red]Error: {escape(str(e))}[/red]")
    return None


def _render_event(event: ProgressEvent) -> None:
    """Print one progress event as a human-readable line."""
    if event.phase == "download":
        if event.status == "in_progress":
            console.print(event.message or "Downloading snapshot...", style="dim")
        else:
            meta = event.metadata
            created = meta.created_at if meta and meta.created_at else "unknown date"
            rows = f"{meta.total_rows:,} rows" if meta and meta.total_rows is not None else "rows unknown"
            console.print(f"[bold green]v[/bold green] Snapshot downloaded ({created}, {rows})")

    elif event.phase == "safety_backup":
        if event.status == "in_progress":
            console.print(event.message or "Writing safety backup...", style="dim")
        elif event.status == "warning":
            console.print(f"[yellow]! Safety backup skipped: {escape(event.error or '')}[/yellow]")
        else:
            console.print(f"[bold green]v[/bold green] {event.message or 'Safety backup written'}")

    elif event.phase == "delete":
        if event.status == "in_progress":
            return
        if event.table is None:
            console.print(f"[dim]{event.message}[/dim]")
        elif event.status == "error":
            console.print(f"  [red]x delete {event.table}: {escape(event.error or '')}[/red]")
        else:
            deleted = (event.counts or {}).get("deleted", 0)
            console.print(f"  [dim]{event.progress}/{event.total}[/dim] deleted {event.table} ({deleted:,})")

    elif event.phase == "insert":
        if event.status == "in_progress":
            return
        inserted = (event.counts or {}).get("inserted", 0)
        if event.status == "warning":
            console.print(f"  [yellow]! insert {event.table}: {inserted:,} rows, with errors[/yellow]")
            for error in event.errors or []:
                console.print(f"      [yellow]{escape(error)}[/yellow]")
        else:
            note = f" [dim]({event.message})[/dim]" if event.message else ""
            console.print(
                f"  [dim]{event.progress}/{event.total}[/dim] inserted {event.table} ({inserted:,}){note}"
            )

    elif event.phase == "complete":
        console.print()
        if event.status == "success":
            console.print(f"[bold green]v {event.message}[/bold green]")
        else:
            console.print(f"[bold yellow]! {event.message}[/bold yellow]")
            for error in event.errors or []:
                console.print(f"  [yellow]{escape(error)}[/yellow]")
        console.print(f"  Duration: {event.duration_ms or 0:,} ms", style="dim")

    elif event.phase == "error":
        console.print()
        console.print(f"[bold red]x Restore failed:[/bold red] {escape(event.error or '')}")


async def _print_json(event: ProgressEvent) -> None:
    sys.stdout.write(encode_event(event).decode("utf-8"))
    sys.stdout.flush()


async def _print_rich(event: ProgressEvent) -> None:
    _render_event(event)


# ============================================================================
# Async command implementations
# ============================================================================


async def _async_restore(args: argparse.Namespace) -> int:
    """Async implementation for restore command.

    Args:
        args: Parsed arguments with file, yes, resume, json and profile options.

    Returns:
        0 when the restore completed cleanly, 1 on partial or failed restores.
    """
    opened = _open(args)
    if opened is None:
        return 1
    orchestrator, adapter = opened

    try:
        try:
            orchestrator.validate_name(args.file)
        except InvalidSnapshotNameError as e:
            err_console.print(f"[red]Error: {escape(str(e))}[/red]")
            return 1

        if not args.yes:
            err_console.print(
                f"[bold red]This replaces ALL data in {len(orchestrator.insert_order)} tables "
                f"with the contents of {args.file}.[/bold red]"
            )
            if not Confirm.ask("Continue?", default=False, console=err_console):
                err_console.print("Aborted.", style="dim")
                return 1

        reporter = ProgressReporter(sink=_print_json if args.json else _print_rich)
        try:
            summary = await orchestrator.run(args.file, reporter=reporter, resume=args.resume)
        except RestoreInProgressError as e:
            err_console.print(f"[red]Error: {escape(str(e))}[/red]")
            return 1

        return 0 if summary.status == "restored" else 1
    finally:
        await adapter.close()


async def _async_preview(args: argparse.Namespace) -> int:
    """Async implementation for preview command."""
    opened = _open(args)
    if opened is None:
        return 1
    orchestrator, adapter = opened

    try:
        preview = await orchestrator.preview(args.file)
    except (InvalidSnapshotNameError, SnapshotDownloadError, SnapshotParseError) as e:
        err_console.print(f"[red]Error: {escape(str(e))}[/red]")
        return 1
    finally:
        await adapter.close()

    meta = preview.metadata
    info = Table(title=f"Snapshot {preview.file_name}", show_header=False)
    info.add_column("Key", style="dim")
    info.add_column("Value")
    info.add_row("Created", meta.created_at or "-")
    info.add_row("Week", str(meta.week_number) if meta.week_number is not None else "-")
    info.add_row("Type", meta.type or "-")
    info.add_row("Tables", str(meta.tables_count if meta.tables_count is not None else len(preview.tables)))
    info.add_row("Rows", f"{meta.total_rows:,}" if meta.total_rows is not None else "-")
    info.add_row("Size", f"{preview.file_size_bytes:,} bytes")
    console.print(info)

    counts = Table(title="Rows per table", show_header=True, header_style="bold")
    counts.add_column("Table", style="dim")
    counts.add_column("Rows", justify="right")
    for table in orchestrator.insert_order:
        count = preview.tables.get(table, 0)
        counts.add_row(table, f"{count:,}" if count else "-")
    console.print(counts)
    return 0


async def _async_logs(args: argparse.Namespace) -> int:
    """Async implementation for logs command."""
    opened = _open(args)
    if opened is None:
        return 1
    orchestrator, adapter = opened

    try:
        records = await orchestrator.audit.recent(limit=args.limit)
    except Exception as e:
        err_console.print(f"[red]Error reading audit log: {escape(str(e))}[/red]")
        return 1
    finally:
        await adapter.close()

    if not records:
        console.print("[dim]No audit records yet.[/dim]")
        return 0

    status_styles = {"success": "green", "restored": "green", "partial": "yellow", "failed": "red"}

    table = Table(title="Backup Logs", show_header=True, header_style="bold")
    table.add_column("When", style="dim")
    table.add_column("File")
    table.add_column("Status")
    table.add_column("Tables", justify="right")
    table.add_column("Rows", justify="right")
    table.add_column("ms", justify="right")
    table.add_column("Error", overflow="fold")

    for record in records:
        status = str(record.get("status", ""))
        style = status_styles.get(status, "")
        table.add_row(
            str(record.get("created_at", "")),
            str(record.get("file_name", "")),
            f"[{style}]{status}[/{style}]" if style else status,
            str(record.get("tables_count") or 0),
            f"{record.get('total_rows') or 0:,}",
            str(record.get("duration_ms") or 0),
            record.get("error_message") or "",
        )

    console.print(table)
    return 0


# ============================================================================
# Sync command wrappers (cmd_order, cmd_profiles need no database)
# ============================================================================


def cmd_restore(args: argparse.Namespace) -> int:
    """Restore a snapshot.

    Wraps the async implementation with ``asyncio.run()``.
    """
    return asyncio.run(_async_restore(args))


def cmd_preview(args: argparse.Namespace) -> int:
    """Preview a snapshot.

    Wraps the async implementation with ``asyncio.run()``.
    """
    return asyncio.run(_async_preview(args))


def cmd_logs(args: argparse.Namespace) -> int:
    """Show recent audit records.

    Wraps the async implementation with ``asyncio.run()``.
    """
    return asyncio.run(_async_logs(args))


def cmd_order(args: argparse.Namespace) -> int:
    """Show the insert and delete orders derived from the table catalog.

    Reads only the built-in catalog -- no database calls.

    Returns:
        0 on success, 1 if the catalog has a foreign-key cycle.
    """
    try:
        insert_order = topological_order(SCHOOL_SCHEMA)
    except ValueError as e:
        err_console.print(f"[red]Error: {escape(str(e))}[/red]")
        return 1
    delete_order = list(reversed(insert_order))

    table = Table(title="Restore Order", show_header=True, header_style="bold")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Insert (parents first)")
    table.add_column("Delete (children first)")
    for i, (ins, dele) in enumerate(zip(insert_order, delete_order), start=1):
        table.add_row(str(i), ins, dele)

    console.print(table)
    return 0


def cmd_profiles(args: argparse.Namespace) -> int:
    """List available profiles from restore.toml.

    Reads only local TOML config -- no database calls.

    Returns:
        0 on success, 1 if restore.toml is missing or invalid.
    """
    config_path = Path(args.config) if getattr(args, "config", None) else None
    try:
        config = load_restore_config(config_path)
    except (FileNotFoundError, ValueError) as e:
        err_console.print(f"[red]Error: {escape(str(e))}[/red]")
        return 1

    table = Table(title="Restore Profiles", show_header=True, header_style="bold")
    table.add_column("Profile")
    table.add_column("Provider")
    table.add_column("Description")

    for name, profile in config.profiles.items():
        table.add_row(name, profile.provider, profile.description or "")

    console.print(table)
    return 0


# ============================================================================
# Main entry point
# ============================================================================


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with all subcommands."""
    parser = argparse.ArgumentParser(
        prog="snapshot-restore",
        description="Restore the school database from weekly snapshots",
    )

    parser.add_argument(
        "--env-prefix",
        default="",
        help=(
            "Prefix for environment variable lookup "
            "(e.g., --env-prefix APP_ reads APP_RESTORE_PROFILE)"
        ),
    )
    parser.add_argument(
        "--profile",
        "-p",
        default=None,
        help="Profile from restore.toml (default: RESTORE_PROFILE or the only profile)",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to restore.toml (default: ./restore.toml)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Log engine details to stderr",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # restore command
    p_restore = subparsers.add_parser(
        "restore",
        help="Replace all data with the contents of a snapshot",
    )
    p_restore.add_argument("file", help="Snapshot name, e.g. backup_week_1.json")
    p_restore.add_argument(
        "--yes",
        "-y",
        action="store_true",
        help="Skip the confirmation prompt",
    )
    p_restore.add_argument(
        "--resume",
        action="store_true",
        help="Continue an interrupted restore of the same snapshot",
    )
    p_restore.add_argument(
        "--json",
        action="store_true",
        help="Write progress events as newline-delimited JSON",
    )
    p_restore.set_defaults(func=cmd_restore)

    # preview command
    p_preview = subparsers.add_parser(
        "preview",
        help="Show snapshot metadata and row counts",
    )
    p_preview.add_argument("file", help="Snapshot name, e.g. backup_week_1.json")
    p_preview.set_defaults(func=cmd_preview)

    # logs command
    p_logs = subparsers.add_parser(
        "logs",
        help="Show recent backup/restore audit records",
    )
    p_logs.add_argument(
        "--limit",
        "-n",
        type=int,
        default=50,
        help="Number of records to show (default: 50)",
    )
    p_logs.set_defaults(func=cmd_logs)

    # order command
    p_order = subparsers.add_parser(
        "order",
        help="Show the insert and delete orders",
    )
    p_order.set_defaults(func=cmd_order)

    # profiles command
    p_profiles = subparsers.add_parser(
        "profiles",
        help="List available profiles",
    )
    p_profiles.set_defaults(func=cmd_profiles)

    return parser


def main() -> int:
    """Main CLI entry point.

    Parses command line arguments and dispatches to appropriate handler.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    parser = build_parser()
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
