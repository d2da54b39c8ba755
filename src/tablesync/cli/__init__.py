"""CLI module for MySQL table synchronization.

Provides commands to synchronize tables against a schema file, preview
drift, and find or remove orphaned tables.

Usage:
    MYSQL_CONNECTION_STRING=mysql://root@localhost/game tablesync sync --schemas schemas.toml
    tablesync sync --schemas schemas.toml --yes
    tablesync diff --schemas schemas.toml
    tablesync scan --schemas schemas.toml
    tablesync cleanup --schemas schemas.toml --days 14

Commands:
    sync     - Create missing tables and apply (--yes) or skip drift migrations
    diff     - Show drift between the schema file and the live database
    scan     - List tables with no schema in the schema file
    cleanup  - Drop tables orphaned for at least --days days
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from tablesync.config.loader import load_db_config, load_schema_file
from tablesync.database import Database

console = Console()


# ============================================================================
# Setup helpers
# ============================================================================


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
    )


def _open_database(args: argparse.Namespace) -> Database:
    """Build a ``Database`` from ``--config`` and ``--schemas``.

    Raises:
        FileNotFoundError: If an explicit config file or the schema file is
            missing.
        ValueError: If either file is invalid.
    """
    config_path = Path(args.config) if args.config else None
    config = load_db_config(config_path)
    core, tables = load_schema_file(Path(args.schemas))

    db = Database(config, core_schemas=core)
    for table, schema in tables.items():
        db.register_schema(table, schema)
    return db


def _print_result(result) -> None:
    if result.total == 0:
        console.print("[dim]No SQL statements to execute.[/dim]")
        return
    style = "green" if not result.failed else "yellow"
    console.print(
        f"[{style}]Migrations complete: "
        f"{result.succeeded}/{result.total} succeeded[/{style}]"
    )
    for sql in result.failed_statements:
        console.print(f"  [red]x[/red] {sql}")


# ============================================================================
# Async command implementations
# ============================================================================


async def _async_sync(args: argparse.Namespace) -> int:
    """Async implementation for sync command.

    Runs the full startup sequence.  When drift is found the pending
    migrations are printed and applied only with ``--yes``.

    Args:
        args: Parsed arguments with schemas, yes, config.

    Returns:
        0 on success, 1 on failure.
    """
    try:
        db = _open_database(args)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    try:
        init = asyncio.create_task(db.initialize())
        opened = asyncio.create_task(db.gate.opened.wait())
        await asyncio.wait({init, opened}, return_when=asyncio.FIRST_COMPLETED)

        if opened.done() and not init.done():
            console.print(db.gate.format_summary())
            if args.yes:
                _print_result(await db.gate.accept())
            elif args.no:
                db.gate.reject()
                console.print("\n[dim]Migrations skipped.[/dim]")
            else:
                db.gate.reject()
                console.print(
                    "\n[dim]Migrations skipped. To apply them, add[/dim] "
                    "[cyan]--yes[/cyan]"
                )
        opened.cancel()

        if not await init:
            console.print("[bold red]x[/bold red] Database initialization failed")
            return 1

        synced = len(db.schemas) - len(db.failed_tables)
        console.print(
            f"[bold green]v[/bold green] {synced} table(s) synchronized"
        )
        if db.failed_tables:
            for name in db.failed_tables:
                console.print(f"  [red]x[/red] {name}")
            console.print(
                f"[bold red]x[/bold red] {len(db.failed_tables)} table(s) failed"
            )
            return 1
        return 0
    finally:
        await db.close()


async def _async_diff(args: argparse.Namespace) -> int:
    """Async implementation for diff command.

    Read-only: nothing is created or altered.

    Returns:
        0 if every table exists and matches, 1 otherwise.
    """
    try:
        db = _open_database(args)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    try:
        if not await db.check_connection():
            console.print("[red]Error: no database connection[/red]")
            return 1

        table = Table(title="Schema Drift", show_header=True, header_style="bold")
        table.add_column("Table")
        table.add_column("Status")
        table.add_column("Add")
        table.add_column("Modify")
        table.add_column("Extra (kept)")

        clean = True
        for name in db.schemas.tables():
            if not await db.synchronizer.introspector.table_exists(name):
                clean = False
                table.add_row(name, "[yellow]missing[/yellow]", "", "", "")
                continue

            diff = await db.synchronizer.diff_table(name)
            if diff is None or not diff.has_changes:
                table.add_row(name, "[green]up to date[/green]", "", "", "")
                continue

            clean = False
            table.add_row(
                name,
                "[yellow]drift[/yellow]",
                ", ".join(diff.adds),
                ", ".join(diff.modifies),
                ", ".join(diff.drops),
            )

        console.print(table)
        return 0 if clean else 1
    finally:
        await db.close()


async def _async_scan(args: argparse.Namespace) -> int:
    """Async implementation for scan command."""
    try:
        db = _open_database(args)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    try:
        if not await db.check_connection():
            console.print("[red]Error: no database connection[/red]")
            return 1

        orphans = await db.scanner.scan()
        if not orphans:
            console.print("[bold green]v[/bold green] No orphaned tables found")
            return 0

        table = Table(title="Orphaned Tables", show_header=True, header_style="bold")
        table.add_column("Table")
        table.add_column("Orphaned since")
        table.add_column("Days", justify="right")
        for orphan in orphans:
            table.add_row(
                orphan.name,
                orphan.orphaned_since.isoformat(timespec="seconds"),
                str(orphan.days_orphaned),
            )
        console.print(table)
        return 0
    finally:
        await db.close()


async def _async_cleanup(args: argparse.Namespace) -> int:
    """Async implementation for cleanup command."""
    try:
        db = _open_database(args)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    try:
        if not await db.check_connection():
            console.print("[red]Error: no database connection[/red]")
            return 1

        console.print(
            f"Starting cleanup with [bold]{args.days}[/bold] day grace period...",
            style="dim",
        )
        dropped = await db.scanner.cleanup(args.days)
        console.print(
            f"[bold green]v[/bold green] Cleanup complete: {dropped} table(s) removed"
        )
        return 0
    finally:
        await db.close()


# ============================================================================
# Sync command wrappers
# ============================================================================


def cmd_sync(args: argparse.Namespace) -> int:
    """Synchronize tables against the schema file.

    Wraps the async implementation with ``asyncio.run()``.
    """
    return asyncio.run(_async_sync(args))


def cmd_diff(args: argparse.Namespace) -> int:
    """Show drift between the schema file and the live database.

    Wraps the async implementation with ``asyncio.run()``.
    """
    return asyncio.run(_async_diff(args))


def cmd_scan(args: argparse.Namespace) -> int:
    return asyncio.run(_async_scan(args))


def cmd_cleanup(args: argparse.Namespace) -> int:
    return asyncio.run(_async_cleanup(args))


# ============================================================================
# Main entry point
# ============================================================================


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point.

    Parses command line arguments and dispatches to appropriate handler.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    parser = argparse.ArgumentParser(
        prog="tablesync",
        description="MySQL table synchronization and orphan cleanup",
    )

    # Global options
    parser.add_argument(
        "--config",
        default=None,
        help="Path to db.toml (default: ./db.toml if present)",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level for library output (default: WARNING)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_schemas_arg(p: argparse.ArgumentParser) -> None:
        p.add_argument(
            "--schemas",
            required=True,
            help="Path to TOML file with [core.*] and [tables.*] schemas",
        )

    # sync command
    p_sync = subparsers.add_parser(
        "sync",
        help="Create missing tables and handle schema drift",
    )
    add_schemas_arg(p_sync)
    decision = p_sync.add_mutually_exclusive_group()
    decision.add_argument(
        "--yes",
        action="store_true",
        help="Apply pending migrations",
    )
    decision.add_argument(
        "--no",
        action="store_true",
        help="Skip pending migrations without the --yes hint (skipping is the default)",
    )
    p_sync.set_defaults(func=cmd_sync)

    # diff command
    p_diff = subparsers.add_parser(
        "diff",
        help="Show drift without changing anything",
    )
    add_schemas_arg(p_diff)
    p_diff.set_defaults(func=cmd_diff)

    # scan command
    p_scan = subparsers.add_parser(
        "scan",
        help="List tables that have no schema",
    )
    add_schemas_arg(p_scan)
    p_scan.set_defaults(func=cmd_scan)

    # cleanup command
    p_cleanup = subparsers.add_parser(
        "cleanup",
        help="Drop tables orphaned past the grace period",
    )
    add_schemas_arg(p_cleanup)
    p_cleanup.add_argument(
        "--days",
        type=int,
        default=7,
        help="Grace period in days (default: 7)",
    )
    p_cleanup.set_defaults(func=cmd_cleanup)

    args = parser.parse_args(argv)
    _setup_logging(args.log_level)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
