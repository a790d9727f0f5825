"""CLI module for Directus schema snapshots and collection data.

Provides commands to dump the schema and collection data of an instance,
plan and apply schema changes, and restore collection data with a
dependency-aware retry loop.

Usage:
    directus-sync dump
    directus-sync dump --no-data
    directus-sync plan
    directus-sync restore
    directus-sync restore --no-schema --max-passes 20
    directus-sync validate
    directus-sync collections
    directus-sync --config staging.toml --env-prefix STAGING_ restore

Commands:
    dump         - Save the schema snapshot and collection data to disk
    plan         - Show the schema changes the saved snapshot would apply
    restore      - Apply the saved snapshot, then restore collection data
    validate     - Check collection data dumps offline
    collections  - List configured collections and their references
"""

import argparse
import asyncio
import logging
import sys

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from directus_sync.collections.driver import RestoreReport
from directus_sync.collections.validate import validate_dump
from directus_sync.config.loader import load_config
from directus_sync.config.models import SyncConfig
from directus_sync.errors import ConvergenceFailed, DirectusSyncError
from directus_sync.factory import AppContext, create_context

console = Console()
logger = logging.getLogger("directus_sync")


def _setup_logging(verbose: bool) -> None:
    """Route library logging through rich."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _load(args: argparse.Namespace) -> SyncConfig:
    return load_config(args.config, env_prefix=getattr(args, "env_prefix", ""))


def _print_report(report: RestoreReport) -> None:
    table = Table(title="Restore Summary", show_header=True, header_style="bold")
    table.add_column("Collection", style="dim")
    table.add_column("Records", justify="right")
    table.add_column("Created", justify="right", style="green")
    table.add_column("Updated", justify="right", style="yellow")

    for summary in report.collections:
        table.add_row(
            summary.collection,
            str(summary.total),
            str(summary.created) if summary.created else "-",
            str(summary.updated) if summary.updated else "-",
        )

    console.print(table)
    console.print(
        f"[bold green]v[/bold green] Converged after {report.passes} "
        f"pass{'es' if report.passes != 1 else ''}"
    )


# ============================================================================
# Async command implementations
# ============================================================================


async def _async_dump(args: argparse.Namespace, context: AppContext) -> int:
    """Async implementation for dump command.

    Args:
        args: Parsed arguments with no_schema and no_data.
        context: Application context.

    Returns:
        0 on success.
    """
    if not args.no_schema:
        logger.info("---- Dump schema ----")
        count = await context.snapshots.dump()
        console.print(
            f"  Schema: [cyan]{count}[/cyan] file{'s' if count != 1 else ''} "
            f"in {context.snapshots.dump_path}"
        )

    if not args.no_data:
        logger.info("---- Dump collections ----")
        for restorer in context.restorers:
            await restorer.dump()
        console.print(
            f"  Collections: [cyan]{len(context.restorers)}[/cyan] dumped to "
            f"{context.config.collections.dump_path}"
        )

    console.print("[bold green]v[/bold green] Dump complete.")
    return 0


async def _async_plan(args: argparse.Namespace, context: AppContext) -> int:
    """Async implementation for plan command.

    Returns:
        0 on success.
    """
    plan = await context.snapshots.plan()

    if not plan.has_changes:
        console.print("[bold green]v[/bold green] Schema is up to date - no changes")
        return 0

    table = Table(title="Schema Changes", show_header=True, header_style="bold")
    table.add_column("Category", style="dim")
    table.add_column("Changes", justify="right")
    table.add_row("collections", str(plan.collections))
    table.add_row("fields", str(plan.fields))
    table.add_row("relations", str(plan.relations))
    console.print(table)
    console.print(
        "[dim]To apply, run[/dim] [cyan]directus-sync restore --no-data[/cyan]"
    )
    return 0


async def _async_restore(args: argparse.Namespace, context: AppContext) -> int:
    """Async implementation for restore command.

    Args:
        args: Parsed arguments with no_schema, no_data and max_passes.
        context: Application context.

    Returns:
        0 on success, 1 if the data restore did not converge.
    """
    if not args.no_schema:
        logger.info("---- Restore schema ----")
        applied = await context.snapshots.restore()
        console.print(
            "  Schema: "
            + ("[green]changes applied[/green]" if applied else "[dim]no changes[/dim]")
        )

    if args.no_data:
        return 0

    driver = context.restore_driver(max_passes=args.max_passes)
    try:
        report = await driver.run()
    except ConvergenceFailed as e:
        console.print(f"\n[bold red]x[/bold red] {e}")
        return 1

    _print_report(report)
    return 0


async def _run_with_context(handler, args: argparse.Namespace) -> int:
    """Create the context, run ``handler``, always close the client."""
    try:
        config = _load(args)
        context = create_context(config)
    except DirectusSyncError as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    try:
        return await handler(args, context)
    except DirectusSyncError as e:
        logger.error("%s", e)
        console.print(f"\n[bold red]x[/bold red] {e}")
        return 1
    finally:
        await context.close()


# ============================================================================
# Sync command wrappers (cmd_validate, cmd_collections read local files only)
# ============================================================================


def cmd_dump(args: argparse.Namespace) -> int:
    """Dump schema and collection data.

    Wraps the async implementation with ``asyncio.run()``.
    """
    return asyncio.run(_run_with_context(_async_dump, args))


def cmd_plan(args: argparse.Namespace) -> int:
    """Show pending schema changes.

    Wraps the async implementation with ``asyncio.run()``.
    """
    return asyncio.run(_run_with_context(_async_plan, args))


def cmd_restore(args: argparse.Namespace) -> int:
    """Restore schema and collection data.

    Wraps the async implementation with ``asyncio.run()``.
    """
    return asyncio.run(_run_with_context(_async_restore, args))


def cmd_validate(args: argparse.Namespace) -> int:
    """Validate collection data dumps.

    Reads only local files -- no remote calls.

    Returns:
        0 when valid, 1 on errors.
    """
    try:
        config = _load(args)
    except DirectusSyncError as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    report = validate_dump(
        config.collections.dump_path, config.collections.definitions()
    )

    table = Table(title="Collection Dumps", show_header=True, header_style="bold")
    table.add_column("Collection", style="dim")
    table.add_column("Records", justify="right")
    for name, count in report["counts"].items():
        table.add_row(name, str(count))
    console.print(table)

    for warning in report["warnings"]:
        console.print(f"  [yellow]![/yellow] {warning}")
    for error in report["errors"]:
        console.print(f"  [red]x[/red] {error}")

    if report["valid"]:
        console.print("[bold green]v[/bold green] Dump is valid")
        return 0
    console.print(
        f"[bold red]x[/bold red] Dump has {len(report['errors'])} error"
        f"{'s' if len(report['errors']) != 1 else ''}"
    )
    return 1


def cmd_collections(args: argparse.Namespace) -> int:
    """List configured collections in restore order.

    Returns:
        0 on success, 1 if the config cannot be loaded.
    """
    try:
        config = _load(args)
    except DirectusSyncError as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    table = Table(title="Collections", show_header=True, header_style="bold")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Collection")
    table.add_column("Key")
    table.add_column("References")

    for index, definition in enumerate(config.collections.definitions(), 1):
        refs = ", ".join(
            f"{r.field} -> {r.collection}{'?' if r.nullable else ''}"
            for r in definition.refs
        )
        table.add_row(str(index), definition.name, definition.pk, refs or "-")

    console.print(table)
    console.print("[dim]? = nullable, cleared when dangling[/dim]")
    return 0


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
        prog="directus-sync",
        description="Directus schema snapshot and collection data sync",
    )

    parser.add_argument(
        "--config",
        "-c",
        default=None,
        help="Path to config file (default: ./directus-sync.toml if present)",
    )
    parser.add_argument(
        "--env-prefix",
        default="",
        help=(
            "Prefix for environment variable lookup "
            "(e.g., --env-prefix STAGING_ reads STAGING_DIRECTUS_URL)"
        ),
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Show debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # dump command
    p_dump = subparsers.add_parser(
        "dump",
        help="Save the schema snapshot and collection data to disk",
    )
    p_dump.add_argument("--no-schema", action="store_true", help="Skip the schema snapshot")
    p_dump.add_argument("--no-data", action="store_true", help="Skip collection data")
    p_dump.set_defaults(func=cmd_dump)

    # plan command
    p_plan = subparsers.add_parser(
        "plan",
        help="Show the schema changes the saved snapshot would apply",
    )
    p_plan.set_defaults(func=cmd_plan)

    # restore command
    p_restore = subparsers.add_parser(
        "restore",
        help="Apply the saved snapshot, then restore collection data",
    )
    p_restore.add_argument("--no-schema", action="store_true", help="Skip the schema restore")
    p_restore.add_argument("--no-data", action="store_true", help="Skip collection data")
    p_restore.add_argument(
        "--max-passes",
        type=int,
        default=None,
        help="Maximum restore passes (default: config, or total record count)",
    )
    p_restore.set_defaults(func=cmd_restore)

    # validate command
    p_validate = subparsers.add_parser(
        "validate",
        help="Check collection data dumps offline",
    )
    p_validate.set_defaults(func=cmd_validate)

    # collections command
    p_collections = subparsers.add_parser(
        "collections",
        help="List configured collections and their references",
    )
    p_collections.set_defaults(func=cmd_collections)

    args = parser.parse_args(argv)
    _setup_logging(args.verbose)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
