"""CLI main entry point"""

import json
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from leasepool import __version__
from leasepool.core.config import LeasePoolConfig, get_config
from leasepool.core.logging_setup import configure_logging
from leasepool.core.pool import LeasePoolEngine, PoolError, PoolStats
from leasepool.core.time import format_epoch_ms


console = Console()
err_console = Console(stderr=True)

# Exit status for "no item allocatable right now"
EXIT_EMPTY = 2


def _config(ctx: click.Context) -> LeasePoolConfig:
    return ctx.obj["config"]


def _engine(ctx: click.Context) -> LeasePoolEngine:
    """Open the engine on first use and close it when the command ends"""
    root = ctx.find_root()
    engine = root.obj.get("engine")
    if engine is None:
        engine = LeasePoolEngine.from_config(_config(ctx))
        root.obj["engine"] = engine
        root.call_on_close(engine.close)
    return engine


def _fail(e: Exception) -> None:
    err_console.print(f"[red]Error: {e}[/red]")
    raise click.Abort()


def _print_stats(stats: PoolStats) -> None:
    table = Table(title="Pool Statistics" + (" (approximate)" if stats.approximate else ""))
    table.add_column("Total", justify="right")
    table.add_column("Available", justify="right", style="green")
    table.add_column("Leased", justify="right", style="yellow")
    table.add_row(str(stats.total), str(stats.available), str(stats.leased))
    console.print(table)


@click.group()
@click.version_option(version=__version__, prog_name="leasepool")
@click.option("--db", "db_path", type=click.Path(dir_okay=False, path_type=Path), help="SQLite database file")
@click.option("--log-level", type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False))
@click.pass_context
def cli(ctx, db_path: Optional[Path], log_level: Optional[str]):
    """LeasePool - dispense unique items from a shared pool under expiring leases"""
    config = get_config()
    updates = {}
    if db_path is not None:
        updates["db_path"] = db_path
    if log_level is not None:
        updates["log_level"] = log_level.upper()
    if updates:
        config = config.model_copy(update=updates)

    configure_logging(config.log_level)
    ctx.ensure_object(dict)
    ctx.obj["config"] = config


@cli.command("init")
@click.option("--source", type=click.Path(dir_okay=False, path_type=Path), help="Source file to load (default: configured source_file)")
@click.pass_context
def init_cmd(ctx, source: Optional[Path]):
    """Create the database and load the source file"""
    config = _config(ctx)
    source = source or config.source_file
    try:
        engine = _engine(ctx)
        console.print(f"[green]✓[/green] Database ready: {config.db_path}")
        if source.exists():
            count = engine.load_file(source)
            console.print(f"[green]✓[/green] Loaded {count} items from {source}")
        else:
            console.print(f"[yellow]⚠ No source file at {source}; add items with 'leasepool add' or 'leasepool load'[/yellow]")
        _print_stats(engine.get_stats())
    except PoolError as e:
        _fail(e)


@cli.command("acquire")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
@click.pass_context
def acquire_cmd(ctx, output_json: bool):
    """Lease one available item"""
    try:
        item = _engine(ctx).acquire_one()
    except PoolError as e:
        _fail(e)

    if item is None:
        if output_json:
            click.echo(json.dumps({"ok": False, "error_code": "NO_ITEMS_AVAILABLE"}))
        else:
            err_console.print("[yellow]No available items at this time[/yellow]")
        ctx.exit(EXIT_EMPTY)

    if output_json:
        click.echo(json.dumps({"ok": True, "id": item.id, "value": item.value, "leased_at": item.leased_at}))
    else:
        click.echo(item.value)


@cli.command("release")
@click.argument("item_id", type=int)
@click.pass_context
def release_cmd(ctx, item_id: int):
    """Return a leased item to the pool"""
    try:
        released = _engine(ctx).release(item_id)
    except PoolError as e:
        _fail(e)
    if released:
        console.print(f"[green]Released item {item_id}[/green]")
    else:
        console.print(f"[yellow]Item {item_id} not found or not leased[/yellow]")


@cli.command("add")
@click.argument("values", nargs=-1, required=True)
@click.pass_context
def add_cmd(ctx, values):
    """Add one or more values (malformed and duplicate values are skipped)"""
    try:
        count = _engine(ctx).ingest(values)
    except PoolError as e:
        _fail(e)
    console.print(f"Added {count} items ({len(values) - count} skipped)")


@cli.command("load")
@click.argument("source", required=False, type=click.Path(dir_okay=False, path_type=Path))
@click.pass_context
def load_cmd(ctx, source: Optional[Path]):
    """Load a newline-delimited source file"""
    source = source or _config(ctx).source_file
    if not source.exists():
        _fail(FileNotFoundError(f"Source file not found: {source}"))
    try:
        engine = _engine(ctx)
        count = engine.load_file(source)
        engine.stats.invalidate()
    except PoolError as e:
        _fail(e)
    console.print(f"[green]Loaded {count} new items from {source}[/green]")


@cli.command("delete")
@click.argument("item_ids", nargs=-1, type=int, required=True)
@click.pass_context
def delete_cmd(ctx, item_ids):
    """Permanently delete items by id"""
    try:
        count = _engine(ctx).evict_by_ids(item_ids)
    except PoolError as e:
        _fail(e)
    console.print(f"Deleted {count} items")


@cli.command("unlock-all")
@click.pass_context
def unlock_all_cmd(ctx):
    """Release every leased item regardless of TTL"""
    try:
        count = _engine(ctx).force_release_all()
    except PoolError as e:
        _fail(e)
    console.print(f"Released {count} items")


@cli.command("stats")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
@click.pass_context
def stats_cmd(ctx, output_json: bool):
    """Show pool statistics"""
    try:
        stats = _engine(ctx).get_stats()
    except PoolError as e:
        _fail(e)
    if output_json:
        click.echo(json.dumps(stats.to_dict()))
    else:
        _print_stats(stats)


@cli.command("list")
@click.option("--page", default=1, type=click.IntRange(min=1), show_default=True)
@click.option("--page-size", default=50, type=click.IntRange(10, 1000), show_default=True)
@click.option("--search", default=None, help="Case-insensitive substring filter")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
@click.pass_context
def list_cmd(ctx, page: int, page_size: int, search: Optional[str], output_json: bool):
    """List items, newest first"""
    try:
        result = _engine(ctx).list(page, page_size, search)
    except (PoolError, ValueError) as e:
        _fail(e)

    if output_json:
        click.echo(json.dumps(result.to_dict()))
        return

    if not result.items:
        console.print("[yellow]No items found[/yellow]")
        return

    total = f"{'≥' if result.estimated else ''}{result.total}"
    table = Table(title=f"Items (page {result.page}, total {total})")
    table.add_column("ID", style="cyan", justify="right")
    table.add_column("Value")
    table.add_column("Status")
    table.add_column("Created", style="dim")
    for item in result.items:
        status_style = "yellow" if item.is_leased else "green"
        table.add_row(
            str(item.id),
            item.value,
            f"[{status_style}]{item.state.label}[/{status_style}]",
            format_epoch_ms(item.created_at),
        )
    console.print(table)
    if result.has_more:
        console.print(f"[dim]More items: --page {result.page + 1}[/dim]")


@cli.command("export")
@click.argument("target", type=click.Path(dir_okay=False, allow_dash=True))
@click.pass_context
def export_cmd(ctx, target: str):
    """Write every value to TARGET, one per line ('-' for stdout)"""
    try:
        engine = _engine(ctx)
        if target == "-":
            engine.export(sys.stdout)
            return
        count = engine.export_file(target)
    except PoolError as e:
        _fail(e)
    err_console.print(f"Exported {count} items to {target}")


@cli.command("web")
@click.option("--host", default=None, help="Host to bind to (default: configured webui_host)")
@click.option("--port", default=None, type=int, help="Port to bind to (default: configured webui_port)")
@click.pass_context
def web_cmd(ctx, host: Optional[str], port: Optional[int]):
    """Serve the HTTP API with uvicorn"""
    import uvicorn

    from leasepool.webui.app import create_app

    config = _config(ctx)
    host = host or config.webui_host
    port = port or config.webui_port
    console.print(f"🚀 Serving LeasePool API at http://{host}:{port}")
    uvicorn.run(create_app(config=config), host=host, port=port, log_level=config.log_level.lower())


def main():
    cli(obj={})


if __name__ == "__main__":
    main()
