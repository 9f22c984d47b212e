"""Command-line interface for pricesync.

Commands only wire config to the sync, storage and exchange packages and
render their results with rich.
"""

from __future__ import annotations

import asyncio
import json
import logging
from contextlib import asynccontextmanager

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

console = Console(stderr=True)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run_async(coro):
    """Run an async coroutine from synchronous Click code."""
    return asyncio.run(coro)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(name)s: %(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )
    # Suppress per-request transport logs
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)


def _load_config(ctx: click.Context):
    """Load config lazily, caching on first call."""
    if "config" not in ctx.obj:
        from pricesync.core import ConfigError, load_config

        try:
            ctx.obj["config"] = load_config(config_path=ctx.obj.get("config_path"))
        except ConfigError as e:
            console.print(f"[red]Invalid configuration: {escape(str(e))}[/red]")
            raise SystemExit(2)
    return ctx.obj["config"]


@asynccontextmanager
async def _open_orchestrator(config):
    """Build store, Binance client and orchestrator; close them on exit."""
    from pricesync.exchange import BinanceClient
    from pricesync.storage import create_store
    from pricesync.sync import create_orchestrator

    store = await create_store(config.storage)
    try:
        async with BinanceClient(config.exchange) as client:
            yield create_orchestrator(config.sync, store, client)
    finally:
        await store.close()


async def _load_series(config):
    """Read the stored series without touching the network."""
    from pricesync.storage import create_store

    store = await create_store(config.storage)
    try:
        return await store.load()
    finally:
        await store.close()


def _print_result(result) -> None:
    """Summarize a SyncResult on the console."""
    if not result.series and result.ok:
        console.print("[yellow]No data available from the exchange yet.[/yellow]")
        return
    if not result.ok:
        console.print(f"[red]Error fetching data: {escape(result.error or '')}[/red]")
        if result.series:
            console.print(
                f"Showing {len(result.series)} stored points "
                f"through {result.last_date}"
            )
        return
    if result.fetched:
        console.print(
            f"[green]✓[/green] Data fetched and stored: "
            f"{result.new_points} new, {len(result.series)} total "
            f"(through {result.last_date})"
        )
    else:
        console.print(
            f"[green]✓[/green] Data loaded from storage: "
            f"{len(result.series)} points (through {result.last_date})"
        )


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    envvar="PRICESYNC_CONFIG",
    default=None,
    help="Path to pricesync.yml config file.",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    default=False,
    help="Enable debug logging.",
)
@click.version_option(package_name="pricesync")
@click.pass_context
def cli(ctx: click.Context, config: str | None, verbose: bool) -> None:
    """pricesync: daily price history for a single trading pair."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config
    ctx.obj["verbose"] = verbose
    _configure_logging(verbose)


# ---------------------------------------------------------------------------
# sync
# ---------------------------------------------------------------------------


@cli.command()
@click.option(
    "--force",
    is_flag=True,
    default=False,
    help="Fetch even if the stored series is already current.",
)
@click.pass_context
def sync(ctx: click.Context, force: bool) -> None:
    """Bring the stored series up to today (UTC)."""
    config = _load_config(ctx)

    async def _run():
        async with _open_orchestrator(config) as orchestrator:
            return await orchestrator.run_cycle(force=force)

    result = _run_async(_run())
    _print_result(result)
    if not result.ok:
        raise SystemExit(1)


# ---------------------------------------------------------------------------
# show
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--limit", "-n", type=int, default=None, help="Show only the newest N days.")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["table", "json"], case_sensitive=False),
    default="table",
    help="Output format.",
)
@click.pass_context
def show(ctx: click.Context, limit: int | None, output_format: str) -> None:
    """Display stored prices, newest first."""
    config = _load_config(ctx)
    series = sorted(_run_async(_load_series(config)), key=lambda p: p.date, reverse=True)
    if limit is not None:
        series = series[:limit]

    if output_format == "json":
        click.echo(
            json.dumps([p.model_dump(mode="json") for p in series], indent=2)
        )
        return

    if not series:
        console.print("[yellow]No data available. Run 'sync' first.[/yellow]")
        return

    table = Table(title=f"{config.exchange.symbol} daily open (UTC)")
    table.add_column("Date", style="bold")
    table.add_column("Price", justify="right")
    for point in series:
        table.add_row(point.date.isoformat(), point.price)
    console.print(table)


# ---------------------------------------------------------------------------
# today
# ---------------------------------------------------------------------------


@cli.command()
@click.pass_context
def today(ctx: click.Context) -> None:
    """Print today's opening price (ticker price if no daily candle yet)."""
    from pricesync.core import ExchangeError

    config = _load_config(ctx)

    async def _run():
        async with _open_orchestrator(config) as orchestrator:
            return await orchestrator.fetch_today_price()

    try:
        point = _run_async(_run())
    except ExchangeError as e:
        console.print(f"[red]Error fetching today's price: {escape(str(e))}[/red]")
        raise SystemExit(1)

    click.echo(f"{point.date.isoformat()} {config.exchange.symbol} {point.price}")


# ---------------------------------------------------------------------------
# status
# ---------------------------------------------------------------------------


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show stored coverage and the next scheduled fetch."""
    from pricesync.core.calendar import utc_now
    from pricesync.sync import next_utc_midnight

    config = _load_config(ctx)
    series = _run_async(_load_series(config))
    dates = [p.date for p in series]
    next_fetch = next_utc_midnight(utc_now())

    table = Table(title="pricesync Status")
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")

    table.add_row("Symbol", config.exchange.symbol)
    table.add_row("Storage backend", config.storage.backend.value)
    table.add_row("Storage key", config.storage.key)
    table.add_section()
    table.add_row("Stored days", str(len(series)))
    table.add_row(
        "Date range",
        f"{min(dates)} → {max(dates)}" if dates else "N/A",
    )
    table.add_row("Last update", str(max(dates)) if dates else "N/A")
    table.add_row("Next fetch", next_fetch.strftime("%Y-%m-%d %H:%M:%S UTC"))

    console.print(table)


# ---------------------------------------------------------------------------
# run
# ---------------------------------------------------------------------------


@cli.command()
@click.pass_context
def run(ctx: click.Context) -> None:
    """Sync now, then again at every UTC midnight until interrupted."""
    from pricesync.core.calendar import utc_now
    from pricesync.sync import DailyScheduler, next_utc_midnight

    config = _load_config(ctx)

    async def _run():
        async with _open_orchestrator(config) as orchestrator:
            _print_result(await orchestrator.run_cycle())

            async def _scheduled():
                _print_result(await orchestrator.run_cycle())

            scheduler = DailyScheduler(_scheduled)
            task = scheduler.arm()
            console.print(
                f"Next fetch scheduled for "
                f"{next_utc_midnight(utc_now()).isoformat()}. Press Ctrl+C to stop."
            )
            try:
                await task
            finally:
                await scheduler.stop()

    try:
        _run_async(_run())
    except KeyboardInterrupt:
        console.print("Stopped.")


# ---------------------------------------------------------------------------
# serve
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--host", type=str, default=None, help="Bind address.")
@click.option("--port", "-p", type=int, default=None, help="Port number.")
@click.pass_context
def serve(ctx: click.Context, host: str | None, port: int | None) -> None:
    """Start the REST API server with the daily scheduler."""
    try:
        import uvicorn
    except ImportError:
        console.print(
            "[red]uvicorn not installed. Install with: "
            "pip install pricesync[api][/red]"
        )
        raise SystemExit(1)

    from pricesync.api.app import create_app

    config = _load_config(ctx)
    host = host or config.api.host
    port = port or config.api.port

    console.print(f"Starting pricesync API on [bold]{host}:{port}[/bold]")
    console.print(f"API docs: http://{host}:{port}/docs")

    uvicorn.run(create_app(config), host=host, port=port)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
