"""Operator CLI for the power market preview service.

Runs the service processes and inspects the cache.

Usage:
    pmp serve --port 3001
    pmp consume
    pmp sync --token "$PMP_SYNC_SECRET"
    pmp status
    pmp dates --topic cables
    pmp get cables 2026-02-28 --hours

Inspection commands read the backend selected by PMP_CACHE_BACKEND; with the
in-memory backend they only see what this CLI process itself holds, so point
them at Redis (PMP_CACHE_BACKEND=redis) to inspect a deployment.

Entry point configured in pyproject.toml as 'pmp'.
"""
import asyncio
import json
from typing import Optional

import typer
from rich import box
from rich.console import Console
from rich.table import Table

from pmp import __version__
from pmp.cache import Topic, create_cache_store, is_valid_date
from pmp.common.config import config
from pmp.common.exceptions import PMPError
from pmp.common.logging import configure_logging
from pmp.ingestion.consumer import StreamConsumer
from pmp.ingestion.sync_job import BoundedSyncJob
from pmp.query.records import HOURS_PER_DAY, hourly_prices, payload_records
from pmp.query.status import StatusAggregator

app = typer.Typer(
    name="pmp",
    help="Power market preview: serve, sync and inspect cached market prices.",
    add_completion=False,
    no_args_is_help=True,
)

console = Console()


def _parse_topic(topic: str) -> Topic:
    try:
        return Topic(topic)
    except ValueError:
        valid = ", ".join(t.value for t in Topic)
        raise typer.BadParameter(f"Unknown topic: {topic}. Use one of: {valid}")


def _parse_date(date_str: str) -> str:
    """Validate date string in YYYY-MM-DD format."""
    if not is_valid_date(date_str):
        raise typer.BadParameter(f"Invalid date format: {date_str}. Use YYYY-MM-DD")
    return date_str


def _print_json(data: object) -> None:
    console.print_json(json.dumps(data, default=str))


@app.callback()
def _configure() -> None:
    configure_logging(config.observability)


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address (default: PMP_API_HOST)"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Bind port (default: PMP_API_PORT)"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes (development)"),
):
    """
    Run the read API.

    With PMP_CACHE_BACKEND=memory the long-running consumer starts alongside it.
    """
    import uvicorn

    uvicorn.run(
        "pmp.api.main:app",
        host=host or config.api.host,
        port=port or config.api.port,
        reload=reload,
        log_level=config.observability.log_level.lower(),
    )


@app.command()
def consume():
    """
    Run the long-running consumer without the HTTP server.

    Stops on SIGINT/SIGTERM.
    """
    store = create_cache_store()
    consumer = StreamConsumer(store=store)
    console.print(
        f"[bold]Consuming[/bold] {', '.join(config.kafka.topics)} "
        f"from {config.kafka.bootstrap_servers} into {store.backend} store"
    )
    try:
        consumer.run_forever()
    finally:
        store.close()

    if consumer.state.reason:
        console.print(f"[red]Consumer stopped: {consumer.state.label}[/red]")
        raise typer.Exit(1)


@app.command()
def sync(
    token: Optional[str] = typer.Option(
        None, "--token", "-t", envvar="PMP_SYNC_SECRET", help="Sync trigger secret",
    ),
    output: str = typer.Option("table", "--output", "-o", help="Output format: table, json"),
):
    """
    Run one bounded sync into the durable cache.

    Examples:
        PMP_CACHE_BACKEND=redis pmp sync
        pmp sync --token s3cret -o json
    """
    store = create_cache_store()
    try:
        result = asyncio.run(BoundedSyncJob(store=store).run(token))
    except PMPError as e:
        console.print(f"[red]Sync failed: {e}[/red]")
        raise typer.Exit(1)
    finally:
        store.close()

    if output == "json":
        _print_json(result.to_dict())
        return

    table = Table(title="Sync Result", box=box.ROUNDED, show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Messages processed", f"{result.messages_processed:,}")
    table.add_row("Synced at", result.synced_at.isoformat())
    table.add_row(
        "Replay complete",
        "[green]yes[/green]" if result.replay_complete else "[yellow]no (budget reached)[/yellow]",
    )
    console.print(table)


@app.command()
def status(
    output: str = typer.Option("table", "--output", "-o", help="Output format: table, json"),
):
    """Show cache status and available dates per topic."""
    store = create_cache_store()
    try:
        snapshot = StatusAggregator(store=store).snapshot()
    except PMPError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)
    finally:
        store.close()

    if output == "json":
        _print_json(snapshot.to_dict())
        return

    table = Table(title=f"PMP Status (v{__version__})", box=box.ROUNDED)
    table.add_column("Topic", style="cyan")
    table.add_column("Dates", justify="right")
    table.add_column("First")
    table.add_column("Last")

    for topic, dates in snapshot.available_dates.items():
        table.add_row(topic, str(len(dates)), dates[0] if dates else "-", dates[-1] if dates else "-")

    console.print(table)
    last = snapshot.last_message_at.isoformat() if snapshot.last_message_at else "never"
    console.print(f"Status: [bold]{snapshot.status}[/bold]  Backend: {store.backend}  Last update: {last}")


@app.command()
def dates(
    topic: Optional[str] = typer.Option(None, "--topic", help="Only list dates for this topic"),
    output: str = typer.Option("table", "--output", "-o", help="Output format: table, json"),
):
    """List dates with a cached entry."""
    topics = [_parse_topic(topic)] if topic else list(Topic)
    store = create_cache_store()
    try:
        result = {t.value: store.list_dates(t.value) for t in topics}
    except PMPError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)
    finally:
        store.close()

    if output == "json":
        _print_json(result)
        return

    for name, topic_dates in result.items():
        console.print(f"[bold cyan]{name}[/bold cyan] ({len(topic_dates)} dates)")
        for d in topic_dates:
            console.print(f"  {d}")


@app.command()
def get(
    topic: str = typer.Argument(..., help="Topic: cables or exchanges"),
    date: str = typer.Argument(..., help="Date (YYYY-MM-DD)"),
    hours: bool = typer.Option(False, "--hours", help="Show cable records as an hourly price table"),
):
    """
    Print the cached payload for a topic and date.

    Examples:
        pmp get exchanges 2026-02-28
        pmp get cables 2026-02-28 --hours
    """
    parsed_topic = _parse_topic(topic)
    parsed_date = _parse_date(date)

    store = create_cache_store()
    try:
        entry = store.get(parsed_topic.value, parsed_date)
    except PMPError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)
    finally:
        store.close()

    if entry is None:
        console.print(f"[yellow]No {parsed_topic.value} entry for {parsed_date}[/yellow]")
        raise typer.Exit(1)

    if not hours:
        _print_json(entry.payload)
        return

    records = payload_records(entry.payload)
    table = Table(title=f"{parsed_topic.value} {parsed_date} ({len(records)} rows)", box=box.ROUNDED)
    table.add_column("Border", style="cyan")
    for hour in range(1, HOURS_PER_DAY + 1):
        table.add_column(str(hour), justify="right")

    for record in records:
        prices = hourly_prices(record)
        table.add_row(
            str(record.get("border", "")),
            *("-" if p is None else f"{p:.2f}" for p in prices),
        )

    console.print(table)


def main():
    """Entry point for pmp CLI."""
    app()


if __name__ == "__main__":
    main()
