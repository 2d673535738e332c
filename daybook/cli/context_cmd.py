"""CLI commands for loading and searching stored context."""

from __future__ import annotations

import json
from datetime import datetime
from typing import Optional

import click
from rich.table import Table

from daybook.cli.common import console, fmt_time, get_services, handle_errors, parse_when, user_option
from daybook.context.models import ContextSource
from daybook.ingest.pipeline import ingest_records

BATCH_SOURCES = [ContextSource.CALENDAR.value, ContextSource.MAIL.value]


def _load_records(fh) -> list:
    """A JSON list, or a provider list response with an `items` / `messages` array."""
    data = json.load(fh)
    if isinstance(data, dict):
        data = data.get("items") or data.get("messages") or []
    if not isinstance(data, list):
        raise click.BadParameter("expected a JSON list of records")
    return data


@click.command("ingest")
@click.argument("source", type=click.Choice(BATCH_SOURCES))
@click.argument("records_file", type=click.File("r"))
@user_option
@click.pass_context
@handle_errors
def ingest(ctx: click.Context, source: str, records_file, user_id: str):
    """Embed and store calendar events or emails from a JSON file.

    \b
    Examples:
        daybook ingest calendar events.json
        daybook ingest mail - < messages.json
    """
    services = get_services(ctx)
    records = _load_records(records_file)

    with console.status(f"[bold green]Embedding {len(records)} {source} record(s)..."):
        result = ingest_records(services.context_store, user_id, source, records)

    console.print(
        f"[green]✓[/green] processed {result.processed}, "
        f"errors {result.errors}, skipped {result.skipped}"
    )
    if result.errors:
        ctx.exit(1)


@click.command("search")
@click.argument("query")
@user_option
@click.option("--limit", default=10, type=int, help="Number of results")
@click.option("--source", type=click.Choice([s.value for s in ContextSource]), default=None)
@click.option("--since", callback=parse_when, default=None, help="Only entries created at/after (ISO)")
@click.option("--until", callback=parse_when, default=None, help="Only entries created at/before (ISO)")
@click.pass_context
@handle_errors
def search(
    ctx: click.Context,
    query: str,
    user_id: str,
    limit: int,
    source: Optional[str],
    since: Optional[datetime],
    until: Optional[datetime],
):
    """Semantic search over stored context."""
    ranker = get_services(ctx).ranker
    if source or since or until:
        results = ranker.advanced_search(user_id, query, source=source, start=since, end=until, limit=limit)
    else:
        results = ranker.rank_by_similarity(user_id, query, limit=limit)

    if not results:
        console.print("[yellow]No matching context.[/yellow]")
        return

    table = Table(title=f"Top {len(results)} for “{query}”")
    table.add_column("Score", justify="right")
    table.add_column("Source", style="dim")
    table.add_column("Created", style="dim")
    table.add_column("Content", style="cyan", max_width=80)
    for r in results:
        table.add_row(
            f"{r.similarity:.3f}",
            r.entry.source.value,
            fmt_time(r.entry.created_at),
            r.entry.content.replace("\n", " ")[:160],
        )
    console.print(table)


@click.command("stats")
@user_option
@click.pass_context
@handle_errors
def stats(ctx: click.Context, user_id: str):
    """Show counts of stored context and feed items."""
    services = get_services(ctx)
    ctx_stats = services.context_store.stats(user_id)
    feed_counts = services.feed_store.count_by_status(user_id)

    table = Table(title=f"Daybook: {user_id}")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Context entries", str(ctx_stats.total))
    for name, n in sorted(ctx_stats.by_source.items()):
        table.add_row(f"  {name}", str(n))
    table.add_row("Oldest entry", fmt_time(ctx_stats.oldest))
    table.add_row("Newest entry", fmt_time(ctx_stats.newest))
    table.add_row("Feed items", str(sum(feed_counts.values())))
    for status, n in sorted(feed_counts.items()):
        table.add_row(f"  {status}", str(n))
    console.print(table)
