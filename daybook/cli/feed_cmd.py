"""CLI commands for generating and working through the feed."""

from __future__ import annotations

import json
from datetime import datetime
from typing import Optional

import click
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from daybook.cli.common import console, fmt_time, get_services, handle_errors, parse_when, user_option
from daybook.feed.models import FeedStatus, InteractionResult

PRIORITY_STYLE = {"urgent": "bold red", "high": "red", "medium": "yellow", "low": "dim"}


@click.group("feed")
def feed():
    """Generate and manage feed items."""
    pass


@feed.command("generate")
@user_option
@click.pass_context
@handle_errors
def generate(ctx: click.Context, user_id: str):
    """Turn new context into feed items (one model call)."""
    with console.status("[bold green]Generating feed..."):
        result = get_services(ctx).feed.generate(user_id)

    console.print(
        f"[green]✓[/green] generated {result.generated}, skipped {result.skipped}, "
        f"errors {result.errors}, fallbacks {result.fallbacks}"
    )
    for item in result.items:
        console.print(f"  [{PRIORITY_STYLE[item.priority.value]}]{item.priority.value:>6}[/] {item.title}")


@feed.command("list")
@user_option
@click.option("--limit", default=50, type=int)
@click.option("--offset", default=0, type=int)
@click.option("--include-expired", is_flag=True, help="Also show expired items")
@click.pass_context
@handle_errors
def list_items(ctx: click.Context, user_id: str, limit: int, offset: int, include_expired: bool):
    """Show active feed items, most urgent first."""
    items = get_services(ctx).lifecycle.list_active(
        user_id, limit=limit, offset=offset, include_expired=include_expired,
    )
    if not items:
        console.print("[yellow]Feed is empty.[/yellow]")
        return

    table = Table(title=f"Feed ({len(items)} items)")
    table.add_column("ID", style="dim", max_width=12)
    table.add_column("Priority")
    table.add_column("Type", style="dim")
    table.add_column("When", style="dim")
    table.add_column("Title", style="cyan", max_width=50)
    table.add_column("Status", style="dim")
    for item in items:
        table.add_row(
            item.id[:12],
            f"[{PRIORITY_STYLE[item.priority.value]}]{item.priority.value}[/]",
            item.type.value,
            fmt_time(item.timestamp),
            item.title,
            item.status.value,
        )
    console.print(table)


def _resolve_id(ctx: click.Context, prefix: str) -> str:
    """Accept the short id shown by `feed list`."""
    if len(prefix) >= 32:
        return prefix
    rows = get_services(ctx).db.conn.execute(
        "SELECT id FROM feed_items WHERE id LIKE ? LIMIT 2", (prefix + "%",)
    ).fetchall()
    if len(rows) == 1:
        return rows[0]["id"]
    return prefix


@feed.command("show")
@click.argument("item_id")
@click.pass_context
@handle_errors
def show(ctx: click.Context, item_id: str):
    """Show one feed item with its actions and interaction history."""
    item = get_services(ctx).lifecycle.get_item(_resolve_id(ctx, item_id))

    lines = [
        f"[bold]{escape(item.title)}[/bold]",
        escape(item.subtitle or ""),
        "",
        escape(item.description or ""),
        "",
        f"[dim]type[/dim] {item.type.value}   [dim]priority[/dim] {item.priority.value}   "
        f"[dim]status[/dim] {item.status.value}",
        f"[dim]when[/dim] {fmt_time(item.timestamp)}   [dim]expires[/dim] {fmt_time(item.expires_at)}",
        f"[dim]source[/dim] {item.source.type} ({item.source_id})",
    ]
    if item.snooze_until:
        lines.append(f"[dim]snoozed until[/dim] {fmt_time(item.snooze_until)}")
    if item.tags:
        lines.append(f"[dim]tags[/dim] {', '.join(item.tags)}")
    console.print(Panel("\n".join(lines), title=item.id, border_style="cyan"))

    for action in item.actions:
        cfg = json.dumps(action.config) if action.config else ""
        console.print(
            f"  • {escape(action.label)} ({action.type.value}, {action.style.value}) "
            f"[dim]{action.id[:12]} {escape(cfg)}[/dim]"
        )
    for event in item.interactions:
        result = event.result.value if event.result else "—"
        console.print(f"  [dim]{fmt_time(event.timestamp)}[/dim] {event.action_type} → {result}")


@feed.command("status")
@click.argument("item_id")
@click.argument("status", type=click.Choice([s.value for s in FeedStatus if s is not FeedStatus.EXPIRED]))
@click.option("--until", "snooze_until", callback=parse_when, default=None,
              help="Snooze until (ISO 8601); required with 'snoozed'")
@click.pass_context
@handle_errors
def status(ctx: click.Context, item_id: str, status: str, snooze_until: Optional[datetime]):
    """Move a feed item to a new status."""
    item = get_services(ctx).lifecycle.update_status(_resolve_id(ctx, item_id), status, snooze_until)
    console.print(f"[green]✓[/green] {item.title} → {item.status.value}")


@feed.command("interact")
@click.argument("item_id")
@click.argument("action_id")
@click.option("--type", "action_type", required=True, help="Action type that was invoked")
@click.option("--result", type=click.Choice([r.value for r in InteractionResult]), default=None)
@click.option("--duration-ms", type=int, default=None)
@click.option("--error", "error_message", default=None)
@click.pass_context
@handle_errors
def interact(
    ctx: click.Context,
    item_id: str,
    action_id: str,
    action_type: str,
    result: Optional[str],
    duration_ms: Optional[int],
    error_message: Optional[str],
):
    """Record that an action on a feed item was used."""
    interaction = get_services(ctx).lifecycle.record_interaction(
        _resolve_id(ctx, item_id), action_id, action_type,
        result=result, duration_ms=duration_ms, error_message=error_message,
    )
    console.print(f"[green]✓[/green] recorded interaction {interaction.id[:12]}")


@feed.command("sweep")
@click.pass_context
@handle_errors
def sweep(ctx: click.Context):
    """Expire every feed item whose expiry time has passed."""
    count = get_services(ctx).lifecycle.sweep_expired()
    console.print(f"[green]✓[/green] expired {count} item(s)")
