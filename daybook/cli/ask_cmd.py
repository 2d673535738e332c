"""CLI command for asking natural language questions about stored context."""

from __future__ import annotations

import json

import click
from rich.panel import Panel
from rich.table import Table

from daybook.cli.common import console, fmt_time, get_services, handle_errors, user_option


@click.command("ask")
@click.argument("question")
@user_option
@click.option("--show-sources", is_flag=True, help="List the context entries used")
@click.option("--json", "as_json", is_flag=True, help="Print the answer, sources and tool calls as JSON")
@click.pass_context
@handle_errors
def ask(ctx: click.Context, question: str, user_id: str, show_sources: bool, as_json: bool):
    """Ask a question about your calendar, mail and profile.

    \b
    Examples:
        daybook ask "What meetings do I have tomorrow?"
        daybook ask "How long will it take to drive to my 3pm?"
        daybook ask "Will it rain during the team offsite?"
    """
    services = get_services(ctx)

    if as_json:
        result = services.answers.answer(user_id, question)
        click.echo(json.dumps({
            "answer": result.answer,
            "sources": [
                {
                    "id": src.id,
                    "source": src.source.value,
                    "content": src.content,
                    "created_at": src.created_at.isoformat(),
                    "score": src.score,
                    "similarity": src.similarity,
                }
                for src in result.sources
            ],
            "tools_used": [used.to_dict() for used in result.tools_used],
        }, indent=2))
        return

    with console.status("[bold green]Thinking..."):
        result = services.answers.answer(user_id, question)

    console.print(Panel(result.answer, title="[bold green]Daybook[/bold green]", border_style="green"))

    for used in result.tools_used:
        if used.ok:
            console.print(f"[dim]⚙ {used.tool_name}[/dim]")
        else:
            console.print(f"[dim]⚙ {used.tool_name}[/dim] [yellow]{used.error}[/yellow]")

    if show_sources and result.sources:
        table = Table(title="Sources")
        table.add_column("#", justify="right")
        table.add_column("Source", style="dim")
        table.add_column("Created", style="dim")
        table.add_column("Excerpt", style="cyan", max_width=80)
        for i, src in enumerate(result.sources, start=1):
            table.add_row(str(i), src.source.value, fmt_time(src.created_at), src.content.replace("\n", " "))
        console.print(table)
