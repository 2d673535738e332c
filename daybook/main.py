"""Daybook CLI: ask questions about, and get a feed from, your calendar, mail and profile."""

import logging
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.logging import RichHandler

from daybook.cli.ask_cmd import ask
from daybook.cli.context_cmd import ingest, search, stats
from daybook.cli.feed_cmd import feed
from daybook.cli.profile_cmd import profile
from daybook.config import API_KEYS, DaybookConfig, config_path, load_config, save_config, store_api_key
from daybook.services import build_services

console = Console()

KEY_ACCOUNTS = sorted(API_KEYS.values())


def _setup_logging(verbose: bool):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True, show_path=verbose)],
        force=True,
    )
    # SDK and HTTP client chatter stays at WARNING even with --verbose
    for noisy in ("httpx", "httpcore", "urllib3", "google_genai", "anthropic"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


@click.group()
@click.option("--config", "config_file", type=click.Path(dir_okay=False), default=None,
              help="Config file (default: $DAYBOOK_CONFIG or ~/.daybook/config.json)")
@click.option("--db", "db_path", type=click.Path(dir_okay=False), default=None,
              help="SQLite database path (overrides config)")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging")
@click.pass_context
def cli(ctx: click.Context, config_file: Optional[str], db_path: Optional[str], verbose: bool):
    """Daybook: personal context search, answers and feed."""
    _setup_logging(verbose)
    ctx.meta["config_path"] = Path(config_file) if config_file else config_path()
    if ctx.obj is not None:
        return

    config = load_config(ctx.meta["config_path"])
    if db_path:
        config.db_path = db_path
    services = build_services(config)
    ctx.obj = services
    ctx.call_on_close(services.close)


@cli.command("set-key")
@click.argument("provider", type=click.Choice(KEY_ACCOUNTS))
@click.option("--key", prompt=True, hide_input=True, help="API key")
def set_key(provider, key):
    """Store an API key in macOS Keychain.

    Examples:

        daybook set-key gemini

        daybook set-key google-maps
    """
    if store_api_key(provider, key):
        console.print(f"[green]✓[/green] {provider} API key stored in Keychain")
    else:
        console.print("[red]Failed to store key in Keychain[/red]")
        raise click.exceptions.Exit(1)


@cli.command("init-config")
@click.option("--force", is_flag=True, help="Overwrite an existing config file")
@click.pass_context
def init_config(ctx: click.Context, force: bool):
    """Write a config file holding the default settings."""
    path = ctx.meta["config_path"]
    if path.exists() and not force:
        console.print(f"[red]{path} already exists[/red] (use --force to overwrite)")
        raise click.exceptions.Exit(1)

    save_config(DaybookConfig(), path)
    console.print(f"[green]✓[/green] Wrote default config to {path}")


cli.add_command(ingest)
cli.add_command(search)
cli.add_command(stats)
cli.add_command(ask)
cli.add_command(feed)
cli.add_command(profile)


if __name__ == "__main__":
    cli()
