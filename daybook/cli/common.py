"""Helpers shared by the CLI command modules."""

from __future__ import annotations

import functools
import logging
from datetime import datetime

import click
from rich.console import Console
from rich.markup import escape

from daybook.db import parse_datetime
from daybook.errors import DaybookError, NotFoundError, ProviderError
from daybook.services import Services

console = Console()
logger = logging.getLogger(__name__)

user_option = click.option(
    "--user", "-u", "user_id", default="me", show_default=True, help="User id that owns the data",
)


def get_services(ctx: click.Context) -> Services:
    return ctx.find_root().obj


def handle_errors(fn):
    """Print expected failures in red and exit 1 instead of dumping a traceback."""

    @functools.wraps(fn)
    def wrapper(*args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except NotFoundError as exc:
            console.print(f"[red]Not found:[/red] {escape(str(exc))}")
        except ProviderError as exc:
            console.print(f"[red]Model provider failed:[/red] {escape(str(exc))}")
        except DaybookError as exc:
            console.print(f"[red]Error:[/red] {escape(str(exc))}")
        except ValueError as exc:
            # missing API keys surface as ValueError from the provider clients
            console.print(f"[red]{escape(str(exc))}[/red]")
        raise click.exceptions.Exit(1)

    return wrapper


def parse_when(ctx, param, value: str | None) -> datetime | None:
    """click callback: ISO 8601 string → aware datetime."""
    if value is None:
        return None
    try:
        return parse_datetime(value)
    except ValueError:
        raise click.BadParameter(f"expected an ISO 8601 date-time, got {value!r}")


def fmt_time(dt: datetime | None) -> str:
    return dt.strftime("%Y-%m-%d %H:%M") if dt else "—"
