"""CLI commands for the user profile."""

from __future__ import annotations

import json

import click
from rich.syntax import Syntax

from daybook.cli.common import console, get_services, handle_errors, user_option


@click.group("profile")
def profile():
    """Manage the user profile (name, addresses, preferences, ...)."""
    pass


@profile.command("set")
@click.argument("profile_file", type=click.File("r"))
@user_option
@click.pass_context
@handle_errors
def set_profile(ctx: click.Context, profile_file, user_id: str):
    """Replace the profile with the JSON object in PROFILE_FILE ('-' for stdin)."""
    data = json.load(profile_file)
    get_services(ctx).profiles.update_profile(user_id, data)
    console.print(f"[green]✓[/green] Profile updated for {user_id}")


@profile.command("show")
@user_option
@click.pass_context
@handle_errors
def show_profile(ctx: click.Context, user_id: str):
    """Print the stored profile."""
    data = get_services(ctx).profiles.get_profile(user_id)
    if data is None:
        console.print(f"[yellow]No profile for {user_id}.[/yellow]")
        return
    console.print(Syntax(json.dumps(data, indent=2), "json"))


@profile.command("delete")
@user_option
@click.confirmation_option(prompt="Delete the profile and its searchable context?")
@click.pass_context
@handle_errors
def delete_profile(ctx: click.Context, user_id: str):
    """Delete the profile and its context entry."""
    if get_services(ctx).profiles.delete_profile(user_id):
        console.print(f"[green]✓[/green] Profile deleted for {user_id}")
    else:
        console.print(f"[yellow]No profile for {user_id}.[/yellow]")
