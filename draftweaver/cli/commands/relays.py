"""Relay list management commands."""

import sys

import click
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from draftweaver.config import load_settings
from draftweaver.models.relay_contracts import RelayList

from ..config import Config

console = Console()


def _load_relays() -> tuple[Config, RelayList]:
    config = Config.load()
    return config, config.relay_list(load_settings().relay_urls)


def _print_relays(relays: RelayList):
    table = Table("relay", "read", "write")
    for relay in relays:
        table.add_row(relay.url, "yes" if relay.read else "no", "yes" if relay.write else "no")
    console.print(table)


@click.group()
def relays():
    """Manage the relays drafts are published to."""
    pass


@relays.command(name="list")
def list_relays():
    """Show configured relays."""
    _, relay_list = _load_relays()
    _print_relays(relay_list)


@relays.command()
@click.argument("url")
@click.option("--read/--no-read", default=True)
@click.option("--write/--no-write", default=True)
def add(url: str, read: bool, write: bool):
    """Add a relay."""
    config, relay_list = _load_relays()
    try:
        relay_list.add(url, read=read, write=write)
    except ValidationError:
        console.print(f"[red]Not a ws:// or wss:// relay URL: {url}[/red]")
        sys.exit(1)
    config.store_relays(relay_list)
    _print_relays(relay_list)


@relays.command()
@click.argument("url")
def remove(url: str):
    """Remove a relay (the last relay is always kept)."""
    config, relay_list = _load_relays()
    if not relay_list.remove(url):
        console.print(f"[yellow]Relay not removed: {url}[/yellow]")
        return
    config.store_relays(relay_list)
    _print_relays(relay_list)


@relays.command()
@click.argument("url")
@click.argument("access", type=click.Choice(["read", "write"]))
def toggle(url: str, access: str):
    """Flip the read or write flag of a relay."""
    config, relay_list = _load_relays()
    updated = relay_list.toggle(url, "read" if access == "read" else "write")
    if updated is None:
        console.print(f"[red]Relay not configured: {url}[/red]")
        sys.exit(1)
    config.store_relays(relay_list)
    _print_relays(relay_list)
