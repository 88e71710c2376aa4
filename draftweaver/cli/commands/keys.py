"""Signing key commands."""

import sys
from pathlib import Path

import click
from rich.console import Console

from draftweaver.services.signer import LocalKeySigner, SignerError

from ..config import Config, default_config_path
from .drafts import resolve_signer

console = Console()

KEY_FILE_NAME = "nostr.key"


@click.group()
def keys():
    """Create and inspect the key used to sign published drafts."""
    pass


@keys.command()
@click.option(
    "--path",
    "key_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Where to write the key (defaults to nostr.key next to the CLI config).",
)
@click.option("--force", is_flag=True, help="Overwrite an existing key file.")
def generate(key_path: Path | None, force: bool):
    """Generate a new signing key and use it for publishing."""
    target = (key_path or default_config_path().parent / KEY_FILE_NAME).expanduser()
    if target.exists() and not force:
        console.print(f"[red]Key file already exists: {target} (use --force)[/red]")
        sys.exit(1)

    signer = LocalKeySigner.generate()
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(signer.export_secret() + "\n", encoding="utf-8")
    target.chmod(0o600)

    config = Config.load()
    config.secret_key_path = target
    config.save()
    console.print(f"[green]Wrote signing key to {target}[/green]")
    console.print(signer.encode_public_key())


@keys.command()
def show():
    """Print the public key drafts are signed with."""
    try:
        signer = resolve_signer(Config.load())
    except SignerError as exc:
        console.print(f"[red]Invalid signing key: {exc}[/red]")
        sys.exit(1)
    if signer is None:
        console.print("[yellow]No signing key configured. Run `draftweaver keys generate`.[/yellow]")
        sys.exit(1)
    console.print(signer.encode_public_key())
    console.print(f"[dim]{signer.public_key}[/dim]")
