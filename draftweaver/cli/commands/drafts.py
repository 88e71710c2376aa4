"""Draft workflow commands: import, edit, preview and publish."""

import json
import sys
from pathlib import Path

import click
import yaml
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from draftweaver.config import load_settings
from draftweaver.models.draft_contracts import ArticleDraft, DraftEdit
from draftweaver.services.html_to_markdown import html_to_markdown
from draftweaver.services.markdown_to_html import markdown_to_html
from draftweaver.services.relay_publisher import RelayPublishError, RelayPublisher
from draftweaver.services.signer import LocalKeySigner, MissingSignerError, SignerError
from draftweaver.services.tag_mapper import build_event
from draftweaver.services.wordpress_import_service import (
    WordPressImportError,
    WordPressImportService,
)
from draftweaver.telemetry import build_telemetry_client

from ..config import Config

console = Console()


def load_draft(path: Path) -> ArticleDraft:
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    return ArticleDraft.model_validate(data)


def save_draft(draft: ArticleDraft, path: Path):
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(draft.model_dump(), f, sort_keys=False, allow_unicode=True)


def resolve_signer(config: Config) -> LocalKeySigner | None:
    secret = load_settings().secret_key or config.read_secret_key()
    if secret is None:
        return None
    return LocalKeySigner.from_secret(secret)


def _print_draft_summary(draft: ArticleDraft):
    table = Table(show_header=False, box=None)
    table.add_row("[dim]title[/dim]", draft.title or "-")
    table.add_row("[dim]identifier[/dim]", draft.identifier)
    table.add_row("[dim]summary[/dim]", draft.summary or "-")
    table.add_row("[dim]cover image[/dim]", draft.cover_image or "-")
    table.add_row("[dim]canonical url[/dim]", draft.canonical_url or "-")
    table.add_row("[dim]labels[/dim]", ", ".join(draft.labels) or "-")
    console.print(table)


def _load_or_exit(path: Path) -> ArticleDraft:
    try:
        return load_draft(path)
    except (OSError, yaml.YAMLError, ValidationError) as exc:
        console.print(f"[red]Could not read draft {path}: {exc}[/red]")
        sys.exit(1)


@click.command(name="import")
@click.argument("url")
@click.option(
    "-o",
    "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Where to write the draft (defaults to <identifier>.yaml).",
)
def import_post(url: str, output: Path | None):
    """Import a WordPress post into a draft file."""
    settings = load_settings()
    service = WordPressImportService(
        telemetry=build_telemetry_client(
            enabled=settings.telemetry_enabled,
            sink=settings.telemetry_sink,
        ),
        fetch_timeout_seconds=settings.wordpress_timeout_seconds,
        user_agent=settings.user_agent,
    )

    try:
        imported = service.import_post(url)
    except WordPressImportError as exc:
        console.print(f"[red]{exc}[/red]")
        sys.exit(1)

    draft_path = output or Path(f"{imported.draft.identifier}.yaml")
    save_draft(imported.draft, draft_path)
    console.print(f"[green]Imported draft:[/green] {draft_path}")
    _print_draft_summary(imported.draft)


@click.command()
@click.argument("draft_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--title", default=None, help="New title; also re-derives the identifier.")
@click.option("--identifier", default=None, help="Explicit identifier override.")
@click.option("--summary", default=None)
@click.option("--cover-image", default=None, help="Cover image URL; empty string clears it.")
@click.option("--canonical-url", default=None, help="Canonical URL; empty string clears it.")
@click.option("--labels", default=None, help="Comma-separated labels.")
def edit(
    draft_path: Path,
    title: str | None,
    identifier: str | None,
    summary: str | None,
    cover_image: str | None,
    canonical_url: str | None,
    labels: str | None,
):
    """Edit draft metadata in place."""
    draft = _load_or_exit(draft_path)
    updated = draft.apply_edit(
        DraftEdit(
            title=title,
            identifier=identifier,
            summary=summary,
            cover_image=cover_image,
            canonical_url=canonical_url,
            labels=labels,
        )
    )
    save_draft(updated, draft_path)
    console.print(f"[green]Updated draft:[/green] {draft_path}")
    _print_draft_summary(updated)


@click.command()
@click.argument("html_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--base-url", default=None, help="Address used to resolve relative links.")
def convert(html_path: Path, base_url: str | None):
    """Convert an HTML file to Markdown."""
    click.echo(html_to_markdown(html_path.read_text(encoding="utf-8"), base_url))


@click.command()
@click.argument("draft_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--html", "show_html", is_flag=True, help="Print the rendered body instead.")
def preview(draft_path: Path, show_html: bool):
    """Show the kind 30023 event a draft would publish."""
    draft = _load_or_exit(draft_path)
    if show_html:
        click.echo(markdown_to_html(draft.body))
        return

    try:
        signer = resolve_signer(Config.load())
    except SignerError as exc:
        console.print(f"[yellow]Ignoring signing key: {exc}[/yellow]")
        signer = None
    event = build_event(draft, signer, client=load_settings().client_tag)
    console.print_json(json.dumps(event.to_wire(), ensure_ascii=False))
    if not draft.is_publishable:
        console.print("[yellow]Draft needs an identifier, a title and content to publish.[/yellow]")


@click.command()
@click.argument("draft_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def publish(draft_path: Path):
    """Sign a draft and publish it to the write-enabled relays."""
    settings = load_settings()
    config = Config.load()
    draft = _load_or_exit(draft_path)
    if not draft.is_publishable:
        console.print("[red]Draft needs an identifier, a title and content to publish.[/red]")
        sys.exit(1)

    try:
        signer = resolve_signer(config)
    except SignerError as exc:
        console.print(f"[red]{exc}[/red]")
        sys.exit(1)

    publisher = RelayPublisher(
        telemetry=build_telemetry_client(
            enabled=settings.telemetry_enabled,
            sink=settings.telemetry_sink,
        ),
        timeout_seconds=settings.publish_timeout_seconds,
        client=settings.client_tag,
    )
    try:
        report = publisher.publish_blocking(
            build_event(draft, signer, client=settings.client_tag),
            signer=signer,
            relays=config.relay_list(settings.relay_urls),
        )
    except (MissingSignerError, RelayPublishError) as exc:
        console.print(f"[red]{exc}[/red]")
        sys.exit(1)

    console.print(f"[green]Published {draft.identifier}[/green] event id {report.event.id}")
    for url in report.accepted:
        console.print(f"  [green]✓[/green] {url}")
    for outcome in report.failed:
        console.print(f"  [red]✗[/red] {outcome.url} ({outcome.message})")
