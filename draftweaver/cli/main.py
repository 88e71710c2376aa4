"""Main CLI entry point for DraftWeaver."""

import click

from draftweaver.config import load_settings
from draftweaver.logging_config import configure_application_logging

from .commands import drafts, keys, relays


@click.group()
@click.version_option(version="0.1.0")
@click.option("-v", "--verbose", is_flag=True, help="Log debug output to stderr.")
def main(verbose: bool):
    """DraftWeaver - map WordPress posts to NIP-23 long-form events."""
    configure_application_logging(
        load_settings(),
        console_level="DEBUG" if verbose else "WARNING",
        write_files=False,
    )


# Draft commands
main.add_command(drafts.import_post)
main.add_command(drafts.edit)
main.add_command(drafts.convert)
main.add_command(drafts.preview)
main.add_command(drafts.publish)

# Relay commands
main.add_command(relays.relays)

# Key commands
main.add_command(keys.keys)


if __name__ == "__main__":
    main()
