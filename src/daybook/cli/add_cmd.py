"""daybook add: write a new journal entry."""

from __future__ import annotations

import click

from daybook.core.config import Config

TITLE_HELP = "Add an entry with a title."
ENTRY_HELP = "Add an entry with a body."


@click.command()
@click.option("--title", "-t", default="", metavar="TITLE", help=TITLE_HELP)
@click.option("--entry", "-e", "body", default="", metavar="BODY", help=ENTRY_HELP)
@click.pass_obj
def add(config: Config, title: str, body: str) -> None:
    """Add entries to your journal."""
    add_entry(config, title, body)


def add_entry(config: Config, title: str, body: str) -> None:
    from daybook.journal import LoadingMode

    from .common import exit_app, start_app

    app = start_app(config, LoadingMode.WRITE_ONLY)
    entry = app.store.add_entry(title, body).result()
    exit_app(app)

    fmt = app.formatter
    click.echo(f"Saved {fmt.format_title(entry.title)} ({fmt.format_id(entry.id)})")
