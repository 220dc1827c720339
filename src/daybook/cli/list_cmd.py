"""daybook list: show journal entries as a table."""

from __future__ import annotations

import shutil

import click

from daybook.core.config import Config
from daybook.journal import Column, Entry, PlainTextTable, TerminalEntryFormatter

DEFAULT_VIEWPORT_WIDTH = 30

LIST_HELP = "Enumerate your journal entries."


def entry_table() -> PlainTextTable:
    return PlainTextTable(
        [
            Column("Title", min_width=10, wrap=True, resistance=1),
            Column("Edited", min_width=10, max_width=18, wrap=True, resistance=0),
        ]
    )


def entry_rows(entries: list[Entry], formatter: TerminalEntryFormatter) -> list[list[str]]:
    return [[formatter.format_title(e.title), formatter.format_date(e.date_edited)] for e in entries]


def viewport_width() -> int:
    return shutil.get_terminal_size((DEFAULT_VIEWPORT_WIDTH, 24)).columns


@click.command("list", help=LIST_HELP)
@click.pass_obj
def list_cmd(config: Config) -> None:
    list_entries(config)


def list_entries(config: Config) -> None:
    from daybook.journal import LoadingMode

    from .common import exit_app, start_app

    app = start_app(config, LoadingMode.IMMEDIATE)
    entries = app.store.list_entries()

    table = entry_table()
    table.layout(viewport_width())
    click.echo(table.render(entry_rows(entries, app.formatter)), nl=False)

    exit_app(app)
