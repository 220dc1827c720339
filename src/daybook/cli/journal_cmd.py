"""journal: the options-only interface.

``journal --create BODY --title TITLE`` adds an entry and ``journal --list``
lists them. Both may be given at once; with neither, help is shown and the
command exits with a usage error.
"""

from __future__ import annotations

import click

from .add_cmd import ENTRY_HELP, TITLE_HELP, add_entry
from .common import bootstrap
from .list_cmd import LIST_HELP, list_entries


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.option("--create", "body", default="", metavar="BODY", help=ENTRY_HELP)
@click.option("--title", default="", metavar="TITLE", help=TITLE_HELP)
@click.option("--list", "show_list", is_flag=True, help=LIST_HELP)
@click.option("--config", "config_file", type=click.Path(dir_okay=False), help="Path to a YAML or JSON config file.")
@click.option("--verbose", is_flag=True, help="Log debug output to stderr.")
@click.pass_context
def journal(
    ctx: click.Context, body: str, title: str, show_list: bool, config_file: str | None, verbose: bool
) -> None:
    """Store and display personal journal entries."""
    creating = bool(body or title)
    if not creating and not show_list:
        click.echo(ctx.get_help())
        ctx.exit(2)

    config = bootstrap(config_file, verbose)
    if creating:
        add_entry(config, title, body)
    if show_list:
        list_entries(config)
