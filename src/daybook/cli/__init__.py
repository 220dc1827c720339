"""Daybook CLI: entry point for the add and list commands."""

import click

from daybook import __version__


@click.group()
@click.version_option(version=__version__, package_name="daybook")
@click.option("--config", "config_file", type=click.Path(dir_okay=False), help="Path to a YAML or JSON config file.")
@click.option("--verbose", is_flag=True, help="Log debug output to stderr.")
@click.pass_context
def main(ctx: click.Context, config_file: str | None, verbose: bool) -> None:
    """Store and display personal journal entries."""
    from .common import bootstrap

    ctx.obj = bootstrap(config_file, verbose)


# Register subcommands
from .add_cmd import add
from .journal_cmd import journal
from .list_cmd import list_cmd

main.add_command(add)
main.add_command(list_cmd)

__all__ = ["journal", "main"]
