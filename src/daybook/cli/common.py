"""Shared setup and lifecycle logic for CLI commands."""

from __future__ import annotations

import asyncio
import sys

import click

from daybook.core.config import Config
from daybook.core.exceptions import DaybookError
from daybook.core.utils.logging import setup_logging
from daybook.journal import AppConfig, JournalApp, LoadingMode, load_app


def bootstrap(config_file: str | None, verbose: bool) -> Config:
    """Load config and configure logging. Exits with 1 on a bad config file."""
    try:
        config = Config(config_file=config_file)
    except DaybookError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    level = "DEBUG" if verbose else config.get("logging.level", "WARNING")
    setup_logging(level=level, log_file=config.get("logging.file") or None)
    return config


def start_app(config: Config, mode: LoadingMode) -> JournalApp:
    """Build the app and load the library. Exits with 1 if startup fails."""
    try:
        app = load_app(AppConfig.from_config(config, mode))
        asyncio.run(app.start())
    except DaybookError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    return app


def exit_app(app: JournalApp) -> None:
    """Flush pending saves. Exits with 1 if the final write fails."""
    try:
        app.exit()
    except DaybookError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
