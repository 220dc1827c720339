"""App configuration presets, wiring, and lifecycle.

``load_app`` builds the object graph (logger, persistence, store, formatter)
from an ``AppConfig``; ``JournalApp`` starts and stops it::

    app = load_app(development_config())
    await app.start()
    app.store.add_entry("Title", "Body")
    app.exit()
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from loguru import logger

from ..core.config import Config
from ..core.storage import LibraryLocation, parse_location
from ..core.utils.logging import JournalLogger
from .formatting import TerminalEntryFormatter
from .models import LoadingMode
from .persistence import DEFAULT_DEBOUNCE_SECONDS, DEFAULT_MAX_STALENESS_SECONDS, LocalPersistenceManager
from .store import ConcurrentJournalStore


@dataclass
class AppConfig:
    """Settings the journal app is assembled from.

    Attributes:
        location: Library root (``LibraryLocation`` or custom path).
        loading_mode: Read the library at startup, or only write to it.
        debounce_seconds: Quiet period before a write-back.
        max_staleness_seconds: Longest a save may wait for its write-back.
        formatter: Display formatting for ids, titles and dates.
    """

    location: LibraryLocation | os.PathLike | str = LibraryLocation.DESKTOP
    loading_mode: LoadingMode = LoadingMode.IMMEDIATE
    debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS
    max_staleness_seconds: float = DEFAULT_MAX_STALENESS_SECONDS
    formatter: TerminalEntryFormatter = field(default_factory=TerminalEntryFormatter)

    @classmethod
    def from_config(cls, config: Config, loading_mode: LoadingMode = LoadingMode.IMMEDIATE) -> AppConfig:
        """Read the ``journal.*`` section of a Config.

        ``data_dir`` resolves against the config's ``paths.data_dir``.
        """
        location = parse_location(config.get("journal.location", LibraryLocation.DESKTOP.value))
        if location is LibraryLocation.DATA_DIR:
            location = Path(config.get_data_dir())
        return cls(
            location=location,
            loading_mode=loading_mode,
            debounce_seconds=config.get_float("journal.debounce_seconds", DEFAULT_DEBOUNCE_SECONDS),
            max_staleness_seconds=config.get_float("journal.max_staleness_seconds", DEFAULT_MAX_STALENESS_SECONDS),
        )


def development_config(**overrides) -> AppConfig:
    """Reads the whole library at startup (used by ``list``)."""
    return AppConfig(loading_mode=LoadingMode.IMMEDIATE, **overrides)


def add_only_config(**overrides) -> AppConfig:
    """Skips reading the library (used by ``add``)."""
    return AppConfig(loading_mode=LoadingMode.WRITE_ONLY, **overrides)


class JournalApp:
    """Owns the journal's collaborators for one process run.

    Holding ``persistence`` here keeps it alive for the store, which only
    references it weakly.
    """

    def __init__(
        self,
        store: ConcurrentJournalStore,
        persistence: LocalPersistenceManager,
        logger: JournalLogger,
        formatter: TerminalEntryFormatter,
    ):
        self.store = store
        self.persistence = persistence
        self.logger = logger
        self.formatter = formatter

    async def start(self) -> None:
        """Load the library. Errors are logged and re-raised."""
        try:
            await self.store.start()
        except Exception as e:
            self.logger.log_error(e)
            raise
        self.logger.log_event("Journal app started successfully.")

    def exit(self) -> None:
        """Drain pending writes and flush to disk. Errors are logged and re-raised."""
        try:
            self.store.app_will_terminate()
        except Exception as e:
            self.logger.log_error(e)
            raise


def load_app(config: AppConfig, journal_logger: JournalLogger | None = None) -> JournalApp:
    """Assemble a JournalApp from *config*."""
    journal_logger = journal_logger or JournalLogger("commandline")
    persistence = LocalPersistenceManager(
        mode=config.loading_mode,
        location=config.location,
        logger=journal_logger,
        debounce_seconds=config.debounce_seconds,
        max_staleness_seconds=config.max_staleness_seconds,
    )
    store = ConcurrentJournalStore(persistence, journal_logger)
    logger.debug(f"Journal app loaded ({config.loading_mode.value}, location={config.location})")
    return JournalApp(store=store, persistence=persistence, logger=journal_logger, formatter=config.formatter)
