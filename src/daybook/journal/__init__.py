"""Journal entries: model, on-disk codec, persistence, and the concurrent store.

Provides the ``Entry`` model, ``LocalPersistenceManager`` for the library
folder, ``ConcurrentJournalStore`` for in-process access, and the
``load_app`` wiring used by the CLI.
"""

from .app import AppConfig, JournalApp, add_only_config, development_config, load_app
from .formatting import TerminalEntryFormatter
from .models import Entry, EntryIDChange, LibraryLoadable, LoadingMode
from .persistence import LocalPersistenceManager
from .store import ConcurrentJournalStore, Persisting, StoreState
from .table import Column, PlainTextTable

__all__ = [
    "AppConfig",
    "Column",
    "ConcurrentJournalStore",
    "Entry",
    "EntryIDChange",
    "JournalApp",
    "LibraryLoadable",
    "LoadingMode",
    "LocalPersistenceManager",
    "Persisting",
    "PlainTextTable",
    "StoreState",
    "TerminalEntryFormatter",
    "add_only_config",
    "development_config",
    "load_app",
]
