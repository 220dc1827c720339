"""Shared test fixtures for daybook."""

import os
import sys
import tempfile
import threading
import uuid

import pytest
from loguru import logger

from daybook.core.storage import DocumentBundle
from daybook.core.utils.logging import JournalLogger
from daybook.journal import Entry, LibraryLoadable


@pytest.fixture
def tmp_dir():
    """Provide a temporary directory that is cleaned up after the test."""
    with tempfile.TemporaryDirectory() as d:
        yield d


@pytest.fixture
def tmp_config_file(tmp_dir):
    """Create a temporary YAML config file pointing the library at tmp_dir."""
    import yaml

    config_data = {
        "paths": {
            "data_dir": os.path.join(tmp_dir, "data"),
        },
        "journal": {
            "location": os.path.join(tmp_dir, "library"),
            "debounce_seconds": 0.05,
            "max_staleness_seconds": 0.5,
        },
    }
    config_path = os.path.join(tmp_dir, "config.yaml")
    with open(config_path, "w") as f:
        yaml.dump(config_data, f)
    return config_path


@pytest.fixture
def journal_logger():
    """A JournalLogger that records the session for assertions."""
    return JournalLogger("test", record_session=True)


@pytest.fixture(autouse=True)
def _restore_loguru():
    """The CLI replaces loguru sinks; put the default back after each test."""
    yield
    logger.remove()
    logger.add(sys.stderr)


@pytest.fixture
def library_files():
    """Return a function listing the regular, non-hidden files in a folder."""

    def _list(folder) -> list[str]:
        return sorted(
            n for n in os.listdir(folder) if not n.startswith(".") and os.path.isfile(os.path.join(folder, n))
        )

    return _list


class BundleSpy(DocumentBundle):
    """DocumentBundle that counts physical writes and can fake name collisions.

    ``collisions`` is the number of upcoming ``add_regular_file`` calls that
    behave as if their preferred name were already taken.
    """

    def __init__(self, *args, collisions: int = 0, **kwargs):
        super().__init__(*args, **kwargs)
        self.collisions = collisions
        self.write_count = 0

    def add_regular_file(self, data: bytes, preferred_filename: str) -> str:
        if self.collisions <= 0:
            return super().add_regular_file(data, preferred_filename)
        self.collisions -= 1
        self.foreign_items.add(preferred_filename)
        try:
            return super().add_regular_file(data, preferred_filename)
        finally:
            self.foreign_items.discard(preferred_filename)

    async def write(self, path) -> None:
        await super().write(path)
        self.write_count += 1


class FakePersistence:
    """In-memory Persisting implementation for store tests."""

    def __init__(self, entries=(), load_error: Exception | None = None, terminate_error: Exception | None = None):
        self.collision_handler = None
        self.entries = list(entries)
        self.load_error = load_error
        self.terminate_error = terminate_error
        self.saved: list[Entry] = []
        self.terminate_calls = 0
        self._lock = threading.Lock()

    async def load_library(self) -> LibraryLoadable:
        if self.load_error is not None:
            raise self.load_error
        return LibraryLoadable(tuple(self.entries))

    def save(self, entries) -> None:
        with self._lock:
            self.saved.extend(entries)

    def terminate(self) -> None:
        self.terminate_calls += 1
        if self.terminate_error is not None:
            raise self.terminate_error

    def saved_ids(self) -> set[uuid.UUID]:
        with self._lock:
            return {e.id for e in self.saved}


@pytest.fixture
def bundle_spy():
    return BundleSpy()


@pytest.fixture
def fake_persistence():
    return FakePersistence()


@pytest.fixture
def fake_persistence_class():
    """The FakePersistence class, for tests that need an instance nothing else references."""
    return FakePersistence
