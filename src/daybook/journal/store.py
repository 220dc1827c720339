"""Concurrent journal entry store.

``ConcurrentJournalStore`` owns the canonical id -> Entry map while the
process runs. Writes are queued on a single worker thread and each one
runs under the exclusive lock, so ``add_entry`` returns immediately and
writes apply in the order they were queued. Reads run on the caller's
thread under a shared lock; a read first waits for the writes queued before
it, then runs alongside other reads.

The store never touches disk. It hands new entries to a ``Persisting``
collaborator and accepts id changes back through
``entry_ids_did_change_from_conflict``.
"""

from __future__ import annotations

import asyncio
import dataclasses
import threading
import uuid
import weakref
from collections.abc import Callable, Iterable, Iterator
from concurrent.futures import Future, ThreadPoolExecutor, wait
from contextlib import contextmanager
from enum import Enum
from typing import Any, Protocol, TypeVar, runtime_checkable

from ..core.exceptions import PersistenceUnavailableError
from ..core.utils.logging import JournalLogger, Severity
from .models import Entry, EntryIDChange, LibraryLoadable

T = TypeVar("T")


@runtime_checkable
class Persisting(Protocol):
    """Contract between the store and a persistence backend."""

    collision_handler: Callable[[list[EntryIDChange]], Any] | None

    async def load_library(self) -> LibraryLoadable:
        """Load every stored entry (or none, in write-only mode)."""
        ...

    def save(self, entries: Iterable[Entry]) -> Any:
        """Schedule entries to be stored. Must not block or raise."""
        ...

    def terminate(self) -> None:
        """Flush pending work synchronously; raise on failure."""
        ...


class StoreState(Enum):
    EMPTY = "empty"
    LOADING = "loading"
    READY = "ready"


class ReadWriteLock:
    """Many concurrent readers or one writer.

    A waiting writer blocks newly arriving readers, so a queued write can't be
    starved by a steady stream of reads.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writing = False
        self._writers_waiting = 0

    @contextmanager
    def read_locked(self) -> Iterator[None]:
        with self._cond:
            while self._writing or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write_locked(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writing or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writing = True
        try:
            yield
        finally:
            with self._cond:
                self._writing = False
                self._cond.notify_all()


class ConcurrentJournalStore:
    """Thread-safe entry store backed by a ``Persisting`` collaborator.

    The store does not own the persistence object: it keeps a weak reference,
    and operations that need it fail with ``PersistenceUnavailableError`` once
    it is gone.

    Args:
        persistence: Backend that loads and saves entries.
        logger: Logging sink. Defaults to a ``JournalLogger("store")``.
    """

    def __init__(self, persistence: Persisting, logger: JournalLogger | None = None):
        self._persistence = weakref.ref(persistence)
        self.logger = logger or JournalLogger("store")
        self.state = StoreState.EMPTY
        self._entries: dict[uuid.UUID, Entry] = {}
        self._lock = ReadWriteLock()
        self._writes = ThreadPoolExecutor(max_workers=1, thread_name_prefix="daybook-store")
        self._queue_lock = threading.Lock()
        self._last_write: Future | None = None

    # -- Lifecycle -----------------------------------------------------------------

    async def start(self) -> None:
        """Load the library into memory.

        Raises:
            PersistenceUnavailableError: The persistence collaborator is gone.
            PersistenceError: Loading failed (e.g. the folder is unreachable).
        """
        persistence = self._persistence()
        if persistence is None:
            raise PersistenceUnavailableError()

        persistence.collision_handler = self.entry_ids_did_change_from_conflict
        self.state = StoreState.LOADING
        try:
            loadable = await persistence.load_library()
        except BaseException:
            self.state = StoreState.EMPTY
            raise

        # Last entry wins on duplicate ids
        loaded = {entry.id: entry for entry in loadable.entries}
        await asyncio.wrap_future(self._enqueue_write(self._replace_entries, loaded))
        self.state = StoreState.READY
        self.logger.log_event(f"JournalStore received {len(loadable.entries)} entries")

    def app_will_terminate(self) -> None:
        """Block until queued writes finish, then flush persistence.

        Raises:
            PersistenceUnavailableError: The persistence collaborator is gone.
            PersistenceError: The final flush failed.
        """
        self._await_queued_writes()
        persistence = self._persistence()
        if persistence is None:
            raise PersistenceUnavailableError()
        persistence.terminate()
        # Collision fix-ups reported during the final flush
        self._await_queued_writes()

    # -- Reads ---------------------------------------------------------------------

    def get_entry(self, entry_id: uuid.UUID) -> Entry | None:
        self._await_queued_writes()
        with self._lock.read_locked():
            entry = self._entries.get(entry_id)
        return dataclasses.replace(entry) if entry is not None else None

    def list_entries(self) -> list[Entry]:
        """Snapshot of all entries, most recently edited first."""
        self._await_queued_writes()
        with self._lock.read_locked():
            entries = [dataclasses.replace(entry) for entry in self._entries.values()]
        self.logger.log_event(f"JournalStore served entry list of {len(entries)}")
        return sorted(entries, key=lambda entry: entry.date_edited, reverse=True)

    def __len__(self) -> int:
        self._await_queued_writes()
        with self._lock.read_locked():
            return len(self._entries)

    # -- Writes --------------------------------------------------------------------

    def add_entry(self, title: str, content: str) -> Future[Entry]:
        """Queue a new entry. Returns at once; the future holds the stored entry."""
        return self._enqueue_write(self._add_entry, title, content)

    def update_entry(
        self, entry_id: uuid.UUID, title: str | None = None, content: str | None = None
    ) -> Future[Entry | None]:
        """Queue an edit. The future holds the edited entry, or None if absent."""
        return self._enqueue_write(self._update_entry, entry_id, title, content)

    def entry_ids_did_change_from_conflict(self, changes: Iterable[EntryIDChange]) -> Future[None]:
        """Re-key entries that persistence renamed to resolve a naming collision."""
        return self._enqueue_write(self._apply_id_changes, list(changes))

    # -- Write internals (run on the write thread, under the exclusive lock) --------

    def _enqueue_write(self, fn: Callable[..., T], *args: Any) -> Future[T]:
        with self._queue_lock:
            future = self._writes.submit(self._run_write, fn, *args)
            self._last_write = future
        return future

    def _run_write(self, fn: Callable[..., T], *args: Any) -> T:
        try:
            with self._lock.write_locked():
                return fn(*args)
        except Exception as e:
            self.logger.log_error(e)
            raise

    def _await_queued_writes(self) -> None:
        # The executor is FIFO, so the newest write finishing means all earlier ones did.
        pending = self._last_write
        if pending is not None:
            wait([pending])

    def _replace_entries(self, entries: dict[uuid.UUID, Entry]) -> None:
        self._entries = entries

    def _add_entry(self, title: str, content: str) -> Entry:
        entry = Entry.new(title, content)
        while entry.id in self._entries:
            entry.reassign_id(uuid.uuid4())
        self._entries[entry.id] = entry
        self._forward([entry])
        self.logger.log_event(f"JournalStore saved entry {title}")
        return dataclasses.replace(entry)

    def _update_entry(self, entry_id: uuid.UUID, title: str | None, content: str | None) -> Entry | None:
        entry = self._entries.get(entry_id)
        if entry is None:
            self.logger.log_event(f"JournalStore has no entry {entry_id} to edit", Severity.DEBUG)
            return None
        if title is not None or content is not None:
            entry.update(title=title, content=content)
            self._forward([entry])
            self.logger.log_event(f"JournalStore edited entry {entry.title}")
        return dataclasses.replace(entry)

    def _apply_id_changes(self, changes: list[EntryIDChange]) -> None:
        for change in changes:
            existing = self._entries.pop(change.old_id, None)
            if existing is None:
                self.logger.log_event(f"JournalStore handled ID conflict for missing entry {change.old_id}")
                continue
            existing.reassign_id(change.new_id)
            self._entries[change.new_id] = existing
            self.logger.log_event(f"JournalStore handled ID conflict {change.old_id} -> {change.new_id}")

    def _forward(self, entries: list[Entry]) -> None:
        persistence = self._persistence()
        if persistence is None:
            self.logger.log_error(PersistenceUnavailableError())
            return
        persistence.save([dataclasses.replace(entry) for entry in entries])
