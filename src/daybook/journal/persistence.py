"""Local persistence for the journal library.

``LocalPersistenceManager`` is the only code that touches the library folder.
It keeps a ``DocumentBundle`` (one file per entry) in memory, applies saves to
it, and writes it back to disk on a debounce so bursts of saves cost one
physical write.

All bundle mutation and disk I/O run as coroutines on a private event loop
in one background thread, so they are serialized without locks. Public
methods may be called from any thread:

- ``await load_library()`` from any event loop,
- ``save(entries)`` fire-and-forget (errors are logged, never raised),
- ``terminate()`` blocks until pending work is flushed and raises on failure.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import dataclasses
import os
import threading
import time
import uuid
from collections.abc import Callable, Coroutine, Iterable
from pathlib import Path
from typing import Any

from ..core.exceptions import NamingCollisionError, ParseError, UnexpectedItemError
from ..core.storage import DocumentBundle, LibraryLocation, resolve_library_folder
from ..core.utils.logging import JournalLogger, Severity
from . import codec
from .models import Entry, EntryIDChange, LibraryLoadable, LoadingMode

CollisionHandler = Callable[[list[EntryIDChange]], Any]
"""Receives id changes made to resolve naming collisions, usually the store's handler."""

DEFAULT_DEBOUNCE_SECONDS = 1.0
DEFAULT_MAX_STALENESS_SECONDS = 5.0


def filename_for(entry_id: uuid.UUID) -> str:
    """Canonical bundle filename for an entry id."""
    return str(entry_id).upper()


class LocalPersistenceManager:
    """Bridges the in-memory entry set and the on-disk library bundle.

    Args:
        mode: Whether ``load_library`` reads existing entries.
        location: Library root (``LibraryLocation`` or a path).
        logger: Logging sink. Defaults to a ``JournalLogger("persistence")``.
        bundle: Pre-built bundle to use instead of reading the folder.
        debounce_seconds: Quiet period after the last save before writing.
        max_staleness_seconds: Upper bound on how long a save may wait for
            its write while saves keep arriving.
        artificial_latency: Extra delay applied to ``load_library``.
        collision_handler: Callback for id changes; the store installs itself.
    """

    def __init__(
        self,
        mode: LoadingMode = LoadingMode.IMMEDIATE,
        location: LibraryLocation | str | os.PathLike = LibraryLocation.DESKTOP,
        logger: JournalLogger | None = None,
        *,
        bundle: DocumentBundle | None = None,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        max_staleness_seconds: float = DEFAULT_MAX_STALENESS_SECONDS,
        artificial_latency: float = 0.0,
        collision_handler: CollisionHandler | None = None,
    ):
        if debounce_seconds < 0 or max_staleness_seconds < debounce_seconds:
            raise ValueError("Require 0 <= debounce_seconds <= max_staleness_seconds")

        self.mode = mode
        self.location = location
        self.logger = logger or JournalLogger("persistence")
        self.debounce_seconds = debounce_seconds
        self.max_staleness_seconds = max_staleness_seconds
        self.artificial_latency = artificial_latency
        self.collision_handler = collision_handler

        self._bundle = bundle
        self._folder: Path | None = None

        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None
        self._loop_guard = threading.Lock()

        # Loop-confined state: only touched from coroutines on self._loop.
        self._dirty: asyncio.Event | None = None
        self._io_lock: asyncio.Lock | None = None
        self._watcher: asyncio.Task | None = None
        self._first_dirty_at: float | None = None
        self._last_dirty_at = 0.0

    @property
    def bundle(self) -> DocumentBundle | None:
        return self._bundle

    # -- Public API --------------------------------------------------------------

    async def load_library(self) -> LibraryLoadable:
        """Load the library on the persistence thread.

        Raises:
            DirectoryNotReachableError: The library folder can't be created.
            DirectoryContentsReadError: The library folder can't be read.
        """
        return await asyncio.wrap_future(self._submit(self._load_library()))

    def save(self, entries: Iterable[Entry]) -> concurrent.futures.Future | None:
        """Schedule *entries* to be written. Returns None for an empty batch.

        The returned future resolves once the batch is in the bundle (not on
        disk); it never carries an exception.
        """
        batch = [dataclasses.replace(entry) for entry in entries]
        if not batch:
            return None
        return self._submit(self._save(batch))

    def terminate(self) -> None:
        """Flush any pending write and block until it is on disk.

        Raises:
            PersistenceError: The final write failed.
        """
        self._submit(self._terminate()).result()

    # -- Background loop ---------------------------------------------------------

    def _submit(self, coro: Coroutine[Any, Any, Any]) -> concurrent.futures.Future:
        return asyncio.run_coroutine_threadsafe(coro, self._ensure_loop())

    def _ensure_loop(self) -> asyncio.AbstractEventLoop:
        with self._loop_guard:
            if self._loop is None:
                loop = asyncio.new_event_loop()
                thread = threading.Thread(
                    target=self._run_loop, args=(loop,), name="daybook-persistence", daemon=True
                )
                thread.start()
                self._loop, self._thread = loop, thread
            return self._loop

    @staticmethod
    def _run_loop(loop: asyncio.AbstractEventLoop) -> None:
        asyncio.set_event_loop(loop)
        loop.run_forever()

    # -- Loading -------------------------------------------------------------------

    async def _load_library(self) -> LibraryLoadable:
        if self.artificial_latency:
            await asyncio.sleep(self.artificial_latency)

        bundle = await self._get_bundle()
        if self.mode is LoadingMode.WRITE_ONLY:
            return LibraryLoadable()

        for name in sorted(bundle.foreign_items):
            self.logger.log_error(UnexpectedItemError(name))

        entries: list[Entry] = []
        for name, data in bundle.children.items():
            try:
                entries.append(codec.decode(data))
            except ParseError as e:
                self.logger.log_error(ParseError(e.schema, file=name, reason=e))
        return LibraryLoadable(tuple(entries))

    def _get_folder(self) -> Path:
        if self._folder is None:
            self._folder = resolve_library_folder(self.location)
        return self._folder

    async def _get_bundle(self) -> DocumentBundle:
        if self._bundle is None:
            folder = self._get_folder()
            if self.mode is LoadingMode.WRITE_ONLY:
                self._bundle = DocumentBundle()
            else:
                self._bundle = await DocumentBundle.from_directory(folder)
        return self._bundle

    # -- Saving --------------------------------------------------------------------

    async def _save(self, batch: list[Entry]) -> None:
        try:
            bundle = await self._get_bundle()
        except Exception as e:
            self.logger.log_error(e)
            return

        for entry in batch:
            try:
                self._save_to_bundle(bundle, entry)
            except Exception as e:
                self.logger.log_error(e)

        self.logger.log_event(f"Persistence scheduled to save {len(batch)} entries")
        self._mark_dirty()

    def _save_to_bundle(self, bundle: DocumentBundle, entry: Entry) -> None:
        expected = filename_for(entry.id)
        bundle.remove_file(expected)

        saved_as = bundle.add_regular_file(codec.encode(entry), expected)
        if saved_as != expected:
            self._resolve_collision(bundle, entry, saved_as)

    def _resolve_collision(self, bundle: DocumentBundle, entry: Entry, saved_as: str) -> None:
        """Move an entry the bundle stored under a foreign name to a fresh id."""
        bundle.remove_file(saved_as)

        new_id = uuid.uuid4()
        new_name = filename_for(new_id)
        renamed = dataclasses.replace(entry, id=new_id)
        used = bundle.add_regular_file(codec.encode(renamed), new_name)

        if used != new_name:
            bundle.remove_file(used)
            self.logger.log_error(NamingCollisionError(new_name), Severity.SYSTEM_FAULT)
            return

        change = EntryIDChange(old_id=entry.id, new_id=new_id)
        self.logger.log_event(f"Persistence renamed entry {change.old_id} to {change.new_id}", Severity.DEBUG)
        if self.collision_handler is not None:
            self.collision_handler([change])

    # -- Debounced write-back ----------------------------------------------------

    def _mark_dirty(self) -> None:
        now = time.monotonic()
        self._last_dirty_at = now
        if self._first_dirty_at is None:
            self._first_dirty_at = now

        if self._dirty is None:
            self._dirty = asyncio.Event()
        if self._watcher is None or self._watcher.done():
            self._watcher = asyncio.get_running_loop().create_task(self._watch_dirty_signal(self._dirty))
        self._dirty.set()

    async def _watch_dirty_signal(self, dirty: asyncio.Event) -> None:
        """Flush once per burst of saves, no later than max staleness."""
        while True:
            await dirty.wait()
            while self._first_dirty_at is not None:
                deadline = min(
                    self._last_dirty_at + self.debounce_seconds,
                    self._first_dirty_at + self.max_staleness_seconds,
                )
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    break
                await asyncio.sleep(remaining)

            dirty.clear()
            self._first_dirty_at = None
            try:
                # Shielded so terminate() can stop the watcher without interrupting a write.
                await asyncio.shield(self._flush())
            except Exception as e:
                self.logger.log_error(e)

    async def _flush(self) -> bool:
        """Write the bundle if it differs from disk. Returns True if it wrote."""
        if self._io_lock is None:
            self._io_lock = asyncio.Lock()
        async with self._io_lock:
            if self._bundle is None:
                return False
            folder = self._get_folder()
            if await self._bundle.matches_contents(folder):
                return False
            await self._bundle.write(folder)
            return True

    # -- Termination -------------------------------------------------------------

    async def _terminate(self) -> None:
        if self._watcher is not None:
            self._watcher.cancel()
            try:
                await self._watcher
            except asyncio.CancelledError:
                pass
            self._watcher = None
        if self._dirty is not None:
            self._dirty.clear()
        self._first_dirty_at = None

        await self._flush()
        self.logger.log_event("Persistence finished saving files.")
