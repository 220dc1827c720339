"""Tests for daybook.journal.persistence."""

import asyncio
import base64
import dataclasses
import json
import time
import uuid

import pytest

from daybook.core.exceptions import DirectoryNotReachableError
from daybook.core.storage import DocumentBundle, resolve_library_folder
from daybook.core.utils.logging import Severity
from daybook.journal import codec
from daybook.journal.models import Entry, EntryIDChange, LibraryLoadable, LoadingMode
from daybook.journal.persistence import LocalPersistenceManager, filename_for

DEBOUNCE = 0.1
STALENESS = 2.0


def _wait_for(predicate, timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


@pytest.fixture
def folder(tmp_path):
    return resolve_library_folder(tmp_path)


@pytest.fixture
def make_manager(tmp_path, journal_logger):
    def _make(mode=LoadingMode.IMMEDIATE, **kwargs):
        kwargs.setdefault("debounce_seconds", DEBOUNCE)
        kwargs.setdefault("max_staleness_seconds", STALENESS)
        return LocalPersistenceManager(mode=mode, location=tmp_path, logger=journal_logger, **kwargs)

    return _make


def _write_entry(folder, entry: Entry, **encode_kwargs) -> None:
    (folder / filename_for(entry.id)).write_bytes(codec.encode(entry, **encode_kwargs))


def _envelope(version: int, payload: dict) -> bytes:
    data = base64.b64encode(json.dumps(payload).encode()).decode()
    return json.dumps({"versionSentinel": version, "data": data}).encode()


class SlowBundle(DocumentBundle):
    """DocumentBundle whose disk reads yield to the loop, so saves land mid-write."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.write_started = False

    async def _current_bytes(self, path):
        await asyncio.sleep(0.01)
        return await DocumentBundle._current_bytes(path)

    async def write(self, path) -> None:
        self.write_started = True
        await super().write(path)


class TestConstruction:
    def test_rejects_staleness_below_debounce(self):
        with pytest.raises(ValueError):
            LocalPersistenceManager(debounce_seconds=2.0, max_staleness_seconds=1.0)

    def test_rejects_negative_debounce(self):
        with pytest.raises(ValueError):
            LocalPersistenceManager(debounce_seconds=-1.0)

    def test_initialization_touches_nothing(self, tmp_path, make_manager, journal_logger):
        manager = make_manager()
        assert manager.bundle is None
        assert list(tmp_path.iterdir()) == []
        assert journal_logger.session_events == []

    def test_filename_is_uppercase_uuid(self):
        entry_id = uuid.uuid4()
        assert filename_for(entry_id) == str(entry_id).upper()


class TestLoading:
    @pytest.mark.asyncio
    async def test_write_only_returns_empty_library(self, folder, make_manager, journal_logger):
        _write_entry(folder, Entry.new("Existing", "entry"))
        manager = make_manager(mode=LoadingMode.WRITE_ONLY)

        assert await manager.load_library() == LibraryLoadable()
        assert journal_logger.session_events == []
        assert journal_logger.session_errors == []

    @pytest.mark.asyncio
    async def test_write_only_creates_folder(self, tmp_path, make_manager):
        await make_manager(mode=LoadingMode.WRITE_ONLY).load_library()
        assert (tmp_path / "Journal" / "UserData").is_dir()

    @pytest.mark.asyncio
    async def test_immediate_empty_folder(self, folder, make_manager, journal_logger):
        assert await make_manager().load_library() == LibraryLoadable()
        assert journal_logger.session_errors == []

    @pytest.mark.asyncio
    async def test_immediate_loads_entries(self, folder, make_manager, journal_logger):
        entries = [Entry.new(f"Title {i}", f"Body {i}") for i in range(3)]
        for entry in entries:
            _write_entry(folder, entry)

        loaded = await make_manager().load_library()
        assert sorted(loaded.entries, key=lambda e: e.title) == entries
        assert journal_logger.session_errors == []

    @pytest.mark.asyncio
    async def test_loads_older_schema_files(self, folder, make_manager):
        entry = Entry.new("Old", "format")
        _write_entry(folder, entry, schema=codec.EntrySchemaV1)

        [loaded] = (await make_manager().load_library()).entries
        assert loaded.id == entry.id
        assert loaded.title == "Old"

    @pytest.mark.asyncio
    async def test_skips_unreadable_files_and_foreign_items(self, folder, make_manager, journal_logger):
        good = Entry.new("Good", "entry")
        _write_entry(folder, good)
        (folder / "GARBAGE").write_bytes(b"\x00\x01 not an entry")
        (folder / "Photos").mkdir()

        loaded = await make_manager().load_library()
        assert loaded.entries == (good,)

        messages = [e.message for e in journal_logger.session_errors]
        assert any(m.startswith("GARBAGE could not be read.") for m in messages)
        assert "Unexpected item in user directory Photos" in messages

    @pytest.mark.asyncio
    async def test_skips_files_with_unusable_dates(self, folder, make_manager, journal_logger):
        good = Entry.new("Good", "entry")
        _write_entry(folder, good)
        far_future = {
            "id": str(uuid.uuid4()).upper(),
            "title": "Far future",
            "content": "overflow",
            "dateCreated": 1e300,
            "dateEdited": 0,
        }
        naive = {
            "id": str(uuid.uuid4()),
            "title": "Naive",
            "content": "no offset",
            "dateCreated": "2024-05-01T12:00:00",
            "dateEdited": "2024-05-01T12:00:00",
        }
        (folder / "FAR-FUTURE").write_bytes(_envelope(1, far_future))
        (folder / "NAIVE").write_bytes(_envelope(2, naive))

        loaded = await make_manager().load_library()
        assert loaded.entries == (good,)

        messages = [e.message for e in journal_logger.session_errors]
        assert any(m.startswith("FAR-FUTURE could not be read.") for m in messages)
        assert any(m.startswith("NAIVE could not be read.") for m in messages)

    @pytest.mark.asyncio
    async def test_unreachable_folder_raises(self, tmp_path, journal_logger):
        blocker = tmp_path / "not-a-dir"
        blocker.write_bytes(b"")
        manager = LocalPersistenceManager(location=blocker, logger=journal_logger)
        with pytest.raises(DirectoryNotReachableError):
            await manager.load_library()

    @pytest.mark.asyncio
    async def test_artificial_latency(self, make_manager):
        manager = make_manager(artificial_latency=0.2)
        start = time.monotonic()
        await manager.load_library()
        assert time.monotonic() - start >= 0.2


class TestSaving:
    def test_save_nothing_returns_none(self, make_manager, bundle_spy):
        manager = make_manager(bundle=bundle_spy)
        assert manager.save([]) is None
        manager.terminate()
        assert bundle_spy.write_count == 0

    def test_save_writes_valid_file_once(self, folder, make_manager, bundle_spy, journal_logger):
        entry = Entry.new("Imagine all the people", "Living life in peace")
        manager = make_manager(bundle=bundle_spy)

        manager.save([entry]).result(timeout=5)
        assert _wait_for(lambda: bundle_spy.write_count == 1)

        data = (folder / filename_for(entry.id)).read_bytes()
        assert json.loads(data)["versionSentinel"] == codec.CURRENT_VERSION
        assert codec.decode(data) == entry
        assert "Persistence scheduled to save 1 entries" in [e.message for e in journal_logger.session_events]

    def test_save_copies_entries(self, folder, make_manager):
        entry = Entry.new("Original", "Body")
        manager = make_manager()
        future = manager.save([entry])
        entry.title = "Mutated after save"
        future.result(timeout=5)
        manager.terminate()

        assert codec.decode((folder / filename_for(entry.id)).read_bytes()).title == "Original"

    def test_resave_replaces_file(self, folder, make_manager, library_files):
        entry = Entry.new("Draft", "Body")
        manager = make_manager()
        manager.save([entry]).result(timeout=5)
        entry.update(title="Final")
        manager.save([entry]).result(timeout=5)
        manager.terminate()

        assert library_files(folder) == [filename_for(entry.id)]
        assert codec.decode((folder / filename_for(entry.id)).read_bytes()).title == "Final"

    def test_write_only_save_keeps_existing_files(self, folder, make_manager, library_files):
        existing = Entry.new("Existing", "entry")
        _write_entry(folder, existing)
        added = Entry.new("Added", "entry")

        manager = make_manager(mode=LoadingMode.WRITE_ONLY)
        manager.save([added]).result(timeout=5)
        manager.terminate()

        assert library_files(folder) == sorted([filename_for(existing.id), filename_for(added.id)])


class TestDebounce:
    def test_burst_coalesces_into_one_write(self, make_manager, bundle_spy):
        manager = make_manager(bundle=bundle_spy, debounce_seconds=0.3)
        entry = Entry.new("Same", "state")

        futures = [manager.save([entry]) for _ in range(5)]
        for f in futures:
            f.result(timeout=5)

        time.sleep(1.0)
        assert bundle_spy.write_count == 1

    def test_spaced_saves_each_write(self, make_manager, bundle_spy):
        manager = make_manager(bundle=bundle_spy, debounce_seconds=0.05, max_staleness_seconds=1.0)

        for i in range(5):
            manager.save([Entry.new(f"Entry {i}", "body")]).result(timeout=5)
            assert _wait_for(lambda i=i: bundle_spy.write_count == i + 1)
        time.sleep(0.2)
        assert bundle_spy.write_count == 5

    def test_continuous_saves_flush_by_max_staleness(self, make_manager, bundle_spy):
        manager = make_manager(bundle=bundle_spy, debounce_seconds=0.2, max_staleness_seconds=0.3)
        end = time.monotonic() + 1.2
        while time.monotonic() < end:
            manager.save([Entry.new("Streaming", "input")])
            time.sleep(0.05)

        # Without the staleness cap the window would keep re-arming and never flush.
        assert bundle_spy.write_count >= 2


class TestSavesDuringWriteBack:
    def test_saves_landing_mid_write_are_kept(self, folder, make_manager, journal_logger, library_files):
        bundle = SlowBundle()
        manager = make_manager(bundle=bundle, debounce_seconds=0.0, max_staleness_seconds=1.0)
        first = [Entry.new(f"Entry {i}", "body") for i in range(30)]
        manager.save(first).result(timeout=5)
        assert _wait_for(lambda: bundle.write_started)

        late = [Entry.new(f"Late {i}", "body") for i in range(5)]
        for entry in late:
            manager.save([entry]).result(timeout=5)
        manager.save([dataclasses.replace(first[0], title="Renamed")]).result(timeout=5)
        manager.terminate()

        assert journal_logger.session_errors == []
        assert library_files(folder) == sorted(filename_for(e.id) for e in first + late)
        assert codec.decode((folder / filename_for(first[0].id)).read_bytes()).title == "Renamed"


class TestTermination:
    def test_terminate_flushes_pending_save(self, folder, make_manager, library_files):
        manager = make_manager(debounce_seconds=30.0, max_staleness_seconds=30.0)
        entry = Entry.new("Imagine no possessions", "I wonder if you can")
        manager.save([entry])
        manager.terminate()
        assert library_files(folder) == [filename_for(entry.id)]

    def test_terminate_without_saves_does_not_write(self, make_manager, bundle_spy, journal_logger):
        manager = make_manager(bundle=bundle_spy)
        manager.terminate()
        assert bundle_spy.write_count == 0
        assert journal_logger.session_events[-1].message == "Persistence finished saving files."

    def test_terminate_is_idempotent(self, make_manager, bundle_spy):
        manager = make_manager(bundle=bundle_spy, debounce_seconds=30.0, max_staleness_seconds=30.0)
        manager.save([Entry.new("Once", "only")]).result(timeout=5)

        manager.terminate()
        assert bundle_spy.write_count == 1
        manager.terminate()
        assert bundle_spy.write_count == 1

    def test_terminate_after_flush_does_not_write_again(self, make_manager, bundle_spy):
        manager = make_manager(bundle=bundle_spy)
        manager.save([Entry.new("Flushed", "already")]).result(timeout=5)
        assert _wait_for(lambda: bundle_spy.write_count == 1)

        manager.terminate()
        assert bundle_spy.write_count == 1

    def test_save_after_terminate_still_persists(self, folder, make_manager, library_files):
        manager = make_manager()
        manager.terminate()
        entry = Entry.new("Late", "arrival")
        manager.save([entry]).result(timeout=5)
        manager.terminate()
        assert library_files(folder) == [filename_for(entry.id)]


class TestCollisions:
    def test_collision_moves_entry_to_new_id(self, folder, make_manager, bundle_spy, library_files):
        changes: list[EntryIDChange] = []
        bundle_spy.collisions = 1
        manager = make_manager(bundle=bundle_spy, collision_handler=changes.extend)
        entry = Entry.new("Imagine", "there's no heaven")

        manager.save([entry]).result(timeout=5)
        manager.terminate()

        [change] = changes
        assert change.old_id == entry.id
        assert change.new_id != entry.id
        assert bundle_spy.file_names == [filename_for(change.new_id)]
        assert library_files(folder) == [filename_for(change.new_id)]

        stored = codec.decode((folder / filename_for(change.new_id)).read_bytes())
        assert stored.id == change.new_id
        assert stored.title == entry.title

    def test_double_collision_drops_entry(self, make_manager, bundle_spy, journal_logger):
        changes: list[EntryIDChange] = []
        bundle_spy.collisions = 2
        manager = make_manager(bundle=bundle_spy, collision_handler=changes.extend)

        manager.save([Entry.new("Unlucky", "twice")]).result(timeout=5)
        manager.terminate()

        assert changes == []
        assert len(bundle_spy) == 0
        [error] = journal_logger.session_errors
        assert error.severity is Severity.SYSTEM_FAULT
        assert error.message.startswith("Filename collision")

    def test_collision_without_handler(self, make_manager, bundle_spy):
        bundle_spy.collisions = 1
        manager = make_manager(bundle=bundle_spy)
        entry = Entry.new("Nobody", "listening")

        manager.save([entry]).result(timeout=5)
        assert len(bundle_spy) == 1
        assert filename_for(entry.id) not in bundle_spy
