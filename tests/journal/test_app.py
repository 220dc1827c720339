"""Tests for daybook.journal.app."""

from pathlib import Path

import pytest

from daybook.core.config import Config
from daybook.core.exceptions import DirectoryNotReachableError
from daybook.core.storage import LibraryLocation, resolve_library_folder
from daybook.journal.app import AppConfig, JournalApp, add_only_config, development_config, load_app
from daybook.journal.models import LoadingMode
from daybook.journal.store import StoreState


class TestAppConfig:
    def test_presets(self):
        assert development_config().loading_mode is LoadingMode.IMMEDIATE
        assert add_only_config().loading_mode is LoadingMode.WRITE_ONLY
        assert add_only_config(debounce_seconds=0.1).debounce_seconds == 0.1

    def test_defaults(self):
        config = AppConfig()
        assert config.location is LibraryLocation.DESKTOP
        assert config.debounce_seconds == 1.0
        assert config.max_staleness_seconds == 5.0

    def test_from_config(self, tmp_config_file, tmp_dir):
        app_config = AppConfig.from_config(Config(config_file=tmp_config_file), LoadingMode.WRITE_ONLY)
        assert str(app_config.location).endswith("library")
        assert app_config.loading_mode is LoadingMode.WRITE_ONLY
        assert app_config.debounce_seconds == 0.05
        assert app_config.max_staleness_seconds == 0.5

    def test_from_config_named_location(self, monkeypatch, tmp_dir):
        monkeypatch.setenv("DAYBOOK_JOURNAL__LOCATION", "data_dir")
        app_config = AppConfig.from_config(Config(data_dir=tmp_dir))
        assert app_config.location == Path(tmp_dir)
        assert resolve_library_folder(app_config.location) == Path(tmp_dir) / "Journal" / "UserData"

    def test_from_config_desktop_location(self):
        assert AppConfig.from_config(Config()).location is LibraryLocation.DESKTOP


class TestJournalApp:
    @pytest.mark.asyncio
    async def test_start_add_exit(self, tmp_path, journal_logger, library_files):
        app = load_app(development_config(location=tmp_path, debounce_seconds=0.05), journal_logger)
        assert isinstance(app, JournalApp)

        await app.start()
        assert app.store.state is StoreState.READY
        assert "Journal app started successfully." in [e.message for e in journal_logger.session_events]

        entry = app.store.add_entry("Imagine all the people", "Living for today").result(timeout=5)
        app.exit()

        assert library_files(resolve_library_folder(tmp_path)) == [app.formatter.format_id(entry.id)]

    @pytest.mark.asyncio
    async def test_start_failure_is_logged_and_raised(self, tmp_path, journal_logger):
        blocker = tmp_path / "not-a-dir"
        blocker.write_bytes(b"")
        app = load_app(development_config(location=blocker), journal_logger)

        with pytest.raises(DirectoryNotReachableError):
            await app.start()
        assert len(journal_logger.session_errors) == 1
        assert "Journal app started successfully." not in [e.message for e in journal_logger.session_events]
