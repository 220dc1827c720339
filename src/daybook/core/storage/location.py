"""
Library location resolution.

Maps a configured ``LibraryLocation`` (or an explicit path) to the concrete
folder that holds the journal bundle, creating it on first use.
"""

from __future__ import annotations

import os
from enum import Enum
from pathlib import Path

from ..exceptions import DirectoryNotReachableError

APP_DIRECTORY_NAME = "Journal"
LIBRARY_SUBFOLDER_NAME = "UserData"


class LibraryLocation(Enum):
    """Well-known roots for the journal library."""

    DESKTOP = "desktop"
    DATA_DIR = "data_dir"

    def search_path(self) -> Path:
        if self is LibraryLocation.DESKTOP:
            return Path.home() / "Desktop"
        return Path.home() / ".daybook-data"


def parse_location(value: str | os.PathLike | LibraryLocation) -> LibraryLocation | Path:
    """Interpret a config value as a known location or a custom root path."""
    if isinstance(value, LibraryLocation):
        return value
    if isinstance(value, os.PathLike):
        return Path(value)
    try:
        return LibraryLocation(str(value).strip().lower())
    except ValueError:
        return Path(str(value)).expanduser()


def resolve_library_folder(location: LibraryLocation | str | os.PathLike) -> Path:
    """Return ``<root>/Journal/UserData`` for *location*, creating it if absent.

    Raises:
        DirectoryNotReachableError: The folder can't be created or isn't a directory.
    """
    resolved = parse_location(location)
    root = resolved.search_path() if isinstance(resolved, LibraryLocation) else resolved
    folder = root / APP_DIRECTORY_NAME / LIBRARY_SUBFOLDER_NAME

    try:
        folder.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise DirectoryNotReachableError(f"Unable to access the selected library folder: {folder} ({e})") from e

    if not folder.is_dir():
        raise DirectoryNotReachableError()
    return folder
