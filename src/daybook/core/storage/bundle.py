"""
Directory-backed document bundle.

A ``DocumentBundle`` is the in-memory picture of one folder of regular files.
Callers mutate it freely in memory and push it to disk with ``write()``,
which only touches files whose bytes changed. Hidden files (dot-prefixed)
are never treated as bundle members; ``write()`` uses them as temp files.
"""

from __future__ import annotations

import os
from pathlib import Path

import aiofiles
import aiofiles.os

from ..exceptions import DirectoryContentsReadError, PersistenceError


def _is_hidden(name: str) -> bool:
    return name.startswith(".")


def _check_filename(name: str) -> None:
    """Reject names that would escape the bundle folder or hide the file."""
    if not name or not name.strip():
        raise PersistenceError("Bundle file name cannot be empty.")
    if "\x00" in name or "/" in name or "\\" in name:
        raise PersistenceError(f"Unsafe bundle file name '{name}': separators are not allowed.")
    if _is_hidden(name):
        raise PersistenceError(f"Unsafe bundle file name '{name}': hidden names are reserved.")


async def _read_regular_files(path: Path) -> tuple[dict[str, bytes], set[str]]:
    """Return (regular files by name, names of everything else) for *path*."""
    try:
        names = await aiofiles.os.listdir(path)
    except OSError as e:
        raise DirectoryContentsReadError(f"Library folder contents could not be read: {path} ({e})") from e

    files: dict[str, bytes] = {}
    foreign: set[str] = set()
    for name in sorted(names):
        if _is_hidden(name):
            continue
        full_path = path / name
        if not await aiofiles.os.path.isfile(full_path):
            foreign.add(name)
            continue
        try:
            async with aiofiles.open(full_path, "rb") as f:
                files[name] = await f.read()
        except OSError as e:
            raise DirectoryContentsReadError(f"Cannot read {full_path}: {e}") from e
    return files, foreign


class DocumentBundle:
    """In-memory set of named regular files mirrored to one directory.

    Args:
        children: Initial files by name.
        foreign_items: Names present on disk that are not regular files.
            They block those names and are never written or deleted.
    """

    def __init__(self, children: dict[str, bytes] | None = None, foreign_items: set[str] | None = None):
        self._children: dict[str, bytes] = dict(children or {})
        self.foreign_items: set[str] = set(foreign_items or ())
        self._removed: set[str] = set()

    @classmethod
    async def from_directory(cls, path: str | os.PathLike) -> DocumentBundle:
        """Snapshot the regular files currently in *path*."""
        files, foreign = await _read_regular_files(Path(path))
        return cls(files, foreign)

    # -- In-memory access ------------------------------------------------------

    @property
    def children(self) -> dict[str, bytes]:
        return dict(self._children)

    @property
    def file_names(self) -> list[str]:
        return sorted(self._children)

    def get(self, name: str) -> bytes | None:
        return self._children.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._children

    def __len__(self) -> int:
        return len(self._children)

    # -- Mutation --------------------------------------------------------------

    def add_regular_file(self, data: bytes, preferred_filename: str) -> str:
        """Add a file, returning the name it was actually stored under.

        The preferred name is used when free. Otherwise the file is stored as
        ``"<n>__<preferred>"`` with the smallest free ``n >= 2``; callers detect
        the collision by comparing the returned name.
        """
        _check_filename(preferred_filename)
        name = preferred_filename
        counter = 1
        while name in self._children or name in self.foreign_items:
            counter += 1
            name = f"{counter}__{preferred_filename}"
        self._children[name] = data
        self._removed.discard(name)
        return name

    def remove_file(self, name: str) -> bool:
        """Remove a file. Returns True if removed, False if it didn't exist."""
        if name not in self._children:
            return False
        del self._children[name]
        self._removed.add(name)
        return True

    # -- Disk ------------------------------------------------------------------

    async def matches_contents(self, path: str | os.PathLike) -> bool:
        """True when disk already reflects this bundle.

        Every file in the bundle must be on disk with the same bytes, and every
        file removed since the last write must be gone. Files the bundle never
        tracked are ignored.
        """
        folder = Path(path)
        # Saves may mutate the bundle while this coroutine is suspended on I/O.
        try:
            for name, data in list(self._children.items()):
                if await self._current_bytes(folder / name) != data:
                    return False
            for name in list(self._removed):
                if await aiofiles.os.path.isfile(folder / name):
                    return False
        except OSError:
            return False
        return True

    async def write(self, path: str | os.PathLike) -> None:
        """Write changed files atomically and delete files removed since the last write.

        Works from a snapshot of the bundle. Changes made while the write is in
        flight stay pending for the next write.
        """
        folder = Path(path)
        children = list(self._children.items())
        removed = sorted(self._removed)
        try:
            await aiofiles.os.makedirs(folder, exist_ok=True)
            for name, data in children:
                target = folder / name
                if await self._current_bytes(target) == data:
                    continue
                tmp_path = folder / f".{name}.tmp"
                async with aiofiles.open(tmp_path, "wb") as f:
                    await f.write(data)
                await aiofiles.os.replace(tmp_path, target)

            for name in removed:
                target = folder / name
                if name not in self._children and await aiofiles.os.path.isfile(target):
                    await aiofiles.os.remove(target)
                self._removed.discard(name)
        except OSError as e:
            raise PersistenceError(f"Cannot write to {folder}: {e}") from e

    @staticmethod
    async def _current_bytes(path: Path) -> bytes | None:
        if not await aiofiles.os.path.isfile(path):
            return None
        async with aiofiles.open(path, "rb") as f:
            return await f.read()
