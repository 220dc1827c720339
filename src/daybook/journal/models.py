"""Core data models for the journal.

Entries are plain dataclasses; identity and timestamps are only changed
through ``update`` and ``reassign_id``.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LoadingMode(Enum):
    """How the persistence layer treats the existing library at startup."""

    IMMEDIATE = "immediate"  # Read and decode every stored entry
    WRITE_ONLY = "write_only"  # Skip reading; only make sure the folder exists


@dataclass
class Entry:
    """A single journal record.

    Attributes:
        id: Random 128-bit identifier; also the entry's filename on disk.
        title: Entry title (may be empty).
        content: Entry body.
        date_created: Set once at construction.
        date_edited: Refreshed whenever title or content is edited.
    """

    id: uuid.UUID
    title: str
    content: str
    date_created: datetime
    date_edited: datetime

    def __hash__(self) -> int:
        return hash((self.id, self.title, self.content, self.date_created, self.date_edited))

    @classmethod
    def new(cls, title: str, content: str) -> Entry:
        now = utcnow()
        return cls(id=uuid.uuid4(), title=title, content=content, date_created=now, date_edited=now)

    def update(self, title: str | None = None, content: str | None = None) -> None:
        """Replace the supplied fields and refresh ``date_edited``.

        Passing neither field is a no-op; the edit date does not move.
        """
        if title is None and content is None:
            return
        if title is not None:
            self.title = title
        if content is not None:
            self.content = content
        self.date_edited = max(utcnow(), self.date_created)

    def reassign_id(self, new_id: uuid.UUID) -> None:
        """Swap the identifier after a storage naming collision."""
        self.id = new_id

    def __repr__(self) -> str:
        preview = self.title[:30] + "..." if len(self.title) > 30 else self.title
        return f"Entry(id='{self.id}', title='{preview}', edited='{self.date_edited.isoformat()}')"


@dataclass(frozen=True)
class EntryIDChange:
    """An entry renamed by the persistence layer to resolve a naming collision."""

    old_id: uuid.UUID
    new_id: uuid.UUID


@dataclass(frozen=True)
class LibraryLoadable:
    """Contents of the persistent library as handed to the store on startup."""

    entries: tuple[Entry, ...] = field(default_factory=tuple)

    def __len__(self) -> int:
        return len(self.entries)
