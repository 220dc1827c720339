"""Display formatting for entry ids, titles and dates."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime

UNTITLED = "[Untitled]"


@dataclass(frozen=True)
class TerminalEntryFormatter:
    """Short, terminal-friendly strings for entry fields.

    Attributes:
        date_format: strftime pattern for dates, rendered in local time.
    """

    date_format: str = "%m/%d/%y, %I:%M %p"

    def format_id(self, entry_id: uuid.UUID) -> str:
        return str(entry_id).upper()

    def format_title(self, title: str) -> str:
        return title if title.strip() else UNTITLED

    def format_date(self, date: datetime) -> str:
        return date.astimezone().strftime(self.date_format)
