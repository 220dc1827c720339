"""Plain-text table rendering for terminal output.

Call ``layout(viewport_width)`` to size the columns, then ``render(rows)``::

    table = PlainTextTable([Column("Title", min_width=10, wrap=True)])
    table.layout(40)
    print(table.render([["Imagine no possessions"]]), end="")

Columns grow from their minimum width toward the viewport, lowest
``resistance`` first, rightmost first among equals. A table that can't fit
is rendered at its minimum width.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

ELLIPSIS = "…"


@dataclass(frozen=True)
class Column:
    """One table column.

    Attributes:
        title: Header text. Also the default minimum width.
        min_width: Narrowest the column may be.
        max_width: Widest the column may grow. None for unbounded.
        wrap: Wrap long cells onto extra lines (True) or truncate them.
        resistance: Growth priority; lower grows first. None pins the
            column at ``min_width``.
    """

    title: str
    min_width: int | None = None
    max_width: int | None = None
    wrap: bool = False
    resistance: int | None = 0

    def __post_init__(self) -> None:
        if self.min_width is None:
            object.__setattr__(self, "min_width", len(self.title))
        if self.min_width < 0:
            raise ValueError(f"Column '{self.title}': min_width must be >= 0")
        if self.max_width is not None and self.max_width < self.min_width:
            raise ValueError(f"Column '{self.title}': max_width is less than min_width")

    @property
    def adjustable(self) -> bool:
        return self.resistance is not None


def fit(text: str, width: int, truncation: str = "") -> str:
    """Pad *text* with spaces or cut it to exactly *width* characters."""
    if len(text) <= width:
        return text.ljust(width)
    if truncation and width > len(truncation):
        return text[: width - len(truncation)] + truncation
    return text[:width]


def wrap_text(text: str, width: int) -> list[str]:
    """Break *text* into lines of at most *width* characters.

    Explicit newlines always break. Lines break at the last space that fits
    and fall back to a hard break inside a word too long for the line.
    Leading whitespace is dropped from wrapped lines.
    """
    width = max(width, 1)
    lines: list[str] = []
    for paragraph in text.split("\n"):
        wrapped = _wrap_paragraph(paragraph, width)
        lines.extend(wrapped or [""])
    return lines


def _wrap_paragraph(text: str, width: int) -> list[str]:
    lines: list[str] = []
    i = 0
    while i < len(text):
        while i < len(text) and text[i].isspace():
            i += 1
        if i >= len(text):
            break

        span = text[i : i + width]
        end = i + len(span)
        if end >= len(text) or text[end].isspace():
            lines.append(span.rstrip())
            i = end
            continue

        # Mid-word: back up to the last space, unless the word fills the line
        space = span.rfind(" ")
        if space > 0:
            lines.append(span[:space].rstrip())
            i += space + 1
        else:
            lines.append(span)
            i = end
    return lines


class PlainTextTable:
    """Renders rows of strings into aligned, wrapped text columns.

    Args:
        columns: Column definitions; at least one.
        show_row_index: Prefix each row with its zero-based index.
        margin: Spaces between columns.
        show_headers: Emit a header row.
        capitalize_headers: Uppercase the header row.
    """

    INDEX_HEADER = "#"

    def __init__(
        self,
        columns: Sequence[Column],
        show_row_index: bool = True,
        margin: int = 1,
        show_headers: bool = True,
        capitalize_headers: bool = True,
    ):
        if not columns:
            raise ValueError("A table needs at least one column")
        self.columns = list(columns)
        self.show_row_index = show_row_index
        self.margin = margin
        self.show_headers = show_headers
        self.capitalize_headers = capitalize_headers

        self.viewport_width: int | None = None
        self.index_width = 2 if show_row_index else 0
        self.column_widths = [c.min_width for c in self.columns]

    # -- Layout --------------------------------------------------------------------

    def table_width(self) -> int:
        gaps = len(self.columns) - 1 + (1 if self.show_row_index else 0)
        return self.index_width + sum(self.column_widths) + gaps * self.margin

    def layout(self, viewport_width: int) -> None:
        """Size columns to fill *viewport_width* within their constraints."""
        self.viewport_width = viewport_width
        self._apply_layout()

    def _apply_layout(self) -> None:
        self.column_widths = [c.min_width for c in self.columns]
        if self.viewport_width is None:
            return

        spare = self.viewport_width - self.table_width()
        for resistance in sorted({c.resistance for c in self.columns if c.adjustable}):
            group = [i for i, c in enumerate(self.columns) if c.resistance == resistance]
            group.reverse()
            while spare > 0:
                growable = [i for i in group if self._can_grow(i)]
                if not growable:
                    break
                for i in growable:
                    if spare == 0:
                        break
                    self.column_widths[i] += 1
                    spare -= 1

    def _can_grow(self, i: int) -> bool:
        limit = self.columns[i].max_width
        return limit is None or self.column_widths[i] < limit

    # -- Rendering -----------------------------------------------------------------

    def render(self, rows: Sequence[Sequence[str]]) -> str:
        """Render *rows* with the current layout. Each line ends with a newline.

        Raises:
            ValueError: A row doesn't have one cell per column.
        """
        for n, row in enumerate(rows):
            if len(row) != len(self.columns):
                raise ValueError(f"Row {n} has {len(row)} cells; the table has {len(self.columns)} columns")

        if self.show_row_index:
            index_width = len(str(len(rows)))
            if index_width != self.index_width:
                self.index_width = index_width
                self._apply_layout()

        out: list[str] = []
        if self.show_headers:
            header = self._render_row(self.INDEX_HEADER, [c.title for c in self.columns])
            out.append(header.upper() if self.capitalize_headers else header)
        for n, row in enumerate(rows):
            out.append(self._render_row(str(n), row))
        return "".join(out)

    def _render_row(self, label: str, cells: Sequence[str]) -> str:
        columns: list[list[str]] = []
        widths: list[int] = []
        if self.show_row_index:
            columns.append([fit(label, self.index_width)])
            widths.append(self.index_width)

        for column, width, text in zip(self.columns, self.column_widths, cells):
            if column.wrap:
                columns.append([fit(line, width) for line in wrap_text(text, width)])
            else:
                columns.append([fit(text.replace("\n", " "), width, ELLIPSIS)])
            widths.append(width)

        gap = " " * self.margin
        height = max(len(lines) for lines in columns)
        lines = []
        for line_no in range(height):
            parts = [
                cell[line_no] if line_no < len(cell) else " " * width for cell, width in zip(columns, widths)
            ]
            lines.append(gap.join(parts).rstrip() + "\n")
        return "".join(lines)
