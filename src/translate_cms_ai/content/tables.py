"""
Table utilities for extraction and publish.

Handles:
- Whitespace-aligned tabular text promoted to HTML tables
- Rendering parsed rows as compact HTML tables
- Table tag balance checks before publish
"""

from __future__ import annotations

import html
import re
from dataclasses import dataclass

from translate_cms_ai.errors import TableBalanceError

# Cells in aligned text are separated by tabs or runs of two or more spaces
_COLUMN_SPLIT = re.compile(r"\t+| {2,}")
_TABLE_OPEN = re.compile(r"<table\b", re.IGNORECASE)
_TABLE_CLOSE = re.compile(r"</table\s*>", re.IGNORECASE)


@dataclass
class TableData:
    """Header and body cells of a detected table."""

    headers: list[str]
    rows: list[list[str]]


def table_data_to_html(table_data: TableData) -> str:
    """Render TableData as a compact HTML table without blank lines."""
    lines = ["<table>"]

    if table_data.headers:
        header_cells = "".join(f"<th>{html.escape(h, quote=False)}</th>" for h in table_data.headers)
        lines.append(f"<thead><tr>{header_cells}</tr></thead>")

    lines.append("<tbody>")
    for row in table_data.rows:
        padded = row + [""] * (len(table_data.headers) - len(row))
        cells = "".join(f"<td>{html.escape(c, quote=False)}</td>" for c in padded)
        lines.append(f"<tr>{cells}</tr>")
    lines.append("</tbody>")
    lines.append("</table>")

    return "\n".join(lines)


def _split_aligned_row(line: str) -> list[str]:
    """Split a line into cells, or return [] if it does not look tabular."""
    stripped = line.strip()
    if not stripped or "<" in stripped:
        return []
    cells = [c.strip() for c in _COLUMN_SPLIT.split(stripped) if c.strip()]
    return cells if len(cells) >= 2 else []


def promote_tabular_text(text: str, min_rows: int = 2) -> str:
    """
    Replace whitespace-aligned tabular runs with explicit HTML tables.

    A run is at least ``min_rows`` consecutive lines that split into the
    same number (two or more) of cells. The first line of a run becomes
    the header row.

    Args:
        text: Plain or rich text.
        min_rows: Minimum number of aligned lines to treat as a table.

    Returns:
        Text with tabular runs rendered as ``<table>`` markup.
    """
    lines = text.split("\n")
    output: list[str] = []
    run: list[tuple[str, list[str]]] = []

    def flush() -> None:
        if len(run) >= min_rows:
            table = TableData(headers=run[0][1], rows=[cells for _, cells in run[1:]])
            output.append(table_data_to_html(table))
        else:
            output.extend(line for line, _ in run)
        run.clear()

    for line in lines:
        cells = _split_aligned_row(line)
        if cells and (not run or len(cells) == len(run[0][1])):
            run.append((line, cells))
            continue

        flush()
        if cells:
            run.append((line, cells))
        else:
            output.append(line)

    flush()
    return "\n".join(output)


def count_table_tags(content: str) -> tuple[int, int]:
    """Return the number of opening and closing table tags."""
    return len(_TABLE_OPEN.findall(content)), len(_TABLE_CLOSE.findall(content))


def check_table_balance(content: str) -> None:
    """
    Reject content whose table tags do not pair up.

    Raises:
        TableBalanceError: If the counts of ``<table>`` and ``</table>`` differ.
    """
    opened, closed = count_table_tags(content)
    if opened != closed:
        raise TableBalanceError(opened, closed)
