"""Map a view's logical selection onto a cursor index in the current rows.

Identity tracking only happens on the process list, where a row's name is
unique. Connection rows carry a (pid, local, remote) triple that two rows can
share, so on those levels the numeric cursor is only clamped.
"""

from __future__ import annotations

from typing import Optional, Sequence

from ..models import Application, Connection, ConnectionRow
from .navigation import (
    ConnectionSelection, ProcessSelection, SelectionID, ViewLevel, ViewState,
)

def clamp_cursor(cursor: int, count: int) -> int:
    if count <= 0:
        return 0
    return max(0, min(cursor, count - 1))

def find_process_index(name: str, rows: Sequence[Application]) -> int:
    if not name:
        return -1
    for i, row in enumerate(rows):
        if row.name == name:
            return i
    return -1

def resolve_index(view: ViewState, rows: Sequence[object]) -> int:
    """Return the row index the view currently points at.

    An unset selection yields the raw cursor. On the process list the
    selected name is searched for and the raw cursor is the fallback when the
    process is gone. Connection levels always return the clamped cursor.
    """
    if view.level != ViewLevel.PROCESS_LIST:
        return clamp_cursor(view.cursor, len(rows))
    if not isinstance(view.selected, ProcessSelection):
        return view.cursor
    idx = find_process_index(view.selected.name, rows)  # type: ignore[arg-type]
    return idx if idx >= 0 else view.cursor

def selection_for_row(level: ViewLevel, row: object, process_name: str = "") -> Optional[SelectionID]:
    if level == ViewLevel.PROCESS_LIST and isinstance(row, Application):
        return ProcessSelection(row.name)
    if isinstance(row, ConnectionRow):
        return ConnectionSelection(row.process_name, row.local_addr, row.remote_addr)
    if isinstance(row, Connection):
        return ConnectionSelection(process_name, row.local_addr, row.remote_addr)
    return None

def sync_selection(view: ViewState, rows: Sequence[object]) -> None:
    """Record the identity of the row under the cursor."""
    if not rows:
        view.selected = None
        return
    view.cursor = clamp_cursor(view.cursor, len(rows))
    view.selected = selection_for_row(view.level, rows[view.cursor], view.process_name)

def validate_selection(view: ViewState, rows: Sequence[object]) -> None:
    """Re-anchor the cursor after a refresh or a sort/filter change."""
    count = len(rows)
    if count == 0:
        view.cursor = 0
        view.selected = None
        return

    if view.level != ViewLevel.PROCESS_LIST:
        view.cursor = clamp_cursor(view.cursor, count)
        return

    if isinstance(view.selected, ProcessSelection):
        idx = resolve_index(view, rows)
        if 0 <= idx < count:
            view.cursor = idx
    view.cursor = clamp_cursor(view.cursor, count)
    view.selected = selection_for_row(view.level, rows[view.cursor])

def selected_row(view: ViewState, rows: Sequence[object]) -> Optional[object]:
    if not rows:
        return None
    idx = resolve_index(view, rows)
    if 0 <= idx < len(rows):
        return rows[idx]
    return None
