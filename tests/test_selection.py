from __future__ import annotations

import unittest

from fakes import app, conn

from netmon_live.models import ConnectionRow
from netmon_live.state.navigation import (
    ConnectionSelection, ProcessSelection, SortColumn, ViewLevel, ViewState,
    all_connections_view, connections_view, process_list_view,
)
from netmon_live.state.selection import (
    clamp_cursor, resolve_index, selected_row, sync_selection, validate_selection,
)
from netmon_live.state.sorting import sort_process_list


class ResolveIndexTests(unittest.TestCase):
    def setUp(self) -> None:
        self.rows = [
            app("App1", conn(10, "10.0.0.1:1")),
            app("App2", conn(30, "10.0.0.1:2")),
            app("App3", conn(20, "10.0.0.1:3")),
        ]

    def test_unset_selection_returns_raw_cursor(self) -> None:
        view = ViewState(cursor=2)
        self.assertEqual(resolve_index(view, self.rows), 2)

    def test_finds_selected_process_anywhere(self) -> None:
        view = ViewState(cursor=0, selected=ProcessSelection("App2"))
        self.assertEqual(resolve_index(view, self.rows), 1)
        self.assertEqual(resolve_index(view, list(reversed(self.rows))), 1)
        self.assertEqual(resolve_index(view, [self.rows[1], self.rows[0]]), 0)

    def test_absent_process_falls_back_to_raw_cursor(self) -> None:
        view = ViewState(cursor=2, selected=ProcessSelection("Gone"))
        self.assertEqual(resolve_index(view, self.rows), 2)

    def test_connection_levels_clamp_the_cursor(self) -> None:
        view = connections_view("App1")
        view.cursor = 7
        self.assertEqual(resolve_index(view, [1, 2, 3]), 2)
        self.assertEqual(resolve_index(view, []), 0)

    def test_resort_keeps_selection_on_the_same_process(self) -> None:
        view = process_list_view()
        ordered = sort_process_list(self.rows, SortColumn.PROCESS)
        view.cursor = 1
        sync_selection(view, ordered)
        self.assertEqual(view.selected, ProcessSelection("App2"))

        resorted = sort_process_list(self.rows, SortColumn.PID, ascending=False)
        validate_selection(view, resorted)

        self.assertEqual(view.selected, ProcessSelection("App2"))
        self.assertEqual([a.name for a in resorted], ["App2", "App3", "App1"])
        self.assertEqual(view.cursor, 0)


class ValidateSelectionTests(unittest.TestCase):
    def test_empty_rows_reset_cursor_and_selection(self) -> None:
        for view in (process_list_view(), connections_view("x"), all_connections_view()):
            view.cursor = 5
            view.selected = ProcessSelection("x")
            validate_selection(view, [])
            self.assertEqual(view.cursor, 0)
            self.assertIsNone(view.selected)

    def test_cursor_stays_in_bounds_on_every_level(self) -> None:
        rows = [app("a", conn(1, "h:1")), app("b", conn(2, "h:2"))]
        for view in (process_list_view(), connections_view("a"), all_connections_view()):
            for cursor in (-3, 0, 1, 2, 40):
                view.cursor = cursor
                validate_selection(view, rows)
                self.assertGreaterEqual(view.cursor, 0)
                self.assertLessEqual(view.cursor, len(rows) - 1)

    def test_vanished_process_reselects_the_row_under_the_clamped_cursor(self) -> None:
        view = ViewState(level=ViewLevel.PROCESS_LIST, cursor=2, selected=ProcessSelection("App3"))
        rows = [app("App1", conn(1, "h:1")), app("App2", conn(2, "h:2"))]
        validate_selection(view, rows)
        self.assertEqual(view.cursor, 1)
        self.assertEqual(view.selected, ProcessSelection("App2"))

    def test_process_moved_to_new_position_follows_it(self) -> None:
        view = ViewState(cursor=0, selected=ProcessSelection("b"))
        rows = [app("a", conn(1, "h:1")), app("c", conn(3, "h:3")), app("b", conn(2, "h:2"))]
        validate_selection(view, rows)
        self.assertEqual(view.cursor, 2)


class SelectionHelpersTests(unittest.TestCase):
    def test_clamp_cursor(self) -> None:
        self.assertEqual(clamp_cursor(5, 0), 0)
        self.assertEqual(clamp_cursor(-1, 3), 0)
        self.assertEqual(clamp_cursor(9, 3), 2)

    def test_sync_selection_on_all_connections_records_the_triple(self) -> None:
        view = all_connections_view()
        rows = [ConnectionRow("curl", conn(9, "10.0.0.1:5000", "1.1.1.1:443"))]
        sync_selection(view, rows)
        self.assertEqual(view.selected, ConnectionSelection("curl", "10.0.0.1:5000", "1.1.1.1:443"))

    def test_selected_row(self) -> None:
        rows = [app("a", conn(1, "h:1")), app("b", conn(2, "h:2"))]
        view = ViewState(cursor=0, selected=ProcessSelection("b"))
        self.assertEqual(selected_row(view, rows).name, "b")
        self.assertIsNone(selected_row(view, []))


if __name__ == "__main__":
    unittest.main()
