"""Tests for frame construction: list rows, dialogs, help, and status line."""

from __future__ import annotations

import re
import unittest
from pathlib import Path
from unittest import mock

from gwm.git.service import Branch, Worktree
from gwm.runtime import render
from gwm.runtime.mode_machine import ModeMachine
from gwm.runtime.state import Severity

ANSI_ESCAPE_RE = re.compile(r"\x1b\[[0-9;?]*[A-Za-z]")


def _plain(rows: list[str]) -> list[str]:
    return [ANSI_ESCAPE_RE.sub("", row) for row in rows]


class _Handle:
    message = "Deleting worktree feature-a..."
    spinner_frame = "⠙"


def _machine() -> ModeMachine:
    machine = ModeMachine()
    machine.set_lists(
        [
            Worktree("project", Path("/repo/project"), "main", is_main=True),
            Worktree("feature-a", Path("/wt/feature-a"), "feature/a"),
        ],
        [Branch("main"), Branch("feature/a")],
    )
    return machine


class BuildFrameTests(unittest.TestCase):
    def test_frame_has_exactly_height_rows(self) -> None:
        rows = render.build_frame(_machine().state, 40, 10)
        self.assertEqual(len(rows), 10)

    def test_worktree_rows_and_selection_highlight(self) -> None:
        machine = _machine()
        machine.move(1)
        rows = render.build_frame(machine.state, 60, 6)
        plain = _plain(rows)

        self.assertIn("2 worktrees", plain[0])
        self.assertIn("project [main]", plain[1])
        self.assertIn("feature-a", plain[2])
        self.assertTrue(rows[2].startswith("\033[7m"))
        self.assertFalse(rows[1].startswith("\033[7m"))

    def test_search_header_shows_query(self) -> None:
        machine = _machine()
        machine.enter_search_mode()
        machine.insert_char("f")
        plain = _plain(render.build_frame(machine.state, 60, 6))
        self.assertIn("search: /f", plain[0])

    def test_create_dialog_lists_new_branch_row_first(self) -> None:
        machine = _machine()
        machine.open_create_form()
        plain = _plain(render.build_frame(machine.state, 60, 10))
        self.assertIn("> + new branch", [row.rstrip() for row in plain])
        self.assertIn("  feature/a", [row.rstrip() for row in plain])

    def test_busy_status_shows_spinner_and_message(self) -> None:
        machine = _machine()
        machine.begin_busy(_Handle())
        plain = _plain(render.build_frame(machine.state, 60, 6))
        self.assertEqual(plain[-1].rstrip(), " ⠙ Deleting worktree feature-a...")

    def test_notification_uses_severity_color(self) -> None:
        machine = _machine()
        machine.state.notify("Failed: boom", Severity.ERROR)
        rows = render.build_frame(machine.state, 60, 6)
        self.assertTrue(rows[-1].startswith("\033[38;5;203m"))

    def test_help_overlay_replaces_list(self) -> None:
        machine = _machine()
        machine.toggle_help()
        plain = _plain(render.build_frame(machine.state, 80, 8))
        self.assertEqual(plain[1], "NORMAL")
        self.assertNotIn("feature-a", "".join(plain))

    def test_long_list_scrolls_to_keep_selection_visible(self) -> None:
        machine = ModeMachine()
        machine.set_lists([Worktree(f"wt{i}", Path(f"/wt/{i}")) for i in range(20)], [])
        machine.move_bottom()
        plain = _plain(render.build_frame(machine.state, 40, 6))
        self.assertIn("wt19", plain[-2])


class HelperTests(unittest.TestCase):
    def test_clip_line(self) -> None:
        self.assertEqual(render.clip_line("abc", 5), "abc  ")
        self.assertEqual(render.clip_line("abcdef", 4), "abc…")
        self.assertEqual(render.clip_line("abc", 0), "")

    def test_list_start_for(self) -> None:
        self.assertEqual(render.list_start_for(0, 100, 10), 0)
        self.assertEqual(render.list_start_for(15, 100, 10), 6)
        self.assertEqual(render.list_start_for(99, 100, 10), 90)
        self.assertEqual(render.list_start_for(3, 5, 10), 0)

    def test_render_frame_writes_once(self) -> None:
        with mock.patch("gwm.runtime.render.os.write") as write_mock, mock.patch(
            "gwm.runtime.render.sys.stdout"
        ) as stdout_mock:
            stdout_mock.fileno.return_value = 1
            render.render_frame(_machine().state, 40, 5)

        write_mock.assert_called_once()
        payload = write_mock.call_args.args[1].decode("utf-8")
        self.assertTrue(payload.startswith("\033[H\033[J"))


if __name__ == "__main__":
    unittest.main()
