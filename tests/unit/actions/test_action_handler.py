"""Tests for ``ActionHandler`` wiring between the mode machine and services."""

from __future__ import annotations

import time
import unittest
from pathlib import Path
from unittest import mock

from gwm.actions import handler as handler_mod
from gwm.actions.handler import ActionHandler, HandlerContext, default_base_branch
from gwm.actions.types import Action, ActionKind
from gwm.config.loader import Config
from gwm.errors import GitError, WorktreeExistsError
from gwm.git.service import Branch, Worktree
from gwm.runtime.mode_machine import ModeMachine
from gwm.runtime.state import ConfirmDelete, CreateWorktreeForm, Mode, Severity
from gwm.runtime.tasks import AsyncTaskRunner


class _FakeService:
    def __init__(self) -> None:
        self.repo_root = Path("/repo/project")
        self.worktrees = [
            Worktree("project", self.repo_root, "main", is_main=True),
            Worktree("feature-a", Path("/wt/feature-a"), "feature/a"),
        ]
        self.branches = [Branch("main", is_head=True), Branch("feature/a"), Branch("origin/remote-only", is_remote=True)]
        self.merged: list[Worktree] = []
        self.calls: list[tuple] = []
        self.create_error: Exception | None = None

    def list_worktrees(self) -> list[Worktree]:
        self.calls.append(("list_worktrees",))
        return list(self.worktrees)

    def list_branches(self) -> list[Branch]:
        self.calls.append(("list_branches",))
        return list(self.branches)

    def find_merged_worktrees(self, base_branch: str) -> list[Worktree]:
        self.calls.append(("find_merged_worktrees", base_branch))
        return list(self.merged)

    def create_worktree(self, name: str, branch: str, base_path: Path) -> Worktree:
        self.calls.append(("create_worktree", name, branch, base_path))
        if self.create_error is not None:
            raise self.create_error
        worktree = Worktree(name, base_path / name, branch)
        self.worktrees.append(worktree)
        return worktree

    def create_worktree_with_new_branch(self, name: str, branch: str, base_path: Path) -> Worktree:
        self.calls.append(("create_worktree_with_new_branch", name, branch, base_path))
        worktree = Worktree(name, base_path / name, branch)
        self.worktrees.append(worktree)
        return worktree

    def delete_worktree(self, name: str) -> None:
        self.calls.append(("delete_worktree", name))
        self.worktrees = [wt for wt in self.worktrees if wt.name != name]

    def delete_branch(self, name: str) -> None:
        self.calls.append(("delete_branch", name))


class ActionHandlerTestBase(unittest.TestCase):
    def setUp(self) -> None:
        self.service = _FakeService()
        self.runner = AsyncTaskRunner()
        self.config = Config(worktree_basedir="/wt")
        self.suspend = mock.Mock(side_effect=lambda run: None)
        self.handler = ActionHandler(
            HandlerContext(
                service=self.service,
                runner=self.runner,
                config=self.config,
                open_service=lambda root: self.service,
                suspend=self.suspend,
            )
        )
        self.machine = ModeMachine()
        self.machine.set_lists(self.service.list_worktrees(), self.service.list_branches())
        self.service.calls.clear()

    def do(self, kind: ActionKind, text: str = "") -> None:
        self.handler.handle(self.machine, Action(kind, text))

    def wait_idle(self, timeout: float = 5.0) -> None:
        deadline = time.monotonic() + timeout
        while self.machine.state.is_busy:
            if time.monotonic() > deadline:
                raise AssertionError("operation did not finish in time")
            self.handler.tick(self.machine)
            time.sleep(0.005)


class HandlerTableTests(unittest.TestCase):
    def test_every_action_kind_has_an_operation(self) -> None:
        self.assertEqual(set(handler_mod._OPERATIONS), set(ActionKind))


class DeleteFlowTests(ActionHandlerTestBase):
    def test_confirmed_delete_runs_in_background_then_refreshes(self) -> None:
        self.do(ActionKind.MOVE_DOWN)
        self.do(ActionKind.DELETE_WORKTREE)
        self.assertEqual(self.machine.state.dialog.target, "feature-a")

        self.do(ActionKind.CONFIRM)
        self.assertIs(self.machine.state.mode, Mode.BUSY)
        self.assertEqual(self.machine.state.operation.message, "Deleting worktree feature-a...")

        self.wait_idle()

        self.assertIs(self.machine.state.mode, Mode.NORMAL)
        self.assertEqual(self.machine.state.latest_notification.message, "Deleted worktree: feature-a")
        self.assertEqual([wt.name for wt in self.machine.state.worktrees], ["project"])
        self.assertNotIn(("delete_branch", "feature/a"), self.service.calls)

    def test_shift_y_also_deletes_branch(self) -> None:
        self.do(ActionKind.MOVE_DOWN)
        self.do(ActionKind.DELETE_WORKTREE)
        self.do(ActionKind.INSERT_CHAR, "Y")
        self.wait_idle()

        self.assertIn(("delete_branch", "feature/a"), self.service.calls)
        self.assertEqual(
            self.machine.state.latest_notification.message,
            "Deleted worktree 'feature-a' and branch 'feature/a'",
        )

    def test_n_cancels_confirmation(self) -> None:
        self.do(ActionKind.MOVE_DOWN)
        self.do(ActionKind.DELETE_WORKTREE)
        self.do(ActionKind.INSERT_CHAR, "n")
        self.assertIsNone(self.machine.state.dialog)
        self.assertIs(self.machine.state.mode, Mode.NORMAL)
        self.assertFalse(self.runner.busy)

    def test_other_letters_are_ignored_in_confirmation(self) -> None:
        self.do(ActionKind.MOVE_DOWN)
        self.do(ActionKind.DELETE_WORKTREE)
        self.do(ActionKind.INSERT_CHAR, "x")
        self.assertIsInstance(self.machine.state.dialog, ConfirmDelete)

    def test_main_worktree_is_never_handed_to_the_runner(self) -> None:
        self.assertTrue(self.machine.state.selected_worktree.is_main)

        self.do(ActionKind.DELETE_WORKTREE)
        self.do(ActionKind.CONFIRM)
        self.do(ActionKind.INSERT_CHAR, "Y")

        self.assertFalse(self.runner.busy)
        self.assertIs(self.machine.state.mode, Mode.NORMAL)
        self.assertIsNone(self.machine.state.dialog)
        self.assertEqual(self.machine.state.latest_notification.message, "Cannot delete main worktree")
        self.assertEqual(self.service.calls, [])

    def test_actions_are_ignored_while_busy(self) -> None:
        self.do(ActionKind.MOVE_DOWN)
        self.do(ActionKind.DELETE_WORKTREE)
        self.do(ActionKind.CONFIRM)
        self.do(ActionKind.FORCE_QUIT)
        self.do(ActionKind.CREATE_WORKTREE)
        self.assertFalse(self.machine.state.should_quit)
        self.wait_idle()
        self.assertIsNone(self.machine.state.dialog)

    def test_prune_uses_main_as_base_and_snapshots_candidates(self) -> None:
        self.service.merged = [self.service.worktrees[1]]
        self.do(ActionKind.DELETE_MERGED_WORKTREES)

        self.assertIn(("find_merged_worktrees", "main"), self.service.calls)
        self.assertEqual(self.machine.state.dialog, ConfirmDelete(target="1 merged worktrees"))

        self.do(ActionKind.CONFIRM)
        self.assertEqual(self.machine.state.operation.message, "Deleting 1 merged worktree(s)...")
        self.wait_idle()
        self.assertEqual(self.machine.state.latest_notification.message, "Pruned 1 merged worktree(s)")

    def test_prune_lookup_failure_is_notified(self) -> None:
        self.service.find_merged_worktrees = mock.Mock(side_effect=GitError("Branch not found: main"))
        self.do(ActionKind.DELETE_MERGED_WORKTREES)
        notification = self.machine.state.latest_notification
        self.assertEqual(notification.message, "Failed: Branch not found: main")
        self.assertIs(notification.severity, Severity.ERROR)
        self.assertIsNone(self.machine.state.dialog)

    def test_default_base_branch_prefers_main_then_master(self) -> None:
        self.assertEqual(default_base_branch(self.machine), "main")
        self.machine.set_lists([], [Branch("master"), Branch("dev")])
        self.assertEqual(default_base_branch(self.machine), "master")
        self.machine.set_lists([], [Branch("dev")])
        self.assertEqual(default_base_branch(self.machine), "main")


class CreateFlowTests(ActionHandlerTestBase):
    def test_empty_new_branch_name_is_rejected_without_service_calls(self) -> None:
        self.do(ActionKind.CREATE_WORKTREE)
        self.do(ActionKind.CONFIRM)

        self.assertEqual(self.service.calls, [])
        self.assertIsInstance(self.machine.state.dialog, CreateWorktreeForm)
        self.assertEqual(self.machine.state.latest_notification.message, "Please enter a branch name")

    def test_new_branch_creates_sanitized_worktree(self) -> None:
        self.do(ActionKind.CREATE_WORKTREE)
        for char in "feat/x":
            self.do(ActionKind.INSERT_CHAR, char)
        with mock.patch("pathlib.Path.mkdir"):
            self.do(ActionKind.CONFIRM)

        self.assertIn(("create_worktree_with_new_branch", "feat-x", "feat/x", Path("/wt")), self.service.calls)
        self.assertIs(self.machine.state.mode, Mode.NORMAL)
        self.assertEqual(self.machine.state.latest_notification.message, "Created branch 'feat/x' and worktree 'feat-x'")
        self.assertIn("feat-x", [wt.name for wt in self.machine.state.worktrees])

    def test_existing_remote_branch_uses_local_name(self) -> None:
        self.do(ActionKind.CREATE_WORKTREE)
        self.do(ActionKind.MOVE_BOTTOM)
        with mock.patch("pathlib.Path.mkdir"):
            self.do(ActionKind.CONFIRM)

        self.assertIn(("create_worktree", "remote-only", "remote-only", Path("/wt")), self.service.calls)
        self.assertEqual(self.machine.state.latest_notification.message, "Created worktree: remote-only")

    def test_failed_create_keeps_form_open(self) -> None:
        self.service.create_error = WorktreeExistsError("Worktree already exists: feature-a")
        self.do(ActionKind.CREATE_WORKTREE)
        self.do(ActionKind.MOVE_DOWN)
        self.do(ActionKind.MOVE_DOWN)
        with mock.patch("pathlib.Path.mkdir"), self.assertLogs("gwm.actions.handler", level="WARNING"):
            self.do(ActionKind.CONFIRM)

        self.assertIsInstance(self.machine.state.dialog, CreateWorktreeForm)
        notification = self.machine.state.latest_notification
        self.assertEqual(notification.message, "Failed to create: Worktree already exists: feature-a")
        self.assertIs(notification.severity, Severity.ERROR)


class MiscActionTests(ActionHandlerTestBase):
    def test_rebase_selection_notifies_stub(self) -> None:
        self.do(ActionKind.REBASE_WORKTREE)
        self.do(ActionKind.MOVE_DOWN)
        self.do(ActionKind.SELECT)
        self.assertEqual(self.machine.state.latest_notification.message, "Rebase onto feature/a (not yet implemented)")
        self.assertIs(self.machine.state.mode, Mode.NORMAL)

    def test_refresh_reloads_lists(self) -> None:
        self.service.worktrees.append(Worktree("late", Path("/wt/late"), "late"))
        self.do(ActionKind.REFRESH)
        self.assertEqual(len(self.machine.state.worktrees), 3)
        self.assertEqual(self.machine.state.latest_notification.message, "Refreshed")

    def test_select_in_normal_opens_shell_through_suspend(self) -> None:
        self.do(ActionKind.SELECT)
        self.suspend.assert_called_once()
        self.assertIn(("list_worktrees",), self.service.calls)

    def test_run_command_runs_in_selected_worktree(self) -> None:
        self.suspend.side_effect = lambda run: run()
        self.do(ActionKind.MOVE_DOWN)
        with mock.patch("gwm.actions.handler.subprocess.run") as run_mock, mock.patch(
            "builtins.input", return_value=""
        ), mock.patch("builtins.print"):
            run_mock.return_value.returncode = 0
            self.handler.handle(self.machine, Action.run_command("make test"))

        run_mock.assert_called_once_with(["sh", "-c", "make test"], cwd=Path("/wt/feature-a"), check=False)

    def test_select_in_search_keeps_filter(self) -> None:
        self.do(ActionKind.ENTER_SEARCH_MODE)
        self.do(ActionKind.INSERT_CHAR, "f")
        self.do(ActionKind.SELECT)
        self.assertIs(self.machine.state.mode, Mode.NORMAL)
        self.assertEqual([wt.name for wt in self.machine.state.filtered_worktrees], ["feature-a"])
        self.suspend.assert_not_called()

    def test_help_and_quit(self) -> None:
        self.do(ActionKind.TOGGLE_HELP)
        self.assertTrue(self.machine.state.show_help)
        self.do(ActionKind.QUIT)
        self.assertTrue(self.machine.state.should_quit)

    def test_notifications_expire_on_tick(self) -> None:
        self.machine.state.notify("old", now=0.0)
        self.handler.tick(self.machine)
        self.assertIsNone(self.machine.state.latest_notification)


if __name__ == "__main__":
    unittest.main()
