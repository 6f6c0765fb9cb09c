"""Tests for the background delete runner and its job functions."""

from __future__ import annotations

import threading
import time
import unittest
from pathlib import Path

from gwm.errors import GitError, TaskRunnerBusyError
from gwm.git.service import Worktree
from gwm.runtime.tasks import (
    CHANNEL_CLOSED,
    PENDING,
    AsyncTaskRunner,
    DeleteFailed,
    Done,
    PruneCompleted,
    SingleCompleted,
    delete_worktree_job,
    prune_worktrees_job,
)


def _poll_until_resolved(runner: AsyncTaskRunner, handle, timeout: float = 5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        outcome = runner.poll_completion(handle)
        if outcome is not PENDING:
            return outcome
        time.sleep(0.005)
    raise AssertionError("background job did not finish in time")


class _RecordingService:
    def __init__(self, failing_worktrees=(), failing_branches=()) -> None:
        self.repo_root = Path("/repo")
        self.failing_worktrees = set(failing_worktrees)
        self.failing_branches = set(failing_branches)
        self.deleted_worktrees: list[str] = []
        self.deleted_branches: list[str] = []

    def delete_worktree(self, name: str) -> None:
        if name in self.failing_worktrees:
            raise GitError(f"Worktree not found: {name}")
        self.deleted_worktrees.append(name)

    def delete_branch(self, name: str) -> None:
        if name in self.failing_branches:
            raise GitError(f"branch '{name}' not found")
        self.deleted_branches.append(name)


class AsyncTaskRunnerTests(unittest.TestCase):
    def test_result_is_delivered_once(self) -> None:
        runner = AsyncTaskRunner()
        handle = runner.submit(lambda: SingleCompleted("a"), "Deleting worktree a...")

        outcome = _poll_until_resolved(runner, handle)

        self.assertEqual(outcome, Done(SingleCompleted("a")))
        self.assertFalse(runner.busy)
        self.assertIs(runner.poll_completion(handle), CHANNEL_CLOSED)

    def test_pending_while_job_runs(self) -> None:
        release = threading.Event()
        runner = AsyncTaskRunner()

        def job():
            release.wait(5)
            return PruneCompleted(1, 0)

        handle = runner.submit(job, "working")
        try:
            self.assertIs(runner.poll_completion(handle), PENDING)
            self.assertTrue(runner.busy)
        finally:
            release.set()
        self.assertEqual(_poll_until_resolved(runner, handle), Done(PruneCompleted(1, 0)))

    def test_second_submit_while_busy_is_refused(self) -> None:
        release = threading.Event()
        runner = AsyncTaskRunner()

        def job():
            release.wait(5)
            return DeleteFailed("x")

        handle = runner.submit(job, "first")
        try:
            with self.assertRaises(TaskRunnerBusyError):
                runner.submit(lambda: DeleteFailed("y"), "second")
        finally:
            release.set()
        _poll_until_resolved(runner, handle)
        self.assertFalse(runner.busy)

    def test_crashed_job_reads_as_closed_channel(self) -> None:
        runner = AsyncTaskRunner()

        def job():
            raise RuntimeError("boom")

        with self.assertLogs("gwm.runtime.tasks", level="ERROR"):
            handle = runner.submit(job, "crashing")
            handle.join(5)
        self.assertIs(_poll_until_resolved(runner, handle), CHANNEL_CLOSED)
        self.assertFalse(runner.busy)

    def test_spinner_advances_with_tick(self) -> None:
        runner = AsyncTaskRunner()
        handle = runner.submit(lambda: SingleCompleted("a"), "x")
        first = handle.spinner_frame
        handle.advance()
        self.assertNotEqual(handle.spinner_frame, first)
        _poll_until_resolved(runner, handle)


class DeleteJobTests(unittest.TestCase):
    def test_single_delete_with_branch(self) -> None:
        service = _RecordingService()
        result = delete_worktree_job(lambda root: service, Path("/repo"), "a", "feat/a", True)
        self.assertEqual(result, SingleCompleted("a", "feat/a", branch_deleted=True))
        self.assertEqual(service.deleted_branches, ["feat/a"])

    def test_single_delete_keeps_branch_by_default(self) -> None:
        service = _RecordingService()
        result = delete_worktree_job(lambda root: service, Path("/repo"), "a", "feat/a", False)
        self.assertEqual(result, SingleCompleted("a", "feat/a"))
        self.assertEqual(service.deleted_branches, [])

    def test_branch_failure_does_not_undo_worktree_removal(self) -> None:
        service = _RecordingService(failing_branches={"feat/a"})
        result = delete_worktree_job(lambda root: service, Path("/repo"), "a", "feat/a", True)
        self.assertEqual(service.deleted_worktrees, ["a"])
        self.assertFalse(result.branch_deleted)
        self.assertIn("not found", result.error)

    def test_worktree_failure_is_reported(self) -> None:
        service = _RecordingService(failing_worktrees={"a"})
        result = delete_worktree_job(lambda root: service, Path("/repo"), "a", None, True)
        self.assertEqual(result, DeleteFailed("Worktree not found: a"))

    def test_prune_skips_failures_and_counts(self) -> None:
        service = _RecordingService(failing_worktrees={"b"}, failing_branches={"feat/c"})
        candidates = (
            Worktree("a", Path("/wt/a"), "feat/a"),
            Worktree("b", Path("/wt/b"), "feat/b"),
            Worktree("c", Path("/wt/c"), "feat/c"),
            Worktree("d", Path("/wt/d"), None),
        )
        with self.assertLogs("gwm.runtime.tasks", level="WARNING"):
            result = prune_worktrees_job(lambda root: service, Path("/repo"), candidates, True)
        self.assertEqual(result, PruneCompleted(worktree_count=3, branch_count=1))
        self.assertEqual(service.deleted_worktrees, ["a", "c", "d"])

    def test_prune_survives_os_error_from_one_candidate(self) -> None:
        service = _RecordingService()
        real_delete = service.delete_worktree

        def delete_worktree(name: str) -> None:
            if name == "a":
                raise PermissionError(f"cannot remove /wt/{name}")
            real_delete(name)

        service.delete_worktree = delete_worktree
        candidates = (Worktree("a", Path("/wt/a"), "feat/a"), Worktree("b", Path("/wt/b"), "feat/b"))
        runner = AsyncTaskRunner()

        with self.assertLogs("gwm.runtime.tasks", level="WARNING"):
            handle = runner.submit(
                lambda: prune_worktrees_job(lambda root: service, Path("/repo"), candidates, True),
                "Pruning...",
            )
            outcome = _poll_until_resolved(runner, handle)

        self.assertEqual(outcome, Done(PruneCompleted(worktree_count=1, branch_count=1)))
        self.assertEqual(service.deleted_worktrees, ["b"])
        self.assertEqual(service.deleted_branches, ["feat/b"])


if __name__ == "__main__":
    unittest.main()
