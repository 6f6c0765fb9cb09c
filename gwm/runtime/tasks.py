"""Background execution of destructive worktree mutations.

One worker thread per submitted job, one outstanding job at a time. The
worker hands back exactly one immutable ``DeleteResult`` through a
single-slot queue that the UI thread polls once per tick; a worker that
dies without sending reads as a closed channel.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from queue import Empty, Queue
from typing import Union

from ..errors import GwmError, TaskRunnerBusyError
from ..git.service import RepositoryService, Worktree

logger = logging.getLogger(__name__)

SPINNER_FRAMES = ("⠋", "⠙", "⠹", "⠸", "⠼", "⠴", "⠦", "⠧", "⠇", "⠏")
UNEXPECTED_FAILURE_MESSAGE = "operation failed unexpectedly"


@dataclass(frozen=True)
class SingleCompleted:
    """Worktree removed; ``error`` reports a failed follow-up branch deletion."""

    name: str
    branch: str | None = None
    branch_deleted: bool = False
    error: str | None = None


@dataclass(frozen=True)
class PruneCompleted:
    worktree_count: int
    branch_count: int


@dataclass(frozen=True)
class DeleteFailed:
    message: str


DeleteResult = Union[SingleCompleted, PruneCompleted, DeleteFailed]
DeleteJob = Callable[[], DeleteResult]
ServiceFactory = Callable[[Path], RepositoryService]


@dataclass(frozen=True)
class Pending:
    pass


@dataclass(frozen=True)
class Done:
    result: DeleteResult


@dataclass(frozen=True)
class ChannelClosed:
    pass


PollOutcome = Union[Pending, Done, ChannelClosed]
PENDING = Pending()
CHANNEL_CLOSED = ChannelClosed()


class AsyncOperationHandle:
    """Receive end of one job's result plus its progress message and spinner tick."""

    def __init__(self, message: str, results: Queue[DeleteResult], worker: threading.Thread) -> None:
        self.message = message
        self.tick = 0
        self._results = results
        self._worker = worker
        self.consumed = False

    @property
    def spinner_frame(self) -> str:
        return SPINNER_FRAMES[self.tick % len(SPINNER_FRAMES)]

    def advance(self) -> None:
        self.tick += 1

    def join(self, timeout: float | None = None) -> None:
        """Block until the worker exits (tests and shutdown only)."""
        self._worker.join(timeout)


def _run_job(job: DeleteJob, results: Queue[DeleteResult]) -> None:
    try:
        result = job()
    except Exception:
        logger.exception("background job crashed before reporting a result")
        return
    results.put(result)


class AsyncTaskRunner:
    """Spawns a worker per job and refuses a second job until the first resolves."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._active: AsyncOperationHandle | None = None

    @property
    def busy(self) -> bool:
        with self._lock:
            return self._active is not None

    def submit(self, job: DeleteJob, message: str) -> AsyncOperationHandle:
        results: Queue[DeleteResult] = Queue(maxsize=1)
        worker = threading.Thread(
            target=_run_job,
            args=(job, results),
            name="gwm-delete-worker",
            daemon=True,
        )
        handle = AsyncOperationHandle(message, results, worker)
        with self._lock:
            if self._active is not None:
                raise TaskRunnerBusyError("a background operation is already running")
            self._active = handle
        logger.info("submitting background job: %s", message)
        worker.start()
        return handle

    def poll_completion(self, handle: AsyncOperationHandle) -> PollOutcome:
        """Non-blocking check for ``handle``'s result; call from the UI thread only."""
        if handle.consumed:
            return CHANNEL_CLOSED
        try:
            outcome: PollOutcome = Done(handle._results.get_nowait())
        except Empty:
            if handle._worker.is_alive():
                return PENDING
            # The worker may have put its result between the two checks.
            try:
                outcome = Done(handle._results.get_nowait())
            except Empty:
                outcome = CHANNEL_CLOSED
        handle.consumed = True
        with self._lock:
            if self._active is handle:
                self._active = None
        logger.info("background job finished: %s", outcome)
        return outcome


def delete_worktree_job(
    open_service: ServiceFactory,
    repo_root: Path,
    name: str,
    branch: str | None,
    delete_branch: bool,
) -> DeleteResult:
    """Remove one worktree, then optionally its branch.

    A failed branch deletion does not roll back the worktree removal; it is
    reported alongside the success.
    """
    try:
        service = open_service(repo_root)
        service.delete_worktree(name)
    except (GwmError, OSError) as exc:
        return DeleteFailed(str(exc))

    if not delete_branch or not branch:
        return SingleCompleted(name=name, branch=branch)
    try:
        service.delete_branch(branch)
    except (GwmError, OSError) as exc:
        return SingleCompleted(name=name, branch=branch, branch_deleted=False, error=str(exc))
    return SingleCompleted(name=name, branch=branch, branch_deleted=True)


def prune_worktrees_job(
    open_service: ServiceFactory,
    repo_root: Path,
    candidates: tuple[Worktree, ...],
    delete_branch: bool,
) -> DeleteResult:
    """Delete a fixed candidate snapshot; individual failures are skipped."""
    try:
        service = open_service(repo_root)
    except (GwmError, OSError) as exc:
        return DeleteFailed(str(exc))

    worktree_count = 0
    branch_count = 0
    for candidate in candidates:
        try:
            service.delete_worktree(candidate.name)
        except (GwmError, OSError) as exc:
            logger.warning("prune: skipping worktree %s: %s", candidate.name, exc)
            continue
        worktree_count += 1
        if delete_branch and candidate.branch:
            try:
                service.delete_branch(candidate.branch)
            except (GwmError, OSError) as exc:
                logger.warning("prune: keeping branch %s: %s", candidate.branch, exc)
                continue
            branch_count += 1
    return PruneCompleted(worktree_count=worktree_count, branch_count=branch_count)


__all__ = [
    "AsyncOperationHandle",
    "AsyncTaskRunner",
    "CHANNEL_CLOSED",
    "ChannelClosed",
    "DeleteFailed",
    "DeleteJob",
    "DeleteResult",
    "Done",
    "PENDING",
    "Pending",
    "PollOutcome",
    "PruneCompleted",
    "SPINNER_FRAMES",
    "ServiceFactory",
    "SingleCompleted",
    "UNEXPECTED_FAILURE_MESSAGE",
    "delete_worktree_job",
    "prune_worktrees_job",
]
