"""Exception hierarchy shared by the git service, config, and task runner."""

from __future__ import annotations


class GwmError(Exception):
    """Base class for recoverable gwm errors."""


class GitError(GwmError):
    """A ``git`` invocation failed or returned unusable output."""

    def __init__(self, message: str, *, stderr: str = "") -> None:
        super().__init__(message)
        self.stderr = stderr


class NotARepositoryError(GitError):
    """The starting directory is not inside a git repository."""


class WorktreeExistsError(GitError):
    """Target worktree directory already exists."""


class BranchNotFoundError(GitError):
    """Neither a local nor an ``origin/`` branch with that name exists."""


class InvalidKeyBindingError(GwmError):
    """A binding key string names no known key."""


class TaskRunnerBusyError(GwmError):
    """A background job was submitted while another one is outstanding."""
