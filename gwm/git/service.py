"""Repository records and the narrow service surface the UI core consumes."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Protocol


@dataclass(frozen=True)
class Worktree:
    name: str
    path: Path
    branch: str | None = None
    is_main: bool = False


@dataclass(frozen=True)
class Branch:
    name: str
    is_remote: bool = False
    is_head: bool = False

    @property
    def local_name(self) -> str:
        """Branch name without its remote prefix (``origin/a/b`` -> ``a/b``)."""
        if not self.is_remote:
            return self.name
        _remote, _sep, rest = self.name.partition("/")
        return rest or self.name


class RepositoryService(Protocol):
    """Synchronous, fallible repository operations.

    Every method may raise ``gwm.errors.GitError``.
    """

    repo_root: Path

    def list_worktrees(self) -> list[Worktree]: ...

    def list_branches(self) -> list[Branch]: ...

    def find_merged_worktrees(self, base_branch: str) -> list[Worktree]: ...

    def create_worktree(self, name: str, branch: str, base_path: Path) -> Worktree: ...

    def create_worktree_with_new_branch(self, name: str, branch: str, base_path: Path) -> Worktree: ...

    def delete_worktree(self, name: str) -> None: ...

    def delete_branch(self, name: str) -> None: ...


__all__ = ["Branch", "RepositoryService", "Worktree"]
