"""Repository access: service records, protocol, and the ``git`` implementation."""

from .service import Branch, RepositoryService, Worktree
from .worktree import GitWorktreeService

__all__ = ["Branch", "GitWorktreeService", "RepositoryService", "Worktree"]
