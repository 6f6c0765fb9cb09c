"""Application state owned by the mode machine and read by the renderer.

Dialogs are a closed union of frozen records; transitions replace them
rather than mutating in place. ``AppState`` is the single explicitly owned
state object threaded through every dispatch call.
"""

from __future__ import annotations

import enum
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Union

from ..git.service import Branch, Worktree

if TYPE_CHECKING:
    from .tasks import AsyncOperationHandle

NOTIFICATION_SECONDS = 3.0
NEW_BRANCH_INDEX = 0


class Mode(enum.Enum):
    NORMAL = "normal"
    INSERT = "insert"
    SEARCH = "search"
    DIALOG = "dialog"
    BUSY = "busy"


class PendingOperation(enum.Enum):
    REBASE = "rebase"


class Severity(enum.Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class Notification:
    message: str
    severity: Severity = Severity.INFO
    expires_at: float = 0.0


@dataclass(frozen=True)
class ConfirmDelete:
    """Confirmation for a single worktree or a merged-worktree batch.

    ``worktree`` is set for single deletes; batch deletes use the candidate
    snapshot held in ``AppState.prune_candidates``.
    """

    target: str
    worktree: Worktree | None = None


@dataclass(frozen=True)
class CreateWorktreeForm:
    """Create form; ``branch_index`` 0 means "create a new branch"."""

    branch_index: int = NEW_BRANCH_INDEX
    name: str = ""


@dataclass(frozen=True)
class BranchSelect:
    title: str
    selected: int = 0


Dialog = Union[ConfirmDelete, CreateWorktreeForm, BranchSelect]


@dataclass
class AppState:
    worktrees: list[Worktree] = field(default_factory=list)
    branches: list[Branch] = field(default_factory=list)
    filtered_worktrees: list[Worktree] = field(default_factory=list)
    selected_idx: int = 0
    mode: Mode = Mode.NORMAL
    dialog: Dialog | None = None
    pending_operation: PendingOperation | None = None
    input_buffer: str = ""
    prune_candidates: tuple[Worktree, ...] = ()
    operation: AsyncOperationHandle | None = None
    notifications: list[Notification] = field(default_factory=list)
    show_help: bool = False
    should_quit: bool = False
    dirty: bool = True

    @property
    def selected_worktree(self) -> Worktree | None:
        if 0 <= self.selected_idx < len(self.filtered_worktrees):
            return self.filtered_worktrees[self.selected_idx]
        return None

    @property
    def is_busy(self) -> bool:
        return self.mode is Mode.BUSY

    def notify(
        self,
        message: str,
        severity: Severity = Severity.INFO,
        *,
        now: float | None = None,
        seconds: float = NOTIFICATION_SECONDS,
    ) -> None:
        start = time.monotonic() if now is None else now
        self.notifications.append(Notification(message, severity, start + seconds))
        self.dirty = True

    def prune_notifications(self, now: float | None = None) -> bool:
        """Drop expired notifications; return ``True`` when any were removed."""
        current = time.monotonic() if now is None else now
        kept = [item for item in self.notifications if item.expires_at > current]
        if len(kept) == len(self.notifications):
            return False
        self.notifications = kept
        self.dirty = True
        return True

    @property
    def latest_notification(self) -> Notification | None:
        return self.notifications[-1] if self.notifications else None


__all__ = [
    "AppState",
    "BranchSelect",
    "ConfirmDelete",
    "CreateWorktreeForm",
    "Dialog",
    "Mode",
    "NEW_BRANCH_INDEX",
    "NOTIFICATION_SECONDS",
    "Notification",
    "PendingOperation",
    "Severity",
]
