"""Mode and dialog transitions over ``AppState``.

Every method here is a pure state mutation: no repository access and no
background work. Transitions that are not valid from the current mode are
ignored and return ``False``.
"""

from __future__ import annotations

from dataclasses import replace

from ..git.service import Branch, Worktree
from .state import (
    AppState,
    BranchSelect,
    ConfirmDelete,
    CreateWorktreeForm,
    Mode,
    PendingOperation,
    Severity,
)
from .tasks import (
    UNEXPECTED_FAILURE_MESSAGE,
    AsyncOperationHandle,
    DeleteFailed,
    DeleteResult,
    PruneCompleted,
    SingleCompleted,
)

PAGE_SIZE = 10
REBASE_DIALOG_TITLE = "Rebase Onto"
MAIN_WORKTREE_MESSAGE = "Cannot delete main worktree"
EMPTY_BRANCH_NAME_MESSAGE = "Please enter a branch name"
NO_MERGED_MESSAGE = "No merged worktrees found"


def _clamp(value: int, upper: int) -> int:
    return max(0, min(value, upper))


def _delete_last_word(text: str) -> str:
    trimmed = text.rstrip()
    cut = max(trimmed.rfind(" "), trimmed.rfind("\t"))
    return trimmed[: cut + 1] if cut >= 0 else ""


def describe_delete_result(result: DeleteResult) -> tuple[str, Severity]:
    """Notification text and severity for a finished background delete."""
    if isinstance(result, SingleCompleted):
        if result.error is not None and result.branch:
            return (
                f"Deleted worktree '{result.name}', but failed to delete branch "
                f"'{result.branch}': {result.error}",
                Severity.WARNING,
            )
        if result.branch_deleted and result.branch:
            return f"Deleted worktree '{result.name}' and branch '{result.branch}'", Severity.INFO
        return f"Deleted worktree: {result.name}", Severity.INFO
    if isinstance(result, PruneCompleted):
        if result.branch_count > 0:
            return (
                f"Pruned {result.worktree_count} worktree(s) and {result.branch_count} branch(es)",
                Severity.INFO,
            )
        return f"Pruned {result.worktree_count} merged worktree(s)", Severity.INFO
    return f"Failed: {result.message}", Severity.ERROR


class ModeMachine:
    """Owner of the one ``AppState`` instance driven by actions."""

    def __init__(self, state: AppState | None = None) -> None:
        """Wrap ``state`` or start from a fresh ``AppState``."""
        self.state = state if state is not None else AppState()

    # Lists -----------------------------------------------------------------

    def set_lists(self, worktrees: list[Worktree], branches: list[Branch]) -> None:
        """Replace loaded lists, refilter, and clamp every selection index."""
        state = self.state
        state.worktrees = list(worktrees)
        state.branches = list(branches)
        self._refilter()
        dialog = state.dialog
        if isinstance(dialog, CreateWorktreeForm):
            state.dialog = replace(dialog, branch_index=_clamp(dialog.branch_index, len(state.branches)))
        elif isinstance(dialog, BranchSelect):
            state.dialog = replace(dialog, selected=_clamp(dialog.selected, len(state.branches) - 1))
        state.dirty = True

    def _refilter(self) -> None:
        """Recompute the visible worktrees from the current query."""
        state = self.state
        query = state.input_buffer.lower()
        if not query:
            state.filtered_worktrees = list(state.worktrees)
        else:
            state.filtered_worktrees = [
                wt
                for wt in state.worktrees
                if query in wt.name.lower() or (wt.branch is not None and query in wt.branch.lower())
            ]
        state.selected_idx = _clamp(state.selected_idx, len(state.filtered_worktrees) - 1)

    @property
    def selected_branch(self) -> Branch | None:
        """Return the highlighted branch in a branch-select dialog, if any."""
        state = self.state
        if isinstance(state.dialog, BranchSelect) and 0 <= state.dialog.selected < len(state.branches):
            return state.branches[state.dialog.selected]
        return None

    # Movement --------------------------------------------------------------

    def move(self, delta: int) -> None:
        """Move the active selection by ``delta`` rows, clamped to its list."""
        state = self.state
        dialog = state.dialog
        if isinstance(dialog, CreateWorktreeForm):
            # Index 0 is the "new branch" row, so the last index is len(branches).
            state.dialog = replace(dialog, branch_index=_clamp(dialog.branch_index + delta, len(state.branches)))
        elif isinstance(dialog, BranchSelect):
            state.dialog = replace(dialog, selected=_clamp(dialog.selected + delta, len(state.branches) - 1))
        elif dialog is None:
            state.selected_idx = _clamp(state.selected_idx + delta, len(state.filtered_worktrees) - 1)
        state.dirty = True

    def move_top(self) -> None:
        """Jump to the first row of the active list."""
        self.move(-(1 << 30))

    def move_bottom(self) -> None:
        """Jump to the last row of the active list."""
        self.move(1 << 30)

    def page(self, direction: int) -> None:
        """Move one page up (``-1``) or down (``1``)."""
        self.move(direction * PAGE_SIZE)

    # Mode switches ---------------------------------------------------------

    def enter_insert_mode(self) -> bool:
        """Switch Normal to Insert with an empty input buffer."""
        return self._enter_text_mode(Mode.INSERT)

    def enter_search_mode(self) -> bool:
        """Switch Normal to Search with an empty input buffer."""
        return self._enter_text_mode(Mode.SEARCH)

    def _enter_text_mode(self, mode: Mode) -> bool:
        state = self.state
        if state.mode is not Mode.NORMAL:
            return False
        state.mode = mode
        state.input_buffer = ""
        self._refilter()
        state.dirty = True
        return True

    def enter_normal_mode(self) -> bool:
        """Drop any dialog or text input and return to Normal."""
        if self.state.is_busy:
            return False
        self._reset_to_normal()
        return True

    def accept_text_input(self) -> bool:
        """Leave Insert/Search for Normal, keeping the current filter."""
        state = self.state
        if state.mode not in (Mode.INSERT, Mode.SEARCH):
            return False
        state.mode = Mode.NORMAL
        state.dirty = True
        return True

    def cancel(self) -> None:
        """Reset to Normal; a no-op when already idle or while Busy."""
        state = self.state
        if state.is_busy:
            return
        already_idle = (
            state.mode is Mode.NORMAL
            and state.dialog is None
            and state.pending_operation is None
            and not state.input_buffer
            and not state.prune_candidates
        )
        if not already_idle:
            self._reset_to_normal()

    def _reset_to_normal(self) -> None:
        state = self.state
        state.mode = Mode.NORMAL
        state.dialog = None
        state.pending_operation = None
        state.input_buffer = ""
        state.prune_candidates = ()
        self._refilter()
        state.dirty = True

    # Dialogs ---------------------------------------------------------------

    def _open_dialog(self, dialog: ConfirmDelete | CreateWorktreeForm | BranchSelect) -> bool:
        state = self.state
        if state.is_busy:
            return False
        state.dialog = dialog
        state.mode = Mode.DIALOG
        state.dirty = True
        return True

    def open_create_form(self) -> bool:
        """Open an empty create-worktree form."""
        return self._open_dialog(CreateWorktreeForm())

    def request_delete(self) -> bool:
        """Open the single-delete confirmation unless the selection is the main worktree."""
        worktree = self.state.selected_worktree
        if worktree is None or self.state.is_busy:
            return False
        if worktree.is_main:
            self.state.notify(MAIN_WORKTREE_MESSAGE, Severity.ERROR)
            return False
        return self._open_dialog(ConfirmDelete(target=worktree.name, worktree=worktree))

    def open_prune_confirm(self, candidates: list[Worktree]) -> bool:
        """Snapshot ``candidates`` and ask for batch delete confirmation."""
        if self.state.is_busy:
            return False
        if not candidates:
            self.state.notify(NO_MERGED_MESSAGE)
            return False
        self.state.prune_candidates = tuple(candidates)
        return self._open_dialog(ConfirmDelete(target=f"{len(candidates)} merged worktrees"))

    def open_rebase_select(self) -> bool:
        """Open the branch picker for the rebase stub."""
        if not self._open_dialog(BranchSelect(title=REBASE_DIALOG_TITLE)):
            return False
        self.state.pending_operation = PendingOperation.REBASE
        return True

    def close_dialog(self) -> bool:
        """Dismiss the open dialog and its pending state."""
        if self.state.dialog is None or self.state.is_busy:
            return False
        self._reset_to_normal()
        return True

    def resolve_branch_select(self) -> None:
        """Confirm a branch-select dialog by running its pending operation."""
        branch = self.selected_branch
        if branch is None:
            return
        state = self.state
        if state.pending_operation is PendingOperation.REBASE:
            state.notify(f"Rebase onto {branch.name} (not yet implemented)")
        self._reset_to_normal()

    def reject_empty_branch_name(self) -> None:
        """Report a create form submitted without a branch name."""
        self.state.notify(EMPTY_BRANCH_NAME_MESSAGE, Severity.ERROR)

    # Text editing ----------------------------------------------------------

    def insert_char(self, char: str) -> None:
        """Append ``char`` to the focused text field."""
        state = self.state
        if isinstance(state.dialog, CreateWorktreeForm):
            state.dialog = replace(state.dialog, name=state.dialog.name + char)
        elif state.mode in (Mode.INSERT, Mode.SEARCH):
            state.input_buffer += char
            self._refilter()
        else:
            return
        state.dirty = True

    def delete_char(self) -> None:
        """Remove the last character of the focused text field."""
        state = self.state
        if isinstance(state.dialog, CreateWorktreeForm):
            state.dialog = replace(state.dialog, name=state.dialog.name[:-1])
        elif state.mode in (Mode.INSERT, Mode.SEARCH):
            state.input_buffer = state.input_buffer[:-1]
            self._refilter()
        else:
            return
        state.dirty = True

    def delete_word(self) -> None:
        """Remove trailing spaces and the last word from the focused field."""
        state = self.state
        if isinstance(state.dialog, CreateWorktreeForm):
            state.dialog = replace(state.dialog, name=_delete_last_word(state.dialog.name))
        elif state.mode in (Mode.INSERT, Mode.SEARCH):
            state.input_buffer = _delete_last_word(state.input_buffer)
            self._refilter()
        else:
            return
        state.dirty = True

    # Busy ------------------------------------------------------------------

    def begin_busy(self, handle: AsyncOperationHandle) -> None:
        """Enter Busy for the submitted job behind ``handle``."""
        state = self.state
        state.operation = handle
        state.dialog = None
        state.pending_operation = None
        state.mode = Mode.BUSY
        state.dirty = True

    def finish_operation(self, result: DeleteResult | None) -> None:
        """Leave Busy with the job's result; ``None`` means the worker vanished."""
        if result is None:
            result = DeleteFailed(UNEXPECTED_FAILURE_MESSAGE)
        state = self.state
        state.operation = None
        state.mode = Mode.NORMAL
        state.dialog = None
        state.pending_operation = None
        state.prune_candidates = ()
        message, severity = describe_delete_result(result)
        state.notify(message, severity)

    # Misc ------------------------------------------------------------------

    def toggle_help(self) -> None:
        """Show or hide the key help overlay."""
        self.state.show_help = not self.state.show_help
        self.state.dirty = True

    def quit(self) -> None:
        """Close an active dialog first; otherwise request exit."""
        if self.state.dialog is not None:
            self.close_dialog()
            return
        self.state.should_quit = True

    def force_quit(self) -> None:
        """Request exit regardless of any open dialog."""
        self.state.should_quit = True


__all__ = [
    "EMPTY_BRANCH_NAME_MESSAGE",
    "MAIN_WORKTREE_MESSAGE",
    "ModeMachine",
    "NO_MERGED_MESSAGE",
    "PAGE_SIZE",
    "REBASE_DIALOG_TITLE",
    "describe_delete_result",
]
