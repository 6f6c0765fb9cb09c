"""Action execution.

``ActionHandler`` maps every ``ActionKind`` to exactly one operation: a
mode-machine transition, a repository-service call folded into a
notification plus list refresh, or a background-task submission. The table
is checked for completeness when this module is imported.
"""

from __future__ import annotations

import logging
import os
import subprocess
from collections.abc import Callable
from dataclasses import dataclass
from functools import partial

from ..config.loader import Config
from ..errors import GwmError
from ..git.service import RepositoryService, Worktree
from ..git.worktree import DEFAULT_BRANCH_CANDIDATES, GitWorktreeService
from ..runtime.mode_machine import ModeMachine
from ..runtime.state import NEW_BRANCH_INDEX, BranchSelect, ConfirmDelete, CreateWorktreeForm, Mode, Severity
from ..runtime.tasks import (
    AsyncTaskRunner,
    ChannelClosed,
    Done,
    ServiceFactory,
    delete_worktree_job,
    prune_worktrees_job,
)
from .types import Action, ActionKind

logger = logging.getLogger(__name__)

FALLBACK_BASE_BRANCH = "main"
ActionOperation = Callable[["ActionHandler", ModeMachine, Action], None]


@dataclass(frozen=True)
class HandlerContext:
    """Collaborators the handler calls into; the handler itself holds no state."""

    service: RepositoryService
    runner: AsyncTaskRunner
    config: Config
    open_service: ServiceFactory = GitWorktreeService
    suspend: Callable[[Callable[[], None]], None] | None = None


def default_base_branch(machine: ModeMachine) -> str:
    names = {branch.name for branch in machine.state.branches if not branch.is_remote}
    for candidate in DEFAULT_BRANCH_CANDIDATES:
        if candidate in names:
            return candidate
    return FALLBACK_BASE_BRANCH


def refresh_lists(machine: ModeMachine, service: RepositoryService) -> bool:
    """Re-fetch worktrees and branches; failures become an error notification."""
    try:
        worktrees = service.list_worktrees()
        branches = service.list_branches()
    except GwmError as exc:
        machine.state.notify(f"Failed to refresh: {exc}", Severity.ERROR)
        return False
    machine.set_lists(worktrees, branches)
    return True


class ActionHandler:
    def __init__(self, context: HandlerContext) -> None:
        self.context = context

    def handle(self, machine: ModeMachine, action: Action) -> None:
        """Apply ``action``; every key is ignored while a background job runs."""
        if machine.state.is_busy:
            return
        _OPERATIONS[action.kind](self, machine, action)

    def tick(self, machine: ModeMachine) -> None:
        """Per-frame bookkeeping: expire notifications and poll the running job."""
        state = machine.state
        state.prune_notifications()
        handle = state.operation
        if handle is None:
            return
        handle.advance()
        state.dirty = True
        outcome = self.context.runner.poll_completion(handle)
        if isinstance(outcome, Done):
            refresh_lists(machine, self.context.service)
            machine.finish_operation(outcome.result)
        elif isinstance(outcome, ChannelClosed):
            refresh_lists(machine, self.context.service)
            machine.finish_operation(None)

    # Navigation ------------------------------------------------------------

    def _move_up(self, machine: ModeMachine, action: Action) -> None:
        machine.move(-1)

    def _move_down(self, machine: ModeMachine, action: Action) -> None:
        machine.move(1)

    def _move_top(self, machine: ModeMachine, action: Action) -> None:
        machine.move_top()

    def _move_bottom(self, machine: ModeMachine, action: Action) -> None:
        machine.move_bottom()

    def _page_up(self, machine: ModeMachine, action: Action) -> None:
        machine.page(-1)

    def _page_down(self, machine: ModeMachine, action: Action) -> None:
        machine.page(1)

    def _select(self, machine: ModeMachine, action: Action) -> None:
        state = machine.state
        if state.dialog is not None:
            self._confirm(machine, action)
        elif state.mode in (Mode.INSERT, Mode.SEARCH):
            machine.accept_text_input()
        else:
            self._open_shell(machine, action)

    def _back(self, machine: ModeMachine, action: Action) -> None:
        machine.close_dialog()

    # Worktree operations ---------------------------------------------------

    def _open_shell(self, machine: ModeMachine, action: Action) -> None:
        worktree = machine.state.selected_worktree
        if worktree is None:
            return
        shell = os.environ.get("SHELL") or "/bin/sh"
        self._run_suspended(machine, [shell], worktree, wait_for_enter=False)

    def _run_command(self, machine: ModeMachine, action: Action) -> None:
        worktree = machine.state.selected_worktree
        if worktree is None:
            return
        self._run_suspended(machine, ["sh", "-c", action.text], worktree, wait_for_enter=True)

    def _run_suspended(
        self,
        machine: ModeMachine,
        argv: list[str],
        worktree: Worktree,
        *,
        wait_for_enter: bool,
    ) -> None:
        suspend = self.context.suspend
        if suspend is None:
            machine.state.notify("Cannot run commands without a terminal", Severity.ERROR)
            return

        def run() -> None:
            try:
                returncode = subprocess.run(argv, cwd=worktree.path, check=False).returncode
            except OSError as exc:
                print(f"\nFailed to run {argv[0]}: {exc}")
            else:
                if wait_for_enter:
                    if returncode == 0:
                        print("\nCommand completed successfully. Press Enter to continue...")
                    else:
                        print(f"\nCommand exited with status: {returncode}. Press Enter to continue...")
                elif returncode != 0:
                    print(f"{argv[0]} exited with status: {returncode}")
            if wait_for_enter:
                try:
                    input()
                except EOFError:
                    pass

        suspend(run)
        refresh_lists(machine, self.context.service)

    def _create_worktree(self, machine: ModeMachine, action: Action) -> None:
        machine.open_create_form()

    def _delete_worktree(self, machine: ModeMachine, action: Action) -> None:
        machine.request_delete()

    def _delete_merged(self, machine: ModeMachine, action: Action) -> None:
        base_branch = default_base_branch(machine)
        try:
            candidates = self.context.service.find_merged_worktrees(base_branch)
        except GwmError as exc:
            machine.state.notify(f"Failed: {exc}", Severity.ERROR)
            return
        machine.open_prune_confirm(candidates)

    def _rebase(self, machine: ModeMachine, action: Action) -> None:
        machine.open_rebase_select()

    def _refresh(self, machine: ModeMachine, action: Action) -> None:
        if refresh_lists(machine, self.context.service):
            machine.state.notify("Refreshed")

    # Mode switching --------------------------------------------------------

    def _enter_insert(self, machine: ModeMachine, action: Action) -> None:
        machine.enter_insert_mode()

    def _enter_search(self, machine: ModeMachine, action: Action) -> None:
        machine.enter_search_mode()

    def _enter_normal(self, machine: ModeMachine, action: Action) -> None:
        machine.enter_normal_mode()

    # Dialog ----------------------------------------------------------------

    def _confirm(self, machine: ModeMachine, action: Action) -> None:
        dialog = machine.state.dialog
        if isinstance(dialog, ConfirmDelete):
            self._submit_delete(machine, dialog, delete_branch=False)
        elif isinstance(dialog, CreateWorktreeForm):
            self._submit_create_form(machine, dialog)
        elif isinstance(dialog, BranchSelect):
            machine.resolve_branch_select()

    def _cancel(self, machine: ModeMachine, action: Action) -> None:
        machine.cancel()

    def _submit_delete(self, machine: ModeMachine, dialog: ConfirmDelete, *, delete_branch: bool) -> None:
        """Hand the confirmed deletion to a background worker and enter Busy."""
        ctx = self.context
        if ctx.runner.busy:
            machine.state.notify("Another operation is still running", Severity.WARNING)
            return
        repo_root = ctx.service.repo_root
        suffix = " and branch(es)" if delete_branch else ""
        if dialog.worktree is not None:
            target = dialog.worktree
            job = partial(delete_worktree_job, ctx.open_service, repo_root, target.name, target.branch, delete_branch)
            message = f"Deleting worktree {target.name}{suffix}..."
        else:
            candidates = machine.state.prune_candidates
            job = partial(prune_worktrees_job, ctx.open_service, repo_root, candidates, delete_branch)
            message = f"Deleting {len(candidates)} merged worktree(s){suffix}..."
        handle = ctx.runner.submit(job, message)
        machine.begin_busy(handle)

    def _submit_create_form(self, machine: ModeMachine, form: CreateWorktreeForm) -> None:
        """Create a worktree synchronously; failures keep the form open."""
        ctx = self.context
        state = machine.state
        base_path = ctx.config.worktree_base_path(ctx.service.repo_root)
        if form.branch_index == NEW_BRANCH_INDEX:
            if not form.name:
                machine.reject_empty_branch_name()
                return
            branch = form.name
            name = ctx.config.worktree_name_for_branch(branch)
            create = partial(ctx.service.create_worktree_with_new_branch, name, branch, base_path)
            success = f"Created branch '{branch}' and worktree '{name}'"
        else:
            index = form.branch_index - 1
            if index >= len(state.branches):
                state.notify("No branch selected", Severity.ERROR)
                return
            branch = state.branches[index].local_name
            name = form.name or ctx.config.worktree_name_for_branch(branch)
            create = partial(ctx.service.create_worktree, name, branch, base_path)
            success = f"Created worktree: {name}"

        try:
            base_path.mkdir(parents=True, exist_ok=True)
            create()
        except (GwmError, OSError) as exc:
            logger.warning("create worktree %s failed: %s", name, exc)
            refresh_lists(machine, ctx.service)
            state.notify(f"Failed to create: {exc}", Severity.ERROR)
            return
        machine.enter_normal_mode()
        refresh_lists(machine, ctx.service)
        state.notify(success)

    # Text input ------------------------------------------------------------

    def _insert_char(self, machine: ModeMachine, action: Action) -> None:
        dialog = machine.state.dialog
        if isinstance(dialog, ConfirmDelete):
            if action.text in ("y", "Y"):
                self._submit_delete(machine, dialog, delete_branch=action.text == "Y")
            elif action.text in ("n", "N"):
                machine.cancel()
            return
        machine.insert_char(action.text)

    def _delete_char(self, machine: ModeMachine, action: Action) -> None:
        machine.delete_char()

    def _delete_word(self, machine: ModeMachine, action: Action) -> None:
        machine.delete_word()

    # Other -----------------------------------------------------------------

    def _toggle_help(self, machine: ModeMachine, action: Action) -> None:
        machine.toggle_help()

    def _quit(self, machine: ModeMachine, action: Action) -> None:
        machine.quit()

    def _force_quit(self, machine: ModeMachine, action: Action) -> None:
        machine.force_quit()


_OPERATIONS: dict[ActionKind, ActionOperation] = {
    ActionKind.MOVE_UP: ActionHandler._move_up,
    ActionKind.MOVE_DOWN: ActionHandler._move_down,
    ActionKind.MOVE_TOP: ActionHandler._move_top,
    ActionKind.MOVE_BOTTOM: ActionHandler._move_bottom,
    ActionKind.PAGE_UP: ActionHandler._page_up,
    ActionKind.PAGE_DOWN: ActionHandler._page_down,
    ActionKind.SELECT: ActionHandler._select,
    ActionKind.BACK: ActionHandler._back,
    ActionKind.OPEN_SHELL: ActionHandler._open_shell,
    ActionKind.CREATE_WORKTREE: ActionHandler._create_worktree,
    ActionKind.DELETE_WORKTREE: ActionHandler._delete_worktree,
    ActionKind.DELETE_MERGED_WORKTREES: ActionHandler._delete_merged,
    ActionKind.REBASE_WORKTREE: ActionHandler._rebase,
    ActionKind.REFRESH: ActionHandler._refresh,
    ActionKind.ENTER_INSERT_MODE: ActionHandler._enter_insert,
    ActionKind.ENTER_SEARCH_MODE: ActionHandler._enter_search,
    ActionKind.ENTER_NORMAL_MODE: ActionHandler._enter_normal,
    ActionKind.CONFIRM: ActionHandler._confirm,
    ActionKind.CANCEL: ActionHandler._cancel,
    ActionKind.INSERT_CHAR: ActionHandler._insert_char,
    ActionKind.DELETE_CHAR: ActionHandler._delete_char,
    ActionKind.DELETE_WORD: ActionHandler._delete_word,
    ActionKind.TOGGLE_HELP: ActionHandler._toggle_help,
    ActionKind.QUIT: ActionHandler._quit,
    ActionKind.FORCE_QUIT: ActionHandler._force_quit,
    ActionKind.RUN_COMMAND: ActionHandler._run_command,
}

_unmapped = set(ActionKind) - set(_OPERATIONS)
if _unmapped:
    raise RuntimeError(f"ActionHandler has no operation for: {sorted(kind.value for kind in _unmapped)}")


__all__ = [
    "ActionHandler",
    "HandlerContext",
    "default_base_branch",
    "refresh_lists",
]
