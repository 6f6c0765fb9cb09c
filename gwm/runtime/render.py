"""Screen rendering for the worktree browser.

``build_frame`` turns ``AppState`` into a list of terminal rows and has no
side effects; ``render_frame`` writes those rows to stdout in one call.
"""

from __future__ import annotations

import os
import sys

from ..git.service import Worktree
from .state import AppState, BranchSelect, ConfirmDelete, CreateWorktreeForm, Mode, Severity

_SEVERITY_STYLE = {
    Severity.INFO: "\033[38;5;114m",
    Severity.WARNING: "\033[38;5;221m",
    Severity.ERROR: "\033[38;5;203m",
}
_KEY = "\033[38;5;229m"
_TITLE = "\033[1;38;5;81m"
_DIM = "\033[2;38;5;250m"
_SELECTED = "\033[7m"
_RESET = "\033[0m"

HELP_LINES: tuple[str, ...] = (
    f"{_TITLE}NORMAL{_RESET}",
    f"  {_KEY}j/k{_RESET} move  {_KEY}g/G{_RESET} top/bottom  {_KEY}PgUp/PgDn{_RESET} page",
    f"  {_KEY}Enter{_RESET}/{_KEY}o{_RESET} open shell in worktree",
    f"  {_KEY}c{_RESET} create  {_KEY}d{_RESET} delete  {_KEY}D{_RESET} delete merged  {_KEY}r{_RESET} rebase",
    f"  {_KEY}R{_RESET} refresh  {_KEY}/{_RESET} search  {_KEY}i{_RESET} filter",
    f"  {_KEY}?{_RESET} help  {_KEY}q{_RESET} quit  {_KEY}Ctrl+C{_RESET} force quit",
    "",
    f"{_TITLE}SEARCH / INSERT{_RESET}",
    f"  {_KEY}Type/Backspace{_RESET} edit  {_KEY}Ctrl+W{_RESET} delete word",
    f"  {_KEY}Enter{_RESET} keep filter  {_KEY}Esc{_RESET} clear filter",
    "",
    f"{_TITLE}DIALOGS{_RESET}",
    f"  {_KEY}Enter{_RESET} confirm  {_KEY}Esc{_RESET} cancel  {_KEY}Ctrl+N/P{_RESET} move",
    f"  {_KEY}y{_RESET} delete  {_KEY}Y{_RESET} delete with branch  {_KEY}n{_RESET} keep",
)


def clip_line(text: str, width: int) -> str:
    """Pad or truncate plain text to exactly ``width`` cells."""
    if width <= 0:
        return ""
    if len(text) > width:
        return text[: max(0, width - 1)] + "…"
    return text.ljust(width)


def list_start_for(selected: int, count: int, rows: int) -> int:
    """First visible row index that keeps ``selected`` on screen."""
    if rows <= 0 or count <= rows:
        return 0
    start = max(0, selected - rows + 1)
    return min(start, count - rows)


def _worktree_label(worktree: Worktree) -> str:
    branch = worktree.branch if worktree.branch is not None else "(detached)"
    marker = " [main]" if worktree.is_main else ""
    return f"{worktree.name}{marker}  {branch}  {worktree.path}"


def _header(state: AppState) -> str:
    if state.mode is Mode.SEARCH:
        return f" gwm  search: /{state.input_buffer}"
    if state.mode is Mode.INSERT:
        return f" gwm  filter: {state.input_buffer}"
    if state.input_buffer:
        return f" gwm  {len(state.filtered_worktrees)}/{len(state.worktrees)} worktrees  (filter: {state.input_buffer})"
    return f" gwm  {len(state.worktrees)} worktrees"


def _dialog_lines(state: AppState, rows: int) -> list[str]:
    dialog = state.dialog
    if isinstance(dialog, ConfirmDelete):
        lines = [f"Delete {dialog.target}?", ""]
        if dialog.worktree is None:
            lines.extend(f"  {wt.name}  {wt.branch or ''}" for wt in state.prune_candidates)
            lines.append("")
        lines.append("y: delete  Y: delete with branch  n/Esc: cancel")
        return lines[:rows]
    if isinstance(dialog, CreateWorktreeForm):
        lines = ["Create worktree", f"Name: {dialog.name}", ""]
        choices = ["+ new branch"] + [branch.name for branch in state.branches]
        available = max(1, rows - len(lines))
        start = list_start_for(dialog.branch_index, len(choices), available)
        for index in range(start, min(len(choices), start + available)):
            prefix = "> " if index == dialog.branch_index else "  "
            lines.append(prefix + choices[index])
        return lines[:rows]
    if isinstance(dialog, BranchSelect):
        lines = [dialog.title, ""]
        available = max(1, rows - len(lines))
        start = list_start_for(dialog.selected, len(state.branches), available)
        for index in range(start, min(len(state.branches), start + available)):
            prefix = "> " if index == dialog.selected else "  "
            lines.append(prefix + state.branches[index].name)
        return lines[:rows]
    return []


def _status_line(state: AppState, width: int) -> str:
    handle = state.operation
    if state.is_busy and handle is not None:
        return clip_line(f" {handle.spinner_frame} {handle.message}", width)
    notification = state.latest_notification
    if notification is not None:
        style = _SEVERITY_STYLE[notification.severity]
        return f"{style}{clip_line(' ' + notification.message, width)}{_RESET}"
    return f"{_DIM}{clip_line(' ? help  q quit', width)}{_RESET}"


def build_frame(state: AppState, width: int, height: int) -> list[str]:
    """Return one string per terminal row for the current state."""
    width = max(1, width)
    body_rows = max(1, height - 2)
    rows: list[str] = [f"\033[1m{clip_line(_header(state), width)}{_RESET}"]

    if state.show_help:
        body = list(HELP_LINES[:body_rows])
        rows.extend(body)
        rows.extend("" for _ in range(body_rows - len(body)))
    elif state.dialog is not None:
        body = [clip_line(line, width) for line in _dialog_lines(state, body_rows)]
        rows.extend(body)
        rows.extend("" for _ in range(body_rows - len(body)))
    else:
        worktrees = state.filtered_worktrees
        start = list_start_for(state.selected_idx, len(worktrees), body_rows)
        for row in range(body_rows):
            index = start + row
            if index >= len(worktrees):
                rows.append("")
                continue
            label = clip_line(" " + _worktree_label(worktrees[index]), width)
            if index == state.selected_idx:
                label = f"{_SELECTED}{label}{_RESET}"
            rows.append(label)

    rows.append(_status_line(state, width))
    return rows


def render_frame(state: AppState, width: int, height: int) -> None:
    out: list[str] = ["\033[H\033[J"]
    out.append("\r\n".join(build_frame(state, width, height)))
    os.write(sys.stdout.fileno(), "".join(out).encode("utf-8", errors="replace"))


__all__ = ["HELP_LINES", "build_frame", "clip_line", "list_start_for", "render_frame"]
