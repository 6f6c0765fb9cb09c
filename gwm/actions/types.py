"""Closed set of semantic actions produced by key resolution."""

from __future__ import annotations

import enum
from dataclasses import dataclass


class ActionKind(enum.Enum):
    # Navigation
    MOVE_UP = "MoveUp"
    MOVE_DOWN = "MoveDown"
    MOVE_TOP = "MoveTop"
    MOVE_BOTTOM = "MoveBottom"
    PAGE_UP = "PageUp"
    PAGE_DOWN = "PageDown"
    SELECT = "Select"
    BACK = "Back"

    # Worktree operations
    OPEN_SHELL = "OpenShell"
    CREATE_WORKTREE = "CreateWorktree"
    DELETE_WORKTREE = "DeleteWorktree"
    DELETE_MERGED_WORKTREES = "DeleteMergedWorktrees"
    REBASE_WORKTREE = "RebaseWorktree"
    REFRESH = "Refresh"

    # Mode switching
    ENTER_INSERT_MODE = "EnterInsertMode"
    ENTER_SEARCH_MODE = "EnterSearchMode"
    ENTER_NORMAL_MODE = "EnterNormalMode"

    # Dialog
    CONFIRM = "Confirm"
    CANCEL = "Cancel"

    # Text input
    INSERT_CHAR = "InsertChar"
    DELETE_CHAR = "DeleteChar"
    DELETE_WORD = "DeleteWord"

    # Other
    TOGGLE_HELP = "ToggleHelp"
    QUIT = "Quit"
    FORCE_QUIT = "ForceQuit"
    RUN_COMMAND = "RunCommand"


# Payload-carrying kinds cannot be named from a binding's ``action`` field.
_PAYLOAD_KINDS = frozenset({ActionKind.INSERT_CHAR, ActionKind.RUN_COMMAND})
_BY_NAME = {kind.value: kind for kind in ActionKind if kind not in _PAYLOAD_KINDS}

# Names a binding may use to disable a key without binding it to anything.
DISABLED_ACTION_NAMES = frozenset({"None", "ReceiveChar"})


@dataclass(frozen=True)
class Action:
    """Immutable action value; ``text`` carries the InsertChar/RunCommand payload."""

    kind: ActionKind
    text: str = ""

    @classmethod
    def insert_char(cls, char: str) -> Action:
        return cls(ActionKind.INSERT_CHAR, char)

    @classmethod
    def run_command(cls, command: str) -> Action:
        return cls(ActionKind.RUN_COMMAND, command)

    @classmethod
    def from_name(cls, name: str) -> Action | None:
        """Parse a configured action name (case-sensitive); unknown names give ``None``."""
        kind = _BY_NAME.get(name)
        return None if kind is None else cls(kind)

    def __str__(self) -> str:
        if self.kind in _PAYLOAD_KINDS:
            return f"{self.kind.value}({self.text!r})"
        return self.kind.value


__all__ = ["Action", "ActionKind", "DISABLED_ACTION_NAMES"]
