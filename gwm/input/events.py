"""Key-event value types shared by the reader, bindings, and resolver.

Key symbols are plain strings: printable characters stand for themselves
(``"j"``, ``"G"``, ``" "``) and named keys use their canonical spelling
(``"Enter"``, ``"Esc"``, ``"Backspace"``, ``"Up"``, ``"F5"``...).
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

NAMED_KEYS: tuple[str, ...] = (
    "Enter",
    "Esc",
    "Backspace",
    "Tab",
    "Up",
    "Down",
    "Left",
    "Right",
    "Home",
    "End",
    "PageUp",
    "PageDown",
    "Insert",
    "Delete",
    *(f"F{n}" for n in range(1, 13)),
)


class Modifier(enum.Flag):
    NONE = 0
    SHIFT = enum.auto()
    CONTROL = enum.auto()
    ALT = enum.auto()
    SUPER = enum.auto()


@dataclass(frozen=True)
class KeyEvent:
    """One key press (or release) with its exact modifier set."""

    key: str
    modifiers: Modifier = Modifier.NONE
    pressed: bool = True

    @property
    def is_printable(self) -> bool:
        return len(self.key) == 1 and self.key.isprintable()

    def describe(self) -> str:
        """Human-readable ``Ctrl+Shift+x`` form used in help and logs."""
        parts: list[str] = []
        for flag, label in (
            (Modifier.CONTROL, "Ctrl"),
            (Modifier.ALT, "Alt"),
            (Modifier.SUPER, "Super"),
            (Modifier.SHIFT, "Shift"),
        ):
            if flag in self.modifiers:
                parts.append(label)
        parts.append("Space" if self.key == " " else self.key)
        return "+".join(parts)


__all__ = ["KeyEvent", "Modifier", "NAMED_KEYS"]
