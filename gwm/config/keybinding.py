"""Declarative key-binding records and their string grammars.

Bindings are Alacritty-style: a key, an optional ``Control|Shift`` modifier
list, an optional mode predicate (``Normal``, ``~Normal``, ``Normal|Insert``),
and exactly one of ``action``, ``command``, or ``chars``.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

from ..errors import InvalidKeyBindingError
from ..input.events import Modifier
from ..runtime.state import Mode

_NAMED_KEY_ALIASES: dict[str, str] = {
    "enter": "Enter",
    "return": "Enter",
    "numpadenter": "Enter",
    "escape": "Esc",
    "esc": "Esc",
    "backspace": "Backspace",
    "back": "Backspace",
    "tab": "Tab",
    "space": " ",
    "up": "Up",
    "down": "Down",
    "left": "Left",
    "right": "Right",
    "home": "Home",
    "end": "End",
    "pageup": "PageUp",
    "pagedown": "PageDown",
    "insert": "Insert",
    "delete": "Delete",
    "del": "Delete",
    "numpadadd": "+",
    "numpadsubtract": "-",
    "numpadmultiply": "*",
    "numpaddivide": "/",
    **{f"f{n}": f"F{n}" for n in range(1, 13)},
    **{f"numpad{n}": str(n) for n in range(10)},
}

_MODIFIER_NAMES: dict[str, Modifier] = {
    "control": Modifier.CONTROL,
    "ctrl": Modifier.CONTROL,
    "shift": Modifier.SHIFT,
    "alt": Modifier.ALT,
    "option": Modifier.ALT,
    "super": Modifier.SUPER,
    "command": Modifier.SUPER,
    "cmd": Modifier.SUPER,
}

_MODE_NAMES: dict[str, Mode] = {
    "normal": Mode.NORMAL,
    "insert": Mode.INSERT,
    "search": Mode.SEARCH,
    "dialog": Mode.DIALOG,
}


def parse_key(key: str) -> str:
    """Return the canonical key symbol for a binding's ``key`` string."""
    stripped = key.strip() or key
    if len(stripped) == 1:
        return stripped
    symbol = _NAMED_KEY_ALIASES.get(stripped.lower())
    if symbol is None:
        raise InvalidKeyBindingError(f"Unknown key: {key}")
    return symbol


def parse_modifiers(mods: str | None) -> Modifier:
    """Parse ``Control|Shift``-style text; unknown names are ignored."""
    result = Modifier.NONE
    if not mods:
        return result
    for part in mods.split("|"):
        result |= _MODIFIER_NAMES.get(part.strip().lower(), Modifier.NONE)
    return result


def mode_matches(predicate: str, mode: Mode) -> bool:
    """Evaluate a mode predicate against ``mode``.

    ``a|b`` matches when any alternative matches; ``~a`` matches every mode
    except ``a``; a bare name matches only that mode (case-insensitive).
    Unknown or empty names never match, negated or not.
    """
    text = predicate.strip()
    if "|" in text:
        return any(mode_matches(part, mode) for part in text.split("|"))
    negated = text.startswith("~")
    if negated:
        text = text[1:].strip()
    target = _MODE_NAMES.get(text.lower())
    if target is None:
        return False
    return (target is not mode) if negated else (target is mode)


@dataclass(frozen=True)
class KeyBinding:
    key: str
    mods: str | None = None
    mode: str | None = None
    action: str | None = None
    command: str | None = None
    chars: str | None = None

    @classmethod
    def from_mapping(cls, raw: Mapping[str, object]) -> KeyBinding | None:
        """Build a binding from decoded config data; ``None`` when ``key`` is missing."""
        key = raw.get("key")
        if not isinstance(key, str) or not key:
            return None

        def optional_text(name: str) -> str | None:
            value = raw.get(name)
            return value if isinstance(value, str) else None

        return cls(
            key=key,
            mods=optional_text("mods"),
            mode=optional_text("mode"),
            action=optional_text("action"),
            command=optional_text("command"),
            chars=optional_text("chars"),
        )


def _bind(key: str, action: str, *, mods: str | None = None, mode: str | None = None) -> KeyBinding:
    return KeyBinding(key=key, mods=mods, mode=mode, action=action)


def default_bindings() -> list[KeyBinding]:
    """Built-in binding table; user bindings are spliced ahead of these."""
    return [
        _bind("j", "MoveDown", mode="Normal"),
        _bind("k", "MoveUp", mode="Normal"),
        _bind("Down", "MoveDown"),
        _bind("Up", "MoveUp"),
        _bind("n", "MoveDown", mods="Control", mode="~Dialog"),
        _bind("p", "MoveUp", mods="Control", mode="~Dialog"),
        _bind("g", "MoveTop", mode="Normal"),
        _bind("G", "MoveBottom", mode="Normal"),
        _bind("Home", "MoveTop", mode="~Dialog"),
        _bind("End", "MoveBottom", mode="~Dialog"),
        _bind("PageUp", "PageUp"),
        _bind("PageDown", "PageDown"),
        _bind("Enter", "Select", mode="Normal|Insert|Search"),
        _bind("Enter", "Confirm", mode="Dialog"),
        _bind("Esc", "Cancel", mode="Dialog"),
        _bind("Esc", "EnterNormalMode", mode="~Dialog"),
        _bind("/", "EnterSearchMode", mode="Normal"),
        _bind("i", "EnterInsertMode", mode="Normal"),
        _bind("c", "CreateWorktree", mode="Normal"),
        _bind("d", "DeleteWorktree", mode="Normal"),
        _bind("D", "DeleteMergedWorktrees", mode="Normal"),
        _bind("r", "RebaseWorktree", mode="Normal"),
        _bind("R", "Refresh", mode="Normal"),
        _bind("o", "OpenShell", mode="Normal"),
        _bind("?", "ToggleHelp", mode="Normal"),
        _bind("q", "Quit", mode="Normal"),
        _bind("w", "DeleteWord", mods="Control", mode="~Normal"),
        _bind("c", "ForceQuit", mods="Control"),
    ]


__all__ = [
    "KeyBinding",
    "default_bindings",
    "mode_matches",
    "parse_key",
    "parse_modifiers",
]
