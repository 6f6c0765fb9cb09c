"""Key-event to action resolution.

``BindingTable`` compiles the ordered binding list once; ``KeyResolver``
matches an event plus mode against it (first match wins) and falls back to
built-in text-input rules. ``ActionDispatcher`` is the runtime-facing facade.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from ..config.keybinding import KeyBinding, mode_matches, parse_key, parse_modifiers
from ..errors import InvalidKeyBindingError
from ..input.events import KeyEvent, Modifier
from ..runtime.state import Mode
from .types import DISABLED_ACTION_NAMES, Action

logger = logging.getLogger(__name__)

_TEXT_MODIFIERS = (Modifier.NONE, Modifier.SHIFT)
_TEXT_INPUT_MODES = (Mode.INSERT, Mode.SEARCH, Mode.DIALOG)


@dataclass(frozen=True)
class _CompiledBinding:
    key: str
    modifiers: Modifier
    binding: KeyBinding

    def matches(self, event: KeyEvent, mode: Mode) -> bool:
        if self.key != event.key or self.modifiers != event.modifiers:
            return False
        if self.binding.mode is not None and not mode_matches(self.binding.mode, mode):
            return False
        return True


def binding_action(binding: KeyBinding) -> Action | None:
    """Translate a matched binding into its action; disabled bindings give ``None``."""
    if binding.action is not None:
        if binding.action in DISABLED_ACTION_NAMES:
            return None
        action = Action.from_name(binding.action)
        if action is None:
            logger.warning("unknown action %r bound to %s; key disabled", binding.action, binding.key)
        return action
    if binding.command is not None:
        return Action.run_command(binding.command)
    if binding.chars:
        return Action.insert_char(binding.chars[0])
    return None


class BindingTable:
    """Read-only ordered binding sequence with pre-parsed keys and modifiers.

    Bindings whose key string cannot be parsed are kept out of the table so
    they never match.
    """

    def __init__(self, bindings: Iterable[KeyBinding]) -> None:
        compiled: list[_CompiledBinding] = []
        for binding in bindings:
            try:
                key = parse_key(binding.key)
            except InvalidKeyBindingError as exc:
                logger.warning("ignoring key binding: %s", exc)
                continue
            compiled.append(_CompiledBinding(key, parse_modifiers(binding.mods), binding))
        self._entries: tuple[_CompiledBinding, ...] = tuple(compiled)

    def __len__(self) -> int:
        return len(self._entries)

    def first_match(self, event: KeyEvent, mode: Mode) -> KeyBinding | None:
        for entry in self._entries:
            if entry.matches(event, mode):
                return entry.binding
        return None


class KeyResolver:
    def __init__(self, table: BindingTable) -> None:
        self.table = table

    def resolve(self, event: KeyEvent, mode: Mode) -> Action | None:
        """Return the action for ``event`` in ``mode``, or ``None``."""
        if not event.pressed:
            return None
        binding = self.table.first_match(event, mode)
        if binding is not None:
            return binding_action(binding)
        return self._fallback(event, mode)

    @staticmethod
    def _fallback(event: KeyEvent, mode: Mode) -> Action | None:
        if mode not in _TEXT_INPUT_MODES:
            return None
        if mode is Mode.DIALOG and event.modifiers == Modifier.CONTROL:
            # List navigation stays available while a text field has focus.
            if event.key == "n":
                return Action.from_name("MoveDown")
            if event.key == "p":
                return Action.from_name("MoveUp")
        if event.modifiers in _TEXT_MODIFIERS and event.is_printable:
            return Action.insert_char(event.key)
        if event.key == "Backspace":
            return Action.from_name("DeleteChar")
        return None


class ActionDispatcher:
    """Turns raw key events into actions for the handler."""

    def __init__(self, bindings: Iterable[KeyBinding]) -> None:
        self.resolver = KeyResolver(BindingTable(bindings))

    def dispatch(self, event: KeyEvent, mode: Mode) -> Action | None:
        action = self.resolver.resolve(event, mode)
        if action is not None:
            logger.debug("%s in %s -> %s", event.describe(), mode.value, action)
        return action


__all__ = ["ActionDispatcher", "BindingTable", "KeyResolver", "binding_action"]
