"""Main interactive event loop for the worktree browser.

Each iteration draws when the state is dirty, waits briefly for one key,
resolves it to an action, applies it, and then runs the per-frame tick that
expires notifications and polls background work.
"""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass

from ..actions.dispatcher import ActionDispatcher
from ..actions.handler import ActionHandler
from ..input import read_key
from .mode_machine import ModeMachine
from .render import render_frame
from .terminal import TerminalController

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RuntimeLoopTiming:
    """Timing constants controlling interactive loop behavior."""

    key_timeout_ms: int = 100


def run_main_loop(
    machine: ModeMachine,
    terminal: TerminalController,
    stdin_fd: int,
    dispatcher: ActionDispatcher,
    handler: ActionHandler,
    timing: RuntimeLoopTiming = RuntimeLoopTiming(),
) -> None:
    """Run until an action sets ``should_quit``."""
    state = machine.state
    last_size: tuple[int, int] | None = None
    with terminal.raw_mode():
        while not state.should_quit:
            term = shutil.get_terminal_size((80, 24))
            size = (term.columns, term.lines)
            if size != last_size:
                last_size = size
                state.dirty = True
            if state.dirty:
                render_frame(state, term.columns, term.lines)
                state.dirty = False

            try:
                event = read_key(stdin_fd, timeout_ms=timing.key_timeout_ms)
            except KeyboardInterrupt:
                continue
            if event is not None and not state.is_busy:
                action = dispatcher.dispatch(event, state.mode)
                if action is not None:
                    handler.handle(machine, action)
            handler.tick(machine)

        handle = state.operation
        if handle is not None:
            logger.info("exiting with a background job still running: %s", handle.message)


__all__ = ["RuntimeLoopTiming", "run_main_loop"]
