"""Terminal control helpers for the TUI session.

Owns raw-mode lifecycle and alternate-screen switching, plus the suspend
bracket used when a shell or command takes over the terminal.
"""

from __future__ import annotations

import contextlib
import os
import termios
import tty
from collections.abc import Callable


class TerminalController:
    """Manage terminal mode transitions for the worktree browser."""

    def __init__(self, stdin_fd: int, stdout_fd: int) -> None:
        """Capture tty state and bind stdin/stdout file descriptors."""
        self.stdin_fd = stdin_fd
        self.stdout_fd = stdout_fd
        self._saved_tty_state = termios.tcgetattr(stdin_fd)
        self._active = False

    def enable_tui_mode(self) -> None:
        """Enter raw alternate-screen mode with the cursor hidden."""
        tty.setraw(self.stdin_fd, termios.TCSAFLUSH)
        # Enter alternate screen and hide cursor.
        os.write(self.stdout_fd, b"\x1b[?1049h\x1b[?25l")
        self._active = True

    def disable_tui_mode(self) -> None:
        """Restore the saved tty state and the main screen buffer."""
        # Show cursor and restore the main screen buffer.
        os.write(self.stdout_fd, b"\x1b[?25h\x1b[?1049l")
        self._active = False
        termios.tcsetattr(self.stdin_fd, termios.TCSAFLUSH, self._saved_tty_state)

    def suspend(self, run: Callable[[], None]) -> None:
        """Hand the cooked-mode terminal to ``run``, then re-enter TUI mode."""
        was_active = self._active
        if was_active:
            self.disable_tui_mode()
        try:
            run()
        finally:
            if was_active:
                self.enable_tui_mode()

    @contextlib.contextmanager
    def raw_mode(self):
        """Context manager that keeps TUI mode active for the block."""
        try:
            self.enable_tui_mode()
            yield
        finally:
            self.disable_tui_mode()


__all__ = ["TerminalController"]
