"""Command-line front door for gwm.

Parses CLI options, configures logging, locates the repository, and loads
config. Then hands a fully wired mode machine to the interactive loop.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path

from platformdirs import user_log_dir

from .actions.dispatcher import ActionDispatcher
from .actions.handler import ActionHandler, HandlerContext, refresh_lists
from .config.loader import APP_NAME, load_config
from .errors import GitError, NotARepositoryError
from .git.worktree import GitWorktreeService
from .runtime.mode_machine import ModeMachine
from .runtime.tasks import AsyncTaskRunner

logger = logging.getLogger(__name__)

LOG_LEVEL_ENV = "GWM_LOG_LEVEL"
LOG_FILENAME = "gwm.log"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _log_level(value: str) -> int:
    """argparse type for logging level names."""
    level = logging.getLevelName(value.upper())
    if not isinstance(level, int):
        raise argparse.ArgumentTypeError(f"unknown log level: {value!r}")
    return level


def configure_logging(level: int | None) -> Path | None:
    """Log to a file under the platform log dir; stay silent when ``level`` is ``None``.

    The TUI owns the terminal, so nothing is ever logged to stderr.
    """
    root = logging.getLogger("gwm")
    if level is None:
        root.addHandler(logging.NullHandler())
        return None
    log_dir = Path(user_log_dir(APP_NAME, appauthor=False))
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / LOG_FILENAME
    handler = logging.FileHandler(log_path, encoding="utf-8")
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
    root.setLevel(level)
    return log_path


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Browse, create, and delete git worktrees in the terminal.")
    parser.add_argument(
        "--repo",
        default=None,
        help="Path inside the repository to manage. Defaults to current directory.",
    )
    parser.add_argument(
        "--log-level",
        type=_log_level,
        default=None,
        help=f"Write a debug log at this level (also settable via {LOG_LEVEL_ENV}).",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    """Parse CLI arguments and launch the worktree browser."""
    args = build_parser().parse_args(argv)

    level = args.log_level
    if level is None and os.environ.get(LOG_LEVEL_ENV):
        try:
            level = _log_level(os.environ[LOG_LEVEL_ENV])
        except argparse.ArgumentTypeError as exc:
            raise SystemExit(str(exc)) from exc
    configure_logging(level)

    start = Path(args.repo) if args.repo is not None else Path.cwd()
    if not start.exists():
        raise SystemExit(f"Path not found: {start}")
    try:
        service = GitWorktreeService.discover(start)
    except NotARepositoryError as exc:
        raise SystemExit(f"Not a git repository: {start}") from exc
    except GitError as exc:
        raise SystemExit(str(exc)) from exc

    if not sys.stdin.isatty() or not sys.stdout.isatty():
        raise SystemExit("gwm needs an interactive terminal.")

    config = load_config(service.repo_root)
    logger.info("starting in %s with %d bindings", service.repo_root, len(config.bindings))

    from .runtime.loop import run_main_loop
    from .runtime.terminal import TerminalController

    stdin_fd = sys.stdin.fileno()
    terminal = TerminalController(stdin_fd, sys.stdout.fileno())
    machine = ModeMachine()
    handler = ActionHandler(
        HandlerContext(
            service=service,
            runner=AsyncTaskRunner(),
            config=config,
            suspend=terminal.suspend,
        )
    )
    refresh_lists(machine, service)
    run_main_loop(machine, terminal, stdin_fd, ActionDispatcher(config.bindings), handler)


if __name__ == "__main__":
    main()
