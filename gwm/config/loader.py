"""Persistent JSON config loading.

Reads the global config under the platform config dir and an optional
repository-local ``.gwm.json``. All access is defensive: malformed or
missing config falls back to defaults.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from platformdirs import user_config_dir

from .keybinding import KeyBinding, default_bindings

logger = logging.getLogger(__name__)

APP_NAME = "gwm"
CONFIG_FILENAME = "config.json"
LOCAL_CONFIG_FILENAME = ".gwm.json"
CONFIG_PATH = Path(user_config_dir(APP_NAME, appauthor=False)) / CONFIG_FILENAME
DEFAULT_WORKTREE_BASEDIR = "~/worktrees"
DEFAULT_SANITIZE_CHARS: dict[str, str] = {"/": "-"}


def load_config_file(path: Path) -> dict[str, object]:
    """Load one JSON config object.

    Returns an empty dict when the file is missing, unreadable, malformed, or
    does not decode to a top-level JSON object.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except OSError:
        return {}
    try:
        data = json.loads(text)
    except ValueError:
        logger.warning("ignoring malformed config file %s", path)
        return {}
    return data if isinstance(data, dict) else {}


def _section(data: dict[str, object], name: str) -> dict[str, object]:
    value = data.get(name)
    return value if isinstance(value, dict) else {}


def _optional_str(section: dict[str, object], key: str) -> str | None:
    value = section.get(key)
    if not isinstance(value, str):
        return None
    stripped = value.strip()
    return stripped if stripped else None


def _bindings(data: dict[str, object]) -> list[KeyBinding]:
    raw = data.get("bindings")
    if not isinstance(raw, list):
        return []
    out: list[KeyBinding] = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        binding = KeyBinding.from_mapping(item)
        if binding is not None:
            out.append(binding)
    return out


def _sanitize_chars(section: dict[str, object]) -> dict[str, str] | None:
    value = section.get("sanitize_chars")
    if not isinstance(value, dict):
        return None
    return {str(k): str(v) for k, v in value.items() if isinstance(k, str) and k and isinstance(v, str)}


@dataclass(frozen=True)
class Config:
    """Resolved settings: worktree placement, naming, and the binding table."""

    worktree_basedir: str = DEFAULT_WORKTREE_BASEDIR
    naming_template: str | None = None
    sanitize_chars: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_SANITIZE_CHARS))
    bindings: tuple[KeyBinding, ...] = field(default_factory=lambda: tuple(default_bindings()))

    def worktree_base_path(self, repo_root: Path) -> Path:
        """Expand ``~`` and resolve relative base dirs against ``repo_root``."""
        basedir = self.worktree_basedir
        if basedir == "~" or basedir.startswith("~/"):
            return Path(os.path.expanduser(basedir))
        path = Path(basedir)
        if path.is_absolute():
            return path
        return (repo_root / path).resolve()

    def sanitize(self, name: str) -> str:
        result = name
        for source, replacement in self.sanitize_chars.items():
            result = result.replace(source, replacement)
        return result

    def worktree_name_for_branch(self, branch: str) -> str:
        """Derive a worktree directory name from a branch name via the naming template."""
        sanitized = self.sanitize(branch)
        if not self.naming_template:
            return sanitized
        return self.naming_template.replace("{branch}", sanitized)


def merge_config(global_data: dict[str, object], local_data: dict[str, object]) -> Config:
    """Merge decoded config objects; local scalars win, local bindings come first."""
    global_worktree = _section(global_data, "worktree")
    local_worktree = _section(local_data, "worktree")
    global_naming = _section(global_data, "naming")
    local_naming = _section(local_data, "naming")

    basedir = (
        _optional_str(local_worktree, "basedir")
        or _optional_str(global_worktree, "basedir")
        or DEFAULT_WORKTREE_BASEDIR
    )
    template = _optional_str(local_naming, "template") or _optional_str(global_naming, "template")
    sanitize_chars = _sanitize_chars(local_naming)
    if sanitize_chars is None:
        sanitize_chars = _sanitize_chars(global_naming)
    if sanitize_chars is None:
        sanitize_chars = dict(DEFAULT_SANITIZE_CHARS)

    bindings = _bindings(local_data) + _bindings(global_data) + default_bindings()
    return Config(
        worktree_basedir=basedir,
        naming_template=template,
        sanitize_chars=sanitize_chars,
        bindings=tuple(bindings),
    )


def load_config(repo_root: Path | None = None) -> Config:
    """Load global config plus the repository-local override when present."""
    global_data = load_config_file(CONFIG_PATH)
    local_data = load_config_file(repo_root / LOCAL_CONFIG_FILENAME) if repo_root is not None else {}
    return merge_config(global_data, local_data)


__all__ = [
    "APP_NAME",
    "CONFIG_PATH",
    "Config",
    "DEFAULT_WORKTREE_BASEDIR",
    "LOCAL_CONFIG_FILENAME",
    "load_config",
    "load_config_file",
    "merge_config",
]
