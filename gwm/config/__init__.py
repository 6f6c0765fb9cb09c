"""Configuration: binding records and JSON config loading."""

from .keybinding import KeyBinding, default_bindings, mode_matches, parse_key, parse_modifiers
from .loader import Config, load_config, merge_config

__all__ = [
    "Config",
    "KeyBinding",
    "default_bindings",
    "load_config",
    "merge_config",
    "mode_matches",
    "parse_key",
    "parse_modifiers",
]
