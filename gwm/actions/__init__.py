"""Actions: the closed action set, key resolution, and action execution."""

from .dispatcher import ActionDispatcher, BindingTable, KeyResolver
from .types import Action, ActionKind

__all__ = [
    "Action",
    "ActionDispatcher",
    "ActionKind",
    "BindingTable",
    "KeyResolver",
]
