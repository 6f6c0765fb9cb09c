"""Input-layer public API: key-event values and terminal decoding."""

from .events import KeyEvent, Modifier, NAMED_KEYS
from .reader import ESC_SEQUENCE_TIMEOUT_MS, read_key

__all__ = [
    "KeyEvent",
    "Modifier",
    "NAMED_KEYS",
    "ESC_SEQUENCE_TIMEOUT_MS",
    "read_key",
]
