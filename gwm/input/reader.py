"""Low-level terminal input decoding.

Reads raw bytes from stdin and translates them into ``KeyEvent`` values.
Handles ESC-sequence timing, control/alt combos, and multi-byte UTF-8.
"""

from __future__ import annotations

import os
import select

from .events import KeyEvent, Modifier

ESC_SEQUENCE_TIMEOUT_MS = 25
_PENDING_BYTES: list[bytes] = []

_CSI_FINAL_KEYS = {
    b"A": "Up",
    b"B": "Down",
    b"C": "Right",
    b"D": "Left",
    b"H": "Home",
    b"F": "End",
}
_SS3_KEYS = {
    b"P": "F1",
    b"Q": "F2",
    b"R": "F3",
    b"S": "F4",
    b"H": "Home",
    b"F": "End",
}
_TILDE_KEYS = {
    "1": "Home",
    "2": "Insert",
    "3": "Delete",
    "4": "End",
    "5": "PageUp",
    "6": "PageDown",
    "7": "Home",
    "8": "End",
    "15": "F5",
    "17": "F6",
    "18": "F7",
    "19": "F8",
    "20": "F9",
    "21": "F10",
    "23": "F11",
    "24": "F12",
}


def _read_ready_byte(fd: int, timeout_ms: int) -> bytes | None:
    ready, _, _ = select.select([fd], [], [], max(0.0, timeout_ms / 1000.0))
    if not ready:
        return None
    ch = os.read(fd, 1)
    if not ch:
        return None
    return ch


def _xterm_modifiers(param: str) -> Modifier:
    """Decode the xterm ``1;<n>`` modifier parameter (``n - 1`` is a bitmask)."""
    try:
        mask = int(param) - 1
    except ValueError:
        return Modifier.NONE
    mods = Modifier.NONE
    if mask & 1:
        mods |= Modifier.SHIFT
    if mask & 2:
        mods |= Modifier.ALT
    if mask & 4:
        mods |= Modifier.CONTROL
    if mask & 8:
        mods |= Modifier.SUPER
    return mods


def _decode_control_byte(ch: bytes) -> KeyEvent | None:
    code = ch[0]
    if ch in {b"\r", b"\n"}:
        return KeyEvent("Enter")
    if ch == b"\t":
        return KeyEvent("Tab")
    if ch in {b"\x08", b"\x7f"}:
        return KeyEvent("Backspace")
    if ch == b"\x00":
        return KeyEvent(" ", Modifier.CONTROL)
    if 1 <= code <= 26:
        return KeyEvent(chr(ord("a") + code - 1), Modifier.CONTROL)
    return None


def _read_utf8_tail(fd: int, first: bytes) -> str:
    lead = first[0]
    if lead >= 0xF0:
        extra = 3
    elif lead >= 0xE0:
        extra = 2
    elif lead >= 0xC0:
        extra = 1
    else:
        extra = 0
    data = first
    for _ in range(extra):
        nxt = _read_ready_byte(fd, ESC_SEQUENCE_TIMEOUT_MS)
        if nxt is None:
            break
        data += nxt
    return data.decode("utf-8", errors="replace")


def _read_csi(fd: int) -> KeyEvent:
    params = b""
    while True:
        part = _read_ready_byte(fd, ESC_SEQUENCE_TIMEOUT_MS)
        if part is None:
            return KeyEvent("Esc")
        if part.isalpha() or part == b"~":
            break
        params += part
        if len(params) > 16:
            return KeyEvent("Esc")

    fields = params.decode("ascii", errors="replace").split(";")
    mods = _xterm_modifiers(fields[1]) if len(fields) > 1 else Modifier.NONE
    if part == b"~":
        key = _TILDE_KEYS.get(fields[0])
        return KeyEvent(key, mods) if key is not None else KeyEvent("Esc")
    if part == b"Z":
        return KeyEvent("Tab", Modifier.SHIFT)
    key = _CSI_FINAL_KEYS.get(part)
    return KeyEvent(key, mods) if key is not None else KeyEvent("Esc")


def read_key(fd: int, timeout_ms: int | None = None) -> KeyEvent | None:
    """Read one key press from ``fd``; ``None`` when ``timeout_ms`` elapses."""
    if _PENDING_BYTES:
        ch = _PENDING_BYTES.pop(0)
    else:
        if timeout_ms is not None:
            ready, _, _ = select.select([fd], [], [], max(0.0, timeout_ms / 1000.0))
            if not ready:
                return None

        ch = os.read(fd, 1)
        if not ch:
            return None

    if ch != b"\x1b":
        control = _decode_control_byte(ch)
        if control is not None:
            return control
        return KeyEvent(_read_utf8_tail(fd, ch))

    seq = _read_ready_byte(fd, ESC_SEQUENCE_TIMEOUT_MS)
    if seq is None:
        return KeyEvent("Esc")
    if seq == b"[":
        return _read_csi(fd)
    if seq == b"O":
        final = _read_ready_byte(fd, ESC_SEQUENCE_TIMEOUT_MS)
        key = _SS3_KEYS.get(final) if final is not None else None
        return KeyEvent(key) if key is not None else KeyEvent("Esc")
    if seq == b"\x1b":
        _PENDING_BYTES.append(seq)
        return KeyEvent("Esc")

    # ESC + key is how terminals report Alt combos.
    inner = _decode_control_byte(seq)
    if inner is not None:
        return KeyEvent(inner.key, inner.modifiers | Modifier.ALT)
    return KeyEvent(_read_utf8_tail(fd, seq), Modifier.ALT)


__all__ = ["ESC_SEQUENCE_TIMEOUT_MS", "_PENDING_BYTES", "read_key"]
