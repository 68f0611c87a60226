"""Scan-code translation and the keyboard input buffer.

Codes are single-byte set-1 scan codes: a key press sends its code and the
release sends the same code plus ``0x80``. Shift keys flip between the lower
and upper tables while held. Caps lock flips them until it is pressed again.
"""

from __future__ import annotations

import enum
from collections import deque
from collections.abc import Iterable

MAX_KEYBUFFER_SIZE = 256

RELEASE = 0x80
KLSH_P = 0x2A
KRSH_P = 0x36
KCAP_P = 0x3A
KF12_P = 0x58


def _build_tables() -> tuple[dict[int, str], dict[int, str]]:
    pairs: dict[int, tuple[str, str]] = {}
    for start, lower, upper in (
        (0x02, "1234567890", "!@#$%^&*()"),
        (0x10, "qwertyuiop", "QWERTYUIOP"),
        (0x1E, "asdfghjkl", "ASDFGHJKL"),
        (0x2C, "zxcvbnm", "ZXCVBNM"),
    ):
        for offset, (low, up) in enumerate(zip(lower, upper)):
            pairs[start + offset] = (low, up)
    pairs.update(
        {
            0x0C: ("-", "_"),
            0x0D: ("=", "+"),
            0x1A: ("[", "{"),
            0x1B: ("]", "}"),
            0x1C: ("\n", "\n"),
            0x27: (";", ":"),
            0x28: ("'", '"'),
            0x29: ("`", "~"),
            0x2B: ("\\", "|"),
            0x33: (",", "<"),
            0x34: (".", ">"),
            0x35: ("/", "?"),
            0x39: (" ", " "),
        }
    )
    return (
        {code: pair[0] for code, pair in pairs.items()},
        {code: pair[1] for code, pair in pairs.items()},
    )


_LOWER, _UPPER = _build_tables()

_SHIFT_CODES = frozenset({KLSH_P, KLSH_P + RELEASE, KRSH_P, KRSH_P + RELEASE})


def is_valid_code(code: int) -> bool:
    """Whether the controller would pass ``code`` on: a one-byte press or release."""
    return 0 < code <= KF12_P + RELEASE


class _CapsState(enum.Enum):
    OFF = 0
    ON = 1
    PRESSED_AGAIN = 2


class Keyboard:
    """Turns scan codes into characters and buffers codes until they are read."""

    def __init__(self) -> None:
        self._upper = False
        self._caps = _CapsState.OFF
        # One slot stays unused so a full ring is never mistaken for an empty one.
        self._buffer: deque[int] = deque(maxlen=MAX_KEYBUFFER_SIZE - 1)

    def translate(self, code: int) -> str:
        """Apply ``code`` to the shift state and return its character, or ""."""
        if code < 0:
            raise ValueError(f"invalid scan code {code}")
        if code in _SHIFT_CODES:
            self._upper = not self._upper
        elif code == KCAP_P:
            if self._caps is _CapsState.OFF:
                self._caps = _CapsState.ON
                self._upper = not self._upper
            elif self._caps is _CapsState.ON:
                self._caps = _CapsState.PRESSED_AGAIN
        elif code == KCAP_P + RELEASE:
            if self._caps is _CapsState.PRESSED_AGAIN:
                self._caps = _CapsState.OFF
                self._upper = not self._upper
        if code >= KF12_P:
            return ""
        table = _UPPER if self._upper else _LOWER
        return table.get(code, "")

    def push(self, code: int) -> bool:
        """Buffer one code from the controller; invalid codes are dropped."""
        if not is_valid_code(code):
            return False
        self._buffer.append(code)
        return True

    def feed(self, codes: Iterable[int]) -> int:
        """Buffer several codes and return how many were accepted."""
        return sum(self.push(code) for code in codes)

    def read(self, size: int) -> str:
        """Take buffered keys and return at most ``size - 1`` characters.

        Codes that yield no character (modifiers, releases) are consumed
        without counting toward ``size``.
        """
        if size < 0:
            raise ValueError("size must not be negative")
        chars: list[str] = []
        while len(chars) < size - 1 and self._buffer:
            char = self.translate(self._buffer.popleft())
            if char:
                chars.append(char)
        return "".join(chars)

    def __len__(self) -> int:
        return len(self._buffer)