"""Formatted output and input with the small directive set of the console library.

``format_message`` understands ``%d``, ``%x``, ``%s``, ``%c`` and ``%%``;
output stops at the first unknown directive. ``scan`` understands ``%d``,
``%x`` (written with a ``0x`` prefix), ``%c``, ``%<width>s`` and ``%%``,
and stops at the first piece of input that does not match.
"""

from __future__ import annotations

from collections.abc import Iterator

MAX_BUFFER_SIZE = 256

_WHITESPACE = " \t\n"
_DIGITS = "0123456789"
_HEX_DIGITS = "0123456789abcdefABCDEF"


class ScanError(ValueError):
    """Raised when a scan format holds a directive that cannot be used."""


def _int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - (1 << 32) if value & 0x80000000 else value


def _text(value) -> str:
    if isinstance(value, (bytes, bytearray)):
        value = bytes(value).decode("utf-8", "replace")
    if not isinstance(value, str):
        raise TypeError(f"%s needs a string, got {type(value).__name__}")
    return value.split("\0", 1)[0]


def _char(value) -> str:
    if isinstance(value, int):
        return chr(value & 0xFF)
    if isinstance(value, str) and len(value) == 1:
        return value
    raise TypeError("%c needs a single character or an integer")


def format_message(fmt: str, *args) -> str:
    """Render ``fmt`` with ``args`` the way the console ``printf`` does."""
    values = iter(args)

    def next_arg():
        try:
            return next(values)
        except StopIteration:
            raise TypeError("not enough arguments for format") from None

    out: list[str] = []
    pending = False
    for ch in fmt:
        if not pending:
            if ch == "%":
                pending = True
            else:
                out.append(ch)
            continue
        pending = False
        if ch == "%":
            out.append("%")
        elif ch == "d":
            out.append(str(_int32(int(next_arg()))))
        elif ch == "x":
            out.append(format(int(next_arg()) & 0xFFFFFFFF, "x"))
        elif ch == "s":
            out.append(_text(next_arg()))
        elif ch == "c":
            out.append(_char(next_arg()))
        else:
            break
    return "".join(out)


def _chunks(source) -> Iterator[str]:
    if isinstance(source, str):
        yield source
        return
    while True:
        chunk = source.read(MAX_BUFFER_SIZE)
        if not chunk:
            return
        if isinstance(chunk, (bytes, bytearray)):
            chunk = bytes(chunk).decode("utf-8", "replace")
        yield chunk


class _Input:
    """Characters of a string or stream, one at a time; "" marks the end."""

    def __init__(self, source) -> None:
        self._chunks = _chunks(source)
        self._buffer = ""
        self._pos = 0

    def peek(self) -> str:
        while self._pos >= len(self._buffer):
            chunk = next(self._chunks, None)
            if chunk is None:
                return ""
            self._buffer, self._pos = chunk, 0
        return self._buffer[self._pos]

    def advance(self) -> None:
        self._pos += 1


def _skip_whitespace(inp: _Input) -> None:
    while (ch := inp.peek()) and ch in _WHITESPACE:
        inp.advance()


def _scan_decimal(inp: _Input) -> int | None:
    _skip_whitespace(inp)
    negative = False
    if inp.peek() == "-":
        negative = True
        inp.advance()
    digits = []
    while (ch := inp.peek()) and ch in _DIGITS:
        digits.append(ch)
        inp.advance()
    if not digits:
        return None
    value = int("".join(digits))
    return _int32(-value if negative else value)


def _scan_hex(inp: _Input) -> int | None:
    _skip_whitespace(inp)
    if inp.peek() != "0":
        return None
    inp.advance()
    if inp.peek() != "x":
        return None
    inp.advance()
    digits = []
    while (ch := inp.peek()) and ch in _HEX_DIGITS:
        digits.append(ch)
        inp.advance()
    if not digits:
        return None
    return _int32(int("".join(digits), 16))


def _scan_string(inp: _Input, avail: int) -> str | None:
    chars: list[str] = []
    while len(chars) < avail - 1:
        ch = inp.peek()
        if not ch:
            if not chars:
                return None
            break
        if ch in _WHITESPACE:
            if chars:
                break
            inp.advance()
        else:
            chars.append(ch)
            inp.advance()
    return "".join(chars)


def scan(fmt: str, source) -> list:
    """Read values from ``source`` (a string or a readable stream) by ``fmt``.

    Returns the values converted before the first mismatch, in order.
    """
    inp = _Input(source)
    values: list = []
    state = "text"
    width = 0
    for ch in fmt:
        if state == "text":
            if ch == "%":
                state = "percent"
            elif ch in _WHITESPACE:
                _skip_whitespace(inp)
            else:
                if inp.peek() != ch:
                    return values
                inp.advance()
        elif state == "percent":
            state = "text"
            if ch == "%":
                if inp.peek() != "%":
                    return values
                inp.advance()
            elif ch == "d":
                number = _scan_decimal(inp)
                if number is None:
                    return values
                values.append(number)
            elif ch == "x":
                number = _scan_hex(inp)
                if number is None:
                    return values
                values.append(number)
            elif ch == "c":
                got = inp.peek()
                if not got:
                    return values
                values.append(got)
                inp.advance()
            elif ch in _DIGITS:
                width = int(ch)
                state = "width"
            else:
                raise ScanError(f"unknown directive %{ch}")
        else:
            if ch in _DIGITS:
                width = width * 10 + int(ch)
            elif ch == "s":
                state = "text"
                text = _scan_string(inp, width)
                if text is None:
                    return values
                values.append(text)
            else:
                raise ScanError(f"a width must be followed by s, not {ch!r}")
    if state != "text":
        raise ScanError("format ends inside a directive")
    return values