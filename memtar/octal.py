"""
Octal ASCII field encoding for ustar headers.

Numeric header fields hold ``width - 1`` zero-padded octal digits followed by
a NUL byte. Values that need more digits are rejected rather than truncated.
"""
from __future__ import annotations

from typing import Union

from .constants import MODE_DIGITS
from .errors import FieldOverflow, InvalidMode


_OCTAL_DIGITS = frozenset("01234567")


def octal_limit(width: int) -> int:
    """Largest value that fits a ``width``-byte octal field."""
    return 8 ** (width - 1) - 1


def encode_octal(value: int, width: int, *, field: str = "field") -> bytes:
    """Encode ``value`` as ``width - 1`` octal digits plus a NUL terminator.

    Args:
        value: Unsigned integer to encode.
        width: Total field width in bytes, terminator included.
        field: Field name used in error messages.

    Raises:
        TypeError: value is not an int.
        FieldOverflow: value is negative or needs more than ``width - 1`` digits.
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{field}: expected int, got {type(value).__name__} {value!r}")
    limit = octal_limit(width)
    if value < 0 or value > limit:
        raise FieldOverflow(field, value, limit)
    return ("%0*o" % (width - 1, value)).encode("ascii") + b"\x00"


def format_mode(mode: str) -> str:
    """Return ``mode`` left-padded with '0' to the 7-digit field text.

    The input string is not modified; a new string is returned.
    """
    if not mode:
        raise InvalidMode("mode is empty")
    if len(mode) > MODE_DIGITS:
        raise InvalidMode(f"mode {mode!r} longer than {MODE_DIGITS} digits")
    if not set(mode) <= _OCTAL_DIGITS:
        raise InvalidMode(f"mode {mode!r} is not an octal string")
    return mode.rjust(MODE_DIGITS, "0")


def parse_mode(mode: Union[str, int]) -> str:
    """Normalize an octal string or integer permission to 7-digit field text."""
    if isinstance(mode, bool):
        raise InvalidMode(f"mode {mode!r} is not a permission value")
    if isinstance(mode, int):
        if mode < 0:
            raise InvalidMode(f"mode {mode} is negative")
        return format_mode("%o" % mode)
    if mode.lower().startswith("0o"):
        mode = mode[2:]
    return format_mode(mode)
