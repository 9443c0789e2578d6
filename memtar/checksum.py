"""
ustar header checksum: the unsigned sum of all 512 header bytes, computed
with the checksum field (offset 148, 8 bytes) treated as eight spaces.
"""
from __future__ import annotations

from .constants import CHKSUM_BLANK, HEADER_SIZE

CHKSUM_OFFSET = 148
CHKSUM_WIDTH = 8

_BLANK_SUM = sum(CHKSUM_BLANK)


def header_checksum(header: bytes) -> int:
    if len(header) != HEADER_SIZE:
        raise ValueError(f"header must be {HEADER_SIZE} bytes, got {len(header)}")
    end = CHKSUM_OFFSET + CHKSUM_WIDTH
    return sum(header[:CHKSUM_OFFSET]) + _BLANK_SUM + sum(header[end:])


def stamp_checksum(header: bytearray) -> None:
    """Reset the checksum field to spaces, sum, and store the result.

    Stored as 6 zero-padded octal digits, NUL, space. Must run after every
    other field is final.
    """
    end = CHKSUM_OFFSET + CHKSUM_WIDTH
    header[CHKSUM_OFFSET:end] = CHKSUM_BLANK
    value = header_checksum(header)
    header[CHKSUM_OFFSET:end] = ("%06o" % value).encode("ascii") + b"\x00 "


def stored_checksum(header: bytes) -> int:
    raw = bytes(header[CHKSUM_OFFSET : CHKSUM_OFFSET + CHKSUM_WIDTH])
    digits = raw.split(b"\x00", 1)[0].strip()
    return int(digits or b"0", 8)


def verify_checksum(header: bytes) -> bool:
    try:
        return stored_checksum(header) == header_checksum(header)
    except ValueError:
        return False
