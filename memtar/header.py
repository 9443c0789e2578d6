from __future__ import annotations

import struct
import sys
from typing import Dict, Tuple

from .checksum import stamp_checksum
from .constants import (
    BLOCK_SIZE,
    CHKSUM_BLANK,
    HEADER_SIZE,
    REGTYPE,
    TEXT_ENCODING,
    USTAR_MAGIC,
    USTAR_VERSION,
)
from .errors import NameTooLong
from .octal import encode_octal, parse_mode
from .records import FileRecord


# ustar header layout: (field, offset, width)
HEADER_FIELDS: Tuple[Tuple[str, int, int], ...] = (
    ("name", 0, 100),
    ("mode", 100, 8),
    ("uid", 108, 8),
    ("gid", 116, 8),
    ("size", 124, 12),
    ("mtime", 136, 12),
    ("chksum", 148, 8),
    ("typeflag", 156, 1),
    ("linkname", 157, 100),
    ("magic", 257, 6),
    ("version", 263, 2),
    ("uname", 265, 32),
    ("gname", 297, 32),
    ("devmajor", 329, 8),
    ("devminor", 337, 8),
    ("prefix", 345, 155),
    ("padding", 500, 12),
)

FIELD_WIDTHS: Dict[str, int] = {name: width for name, _off, width in HEADER_FIELDS}
FIELD_OFFSETS: Dict[str, int] = {name: off for name, off, _width in HEADER_FIELDS}

_HEADER_STRUCT = struct.Struct("".join("%ds" % width for _name, _off, width in HEADER_FIELDS))


def _check_layout() -> None:
    pos = 0
    for name, off, width in HEADER_FIELDS:
        if off != pos:
            raise AssertionError(f"header field {name} at {off}, expected {pos}")
        pos += width
    if pos != HEADER_SIZE or _HEADER_STRUCT.size != HEADER_SIZE:
        raise AssertionError(f"header layout covers {pos} bytes, expected {HEADER_SIZE}")


_check_layout()


def padding_length(n: int) -> int:
    """Null bytes needed after ``n`` content bytes to reach a block boundary."""
    return (BLOCK_SIZE - n % BLOCK_SIZE) % BLOCK_SIZE


def encode_text(value: str, field: str, *, truncate: bool = False) -> bytes:
    """Encode a text field, leaving room for at least one trailing NUL.

    Over-long text raises NameTooLong unless ``truncate`` is set, in which case
    it is cut to the field capacity and a warning is printed.
    """
    width = FIELD_WIDTHS[field]
    raw = value.encode(TEXT_ENCODING)
    limit = width - 1
    if len(raw) > limit:
        if not truncate:
            raise NameTooLong(field, len(raw), limit)
        print(
            f"Warning: truncating {field} {value!r} to {limit} bytes",
            file=sys.stderr,
        )
        raw = raw[:limit]
    return raw


def build_header(record: FileRecord, *, truncate_names: bool = False) -> bytes:
    """Assemble the 512-byte ustar header for a regular-file record.

    Args:
        record: File metadata; ``record.size`` (bytes) becomes the size field.
        truncate_names: Cut over-long name/uname/gname instead of raising
            NameTooLong.

    Returns:
        A new 512-byte header with its checksum stamped.
    """
    mode = parse_mode(record.mode).encode("ascii") + b"\x00"
    packed = _HEADER_STRUCT.pack(
        encode_text(record.name, "name", truncate=truncate_names),
        mode,
        encode_octal(record.uid, FIELD_WIDTHS["uid"], field="uid"),
        encode_octal(record.gid, FIELD_WIDTHS["gid"], field="gid"),
        encode_octal(record.size, FIELD_WIDTHS["size"], field="size"),
        encode_octal(record.mtime, FIELD_WIDTHS["mtime"], field="mtime"),
        CHKSUM_BLANK,
        REGTYPE,
        b"",  # linkname
        USTAR_MAGIC,
        USTAR_VERSION,
        encode_text(record.uname, "uname", truncate=truncate_names),
        encode_text(record.gname, "gname", truncate=truncate_names),
        b"",  # devmajor
        b"",  # devminor
        b"",  # prefix
        b"",  # padding
    )
    header = bytearray(packed)
    stamp_checksum(header)
    return bytes(header)


def header_field(header: bytes, field: str) -> bytes:
    """Raw bytes of one field of an encoded header."""
    off = FIELD_OFFSETS[field]
    return bytes(header[off : off + FIELD_WIDTHS[field]])
