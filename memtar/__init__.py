"""
memtar — write POSIX ustar archives from in-memory files.

Features:

- Byte-exact 512-byte ustar headers for regular files (octal fields, checksum).
- Block padding and end-of-archive tail written to any binary sink.
- Strict encoding by default: over-long names, oversized numeric fields and
  malformed modes raise instead of producing a corrupt archive.
- ``TarStreamWriter`` for multi-file archives and a ``memtar pack`` CLI.

Nothing here reads or extracts archives; use ``tarfile`` for that.
"""

__version__ = "0.1"

__all__ = [
    "constants",
    "errors",
    "octal",
    "checksum",
    "header",
    "records",
    "writer",
]

# Programmatic API: memtar.writer.write_entry / write_tail with a
# memtar.records.FileRecord, or memtar.writer.TarStreamWriter.
