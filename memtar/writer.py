from __future__ import annotations

import warnings
from typing import BinaryIO, Optional, Protocol, Union

from .constants import (
    DEFAULT_GID,
    DEFAULT_GNAME,
    DEFAULT_MODE,
    DEFAULT_MTIME,
    DEFAULT_TAIL_LENGTH,
    DEFAULT_UID,
    DEFAULT_UNAME,
    HEADER_SIZE,
)
from .errors import ArchiveFinalized
from .header import build_header, padding_length
from .records import FileRecord


class ByteSink(Protocol):
    """Anything accepting ordered byte appends: binary files, io.BytesIO, sys.stdout.buffer."""

    def write(self, data: bytes) -> object: ...


_ZERO_BLOCK = b"\x00" * HEADER_SIZE


def _write_zeros(sink: ByteSink, n: int) -> None:
    while n > 0:
        step = min(n, len(_ZERO_BLOCK))
        sink.write(_ZERO_BLOCK[:step])
        n -= step


def write_entry(sink: ByteSink, record: FileRecord, *, truncate_names: bool = False) -> None:
    """Write one regular-file entry: header, content, block padding.

    Encoding errors are raised before anything reaches the sink. Sink errors
    propagate unchanged.
    """
    header = build_header(record, truncate_names=truncate_names)
    sink.write(header)
    if record.size:
        sink.write(record.payload)
    _write_zeros(sink, padding_length(record.size))


def write_tail(sink: ByteSink, tail_length: int = DEFAULT_TAIL_LENGTH) -> None:
    """Write the end-of-archive marker. Call exactly once, after the last entry."""
    if tail_length < DEFAULT_TAIL_LENGTH:
        raise ValueError(f"tail_length must be at least {DEFAULT_TAIL_LENGTH}, got {tail_length}")
    _write_zeros(sink, tail_length)


class TarStreamWriter:
    """Writes a sequence of in-memory files as a ustar stream.

    The sink belongs to the caller unless the writer was created with
    ``TarStreamWriter.to_path``. Leaving the ``with`` block normally writes the
    tail; an exception inside it leaves the stream unterminated.
    """

    def __init__(
        self,
        sink: ByteSink,
        *,
        truncate_names: bool = False,
        tail_length: int = DEFAULT_TAIL_LENGTH,
    ):
        if tail_length < DEFAULT_TAIL_LENGTH:
            raise ValueError(f"tail_length must be at least {DEFAULT_TAIL_LENGTH}, got {tail_length}")
        self.sink = sink
        self.truncate_names = truncate_names
        self.tail_length = tail_length
        self.entries = 0
        self.bytes_written = 0
        self.finalized = False
        self._owned: Optional[BinaryIO] = None

    @classmethod
    def to_path(cls, out_path: str, **kwargs) -> "TarStreamWriter":
        """Create a writer over a newly created file, closed by ``close()``."""
        fh = open(out_path, "wb")
        try:
            w = cls(fh, **kwargs)
        except BaseException:
            fh.close()
            raise
        w._owned = fh
        return w

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        try:
            if exc_type is None and not self.finalized:
                self.finalize()
        finally:
            self.close()

    def close(self):
        if self._owned is not None:
            self._owned.close()
            self._owned = None

    def add(self, record: FileRecord) -> None:
        if self.finalized:
            raise ArchiveFinalized("Archive tail already written")
        write_entry(self.sink, record, truncate_names=self.truncate_names)
        n = record.size
        self.entries += 1
        self.bytes_written += HEADER_SIZE + n + padding_length(n)

    def add_bytes(
        self,
        name: str,
        content: Union[bytes, bytearray, memoryview],
        *,
        mtime: int = DEFAULT_MTIME,
        mode: Union[str, int] = DEFAULT_MODE,
        uid: int = DEFAULT_UID,
        gid: int = DEFAULT_GID,
        uname: str = DEFAULT_UNAME,
        gname: str = DEFAULT_GNAME,
    ) -> None:
        self.add(
            FileRecord(
                name=name,
                content=content,
                mtime=mtime,
                mode=mode,
                uid=uid,
                gid=gid,
                uname=uname,
                gname=gname,
            )
        )

    def add_file(self, arc_name: Optional[str], fs_path: str, **meta) -> None:
        """Read ``fs_path`` into memory and add it under ``arc_name``."""
        self.add(FileRecord.from_path(fs_path, arc_name, **meta))

    def finalize(self) -> None:
        if self.finalized:
            raise ArchiveFinalized("Archive tail already written")
        write_tail(self.sink, self.tail_length)
        self.bytes_written += self.tail_length
        self.finalized = True


# Legacy positional API


def tar_to_stream(
    stream: ByteSink,
    filename: str,
    data: Union[bytes, bytearray, memoryview],
    size: Optional[int] = None,
    mtime: int = DEFAULT_MTIME,
    filemode: str = DEFAULT_MODE,
    uid: int = DEFAULT_UID,
    gid: int = DEFAULT_GID,
    uname: str = DEFAULT_UNAME,
    gname: str = DEFAULT_GNAME,
) -> None:
    """Deprecated: use ``write_entry(stream, FileRecord(...))``.

    Over-long names are truncated, as this call form always did.
    """
    warnings.warn(
        "tar_to_stream is deprecated; use write_entry with a FileRecord",
        DeprecationWarning,
        stacklevel=2,
    )
    if size is not None:
        view = memoryview(data).cast("B")
        if size < 0 or size > view.nbytes:
            raise ValueError(f"size {size} out of range for {view.nbytes} bytes of data")
        data = view[:size]
    record = FileRecord(
        name=filename,
        content=data,
        mtime=mtime,
        mode=filemode,
        uid=uid,
        gid=gid,
        uname=uname,
        gname=gname,
    )
    write_entry(stream, record, truncate_names=True)


def tar_to_stream_tail(stream: ByteSink, tail_length: int = DEFAULT_TAIL_LENGTH) -> None:
    """Deprecated: use ``write_tail``."""
    warnings.warn(
        "tar_to_stream_tail is deprecated; use write_tail",
        DeprecationWarning,
        stacklevel=2,
    )
    write_tail(stream, tail_length)
