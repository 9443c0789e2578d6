from __future__ import annotations

import os
import stat
from dataclasses import dataclass
from typing import Optional, Union

from .constants import (
    DEFAULT_GID,
    DEFAULT_GNAME,
    DEFAULT_MODE,
    DEFAULT_MTIME,
    DEFAULT_UID,
    DEFAULT_UNAME,
)


def arc_name_for(path: str) -> str:
    """Canonical member name: forward slashes, no empty or '.' segments.

    '..' segments are rejected.
    """
    segments = []
    for seg in path.replace("\\", "/").split("/"):
        if seg in ("", "."):
            continue
        if seg == "..":
            raise ValueError(f"Archive path may not contain '..': {path!r}")
        segments.append(seg)
    if not segments:
        raise ValueError(f"Empty archive path: {path!r}")
    return "/".join(segments)


@dataclass(frozen=True)
class FileRecord:
    """One in-memory file to be stored as a regular-file entry.

    The record only borrows ``content``; writers never mutate or retain it.
    """

    name: str
    content: Union[bytes, bytearray, memoryview] = b""
    mtime: int = DEFAULT_MTIME
    mode: Union[str, int] = DEFAULT_MODE
    uid: int = DEFAULT_UID
    gid: int = DEFAULT_GID
    uname: str = DEFAULT_UNAME
    gname: str = DEFAULT_GNAME

    @property
    def payload(self) -> memoryview:
        """Flat byte view of ``content``; itemsize is always 1."""
        return memoryview(self.content).cast("B")

    @property
    def size(self) -> int:
        """Content length in bytes (not items, for multi-byte buffers)."""
        return memoryview(self.content).nbytes

    @classmethod
    def from_path(
        cls,
        fs_path: str,
        arc_name: Optional[str] = None,
        *,
        mtime: Optional[int] = None,
        mode: Union[str, int, None] = None,
        uid: int = DEFAULT_UID,
        gid: int = DEFAULT_GID,
        uname: str = DEFAULT_UNAME,
        gname: str = DEFAULT_GNAME,
    ) -> "FileRecord":
        """Load a regular file into memory.

        Mode and mtime default to the file's own permission bits and
        modification time; ownership keeps the record defaults.
        """
        st = os.stat(fs_path)
        if not stat.S_ISREG(st.st_mode):
            raise ValueError(f"Not a regular file: {fs_path}")
        with open(fs_path, "rb") as fh:
            data = fh.read()
        return cls(
            name=arc_name_for(arc_name if arc_name is not None else os.path.basename(fs_path)),
            content=data,
            mtime=int(st.st_mtime) if mtime is None else int(mtime),
            mode="%o" % stat.S_IMODE(st.st_mode) if mode is None else mode,
            uid=uid,
            gid=gid,
            uname=uname,
            gname=gname,
        )
