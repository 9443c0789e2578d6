from __future__ import annotations

import os
import sys
import time
import argparse

from pathlib import Path
from typing import List, Optional, Tuple

from memtar.constants import DEFAULT_GID, DEFAULT_GNAME, DEFAULT_TAIL_LENGTH, DEFAULT_UID, DEFAULT_UNAME
from memtar.errors import MemtarError
from memtar.octal import parse_mode
from memtar.records import FileRecord
from memtar.writer import TarStreamWriter


def _parse_mtime(value: str) -> int:
    """argparse type for --mtime: seconds since epoch or the word 'now'."""
    if value.lower() == "now":
        return int(time.time())
    try:
        mtime = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid mtime: {value!r}")
    if mtime < 0:
        raise argparse.ArgumentTypeError(f"mtime must not be negative: {value!r}")
    return mtime


def _same_file(path: str, out_stat: Optional[os.stat_result]) -> bool:
    if out_stat is None:
        return False
    try:
        st = os.stat(path)
    except OSError:
        return False
    return (st.st_dev, st.st_ino) == (out_stat.st_dev, out_stat.st_ino)


def _collect_files(inputs: List[str], log, out_stat: Optional[os.stat_result] = None) -> List[Tuple[str, str]]:
    """Expand input paths into (archive name, filesystem path) pairs.

    Directories are walked in sorted order and contribute only their regular
    files; symlinks and the archive being written (``out_stat``) are skipped.
    """
    files: List[Tuple[str, str]] = []
    for raw in inputs:
        p = Path(raw)
        if p.is_symlink():
            print(f"Warning: skipping symlink {p}", file=log)
        elif p.is_dir():
            base = p.resolve().name
            for root, dirnames, filenames in os.walk(str(p)):
                dirnames.sort()
                # prune symlink directories to avoid walking into them
                dirnames[:] = [d for d in dirnames if not os.path.islink(os.path.join(root, d))]
                for f in sorted(filenames):
                    full = os.path.join(root, f)
                    if os.path.islink(full):
                        print(f"Warning: skipping symlink {full}", file=log)
                        continue
                    if not os.path.isfile(full):
                        print(f"Warning: skipping non-regular file {full}", file=log)
                        continue
                    if _same_file(full, out_stat):
                        print(f"Warning: skipping {full}: it is the output archive", file=log)
                        continue
                    rel = os.path.relpath(full, start=str(p))
                    files.append((os.path.join(base, rel), full))
        elif p.exists():
            if _same_file(str(p), out_stat):
                print(f"Warning: skipping {p}: it is the output archive", file=log)
                continue
            files.append((p.name, str(p)))
        else:
            raise FileNotFoundError(f"No such file or directory: {raw}")
    return files


def cmd_pack(
    output: str,
    inputs: List[str],
    *,
    mode: Optional[str] = None,
    mtime: Optional[int] = None,
    uid: int = DEFAULT_UID,
    gid: int = DEFAULT_GID,
    uname: str = DEFAULT_UNAME,
    gname: str = DEFAULT_GNAME,
    tail_length: int = DEFAULT_TAIL_LENGTH,
    truncate_names: bool = False,
    quiet: bool = False,
) -> bool:
    """Pack filesystem files into a ustar archive.

    Args:
        output: Output .tar path, or "-" for stdout.
        inputs: Files and/or directories to store.
        mode: Permission override for every entry (octal text); default is each file's own mode.
        mtime: Modification time override; default is each file's own mtime.
        uid: Owner user ID recorded in every header.
        gid: Owner group ID recorded in every header.
        uname: Owner user name recorded in every header.
        gname: Owner group name recorded in every header.
        tail_length: Null bytes written after the last entry (>= 1024).
        truncate_names: Truncate over-long names instead of failing.
        quiet: Only print the final summary.
    """
    to_stdout = output == "-"
    log = sys.stderr if to_stdout else sys.stdout
    if mode is not None:
        mode = parse_mode(mode)

    out_stat = None
    if not to_stdout:
        try:
            out_stat = os.stat(output)
        except FileNotFoundError:
            pass
    files = _collect_files(inputs, log, out_stat)
    if not files:
        raise ValueError("No regular files to archive")

    t0 = time.time()
    if to_stdout:
        writer = TarStreamWriter(sys.stdout.buffer, truncate_names=truncate_names, tail_length=tail_length)
    else:
        writer = TarStreamWriter.to_path(output, truncate_names=truncate_names, tail_length=tail_length)

    processed = 0
    with writer as w:
        for i, (arc, full) in enumerate(files, 1):
            rec = FileRecord.from_path(
                full, arc, mtime=mtime, mode=mode, uid=uid, gid=gid, uname=uname, gname=gname
            )
            w.add(rec)
            processed += rec.size
            if not quiet:
                print(f" [{i}/{len(files)}] adding: {rec.name} ({rec.size} bytes)", file=log)
    if to_stdout:
        sys.stdout.buffer.flush()

    dt = max(0.000001, time.time() - t0)
    mib = processed / (1024.0 * 1024.0)
    print(
        f"Done: {writer.entries} files; {mib:.2f} MiB content, "
        f"{writer.bytes_written} bytes archive in {dt:.1f}s",
        file=log,
    )
    return True


def main(argv: List[str] | None = None):
    ap = argparse.ArgumentParser(
        prog="memtar",
        description="Write files as a POSIX ustar archive",
        epilog="Only regular files are stored; directories are walked and symlinks skipped.",
    )
    sub = ap.add_subparsers(dest="cmd", required=True)

    ap_pack = sub.add_parser("pack", help="Pack files into a tar archive")
    ap_pack.add_argument("output", help="Output .tar path, or - for stdout")
    ap_pack.add_argument("inputs", nargs="+", help="Input files/directories")
    ap_pack.add_argument("--mode", help="Permission for every entry, octal (default: each file's mode)")
    ap_pack.add_argument(
        "--mtime",
        type=_parse_mtime,
        help="Modification time for every entry: seconds since epoch or 'now' (default: each file's mtime)",
    )
    ap_pack.add_argument("--uid", type=int, default=DEFAULT_UID, help=f"Owner user ID (default {DEFAULT_UID})")
    ap_pack.add_argument("--gid", type=int, default=DEFAULT_GID, help=f"Owner group ID (default {DEFAULT_GID})")
    ap_pack.add_argument("--uname", default=DEFAULT_UNAME, help=f"Owner user name (default {DEFAULT_UNAME})")
    ap_pack.add_argument("--gname", default=DEFAULT_GNAME, help=f"Owner group name (default {DEFAULT_GNAME})")
    ap_pack.add_argument(
        "--tail-length",
        type=int,
        default=DEFAULT_TAIL_LENGTH,
        help=f"Null bytes after the last entry (default {DEFAULT_TAIL_LENGTH}, minimum {DEFAULT_TAIL_LENGTH})",
    )
    ap_pack.add_argument(
        "--truncate-names",
        action="store_true",
        help="Truncate names longer than their header field instead of failing",
    )
    ap_pack.add_argument("--quiet", help="limit outputs to summaries only", action="store_true")

    args = ap.parse_args(argv)
    try:
        if args.cmd == "pack":
            cmd_pack(
                args.output,
                args.inputs,
                mode=args.mode,
                mtime=args.mtime,
                uid=args.uid,
                gid=args.gid,
                uname=args.uname,
                gname=args.gname,
                tail_length=args.tail_length,
                truncate_names=args.truncate_names,
                quiet=args.quiet,
            )
        else:
            raise RuntimeError("Unknown command")
    except (MemtarError, OSError, ValueError, RuntimeError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
