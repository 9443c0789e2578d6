from __future__ import annotations

import array
import io
import os
import tarfile
import tempfile
import unittest
import warnings
from pathlib import Path

from memtar.checksum import verify_checksum
from memtar.errors import ArchiveFinalized, FieldOverflow, NameTooLong
from memtar.header import build_header
from memtar.octal import encode_octal
from memtar.records import FileRecord
from memtar.writer import (
    TarStreamWriter,
    tar_to_stream,
    tar_to_stream_tail,
    write_entry,
    write_tail,
)


class _FailingSink:
    def __init__(self, fail_after: int):
        self.calls = 0
        self.fail_after = fail_after

    def write(self, data):
        self.calls += 1
        if self.calls > self.fail_after:
            raise OSError(28, "No space left on device")
        return len(data)


class _ListSink:
    def __init__(self):
        self.chunks = []

    def write(self, data):
        self.chunks.append(bytes(data))


def _read_members(data: bytes):
    out = {}
    with tarfile.open(fileobj=io.BytesIO(data), mode="r:") as tf:
        for m in tf.getmembers():
            out[m.name] = (m, tf.extractfile(m).read())
    return out


class WriteEntryTests(unittest.TestCase):
    def test_entry_layout(self):
        buf = io.BytesIO()
        rec = FileRecord(name="hello.txt", content=b"Hello world!\n")
        write_entry(buf, rec)
        data = buf.getvalue()
        self.assertEqual(len(data), 1024)
        self.assertEqual(data[:512], build_header(rec))
        self.assertEqual(data[512:525], b"Hello world!\n")
        self.assertEqual(data[525:], b"\x00" * 499)

    def test_aligned_content_has_no_padding(self):
        buf = io.BytesIO()
        write_entry(buf, FileRecord(name="block.bin", content=b"x" * 512))
        self.assertEqual(len(buf.getvalue()), 1024)

    def test_empty_file_then_tail(self):
        buf = io.BytesIO()
        write_entry(buf, FileRecord(name="empty"))
        write_tail(buf)
        data = buf.getvalue()
        self.assertEqual(len(data), 512 + 1024)
        self.assertEqual(data[512:], b"\x00" * 1024)
        members = _read_members(data)
        self.assertEqual(members["empty"][0].size, 0)
        self.assertEqual(members["empty"][1], b"")

    def test_total_size_is_block_multiple(self):
        for n in (0, 1, 13, 511, 512, 513, 2000):
            buf = io.BytesIO()
            write_entry(buf, FileRecord(name=f"f{n}", content=os.urandom(n)))
            self.assertEqual(len(buf.getvalue()) % 512, 0, n)

    def test_content_is_written_verbatim(self):
        content = bytearray(b"abc")
        sink = _ListSink()
        write_entry(sink, FileRecord(name="a", content=content))
        self.assertEqual(sink.chunks[1], b"abc")
        self.assertEqual(content, bytearray(b"abc"))

    def test_encoding_error_writes_nothing(self):
        buf = io.BytesIO()
        with self.assertRaises(NameTooLong):
            write_entry(buf, FileRecord(name="x" * 105, content=b"data"))
        self.assertEqual(buf.getvalue(), b"")

    def test_legacy_truncation_policy(self):
        buf = io.BytesIO()
        write_entry(buf, FileRecord(name="x" * 105, content=b"data"), truncate_names=True)
        write_tail(buf)
        members = _read_members(buf.getvalue())
        self.assertIn("x" * 99, members)

    def test_sink_errors_propagate(self):
        sink = _FailingSink(fail_after=1)
        with self.assertRaises(OSError):
            write_entry(sink, FileRecord(name="a", content=b"payload"))
        self.assertEqual(sink.calls, 2)

    def test_closed_sink_propagates(self):
        buf = io.BytesIO()
        buf.close()
        with self.assertRaises(ValueError):
            write_entry(buf, FileRecord(name="a", content=b"payload"))

    def test_multibyte_memoryview_content(self):
        arr = array.array("I", [1, 2, 3])
        expected = arr.tobytes()
        buf = io.BytesIO()
        write_entry(buf, FileRecord(name="a.bin", content=memoryview(arr)))
        write_entry(buf, FileRecord(name="b.txt", content=b"after"))
        write_tail(buf)
        data = buf.getvalue()
        self.assertEqual(len(data) % 512, 0)
        self.assertEqual(data[124:136], encode_octal(len(expected), 12))
        members = _read_members(data)
        self.assertEqual(members["a.bin"][0].size, len(expected))
        self.assertEqual(members["a.bin"][1], expected)
        self.assertEqual(members["b.txt"][1], b"after")

    def test_record_size_counts_bytes(self):
        arr = array.array("d", [1.0, 2.0])
        rec = FileRecord(name="d.bin", content=memoryview(arr))
        self.assertEqual(rec.size, len(arr.tobytes()))
        self.assertEqual(rec.payload.itemsize, 1)
        self.assertEqual(bytes(rec.payload), arr.tobytes())


class WriteTailTests(unittest.TestCase):
    def test_default_tail(self):
        buf = io.BytesIO()
        write_tail(buf)
        self.assertEqual(buf.getvalue(), b"\x00" * 1024)

    def test_longer_tail(self):
        buf = io.BytesIO()
        write_tail(buf, 10240)
        self.assertEqual(buf.getvalue(), b"\x00" * 10240)

    def test_short_tail_rejected(self):
        with self.assertRaises(ValueError):
            write_tail(io.BytesIO(), 512)


class RoundTripTests(unittest.TestCase):
    def test_tarfile_reads_archive(self):
        files = [
            FileRecord(name="hello.txt", content=b"Hello world!\n", mode="644"),
            FileRecord(
                name="bin/tool",
                content=os.urandom(3000),
                mode="0755",
                uid=1000,
                gid=1000,
                uname="my_username",
                gname="my_group",
                mtime=1700000000,
            ),
            FileRecord(name="exact.bin", content=b"\x01" * 1024, mtime=42),
            FileRecord(name="empty.txt", content=b""),
        ]
        buf = io.BytesIO()
        for rec in files:
            write_entry(buf, rec)
        write_tail(buf)

        with tarfile.open(fileobj=io.BytesIO(buf.getvalue()), mode="r:") as tf:
            names = tf.getnames()
            self.assertEqual(names, [r.name for r in files])
            for rec in files:
                m = tf.getmember(rec.name)
                self.assertTrue(m.isreg())
                self.assertEqual(m.size, len(rec.content))
                self.assertEqual(m.mode, int(str(rec.mode), 8))
                self.assertEqual(m.uid, rec.uid)
                self.assertEqual(m.gid, rec.gid)
                self.assertEqual(m.uname, rec.uname)
                self.assertEqual(m.gname, rec.gname)
                self.assertEqual(m.mtime, rec.mtime)
                self.assertEqual(tf.extractfile(m).read(), bytes(rec.content))

    def test_every_header_checksums(self):
        buf = io.BytesIO()
        sizes = (0, 13, 600)
        for i, n in enumerate(sizes):
            write_entry(buf, FileRecord(name=f"f{i}", content=b"z" * n))
        data = buf.getvalue()
        off = 0
        for n in sizes:
            self.assertTrue(verify_checksum(data[off : off + 512]))
            off += 512 + n + (512 - n % 512) % 512
        self.assertEqual(off, len(data))


class TarStreamWriterTests(unittest.TestCase):
    def test_context_manager_writes_tail(self):
        buf = io.BytesIO()
        with TarStreamWriter(buf) as w:
            w.add_bytes("a.txt", b"alpha", mode="600", mtime=5)
            w.add(FileRecord(name="b.txt", content=b"beta"))
        data = buf.getvalue()
        self.assertEqual(len(data), 2 * 1024 + 1024)
        self.assertEqual(w.entries, 2)
        self.assertEqual(w.bytes_written, len(data))
        self.assertTrue(w.finalized)
        self.assertFalse(buf.closed)
        members = _read_members(data)
        self.assertEqual(members["a.txt"][1], b"alpha")
        self.assertEqual(members["a.txt"][0].mode, 0o600)

    def test_no_tail_on_error(self):
        buf = io.BytesIO()
        with self.assertRaises(FieldOverflow):
            with TarStreamWriter(buf) as w:
                w.add_bytes("a.txt", b"alpha")
                w.add_bytes("b.txt", b"beta", uid=8 ** 7)
        self.assertEqual(len(buf.getvalue()), 1024)
        self.assertFalse(w.finalized)

    def test_finalize_once(self):
        buf = io.BytesIO()
        w = TarStreamWriter(buf, tail_length=2048)
        w.add_bytes("a", b"1")
        w.finalize()
        self.assertEqual(len(buf.getvalue()), 1024 + 2048)
        with self.assertRaises(ArchiveFinalized):
            w.finalize()
        with self.assertRaises(ArchiveFinalized):
            w.add_bytes("b", b"2")

    def test_rejects_short_tail(self):
        with self.assertRaises(ValueError):
            TarStreamWriter(io.BytesIO(), tail_length=0)

    def test_bytes_written_for_multibyte_buffer(self):
        arr = array.array("H", range(300))
        buf = io.BytesIO()
        with TarStreamWriter(buf) as w:
            w.add_bytes("h.bin", memoryview(arr))
        self.assertEqual(w.bytes_written, len(buf.getvalue()))
        self.assertEqual(_read_members(buf.getvalue())["h.bin"][1], arr.tobytes())

    def test_strict_and_legacy_names(self):
        with self.assertRaises(NameTooLong):
            TarStreamWriter(io.BytesIO()).add_bytes("n" * 200, b"")
        buf = io.BytesIO()
        with TarStreamWriter(buf, truncate_names=True) as w:
            w.add_bytes("n" * 200, b"")
        self.assertIn("n" * 99, _read_members(buf.getvalue()))

    def test_to_path_and_add_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            base = Path(tmp)
            src = base / "notes.md"
            src.write_bytes(b"# Title\nSome content\n")
            os.chmod(src, 0o640)
            os.utime(src, (1600000000, 1600000000))
            out = base / "out.tar"
            with TarStreamWriter.to_path(str(out)) as w:
                w.add_file("docs/notes.md", str(src))
                w.add_file(None, str(src), mode="644", mtime=0)
            self.assertIsNone(w._owned)
            with tarfile.open(out) as tf:
                m = tf.getmember("docs/notes.md")
                self.assertEqual(m.mode, 0o640)
                self.assertEqual(m.mtime, 1600000000)
                self.assertEqual(m.uname, "root")
                self.assertEqual(tf.extractfile(m).read(), b"# Title\nSome content\n")
                m2 = tf.getmember("notes.md")
                self.assertEqual(m2.mode, 0o644)
                self.assertEqual(m2.mtime, 0)


class FileRecordTests(unittest.TestCase):
    def test_from_path_normalizes_name(self):
        with tempfile.TemporaryDirectory() as tmp:
            p = Path(tmp) / "a.txt"
            p.write_bytes(b"x")
            rec = FileRecord.from_path(str(p), "./dir\\sub//a.txt")
            self.assertEqual(rec.name, "dir/sub/a.txt")
            self.assertEqual(rec.size, 1)
            with self.assertRaises(ValueError):
                FileRecord.from_path(str(p), "../a.txt")

    def test_from_path_rejects_directory(self):
        with tempfile.TemporaryDirectory() as tmp:
            with self.assertRaises(ValueError):
                FileRecord.from_path(tmp, "d")


class LegacyShimTests(unittest.TestCase):
    def test_matches_canonical_form(self):
        legacy = io.BytesIO()
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            tar_to_stream(legacy, "my_filename.txt", b"Hello world!\n", 13, 1700000000, "755", 1000, 1000, "my_username", "my_group")
            tar_to_stream_tail(legacy)
        self.assertTrue(all(issubclass(w.category, DeprecationWarning) for w in caught))
        self.assertEqual(len(caught), 2)

        canonical = io.BytesIO()
        write_entry(
            canonical,
            FileRecord(
                name="my_filename.txt",
                content=b"Hello world!\n",
                mtime=1700000000,
                mode="755",
                uid=1000,
                gid=1000,
                uname="my_username",
                gname="my_group",
            ),
        )
        write_tail(canonical)
        self.assertEqual(legacy.getvalue(), canonical.getvalue())

    def test_size_limits_data(self):
        buf = io.BytesIO()
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", DeprecationWarning)
            tar_to_stream(buf, "part.bin", b"0123456789", 4)
            tar_to_stream_tail(buf)
            with self.assertRaises(ValueError):
                tar_to_stream(io.BytesIO(), "bad", b"abc", 10)
        members = _read_members(buf.getvalue())
        self.assertEqual(members["part.bin"][1], b"0123")

    def test_size_is_a_byte_count(self):
        arr = array.array("I", [7, 8])
        buf = io.BytesIO()
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", DeprecationWarning)
            tar_to_stream(buf, "part.bin", arr, 6)
            tar_to_stream_tail(buf)
        self.assertEqual(_read_members(buf.getvalue())["part.bin"][1], arr.tobytes()[:6])

    def test_truncates_long_names(self):
        buf = io.BytesIO()
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", DeprecationWarning)
            tar_to_stream(buf, "y" * 150, b"")
        self.assertEqual(buf.getvalue()[:100], b"y" * 99 + b"\x00")


if __name__ == "__main__":
    unittest.main()
