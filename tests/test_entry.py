"""Tests for entry records and entry sources."""

from __future__ import annotations

import io
import zlib
from datetime import datetime
from pathlib import Path

import pytest

from zipmerge import ByteSource, EntryRecord, FileSource, StreamSource
from zipmerge.constants import COMP_DEFLATE, COMP_STORED
from zipmerge.errors import ZipIOError


def test_copy_for_output_keeps_writable_method() -> None:
    when = datetime(2021, 1, 1)
    stored = EntryRecord("a", crc32=1, size=2, method=COMP_STORED, comment="c")
    bzip2 = EntryRecord("b", method=12)

    copied = stored.copy_for_output(when)
    assert copied.method == COMP_STORED
    assert copied.mod_time == when
    assert (copied.crc32, copied.size, copied.comment) == (1, 2, "c")
    assert bzip2.copy_for_output(when).method is None


def test_for_content_recomputes_checksums() -> None:
    record = EntryRecord("a", crc32=1, size=1, compressed_size=1, method=COMP_DEFLATE)
    updated = record.for_content(b"payload")
    assert updated.crc32 == zlib.crc32(b"payload")
    assert updated.size == 7
    assert updated.compressed_size is None


def test_renamed_keeps_metadata() -> None:
    record = EntryRecord("old", crc32=5)
    assert record.renamed("new") == EntryRecord("new", crc32=5)
    assert record.renamed("old") is record


def test_byte_source_record() -> None:
    source = ByteSource("a.txt", b"alpha")
    record = source.record()
    assert record.crc32 == zlib.crc32(b"alpha")
    assert record.size == 5
    assert record.mod_time is not None
    assert source.open_stream().read() == b"alpha"


def test_file_source_reads_disk(tmp_path: Path) -> None:
    path = tmp_path / "f.txt"
    path.write_bytes(b"file")
    source = FileSource("in/zip.txt", path)

    assert source.record().size == 4
    with source.open_stream() as f:
        assert f.read() == b"file"


def test_file_source_directory_gets_trailing_slash(tmp_path: Path) -> None:
    source = FileSource("folder", tmp_path)
    assert source.record().name == "folder/"
    assert source.open_stream().read() == b""


def test_file_source_missing_file(tmp_path: Path) -> None:
    source = FileSource("x", tmp_path / "missing")
    with pytest.raises(ZipIOError):
        source.record()


def test_stream_source_opens_fresh_stream_each_time() -> None:
    opened = []

    def opener():
        opened.append(1)
        return io.BytesIO(b"data")

    source = StreamSource("s", opener, size=4)
    assert source.open_stream().read() == b"data"
    assert source.open_stream().read() == b"data"
    assert len(opened) == 2
    assert source.record().size == 4
