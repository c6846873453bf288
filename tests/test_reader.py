"""Tests for ZipReader."""

from __future__ import annotations

import io
import warnings
import zipfile
import zlib
from datetime import datetime
from pathlib import Path

import pytest

from zipmerge import ZipReader, ZipWriter
from zipmerge.errors import ZipCrcError, ZipFormatError, ZipIOError


def test_lists_entries_in_central_directory_order(sample_zip: Path) -> None:
    with ZipReader(sample_zip) as reader:
        assert reader.list() == [
            "a.txt",
            "docs/",
            "docs/readme.md",
            "docs/sub/deep.txt",
            "docs2/other.txt",
            "lib/core.bin",
        ]


def test_reads_deflated_and_stored_content(make_zip) -> None:
    payload = b"0123456789" * 20000
    deflated = make_zip("d.zip", [("big.bin", payload)])
    stored = make_zip("s.zip", [("big.bin", payload)], compression=zipfile.ZIP_STORED)

    for path in (deflated, stored):
        with ZipReader(path) as reader:
            with reader.open("big.bin") as f:
                assert f.read() == payload


def test_small_reads_return_whole_content(make_zip) -> None:
    path = make_zip("a.zip", [("a.txt", b"hello world")])
    with ZipReader(path) as reader:
        with reader.open("a.txt") as f:
            parts = []
            while chunk := f.read(3):
                parts.append(chunk)
    assert b"".join(parts) == b"hello world"


def test_entry_metadata(make_zip) -> None:
    path = make_zip("a.zip", [("dir/", b""), ("dir/a.txt", b"alpha")])
    with ZipReader(path) as reader:
        directory = reader.get_info("dir/")
        entry = reader.get_info("dir/a.txt")
        assert "dir/a.txt" in reader
        assert "missing" not in reader

    assert directory.is_dir
    assert not entry.is_dir
    assert entry.uncompressed_size == 5
    assert entry.crc32 == zlib.crc32(b"alpha")
    assert entry.date_time == datetime(1999, 12, 31, 23, 58, 0)


def test_duplicate_names_are_all_listed(make_zip) -> None:
    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        path = make_zip("dup.zip", [("x", b"first"), ("x", b"second")])

    with ZipReader(path) as reader:
        entries = reader.entries()
        assert [e.name for e in entries] == ["x", "x"]
        assert reader.get_info("x") is entries[0]
        with reader.open(entries[1]) as f:
            assert f.read() == b"second"


def test_corrupted_data_raises_crc_error(make_zip) -> None:
    path = make_zip("bad.zip", [("a.txt", b"hello world")], compression=zipfile.ZIP_STORED)
    path.write_bytes(path.read_bytes().replace(b"hello world", b"hellO world"))

    with ZipReader(path) as reader:
        with reader.open("a.txt") as f:
            with pytest.raises(ZipCrcError):
                f.read()


def test_missing_entry_raises_key_error(sample_zip: Path) -> None:
    with ZipReader(sample_zip) as reader:
        with pytest.raises(KeyError):
            reader.open("nope.txt")


def test_not_a_zip_raises_format_error(tmp_path: Path) -> None:
    path = tmp_path / "plain.zip"
    path.write_bytes(b"this is not an archive" * 10)
    with pytest.raises(ZipFormatError):
        ZipReader(path)


def test_missing_file_raises_io_error(tmp_path: Path) -> None:
    with pytest.raises(ZipIOError):
        ZipReader(tmp_path / "absent.zip")


def test_open_after_close_raises(sample_zip: Path) -> None:
    reader = ZipReader(sample_zip)
    reader.close()
    with pytest.raises(ZipFormatError):
        reader.open("a.txt")


def test_names_decoded_with_charset(tmp_path: Path) -> None:
    path = tmp_path / "cp866.zip"
    with ZipWriter(path, charset="cp866") as writer:
        writer.add_bytes("отчёт.txt", b"data")

    with ZipReader(path, charset="cp866") as reader:
        assert reader.list() == ["отчёт.txt"]


class _FailingFile(io.BytesIO):
    fail = False

    def read(self, size=-1):
        if self.fail:
            raise OSError(5, "Input/output error")
        return super().read(size)


@pytest.mark.parametrize("compression", [zipfile.ZIP_STORED, zipfile.ZIP_DEFLATED])
def test_read_error_inside_entry_raises_zip_io_error(make_zip, compression) -> None:
    path = make_zip("a.zip", [("a.txt", b"hello world")], compression=compression)
    source = _FailingFile(path.read_bytes())

    with ZipReader(source) as reader:
        f = reader.open("a.txt")
        source.fail = True
        with pytest.raises(ZipIOError, match="a.txt"):
            f.read()
