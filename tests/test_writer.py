"""Tests for ZipWriter."""

from __future__ import annotations

import io
import struct
import zipfile
import zlib
from datetime import datetime
from pathlib import Path

import pytest

from zipmerge import EntryRecord, ZipReader, ZipWriter
from zipmerge.constants import COMP_DEFLATE, COMP_STORED
from zipmerge.errors import ZipCrcError, ZipFormatError, ZipUnsupportedFeature


def test_written_archive_is_readable_by_zipfile(tmp_path: Path, zip_entries) -> None:
    path = tmp_path / "out.zip"
    with ZipWriter(path) as writer:
        writer.add_bytes("stored.txt", b"plain", compression="stored")
        writer.add_bytes("deflated.txt", b"squeeze me " * 1000)
        writer.add_stream(EntryRecord("streamed.bin"), io.BytesIO(b"\x00\x01" * 5000))
        writer.add_stream(EntryRecord("empty/"), io.BytesIO(b""))

    assert zip_entries(path) == [
        ("stored.txt", b"plain"),
        ("deflated.txt", b"squeeze me " * 1000),
        ("streamed.bin", b"\x00\x01" * 5000),
        ("empty/", b""),
    ]
    with zipfile.ZipFile(path) as zf:
        assert zf.getinfo("stored.txt").compress_type == zipfile.ZIP_STORED
        assert zf.getinfo("deflated.txt").compress_type == zipfile.ZIP_DEFLATED
        assert zf.getinfo("empty/").is_dir()


def test_method_and_timestamp_are_kept(tmp_path: Path) -> None:
    path = tmp_path / "out.zip"
    when = datetime(2020, 5, 17, 10, 30, 44)
    with ZipWriter(path) as writer:
        writer.add_bytes("a.txt", b"alpha", compression="stored", mod_time=when)

    with zipfile.ZipFile(path) as zf:
        info = zf.getinfo("a.txt")
    assert info.date_time == (2020, 5, 17, 10, 30, 44)
    assert info.compress_type == zipfile.ZIP_STORED


def test_unwritable_method_falls_back_to_deflate(tmp_path: Path) -> None:
    path = tmp_path / "out.zip"
    with ZipWriter(path) as writer:
        writer.add_stream(EntryRecord("a.txt", method=12), io.BytesIO(b"bzip2 in the source"))

    with ZipReader(path) as reader:
        assert reader.get_info("a.txt").compression_method == COMP_DEFLATE


def test_stored_entry_without_crc_is_deflated(tmp_path: Path, zip_entries) -> None:
    path = tmp_path / "out.zip"
    with ZipWriter(path) as writer:
        writer.add_stream(EntryRecord("s.txt", size=5, method=COMP_STORED), io.BytesIO(b"plain"))

    with zipfile.ZipFile(path) as zf:
        assert zf.getinfo("s.txt").compress_type == zipfile.ZIP_DEFLATED
    assert zip_entries(path) == [("s.txt", b"plain")]


def test_stored_file_from_disk_has_header_crc(tmp_path: Path) -> None:
    source = tmp_path / "input.txt"
    source.write_bytes(b"from disk")
    path = tmp_path / "out.zip"
    with ZipWriter(path) as writer:
        writer.add_file("copied.txt", source, compression="stored")

    with zipfile.ZipFile(path) as zf:
        info = zf.getinfo("copied.txt")
        assert info.compress_type == zipfile.ZIP_STORED
        assert not info.flag_bits & 0x08
        assert zf.read(info) == b"from disk"


def test_declared_crc_mismatch_drops_entry(tmp_path: Path, zip_entries) -> None:
    path = tmp_path / "out.zip"
    with ZipWriter(path) as writer:
        writer.add_bytes("good.txt", b"good")
        record = EntryRecord("bad.txt", crc32=zlib.crc32(b"expected"), size=3, method=COMP_STORED)
        with pytest.raises(ZipCrcError):
            writer.add_stream(record, io.BytesIO(b"bad"))
        writer.add_bytes("after.txt", b"after")
        assert writer.entry_count == 2

    assert zip_entries(path) == [("good.txt", b"good"), ("after.txt", b"after")]


def test_declared_size_mismatch_raises(tmp_path: Path) -> None:
    with ZipWriter(tmp_path / "out.zip") as writer:
        with pytest.raises(ZipFormatError):
            writer.add_stream(EntryRecord("a.txt", size=10), io.BytesIO(b"short"))


def test_only_one_entry_open_at_a_time(tmp_path: Path) -> None:
    with ZipWriter(tmp_path / "out.zip") as writer:
        with writer.open_entry(EntryRecord("first.txt")) as out:
            out.write(b"1")
            with pytest.raises(ZipFormatError):
                writer.open_entry(EntryRecord("second.txt"))


def test_failure_inside_entry_block_aborts_entry(tmp_path: Path, zip_entries) -> None:
    path = tmp_path / "out.zip"
    with ZipWriter(path) as writer:
        with pytest.raises(RuntimeError):
            with writer.open_entry(EntryRecord("broken.txt")) as out:
                out.write(b"partial")
                raise RuntimeError("boom")
        writer.add_bytes("ok.txt", b"ok")

    assert zip_entries(path) == [("ok.txt", b"ok")]


def test_copied_zip64_extra_is_replaced(tmp_path: Path) -> None:
    custom = struct.pack("<HH", 0xCAFE, 2) + b"ab"
    stale_zip64 = struct.pack("<HHQ", 0x0001, 8, 123456789)
    path = tmp_path / "out.zip"
    with ZipWriter(path) as writer:
        writer.add_stream(EntryRecord("a.txt", extra=stale_zip64 + custom), io.BytesIO(b"alpha"))

    with ZipReader(path) as reader:
        assert reader.get_info("a.txt").extra_field == custom


def test_utf8_flag_without_charset(tmp_path: Path) -> None:
    path = tmp_path / "out.zip"
    with ZipWriter(path) as writer:
        writer.add_bytes("naïve.txt", b"x")

    with zipfile.ZipFile(path) as zf:
        info = zf.infolist()[0]
    assert info.filename == "naïve.txt"
    assert info.flag_bits & 0x800


def test_charset_names_have_no_utf8_flag(tmp_path: Path) -> None:
    path = tmp_path / "out.zip"
    with ZipWriter(path, charset="cp866") as writer:
        writer.add_bytes("файл.txt", b"x")

    with zipfile.ZipFile(path) as zf:
        info = zf.infolist()[0]
    assert not info.flag_bits & 0x800
    assert info.orig_filename.encode("cp437") == "файл.txt".encode("cp866")


def test_unencodable_name_raises(tmp_path: Path) -> None:
    with ZipWriter(tmp_path / "out.zip", charset="ascii") as writer:
        with pytest.raises(ZipFormatError):
            writer.add_bytes("ü.txt", b"x")


def test_add_file_streams_from_disk(tmp_path: Path, zip_entries) -> None:
    source = tmp_path / "input.txt"
    source.write_bytes(b"from disk")
    path = tmp_path / "out.zip"
    with ZipWriter(path) as writer:
        writer.add_file("copied.txt", source)

    assert zip_entries(path) == [("copied.txt", b"from disk")]


def test_unknown_compression_name_raises(tmp_path: Path) -> None:
    with ZipWriter(tmp_path / "out.zip") as writer:
        with pytest.raises(ZipUnsupportedFeature):
            writer.add_bytes("a.txt", b"x", compression="lzma")


def test_write_after_close_raises(tmp_path: Path) -> None:
    writer = ZipWriter(tmp_path / "out.zip")
    writer.close()
    writer.close()
    with pytest.raises(ZipFormatError):
        writer.add_bytes("late.txt", b"x")


def test_empty_archive_is_valid(tmp_path: Path) -> None:
    path = tmp_path / "empty.zip"
    ZipWriter(path).close()

    with zipfile.ZipFile(path) as zf:
        assert zf.namelist() == []
    with ZipReader(path) as reader:
        assert reader.entries() == []
