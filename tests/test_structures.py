"""Tests for ZIP record helpers and utilities."""

from __future__ import annotations

import io
import struct
from datetime import datetime, timezone
from pathlib import Path

from zipmerge.constants import MAX_FILE_SIZE, ZIP64_EXTRA_FIELD_TAG
from zipmerge.structures import (
    build_zip64_extra_field,
    iter_extra_fields,
    parse_zip64_extra_field,
    strip_extra_field,
)
from zipmerge.utils import (
    copy_stream,
    delete_quietly,
    dos_datetime_to_timestamp,
    timestamp_to_dos_datetime,
)


def test_zip64_extra_only_replaces_saturated_fields() -> None:
    extra = build_zip64_extra_field(5_000_000_000, 7_000_000_000)
    field = parse_zip64_extra_field(extra, MAX_FILE_SIZE, 1234, MAX_FILE_SIZE)

    assert field.original_size == 5_000_000_000
    assert field.compressed_size is None
    assert field.local_header_offset == 7_000_000_000


def test_no_zip64_block_returns_none() -> None:
    assert parse_zip64_extra_field(b"", 1, 1, 1) is None


def test_strip_extra_field_keeps_other_blocks() -> None:
    other = struct.pack("<HH", 0x5455, 1) + b"\x00"
    extra = build_zip64_extra_field(1) + other
    assert strip_extra_field(extra, ZIP64_EXTRA_FIELD_TAG) == other
    assert list(iter_extra_fields(other)) == [(0x5455, b"\x00")]


def test_truncated_extra_block_is_ignored() -> None:
    assert list(iter_extra_fields(struct.pack("<HH", 0x0001, 16) + b"short")) == []


def test_dos_datetime_round_trip() -> None:
    when = datetime(2024, 2, 29, 13, 45, 58)
    assert dos_datetime_to_timestamp(*timestamp_to_dos_datetime(when)) == when


def test_dos_datetime_clamps_to_range() -> None:
    assert dos_datetime_to_timestamp(*timestamp_to_dos_datetime(datetime(1970, 1, 1))) == datetime(1980, 1, 1)


def test_aware_datetime_is_converted_to_local() -> None:
    aware = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)
    local = aware.astimezone().replace(tzinfo=None)
    assert timestamp_to_dos_datetime(aware) == timestamp_to_dos_datetime(local)


def test_invalid_dos_fields_decode_to_epoch() -> None:
    assert dos_datetime_to_timestamp(0, 0) == datetime(1980, 1, 1)


def test_copy_stream_counts_bytes() -> None:
    target = io.BytesIO()
    assert copy_stream(io.BytesIO(b"x" * 100), target, buffer_size=7) == 100
    assert target.getvalue() == b"x" * 100


def test_delete_quietly(tmp_path: Path) -> None:
    path = tmp_path / "f"
    path.write_bytes(b"")
    assert delete_quietly(path)
    assert not path.exists()
    assert delete_quietly(path)
    assert delete_quietly(None)
