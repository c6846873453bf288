"""
Copyright 2025 DNAi inc.

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at

    http://www.apache.org/licenses/LICENSE-2.0

Unless required by applicable law or agreed to in writing, software
distributed under the License is distributed on an "AS IS" BASIS,
WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
See the License for the specific language governing permissions and
limitations under the License.
"""

"""
ZIP structure definitions, parsers and builders.

This module defines dataclasses for the ZIP records the reader and writer
exchange with disk (local file headers, central directory headers, the
end of central directory records and their ZIP64 variants) together with
the helpers that parse them from a file and pack them back into bytes.
"""

import struct
from dataclasses import dataclass
from datetime import datetime
from typing import BinaryIO, Iterator, Optional

from .constants import (
    CENTRAL_DIR_HEADER,
    DATA_DESCRIPTOR,
    END_OF_CENTRAL_DIR,
    LOCAL_FILE_HEADER,
    MAX_FILE_SIZE,
    ZIP64_END_OF_CENTRAL_DIR,
    ZIP64_END_OF_CENTRAL_DIR_LOCATOR,
    ZIP64_EXTRA_FIELD_TAG,
)
from .errors import ZipFormatError
from .utils import dos_datetime_to_timestamp, read_exact

# Fixed parts of each record, signature included
LOCAL_HEADER_STRUCT = struct.Struct("<IHHHHHIIIHH")
CENTRAL_HEADER_STRUCT = struct.Struct("<IHHHHHHIIIHHHHHII")
EOCD_STRUCT = struct.Struct("<IHHHHIIH")
ZIP64_EOCD_STRUCT = struct.Struct("<IQHHIIQQQQ")
ZIP64_LOCATOR_STRUCT = struct.Struct("<IIQI")
DATA_DESCRIPTOR_STRUCT = struct.Struct("<IIII")
ZIP64_DATA_DESCRIPTOR_STRUCT = struct.Struct("<IIQQ")
EXTRA_HEADER_STRUCT = struct.Struct("<HH")


@dataclass
class LocalFileHeader:
    """Local file header, stored in front of each entry's data."""

    version: int
    flags: int
    compression_method: int
    mod_time: int
    mod_date: int
    crc32: int
    compressed_size: int
    uncompressed_size: int
    filename: bytes
    extra: bytes

    @property
    def size(self) -> int:
        """Total size of the header on disk."""
        return LOCAL_HEADER_STRUCT.size + len(self.filename) + len(self.extra)


@dataclass
class CentralDirectoryHeader:
    """Central directory header describing one entry of the archive."""

    version_made_by: int
    version: int
    flags: int
    compression_method: int
    mod_time: int
    mod_date: int
    crc32: int
    compressed_size: int
    uncompressed_size: int
    disk_num: int
    internal_attrs: int
    external_attrs: int
    local_header_offset: int
    filename: bytes
    extra: bytes
    comment: bytes

    @property
    def date_time(self) -> datetime:
        """Get modification date/time as datetime object."""
        return dos_datetime_to_timestamp(self.mod_date, self.mod_time)


@dataclass
class EndOfCentralDirectory:
    """End of Central Directory record."""

    disk_num: int
    cd_disk: int
    cd_records_on_disk: int
    cd_records_total: int
    cd_size: int
    cd_offset: int
    comment: bytes


@dataclass
class Zip64EndOfCentralDirectory:
    """ZIP64 End of Central Directory record."""

    size: int
    version_made_by: int
    version_needed: int
    disk_num: int
    cd_disk: int
    cd_records_on_disk: int
    cd_records_total: int
    cd_size: int
    cd_offset: int


@dataclass
class Zip64Locator:
    """ZIP64 End of Central Directory Locator."""

    disk_num: int
    zip64_eocd_offset: int
    total_disks: int


@dataclass
class Zip64ExtraField:
    """64-bit values carried in a ZIP64 extra field.

    Each value is present only when the matching 32-bit header field is
    saturated (0xFFFFFFFF).
    """

    original_size: Optional[int] = None
    compressed_size: Optional[int] = None
    local_header_offset: Optional[int] = None


@dataclass
class ZipEntry:
    """Entry metadata as read from an archive's central directory.

    Names and comments are already decoded; sizes and offsets already
    account for ZIP64 extra fields. ``index`` is the entry's position in
    the central directory, which tells apart entries sharing one name.
    """

    name: str
    index: int
    is_dir: bool
    compressed_size: int
    uncompressed_size: int
    crc32: int
    compression_method: int
    flags: int
    date_time: datetime
    local_header_offset: int
    extra_field: bytes
    comment: str = ""


def _check_signature(found: int, expected: int, what: str) -> None:
    if found != expected:
        raise ZipFormatError(
            f"Invalid {what} signature: 0x{found:08X}, expected 0x{expected:08X}"
        )


def parse_local_file_header(f: BinaryIO) -> LocalFileHeader:
    """Parse a local file header at the current file position.

    Raises:
        ZipFormatError: If the signature is invalid or file is truncated.
    """
    fields = LOCAL_HEADER_STRUCT.unpack(read_exact(f, LOCAL_HEADER_STRUCT.size))
    _check_signature(fields[0], LOCAL_FILE_HEADER, "local file header")
    (
        _,
        version,
        flags,
        method,
        mod_time,
        mod_date,
        crc,
        compressed_size,
        uncompressed_size,
        filename_len,
        extra_len,
    ) = fields

    return LocalFileHeader(
        version=version,
        flags=flags,
        compression_method=method,
        mod_time=mod_time,
        mod_date=mod_date,
        crc32=crc,
        compressed_size=compressed_size,
        uncompressed_size=uncompressed_size,
        filename=read_exact(f, filename_len),
        extra=read_exact(f, extra_len),
    )


def parse_central_directory_header(f: BinaryIO) -> CentralDirectoryHeader:
    """Parse a central directory header at the current file position.

    Raises:
        ZipFormatError: If the signature is invalid or file is truncated.
    """
    fields = CENTRAL_HEADER_STRUCT.unpack(read_exact(f, CENTRAL_HEADER_STRUCT.size))
    _check_signature(fields[0], CENTRAL_DIR_HEADER, "central directory header")
    (
        _,
        version_made_by,
        version,
        flags,
        method,
        mod_time,
        mod_date,
        crc,
        compressed_size,
        uncompressed_size,
        filename_len,
        extra_len,
        comment_len,
        disk_num,
        internal_attrs,
        external_attrs,
        local_header_offset,
    ) = fields

    return CentralDirectoryHeader(
        version_made_by=version_made_by,
        version=version,
        flags=flags,
        compression_method=method,
        mod_time=mod_time,
        mod_date=mod_date,
        crc32=crc,
        compressed_size=compressed_size,
        uncompressed_size=uncompressed_size,
        disk_num=disk_num,
        internal_attrs=internal_attrs,
        external_attrs=external_attrs,
        local_header_offset=local_header_offset,
        filename=read_exact(f, filename_len),
        extra=read_exact(f, extra_len),
        comment=read_exact(f, comment_len),
    )


def parse_eocd(data: bytes) -> EndOfCentralDirectory:
    """Parse an End of Central Directory record from raw bytes.

    Args:
        data: Bytes starting at the EOCD signature, comment included.
    """
    if len(data) < EOCD_STRUCT.size:
        raise ZipFormatError("Truncated End of Central Directory record")
    (
        signature,
        disk_num,
        cd_disk,
        on_disk,
        total,
        cd_size,
        cd_offset,
        comment_len,
    ) = EOCD_STRUCT.unpack_from(data)
    _check_signature(signature, END_OF_CENTRAL_DIR, "end of central directory")
    # A truncated comment is tolerated; the records above are what matter
    comment = data[EOCD_STRUCT.size : EOCD_STRUCT.size + comment_len]
    return EndOfCentralDirectory(disk_num, cd_disk, on_disk, total, cd_size, cd_offset, comment)


def parse_zip64_eocd(f: BinaryIO) -> Zip64EndOfCentralDirectory:
    """Parse a ZIP64 End of Central Directory record at the current position."""
    fields = ZIP64_EOCD_STRUCT.unpack(read_exact(f, ZIP64_EOCD_STRUCT.size))
    _check_signature(fields[0], ZIP64_END_OF_CENTRAL_DIR, "ZIP64 end of central directory")
    return Zip64EndOfCentralDirectory(*fields[1:])


def parse_zip64_locator(data: bytes) -> Zip64Locator:
    """Parse a ZIP64 End of Central Directory Locator from raw bytes."""
    if len(data) < ZIP64_LOCATOR_STRUCT.size:
        raise ZipFormatError("Truncated ZIP64 locator")
    fields = ZIP64_LOCATOR_STRUCT.unpack_from(data)
    _check_signature(fields[0], ZIP64_END_OF_CENTRAL_DIR_LOCATOR, "ZIP64 locator")
    return Zip64Locator(*fields[1:])


def iter_extra_fields(extra: bytes) -> Iterator[tuple[int, bytes]]:
    """Yield (header id, payload) pairs from raw extra field bytes.

    Stops quietly at the first malformed block, as other readers do.
    """
    pos = 0
    while pos + EXTRA_HEADER_STRUCT.size <= len(extra):
        tag, size = EXTRA_HEADER_STRUCT.unpack_from(extra, pos)
        pos += EXTRA_HEADER_STRUCT.size
        if pos + size > len(extra):
            return
        yield tag, extra[pos : pos + size]
        pos += size


def strip_extra_field(extra: bytes, tag: int) -> bytes:
    """Return 'extra' without any block carrying the given header id."""
    kept = bytearray()
    for block_tag, payload in iter_extra_fields(extra):
        if block_tag != tag:
            kept += EXTRA_HEADER_STRUCT.pack(block_tag, len(payload)) + payload
    return bytes(kept)


def parse_zip64_extra_field(
    extra: bytes, uncompressed_size: int, compressed_size: int, local_header_offset: int
) -> Optional[Zip64ExtraField]:
    """Read the ZIP64 values that replace saturated 32-bit header fields.

    Args:
        extra: Raw extra field bytes of the header.
        uncompressed_size: 32-bit uncompressed size from the header.
        compressed_size: 32-bit compressed size from the header.
        local_header_offset: 32-bit offset from the header (pass 0 for
            local headers, which have none).

    Returns:
        Zip64ExtraField, or None when the header has no ZIP64 block.
    """
    for tag, payload in iter_extra_fields(extra):
        if tag != ZIP64_EXTRA_FIELD_TAG:
            continue

        values = []
        for pos in range(0, len(payload) - 7, 8):
            values.append(struct.unpack_from("<Q", payload, pos)[0])

        field = Zip64ExtraField()
        if uncompressed_size == MAX_FILE_SIZE and values:
            field.original_size = values.pop(0)
        if compressed_size == MAX_FILE_SIZE and values:
            field.compressed_size = values.pop(0)
        if local_header_offset == MAX_FILE_SIZE and values:
            field.local_header_offset = values.pop(0)
        return field
    return None


def build_zip64_extra_field(*values: int) -> bytes:
    """Pack 64-bit values into a ZIP64 extra field block.

    Values must be given in the order the format defines: uncompressed
    size, compressed size, local header offset.
    """
    payload = b"".join(struct.pack("<Q", value) for value in values)
    return EXTRA_HEADER_STRUCT.pack(ZIP64_EXTRA_FIELD_TAG, len(payload)) + payload


def build_data_descriptor(crc: int, compressed_size: int, uncompressed_size: int, is_zip64: bool) -> bytes:
    """Pack a data descriptor, 64-bit sizes when 'is_zip64' is set."""
    if is_zip64:
        return ZIP64_DATA_DESCRIPTOR_STRUCT.pack(DATA_DESCRIPTOR, crc, compressed_size, uncompressed_size)
    return DATA_DESCRIPTOR_STRUCT.pack(DATA_DESCRIPTOR, crc, compressed_size, uncompressed_size)
