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
ZIP archive writer implementation.

This module provides the ZipWriter class, which writes ZIP and ZIP64
archives strictly sequentially. Entry data is streamed: stored entries
whose CRC and size are known up front carry them in the local header,
everything else is followed by a data descriptor.
"""

import io
import logging
import os
from dataclasses import dataclass
from datetime import datetime
from typing import BinaryIO, Optional

from .constants import (
    CENTRAL_DIR_HEADER,
    COMP_STORED,
    COMPRESSION_METHODS,
    COPY_BUFFER_SIZE,
    DEFAULT_METHOD,
    DIR_ATTRIBUTES,
    END_OF_CENTRAL_DIR,
    FILE_ATTRIBUTES,
    FLAG_DATA_DESCRIPTOR,
    FLAG_UTF8,
    LOCAL_FILE_HEADER,
    MAX_CD_OFFSET,
    MAX_CD_SIZE,
    MAX_ENTRIES,
    MAX_FILE_SIZE,
    MAX_NAME_LENGTH,
    VERSION_DEFAULT,
    VERSION_MADE_BY_DEFAULT,
    VERSION_ZIP64,
    WRITABLE_METHODS,
    ZIP64_END_OF_CENTRAL_DIR,
    ZIP64_END_OF_CENTRAL_DIR_LOCATOR,
    ZIP64_EXTRA_FIELD_TAG,
)
from .entry import EntryRecord
from .errors import ZipCrcError, ZipFormatError, ZipIOError, ZipUnsupportedFeature
from .stream import EntryOutputStream
from .structures import (
    CENTRAL_HEADER_STRUCT,
    EOCD_STRUCT,
    LOCAL_HEADER_STRUCT,
    ZIP64_EOCD_STRUCT,
    ZIP64_LOCATOR_STRUCT,
    build_data_descriptor,
    build_zip64_extra_field,
    strip_extra_field,
)
from .utils import close_quietly, copy_stream, crc32, timestamp_to_dos_datetime, write_all

logger = logging.getLogger(__name__)


@dataclass
class _PendingEntry:
    """What the central directory needs to know about a written entry."""

    name_bytes: bytes
    flags: int
    method: int
    dos_time: int
    dos_date: int
    local_header_offset: int
    extra: bytes
    comment: bytes
    is_dir: bool
    declared_crc: Optional[int] = None
    declared_size: Optional[int] = None
    crc32: int = 0
    compressed_size: int = 0
    uncompressed_size: int = 0


def _is_utf8(charset: Optional[str]) -> bool:
    return charset is None or charset.lower().replace("_", "-") in ("utf-8", "utf8")


class ZipWriter:
    """Sequential writer for ZIP and ZIP64 archives.

    Entries are written one at a time; only one entry may be open at once.
    Entries that fail or are aborted while open are left out of the
    central directory, so the finished archive only lists entries that
    were completely written.

    Example:
        with ZipWriter("archive.zip") as z:
            z.add_bytes("hello.txt", b"Hello, World!")
            with z.open_entry(EntryRecord("big.bin")) as out:
                copy_stream(source, out)
    """

    def __init__(self, file: str | os.PathLike | BinaryIO, mode: str = "w", charset: Optional[str] = None):
        """Initialize ZipWriter with a file path or file-like object.

        Args:
            file: Path to the ZIP file or a binary file-like object opened
                for writing.
            mode: File mode (only "w" is supported).
            charset: Codec for entry names and comments. None or UTF-8
                sets the UTF-8 flag on every entry.

        Raises:
            ZipFormatError: If the mode or file object is unusable.
            ZipIOError: If the file cannot be opened.
        """
        if mode != "w":
            raise ZipFormatError(f"Unsupported mode: {mode} (only 'w' is supported)")

        if hasattr(file, "__fspath__"):
            file = os.fspath(file)

        if isinstance(file, str):
            try:
                self._file = open(file, "wb")
            except OSError as e:
                raise ZipIOError(f"Cannot open {file} for writing: {e}") from e
            self._should_close = True
        else:
            if not hasattr(file, "write"):
                raise ZipFormatError("File-like object must have a write() method")
            self._file = file
            self._should_close = False

        self._charset = None if _is_utf8(charset) else charset
        self._pending_entries: list[_PendingEntry] = []
        self._open_entry: Optional[EntryOutputStream] = None
        self._open_pending: Optional[_PendingEntry] = None
        self._current_offset: int = 0
        self._closed: bool = False

    @property
    def entry_count(self) -> int:
        """Number of entries completely written so far."""
        return len(self._pending_entries)

    def _write(self, data: bytes) -> None:
        if self._file is None:
            raise ZipFormatError("Archive file is closed")
        try:
            self._current_offset += write_all(self._file, data)
        except OSError as e:
            raise ZipIOError(f"Write to archive failed: {e}") from e

    def _encode(self, text: str, what: str) -> tuple[bytes, bool]:
        """Encode a name or comment, returning the bytes and the UTF-8 flag."""
        codec = self._charset or "utf-8"
        try:
            return text.encode(codec), self._charset is None
        except UnicodeEncodeError as e:
            raise ZipFormatError(f"Cannot encode {what} {text!r} with {codec}: {e}") from e

    def _check_writable(self) -> None:
        if self._closed:
            raise ZipFormatError("Archive is closed")
        if self._open_entry is not None:
            raise ZipFormatError(
                f"Entry '{self._open_entry.name}' is still open; close it before starting another"
            )

    def open_entry(self, record: EntryRecord) -> EntryOutputStream:
        """Start a new entry and return the sink its data is written to.

        Args:
            record: Entry metadata. ``method`` falls back to deflate when
                missing or not writable; directories are always stored.
                ``crc32`` and ``size``, when given, are checked against
                the data actually written.

        Returns:
            EntryOutputStream; close it (or leave its ``with`` block) to
            finalize the entry.

        Raises:
            ZipFormatError: If the archive is closed, another entry is
                open, or the name is invalid.
        """
        self._check_writable()

        name = record.name.replace("\\", "/")
        if not name:
            raise ZipFormatError("Entry name cannot be empty")
        if "\x00" in name:
            raise ZipFormatError("Entry name cannot contain null bytes")

        name_bytes, utf8 = self._encode(name, "entry name")
        comment_bytes, _ = self._encode(record.comment or "", "comment")
        if len(name_bytes) > MAX_NAME_LENGTH:
            raise ZipFormatError(f"Entry name too long: {len(name_bytes)} bytes (max {MAX_NAME_LENGTH})")
        if len(comment_bytes) > MAX_NAME_LENGTH:
            raise ZipFormatError(f"Entry comment too long: {len(comment_bytes)} bytes")

        is_dir = name.endswith("/")
        method = record.method if record.method in WRITABLE_METHODS else DEFAULT_METHOD
        declared_crc, declared_size = record.crc32, record.size
        if is_dir:
            method, declared_crc, declared_size = COMP_STORED, 0, 0
        elif method == COMP_STORED and (declared_crc is None or declared_size is None):
            # Stored data cannot be delimited without its size up front.
            method = DEFAULT_METHOD

        # Any ZIP64 block copied from another archive describes that
        # archive's offsets; a fresh one is built for this archive.
        extra = strip_extra_field(record.extra or b"", ZIP64_EXTRA_FIELD_TAG)

        dos_date, dos_time = timestamp_to_dos_datetime(record.mod_time or datetime.now())
        offset = self._current_offset
        sizes_known = method == COMP_STORED and declared_crc is not None and declared_size is not None

        flags = FLAG_UTF8 if utf8 else 0
        needs_zip64 = False
        if sizes_known:
            header_crc = declared_crc
            if declared_size >= MAX_FILE_SIZE:
                needs_zip64 = True
                extra = build_zip64_extra_field(declared_size, declared_size) + extra
                header_size = MAX_FILE_SIZE
            else:
                header_size = declared_size
        else:
            flags |= FLAG_DATA_DESCRIPTOR
            header_crc = header_size = 0

        if len(extra) > MAX_NAME_LENGTH:
            raise ZipFormatError(f"Extra field too long for '{name}': {len(extra)} bytes")

        header = LOCAL_HEADER_STRUCT.pack(
            LOCAL_FILE_HEADER,
            VERSION_ZIP64 if needs_zip64 else VERSION_DEFAULT,
            flags,
            method,
            dos_time,
            dos_date,
            header_crc,
            header_size,
            header_size,
            len(name_bytes),
            len(extra),
        )
        self._write(header + name_bytes + extra)

        self._open_pending = _PendingEntry(
            name_bytes=name_bytes,
            flags=flags,
            method=method,
            dos_time=dos_time,
            dos_date=dos_date,
            local_header_offset=offset,
            extra=strip_extra_field(extra, ZIP64_EXTRA_FIELD_TAG),
            comment=comment_bytes,
            is_dir=is_dir,
            declared_crc=declared_crc,
            declared_size=declared_size,
        )
        self._open_entry = EntryOutputStream(self, name, method)
        return self._open_entry

    def _finish_entry(self, stream: EntryOutputStream, crc: int, compressed_size: int, size: int) -> None:
        """Finalize the open entry; called by EntryOutputStream.close()."""
        pending = self._open_pending
        if stream is not self._open_entry or pending is None:
            raise ZipFormatError(f"Entry '{stream.name}' is not the open entry")

        if pending.declared_size is not None and pending.declared_size != size:
            raise ZipFormatError(
                f"Size mismatch for '{stream.name}': declared {pending.declared_size} bytes, wrote {size}"
            )
        if pending.declared_crc is not None and pending.declared_crc != crc:
            raise ZipCrcError(
                f"CRC32 mismatch for '{stream.name}': declared 0x{pending.declared_crc:08X}, wrote 0x{crc:08X}"
            )

        if pending.flags & FLAG_DATA_DESCRIPTOR:
            is_zip64 = compressed_size >= MAX_FILE_SIZE or size >= MAX_FILE_SIZE
            self._write(build_data_descriptor(crc, compressed_size, size, is_zip64))

        pending.crc32 = crc
        pending.compressed_size = compressed_size
        pending.uncompressed_size = size
        self._pending_entries.append(pending)
        self._open_entry = None
        self._open_pending = None

    def _abort_entry(self, stream: EntryOutputStream) -> None:
        """Forget the open entry; its bytes stay in the file but are not listed."""
        if stream is self._open_entry:
            self._open_entry = None
            self._open_pending = None

    def add_stream(self, record: EntryRecord, stream: BinaryIO) -> None:
        """Add an entry by copying a stream to its end.

        Args:
            record: Entry metadata (see open_entry()).
            stream: Binary file-like object with the entry's content.
        """
        with self.open_entry(record) as out:
            if not record.is_dir:
                copy_stream(stream, out)

    def add_bytes(
        self,
        name: str,
        data: bytes,
        compression: str = "deflate",
        mod_time: Optional[datetime] = None,
    ) -> None:
        """Add an entry from bytes data.

        Args:
            name: Entry name (path within ZIP archive).
            data: Data to add as bytes.
            compression: Compression method ("stored" or "deflate").
            mod_time: Modification time, None for now.

        Raises:
            ZipUnsupportedFeature: If compression method is not supported.
        """
        if compression not in COMPRESSION_METHODS:
            raise ZipUnsupportedFeature(f"Unsupported compression method: {compression}")
        record = EntryRecord(
            name=name,
            mod_time=mod_time,
            crc32=crc32(data),
            size=len(data),
            method=COMPRESSION_METHODS[compression],
        )
        self.add_stream(record, io.BytesIO(data))

    def add_file(self, name_in_zip: str, source_path: str | os.PathLike, compression: str = "deflate") -> None:
        """Add an entry from a file on disk, streaming its content.

        Raises:
            ZipIOError: If the source file cannot be read.
            ZipUnsupportedFeature: If compression method is not supported.
        """
        if compression not in COMPRESSION_METHODS:
            raise ZipUnsupportedFeature(f"Unsupported compression method: {compression}")
        try:
            f = open(source_path, "rb")
        except OSError as e:
            raise ZipIOError(f"Error reading file {source_path}: {e}") from e
        with f:
            stat = os.fstat(f.fileno())
            method = COMPRESSION_METHODS[compression]
            checksum = None
            if method == COMP_STORED:
                # A stored entry needs its CRC in the local header
                checksum = 0
                for chunk in iter(lambda: f.read(COPY_BUFFER_SIZE), b""):
                    checksum = crc32(chunk, checksum)
                f.seek(0)
            record = EntryRecord(
                name=name_in_zip,
                mod_time=datetime.fromtimestamp(stat.st_mtime),
                crc32=checksum,
                size=stat.st_size,
                method=method,
            )
            self.add_stream(record, f)

    def _write_central_directory(self) -> tuple[int, int]:
        """Write the central directory; returns (cd_offset, cd_size)."""
        cd_offset = self._current_offset

        for entry in self._pending_entries:
            # Saturated 32-bit fields are replaced, in order, by ZIP64 values
            zip64_values = []
            usize = entry.uncompressed_size
            csize = entry.compressed_size
            offset = entry.local_header_offset
            if usize >= MAX_FILE_SIZE:
                zip64_values.append(usize)
                usize = MAX_FILE_SIZE
            if csize >= MAX_FILE_SIZE:
                zip64_values.append(csize)
                csize = MAX_FILE_SIZE
            if offset >= MAX_FILE_SIZE:
                zip64_values.append(offset)
                offset = MAX_FILE_SIZE

            extra = entry.extra
            if zip64_values:
                extra = build_zip64_extra_field(*zip64_values) + extra

            header = CENTRAL_HEADER_STRUCT.pack(
                CENTRAL_DIR_HEADER,
                VERSION_MADE_BY_DEFAULT,
                VERSION_ZIP64 if zip64_values else VERSION_DEFAULT,
                entry.flags,
                entry.method,
                entry.dos_time,
                entry.dos_date,
                entry.crc32,
                csize,
                usize,
                len(entry.name_bytes),
                len(extra),
                len(entry.comment),
                0,  # disk number
                0,  # internal attributes
                DIR_ATTRIBUTES if entry.is_dir else FILE_ATTRIBUTES,
                offset,
            )
            self._write(header + entry.name_bytes + extra + entry.comment)

        return cd_offset, self._current_offset - cd_offset

    def _write_eocd(self, cd_offset: int, cd_size: int) -> None:
        """Write the End of Central Directory record, with ZIP64 records if needed."""
        num_entries = len(self._pending_entries)
        needs_zip64 = (
            num_entries > MAX_ENTRIES
            or cd_size > MAX_CD_SIZE
            or cd_offset > MAX_CD_OFFSET
            or any(e.local_header_offset >= MAX_FILE_SIZE for e in self._pending_entries)
        )

        if needs_zip64:
            zip64_eocd_offset = self._current_offset
            self._write(
                ZIP64_EOCD_STRUCT.pack(
                    ZIP64_END_OF_CENTRAL_DIR,
                    ZIP64_EOCD_STRUCT.size - 12,  # excludes signature and this field
                    VERSION_MADE_BY_DEFAULT,
                    VERSION_ZIP64,
                    0,
                    0,
                    num_entries,
                    num_entries,
                    cd_size,
                    cd_offset,
                )
            )
            self._write(ZIP64_LOCATOR_STRUCT.pack(ZIP64_END_OF_CENTRAL_DIR_LOCATOR, 0, zip64_eocd_offset, 1))
            self._write(
                EOCD_STRUCT.pack(
                    END_OF_CENTRAL_DIR,
                    0,
                    0,
                    min(num_entries, MAX_ENTRIES),
                    min(num_entries, MAX_ENTRIES),
                    min(cd_size, MAX_CD_SIZE),
                    min(cd_offset, MAX_CD_OFFSET),
                    0,
                )
            )
        else:
            self._write(
                EOCD_STRUCT.pack(END_OF_CENTRAL_DIR, 0, 0, num_entries, num_entries, cd_size, cd_offset, 0)
            )

    def close(self) -> None:
        """Write central directory and EOCD, then close the archive.

        An entry still open at this point is aborted first.
        """
        if self._closed:
            return

        failed = True
        try:
            if self._open_entry is not None:
                self._open_entry.abort()
            cd_offset, cd_size = self._write_central_directory()
            self._write_eocd(cd_offset, cd_size)
            if self._file is not None:
                try:
                    self._file.flush()
                except OSError as e:
                    raise ZipIOError(f"Flushing archive failed: {e}") from e
            failed = False
        finally:
            self._closed = True
            if self._should_close and self._file is not None:
                file, self._file = self._file, None
                try:
                    file.close()
                except OSError as e:
                    if not failed:
                        raise ZipIOError(f"Closing archive failed: {e}") from e
                    logger.warning("Ignoring error while closing archive after failure: %s", e)

    def __enter__(self) -> "ZipWriter":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if exc_type is None:
            self.close()
        else:
            close_quietly(self)
