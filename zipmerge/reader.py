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
ZIP archive reader implementation.

This module provides the ZipReader class for random access to ZIP and
ZIP64 archives. Entries are listed from the central directory and opened
lazily as decompressing streams.
"""

import io
import os
from typing import BinaryIO, Optional

from .constants import (
    FLAG_ENCRYPTED,
    FLAG_UTF8,
    MAX_COMMENT_LENGTH,
    READABLE_METHODS,
    ZIP64_LOCATOR_SIZE,
)
from .errors import ZipFormatError, ZipIOError, ZipUnsupportedFeature
from .stream import EntryInputStream, open_empty_stream, wrap_entry_stream
from .structures import (
    EOCD_STRUCT,
    EndOfCentralDirectory,
    Zip64EndOfCentralDirectory,
    ZipEntry,
    parse_central_directory_header,
    parse_eocd,
    parse_local_file_header,
    parse_zip64_eocd,
    parse_zip64_extra_field,
    parse_zip64_locator,
)

# Upper bound on central directory records, against hostile archives
MAX_ENTRY_COUNT = 10_000_000


class ZipReader:
    """Reader for ZIP and ZIP64 archives.

    Example:
        with ZipReader("archive.zip", charset="cp866") as z:
            for entry in z.entries():
                with z.open(entry) as f:
                    f.read()
    """

    def __init__(self, file: str | os.PathLike | BinaryIO, charset: Optional[str] = None):
        """Initialize ZipReader with a file path or file-like object.

        Args:
            file: Path to ZIP file or seekable binary file-like object.
            charset: Codec for names and comments of entries without the
                UTF-8 flag. None tries UTF-8 and falls back to CP437.

        Raises:
            ZipIOError: If the file cannot be opened.
            ZipFormatError: If the file is not a valid ZIP archive.
        """
        if hasattr(file, "__fspath__"):
            file = os.fspath(file)

        if isinstance(file, str):
            try:
                self._file = open(file, "rb")
            except OSError as e:
                raise ZipIOError(f"Cannot open archive {file}: {e}") from e
            self._should_close = True
        else:
            for method in ("read", "seek", "tell"):
                if not hasattr(file, method):
                    raise ZipFormatError(f"File-like object must have a {method}() method")
            self._file = file
            self._should_close = False

        self._charset = charset
        self._entry_list: list[ZipEntry] = []
        self._entries: dict[str, ZipEntry] = {}
        self._closed: bool = False

        try:
            self._parse_archive()
        except OSError as e:
            self.close()
            raise ZipIOError(f"Error reading archive: {e}") from e
        except Exception:
            self.close()
            raise

    def _file_size(self) -> int:
        self._file.seek(0, io.SEEK_END)
        return self._file.tell()

    def _find_eocd(self, file_size: int) -> tuple[EndOfCentralDirectory, int]:
        """Locate the End of Central Directory record by scanning backwards.

        Returns:
            The record and its absolute offset.
        """
        max_scan = min(EOCD_STRUCT.size + MAX_COMMENT_LENGTH, file_size)
        self._file.seek(file_size - max_scan)
        data = self._file.read(max_scan)

        eocd_pos = data.rfind(b"PK\x05\x06")
        if eocd_pos == -1:
            raise ZipFormatError("End of Central Directory record not found")
        return parse_eocd(data[eocd_pos:]), file_size - max_scan + eocd_pos

    def _find_zip64_eocd(self, eocd_offset: int, file_size: int) -> Optional[Zip64EndOfCentralDirectory]:
        """Follow the ZIP64 locator in front of the EOCD, if there is one."""
        if eocd_offset < ZIP64_LOCATOR_SIZE:
            return None
        self._file.seek(eocd_offset - ZIP64_LOCATOR_SIZE)
        try:
            locator = parse_zip64_locator(self._file.read(ZIP64_LOCATOR_SIZE))
        except ZipFormatError:
            return None

        if not 0 <= locator.zip64_eocd_offset < file_size:
            raise ZipFormatError(
                f"Invalid ZIP64 EOCD offset: {locator.zip64_eocd_offset} (file size: {file_size})"
            )
        self._file.seek(locator.zip64_eocd_offset)
        return parse_zip64_eocd(self._file)

    def _decode(self, raw: bytes, flags: int) -> str:
        if flags & FLAG_UTF8:
            return raw.decode("utf-8", errors="replace")
        if self._charset:
            return raw.decode(self._charset, errors="replace")
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError:
            return raw.decode("cp437")

    def _parse_archive(self) -> None:
        """Parse the central directory into ZipEntry objects."""
        file_size = self._file_size()
        eocd, eocd_offset = self._find_eocd(file_size)
        zip64_eocd = self._find_zip64_eocd(eocd_offset, file_size)

        if zip64_eocd is not None:
            cd_offset, cd_size, num_entries = zip64_eocd.cd_offset, zip64_eocd.cd_size, zip64_eocd.cd_records_total
        else:
            cd_offset, cd_size, num_entries = eocd.cd_offset, eocd.cd_size, eocd.cd_records_total

        if num_entries > MAX_ENTRY_COUNT:
            raise ZipFormatError(f"Entry count too large: {num_entries} (max {MAX_ENTRY_COUNT:,})")
        if num_entries and not 0 <= cd_offset < file_size:
            raise ZipFormatError(f"Invalid central directory offset: {cd_offset} (file size: {file_size})")
        if cd_offset + cd_size > file_size:
            raise ZipFormatError(
                f"Central directory extends beyond file: offset {cd_offset}, size {cd_size} (file size: {file_size})"
            )

        self._file.seek(cd_offset)
        for index in range(num_entries):
            header = parse_central_directory_header(self._file)
            name = self._decode(header.filename, header.flags).replace("\\", "/")

            zip64 = parse_zip64_extra_field(
                header.extra, header.uncompressed_size, header.compressed_size, header.local_header_offset
            )
            uncompressed_size = header.uncompressed_size
            compressed_size = header.compressed_size
            local_header_offset = header.local_header_offset
            if zip64 is not None:
                if zip64.original_size is not None:
                    uncompressed_size = zip64.original_size
                if zip64.compressed_size is not None:
                    compressed_size = zip64.compressed_size
                if zip64.local_header_offset is not None:
                    local_header_offset = zip64.local_header_offset

            is_dir = name.endswith("/") or bool((header.external_attrs >> 16) & 0o040000 == 0o040000)

            entry = ZipEntry(
                name=name,
                index=index,
                is_dir=is_dir,
                compressed_size=compressed_size,
                uncompressed_size=uncompressed_size,
                crc32=header.crc32,
                compression_method=header.compression_method,
                flags=header.flags,
                date_time=header.date_time,
                local_header_offset=local_header_offset,
                extra_field=header.extra,
                comment=self._decode(header.comment, header.flags),
            )
            self._entry_list.append(entry)
            # The first of several same-named entries answers lookups by name
            self._entries.setdefault(name, entry)

    def _check_open(self) -> None:
        if self._closed or self._file is None:
            raise ZipFormatError("Archive is closed")

    def entries(self) -> list[ZipEntry]:
        """All entries in central directory order, duplicates included."""
        return list(self._entry_list)

    def list(self) -> list[str]:
        """List all entry names in the archive."""
        return [entry.name for entry in self._entry_list]

    def get_info(self, name: str) -> Optional[ZipEntry]:
        """Get metadata for an entry by name, None if absent."""
        return self._entries.get(name.replace("\\", "/"))

    def __contains__(self, name: str) -> bool:
        return self.get_info(name) is not None

    def open(self, entry: str | ZipEntry) -> BinaryIO:
        """Open an entry for streaming reads of its decompressed data.

        CRC32 and size are validated when the stream reaches its end.

        Args:
            entry: Entry name or a ZipEntry from entries().

        Raises:
            KeyError: If the entry is not found.
            ZipUnsupportedFeature: If the entry is encrypted or uses an
                unsupported compression method.
            ZipFormatError: If the local header is invalid.
        """
        self._check_open()
        if isinstance(entry, str):
            found = self.get_info(entry)
            if found is None:
                raise KeyError(f"Entry not found: {entry}")
            entry = found

        if entry.is_dir:
            return open_empty_stream()
        if entry.flags & FLAG_ENCRYPTED:
            raise ZipUnsupportedFeature(f"Entry '{entry.name}' is encrypted (encryption not supported)")
        if entry.compression_method not in READABLE_METHODS:
            raise ZipUnsupportedFeature(f"Unsupported compression method: {entry.compression_method}")

        try:
            file_size = self._file_size()
            if not 0 <= entry.local_header_offset < file_size:
                raise ZipFormatError(
                    f"Invalid local header offset for entry '{entry.name}': "
                    f"{entry.local_header_offset} (file size: {file_size})"
                )
            self._file.seek(entry.local_header_offset)
            local_header = parse_local_file_header(self._file)
        except OSError as e:
            raise ZipIOError(f"Error reading entry '{entry.name}': {e}") from e

        data_offset = entry.local_header_offset + local_header.size
        if data_offset + entry.compressed_size > file_size:
            raise ZipFormatError(
                f"Compressed data extends beyond file for entry '{entry.name}': "
                f"position {data_offset}, size {entry.compressed_size} (file size: {file_size})"
            )

        return wrap_entry_stream(
            EntryInputStream(
                self._file,
                data_offset,
                entry.name,
                entry.compression_method,
                entry.compressed_size,
                entry.uncompressed_size,
                entry.crc32,
            )
        )

    def close(self) -> None:
        """Close the archive file."""
        if self._closed:
            return
        self._closed = True
        if self._should_close and self._file is not None:
            file, self._file = self._file, None
            file.close()

    def __enter__(self) -> "ZipReader":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
