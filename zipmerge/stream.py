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
Streaming access to entry data.

EntryInputStream inflates one entry of an archive chunk by chunk and
checks its CRC32 and size once the data is exhausted. EntryOutputStream is
the sink handed out by ZipWriter.open_entry(): it compresses what is
written into it on the fly, so neither direction ever holds a whole entry
in memory.
"""

import io
import zlib
from typing import TYPE_CHECKING, BinaryIO, Optional

from .constants import COMP_DEFLATE, COMP_STORED, COPY_BUFFER_SIZE
from .errors import ZipCompressionError, ZipCrcError, ZipFormatError, ZipIOError, ZipUnsupportedFeature
from .utils import crc32

if TYPE_CHECKING:
    from .writer import ZipWriter


class EntryInputStream(io.RawIOBase):
    """Raw, read-only stream over the decompressed data of one entry.

    The stream shares the archive's file handle with its reader and seeks
    to its own position before every read, so it stays valid while other
    entries of the same archive are read.
    """

    def __init__(
        self,
        file: BinaryIO,
        data_offset: int,
        name: str,
        method: int,
        compressed_size: int,
        uncompressed_size: int,
        expected_crc: int,
    ):
        super().__init__()
        if method not in (COMP_STORED, COMP_DEFLATE):
            raise ZipUnsupportedFeature(f"Unsupported compression method: {method}")

        self._file = file
        self._position = data_offset
        self._remaining = compressed_size
        self._name = name
        self._expected_size = uncompressed_size
        self._expected_crc = expected_crc
        self._decompressor = zlib.decompressobj(-zlib.MAX_WBITS) if method == COMP_DEFLATE else None

        self._crc = 0
        self._size = 0
        self._chunk = b""
        self._chunk_pos = 0
        self._flushed = False
        self._finished = False

    def readable(self) -> bool:
        return True

    def _read_compressed(self) -> bytes:
        length = min(COPY_BUFFER_SIZE, self._remaining)
        try:
            self._file.seek(self._position)
            data = self._file.read(length)
        except OSError as e:
            raise ZipIOError(f"Error reading entry '{self._name}': {e}") from e
        if len(data) != length:
            raise ZipFormatError(
                f"Unexpected end of file in entry '{self._name}': expected {length} bytes, got {len(data)}"
            )
        self._position += length
        self._remaining -= length
        return data

    def _next_chunk(self) -> Optional[bytes]:
        """Produce the next piece of decompressed data, None once exhausted.

        A deflate step may legitimately produce no output yet, so b"" does
        not mean the end of the entry.
        """
        if self._decompressor is None:
            return self._read_compressed() if self._remaining else None
        if self._flushed:
            return None

        try:
            if self._decompressor.unconsumed_tail:
                return self._decompressor.decompress(self._decompressor.unconsumed_tail, COPY_BUFFER_SIZE)
            if self._remaining:
                return self._decompressor.decompress(self._read_compressed(), COPY_BUFFER_SIZE)
            data = self._decompressor.flush()
            self._flushed = True
        except zlib.error as e:
            raise ZipCompressionError(f"Deflate decompression failed for '{self._name}': {e}") from e

        if self._decompressor.unused_data:
            raise ZipCompressionError(f"Extra data after compressed stream in '{self._name}'")
        return data

    def _verify(self) -> None:
        if self._size != self._expected_size:
            raise ZipFormatError(
                f"Size mismatch for '{self._name}': expected {self._expected_size} bytes, got {self._size}"
            )
        if self._crc != self._expected_crc:
            raise ZipCrcError(
                f"CRC32 mismatch for '{self._name}': expected 0x{self._expected_crc:08X}, got 0x{self._crc:08X}"
            )

    def readinto(self, buffer) -> int:
        if self.closed:
            raise ValueError("I/O operation on closed entry stream")

        while self._chunk_pos >= len(self._chunk):
            if self._finished:
                return 0
            chunk = self._next_chunk()
            if chunk is None:
                self._finished = True
                self._verify()
                return 0
            self._chunk = chunk
            self._chunk_pos = 0
            self._crc = crc32(chunk, self._crc)
            self._size += len(chunk)

        view = memoryview(buffer).cast("B")
        count = min(len(view), len(self._chunk) - self._chunk_pos)
        view[:count] = self._chunk[self._chunk_pos : self._chunk_pos + count]
        self._chunk_pos += count
        return count


class EntryOutputStream:
    """Write-only sink for the data of one entry being added to an archive.

    Obtained from ZipWriter.open_entry(). Data written here is compressed
    and appended to the archive immediately. close() finalizes the entry;
    abort() drops it from the central directory. Used as a context manager
    it closes on success and aborts when the block raises.

    Example:
        with writer.open_entry(EntryRecord("notes.txt")) as out:
            out.write(b"first line\\n")
    """

    def __init__(self, writer: "ZipWriter", name: str, method: int):
        self._writer = writer
        self._name = name
        self._compressor = (
            zlib.compressobj(zlib.Z_DEFAULT_COMPRESSION, zlib.DEFLATED, -zlib.MAX_WBITS)
            if method == COMP_DEFLATE
            else None
        )
        self._crc = 0
        self._size = 0
        self._compressed_size = 0
        self._closed = False

    @property
    def name(self) -> str:
        return self._name

    @property
    def closed(self) -> bool:
        return self._closed

    def writable(self) -> bool:
        return True

    def readable(self) -> bool:
        return False

    def seekable(self) -> bool:
        return False

    def flush(self) -> None:
        pass

    def write(self, data: bytes) -> int:
        """Append data to the entry and return the number of bytes taken."""
        if self._closed:
            raise ZipFormatError(f"Entry '{self._name}' is already closed")
        if not data:
            return 0

        data = bytes(data)
        taken = len(data)
        self._crc = crc32(data, self._crc)
        self._size += taken
        if self._compressor is not None:
            try:
                data = self._compressor.compress(data)
            except zlib.error as e:
                raise ZipCompressionError(f"Deflate compression failed for '{self._name}': {e}") from e
        self._emit(data)
        return taken

    def _emit(self, data: bytes) -> None:
        if data:
            self._writer._write(data)
            self._compressed_size += len(data)

    def close(self) -> None:
        """Flush the compressor and finalize the entry."""
        if self._closed:
            return
        try:
            if self._compressor is not None:
                try:
                    self._emit(self._compressor.flush())
                except zlib.error as e:
                    raise ZipCompressionError(f"Deflate compression failed for '{self._name}': {e}") from e
            self._writer._finish_entry(self, self._crc, self._compressed_size, self._size)
        except BaseException:
            self.abort()
            raise
        self._closed = True

    def abort(self) -> None:
        """Give up on the entry; it will not appear in the central directory."""
        if self._closed:
            return
        self._closed = True
        self._writer._abort_entry(self)

    def __enter__(self) -> "EntryOutputStream":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if exc_type is None:
            self.close()
        else:
            self.abort()


def open_empty_stream() -> BinaryIO:
    """Stream with no content, used for directory entries."""
    return io.BytesIO(b"")


def wrap_entry_stream(raw: Optional[EntryInputStream]) -> BinaryIO:
    """Buffer a raw entry stream for efficient small reads."""
    if raw is None:
        return open_empty_stream()
    return io.BufferedReader(raw, buffer_size=COPY_BUFFER_SIZE)
