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
Utility functions for zipmerge.

This module provides helpers for CRC32 calculation, DOS date/time
conversion, checked binary I/O, chunked stream copying and best-effort
cleanup of streams and temporary files.
"""

import logging
import os
import zlib
from datetime import datetime
from typing import BinaryIO, Optional

from .constants import COPY_BUFFER_SIZE
from .errors import ZipFormatError

logger = logging.getLogger(__name__)

# Earliest and latest moments a DOS timestamp can represent
DOS_EPOCH = datetime(1980, 1, 1, 0, 0, 0)
DOS_MAX = datetime(2107, 12, 31, 23, 59, 58)


def crc32(data: bytes, value: int = 0) -> int:
    """Calculate or continue a CRC32 checksum.

    Args:
        data: Bytes to feed into the checksum.
        value: Running CRC32 of the preceding bytes (0 to start).

    Returns:
        CRC32 value as unsigned 32-bit integer.
    """
    return zlib.crc32(data, value) & 0xFFFFFFFF


def dos_datetime_to_timestamp(dos_date: int, dos_time: int) -> datetime:
    """Convert DOS date and time fields to a datetime.

    DOS date: bits 0-4 day, 5-8 month, 9-15 year - 1980.
    DOS time: bits 0-4 second / 2, 5-10 minute, 11-15 hour.

    Invalid field combinations decode to the DOS epoch.
    """
    day = dos_date & 0x1F
    month = (dos_date >> 5) & 0x0F
    year = ((dos_date >> 9) & 0x7F) + 1980

    second = (dos_time & 0x1F) * 2
    minute = (dos_time >> 5) & 0x3F
    hour = (dos_time >> 11) & 0x1F

    try:
        return datetime(year, month, day, hour, minute, second)
    except ValueError:
        return DOS_EPOCH


def timestamp_to_dos_datetime(dt: datetime) -> tuple[int, int]:
    """Convert a datetime to DOS date and time fields.

    Moments outside the DOS range (1980-2107) are clamped to its ends.
    Timezone-aware values are converted to local time first, since DOS
    timestamps carry no zone.

    Returns:
        Tuple of (dos_date, dos_time) as 16-bit unsigned integers.
    """
    if dt.tzinfo is not None:
        dt = dt.astimezone().replace(tzinfo=None)
    if dt < DOS_EPOCH:
        dt = DOS_EPOCH
    elif dt > DOS_MAX:
        dt = DOS_MAX

    dos_date = dt.day | (dt.month << 5) | ((dt.year - 1980) << 9)
    dos_time = (dt.second // 2) | (dt.minute << 5) | (dt.hour << 11)
    return dos_date & 0xFFFF, dos_time & 0xFFFF


def read_exact(f: BinaryIO, size: int) -> bytes:
    """Read exactly 'size' bytes from file, raising ZipFormatError on short read."""
    if size < 0:
        raise ZipFormatError(f"Invalid read size: {size} (must be non-negative)")

    data = f.read(size)
    if len(data) != size:
        raise ZipFormatError(
            f"Unexpected end of file: expected {size} bytes, got {len(data)}"
        )
    return data


def write_all(f: BinaryIO, data: bytes) -> int:
    """Write all of 'data' to file and return the number of bytes written.

    Raises:
        ZipFormatError: If the file accepted fewer bytes than given.
    """
    written = f.write(data)
    # Unbuffered raw files may return None or a short count
    if written is not None and written != len(data):
        raise ZipFormatError(
            f"Write operation failed: expected to write {len(data)} bytes, wrote {written} bytes"
        )
    return len(data)


def copy_stream(source: BinaryIO, target: BinaryIO, buffer_size: int = COPY_BUFFER_SIZE) -> int:
    """Copy 'source' into 'target' chunk by chunk until EOF.

    Returns:
        Number of bytes copied.
    """
    total = 0
    while True:
        chunk = source.read(buffer_size)
        if not chunk:
            return total
        target.write(chunk)
        total += len(chunk)


def close_quietly(resource: Optional[object]) -> None:
    """Close a stream or reader, logging instead of raising on failure."""
    if resource is None:
        return
    try:
        resource.close()
    except Exception as e:
        logger.warning("Ignoring error while closing %r: %s", resource, e)


def delete_quietly(path: Optional[str | os.PathLike]) -> bool:
    """Delete a file if it exists, logging instead of raising on failure.

    Returns:
        True if the file is gone afterwards.
    """
    if path is None:
        return True
    try:
        os.remove(path)
    except FileNotFoundError:
        return True
    except OSError as e:
        logger.warning("Could not delete %s: %s", path, e)
        return False
    return True
