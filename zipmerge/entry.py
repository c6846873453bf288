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
Entry metadata and entry sources.

EntryRecord describes one logical entry independent of its bytes. An
EntrySource pairs a record with a way to open the entry's content; the
merge engine asks it for a fresh stream every time it needs the data.
"""

import io
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from datetime import datetime
from pathlib import Path
from typing import BinaryIO, Callable, Optional

from .constants import PATH_SEPARATOR, WRITABLE_METHODS
from .errors import ZipIOError
from .utils import crc32


@dataclass(frozen=True)
class EntryRecord:
    """Metadata of one archive entry.

    Attributes:
        name: Archive-internal path, '/'-separated, no leading slash.
            Directory entries end with '/'.
        mod_time: Modification time, None for "now" when written.
        crc32: CRC32 of the uncompressed data, if known.
        size: Uncompressed size, if known.
        compressed_size: Compressed size in the source archive, if any.
        method: ZIP compression method id, None for the writer's default.
        extra: Raw extra field bytes.
        comment: Entry comment.
    """

    name: str
    mod_time: Optional[datetime] = None
    crc32: Optional[int] = None
    size: Optional[int] = None
    compressed_size: Optional[int] = None
    method: Optional[int] = None
    extra: Optional[bytes] = None
    comment: Optional[str] = None

    @property
    def is_dir(self) -> bool:
        return self.name.endswith(PATH_SEPARATOR)

    def renamed(self, name: str) -> "EntryRecord":
        """Return the same record under another name."""
        if name == self.name:
            return self
        return replace(self, name=name)

    def copy_for_output(self, mod_time: datetime) -> "EntryRecord":
        """Clone the record for writing into a new archive.

        CRC, sizes, extra data and comment carry over; the method carries
        over only when the writer can produce it.
        """
        method = self.method if self.method in WRITABLE_METHODS else None
        return replace(self, mod_time=mod_time, method=method)

    def for_content(self, data: bytes) -> "EntryRecord":
        """Return a record describing 'data' as this entry's new content."""
        return replace(self, crc32=crc32(data), size=len(data), compressed_size=None)

    def without_checksums(self) -> "EntryRecord":
        """Drop CRC and sizes, for content whose bytes are not known up front."""
        return replace(self, crc32=None, size=None, compressed_size=None)


class EntrySource(ABC):
    """Something that can be added to an archive as one entry.

    open_stream() must return a new, independently readable stream on every
    call, since a source may be reused across several runs.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Entry name inside the archive."""

    @abstractmethod
    def record(self) -> EntryRecord:
        """Build the entry's metadata."""

    @abstractmethod
    def open_stream(self) -> BinaryIO:
        """Open the entry's content for reading."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"


class FileSource(EntrySource):
    """Entry backed by one file on disk.

    Example:
        FileSource("docs/readme.txt", "/home/me/readme.txt")
    """

    def __init__(self, name: str, path: str | os.PathLike):
        self._name = name
        self._path = Path(path)

    @property
    def name(self) -> str:
        return self._name

    @property
    def path(self) -> Path:
        return self._path

    def record(self) -> EntryRecord:
        try:
            stat = self._path.stat()
        except OSError as e:
            raise ZipIOError(f"Cannot stat {self._path}: {e}") from e

        mod_time = datetime.fromtimestamp(stat.st_mtime)
        if self._path.is_dir():
            name = self._name if self._name.endswith(PATH_SEPARATOR) else self._name + PATH_SEPARATOR
            return EntryRecord(name=name, mod_time=mod_time)
        return EntryRecord(name=self._name, mod_time=mod_time, size=stat.st_size)

    def open_stream(self) -> BinaryIO:
        if self._path.is_dir():
            return io.BytesIO(b"")
        try:
            return open(self._path, "rb")
        except OSError as e:
            raise ZipIOError(f"Cannot open {self._path}: {e}") from e


class ByteSource(EntrySource):
    """Entry whose content is held in memory.

    The modification time defaults to the moment the source was created.
    """

    def __init__(
        self,
        name: str,
        data: bytes,
        mod_time: Optional[datetime] = None,
        method: Optional[int] = None,
    ):
        self._name = name
        self._data = bytes(data)
        self._mod_time = mod_time or datetime.now()
        self._method = method

    @property
    def name(self) -> str:
        return self._name

    @property
    def data(self) -> bytes:
        return self._data

    def record(self) -> EntryRecord:
        return EntryRecord(
            name=self._name,
            mod_time=self._mod_time,
            crc32=crc32(self._data),
            size=len(self._data),
            method=self._method,
        )

    def open_stream(self) -> BinaryIO:
        return io.BytesIO(self._data)


class StreamSource(EntrySource):
    """Entry whose content comes from an external stream factory.

    Args:
        name: Entry name inside the archive.
        opener: Zero-argument callable returning a fresh binary stream
            each time it is called.
        mod_time: Modification time, None for the time of writing.
        size: Uncompressed size if the caller knows it.
        method: ZIP compression method id, None for the default.
    """

    def __init__(
        self,
        name: str,
        opener: Callable[[], BinaryIO],
        mod_time: Optional[datetime] = None,
        size: Optional[int] = None,
        method: Optional[int] = None,
    ):
        self._name = name
        self._opener = opener
        self._mod_time = mod_time
        self._size = size
        self._method = method

    @property
    def name(self) -> str:
        return self._name

    def record(self) -> EntryRecord:
        return EntryRecord(name=self._name, mod_time=self._mod_time, size=self._size, method=self._method)

    def open_stream(self) -> BinaryIO:
        try:
            return self._opener()
        except OSError as e:
            raise ZipIOError(f"Cannot open content for '{self._name}': {e}") from e
