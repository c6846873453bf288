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
Entry transformers.

A transformer replaces the plain copy of one entry. It receives the
entry's content stream, its record and the output ZipWriter, and is fully
responsible for what ends up in the output: it may write the entry with
new content, write several entries, or write nothing at all. It must
consume the input stream.

Any callable with the signature ``(stream, record, writer) -> None`` works
as a transformer. The classes below cover the common cases.
"""

import io
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, BinaryIO, Callable, Iterable, Optional

from .entry import EntryRecord

if TYPE_CHECKING:
    from .writer import ZipWriter

Transformer = Callable[[BinaryIO, EntryRecord, "ZipWriter"], None]


class EntryTransformer(ABC):
    """Base class for transformers that rewrite an entry in place.

    Args:
        preserve_timestamps: Keep the entry's modification time instead of
            stamping the rewritten entry with the current time.
    """

    def __init__(self, preserve_timestamps: bool = False):
        self.preserve_timestamps = preserve_timestamps

    def _output_time(self, record: EntryRecord) -> datetime:
        if self.preserve_timestamps and record.mod_time is not None:
            return record.mod_time
        return datetime.now()

    @abstractmethod
    def transform(self, stream: BinaryIO, record: EntryRecord, writer: "ZipWriter") -> None:
        """Consume 'stream' and write the replacement entries to 'writer'."""

    def __call__(self, stream: BinaryIO, record: EntryRecord, writer: "ZipWriter") -> None:
        self.transform(stream, record, writer)


class ByteTransformer(EntryTransformer):
    """Rewrite an entry's whole content as bytes.

    The content is read into memory, so this suits entries of moderate
    size such as manifests and configuration files.

    Example:
        ByteTransformer(lambda data: data.upper())
    """

    def __init__(self, func: Optional[Callable[[bytes], bytes]] = None, preserve_timestamps: bool = False):
        super().__init__(preserve_timestamps)
        self._func = func

    def transform_bytes(self, data: bytes, record: EntryRecord) -> bytes:
        """Return the new content; override this or pass 'func'."""
        if self._func is None:
            raise NotImplementedError("ByteTransformer needs a function or an override of transform_bytes()")
        return self._func(data)

    def transform(self, stream: BinaryIO, record: EntryRecord, writer: "ZipWriter") -> None:
        data = self.transform_bytes(stream.read(), record)
        output = record.for_content(data).copy_for_output(self._output_time(record))
        writer.add_stream(output, io.BytesIO(data))


class TextTransformer(ByteTransformer):
    """Rewrite an entry's content as text in the given encoding.

    Example:
        TextTransformer(lambda text: text.replace("1.0", "2.0"))
    """

    def __init__(
        self,
        func: Optional[Callable[[str], str]] = None,
        encoding: str = "utf-8",
        preserve_timestamps: bool = False,
    ):
        super().__init__(preserve_timestamps=preserve_timestamps)
        self._text_func = func
        self.encoding = encoding

    def transform_text(self, text: str, record: EntryRecord) -> str:
        """Return the new text; override this or pass 'func'."""
        if self._text_func is None:
            raise NotImplementedError("TextTransformer needs a function or an override of transform_text()")
        return self._text_func(text)

    def transform_bytes(self, data: bytes, record: EntryRecord) -> bytes:
        return self.transform_text(data.decode(self.encoding), record).encode(self.encoding)


class StreamTransformer(EntryTransformer):
    """Rewrite an entry by piping its content through a stream function.

    The function receives the input stream and the output entry sink and
    copies (and changes) data between them, so entries of any size are
    handled without buffering.

    Example:
        def strip_carriage_returns(src, dst):
            for chunk in iter(lambda: src.read(65536), b""):
                dst.write(chunk.replace(b"\\r", b""))

        StreamTransformer(strip_carriage_returns)
    """

    def __init__(self, func: Callable[[BinaryIO, BinaryIO], None], preserve_timestamps: bool = False):
        super().__init__(preserve_timestamps)
        self._func = func

    def transform(self, stream: BinaryIO, record: EntryRecord, writer: "ZipWriter") -> None:
        output = record.without_checksums().copy_for_output(self._output_time(record))
        with writer.open_entry(output) as out:
            self._func(stream, out)


@dataclass(frozen=True)
class TransformerEntry:
    """A transformer registered for one output entry path."""

    path: str
    transformer: Transformer


class TransformerRegistry:
    """Run-local lookup of transformers by output path.

    The first registration for a path wins. pop() removes a transformer as
    it is applied, so it fires at most once per run.
    """

    def __init__(self, entries: Iterable[TransformerEntry] = ()):
        self._by_path: dict[str, Transformer] = {}
        for entry in entries:
            self._by_path.setdefault(entry.path, entry.transformer)

    def pop(self, path: str) -> Optional[Transformer]:
        return self._by_path.pop(path, None)

    def __contains__(self, path: str) -> bool:
        return path in self._by_path

    def __len__(self) -> int:
        return len(self._by_path)
