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
Fluent builder for merging and iterating ZIP archives.

Example:
    Zips.get("app.jar") \\
        .add_entry(ByteSource("META-INF/build.txt", b"42")) \\
        .remove_entry("docs") \\
        .add_transformer("config.properties", TextTransformer(str.upper)) \\
        .destination("app-patched.jar") \\
        .process()
"""

import logging
import os
from pathlib import Path
from typing import Iterable, Optional

from .commit import CommitState, select_strategy
from .config import MergeConfiguration, check_charset
from .copier import EntryCopier, EntryHook
from .engine import ContentVisitor, EntryCallback, InfoCallback, TraversalResult, iterate_entries, traverse
from .entry import EntrySource, FileSource
from .errors import ZipConfigurationError, ZipIOError
from .filetree import FileFilter, list_files
from .mapper import NameMapper
from .transform import Transformer, TransformerEntry
from .writer import ZipWriter

logger = logging.getLogger(__name__)


def run_merge(config: MergeConfiguration, on_entry: Optional[EntryHook] = None) -> CommitState:
    """Write the merged archive described by 'config'.

    Args:
        config: Run configuration; validated before any file is touched.
        on_entry: Called with each record after it is written; returning
            IterationControl.STOP ends the run early.

    Returns:
        The terminal state of the run's commit strategy.

    Raises:
        ZipConfigurationError: If the configuration cannot run.
        ZipIOError: If reading or writing files fails.
        ZipError: If the source archive is malformed.
    """
    config.validate()
    strategy = select_strategy(config)
    output = strategy.begin()
    try:
        with ZipWriter(output, charset=config.charset) as writer:
            copier = EntryCopier(writer, config.transformers, config.preserve_timestamps, on_entry)
            result = traverse(config, ContentVisitor(copier))
    except OSError as e:
        strategy.rollback()
        raise ZipIOError(f"Merge into {output} failed: {e}") from e
    except BaseException:
        strategy.rollback()
        raise

    logger.debug("Wrote %d entries to %s", result.delivered, output)
    return strategy.finish(result.stopped)


class Zips:
    """Collects changes to a ZIP archive and applies them in one run.

    Every builder method returns the builder. Each run (process(),
    iterate(), iterate_info()) works on a snapshot taken by build(), so a
    builder may be changed and run again.
    """

    def __init__(self, source: Optional[str | os.PathLike] = None):
        self._source = Path(source) if source is not None else None
        self._destination: Optional[Path] = None
        self._charset: Optional[str] = None
        self._preserve_timestamps = False
        self._changed_entries: list[EntrySource] = []
        self._removed_entries: set[str] = set()
        self._transformers: list[TransformerEntry] = []
        self._name_mapper: Optional[NameMapper] = None

    @classmethod
    def get(cls, source: str | os.PathLike) -> "Zips":
        """Start from an existing archive."""
        return cls(source)

    @classmethod
    def create(cls) -> "Zips":
        """Start a new archive; a destination must be set before process()."""
        return cls()

    def add_entry(self, entry: EntrySource) -> "Zips":
        """Add an entry, replacing any existing entry with the same name."""
        if not isinstance(entry, EntrySource):
            raise ZipConfigurationError(f"Not an entry source: {entry!r}")
        self._changed_entries.append(entry)
        return self

    def add_entries(self, entries: Iterable[EntrySource]) -> "Zips":
        for entry in entries:
            self.add_entry(entry)
        return self

    def add_file(
        self,
        path: str | os.PathLike,
        preserve_root: bool = False,
        file_filter: Optional[FileFilter] = None,
    ) -> "Zips":
        """Add a file, or every file below a directory.

        Args:
            path: File or directory on disk.
            preserve_root: Keep the directory's own name as the first path
                segment of the added entries.
            file_filter: Predicate selecting which files of a directory to
                add; None adds them all.
        """
        for name, file in list_files(path, file_filter=file_filter, preserve_root=preserve_root):
            self._changed_entries.append(FileSource(name, file))
        return self

    def remove_entry(self, path: str) -> "Zips":
        """Leave an existing entry, or a whole directory, out of the output."""
        self._removed_entries.add(path)
        return self

    def remove_entries(self, paths: Iterable[str]) -> "Zips":
        self._removed_entries.update(paths)
        return self

    def preserve_timestamps(self) -> "Zips":
        """Keep entry modification times instead of stamping the run's time."""
        return self.set_preserve_timestamps(True)

    def set_preserve_timestamps(self, preserve: bool) -> "Zips":
        self._preserve_timestamps = bool(preserve)
        return self

    def charset(self, charset: str) -> "Zips":
        """Codec for entry names and comments without the UTF-8 flag."""
        self._charset = check_charset(charset)
        return self

    def destination(self, path: str | os.PathLike) -> "Zips":
        """Write to 'path' instead of replacing the source archive."""
        self._destination = Path(path)
        return self

    def name_mapper(self, mapper: NameMapper) -> "Zips":
        """Rename entries; a mapper returning None drops the entry."""
        self._name_mapper = mapper
        return self

    def add_transformer(self, path: str, transformer: Transformer) -> "Zips":
        """Register a transformer for the output entry named 'path'.

        Only the first transformer registered for a path is used.
        """
        if not callable(transformer):
            raise ZipConfigurationError(f"Transformer for '{path}' is not callable: {transformer!r}")
        self._transformers.append(TransformerEntry(path, transformer))
        return self

    def build(self) -> MergeConfiguration:
        """Snapshot the current settings."""
        return MergeConfiguration(
            source=self._source,
            destination=self._destination,
            charset=self._charset,
            preserve_timestamps=self._preserve_timestamps,
            changed_entries=tuple(self._changed_entries),
            removed_entries=frozenset(self._removed_entries),
            transformers=tuple(self._transformers),
            name_mapper=self._name_mapper,
        )

    def process(self, on_entry: Optional[EntryHook] = None) -> CommitState:
        """Write the resulting archive.

        Returns:
            CommitState.COMMITTED when the output was written, or
            CommitState.ROLLED_BACK when 'on_entry' stopped an in-place run
            and the source was left unchanged.
        """
        return run_merge(self.build(), on_entry)

    def iterate(self, callback: EntryCallback) -> TraversalResult:
        """Call ``callback(stream, record)`` for every resulting entry."""
        return iterate_entries(self.build(), entry_callback=callback)

    def iterate_info(self, callback: InfoCallback) -> TraversalResult:
        """Call ``callback(record)`` for every resulting entry."""
        return iterate_entries(self.build(), info_callback=callback)

    def __repr__(self) -> str:
        return f"Zips(source={self._source}, destination={self._destination})"
