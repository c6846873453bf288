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
Merge planning and traversal.

The planner walks two ordered sources and yields every entry that belongs
in the output exactly once:

1. Changed and added entries, in the order they were configured.
2. Entries of the source archive, in central directory order, except the
   removed ones.

Each entry's name goes through the name mapper first; an entry mapped to
None is dropped. The first entry to claim an output name wins, so an added
entry always shadows an existing one of the same name, and an earlier
existing entry shadows a later duplicate.

traverse() drives the plan against a visitor and stops early when the
visitor's callback returns IterationControl.STOP.
"""

import logging
from contextlib import closing
from dataclasses import dataclass
from enum import Enum
from functools import partial
from typing import BinaryIO, Callable, Iterable, Iterator, Optional, Union

from .config import MergeConfiguration, check_charset
from .constants import PATH_SEPARATOR
from .entry import EntryRecord
from .errors import ZipConfigurationError
from .mapper import resolve
from .reader import ZipReader
from .structures import ZipEntry

logger = logging.getLogger(__name__)


class IterationControl(Enum):
    """Returned by iteration callbacks; None counts as CONTINUE."""

    CONTINUE = "continue"
    STOP = "stop"


EntryCallback = Callable[[BinaryIO, EntryRecord], Optional[IterationControl]]
InfoCallback = Callable[[EntryRecord], Optional[IterationControl]]


@dataclass(frozen=True)
class ContentVisitor:
    """Visit entries together with an open stream of their content."""

    callback: EntryCallback


@dataclass(frozen=True)
class InfoVisitor:
    """Visit entry metadata only; content streams are never opened."""

    callback: InfoCallback


Visitor = Union[ContentVisitor, InfoVisitor]


@dataclass(frozen=True)
class PlannedEntry:
    """One output entry: its final record and how to open its content."""

    record: EntryRecord
    open_stream: Callable[[], BinaryIO]
    existing: bool


@dataclass(frozen=True)
class TraversalResult:
    delivered: int
    stopped: bool


def make_visitor(
    entry_callback: Optional[EntryCallback] = None,
    info_callback: Optional[InfoCallback] = None,
) -> Visitor:
    """Build the visitor for an iteration request.

    Raises:
        ZipConfigurationError: Unless exactly one callback is given.
    """
    if (entry_callback is None) == (info_callback is None):
        raise ZipConfigurationError("Exactly one of entry_callback and info_callback must be given")
    if entry_callback is not None:
        return ContentVisitor(entry_callback)
    return InfoVisitor(info_callback)


def record_from_zip_entry(entry: ZipEntry) -> EntryRecord:
    """Describe an entry of an existing archive as an EntryRecord."""
    return EntryRecord(
        name=entry.name,
        mod_time=entry.date_time,
        crc32=entry.crc32,
        size=entry.uncompressed_size,
        compressed_size=entry.compressed_size,
        method=entry.compression_method,
        extra=entry.extra_field or None,
        comment=entry.comment or None,
    )


def removed_directories(removed: Iterable[str], names: Iterable[str]) -> frozenset[str]:
    """Find which removed paths denote directories of the archive.

    A removed path is a directory when the archive holds a directory entry
    for it, written with or without the trailing '/' in the removed path.
    Entries under a path that has no directory entry of its own are not
    matched.

    Returns:
        Directory prefixes, each ending in '/'.
    """
    candidates = {path if path.endswith(PATH_SEPARATOR) else path + PATH_SEPARATOR for path in removed}
    if not candidates:
        return frozenset()
    return frozenset(name for name in names if name in candidates)


def _is_removed(name: str, removed: frozenset[str], directories: frozenset[str]) -> bool:
    if name in removed:
        return True
    return any(name.startswith(prefix) for prefix in directories)


def plan_entries(config: MergeConfiguration) -> Iterator[PlannedEntry]:
    """Lazily yield the output entries of a run, in output order.

    The generator owns the source archive's reader; closing the generator
    early closes the reader too.
    """
    visited: dict[str, None] = {}

    logger.debug("Planning %d changed entries", len(config.changed_entries))
    for source in config.changed_entries:
        record = source.record()
        name = resolve(config.name_mapper, record.name)
        if name is None:
            logger.debug("Name mapper excluded added entry %s", record.name)
            continue
        if name in visited:
            logger.debug("Skipping duplicate added entry %s", name)
            continue
        visited[name] = None
        yield PlannedEntry(record.renamed(name), source.open_stream, existing=False)

    if config.source is None:
        return

    with ZipReader(config.source, charset=config.charset) as reader:
        entries = reader.entries()
        directories = removed_directories(config.removed_entries, (entry.name for entry in entries))
        logger.debug("Planning %d existing entries from %s", len(entries), config.source)

        for entry in entries:
            if _is_removed(entry.name, config.removed_entries, directories):
                logger.debug("Removing existing entry %s", entry.name)
                continue
            name = resolve(config.name_mapper, entry.name)
            if name is None:
                logger.debug("Name mapper excluded existing entry %s", entry.name)
                continue
            if name in visited:
                logger.debug("Existing entry %s is shadowed", entry.name)
                continue
            visited[name] = None
            record = record_from_zip_entry(entry).renamed(name)
            yield PlannedEntry(record, partial(reader.open, entry), existing=True)


def traverse(config: MergeConfiguration, visitor: Visitor) -> TraversalResult:
    """Deliver every planned entry to the visitor.

    Content streams are opened right before the callback and closed right
    after it, whatever the callback does.
    """
    delivered = 0
    with closing(plan_entries(config)) as planned:
        for item in planned:
            if isinstance(visitor, InfoVisitor):
                control = visitor.callback(item.record)
            else:
                with item.open_stream() as stream:
                    control = visitor.callback(stream, item.record)
            delivered += 1
            if control is IterationControl.STOP:
                logger.debug("Traversal stopped after %d entries", delivered)
                return TraversalResult(delivered, stopped=True)
    return TraversalResult(delivered, stopped=False)


def iterate_entries(
    config: MergeConfiguration,
    entry_callback: Optional[EntryCallback] = None,
    info_callback: Optional[InfoCallback] = None,
) -> TraversalResult:
    """Walk the merged view of a configuration without writing anything.

    Exactly one of the callbacks must be given. 'entry_callback' receives
    ``(stream, record)``; 'info_callback' receives only the record.
    """
    visitor = make_visitor(entry_callback, info_callback)
    check_charset(config.charset)
    return traverse(config, visitor)
