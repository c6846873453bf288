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
Merge configuration.

MergeConfiguration is the immutable description of one merge or
iteration run. It is normally produced by the Zips builder, which takes a
fresh snapshot at the start of every run.
"""

import codecs
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .entry import EntrySource
from .errors import ZipConfigurationError
from .mapper import NameMapper
from .transform import TransformerEntry


def check_charset(charset: Optional[str]) -> Optional[str]:
    """Validate a codec name, returning it unchanged.

    Raises:
        ZipConfigurationError: If Python knows no such codec.
    """
    if charset is None:
        return None
    try:
        codecs.lookup(charset)
    except LookupError as e:
        raise ZipConfigurationError(f"Unknown charset: {charset}") from e
    return charset


@dataclass(frozen=True)
class MergeConfiguration:
    """Everything a merge or iteration run needs to know.

    Attributes:
        source: Existing archive to read, None to build from scratch.
        destination: Archive to write, None to replace the source.
        charset: Codec for entry names and comments, None for UTF-8.
        preserve_timestamps: Keep entry times instead of stamping "now".
        changed_entries: Entries to add or replace, first match wins.
        removed_entries: Paths of existing entries to leave out.
        transformers: Transformers by output path, first match wins.
        name_mapper: Rename/filter applied to every entry.
    """

    source: Optional[Path] = None
    destination: Optional[Path] = None
    charset: Optional[str] = None
    preserve_timestamps: bool = False
    changed_entries: tuple[EntrySource, ...] = ()
    removed_entries: frozenset[str] = frozenset()
    transformers: tuple[TransformerEntry, ...] = ()
    name_mapper: Optional[NameMapper] = None

    @property
    def in_place(self) -> bool:
        """True when the run replaces its own source archive."""
        if self.destination is None:
            return True
        if self.source is None:
            return False
        try:
            return os.path.samefile(self.source, self.destination)
        except OSError:
            return Path(os.path.abspath(self.source)) == Path(os.path.abspath(self.destination))

    def validate(self) -> None:
        """Raise ZipConfigurationError if the configuration cannot run."""
        if self.source is None and self.destination is None:
            raise ZipConfigurationError("Source and destination shouldn't be None together")
        check_charset(self.charset)
