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
Copying planned entries into the output archive.
"""

import logging
from datetime import datetime
from typing import BinaryIO, Callable, Iterable, Optional

from .engine import IterationControl
from .entry import EntryRecord
from .transform import TransformerEntry, TransformerRegistry
from .writer import ZipWriter

logger = logging.getLogger(__name__)

EntryHook = Callable[[EntryRecord], Optional[IterationControl]]


class EntryCopier:
    """Entry callback that writes each delivered entry to a ZipWriter.

    An entry with a live transformer for its output name is handed to that
    transformer, which is then dropped from the run's registry. Every
    other entry is copied unchanged under its output name.

    Args:
        writer: Output archive.
        transformers: Registered transformers of the run.
        preserve_timestamps: Keep entry times instead of stamping "now".
        on_entry: Called with each delivered record after it is written;
            returning IterationControl.STOP ends the run.
    """

    def __init__(
        self,
        writer: ZipWriter,
        transformers: Iterable[TransformerEntry] = (),
        preserve_timestamps: bool = False,
        on_entry: Optional[EntryHook] = None,
    ):
        self._writer = writer
        self._registry = TransformerRegistry(transformers)
        self._preserve_timestamps = preserve_timestamps
        self._on_entry = on_entry

    def __call__(self, stream: BinaryIO, record: EntryRecord) -> Optional[IterationControl]:
        transformer = self._registry.pop(record.name)
        if transformer is None:
            self.copy_entry(stream, record)
        else:
            logger.debug("Transforming entry %s", record.name)
            transformer(stream, record, self._writer)

        if self._on_entry is not None:
            return self._on_entry(record)
        return None

    def copy_entry(self, stream: BinaryIO, record: EntryRecord) -> None:
        """Write 'record' with the bytes of 'stream' to the output unchanged."""
        if self._preserve_timestamps and record.mod_time is not None:
            mod_time = record.mod_time
        else:
            mod_time = datetime.now()
        self._writer.add_stream(record.copy_for_output(mod_time), stream)
