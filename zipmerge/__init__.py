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
ZIPMERGE - Pure Python ZIP archive merging.

Adds, replaces, removes, renames and transforms entries of ZIP and ZIP64
archives in a single streaming pass, either into a new archive or in place,
using only Python standard library modules.
"""

import logging

from .commit import CommitState
from .engine import IterationControl
from .entry import ByteSource, EntryRecord, EntrySource, FileSource, StreamSource
from .errors import (
    ZipConfigurationError,
    ZipCrcError,
    ZipError,
    ZipFormatError,
    ZipIOError,
    ZipUnsupportedFeature,
)
from .reader import ZipReader
from .transform import ByteTransformer, EntryTransformer, StreamTransformer, TextTransformer
from .writer import ZipWriter
from .zips import Zips

__all__ = [
    "Zips",
    "ZipReader",
    "ZipWriter",
    "EntryRecord",
    "EntrySource",
    "FileSource",
    "ByteSource",
    "StreamSource",
    "EntryTransformer",
    "ByteTransformer",
    "TextTransformer",
    "StreamTransformer",
    "IterationControl",
    "CommitState",
    "ZipError",
    "ZipFormatError",
    "ZipUnsupportedFeature",
    "ZipCrcError",
    "ZipConfigurationError",
    "ZipIOError",
]

__version__ = "0.1.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())
