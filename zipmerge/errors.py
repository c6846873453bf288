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
Exception classes for zipmerge.

Every error raised by the library derives from ZipError, so callers can
catch a single category. Archive structure problems, codec failures,
misconfiguration and file system failures each have their own subclass.
"""


class ZipError(Exception):
    """Base exception class for all zipmerge errors."""

    pass


class ZipFormatError(ZipError):
    """Raised when an archive has an invalid structure.

    This exception is raised when:
    - Required signatures are missing or incorrect
    - Offsets or sizes point outside the file
    - An entry name cannot be encoded or is invalid
    - Bytes written for an entry disagree with its declared size
    """

    pass


class ZipUnsupportedFeature(ZipError):
    """Raised when an archive uses a feature the library does not handle.

    Encrypted entries and compression methods other than stored and
    deflated fall in this category.
    """

    pass


class ZipCrcError(ZipError):
    """Raised when the CRC32 of entry data does not match the expected value."""

    pass


class ZipCompressionError(ZipError):
    """Raised when compressing or decompressing entry data fails."""

    pass


class ZipConfigurationError(ZipError, ValueError):
    """Raised when a merge or iteration request is configured inconsistently.

    This exception is raised before any I/O happens, when:
    - Neither a source nor a destination archive is given
    - Both or neither of the iteration callbacks are supplied
    - A file handed to the directory lister is not beneath its root
    - An unknown charset is requested
    """

    pass


class ZipIOError(ZipError):
    """Raised when reading, writing, moving or deleting a file fails.

    The underlying OSError is always available as ``__cause__``.
    """

    pass
