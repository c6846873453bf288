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
Listing files on disk as archive entries.

Turns a file or a directory tree into ``(archive path, file)`` pairs,
with archive paths relative to the tree's root and '/'-separated.
"""

import os
from pathlib import Path
from typing import Callable, Iterator, Optional

from .constants import PATH_SEPARATOR
from .errors import ZipConfigurationError

FileFilter = Callable[[Path], bool]


def relative_path(parent: str | os.PathLike, file: str | os.PathLike) -> str:
    """Return the archive path of 'file' relative to 'parent'.

    Raises:
        ZipConfigurationError: If 'file' is not beneath 'parent'.
    """
    parent, file = Path(parent), Path(file)
    try:
        relative = file.relative_to(parent)
    except ValueError as e:
        raise ZipConfigurationError(f"File {file} is not a child of {parent}") from e
    return relative.as_posix()


def list_files(
    root: str | os.PathLike,
    file_filter: Optional[FileFilter] = None,
    preserve_root: bool = False,
) -> Iterator[tuple[str, Path]]:
    """Lazily yield ``(archive path, file)`` for every file under 'root'.

    Files are visited recursively in sorted order. A plain file as 'root'
    yields itself under its own name.

    Args:
        root: File or directory to list.
        file_filter: Predicate a file must satisfy to be listed; None
            accepts every file.
        preserve_root: Prefix archive paths with the root directory's
            name ("dir/sub/file.txt" instead of "sub/file.txt").
    """
    root = Path(root)
    if not root.is_dir():
        yield root.name, root
        return

    for directory, dirnames, filenames in os.walk(root):
        dirnames.sort()
        for filename in sorted(filenames):
            file = Path(directory) / filename
            if file_filter is not None and not file_filter(file):
                continue
            entry_path = relative_path(root, file)
            if preserve_root:
                entry_path = root.name + PATH_SEPARATOR + entry_path
            yield entry_path.lstrip(PATH_SEPARATOR), file
