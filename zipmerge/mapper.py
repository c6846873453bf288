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
Entry name mappers.

A name mapper is any callable taking an entry name and returning the name
to write it under, or None to leave the entry out. It is applied to every
entry, added or pre-existing, before it reaches the output.
"""

from typing import Callable, Optional

NameMapper = Callable[[str], Optional[str]]


def chain(*mappers: NameMapper) -> NameMapper:
    """Compose mappers left to right; the first None excludes the entry."""

    def mapped(name: str) -> Optional[str]:
        for mapper in mappers:
            name = mapper(name)
            if name is None:
                return None
        return name

    return mapped


def add_prefix(prefix: str) -> NameMapper:
    """Move every entry under 'prefix' (e.g. "docs/")."""
    return lambda name: prefix + name


def strip_prefix(prefix: str) -> NameMapper:
    """Keep only entries under 'prefix' and remove it from their names.

    The entry named exactly 'prefix' (the directory itself) is dropped too.
    """

    def mapped(name: str) -> Optional[str]:
        if not name.startswith(prefix) or name == prefix:
            return None
        return name[len(prefix) :]

    return mapped


def resolve(mapper: Optional[NameMapper], name: str) -> Optional[str]:
    """Apply an optional mapper to a name."""
    if mapper is None:
        return name
    return mapper(name)
