"""Pytest configuration and fixtures."""

from __future__ import annotations

import sys
import zipfile
from pathlib import Path

import pytest

# Add repo root to path (for 'zipmerge' imports without installing)
repo_root = Path(__file__).parent.parent
sys.path.insert(0, str(repo_root))

OLD_TIME = (1999, 12, 31, 23, 58, 0)


@pytest.fixture
def make_zip(tmp_path):
    """Factory building archives with the standard library's zipfile.

    Returns:
        Function ``(name, entries, compression=ZIP_DEFLATED) -> Path`` where
        'entries' is a list of ``(entry name, bytes)`` pairs, written in
        order with the same old timestamp. Duplicate names are kept.
    """

    def _make(name: str, entries, compression: int = zipfile.ZIP_DEFLATED) -> Path:
        path = tmp_path / name
        with zipfile.ZipFile(path, "w") as zf:
            for entry_name, data in entries:
                info = zipfile.ZipInfo(entry_name, date_time=OLD_TIME)
                info.compress_type = compression
                zf.writestr(info, data)
        return path

    return _make


@pytest.fixture
def zip_entries():
    """Read an archive back with zipfile, checking every CRC.

    Returns:
        Function ``(path) -> list[(name, bytes)]`` in central directory order.
    """

    def _read(path: Path) -> list[tuple[str, bytes]]:
        with zipfile.ZipFile(path) as zf:
            assert zf.testzip() is None
            return [(info.filename, zf.read(info)) for info in zf.infolist()]

    return _read


@pytest.fixture
def sample_zip(make_zip):
    """Archive with a file, a directory tree and a sibling directory.

    Returns:
        Path to sample.zip
    """
    return make_zip(
        "sample.zip",
        [
            ("a.txt", b"alpha"),
            ("docs/", b""),
            ("docs/readme.md", b"# readme"),
            ("docs/sub/deep.txt", b"deep"),
            ("docs2/other.txt", b"other"),
            ("lib/core.bin", bytes(range(256)) * 64),
        ],
    )
