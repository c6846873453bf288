"""Tests for commit strategies."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from zipmerge.commit import CommitState, DirectCommit, InPlaceCommit, select_strategy
from zipmerge.config import MergeConfiguration
from zipmerge.errors import ZipError


def test_direct_commit_writes_to_destination(tmp_path: Path) -> None:
    strategy = DirectCommit(tmp_path / "out.zip")
    assert strategy.state is CommitState.START
    assert strategy.begin() == tmp_path / "out.zip"
    assert strategy.state is CommitState.BUILDING
    assert strategy.finish(stopped=True) is CommitState.COMMITTED


def test_in_place_commit_replaces_source(tmp_path: Path) -> None:
    source = tmp_path / "archive.zip"
    source.write_bytes(b"old")
    strategy = InPlaceCommit(source)

    temp = strategy.begin()
    assert temp.parent == tmp_path
    assert temp != source
    temp.write_bytes(b"new")

    assert strategy.commit() is CommitState.COMMITTED
    assert source.read_bytes() == b"new"
    assert not temp.exists()


def test_in_place_keeps_source_permissions(tmp_path: Path) -> None:
    source = tmp_path / "archive.zip"
    source.write_bytes(b"old")
    os.chmod(source, 0o640)
    strategy = InPlaceCommit(source)
    strategy.begin().write_bytes(b"new")
    strategy.commit()

    assert source.stat().st_mode & 0o777 == 0o640


def test_in_place_rollback_deletes_temp_file(tmp_path: Path) -> None:
    source = tmp_path / "archive.zip"
    source.write_bytes(b"old")
    strategy = InPlaceCommit(source)
    temp = strategy.begin()

    assert strategy.rollback() is CommitState.ROLLED_BACK
    assert not temp.exists()
    assert source.read_bytes() == b"old"


def test_in_place_stop_rolls_back(tmp_path: Path) -> None:
    source = tmp_path / "archive.zip"
    source.write_bytes(b"old")
    strategy = InPlaceCommit(source)
    strategy.begin().write_bytes(b"partial")

    assert strategy.finish(stopped=True) is CommitState.ROLLED_BACK
    assert source.read_bytes() == b"old"


def test_commit_before_begin_raises(tmp_path: Path) -> None:
    with pytest.raises(ZipError):
        DirectCommit(tmp_path / "out.zip").commit()


def test_select_strategy(tmp_path: Path) -> None:
    source = tmp_path / "a.zip"
    source.write_bytes(b"")

    assert isinstance(select_strategy(MergeConfiguration(source=source)), InPlaceCommit)
    assert isinstance(select_strategy(MergeConfiguration(source=source, destination=source)), InPlaceCommit)
    assert isinstance(select_strategy(MergeConfiguration(source=source, destination=tmp_path / "b.zip")), DirectCommit)
    assert isinstance(select_strategy(MergeConfiguration(destination=tmp_path / "b.zip")), DirectCommit)
