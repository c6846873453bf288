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
Commit strategies.

A strategy decides where a merge run writes its output and what happens
to that output once the run ends:

- DirectCommit writes straight to the destination. A failed run leaves
  whatever was written there.
- InPlaceCommit writes to a temporary file next to the source archive and
  replaces the source with it only after a complete, successful run.
"""

import logging
import os
import shutil
import tempfile
from abc import ABC, abstractmethod
from enum import Enum
from pathlib import Path

from .config import MergeConfiguration
from .constants import TEMP_FILE_PREFIX, TEMP_FILE_SUFFIX
from .errors import ZipError, ZipIOError
from .utils import delete_quietly

logger = logging.getLogger(__name__)


class CommitState(Enum):
    START = "start"
    BUILDING = "building"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


class CommitStrategy(ABC):
    """Lifecycle of one run's output: begin(), then commit() or rollback()."""

    def __init__(self):
        self.state = CommitState.START

    def _transition(self, expected: CommitState, new: CommitState) -> None:
        if self.state is not expected:
            raise ZipError(f"Cannot move from {self.state.name} to {new.name}")
        self.state = new

    @abstractmethod
    def _prepare(self) -> Path:
        """Return the file the run writes to."""

    def _apply(self) -> None:
        """Make the written output final."""

    def _discard(self) -> None:
        """Clean up after a failed or stopped run."""

    def begin(self) -> Path:
        """Start the run and return the path to write the archive to."""
        self._transition(CommitState.START, CommitState.BUILDING)
        return self._prepare()

    def commit(self) -> CommitState:
        self._transition(CommitState.BUILDING, CommitState.COMMITTED)
        try:
            self._apply()
        except BaseException:
            self.state = CommitState.ROLLED_BACK
            self._discard()
            raise
        return self.state

    def rollback(self) -> CommitState:
        self._transition(CommitState.BUILDING, CommitState.ROLLED_BACK)
        self._discard()
        return self.state

    def finish(self, stopped: bool) -> CommitState:
        """Commit a run that ended normally or was stopped by its callback."""
        return self.commit()


class DirectCommit(CommitStrategy):
    """Write the output straight to its destination."""

    def __init__(self, destination: str | os.PathLike):
        super().__init__()
        self.destination = Path(destination)

    def _prepare(self) -> Path:
        logger.debug("Writing directly to %s", self.destination)
        return self.destination

    def _discard(self) -> None:
        logger.debug("Leaving partial output at %s", self.destination)


class InPlaceCommit(CommitStrategy):
    """Rebuild the source archive in a temporary file, then swap it in.

    The temporary file lives in the source's directory so the final
    os.replace() stays on one filesystem. A run stopped by its callback is
    rolled back, leaving the source untouched.
    """

    def __init__(self, source: str | os.PathLike):
        super().__init__()
        self.source = Path(source)
        self.temp_path: Path | None = None

    def _prepare(self) -> Path:
        try:
            fd, name = tempfile.mkstemp(prefix=TEMP_FILE_PREFIX, suffix=TEMP_FILE_SUFFIX, dir=self.source.parent)
        except OSError as e:
            raise ZipIOError(f"Cannot create temporary file next to {self.source}: {e}") from e
        os.close(fd)
        self.temp_path = Path(name)
        logger.debug("Rebuilding %s in %s", self.source, self.temp_path)
        return self.temp_path

    def _apply(self) -> None:
        try:
            shutil.copymode(self.source, self.temp_path)
        except OSError as e:
            logger.warning("Could not copy permissions of %s: %s", self.source, e)
        try:
            os.replace(self.temp_path, self.source)
        except OSError as e:
            raise ZipIOError(f"Cannot replace {self.source}: {e}") from e
        logger.info("Replaced %s", self.source)
        self.temp_path = None

    def _discard(self) -> None:
        if self.temp_path is not None and delete_quietly(self.temp_path):
            logger.debug("Discarded %s", self.temp_path)
            self.temp_path = None

    def finish(self, stopped: bool) -> CommitState:
        if stopped:
            logger.info("Run stopped early, keeping %s unchanged", self.source)
            return self.rollback()
        return self.commit()


def select_strategy(config: MergeConfiguration) -> CommitStrategy:
    """Pick in-place or direct output for a validated configuration."""
    if config.in_place and config.source is not None:
        return InPlaceCommit(config.source)
    return DirectCommit(config.destination)
