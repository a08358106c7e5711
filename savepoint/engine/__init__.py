"""
Engine package for Savepoint.

This module provides the value types shared by the backup engine and the
interface the engine uses to talk back to its host application.
"""

import abc
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

logger = logging.getLogger("savepoint.engine")


@dataclass(frozen=True)
class BackupVersion:
    """A timestamped snapshot of a tracked file."""

    tracked_path: str
    time: datetime

    # Physical location under the backup root
    path: Path


class HostBridge(abc.ABC):
    """Capabilities of the host application used after a restore."""

    @abc.abstractmethod
    def reimport(self, tracked_path: str) -> None:
        """
        Tell the host that the file at *tracked_path* changed on disk.

        Args:
            tracked_path: Project-relative path that was restored
        """
        pass

    @abc.abstractmethod
    def is_active_document(self, tracked_path: str) -> bool:
        """Return True if *tracked_path* is the document open in the host."""
        pass

    @abc.abstractmethod
    def reopen(self, tracked_path: str) -> None:
        """Re-open *tracked_path* from disk, discarding in-memory state."""
        pass


class NullHost(HostBridge):
    """Host bridge for standalone use: nothing to refresh, nothing open."""

    def reimport(self, tracked_path: str) -> None:
        logger.debug(f"No host to reimport '{tracked_path}'")

    def is_active_document(self, tracked_path: str) -> bool:
        return False

    def reopen(self, tracked_path: str) -> None:
        pass
