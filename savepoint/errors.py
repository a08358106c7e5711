"""
Exception types raised by Savepoint.

Listing and saving never raise for paths outside the tracked root; those
operations quietly do nothing instead. The exceptions below cover the
failures a caller has to know about.
"""

from pathlib import Path
from typing import Optional


class SavepointError(Exception):
    """Base class for all Savepoint errors."""


class NotUnderTrackedRoot(SavepointError, ValueError):
    """A restore was requested for a path outside the tracked root."""

    def __init__(self, tracked_path: str):
        super().__init__(f"'{tracked_path}' is not under the tracked root")
        self.tracked_path = tracked_path


class MalformedTimestamp(SavepointError, ValueError):
    """A backup file name does not end in a valid timestamp token."""


class BackupNotFound(SavepointError, FileNotFoundError):
    """The backup version chosen for a restore no longer exists."""

    def __init__(self, backup_path: Path):
        super().__init__(f"backup '{backup_path}' no longer exists")
        self.backup_path = backup_path


class BackupIOError(SavepointError, OSError):
    """A copy, rename or replace in the backup root failed."""

    def __init__(self, message: str, path: Optional[Path] = None):
        super().__init__(message)
        self.path = path


class RestoreFailed(BackupIOError):
    """
    Swapping a backup into the live location failed.

    The live file is left exactly as the failed operation reached it, so its
    state must be treated as unconfirmed.
    """

    live_state_confirmed = False
