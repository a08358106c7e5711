"""
Restoring a backup version into the live location.

The content being replaced is itself backed up first, so restoring is never
destructive: the displaced file becomes a new version keyed by its own
modification time.

The swap is built from two steps. The live file is copied into the backup
root while it is still in place. The copy is independent of the live file, so
in-place writes after a failed swap cannot reach it. The chosen version is
then copied to a temporary file beside the live file and moved over it with
``os.replace``, which is atomic within one filesystem on both POSIX and
Windows. Observers see either the old content or the new, never a missing or
partial file. A crash between the two steps leaves the old content live plus
an extra version of it.
"""

import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Optional

from savepoint.engine import BackupVersion, HostBridge, NullHost
from savepoint.engine.store import BackupStore
from savepoint.errors import BackupNotFound, NotUnderTrackedRoot, RestoreFailed
from savepoint.timestamp import modification_time

logger = logging.getLogger("savepoint.engine.restore")


class RestoreEngine:
    """Swaps a chosen backup version back into the live location."""

    def __init__(self, store: BackupStore, host: Optional[HostBridge] = None):
        """
        Initialize the restore engine.

        Args:
            store: Store owning the backup root
            host: Host application to notify after a restore
        """
        self.store = store
        self.mapper = store.mapper
        self.host = host or NullHost()

    def restore(
        self, tracked_path: str, version: BackupVersion
    ) -> Optional[BackupVersion]:
        """
        Replace the live content of *tracked_path* with *version*.

        Args:
            tracked_path: Project-relative path to restore
            version: Version to restore; it is copied, not consumed

        Returns:
            The version holding the displaced content, or None when there was
            no live file or its content was already backed up

        Raises:
            NotUnderTrackedRoot: If *tracked_path* is outside the tracked root
            BackupNotFound: If the version file no longer exists
            RestoreFailed: If the swap fails; the live file is left as the
                failed operation reached it
        """
        live = self.mapper.live_path(tracked_path)
        if live is None:
            raise NotUnderTrackedRoot(tracked_path)
        if not version.path.is_file():
            raise BackupNotFound(version.path)

        displaced = self._preserve_live(tracked_path, live)
        self._swap(version.path, live)

        self.store.evict(tracked_path)
        logger.info(
            f"Restored '{tracked_path}' from '{self.mapper.short_path(version.path)}'"
        )

        self.host.reimport(tracked_path)
        if self.host.is_active_document(tracked_path):
            logger.debug(f"Re-opening active document '{tracked_path}'")
            self.host.reopen(tracked_path)

        return displaced

    def _preserve_live(self, tracked_path: str, live: Path) -> Optional[BackupVersion]:
        try:
            displaced_time = modification_time(live)
        except FileNotFoundError:
            return None
        if not live.is_file():
            raise RestoreFailed(f"'{tracked_path}' is not a regular file", live)
        return self.store.capture(tracked_path, live, displaced_time)

    def _swap(self, backup_path: Path, live: Path) -> None:
        staging = None
        try:
            fd, staging = tempfile.mkstemp(
                prefix=f".{live.name}.", suffix=".restore", dir=live.parent
            )
            os.close(fd)
            shutil.copy2(backup_path, staging)
            os.replace(staging, live)
        except FileNotFoundError as e:
            if not backup_path.exists():
                raise BackupNotFound(backup_path) from e
            raise RestoreFailed(
                f"Failed to restore '{self.mapper.short_path(live)}', "
                f"live file state unconfirmed: {e}",
                live,
            ) from e
        except OSError as e:
            raise RestoreFailed(
                f"Failed to restore '{self.mapper.short_path(live)}', "
                f"live file state unconfirmed: {e}",
                live,
            ) from e
        finally:
            if staging is not None and os.path.exists(staging):
                os.unlink(staging)
