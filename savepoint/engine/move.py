"""
Keeps backup history attached to a file when it is renamed or moved.
"""

import logging
from typing import List

from savepoint.engine import BackupVersion
from savepoint.engine.store import BackupStore

logger = logging.getLogger("savepoint.engine.move")


class MoveSynchronizer:
    """Relocates the backup history of a tracked path when it moves."""

    def __init__(self, store: BackupStore):
        self.store = store
        self.mapper = store.mapper

    def move(self, old_path: str, new_path: str) -> List[BackupVersion]:
        """
        Move every version of *old_path* into the history of *new_path*.

        Versions are renamed, not copied, and keep their timestamps. When
        *old_path* is a live directory, the history of every file beneath it
        moves along. Retention is enforced on the destination afterwards.

        Args:
            old_path: Tracked path before the move
            new_path: Tracked path after the move

        Returns:
            The relocated versions

        Raises:
            BackupIOError: If renaming a version fails; versions moved before
                the failure stay moved
        """
        old_stem = self.mapper.backup_stem(old_path)
        if old_stem is None or old_path == new_path:
            return []
        if not self.mapper.is_tracked(new_path):
            logger.warning(
                f"'{new_path}' is outside the tracked root, "
                f"leaving the backups of '{old_path}' in place"
            )
            return []

        moves = [(v, new_path) for v in self.store.list_versions(old_path)]
        live = self.mapper.live_path(old_path)
        # Called before the host renames, so the live path still exists
        if live is not None and live.is_dir():
            for version in self.store.list_tree(old_path):
                suffix = version.tracked_path[len(old_path):]
                moves.append((version, new_path + suffix))

        moved: List[BackupVersion] = []
        for version, target in moves:
            moved.append(self.store.relocate(version, target))

        if not moved:
            return moved

        logger.info(
            f"Moved {len(moved)} backup(s) of '{old_path}' to '{new_path}'"
        )
        for target in sorted({version.tracked_path for version in moved}):
            self.store.evict(target)

        try:
            self.store.prune_empty_dirs(old_stem)
        except OSError as e:
            logger.warning(f"Could not remove empty backup directories: {e}")

        return moved
