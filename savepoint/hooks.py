"""
Lifecycle hooks called by the host application.

The host calls :meth:`LifecycleHooks.on_before_save` just before it writes
files and :meth:`LifecycleHooks.on_before_move` just before it renames one.
Neither hook ever vetoes or alters the host's operation.
"""

import logging
from typing import Iterable, List, Optional

from savepoint.config import Preferences
from savepoint.engine.move import MoveSynchronizer
from savepoint.engine.store import BackupStore
from savepoint.errors import BackupIOError

logger = logging.getLogger("savepoint.hooks")


class LifecycleHooks:
    """Runs the backup engine from host save and move events."""

    def __init__(
        self,
        store: BackupStore,
        preferences: Optional[Preferences] = None,
    ):
        self.store = store
        self.preferences = preferences or store.preferences
        self.mover = MoveSynchronizer(store)

    def companions(self, tracked_path: str) -> List[str]:
        """
        Return the companion (sidecar) paths of *tracked_path*. A companion
        has no companions of its own.
        """
        suffixes = self.preferences.companion_suffixes
        if any(tracked_path.endswith(suffix) for suffix in suffixes):
            return []
        return [tracked_path + suffix for suffix in suffixes]

    def on_before_save(self, paths: Iterable[str]) -> List[str]:
        """
        Back up each path about to be saved, plus its companions.

        Every path is attempted even if an earlier one fails; the first
        failure is raised once all have been tried.

        Returns:
            The paths, unchanged
        """
        paths = list(paths)
        if not self.preferences.enabled:
            return paths

        pending = set(paths)
        first_error: Optional[BackupIOError] = None
        for path in paths:
            targets = [path] + [c for c in self.companions(path) if c not in pending]
            for target in targets:
                try:
                    self.store.save(target)
                except BackupIOError as e:
                    logger.error(f"Backup of '{target}' failed: {e}")
                    if first_error is None:
                        first_error = e

        if first_error is not None:
            raise first_error
        return paths

    def on_before_move(self, old_path: str, new_path: str) -> bool:
        """
        Carry the backup history of *old_path* (and its companions) over to
        *new_path*. Failures are logged and never stop the move.

        Returns:
            Always True; the move is never vetoed
        """
        if not self.preferences.enabled:
            return True

        moves = [(old_path, new_path)] + [
            (companion, new_path + companion[len(old_path):])
            for companion in self.companions(old_path)
        ]
        for source, target in moves:
            try:
                self.mover.move(source, target)
            except BackupIOError as e:
                logger.error(f"Moving the backups of '{source}' failed: {e}")
        return True
