"""
Backup store for Savepoint.

The store owns every file under the backup root: it creates versions when a
tracked file is saved, enumerates them, evicts the ones the retention policy
no longer wants and hands out the primitives the move and restore code use.
"""

import logging
import os
import shutil
import tempfile
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from savepoint.config import Preferences
from savepoint.engine import BackupVersion
from savepoint.errors import BackupIOError, NotUnderTrackedRoot
from savepoint.paths import PathMapper
from savepoint.retention import RetentionEvaluator, newest_first
from savepoint.timestamp import (
    TOKEN_OPEN,
    format_timestamp,
    split_version_name,
    truncate,
)

logger = logging.getLogger("savepoint.engine.store")


class BackupStore:
    """Lists, creates and evicts backup versions of tracked files."""

    def __init__(self, mapper: PathMapper, preferences: Optional[Preferences] = None):
        """
        Initialize the store.

        Args:
            mapper: Path mapping between the tracked and backup roots
            preferences: Source of the retention policy, read on every
                eviction through its cache
        """
        self.mapper = mapper
        self.preferences = preferences or Preferences()

    # ------------------------------------------------------------------
    # Enumeration
    # ------------------------------------------------------------------

    def version_path(self, tracked_path: str, time: datetime) -> Optional[Path]:
        """Return where the version of *tracked_path* at *time* is stored."""
        stem = self.mapper.backup_stem(tracked_path)
        if stem is None:
            return None
        return stem.with_name(stem.name + format_timestamp(time))

    def list_versions(self, tracked_path: Optional[str]) -> List[BackupVersion]:
        """
        List the versions of *tracked_path*, newest first.

        Returns an empty list for paths outside the tracked root and when the
        backup directory does not exist. Files with malformed timestamps are
        skipped, as are files that disappear while listing.
        """
        stem = self.mapper.backup_stem(tracked_path)
        if tracked_path is None or stem is None:
            return []
        return newest_first(self._scan(tracked_path, stem))

    def _scan(self, tracked_path: str, stem: Path) -> List[BackupVersion]:
        prefix = stem.name + TOKEN_OPEN
        versions: List[BackupVersion] = []
        try:
            with os.scandir(stem.parent) as entries:
                for entry in entries:
                    if not entry.name.startswith(prefix):
                        continue
                    split = split_version_name(entry.name)
                    if split is None or split[0] != stem.name:
                        logger.debug(f"Skipping malformed backup name '{entry.name}'")
                        continue
                    try:
                        if not entry.is_file():
                            continue
                    except OSError:
                        continue
                    versions.append(BackupVersion(tracked_path, split[1], Path(entry.path)))
        except (FileNotFoundError, NotADirectoryError):
            return []
        return versions

    def list_tree(self, tracked_dir: str) -> List[BackupVersion]:
        """
        List the versions of every file beneath the tracked directory
        *tracked_dir*. Returns an empty list when it has no backup directory.
        """
        stem = self.mapper.backup_stem(tracked_dir)
        if stem is None or not stem.is_dir():
            return []

        versions: List[BackupVersion] = []
        for dirpath, _, filenames in os.walk(stem):
            for filename in filenames:
                split = split_version_name(filename)
                if split is None or not split[0]:
                    continue
                path = Path(dirpath) / filename
                tracked_path = self.mapper.tracked_path_for(path)
                if tracked_path is None:
                    continue
                versions.append(BackupVersion(tracked_path, split[1], path))
        return versions

    def find_version(
        self, tracked_path: str, time: datetime
    ) -> Optional[BackupVersion]:
        """Return the version of *tracked_path* taken at *time*, if any."""
        time = truncate(time)
        for version in self.list_versions(tracked_path):
            if version.time == time:
                return version
        return None

    def can_restore(self, tracked_path: Optional[str]) -> bool:
        """Return True when *tracked_path* has at least one version."""
        return self.mapper.is_tracked(tracked_path) and bool(
            self.list_versions(tracked_path)
        )

    def any_backups_exist(self) -> bool:
        """Return True when the backup root exists."""
        return self.mapper.backup_dir.is_dir()

    # ------------------------------------------------------------------
    # Creation and eviction
    # ------------------------------------------------------------------

    def save(self, tracked_path: Optional[str]) -> Optional[BackupVersion]:
        """
        Back up the current content of *tracked_path*.

        The version is keyed by the source's modification time, so saving
        twice within one second stores a single copy. Retention is enforced
        afterwards either way.

        Args:
            tracked_path: Project-relative path of the file being saved

        Returns:
            The version holding the current content, or None when the path
            is outside the tracked root or the file does not exist

        Raises:
            BackupIOError: If the copy or an eviction fails
        """
        source = self.mapper.live_path(tracked_path)
        if tracked_path is None or source is None:
            return None
        try:
            source_stat = source.stat()
        except FileNotFoundError:
            return None
        if not source.is_file():
            return None

        time = truncate(datetime.fromtimestamp(source_stat.st_mtime))
        destination = self.version_path(tracked_path, time)
        if destination is None:
            return None

        if destination.exists():
            logger.debug(
                f"'{tracked_path}' already backed up as "
                f"'{self.mapper.short_path(destination)}'"
            )
        else:
            self._copy_into_place(source, destination, tracked_path)
            logger.info(
                f"Backed up '{tracked_path}' to '{self.mapper.short_path(destination)}'"
            )

        self.evict(tracked_path)
        return BackupVersion(tracked_path, time, destination)

    def _copy_into_place(self, source: Path, destination: Path, tracked_path: str) -> None:
        # Copy under a temporary name so a failed copy never looks like a version
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            fd, partial = tempfile.mkstemp(
                prefix=f".{destination.name}.", suffix=".partial", dir=destination.parent
            )
            os.close(fd)
            try:
                shutil.copy2(source, partial)
                source_stat = source.stat()
                os.utime(partial, ns=(source_stat.st_atime_ns, source_stat.st_mtime_ns))
                os.replace(partial, destination)
            finally:
                if os.path.exists(partial):
                    os.unlink(partial)
        except OSError as e:
            raise BackupIOError(
                f"Failed to back up '{tracked_path}': {e}", destination
            ) from e

    def capture(
        self, tracked_path: str, source: Path, time: datetime
    ) -> Optional[BackupVersion]:
        """
        Store a copy of the file at *source* as the version of *tracked_path*
        at *time*. The copy shares no data with *source*, so later in-place
        writes to *source* leave the version intact.

        Returns:
            The new version, or None if a version at *time* already exists

        Raises:
            NotUnderTrackedRoot: If *tracked_path* is outside the tracked root
            BackupIOError: If the copy fails
        """
        time = truncate(time)
        destination = self.version_path(tracked_path, time)
        if destination is None:
            raise NotUnderTrackedRoot(tracked_path)
        if destination.exists():
            return None

        self._copy_into_place(source, destination, tracked_path)

        logger.info(
            f"Backed up '{tracked_path}' to '{self.mapper.short_path(destination)}'"
        )
        return BackupVersion(tracked_path, time, destination)

    def evict(self, tracked_path: str) -> List[BackupVersion]:
        """
        Delete the versions of *tracked_path* beyond the retention limit.

        Returns:
            The evicted versions, oldest first
        """
        evaluator = RetentionEvaluator(self.preferences.retention)
        _, to_evict = evaluator.evaluate(tracked_path, self.list_versions(tracked_path))
        for version in to_evict:
            try:
                version.path.unlink(missing_ok=True)
            except OSError as e:
                raise BackupIOError(
                    f"Failed to evict '{self.mapper.short_path(version.path)}': {e}",
                    version.path,
                ) from e
            logger.info(f"Evicted '{self.mapper.short_path(version.path)}'")
        return to_evict

    # ------------------------------------------------------------------
    # Relocation
    # ------------------------------------------------------------------

    def relocate(self, version: BackupVersion, tracked_path: str) -> BackupVersion:
        """
        Rename *version* into the history of *tracked_path*.

        The timestamp is preserved. A version already stored under the same
        name is replaced.

        Raises:
            NotUnderTrackedRoot: If *tracked_path* is outside the tracked root
            BackupIOError: If the rename fails
        """
        destination = self.version_path(tracked_path, version.time)
        if destination is None:
            raise NotUnderTrackedRoot(tracked_path)
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            os.replace(version.path, destination)
        except OSError as e:
            raise BackupIOError(
                f"Failed to move '{self.mapper.short_path(version.path)}': {e}",
                version.path,
            ) from e
        return BackupVersion(tracked_path, version.time, destination)

    def prune_empty_dirs(self, directory: Path) -> None:
        """
        Remove *directory* and its ancestors while they are empty, stopping
        at the backup root.
        """
        backup_dir = self.mapper.backup_dir
        if directory.is_dir():
            for dirpath, _, _ in os.walk(directory, topdown=False):
                if not os.listdir(dirpath):
                    os.rmdir(dirpath)

        current = directory.parent if not directory.exists() else directory
        while current != backup_dir and backup_dir in current.parents:
            if not current.is_dir() or any(current.iterdir()):
                break
            current.rmdir()
            current = current.parent

    # ------------------------------------------------------------------
    # Bulk removal
    # ------------------------------------------------------------------

    def delete_all(self) -> None:
        """Remove the backup root and everything in it. Idempotent."""
        backup_dir = self.mapper.backup_dir
        if not backup_dir.exists():
            return
        try:
            shutil.rmtree(backup_dir)
        except OSError as e:
            raise BackupIOError(f"Failed to delete '{backup_dir}': {e}", backup_dir) from e
        logger.info(f"Deleted all backups in '{self.mapper.short_path(backup_dir)}'")
