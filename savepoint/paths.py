"""
Mapping between tracked paths and their location in the backup root.

Tracked paths are project-relative and ``/``-separated, e.g.
``Assets/scenes/main.unity``. The backup root mirrors the tracked root, so
that file's history lives under ``Backups/scenes/main.unity(...)``.
"""

from pathlib import Path, PurePosixPath
from typing import Optional, Union

from savepoint.timestamp import split_version_name

DEFAULT_TRACKED_ROOT = "Assets"
DEFAULT_BACKUP_ROOT = "Backups"


class PathMapper:
    """Converts tracked paths to and from backup paths without timestamps."""

    def __init__(
        self,
        project_dir: Union[str, Path],
        tracked_root: str = DEFAULT_TRACKED_ROOT,
        backup_root: str = DEFAULT_BACKUP_ROOT,
    ):
        """
        Initialize the mapper.

        Args:
            project_dir: Directory containing both the tracked and backup roots
            tracked_root: Name of the tracked root directory
            backup_root: Name of the backup root directory
        """
        tracked_root = tracked_root.strip("/")
        backup_root = backup_root.strip("/")
        if not tracked_root or not backup_root:
            raise ValueError("tracked_root and backup_root must be non-empty")
        if tracked_root == backup_root:
            raise ValueError("tracked_root and backup_root must differ")

        self.project_dir = Path(project_dir).expanduser().resolve()
        self.tracked_root = tracked_root
        self.backup_root = backup_root
        self._prefix = f"{tracked_root}/"

    @property
    def backup_dir(self) -> Path:
        """Absolute path of the backup root."""
        return self.project_dir / self.backup_root

    @property
    def tracked_dir(self) -> Path:
        """Absolute path of the tracked root."""
        return self.project_dir / self.tracked_root

    def subpath(self, tracked_path: Optional[str]) -> Optional[str]:
        """
        Return the part of *tracked_path* below the tracked root.

        Returns None for empty paths, paths outside the tracked root and
        paths with empty, ``.`` or ``..`` segments.
        """
        if not tracked_path or not tracked_path.startswith(self._prefix):
            return None
        subpath = tracked_path[len(self._prefix):]
        if not subpath:
            return None
        if any(part in ("", ".", "..") for part in subpath.split("/")):
            return None
        return subpath

    def is_tracked(self, tracked_path: Optional[str]) -> bool:
        """Return True when *tracked_path* is under the tracked root."""
        return self.subpath(tracked_path) is not None

    def live_path(self, tracked_path: Optional[str]) -> Optional[Path]:
        """Return the absolute path of the live file, or None."""
        subpath = self.subpath(tracked_path)
        if subpath is None:
            return None
        return self.tracked_dir.joinpath(*subpath.split("/"))

    def backup_stem(self, tracked_path: Optional[str]) -> Optional[Path]:
        """
        Return the backup path of *tracked_path* without its timestamp.

        Args:
            tracked_path: Project-relative tracked path

        Returns:
            Absolute path under the backup root, or None when the path is
            not under the tracked root
        """
        subpath = self.subpath(tracked_path)
        if subpath is None:
            return None
        return self.backup_dir.joinpath(*subpath.split("/"))

    def tracked_path_for(self, backup_path: Union[str, Path]) -> Optional[str]:
        """
        Return the tracked path a backup stem or version file belongs to.

        A terminal timestamp token on the file name is stripped. Returns None
        for paths outside the backup root.
        """
        try:
            relative = Path(backup_path).relative_to(self.backup_dir)
        except ValueError:
            return None

        parts = list(PurePosixPath(*relative.parts).parts)
        if not parts:
            return None
        split = split_version_name(parts[-1])
        if split is not None:
            parts[-1] = split[0]
        if not parts[-1]:
            return None
        return "/".join([self.tracked_root, *parts])

    def short_path(self, path: Path) -> str:
        """Return *path* relative to the project directory, for display."""
        try:
            return Path(path).relative_to(self.project_dir).as_posix()
        except ValueError:
            return str(path)
