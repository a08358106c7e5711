"""
Retention policy implementation for Savepoint.

This module decides which backup versions of a file should be kept and
which evicted.
"""

import logging
from dataclasses import dataclass, field
from fnmatch import fnmatchcase
from typing import Any, Dict, List, Tuple

from savepoint.engine import BackupVersion

logger = logging.getLogger("savepoint.retention")

DEFAULT_MAX_VERSIONS = 3


def coerce_limit(value: Any, default: int = DEFAULT_MAX_VERSIONS) -> int:
    """
    Coerce a configured version limit to an integer of at least 1.

    Args:
        value: Raw value from a config file or the command line
        default: Value used when *value* is not an integer

    Returns:
        The limit, raised to 1 if smaller
    """
    if isinstance(value, bool):
        return default
    try:
        limit = int(value)
    except (TypeError, ValueError):
        logger.warning(f"Invalid version limit {value!r}, using {default}")
        return default
    return max(1, limit)


@dataclass
class RetentionPolicy:
    """Retention policy configuration."""

    max_versions: int = DEFAULT_MAX_VERSIONS  # Versions kept per tracked path

    overrides: Dict[str, int] = field(
        default_factory=dict
    )  # Glob pattern over tracked paths -> limit

    def __post_init__(self) -> None:
        self.max_versions = coerce_limit(self.max_versions)
        self.overrides = {
            str(pattern): coerce_limit(limit, self.max_versions)
            for pattern, limit in self.overrides.items()
        }

    def limit_for(self, tracked_path: str) -> int:
        """
        Return the number of versions to keep for *tracked_path*.

        The first matching override pattern wins; otherwise the global limit
        applies.
        """
        for pattern, limit in self.overrides.items():
            if fnmatchcase(tracked_path, pattern):
                return limit
        return self.max_versions


def newest_first(versions: List[BackupVersion]) -> List[BackupVersion]:
    """Sort *versions* by timestamp, newest first, ties by file name."""
    return sorted(versions, key=lambda v: (v.time, v.path.name), reverse=True)


class RetentionEvaluator:
    """Evaluates a retention policy against the versions of one file."""

    def __init__(self, policy: RetentionPolicy):
        """
        Initialize the evaluator with a policy.

        Args:
            policy: Retention policy to use
        """
        self.policy = policy

    def evaluate(
        self, tracked_path: str, versions: List[BackupVersion]
    ) -> Tuple[List[BackupVersion], List[BackupVersion]]:
        """
        Split *versions* into the ones to keep and the ones to evict.

        Args:
            tracked_path: Tracked path the versions belong to
            versions: Versions of that path, in any order

        Returns:
            Tuple of (to_keep newest first, to_evict oldest first)
        """
        if not versions:
            return [], []

        limit = self.policy.limit_for(tracked_path)
        ordered = newest_first(versions)
        to_keep = ordered[:limit]
        to_evict = list(reversed(ordered[limit:]))

        if to_evict:
            logger.debug(
                f"Retention for '{tracked_path}': keeping {len(to_keep)}, "
                f"evicting {len(to_evict)}"
            )

        return to_keep, to_evict
