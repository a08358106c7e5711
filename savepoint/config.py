"""
Configuration file support for Savepoint.

Loads settings from ``~/.config/savepoint/config.yaml`` (or
``$XDG_CONFIG_HOME/savepoint/config.yaml``) and exposes them as typed
dataclasses. :class:`Preferences` wraps a config file with a read-through
cache so the engine can consult it on every save without re-reading disk.
"""

import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from savepoint.paths import DEFAULT_BACKUP_ROOT, DEFAULT_TRACKED_ROOT
from savepoint.retention import DEFAULT_MAX_VERSIONS, RetentionPolicy, coerce_limit

logger = logging.getLogger("savepoint.config")


def default_config_path() -> Path:
    """Return the default configuration file path.

    Uses ``$XDG_CONFIG_HOME/savepoint/config.yaml`` when set, otherwise
    falls back to ``~/.config/savepoint/config.yaml``.
    """
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / "savepoint" / "config.yaml"
    return Path.home() / ".config" / "savepoint" / "config.yaml"


@dataclass
class SavepointConfig:
    """Top-level configuration loaded from the YAML file."""

    enabled: bool = True
    max_versions: int = DEFAULT_MAX_VERSIONS
    tracked_root: str = DEFAULT_TRACKED_ROOT
    backup_root: str = DEFAULT_BACKUP_ROOT
    companion_suffixes: List[str] = field(default_factory=list)
    retention_overrides: Dict[str, int] = field(default_factory=dict)

    @property
    def retention(self) -> RetentionPolicy:
        """Retention policy described by this config."""
        return RetentionPolicy(
            max_versions=self.max_versions, overrides=self.retention_overrides
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SavepointConfig":
        """Construct a ``SavepointConfig`` from a parsed YAML dictionary."""
        if not isinstance(data, dict):
            return cls()

        enabled = data.get("enabled", True)
        if not isinstance(enabled, bool):
            logger.warning(f"Ignoring non-boolean 'enabled' value: {enabled!r}")
            enabled = True

        companion_suffixes: List[str] = []
        for suffix in data.get("companion_suffixes") or []:
            if not isinstance(suffix, str) or not suffix:
                logger.warning(f"Skipping invalid companion suffix: {suffix!r}")
                continue
            companion_suffixes.append(suffix)

        overrides_data = data.get("retention_overrides") or {}
        retention_overrides: Dict[str, int] = {}
        if isinstance(overrides_data, dict):
            for pattern, limit in overrides_data.items():
                retention_overrides[str(pattern)] = coerce_limit(limit)
        else:
            logger.warning(
                f"Skipping invalid retention_overrides entry: {overrides_data!r}"
            )

        return cls(
            enabled=enabled,
            max_versions=coerce_limit(data.get("max_versions", DEFAULT_MAX_VERSIONS)),
            tracked_root=str(data.get("tracked_root") or DEFAULT_TRACKED_ROOT),
            backup_root=str(data.get("backup_root") or DEFAULT_BACKUP_ROOT),
            companion_suffixes=companion_suffixes,
            retention_overrides=retention_overrides,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert the config to a YAML-ready dictionary."""
        return {
            "enabled": self.enabled,
            "max_versions": self.max_versions,
            "tracked_root": self.tracked_root,
            "backup_root": self.backup_root,
            "companion_suffixes": list(self.companion_suffixes),
            "retention_overrides": dict(self.retention_overrides),
        }

    @classmethod
    def from_file(cls, path: Path) -> "SavepointConfig":
        """Read a YAML file and return a ``SavepointConfig``.

        Returns an empty default config on any error.
        """
        try:
            with open(path, "r") as f:
                data = yaml.safe_load(f.read())
            if data is None:
                return cls()
            return cls.from_dict(data)
        except (IOError, yaml.YAMLError) as e:
            logger.error(f"Failed to load config from {path}: {e}")
            return cls()

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "SavepointConfig":
        """Load config from *config_path* or the default location.

        Returns an empty config if the file does not exist.
        """
        path = config_path or default_config_path()
        if not path.exists():
            return cls()
        return cls.from_file(path)

    def save(self, path: Path) -> None:
        """Write the config to *path*, creating parent directories."""
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            yaml.safe_dump(self.to_dict(), f, default_flow_style=False)


class Preferences:
    """
    Read-through cache over a config file.

    The file is read once, on first access. Setters update the cached value
    and write the file back. Without a path, preferences live in memory only.
    """

    def __init__(
        self,
        config_path: Optional[Path] = None,
        config: Optional[SavepointConfig] = None,
    ):
        self.config_path = config_path
        self._config = config

    @property
    def config(self) -> SavepointConfig:
        if self._config is None:
            if self.config_path is None:
                self._config = SavepointConfig()
            else:
                self._config = SavepointConfig.load(self.config_path)
                logger.debug(f"Loaded preferences from {self.config_path}")
        return self._config

    def _store(self, config: SavepointConfig) -> None:
        self._config = config
        if self.config_path is not None:
            config.save(self.config_path)
            logger.debug(f"Saved preferences to {self.config_path}")

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    @enabled.setter
    def enabled(self, value: bool) -> None:
        self._store(replace(self.config, enabled=bool(value)))

    @property
    def max_versions(self) -> int:
        return self.config.max_versions

    @max_versions.setter
    def max_versions(self, value: int) -> None:
        self._store(replace(self.config, max_versions=coerce_limit(value)))

    @property
    def companion_suffixes(self) -> List[str]:
        return list(self.config.companion_suffixes)

    @property
    def retention(self) -> RetentionPolicy:
        return self.config.retention

    def reload(self) -> None:
        """Drop the cached config so the next access re-reads the file."""
        self._config = None
