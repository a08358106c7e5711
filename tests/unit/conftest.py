"""
Shared fixtures for the unit tests.
"""

import os
from datetime import datetime
from pathlib import Path
from typing import Callable

import pytest

from savepoint.config import Preferences, SavepointConfig
from savepoint.engine.store import BackupStore
from savepoint.paths import PathMapper

WriteFile = Callable[[str, str, datetime], Path]


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """Fixture for a project directory with an empty tracked root."""
    (tmp_path / "Assets").mkdir()
    return tmp_path


@pytest.fixture
def mapper(project: Path) -> PathMapper:
    return PathMapper(project)


@pytest.fixture
def preferences() -> Preferences:
    """In-memory preferences with the default settings."""
    return Preferences(config=SavepointConfig())


@pytest.fixture
def store(mapper: PathMapper, preferences: Preferences) -> BackupStore:
    return BackupStore(mapper, preferences)


@pytest.fixture
def write_file(project: Path) -> WriteFile:
    """
    Fixture returning a helper that writes a tracked file and sets its
    modification time.
    """

    def _write(tracked_path: str, content: str, time: datetime) -> Path:
        path = project / tracked_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
        stamp = time.timestamp()
        os.utime(path, (stamp, stamp))
        return path

    return _write
