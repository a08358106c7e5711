"""
Tests for the restore engine.
"""

import os
import shutil
from datetime import datetime
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from savepoint.config import Preferences, SavepointConfig
from savepoint.engine import BackupVersion, HostBridge
from savepoint.engine.restore import RestoreEngine
from savepoint.engine.store import BackupStore
from savepoint.errors import (
    BackupIOError,
    BackupNotFound,
    NotUnderTrackedRoot,
    RestoreFailed,
)
from savepoint.paths import PathMapper
from savepoint.timestamp import modification_time

T1 = datetime(2024, 3, 1, 10, 0, 0)
T2 = datetime(2024, 3, 1, 10, 0, 5)
T3 = datetime(2024, 3, 1, 10, 0, 9)


@pytest.fixture
def roomy_store(mapper: PathMapper) -> BackupStore:
    """Store keeping enough versions that retention never interferes."""
    return BackupStore(mapper, Preferences(config=SavepointConfig(max_versions=5)))


@pytest.fixture
def history(roomy_store: BackupStore, write_file) -> Path:
    """Live file at T3 with backups at T1 and T2."""
    write_file("Assets/a.txt", "one", T1)
    roomy_store.save("Assets/a.txt")
    write_file("Assets/a.txt", "two", T2)
    roomy_store.save("Assets/a.txt")
    return write_file("Assets/a.txt", "three", T3)


def version_at(store: BackupStore, time: datetime) -> BackupVersion:
    version = store.find_version("Assets/a.txt", time)
    assert version is not None
    return version


def test_restore_swaps_and_keeps_displaced_content(
    roomy_store: BackupStore, history: Path
) -> None:
    """Restoring T2 adds a version of the displaced content at T3."""
    chosen = version_at(roomy_store, T2)

    displaced = RestoreEngine(roomy_store).restore("Assets/a.txt", chosen)

    assert history.read_text() == "two"
    assert modification_time(history) == T2
    assert displaced is not None
    assert displaced.time == T3
    assert displaced.path.read_text() == "three"
    assert [v.time for v in roomy_store.list_versions("Assets/a.txt")] == [T3, T2, T1]
    # The version restored from is not consumed
    assert chosen.path.read_text() == "two"


def test_restore_respects_retention(mapper: PathMapper, write_file) -> None:
    """Restore follows the same transition rule as save."""
    store = BackupStore(mapper, Preferences(config=SavepointConfig(max_versions=2)))
    write_file("Assets/a.txt", "one", T1)
    store.save("Assets/a.txt")
    write_file("Assets/a.txt", "two", T2)
    store.save("Assets/a.txt")
    write_file("Assets/a.txt", "three", T3)

    RestoreEngine(store).restore("Assets/a.txt", version_at(store, T1))

    assert [v.time for v in store.list_versions("Assets/a.txt")] == [T3, T2]


def test_restore_when_live_already_backed_up(
    roomy_store: BackupStore, write_file
) -> None:
    """No extra version when the live content already has one."""
    live = write_file("Assets/a.txt", "one", T1)
    roomy_store.save("Assets/a.txt")
    write_file("Assets/a.txt", "two", T2)
    roomy_store.save("Assets/a.txt")

    displaced = RestoreEngine(roomy_store).restore(
        "Assets/a.txt", version_at(roomy_store, T1)
    )

    assert displaced is None
    assert live.read_text() == "one"
    assert [v.time for v in roomy_store.list_versions("Assets/a.txt")] == [T2, T1]


def test_restore_missing_live_file(roomy_store: BackupStore, write_file) -> None:
    live = write_file("Assets/a.txt", "one", T1)
    roomy_store.save("Assets/a.txt")
    live.unlink()

    displaced = RestoreEngine(roomy_store).restore(
        "Assets/a.txt", version_at(roomy_store, T1)
    )

    assert displaced is None
    assert live.read_text() == "one"


def test_restore_missing_version(roomy_store: BackupStore, history: Path) -> None:
    chosen = version_at(roomy_store, T1)
    chosen.path.unlink()

    with pytest.raises(BackupNotFound):
        RestoreEngine(roomy_store).restore("Assets/a.txt", chosen)

    assert history.read_text() == "three"


def test_restore_outside_tracked_root(roomy_store: BackupStore) -> None:
    version = BackupVersion("Other/a.txt", T1, Path("/nowhere/a.txt(x)"))
    with pytest.raises(NotUnderTrackedRoot):
        RestoreEngine(roomy_store).restore("Other/a.txt", version)


def test_restore_notifies_host(roomy_store: BackupStore, history: Path) -> None:
    host = MagicMock(spec=HostBridge)
    host.is_active_document.return_value = True

    RestoreEngine(roomy_store, host).restore("Assets/a.txt", version_at(roomy_store, T1))

    host.reimport.assert_called_once_with("Assets/a.txt")
    host.is_active_document.assert_called_once_with("Assets/a.txt")
    host.reopen.assert_called_once_with("Assets/a.txt")


def test_restore_inactive_document_not_reopened(
    roomy_store: BackupStore, history: Path
) -> None:
    host = MagicMock(spec=HostBridge)
    host.is_active_document.return_value = False

    RestoreEngine(roomy_store, host).restore("Assets/a.txt", version_at(roomy_store, T1))

    host.reimport.assert_called_once_with("Assets/a.txt")
    host.reopen.assert_not_called()


def test_failed_replace_reports_unconfirmed_state(
    roomy_store: BackupStore, history: Path
) -> None:
    """A failed swap raises RestoreFailed and leaves the old content live."""
    live = roomy_store.mapper.live_path("Assets/a.txt")
    real_replace = os.replace

    def failing_replace(src, dst):
        if Path(dst) == live:
            raise OSError(28, "No space left on device")
        return real_replace(src, dst)

    with patch("savepoint.engine.restore.os.replace", side_effect=failing_replace):
        with pytest.raises(RestoreFailed) as excinfo:
            RestoreEngine(roomy_store).restore(
                "Assets/a.txt", version_at(roomy_store, T1)
            )

    assert excinfo.value.live_state_confirmed is False
    assert isinstance(excinfo.value, BackupIOError)
    assert history.read_text() == "three"
    # The displaced content was preserved before the swap was attempted
    assert version_at(roomy_store, T3).path.read_text() == "three"
    # No staging file is left beside the live file
    assert sorted(p.name for p in history.parent.iterdir()) == ["a.txt"]


def test_restore_with_missing_parent(roomy_store: BackupStore, write_file) -> None:
    live = write_file("Assets/gone/a.txt", "one", T1)
    roomy_store.save("Assets/gone/a.txt")
    version = roomy_store.list_versions("Assets/gone/a.txt")[0]
    live.unlink()
    live.parent.rmdir()

    with pytest.raises(RestoreFailed):
        RestoreEngine(roomy_store).restore("Assets/gone/a.txt", version)


def test_restore_then_save_is_duplicate(roomy_store: BackupStore, history: Path) -> None:
    """The restored file carries the version's mtime, so saving it adds nothing."""
    RestoreEngine(roomy_store).restore("Assets/a.txt", version_at(roomy_store, T2))
    before = roomy_store.list_versions("Assets/a.txt")

    roomy_store.save("Assets/a.txt")

    assert roomy_store.list_versions("Assets/a.txt") == before
    assert modification_time(history) == T2


def test_failed_copy_keeps_displaced_version_intact(
    roomy_store: BackupStore, history: Path
) -> None:
    """In-place writes after a failed swap do not reach the displaced version."""
    real_copy2 = shutil.copy2

    def failing_copy(src, dst, *args, **kwargs):
        if Path(dst).parent == history.parent:
            raise OSError(13, "Permission denied")
        return real_copy2(src, dst, *args, **kwargs)

    with patch("savepoint.engine.restore.shutil.copy2", side_effect=failing_copy):
        with pytest.raises(RestoreFailed):
            RestoreEngine(roomy_store).restore(
                "Assets/a.txt", version_at(roomy_store, T1)
            )

    with open(history, "r+") as f:
        f.write("FOUR!")

    assert history.read_text() == "FOUR!"
    assert version_at(roomy_store, T3).path.read_text() == "three"
