"""
Tests for the path mapper.
"""

from pathlib import Path

import pytest

from savepoint.paths import PathMapper


def test_backup_stem_mirrors_subpath(mapper: PathMapper, project: Path) -> None:
    """The tracked root prefix is replaced by the backup root."""
    stem = mapper.backup_stem("Assets/scenes/main.unity")
    assert stem == project.resolve() / "Backups" / "scenes" / "main.unity"


def test_live_path(mapper: PathMapper, project: Path) -> None:
    assert mapper.live_path("Assets/a.txt") == project.resolve() / "Assets" / "a.txt"


@pytest.mark.parametrize(
    "tracked_path",
    [
        None,
        "",
        "Assets",
        "Assets/",
        "Other/a.txt",
        "AssetsX/a.txt",
        "/Assets/a.txt",
        "Assets/../secret.txt",
        "Assets/./a.txt",
        "Assets//a.txt",
        "Assets/dir/",
    ],
)
def test_paths_outside_tracked_root_are_not_applicable(
    mapper: PathMapper, tracked_path: str
) -> None:
    """Anything outside the tracked root maps to None rather than raising."""
    assert mapper.is_tracked(tracked_path) is False
    assert mapper.backup_stem(tracked_path) is None
    assert mapper.live_path(tracked_path) is None


def test_mapping_is_injective(mapper: PathMapper) -> None:
    paths = ["Assets/a.txt", "Assets/a/txt", "Assets/a.txt.meta", "Assets/A.txt"]
    stems = {mapper.backup_stem(p) for p in paths}
    assert len(stems) == len(paths)


def test_tracked_path_for_inverts_backup_stem(mapper: PathMapper) -> None:
    stem = mapper.backup_stem("Assets/scenes/main.unity")
    assert stem is not None
    assert mapper.tracked_path_for(stem) == "Assets/scenes/main.unity"


def test_tracked_path_for_strips_timestamp(mapper: PathMapper) -> None:
    version = mapper.backup_dir / "scenes" / "main.unity(2024-03-01-10-00-00)"
    assert mapper.tracked_path_for(version) == "Assets/scenes/main.unity"


def test_tracked_path_for_outside_backup_root(mapper: PathMapper, project: Path) -> None:
    assert mapper.tracked_path_for(project / "Assets" / "a.txt") is None
    assert mapper.tracked_path_for(mapper.backup_dir) is None


def test_custom_roots(tmp_path: Path) -> None:
    mapper = PathMapper(tmp_path, tracked_root="src/", backup_root="history")
    assert mapper.backup_stem("src/pkg/mod.py") == (
        tmp_path.resolve() / "history" / "pkg" / "mod.py"
    )
    assert mapper.backup_stem("Assets/a.txt") is None


@pytest.mark.parametrize(
    "tracked_root,backup_root", [("", "Backups"), ("Assets", "/"), ("Same", "Same")]
)
def test_invalid_roots_rejected(
    tmp_path: Path, tracked_root: str, backup_root: str
) -> None:
    with pytest.raises(ValueError):
        PathMapper(tmp_path, tracked_root=tracked_root, backup_root=backup_root)


def test_short_path(mapper: PathMapper, project: Path) -> None:
    path = project.resolve() / "Backups" / "a.txt(2024-03-01-10-00-00)"
    assert mapper.short_path(path) == "Backups/a.txt(2024-03-01-10-00-00)"
    assert mapper.short_path(Path("/elsewhere/file")) == "/elsewhere/file"
