"""
Command-line interface for Savepoint.

This module provides the command-line entry point. The CLI plays the part of
the host application: it fires the save and move hooks, performs the move
itself and lets the user pick versions to restore.
"""

import logging
import sys
from pathlib import Path
from typing import Annotated, List, Optional, Tuple

import orjson
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from savepoint import __version__
from savepoint.config import Preferences, default_config_path
from savepoint.engine import BackupVersion, NullHost
from savepoint.engine.restore import RestoreEngine
from savepoint.engine.store import BackupStore
from savepoint.errors import BackupNotFound, SavepointError
from savepoint.hooks import LifecycleHooks
from savepoint.paths import PathMapper
from savepoint.timestamp import TOKEN_OPEN, format_timestamp, parse_timestamp

# Set up the console and logger
console = Console()
logging.basicConfig(
    level=logging.INFO,
    format="%(message)s",
    datefmt="[%X]",
    handlers=[RichHandler(console=console, rich_tracebacks=True)],
)
logger = logging.getLogger("savepoint")

# Create the Typer app
app = typer.Typer(
    help="Timestamped per-file backups with non-destructive restore.",
    add_completion=False,
)

ProjectOption = Annotated[
    Optional[str],
    typer.Option(
        "--project",
        "-C",
        help="Project directory containing the tracked and backup roots "
        "(default: current directory).",
    ),
]
ConfigOption = Annotated[
    Optional[str],
    typer.Option(
        "--config",
        help="Path to config.yaml (default: ~/.config/savepoint/config.yaml).",
    ),
]


def log_error(message: str) -> None:
    """Log an error message to both logger and console."""
    logger.error(message)
    console.print(f"[red]{message}[/red]")
    return None


def load_preferences(config: Optional[str]) -> Preferences:
    """Return preferences backed by *config* or the default config file."""
    return Preferences(Path(config).expanduser() if config else default_config_path())


def open_store(
    project: Optional[str], config: Optional[str]
) -> Tuple[Preferences, BackupStore]:
    """
    Build the backup store for a project.

    Args:
        project: Project directory, or None for the current directory
        config: Path to the config file, or None for the default location

    Returns:
        Tuple of (preferences, store)
    """
    preferences = load_preferences(config)
    try:
        mapper = PathMapper(
            Path(project) if project else Path.cwd(),
            tracked_root=preferences.config.tracked_root,
            backup_root=preferences.config.backup_root,
        )
    except ValueError as e:
        log_error(f"Invalid configuration: {e}")
        raise typer.Exit(1) from e
    return preferences, BackupStore(mapper, preferences)


def to_tracked_path(mapper: PathMapper, raw: str) -> str:
    """
    Normalize a command-line path to a project-relative tracked path.

    Absolute paths inside the project are made relative; separators become
    ``/``.
    """
    path = Path(raw).expanduser()
    if path.is_absolute():
        try:
            return path.resolve().relative_to(mapper.project_dir).as_posix()
        except ValueError:
            return path.as_posix()
    return raw.replace("\\", "/")


def select_version(
    store: BackupStore, tracked_path: str, timestamp: Optional[str]
) -> BackupVersion:
    """
    Pick the version of *tracked_path* at *timestamp*, or the newest one.

    Raises:
        MalformedTimestamp: If *timestamp* cannot be parsed
        BackupNotFound: If no such version exists
    """
    if timestamp is None:
        versions = store.list_versions(tracked_path)
        if not versions:
            stem = store.mapper.backup_stem(tracked_path) or Path(tracked_path)
            raise BackupNotFound(stem)
        return versions[0]

    if not timestamp.startswith(TOKEN_OPEN):
        timestamp = f"{TOKEN_OPEN}{timestamp})"
    time = parse_timestamp(timestamp)
    version = store.find_version(tracked_path, time)
    if version is None:
        raise BackupNotFound(
            store.version_path(tracked_path, time) or Path(tracked_path + timestamp)
        )
    return version


def version_callback(value: bool) -> None:
    """Print the version and exit before any command runs."""
    if value:
        console.print(f"Savepoint version: {__version__}")
        raise typer.Exit()


@app.callback()
def callback(
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable verbose output."
    ),
    json: bool = typer.Option(False, "--json", help="Output logs in JSON format."),
    version: bool = typer.Option(
        False,
        "--version",
        callback=version_callback,
        is_eager=True,
        help="Show the application version and exit.",
    ),
) -> None:
    """
    Savepoint: every save leaves a copy behind, every restore keeps what it
    replaced.
    """
    # Configure logging level based on verbosity
    if verbose:
        logger.setLevel(logging.DEBUG)
        logger.debug("Verbose logging enabled")

    # Configure JSON logging if requested
    if json:
        for handler in logging.root.handlers[:]:
            logging.root.removeHandler(handler)
        logging.basicConfig(
            level=logging.INFO if not verbose else logging.DEBUG,
            format='{"timestamp": "%(asctime)s", "level": "%(levelname)s", '
            '"message": "%(message)s"}',
            datefmt="%Y-%m-%dT%H:%M:%S",
            stream=sys.stdout,
        )
        logger.debug("JSON logging enabled")


@app.command()
def save(
    paths: Annotated[
        List[str], typer.Argument(help="Tracked paths about to be saved.")
    ],
    project: ProjectOption = None,
    config: ConfigOption = None,
) -> None:
    """
    Back up files, as the host does just before saving them.
    """
    preferences, store = open_store(project, config)
    if not preferences.enabled:
        console.print("Backups are disabled. Run 'savepoint enable' to turn them on.")
        return

    hooks = LifecycleHooks(store, preferences)
    tracked = [to_tracked_path(store.mapper, p) for p in paths]
    for path in tracked:
        if not store.mapper.is_tracked(path):
            logger.warning(f"'{path}' is not under '{store.mapper.tracked_root}/'")

    try:
        hooks.on_before_save(tracked)
    except SavepointError as e:
        log_error(str(e))
        raise typer.Exit(1) from e


@app.command()
def move(
    old: Annotated[str, typer.Argument(help="Current tracked path.")],
    new: Annotated[str, typer.Argument(help="New tracked path.")],
    project: ProjectOption = None,
    config: ConfigOption = None,
) -> None:
    """
    Move a file (and its companions) together with its backup history.
    """
    preferences, store = open_store(project, config)
    mapper = store.mapper
    old_path = to_tracked_path(mapper, old)
    new_path = to_tracked_path(mapper, new)

    source = mapper.project_dir / old_path
    target = mapper.project_dir / new_path
    if not source.exists():
        log_error(f"'{old_path}' does not exist")
        raise typer.Exit(1)
    if target.exists():
        log_error(f"'{new_path}' already exists")
        raise typer.Exit(1)

    hooks = LifecycleHooks(store, preferences)
    try:
        hooks.on_before_move(old_path, new_path)
        target.parent.mkdir(parents=True, exist_ok=True)
        source.rename(target)
        for suffix in preferences.companion_suffixes:
            companion = mapper.project_dir / (old_path + suffix)
            if companion.exists():
                companion.rename(mapper.project_dir / (new_path + suffix))
    except (SavepointError, OSError) as e:
        log_error(f"Failed to move '{old_path}' to '{new_path}': {e}")
        raise typer.Exit(1) from e

    console.print(f"Moved '{old_path}' to '{new_path}'")


@app.command(name="versions")
def list_versions(
    path: Annotated[str, typer.Argument(help="Tracked path to list versions of.")],
    json_output: bool = typer.Option(
        False, "--json", help="Output versions in JSON format."
    ),
    project: ProjectOption = None,
    config: ConfigOption = None,
) -> None:
    """
    List the backup versions of a file, newest first.
    """
    _, store = open_store(project, config)
    tracked_path = to_tracked_path(store.mapper, path)
    versions = store.list_versions(tracked_path)

    if json_output:
        data = [
            {
                "path": v.tracked_path,
                "time": v.time.isoformat(),
                "backup": store.mapper.short_path(v.path),
            }
            for v in versions
        ]
        typer.echo(orjson.dumps(data, option=orjson.OPT_INDENT_2).decode())
        return

    if not versions:
        console.print(f"No backups of '{tracked_path}'")
        return

    table = Table(title=f"Backups of {tracked_path}")
    table.add_column("#")
    table.add_column("Time")
    table.add_column("Backup")
    for index, version in enumerate(versions, start=1):
        table.add_row(
            str(index),
            str(version.time),
            store.mapper.short_path(version.path),
        )
    console.print(table)


@app.command()
def restore(
    path: Annotated[str, typer.Argument(help="Tracked path to restore.")],
    timestamp: Annotated[
        Optional[str],
        typer.Argument(
            help="Version to restore, as YYYY-MM-DD-hh-mm-ss (default: newest)."
        ),
    ] = None,
    project: ProjectOption = None,
    config: ConfigOption = None,
) -> None:
    """
    Restore a backup version; the replaced content becomes a new version.
    """
    _, store = open_store(project, config)
    tracked_path = to_tracked_path(store.mapper, path)
    engine = RestoreEngine(store, NullHost())

    try:
        version = select_version(store, tracked_path, timestamp)
        displaced = engine.restore(tracked_path, version)
    except SavepointError as e:
        log_error(str(e))
        raise typer.Exit(1) from e

    console.print(
        f"Restored '{tracked_path}' to {format_timestamp(version.time)}"
    )
    if displaced is not None:
        console.print(
            f"Previous content kept as {store.mapper.short_path(displaced.path)}"
        )


@app.command()
def purge(
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation."),
    project: ProjectOption = None,
    config: ConfigOption = None,
) -> None:
    """
    Delete all backups of the project.
    """
    _, store = open_store(project, config)
    if not store.any_backups_exist():
        console.print("No backups to delete")
        return

    if not yes:
        typer.confirm(
            "Delete all backups? You cannot undo this action.", abort=True
        )

    try:
        store.delete_all()
    except SavepointError as e:
        log_error(str(e))
        raise typer.Exit(1) from e
    console.print("Deleted all backups")


@app.command()
def enable(config: ConfigOption = None) -> None:
    """Turn backups on."""
    preferences = load_preferences(config)
    preferences.enabled = True
    console.print("Backups enabled")


@app.command()
def disable(config: ConfigOption = None) -> None:
    """Turn backups off."""
    preferences = load_preferences(config)
    preferences.enabled = False
    console.print("Backups disabled")


@app.command(name="max-versions")
def max_versions(
    count: Annotated[
        Optional[int],
        typer.Argument(help="New number of versions kept per file (minimum 1)."),
    ] = None,
    config: ConfigOption = None,
) -> None:
    """
    Show or set how many versions are kept per file.
    """
    preferences = load_preferences(config)
    if count is not None:
        preferences.max_versions = count
    console.print(f"Keeping {preferences.max_versions} version(s) per file")


@app.command()
def status(
    project: ProjectOption = None,
    config: ConfigOption = None,
) -> None:
    """
    Show the backup settings for a project.
    """
    preferences, store = open_store(project, config)

    table = Table(title="Savepoint")
    table.add_column("Setting")
    table.add_column("Value")
    table.add_row("Enabled", "yes" if preferences.enabled else "no")
    table.add_row("Max versions per file", str(preferences.max_versions))
    table.add_row("Tracked root", str(store.mapper.tracked_dir))
    table.add_row("Backup root", str(store.mapper.backup_dir))
    table.add_row("Backups exist", "yes" if store.any_backups_exist() else "no")
    if preferences.companion_suffixes:
        table.add_row("Companion suffixes", ", ".join(preferences.companion_suffixes))
    console.print(table)


@app.command()
def version() -> None:
    """Show the application version and exit."""
    console.print(f"Savepoint version: {__version__}")


if __name__ == "__main__":
    app()
