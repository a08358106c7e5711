"""
Timestamp tokens embedded in backup file names.

A backup of ``Assets/scenes/main.unity`` taken at 2024-03-01 09:15:02 is
stored as ``Backups/scenes/main.unity(2024-03-01-09-15-02)``. The token is
always the terminal suffix of the file name.
"""

import re
from datetime import datetime
from pathlib import Path
from typing import Optional, Tuple

from savepoint.errors import MalformedTimestamp

TOKEN_OPEN = "("
TOKEN_CLOSE = ")"

# Exactly one token, anchored at the end of the name
_TOKEN_RE = re.compile(
    r"\(([0-9]{4})-([0-9]{2})-([0-9]{2})-([0-9]{2})-([0-9]{2})-([0-9]{2})\)$"
)
_FIELD_RE = re.compile(r"[0-9]+")


def format_timestamp(time: datetime) -> str:
    """
    Format *time* as ``(YYYY-MM-DD-hh-mm-ss)``.

    Sub-second precision is discarded, never rounded.
    """
    return (
        f"{TOKEN_OPEN}{time.year:04d}-{time.month:02d}-{time.day:02d}-"
        f"{time.hour:02d}-{time.minute:02d}-{time.second:02d}{TOKEN_CLOSE}"
    )


def parse_timestamp(text: str) -> datetime:
    """
    Decode the timestamp token at the last ``(`` in *text*.

    Args:
        text: A bare token or a backup file name/path ending in one

    Returns:
        The decoded naive local datetime

    Raises:
        MalformedTimestamp: If no token is present or any field is invalid
    """
    index = text.rfind(TOKEN_OPEN)
    if index < 0:
        raise MalformedTimestamp(f"no timestamp token in '{text}'")

    token = text[index:]
    parts = token.strip(TOKEN_OPEN + TOKEN_CLOSE).split("-")
    if len(parts) != 6:
        raise MalformedTimestamp(f"expected six fields in '{token}'")

    if not all(_FIELD_RE.fullmatch(part) for part in parts):
        raise MalformedTimestamp(f"non-numeric field in '{token}'")
    fields = [int(part) for part in parts]

    try:
        return datetime(*fields)
    except ValueError as e:
        raise MalformedTimestamp(f"invalid timestamp '{token}': {e}") from e


def split_version_name(name: str) -> Optional[Tuple[str, datetime]]:
    """
    Split a backup file name into its base name and timestamp.

    Stricter than :func:`parse_timestamp`: the name must end in exactly one
    well-formed token. Returns None for anything else.
    """
    match = _TOKEN_RE.search(name)
    if match is None:
        return None
    try:
        time = datetime(*(int(group) for group in match.groups()))
    except ValueError:
        return None
    return name[: match.start()], time


def truncate(time: datetime) -> datetime:
    """Drop the sub-second component of *time*."""
    return time.replace(microsecond=0)


def modification_time(path: Path) -> datetime:
    """Return the local modification time of *path*, in whole seconds."""
    return truncate(datetime.fromtimestamp(path.stat().st_mtime))
