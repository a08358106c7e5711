"""
Savepoint - timestamped per-file backups with non-destructive restore.

Every save leaves a copy behind, every restore keeps what it replaced.
"""

from importlib.metadata import version as _version

__version__ = _version("savepoint")
