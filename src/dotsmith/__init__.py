"""
dotsmith - versioned snapshots of user configuration files.

This package provides the snapshot core used by the dotsmith CLI and TUI:
- Deduplicated point-in-time copies of tracked files in SQLite
- Line diffs against the last captured state
- History listings and exact-id lookups
- Safe rollback with automatic backups
"""

__version__ = "0.1.0"
__author__ = "dotsmith contributors"

from .snapshot import SnapshotEngine
from .storage import SnapshotStore

__all__ = [
    "SnapshotEngine",
    "SnapshotStore",
]
