"""Snapshot system for dotsmith

This module provides:
- Capture of tracked files with content-hash deduplication
- Line diffs against the latest snapshot
- History views and lookups
- Rollback with pre-restore backups
"""

from .capture import CaptureService, tracked_files
from .diff import diff, diff_against_latest, diff_paths, has_changes
from .engine import SnapshotEngine
from .history import HistoryService
from .render import format_unified, render_rich
from .rollback import RollbackService

__all__ = [
    "CaptureService",
    "tracked_files",
    "diff",
    "diff_against_latest",
    "diff_paths",
    "has_changes",
    "SnapshotEngine",
    "HistoryService",
    "format_unified",
    "render_rich",
    "RollbackService",
]
