"""Data models for dotsmith."""

from .snapshot import (
    CaptureFailure,
    CaptureReport,
    ChangeTag,
    DiffLine,
    DiffResult,
    Hunk,
    RollbackResult,
    SnapshotRecord,
    SnapshotSummary,
)

__all__ = [
    "CaptureFailure",
    "CaptureReport",
    "ChangeTag",
    "DiffLine",
    "DiffResult",
    "Hunk",
    "RollbackResult",
    "SnapshotRecord",
    "SnapshotSummary",
]
