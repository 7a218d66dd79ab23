"""
Snapshot models for dotsmith.

Persisted records, history summaries and the transient results produced by
the diff, capture and rollback services.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
import hashlib


def content_hash(content: str) -> str:
    """SHA-256 hex digest of the UTF-8 encoded content (dedup key only)."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def parse_timestamp(value: str) -> datetime:
    """Parse an SQLite ``datetime('now')`` / ISO string as a UTC datetime."""
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class SnapshotSummary:
    """A history entry without the captured content."""
    id: int
    owner: str
    path: str
    hash: str
    message: Optional[str]
    created_at: datetime

    @property
    def short_hash(self) -> str:
        return self.hash[:8]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            "id": self.id,
            "owner": self.owner,
            "path": self.path,
            "hash": self.hash,
            "message": self.message,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_row(cls, row: Tuple) -> 'SnapshotSummary':
        """Create from an (id, owner, path, hash, message, created_at) row"""
        return cls(
            id=row[0],
            owner=row[1],
            path=row[2],
            hash=row[3],
            message=row[4],
            created_at=parse_timestamp(row[5]),
        )


@dataclass(frozen=True)
class SnapshotRecord:
    """An immutable point-in-time copy of a tracked file."""
    id: int
    owner: str
    path: str
    content: str
    hash: str
    message: Optional[str]
    created_at: datetime

    def summary(self) -> SnapshotSummary:
        """Drop the content for listings"""
        return SnapshotSummary(
            id=self.id,
            owner=self.owner,
            path=self.path,
            hash=self.hash,
            message=self.message,
            created_at=self.created_at,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        data = self.summary().to_dict()
        data["content"] = self.content
        return data

    @classmethod
    def from_row(cls, row: Tuple) -> 'SnapshotRecord':
        """Create from an (id, owner, path, content, hash, message, created_at) row"""
        return cls(
            id=row[0],
            owner=row[1],
            path=row[2],
            content=row[3],
            hash=row[4],
            message=row[5],
            created_at=parse_timestamp(row[6]),
        )


class ChangeTag(Enum):
    """Kind of a line inside a hunk."""
    EQUAL = " "
    DELETE = "-"
    INSERT = "+"

    @property
    def prefix(self) -> str:
        return self.value


@dataclass(frozen=True)
class DiffLine:
    """One line of a hunk, without its line terminator."""
    tag: ChangeTag
    text: str
    missing_newline: bool = False


@dataclass(frozen=True)
class Hunk:
    """A contiguous block of changed lines with surrounding context.

    Line numbers follow unified-diff conventions: 1-based starts, and for an
    empty side the start is the line *before* the insertion point.
    """
    old_start: int
    old_count: int
    new_start: int
    new_count: int
    lines: Tuple[DiffLine, ...]

    @property
    def header(self) -> str:
        return (
            f"@@ -{_format_range(self.old_start, self.old_count)} "
            f"+{_format_range(self.new_start, self.new_count)} @@"
        )

    @property
    def deletions(self) -> List[DiffLine]:
        return [line for line in self.lines if line.tag is ChangeTag.DELETE]

    @property
    def insertions(self) -> List[DiffLine]:
        return [line for line in self.lines if line.tag is ChangeTag.INSERT]


def _format_range(start: int, count: int) -> str:
    if count == 1:
        return str(start)
    return f"{start},{count}"


@dataclass
class DiffResult:
    """Old vs new content of one file; derived on demand, never stored.

    ``is_new`` marks a file that has never been captured: the old side is
    then empty text and every line renders as added.
    """
    path: str
    old_content: str
    new_content: str
    is_new: bool = False
    old_label: Optional[str] = None
    new_label: Optional[str] = None
    context_radius: int = 3
    _hunks: Optional[List[Hunk]] = field(default=None, init=False, repr=False, compare=False)

    @property
    def hunks(self) -> List[Hunk]:
        if self._hunks is None:
            from ..snapshot.diff import diff
            self._hunks = diff(self.old_content, self.new_content, self.context_radius)
        return self._hunks

    @property
    def has_changes(self) -> bool:
        return self.old_content != self.new_content

    def stats(self) -> Tuple[int, int]:
        """Return (lines added, lines removed)."""
        added = sum(len(h.insertions) for h in self.hunks)
        removed = sum(len(h.deletions) for h in self.hunks)
        return added, removed


@dataclass
class CaptureFailure:
    """A tracked path that could not be captured."""
    owner: str
    path: str
    error: Exception

    def __str__(self) -> str:
        return f"{self.owner}: {self.path}: {self.error}"


@dataclass
class CaptureReport:
    """Tally of a capture run plus any per-path failures."""
    created: int = 0
    failures: List[CaptureFailure] = field(default_factory=list)
    per_owner: Dict[str, int] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failures

    def merge(self, other: 'CaptureReport') -> None:
        """Fold another report into this one"""
        self.created += other.created
        self.failures.extend(other.failures)
        for owner, count in other.per_owner.items():
            self.per_owner[owner] = self.per_owner.get(owner, 0) + count


@dataclass(frozen=True)
class RollbackResult:
    """Outcome of restoring a snapshot to disk."""
    snapshot_id: int
    path: str
    target: Path
    backup_path: Optional[Path] = None


__all__ = [
    "content_hash",
    "parse_timestamp",
    "SnapshotSummary",
    "SnapshotRecord",
    "ChangeTag",
    "DiffLine",
    "Hunk",
    "DiffResult",
    "CaptureFailure",
    "CaptureReport",
    "RollbackResult",
]
