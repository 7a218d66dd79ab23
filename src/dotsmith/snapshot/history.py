"""History and lookup service: the read side used by presentation layers."""

from pathlib import Path
from typing import List, Optional, Tuple, Union

from ..models.snapshot import DiffResult, SnapshotRecord, SnapshotSummary
from ..storage.snapshot_store import SnapshotStore
from ..utils.errors import HistoryNotFoundError, SnapshotNotFoundError
from ..utils.paths import contract_path, expand_path
from .diff import DEFAULT_CONTEXT, read_current


class HistoryService:
    """Bounded history views and exact-id lookups over a snapshot store."""

    def __init__(
        self,
        store: SnapshotStore,
        default_limit: int = 20,
        context: int = DEFAULT_CONTEXT,
    ):
        self.store = store
        self.default_limit = default_limit
        self.context = context

    def recent(self, owner: str, limit: Optional[int] = None) -> List[SnapshotSummary]:
        """Most recent snapshots of an owner, newest first.

        Raises:
            ValidationError: ``limit`` is zero or negative
        """
        return self.store.history(owner, self._limit(limit))

    def for_path(
        self,
        owner: str,
        path: Union[str, Path],
        limit: Optional[int] = None,
    ) -> List[SnapshotSummary]:
        """Most recent snapshots of one tracked file, newest first.

        ``path`` may be absolute or ``~/...``; it is stored in portable form.
        """
        portable = contract_path(expand_path(path))
        return self.store.path_history(owner, portable, self._limit(limit))

    def latest(self, owner: str, path: Union[str, Path]) -> SnapshotRecord:
        """Most recent snapshot of one tracked file.

        Raises:
            HistoryNotFoundError: The pair has never been captured
        """
        portable = contract_path(expand_path(path))
        record = self.store.latest_record(owner, portable)
        if record is None:
            raise HistoryNotFoundError(owner, portable)
        return record

    def _limit(self, limit: Optional[int]) -> int:
        return self.default_limit if limit is None else limit

    def lookup(self, snapshot_id: int) -> Optional[Tuple[str, str]]:
        """(path, content) of a snapshot, or None."""
        return self.store.get_by_id(snapshot_id)

    def fetch(self, snapshot_id: int) -> SnapshotRecord:
        """Full record of a snapshot.

        Raises:
            SnapshotNotFoundError: The id does not resolve
        """
        record = self.store.get_record(snapshot_id)
        if record is None:
            raise SnapshotNotFoundError(snapshot_id)
        return record

    def diff_snapshots(self, from_id: int, to_id: int) -> DiffResult:
        """Diff two stored snapshots (old = ``from_id``, new = ``to_id``)."""
        old = self.fetch(from_id)
        new = self.fetch(to_id)
        return DiffResult(
            path=new.path,
            old_content=old.content,
            new_content=new.content,
            old_label=f"a/{old.path} (#{old.id})",
            new_label=f"b/{new.path} (#{new.id})",
            context_radius=self.context,
        )

    def diff_snapshot_against_disk(self, snapshot_id: int) -> Optional[DiffResult]:
        """Diff a stored snapshot (old) against the file on disk now (new).

        A file that no longer exists compares as empty text.

        Returns:
            None if the file on disk equals the snapshot
        """
        record = self.fetch(snapshot_id)
        target = expand_path(record.path)
        current = read_current(target) if target.exists() else ""

        if current == record.content:
            return None

        return DiffResult(
            path=record.path,
            old_content=record.content,
            new_content=current,
            old_label=f"a/{record.path} (#{record.id})",
            new_label=f"b/{record.path} (disk)",
            context_radius=self.context,
        )


__all__ = ["HistoryService"]
