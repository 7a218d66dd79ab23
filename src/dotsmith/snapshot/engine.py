"""Snapshot engine.

Facade bundling one open snapshot store with the capture, diff, history and
rollback services. CLI commands and TUI views talk to this class only.
"""

from pathlib import Path
from typing import List, Mapping, Optional, Sequence, Tuple, Union

from ..models.snapshot import (
    CaptureReport,
    DiffResult,
    RollbackResult,
    SnapshotRecord,
    SnapshotSummary,
)
from ..storage.snapshot_store import SnapshotStore
from ..utils.config import DotsmithConfig
from ..utils.errors import error_context
from .capture import CaptureService
from .diff import DEFAULT_CONTEXT, diff_against_latest, diff_paths
from .history import HistoryService
from .rollback import RollbackService

PathLike = Union[str, Path]


class SnapshotEngine:
    """Entry point to the snapshot core for one process invocation.

    Example:
        with SnapshotEngine.open(load_config()) as engine:
            engine.capture("tmux", ["~/.config/tmux/tmux.conf"], "before upgrade")
    """

    def __init__(
        self,
        store: SnapshotStore,
        backup_dir: PathLike,
        context: int = DEFAULT_CONTEXT,
        history_limit: int = 20,
    ):
        """
        Args:
            store: Open snapshot store shared by every service
            backup_dir: Directory receiving pre-rollback backups
            context: Diff context radius
            history_limit: Default size of history listings
        """
        self.store = store
        self.context = context
        self.capturer = CaptureService(store)
        self.history_service = HistoryService(store, default_limit=history_limit, context=context)
        self.rollbacks = RollbackService(store, backup_dir, context=context)

    @classmethod
    def open(cls, config: DotsmithConfig, create: bool = True) -> "SnapshotEngine":
        """Open the store described by the configuration.

        Raises:
            NotInitializedError: The config directory does not exist
            StoreError: The database cannot be opened
        """
        store = SnapshotStore(
            config.db_path,
            busy_timeout=config.storage.busy_timeout,
            journal_mode=config.storage.journal_mode,
            synchronous=config.storage.synchronous,
            create=create,
        )
        return cls(
            store,
            config.backup_dir,
            context=config.diff.context_radius,
            history_limit=config.history.default_limit,
        )

    @property
    def backup_dir(self) -> Path:
        return self.rollbacks.backup_dir

    # Capture

    def capture(self, owner: str, paths: Sequence[PathLike], message: Optional[str] = None) -> int:
        """Snapshot an owner's tracked locations; returns new record count."""
        with error_context("engine", "capture", owner=owner):
            return self.capturer.capture(owner, paths, message)

    def capture_all(
        self,
        owner_map: Mapping[str, Sequence[PathLike]],
        message: Optional[str] = None,
    ) -> CaptureReport:
        """Snapshot every owner; ``report.created`` is the total count."""
        with error_context("engine", "capture_all"):
            return self.capturer.capture_all(owner_map, message)

    # Diff

    def diff_against_latest(self, owner: str, path: PathLike) -> Optional[DiffResult]:
        """Current file vs its latest snapshot; None if identical."""
        with error_context("engine", "diff", owner=owner, path=path):
            return diff_against_latest(self.store, owner, path, self.context)

    def diff_paths(self, owner: str, paths: Sequence[PathLike]) -> List[DiffResult]:
        """Changed files among an owner's tracked locations."""
        with error_context("engine", "diff", owner=owner):
            return diff_paths(self.store, owner, paths, self.context)

    # History / lookup

    def history(self, owner: str, limit: Optional[int] = None) -> List[SnapshotSummary]:
        """Most recent snapshots of an owner, newest first."""
        with error_context("engine", "history", owner=owner):
            return self.history_service.recent(owner, limit)

    def latest(self, owner: str, path: PathLike) -> SnapshotRecord:
        """Most recent snapshot of one tracked file; raises HistoryNotFoundError."""
        with error_context("engine", "latest", owner=owner, path=path):
            return self.history_service.latest(owner, path)

    def get_by_id(self, snapshot_id: int) -> Optional[Tuple[str, str]]:
        """(path, content) of a snapshot, or None."""
        with error_context("engine", "get_by_id", snapshot_id=snapshot_id):
            return self.history_service.lookup(snapshot_id)

    def diff_snapshots(self, from_id: int, to_id: int) -> DiffResult:
        with error_context("engine", "diff_snapshots", snapshot_id=to_id):
            return self.history_service.diff_snapshots(from_id, to_id)

    def diff_snapshot_against_disk(self, snapshot_id: int) -> Optional[DiffResult]:
        with error_context("engine", "diff_snapshot_against_disk", snapshot_id=snapshot_id):
            return self.history_service.diff_snapshot_against_disk(snapshot_id)

    # Rollback

    def rollback(self, snapshot_id: int) -> str:
        """Restore a snapshot to disk; returns the restored (portable) path."""
        return self.rollback_result(snapshot_id).path

    def rollback_result(self, snapshot_id: int) -> RollbackResult:
        """Restore a snapshot to disk and report where the backup went."""
        with error_context("engine", "rollback", snapshot_id=snapshot_id):
            return self.rollbacks.rollback(snapshot_id)

    def preview_rollback(self, snapshot_id: int) -> Optional[DiffResult]:
        """Dry run of ``rollback``: the change it would make, or None."""
        with error_context("engine", "preview_rollback", snapshot_id=snapshot_id):
            return self.rollbacks.preview(snapshot_id)

    def close(self) -> None:
        self.store.close()

    def __enter__(self) -> "SnapshotEngine":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


__all__ = ["SnapshotEngine"]
