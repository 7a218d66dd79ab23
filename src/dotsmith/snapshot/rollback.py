"""Rollback service.

Restores a tracked file to the content of a stored snapshot:

1. resolve the snapshot id,
2. copy the current file (if any) unmodified into the backup directory,
3. atomically replace the file with the snapshot content.

A failing step aborts before the next one runs, and the snapshot store is
only ever read.
"""

import shutil
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional, Union

from ..models.snapshot import DiffResult, RollbackResult
from ..storage.snapshot_store import SnapshotStore
from ..utils.errors import FileIOError, SnapshotNotFoundError
from ..utils.fs import atomic_write, ensure_private_dir
from ..utils.logging import get_logger
from ..utils.paths import expand_path
from .diff import DEFAULT_CONTEXT, read_current

logger = get_logger(__name__)

BACKUP_TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"


class RollbackService:
    """Restores snapshots to disk, keeping a backup of what it overwrites."""

    def __init__(
        self,
        store: SnapshotStore,
        backup_dir: Union[str, Path],
        context: int = DEFAULT_CONTEXT,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        """
        Args:
            store: Snapshot store to read from
            backup_dir: Where pre-rollback copies are written
            context: Diff context radius used by ``preview``
            clock: Source of the backup timestamp
        """
        self.store = store
        self.backup_dir = Path(backup_dir)
        self.context = context
        self._clock = clock

    def rollback(self, snapshot_id: int) -> RollbackResult:
        """Restore the file of a snapshot to the snapshot's content.

        Raises:
            SnapshotNotFoundError: Unknown id; nothing on disk is touched
            FileIOError: The backup or the write failed
        """
        resolved = self.store.get_by_id(snapshot_id)
        if resolved is None:
            raise SnapshotNotFoundError(snapshot_id)
        path, content = resolved

        target = expand_path(path)
        backup_path = self.backup(target)

        try:
            atomic_write(target, content)
        except OSError as e:
            raise FileIOError(target, "write", cause=e) from e

        logger.info(
            "snapshot_restored",
            snapshot_id=snapshot_id,
            path=path,
            backup=str(backup_path) if backup_path else None,
        )
        return RollbackResult(
            snapshot_id=snapshot_id,
            path=path,
            target=target,
            backup_path=backup_path,
        )

    def backup(self, target: Path) -> Optional[Path]:
        """Copy ``target`` into the backup directory.

        Returns:
            The backup file, or None when there is no file to back up
        """
        if not target.exists():
            return None

        try:
            ensure_private_dir(self.backup_dir)
            backup_path = self._backup_name(target)
            shutil.copy2(target, backup_path)
        except OSError as e:
            raise FileIOError(target, "back up", cause=e) from e

        logger.debug("backup_created", path=str(target), backup=str(backup_path))
        return backup_path

    def _backup_name(self, target: Path) -> Path:
        """``<name>.<YYYYMMDD_HHMMSS>.bak``, suffixed ``.1``, ``.2``... on collision."""
        stamp = self._clock().strftime(BACKUP_TIMESTAMP_FORMAT)
        base = f"{target.name or 'file'}.{stamp}.bak"
        candidate = self.backup_dir / base
        counter = 1
        while candidate.exists():
            candidate = self.backup_dir / f"{base}.{counter}"
            counter += 1
        return candidate

    def preview(self, snapshot_id: int) -> Optional[DiffResult]:
        """What a rollback would change: current disk (old) vs snapshot (new).

        Returns:
            None if the file is already at the snapshot's state
        """
        resolved = self.store.get_by_id(snapshot_id)
        if resolved is None:
            raise SnapshotNotFoundError(snapshot_id)
        path, content = resolved

        target = expand_path(path)
        exists = target.exists()
        current = read_current(target) if exists else ""
        if exists and current == content:
            return None

        return DiffResult(
            path=path,
            old_content=current,
            new_content=content,
            is_new=not exists,
            new_label=f"b/{path} (#{snapshot_id})",
            context_radius=self.context,
        )


__all__ = ["RollbackService", "BACKUP_TIMESTAMP_FORMAT"]
