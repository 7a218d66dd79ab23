"""Capture service.

Turns the on-disk state of an owner's tracked locations into snapshot
records. A tracked location may be a file or a directory; directories are
expanded one level only (files directly inside them, subdirectories are not
recursed into). Locations that do not exist are skipped silently since a
missing config file is a normal state.
"""

from pathlib import Path
from typing import List, Mapping, Optional, Sequence, Union

from ..models.snapshot import CaptureFailure, CaptureReport
from ..storage.snapshot_store import SnapshotStore
from ..utils.errors import FileIOError, PartialCaptureError
from ..utils.fs import read_text
from ..utils.logging import get_logger
from ..utils.paths import contract_path, expand_path

logger = get_logger(__name__)

PathLike = Union[str, Path]


def tracked_files(path: PathLike) -> List[Path]:
    """Expand a tracked location into the files it covers.

    Returns:
        ``[file]`` for a regular file, the immediate regular files of a
        directory sorted by name, or ``[]`` if nothing exists there

    Raises:
        FileIOError: A directory exists but cannot be listed
    """
    target = expand_path(path)
    if target.is_dir():
        try:
            children = [child for child in target.iterdir() if child.is_file()]
        except OSError as e:
            raise FileIOError(target, "list directory", cause=e) from e
        return sorted(children, key=lambda child: child.name)
    if target.is_file():
        return [target]
    return []


class CaptureService:
    """Records new snapshots for tracked files, skipping unchanged ones."""

    def __init__(self, store: SnapshotStore):
        self.store = store

    def capture_file(self, owner: str, target: Path, message: Optional[str] = None) -> bool:
        """Snapshot one file.

        Returns:
            True if a new record was created, False if the content was
            already recorded
        """
        try:
            content = read_text(target)
        except (OSError, UnicodeDecodeError) as e:
            raise FileIOError(target, "read", cause=e) from e

        return self.store.insert(owner, contract_path(target), content, message)

    def capture_report(
        self,
        owner: str,
        paths: Sequence[PathLike],
        message: Optional[str] = None,
    ) -> CaptureReport:
        """Capture every tracked location of an owner, collecting failures.

        A file that cannot be read is recorded as a failure and the
        remaining files are still captured. Store failures are not collected:
        they propagate immediately.
        """
        report = CaptureReport(per_owner={owner: 0})

        for path in paths:
            try:
                targets = tracked_files(path)
            except FileIOError as e:
                logger.warning("capture_path_failed", owner=owner, path=str(path), error=e.message)
                report.failures.append(CaptureFailure(owner, str(path), e))
                continue

            if not targets:
                logger.debug("capture_path_missing", owner=owner, path=str(path))

            for target in targets:
                try:
                    created = self.capture_file(owner, target, message)
                except FileIOError as e:
                    logger.warning("capture_path_failed", owner=owner, path=e.path, error=e.message)
                    report.failures.append(CaptureFailure(owner, contract_path(target), e))
                    continue
                if created:
                    report.created += 1
                    report.per_owner[owner] += 1

        return report

    def capture(
        self,
        owner: str,
        paths: Sequence[PathLike],
        message: Optional[str] = None,
    ) -> int:
        """Capture an owner's tracked locations.

        Returns:
            Number of newly created records (0 means nothing changed)

        Raises:
            PartialCaptureError: Some files could not be read; the others
                were captured and the error carries their count
            StoreError: The snapshot database failed
        """
        report = self.capture_report(owner, paths, message)
        if report.failures:
            raise PartialCaptureError(owner, report.created, report.failures)

        logger.debug("capture_completed", owner=owner, created=report.created)
        return report.created

    def capture_all(
        self,
        owner_map: Mapping[str, Sequence[PathLike]],
        message: Optional[str] = None,
    ) -> CaptureReport:
        """Capture every owner in the mapping.

        Owners are independent: a failure for one owner is reported and the
        others are still captured. ``report.created`` is the total count.
        """
        total = CaptureReport()
        for owner, paths in owner_map.items():
            total.merge(self.capture_report(owner, paths, message))

        logger.info(
            "capture_all_completed",
            owners=len(owner_map),
            created=total.created,
            failures=len(total.failures),
        )
        return total


__all__ = ["tracked_files", "CaptureService"]
