"""Diff engine.

``diff`` is a pure function: the same two texts always produce the same
hunks. The composed helpers compare the latest stored snapshot of a file
with what is currently on disk.
"""

from difflib import SequenceMatcher
from pathlib import Path
from typing import List, Optional, Sequence, Union

from ..models.snapshot import ChangeTag, DiffLine, DiffResult, Hunk
from ..storage.snapshot_store import SnapshotStore
from ..utils.errors import FileIOError
from ..utils.fs import read_text
from ..utils.logging import get_logger
from ..utils.paths import contract_path, expand_path
from .capture import tracked_files

logger = get_logger(__name__)

DEFAULT_CONTEXT = 3


def split_lines(text: str) -> List[str]:
    """Split on ``\\n`` only, keeping terminators.

    ``str.splitlines`` also breaks on form feeds, vertical tabs and unicode
    separators, which would misnumber lines of config files.
    """
    if not text:
        return []
    parts = text.split("\n")
    lines = [part + "\n" for part in parts[:-1]]
    if parts[-1]:
        lines.append(parts[-1])
    return lines


def _diff_line(tag: ChangeTag, raw: str) -> DiffLine:
    if raw.endswith("\n"):
        return DiffLine(tag, raw[:-1])
    return DiffLine(tag, raw, missing_newline=True)


def _start(lo: int, count: int) -> int:
    # unified-diff convention: an empty range points at the line before it
    return lo + 1 if count else lo


def diff(old: str, new: str, context: int = DEFAULT_CONTEXT) -> List[Hunk]:
    """Compute line hunks between two texts.

    Args:
        old: Previous text
        new: Current text
        context: Unchanged lines kept around each change

    Returns:
        Hunks in file order; an empty list when the texts are equal
    """
    if old == new:
        return []

    a = split_lines(old)
    b = split_lines(new)
    matcher = SequenceMatcher(None, a, b, autojunk=False)

    hunks: List[Hunk] = []
    for group in matcher.get_grouped_opcodes(context):
        i1, i2 = group[0][1], group[-1][2]
        j1, j2 = group[0][3], group[-1][4]

        lines: List[DiffLine] = []
        for tag, a1, a2, b1, b2 in group:
            if tag == "equal":
                lines.extend(_diff_line(ChangeTag.EQUAL, raw) for raw in a[a1:a2])
                continue
            if tag in ("replace", "delete"):
                lines.extend(_diff_line(ChangeTag.DELETE, raw) for raw in a[a1:a2])
            if tag in ("replace", "insert"):
                lines.extend(_diff_line(ChangeTag.INSERT, raw) for raw in b[b1:b2])

        hunks.append(Hunk(
            old_start=_start(i1, i2 - i1),
            old_count=i2 - i1,
            new_start=_start(j1, j2 - j1),
            new_count=j2 - j1,
            lines=tuple(lines),
        ))

    return hunks


def has_changes(old: str, new: str) -> bool:
    """Check if two texts differ at all."""
    return old != new


def read_current(target: Path) -> str:
    """Read a tracked file for diffing; any failure is an IOFailure."""
    try:
        return read_text(target)
    except (OSError, UnicodeDecodeError) as e:
        raise FileIOError(target, "read", cause=e) from e


def diff_against_latest(
    store: SnapshotStore,
    owner: str,
    path: Union[str, Path],
    context: int = DEFAULT_CONTEXT,
) -> Optional[DiffResult]:
    """Diff the current file against its most recent snapshot.

    Returns:
        None when the file is byte-identical to the latest snapshot.
        Otherwise a DiffResult; if the pair was never captured the old side
        is empty and ``is_new`` is set.

    Raises:
        FileIOError: The current file cannot be read
    """
    target = expand_path(path)
    portable = contract_path(target)
    current = read_current(target)

    latest = store.latest(owner, portable)
    if latest is None:
        logger.debug("diff_without_baseline", owner=owner, path=portable)
        return DiffResult(
            path=portable,
            old_content="",
            new_content=current,
            is_new=True,
            context_radius=context,
        )

    if latest == current:
        return None

    return DiffResult(
        path=portable,
        old_content=latest,
        new_content=current,
        context_radius=context,
    )


def diff_paths(
    store: SnapshotStore,
    owner: str,
    paths: Sequence[Union[str, Path]],
    context: int = DEFAULT_CONTEXT,
) -> List[DiffResult]:
    """Batch form of ``diff_against_latest`` over tracked locations.

    Missing locations are skipped, directories contribute their immediate
    files, unchanged files are omitted.
    """
    results: List[DiffResult] = []
    for path in paths:
        for target in tracked_files(path):
            result = diff_against_latest(store, owner, target, context)
            if result is not None:
                results.append(result)
    return results


__all__ = [
    "DEFAULT_CONTEXT",
    "split_lines",
    "diff",
    "has_changes",
    "read_current",
    "diff_against_latest",
    "diff_paths",
]
