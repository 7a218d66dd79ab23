"""
File system utilities for dotsmith.

Provides atomic writes, owner-only file/directory creation and text reads
that preserve content byte-for-byte.
"""

import os
import stat
import tempfile
from pathlib import Path
from typing import Optional, Union

from .logging import get_logger

logger = get_logger(__name__)

PRIVATE_FILE_MODE = 0o600
PRIVATE_DIR_MODE = 0o700


def read_text(path: Union[str, Path]) -> str:
    """Read a UTF-8 text file without newline translation."""
    with open(path, "r", encoding="utf-8", newline="") as f:
        return f.read()


def atomic_write(
    path: Union[str, Path],
    content: str,
    mode: Optional[int] = None,
) -> None:
    """Write text atomically using the tempfile + rename pattern.

    The temporary file lives in the destination directory so the final
    ``os.replace`` never crosses a filesystem. Data is fsynced before the
    rename, so the target is always either the old or the new content.

    Args:
        path: Target file path
        content: Text to write (UTF-8, no newline translation)
        mode: Permission bits for the result. Defaults to the existing
            target's bits, or 0600 for a new file.
    """
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)

    if mode is None:
        try:
            mode = stat.S_IMODE(target.stat().st_mode)
        except FileNotFoundError:
            mode = PRIVATE_FILE_MODE

    fd, tmp_path = tempfile.mkstemp(
        dir=target.parent,
        prefix=f".{target.name}.",
        suffix=".tmp"
    )

    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.chmod(tmp_path, mode)
        os.replace(tmp_path, target)
    except BaseException:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise

    _fsync_dir(target.parent)


def _fsync_dir(directory: Path) -> None:
    """Persist a rename by syncing its directory (best effort on non-POSIX)."""
    try:
        dir_fd = os.open(directory, os.O_RDONLY)
    except OSError:
        return
    try:
        os.fsync(dir_fd)
    except OSError:
        logger.debug("directory_fsync_unsupported", directory=str(directory))
    finally:
        os.close(dir_fd)


def ensure_private_dir(dir_path: Union[str, Path]) -> Path:
    """Create a directory (and parents) with owner-only permissions.

    An already existing directory keeps its permissions.
    """
    path = Path(dir_path)
    if not path.is_dir():
        path.mkdir(parents=True, exist_ok=True)
        os.chmod(path, PRIVATE_DIR_MODE)
    return path


def create_private_file(file_path: Union[str, Path]) -> bool:
    """Create an empty owner-only file if it does not exist.

    Returns:
        True if the file was created by this call
    """
    try:
        fd = os.open(file_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, PRIVATE_FILE_MODE)
    except FileExistsError:
        return False
    os.close(fd)
    # umask may have stripped bits, never widened them; make the mode exact
    os.chmod(file_path, PRIVATE_FILE_MODE)
    return True


def restrict_permissions(file_path: Union[str, Path]) -> bool:
    """Drop group/other permission bits from an existing file.

    Returns:
        True if the mode was changed
    """
    current = stat.S_IMODE(os.stat(file_path).st_mode)
    restricted = current & ~(stat.S_IRWXG | stat.S_IRWXO)
    if restricted == current:
        return False
    os.chmod(file_path, restricted)
    return True


__all__ = [
    "PRIVATE_FILE_MODE",
    "PRIVATE_DIR_MODE",
    "read_text",
    "atomic_write",
    "ensure_private_dir",
    "create_private_file",
    "restrict_permissions",
]
