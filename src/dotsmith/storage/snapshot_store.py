"""Content store for snapshot records.

The only component that touches the snapshot database. Deduplication lives
in the schema: a UNIQUE(owner, path, hash) constraint plus INSERT OR IGNORE
makes "insert unless identical content is already recorded" one atomic
statement, so concurrent writers cannot create duplicates.
"""

from pathlib import Path
from typing import Iterator, List, Optional, Tuple, Union

from .database import Database, MEMORY
from ..models.snapshot import SnapshotRecord, SnapshotSummary, content_hash
from ..utils.errors import NotInitializedError, StoreError, ValidationError
from ..utils.fs import create_private_file, restrict_permissions
from ..utils.logging import get_logger

logger = get_logger(__name__)

SCHEMA_VERSION = 1
DEFAULT_DB_NAME = "snapshots.db"

SCHEMA = """
CREATE TABLE IF NOT EXISTS snapshots (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    owner       TEXT NOT NULL,
    path        TEXT NOT NULL,
    content     TEXT NOT NULL,
    hash        TEXT NOT NULL,
    message     TEXT,
    created_at  TEXT NOT NULL DEFAULT (datetime('now')),
    UNIQUE(owner, path, hash)
);
CREATE INDEX IF NOT EXISTS idx_snapshots_owner_id ON snapshots(owner, id);
CREATE INDEX IF NOT EXISTS idx_snapshots_owner_path_id ON snapshots(owner, path, id);
"""

_SUMMARY_COLUMNS = "id, owner, path, hash, message, created_at"
_RECORD_COLUMNS = "id, owner, path, content, hash, message, created_at"


class SnapshotStore:
    """Durable, queryable persistence of snapshot records.

    One store is opened per process invocation and handed explicitly to the
    services that need it.
    """

    def __init__(
        self,
        db_path: Union[Path, str],
        busy_timeout: float = 5.0,
        journal_mode: str = "WAL",
        synchronous: str = "NORMAL",
        create: bool = True,
    ):
        """
        Open (or create) a snapshot database.

        Args:
            db_path: Database file, or ":memory:" for a throwaway store
            busy_timeout: Seconds a writer waits on a competing writer
            journal_mode: SQLite journal mode
            synchronous: SQLite synchronous level
            create: Create the database file if it is missing

        Raises:
            NotInitializedError: The containing directory (or, with
                ``create=False``, the database file) does not exist
            StoreError: The database could not be opened or is corrupt
        """
        self.db = Database(
            db_path,
            timeout=busy_timeout,
            journal_mode=journal_mode,
            synchronous=synchronous,
        )
        if not self.db.is_memory:
            self._prepare_file(Path(db_path), create)
        self.db.connect()
        try:
            self._init_schema()
        except StoreError:
            self.db.close()
            raise

        logger.debug("snapshot_store_opened", db_path=str(self.db_path))

    @classmethod
    def open(
        cls,
        config_dir: Union[Path, str],
        db_name: str = DEFAULT_DB_NAME,
        **kwargs
    ) -> "SnapshotStore":
        """Open the store living in ``<config_dir>/<db_name>``."""
        return cls(Path(config_dir) / db_name, **kwargs)

    @classmethod
    def in_memory(cls) -> "SnapshotStore":
        """Open a private store that vanishes on close."""
        return cls(MEMORY)

    @property
    def db_path(self) -> Union[Path, str]:
        return self.db.db_path

    def _prepare_file(self, db_path: Path, create: bool) -> None:
        """Check the location and enforce owner-only permissions."""
        if not db_path.parent.is_dir():
            raise NotInitializedError(db_path.parent)

        try:
            if db_path.exists():
                if restrict_permissions(db_path):
                    logger.warning("snapshot_store_permissions_restricted", db_path=str(db_path))
            elif create:
                create_private_file(db_path)
            else:
                raise NotInitializedError(db_path)
        except OSError as e:
            raise StoreError(db_path, "open", cause=e) from e

    def _init_schema(self) -> None:
        """Create the schema if it doesn't exist."""
        row = self.db.fetchone("PRAGMA user_version", operation="read schema version")
        version = row[0] if row else 0
        if version >= SCHEMA_VERSION:
            return

        self.db.executescript(SCHEMA, operation="create schema")
        self.db.execute(f"PRAGMA user_version={SCHEMA_VERSION}", operation="set schema version")

    def insert(
        self,
        owner: str,
        path: str,
        content: str,
        message: Optional[str] = None,
    ) -> bool:
        """Record content for (owner, path) unless it is already recorded.

        Returns:
            True if a new record was created, False if identical content was
            already stored for the pair
        """
        digest = content_hash(content)
        cursor = self.db.execute(
            "INSERT OR IGNORE INTO snapshots (owner, path, content, hash, message) "
            "VALUES (?, ?, ?, ?, ?)",
            (owner, path, content, digest, message),
            operation=f"insert snapshot for {owner}:{path}",
        )
        inserted = cursor.rowcount > 0

        if inserted:
            logger.info(
                "snapshot_created",
                owner=owner,
                path=path,
                snapshot_id=cursor.lastrowid,
                hash=digest[:8],
            )
        else:
            logger.debug("snapshot_unchanged", owner=owner, path=path, hash=digest[:8])

        return inserted

    def latest(self, owner: str, path: str) -> Optional[str]:
        """Content of the most recent record for (owner, path), if any."""
        row = self.db.fetchone(
            "SELECT content FROM snapshots WHERE owner = ? AND path = ? "
            "ORDER BY id DESC LIMIT 1",
            (owner, path),
            operation=f"read latest snapshot for {owner}:{path}",
        )
        return row[0] if row else None

    def latest_record(self, owner: str, path: str) -> Optional[SnapshotRecord]:
        """Most recent full record for (owner, path), if any."""
        row = self.db.fetchone(
            f"SELECT {_RECORD_COLUMNS} FROM snapshots WHERE owner = ? AND path = ? "
            "ORDER BY id DESC LIMIT 1",
            (owner, path),
            operation=f"read latest snapshot for {owner}:{path}",
        )
        return SnapshotRecord.from_row(row) if row else None

    def history(self, owner: str, limit: int) -> List[SnapshotSummary]:
        """Most recent records for an owner, newest first, at most ``limit``."""
        _check_limit(limit)
        rows = self.db.fetchall(
            f"SELECT {_SUMMARY_COLUMNS} FROM snapshots WHERE owner = ? "
            "ORDER BY id DESC LIMIT ?",
            (owner, limit),
            operation=f"read history for {owner}",
        )
        return [SnapshotSummary.from_row(row) for row in rows]

    def iter_history(self, owner: str, page_size: int = 100) -> Iterator[SnapshotSummary]:
        """Lazily walk an owner's whole history, newest first.

        Pages are fetched by id keyset so records inserted while iterating
        never break the descending order.
        """
        _check_limit(page_size, field="page_size")
        before: Optional[int] = None
        while True:
            if before is None:
                rows = self.db.fetchall(
                    f"SELECT {_SUMMARY_COLUMNS} FROM snapshots WHERE owner = ? "
                    "ORDER BY id DESC LIMIT ?",
                    (owner, page_size),
                    operation=f"read history for {owner}",
                )
            else:
                rows = self.db.fetchall(
                    f"SELECT {_SUMMARY_COLUMNS} FROM snapshots WHERE owner = ? AND id < ? "
                    "ORDER BY id DESC LIMIT ?",
                    (owner, before, page_size),
                    operation=f"read history for {owner}",
                )
            for row in rows:
                yield SnapshotSummary.from_row(row)
            if len(rows) < page_size:
                return
            before = rows[-1][0]

    def path_history(self, owner: str, path: str, limit: int) -> List[SnapshotSummary]:
        """Most recent records for one (owner, path) pair, newest first."""
        _check_limit(limit)
        rows = self.db.fetchall(
            f"SELECT {_SUMMARY_COLUMNS} FROM snapshots WHERE owner = ? AND path = ? "
            "ORDER BY id DESC LIMIT ?",
            (owner, path, limit),
            operation=f"read history for {owner}:{path}",
        )
        return [SnapshotSummary.from_row(row) for row in rows]

    def get_by_id(self, snapshot_id: int) -> Optional[Tuple[str, str]]:
        """Return (path, content) of a snapshot, or None for an unknown id."""
        row = self.db.fetchone(
            "SELECT path, content FROM snapshots WHERE id = ?",
            (snapshot_id,),
            operation=f"read snapshot #{snapshot_id}",
        )
        return (row[0], row[1]) if row else None

    def get_record(self, snapshot_id: int) -> Optional[SnapshotRecord]:
        """Return the full record of a snapshot, or None for an unknown id."""
        row = self.db.fetchone(
            f"SELECT {_RECORD_COLUMNS} FROM snapshots WHERE id = ?",
            (snapshot_id,),
            operation=f"read snapshot #{snapshot_id}",
        )
        return SnapshotRecord.from_row(row) if row else None

    def owners(self) -> List[str]:
        """Owners with at least one snapshot, sorted by name."""
        rows = self.db.fetchall(
            "SELECT DISTINCT owner FROM snapshots ORDER BY owner",
            operation="list owners",
        )
        return [row[0] for row in rows]

    def count(self, owner: Optional[str] = None) -> int:
        """Number of records, optionally for one owner."""
        if owner is None:
            row = self.db.fetchone("SELECT COUNT(*) FROM snapshots", operation="count snapshots")
        else:
            row = self.db.fetchone(
                "SELECT COUNT(*) FROM snapshots WHERE owner = ?",
                (owner,),
                operation=f"count snapshots for {owner}",
            )
        return row[0]

    def close(self) -> None:
        """Close the underlying connection."""
        self.db.close()

    def __enter__(self) -> "SnapshotStore":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


def _check_limit(value: int, field: str = "limit") -> None:
    if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
        raise ValidationError(field, value, "must be a positive integer")


__all__ = ["SnapshotStore", "SCHEMA_VERSION", "DEFAULT_DB_NAME"]
