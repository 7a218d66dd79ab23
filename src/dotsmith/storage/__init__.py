"""
Storage components for dotsmith.

This package provides:
- A thin sqlite3 wrapper
- The snapshot content store
"""

from .database import Database
from .snapshot_store import SnapshotStore

__all__ = [
    'Database',
    'SnapshotStore',
]
