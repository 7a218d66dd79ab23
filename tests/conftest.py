"""
Pytest configuration and shared fixtures for dotsmith tests.
"""

import pytest
import tempfile
import shutil
from pathlib import Path
from typing import Callable, Generator
import os

# Add src to path
import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from dotsmith.snapshot.engine import SnapshotEngine
from dotsmith.storage.snapshot_store import SnapshotStore
from dotsmith.utils.config import DotsmithConfig
from dotsmith.utils.fs import ensure_private_dir


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    temp_path = Path(tempfile.mkdtemp())
    yield temp_path
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def home(temp_dir: Path, monkeypatch) -> Path:
    """Point the home directory at a scratch location."""
    home_path = temp_dir / "home"
    home_path.mkdir()
    monkeypatch.setenv("HOME", str(home_path))
    monkeypatch.delenv("XDG_CONFIG_HOME", raising=False)
    for key in list(os.environ):
        if key.startswith("DOTSMITH_"):
            monkeypatch.delenv(key)
    return home_path


@pytest.fixture
def config_dir(home: Path) -> Path:
    """An initialized (existing, owner-only) config directory."""
    return ensure_private_dir(home / ".config" / "dotsmith")


@pytest.fixture
def test_config(config_dir: Path) -> DotsmithConfig:
    """Configuration rooted at the scratch config directory."""
    return DotsmithConfig(config_dir=config_dir)


@pytest.fixture
def store(config_dir: Path) -> Generator[SnapshotStore, None, None]:
    """A file-backed snapshot store."""
    snapshot_store = SnapshotStore.open(config_dir)
    yield snapshot_store
    snapshot_store.close()


@pytest.fixture
def engine(store: SnapshotStore, config_dir: Path) -> SnapshotEngine:
    """Snapshot engine over the test store."""
    return SnapshotEngine(store, config_dir / "backups")


@pytest.fixture
def write_file() -> Callable[[Path, str], Path]:
    """Write text exactly as given (no newline translation)."""
    def _write(path: Path, content: str) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8", newline="") as f:
            f.write(content)
        return path
    return _write
