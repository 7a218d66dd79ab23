"""
Tests for the rollback service.
"""

import os
import stat
from datetime import datetime, timezone

import pytest

from dotsmith.snapshot import rollback as rollback_module
from dotsmith.snapshot.rollback import RollbackService
from dotsmith.utils.errors import FileIOError, SnapshotNotFoundError

posix_only = pytest.mark.skipif(os.name != "posix", reason="POSIX permission bits")

FIXED_TIME = datetime(2026, 10, 19, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def backup_dir(config_dir):
    return config_dir / "backups"


@pytest.fixture
def rollbacks(store, backup_dir):
    return RollbackService(store, backup_dir, clock=lambda: FIXED_TIME)


@pytest.fixture
def versions(store, home, write_file):
    """A tracked file with two snapshots; disk holds the second."""
    target = write_file(home / ".tmux.conf", "set -g mouse on\n")
    store.insert("tmux", "~/.tmux.conf", "set -g mouse on\n")
    write_file(target, "set -g mouse off\n")
    store.insert("tmux", "~/.tmux.conf", "set -g mouse off\n")
    second, first = [s.id for s in store.history("tmux", 2)]
    return target, first, second


class TestRollback:
    """Test restoring snapshots."""

    def test_restores_content(self, rollbacks, versions):
        target, first, _ = versions

        result = rollbacks.rollback(first)

        assert target.read_text() == "set -g mouse on\n"
        assert result.path == "~/.tmux.conf"
        assert result.target == target
        assert result.snapshot_id == first

    def test_backs_up_current_content(self, rollbacks, versions, backup_dir):
        _, first, _ = versions

        result = rollbacks.rollback(first)

        backups = list(backup_dir.iterdir())
        assert backups == [result.backup_path]
        assert backups[0].read_text() == "set -g mouse off\n"

    def test_backup_name_has_timestamp(self, rollbacks, versions, backup_dir):
        _, first, _ = versions
        result = rollbacks.rollback(first)
        assert result.backup_path == backup_dir / ".tmux.conf.20261019_120000.bak"

    def test_backup_names_never_collide(self, rollbacks, versions, backup_dir):
        _, first, second = versions

        rollbacks.rollback(first)
        rollbacks.rollback(second)

        names = sorted(p.name for p in backup_dir.iterdir())
        assert names == [".tmux.conf.20261019_120000.bak", ".tmux.conf.20261019_120000.bak.1"]

    def test_rollback_to_current_state_still_backs_up(self, rollbacks, versions, backup_dir):
        target, _, second = versions
        rollbacks.rollback(second)
        assert target.read_text() == "set -g mouse off\n"
        assert len(list(backup_dir.iterdir())) == 1

    def test_unknown_id_writes_nothing(self, rollbacks, versions, backup_dir):
        target, _, _ = versions

        with pytest.raises(SnapshotNotFoundError):
            rollbacks.rollback(9999)

        assert target.read_text() == "set -g mouse off\n"
        assert not backup_dir.exists()

    def test_recreates_deleted_file(self, rollbacks, versions, backup_dir):
        target, first, _ = versions
        target.unlink()

        result = rollbacks.rollback(first)

        assert target.read_text() == "set -g mouse on\n"
        assert result.backup_path is None
        assert not backup_dir.exists()

    def test_recreates_missing_parent_directory(self, rollbacks, store, home):
        store.insert("nvim", "~/.config/nvim/init.lua", "set number\n")
        snapshot_id = store.history("nvim", 1)[0].id

        rollbacks.rollback(snapshot_id)

        assert (home / ".config" / "nvim" / "init.lua").read_text() == "set number\n"

    def test_store_is_not_modified(self, rollbacks, versions, store):
        _, first, _ = versions
        before = store.count()
        rollbacks.rollback(first)
        assert store.count() == before

    def test_no_temp_files_left_behind(self, rollbacks, versions, home):
        _, first, _ = versions
        rollbacks.rollback(first)
        assert not [p for p in home.iterdir() if p.name.endswith(".tmp")]

    @posix_only
    def test_existing_mode_is_kept(self, rollbacks, versions):
        target, first, _ = versions
        os.chmod(target, 0o644)

        rollbacks.rollback(first)

        assert stat.S_IMODE(target.stat().st_mode) == 0o644

    @posix_only
    def test_new_file_is_owner_only(self, rollbacks, versions):
        target, first, _ = versions
        target.unlink()

        rollbacks.rollback(first)

        assert stat.S_IMODE(target.stat().st_mode) == 0o600

    @posix_only
    def test_backup_dir_is_owner_only(self, rollbacks, versions, backup_dir):
        _, first, _ = versions
        rollbacks.rollback(first)
        assert stat.S_IMODE(backup_dir.stat().st_mode) == 0o700


class TestRollbackFailures:
    """Test that failing steps stop the rollback."""

    def test_backup_failure_leaves_file_untouched(self, rollbacks, versions, monkeypatch):
        target, first, _ = versions

        def fail_copy(*args, **kwargs):
            raise PermissionError("denied")

        monkeypatch.setattr(rollback_module.shutil, "copy2", fail_copy)

        with pytest.raises(FileIOError) as exc_info:
            rollbacks.rollback(first)

        assert exc_info.value.operation == "back up"
        assert target.read_text() == "set -g mouse off\n"

    def test_write_failure_keeps_backup(self, rollbacks, versions, backup_dir, monkeypatch):
        target, first, _ = versions

        def fail_write(*args, **kwargs):
            raise OSError("disk full")

        monkeypatch.setattr(rollback_module, "atomic_write", fail_write)

        with pytest.raises(FileIOError) as exc_info:
            rollbacks.rollback(first)

        assert exc_info.value.operation == "write"
        assert target.read_text() == "set -g mouse off\n"
        assert len(list(backup_dir.iterdir())) == 1


class TestPreview:
    """Test the rollback dry run."""

    def test_preview_shows_change(self, rollbacks, versions):
        _, first, _ = versions

        result = rollbacks.preview(first)

        assert result.old_content == "set -g mouse off\n"
        assert result.new_content == "set -g mouse on\n"
        assert result.is_new is False

    def test_preview_writes_nothing(self, rollbacks, versions, backup_dir):
        target, first, _ = versions
        rollbacks.preview(first)
        assert target.read_text() == "set -g mouse off\n"
        assert not backup_dir.exists()

    def test_preview_already_current(self, rollbacks, versions):
        _, _, second = versions
        assert rollbacks.preview(second) is None

    def test_preview_deleted_file(self, rollbacks, versions):
        target, first, _ = versions
        target.unlink()

        result = rollbacks.preview(first)

        assert result.is_new is True
        assert result.old_content == ""

    def test_preview_unknown_id(self, rollbacks):
        with pytest.raises(SnapshotNotFoundError):
            rollbacks.preview(9999)
