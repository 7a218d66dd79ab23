"""
Tests for the error hierarchy and helpers.
"""

import pytest

from dotsmith.utils.errors import (
    DotsmithError,
    ErrorCategory,
    ErrorSeverity,
    FileIOError,
    HistoryNotFoundError,
    NotFoundError,
    NotInitializedError,
    SnapshotNotFoundError,
    StoreError,
    ValidationError,
    error_context,
    handle_errors,
)


class TestErrorTypes:
    """Test messages and classification."""

    def test_not_initialized(self, temp_dir):
        error = NotInitializedError(temp_dir / "missing")
        assert error.is_fatal
        assert error.severity == ErrorSeverity.FATAL
        assert "dotsmith init" in error.message
        assert str(temp_dir / "missing") in error.message

    def test_snapshot_not_found(self):
        error = SnapshotNotFoundError(7)
        assert isinstance(error, NotFoundError)
        assert str(error) == "snapshot #7 not found"
        assert error.context.snapshot_id == 7
        assert not error.is_fatal

    def test_history_not_found(self):
        error = HistoryNotFoundError("tmux", "~/.tmux.conf")
        assert "tmux:~/.tmux.conf" in error.message

    def test_file_io_error_names_path(self):
        cause = PermissionError("denied")
        error = FileIOError("/home/u/.zshrc", "read", cause=cause)
        assert error.message == "failed to read /home/u/.zshrc: denied"
        assert error.category == ErrorCategory.FILESYSTEM
        assert error.context.path == "/home/u/.zshrc"
        assert error.context.stack_trace is not None

    def test_store_error(self):
        error = StoreError("/tmp/snapshots.db", "open")
        assert error.is_fatal
        assert error.context.metadata["db_path"] == "/tmp/snapshots.db"
        assert "/tmp/snapshots.db" in error.message

    def test_to_dict(self):
        data = SnapshotNotFoundError(3).to_dict()["error"]
        assert data["code"] == "SNAPSHOT_NOT_FOUND"
        assert data["severity"] == "warning"
        assert data["context"]["snapshot_id"] == 3
        assert data["suggestions"]

    def test_validation_error(self):
        error = ValidationError("limit", 0, "must be a positive integer")
        assert error.field == "limit"
        assert "limit" in error.message


class TestErrorContext:
    """Test the error_context helper."""

    def test_enriches_dotsmith_errors(self):
        with pytest.raises(FileIOError) as exc_info:
            with error_context("engine", "capture", owner="zsh", attempt=1):
                raise FileIOError("~/.zshrc", "read")

        context = exc_info.value.context
        assert context.component == "engine"
        assert context.owner == "zsh"
        assert context.operation == "read"
        assert context.metadata["attempt"] == 1

    def test_wraps_unexpected_errors(self):
        with pytest.raises(DotsmithError) as exc_info:
            with error_context("engine", "diff", path="~/.zshrc"):
                raise KeyError("boom")

        error = exc_info.value
        assert type(error) is DotsmithError
        assert "engine.diff failed" in error.message
        assert isinstance(error.cause, KeyError)
        assert error.context.path == "~/.zshrc"

    def test_no_reraise(self):
        with error_context("engine", "diff", reraise=False):
            raise SnapshotNotFoundError(1)


class TestHandleErrors:
    """Test the handle_errors decorator."""

    def test_reraises_by_default(self):
        @handle_errors(NotFoundError)
        def lookup():
            raise SnapshotNotFoundError(1)

        with pytest.raises(SnapshotNotFoundError):
            lookup()

    def test_fallback(self):
        @handle_errors(NotFoundError, fallback=lambda: "fallback")
        def lookup():
            raise SnapshotNotFoundError(1)

        assert lookup() == "fallback"

    def test_swallow_when_requested(self):
        @handle_errors(reraise=False)
        def lookup():
            raise StoreError("db", "read")

        assert lookup() is None

    def test_other_errors_pass_through(self):
        @handle_errors(NotFoundError, fallback=lambda: "fallback")
        def broken():
            raise RuntimeError("unrelated")

        with pytest.raises(RuntimeError):
            broken()
