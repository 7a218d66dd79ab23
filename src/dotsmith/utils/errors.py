"""
Error handling framework for dotsmith.

This module provides:
- Hierarchical exception classes for the snapshot core
- Error context preservation
- User-friendly error messages and suggestions
- Structured error responses
"""

from typing import Optional, Dict, Any, List, Type, Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from contextlib import contextmanager
import traceback
import functools

from .logging import get_logger


logger = get_logger("dotsmith.errors")


class ErrorSeverity(Enum):
    """Error severity levels."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"
    FATAL = "fatal"


class ErrorCategory(Enum):
    """Error categories for classification."""
    FILESYSTEM = "filesystem"
    DATABASE = "database"
    VALIDATION = "validation"
    CONFIGURATION = "configuration"
    USER_INPUT = "user_input"
    INTERNAL = "internal"
    UNKNOWN = "unknown"


@dataclass
class ErrorContext:
    """Context information for an error."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    component: Optional[str] = None
    operation: Optional[str] = None
    owner: Optional[str] = None
    path: Optional[str] = None
    snapshot_id: Optional[int] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    stack_trace: Optional[str] = None


@dataclass
class ErrorInfo:
    """Structured error information."""
    code: str
    message: str
    severity: ErrorSeverity
    category: ErrorCategory
    context: ErrorContext
    cause: Optional[BaseException] = None
    suggestions: List[str] = field(default_factory=list)
    is_fatal: bool = False


class DotsmithError(Exception):
    """Base exception for all dotsmith errors."""

    code: str = "DOTSMITH_ERROR"
    default_message: str = "An error occurred in dotsmith"
    severity: ErrorSeverity = ErrorSeverity.ERROR
    category: ErrorCategory = ErrorCategory.UNKNOWN
    is_fatal: bool = False

    def __init__(
        self,
        message: Optional[str] = None,
        context: Optional[ErrorContext] = None,
        cause: Optional[BaseException] = None,
        **kwargs
    ):
        """Initialize dotsmith error."""
        self.message = message or self.default_message
        self.context = context or ErrorContext()
        self.cause = cause
        self.kwargs = kwargs

        # Capture stack trace of the exception being handled, if any
        if not self.context.stack_trace and cause is not None:
            self.context.stack_trace = "".join(
                traceback.format_exception(type(cause), cause, cause.__traceback__)
            )

        super().__init__(self.message)

    def to_info(self) -> ErrorInfo:
        """Convert to structured error info."""
        return ErrorInfo(
            code=self.code,
            message=self.message,
            severity=self.severity,
            category=self.category,
            context=self.context,
            cause=self.cause,
            suggestions=self.get_suggestions(),
            is_fatal=self.is_fatal,
        )

    def get_suggestions(self) -> List[str]:
        """Get error resolution suggestions."""
        return []

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        info = self.to_info()
        return {
            "error": {
                "code": info.code,
                "message": info.message,
                "severity": info.severity.value,
                "category": info.category.value,
                "is_fatal": info.is_fatal,
                "suggestions": info.suggestions,
                "context": {
                    "timestamp": info.context.timestamp.isoformat(),
                    "component": info.context.component,
                    "operation": info.context.operation,
                    "owner": info.context.owner,
                    "path": info.context.path,
                    "snapshot_id": info.context.snapshot_id,
                    "metadata": info.context.metadata,
                },
            }
        }


# Setup / configuration errors

class NotInitializedError(DotsmithError):
    """The config directory or snapshot database does not exist yet."""
    code = "NOT_INITIALIZED"
    default_message = "dotsmith is not initialized, run `dotsmith init` first"
    category = ErrorCategory.CONFIGURATION
    severity = ErrorSeverity.FATAL
    is_fatal = True

    def __init__(self, location: Optional[Path] = None, **kwargs):
        self.location = Path(location) if location is not None else None
        message = None
        if self.location is not None:
            message = (
                f"dotsmith is not initialized ({self.location} does not exist), "
                f"run `dotsmith init` first"
            )
        super().__init__(message, **kwargs)
        if self.location is not None:
            self.context.path = self.context.path or str(self.location)

    def get_suggestions(self) -> List[str]:
        return [
            "Run `dotsmith init` to create the configuration directory",
            "Check the DOTSMITH_CONFIG_DIR environment variable",
        ]


class ConfigurationError(DotsmithError):
    """Configuration errors."""
    code = "CONFIG_ERROR"
    default_message = "Configuration error"
    category = ErrorCategory.CONFIGURATION
    severity = ErrorSeverity.ERROR

    def get_suggestions(self) -> List[str]:
        return [
            "Check your configuration file syntax",
            "Verify DOTSMITH_* environment variables",
        ]


# Lookup errors

class NotFoundError(DotsmithError):
    """A requested record does not exist."""
    code = "NOT_FOUND"
    default_message = "Requested item was not found"
    category = ErrorCategory.USER_INPUT
    severity = ErrorSeverity.WARNING


class SnapshotNotFoundError(NotFoundError):
    """A snapshot id did not resolve."""
    code = "SNAPSHOT_NOT_FOUND"

    def __init__(self, snapshot_id: int, **kwargs):
        self.snapshot_id = snapshot_id
        super().__init__(f"snapshot #{snapshot_id} not found", **kwargs)
        self.context.snapshot_id = snapshot_id

    def get_suggestions(self) -> List[str]:
        return ["Run `dotsmith history <tool>` to list valid snapshot ids"]


class HistoryNotFoundError(NotFoundError):
    """An owner/path pair has never been captured."""
    code = "HISTORY_NOT_FOUND"

    def __init__(self, owner: str, path: Optional[str] = None, **kwargs):
        self.owner = owner
        self.path = path
        target = f"{owner}:{path}" if path else owner
        super().__init__(f"no snapshots recorded for {target}", **kwargs)
        self.context.owner = owner
        self.context.path = path


# Filesystem errors

class FileIOError(DotsmithError):
    """Reading, writing or copying a tracked file failed."""
    code = "FILE_IO_ERROR"
    default_message = "File operation failed"
    category = ErrorCategory.FILESYSTEM
    severity = ErrorSeverity.ERROR

    def __init__(
        self,
        path: Any,
        operation: str,
        cause: Optional[BaseException] = None,
        message: Optional[str] = None,
        **kwargs
    ):
        self.path = str(path)
        self.operation = operation
        if message is None:
            reason = f": {cause}" if cause is not None else ""
            message = f"failed to {operation} {self.path}{reason}"
        super().__init__(message, cause=cause, **kwargs)
        self.context.path = self.context.path or self.path
        self.context.operation = self.context.operation or operation

    def get_suggestions(self) -> List[str]:
        return [
            f"Check that {self.path} exists and is readable/writable",
            "Check free disk space and file permissions",
        ]


class PartialCaptureError(FileIOError):
    """Some tracked paths of an owner could not be captured."""
    code = "PARTIAL_CAPTURE"

    def __init__(self, owner: str, created: int, failures: List[Any], **kwargs):
        self.owner = owner
        self.created = created
        self.failures = list(failures)
        paths = ", ".join(f.path for f in self.failures)
        super().__init__(
            paths,
            "capture",
            message=(
                f"failed to capture {len(self.failures)} path(s) for {owner}: {paths} "
                f"({created} new snapshot(s) recorded)"
            ),
            **kwargs
        )
        self.context.owner = owner


# Storage errors

class StoreError(DotsmithError):
    """The snapshot database could not be opened or queried."""
    code = "STORE_ERROR"
    default_message = "Snapshot store operation failed"
    category = ErrorCategory.DATABASE
    severity = ErrorSeverity.CRITICAL
    is_fatal = True

    def __init__(
        self,
        db_path: Any,
        operation: str,
        cause: Optional[BaseException] = None,
        **kwargs
    ):
        self.db_path = str(db_path)
        self.operation = operation
        reason = f": {cause}" if cause is not None else ""
        super().__init__(
            f"snapshot store {self.db_path} failed to {operation}{reason}",
            cause=cause,
            **kwargs
        )
        self.context.operation = self.context.operation or operation
        self.context.metadata.setdefault("db_path", self.db_path)

    def get_suggestions(self) -> List[str]:
        return [
            f"Check permissions on {self.db_path}",
            "Move a corrupt database aside and take a fresh snapshot",
        ]


# Validation errors

class ValidationError(DotsmithError):
    """Input validation errors."""
    code = "VALIDATION_ERROR"
    default_message = "Validation error"
    category = ErrorCategory.VALIDATION
    severity = ErrorSeverity.WARNING

    def __init__(self, field: str, value: Any, constraint: str, **kwargs):
        self.field = field
        self.value = value
        self.constraint = constraint
        message = f"Validation failed for field '{field}': {constraint}"
        super().__init__(message, **kwargs)

    def get_suggestions(self) -> List[str]:
        return [
            f"Check the value of field '{self.field}'",
            f"Ensure it meets the constraint: {self.constraint}"
        ]


# Error Handler Decorator

def handle_errors(
    *error_classes: Type[BaseException],
    fallback: Optional[Callable] = None,
    reraise: bool = True,
    log_level: ErrorSeverity = ErrorSeverity.ERROR
):
    """
    Decorator for handling errors in functions.

    Args:
        error_classes: Exception classes to catch
        fallback: Fallback function to call on error
        reraise: Whether to reraise the exception
        log_level: Logging level for errors
    """
    catch = error_classes or (DotsmithError,)

    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except catch as e:
                log = getattr(logger, log_level.value if log_level.value != "fatal" else "critical")
                log(
                    f"error_in_{func.__name__}",
                    error=str(e),
                    error_type=type(e).__name__,
                )

                if fallback:
                    return fallback(*args, **kwargs)

                if reraise:
                    raise

                return None

        return wrapper

    return decorator


# Error Context Manager

@contextmanager
def error_context(
    component: str,
    operation: str,
    reraise: bool = True,
    **metadata
):
    """
    Context manager for error handling with context.

    Args:
        component: Component name
        operation: Operation name
        reraise: Whether to reraise exceptions
        **metadata: Additional context metadata (owner, path, snapshot_id
            are lifted into the matching context fields)
    """
    owner = metadata.pop("owner", None)
    path = metadata.pop("path", None)
    snapshot_id = metadata.pop("snapshot_id", None)
    context = ErrorContext(
        component=component,
        operation=operation,
        owner=owner,
        path=str(path) if path is not None else None,
        snapshot_id=snapshot_id,
        metadata=metadata
    )

    try:
        yield context
    except DotsmithError as e:
        # Update existing error context
        e.context.component = e.context.component or component
        e.context.operation = e.context.operation or operation
        e.context.owner = e.context.owner or context.owner
        e.context.path = e.context.path or context.path
        if e.context.snapshot_id is None:
            e.context.snapshot_id = context.snapshot_id
        e.context.metadata.update(metadata)
        logger.debug(
            "dotsmith_error_in_context",
            code=e.code,
            component=component,
            operation=operation,
            error=e.message,
        )
        if reraise:
            raise
    except Exception as e:
        # Wrap in DotsmithError
        dotsmith_error = DotsmithError(
            message=f"{component}.{operation} failed: {e}",
            context=context,
            cause=e
        )
        logger.error(
            "unexpected_error_in_context",
            error=dotsmith_error.to_dict(),
            exc_info=True
        )
        if reraise:
            raise dotsmith_error from e


# Export public API
__all__ = [
    # Base classes
    'DotsmithError',
    'ErrorContext',
    'ErrorInfo',
    'ErrorSeverity',
    'ErrorCategory',

    # Error types
    'NotInitializedError',
    'ConfigurationError',
    'NotFoundError',
    'SnapshotNotFoundError',
    'HistoryNotFoundError',
    'FileIOError',
    'PartialCaptureError',
    'StoreError',
    'ValidationError',

    # Utilities
    'handle_errors',
    'error_context',
]
