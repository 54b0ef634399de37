"""
Error taxonomy for the ingestion pipeline.

Every error raised inside a task handler is converted into a structured
SpawnResult by the TaskEngine. The classes below carry the metadata the engine
and the orchestrator need to decide whether to retry and how to report.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    """Classification of a failure for retry and reporting purposes."""

    TRANSIENT_FETCH = "transient_fetch"
    TIMEOUT = "timeout"
    VALIDATION = "validation"
    CONFIGURATION = "configuration"
    SLUG_CONFLICT = "slug_conflict"
    PARTIAL_BATCH = "partial_batch"
    UNKNOWN = "unknown"


class IngestionError(Exception):
    """Base class for all pipeline errors."""

    kind: ErrorKind = ErrorKind.UNKNOWN
    retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        retryable: Optional[bool] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        if retryable is not None:
            self.retryable = retryable
        self.metadata = metadata or {}

    @property
    def code(self) -> str:
        """Upper-case error code used in logs and reports."""
        return self.kind.value.upper()


class TransientFetchError(IngestionError):
    """Network or provider hiccup; retried by the TaskEngine."""

    kind = ErrorKind.TRANSIENT_FETCH
    retryable = True

    def __init__(
        self,
        source_id: str,
        message: str,
        status_code: Optional[int] = None,
    ):
        super().__init__(
            f"Fetch from '{source_id}' failed: {message}",
            metadata={"source_id": source_id, "status_code": status_code},
        )
        self.source_id = source_id
        self.status_code = status_code


class TaskTimeoutError(IngestionError):
    """A task exceeded its deadline and was abandoned."""

    kind = ErrorKind.TIMEOUT
    retryable = True

    def __init__(self, task_name: str, timeout_ms: int):
        super().__init__(
            f'Task "{task_name}" timed out after {timeout_ms}ms',
            metadata={"task_name": task_name, "timeout_ms": timeout_ms},
        )
        self.task_name = task_name
        self.timeout_ms = timeout_ms


class ValidationError(IngestionError):
    """Non-recoverable structural problem with a single event."""

    kind = ErrorKind.VALIDATION
    retryable = False

    def __init__(self, message: str, field: Optional[str] = None, value: Any = None):
        super().__init__(message, metadata={"field": field, "value": value})
        self.field = field


class ConfigurationError(IngestionError):
    """Missing credentials or config; fatal for the affected source only."""

    kind = ErrorKind.CONFIGURATION
    retryable = False


class SlugConflictError(IngestionError):
    """The persistence store rejected a slug that is already taken."""

    kind = ErrorKind.SLUG_CONFLICT
    retryable = True

    def __init__(self, slug: str):
        super().__init__(f"Slug '{slug}' is already in use", metadata={"slug": slug})
        self.slug = slug


class PartialBatchFailure(IngestionError):
    """Some events of a batch failed while others succeeded."""

    kind = ErrorKind.PARTIAL_BATCH
    retryable = False

    def __init__(self, failed: int, total: int):
        super().__init__(
            f"{failed} of {total} events failed",
            metadata={"failed": failed, "total": total},
        )
        self.failed = failed
        self.total = total


def classify_error(error: BaseException) -> tuple[ErrorKind, bool]:
    """
    Classify an arbitrary exception.

    Args:
        error: Exception raised by a task handler

    Returns:
        Tuple of (ErrorKind, retryable)
    """
    if isinstance(error, IngestionError):
        return error.kind, error.retryable

    if isinstance(error, TimeoutError):
        return ErrorKind.TIMEOUT, True

    message = str(error).lower()
    if "timeout" in message or "timed out" in message:
        return ErrorKind.TIMEOUT, True
    if any(token in message for token in ("network", "connection", "fetch")):
        return ErrorKind.TRANSIENT_FETCH, True
    if "rate limit" in message or "429" in message:
        return ErrorKind.TRANSIENT_FETCH, True

    # Unknown handler errors are retried; the attempt budget bounds them.
    return ErrorKind.UNKNOWN, True
