"""Custom exceptions for bucketsync."""

from typing import Optional


class BucketSyncError(Exception):
    """Base exception for all bucketsync errors."""

    pass


class ConfigError(BucketSyncError):
    """Invalid or unreadable configuration."""

    pass


class SyncValidationError(BucketSyncError):
    """Invalid input passed to a sync call (empty bucket, missing path...)."""

    pass


# =============================================================================
# Object store errors
# =============================================================================


class StoreError(BucketSyncError):
    """A remote object store call failed."""

    def __init__(
        self,
        message: str,
        operation: str = "",
        bucket: str = "",
        key: str = "",
        code: str = "",
    ):
        self.operation = operation
        self.bucket = bucket
        self.key = key
        self.code = code
        super().__init__(message)

    def __str__(self) -> str:
        message = super().__str__()
        if not self.operation:
            return message
        if self.bucket and self.key:
            return f"s3.{self.operation} {self.bucket}/{self.key}: {message}"
        if self.bucket:
            return f"s3.{self.operation} bucket {self.bucket}: {message}"
        if self.key:
            return f"s3.{self.operation} object {self.key}: {message}"
        return f"s3.{self.operation}: {message}"


class StoreAccessDeniedError(StoreError):
    """Credentials lack the permission required for the call."""

    pass


class BucketNotFoundError(StoreError):
    """The bucket does not exist."""

    pass


class ObjectNotFoundError(StoreError):
    """The object key does not exist."""

    pass


class StoreRateLimitError(StoreError):
    """The store throttled the request."""

    pass


class StoreNetworkError(StoreError):
    """Connection, timeout or other transport failure."""

    pass


# =============================================================================
# Sync pipeline errors
# =============================================================================


class ScanError(BucketSyncError):
    """Building the local or remote inventory failed."""

    pass


class InventoryError(BucketSyncError):
    """A sync run could not build one of its inventories."""

    pass


class ComparisonError(BucketSyncError):
    """A comparator could not decide whether a file changed."""

    pass


class PlanningError(BucketSyncError):
    """The planner could not produce a plan."""

    pass


class PlanValidationError(PlanningError):
    """A plan is empty or contains conflicting operations."""

    pass


class SyncCancelledError(BucketSyncError):
    """The run was cancelled or its deadline passed.

    Distinct from per-operation failures: a cancelled run never returns a
    partial result.
    """

    def __init__(self, message: str, reason: str = "cancelled"):
        self.reason = reason
        super().__init__(message)


class PatternError(BucketSyncError):
    """An include/exclude pattern is syntactically invalid."""

    def __init__(self, pattern: str, index: int, detail: str):
        self.pattern = pattern
        self.index = index
        self.detail = detail
        super().__init__(f"invalid pattern at index {index} '{pattern}': {detail}")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PatternError):
            return NotImplemented
        return (self.pattern, self.index, self.detail) == (
            other.pattern,
            other.index,
            other.detail,
        )

    def __hash__(self) -> int:
        return hash((self.pattern, self.index, self.detail))


def describe_error(error: Optional[BaseException]) -> str:
    """Return a one-line description of an error for reports."""
    if error is None:
        return ""
    text = str(error)
    return f"{type(error).__name__}: {text}" if text else type(error).__name__
