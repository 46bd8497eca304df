"""bucketsync - mirror a local directory to a prefix in an S3 bucket."""

from .exceptions import (
    BucketNotFoundError,
    BucketSyncError,
    ComparisonError,
    ConfigError,
    InventoryError,
    ObjectNotFoundError,
    PatternError,
    PlanningError,
    PlanValidationError,
    ScanError,
    StoreAccessDeniedError,
    StoreError,
    StoreNetworkError,
    StoreRateLimitError,
    SyncCancelledError,
    SyncValidationError,
)
from .store import ObjectStore, S3ObjectStore
from .sync import CancelToken, SyncEngine, SyncResult

__all__ = [
    "BucketNotFoundError",
    "BucketSyncError",
    "CancelToken",
    "ComparisonError",
    "ConfigError",
    "InventoryError",
    "ObjectNotFoundError",
    "ObjectStore",
    "PatternError",
    "PlanningError",
    "PlanValidationError",
    "S3ObjectStore",
    "ScanError",
    "StoreAccessDeniedError",
    "StoreError",
    "StoreNetworkError",
    "StoreRateLimitError",
    "SyncCancelledError",
    "SyncEngine",
    "SyncResult",
    "SyncValidationError",
]
