"""Local-to-bucket synchronization."""

from .cancel import CancelToken
from .comparator import (
    ChecksumComparator,
    Comparator,
    CompositeComparator,
    NullComparator,
    SizeOnlyComparator,
    SmartComparator,
    TimeComparator,
    get_comparator,
)
from .engine import SyncEngine
from .executor import ExecutionReport, Executor, OperationError, OperationOutcome
from .manager import SyncConfig, SyncManager, SyncResult, SyncState
from .patterns import PatternMatcher
from .planner import Operation, OperationStats, OperationType, Planner
from .progress import SyncProgressEvent, SyncProgressInfo, SyncProgressTracker
from .scanner import LocalFile, RemoteObject, Scanner

__all__ = [
    "CancelToken",
    "ChecksumComparator",
    "Comparator",
    "CompositeComparator",
    "ExecutionReport",
    "Executor",
    "LocalFile",
    "NullComparator",
    "Operation",
    "OperationError",
    "OperationOutcome",
    "OperationStats",
    "OperationType",
    "PatternMatcher",
    "Planner",
    "RemoteObject",
    "Scanner",
    "SizeOnlyComparator",
    "SmartComparator",
    "SyncConfig",
    "SyncEngine",
    "SyncManager",
    "SyncProgressEvent",
    "SyncProgressInfo",
    "SyncProgressTracker",
    "SyncResult",
    "SyncState",
    "TimeComparator",
    "get_comparator",
]
