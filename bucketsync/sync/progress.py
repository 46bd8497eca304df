"""Progress events emitted while a plan is executed."""

import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional


class SyncProgressEvent(str, Enum):
    """Kinds of progress notifications."""

    EXECUTION_START = "execution_start"
    """Execution of the plan begins"""

    UPLOAD_START = "upload_start"
    """An upload was dispatched"""

    UPLOAD_COMPLETE = "upload_complete"
    """An upload finished successfully"""

    DELETE_BATCH_COMPLETE = "delete_batch_complete"
    """A delete batch finished (some keys may have failed)"""

    OPERATION_FAILED = "operation_failed"
    """An upload or delete failed"""

    EXECUTION_COMPLETE = "execution_complete"
    """Every dispatched operation finished"""


@dataclass(frozen=True)
class SyncProgressInfo:
    """Snapshot of execution progress passed to the callback."""

    event: SyncProgressEvent
    key: str = ""
    """Remote key the event is about (empty for run-level events)"""

    files_total: int = 0
    """Uploads plus deletes in the plan"""

    files_done: int = 0
    """Operations finished so far (successful or not)"""

    files_failed: int = 0
    bytes_total: int = 0
    """Bytes scheduled for upload"""

    bytes_uploaded: int = 0
    error: str = ""


class SyncProgressTracker:
    """Thread-safe progress counter that forwards snapshots to a callback.

    Executor workers call the ``on_*`` methods concurrently; the callback is
    invoked under the tracker lock, so it sees a consistent sequence.
    """

    def __init__(self, callback: Optional[Callable[[SyncProgressInfo], None]] = None):
        self.callback = callback
        self._lock = threading.Lock()
        self.files_total = 0
        self.files_done = 0
        self.files_failed = 0
        self.bytes_total = 0
        self.bytes_uploaded = 0

    def _emit(self, event: SyncProgressEvent, key: str = "", error: str = "") -> None:
        if self.callback is None:
            return
        self.callback(
            SyncProgressInfo(
                event=event,
                key=key,
                files_total=self.files_total,
                files_done=self.files_done,
                files_failed=self.files_failed,
                bytes_total=self.bytes_total,
                bytes_uploaded=self.bytes_uploaded,
                error=error,
            )
        )

    def on_execution_start(self, files_total: int, bytes_total: int) -> None:
        with self._lock:
            self.files_total = files_total
            self.bytes_total = bytes_total
            self._emit(SyncProgressEvent.EXECUTION_START)

    def on_upload_start(self, key: str) -> None:
        with self._lock:
            self._emit(SyncProgressEvent.UPLOAD_START, key)

    def on_upload_complete(self, key: str, size: int) -> None:
        with self._lock:
            self.files_done += 1
            self.bytes_uploaded += size
            self._emit(SyncProgressEvent.UPLOAD_COMPLETE, key)

    def on_delete_batch_complete(self, deleted: int) -> None:
        with self._lock:
            self.files_done += deleted
            self._emit(SyncProgressEvent.DELETE_BATCH_COMPLETE)

    def on_operation_failed(self, key: str, error: str) -> None:
        with self._lock:
            self.files_done += 1
            self.files_failed += 1
            self._emit(SyncProgressEvent.OPERATION_FAILED, key, error)

    def on_execution_complete(self) -> None:
        with self._lock:
            self._emit(SyncProgressEvent.EXECUTION_COMPLETE)
