"""Bounded-concurrency execution of a sync plan."""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Callable, Optional

from ..exceptions import StoreError, SyncCancelledError, SyncValidationError
from ..store import ObjectStore
from ..utils import DEFAULT_CONCURRENCY, DELETE_BATCH_SIZE, MAX_CONCURRENCY
from .cancel import CancelToken
from .operations import SyncOperations
from .planner import Operation, OperationType
from .progress import SyncProgressTracker

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OperationError:
    """A planned operation that failed, with the error that stopped it."""

    operation: Operation
    error: Exception

    def __str__(self) -> str:
        return f"{self.operation.type.value} {self.operation.remote_key}: {self.error}"


@dataclass(frozen=True)
class OperationOutcome:
    """Result of one executed operation."""

    operation: Operation
    success: bool
    error: Optional[Exception] = None
    duration: float = 0.0


@dataclass
class ExecutionReport:
    """Aggregated outcome of executing a plan."""

    files_uploaded: int = 0
    files_deleted: int = 0
    bytes_uploaded: int = 0
    outcomes: list[OperationOutcome] = field(default_factory=list)
    errors: list[OperationError] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors


def _batches(operations: list[Operation], size: int) -> list[list[Operation]]:
    return [operations[i : i + size] for i in range(0, len(operations), size)]


class Executor:
    """Applies uploads and deletes with a bounded worker pool.

    Uploads run one per unit; deletes are grouped into batches of up to 1000
    keys per request. Units are submitted in plan order, so lower priority
    numbers are dispatched first. A failed unit is recorded and the others
    keep running.

    Examples:
        >>> executor = Executor(store, max_concurrency=8)
        >>> report = executor.execute("my-bucket", plan)
        >>> report.files_uploaded
        12
    """

    def __init__(
        self,
        store: ObjectStore,
        max_concurrency: int = DEFAULT_CONCURRENCY,
        progress_tracker: Optional[SyncProgressTracker] = None,
        delete_batch_size: int = DELETE_BATCH_SIZE,
    ):
        """Initialize executor.

        Args:
            store: Object store client shared by all workers
            max_concurrency: Maximum units of work in flight
            progress_tracker: Receives per-operation progress events
            delete_batch_size: Keys per delete request (at most 1000)
        """
        self.store = store
        self.max_concurrency = max_concurrency
        self.progress_tracker = progress_tracker
        self.delete_batch_size = min(delete_batch_size, DELETE_BATCH_SIZE)
        self._lock = threading.Lock()
        self._active = 0

    def validate_concurrency(self, max_concurrency: Optional[int] = None) -> None:
        """Raise SyncValidationError unless 1 <= limit <= 100.

        Args:
            max_concurrency: Limit to check (defaults to the executor's own)
        """
        limit = self.max_concurrency if max_concurrency is None else max_concurrency
        if limit <= 0:
            raise SyncValidationError(f"concurrency must be positive (got {limit})")
        if limit > MAX_CONCURRENCY:
            raise SyncValidationError(
                f"concurrency must be at most {MAX_CONCURRENCY} (got {limit})"
            )

    def get_stats(self) -> dict[str, int]:
        """Worker pool occupancy."""
        with self._lock:
            active = self._active
        return {
            "max_concurrency": self.max_concurrency,
            "active": active,
            "available": max(self.max_concurrency - active, 0),
        }

    def execute(
        self,
        bucket: str,
        operations: list[Operation],
        cancel_token: Optional[CancelToken] = None,
        max_concurrency: Optional[int] = None,
    ) -> ExecutionReport:
        """Execute the uploads and deletes of a plan.

        Skips are ignored. Individual failures are returned in the report.
        An interrupt in the calling thread (KeyboardInterrupt) cancels the
        token, drops queued units and waits only for the running ones.

        Args:
            bucket: Target bucket
            operations: Plan, already ordered
            cancel_token: Units starting after cancellation are not run
            max_concurrency: Worker limit for this call (defaults to the
                executor's own)

        Returns:
            ExecutionReport with counters, outcomes and errors

        Raises:
            SyncValidationError: If the concurrency limit is out of range
            SyncCancelledError: If units were left undispatched because of
                cancellation (raised after in-flight units finish)
        """
        limit = self.max_concurrency if max_concurrency is None else max_concurrency
        self.validate_concurrency(limit)
        cancel_token = cancel_token or CancelToken()
        sync_ops = SyncOperations(self.store, bucket)
        report = ExecutionReport()

        uploads = [op for op in operations if op.type == OperationType.UPLOAD]
        deletes = [op for op in operations if op.type == OperationType.DELETE]

        units: list[Callable[[], None]] = []
        delete_units_queued = False
        for op in operations:
            if op.type == OperationType.UPLOAD:
                units.append(self._upload_unit(sync_ops, op, report))
            elif op.type == OperationType.DELETE and not delete_units_queued:
                # Deletes share one priority and sit contiguously in the plan
                for batch in _batches(deletes, self.delete_batch_size):
                    units.append(self._delete_unit(sync_ops, batch, report))
                delete_units_queued = True

        if self.progress_tracker is not None:
            self.progress_tracker.on_execution_start(
                files_total=len(uploads) + len(deletes),
                bytes_total=sum(op.size for op in uploads),
            )

        started = time.monotonic()
        skipped_units = 0

        def run(unit: Callable[[], None]) -> bool:
            if cancel_token.cancelled:
                return False
            with self._lock:
                self._active += 1
            try:
                unit()
            finally:
                with self._lock:
                    self._active -= 1
            return True

        logger.debug(
            "Executing %d units (%d uploads, %d deletes) with %d workers",
            len(units),
            len(uploads),
            len(deletes),
            limit,
        )
        pool = ThreadPoolExecutor(max_workers=limit)
        try:
            futures = [pool.submit(run, unit) for unit in units]
            for future in as_completed(futures):
                if not future.result():
                    skipped_units += 1
        except BaseException:
            cancel_token.cancel()
            pool.shutdown(wait=True, cancel_futures=True)
            logger.debug("Execution interrupted, queued units dropped")
            raise
        pool.shutdown(wait=True)

        if self.progress_tracker is not None:
            self.progress_tracker.on_execution_complete()

        logger.debug(
            "Executed plan in %.3fs: %d uploaded, %d deleted, %d failed",
            time.monotonic() - started,
            report.files_uploaded,
            report.files_deleted,
            len(report.errors),
        )

        if skipped_units:
            logger.debug("%d units not dispatched after cancellation", skipped_units)
            cancel_token.raise_if_cancelled("execution")
            raise SyncCancelledError("sync cancelled during execution")

        return report

    def _record_failure(
        self, report: ExecutionReport, op: Operation, error: Exception, duration: float
    ) -> None:
        logger.warning("Failed to %s %s: %s", op.type.value, op.remote_key, error)
        with self._lock:
            report.outcomes.append(OperationOutcome(op, False, error, duration))
            report.errors.append(OperationError(op, error))
        if self.progress_tracker is not None:
            self.progress_tracker.on_operation_failed(op.remote_key, str(error))

    def _upload_unit(
        self, sync_ops: SyncOperations, op: Operation, report: ExecutionReport
    ) -> Callable[[], None]:
        def unit() -> None:
            if self.progress_tracker is not None:
                self.progress_tracker.on_upload_start(op.remote_key)
            start = time.monotonic()
            if op.local_path is None:
                self._record_failure(
                    report, op, ValueError("upload has no local path"), 0.0
                )
                return
            try:
                sync_ops.upload_file(op.local_path, op.remote_key)
            except Exception as e:
                self._record_failure(report, op, e, time.monotonic() - start)
                return

            elapsed = time.monotonic() - start
            with self._lock:
                report.files_uploaded += 1
                report.bytes_uploaded += op.size
                report.outcomes.append(OperationOutcome(op, True, None, elapsed))
            if self.progress_tracker is not None:
                self.progress_tracker.on_upload_complete(op.remote_key, op.size)

        return unit

    def _delete_unit(
        self, sync_ops: SyncOperations, batch: list[Operation], report: ExecutionReport
    ) -> Callable[[], None]:
        def unit() -> None:
            start = time.monotonic()
            try:
                outcome = sync_ops.delete_keys([op.remote_key for op in batch])
            except Exception as e:
                elapsed = time.monotonic() - start
                for op in batch:
                    self._record_failure(report, op, e, elapsed)
                return

            elapsed = time.monotonic() - start
            failures = {failure.key: failure for failure in outcome.errors}
            deleted = 0
            for op in batch:
                failure = failures.get(op.remote_key)
                if failure is not None:
                    error = StoreError(
                        failure.message or failure.code,
                        operation="delete",
                        bucket=sync_ops.bucket,
                        key=failure.key,
                        code=failure.code,
                    )
                    self._record_failure(report, op, error, elapsed)
                    continue
                deleted += 1
                with self._lock:
                    report.files_deleted += 1
                    report.outcomes.append(OperationOutcome(op, True, None, elapsed))
            if self.progress_tracker is not None:
                self.progress_tracker.on_delete_batch_complete(deleted)

        return unit
