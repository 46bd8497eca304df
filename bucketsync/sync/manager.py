"""Orchestration of one sync run: scan, plan, execute, report."""

import logging
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional, Union

from ..exceptions import InventoryError, ScanError, SyncCancelledError, SyncValidationError
from .cancel import CancelToken
from .executor import Executor, OperationError, OperationOutcome
from .planner import Operation, OperationStats, OperationType, Planner, compute_stats
from .scanner import Scanner

logger = logging.getLogger(__name__)


class SyncState(str, Enum):
    """Phases of a sync run."""

    IDLE = "idle"
    SCANNING = "scanning"
    PLANNING = "planning"
    EXECUTING = "executing"
    REPORTING = "reporting"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"


_FINAL_STATES = {SyncState.IDLE, SyncState.DONE, SyncState.FAILED, SyncState.CANCELLED}


@dataclass
class SyncConfig:
    """Inputs of one sync run."""

    local_path: Union[str, Path]
    """Local directory to mirror"""

    bucket: str
    """Destination bucket"""

    prefix: str = ""
    """Destination key prefix (normalized with a trailing slash)"""

    delete_extra: bool = False
    """Delete remote objects that have no local file"""

    dry_run: bool = False
    """Plan only, perform no uploads or deletes"""

    parallelism: int = 0
    """Concurrent transfers for this run (0 keeps the executor's limit)"""

    include_patterns: list[str] = field(default_factory=list)
    exclude_patterns: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class SyncResult:
    """Outcome of a sync run."""

    files_uploaded: int = 0
    files_deleted: int = 0
    files_skipped: int = 0
    bytes_uploaded: int = 0
    operations: tuple[Operation, ...] = ()
    """Full plan (also present for dry runs)"""

    errors: tuple[OperationError, ...] = ()
    """One entry per failed operation"""

    outcomes: tuple[OperationOutcome, ...] = ()
    """One entry per executed operation, with its duration"""

    duration: float = 0.0
    """Wall-clock seconds"""

    dry_run: bool = False

    @property
    def stats(self) -> OperationStats:
        return compute_stats(self.operations)

    @property
    def success(self) -> bool:
        return not self.errors


class SyncManager:
    """Drives the scanner, planner and executor through one run.

    States go ``IDLE -> SCANNING -> PLANNING -> (EXECUTING) -> REPORTING ->
    DONE``; a failure ends in ``FAILED`` and cancellation in ``CANCELLED``.
    Dry runs skip ``EXECUTING``.

    Examples:
        >>> manager = SyncManager(Scanner(store), Planner(), Executor(store))
        >>> result = manager.sync(SyncConfig("/srv/site", "my-bucket", "site/"))
        >>> manager.state
        <SyncState.DONE: 'done'>
    """

    def __init__(self, scanner: Scanner, planner: Planner, executor: Executor):
        self.scanner = scanner
        self.planner = planner
        self.executor = executor
        self._lock = threading.Lock()
        self._state = SyncState.IDLE
        self._history: list[SyncState] = [SyncState.IDLE]

    @property
    def state(self) -> SyncState:
        with self._lock:
            return self._state

    @property
    def history(self) -> list[SyncState]:
        """States visited by the current (or last) run, in order."""
        with self._lock:
            return list(self._history)

    def _transition(self, state: SyncState) -> None:
        with self._lock:
            logger.debug("Sync state %s -> %s", self._state.value, state.value)
            self._state = state
            self._history.append(state)

    def _begin(self) -> None:
        with self._lock:
            if self._state not in _FINAL_STATES:
                raise SyncValidationError(
                    f"sync already in progress (state {self._state.value})"
                )
            self._state = SyncState.IDLE
            self._history = [SyncState.IDLE]

    def sync(
        self, config: SyncConfig, cancel_token: Optional[CancelToken] = None
    ) -> SyncResult:
        """Run one sync.

        Args:
            config: Run inputs
            cancel_token: Cancels the run (checked while scanning and
                before each operation is dispatched)

        Returns:
            SyncResult; failed uploads/deletes are listed in ``errors``

        Raises:
            InventoryError: If the local or remote scan fails
            PlanningError: If a comparison fails or the plan is invalid
            SyncCancelledError: If the run is cancelled
        """
        cancel_token = cancel_token or CancelToken()
        self._begin()
        started = time.monotonic()

        try:
            result = self._run(config, cancel_token, started)
        except (SyncCancelledError, KeyboardInterrupt):
            self._transition(SyncState.CANCELLED)
            raise
        except Exception:
            self._transition(SyncState.FAILED)
            raise

        self._transition(SyncState.DONE)
        return result

    def _run(
        self, config: SyncConfig, cancel_token: CancelToken, started: float
    ) -> SyncResult:
        limit = config.parallelism if config.parallelism > 0 else None
        if limit is not None:
            self.executor.validate_concurrency(limit)

        self._transition(SyncState.SCANNING)
        try:
            local_files = self.scanner.scan_local(
                config.local_path,
                config.include_patterns,
                config.exclude_patterns,
                cancel_token,
            )
            remote_objects = self.scanner.scan_remote_with_pattern(
                config.bucket,
                config.prefix,
                config.include_patterns,
                config.exclude_patterns,
                cancel_token,
            )
        except ScanError as e:
            raise InventoryError(f"failed to build inventory: {e}") from e

        self._transition(SyncState.PLANNING)
        cancel_token.raise_if_cancelled("planning")
        plan = self.planner.plan(
            config.local_path,
            config.prefix,
            local_files,
            remote_objects,
            delete_extra=config.delete_extra,
        )
        if plan:
            self.planner.validate_plan(plan)
        else:
            logger.debug("Nothing to sync under %s", config.local_path)

        if config.dry_run:
            self._transition(SyncState.REPORTING)
            return SyncResult(
                operations=tuple(plan),
                duration=time.monotonic() - started,
                dry_run=True,
            )

        files_skipped = sum(1 for op in plan if op.type == OperationType.SKIP)
        files_uploaded = files_deleted = bytes_uploaded = 0
        errors: list[OperationError] = []
        outcomes: list[OperationOutcome] = []

        if files_skipped < len(plan):
            self._transition(SyncState.EXECUTING)
            report = self.executor.execute(
                config.bucket, plan, cancel_token, max_concurrency=limit
            )
            files_uploaded = report.files_uploaded
            files_deleted = report.files_deleted
            bytes_uploaded = report.bytes_uploaded
            errors = report.errors
            outcomes = report.outcomes

        self._transition(SyncState.REPORTING)
        result = SyncResult(
            files_uploaded=files_uploaded,
            files_deleted=files_deleted,
            files_skipped=files_skipped,
            bytes_uploaded=bytes_uploaded,
            operations=tuple(plan),
            errors=tuple(errors),
            outcomes=tuple(outcomes),
            duration=time.monotonic() - started,
        )
        logger.debug(
            "Sync finished in %.3fs: %d uploaded, %d deleted, %d skipped, %d errors",
            result.duration,
            result.files_uploaded,
            result.files_deleted,
            result.files_skipped,
            len(result.errors),
        )
        return result
