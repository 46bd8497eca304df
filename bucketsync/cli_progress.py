"""CLI progress display for sync operations.

This module provides Rich-based progress displays that work with
the SyncProgressTracker from the sync executor.
"""

from typing import Any, Optional

from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
    TransferSpeedColumn,
)

from .sync.manager import SyncResult
from .sync.progress import SyncProgressEvent, SyncProgressInfo, SyncProgressTracker
from .utils import format_size


class SyncProgressDisplay:
    """Rich-based progress display for sync operations.

    The bar tracks uploaded bytes; the side column shows finished operations
    and failures.
    """

    def __init__(self) -> None:
        """Initialize the progress display."""
        self._progress: Optional[Progress] = None
        self._task: Optional[TaskID] = None

    def create_tracker(self) -> SyncProgressTracker:
        """Create a SyncProgressTracker that updates this display.

        Returns:
            A configured SyncProgressTracker
        """
        return SyncProgressTracker(callback=self._handle_event)

    def _format_counts(self, info: SyncProgressInfo) -> str:
        """Format progress like "3/10 files, 1.5 MB/4.0 MB"."""
        text = (
            f"{info.files_done}/{info.files_total} files, "
            f"{format_size(info.bytes_uploaded)}/{format_size(info.bytes_total)}"
        )
        if info.files_failed:
            text += f", {info.files_failed} failed"
        return text

    def _handle_event(self, info: SyncProgressInfo) -> None:
        """Handle a progress event from the tracker.

        Args:
            info: Progress information
        """
        if self._progress is None or self._task is None:
            return

        if info.event == SyncProgressEvent.EXECUTION_START:
            self._progress.update(
                self._task,
                description="Syncing",
                total=info.bytes_total or None,
                completed=0,
                counts=self._format_counts(info),
            )
        elif info.event == SyncProgressEvent.UPLOAD_START:
            self._progress.update(self._task, description=f"Uploading: {info.key}")
        elif info.event == SyncProgressEvent.EXECUTION_COMPLETE:
            self._progress.update(
                self._task,
                description="Sync complete",
                completed=info.bytes_uploaded,
                counts=self._format_counts(info),
            )
        else:
            self._progress.update(
                self._task,
                completed=info.bytes_uploaded,
                counts=self._format_counts(info),
            )

    def __enter__(self) -> "SyncProgressDisplay":
        """Enter context manager - start progress display."""
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            TextColumn("[cyan]{task.fields[counts]}"),
            TransferSpeedColumn(),
            TimeElapsedColumn(),
            refresh_per_second=4,
        )
        self._progress.__enter__()
        self._task = self._progress.add_task(
            "Scanning...", total=None, counts="0/0 files"
        )
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit context manager - stop progress display."""
        if self._progress is not None:
            self._progress.__exit__(exc_type, exc_val, exc_tb)
            self._progress = None
            self._task = None


def run_sync_with_progress(engine: Any, *args: Any, **kwargs: Any) -> SyncResult:
    """Run ``engine.sync`` with a Rich progress display.

    Dry runs print the plan as text and get no progress bar.

    Returns:
        SyncResult from the engine
    """
    if kwargs.get("dry_run"):
        return engine.sync(*args, **kwargs)

    with SyncProgressDisplay() as display:
        kwargs["progress_tracker"] = display.create_tracker()
        return engine.sync(*args, **kwargs)
