"""Public entry point for synchronizing a local directory to a bucket prefix."""

import logging
from pathlib import Path
from typing import Iterable, Optional, Union

from ..config import config
from ..exceptions import SyncValidationError
from ..output import OutputFormatter
from ..store import ObjectStore
from ..utils import format_size, normalize_prefix
from .cancel import CancelToken
from .comparator import Comparator, get_comparator
from .executor import Executor
from .manager import SyncConfig, SyncManager, SyncResult
from .patterns import PatternMatcher
from .planner import OperationType, Planner
from .progress import SyncProgressTracker
from .scanner import Scanner

logger = logging.getLogger(__name__)


class SyncEngine:
    """Validates sync requests, wires the pipeline and reports the outcome."""

    def __init__(
        self,
        store: ObjectStore,
        output: Optional[OutputFormatter] = None,
    ):
        """Initialize sync engine.

        Args:
            store: Object store client
            output: Output formatter for displaying the plan and summary
        """
        self.store = store
        self.output = output or OutputFormatter()
        self.pattern_matcher = PatternMatcher()
        self.last_manager: Optional[SyncManager] = None

    def sync(
        self,
        local_path: Union[str, Path],
        bucket: str,
        prefix: str = "",
        *,
        dry_run: bool = False,
        delete_extra: bool = False,
        include_patterns: Iterable[str] = (),
        exclude_patterns: Iterable[str] = (),
        comparator: Union[Comparator, str, None] = None,
        parallelism: int = 0,
        progress_tracker: Optional[SyncProgressTracker] = None,
        cancel_token: Optional[CancelToken] = None,
    ) -> SyncResult:
        """Mirror a local directory to ``bucket/prefix``.

        Args:
            local_path: Directory to upload from
            bucket: Destination bucket
            prefix: Destination key prefix (a trailing slash is added)
            dry_run: Plan only, without uploading or deleting
            delete_extra: Delete remote objects with no local counterpart
            include_patterns: Only sync paths matching one of these
            exclude_patterns: Never sync paths matching any of these
            comparator: Comparator instance or name (configured default,
                "smart", when None)
            parallelism: Concurrent transfers (configured default when <= 0)
            progress_tracker: Receives progress events during execution
            cancel_token: Cancels the run

        Returns:
            SyncResult; check ``errors`` for failed operations

        Raises:
            SyncValidationError: If the inputs are invalid
            InventoryError: If scanning fails
            PlanningError: If planning fails
            SyncCancelledError: If the run is cancelled
        """
        if not local_path:
            raise SyncValidationError("local path is required")
        if not bucket:
            raise SyncValidationError("bucket is required")

        root = Path(local_path).absolute()
        if not root.exists():
            raise SyncValidationError(f"local path does not exist: {root}")
        if not root.is_dir():
            raise SyncValidationError(f"local path is not a directory: {root}")

        prefix = normalize_prefix(prefix)
        includes = list(include_patterns)
        excludes = list(exclude_patterns)
        self._warn_invalid_patterns(includes, excludes)

        if isinstance(comparator, Comparator):
            chosen = comparator
        else:
            try:
                chosen = get_comparator(comparator or config.comparator)
            except ValueError as e:
                raise SyncValidationError(str(e)) from e

        if parallelism <= 0:
            parallelism = config.concurrency

        manager = SyncManager(
            scanner=Scanner(self.store, self.pattern_matcher),
            planner=Planner(chosen),
            executor=Executor(
                self.store,
                max_concurrency=parallelism,
                progress_tracker=progress_tracker,
            ),
        )
        self.last_manager = manager

        logger.debug(
            "Syncing %s -> %s/%s (dry_run=%s, delete_extra=%s, comparator=%s, "
            "parallelism=%d)",
            root,
            bucket,
            prefix,
            dry_run,
            delete_extra,
            chosen.name,
            parallelism,
        )
        result = manager.sync(
            SyncConfig(
                local_path=root,
                bucket=bucket,
                prefix=prefix,
                delete_extra=delete_extra,
                dry_run=dry_run,
                parallelism=parallelism,
                include_patterns=includes,
                exclude_patterns=excludes,
            ),
            cancel_token,
        )

        self._display_sync_plan(result)
        self._display_summary(result)
        return result

    def sync_upload(
        self,
        local_path: Union[str, Path],
        bucket: str,
        prefix: str = "",
        **kwargs,
    ) -> SyncResult:
        """Upload new and modified files without deleting anything remote."""
        kwargs["delete_extra"] = False
        return self.sync(local_path, bucket, prefix, **kwargs)

    def _warn_invalid_patterns(self, includes: list[str], excludes: list[str]) -> None:
        for kind, patterns in (("include", includes), ("exclude", excludes)):
            for error in self.pattern_matcher.validate_patterns(patterns):
                logger.warning("Ignoring %s pattern: %s", kind, error)
                self.output.warning(f"Warning: {kind} {error} (it will never match)")

    def _display_sync_plan(self, result: SyncResult) -> None:
        """Display sync plan to user."""
        if self.output.quiet:
            return

        stats = result.stats
        self.output.info("Sync plan:")
        if stats.uploads > 0:
            self.output.info(
                f"  ↑ Upload: {stats.uploads} file(s), "
                f"{format_size(stats.bytes_to_upload)}"
            )
        if stats.deletes > 0:
            self.output.info(
                f"  ✗ Delete remote: {stats.deletes} file(s), "
                f"{format_size(stats.bytes_to_delete)}"
            )
        if stats.skips > 0:
            self.output.info(f"  = Skip: {stats.skips} file(s)")

        if result.dry_run:
            for op in result.operations:
                if op.type != OperationType.SKIP:
                    self.output.info(f"    {op.type.value}: {op.remote_key} ({op.reason})")

        self.output.print("")

    def _display_summary(self, result: SyncResult) -> None:
        """Display sync summary."""
        if result.dry_run:
            self.output.success("Dry run complete!")
        elif result.errors:
            self.output.warning(
                f"Sync finished with {len(result.errors)} error(s)"
            )
        else:
            self.output.success("Sync complete!")

        total_actions = result.files_uploaded + result.files_deleted
        if total_actions > 0:
            self.output.info(f"Total actions: {total_actions}")
            if result.files_uploaded > 0:
                self.output.info(
                    f"  Uploaded: {result.files_uploaded} "
                    f"({format_size(result.bytes_uploaded)})"
                )
            if result.files_deleted > 0:
                self.output.info(f"  Deleted remotely: {result.files_deleted}")
        elif not result.dry_run and not result.errors:
            self.output.info("No changes needed - everything is in sync!")

        for error in result.errors:
            self.output.error(f"  {error}")
