"""Turns two inventories into an ordered list of sync operations."""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterable, Optional, Union

from ..exceptions import ComparisonError, PlanningError, PlanValidationError
from ..models import RemoteObject
from .comparator import Comparator, SmartComparator
from .scanner import LocalFile

logger = logging.getLogger(__name__)

MIB = 1024 * 1024

DELETE_PRIORITY = 10
SKIP_PRIORITY = 100

REASON_NEW = "new file"
REASON_MODIFIED = "modified"
REASON_EXTRA = "extra remote file"
REASON_UNCHANGED = "unchanged"


class OperationType(str, Enum):
    """Actions a sync plan can contain."""

    UPLOAD = "upload"
    """Upload local file to remote"""

    DELETE = "delete"
    """Delete remote object with no local counterpart"""

    SKIP = "skip"
    """Leave the remote object as it is"""


# Tie-break between operations of equal priority
_TYPE_ORDER = {OperationType.UPLOAD: 0, OperationType.DELETE: 1, OperationType.SKIP: 2}


@dataclass(frozen=True)
class Operation:
    """One planned action on one remote key."""

    type: OperationType
    """Action to take"""

    local_path: Optional[Path]
    """Absolute local path (None for deletes)"""

    remote_key: str
    """Full object key, including the prefix"""

    size: int
    """Bytes involved (local size for uploads/skips, remote size for deletes)"""

    reason: str
    """Human-readable reason for this operation"""

    priority: int
    """Dispatch priority; lower runs first"""


@dataclass(frozen=True)
class OperationStats:
    """Counts and byte totals of a plan."""

    uploads: int = 0
    deletes: int = 0
    skips: int = 0
    bytes_to_upload: int = 0
    bytes_to_delete: int = 0

    @property
    def total(self) -> int:
        return self.uploads + self.deletes + self.skips


def upload_priority(size: int) -> int:
    """Smaller uploads get a lower number and are dispatched first.

    Examples:
        >>> upload_priority(512)
        1
        >>> upload_priority(200 * 1024 * 1024)
        4
    """
    if size < MIB:
        return 1
    if size < 10 * MIB:
        return 2
    if size < 100 * MIB:
        return 3
    return 4


def _sort_key(op: Operation) -> tuple[int, int, str]:
    return (op.priority, _TYPE_ORDER[op.type], op.remote_key)


class Planner:
    """Computes the operations needed to mirror a local tree to a prefix.

    Examples:
        >>> planner = Planner(SmartComparator())
        >>> plan = planner.plan(root, "site/", local_files, remote_objects)
        >>> stats = planner.get_operation_stats(plan)
    """

    def __init__(self, comparator: Optional[Comparator] = None):
        """Initialize planner.

        Args:
            comparator: Decides whether shared paths changed
                (SmartComparator by default)
        """
        self.comparator = comparator or SmartComparator()

    def plan(
        self,
        local_root: Union[str, Path],
        prefix: str,
        local_files: Iterable[LocalFile],
        remote_objects: Iterable[RemoteObject],
        delete_extra: bool = False,
    ) -> list[Operation]:
        """Build the ordered plan for one sync run.

        Every local file yields exactly one Upload or Skip. Every remote-only
        object yields a Delete when ``delete_extra`` is set and nothing
        otherwise. The comparator runs once per path present on both sides.

        Args:
            local_root: Root of the local scan
            prefix: Remote key prefix
            local_files: Local inventory
            remote_objects: Remote inventory
            delete_extra: Delete remote objects that have no local file

        Returns:
            Operations sorted by priority, then type, then remote key

        Raises:
            PlanningError: If the comparator fails for a path
        """
        started = time.monotonic()
        local_map = self._build_local_map(Path(local_root), local_files)
        remote_map = self._build_remote_map(prefix, remote_objects)

        operations: list[Operation] = []

        for rel_path in sorted(local_map):
            local = local_map[rel_path]
            remote = remote_map.get(rel_path)
            remote_key = remote.key if remote is not None else prefix + rel_path

            if remote is None:
                operations.append(
                    Operation(
                        type=OperationType.UPLOAD,
                        local_path=local.path,
                        remote_key=remote_key,
                        size=local.size,
                        reason=REASON_NEW,
                        priority=upload_priority(local.size),
                    )
                )
                continue

            try:
                changed = self.comparator.has_changed(local, remote)
            except ComparisonError as e:
                raise PlanningError(f"comparing {rel_path} failed: {e}") from e

            if changed:
                operations.append(
                    Operation(
                        type=OperationType.UPLOAD,
                        local_path=local.path,
                        remote_key=remote_key,
                        size=local.size,
                        reason=REASON_MODIFIED,
                        priority=upload_priority(local.size),
                    )
                )
            else:
                operations.append(
                    Operation(
                        type=OperationType.SKIP,
                        local_path=local.path,
                        remote_key=remote_key,
                        size=local.size,
                        reason=REASON_UNCHANGED,
                        priority=SKIP_PRIORITY,
                    )
                )

        if delete_extra:
            for rel_path in sorted(set(remote_map) - set(local_map)):
                remote = remote_map[rel_path]
                operations.append(
                    Operation(
                        type=OperationType.DELETE,
                        local_path=None,
                        remote_key=remote.key,
                        size=remote.size,
                        reason=REASON_EXTRA,
                        priority=DELETE_PRIORITY,
                    )
                )

        operations.sort(key=_sort_key)
        logger.debug(
            "Planned %d operations (%d local, %d remote) in %.3fs",
            len(operations),
            len(local_map),
            len(remote_map),
            time.monotonic() - started,
        )
        return operations

    def _build_local_map(
        self, root: Path, local_files: Iterable[LocalFile]
    ) -> dict[str, LocalFile]:
        local_map: dict[str, LocalFile] = {}
        for local in local_files:
            try:
                rel_path = local.path.relative_to(root).as_posix()
            except ValueError:
                rel_path = local.relative_path.replace("\\", "/")
            local_map[rel_path] = local
        return local_map

    def _build_remote_map(
        self, prefix: str, remote_objects: Iterable[RemoteObject]
    ) -> dict[str, RemoteObject]:
        remote_map: dict[str, RemoteObject] = {}
        for remote in remote_objects:
            if not remote.key.startswith(prefix):
                continue
            rel_path = remote.relative_to(prefix)
            if not rel_path:
                continue
            previous = remote_map.get(rel_path)
            if previous is not None:
                logger.warning(
                    "Remote keys %s and %s both map to %s; ignoring %s",
                    previous.key,
                    remote.key,
                    rel_path,
                    previous.key,
                )
            remote_map[rel_path] = remote
        return remote_map

    # =========================
    # Plan utilities
    # =========================

    def validate_plan(self, operations: list[Operation]) -> None:
        """Check a plan before execution.

        Raises:
            PlanValidationError: If the plan is empty or a key has both an
                upload and a delete
        """
        if not operations:
            raise PlanValidationError("plan is empty")

        uploads = {op.remote_key for op in operations if op.type == OperationType.UPLOAD}
        for op in operations:
            if op.type == OperationType.DELETE and op.remote_key in uploads:
                raise PlanValidationError(
                    f"conflicting upload and delete for {op.remote_key}"
                )

    def filter_operations(
        self,
        operations: list[Operation],
        types: Optional[Iterable[OperationType]] = None,
        min_size: int = 0,
        max_size: int = 0,
    ) -> list[Operation]:
        """Select operations by type and size.

        Args:
            operations: Plan to filter
            types: Types to keep (all when None or empty)
            min_size: Minimum size in bytes (0 for no lower bound)
            max_size: Maximum size in bytes (0 for no upper bound)

        Returns:
            Matching operations, in their original order
        """
        wanted = set(types or ())
        result = []
        for op in operations:
            if wanted and op.type not in wanted:
                continue
            if min_size > 0 and op.size < min_size:
                continue
            if max_size > 0 and op.size > max_size:
                continue
            result.append(op)
        return result

    def get_operation_stats(self, operations: Iterable[Operation]) -> OperationStats:
        return compute_stats(operations)


def compute_stats(operations: Iterable[Operation]) -> OperationStats:
    """Aggregate counts and byte totals over a plan."""
    uploads = deletes = skips = bytes_up = bytes_del = 0
    for op in operations:
        if op.type == OperationType.UPLOAD:
            uploads += 1
            bytes_up += op.size
        elif op.type == OperationType.DELETE:
            deletes += 1
            bytes_del += op.size
        else:
            skips += 1
    return OperationStats(
        uploads=uploads,
        deletes=deletes,
        skips=skips,
        bytes_to_upload=bytes_up,
        bytes_to_delete=bytes_del,
    )
