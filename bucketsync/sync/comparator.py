"""File comparison logic for sync operations.

A comparator answers one question for a path present on both sides: does the
local file differ from the remote object?
"""

import hashlib
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

from ..exceptions import ComparisonError
from ..models import RemoteObject
from ..utils import compute_file_hash, is_multipart_etag
from .scanner import LocalFile

logger = logging.getLogger(__name__)

# Allowed mtime skew when falling back to timestamps (filesystem/store rounding)
SMART_MTIME_TOLERANCE = 2.0
TIME_MTIME_TOLERANCE = 1.0


class Comparator(ABC):
    """Decides whether a local file and its remote counterpart differ."""

    name: str = ""

    @abstractmethod
    def has_changed(self, local: LocalFile, remote: RemoteObject) -> bool:
        """Return True if the local file should be uploaded over the remote.

        Raises:
            ComparisonError: If the comparison cannot be made
        """


def _hash_local(local: LocalFile, hash_factory: Callable[[], Any]) -> str:
    try:
        return compute_file_hash(local.path, hash_factory=hash_factory)
    except OSError as e:
        raise ComparisonError(
            f"cannot hash {local.relative_path}: {e.strerror or e}"
        ) from e


class SmartComparator(Comparator):
    """Size first, then content hash when the etag is usable, then mtime.

    - different sizes: changed
    - single-part etag: MD5 of the local file compared to the etag
    - multipart or missing etag: mtimes within 2 seconds mean unchanged
    """

    name = "smart"

    def __init__(self, mtime_tolerance: float = SMART_MTIME_TOLERANCE):
        self.mtime_tolerance = mtime_tolerance

    def has_changed(self, local: LocalFile, remote: RemoteObject) -> bool:
        if local.size != remote.size:
            return True

        if remote.etag and not is_multipart_etag(remote.etag):
            local_md5 = _hash_local(local, hashlib.md5)
            return local_md5.lower() != remote.etag.lower()

        return abs(local.mtime - remote.last_modified) > self.mtime_tolerance


class SizeOnlyComparator(Comparator):
    """Files are the same when their sizes match."""

    name = "size"

    def has_changed(self, local: LocalFile, remote: RemoteObject) -> bool:
        return local.size != remote.size


class ChecksumComparator(Comparator):
    """Always hashes the local file and compares it to the etag.

    Objects without a comparable etag (missing or multipart) are reported as
    changed, since their content cannot be verified.
    """

    name = "checksum"

    def __init__(self, hash_factory: Callable[[], Any] = hashlib.md5):
        """Initialize checksum comparator.

        Args:
            hash_factory: hashlib constructor used for the local digest
        """
        self.hash_factory = hash_factory

    def has_changed(self, local: LocalFile, remote: RemoteObject) -> bool:
        local_digest = _hash_local(local, self.hash_factory)
        if not remote.etag or is_multipart_etag(remote.etag):
            logger.debug("No comparable etag for %s, treating as changed", remote.key)
            return True
        return local_digest.lower() != remote.etag.lower()


class TimeComparator(Comparator):
    """Files are the same when their mtimes are within one second."""

    name = "time"

    def __init__(self, tolerance: float = TIME_MTIME_TOLERANCE):
        self.tolerance = tolerance

    def has_changed(self, local: LocalFile, remote: RemoteObject) -> bool:
        return abs(local.mtime - remote.last_modified) > self.tolerance


class CompositeComparator(Comparator):
    """Changed as soon as any child comparator reports a change."""

    name = "composite"

    def __init__(self, comparators: list[Comparator]):
        self.comparators = list(comparators)

    def has_changed(self, local: LocalFile, remote: RemoteObject) -> bool:
        if not self.comparators:
            raise ComparisonError("composite comparator has no comparators")
        return any(c.has_changed(local, remote) for c in self.comparators)


class NullComparator(Comparator):
    """Never reports a change."""

    name = "none"

    def has_changed(self, local: LocalFile, remote: RemoteObject) -> bool:
        return False


COMPARATORS: dict[str, type[Comparator]] = {
    SmartComparator.name: SmartComparator,
    SizeOnlyComparator.name: SizeOnlyComparator,
    ChecksumComparator.name: ChecksumComparator,
    TimeComparator.name: TimeComparator,
    NullComparator.name: NullComparator,
}


def get_comparator(name: Optional[str] = None) -> Comparator:
    """Build a comparator by name.

    Args:
        name: One of "smart", "size", "checksum", "time", "none"
            (None or empty selects "smart")

    Returns:
        Comparator instance

    Raises:
        ValueError: If the name is unknown
    """
    key = (name or SmartComparator.name).lower()
    comparator_class = COMPARATORS.get(key)
    if comparator_class is None:
        valid = ", ".join(sorted(COMPARATORS))
        raise ValueError(f"Unknown comparator {name!r} (expected one of: {valid})")
    return comparator_class()
