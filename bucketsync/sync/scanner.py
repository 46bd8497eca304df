"""Local and remote inventory scanning for sync operations."""

import logging
import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional, Union

from ..exceptions import ScanError, StoreError
from ..models import RemoteObject
from ..store import ObjectStore
from ..utils import LIST_PAGE_SIZE
from .cancel import CancelToken
from .patterns import PatternMatcher

logger = logging.getLogger(__name__)

__all__ = ["LocalFile", "RemoteObject", "Scanner"]


@dataclass(frozen=True)
class LocalFile:
    """Represents a local file with metadata."""

    path: Path
    """Absolute path to the file"""

    relative_path: str
    """Relative path (using forward slashes for cross-platform compatibility)"""

    size: int
    """File size in bytes"""

    mtime: float
    """Last modification time (Unix timestamp)"""

    @classmethod
    def from_path(cls, file_path: Path, base_path: Path) -> "LocalFile":
        """Create LocalFile from a path.

        Args:
            file_path: Absolute path to the file
            base_path: Base path for calculating relative paths

        Returns:
            LocalFile instance
        """
        stat = file_path.stat()
        return cls(
            path=file_path,
            relative_path=file_path.relative_to(base_path).as_posix(),
            size=stat.st_size,
            mtime=stat.st_mtime,
        )


def _raise_walk_error(error: OSError) -> None:
    raise ScanError(f"cannot read {error.filename}: {error.strerror or error}") from error


class Scanner:
    """Builds the local and remote inventories of a sync run.

    Examples:
        >>> scanner = Scanner(store)
        >>> local = scanner.scan_local(Path("/srv/site"), exclude_patterns=["*.tmp"])
        >>> remote = scanner.scan_remote("my-bucket", "site/")
    """

    def __init__(
        self,
        store: Optional[ObjectStore] = None,
        pattern_matcher: Optional[PatternMatcher] = None,
    ):
        """Initialize scanner.

        Args:
            store: Object store used for remote listings (only needed for
                the remote scans)
            pattern_matcher: Include/exclude matcher (a default one is
                created when omitted)
        """
        self.store = store
        self.pattern_matcher = pattern_matcher or PatternMatcher()

    def _require_store(self) -> ObjectStore:
        if self.store is None:
            raise ScanError("no object store configured for remote scans")
        return self.store

    # =========================
    # Local
    # =========================

    def scan_local(
        self,
        root: Union[str, Path],
        include_patterns: Optional[Iterable[str]] = None,
        exclude_patterns: Optional[Iterable[str]] = None,
        cancel_token: Optional[CancelToken] = None,
    ) -> list[LocalFile]:
        """Recursively scan a local directory.

        Only regular files are returned; directories are traversed but never
        emitted. The include/exclude filter is applied to each relative path
        before it is added.

        Args:
            root: Directory to scan
            include_patterns: Patterns a path must match (any of them)
            exclude_patterns: Patterns that reject a path
            cancel_token: Checked once per visited file

        Returns:
            List of LocalFile objects

        Raises:
            ScanError: If the root or a subdirectory cannot be read
            SyncCancelledError: If the token is cancelled during the walk
        """
        cancel_token = cancel_token or CancelToken()
        root = Path(root)
        includes = list(include_patterns or ())
        excludes = list(exclude_patterns or ())
        started = time.monotonic()

        if not root.is_dir():
            raise ScanError(f"not a directory: {root}")

        files: list[LocalFile] = []
        for dirpath, dirnames, filenames in os.walk(root, onerror=_raise_walk_error):
            dirnames.sort()
            for filename in sorted(filenames):
                cancel_token.raise_if_cancelled("local scan")

                file_path = Path(dirpath) / filename
                if not file_path.is_file():
                    continue

                rel_path = file_path.relative_to(root).as_posix()
                if not self.pattern_matcher.should_include(rel_path, includes, excludes):
                    continue

                try:
                    files.append(LocalFile.from_path(file_path, root))
                except OSError as e:
                    raise ScanError(f"cannot stat {file_path}: {e}") from e

        logger.debug(
            "Scanned %d local files under %s in %.3fs",
            len(files),
            root,
            time.monotonic() - started,
        )
        return files

    def get_local_file_info(self, path: Union[str, Path]) -> LocalFile:
        """Stat a single local file.

        The relative path is the file name, since there is no scan root.

        Raises:
            ScanError: If the path is not a readable regular file
        """
        path = Path(path).absolute()
        if not path.is_file():
            raise ScanError(f"not a file: {path}")
        try:
            return LocalFile.from_path(path, path.parent)
        except OSError as e:
            raise ScanError(f"cannot stat {path}: {e}") from e

    # =========================
    # Remote
    # =========================

    def scan_remote(
        self,
        bucket: str,
        prefix: str,
        cancel_token: Optional[CancelToken] = None,
    ) -> list[RemoteObject]:
        """List every object under a prefix, following pagination.

        Keys that do not start with the prefix are dropped.

        Args:
            bucket: Bucket name
            prefix: Key prefix
            cancel_token: Checked before every page and every object

        Returns:
            List of RemoteObject

        Raises:
            ScanError: If a listing call fails
            SyncCancelledError: If the token is cancelled during listing
        """
        cancel_token = cancel_token or CancelToken()
        store = self._require_store()
        started = time.monotonic()

        objects: list[RemoteObject] = []
        token: Optional[str] = None
        pages = 0
        while True:
            cancel_token.raise_if_cancelled("remote scan")
            try:
                page = store.list_objects(
                    bucket, prefix, continuation_token=token, max_keys=LIST_PAGE_SIZE
                )
            except StoreError as e:
                raise ScanError(f"listing {bucket}/{prefix} failed: {e}") from e
            pages += 1

            for obj in page.objects:
                cancel_token.raise_if_cancelled("remote scan")
                if not obj.key.startswith(prefix):
                    logger.debug("Dropping key outside prefix: %s", obj.key)
                    continue
                objects.append(obj)

            if not page.is_truncated or not page.next_token:
                break
            token = page.next_token

        logger.debug(
            "Listed %d remote objects under %s/%s (%d pages) in %.3fs",
            len(objects),
            bucket,
            prefix,
            pages,
            time.monotonic() - started,
        )
        return objects

    def scan_remote_with_pattern(
        self,
        bucket: str,
        prefix: str,
        include_patterns: Optional[Iterable[str]] = None,
        exclude_patterns: Optional[Iterable[str]] = None,
        cancel_token: Optional[CancelToken] = None,
    ) -> list[RemoteObject]:
        """List objects under a prefix and apply the include/exclude filter.

        Patterns are matched against the key relative to the prefix.
        """
        includes = list(include_patterns or ())
        excludes = list(exclude_patterns or ())
        return [
            obj
            for obj in self.scan_remote(bucket, prefix, cancel_token)
            if self.pattern_matcher.should_include(
                obj.relative_to(prefix), includes, excludes
            )
        ]

    def get_remote_file_info(self, bucket: str, key: str) -> RemoteObject:
        """Fetch metadata for one remote object.

        Raises:
            StoreError: If the object cannot be read (ObjectNotFoundError when
                it does not exist)
        """
        return self._require_store().head_object(bucket, key)
