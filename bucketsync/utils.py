"""Utility functions for bucketsync."""

import hashlib
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Optional, Union

# =============================================================================
# Constants for sync operations
# =============================================================================

# Default number of concurrent transfers
DEFAULT_CONCURRENCY: int = 5

# Upper bound accepted for the worker pool
MAX_CONCURRENCY: int = 100

# Keys per ListObjectsV2 page (the S3 maximum)
LIST_PAGE_SIZE: int = 1000

# Keys per DeleteObjects request (the S3 maximum)
DELETE_BATCH_SIZE: int = 1000

# Read size when hashing local files (8 MB)
HASH_CHUNK_SIZE: int = 8 * 1024 * 1024

S3_SCHEME = "s3://"


# =============================================================================
# Timestamp utilities
# =============================================================================


def to_unix_timestamp(value: Union[datetime, str, float, int, None]) -> float:
    """Convert a store timestamp to a Unix timestamp.

    Args:
        value: datetime (naive values are treated as UTC), ISO 8601 string,
            or a number that is already a Unix timestamp

    Returns:
        Unix timestamp in seconds (0.0 when value is missing or unparsable)

    Examples:
        >>> to_unix_timestamp("1970-01-01T00:00:10Z")
        10.0
        >>> to_unix_timestamp(None)
        0.0
    """
    if value is None:
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        timestamp_str = value
        # The 'Z' suffix indicates UTC time
        if timestamp_str.endswith("Z"):
            timestamp_str = timestamp_str[:-1] + "+00:00"
        try:
            value = datetime.fromisoformat(timestamp_str)
        except ValueError:
            return 0.0
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.timestamp()


# =============================================================================
# Size formatting utilities
# =============================================================================


def format_size(size_bytes: int) -> str:
    """Format file size in human-readable format.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted size string (e.g., "1.5 MB", "256 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / 1024 / 1024:.1f} MB"
    else:
        return f"{size_bytes / 1024 / 1024 / 1024:.1f} GB"


# =============================================================================
# Fingerprint utilities
# =============================================================================


def normalize_etag(etag: Optional[str]) -> str:
    """Strip the quotes S3 puts around entity tags.

    Examples:
        >>> normalize_etag('"9a0364b9e99bb480dd25e1f0284c8555"')
        '9a0364b9e99bb480dd25e1f0284c8555'
        >>> normalize_etag(None)
        ''
    """
    if not etag:
        return ""
    return etag.strip().strip('"')


def is_multipart_etag(etag: str) -> bool:
    """Check whether an entity tag belongs to a multipart upload.

    Multipart etags look like ``<md5-of-part-md5s>-<part count>`` and are not
    a hash of the object content.
    """
    return "-" in etag


def compute_file_hash(
    path: Union[str, Path],
    hash_factory: Callable[[], Any] = hashlib.md5,
    chunk_size: int = HASH_CHUNK_SIZE,
) -> str:
    """Hash a local file in chunks.

    Args:
        path: File to hash
        hash_factory: hashlib constructor (MD5 matches single-part S3 etags)
        chunk_size: Bytes read per iteration

    Returns:
        Hex digest

    Raises:
        OSError: If the file cannot be read
    """
    digest = hash_factory()
    with open(path, "rb") as f:
        while True:
            chunk = f.read(chunk_size)
            if not chunk:
                break
            digest.update(chunk)
    return digest.hexdigest()


# =============================================================================
# Remote location utilities
# =============================================================================


def normalize_prefix(prefix: Optional[str]) -> str:
    """Ensure a non-empty key prefix ends with a slash.

    Examples:
        >>> normalize_prefix("backups/site")
        'backups/site/'
        >>> normalize_prefix("")
        ''
    """
    if not prefix:
        return ""
    if not prefix.endswith("/"):
        prefix += "/"
    return prefix


def parse_s3_url(
    value: str, default_bucket: Optional[str] = None
) -> tuple[str, str]:
    """Split a remote location into bucket and prefix.

    Accepts ``s3://bucket/prefix``; a bare value is taken as a prefix inside
    ``default_bucket``.

    Args:
        value: Remote location
        default_bucket: Bucket used when value has no scheme

    Returns:
        Tuple of (bucket, prefix)

    Raises:
        ValueError: If no bucket can be determined

    Examples:
        >>> parse_s3_url("s3://my-bucket/site/assets")
        ('my-bucket', 'site/assets')
        >>> parse_s3_url("site", default_bucket="b")
        ('b', 'site')
    """
    if value.startswith(S3_SCHEME):
        rest = value[len(S3_SCHEME) :]
        bucket, _, prefix = rest.partition("/")
        if not bucket:
            raise ValueError(f"Missing bucket name in {value!r}")
        return bucket, prefix

    if not default_bucket:
        raise ValueError(
            f"{value!r} is not an s3:// URL and no default bucket is configured"
        )
    return default_bucket, value.lstrip("/")
