"""Data models for objects returned by the remote store."""

from dataclasses import dataclass, field
from typing import Any, Optional

from .utils import normalize_etag, to_unix_timestamp


@dataclass(frozen=True)
class RemoteObject:
    """An object stored under a key in a bucket."""

    key: str
    """Full object key, including the sync prefix"""

    size: int
    """Object size in bytes"""

    last_modified: float
    """Last modification time (Unix timestamp)"""

    etag: str = ""
    """Entity tag with quotes stripped; opaque, and not a content hash for
    multipart uploads"""

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "RemoteObject":
        """Create a RemoteObject from a ListObjectsV2 ``Contents`` entry.

        Args:
            data: Dictionary with ``Key``, ``Size``, ``LastModified`` and
                optionally ``ETag``

        Returns:
            RemoteObject instance
        """
        return cls(
            key=data["Key"],
            size=int(data.get("Size", 0)),
            last_modified=to_unix_timestamp(data.get("LastModified")),
            etag=normalize_etag(data.get("ETag")),
        )

    def relative_to(self, prefix: str) -> str:
        """Key with the sync prefix and at most one leading slash removed."""
        rel_path = self.key[len(prefix) :] if self.key.startswith(prefix) else self.key
        if rel_path.startswith("/"):
            rel_path = rel_path[1:]
        return rel_path


@dataclass(frozen=True)
class ListPage:
    """One page of a paginated object listing."""

    objects: list[RemoteObject]
    is_truncated: bool = False
    next_token: Optional[str] = None


@dataclass(frozen=True)
class DeleteFailure:
    """A key the store refused to delete."""

    key: str
    code: str
    message: str


@dataclass(frozen=True)
class DeleteOutcome:
    """Per-key result of a batch delete."""

    deleted: list[str] = field(default_factory=list)
    errors: list[DeleteFailure] = field(default_factory=list)
