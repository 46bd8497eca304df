"""Store-facing upload and delete operations used by the executor."""

import logging
import mimetypes
import time
from pathlib import Path

from ..models import DeleteOutcome
from ..store import ObjectStore

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"


def detect_content_type(path: Path) -> str:
    """Guess the MIME type of a file from its name."""
    content_type, _ = mimetypes.guess_type(str(path))
    return content_type or DEFAULT_CONTENT_TYPE


class SyncOperations:
    """Upload and delete primitives bound to one bucket."""

    def __init__(self, store: ObjectStore, bucket: str):
        """Initialize sync operations.

        Args:
            store: Object store client
            bucket: Bucket every operation targets
        """
        self.store = store
        self.bucket = bucket

    def upload_file(self, local_path: Path, remote_key: str) -> str:
        """Upload a local file to a key.

        Args:
            local_path: File to upload
            remote_key: Destination key

        Returns:
            Entity tag of the uploaded object

        Raises:
            OSError: If the local file cannot be opened
            StoreError: If the store rejects the upload
        """
        started = time.monotonic()
        with open(local_path, "rb") as body:
            etag = self.store.put_object(
                self.bucket,
                remote_key,
                body,
                content_type=detect_content_type(local_path),
            )
        logger.debug(
            "Uploaded %s -> %s/%s in %.3fs",
            local_path,
            self.bucket,
            remote_key,
            time.monotonic() - started,
        )
        return etag

    def delete_keys(self, keys: list[str]) -> DeleteOutcome:
        """Delete a batch of keys (at most 1000).

        Raises:
            StoreError: If the request as a whole fails
        """
        started = time.monotonic()
        outcome = self.store.delete_objects(self.bucket, keys)
        logger.debug(
            "Deleted %d/%d keys from %s in %.3fs",
            len(outcome.deleted),
            len(keys),
            self.bucket,
            time.monotonic() - started,
        )
        return outcome
