"""Remote object store client.

``ObjectStore`` is the interface the sync engine depends on;
``S3ObjectStore`` implements it on top of boto3.
"""

import logging
import threading
from typing import Any, BinaryIO, Optional, Protocol

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from .config import config
from .exceptions import (
    BucketNotFoundError,
    ObjectNotFoundError,
    StoreAccessDeniedError,
    StoreError,
    StoreNetworkError,
    StoreRateLimitError,
)
from .models import DeleteFailure, DeleteOutcome, ListPage, RemoteObject
from .utils import DELETE_BATCH_SIZE, LIST_PAGE_SIZE, normalize_etag, to_unix_timestamp

logger = logging.getLogger(__name__)

_ACCESS_DENIED_CODES = {"AccessDenied", "AllAccessDisabled", "InvalidAccessKeyId", "403"}
_NOT_FOUND_CODES = {"NoSuchKey", "NotFound", "404"}
_THROTTLE_CODES = {
    "SlowDown",
    "Throttling",
    "ThrottlingException",
    "RequestLimitExceeded",
    "TooManyRequestsException",
    "503",
}


class ObjectStore(Protocol):
    """Capabilities the sync engine needs from a remote object store."""

    def list_objects(
        self,
        bucket: str,
        prefix: str,
        continuation_token: Optional[str] = None,
        max_keys: int = LIST_PAGE_SIZE,
    ) -> ListPage: ...

    def head_object(self, bucket: str, key: str) -> RemoteObject: ...

    def put_object(
        self,
        bucket: str,
        key: str,
        body: BinaryIO,
        content_type: Optional[str] = None,
    ) -> str: ...

    def delete_objects(self, bucket: str, keys: list[str]) -> DeleteOutcome: ...


class S3ObjectStore:
    """ObjectStore backed by an S3 (or S3-compatible) endpoint."""

    def __init__(
        self,
        client: Any = None,
        region: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        profile: Optional[str] = None,
        max_retries: int = 3,
        connect_timeout: float = 5.0,
        read_timeout: float = 60.0,
    ):
        """Initialize the store.

        Args:
            client: Pre-built boto3 S3 client (built lazily when omitted)
            region: AWS region (uses config if not provided)
            endpoint_url: Custom endpoint for S3-compatible services
                (uses config if not provided)
            profile: Credentials profile name (uses config if not provided)
            max_retries: Attempts made by botocore's standard retry mode
            connect_timeout: Connection timeout in seconds
            read_timeout: Socket read timeout in seconds
        """
        self.region = region or config.region
        self.endpoint_url = endpoint_url or config.endpoint_url
        self.profile = profile or config.profile
        self.max_retries = max_retries
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout
        self._client = client
        self._client_lock = threading.Lock()

    def _get_client(self) -> Any:
        """Get or create the boto3 client (shared by all workers)."""
        with self._client_lock:
            if self._client is None:
                boto_config = BotoConfig(
                    connect_timeout=self.connect_timeout,
                    read_timeout=self.read_timeout,
                    retries={"max_attempts": self.max_retries, "mode": "standard"},
                )
                kwargs: dict[str, Any] = {"config": boto_config}
                if self.region:
                    kwargs["region_name"] = self.region
                if self.endpoint_url:
                    kwargs["endpoint_url"] = self.endpoint_url

                if self.profile:
                    session = boto3.Session(profile_name=self.profile)
                    self._client = session.client("s3", **kwargs)
                else:
                    self._client = boto3.client("s3", **kwargs)
                logger.debug(
                    "Created S3 client (region=%s, endpoint=%s, profile=%s)",
                    self.region,
                    self.endpoint_url,
                    self.profile,
                )
            return self._client

    def _translate_error(
        self, e: Exception, operation: str, bucket: str, key: str = ""
    ) -> StoreError:
        """Map a boto3 exception onto the StoreError hierarchy.

        Args:
            e: Exception raised by boto3/botocore
            operation: Store operation name (e.g. "list", "put")
            bucket: Bucket involved
            key: Object key involved, if any

        Returns:
            StoreError subclass to raise
        """
        if isinstance(e, ClientError):
            error = e.response.get("Error", {})
            code = str(error.get("Code", ""))
            message = error.get("Message") or str(e)
            status = e.response.get("ResponseMetadata", {}).get("HTTPStatusCode")

            error_class: type[StoreError] = StoreError
            if code in _ACCESS_DENIED_CODES or status == 403:
                error_class = StoreAccessDeniedError
            elif code == "NoSuchBucket":
                error_class = BucketNotFoundError
            elif code in _NOT_FOUND_CODES or status == 404:
                error_class = ObjectNotFoundError
            elif code in _THROTTLE_CODES or status in (429, 503):
                error_class = StoreRateLimitError

            return error_class(
                message, operation=operation, bucket=bucket, key=key, code=code
            )

        if isinstance(e, BotoCoreError):
            return StoreNetworkError(
                f"Network error: {e}", operation=operation, bucket=bucket, key=key
            )

        return StoreError(str(e), operation=operation, bucket=bucket, key=key)

    # =========================
    # Listing
    # =========================

    def list_objects(
        self,
        bucket: str,
        prefix: str,
        continuation_token: Optional[str] = None,
        max_keys: int = LIST_PAGE_SIZE,
    ) -> ListPage:
        """Fetch one page of objects under a prefix.

        Args:
            bucket: Bucket name
            prefix: Key prefix
            continuation_token: Token from the previous page, None for the first
            max_keys: Page size (at most 1000)

        Returns:
            ListPage with the objects and the token for the next page

        Raises:
            StoreError: If the listing call fails
        """
        params: dict[str, Any] = {
            "Bucket": bucket,
            "Prefix": prefix,
            "MaxKeys": min(max_keys, LIST_PAGE_SIZE),
        }
        if continuation_token:
            params["ContinuationToken"] = continuation_token

        try:
            response = self._get_client().list_objects_v2(**params)
        except (ClientError, BotoCoreError) as e:
            raise self._translate_error(e, "list", bucket) from e

        objects = [
            RemoteObject.from_api_response(item) for item in response.get("Contents", [])
        ]
        return ListPage(
            objects=objects,
            is_truncated=bool(response.get("IsTruncated", False)),
            next_token=response.get("NextContinuationToken"),
        )

    def head_object(self, bucket: str, key: str) -> RemoteObject:
        """Fetch metadata for a single object.

        Raises:
            ObjectNotFoundError: If the key does not exist
            StoreError: For any other failure
        """
        try:
            response = self._get_client().head_object(Bucket=bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise self._translate_error(e, "head", bucket, key) from e

        return RemoteObject(
            key=key,
            size=int(response.get("ContentLength", 0)),
            last_modified=to_unix_timestamp(response.get("LastModified")),
            etag=normalize_etag(response.get("ETag")),
        )

    # =========================
    # Mutations
    # =========================

    def put_object(
        self,
        bucket: str,
        key: str,
        body: BinaryIO,
        content_type: Optional[str] = None,
    ) -> str:
        """Write an object.

        Args:
            bucket: Bucket name
            key: Destination key
            body: Readable binary stream with the object content
            content_type: MIME type stored with the object

        Returns:
            Entity tag of the new object (quotes stripped)

        Raises:
            StoreError: If the upload fails
        """
        params: dict[str, Any] = {"Bucket": bucket, "Key": key, "Body": body}
        if content_type:
            params["ContentType"] = content_type

        try:
            response = self._get_client().put_object(**params)
        except (ClientError, BotoCoreError) as e:
            raise self._translate_error(e, "put", bucket, key) from e

        return normalize_etag(response.get("ETag"))

    def delete_objects(self, bucket: str, keys: list[str]) -> DeleteOutcome:
        """Delete up to 1000 keys in one request.

        Args:
            bucket: Bucket name
            keys: Keys to delete

        Returns:
            DeleteOutcome listing the deleted keys and per-key failures

        Raises:
            ValueError: If more than 1000 keys are passed
            StoreError: If the request as a whole fails
        """
        if not keys:
            return DeleteOutcome()
        if len(keys) > DELETE_BATCH_SIZE:
            raise ValueError(
                f"Cannot delete more than {DELETE_BATCH_SIZE} keys per request "
                f"(got {len(keys)})"
            )

        try:
            response = self._get_client().delete_objects(
                Bucket=bucket,
                Delete={"Objects": [{"Key": key} for key in keys], "Quiet": False},
            )
        except (ClientError, BotoCoreError) as e:
            raise self._translate_error(e, "delete", bucket) from e

        deleted = [item["Key"] for item in response.get("Deleted", []) if "Key" in item]
        errors = [
            DeleteFailure(
                key=item.get("Key", ""),
                code=item.get("Code", ""),
                message=item.get("Message", ""),
            )
            for item in response.get("Errors", [])
        ]
        return DeleteOutcome(deleted=deleted, errors=errors)
