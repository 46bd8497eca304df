"""Shared fixtures: an in-memory object store and local tree helpers."""

import hashlib
import threading
import time
from pathlib import Path
from typing import Optional

import pytest

from bucketsync.exceptions import BucketNotFoundError, ObjectNotFoundError, StoreError
from bucketsync.models import DeleteFailure, DeleteOutcome, ListPage, RemoteObject
from bucketsync.output import OutputFormatter


class InMemoryObjectStore:
    """ObjectStore fake keeping objects in a dict.

    ``fail_put`` and ``fail_delete`` hold keys whose writes/deletes fail;
    ``fail_delete_batch`` makes whole delete requests fail.
    """

    def __init__(self, bucket: str = "bucket", page_size: int = 1000):
        self.bucket = bucket
        self.page_size = page_size
        self.objects: dict[str, tuple[bytes, float, str]] = {}
        self.put_calls: list[str] = []
        self.delete_calls: list[list[str]] = []
        self.list_calls = 0
        self.fail_put: set[str] = set()
        self.fail_delete: set[str] = set()
        self.fail_delete_batch = False
        self.fail_list = False
        self._lock = threading.Lock()

    def add(self, key: str, content: bytes, mtime: Optional[float] = None, etag=None):
        if etag is None:
            etag = hashlib.md5(content).hexdigest()
        self.objects[key] = (content, mtime if mtime is not None else time.time(), etag)

    def _check_bucket(self, bucket: str) -> None:
        if bucket != self.bucket:
            raise BucketNotFoundError(
                "The specified bucket does not exist", operation="list", bucket=bucket
            )

    def list_objects(self, bucket, prefix, continuation_token=None, max_keys=1000):
        self._check_bucket(bucket)
        if self.fail_list:
            raise StoreError("listing failed", operation="list", bucket=bucket)
        with self._lock:
            self.list_calls += 1
            keys = sorted(k for k in self.objects if k.startswith(prefix))
            start = int(continuation_token or 0)
            size = min(max_keys, self.page_size)
            chunk = keys[start : start + size]
            objects = [
                RemoteObject(
                    key=k,
                    size=len(self.objects[k][0]),
                    last_modified=self.objects[k][1],
                    etag=self.objects[k][2],
                )
                for k in chunk
            ]
        truncated = start + size < len(keys)
        return ListPage(
            objects=objects,
            is_truncated=truncated,
            next_token=str(start + size) if truncated else None,
        )

    def head_object(self, bucket, key):
        self._check_bucket(bucket)
        with self._lock:
            if key not in self.objects:
                raise ObjectNotFoundError("Not Found", operation="head", bucket=bucket, key=key)
            content, mtime, etag = self.objects[key]
        return RemoteObject(key=key, size=len(content), last_modified=mtime, etag=etag)

    def put_object(self, bucket, key, body, content_type=None):
        self._check_bucket(bucket)
        content = body.read()
        with self._lock:
            self.put_calls.append(key)
            if key in self.fail_put:
                raise StoreError("Internal error", operation="put", bucket=bucket, key=key)
            etag = hashlib.md5(content).hexdigest()
            self.objects[key] = (content, time.time(), etag)
        return etag

    def delete_objects(self, bucket, keys):
        self._check_bucket(bucket)
        with self._lock:
            self.delete_calls.append(list(keys))
            if self.fail_delete_batch:
                raise StoreError("Service unavailable", operation="delete", bucket=bucket)
            deleted = []
            errors = []
            for key in keys:
                if key in self.fail_delete:
                    errors.append(DeleteFailure(key, "AccessDenied", "Access Denied"))
                    continue
                self.objects.pop(key, None)
                deleted.append(key)
        return DeleteOutcome(deleted=deleted, errors=errors)

    def snapshot(self) -> dict[str, bytes]:
        return {key: value[0] for key, value in self.objects.items()}


def make_tree(root: Path, files: dict[str, bytes]) -> Path:
    """Create files (relative path -> content) under root."""
    for rel_path, content in files.items():
        path = root / rel_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
    return root


@pytest.fixture
def store():
    return InMemoryObjectStore()


@pytest.fixture
def quiet_output():
    return OutputFormatter(quiet=True)


@pytest.fixture
def local_tree(tmp_path):
    """Factory creating files under a fresh ``src`` directory."""
    root = tmp_path / "src"
    root.mkdir()

    def factory(files: dict[str, bytes]) -> Path:
        return make_tree(root, files)

    return factory
