"""Tests for the S3 object store client."""

import io
from datetime import datetime, timezone
from unittest.mock import Mock, patch

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from bucketsync.exceptions import (
    BucketNotFoundError,
    ObjectNotFoundError,
    StoreAccessDeniedError,
    StoreError,
    StoreNetworkError,
    StoreRateLimitError,
)
from bucketsync.models import DeleteFailure
from bucketsync.store import S3ObjectStore


def client_error(code, status=400, message="boom", operation="ListObjectsV2"):
    return ClientError(
        {
            "Error": {"Code": code, "Message": message},
            "ResponseMetadata": {"HTTPStatusCode": status},
        },
        operation,
    )


@pytest.fixture
def mock_client():
    return Mock()


@pytest.fixture
def s3(mock_client):
    return S3ObjectStore(client=mock_client)


class TestClientCreation:
    """Test lazy boto3 client construction."""

    @patch("bucketsync.store.boto3")
    def test_builds_client_once(self, mock_boto3):
        s3 = S3ObjectStore(region="eu-west-1", endpoint_url="http://localhost:9000")

        s3._get_client()
        s3._get_client()

        mock_boto3.client.assert_called_once()
        args, kwargs = mock_boto3.client.call_args
        assert args == ("s3",)
        assert kwargs["region_name"] == "eu-west-1"
        assert kwargs["endpoint_url"] == "http://localhost:9000"

    @patch("bucketsync.store.boto3")
    def test_profile_uses_session(self, mock_boto3):
        S3ObjectStore(profile="backup")._get_client()

        mock_boto3.Session.assert_called_once_with(profile_name="backup")
        mock_boto3.Session.return_value.client.assert_called_once()


class TestListObjects:
    """Test listing."""

    def test_parses_page(self, s3, mock_client):
        mock_client.list_objects_v2.return_value = {
            "Contents": [
                {
                    "Key": "site/a.txt",
                    "Size": 12,
                    "LastModified": datetime(2024, 1, 1, tzinfo=timezone.utc),
                    "ETag": '"abc123"',
                }
            ],
            "IsTruncated": True,
            "NextContinuationToken": "tok",
        }

        page = s3.list_objects("bucket", "site/")

        assert page.is_truncated
        assert page.next_token == "tok"
        (obj,) = page.objects
        assert obj.key == "site/a.txt"
        assert obj.size == 12
        assert obj.etag == "abc123"
        assert obj.last_modified == datetime(2024, 1, 1, tzinfo=timezone.utc).timestamp()
        mock_client.list_objects_v2.assert_called_once_with(
            Bucket="bucket", Prefix="site/", MaxKeys=1000
        )

    def test_passes_continuation_token(self, s3, mock_client):
        mock_client.list_objects_v2.return_value = {}

        page = s3.list_objects("bucket", "", continuation_token="next")

        assert page.objects == []
        assert mock_client.list_objects_v2.call_args.kwargs["ContinuationToken"] == "next"

    @pytest.mark.parametrize(
        "code,status,error_class",
        [
            ("AccessDenied", 403, StoreAccessDeniedError),
            ("NoSuchBucket", 404, BucketNotFoundError),
            ("SlowDown", 503, StoreRateLimitError),
            ("InternalError", 500, StoreError),
        ],
    )
    def test_error_mapping(self, s3, mock_client, code, status, error_class):
        mock_client.list_objects_v2.side_effect = client_error(code, status)

        with pytest.raises(error_class) as exc_info:
            s3.list_objects("bucket", "site/")

        assert type(exc_info.value) is error_class
        assert exc_info.value.code == code
        assert str(exc_info.value).startswith("s3.list bucket bucket:")

    def test_network_error(self, s3, mock_client):
        mock_client.list_objects_v2.side_effect = EndpointConnectionError(
            endpoint_url="http://nowhere"
        )

        with pytest.raises(StoreNetworkError):
            s3.list_objects("bucket", "")


class TestObjectCalls:
    """Test head, put and delete."""

    def test_head_object(self, s3, mock_client):
        mock_client.head_object.return_value = {
            "ContentLength": 3,
            "LastModified": datetime(2024, 1, 1, tzinfo=timezone.utc),
            "ETag": '"e"',
        }

        obj = s3.head_object("bucket", "k")

        assert (obj.key, obj.size, obj.etag) == ("k", 3, "e")

    def test_head_missing(self, s3, mock_client):
        mock_client.head_object.side_effect = client_error("404", 404, "Not Found")

        with pytest.raises(ObjectNotFoundError) as exc_info:
            s3.head_object("bucket", "k")

        assert str(exc_info.value) == "s3.head bucket/k: Not Found"

    def test_put_object(self, s3, mock_client):
        mock_client.put_object.return_value = {"ETag": '"etag1"'}
        body = io.BytesIO(b"data")

        etag = s3.put_object("bucket", "k", body, content_type="text/plain")

        assert etag == "etag1"
        mock_client.put_object.assert_called_once_with(
            Bucket="bucket", Key="k", Body=body, ContentType="text/plain"
        )

    def test_delete_objects(self, s3, mock_client):
        mock_client.delete_objects.return_value = {
            "Deleted": [{"Key": "a"}],
            "Errors": [{"Key": "b", "Code": "AccessDenied", "Message": "denied"}],
        }

        outcome = s3.delete_objects("bucket", ["a", "b"])

        assert outcome.deleted == ["a"]
        assert outcome.errors == [DeleteFailure("b", "AccessDenied", "denied")]
        kwargs = mock_client.delete_objects.call_args.kwargs
        assert kwargs["Delete"]["Objects"] == [{"Key": "a"}, {"Key": "b"}]

    def test_delete_empty_list_makes_no_call(self, s3, mock_client):
        assert s3.delete_objects("bucket", []).deleted == []
        mock_client.delete_objects.assert_not_called()

    def test_delete_too_many_keys(self, s3):
        with pytest.raises(ValueError, match="1000"):
            s3.delete_objects("bucket", [str(i) for i in range(1001)])
