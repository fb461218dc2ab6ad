"""Tests for the S3 blob store adapter using botocore's Stubber."""

from unittest.mock import MagicMock

import boto3
import pytest
from botocore.exceptions import ClientError, EndpointConnectionError, NoCredentialsError
from botocore.stub import Stubber

from blob_store import BlobStoreError, ContainerBeingDeletedError, S3BlobStore, to_extra_args


@pytest.fixture
def s3_client():
    return boto3.client(
        "s3",
        region_name="us-east-1",
        endpoint_url="http://localhost:9000",
        aws_access_key_id="testing",
        aws_secret_access_key="testing"
    )


@pytest.fixture
def stubbed(s3_client):
    with Stubber(s3_client) as stubber:
        yield S3BlobStore(client=s3_client), stubber
        stubber.assert_no_pending_responses()


class TestS3BlobStore:
    """S3BlobStore maps the blob store operations onto S3 calls."""

    @pytest.mark.asyncio
    async def test_creates_bucket_when_missing(self, stubbed):
        store, stubber = stubbed
        stubber.add_client_error("head_bucket", service_error_code="404", http_status_code=404,
                                 expected_params={"Bucket": "site"})
        stubber.add_response("create_bucket", {"Location": "/site"},
                             {"Bucket": "site", "ACL": "public-read"})

        created = await store.create_container_if_not_exists("site", {"ACL": "public-read"})

        assert created is True

    @pytest.mark.asyncio
    async def test_existing_bucket_is_left_alone(self, stubbed):
        store, stubber = stubbed
        stubber.add_response("head_bucket", {}, {"Bucket": "site"})

        assert await store.create_container_if_not_exists("site") is False

    @pytest.mark.asyncio
    async def test_bucket_owned_by_caller_race(self, stubbed):
        store, stubber = stubbed
        stubber.add_client_error("head_bucket", service_error_code="404", http_status_code=404)
        stubber.add_client_error("create_bucket", service_error_code="BucketAlreadyOwnedByYou",
                                 http_status_code=409)

        assert await store.create_container_if_not_exists("site") is False

    @pytest.mark.asyncio
    async def test_bucket_being_deleted(self, stubbed):
        store, stubber = stubbed
        stubber.add_client_error("head_bucket", service_error_code="404", http_status_code=404)
        stubber.add_client_error("create_bucket", service_error_code="OperationAborted",
                                 http_status_code=409)

        with pytest.raises(ContainerBeingDeletedError) as exc_info:
            await store.create_container_if_not_exists("site")

        assert exc_info.value.code == "OperationAborted"

    @pytest.mark.asyncio
    async def test_forbidden_bucket_is_an_error(self, stubbed):
        store, stubber = stubbed
        stubber.add_client_error("head_bucket", service_error_code="403", http_status_code=403)

        with pytest.raises(BlobStoreError) as exc_info:
            await store.create_container_if_not_exists("site")

        assert not isinstance(exc_info.value, ContainerBeingDeletedError)
        assert exc_info.value.code == "403"

    @pytest.mark.asyncio
    async def test_lists_all_pages_under_prefix(self, stubbed):
        store, stubber = stubbed
        stubber.add_response(
            "list_objects_v2",
            {"IsTruncated": True, "NextContinuationToken": "page2",
             "Contents": [{"Key": "v1/a.html", "Size": 10}]},
            {"Bucket": "site", "Prefix": "v1/"}
        )
        stubber.add_response(
            "list_objects_v2",
            {"IsTruncated": False, "Contents": [{"Key": "v1/css/b c.css", "Size": 20}]},
            {"Bucket": "site", "Prefix": "v1/", "ContinuationToken": "page2"}
        )

        blobs = await store.list_blobs("site", "v1/")

        assert [(blob.name, blob.size) for blob in blobs] == [("v1/a.html", 10), ("v1/css/b c.css", 20)]
        assert blobs[1].url == "http://localhost:9000/site/v1/css/b%20c.css"

    @pytest.mark.asyncio
    async def test_list_failure(self, stubbed):
        store, stubber = stubbed
        stubber.add_client_error("list_objects_v2", service_error_code="NoSuchBucket", http_status_code=404)

        with pytest.raises(BlobStoreError) as exc_info:
            await store.list_blobs("site", "")

        assert exc_info.value.code == "NoSuchBucket"

    @pytest.mark.asyncio
    async def test_deletes_object(self, stubbed):
        store, stubber = stubbed
        stubber.add_response("delete_object", {}, {"Bucket": "site", "Key": "v1/a.html"})

        result = await store.delete_blob("site", "v1/a.html")

        assert result.name == "v1/a.html"
        assert result.url == "http://localhost:9000/site/v1/a.html"
        assert result.dry_run is False

    @pytest.mark.asyncio
    async def test_upload_passes_headers_and_metadata(self):
        client = MagicMock()
        client.meta.endpoint_url = "http://localhost:9000/"
        store = S3BlobStore(client=client)

        result = await store.upload_file(
            "site",
            "v1/a.txt",
            "/tmp/a.txt.gz",
            {"content_type": "text/plain", "content_encoding": "gzip", "build": "42"}
        )

        client.upload_file.assert_called_once_with(
            "/tmp/a.txt.gz",
            "site",
            "v1/a.txt",
            ExtraArgs={"ContentType": "text/plain", "ContentEncoding": "gzip", "Metadata": {"build": "42"}}
        )
        assert result.url == "http://localhost:9000/site/v1/a.txt"

    @pytest.mark.asyncio
    async def test_upload_failure_is_blob_store_error(self):
        client = MagicMock()
        client.upload_file.side_effect = ClientError(
            {"Error": {"Code": "AccessDenied", "Message": "nope"}}, "PutObject"
        )
        store = S3BlobStore(client=client)

        with pytest.raises(BlobStoreError) as exc_info:
            await store.upload_file("site", "a.txt", "/tmp/a.txt", {})

        assert exc_info.value.code == "AccessDenied"

    @pytest.mark.asyncio
    async def test_missing_credentials_on_bucket_check(self):
        client = MagicMock()
        client.head_bucket.side_effect = NoCredentialsError()
        store = S3BlobStore(client=client)

        with pytest.raises(BlobStoreError) as exc_info:
            await store.create_container_if_not_exists("site")

        assert exc_info.value.code is None
        assert isinstance(exc_info.value.__cause__, NoCredentialsError)
        client.create_bucket.assert_not_called()

    @pytest.mark.asyncio
    async def test_unreachable_endpoint_on_create(self):
        client = MagicMock()
        client.head_bucket.side_effect = ClientError({"Error": {"Code": "404"}}, "HeadBucket")
        client.create_bucket.side_effect = EndpointConnectionError(endpoint_url="http://localhost:9000")
        store = S3BlobStore(client=client)

        with pytest.raises(BlobStoreError, match="Failed to create bucket site"):
            await store.create_container_if_not_exists("site")

    @pytest.mark.asyncio
    async def test_unreachable_endpoint_on_list(self):
        client = MagicMock()
        client.get_paginator.return_value.paginate.side_effect = EndpointConnectionError(
            endpoint_url="http://localhost:9000"
        )
        store = S3BlobStore(client=client)

        with pytest.raises(BlobStoreError, match="Failed to list bucket site"):
            await store.list_blobs("site", "v1/")

    @pytest.mark.asyncio
    async def test_unreachable_endpoint_on_delete(self):
        client = MagicMock()
        client.delete_object.side_effect = EndpointConnectionError(endpoint_url="http://localhost:9000")
        store = S3BlobStore(client=client)

        with pytest.raises(BlobStoreError, match="Failed to delete v1/a.html from site"):
            await store.delete_blob("site", "v1/a.html")


class TestExtraArgs:
    """Metadata keys map onto S3 headers or user metadata."""

    def test_known_headers(self):
        assert to_extra_args({
            "content_type": "text/css",
            "content_encoding": "gzip",
            "cache_control": "public, max-age=31556926",
            "content_disposition": "inline",
            "content_language": "en"
        }) == {
            "ContentType": "text/css",
            "ContentEncoding": "gzip",
            "CacheControl": "public, max-age=31556926",
            "ContentDisposition": "inline",
            "ContentLanguage": "en"
        }

    def test_other_keys_become_user_metadata(self):
        assert to_extra_args({"release": "v1", "content_type": "text/html"}) == {
            "ContentType": "text/html",
            "Metadata": {"release": "v1"}
        }

    def test_empty(self):
        assert to_extra_args({}) == {}
