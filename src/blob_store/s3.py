"""
S3 implementation of the blob store capability.

A container maps to an S3 bucket and a blob to an object key. boto3 is
synchronous, so every call runs in a worker thread to keep the event loop free.
"""

import asyncio
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import quote

import boto3
from boto3.exceptions import S3UploadFailedError
import botocore.exceptions
import structlog

from .base import BlobStore, BlobStoreError, ContainerBeingDeletedError
from .models import BlobItem, BlobOperationResult

logger = structlog.get_logger(__name__)

# Metadata keys that S3 stores as real HTTP headers instead of x-amz-meta-*
HEADER_ARGUMENTS = {
    "content_type": "ContentType",
    "content_encoding": "ContentEncoding",
    "cache_control": "CacheControl",
    "content_disposition": "ContentDisposition",
    "content_language": "ContentLanguage",
}

MISSING_BUCKET_CODES = {"404", "NoSuchBucket", "NotFound"}
ALREADY_OWNED_CODES = {"BucketAlreadyOwnedByYou"}
# S3 answers OperationAborted while a conflicting operation (such as a
# bucket deletion) is still in progress on the same bucket.
BEING_DELETED_CODES = {"OperationAborted"}


def to_extra_args(metadata: Mapping[str, str]) -> Dict[str, Any]:
    """Translate pipeline metadata into boto3 upload ExtraArgs."""
    extra_args: Dict[str, Any] = {}
    user_metadata: Dict[str, str] = {}

    for key, value in metadata.items():
        if value is None:
            continue
        if key in HEADER_ARGUMENTS:
            extra_args[HEADER_ARGUMENTS[key]] = value
        else:
            user_metadata[key] = str(value)

    if user_metadata:
        extra_args["Metadata"] = user_metadata
    return extra_args


BOTO_ERRORS = (botocore.exceptions.BotoCoreError, botocore.exceptions.ClientError)


def _error_code(error: Exception) -> Optional[str]:
    # BotoCoreError (no credentials, endpoint unreachable) carries no service code
    if isinstance(error, botocore.exceptions.ClientError):
        return error.response.get("Error", {}).get("Code", "Unknown")
    return None


class S3BlobStore(BlobStore):
    """Blob store backed by an S3 compatible service."""

    def __init__(
        self,
        client: Any = None,
        endpoint_url: Optional[str] = None,
        region_name: Optional[str] = None,
        profile_name: Optional[str] = None
    ):
        if client is None:
            session = boto3.Session(profile_name=profile_name, region_name=region_name)
            client = session.client("s3", endpoint_url=endpoint_url)
        self.client = client

    async def create_container_if_not_exists(
        self,
        name: str,
        options: Optional[Mapping[str, Any]] = None
    ) -> bool:
        return await asyncio.to_thread(self._create_bucket_if_not_exists, name, dict(options or {}))

    def _create_bucket_if_not_exists(self, name: str, options: Dict[str, Any]) -> bool:
        try:
            self.client.head_bucket(Bucket=name)
            return False
        except BOTO_ERRORS as e:
            code = _error_code(e)
            if code not in MISSING_BUCKET_CODES:
                raise BlobStoreError(f"Failed to check bucket {name}: {e}", code=code) from e

        try:
            self.client.create_bucket(Bucket=name, **options)
        except BOTO_ERRORS as e:
            code = _error_code(e)
            if code in ALREADY_OWNED_CODES:
                return False
            if code in BEING_DELETED_CODES:
                raise ContainerBeingDeletedError(
                    f"Bucket {name} is being deleted, retry later", code=code
                ) from e
            raise BlobStoreError(f"Failed to create bucket {name}: {e}", code=code) from e
        return True

    async def list_blobs(self, container: str, prefix: str = "") -> List[BlobItem]:
        return await asyncio.to_thread(self._list_objects, container, prefix)

    def _list_objects(self, container: str, prefix: str) -> List[BlobItem]:
        blobs = []
        try:
            paginator = self.client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=container, Prefix=prefix):
                for entry in page.get("Contents", []):
                    blobs.append(BlobItem(
                        name=entry["Key"],
                        url=self.blob_url(container, entry["Key"]),
                        size=entry.get("Size")
                    ))
        except BOTO_ERRORS as e:
            raise BlobStoreError(
                f"Failed to list bucket {container}: {e}", code=_error_code(e)
            ) from e
        return blobs

    async def delete_blob(self, container: str, name: str) -> BlobOperationResult:
        try:
            await asyncio.to_thread(self.client.delete_object, Bucket=container, Key=name)
        except BOTO_ERRORS as e:
            raise BlobStoreError(
                f"Failed to delete {name} from {container}: {e}", code=_error_code(e)
            ) from e
        return BlobOperationResult(
            container=container,
            name=name,
            url=self.blob_url(container, name)
        )

    async def upload_file(
        self,
        container: str,
        name: str,
        file_path: str,
        metadata: Dict[str, str]
    ) -> BlobOperationResult:
        try:
            await asyncio.to_thread(
                self.client.upload_file,
                file_path,
                container,
                name,
                ExtraArgs=to_extra_args(metadata)
            )
        except BOTO_ERRORS as e:
            raise BlobStoreError(
                f"Failed to upload {file_path} to {container}/{name}: {e}", code=_error_code(e)
            ) from e
        except S3UploadFailedError as e:
            raise BlobStoreError(f"Failed to upload {file_path} to {container}/{name}: {e}") from e
        return BlobOperationResult(
            container=container,
            name=name,
            url=self.blob_url(container, name)
        )

    def blob_url(self, container: str, name: str) -> str:
        endpoint = self.client.meta.endpoint_url.rstrip("/")
        return f"{endpoint}/{container}/{quote(name)}"
