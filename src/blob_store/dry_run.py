"""
Dry-run blob store.

Wraps a real store: reads (container creation, listing) go through, while
deletes and uploads are recorded and answered with synthetic results.
"""

from typing import Any, Dict, List, Mapping, Optional

import structlog

from .base import BlobStore
from .models import BlobItem, BlobOperationResult

logger = structlog.get_logger(__name__)


class DryRunBlobStore(BlobStore):
    """Recording no-op for destructive and mutating calls."""

    def __init__(self, delegate: BlobStore):
        self.delegate = delegate
        self.deleted: List[str] = []
        self.uploaded: List[Dict[str, Any]] = []

    async def create_container_if_not_exists(
        self,
        name: str,
        options: Optional[Mapping[str, Any]] = None
    ) -> bool:
        return await self.delegate.create_container_if_not_exists(name, options)

    async def list_blobs(self, container: str, prefix: str = "") -> List[BlobItem]:
        return await self.delegate.list_blobs(container, prefix)

    async def delete_blob(self, container: str, name: str) -> BlobOperationResult:
        self.deleted.append(name)
        url = self.delegate.blob_url(container, name)
        logger.info("Would delete blob", container=container, blob=name, url=url)
        return BlobOperationResult(container=container, name=name, url=url, dry_run=True)

    async def upload_file(
        self,
        container: str,
        name: str,
        file_path: str,
        metadata: Dict[str, str]
    ) -> BlobOperationResult:
        self.uploaded.append({
            "container": container,
            "name": name,
            "file_path": file_path,
            "metadata": dict(metadata)
        })
        url = self.delegate.blob_url(container, name)
        logger.info(
            "Would upload file",
            container=container,
            blob=name,
            file_path=file_path,
            content_encoding=metadata.get("content_encoding")
        )
        return BlobOperationResult(container=container, name=name, url=url, dry_run=True)

    def blob_url(self, container: str, name: str) -> str:
        return self.delegate.blob_url(container, name)
