"""
Per-file upload worker.

This module handles a single upload task end to end: waiting for the
container, optional compression and size arbitration, the upload call and
cleanup of the temporary compressed file.
"""

import asyncio
import os
import time
from typing import Awaitable, Dict, Optional

import structlog

from blob_store import BlobStore, BlobStoreError
from cdn_deploy.errors import CompressionError, UploadError

from .compression import Compressor, SizeArbiter
from .models import CompressionOutcome, TaskOutcome, TaskStatus, UploadDecision, UploadTask
from .utils import remove_temp_file

logger = structlog.get_logger(__name__)


class UploadWorker:
    """Processes upload tasks against one container."""

    def __init__(
        self,
        store: BlobStore,
        container_name: str,
        gzip: bool = False,
        compressor: Optional[Compressor] = None,
        arbiter: Optional[SizeArbiter] = None
    ):
        self.store = store
        self.container_name = container_name
        self.gzip = gzip
        self.compressor = compressor or Compressor()
        self.arbiter = arbiter or SizeArbiter()

    def skip(self, task: UploadTask) -> TaskOutcome:
        logger.info(
            "Skipping excluded file",
            file_path=task.source_path,
            destination=task.destination
        )
        return TaskOutcome(
            source_path=task.source_path,
            destination=task.destination,
            status=TaskStatus.SKIPPED
        )

    async def process(self, task: UploadTask, container_ready: Awaitable) -> TaskOutcome:
        """
        Upload one file once the container is ready.

        Per-file failures are returned as a failed TaskOutcome. Only a failure
        of container_ready itself propagates, since it ends the whole run.
        """
        if task.skip:
            return self.skip(task)

        await container_ready

        metadata = self.build_metadata(task)
        start_time = time.time()

        try:
            if self.gzip:
                outcome = await self._compress_and_upload(task, metadata)
            else:
                outcome = await self._upload(task, UploadDecision(file_path=task.source_path, metadata=metadata))
        except (CompressionError, UploadError) as e:
            logger.error(
                "File upload failed",
                file_path=task.source_path,
                destination=task.destination,
                error=str(e)
            )
            return self._failed(task, e)
        except Exception as e:
            logger.error(
                "Unexpected error while processing file",
                file_path=task.source_path,
                destination=task.destination,
                error=str(e),
                exc_info=True
            )
            return self._failed(task, e)

        logger.debug(
            "File processed",
            destination=task.destination,
            duration=round(time.time() - start_time, 3)
        )
        return outcome

    @staticmethod
    def build_metadata(task: UploadTask) -> Dict[str, str]:
        metadata = dict(task.base_metadata)
        metadata["content_type"] = task.content_type
        return metadata

    async def _compress_and_upload(self, task: UploadTask, metadata: Dict[str, str]) -> TaskOutcome:
        compressed_path = await self.compressor.compress(task.source_path)
        try:
            try:
                original_stat, compressed_stat = await asyncio.gather(
                    asyncio.to_thread(_file_size, task.source_path),
                    asyncio.to_thread(_file_size, compressed_path)
                )
            except OSError as e:
                raise CompressionError(
                    f"Failed to stat {task.source_path}: {e}", source_path=task.source_path
                ) from e

            compression = CompressionOutcome(
                source_path=task.source_path,
                compressed_path=compressed_path,
                original_size=original_stat,
                compressed_size=compressed_stat
            )
            decision = self.arbiter.decide(compression, metadata)

            logger.info(
                "Based on file size decided which file to upload",
                file_path=task.source_path,
                upload_path=decision.file_path,
                original_size=compression.original_size,
                compressed_size=compression.compressed_size,
                compression_ratio=round(compression.compression_ratio, 3),
                content_encoding=decision.content_encoding
            )
            return await self._upload(task, decision)
        finally:
            await remove_temp_file(compressed_path)

    async def _upload(self, task: UploadTask, decision: UploadDecision) -> TaskOutcome:
        try:
            result = await self.store.upload_file(
                self.container_name,
                task.destination,
                decision.file_path,
                decision.metadata
            )
        except BlobStoreError as e:
            raise UploadError(
                f"Failed to upload {decision.file_path} to {task.destination}: {e}",
                destination=task.destination
            ) from e

        if not result.dry_run:
            logger.info(
                "Uploaded file",
                destination=task.destination,
                container=self.container_name,
                content_encoding=decision.content_encoding
            )
        return TaskOutcome(
            source_path=task.source_path,
            destination=task.destination,
            status=TaskStatus.UPLOADED,
            uploaded_path=decision.file_path,
            content_encoding=decision.content_encoding,
            url=result.url,
            dry_run=result.dry_run
        )

    @staticmethod
    def _failed(task: UploadTask, error: Exception) -> TaskOutcome:
        return TaskOutcome(
            source_path=task.source_path,
            destination=task.destination,
            status=TaskStatus.FAILED,
            error_message=str(error)
        )


def _file_size(path: str) -> int:
    return os.stat(path).st_size
