"""
Container preparation for a deployment run.

Before any file is uploaded the container must exist and, when requested,
everything under the destination prefix must be deleted. The result is
computed once per run and shared by every upload through PreparationGate.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

import structlog

from blob_store import BlobItem, BlobStore, BlobStoreError, ContainerBeingDeletedError

from .config import Config
from .errors import PreparationError, TransientConflictError

logger = structlog.get_logger(__name__)


class ContainerState(Enum):
    """Readiness of the remote container."""
    ABSENT = "absent"
    CREATING = "creating"
    PRUNING = "pruning"
    READY = "ready"
    FAILED = "failed"


@dataclass(frozen=True)
class ContainerReady:
    """Token handed to uploads once the container can receive files."""
    container_name: str
    created: bool
    deleted_blobs: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "container_name": self.container_name,
            "created": self.created,
            "deleted_blobs": self.deleted_blobs
        }


class ContainerPreparer:
    """Creates the container and optionally prunes the destination prefix."""

    def __init__(self, store: BlobStore, config: Config):
        self.store = store
        self.config = config
        self.state = ContainerState.ABSENT

    async def prepare(self) -> ContainerReady:
        """
        Make the container ready for uploads.

        Raises:
            TransientConflictError: the container is being deleted remotely
            PreparationError: creation, listing or any blob deletion failed,
                or anything else went wrong while preparing
        """
        name = self.config.container_name
        try:
            created = await self._create_container(name)
            deleted = 0
            if self.config.delete_existing_blobs:
                deleted = await self._prune(name, self.config.destination_prefix)
            else:
                logger.info(
                    "Keeping existing blobs",
                    container=name,
                    prefix=self.config.destination_prefix
                )
        except PreparationError:
            self.state = ContainerState.FAILED
            raise
        except Exception as e:
            self.state = ContainerState.FAILED
            logger.error(
                "Unexpected error while preparing container",
                container=name,
                error=str(e),
                exc_info=True
            )
            raise PreparationError(f"Failed to prepare container {name}: {e}") from e

        self.state = ContainerState.READY
        logger.info("Container ready", container=name, created=created, deleted_blobs=deleted)
        return ContainerReady(container_name=name, created=created, deleted_blobs=deleted)

    async def _create_container(self, name: str) -> bool:
        self.state = ContainerState.CREATING
        try:
            created = await self.store.create_container_if_not_exists(
                name, self.config.container_options
            )
        except ContainerBeingDeletedError as e:
            logger.error("Container is being deleted, retry later", container=name, error=str(e))
            raise TransientConflictError(
                f"Container {name} is being deleted, retry in a few seconds"
            ) from e
        except BlobStoreError as e:
            logger.error("Failed to create container", container=name, error=str(e), code=e.code)
            raise PreparationError(f"Failed to create container {name}: {e}") from e

        if created:
            logger.info("Created container", container=name)
        else:
            logger.info("Container already exists", container=name)
        return created

    async def _prune(self, name: str, prefix: str) -> int:
        self.state = ContainerState.PRUNING
        try:
            blobs = await self.store.list_blobs(name, prefix)
        except BlobStoreError as e:
            logger.error("Failed to list blobs", container=name, prefix=prefix, error=str(e))
            raise PreparationError(f"Failed to list blobs in {name}/{prefix}: {e}") from e

        if not blobs:
            logger.info("No existing blobs to delete", container=name, prefix=prefix)
            return 0

        semaphore = asyncio.Semaphore(self.config.concurrent_uploads)
        results = await asyncio.gather(
            *(self._delete(name, blob, semaphore) for blob in blobs),
            return_exceptions=True
        )

        failures: List[BaseException] = [r for r in results if isinstance(r, BaseException)]
        if failures:
            raise PreparationError(
                f"Failed to delete {len(failures)} of {len(blobs)} blobs in {name}: {failures[0]}"
            ) from failures[0]
        return len(blobs)

    async def _delete(self, name: str, blob: BlobItem, semaphore: asyncio.Semaphore) -> None:
        async with semaphore:
            logger.info("Deleting blob", container=name, blob=blob.name)
            try:
                result = await self.store.delete_blob(name, blob.name)
            except BlobStoreError as e:
                logger.error("Error while deleting blob", container=name, blob=blob.name, error=str(e))
                raise
        if not result.dry_run:
            logger.info("Deleted blob", container=name, url=result.url)


class PreparationGate:
    """
    Runs container preparation at most once and lets many uploads wait on it.

    The first call to start() schedules preparation; later calls return the
    same task, so there is never a second create-container call in a run.
    """

    def __init__(self, preparer: ContainerPreparer):
        self.preparer = preparer
        self._task: Optional[asyncio.Task] = None

    def start(self) -> asyncio.Task:
        if self._task is None:
            self._task = asyncio.ensure_future(self.preparer.prepare())
        return self._task

    def wait(self) -> "asyncio.Future[ContainerReady]":
        # shield: a cancelled waiter must not cancel the shared preparation
        return asyncio.shield(self.start())

    @property
    def failed(self) -> bool:
        task = self._task
        return task is not None and task.done() and (task.cancelled() or task.exception() is not None)

    @property
    def done(self) -> bool:
        return self._task is not None and self._task.done()
