"""
Deployment pipeline coordinating container preparation and file uploads.

The pipeline starts container preparation once, then hands every incoming
file to an UploadWorker. Workers wait for the container to be ready and run
under a hard concurrency cap. Per-file failures are collected in the report;
preparation failures end the run.
"""

import asyncio
import time
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, AsyncIterable, AsyncIterator, Callable, Dict, Iterable, List, Optional, Union

import structlog

from blob_store import BlobStore, DryRunBlobStore, S3BlobStore
from file_uploader.compression import Compressor
from file_uploader.models import FileDescriptor, TaskOutcome, TaskStatus, UploadTask
from file_uploader.utils import build_upload_task
from file_uploader.worker import UploadWorker

from .config import Config
from .errors import PreparationError
from .preparation import ContainerPreparer, ContainerReady, PreparationGate

logger = structlog.get_logger(__name__)

FileSource = Union[Iterable[FileDescriptor], AsyncIterable[FileDescriptor]]
OutcomeCallback = Callable[[TaskOutcome], None]


@dataclass
class DeploymentReport:
    """Summary of a finished deployment run."""
    container: ContainerReady
    outcomes: List[TaskOutcome] = field(default_factory=list)
    duration: timedelta = field(default_factory=timedelta)
    dry_run: bool = False
    stopped: bool = False

    def _with_status(self, status: TaskStatus) -> List[TaskOutcome]:
        return [outcome for outcome in self.outcomes if outcome.status is status]

    @property
    def uploaded(self) -> List[TaskOutcome]:
        return self._with_status(TaskStatus.UPLOADED)

    @property
    def skipped(self) -> List[TaskOutcome]:
        return self._with_status(TaskStatus.SKIPPED)

    @property
    def failed(self) -> List[TaskOutcome]:
        return self._with_status(TaskStatus.FAILED)

    @property
    def succeeded(self) -> bool:
        return not self.failed

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "container": self.container.to_dict(),
            "outcomes": [outcome.to_dict() for outcome in self.outcomes],
            "uploaded_count": len(self.uploaded),
            "skipped_count": len(self.skipped),
            "failed_count": len(self.failed),
            "duration_seconds": self.duration.total_seconds(),
            "dry_run": self.dry_run,
            "stopped": self.stopped
        }


async def _iterate(files: FileSource) -> AsyncIterator[FileDescriptor]:
    if hasattr(files, "__aiter__"):
        async for descriptor in files:
            yield descriptor
    else:
        for descriptor in files:
            yield descriptor


class DeploymentPipeline:
    """Synchronizes a stream of local files into one container."""

    def __init__(
        self,
        config: Config,
        store: BlobStore,
        on_outcome: Optional[OutcomeCallback] = None
    ):
        self.config = config
        self.store = DryRunBlobStore(store) if config.dry_run else store
        self.preparer = ContainerPreparer(self.store, config)
        self.gate = PreparationGate(self.preparer)
        self.worker = UploadWorker(
            self.store,
            config.container_name,
            gzip=config.gzip,
            compressor=Compressor(level=config.compression_level)
        )
        self.on_outcome = on_outcome
        self._stop_requested = False

    @classmethod
    def from_config(cls, config: Config, on_outcome: Optional[OutcomeCallback] = None) -> "DeploymentPipeline":
        """Build a pipeline talking to S3 with the configured client options."""
        store = S3BlobStore(
            endpoint_url=config.endpoint_url,
            region_name=config.region_name,
            profile_name=config.profile_name
        )
        return cls(config, store, on_outcome=on_outcome)

    def request_stop(self) -> None:
        """Stop handing out new files. Uploads already running finish normally."""
        if not self._stop_requested:
            logger.warning("Stop requested, no new uploads will be started")
        self._stop_requested = True

    def create_task(self, descriptor: FileDescriptor) -> UploadTask:
        return build_upload_task(
            descriptor,
            prefix=self.config.destination_prefix,
            metadata=self.config.metadata,
            exclusion_prefix=self.config.exclusion_prefix
        )

    async def run(self, files: FileSource) -> DeploymentReport:
        """
        Deploy every file from the source.

        Returns:
            DeploymentReport with one outcome per file that was handed out

        Raises:
            PreparationError: the container could not be prepared (including
                TransientConflictError); no upload was issued
            Exception: the first error of a crashed worker, raised only after
                every other in-flight worker has finished
        """
        start_time = time.time()
        logger.info("Starting deployment", **self.config.to_dict())

        self.gate.start()
        semaphore = asyncio.Semaphore(self.config.concurrent_uploads)
        outcomes: List[TaskOutcome] = []
        running = set()
        worker_errors: List[BaseException] = []

        try:
            async for descriptor in _iterate(files):
                if self._stop_requested or self.gate.failed:
                    break

                task = self.create_task(descriptor)
                if task.skip:
                    self._record(outcomes, self.worker.skip(task))
                    continue

                await semaphore.acquire()
                if self.gate.failed:
                    semaphore.release()
                    break

                worker_task = asyncio.create_task(self._process(task, semaphore, outcomes))
                running.add(worker_task)
                worker_task.add_done_callback(running.discard)
        finally:
            # in-flight workers always run to completion, even when the source fails
            if running:
                results = await asyncio.gather(*list(running), return_exceptions=True)
                worker_errors = [result for result in results if isinstance(result, Exception)]
                for error in worker_errors:
                    logger.error("Upload worker crashed", error=str(error), exc_info=error)

        try:
            container = await self.gate.wait()
        except PreparationError as e:
            logger.error(
                "Deployment aborted, container preparation failed",
                container=self.config.container_name,
                error=str(e),
                retryable=e.retryable
            )
            raise

        if worker_errors:
            raise worker_errors[0]

        report = DeploymentReport(
            container=container,
            outcomes=outcomes,
            duration=timedelta(seconds=time.time() - start_time),
            dry_run=self.config.dry_run,
            stopped=self._stop_requested
        )
        logger.info(
            "Deployment finished",
            container=self.config.container_name,
            uploaded=len(report.uploaded),
            skipped=len(report.skipped),
            failed=len(report.failed),
            dry_run=report.dry_run,
            duration=round(report.duration.total_seconds(), 3)
        )
        return report

    async def _process(self, task: UploadTask, semaphore: asyncio.Semaphore, outcomes: List[TaskOutcome]) -> None:
        try:
            outcome = await self.worker.process(task, self.gate.wait())
        except Exception:
            if self.gate.failed:
                # reported once by run()
                return
            raise
        finally:
            semaphore.release()
        self._record(outcomes, outcome)

    def _record(self, outcomes: List[TaskOutcome], outcome: TaskOutcome) -> None:
        outcomes.append(outcome)
        if self.on_outcome is not None:
            try:
                self.on_outcome(outcome)
            except Exception as e:
                logger.error("Outcome callback failed", destination=outcome.destination, error=str(e))
