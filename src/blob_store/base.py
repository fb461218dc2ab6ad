"""
Remote blob store capability.

The deployment pipeline only talks to the remote origin store through this
interface, so the real client and the dry-run recorder are interchangeable.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping, Optional

from .models import BlobItem, BlobOperationResult


class BlobStoreError(Exception):
    """A remote blob store call failed."""

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.code = code


class ContainerBeingDeletedError(BlobStoreError):
    """The container is in the middle of being deleted on the remote side."""


class BlobStore(ABC):
    """Operations the pipeline needs from a remote blob container service."""

    @abstractmethod
    async def create_container_if_not_exists(
        self,
        name: str,
        options: Optional[Mapping[str, Any]] = None
    ) -> bool:
        """
        Create the container unless it already exists.

        Returns:
            True if the container was created by this call, False if it was
            already present.

        Raises:
            ContainerBeingDeletedError: the container is being deleted remotely
            BlobStoreError: any other failure
        """

    @abstractmethod
    async def list_blobs(self, container: str, prefix: str = "") -> List[BlobItem]:
        """List every blob in the container whose name starts with prefix."""

    @abstractmethod
    async def delete_blob(self, container: str, name: str) -> BlobOperationResult:
        """Delete one blob."""

    @abstractmethod
    async def upload_file(
        self,
        container: str,
        name: str,
        file_path: str,
        metadata: Dict[str, str]
    ) -> BlobOperationResult:
        """Upload a local file to the container under the given blob name."""

    def blob_url(self, container: str, name: str) -> str:
        """Public URL of a blob. Stores that know their endpoint override this."""
        return f"{container}/{name}"
