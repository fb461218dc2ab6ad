"""
Blob store module for talking to the remote CDN origin store.

This module provides the storage capability used by the deployment pipeline:
an abstract store, an S3 implementation and a dry-run recorder.
"""

from .base import BlobStore, BlobStoreError, ContainerBeingDeletedError
from .dry_run import DryRunBlobStore
from .models import BlobItem, BlobOperationResult
from .s3 import S3BlobStore, to_extra_args

__all__ = [
    "BlobStore",
    "BlobStoreError",
    "ContainerBeingDeletedError",
    "DryRunBlobStore",
    "BlobItem",
    "BlobOperationResult",
    "S3BlobStore",
    "to_extra_args",
]
