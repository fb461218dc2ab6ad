"""
Utility functions for file upload operations.

This module provides helpers for naming, content-type lookup, task
construction and temporary file cleanup used across the upload path.
"""

import asyncio
import mimetypes
import os
import posixpath
from typing import Mapping

import structlog

from .models import FileDescriptor, UploadTask

logger = structlog.get_logger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"


def content_type_for(name: str) -> str:
    """Look up the content type for a file name from its extension."""
    content_type, _ = mimetypes.guess_type(name, strict=False)
    return content_type or DEFAULT_CONTENT_TYPE


def is_excluded(path: str, exclusion_prefix: str) -> bool:
    """Check whether the file name is marked as excluded (drafts, partials)."""
    if not exclusion_prefix:
        return False
    return os.path.basename(path).startswith(exclusion_prefix)


def destination_key(prefix: str, name: str) -> str:
    """Join the container prefix and the file's logical name."""
    return prefix + name.replace(os.sep, "/").lstrip("/")


def build_upload_task(
    descriptor: FileDescriptor,
    prefix: str,
    metadata: Mapping[str, str],
    exclusion_prefix: str = "_"
) -> UploadTask:
    """Create the upload task for an incoming file descriptor."""
    destination = destination_key(prefix, descriptor.name)
    return UploadTask(
        source_path=descriptor.path,
        destination=destination,
        content_type=content_type_for(posixpath.basename(destination)),
        base_metadata=dict(metadata),
        skip=is_excluded(descriptor.path, exclusion_prefix)
    )


async def remove_temp_file(path: str) -> bool:
    """
    Delete a temporary file.

    Failures are logged and reported through the return value only, so a
    cleanup problem never hides the error already being handled for the file.
    """
    try:
        await asyncio.to_thread(os.unlink, path)
        return True
    except FileNotFoundError:
        return True
    except OSError as e:
        logger.warning(
            "Failed to remove temporary file",
            file_path=path,
            error=str(e)
        )
        return False
