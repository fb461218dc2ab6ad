"""
File uploader module for handling per-file upload operations.

This module provides the per-file part of a deployment: conditional gzip
compression, choosing the smaller file, the upload call and cleanup of the
temporary compressed copy.
"""

from .models import (
    FileDescriptor,
    UploadTask,
    CompressionOutcome,
    UploadDecision,
    TaskStatus,
    TaskOutcome,
)

__all__ = [
    "FileDescriptor",
    "UploadTask",
    "CompressionOutcome",
    "UploadDecision",
    "TaskStatus",
    "TaskOutcome",
]
