"""
Shared data models for file upload functionality.

This module defines the data structures that flow through a deployment:
incoming file descriptors, per-file upload tasks, compression results,
upload decisions and the outcome reported for every file.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Any, Optional


@dataclass(frozen=True)
class FileDescriptor:
    """A local file handed to the pipeline by a file source."""
    path: str
    name: str  # logical name relative to the deployed root, "/" separated


@dataclass(frozen=True)
class UploadTask:
    """One file to synchronize into the container."""
    source_path: str
    destination: str
    content_type: str
    base_metadata: Dict[str, str] = field(default_factory=dict)
    skip: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "source_path": self.source_path,
            "destination": self.destination,
            "content_type": self.content_type,
            "base_metadata": dict(self.base_metadata),
            "skip": self.skip
        }


@dataclass(frozen=True)
class CompressionOutcome:
    """Compressed temporary copy of a source file."""
    source_path: str
    compressed_path: str
    original_size: int
    compressed_size: int

    @property
    def compression_ratio(self) -> float:
        return self.compressed_size / self.original_size if self.original_size > 0 else 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "source_path": self.source_path,
            "compressed_path": self.compressed_path,
            "original_size": self.original_size,
            "compressed_size": self.compressed_size,
            "compression_ratio": self.compression_ratio
        }


@dataclass(frozen=True)
class UploadDecision:
    """Which file to upload and with what metadata."""
    file_path: str
    metadata: Dict[str, str]

    @property
    def compressed(self) -> bool:
        return "content_encoding" in self.metadata

    @property
    def content_encoding(self) -> Optional[str]:
        return self.metadata.get("content_encoding")


class TaskStatus(Enum):
    """Final state of one file in a deployment run."""
    UPLOADED = "uploaded"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class TaskOutcome:
    """Result reported to the caller for every file."""
    source_path: str
    destination: str
    status: TaskStatus
    uploaded_path: Optional[str] = None
    content_encoding: Optional[str] = None
    url: Optional[str] = None
    dry_run: bool = False
    error_message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status is not TaskStatus.FAILED

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "source_path": self.source_path,
            "destination": self.destination,
            "status": self.status.value,
            "uploaded_path": self.uploaded_path,
            "content_encoding": self.content_encoding,
            "url": self.url,
            "dry_run": self.dry_run,
            "error_message": self.error_message
        }
