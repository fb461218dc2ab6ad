"""
Data models returned by blob store operations.

These are the shapes every BlobStore implementation hands back, whether the
call reached the remote service or was recorded by the dry-run store.
"""

from dataclasses import dataclass
from typing import Dict, Any, Optional


@dataclass(frozen=True)
class BlobItem:
    """A blob listed from a container."""
    name: str
    url: str
    size: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "name": self.name,
            "url": self.url,
            "size": self.size
        }


@dataclass(frozen=True)
class BlobOperationResult:
    """Result of a delete or upload call against a container."""
    container: str
    name: str
    url: str
    dry_run: bool = False
    etag: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "container": self.container,
            "name": self.name,
            "url": self.url,
            "dry_run": self.dry_run,
            "etag": self.etag
        }
