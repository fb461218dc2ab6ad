"""
Error types raised by the CDN deployment pipeline.

Run-fatal errors (ConfigError, PreparationError, TransientConflictError)
end the whole run. Per-file errors (CompressionError, UploadError) are
recorded against a single file while the rest of the run continues.
"""

from typing import Optional


class CdnDeployError(Exception):
    """Base class for all deployment errors."""


class ConfigError(CdnDeployError):
    """Missing or invalid configuration, raised before any work starts."""


class PreparationError(CdnDeployError):
    """The target container could not be created or pruned."""

    retryable = False


class TransientConflictError(PreparationError):
    """The container is being deleted remotely. Retry the whole run later."""

    retryable = True


class CompressionError(CdnDeployError):
    """Compressing one file failed."""

    def __init__(self, message: str, source_path: Optional[str] = None):
        super().__init__(message)
        self.source_path = source_path


class UploadError(CdnDeployError):
    """Uploading one file failed."""

    def __init__(self, message: str, destination: Optional[str] = None):
        super().__init__(message)
        self.destination = destination
