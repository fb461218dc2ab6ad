"""
Gzip compression and size arbitration for uploads.

The compressor writes a gzip copy into a fresh temporary file next to the
source file. The arbiter then compares sizes and decides whether the original
or the compressed copy is uploaded, and with which content encoding.
"""

import asyncio
import gzip
import os
import shutil
import tempfile
import time
import zlib
from typing import Mapping

import structlog

from cdn_deploy.errors import CompressionError

from .models import CompressionOutcome, UploadDecision

logger = structlog.get_logger(__name__)

COMPRESSED_SUFFIX = ".gz"
COPY_BUFFER_SIZE = 64 * 1024


class Compressor:
    """Streams a file through gzip into a temporary sibling file."""

    def __init__(self, level: int = 9, suffix: str = COMPRESSED_SUFFIX):
        self.level = level
        self.suffix = suffix

    async def compress(self, source_path: str) -> str:
        """
        Compress source_path into a new temporary file in the same directory.

        The temporary name is always unique (e.g. ``app.js.k3j9x2.gz``), so an
        existing precompressed ``app.js.gz`` is never touched. The caller owns
        the returned file and must delete it. On failure any partially written
        file is removed here before CompressionError is raised.
        """
        start_time = time.time()

        try:
            temp_path = await asyncio.to_thread(self._gzip_file, source_path)
        except (OSError, zlib.error) as e:
            logger.error(
                "File compression failed",
                file_path=source_path,
                error=str(e)
            )
            raise CompressionError(
                f"Failed to compress {source_path}: {e}", source_path=source_path
            ) from e

        logger.debug(
            "File compression completed",
            file_path=source_path,
            compressed_path=temp_path,
            duration=round(time.time() - start_time, 3)
        )
        return temp_path

    def _gzip_file(self, source_path: str) -> str:
        directory, basename = os.path.split(source_path)
        fd, temp_path = tempfile.mkstemp(
            prefix=basename + ".",
            suffix=self.suffix,
            dir=directory or None
        )
        try:
            with os.fdopen(fd, "wb") as raw:
                with open(source_path, "rb") as source:
                    with gzip.GzipFile(
                        filename=basename, mode="wb", compresslevel=self.level, fileobj=raw
                    ) as target:
                        shutil.copyfileobj(source, target, COPY_BUFFER_SIZE)
        except Exception:
            self._discard(temp_path)
            raise
        return temp_path

    @staticmethod
    def _discard(path: str) -> None:
        try:
            os.unlink(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("Failed to remove partial compressed file", file_path=path, error=str(e))


def prefer_original(original_size: int, compressed_size: int) -> bool:
    """True when compression made the file bigger. Equal sizes favour gzip."""
    return original_size < compressed_size


class SizeArbiter:
    """Picks the smaller of the original and compressed file."""

    encoding = "gzip"

    def decide(self, outcome: CompressionOutcome, base_metadata: Mapping[str, str]) -> UploadDecision:
        metadata = dict(base_metadata)
        metadata.pop("content_encoding", None)

        if prefer_original(outcome.original_size, outcome.compressed_size):
            return UploadDecision(file_path=outcome.source_path, metadata=metadata)

        metadata["content_encoding"] = self.encoding
        return UploadDecision(file_path=outcome.compressed_path, metadata=metadata)
