# Path: llama_server/engine/stream_handler.py
"""
Stream Handler

Memory-efficient streaming of release archives to disk.
Writes each chunk as it arrives and reports a progress event per chunk.

Architecture:
- Chunk-based streaming
- Progress events: one at start, one per received chunk
- Async file I/O via aiofiles
"""

import time
from pathlib import Path
from typing import AsyncIterator, Callable, Optional

import aiofiles
import aiohttp

from llama_server.core.logger import get_logger
from llama_server.engine.result import Progress
from llama_server.errors import IOFailure
from llama_server.constants import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_LOG_PROGRESS_INTERVAL,
    LOG_PROCESS,
)

logger = get_logger(__name__, 'engine')

ProgressCallback = Callable[[Progress], None]


class StreamHandler:
    """
    Handles streaming download to disk.

    Progress contract:
    - One event with downloaded=0 before the first chunk
    - One event per received chunk, downloaded never decreases
    - speed = downloaded / seconds elapsed since started_at

    Example:
        handler = StreamHandler(chunk_size=65536)
        written = await handler.stream_to_file(
            response.content.iter_chunked(65536),
            Path('server.zip'),
            total_size=response.content_length or 0,
            progress=print
        )
    """

    def __init__(
        self,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        log_interval: int = DEFAULT_LOG_PROGRESS_INTERVAL
    ):
        """
        Initialize stream handler.

        Args:
            chunk_size: Size of chunks to read (bytes)
            log_interval: Chunks between DEBUG progress log lines
        """
        self.chunk_size = chunk_size
        self.log_interval = max(log_interval, 1)

        self.bytes_written = 0
        self.chunks_written = 0

    async def stream_to_file(
        self,
        response_stream: AsyncIterator[bytes],
        output_path: Path,
        total_size: int = 0,
        progress: Optional[ProgressCallback] = None,
        started_at: Optional[float] = None
    ) -> int:
        """
        Stream response chunks to a file, truncating any previous content.

        Args:
            response_stream: Async iterator of byte chunks
            output_path: Path where file will be written
            total_size: Expected size, 0 if unknown
            progress: Optional callback receiving Progress events
            started_at: time.monotonic() when the request was sent

        Returns:
            Total bytes written

        Raises:
            IOFailure: If the file cannot be written
            aiohttp.ClientError: If the response stream fails
        """
        logger.info(f"{LOG_PROCESS} Streaming to: {output_path.name}")

        started_at = started_at if started_at is not None else time.monotonic()
        self.reset()

        self._emit(progress, total_size, started_at)

        try:
            async with aiofiles.open(output_path, 'wb') as f:
                async for chunk in response_stream:
                    if not chunk:
                        continue

                    await f.write(chunk)
                    self.bytes_written += len(chunk)
                    self.chunks_written += 1

                    self._emit(progress, total_size, started_at)

                    if self.chunks_written % self.log_interval == 0:
                        self._log_progress(total_size)

        except aiohttp.ClientError:
            raise

        except OSError as e:
            logger.error(f"Streaming error: {e}")
            raise IOFailure(f"Cannot write {output_path}: {e}") from e

        logger.info(
            f"{LOG_PROCESS} Stream complete: {self.bytes_written} bytes "
            f"in {self.chunks_written} chunks"
        )

        return self.bytes_written

    def _emit(self, progress: Optional[ProgressCallback], total_size: int, started_at: float) -> None:
        if progress is None:
            return

        elapsed = time.monotonic() - started_at
        speed = int(self.bytes_written / elapsed) if self.bytes_written and elapsed > 0 else 0

        progress(Progress(
            downloaded=self.bytes_written,
            total=total_size,
            speed=speed
        ))

    def _log_progress(self, total_size: int) -> None:
        if total_size:
            percent = (self.bytes_written / total_size) * 100
            logger.debug(
                f"{LOG_PROCESS} Progress: {percent:.1f}% "
                f"({self.bytes_written}/{total_size} bytes)"
            )
        else:
            logger.debug(f"{LOG_PROCESS} Downloaded: {self.bytes_written} bytes")

    def reset(self):
        """Reset progress counters."""
        self.bytes_written = 0
        self.chunks_written = 0


__all__ = ['StreamHandler', 'ProgressCallback']
