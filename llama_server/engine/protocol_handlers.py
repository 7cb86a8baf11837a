# Path: llama_server/engine/protocol_handlers.py
"""
Protocol Handlers

HTTP/HTTPS handler for release metadata, archive downloads and server
health checks.

Architecture:
- One aiohttp ClientSession per handler, created lazily or injected
- Streaming to disk through StreamHandler
- Connect timeout only: the body stream has no timeout
- Non-2xx responses and network errors raise TransportFailure
"""

import asyncio
import time
from pathlib import Path
from typing import Any, Optional

import aiohttp

from llama_server.core.logger import get_logger
from llama_server.core.config_loader import ConfigLoader
from llama_server.engine.stream_handler import StreamHandler, ProgressCallback
from llama_server.engine.result import DownloadResult
from llama_server.errors import TransportFailure
from llama_server.constants import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_LOG_PROGRESS_INTERVAL,
    HTTP_OK,
    HTTP_MULTIPLE_CHOICES,
    HEADER_USER_AGENT,
    HEADER_ACCEPT,
    ACCEPT_JSON,
    ACCEPT_ANY,
    LOG_INPUT,
    LOG_PROCESS,
    LOG_OUTPUT,
)

logger = get_logger(__name__, 'engine')


class HTTPHandler:
    """
    HTTP/HTTPS handler with streaming downloads.

    Construct one per process (or per CLI invocation) and pass it to the
    components that need network access. A session passed in by the caller
    is used as-is and never closed by the handler.

    Example:
        async with HTTPHandler(config) as http:
            result = await http.download(
                url='https://github.com/hecrj/llama-server/releases/download/b6730/...zip',
                output_path=Path('server.zip'),
                progress=lambda p: print(p.downloaded, p.total)
            )
    """

    def __init__(
        self,
        config: Optional[ConfigLoader] = None,
        session: Optional[aiohttp.ClientSession] = None
    ):
        """
        Initialize HTTP handler.

        Args:
            config: Optional ConfigLoader instance
            session: Optional externally owned ClientSession
        """
        self.config = config if config else ConfigLoader()

        self.chunk_size = self.config.get('chunk_size', DEFAULT_CHUNK_SIZE)
        self.connect_timeout = self.config.get('connect_timeout', DEFAULT_CONNECT_TIMEOUT)
        self.user_agent = self.config.get('user_agent')
        self.log_interval = self.config.get('log_progress_interval', DEFAULT_LOG_PROGRESS_INTERVAL)

        self._session = session
        self._owns_session = session is None

    async def download(
        self,
        url: str,
        output_path: Path,
        progress: Optional[ProgressCallback] = None
    ) -> DownloadResult:
        """
        Download file from URL to local path.

        Args:
            url: Source URL
            output_path: Destination path (overwritten)
            progress: Optional callback receiving Progress events

        Returns:
            DownloadResult with download statistics

        Raises:
            TransportFailure: On network errors or non-2xx responses
            IOFailure: If the destination cannot be written
        """
        logger.info(f"{LOG_INPUT} Downloading: {url}")
        logger.info(f"{LOG_INPUT} Output: {output_path}")

        started_at = time.monotonic()
        session = await self._get_session()

        try:
            async with session.get(
                url,
                headers=self._build_headers(ACCEPT_ANY),
                timeout=self._timeout()
            ) as response:
                self._check_status(response, url)

                total_size = response.content_length or 0

                if total_size:
                    logger.info(f"{LOG_PROCESS} File size: {total_size} bytes")

                stream_handler = StreamHandler(
                    chunk_size=self.chunk_size,
                    log_interval=self.log_interval
                )

                bytes_written = await stream_handler.stream_to_file(
                    response_stream=response.content.iter_chunked(self.chunk_size),
                    output_path=output_path,
                    total_size=total_size,
                    progress=progress,
                    started_at=started_at
                )

                result = DownloadResult(
                    file_path=output_path,
                    file_size=bytes_written,
                    url=url,
                    duration=time.monotonic() - started_at,
                    status_code=response.status,
                    chunks_downloaded=stream_handler.chunks_written
                )

        except asyncio.TimeoutError as e:
            logger.error(f"{LOG_OUTPUT} Download timeout: {url}")
            raise TransportFailure(f"Timeout downloading {url}", url=url) from e

        except aiohttp.ClientError as e:
            logger.error(f"{LOG_OUTPUT} Download failed: {e}")
            raise TransportFailure(f"Download failed: {e}", url=url) from e

        logger.info(
            f"{LOG_OUTPUT} Download complete: {result.file_size} bytes "
            f"in {result.duration:.2f}s "
            f"({result.download_speed_mbps:.2f} MB/s)"
        )
        logger.debug(f"{LOG_OUTPUT} {result.to_dict()}")

        return result

    async def get_json(self, url: str) -> Any:
        """
        GET request returning decoded JSON.

        Raises:
            TransportFailure: On network errors, non-2xx responses or an
                undecodable body
        """
        logger.info(f"{LOG_INPUT} Fetching: {url}")
        session = await self._get_session()

        try:
            async with session.get(
                url,
                headers=self._build_headers(ACCEPT_JSON),
                timeout=self._timeout()
            ) as response:
                self._check_status(response, url)
                return await response.json(content_type=None)

        except asyncio.TimeoutError as e:
            raise TransportFailure(f"Timeout fetching {url}", url=url) from e

        except aiohttp.ClientError as e:
            logger.error(f"{LOG_OUTPUT} Request failed: {e}")
            raise TransportFailure(f"Request failed: {e}", url=url) from e

        except ValueError as e:
            raise TransportFailure(f"Invalid JSON from {url}: {e}", url=url) from e

    async def is_healthy(self, url: str) -> bool:
        """
        Whether GET url answers with a 2xx status.

        Connection errors count as unhealthy; they are expected while a
        server is still starting.
        """
        session = await self._get_session()

        try:
            async with session.get(url, timeout=self._timeout()) as response:
                return HTTP_OK <= response.status < HTTP_MULTIPLE_CHOICES

        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.debug(f"{LOG_PROCESS} Health check failed: {e}")
            return False

    def _check_status(self, response: aiohttp.ClientResponse, url: str) -> None:
        if HTTP_OK <= response.status < HTTP_MULTIPLE_CHOICES:
            return

        logger.error(f"{LOG_OUTPUT} HTTP error: {response.status} for {url}")
        raise TransportFailure(
            f"HTTP {response.status} {response.reason or ''}".strip() + f" for {url}",
            url=url,
            status=response.status
        )

    def _build_headers(self, accept: str) -> dict[str, str]:
        headers = {HEADER_ACCEPT: accept}

        if self.user_agent:
            headers[HEADER_USER_AGENT] = self.user_agent

        return headers

    def _timeout(self) -> aiohttp.ClientTimeout:
        return aiohttp.ClientTimeout(total=None, sock_connect=self.connect_timeout)

    async def _get_session(self) -> aiohttp.ClientSession:
        """
        Get or create aiohttp session.

        Returns:
            ClientSession instance
        """
        if self._session is None or (self._owns_session and self._session.closed):
            self._session = aiohttp.ClientSession(timeout=self._timeout())
            self._owns_session = True

        return self._session

    async def close(self):
        """Close HTTP session if this handler created it."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()


__all__ = ['HTTPHandler']
