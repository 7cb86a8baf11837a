# Path: llama_server/engine/launcher.py
"""
Server Launcher

Spawns an installed llama-server executable and waits for its health
endpoint. A process that exits before it becomes healthy is a fatal
error; nothing is restarted.
"""

import asyncio
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from llama_server.core.logger import get_logger
from llama_server.core.config_loader import ConfigLoader
from llama_server.engine.protocol_handlers import HTTPHandler
from llama_server.errors import IOFailure, ProcessExitedError
from llama_server.constants import (
    DEFAULT_HOST,
    DEFAULT_PORT,
    DEFAULT_GPU_LAYERS,
    DEFAULT_HEALTH_INTERVAL,
    DEFAULT_STOP_GRACE_PERIOD,
    HEALTH_PATH,
    FEATURE_FLAG_JINJA,
    LOG_INPUT,
    LOG_PROCESS,
    LOG_OUTPUT,
)

logger = get_logger(__name__, 'engine')


@dataclass
class Settings:
    """
    Launch options of a server process.

    Attributes:
        host: Address the server listens on
        port: Port the server binds to
        gpu_layers: Number of model layers offloaded to a GPU backend
        stdin, stdout, stderr: subprocess stream targets
            (subprocess.DEVNULL, subprocess.PIPE, None to inherit, or a file)
    """
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    gpu_layers: int = DEFAULT_GPU_LAYERS
    stdin: Optional[int] = subprocess.DEVNULL
    stdout: Optional[int] = subprocess.DEVNULL
    stderr: Optional[int] = subprocess.DEVNULL


def build_arguments(model: Path, settings: Settings) -> list[str]:
    """Command-line flags passed to llama-server."""
    return [
        '--model', str(model),
        '--host', settings.host,
        '--port', str(settings.port),
        '--gpu-layers', str(settings.gpu_layers),
        FEATURE_FLAG_JINJA,
    ]


class ServerProcess:
    """
    A running llama-server.

    Example:
        async with await server.boot('model.gguf') as process:
            await process.wait_until_ready()
            print(process.url)
    """

    def __init__(
        self,
        host: str,
        port: int,
        process: asyncio.subprocess.Process,
        http: HTTPHandler,
        health_interval: float = DEFAULT_HEALTH_INTERVAL,
        owns_http: bool = False
    ):
        self.host = host
        self.port = port
        self.process = process
        self.http = http
        self.health_interval = health_interval
        self._owns_http = owns_http

    @property
    def url(self) -> str:
        return f"http://{self.host}:{self.port}"

    @property
    def pid(self) -> int:
        return self.process.pid

    async def wait_until_ready(self) -> None:
        """
        Poll the health endpoint until it answers with a 2xx status.

        Raises:
            ProcessExitedError: If the process exits first
        """
        health_url = f"{self.url}{HEALTH_PATH}"
        logger.info(f"{LOG_INPUT} Waiting for {health_url}")

        while True:
            if self.process.returncode is not None:
                logger.error(f"{LOG_OUTPUT} llama-server exited with {self.process.returncode}")
                raise ProcessExitedError(self.process.returncode)

            if await self.http.is_healthy(health_url):
                break

            await asyncio.sleep(self.health_interval)

        logger.info(f"{LOG_OUTPUT} llama-server ready at {self.url}")

    async def stop(self, grace_period: float = DEFAULT_STOP_GRACE_PERIOD) -> Optional[int]:
        """
        Terminate the process, killing it if it outlives the grace period.

        Returns:
            Exit status
        """
        if self.process.returncode is None:
            logger.info(f"{LOG_PROCESS} Stopping llama-server (pid {self.pid})")

            try:
                self.process.terminate()
                await asyncio.wait_for(self.process.wait(), timeout=grace_period)
            except ProcessLookupError:
                pass
            except asyncio.TimeoutError:
                logger.warning(f"llama-server ignored terminate, killing pid {self.pid}")
                self.process.kill()
                await self.process.wait()

        if self._owns_http:
            await self.http.close()

        return self.process.returncode

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.stop()


async def boot(
    executable: Path,
    model: Path,
    settings: Optional[Settings] = None,
    http: Optional[HTTPHandler] = None,
    config: Optional[ConfigLoader] = None
) -> ServerProcess:
    """
    Spawn llama-server with a model.

    Args:
        executable: Installed llama-server path
        model: Model file (GGUF)
        settings: Launch options (defaults if None)
        http: HTTP handler for health checks (one is created if None)
        config: Optional ConfigLoader instance

    Returns:
        ServerProcess

    Raises:
        IOFailure: If the process cannot be spawned
    """
    config = config if config else ConfigLoader()
    settings = settings if settings else Settings()
    arguments = build_arguments(Path(model), settings)

    logger.info(f"{LOG_INPUT} Booting {executable} {' '.join(arguments)}")

    try:
        process = await asyncio.create_subprocess_exec(
            str(executable),
            *arguments,
            stdin=settings.stdin,
            stdout=settings.stdout,
            stderr=settings.stderr
        )
    except OSError as e:
        logger.error(f"{LOG_OUTPUT} Cannot start {executable}: {e}")
        raise IOFailure(f"Cannot start {executable}: {e}") from e

    logger.info(f"{LOG_OUTPUT} llama-server started (pid {process.pid})")

    return ServerProcess(
        host=settings.host,
        port=settings.port,
        process=process,
        http=http if http else HTTPHandler(config),
        health_interval=config.get('health_interval', DEFAULT_HEALTH_INTERVAL),
        owns_http=http is None
    )


__all__ = ['Settings', 'ServerProcess', 'boot', 'build_arguments']
