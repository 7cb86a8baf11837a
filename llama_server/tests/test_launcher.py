# Path: llama_server/tests/test_launcher.py
"""Launching llama-server and waiting for its health endpoint."""

import asyncio
import socket
import sys
from pathlib import Path

import pytest

from llama_server.engine.launcher import ServerProcess, Settings, boot, build_arguments
from llama_server.errors import IOFailure, ProcessExitedError

pytestmark = pytest.mark.asyncio


class FakeProcess:
    """Stands in for asyncio.subprocess.Process."""

    def __init__(self, exit_after: int = None, returncode: int = 1):
        self.pid = 4242
        self._exit_after = exit_after
        self._exit_code = returncode
        self._polls = 0

    @property
    def returncode(self):
        if self._exit_after is None:
            return None
        self._polls += 1
        return self._exit_code if self._polls > self._exit_after else None

    def terminate(self):
        self._exit_after = 0

    def kill(self):
        self._exit_after = 0

    async def wait(self):
        return self._exit_code


def unused_port() -> int:
    with socket.socket() as sock:
        sock.bind(('127.0.0.1', 0))
        return sock.getsockname()[1]


def server_process(release_server, http, process) -> ServerProcess:
    port = int(release_server.url.rsplit(':', 1)[1])
    return ServerProcess('127.0.0.1', port, process, http, health_interval=0.01)


async def test_arguments():
    settings = Settings(host='0.0.0.0', port=9000, gpu_layers=12)

    assert build_arguments(Path('model.gguf'), settings) == [
        '--model', 'model.gguf',
        '--host', '0.0.0.0',
        '--port', '9000',
        '--gpu-layers', '12',
        '--jinja',
    ]


async def test_default_settings():
    settings = Settings()

    assert (settings.host, settings.port, settings.gpu_layers) == ('127.0.0.1', 8080, 80)


async def test_ready_when_healthy(release_server, http):
    process = server_process(release_server, http, FakeProcess())

    await asyncio.wait_for(process.wait_until_ready(), timeout=5)

    assert process.url == release_server.url


async def test_exit_before_healthy(release_server, http):
    release_server.health_status = 503
    process = server_process(release_server, http, FakeProcess(exit_after=3, returncode=7))

    with pytest.raises(ProcessExitedError) as excinfo:
        await asyncio.wait_for(process.wait_until_ready(), timeout=5)

    assert excinfo.value.returncode == 7


async def test_boot_missing_executable(tmp_path, http):
    with pytest.raises(IOFailure):
        await boot(tmp_path / 'llama-server', tmp_path / 'model.gguf', http=http)


async def test_boot_process_that_exits(tmp_path, http, config):
    # The interpreter rejects llama-server's flags and exits immediately
    settings = Settings(port=unused_port())
    process = await boot(Path(sys.executable), tmp_path / 'model.gguf', settings, http=http, config=config)

    async with process:
        with pytest.raises(ProcessExitedError):
            await asyncio.wait_for(process.wait_until_ready(), timeout=30)


async def test_stop_terminates_running_process(http):
    child = await asyncio.create_subprocess_exec(
        sys.executable, '-c', 'import time; time.sleep(60)'
    )
    process = ServerProcess('127.0.0.1', unused_port(), child, http)

    returncode = await process.stop(grace_period=10)

    assert returncode is not None
    assert child.returncode is not None
