# Path: llama_server/tests/conftest.py
"""
Shared fixtures: an in-process release server publishing in-memory ZIP
archives, a ConfigLoader pointing at it, and a cache rooted in tmp_path.
"""

import io
import stat
import zipfile
from collections import Counter
from typing import Optional

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from llama_server.core.config_loader import ConfigLoader
from llama_server.engine import backend as backend_module
from llama_server.engine.artifact import Artifact
from llama_server.engine.backend import Backend
from llama_server.engine.build import Build
from llama_server.engine.coordinator import InstallCoordinator
from llama_server.engine.protocol_handlers import HTTPHandler

PLATFORM_TAG = 'linux-x64'

SERVER_FILES = {
    'llama-server': (b'#!/bin/sh\necho llama-server\n', 0o755),
    'libggml-base.so': (b'server ggml-base', 0o644),
    'licenses/LICENSE': (b'MIT', 0o644),
}

BACKEND_FILES = {
    Backend.CUDA: {
        'libggml-cuda.so': (b'cuda kernels', 0o644),
        'libggml-base.so': (b'cuda ggml-base', 0o644),
    },
    Backend.HIP: {
        'libggml-hip.so': (b'hip kernels', 0o644),
    },
}


def make_zip(files: dict) -> bytes:
    """
    Build a ZIP archive in memory from {name: (content, mode)}.

    Modes without a file type are regular files; pass stat.S_IFLNK | 0o777
    with the link target as content for a symlink.
    """
    buffer = io.BytesIO()

    with zipfile.ZipFile(buffer, 'w', zipfile.ZIP_DEFLATED) as zf:
        for name, (content, mode) in files.items():
            info = zipfile.ZipInfo(name)
            if not stat.S_IFMT(mode):
                mode |= stat.S_IFREG
            info.external_attr = mode << 16
            info.compress_type = zipfile.ZIP_DEFLATED
            zf.writestr(info, content)

    return buffer.getvalue()


class ReleaseServer:
    """
    Fake GitHub releases.

    Serves:
        /download/{build}/{archive}                 published archives
        /api/repos/{owner}/{repo}/releases/latest   {"tag_name": latest}
        /health                                     health_status
    """

    def __init__(self):
        self.archives: dict[str, bytes] = {}
        self.requests: Counter = Counter()
        self.latest: Optional[str] = 'b6730'
        self.chunked = False
        self.health_status = 200
        self.url = ''

    def application(self) -> web.Application:
        app = web.Application()
        app.router.add_get('/download/{build}/{archive}', self.handle_download)
        app.router.add_get('/api/repos/{owner}/{repo}/releases/latest', self.handle_latest)
        app.router.add_get('/health', self.handle_health)
        return app

    def publish(self, build: Build, artifact: Artifact, payload: bytes) -> str:
        name = artifact.file_name(build, PLATFORM_TAG)
        self.archives[f"{build}/{name}"] = payload
        return name

    def publish_release(self, build: Build) -> None:
        """Publish the server and every backend of a build."""
        self.publish(build, Artifact.server(), make_zip(SERVER_FILES))
        for backend, files in BACKEND_FILES.items():
            self.publish(build, Artifact.for_backend(backend), make_zip(files))

    def archive(self, build: Build, artifact: Artifact) -> bytes:
        return self.archives[f"{build}/{artifact.file_name(build, PLATFORM_TAG)}"]

    def downloads(self, build: Optional[Build] = None) -> int:
        """Number of archive requests received (for one build when given)."""
        prefix = f"{build}/" if build else ''
        return sum(
            count for path, count in self.requests.items()
            if path.startswith(prefix)
        )

    async def handle_download(self, request: web.Request) -> web.StreamResponse:
        path = f"{request.match_info['build']}/{request.match_info['archive']}"
        self.requests[path] += 1

        payload = self.archives.get(path)
        if payload is None:
            raise web.HTTPNotFound()

        if not self.chunked:
            return web.Response(body=payload, content_type='application/zip')

        response = web.StreamResponse()
        response.content_type = 'application/zip'
        response.enable_chunked_encoding()
        await response.prepare(request)

        for offset in range(0, len(payload), 512):
            await response.write(payload[offset:offset + 512])

        await response.write_eof()
        return response

    async def handle_latest(self, request: web.Request) -> web.Response:
        if self.latest is None:
            return web.json_response({'name': 'untagged'})
        return web.json_response({'tag_name': self.latest})

    async def handle_health(self, request: web.Request) -> web.Response:
        return web.json_response({'status': 'ok'}, status=self.health_status)


@pytest.fixture(autouse=True)
def linux_host(monkeypatch):
    """Pretend the host runs Linux so backend filtering is deterministic."""
    monkeypatch.setattr(backend_module, 'HOST_SYSTEM', 'Linux')


@pytest_asyncio.fixture()
async def release_server():
    releases = ReleaseServer()
    server = TestServer(releases.application())
    await server.start_server()

    releases.url = f"http://{server.host}:{server.port}"

    yield releases

    await server.close()


@pytest.fixture()
def cache_root(tmp_path):
    return tmp_path / 'cache'


@pytest.fixture()
def config(cache_root, release_server) -> ConfigLoader:
    return ConfigLoader(overrides={
        'cache_dir': cache_root,
        'repository': 'hecrj/llama-server',
        'download_base_url': f"{release_server.url}/download",
        'api_base_url': f"{release_server.url}/api",
        'chunk_size': 1024,
        'health_interval': 0.01,
    })


@pytest_asyncio.fixture()
async def http(config):
    async with HTTPHandler(config) as handler:
        yield handler


@pytest_asyncio.fixture()
async def coordinator(config, http):
    async with InstallCoordinator(config=config, http=http, platform_tag=PLATFORM_TAG) as instance:
        yield instance
