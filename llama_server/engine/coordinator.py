# Path: llama_server/engine/coordinator.py
"""
Install Coordinator

Top-level workflow: resolve a (build, backend set) request into a runnable
installation.

Workflow:
1. Normalize the requested backends to the host platform
2. Download + extract the server, then each available backend, in order
3. Link all components into one instance directory
4. Return the Server with its normalized backends and executable

Repeating an install performs no network transfer for components that are
already cached and always converges to the same instance directory.
"""

import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional

from llama_server.core.logger import get_logger
from llama_server.core.config_loader import ConfigLoader
from llama_server.core.data_paths import resolve_cache_root
from llama_server.engine.artifact import Artifact
from llama_server.engine.backend import BackendSet
from llama_server.engine.build import Build
from llama_server.engine.cache import Cache
from llama_server.engine.launcher import ServerProcess, Settings, boot
from llama_server.engine.protocol_handlers import HTTPHandler
from llama_server.engine.result import Download
from llama_server.constants import LOG_INPUT, LOG_PROCESS, LOG_OUTPUT

logger = get_logger(__name__, 'engine')

DownloadCallback = Callable[[Download], None]


@dataclass(frozen=True)
class Server:
    """
    An installed llama-server.

    Attributes:
        build: Installed build
        backends: Backends actually installed (always normalized)
        executable: Path of the llama-server executable
    """
    build: Build
    backends: BackendSet
    executable: Path

    @classmethod
    async def download(
        cls,
        build: Build,
        backends: BackendSet,
        progress: Optional[DownloadCallback] = None,
        config: Optional[ConfigLoader] = None,
        http: Optional[HTTPHandler] = None
    ) -> 'Server':
        """Install a build with the given backends (see InstallCoordinator.install)."""
        async with InstallCoordinator(config=config, http=http) as coordinator:
            return await coordinator.install(build, backends, progress=progress)

    @classmethod
    async def delete(cls, build: Build, config: Optional[ConfigLoader] = None) -> None:
        """Delete the cached installation of a build."""
        await InstallCoordinator(config=config).delete(build)

    @classmethod
    async def installed(cls, config: Optional[ConfigLoader] = None) -> List[Build]:
        """List the builds installed in the cache, ascending."""
        return await InstallCoordinator(config=config).list_builds()

    async def boot(
        self,
        model: Path,
        settings: Optional[Settings] = None,
        http: Optional[HTTPHandler] = None,
        config: Optional[ConfigLoader] = None
    ) -> ServerProcess:
        """Start this server with a model."""
        return await boot(self.executable, model, settings=settings, http=http, config=config)

    # Alias kept last so the builtin stays usable in annotations above
    list = installed


class InstallCoordinator:
    """
    Coordinates install, listing and deletion of cached builds.

    Owns an HTTPHandler unless one is passed in.

    Example:
        async with InstallCoordinator() as coordinator:
            server = await coordinator.install(
                Build(6730),
                BackendSet.of(Backend.CUDA),
                progress=lambda d: print(d.artifact, d.progress.percent)
            )
    """

    def __init__(
        self,
        config: Optional[ConfigLoader] = None,
        http: Optional[HTTPHandler] = None,
        root: Optional[Path] = None,
        platform_tag: Optional[str] = None
    ):
        """
        Initialize install coordinator.

        Args:
            config: Optional ConfigLoader instance
            http: Optional shared HTTPHandler
            root: Cache root (resolved from config when None)
            platform_tag: Override of the detected release platform tag
        """
        self.config = config if config else ConfigLoader()
        self.root = Path(root) if root else resolve_cache_root(self.config)
        self.platform_tag = platform_tag

        self._owns_http = http is None
        self.http = http if http else HTTPHandler(self.config)

    def cache(self, build: Build) -> Cache:
        """Cache handle for a build."""
        return Cache(
            build,
            root=self.root,
            config=self.config,
            http=self.http,
            platform_tag=self.platform_tag
        )

    async def install(
        self,
        build: Build,
        backends: BackendSet,
        progress: Optional[DownloadCallback] = None
    ) -> Server:
        """
        Install a build with the given backends.

        Args:
            build: Build to install
            backends: Requested backends; unavailable ones are dropped
            progress: Optional callback receiving Download events tagged
                with the artifact being fetched

        Returns:
            Server with normalized backends

        Raises:
            TransportFailure: On network errors or non-2xx responses
            IOFailure: On filesystem or archive errors
        """
        normalized = backends.normalize()

        logger.info(
            f"{LOG_INPUT} Installing {build} "
            f"(requested: {backends}, available: {normalized})"
        )

        start_time = time.time()
        cache = self.cache(build)

        artifacts = [Artifact.server()]
        artifacts.extend(Artifact.for_backend(backend) for backend in normalized.available())

        components = []
        for artifact in artifacts:
            logger.info(f"{LOG_PROCESS} Ensuring {artifact} is cached")

            component = await cache.download(
                artifact,
                progress=self._tagged(artifact, progress)
            )
            components.append(component)

        executable = await cache.link(components)

        logger.info(
            f"{LOG_OUTPUT} Installed {build} in {time.time() - start_time:.1f}s: {executable}"
        )

        return Server(build=build, backends=normalized, executable=executable)

    @staticmethod
    def _tagged(artifact: Artifact, progress: Optional[DownloadCallback]):
        if progress is None:
            return None

        return lambda event: progress(Download(artifact=artifact, progress=event))

    async def list_builds(self) -> List[Build]:
        """Builds present in the cache, ascending."""
        builds = await Cache.list_builds(self.root, self.config)
        logger.info(f"{LOG_OUTPUT} Found {len(builds)} cached builds")
        return builds

    async def delete(self, build: Build) -> None:
        """Remove every cached file of a build."""
        await self.cache(build).delete()

    async def latest_build(self) -> Build:
        """Latest published build."""
        return await Build.latest(
            self.http,
            api_url=self.config.get('api_base_url'),
            repository=self.config.get('repository')
        )

    async def close(self):
        """Close coordinator and cleanup resources."""
        if self._owns_http:
            await self.http.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()


__all__ = ['InstallCoordinator', 'Server', 'DownloadCallback']
