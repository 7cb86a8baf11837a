# Path: llama_server/engine/cache.py
"""
Artifact Cache

Per-build on-disk cache of extracted release components and of the
hard-linked installation directories assembled from them.

Layout (shared with every other client of the same cache root):
    <root>/<build>/server/...            extracted server bundle
    <root>/<build>/backend-cuda/...      extracted backend bundle
    <root>/<build>/<instance>/...        hard-linked runnable install
    <root>/<build>/<component>.zip       transient archive
    <root>/<build>/.<component>-*        transient extraction staging

Architecture:
- Directory presence is the only existence signal; there is no manifest
- Existence checks gate every write, nothing is locked
- Extraction runs in a worker thread and is renamed into place when
  complete, so a half-extracted component never reads as a cache hit
- Linking skips destinations that already exist, so repeated and
  concurrent calls converge on the same tree
"""

import asyncio
import errno
import functools
import os
import shutil
import sys
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional

import aiofiles.os

from llama_server.core.logger import get_logger
from llama_server.core.config_loader import ConfigLoader
from llama_server.core.data_paths import resolve_cache_root
from llama_server.engine.artifact import Artifact
from llama_server.engine.backend import Backend
from llama_server.engine.build import Build
from llama_server.engine.extraction.archive_handler import ArchiveHandler
from llama_server.engine.protocol_handlers import HTTPHandler
from llama_server.engine.stream_handler import ProgressCallback
from llama_server.errors import BuildParseError, IOFailure
from llama_server.constants import (
    SERVER_DIRNAME,
    BACKEND_DIRNAME_PREFIX,
    INSTANCE_SEPARATOR,
    ARCHIVE_SUFFIX,
    STAGING_PREFIX,
    EXECUTABLE_NAME,
    EXECUTABLE_NAME_WINDOWS,
    LOG_INPUT,
    LOG_PROCESS,
    LOG_OUTPUT,
)

logger = get_logger(__name__, 'engine')

EXECUTABLE = EXECUTABLE_NAME_WINDOWS if sys.platform == 'win32' else EXECUTABLE_NAME

# os.link failures that mean "this filesystem cannot hard-link here"
LINK_UNSUPPORTED_ERRNOS = frozenset(
    code for code in (
        getattr(errno, name, None)
        for name in ('EXDEV', 'EPERM', 'ENOTSUP', 'EOPNOTSUPP', 'EMLINK', 'ENOSYS')
    )
    if code is not None
)


@functools.total_ordering
@dataclass(frozen=True)
class Component:
    """
    The cache's on-disk unit: the server bundle or one backend bundle.

    Ordering: Server first, then backends in canonical backend order.
    """
    backend: Optional[Backend] = None

    @classmethod
    def server(cls) -> 'Component':
        return cls()

    @classmethod
    def for_backend(cls, backend: Backend) -> 'Component':
        return cls(backend)

    @classmethod
    def from_artifact(cls, artifact: Artifact) -> 'Component':
        return cls(artifact.backend)

    @property
    def is_server(self) -> bool:
        return self.backend is None

    @property
    def directory(self) -> str:
        """Directory name under the build root ('server', 'backend-cuda', ...)."""
        if self.is_server:
            return SERVER_DIRNAME
        return self.backend.directory

    @property
    def archive_name(self) -> str:
        """Transient archive name under the build root ('server.zip', ...)."""
        return f"{self.directory}{ARCHIVE_SUFFIX}"

    @property
    def _sort_key(self) -> tuple:
        if self.is_server:
            return (0, 0)
        return (1, self.backend.order)

    def __lt__(self, other):
        if not isinstance(other, Component):
            return NotImplemented
        return self._sort_key < other._sort_key


class Instance:
    """
    A set of components that run together. Always contains the server.

    The directory name depends only on the set, never on request order:
        {Server}              -> 'server'
        {Server, CUDA}        -> 'server-cuda'
        {HIP, Server, CUDA}   -> 'server-cuda-hip'
    """

    def __init__(self, components: Iterable[Component]):
        unique = set(components)
        unique.add(Component.server())

        self.components = tuple(sorted(unique))

    @property
    def directory(self) -> str:
        return INSTANCE_SEPARATOR.join(
            component.directory.removeprefix(BACKEND_DIRNAME_PREFIX)
            for component in self.components
        )

    def __repr__(self) -> str:
        return f"Instance({self.directory!r})"


class Cache:
    """
    Cache of one build under <cache-root>/<build>.

    Cheap to construct; all state lives on disk and is rediscovered on
    every call.

    Example:
        async with HTTPHandler(config) as http:
            cache = Cache(Build(6730), config=config, http=http)
            server = await cache.download(Artifact.server(), progress=print)
            cuda = await cache.download(Artifact.for_backend(Backend.CUDA))
            executable = await cache.link([server, cuda])
    """

    def __init__(
        self,
        build: Build,
        root: Optional[Path] = None,
        config: Optional[ConfigLoader] = None,
        http: Optional[HTTPHandler] = None,
        platform_tag: Optional[str] = None
    ):
        """
        Initialize build cache.

        Args:
            build: Build this cache holds
            root: Cache root (resolved from config when None)
            config: Optional ConfigLoader instance
            http: HTTP handler used for downloads (a temporary one is
                created per download when None)
            platform_tag: Override of the detected release platform tag
        """
        self.config = config if config else ConfigLoader()
        self.build = build
        self.root = Path(root) if root else resolve_cache_root(self.config)
        self.path = self.root / str(build)
        self.http = http
        self.platform_tag = platform_tag
        self.base_url = self.config.get('download_base_url')

    # ------------------------------------------------------------------
    # Download + extract
    # ------------------------------------------------------------------

    async def download(
        self,
        artifact: Artifact,
        progress: Optional[ProgressCallback] = None
    ) -> Component:
        """
        Make sure an artifact is downloaded and extracted.

        Returns immediately, without network access or progress events,
        when the component directory already exists.

        Args:
            artifact: Artifact to install
            progress: Optional callback receiving Progress events

        Returns:
            Component now present in the cache

        Raises:
            TransportFailure: On network errors or non-2xx responses
            IOFailure: On filesystem errors (ExtractionError for bad archives)
        """
        component = Component.from_artifact(artifact)
        directory = self.path / component.directory

        try:
            await aiofiles.os.makedirs(self.path, exist_ok=True)

            if await aiofiles.os.path.isdir(directory):
                logger.info(f"{LOG_OUTPUT} Cache hit: {self.build}/{component.directory}")
                return component

            logger.info(f"{LOG_INPUT} Cache miss: {self.build}/{component.directory}")

            archive_path = self.path / component.archive_name
            url = artifact.url(self.build, self.base_url, self.platform_tag)

            await self._fetch(url, archive_path, progress)
            await asyncio.to_thread(self._extract, component, archive_path)

        except OSError as e:
            logger.error(f"{LOG_OUTPUT} Cache I/O failed for {component.directory}: {e}")
            raise IOFailure(f"Cache I/O failed for {self.build}/{component.directory}: {e}") from e

        logger.info(f"{LOG_OUTPUT} Cached: {directory}")

        return component

    async def _fetch(
        self,
        url: str,
        archive_path: Path,
        progress: Optional[ProgressCallback]
    ) -> None:
        if self.http is not None:
            await self.http.download(url, archive_path, progress=progress)
            return

        async with HTTPHandler(self.config) as http:
            await http.download(url, archive_path, progress=progress)

    def _extract(self, component: Component, archive_path: Path) -> None:
        """
        Extract an archive into the component directory. Blocking.

        The archive is unpacked into a staging directory next to the
        target and renamed into place. If another call renamed its own
        copy first, this copy is discarded.
        """
        directory = self.path / component.directory
        staging = Path(tempfile.mkdtemp(
            prefix=f"{STAGING_PREFIX}{component.directory}-",
            dir=self.path
        ))

        logger.info(f"{LOG_PROCESS} Extracting {archive_path.name} via {staging.name}")

        try:
            result = ArchiveHandler(self.config).extract(archive_path, staging, cleanup_archive=False)
            logger.debug(f"{LOG_OUTPUT} {result.to_dict()}")
            self._promote(staging, directory)
        finally:
            if staging.exists():
                shutil.rmtree(staging, ignore_errors=True)

        try:
            archive_path.unlink()
            logger.info(f"{LOG_PROCESS} Deleted archive: {archive_path.name}")
        except FileNotFoundError:
            pass

    def _promote(self, staging: Path, directory: Path) -> None:
        try:
            os.rename(staging, directory)
        except OSError:
            if not directory.is_dir():
                raise
            logger.info(
                f"{LOG_PROCESS} {directory.name} was extracted concurrently, "
                f"discarding {staging.name}"
            )

    # ------------------------------------------------------------------
    # Instance assembly
    # ------------------------------------------------------------------

    async def link(self, components: Iterable[Component]) -> Path:
        """
        Assemble the installation directory for a set of components.

        Every regular file of every component is hard-linked into the
        instance directory unless an entry with the same name is already
        there. Symlinks are recreated, never followed. Missing links are
        filled in on every call. The executable itself is not checked.

        Every component must already be extracted. A server-only instance
        shares its directory with the server component, so creating it
        early would turn a missing component into a false cache hit.

        Args:
            components: Components to combine (the server is implied)

        Returns:
            Path of the llama-server executable inside the instance

        Raises:
            IOFailure: If a component is missing or the filesystem fails
        """
        instance = Instance(components)
        path = self.path / instance.directory

        logger.info(f"{LOG_INPUT} Linking {instance.directory} for {self.build}")

        try:
            missing = [
                component.directory for component in instance.components
                if not await aiofiles.os.path.isdir(self.path / component.directory)
            ]
        except OSError as e:
            raise IOFailure(f"Cannot inspect {self.path}: {e}") from e

        if missing:
            logger.error(f"{LOG_OUTPUT} Components not extracted: {', '.join(missing)}")
            raise IOFailure(
                f"Cannot assemble {self.build}/{instance.directory}: "
                f"components not extracted: {', '.join(missing)}"
            )

        try:
            if not await aiofiles.os.path.isdir(path):
                try:
                    await aiofiles.os.mkdir(path)
                except FileExistsError:
                    logger.debug(f"{LOG_PROCESS} {path.name} created concurrently")

            for component in instance.components:
                await self._link_tree(self.path / component.directory, path)

        except OSError as e:
            logger.error(f"{LOG_OUTPUT} Linking {instance.directory} failed: {e}")
            raise IOFailure(f"Cannot assemble {self.build}/{instance.directory}: {e}") from e

        executable = path / EXECUTABLE
        logger.info(f"{LOG_OUTPUT} Instance ready: {executable}")

        return executable

    async def _link_tree(self, source: Path, destination: Path) -> None:
        for name in sorted(await aiofiles.os.listdir(source)):
            source_path = source / name
            destination_path = destination / name

            if await aiofiles.os.path.islink(source_path):
                if not await self._occupied(destination_path):
                    await self._relink(source_path, destination_path)
                continue

            if await aiofiles.os.path.isdir(source_path):
                if not await aiofiles.os.path.isdir(destination_path):
                    try:
                        await aiofiles.os.mkdir(destination_path)
                    except FileExistsError:
                        pass
                await self._link_tree(source_path, destination_path)
                continue

            if not await aiofiles.os.path.isfile(source_path):
                continue

            if await self._occupied(destination_path):
                continue

            await self._materialize(source_path, destination_path)

    @staticmethod
    async def _occupied(path: Path) -> bool:
        # islink catches dangling symlinks, which exists() reports as absent
        return await aiofiles.os.path.exists(path) or await aiofiles.os.path.islink(path)

    async def _relink(self, source: Path, destination: Path) -> None:
        target = await aiofiles.os.readlink(source)
        try:
            await aiofiles.os.symlink(target, destination)
        except FileExistsError:
            logger.debug(f"{LOG_PROCESS} {destination.name} linked concurrently")

    async def _materialize(self, source: Path, destination: Path) -> None:
        try:
            await aiofiles.os.link(source, destination)
        except FileExistsError:
            logger.debug(f"{LOG_PROCESS} {destination.name} linked concurrently")
        except OSError as e:
            if e.errno not in LINK_UNSUPPORTED_ERRNOS:
                raise
            logger.debug(f"{LOG_PROCESS} Hard links unavailable ({e}), copying {source.name}")
            await asyncio.to_thread(_copy_if_absent, source, destination)

    # ------------------------------------------------------------------
    # Listing and deletion
    # ------------------------------------------------------------------

    def has(self, component: Component) -> bool:
        """Whether a component is extracted in this build."""
        return (self.path / component.directory).is_dir()

    @classmethod
    async def list_builds(
        cls,
        root: Optional[Path] = None,
        config: Optional[ConfigLoader] = None
    ) -> List[Build]:
        """
        Builds present under the cache root, ascending.

        Entries that are not directories or whose names are not build
        identifiers are skipped.

        Raises:
            IOFailure: If the cache root cannot be read
        """
        root = Path(root) if root else resolve_cache_root(config)

        try:
            names = await aiofiles.os.listdir(root)
        except FileNotFoundError:
            return []
        except OSError as e:
            raise IOFailure(f"Cannot list cache root {root}: {e}") from e

        builds = []
        for name in names:
            try:
                build = Build.parse(name)
            except BuildParseError:
                logger.debug(f"{LOG_PROCESS} Skipping non-build entry: {name}")
                continue

            if await aiofiles.os.path.isdir(root / name):
                builds.append(build)

        return sorted(builds)

    async def delete(self) -> None:
        """
        Remove the whole build directory. No-op if it does not exist.

        Raises:
            IOFailure: If the tree cannot be removed
        """
        logger.info(f"{LOG_INPUT} Deleting cached build: {self.path}")

        try:
            await asyncio.to_thread(shutil.rmtree, self.path)
        except FileNotFoundError:
            logger.info(f"{LOG_OUTPUT} Nothing cached for {self.build}")
            return
        except OSError as e:
            raise IOFailure(f"Cannot delete {self.path}: {e}") from e

        logger.info(f"{LOG_OUTPUT} Deleted: {self.build}")

    # Alias kept last so the builtin stays usable in annotations above
    list = list_builds


def _copy_if_absent(source: Path, destination: Path) -> None:
    """
    Copy a file unless the destination exists. Blocking.

    A partial copy is removed before the error propagates, so the next
    link call sees the entry as missing and copies it again.
    """
    try:
        dst = open(destination, 'xb')
    except FileExistsError:
        return

    try:
        with dst, open(source, 'rb') as src:
            shutil.copyfileobj(src, dst)
        shutil.copystat(source, destination)
    except BaseException:
        destination.unlink(missing_ok=True)
        raise


__all__ = ['Cache', 'Component', 'Instance', 'EXECUTABLE']
