# Path: llama_server/engine/artifact.py
"""
Artifacts

Downloadable units of a release: the server executable bundle or one
compute backend bundle. URLs are a pure function of the artifact, the
build and the platform tag.
"""

import platform
from dataclasses import dataclass
from typing import Optional

from llama_server.engine.backend import Backend
from llama_server.engine.build import Build
from llama_server.errors import UnsupportedPlatformError
from llama_server.constants import (
    SERVER_ARCHIVE_TEMPLATE,
    BACKEND_ARCHIVE_TEMPLATE,
)

# (platform.system(), normalized machine) -> release platform tag
PLATFORM_TAGS = {
    ('Linux', 'x86_64'): 'linux-x64',
    ('Darwin', 'x86_64'): 'macos-x64',
    ('Darwin', 'arm64'): 'macos-arm64',
    ('Windows', 'x86_64'): 'windows-x64',
}

_MACHINE_ALIASES = {
    'amd64': 'x86_64',
    'x64': 'x86_64',
    'aarch64': 'arm64',
}


def detect_platform(system: Optional[str] = None, machine: Optional[str] = None) -> Optional[str]:
    """
    Map an OS and CPU architecture to a release platform tag.

    Returns:
        Platform tag, or None if no artifacts are published for it
    """
    system = system or platform.system()
    machine = (machine or platform.machine()).lower()
    machine = _MACHINE_ALIASES.get(machine, machine)

    return PLATFORM_TAGS.get((system, machine))


# Resolved once for the running interpreter
PLATFORM: Optional[str] = detect_platform()


@dataclass(frozen=True)
class Artifact:
    """
    An installable unit.

    Example:
        Artifact.server().url(Build(6730), base_url)
        # -> {base_url}/b6730/llama-server-b6730-linux-x64.zip
        Artifact.for_backend(Backend.CUDA).url(Build(6730), base_url)
        # -> {base_url}/b6730/backend-cuda-b6730-linux-x64.zip
    """
    backend: Optional[Backend] = None

    @classmethod
    def server(cls) -> 'Artifact':
        return cls()

    @classmethod
    def for_backend(cls, backend: Backend) -> 'Artifact':
        return cls(backend)

    @property
    def is_server(self) -> bool:
        return self.backend is None

    def file_name(self, build: Build, platform_tag: Optional[str] = None) -> str:
        """Published archive name of this artifact."""
        platform_tag = platform_tag or PLATFORM

        if platform_tag is None:
            raise UnsupportedPlatformError(
                f"No llama-server releases for {platform.system()} {platform.machine()}"
            )

        if self.is_server:
            return SERVER_ARCHIVE_TEMPLATE.format(build=build, platform=platform_tag)

        return BACKEND_ARCHIVE_TEMPLATE.format(
            backend=self.backend.value,
            build=build,
            platform=platform_tag
        )

    def url(self, build: Build, base_url: Optional[str] = None, platform_tag: Optional[str] = None) -> str:
        """
        Fully qualified download URL.

        Args:
            build: Release to download
            base_url: Release download root (see Build.url)
            platform_tag: Override of the detected platform tag

        Raises:
            UnsupportedPlatformError: If no platform tag is available
        """
        return f"{build.url(base_url)}/{self.file_name(build, platform_tag)}"

    def __str__(self) -> str:
        if self.is_server:
            return 'server'
        return f"{self.backend.label} backend"


__all__ = ['Artifact', 'PLATFORM', 'PLATFORM_TAGS', 'detect_platform']
