# Path: llama_server/engine/build.py
"""
Build Identifier

A numbered llama-server release. Textual form is 'b' followed by the
release number (e.g. 'b6730'), matching the upstream release tags.
"""

import re
from dataclasses import dataclass

from llama_server.core.logger import get_logger
from llama_server.errors import BuildParseError, TransportFailure
from llama_server.constants import (
    BUILD_PREFIX,
    DEFAULT_API_URL,
    DEFAULT_REPOSITORY,
    DEFAULT_DOWNLOAD_URL_TEMPLATE,
    LATEST_RELEASE_PATH,
    RELEASE_TAG_FIELD,
    LOG_INPUT,
    LOG_OUTPUT,
)

logger = get_logger(__name__, 'engine')

_BUILD_PATTERN = re.compile(rf'{BUILD_PREFIX}(\d+)', re.ASCII)


@dataclass(frozen=True, order=True)
class Build:
    """
    Immutable, totally ordered release identifier.

    Example:
        build = Build.parse('b6730')
        assert str(build) == 'b6730'
        assert Build.locked(6730) == build
    """
    number: int

    def __post_init__(self):
        if isinstance(self.number, bool) or not isinstance(self.number, int) or self.number < 0:
            raise ValueError(f"Build number must be a non-negative integer: {self.number!r}")

    @classmethod
    def locked(cls, number: int) -> 'Build':
        """Pin a specific release number."""
        return cls(number)

    @classmethod
    def parse(cls, text: str) -> 'Build':
        """
        Parse the textual form of a build.

        Args:
            text: Build tag such as 'b6730'

        Returns:
            Build

        Raises:
            BuildParseError: If the prefix is missing or the remainder
                is not a non-negative integer
        """
        match = _BUILD_PATTERN.fullmatch(text) if isinstance(text, str) else None

        if match is None:
            raise BuildParseError(f"invalid build: {text!r}")

        return cls(int(match.group(1)))

    def url(self, base_url: str = None) -> str:
        """
        Release download URL for this build.

        Args:
            base_url: Release download root (defaults to the GitHub releases
                of the upstream repository)
        """
        if base_url is None:
            base_url = DEFAULT_DOWNLOAD_URL_TEMPLATE.format(repository=DEFAULT_REPOSITORY)

        return f"{base_url.rstrip('/')}/{self}"

    @classmethod
    async def latest(
        cls,
        http,
        api_url: str = DEFAULT_API_URL,
        repository: str = DEFAULT_REPOSITORY
    ) -> 'Build':
        """
        Query the latest published release.

        Args:
            http: HTTPHandler used for the request
            api_url: GitHub API root
            repository: 'owner/name' of the release repository

        Returns:
            Latest Build

        Raises:
            TransportFailure: On network errors, non-2xx responses or a
                response without a tag name
            BuildParseError: If the tag is not a build identifier
        """
        url = api_url.rstrip('/') + LATEST_RELEASE_PATH.format(repository=repository)
        logger.info(f"{LOG_INPUT} Querying latest release: {url}")

        release = await http.get_json(url)
        tag_name = release.get(RELEASE_TAG_FIELD) if isinstance(release, dict) else None

        if not isinstance(tag_name, str):
            raise TransportFailure(f"release metadata has no {RELEASE_TAG_FIELD}", url=url)

        build = cls.parse(tag_name)
        logger.info(f"{LOG_OUTPUT} Latest release: {build}")

        return build

    def __str__(self) -> str:
        return f"{BUILD_PREFIX}{self.number}"


__all__ = ['Build']
