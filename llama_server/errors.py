# Path: llama_server/errors.py
"""
Error Taxonomy

Two top-level failure kinds cover the engine: IOFailure (filesystem,
archive, process and worker errors) and TransportFailure (network errors
and non-2xx responses). Build tag parsing has its own error so a malformed
tag is never mistaken for a network problem.

Nothing in the package retries automatically. Callers decide whether to
re-invoke the idempotent install operation.
"""

from typing import Optional


class LlamaServerError(Exception):
    """Base class for every error raised by llama_server."""
    pass


class IOFailure(LlamaServerError):
    """Filesystem, archive, process or worker failure."""
    pass


class ExtractionError(IOFailure):
    """Archive is corrupt, malformed, unsafe or too large."""
    pass


class ProcessExitedError(IOFailure):
    """
    Server process exited before becoming healthy.

    Attributes:
        returncode: Exit status reported by the process
    """

    def __init__(self, returncode: Optional[int]):
        self.returncode = returncode
        super().__init__(f"llama-server exited unexpectedly: exit status {returncode}")


class TransportFailure(LlamaServerError):
    """
    HTTP or network failure.

    Attributes:
        url: Requested URL
        status: HTTP status code, if a response was received
    """

    def __init__(self, message: str, url: Optional[str] = None, status: Optional[int] = None):
        self.url = url
        self.status = status
        super().__init__(message)


class BuildParseError(LlamaServerError, ValueError):
    """Text is not a valid build identifier (e.g. 'b1234')."""
    pass


class UnsupportedPlatformError(LlamaServerError):
    """No release artifacts are published for the host platform."""
    pass


__all__ = [
    'LlamaServerError',
    'IOFailure',
    'ExtractionError',
    'ProcessExitedError',
    'TransportFailure',
    'BuildParseError',
    'UnsupportedPlatformError',
]
