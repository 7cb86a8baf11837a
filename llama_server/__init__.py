# Path: llama_server/__init__.py
"""
llama-server Cache

Download, cache and run llama.cpp's llama-server from Python.
Resolves a (build, backend set) request into a hard-linked local
installation, fetching only the components that are not cached yet.
"""

__version__ = '1.0.0'

from .errors import (
    LlamaServerError,
    IOFailure,
    ExtractionError,
    ProcessExitedError,
    TransportFailure,
    BuildParseError,
    UnsupportedPlatformError,
)
from .core.config_loader import ConfigLoader
from .engine import (
    Artifact,
    Backend,
    BackendSet,
    Build,
    Download,
    HTTPHandler,
    InstallCoordinator,
    Progress,
    Server,
    ServerProcess,
    Settings,
)

__all__ = [
    'Artifact',
    'Backend',
    'BackendSet',
    'Build',
    'ConfigLoader',
    'Download',
    'HTTPHandler',
    'InstallCoordinator',
    'Progress',
    'Server',
    'ServerProcess',
    'Settings',
    'LlamaServerError',
    'IOFailure',
    'ExtractionError',
    'ProcessExitedError',
    'TransportFailure',
    'BuildParseError',
    'UnsupportedPlatformError',
]
