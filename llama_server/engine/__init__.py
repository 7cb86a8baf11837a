# Path: llama_server/engine/__init__.py
"""
Engine Module

Artifact addressing, streaming downloads, the build cache and the
install workflow.

Architecture:
- InstallCoordinator / Server: top-level install, list, delete, boot
- Cache: per-build download, extraction and instance linking
- HTTPHandler + StreamHandler: streaming downloads with progress
- Build, Backend, BackendSet, Artifact: pure addressing
"""

from llama_server.engine.build import Build
from llama_server.engine.backend import Backend, BackendSet
from llama_server.engine.artifact import Artifact, PLATFORM
from llama_server.engine.result import (
    Progress,
    Download,
    DownloadResult,
    ExtractionResult,
)
from llama_server.engine.stream_handler import StreamHandler
from llama_server.engine.protocol_handlers import HTTPHandler
from llama_server.engine.cache import Cache, Component, Instance
from llama_server.engine.launcher import Settings, ServerProcess
from llama_server.engine.coordinator import InstallCoordinator, Server

__all__ = [
    # Main workflow
    'InstallCoordinator',
    'Server',
    'Cache',
    'Component',
    'Instance',

    # Launching
    'Settings',
    'ServerProcess',

    # Addressing
    'Build',
    'Backend',
    'BackendSet',
    'Artifact',
    'PLATFORM',

    # Transport
    'HTTPHandler',
    'StreamHandler',

    # Events and results
    'Progress',
    'Download',
    'DownloadResult',
    'ExtractionResult',
]
