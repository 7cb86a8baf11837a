# Path: llama_server/engine/extraction/__init__.py
"""
Extraction Module

Blocking extraction of release archives into component directories.
"""

from llama_server.engine.extraction.archive_handler import (
    ArchiveHandler,
    ZipExtractor,
    BaseExtractor,
)

__all__ = [
    'ArchiveHandler',
    'ZipExtractor',
    'BaseExtractor',
]
