# Path: llama_server/core/__init__.py
"""
Core Module

Core utilities including configuration, logging, and cache root
resolution.
"""

from .config_loader import ConfigLoader
from .data_paths import platform_cache_dir, resolve_cache_root
from .logger import get_logger, configure_logging

__all__ = [
    'ConfigLoader',
    'platform_cache_dir',
    'resolve_cache_root',
    'get_logger',
    'configure_logging',
]
