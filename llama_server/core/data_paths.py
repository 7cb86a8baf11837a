# Path: llama_server/core/data_paths.py
"""
Data Paths

Resolves the cache root: the LLAMA_SERVER_CACHE_DIR override when set,
otherwise the platform's per-application cache directory.

Layout under the root is owned by engine/cache.py.
"""

import os
import platform
from pathlib import Path
from typing import Optional

from llama_server.core.config_loader import ConfigLoader
from llama_server.constants import CACHE_APPLICATION, CACHE_ORGANIZATION


def platform_cache_dir(system: Optional[str] = None) -> Path:
    """
    Get the platform-specific cache directory.

    Args:
        system: Platform name as reported by platform.system()
            (defaults to the host)

    Returns:
        Linux:   $XDG_CACHE_HOME/llama-server (~/.cache/llama-server)
        macOS:   ~/Library/Caches/hecrj.llama-server
        Windows: %LOCALAPPDATA%\\hecrj\\llama-server\\cache
    """
    system = system or platform.system()

    if system == 'Darwin':
        return Path.home() / 'Library' / 'Caches' / f"{CACHE_ORGANIZATION}.{CACHE_APPLICATION}"

    if system == 'Windows':
        local_app_data = os.environ.get('LOCALAPPDATA')
        base = Path(local_app_data) if local_app_data else Path.home() / 'AppData' / 'Local'
        return base / CACHE_ORGANIZATION / CACHE_APPLICATION / 'cache'

    xdg_cache = os.environ.get('XDG_CACHE_HOME')
    base = Path(xdg_cache) if xdg_cache else Path.home() / '.cache'
    return base / CACHE_APPLICATION


def resolve_cache_root(config: Optional[ConfigLoader] = None) -> Path:
    """
    Resolve the cache root directory.

    The directory is not created here; the cache creates build
    directories on demand.

    Args:
        config: Optional ConfigLoader instance

    Returns:
        Cache root path
    """
    config = config if config else ConfigLoader()
    configured = config.get('cache_dir')

    if configured:
        return Path(configured)

    return platform_cache_dir()


__all__ = ['platform_cache_dir', 'resolve_cache_root']
