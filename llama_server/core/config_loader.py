# Path: llama_server/core/config_loader.py
"""
Configuration Loader

Centralized configuration management for the llama-server cache.
Loads and validates environment variables with type safety and defaults.

Architecture:
- Explicitly constructed and passed down (no module-level singleton)
- Optional .env file via python-dotenv
- Type-safe access with validation
- Overrides for embedding applications and tests
"""

import os
from typing import Any, Optional
from pathlib import Path
from dotenv import find_dotenv, load_dotenv

from llama_server import __version__
from llama_server.constants import (
    ENV_CACHE_DIR,
    ENV_REPOSITORY,
    ENV_DOWNLOAD_URL,
    ENV_API_URL,
    ENV_USER_AGENT,
    ENV_CHUNK_SIZE,
    ENV_CONNECT_TIMEOUT,
    ENV_MAX_ARCHIVE_SIZE,
    ENV_HEALTH_INTERVAL,
    ENV_LOG_DIR,
    ENV_LOG_LEVEL,
    ENV_LOG_CONSOLE,
    ENV_LOG_PROGRESS_INTERVAL,
    DEFAULT_REPOSITORY,
    DEFAULT_DOWNLOAD_URL_TEMPLATE,
    DEFAULT_API_URL,
    DEFAULT_CHUNK_SIZE,
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_MAX_ARCHIVE_SIZE,
    DEFAULT_HEALTH_INTERVAL,
    DEFAULT_LOG_PROGRESS_INTERVAL,
    CACHE_APPLICATION,
)


class ConfigLoader:
    """
    Configuration loader.

    Loads configuration from environment variables with validation,
    type conversion, and sensible defaults. Values already present in the
    environment win over the .env file; overrides win over both.

    Example:
        config = ConfigLoader()
        cache_dir = config.get('cache_dir')
        chunk_size = config.get('chunk_size')

        # Tests and embedding applications
        config = ConfigLoader(overrides={'cache_dir': Path('/tmp/cache')})
    """

    def __init__(
        self,
        env_file: Optional[Path] = None,
        overrides: Optional[dict[str, Any]] = None
    ):
        """
        Initialize configuration loader.

        Args:
            env_file: Optional path to .env file. If None, the nearest .env
                from the working directory is used when one exists.
            overrides: Optional values replacing the loaded configuration
        """
        self._load_env(env_file)
        self._config = self._load_configuration()

        if overrides:
            self._config.update(overrides)

    def _load_env(self, env_file: Optional[Path] = None) -> None:
        if env_file:
            load_dotenv(dotenv_path=env_file)
            return

        discovered = find_dotenv(usecwd=True)
        if discovered:
            load_dotenv(dotenv_path=discovered)

    def _load_configuration(self) -> dict[str, Any]:
        """
        Load and validate all configuration from environment.

        Returns:
            Dictionary of validated configuration values
        """
        repository = self._get_env(ENV_REPOSITORY, DEFAULT_REPOSITORY)

        config = {
            # ================================================================
            # DIRECTORY PATHS
            # ================================================================
            'cache_dir': self._get_path(ENV_CACHE_DIR),
            'log_dir': self._get_path(ENV_LOG_DIR),

            # ================================================================
            # RELEASE SOURCE
            # ================================================================
            'repository': repository,
            'download_base_url': self._get_env(
                ENV_DOWNLOAD_URL,
                DEFAULT_DOWNLOAD_URL_TEMPLATE.format(repository=repository)
            ).rstrip('/'),
            'api_base_url': self._get_env(ENV_API_URL, DEFAULT_API_URL).rstrip('/'),

            # ================================================================
            # DOWNLOAD CONFIGURATION
            # ================================================================
            'user_agent': self._get_env(ENV_USER_AGENT, f"{CACHE_APPLICATION}-cache/{__version__}"),
            'chunk_size': self._get_int(ENV_CHUNK_SIZE, DEFAULT_CHUNK_SIZE),
            'connect_timeout': self._get_int(ENV_CONNECT_TIMEOUT, DEFAULT_CONNECT_TIMEOUT),

            # ================================================================
            # EXTRACTION CONFIGURATION
            # ================================================================
            'max_archive_size': self._get_int(ENV_MAX_ARCHIVE_SIZE, DEFAULT_MAX_ARCHIVE_SIZE),

            # ================================================================
            # LAUNCH CONFIGURATION
            # ================================================================
            'health_interval': self._get_float(ENV_HEALTH_INTERVAL, DEFAULT_HEALTH_INTERVAL),

            # ================================================================
            # LOGGING CONFIGURATION
            # ================================================================
            'log_level': self._get_env(ENV_LOG_LEVEL, 'INFO'),
            'log_console': self._get_bool(ENV_LOG_CONSOLE, False),
            'log_progress_interval': self._get_int(
                ENV_LOG_PROGRESS_INTERVAL,
                DEFAULT_LOG_PROGRESS_INTERVAL
            ),
        }

        return config

    def _get_env(self, key: str, default: Optional[str] = None, required: bool = False) -> Optional[str]:
        """
        Get string environment variable.

        Args:
            key: Environment variable name
            default: Default value if not found
            required: If True, raises ValueError when missing

        Returns:
            Environment variable value or default

        Raises:
            ValueError: If required and not found
        """
        value = os.getenv(key)

        if value is None or not value.strip():
            if required:
                raise ValueError(f"Required environment variable not set: {key}")
            return default

        return value.strip()

    def _get_bool(self, key: str, default: bool) -> bool:
        value = os.getenv(key)
        if value is None:
            return default

        return value.strip().lower() in ('true', '1', 'yes', 'on')

    def _get_int(self, key: str, default: int) -> int:
        value = os.getenv(key)
        if value is None:
            return default

        try:
            return int(value.strip())
        except ValueError:
            return default

    def _get_float(self, key: str, default: float) -> float:
        value = os.getenv(key)
        if value is None:
            return default

        try:
            return float(value.strip())
        except ValueError:
            return default

    def _get_path(self, key: str, required: bool = False) -> Optional[Path]:
        """
        Get path environment variable.

        Args:
            key: Environment variable name
            required: If True, raises ValueError when missing

        Returns:
            Path object or None

        Raises:
            ValueError: If required and not found
        """
        value = os.getenv(key)

        if value is None or not value.strip():
            if required:
                raise ValueError(f"Required environment variable not set: {key}")
            return None

        return Path(value.strip()).expanduser()

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get configuration value.

        Args:
            key: Configuration key
            default: Default value if not found

        Returns:
            Configuration value or default
        """
        value = self._config.get(key)
        return default if value is None else value

    def __getitem__(self, key: str) -> Any:
        """Dictionary-style access to configuration."""
        return self._config[key]

    def __contains__(self, key: str) -> bool:
        """Check if configuration key exists."""
        return key in self._config

    def keys(self):
        """Get all configuration keys."""
        return self._config.keys()

    def items(self):
        """Get all configuration key-value pairs."""
        return self._config.items()


__all__ = ['ConfigLoader']
