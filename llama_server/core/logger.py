# Path: llama_server/core/logger.py
"""
llama-server Logger

Centralized logging configuration for the cache engine.

Architecture:
- Component-based logging (core, engine, extraction, cli)
- File and console output
- Configurable log levels
- IPO (Input-Process-Output) structured logging
"""

import logging
from typing import Optional

from llama_server.core.config_loader import ConfigLoader
from llama_server.constants import (
    LOG_FORMAT,
    LOG_DATE_FORMAT,
    LOG_FILE_ACTIVITY,
    LOG_FILE_DOWNLOADS,
    LOG_FILE_ERRORS,
    LOGGER_ROOT,
    LOGGER_CORE,
    LOGGER_ENGINE,
    LOGGER_CLI,
    LOGGER_EXTRACTION,
)


class ServerLogger:
    """
    Centralized logger for the llama_server package.

    Provides component-specific loggers with unified configuration.

    Example:
        logger = get_logger(__name__, 'engine')
        logger.info("[INPUT] Installing b6730 with backends: cuda")
        logger.info("[PROCESS] Downloading server archive")
        logger.info("[OUTPUT] Installed: /home/user/.cache/llama-server/b6730/server-cuda")
    """

    COMPONENT_LOGGERS = {
        'core': LOGGER_CORE,
        'engine': LOGGER_ENGINE,
        'cli': LOGGER_CLI,
        'extraction': LOGGER_EXTRACTION,
    }

    def __init__(self, config: Optional[ConfigLoader] = None):
        """
        Initialize logger.

        Args:
            config: Optional ConfigLoader instance
        """
        self.config = config
        self._configured = False

    def configure(self) -> None:
        """Configure logging system for the package."""
        if self._configured:
            return

        if self.config is None:
            self.config = ConfigLoader()

        log_dir = self.config.get('log_dir')
        log_level = self.config.get('log_level', 'INFO')
        console_output = self.config.get('log_console', False)
        level = getattr(logging, log_level.upper(), logging.INFO)

        logger = logging.getLogger(LOGGER_ROOT)
        logger.setLevel(level)

        # Clear handlers from a previous configuration
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()
        engine_logger = logging.getLogger(LOGGER_ENGINE)
        for handler in list(engine_logger.handlers):
            engine_logger.removeHandler(handler)
            handler.close()

        formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

        if log_dir:
            log_dir.mkdir(parents=True, exist_ok=True)

            file_handler = logging.FileHandler(log_dir / LOG_FILE_ACTIVITY)
            file_handler.setLevel(level)
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)

            # Download progress is logged at DEBUG
            download_handler = logging.FileHandler(log_dir / LOG_FILE_DOWNLOADS)
            download_handler.setLevel(logging.DEBUG)
            download_handler.setFormatter(formatter)
            engine_logger.addHandler(download_handler)

            error_handler = logging.FileHandler(log_dir / LOG_FILE_ERRORS)
            error_handler.setLevel(logging.ERROR)
            error_handler.setFormatter(formatter)
            logger.addHandler(error_handler)

        if console_output:
            console_handler = logging.StreamHandler()
            console_handler.setLevel(level)
            console_handler.setFormatter(formatter)
            logger.addHandler(console_handler)

        self._configured = True

    def get_logger(self, name: str, component: str = 'core') -> logging.Logger:
        """
        Get logger for specific component.

        Args:
            name: Module name (typically __name__)
            component: Component type ('core', 'engine', 'extraction', 'cli')

        Returns:
            Configured logger instance
        """
        if not self._configured:
            self.configure()

        prefix = self.COMPONENT_LOGGERS.get(component, LOGGER_ROOT)
        # Module basename under the component prefix
        module = name.rsplit('.', 1)[-1]
        return logging.getLogger(f"{prefix}.{module}")


# Global logger instance
_server_logger = ServerLogger()


def get_logger(name: str, component: str = 'core') -> logging.Logger:
    """
    Get logger for a package component.

    Args:
        name: Module name (typically __name__)
        component: Component type ('core', 'engine', 'extraction', 'cli')

    Returns:
        Configured logger instance

    Example:
        from llama_server.core.logger import get_logger

        logger = get_logger(__name__, 'engine')
        logger.info("[INPUT] Downloading server for b6730")
    """
    return _server_logger.get_logger(name, component)


def configure_logging(config: Optional[ConfigLoader] = None) -> None:
    """
    Configure (or reconfigure) the logging system.

    Args:
        config: Optional ConfigLoader instance

    Example:
        from llama_server.core.logger import configure_logging

        configure_logging(ConfigLoader(overrides={'log_level': 'DEBUG'}))
    """
    global _server_logger

    _server_logger = ServerLogger(config)
    _server_logger.configure()


__all__ = ['get_logger', 'configure_logging', 'ServerLogger']
