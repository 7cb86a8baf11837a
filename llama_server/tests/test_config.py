# Path: llama_server/tests/test_config.py
"""Configuration loading and cache root resolution."""

import logging
from pathlib import Path

import pytest

from llama_server.core.config_loader import ConfigLoader
from llama_server.core.data_paths import platform_cache_dir, resolve_cache_root
from llama_server.core.logger import configure_logging, get_logger
from llama_server.constants import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_HEALTH_INTERVAL,
)

ENV_KEYS = [
    'LLAMA_SERVER_CACHE_DIR',
    'LLAMA_SERVER_REPOSITORY',
    'LLAMA_SERVER_DOWNLOAD_URL',
    'LLAMA_SERVER_API_URL',
    'LLAMA_SERVER_CHUNK_SIZE',
    'LLAMA_SERVER_CONNECT_TIMEOUT',
    'LLAMA_SERVER_HEALTH_INTERVAL',
    'LLAMA_SERVER_LOG_CONSOLE',
]


@pytest.fixture()
def clean_env(monkeypatch, tmp_path):
    for key in ENV_KEYS:
        # setenv first so values loaded from .env files are undone afterwards
        monkeypatch.setenv(key, '')
        monkeypatch.delenv(key)
    # Keep a developer's .env out of the picture
    monkeypatch.chdir(tmp_path)


def test_defaults(clean_env):
    config = ConfigLoader()

    assert config.get('cache_dir') is None
    assert config.get('repository') == 'hecrj/llama-server'
    assert config.get('download_base_url') == 'https://github.com/hecrj/llama-server/releases/download'
    assert config.get('api_base_url') == 'https://api.github.com'
    assert config.get('chunk_size') == DEFAULT_CHUNK_SIZE
    assert config.get('connect_timeout') == DEFAULT_CONNECT_TIMEOUT
    assert config.get('health_interval') == DEFAULT_HEALTH_INTERVAL
    assert config.get('log_console') is False
    assert config.get('user_agent').startswith('llama-server-cache/')


def test_environment_variables(clean_env, monkeypatch, tmp_path):
    monkeypatch.setenv('LLAMA_SERVER_CACHE_DIR', str(tmp_path / 'cache'))
    monkeypatch.setenv('LLAMA_SERVER_REPOSITORY', 'someone/fork')
    monkeypatch.setenv('LLAMA_SERVER_CHUNK_SIZE', '4096')
    monkeypatch.setenv('LLAMA_SERVER_HEALTH_INTERVAL', '0.5')
    monkeypatch.setenv('LLAMA_SERVER_LOG_CONSOLE', 'yes')

    config = ConfigLoader()

    assert config.get('cache_dir') == tmp_path / 'cache'
    assert config.get('download_base_url') == 'https://github.com/someone/fork/releases/download'
    assert config.get('chunk_size') == 4096
    assert config.get('health_interval') == 0.5
    assert config.get('log_console') is True


def test_invalid_numbers_fall_back_to_defaults(clean_env, monkeypatch):
    monkeypatch.setenv('LLAMA_SERVER_CHUNK_SIZE', 'lots')
    monkeypatch.setenv('LLAMA_SERVER_CONNECT_TIMEOUT', '')

    config = ConfigLoader()

    assert config.get('chunk_size') == DEFAULT_CHUNK_SIZE
    assert config.get('connect_timeout') == DEFAULT_CONNECT_TIMEOUT


def test_env_file(clean_env, tmp_path):
    env_file = tmp_path / 'custom.env'
    env_file.write_text('LLAMA_SERVER_DOWNLOAD_URL=http://mirror.local/releases/\n')

    config = ConfigLoader(env_file=env_file)

    assert config.get('download_base_url') == 'http://mirror.local/releases'


def test_overrides_win(clean_env, monkeypatch, tmp_path):
    monkeypatch.setenv('LLAMA_SERVER_CHUNK_SIZE', '4096')

    config = ConfigLoader(overrides={'chunk_size': 16, 'cache_dir': tmp_path})

    assert config.get('chunk_size') == 16
    assert config['cache_dir'] == tmp_path
    assert 'chunk_size' in config


def test_resolve_cache_root_prefers_configuration(clean_env, tmp_path):
    config = ConfigLoader(overrides={'cache_dir': tmp_path / 'elsewhere'})

    assert resolve_cache_root(config) == tmp_path / 'elsewhere'


def test_resolve_cache_root_falls_back_to_platform_dir(clean_env):
    assert resolve_cache_root(ConfigLoader()) == platform_cache_dir()


def test_platform_cache_dirs(monkeypatch, tmp_path):
    monkeypatch.setenv('XDG_CACHE_HOME', str(tmp_path / 'xdg'))
    monkeypatch.setenv('LOCALAPPDATA', str(tmp_path / 'local'))

    assert platform_cache_dir('Linux') == tmp_path / 'xdg' / 'llama-server'
    assert platform_cache_dir('Windows') == tmp_path / 'local' / 'hecrj' / 'llama-server' / 'cache'
    assert platform_cache_dir('Darwin') == (
        Path.home() / 'Library' / 'Caches' / 'hecrj.llama-server'
    )


def test_linux_cache_dir_without_xdg(monkeypatch):
    monkeypatch.delenv('XDG_CACHE_HOME', raising=False)

    assert platform_cache_dir('Linux') == Path.home() / '.cache' / 'llama-server'


def test_configure_logging_writes_log_files(clean_env, tmp_path):
    log_dir = tmp_path / 'logs'

    configure_logging(ConfigLoader(overrides={'log_dir': log_dir, 'log_level': 'DEBUG'}))
    try:
        get_logger(__name__, 'engine').error('[OUTPUT] download failed')
        for handler in logging.getLogger('llama_server').handlers:
            handler.flush()

        assert 'download failed' in (log_dir / 'llama_server_activity.log').read_text()
        assert 'download failed' in (log_dir / 'errors.log').read_text()
    finally:
        configure_logging(ConfigLoader())


def test_logger_names_use_the_module_basename():
    assert get_logger('llama_server.engine.cache', 'engine').name == 'llama_server.engine.cache'
    assert get_logger(
        'llama_server.engine.extraction.archive_handler', 'extraction'
    ).name == 'llama_server.extraction.archive_handler'
