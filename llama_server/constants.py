# Path: llama_server/constants.py
"""
llama-server Cache Constants

Module-wide constants for artifact addressing, caching and launching.
Engine-specific archive constants go in engine/extraction/constants.py.

No hardcoded cache paths - the cache root comes from the environment via
config_loader, or from the platform cache directory in core/data_paths.
"""

# ============================================================================
# RELEASE SOURCE
# ============================================================================
DEFAULT_REPOSITORY: str = 'hecrj/llama-server'
DEFAULT_DOWNLOAD_URL_TEMPLATE: str = 'https://github.com/{repository}/releases/download'
DEFAULT_API_URL: str = 'https://api.github.com'
LATEST_RELEASE_PATH: str = '/repos/{repository}/releases/latest'
RELEASE_TAG_FIELD: str = 'tag_name'

# ============================================================================
# BUILD IDENTIFIERS
# ============================================================================
BUILD_PREFIX: str = 'b'

# ============================================================================
# ARTIFACT NAMING
# ============================================================================
SERVER_ARCHIVE_TEMPLATE: str = 'llama-server-{build}-{platform}.zip'
BACKEND_ARCHIVE_TEMPLATE: str = 'backend-{backend}-{build}-{platform}.zip'

# ============================================================================
# ON-DISK LAYOUT
# ============================================================================
SERVER_DIRNAME: str = 'server'
BACKEND_DIRNAME_PREFIX: str = 'backend-'
INSTANCE_SEPARATOR: str = '-'
ARCHIVE_SUFFIX: str = '.zip'
STAGING_PREFIX: str = '.'

EXECUTABLE_NAME: str = 'llama-server'
EXECUTABLE_NAME_WINDOWS: str = 'llama-server.exe'

# Platform cache directory components
CACHE_APPLICATION: str = 'llama-server'
CACHE_ORGANIZATION: str = 'hecrj'

# ============================================================================
# HTTP
# ============================================================================
HTTP_OK: int = 200
HTTP_MULTIPLE_CHOICES: int = 300

HEADER_USER_AGENT: str = 'User-Agent'
HEADER_ACCEPT: str = 'Accept'
ACCEPT_JSON: str = 'application/vnd.github+json'
ACCEPT_ANY: str = '*/*'

# ============================================================================
# DOWNLOAD CONFIGURATION DEFAULTS
# ============================================================================
DEFAULT_CHUNK_SIZE: int = 64 * 1024
DEFAULT_CONNECT_TIMEOUT: int = 30  # seconds; the body stream itself has no timeout
DEFAULT_MAX_ARCHIVE_SIZE: int = 8 * 1024 * 1024 * 1024  # 8GB, CUDA bundles are large
DEFAULT_LOG_PROGRESS_INTERVAL: int = 100  # chunks between progress log lines

# ============================================================================
# LAUNCH DEFAULTS
# ============================================================================
DEFAULT_HOST: str = '127.0.0.1'
DEFAULT_PORT: int = 8080
DEFAULT_GPU_LAYERS: int = 80
DEFAULT_HEALTH_INTERVAL: float = 1.0
DEFAULT_STOP_GRACE_PERIOD: float = 5.0
HEALTH_PATH: str = '/health'
FEATURE_FLAG_JINJA: str = '--jinja'

# ============================================================================
# IPO LOGGING PREFIXES
# ============================================================================
LOG_INPUT: str = '[INPUT]'
LOG_PROCESS: str = '[PROCESS]'
LOG_OUTPUT: str = '[OUTPUT]'

# ============================================================================
# LOGGING COMPONENTS
# ============================================================================
LOGGER_ROOT: str = 'llama_server'
LOGGER_CORE: str = 'llama_server.core'
LOGGER_ENGINE: str = 'llama_server.engine'
LOGGER_CLI: str = 'llama_server.cli'
LOGGER_EXTRACTION: str = 'llama_server.extraction'

# ============================================================================
# LOG FORMAT
# ============================================================================
LOG_FORMAT: str = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
LOG_DATE_FORMAT: str = '%Y-%m-%d %H:%M:%S'

LOG_FILE_ACTIVITY: str = 'llama_server_activity.log'
LOG_FILE_DOWNLOADS: str = 'downloads.log'
LOG_FILE_ERRORS: str = 'errors.log'

# ============================================================================
# ENVIRONMENT VARIABLE NAMES
# ============================================================================
ENV_CACHE_DIR: str = 'LLAMA_SERVER_CACHE_DIR'
ENV_REPOSITORY: str = 'LLAMA_SERVER_REPOSITORY'
ENV_DOWNLOAD_URL: str = 'LLAMA_SERVER_DOWNLOAD_URL'
ENV_API_URL: str = 'LLAMA_SERVER_API_URL'
ENV_USER_AGENT: str = 'LLAMA_SERVER_USER_AGENT'
ENV_CHUNK_SIZE: str = 'LLAMA_SERVER_CHUNK_SIZE'
ENV_CONNECT_TIMEOUT: str = 'LLAMA_SERVER_CONNECT_TIMEOUT'
ENV_MAX_ARCHIVE_SIZE: str = 'LLAMA_SERVER_MAX_ARCHIVE_SIZE'
ENV_HEALTH_INTERVAL: str = 'LLAMA_SERVER_HEALTH_INTERVAL'
ENV_LOG_DIR: str = 'LLAMA_SERVER_LOG_DIR'
ENV_LOG_LEVEL: str = 'LLAMA_SERVER_LOG_LEVEL'
ENV_LOG_CONSOLE: str = 'LLAMA_SERVER_LOG_CONSOLE'
ENV_LOG_PROGRESS_INTERVAL: str = 'LLAMA_SERVER_LOG_PROGRESS_INTERVAL'


__all__ = [
    # Release source
    'DEFAULT_REPOSITORY',
    'DEFAULT_DOWNLOAD_URL_TEMPLATE',
    'DEFAULT_API_URL',
    'LATEST_RELEASE_PATH',
    'RELEASE_TAG_FIELD',
    'BUILD_PREFIX',

    # Naming and layout
    'SERVER_ARCHIVE_TEMPLATE',
    'BACKEND_ARCHIVE_TEMPLATE',
    'SERVER_DIRNAME',
    'BACKEND_DIRNAME_PREFIX',
    'INSTANCE_SEPARATOR',
    'ARCHIVE_SUFFIX',
    'STAGING_PREFIX',
    'EXECUTABLE_NAME',
    'EXECUTABLE_NAME_WINDOWS',
    'CACHE_APPLICATION',
    'CACHE_ORGANIZATION',

    # HTTP
    'HTTP_OK',
    'HTTP_MULTIPLE_CHOICES',
    'HEADER_USER_AGENT',
    'HEADER_ACCEPT',
    'ACCEPT_JSON',
    'ACCEPT_ANY',

    # Defaults
    'DEFAULT_CHUNK_SIZE',
    'DEFAULT_CONNECT_TIMEOUT',
    'DEFAULT_MAX_ARCHIVE_SIZE',
    'DEFAULT_LOG_PROGRESS_INTERVAL',
    'DEFAULT_HOST',
    'DEFAULT_PORT',
    'DEFAULT_GPU_LAYERS',
    'DEFAULT_HEALTH_INTERVAL',
    'DEFAULT_STOP_GRACE_PERIOD',
    'HEALTH_PATH',
    'FEATURE_FLAG_JINJA',

    # Logging
    'LOG_INPUT',
    'LOG_PROCESS',
    'LOG_OUTPUT',
    'LOGGER_ROOT',
    'LOGGER_CORE',
    'LOGGER_ENGINE',
    'LOGGER_CLI',
    'LOGGER_EXTRACTION',
    'LOG_FORMAT',
    'LOG_DATE_FORMAT',
    'LOG_FILE_ACTIVITY',
    'LOG_FILE_DOWNLOADS',
    'LOG_FILE_ERRORS',

    # Environment
    'ENV_CACHE_DIR',
    'ENV_REPOSITORY',
    'ENV_DOWNLOAD_URL',
    'ENV_API_URL',
    'ENV_USER_AGENT',
    'ENV_CHUNK_SIZE',
    'ENV_CONNECT_TIMEOUT',
    'ENV_MAX_ARCHIVE_SIZE',
    'ENV_HEALTH_INTERVAL',
    'ENV_LOG_DIR',
    'ENV_LOG_LEVEL',
    'ENV_LOG_CONSOLE',
    'ENV_LOG_PROGRESS_INTERVAL',
]
