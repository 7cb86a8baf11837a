# Path: llama_server/engine/extraction/constants.py
"""
Extraction Module Constants

Centralized constants for archive extraction.
"""

# ============================================================================
# ARCHIVE EXTRACTION
# ============================================================================

# Archive read mode
ZIP_READ_MODE = 'r'

# Supported archive file extension
ARCHIVE_EXTENSIONS_ZIP = '.zip'

# Maximum directory nesting inside an archive
MAX_EXTRACTION_DEPTH = 25

# Unix mode bits stored in the high 16 bits of ZipInfo.external_attr
ZIP_MODE_SHIFT = 16
PERMISSION_MASK = 0o777

# Copy buffer for member extraction
COPY_BUFFER_SIZE = 1024 * 1024
