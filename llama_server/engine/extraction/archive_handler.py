# Path: llama_server/engine/extraction/archive_handler.py
"""
Archive Handler

Blocking archive extraction for release bundles. Called from a worker
thread by the cache so decompression never stalls the event loop.

Architecture:
- Format detection by file extension (release bundles are ZIP)
- Path traversal and depth validation before anything is written
- Unix permission bits and symlinks restored from the archive
- Failures raise ExtractionError; the archive is only removed on success
"""

import os
import shutil
import stat
import time
import zipfile
from pathlib import Path
from typing import Optional, Type

from llama_server.core.logger import get_logger
from llama_server.core.config_loader import ConfigLoader
from llama_server.engine.result import ExtractionResult
from llama_server.errors import ExtractionError
from llama_server.constants import (
    DEFAULT_MAX_ARCHIVE_SIZE,
    LOG_INPUT,
    LOG_PROCESS,
    LOG_OUTPUT,
)
from llama_server.engine.extraction.constants import (
    ZIP_READ_MODE,
    ARCHIVE_EXTENSIONS_ZIP,
    MAX_EXTRACTION_DEPTH,
    ZIP_MODE_SHIFT,
    PERMISSION_MASK,
    COPY_BUFFER_SIZE,
)

logger = get_logger(__name__, 'extraction')


class BaseExtractor:
    """
    Base class for archive extractors.

    Provides the common interface and path validation.
    """

    def __init__(self, config: Optional[ConfigLoader] = None):
        """
        Initialize base extractor.

        Args:
            config: Optional ConfigLoader instance
        """
        self.config = config if config else ConfigLoader()
        self.max_extraction_size = self.config.get(
            'max_archive_size',
            DEFAULT_MAX_ARCHIVE_SIZE
        )

    def extract(
        self,
        archive_path: Path,
        target_dir: Path,
        cleanup_archive: bool = True
    ) -> ExtractionResult:
        """
        Extract archive to target directory.

        Must be implemented by subclasses.
        """
        raise NotImplementedError("Subclasses must implement extract()")

    def _validate_depth(self, member_path: str) -> bool:
        depth = len(Path(member_path).parts)
        if depth > MAX_EXTRACTION_DEPTH:
            logger.error(f"Path too deep: {member_path} (depth={depth})")
            return False
        return True

    def _validate_path_traversal(
        self,
        member_path: Path,
        target_dir: Path
    ) -> bool:
        """
        Validate path doesn't escape target directory.

        Args:
            member_path: Full member path
            target_dir: Target extraction directory

        Returns:
            True if path is safe
        """
        try:
            member_path.resolve().relative_to(target_dir.resolve())
            return True
        except ValueError:
            logger.error(f"Unsafe path detected: {member_path}")
            return False

    def _cleanup(self, archive_path: Path) -> bool:
        try:
            archive_path.unlink()
            logger.info(f"{LOG_PROCESS} Deleted archive: {archive_path.name}")
            return True
        except FileNotFoundError:
            return True
        except OSError as e:
            # A leftover archive is overwritten by the next download
            logger.warning(f"Cannot delete archive: {e}")
            return False


class ZipExtractor(BaseExtractor):
    """
    ZIP file extractor.

    Unlike ZipFile.extractall, restores the Unix permission bits stored in
    the archive (llama-server must stay executable) and recreates symlinks.
    """

    def extract(
        self,
        archive_path: Path,
        target_dir: Path,
        cleanup_archive: bool = True
    ) -> ExtractionResult:
        """
        Extract ZIP archive.

        Args:
            archive_path: Path to ZIP file
            target_dir: Target directory (created if missing)
            cleanup_archive: Whether to delete ZIP after extraction

        Returns:
            ExtractionResult

        Raises:
            ExtractionError: If the archive is missing, corrupt, unsafe or
                too large, or cannot be written out
        """
        logger.info(f"{LOG_INPUT} Extracting ZIP: {archive_path.name}")

        start_time = time.time()
        result = ExtractionResult(
            archive_path=archive_path,
            extract_directory=target_dir
        )

        if not archive_path.exists():
            logger.error(f"{LOG_OUTPUT} ZIP file not found: {archive_path}")
            raise ExtractionError(f"ZIP file not found: {archive_path}")

        try:
            target_dir.mkdir(parents=True, exist_ok=True)

            with zipfile.ZipFile(archive_path, ZIP_READ_MODE) as zf:
                members = zf.infolist()

                if not self._validate_zip_safe(zf, target_dir):
                    raise ExtractionError(f"ZIP contains unsafe paths: {archive_path.name}")

                total_size = sum(info.file_size for info in members)
                if total_size > self.max_extraction_size:
                    raise ExtractionError(f"ZIP too large: {total_size} bytes")

                logger.info(f"{LOG_PROCESS} Extracting {len(members)} files...")

                for info in members:
                    self._extract_member(zf, info, target_dir)

                result.files_extracted = len(members)

        except zipfile.BadZipFile as e:
            logger.error(f"{LOG_OUTPUT} Invalid ZIP file: {e}")
            raise ExtractionError(f"Invalid ZIP file {archive_path.name}: {e}") from e

        except (OSError, EOFError, zipfile.LargeZipFile, NotImplementedError) as e:
            logger.error(f"{LOG_OUTPUT} ZIP extraction failed: {e}")
            raise ExtractionError(f"ZIP extraction failed for {archive_path.name}: {e}") from e

        result.duration = time.time() - start_time

        logger.info(
            f"{LOG_OUTPUT} ZIP extraction complete: {result.files_extracted} files "
            f"in {result.duration:.2f}s"
        )

        if cleanup_archive:
            result.archive_removed = self._cleanup(archive_path)

        return result

    def _extract_member(self, zf: zipfile.ZipFile, info: zipfile.ZipInfo, target_dir: Path) -> None:
        destination = target_dir / info.filename
        mode = info.external_attr >> ZIP_MODE_SHIFT

        if info.is_dir():
            destination.mkdir(parents=True, exist_ok=True)
            return

        destination.parent.mkdir(parents=True, exist_ok=True)

        if stat.S_ISLNK(mode):
            link_target = zf.read(info).decode('utf-8')

            if not self._validate_path_traversal(destination.parent / link_target, target_dir):
                raise ExtractionError(f"Symlink escapes archive: {info.filename} -> {link_target}")

            if destination.is_symlink() or destination.exists():
                destination.unlink()
            os.symlink(link_target, destination)
            return

        with zf.open(info) as source, open(destination, 'wb') as target:
            shutil.copyfileobj(source, target, COPY_BUFFER_SIZE)

        permissions = mode & PERMISSION_MASK
        if permissions:
            os.chmod(destination, permissions)

    def _validate_zip_safe(self, zip_file: zipfile.ZipFile, target_dir: Path) -> bool:
        """Validate ZIP for path traversal attacks."""
        for member in zip_file.namelist():
            member_path = target_dir / member

            if not self._validate_path_traversal(member_path, target_dir):
                return False

            if not self._validate_depth(member):
                return False

        return True


class ArchiveHandler:
    """
    Archive handler factory.

    Detects archive format and delegates to the matching extractor.

    Example:
        handler = ArchiveHandler()
        result = handler.extract(
            archive_path=Path('~/.cache/llama-server/b6730/server.zip'),
            target_dir=Path('~/.cache/llama-server/b6730/server')
        )
    """

    EXTRACTOR_MAP = {
        ARCHIVE_EXTENSIONS_ZIP: ZipExtractor,
    }

    def __init__(self, config: Optional[ConfigLoader] = None):
        """
        Initialize archive handler.

        Args:
            config: Optional ConfigLoader instance
        """
        self.config = config if config else ConfigLoader()

    def extract(
        self,
        archive_path: Path,
        target_dir: Path,
        cleanup_archive: bool = True
    ) -> ExtractionResult:
        """
        Extract archive using the appropriate extractor.

        Raises:
            ExtractionError: If the format is unsupported or extraction fails
        """
        logger.info(f"{LOG_INPUT} Processing archive: {archive_path.name}")

        extractor_class = self._detect_format(archive_path)

        if extractor_class is None:
            error_msg = f"Unsupported archive format: {archive_path.suffix}"
            logger.error(f"{LOG_OUTPUT} {error_msg}")
            raise ExtractionError(error_msg)

        logger.info(f"{LOG_PROCESS} Using {extractor_class.__name__}")
        extractor = extractor_class(config=self.config)

        return extractor.extract(archive_path, target_dir, cleanup_archive)

    def _detect_format(self, archive_path: Path) -> Optional[Type[BaseExtractor]]:
        suffix_lower = archive_path.suffix.lower()
        extractor_class = self.EXTRACTOR_MAP.get(suffix_lower)

        if extractor_class:
            logger.debug(f"Detected format: {suffix_lower}")
        else:
            logger.warning(f"Unknown format: {suffix_lower}")

        return extractor_class


__all__ = [
    'ArchiveHandler',
    'BaseExtractor',
    'ZipExtractor',
]
