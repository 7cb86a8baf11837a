# Path: llama_server/engine/result.py
"""
Progress Events and Result Objects

Type-safe, structured values passed between the download, extraction and
install stages.

Architecture:
- Progress: one streaming download progress event
- Download: Progress tagged with the artifact being fetched
- DownloadResult: Single file download
- ExtractionResult: Single archive extraction
"""

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from llama_server.engine.artifact import Artifact


@dataclass(frozen=True)
class Progress:
    """
    Download progress event.

    Attributes:
        downloaded: Bytes received so far
        total: Expected size in bytes, 0 when the server sent no length
        speed: Average bytes per second since the request was sent
    """
    downloaded: int = 0
    total: int = 0
    speed: int = 0

    @property
    def percent(self) -> Optional[float]:
        """Completion percentage, or None when the total is unknown."""
        if self.total <= 0:
            return None
        return min(self.downloaded / self.total * 100, 100.0)


@dataclass(frozen=True)
class Download:
    """
    Progress of one artifact within an install.

    Attributes:
        artifact: Artifact being downloaded
        progress: Latest progress event for it
    """
    artifact: Artifact
    progress: Progress


@dataclass
class DownloadResult:
    """
    Result of a single file download.

    Attributes:
        file_path: Path where the file was written
        file_size: Bytes written
        url: Source URL
        duration: Download duration in seconds
        status_code: HTTP status code
        chunks_downloaded: Number of chunks received
    """
    file_path: Path
    file_size: int = 0
    url: str = ''
    duration: float = 0.0
    status_code: Optional[int] = None
    chunks_downloaded: int = 0
    timestamp: datetime = field(default_factory=datetime.now)

    @property
    def download_speed_mbps(self) -> float:
        """Calculate download speed in MB/s."""
        if self.duration > 0 and self.file_size > 0:
            mb = self.file_size / (1024 * 1024)
            return mb / self.duration
        return 0.0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        return {
            'file_path': str(self.file_path),
            'file_size': self.file_size,
            'url': self.url,
            'duration': self.duration,
            'status_code': self.status_code,
            'chunks_downloaded': self.chunks_downloaded,
            'timestamp': self.timestamp.isoformat(),
        }


@dataclass
class ExtractionResult:
    """
    Result of a single archive extraction.

    Attributes:
        archive_path: Extracted archive
        extract_directory: Directory the archive was unpacked into
        files_extracted: Number of archive members
        duration: Extraction duration in seconds
        archive_removed: Whether the archive was deleted afterwards
    """
    archive_path: Path
    extract_directory: Path
    files_extracted: int = 0
    duration: float = 0.0
    archive_removed: bool = False
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        return {
            'archive_path': str(self.archive_path),
            'extract_directory': str(self.extract_directory),
            'files_extracted': self.files_extracted,
            'duration': self.duration,
            'archive_removed': self.archive_removed,
            'timestamp': self.timestamp.isoformat(),
        }


__all__ = [
    'Progress',
    'Download',
    'DownloadResult',
    'ExtractionResult',
]
