# Path: llama_server/tests/test_archive_handler.py
"""ZIP extraction: permissions, traversal protection and failures."""

import io
import os
import sys
import zipfile

import pytest

from llama_server.core.config_loader import ConfigLoader
from llama_server.engine.extraction import ArchiveHandler
from llama_server.errors import ExtractionError, IOFailure
from llama_server.tests.conftest import SERVER_FILES, make_zip


@pytest.fixture()
def handler():
    return ArchiveHandler(ConfigLoader())


def write_archive(path, payload: bytes):
    path.write_bytes(payload)
    return path


def test_extracts_members_and_removes_archive(handler, tmp_path):
    archive = write_archive(tmp_path / 'server.zip', make_zip(SERVER_FILES))
    target = tmp_path / 'server'

    result = handler.extract(archive, target)

    assert result.files_extracted == len(SERVER_FILES)
    assert (target / 'llama-server').read_bytes() == SERVER_FILES['llama-server'][0]
    assert (target / 'licenses' / 'LICENSE').read_bytes() == b'MIT'
    assert result.archive_removed
    assert not archive.exists()


def test_keeps_archive_when_asked(handler, tmp_path):
    archive = write_archive(tmp_path / 'server.zip', make_zip(SERVER_FILES))

    result = handler.extract(archive, tmp_path / 'server', cleanup_archive=False)

    assert not result.archive_removed
    assert archive.exists()


@pytest.mark.skipif(sys.platform == 'win32', reason='POSIX permission bits')
def test_restores_executable_bit(handler, tmp_path):
    archive = write_archive(tmp_path / 'server.zip', make_zip(SERVER_FILES))
    target = tmp_path / 'server'

    handler.extract(archive, target)

    assert os.access(target / 'llama-server', os.X_OK)
    assert not os.access(target / 'libggml-base.so', os.X_OK)


def test_corrupt_archive(handler, tmp_path):
    archive = write_archive(tmp_path / 'server.zip', b'PK\x03\x04 definitely not a zip')

    with pytest.raises(ExtractionError) as excinfo:
        handler.extract(archive, tmp_path / 'server')

    assert isinstance(excinfo.value, IOFailure)
    assert archive.exists()


def test_rejects_path_traversal(handler, tmp_path):
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, 'w') as zf:
        zf.writestr('../escaped.txt', b'outside')

    archive = write_archive(tmp_path / 'evil.zip', buffer.getvalue())

    with pytest.raises(ExtractionError, match='unsafe'):
        handler.extract(archive, tmp_path / 'target')

    assert not (tmp_path / 'escaped.txt').exists()


def test_rejects_oversized_archive(tmp_path):
    handler = ArchiveHandler(ConfigLoader(overrides={'max_archive_size': 4}))
    archive = write_archive(tmp_path / 'server.zip', make_zip(SERVER_FILES))

    with pytest.raises(ExtractionError, match='too large'):
        handler.extract(archive, tmp_path / 'server')


def test_missing_archive(handler, tmp_path):
    with pytest.raises(ExtractionError, match='not found'):
        handler.extract(tmp_path / 'absent.zip', tmp_path / 'server')


def test_unsupported_format(handler, tmp_path):
    archive = write_archive(tmp_path / 'server.tar', b'')

    with pytest.raises(ExtractionError, match='Unsupported'):
        handler.extract(archive, tmp_path / 'server')
