# Path: llama_server/tests/test_stream_handler.py
"""Streaming downloads and progress reporting."""

import pytest

from llama_server.engine.artifact import Artifact
from llama_server.engine.build import Build
from llama_server.engine.stream_handler import StreamHandler
from llama_server.errors import TransportFailure
from llama_server.tests.conftest import PLATFORM_TAG

pytestmark = pytest.mark.asyncio


async def chunks(*parts: bytes):
    for part in parts:
        yield part


async def test_progress_events_are_monotonic(tmp_path):
    events = []
    handler = StreamHandler(chunk_size=4)

    written = await handler.stream_to_file(
        chunks(b'abcd', b'', b'efgh', b'ij'),
        tmp_path / 'out.bin',
        total_size=10,
        progress=events.append
    )

    assert written == 10
    assert (tmp_path / 'out.bin').read_bytes() == b'abcdefghij'

    # One initial event plus one per non-empty chunk
    assert [event.downloaded for event in events] == [0, 4, 8, 10]
    assert all(event.total == 10 for event in events)
    assert events[-1].percent == 100.0
    assert handler.chunks_written == 3


async def test_unknown_length_reports_zero_total(tmp_path):
    events = []

    await StreamHandler().stream_to_file(
        chunks(b'x' * 10),
        tmp_path / 'out.bin',
        progress=events.append
    )

    assert [event.total for event in events] == [0, 0]
    assert events[-1].percent is None


async def test_existing_file_is_truncated(tmp_path):
    target = tmp_path / 'out.bin'
    target.write_bytes(b'stale content from an interrupted download')

    await StreamHandler().stream_to_file(chunks(b'new'), target)

    assert target.read_bytes() == b'new'


async def test_http_download_reports_content_length(release_server, http, tmp_path):
    build = Build(1)
    release_server.publish(build, Artifact.server(), b'z' * 5000)
    url = Artifact.server().url(build, f"{release_server.url}/download", PLATFORM_TAG)

    events = []
    result = await http.download(url, tmp_path / 'server.zip', progress=events.append)

    assert result.file_size == 5000
    assert result.status_code == 200
    assert events[0].downloaded == 0
    assert events[-1].downloaded == events[-1].total == 5000

    downloaded = [event.downloaded for event in events]
    assert downloaded == sorted(downloaded)


async def test_http_download_without_content_length(release_server, http, tmp_path):
    build = Build(1)
    release_server.chunked = True
    release_server.publish(build, Artifact.server(), b'z' * 3000)
    url = Artifact.server().url(build, f"{release_server.url}/download", PLATFORM_TAG)

    events = []
    await http.download(url, tmp_path / 'server.zip', progress=events.append)

    assert all(event.total == 0 for event in events)
    assert events[-1].downloaded == 3000


async def test_http_error_status_is_a_transport_failure(release_server, http, tmp_path):
    url = f"{release_server.url}/download/b1/missing.zip"

    with pytest.raises(TransportFailure) as excinfo:
        await http.download(url, tmp_path / 'missing.zip')

    assert excinfo.value.status == 404
    assert excinfo.value.url == url
