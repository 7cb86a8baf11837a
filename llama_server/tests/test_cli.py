# Path: llama_server/tests/test_cli.py
"""Command-line parsing and offline commands."""

import pytest

from llama_server.cli.server_cli import build_parser, main


@pytest.fixture()
def cache_env(monkeypatch, tmp_path):
    cache = tmp_path / 'cache'
    monkeypatch.setenv('LLAMA_SERVER_CACHE_DIR', str(cache))
    monkeypatch.chdir(tmp_path)
    return cache


def test_no_command_prints_help(capsys):
    assert main([]) == 0
    assert 'usage' in capsys.readouterr().out


def test_install_defaults():
    args = build_parser().parse_args(['install'])

    assert args.build == 'latest'
    assert args.backends == ''


def test_run_arguments():
    args = build_parser().parse_args([
        'run', 'model.gguf', '--build', 'b6730', '--backends', 'cuda',
        '--port', '9000', '--gpu-layers', '10',
    ])

    assert str(args.model) == 'model.gguf'
    assert args.build == 'b6730'
    assert args.port == 9000
    assert args.gpu_layers == 10
    assert args.host == '127.0.0.1'


def test_list_empty_cache(cache_env):
    assert main(['list']) == 0


def test_list_cached_builds(cache_env, capsys):
    (cache_env / 'b12').mkdir(parents=True)
    (cache_env / 'b9').mkdir()

    assert main(['list']) == 0

    output = capsys.readouterr().out
    assert output.index('b9') < output.index('b12')


def test_delete_build(cache_env):
    (cache_env / 'b12' / 'server').mkdir(parents=True)

    assert main(['delete', 'b12']) == 0
    assert not (cache_env / 'b12').exists()


def test_delete_invalid_build(cache_env):
    assert main(['delete', '12']) == 1


def test_install_unknown_backend(cache_env):
    assert main(['install', '--build', 'b12', '--backends', 'metal']) == 1
