# Path: llama_server/cli/server_cli.py
"""
llama-server Cache CLI

Command-line interface for installing, listing, deleting and running
cached llama-server builds.

Usage:
    llama-server-cache latest
    llama-server-cache list
    llama-server-cache install --build latest --backends cuda
    llama-server-cache delete b6730
    llama-server-cache run model.gguf --port 8080
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    TaskID,
    TextColumn,
    TransferSpeedColumn,
)
from rich.table import Table

from llama_server import __version__
from llama_server.core.config_loader import ConfigLoader
from llama_server.core.logger import get_logger
from llama_server.engine.artifact import Artifact
from llama_server.engine.backend import BackendSet
from llama_server.engine.build import Build
from llama_server.engine.coordinator import InstallCoordinator, Server
from llama_server.engine.launcher import Settings
from llama_server.engine.result import Download
from llama_server.errors import LlamaServerError
from llama_server.constants import (
    DEFAULT_HOST,
    DEFAULT_PORT,
    DEFAULT_GPU_LAYERS,
    LOGGER_ROOT,
    LOG_INPUT,
)

logger = get_logger(__name__, 'cli')

console = Console()

LATEST = 'latest'


def setup_logging(verbose: bool = False) -> None:
    """Route package logs through a rich handler when verbose."""
    if not verbose:
        return

    package_logger = logging.getLogger(LOGGER_ROOT)
    package_logger.setLevel(logging.DEBUG)
    package_logger.addHandler(
        RichHandler(rich_tracebacks=True, console=console, show_path=False)
    )


class DownloadDisplay:
    """
    Renders Download events as one rich progress bar per artifact.

    Example:
        with DownloadDisplay() as display:
            await coordinator.install(build, backends, progress=display.update)
    """

    def __init__(self):
        self.progress = Progress(
            TextColumn("[bold blue]{task.description}"),
            BarColumn(),
            DownloadColumn(),
            TransferSpeedColumn(),
            console=console,
            transient=False,
        )
        self._tasks: dict[Artifact, TaskID] = {}

    def update(self, event: Download) -> None:
        total = event.progress.total or None
        task = self._tasks.get(event.artifact)

        if task is None:
            task = self.progress.add_task(f"Downloading {event.artifact}", total=total)
            self._tasks[event.artifact] = task

        self.progress.update(task, completed=event.progress.downloaded, total=total)

    def __enter__(self):
        self.progress.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.progress.stop()


async def resolve_build(coordinator: InstallCoordinator, text: str) -> Build:
    """'latest' or a build identifier."""
    if text == LATEST:
        return await coordinator.latest_build()
    return Build.parse(text)


async def command_latest(config: ConfigLoader, args: argparse.Namespace) -> int:
    async with InstallCoordinator(config=config) as coordinator:
        build = await coordinator.latest_build()

    console.print(str(build))
    return 0


async def command_list(config: ConfigLoader, args: argparse.Namespace) -> int:
    async with InstallCoordinator(config=config) as coordinator:
        builds = await coordinator.list_builds()
        root = coordinator.root

    if not builds:
        console.print(f"[yellow]No builds cached in[/yellow] {root}")
        return 0

    table = Table(title=f"Cached builds ({root})", show_header=True, header_style="bold")
    table.add_column("Build", style="cyan")
    table.add_column("Path")

    for build in builds:
        table.add_row(str(build), str(root / str(build)))

    console.print(table)
    return 0


async def install(coordinator: InstallCoordinator, args: argparse.Namespace) -> Server:
    build = await resolve_build(coordinator, args.build)
    backends = BackendSet.parse(args.backends)

    logger.info(f"{LOG_INPUT} CLI install {build} ({backends})")

    with DownloadDisplay() as display:
        server = await coordinator.install(build, backends, progress=display.update)

    if backends != server.backends:
        console.print(
            f"[yellow]Backends unavailable on this platform were skipped:[/yellow] "
            f"installed {server.backends}"
        )

    return server


async def command_install(config: ConfigLoader, args: argparse.Namespace) -> int:
    async with InstallCoordinator(config=config) as coordinator:
        server = await install(coordinator, args)

    console.print(f"[green]Installed {server.build}[/green] ({server.backends})")
    console.print(str(server.executable))
    return 0


async def command_delete(config: ConfigLoader, args: argparse.Namespace) -> int:
    build = Build.parse(args.build)

    async with InstallCoordinator(config=config) as coordinator:
        await coordinator.delete(build)

    console.print(f"[green]Deleted {build}[/green]")
    return 0


async def command_run(config: ConfigLoader, args: argparse.Namespace) -> int:
    settings = Settings(
        host=args.host,
        port=args.port,
        gpu_layers=args.gpu_layers,
        stdout=None,
        stderr=None,
    )

    async with InstallCoordinator(config=config) as coordinator:
        server = await install(coordinator, args)

        async with await server.boot(args.model, settings, http=coordinator.http, config=config) as process:
            with console.status("[bold green]Waiting for llama-server..."):
                await process.wait_until_ready()

            console.print(f"[green]llama-server ready at[/green] {process.url} (Ctrl-C to stop)")
            returncode = await process.process.wait()

    console.print(f"[yellow]llama-server exited with status {returncode}[/yellow]")
    return 0 if returncode == 0 else 1


COMMANDS = {
    'latest': command_latest,
    'list': command_list,
    'install': command_install,
    'delete': command_delete,
    'run': command_run,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='llama-server-cache',
        description="Download, cache and run llama.cpp's llama-server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Show the newest published build
  llama-server-cache latest

  # Install the newest build with the CUDA backend
  llama-server-cache install --build latest --backends cuda

  # Run a model on a pinned build
  llama-server-cache run model.gguf --build b6730 --port 8080
        """
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'llama-server-cache {__version__}'
    )
    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Enable verbose logging'
    )
    parser.add_argument(
        '--env-file',
        type=Path,
        help='Path to .env configuration file'
    )

    subparsers = parser.add_subparsers(dest='command', help='Command to execute')

    subparsers.add_parser('latest', help='Show the latest published build')
    subparsers.add_parser('list', help='List cached builds')

    install_parser = subparsers.add_parser('install', help='Install a build')
    _add_install_arguments(install_parser)

    delete_parser = subparsers.add_parser('delete', help='Delete a cached build')
    delete_parser.add_argument('build', help='Build to delete (e.g. b6730)')

    run_parser = subparsers.add_parser('run', help='Install a build and run a model')
    run_parser.add_argument('model', type=Path, help='Path to GGUF model file')
    _add_install_arguments(run_parser)
    run_parser.add_argument('--host', default=DEFAULT_HOST, help=f'Bind address (default: {DEFAULT_HOST})')
    run_parser.add_argument('--port', type=int, default=DEFAULT_PORT, help=f'Bind port (default: {DEFAULT_PORT})')
    run_parser.add_argument(
        '--gpu-layers',
        type=int,
        default=DEFAULT_GPU_LAYERS,
        help=f'Layers offloaded to the GPU (default: {DEFAULT_GPU_LAYERS})'
    )

    return parser


def _add_install_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        '-b', '--build',
        default=LATEST,
        help="Build to install, e.g. b6730 (default: latest)"
    )
    parser.add_argument(
        '--backends',
        default='',
        help="Comma-separated backends: cuda, hip or all (default: none)"
    )


def main(argv: Optional[list[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    setup_logging(args.verbose)
    config = ConfigLoader(env_file=args.env_file)

    try:
        return asyncio.run(COMMANDS[args.command](config, args))

    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        return 130

    except (LlamaServerError, ValueError) as e:
        console.print(f"\n[red bold]Error:[/red bold] {e}")
        if args.verbose:
            console.print_exception()
        return 1


if __name__ == '__main__':
    sys.exit(main())
