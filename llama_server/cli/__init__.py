# Path: llama_server/cli/__init__.py
"""
CLI Module

Command-line front end for the install, list, delete and run workflows.
"""

from llama_server.cli.server_cli import main, build_parser

__all__ = ['main', 'build_parser']
