# Path: llama_server/__main__.py
"""Allow running the CLI with python -m llama_server."""

import sys

from llama_server.cli.server_cli import main

if __name__ == '__main__':
    sys.exit(main())
