"""Command-line interface for mcp-bridge.

Provides commands for running a bridge and talking to a running one.
"""

from .main import cli, main

__all__ = ["cli", "main"]
