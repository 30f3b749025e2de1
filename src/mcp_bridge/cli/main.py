"""Main CLI entry point for mcp-bridge.

Commands:
    start                 - Run a bridge in the foreground
    ping                  - Check a running bridge
    notify-tools-updated  - Mark the running bridge's tool list as updated
    release               - Ask the running bridge to release its port
    approval              - Auto-approval settings (status, check)
    config                - Settings file (show, path, validate)

Subcommand help:
    mcp-bridge COMMAND -h         Show help for a specific command
"""

from __future__ import annotations

__all__ = ["cli", "main"]

import sys

import click

from mcp_bridge import __version__

from .commands.approval import approval
from .commands.config import config
from .commands.remote import notify_tools_updated, ping, release
from .commands.start import start


@click.group(
    invoke_without_command=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)
@click.option("--version", "-v", is_flag=True, help="Show version")
@click.pass_context
def cli(ctx: click.Context, version: bool) -> None:
    """mcp-bridge: HTTP bridge between an MCP client and its server."""
    if version:
        click.echo(f"mcp-bridge {__version__}")
        sys.exit(0)
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


# Register commands
cli.add_command(approval)
cli.add_command(config)
cli.add_command(notify_tools_updated)
cli.add_command(ping)
cli.add_command(release)
cli.add_command(start)


def main() -> None:
    """CLI entry point."""
    cli()
