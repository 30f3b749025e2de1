"""Start command for mcp-bridge CLI.

Runs a bridge in the foreground until it is stopped (Ctrl+C, SIGTERM), goes
idle, or hands its port over to a newer instance.
"""

from __future__ import annotations

__all__ = ["start"]

import asyncio
import sys
from pathlib import Path

import click

from mcp_bridge import __version__
from mcp_bridge.exceptions import PortBindError
from mcp_bridge.server import run_bridge

from ..options import config_option, load_config_or_exit, port_option
from ..styling import style_error


@click.command()
@port_option
@config_option
@click.option(
    "--handover/--no-handover",
    default=True,
    show_default=True,
    help="Ask a running bridge to release the port first",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Console log level (default: from settings)",
)
def start(port: int | None, config_path: Path | None, handover: bool, log_level: str | None) -> None:
    """Start the bridge in the foreground.

    \b
    Examples:
        mcp-bridge start                  # Take over the default port
        mcp-bridge start --port 60200     # Use another port
        mcp-bridge start --no-handover    # Fail if the port is taken
    """
    config = load_config_or_exit(config_path)
    updates: dict[str, object] = {}
    if port is not None:
        updates["port"] = port
    if log_level is not None:
        updates["logging"] = config.logging.model_copy(update={"log_level": log_level.upper()})
    if updates:
        config = config.model_copy(update=updates)

    click.echo(f"mcp-bridge v{__version__}", err=True)
    try:
        asyncio.run(run_bridge(config, handover=handover))
    except PortBindError as e:
        click.echo(style_error(str(e)), err=True)
        sys.exit(1)
