"""Commands that talk to a running bridge over HTTP.

- ping: liveness check
- notify-tools-updated: tell the bridge its server's tools changed
- release: ask the bridge to release its port (as a handover would)
"""

from __future__ import annotations

__all__ = [
    "notify_tools_updated",
    "ping",
    "release",
]

import json
from pathlib import Path

import click

from mcp_bridge.transport.handover import HANDOVER_PATH

from ..bridge_client import bridge_request
from ..options import config_option, port_option, resolve_port
from ..styling import style_label, style_success


@click.command()
@port_option
@config_option
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def ping(port: int | None, config_path: Path | None, as_json: bool) -> None:
    """Check whether a bridge answers on its port."""
    effective_port = resolve_port(port, config_path)
    data = bridge_request("GET", "/ping", port=effective_port)

    if as_json:
        click.echo(json.dumps(data, indent=2))
        return

    running = "running" if data.get("serverRunning") else "not running"
    click.echo(style_success(f"Bridge on port {effective_port} is reachable"))
    click.echo(f"  {style_label('Server')} {running}")
    click.echo(f"  {style_label('Timestamp')} {data.get('timestamp', '-')}")


@click.command("notify-tools-updated")
@port_option
@config_option
def notify_tools_updated(port: int | None, config_path: Path | None) -> None:
    """Mark the running bridge's tool list as updated."""
    effective_port = resolve_port(port, config_path)
    bridge_request("POST", "/notify-tools-updated", port=effective_port, json_data={})
    click.echo(style_success("Tool list update sent"))


@click.command()
@port_option
@config_option
def release(port: int | None, config_path: Path | None) -> None:
    """Ask the running bridge to release its port."""
    effective_port = resolve_port(port, config_path)
    bridge_request("POST", HANDOVER_PATH, port=effective_port, json_data={})
    click.echo(style_success(f"Bridge on port {effective_port} is releasing the port"))
