"""Options and helpers shared by several commands."""

from __future__ import annotations

__all__ = [
    "config_option",
    "load_config_or_exit",
    "port_option",
    "resolve_port",
]

import sys
from pathlib import Path
from typing import Callable, TypeVar

import click

from mcp_bridge.config import BridgeConfig, load_bridge_config
from mcp_bridge.exceptions import ConfigurationError

from .styling import style_error

F = TypeVar("F", bound=Callable[..., object])


def config_option(func: F) -> F:
    return click.option(
        "--config",
        "-c",
        "config_path",
        type=click.Path(dir_okay=False, path_type=Path),
        default=None,
        help="Settings file (default: OS config directory)",
    )(func)


def port_option(func: F) -> F:
    return click.option(
        "--port",
        "-p",
        type=click.IntRange(0, 65535),
        default=None,
        help="Bridge port (default: from settings, 60100)",
    )(func)


def load_config_or_exit(config_path: Path | None) -> BridgeConfig:
    """Load settings; print the error and exit 1 if they are invalid."""
    try:
        return load_bridge_config(config_path)
    except ConfigurationError as e:
        click.echo(style_error(str(e)), err=True)
        sys.exit(1)


def resolve_port(port: int | None, config_path: Path | None) -> int:
    if port is not None:
        return port
    return load_config_or_exit(config_path).port
