"""Config command group for mcp-bridge CLI."""

from __future__ import annotations

__all__ = ["config"]

import json
from pathlib import Path

import click

from mcp_bridge.config import default_settings_path

from ..options import config_option, load_config_or_exit
from ..styling import style_dim, style_success


@click.group()
def config() -> None:
    """Configuration management commands."""
    pass


@config.command("show")
@config_option
def config_show(config_path: Path | None) -> None:
    """Display the effective settings as JSON (defaults included)."""
    loaded = load_config_or_exit(config_path)
    click.echo(json.dumps(loaded.model_dump(mode="json", by_alias=True), indent=2))


@config.command("path")
def config_path_cmd() -> None:
    """Show the default settings file path."""
    path = default_settings_path()
    click.echo(str(path))
    if not path.exists():
        click.echo(style_dim("(file does not exist - built-in defaults are used)"), err=True)


@config.command("validate")
@config_option
def config_validate(config_path: Path | None) -> None:
    """Validate the settings file.

    Exit codes:
        0: Settings are valid (or the file is absent)
        1: Settings are invalid
    """
    load_config_or_exit(config_path)
    click.echo(style_success(f"Settings valid: {config_path or default_settings_path()}"))
