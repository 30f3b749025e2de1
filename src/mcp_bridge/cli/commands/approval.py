"""Approval command group for mcp-bridge CLI.

Inspects the auto-approval settings without a running bridge.
"""

from __future__ import annotations

__all__ = ["approval"]

import json
from pathlib import Path

import click

from mcp_bridge.approval.policy import AutoApprovalPolicyEngine, OperationContext, OperationType

from ..options import config_option, load_config_or_exit
from ..styling import style_dim, style_header, style_label, style_success, style_warning


@click.group()
def approval() -> None:
    """Auto-approval settings commands."""
    pass


@approval.command("status")
@config_option
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def approval_status(config_path: Path | None, as_json: bool) -> None:
    """Show which operations may be auto-approved."""
    config = load_config_or_exit(config_path)
    engine = AutoApprovalPolicyEngine(lambda: config.auto_approval, workspace_roots=config.workspace_roots)

    if as_json:
        data = config.auto_approval.model_dump(mode="json", by_alias=True)
        data["description"] = engine.get_status_description()
        click.echo(json.dumps(data, indent=2))
        return

    auto = config.auto_approval
    permissions = auto.permissions
    click.echo(style_header("Auto-Approval"))
    click.echo(f"  {engine.get_status_description()}")
    click.echo()
    read, write = permissions.read, permissions.write
    click.echo(f"  {style_label('read')} {read.enabled} (outside workspace: {read.include_outside_workspace})")
    click.echo(
        f"  {style_label('write')} {write.enabled} (outside workspace: {write.include_outside_workspace}, "
        f"protected files: {write.include_protected_files})"
    )
    click.echo(f"  {style_label('execute')} {permissions.execute.enabled}")
    if permissions.execute.allowed_commands:
        for pattern in permissions.execute.allowed_commands:
            click.echo(f"    - {pattern}")
    else:
        click.echo("    " + style_dim("(no allowed commands)"))
    for gate in ("debug", "terminal", "browser"):
        click.echo(f"  {style_label(gate)} {getattr(permissions, gate).enabled}")
    click.echo()
    click.echo(style_header("Rate Limit"))
    click.echo(f"  {auto.limits.max_requests} requests per {auto.limits.time_window_minutes:g} minute(s)")
    click.echo()
    click.echo(style_header("Workspace"))
    if config.workspace_roots:
        for root in config.workspace_roots:
            click.echo(f"  {root}")
    else:
        click.echo("  " + style_dim("No workspace roots configured (all files count as protected)"))


@approval.command("check")
@config_option
@click.option(
    "--operation",
    "-o",
    type=click.Choice([op.value for op in OperationType]),
    required=True,
    help="Operation kind",
)
@click.option("--file", "file_path", default=None, help="Target file (read/write)")
@click.option("--command", default=None, help="Command line (execute)")
@click.option("--destructive", is_flag=True, help="Mark the operation as destructive")
def approval_check(
    config_path: Path | None,
    operation: str,
    file_path: str | None,
    command: str | None,
    destructive: bool,
) -> None:
    """Evaluate whether an operation would be auto-approved.

    \b
    Examples:
        mcp-bridge approval check -o write --file src/app.ts
        mcp-bridge approval check -o execute --command "npm test"
    """
    config = load_config_or_exit(config_path)
    engine = AutoApprovalPolicyEngine(lambda: config.auto_approval, workspace_roots=config.workspace_roots)
    context = OperationContext(
        operation=OperationType(operation),
        description=f"{operation} {file_path or command or ''}".strip(),
        file_path=file_path,
        command=command,
        is_destructive=destructive,
    )
    if engine.can_auto_approve(context):
        click.echo(style_success("Would be auto-approved"))
    else:
        click.echo(style_warning("Requires confirmation"))
