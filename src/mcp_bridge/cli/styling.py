"""Terminal styling for CLI output.

Every command styles its output through these helpers:
- Cyan bold for section headers and field labels
- Green with a check mark for success lines
- Yellow bold for warnings
- Red with a cross for errors
- Dim for empty or neutral states

Colors are dropped automatically when output is not a terminal (click does
this), so tests and pipes see plain text.
"""

from __future__ import annotations

__all__ = [
    "style_dim",
    "style_error",
    "style_header",
    "style_label",
    "style_success",
    "style_warning",
]

import click


def style_header(title: str) -> str:
    """Style a section header.

    Args:
        title: Section name.

    Returns:
        "--- title ---" in cyan bold.

    Example:
        >>> click.echo(style_header("Rate Limit"))
        --- Rate Limit ---
    """
    return click.style(f"--- {title} ---", fg="cyan", bold=True)


def style_label(label: str) -> str:
    """Style a field label; the value follows after a space.

    Args:
        label: Label text without the colon.

    Returns:
        The label with a trailing colon, in cyan bold.

    Example:
        >>> click.echo(style_label("Server") + " running")
        Server: running
    """
    return click.style(label + ":", fg="cyan", bold=True)


def style_success(message: str) -> str:
    """Style a success line.

    Args:
        message: Message text without the check mark.

    Returns:
        The message prefixed with a check mark, in green.

    Example:
        >>> click.echo(style_success("Would be auto-approved"))
        ✓ Would be auto-approved
    """
    return click.style("✓ " + message, fg="green")


def style_warning(message: str) -> str:
    """Style a warning line.

    Args:
        message: Message text without the "Warning:" prefix.

    Returns:
        The message prefixed with "Warning: ", in yellow bold.

    Example:
        >>> click.echo(style_warning("Requires confirmation"))
        Warning: Requires confirmation
    """
    return click.style("Warning: " + message, fg="yellow", bold=True)


def style_error(message: str) -> str:
    """Style an error line.

    Multi-line messages keep the cross on the first line only.

    Args:
        message: Message text without the cross.

    Returns:
        The message prefixed with a cross, in red.

    Example:
        >>> click.echo(style_error("Port 3000 is already in use"), err=True)
        ✗ Port 3000 is already in use
    """
    return click.style("✗ " + message, fg="red")


def style_dim(message: str) -> str:
    """Style a neutral or empty-state line.

    Args:
        message: Message text.

    Returns:
        The message, dimmed.

    Example:
        >>> click.echo(style_dim("(no allowed commands)"))
        (no allowed commands)
    """
    return click.style(message, dim=True)
