"""Unit tests for CLI styling helpers."""

import click
import pytest

from mcp_bridge.cli.styling import (
    style_dim,
    style_error,
    style_header,
    style_label,
    style_success,
    style_warning,
)


class TestStyling:
    """Plain text each helper produces once colors are stripped."""

    @pytest.mark.parametrize(
        ("styled", "expected"),
        [
            (style_header("Rate Limit"), "--- Rate Limit ---"),
            (style_label("Server"), "Server:"),
            (style_success("Would be auto-approved"), "✓ Would be auto-approved"),
            (style_warning("Requires confirmation"), "Warning: Requires confirmation"),
            (style_error("Port in use"), "✗ Port in use"),
            (style_dim("(no allowed commands)"), "(no allowed commands)"),
        ],
    )
    def test_plain_text(self, styled: str, expected: str) -> None:
        assert click.unstyle(styled) == expected

    def test_header_is_colored(self) -> None:
        # Arrange / Act
        styled = style_header("Workspace")

        # Assert
        assert styled != click.unstyle(styled)
        assert styled == click.style("--- Workspace ---", fg="cyan", bold=True)
