"""Shared utilities for mcp-bridge."""
