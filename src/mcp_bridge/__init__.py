"""mcp-bridge: loopback HTTP bridge between an MCP client and an editor-hosted server."""

__version__ = "0.1.0"
