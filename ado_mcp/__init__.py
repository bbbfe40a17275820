"""Azure DevOps MCP server with pluggable authentication strategies."""

__version__ = "0.1.0"
