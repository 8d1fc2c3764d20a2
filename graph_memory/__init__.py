"""MCP server exposing the link graph of an Obsidian vault."""

__version__ = "1.0.0"
