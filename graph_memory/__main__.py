"""Run the graph MCP server: ``python -m graph_memory``."""

from .mcp.server import main

main()
