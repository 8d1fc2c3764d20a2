"""FastMCP server exposing vault graph tools."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
import logging
from typing import AsyncIterator, Literal

from dotenv import load_dotenv
from fastmcp import FastMCP
from fastmcp.tools.tool import ToolResult
from pydantic import Field

# Load environment variables from .env file
load_dotenv()

from ..services.config import AppConfig, get_config
from ..services.content_source import ContentSource, FilesystemSource, ObsidianRestSource
from ..services.graph import GraphService
from ..services.scheduler import GraphRuntime
from . import tools

logger = logging.getLogger(__name__)


def create_content_source(config: AppConfig) -> ContentSource:
    """Local vault directory when VAULT_PATH is set, otherwise the REST API."""
    if config.vault_path is not None:
        return FilesystemSource(config.vault_path)
    return ObsidianRestSource(
        config.obsidian_host,
        config.obsidian_api_key,
        timeout=config.request_timeout_seconds,
    )


def create_graph_service(config: AppConfig) -> GraphService:
    return GraphService(
        create_content_source(config),
        batch_size=config.fetch_batch_size,
        rebuild_timeout=config.rebuild_timeout_seconds,
    )


graph_service = create_graph_service(get_config())
runtime = GraphRuntime(graph_service, get_config().refresh_interval_ms / 1000)


@asynccontextmanager
async def lifespan(server: FastMCP) -> AsyncIterator[None]:
    """Entered once per MCP session; the graph runtime starts on the first."""
    await runtime.start()
    yield


mcp = FastMCP(
    "vault-graph-memory",
    instructions=(
        "Structural queries over an Obsidian vault's link graph. Notes are identified by "
        "name (filename without .md); names are matched case-insensitively. Links are "
        "[[wikilinks]] and are traversed in both directions. The graph is rebuilt "
        "periodically; call graph_refresh after batch edits."
    ),
    lifespan=lifespan,
)


@mcp.tool(
    name="graph_query_related",
    description=(
        "Find notes within N hops of a given note via wikilinks. Use for context "
        "expansion: \"what's related to X?\""
    ),
)
def graph_query_related(
    note: str = Field(..., description="Name of the note (without .md extension)"),
    depth: int = Field(1, ge=1, le=3, description="How many hops to traverse (1-3)"),
) -> ToolResult:
    return tools.query_related(graph_service, note, depth)


@mcp.tool(
    name="graph_find_path",
    description=(
        "Find the shortest path between two notes via wikilinks. Use to discover "
        "connections: \"how does A relate to B?\""
    ),
)
def graph_find_path(
    from_note: str = Field(..., description="Starting note name"),
    to_note: str = Field(..., description="Target note name"),
) -> ToolResult:
    return tools.find_path(graph_service, from_note, to_note)


@mcp.tool(
    name="graph_get_hubs",
    description=(
        "Get the most connected notes in the vault. Use to find central knowledge: "
        "\"what are the key topics?\""
    ),
)
def graph_get_hubs(
    top_n: int = Field(10, ge=1, le=50, description="Number of top hubs to return"),
) -> ToolResult:
    return tools.get_hubs(graph_service, top_n)


@mcp.tool(
    name="graph_get_orphans",
    description=(
        "Get notes with zero links (neither linking to nor linked from any other note). "
        "Use to find gaps: \"what's disconnected?\""
    ),
)
def graph_get_orphans() -> ToolResult:
    return tools.get_orphans(graph_service)


@mcp.tool(
    name="graph_get_clusters",
    description=(
        "Group notes by folder or tag. Use for topic overview: "
        "\"what topics exist in the vault?\""
    ),
)
def graph_get_clusters(
    by: Literal["folder", "tag"] = Field("folder", description="Group notes by folder or tag"),
) -> ToolResult:
    return tools.get_clusters(graph_service, by)


@mcp.tool(
    name="graph_get_stats",
    description="Get vault-wide statistics: note count, link count, tags, orphans, etc.",
)
def graph_get_stats() -> ToolResult:
    return tools.get_stats(graph_service)


@mcp.tool(
    name="graph_refresh",
    description="Manually trigger a graph rebuild from the vault. Use after batch changes to notes.",
)
async def graph_refresh() -> ToolResult:
    return await tools.refresh(graph_service)


async def serve(config: AppConfig) -> None:
    """Start the graph runtime, serve MCP until the transport exits, then shut down."""
    await runtime.start()
    try:
        if config.mcp_transport == "http":
            logger.info(
                "Starting MCP server",
                extra={"transport": config.mcp_transport, "host": config.mcp_host, "port": config.mcp_port},
            )
            await mcp.run_async(transport="http", host=config.mcp_host, port=config.mcp_port)
        else:
            logger.info("Starting MCP server", extra={"transport": config.mcp_transport})
            await mcp.run_async(transport="stdio")
    finally:
        await runtime.shutdown()


def main() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    asyncio.run(serve(get_config()))


if __name__ == "__main__":
    main()
