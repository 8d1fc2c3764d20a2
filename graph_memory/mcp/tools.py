"""Graph tool handlers: name resolution, query dispatch and text rendering.

Each handler reads the published snapshot once so that a rebuild finishing
mid-call cannot mix two graphs into one answer.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Optional

from fastmcp.exceptions import ToolError
from fastmcp.tools.tool import ToolResult
from mcp.types import TextContent

from ..models.graph import RefreshSummary
from ..services import queries
from ..services.content_source import ContentSourceError
from ..services.graph import GraphService
from ..services.queries import ClusterBy, GraphError, InvalidParameterError, NoPathError

logger = logging.getLogger(__name__)

AVAILABLE_NOTES_PREVIEW = 20


def _result(text: str, structured: Optional[Dict[str, Any]] = None) -> ToolResult:
    return ToolResult(
        content=[TextContent(type="text", text=text)],
        structured_content=structured,
    )


def _log_call(tool_name: str, start_time: float, **fields: Any) -> None:
    duration_ms = (time.time() - start_time) * 1000
    logger.info(
        "MCP tool called",
        extra={"tool_name": tool_name, "duration_ms": f"{duration_ms:.2f}", **fields},
    )


def _plural(count: int, word: str) -> str:
    return f"{count} {word}{'' if count == 1 else 's'}"


def query_related(service: GraphService, note: str, depth: int = 1) -> ToolResult:
    start_time = time.time()
    snapshot = service.snapshot

    resolved = queries.resolve_name(snapshot, note)
    if resolved is None:
        names = sorted(snapshot.nodes)
        preview = ", ".join(names[:AVAILABLE_NOTES_PREVIEW])
        more = "..." if len(names) > AVAILABLE_NOTES_PREVIEW else ""
        _log_call("graph_query_related", start_time, note=note, found=False)
        return _result(f'Note "{note}" not found in graph. Available notes: {preview}{more}')

    try:
        related = queries.query_related(snapshot, resolved, depth)
    except InvalidParameterError as exc:
        raise ToolError(exc.message) from exc

    _log_call(
        "graph_query_related",
        start_time,
        note=resolved,
        depth=depth,
        result_count=len(related),
    )

    structured = {
        "note": resolved,
        "depth": depth,
        "related": [item.model_dump() for item in related],
    }
    if not related:
        return _result(
            f'No related notes found within {depth} hop(s) of "{resolved}".', structured
        )

    lines = [f'Notes related to "{resolved}" (depth {depth}):', ""]
    for distance in range(1, depth + 1):
        layer = [item for item in related if item.distance == distance]
        if not layer:
            continue
        lines.append(f"**{_plural(distance, 'hop')}:**")
        lines.extend(f"- {item.name} ({item.path})" for item in layer)
        lines.append("")
    return _result("\n".join(lines), structured)


def find_path(service: GraphService, from_note: str, to_note: str) -> ToolResult:
    start_time = time.time()
    snapshot = service.snapshot

    resolved_from = queries.resolve_name(snapshot, from_note)
    if resolved_from is None:
        return _result(f'Note "{from_note}" not found in graph.')
    resolved_to = queries.resolve_name(snapshot, to_note)
    if resolved_to is None:
        return _result(f'Note "{to_note}" not found in graph.')

    try:
        path = queries.find_path(snapshot, resolved_from, resolved_to)
    except NoPathError:
        _log_call("graph_find_path", start_time, found=False)
        return _result(
            f'No path found between "{resolved_from}" and "{resolved_to}". '
            "They are in disconnected parts of the graph.",
            {"from": resolved_from, "to": resolved_to, "path": None},
        )

    hops = len(path) - 1
    _log_call("graph_find_path", start_time, found=True, hops=hops)

    steps: List[Dict[str, str]] = []
    for name in path:
        node = snapshot.nodes.get(name)
        steps.append({"name": name, "path": node.path if node else "?"})
    rendered = "\n  → ".join(f"{step['name']} ({step['path']})" for step in steps)
    return _result(
        f"Shortest path ({_plural(hops, 'hop')}):\n\n{rendered}",
        {"from": resolved_from, "to": resolved_to, "hops": hops, "path": steps},
    )


def get_hubs(service: GraphService, top_n: int = 10) -> ToolResult:
    start_time = time.time()
    try:
        hubs = queries.get_hubs(service.snapshot, top_n)
    except InvalidParameterError as exc:
        raise ToolError(exc.message) from exc
    _log_call("graph_get_hubs", start_time, top_n=top_n, result_count=len(hubs))

    if not hubs:
        return _result("No notes found in graph.", {"hubs": []})

    lines = [
        f"Top {len(hubs)} hub notes:",
        "",
        "| # | Note | Path | Out | In | Total |",
        "|---|------|------|-----|-----|-------|",
    ]
    for rank, hub in enumerate(hubs, start=1):
        lines.append(
            f"| {rank} | {hub.name} | {hub.path} | {hub.out_degree} | {hub.in_degree} | {hub.total} |"
        )
    return _result("\n".join(lines), {"hubs": [hub.model_dump() for hub in hubs]})


def get_orphans(service: GraphService) -> ToolResult:
    start_time = time.time()
    orphans = queries.get_orphans(service.snapshot)
    _log_call("graph_get_orphans", start_time, result_count=len(orphans))

    structured = {"orphans": [orphan.model_dump() for orphan in orphans]}
    if not orphans:
        return _result(
            "No orphan notes found; all notes have at least one link.", structured
        )

    lines = [f"{_plural(len(orphans), 'orphan note')} (no links in or out):", ""]
    lines.extend(f"- {orphan.name} ({orphan.path})" for orphan in orphans)
    return _result("\n".join(lines), structured)


def get_clusters(service: GraphService, by: str = "folder") -> ToolResult:
    start_time = time.time()
    try:
        clusters = queries.get_clusters(service.snapshot, ClusterBy.parse(by))
    except InvalidParameterError as exc:
        raise ToolError(exc.message) from exc
    _log_call("graph_get_clusters", start_time, by=by, result_count=len(clusters))

    structured = {"by": by, "clusters": [cluster.model_dump() for cluster in clusters]}
    if not clusters:
        return _result("No notes found in graph.", structured)

    lines = [f"Notes grouped by {by} ({len(clusters)} groups):", ""]
    for cluster in clusters:
        lines.append(f"**{cluster.key}** ({_plural(len(cluster.notes), 'note')}):")
        lines.extend(f"  - {note.name}" for note in cluster.notes)
        lines.append("")
    return _result("\n".join(lines), structured)


def get_stats(service: GraphService) -> ToolResult:
    start_time = time.time()
    stats = queries.get_stats(service.snapshot)
    _log_call("graph_get_stats", start_time, total_notes=stats.total_notes)

    text = "\n".join(
        [
            "Vault Statistics:",
            "",
            f"- Total notes: {stats.total_notes}",
            f"- Total links: {stats.total_links}",
            f"- Unique tags: {stats.total_tags}",
            f"- Folders: {stats.group_count}",
            f"- Orphan notes: {stats.orphan_count}",
            f"- Avg links/note: {stats.avg_links_per_note}",
            f"- Last refresh: {stats.last_refresh.isoformat()}",
        ]
    )
    return _result(text, stats.model_dump(mode="json"))


def _refresh_failed(message: str, details: Dict[str, Any]) -> ToolResult:
    logger.error("Manual graph refresh failed", extra={"error": message, "details": details})
    return _result(
        f"Graph refresh failed: {message}\n\nThe previous graph is still being served.",
        {"error": message, "details": details},
    )


async def refresh(service: GraphService) -> ToolResult:
    start_time = time.time()
    try:
        snapshot = await service.rebuild()
    except (ContentSourceError, GraphError) as exc:
        return _refresh_failed(exc.message, exc.details)
    except Exception as exc:
        return _refresh_failed(str(exc) or type(exc).__name__, {"type": type(exc).__name__})

    duration_ms = (time.time() - start_time) * 1000
    stats = queries.get_stats(snapshot)
    summary = RefreshSummary(
        duration_ms=round(duration_ms, 2),
        total_notes=stats.total_notes,
        total_links=stats.total_links,
        total_tags=stats.total_tags,
    )
    _log_call("graph_refresh", start_time, total_notes=summary.total_notes)

    text = "\n".join(
        [
            f"Graph refreshed in {duration_ms:.0f}ms.",
            "",
            f"- Notes: {summary.total_notes}",
            f"- Links: {summary.total_links}",
            f"- Tags: {summary.total_tags}",
        ]
    )
    return _result(text, summary.model_dump())


__all__ = [
    "query_related",
    "find_path",
    "get_hubs",
    "get_orphans",
    "get_clusters",
    "get_stats",
    "refresh",
]
