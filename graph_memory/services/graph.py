"""In-memory note graph: snapshot construction and the rebuild/query service."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
import logging
import time
from types import MappingProxyType
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence, Set, Tuple, Union

from ..models.graph import Cluster, DocumentNode, GraphStats, HubNote, OrphanNote, RelatedNote
from . import queries
from .content_source import ContentSource
from .parser import group_from_path, name_from_path, parse_references, parse_tags
from .queries import ClusterBy, GraphError

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 20
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class RebuildTimeout(GraphError):
    """A rebuild did not finish within its time budget and was abandoned."""


@dataclass(frozen=True)
class GraphSnapshot:
    """
    One fully built, read-only view of the vault graph.

    Every node has an entry in both ``edges`` and ``reverse_edges`` and
    every edge endpoint is a node of the same snapshot.
    """

    nodes: Mapping[str, DocumentNode]
    edges: Mapping[str, FrozenSet[str]]
    reverse_edges: Mapping[str, FrozenSet[str]]
    last_refresh: datetime

    @classmethod
    def empty(cls) -> "GraphSnapshot":
        return cls(
            nodes=MappingProxyType({}),
            edges=MappingProxyType({}),
            reverse_edges=MappingProxyType({}),
            last_refresh=EPOCH,
        )

    def out_degree(self, name: str) -> int:
        return len(self.edges.get(name, ()))

    def in_degree(self, name: str) -> int:
        return len(self.reverse_edges.get(name, ()))

    def neighbors(self, name: str) -> List[str]:
        """Outgoing then incoming links, each sorted by name, without repeats."""
        ordered: Dict[str, None] = {}
        for neighbor in sorted(self.edges.get(name, ())):
            ordered[neighbor] = None
        for neighbor in sorted(self.reverse_edges.get(name, ())):
            ordered[neighbor] = None
        return list(ordered)


def build_snapshot(
    documents: Iterable[Tuple[str, Optional[str]]],
    *,
    refreshed_at: Optional[datetime] = None,
) -> GraphSnapshot:
    """
    Build a snapshot from ``(path, text)`` pairs in listing order.

    ``text`` is ``None`` for notes whose content could not be fetched; they
    still become nodes but contribute no links. When two paths share a note
    name the first one listed keeps the name.
    """
    nodes: Dict[str, DocumentNode] = {}
    bodies: List[Tuple[str, str]] = []

    for path, text in documents:
        name = name_from_path(path)
        if name in nodes:
            logger.warning(
                "Duplicate note name, keeping first path",
                extra={"note_name": name, "kept_path": nodes[name].path, "skipped_path": path},
            )
            continue
        body = text or ""
        nodes[name] = DocumentNode(
            path=path,
            name=name,
            group=group_from_path(path),
            tags=frozenset(parse_tags(body)),
            has_content=bool(body.strip()),
        )
        if text is not None:
            bodies.append((name, body))

    # Adjacency for every node exists before the first edge is added.
    edges: Dict[str, Set[str]] = {name: set() for name in nodes}
    reverse_edges: Dict[str, Set[str]] = {name: set() for name in nodes}

    for source_name, body in bodies:
        for target in parse_references(body):
            if target in nodes:
                edges[source_name].add(target)
                reverse_edges[target].add(source_name)

    return GraphSnapshot(
        nodes=MappingProxyType(nodes),
        edges=MappingProxyType({name: frozenset(links) for name, links in edges.items()}),
        reverse_edges=MappingProxyType(
            {name: frozenset(links) for name, links in reverse_edges.items()}
        ),
        last_refresh=refreshed_at or datetime.now(timezone.utc),
    )


class GraphService:
    """Owns the published graph snapshot, rebuilds it and answers queries."""

    def __init__(
        self,
        source: ContentSource,
        *,
        batch_size: int = DEFAULT_BATCH_SIZE,
        rebuild_timeout: Optional[float] = None,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.source = source
        self.batch_size = batch_size
        self.rebuild_timeout = rebuild_timeout
        self._snapshot = GraphSnapshot.empty()
        self._rebuild_lock = asyncio.Lock()

    @property
    def snapshot(self) -> GraphSnapshot:
        """The currently published snapshot."""
        return self._snapshot

    @property
    def rebuilding(self) -> bool:
        return self._rebuild_lock.locked()

    async def rebuild(self) -> GraphSnapshot:
        """
        Rebuild the graph from the content source and publish it.

        Listing failures propagate and leave the current snapshot in place.
        Concurrent calls are serialized; each performs its own full rebuild.
        """
        async with self._rebuild_lock:
            start_time = time.time()
            if self.rebuild_timeout is None:
                snapshot = await self._build()
            else:
                loop = asyncio.get_running_loop()
                deadline = loop.time() + self.rebuild_timeout
                try:
                    snapshot = await asyncio.wait_for(self._build(), timeout=self.rebuild_timeout)
                except asyncio.TimeoutError as exc:
                    # Timeouts raised by the source before the deadline propagate unchanged.
                    if loop.time() < deadline:
                        raise
                    raise RebuildTimeout(
                        f"Graph rebuild exceeded {self.rebuild_timeout}s",
                        details={"timeout_seconds": self.rebuild_timeout},
                    ) from exc

            self._snapshot = snapshot

            duration_ms = (time.time() - start_time) * 1000
            logger.info(
                "Graph rebuilt",
                extra={
                    "note_count": len(snapshot.nodes),
                    "link_count": sum(len(links) for links in snapshot.edges.values()),
                    "duration_ms": f"{duration_ms:.2f}",
                },
            )
            return snapshot

    async def _build(self) -> GraphSnapshot:
        paths = await self.source.list_documents()
        contents = await self._fetch_all(paths)
        return build_snapshot(zip(paths, contents))

    async def _fetch_all(self, paths: Sequence[str]) -> List[Optional[str]]:
        """
        Fetch note bodies with at most ``batch_size`` requests in flight.

        Results keep listing order; a failed fetch becomes ``None``.
        """
        semaphore = asyncio.Semaphore(self.batch_size)

        async def fetch(path: str) -> str:
            async with semaphore:
                return await self.source.fetch_document(path)

        results = await asyncio.gather(
            *(fetch(path) for path in paths),
            return_exceptions=True,
        )

        contents: List[Optional[str]] = []
        failed = 0
        for path, result in zip(paths, results):
            if isinstance(result, Exception):
                failed += 1
                logger.warning(
                    "Failed to fetch note, treating it as empty",
                    extra={"note_path": path, "error": str(result)},
                )
                contents.append(None)
            elif isinstance(result, BaseException):
                raise result
            else:
                contents.append(result)

        if failed:
            logger.warning(
                "Some notes could not be fetched",
                extra={"failed_count": failed, "note_count": len(paths)},
            )
        return contents

    def resolve_name(self, name: str) -> Optional[str]:
        return queries.resolve_name(self._snapshot, name)

    def query_related(self, note: str, depth: int = 1) -> List[RelatedNote]:
        return queries.query_related(self._snapshot, note, depth)

    def find_path(self, from_note: str, to_note: str) -> List[str]:
        return queries.find_path(self._snapshot, from_note, to_note)

    def get_hubs(self, top_n: int = 10) -> List[HubNote]:
        return queries.get_hubs(self._snapshot, top_n)

    def get_orphans(self) -> List[OrphanNote]:
        return queries.get_orphans(self._snapshot)

    def get_clusters(self, by: Union[ClusterBy, str] = ClusterBy.GROUP) -> List[Cluster]:
        return queries.get_clusters(self._snapshot, by)

    def get_stats(self) -> GraphStats:
        return queries.get_stats(self._snapshot)


__all__ = [
    "GraphSnapshot",
    "GraphService",
    "RebuildTimeout",
    "build_snapshot",
    "DEFAULT_BATCH_SIZE",
    "EPOCH",
]
