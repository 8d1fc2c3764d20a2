"""Read-only graph algorithms over a published snapshot.

Traversals treat the directed link set as undirected: the neighbors of a
note are its outgoing links followed by its incoming links, each group in
name order. That order is what makes BFS discovery order, and therefore the
path chosen among several shortest paths, deterministic.
"""

from __future__ import annotations

from collections import deque
from enum import Enum
from typing import TYPE_CHECKING, Any, Deque, Dict, List, Optional, Set, Tuple, Union

from ..models.graph import Cluster, GraphStats, HubNote, NoteRef, OrphanNote, RelatedNote

if TYPE_CHECKING:
    from .graph import GraphSnapshot

MAX_DEPTH = 3
MAX_TOP_N = 50
ROOT_CLUSTER = "(root)"
UNTAGGED_CLUSTER = "(untagged)"


class GraphError(Exception):
    """Raised when a graph query cannot be answered."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class NameNotFoundError(GraphError):
    """A query referenced a note that is not in the graph."""

    def __init__(self, name: str):
        super().__init__(f'Note "{name}" not found in graph.', details={"name": name})
        self.name = name


class NoPathError(GraphError):
    """Both notes exist but no chain of links connects them."""

    def __init__(self, from_name: str, to_name: str):
        super().__init__(
            f'No path found between "{from_name}" and "{to_name}".',
            details={"from": from_name, "to": to_name},
        )
        self.from_name = from_name
        self.to_name = to_name


class InvalidParameterError(GraphError):
    """A query parameter is outside its declared bounds."""


class ClusterBy(str, Enum):
    """Attribute used to group notes."""

    GROUP = "group"
    TAG = "tag"

    @classmethod
    def parse(cls, value: Union["ClusterBy", str]) -> "ClusterBy":
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower()
        if normalized == "folder":
            return cls.GROUP
        try:
            return cls(normalized)
        except ValueError:
            raise InvalidParameterError(
                f"Cannot group notes by '{value}' (expected folder or tag)",
                details={"by": value},
            ) from None


def _check_range(param: str, value: int, low: int, high: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or not low <= value <= high:
        raise InvalidParameterError(
            f"{param} must be an integer between {low} and {high}",
            details={param: value},
        )


def resolve_name(snapshot: "GraphSnapshot", name: str) -> Optional[str]:
    """Exact match first, then the first case-insensitive match by name order."""
    if name in snapshot.nodes:
        return name
    lowered = name.lower()
    for candidate in sorted(snapshot.nodes):
        if candidate.lower() == lowered:
            return candidate
    return None


def query_related(snapshot: "GraphSnapshot", start: str, depth: int = 1) -> List[RelatedNote]:
    """Notes within ``depth`` hops of ``start``, in breadth-first discovery order."""
    _check_range("depth", depth, 1, MAX_DEPTH)
    if start not in snapshot.nodes:
        return []

    results: List[RelatedNote] = []
    visited: Set[str] = {start}
    queue: Deque[Tuple[str, int]] = deque([(start, 0)])

    while queue:
        name, distance = queue.popleft()
        if distance > 0:
            node = snapshot.nodes[name]
            results.append(RelatedNote(name=name, path=node.path, distance=distance))
        if distance < depth:
            for neighbor in snapshot.neighbors(name):
                if neighbor not in visited:
                    visited.add(neighbor)
                    queue.append((neighbor, distance + 1))

    return results


def find_path(snapshot: "GraphSnapshot", from_name: str, to_name: str) -> List[str]:
    """Shortest chain of note names from ``from_name`` to ``to_name`` inclusive."""
    if from_name == to_name:
        return [from_name]
    for name in (from_name, to_name):
        if name not in snapshot.nodes:
            raise NameNotFoundError(name)

    parents: Dict[str, str] = {}
    visited: Set[str] = {from_name}
    queue: Deque[str] = deque([from_name])

    while queue:
        current = queue.popleft()
        for neighbor in snapshot.neighbors(current):
            if neighbor in visited:
                continue
            visited.add(neighbor)
            parents[neighbor] = current
            if neighbor == to_name:
                path = [to_name]
                while path[-1] in parents:
                    path.append(parents[path[-1]])
                path.reverse()
                return path
            queue.append(neighbor)

    raise NoPathError(from_name, to_name)


def get_hubs(snapshot: "GraphSnapshot", top_n: int = 10) -> List[HubNote]:
    """Most connected notes by in + out degree; ties broken by name."""
    _check_range("top_n", top_n, 1, MAX_TOP_N)
    hubs = []
    for name, node in snapshot.nodes.items():
        out_degree = snapshot.out_degree(name)
        in_degree = snapshot.in_degree(name)
        hubs.append(
            HubNote(
                name=name,
                path=node.path,
                out_degree=out_degree,
                in_degree=in_degree,
                total=out_degree + in_degree,
            )
        )
    hubs.sort(key=lambda hub: (-hub.total, hub.name))
    return hubs[:top_n]


def get_orphans(snapshot: "GraphSnapshot") -> List[OrphanNote]:
    """Notes that neither link out nor are linked to."""
    return [
        OrphanNote(name=name, path=snapshot.nodes[name].path)
        for name in sorted(snapshot.nodes)
        if snapshot.out_degree(name) == 0 and snapshot.in_degree(name) == 0
    ]


def get_clusters(
    snapshot: "GraphSnapshot", by: Union[ClusterBy, str] = ClusterBy.GROUP
) -> List[Cluster]:
    """
    Group notes by folder or by tag.

    Tag clusters overlap: a note with several tags is listed under each of
    them, and notes without tags share the ``(untagged)`` cluster.
    """
    attribute = ClusterBy.parse(by)
    buckets: Dict[str, List[NoteRef]] = {}

    for name in sorted(snapshot.nodes):
        node = snapshot.nodes[name]
        ref = NoteRef(name=name, path=node.path)
        if attribute is ClusterBy.GROUP:
            keys = [node.group or ROOT_CLUSTER]
        else:
            keys = sorted(node.tags) or [UNTAGGED_CLUSTER]
        for key in keys:
            buckets.setdefault(key, []).append(ref)

    clusters = [Cluster(key=key, notes=notes) for key, notes in buckets.items()]
    clusters.sort(key=lambda cluster: (-len(cluster.notes), cluster.key))
    return clusters


def get_stats(snapshot: "GraphSnapshot") -> GraphStats:
    """Vault-wide counts for a quick status check."""
    total_notes = len(snapshot.nodes)
    total_links = 0
    all_tags: Set[str] = set()
    groups: Set[str] = set()

    for name, node in snapshot.nodes.items():
        total_links += snapshot.out_degree(name)
        all_tags.update(node.tags)
        if node.group:
            groups.add(node.group)

    return GraphStats(
        total_notes=total_notes,
        total_links=total_links,
        total_tags=len(all_tags),
        orphan_count=len(get_orphans(snapshot)),
        avg_links_per_note=round(total_links / total_notes, 2) if total_notes else 0.0,
        last_refresh=snapshot.last_refresh,
        group_count=len(groups),
    )


__all__ = [
    "GraphError",
    "NameNotFoundError",
    "NoPathError",
    "InvalidParameterError",
    "ClusterBy",
    "MAX_DEPTH",
    "MAX_TOP_N",
    "ROOT_CLUSTER",
    "UNTAGGED_CLUSTER",
    "resolve_name",
    "query_related",
    "find_path",
    "get_hubs",
    "get_orphans",
    "get_clusters",
    "get_stats",
]
