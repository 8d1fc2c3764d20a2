"""Pydantic models for graph nodes and query results."""

from .graph import (
    Cluster,
    DocumentNode,
    GraphStats,
    HubNote,
    NoteRef,
    OrphanNote,
    RefreshSummary,
    RelatedNote,
)

__all__ = [
    "DocumentNode",
    "NoteRef",
    "RelatedNote",
    "HubNote",
    "OrphanNote",
    "Cluster",
    "GraphStats",
    "RefreshSummary",
]
