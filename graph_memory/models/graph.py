"""Graph node and query result models."""

from __future__ import annotations

from datetime import datetime
from typing import FrozenSet, List

from pydantic import BaseModel, ConfigDict, Field


class DocumentNode(BaseModel):
    """A single vault note as seen by the graph."""

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "path": "Infrastructure/Obsidian Stack.md",
                "name": "Obsidian Stack",
                "group": "Infrastructure",
                "tags": ["infra", "tools/obsidian"],
                "has_content": True,
            }
        },
    )

    path: str = Field(..., description="Vault-relative path of the note")
    name: str = Field(..., description="Note name (filename without .md), the graph key")
    group: str = Field(default="", description="Containing folder, empty for the vault root")
    tags: FrozenSet[str] = Field(default_factory=frozenset)
    has_content: bool = False


class NoteRef(BaseModel):
    """Name and path of a note inside a result."""

    name: str
    path: str


class RelatedNote(NoteRef):
    """A note reached by neighborhood expansion."""

    distance: int = Field(..., ge=1, description="Hops from the start note")


class HubNote(NoteRef):
    """Degree counts for a note."""

    out_degree: int = Field(..., ge=0)
    in_degree: int = Field(..., ge=0)
    total: int = Field(..., ge=0)


class OrphanNote(NoteRef):
    """A note with no links in either direction."""


class Cluster(BaseModel):
    """Notes sharing a folder or a tag."""

    key: str = Field(..., description="Folder or tag; '(root)' / '(untagged)' sentinels")
    notes: List[NoteRef] = Field(default_factory=list)


class GraphStats(BaseModel):
    """Vault-wide aggregate statistics."""

    total_notes: int = Field(..., ge=0)
    total_links: int = Field(..., ge=0)
    total_tags: int = Field(..., ge=0)
    orphan_count: int = Field(..., ge=0)
    avg_links_per_note: float = Field(..., ge=0)
    last_refresh: datetime
    group_count: int = Field(..., ge=0)


class RefreshSummary(BaseModel):
    """Outcome of a manual rebuild."""

    duration_ms: float
    total_notes: int
    total_links: int
    total_tags: int
