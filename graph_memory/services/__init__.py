"""Service layer: parsing, content sources, graph store and scheduling."""

from .config import AppConfig, get_config, parse_interval, reload_config
from .content_source import (
    ContentSource,
    ContentSourceError,
    DocumentFetchFailed,
    FilesystemSource,
    ObsidianRestSource,
    SourceListingFailed,
    SourceUnavailable,
)
from .graph import GraphService, GraphSnapshot, RebuildTimeout, build_snapshot
from .parser import group_from_path, name_from_path, parse_references, parse_tags
from .queries import (
    ClusterBy,
    GraphError,
    InvalidParameterError,
    NameNotFoundError,
    NoPathError,
)
from .scheduler import GraphRuntime, RefreshScheduler

__all__ = [
    "AppConfig",
    "get_config",
    "reload_config",
    "parse_interval",
    "ContentSource",
    "ContentSourceError",
    "SourceUnavailable",
    "SourceListingFailed",
    "DocumentFetchFailed",
    "ObsidianRestSource",
    "FilesystemSource",
    "GraphService",
    "GraphSnapshot",
    "RebuildTimeout",
    "build_snapshot",
    "name_from_path",
    "group_from_path",
    "parse_references",
    "parse_tags",
    "ClusterBy",
    "GraphError",
    "NameNotFoundError",
    "NoPathError",
    "InvalidParameterError",
    "RefreshScheduler",
    "GraphRuntime",
]
