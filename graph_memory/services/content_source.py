"""Sources that enumerate and read raw vault notes."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Tuple
from urllib.parse import quote

import httpx

from .parser import MARKDOWN_SUFFIX

logger = logging.getLogger(__name__)


class ContentSourceError(Exception):
    """Raised when a content source operation fails."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class SourceUnavailable(ContentSourceError):
    """The content source cannot be used to build a graph."""


class SourceListingFailed(SourceUnavailable):
    """The content source could not enumerate its notes."""


class DocumentFetchFailed(ContentSourceError):
    """A single note could not be read."""


class ContentSource(Protocol):
    """Lists note paths and fetches raw note text."""

    async def list_documents(self) -> List[str]:
        ...

    async def fetch_document(self, path: str) -> str:
        ...

    async def aclose(self) -> None:
        ...


def _vault_url(path: str) -> str:
    return "/vault/" + quote(path, safe="/")


class ObsidianRestSource:
    """
    Client for the Obsidian Local REST API plugin.

    Directory listings come back as ``{"files": [...]}`` where sub-directories
    end with ``/``. Only ``.md`` files are reported as notes.
    """

    def __init__(
        self,
        host: str = "http://localhost:27123",
        api_key: Optional[str] = None,
        *,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            host: Base URL of the REST API (default: http://localhost:27123)
            api_key: Bearer token configured in the plugin
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (tests use MockTransport)
        """
        self.host = host.rstrip("/")
        headers = {"Accept": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self._client = httpx.AsyncClient(
            base_url=self.host,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "ObsidianRestSource":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _list_dir(self, dir_path: str) -> List[Tuple[str, bool]]:
        url = _vault_url(dir_path)
        if not url.endswith("/"):
            url += "/"
        try:
            response = await self._client.get(url)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, httpx.InvalidURL, RuntimeError, ValueError) as exc:
            raise SourceListingFailed(
                f"Failed to list {dir_path or '/'}: {exc}",
                details={"directory": dir_path, "host": self.host},
            ) from exc

        files = data.get("files") if isinstance(data, dict) else None
        if not isinstance(files, list):
            raise SourceListingFailed(
                f"Unexpected listing payload for {dir_path or '/'}",
                details={"directory": dir_path, "host": self.host},
            )

        prefix = dir_path if not dir_path or dir_path.endswith("/") else dir_path + "/"
        entries = []
        for entry in files:
            entry = str(entry)
            if entry.endswith("/"):
                entries.append((prefix + entry[:-1], True))
            else:
                entries.append((prefix + entry, False))
        return entries

    async def list_documents(self) -> List[str]:
        """Recursively list every markdown note in the vault."""
        notes: List[str] = []
        queue: List[str] = [""]
        while queue:
            directory = queue.pop(0)
            for path, is_directory in await self._list_dir(directory):
                if is_directory:
                    queue.append(path)
                elif path.endswith(MARKDOWN_SUFFIX):
                    notes.append(path)
        logger.debug(
            "Vault listing complete",
            extra={"host": self.host, "note_count": len(notes)},
        )
        return notes

    async def fetch_document(self, path: str) -> str:
        """Read a note's raw markdown by vault-relative path."""
        try:
            response = await self._client.get(
                _vault_url(path), headers={"Accept": "text/markdown"}
            )
            response.raise_for_status()
        except (httpx.HTTPError, httpx.InvalidURL, RuntimeError) as exc:
            raise DocumentFetchFailed(
                f"Failed to read {path}: {exc}", details={"note_path": path}
            ) from exc
        return response.text


class FilesystemSource:
    """Reads notes straight from a vault directory on disk."""

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root).expanduser().resolve()

    async def __aenter__(self) -> "FilesystemSource":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        return None

    async def list_documents(self) -> List[str]:
        if not self.root.is_dir():
            raise SourceListingFailed(
                f"Vault directory not found: {self.root}",
                details={"root": str(self.root)},
            )
        try:
            files = [
                file_path.relative_to(self.root).as_posix()
                for file_path in self.root.rglob(f"*{MARKDOWN_SUFFIX}")
                if file_path.is_file()
            ]
        except OSError as exc:
            raise SourceListingFailed(
                f"Failed to list {self.root}: {exc}", details={"root": str(self.root)}
            ) from exc
        return sorted(files)

    async def fetch_document(self, path: str) -> str:
        full_path = (self.root / path).resolve()
        if not full_path.is_relative_to(self.root):
            raise DocumentFetchFailed(
                f"Path escapes vault root: {path}", details={"note_path": path}
            )
        try:
            return full_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise DocumentFetchFailed(
                f"Failed to read {path}: {exc}", details={"note_path": path}
            ) from exc


__all__ = [
    "ContentSource",
    "ContentSourceError",
    "SourceUnavailable",
    "SourceListingFailed",
    "DocumentFetchFailed",
    "ObsidianRestSource",
    "FilesystemSource",
]
