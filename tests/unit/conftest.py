"""Shared fixtures: an in-memory content source and the A/B/C sample vault."""

from __future__ import annotations

import asyncio
from typing import Callable, Dict, Iterable, List, Optional

import pytest

from graph_memory.services.content_source import DocumentFetchFailed
from graph_memory.services.graph import GraphService


class InMemorySource:
    """Content source backed by a dict; records fetch concurrency."""

    def __init__(
        self,
        notes: Dict[str, str],
        *,
        failing: Iterable[str] = (),
        delay: float = 0.0,
    ) -> None:
        self.notes = dict(notes)
        self.failing = set(failing)
        self.delay = delay
        self.list_error: Optional[Exception] = None
        self.list_calls = 0
        self.fetch_calls: List[str] = []
        self.max_in_flight = 0
        self.closed = False
        self._in_flight = 0

    async def list_documents(self) -> List[str]:
        self.list_calls += 1
        if self.list_error is not None:
            raise self.list_error
        return list(self.notes)

    async def fetch_document(self, path: str) -> str:
        self.fetch_calls.append(path)
        self._in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self._in_flight)
        try:
            await asyncio.sleep(self.delay)
            if path in self.failing:
                raise DocumentFetchFailed(f"Failed to read {path}", details={"note_path": path})
            return self.notes[path]
        finally:
            self._in_flight -= 1

    async def aclose(self) -> None:
        self.closed = True


SAMPLE_VAULT = {
    "A.md": "[[B]] [[C]] #x",
    "B.md": "[[A]]",
    "C.md": "",
}


@pytest.fixture
def make_source() -> Callable[..., InMemorySource]:
    return InMemorySource


@pytest.fixture
def sample_source() -> InMemorySource:
    return InMemorySource(SAMPLE_VAULT)


@pytest.fixture
def sample_service(sample_source: InMemorySource) -> GraphService:
    return GraphService(sample_source)
