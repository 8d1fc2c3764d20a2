import asyncio

import pytest

from graph_memory.services.content_source import SourceListingFailed, SourceUnavailable
from graph_memory.services.graph import EPOCH, GraphService, RebuildTimeout
from graph_memory.services.queries import GraphError

from conftest import SAMPLE_VAULT, InMemorySource


class ExplodingSource(InMemorySource):
    """Raises an unexpected error for one note."""

    async def fetch_document(self, path: str) -> str:
        if path == "B.md":
            raise RuntimeError("socket closed")
        return await super().fetch_document(path)


def test_starts_with_empty_snapshot(sample_service):
    snapshot = sample_service.snapshot

    assert dict(snapshot.nodes) == {}
    assert snapshot.last_refresh == EPOCH
    assert sample_service.rebuilding is False


def test_rejects_non_positive_batch_size(sample_source):
    with pytest.raises(ValueError):
        GraphService(sample_source, batch_size=0)


@pytest.mark.asyncio
async def test_rebuild_publishes_snapshot(sample_service, sample_source):
    snapshot = await sample_service.rebuild()

    assert sample_service.snapshot is snapshot
    assert set(snapshot.nodes) == {"A", "B", "C"}
    assert snapshot.nodes["A"].tags == {"x"}
    assert snapshot.nodes["C"].has_content is False
    assert snapshot.last_refresh > EPOCH
    assert sample_source.list_calls == 1
    assert sorted(sample_source.fetch_calls) == ["A.md", "B.md", "C.md"]


@pytest.mark.asyncio
async def test_service_queries_use_published_snapshot(sample_service):
    await sample_service.rebuild()

    assert [note.name for note in sample_service.query_related("A")] == ["B", "C"]
    assert sample_service.find_path("B", "C") == ["B", "A", "C"]
    assert sample_service.get_hubs(1)[0].name == "A"
    assert sample_service.get_orphans() == []
    assert sample_service.get_clusters("folder")[0].key == "(root)"
    assert sample_service.get_stats().total_links == 3
    assert sample_service.resolve_name("a") == "A"


@pytest.mark.asyncio
async def test_listing_failure_keeps_previous_snapshot(sample_service, sample_source):
    previous = await sample_service.rebuild()
    sample_source.list_error = SourceListingFailed("vault offline")

    with pytest.raises(SourceUnavailable):
        await sample_service.rebuild()

    assert sample_service.snapshot is previous
    assert sample_service.rebuilding is False


@pytest.mark.asyncio
async def test_listing_failure_before_first_build(sample_service, sample_source):
    sample_source.list_error = SourceListingFailed("vault offline")

    with pytest.raises(SourceListingFailed):
        await sample_service.rebuild()

    assert sample_service.snapshot.last_refresh == EPOCH


@pytest.mark.asyncio
async def test_failed_fetch_becomes_empty_node(make_source):
    source = make_source(SAMPLE_VAULT, failing=["A.md"])
    service = GraphService(source)

    snapshot = await service.rebuild()

    assert snapshot.nodes["A"].has_content is False
    assert snapshot.nodes["A"].tags == frozenset()
    assert snapshot.edges["A"] == frozenset()
    assert snapshot.edges["B"] == {"A"}


@pytest.mark.asyncio
async def test_unexpected_fetch_error_is_tolerated():
    service = GraphService(ExplodingSource(SAMPLE_VAULT))

    snapshot = await service.rebuild()

    assert snapshot.edges["B"] == frozenset()
    assert snapshot.edges["A"] == {"B", "C"}


@pytest.mark.asyncio
async def test_timeout_keeps_previous_snapshot(make_source):
    source = make_source(SAMPLE_VAULT, delay=0.2)
    service = GraphService(source, rebuild_timeout=0.05)

    with pytest.raises(RebuildTimeout) as exc_info:
        await service.rebuild()

    assert isinstance(exc_info.value, GraphError)
    assert service.snapshot.last_refresh == EPOCH
    assert dict(service.snapshot.nodes) == {}
    assert service.rebuilding is False


@pytest.mark.asyncio
async def test_rebuild_is_idempotent(sample_service):
    first = await sample_service.rebuild()
    second = await sample_service.rebuild()

    assert first is not second
    assert dict(first.nodes) == dict(second.nodes)
    assert dict(first.edges) == dict(second.edges)
    assert dict(first.reverse_edges) == dict(second.reverse_edges)


@pytest.mark.asyncio
async def test_fetches_are_bounded_by_batch_size(make_source):
    notes = {f"note-{i}.md": f"[[note-{i + 1}]]" for i in range(45)}
    source = make_source(notes, delay=0.001)
    service = GraphService(source, batch_size=20)

    snapshot = await service.rebuild()

    assert len(snapshot.nodes) == 45
    assert source.max_in_flight <= 20
    assert len(source.fetch_calls) == 45


@pytest.mark.asyncio
async def test_concurrent_rebuilds_are_serialized(make_source):
    notes = {f"{name}.md": "" for name in "ABCD"}
    source = make_source(notes, delay=0.01)
    service = GraphService(source, batch_size=2)

    first, second = await asyncio.gather(service.rebuild(), service.rebuild())

    assert source.max_in_flight <= 2
    assert len(source.fetch_calls) == 8
    assert source.list_calls == 2
    assert service.snapshot is second
    assert set(first.nodes) == set(second.nodes)


@pytest.mark.asyncio
async def test_queries_during_rebuild_see_previous_snapshot(sample_service, sample_source):
    previous = await sample_service.rebuild()
    sample_source.notes = {"A.md": "", "B.md": "", "C.md": ""}
    sample_source.delay = 0.05

    task = asyncio.create_task(sample_service.rebuild())
    await asyncio.sleep(0.01)

    assert sample_service.rebuilding is True
    assert sample_service.snapshot is previous
    assert [note.name for note in sample_service.query_related("A")] == ["B", "C"]
    assert sample_service.get_stats().total_links == 3

    await task

    assert sample_service.query_related("A") == []
    assert sample_service.get_stats().total_links == 0


@pytest.mark.asyncio
async def test_source_timeout_is_not_reported_as_rebuild_timeout(sample_source):
    sample_source.list_error = TimeoutError("read timed out")
    service = GraphService(sample_source, rebuild_timeout=5)

    with pytest.raises(TimeoutError) as exc_info:
        await service.rebuild()

    assert not isinstance(exc_info.value, RebuildTimeout)
    assert str(exc_info.value) == "read timed out"
    assert service.snapshot.last_refresh == EPOCH
