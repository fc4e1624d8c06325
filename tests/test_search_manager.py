"""Tests for the search manager."""

import itertools

import pytest
from structlog.testing import capture_logs

from service_search.app.errors import AdapterFailure, SearchFailure
from service_search.app.hybrid import search_manager as search_manager_module
from service_search.app.hybrid.search_manager import SearchManager
from service_search.app.models import AdapterResult, EntityType, SearchMode, SearchQuery, SearchScope
from service_search.app.retrievers.cache_manager import ResponseCache
from service_search.app.retrievers.keyword import KeywordSearchAdapter
from tests.fakes import FakeOpenSearch, StubKeywordAdapter, StubSemanticAdapter, make_hit

POPULAR = ["data table", "dashboard", "form validation", "dark mode"]


def make_manager(keyword=None, semantic=None, **kwargs):
    keyword = keyword or StubKeywordAdapter(AdapterResult(hits=[make_hit("k1", 0.8)], total=1))
    semantic = semantic or StubSemanticAdapter(
        AdapterResult(hits=[make_hit("s1", 0.9, EntityType.RESOURCE)], total=1)
    )
    kwargs.setdefault("popular_queries", POPULAR)
    manager = SearchManager(keyword, semantic, ResponseCache(), **kwargs)
    return manager, keyword, semantic


@pytest.mark.asyncio
async def test_keyword_mode_only_calls_keyword_adapter():
    manager, keyword, semantic = make_manager()

    response = await manager.search(SearchQuery(query="button", mode=SearchMode.KEYWORD, limit=10, page=1))

    assert [hit.id for hit in response.hits] == ["k1"]
    assert response.hits[0].score == 0.8
    assert response.mode == SearchMode.KEYWORD
    assert response.page == 1
    assert keyword.calls[0]["limit"] == 10
    assert keyword.calls[0]["page"] == 1
    assert semantic.calls == []


@pytest.mark.asyncio
async def test_semantic_mode_only_calls_semantic_adapter():
    manager, keyword, semantic = make_manager()

    response = await manager.search(SearchQuery(query="button", mode=SearchMode.SEMANTIC, limit=10))

    assert [hit.id for hit in response.hits] == ["s1"]
    assert keyword.calls == []
    assert semantic.calls[0]["limit"] == 10


@pytest.mark.asyncio
async def test_hybrid_splits_limit_and_merges():
    keyword = StubKeywordAdapter(AdapterResult(
        hits=[make_hit("a", 0.9), make_hit("b", 0.5), make_hit("c", 0.3)], total=3,
    ))
    semantic = StubSemanticAdapter(AdapterResult(
        hits=[make_hit("b", 0.7, EntityType.RESOURCE), make_hit("d", 0.6, EntityType.RESOURCE)], total=2,
    ))
    manager, _, _ = make_manager(keyword, semantic)

    response = await manager.search(SearchQuery(query="button", limit=7, type=SearchScope.COMPONENT))

    assert keyword.calls[0]["limit"] == 4
    assert keyword.calls[0]["scope"] == SearchScope.COMPONENT
    assert semantic.calls[0]["limit"] == 4
    assert [hit.id for hit in response.hits] == ["a", "b", "d", "c"]
    assert response.total == 5
    assert response.total_pages == 1
    assert response.mode == SearchMode.HYBRID


@pytest.mark.asyncio
async def test_total_pages_rounds_up():
    keyword = StubKeywordAdapter(AdapterResult(hits=[make_hit("k1", 1.0)], total=41))
    manager, _, _ = make_manager(keyword)

    response = await manager.search(SearchQuery(query="x", mode=SearchMode.KEYWORD, limit=20))

    assert response.total_pages == 3


@pytest.mark.asyncio
async def test_repeat_query_is_served_from_cache():
    manager, keyword, semantic = make_manager()
    query = SearchQuery(query="button", limit=10)

    first = await manager.search(query)
    second = await manager.search(query)

    assert len(keyword.calls) == 1
    assert len(semantic.calls) == 1
    assert second.hits == first.hits
    assert second.total == first.total
    assert second.total_pages == first.total_pages
    assert second.mode == first.mode
    assert second is not first


@pytest.mark.asyncio
async def test_cache_bypass():
    manager, keyword, _ = make_manager()
    query = SearchQuery(query="button", mode=SearchMode.KEYWORD, use_cache=False)

    await manager.search(query)
    await manager.search(query)

    assert len(keyword.calls) == 2
    assert len(manager.cache) == 0


@pytest.mark.asyncio
async def test_cache_disabled_by_configuration():
    manager, keyword, _ = make_manager(cache_enabled=False)
    query = SearchQuery(query="button", mode=SearchMode.KEYWORD)

    await manager.search(query)
    await manager.search(query)

    assert len(keyword.calls) == 2


@pytest.mark.asyncio
async def test_clear_cache_forces_fresh_search():
    manager, keyword, _ = make_manager()
    query = SearchQuery(query="button", mode=SearchMode.KEYWORD)

    await manager.search(query)
    await manager.clear_cache()
    await manager.search(query)

    assert len(keyword.calls) == 2


@pytest.mark.asyncio
async def test_keyword_failure_fails_hybrid_search():
    keyword = StubKeywordAdapter(error=AdapterFailure("keyword", "index unavailable"))
    manager, _, _ = make_manager(keyword)

    with pytest.raises(SearchFailure) as exc_info:
        await manager.search(SearchQuery(query="button"))

    assert str(exc_info.value) == "Search failed"
    assert isinstance(exc_info.value.__cause__, AdapterFailure)
    assert len(manager.cache) == 0


@pytest.mark.asyncio
async def test_semantic_failure_fails_semantic_search():
    semantic = StubSemanticAdapter(error=AdapterFailure("embedding", "timeout"))
    manager, _, _ = make_manager(semantic=semantic)

    with pytest.raises(SearchFailure):
        await manager.search(SearchQuery(query="button", mode=SearchMode.SEMANTIC))


@pytest.mark.asyncio
async def test_find_similar():
    semantic = StubSemanticAdapter(similar=[make_hit("r2", 0.8, EntityType.RESOURCE)])
    manager, _, _ = make_manager(semantic=semantic)
    assert [hit.id for hit in await manager.find_similar("r1")] == ["r2"]

    failing, _, _ = make_manager(semantic=StubSemanticAdapter(error=AdapterFailure("vector_store", "down")))
    with pytest.raises(SearchFailure):
        await failing.find_similar("r1")


def test_popular_searches():
    manager, _, _ = make_manager()

    assert manager.popular_searches(limit=2) == ["data table", "dashboard"]
    assert manager.popular_searches() == POPULAR


@pytest.mark.asyncio
async def test_suggestions_come_from_the_index_and_are_cached():
    keyword = StubKeywordAdapter(suggestions=["dashboard", "dark mode", "data table"])
    manager, _, _ = make_manager(keyword)

    first = await manager.suggestions("da", limit=2)
    second = await manager.suggestions("da", limit=2)

    assert first == ["dashboard", "dark mode"]
    assert second == first
    assert keyword.suggest_calls == [("da", 2)]
    assert len(manager.cache) == 1


@pytest.mark.asyncio
async def test_short_suggestion_input_skips_the_index():
    keyword = StubKeywordAdapter(suggestions=["dashboard"])
    manager, _, _ = make_manager(keyword)

    assert await manager.suggestions("d") == []
    assert await manager.suggestions("  ") == []
    assert keyword.suggest_calls == []


@pytest.mark.asyncio
async def test_suggestions_without_cache():
    keyword = StubKeywordAdapter(suggestions=["dashboard"])
    manager, _, _ = make_manager(keyword, cache_enabled=False)

    await manager.suggestions("dash")
    await manager.suggestions("dash")

    assert len(keyword.suggest_calls) == 2


@pytest.mark.asyncio
async def test_suggestion_failure():
    manager, _, _ = make_manager(StubKeywordAdapter(error=AdapterFailure("keyword", "down")))

    with pytest.raises(SearchFailure):
        await manager.suggestions("dash")


@pytest.mark.asyncio
async def test_search_documentation():
    keyword = StubKeywordAdapter(docs=[make_hit("d1", 1.0, EntityType.DOC)])
    manager, _, _ = make_manager(keyword)

    hits = await manager.search_documentation("theme", category="styling", doc_type="guide", limit=3)

    assert [hit.id for hit in hits] == ["d1"]
    assert keyword.doc_calls == [("theme", "styling", "guide", 3)]

    failing, _, _ = make_manager(StubKeywordAdapter(error=AdapterFailure("keyword", "down")))
    with pytest.raises(SearchFailure):
        await failing.search_documentation("theme")


@pytest.mark.asyncio
async def test_semantic_failure_fails_hybrid_search():
    semantic = StubSemanticAdapter(error=AdapterFailure("vector_store", "connection refused"))
    manager, keyword, _ = make_manager(semantic=semantic)

    with pytest.raises(SearchFailure) as exc_info:
        await manager.search(SearchQuery(query="button", mode=SearchMode.HYBRID))

    assert str(exc_info.value) == "Search failed"
    assert exc_info.value.__cause__.source == "vector_store"
    assert len(keyword.calls) == 1
    assert len(manager.cache) == 0


@pytest.mark.asyncio
async def test_cache_hit_reports_its_own_processing_time(monkeypatch):
    ticks = (float(n * n) for n in itertools.count())
    monkeypatch.setattr(search_manager_module.time, "perf_counter", lambda: next(ticks))
    manager, keyword, _ = make_manager()
    query = SearchQuery(query="button", mode=SearchMode.KEYWORD)

    first = await manager.search(query)
    second = await manager.search(query)

    assert len(keyword.calls) == 1
    assert first.processing_time_ms == 1000.0
    assert second.processing_time_ms == 5000.0
    assert second.hits == first.hits


@pytest.mark.asyncio
async def test_cached_response_is_isolated_from_callers():
    manager, keyword, _ = make_manager()
    query = SearchQuery(query="button", mode=SearchMode.KEYWORD)

    first = await manager.search(query)
    first.hits[0].title = "changed"
    first.hits.append(make_hit("extra", 0.1))

    second = await manager.search(query)
    second.hits[0].score = 0.0

    third = await manager.search(query)

    assert len(keyword.calls) == 1
    assert [hit.id for hit in third.hits] == ["k1"]
    assert third.hits[0].title == "K1"
    assert third.hits[0].score == 0.8


@pytest.mark.asyncio
async def test_keyword_mode_returns_unique_ids_across_indices():
    r1 = {"_id": "r1", "_score": 3.0, "_source": {"name": "UI Kit"}}
    r2 = {"_id": "r2", "_score": 1.5, "_source": {"name": "Form Kit"}}
    client = FakeOpenSearch(responses={
        "components": {"hits": {"total": {"value": 2}, "max_score": 3.0, "hits": [r1, r2]}},
        "resources": {"hits": {"total": {"value": 1}, "max_score": 3.0, "hits": [r1]}},
    })
    keyword = KeywordSearchAdapter(client, {
        EntityType.COMPONENT: "components",
        EntityType.DOC: "docs",
        EntityType.RESOURCE: "resources",
    })
    manager, _, semantic = make_manager(keyword)

    response = await manager.search(SearchQuery(query="kit", mode=SearchMode.KEYWORD, limit=2))

    assert [hit.id for hit in response.hits] == ["r1", "r2"]
    assert response.total == 3
    assert semantic.calls == []


@pytest.mark.asyncio
async def test_health_check():
    manager, _, _ = make_manager()
    assert await manager.health_check() is True


@pytest.mark.asyncio
async def test_performance_log_reports_whether_the_cache_was_consulted():
    manager, _, _ = make_manager()

    with capture_logs() as logs:
        await manager.search(SearchQuery(query="button", mode=SearchMode.KEYWORD, use_cache=False))
        await manager.search(SearchQuery(query="button", mode=SearchMode.KEYWORD))
        await manager.search(SearchQuery(query="button", mode=SearchMode.KEYWORD))

    timings = [entry for entry in logs if entry.get("operation") == "search"]
    assert [entry["cache_miss"] for entry in timings] == [False, True]
