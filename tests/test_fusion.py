"""Tests for hybrid result merging."""

import pytest

from service_search.app.models import AdapterResult, EntityType
from service_search.app.ranking.fusion import KeywordBoostMerger
from tests.fakes import make_hit


def test_button_query_merge_order():
    keyword = AdapterResult(hits=[make_hit("a", 0.9), make_hit("b", 0.5), make_hit("c", 0.3)], total=3)
    semantic = AdapterResult(
        hits=[make_hit("b", 0.7, EntityType.RESOURCE), make_hit("d", 0.6, EntityType.RESOURCE)],
        total=2,
    )

    merged = KeywordBoostMerger(1.2).merge(keyword, semantic, limit=10)

    assert [hit.id for hit in merged.hits] == ["a", "b", "d", "c"]
    assert [hit.score for hit in merged.hits] == pytest.approx([1.08, 0.65, 0.6, 0.36])
    assert merged.total == 5


def test_overlapping_hit_keeps_keyword_fields():
    keyword = AdapterResult(hits=[make_hit("x", 0.5, title="Keyword title")], total=1)
    semantic = AdapterResult(hits=[make_hit("x", 0.8, EntityType.RESOURCE, title="Vector title")], total=1)

    merged = KeywordBoostMerger(1.2).merge(keyword, semantic, limit=5)

    assert len(merged.hits) == 1
    assert merged.hits[0].title == "Keyword title"
    assert merged.hits[0].type == EntityType.COMPONENT
    assert merged.hits[0].score == pytest.approx(0.7)
    assert merged.total == 2


def test_merge_does_not_mutate_inputs():
    keyword_hit = make_hit("a", 0.5)
    semantic_hit = make_hit("a", 0.9)

    KeywordBoostMerger(1.2).merge(
        AdapterResult(hits=[keyword_hit], total=1),
        AdapterResult(hits=[semantic_hit], total=1),
        limit=5,
    )

    assert keyword_hit.score == 0.5
    assert semantic_hit.score == 0.9


def test_ties_keep_insertion_order():
    keyword = AdapterResult(hits=[make_hit("k1", 0.5), make_hit("k2", 0.5)], total=2)
    semantic = AdapterResult(hits=[make_hit("s1", 0.6)], total=1)

    merged = KeywordBoostMerger(1.2).merge(keyword, semantic, limit=10)

    assert [hit.id for hit in merged.hits] == ["k1", "k2", "s1"]


def test_merge_truncates_to_limit_but_keeps_full_total():
    keyword = AdapterResult(hits=[make_hit(f"k{i}", 1.0 - i * 0.1) for i in range(5)], total=40)
    semantic = AdapterResult(hits=[make_hit(f"s{i}", 0.5) for i in range(5)], total=5)

    merged = KeywordBoostMerger(1.2).merge(keyword, semantic, limit=3)

    assert [hit.id for hit in merged.hits] == ["k0", "k1", "k2"]
    assert merged.total == 45


def test_empty_inputs():
    merged = KeywordBoostMerger().merge(AdapterResult(), AdapterResult(), limit=10)
    assert merged.hits == []
    assert merged.total == 0
