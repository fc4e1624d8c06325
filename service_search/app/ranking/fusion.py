"""Result merging for hybrid search."""

from typing import Dict

import structlog

from ..models import AdapterResult, SearchHit

logger = structlog.get_logger("search_service.fusion")

DEFAULT_KEYWORD_BOOST = 1.2


class KeywordBoostMerger:
    """Linear-boost merge of keyword and semantic hits.

    1. Keyword hits go in first, keyed by id, with ``score * boost``.
    2. A semantic hit with an id already present replaces that score with the
       mean of the two; otherwise it is inserted unchanged.
    3. Hits are stable-sorted by score, descending, and cut to ``limit``.

    The reported total is the sum of both backends' totals, so a hit found by
    both is counted twice.
    """

    def __init__(self, keyword_boost: float = DEFAULT_KEYWORD_BOOST):
        self.keyword_boost = keyword_boost

    def merge(self, keyword: AdapterResult, semantic: AdapterResult, limit: int) -> AdapterResult:
        merged: Dict[str, SearchHit] = {}

        for hit in keyword.hits:
            merged[hit.id] = hit.model_copy(update={"score": hit.score * self.keyword_boost})

        overlap = 0
        for hit in semantic.hits:
            existing = merged.get(hit.id)
            if existing is None:
                merged[hit.id] = hit.model_copy()
            else:
                overlap += 1
                merged[hit.id] = existing.model_copy(update={"score": (existing.score + hit.score) / 2})

        ranked = sorted(merged.values(), key=lambda h: h.score, reverse=True)[:limit]

        logger.info(
            "Hybrid merge completed",
            keyword_count=len(keyword.hits),
            semantic_count=len(semantic.hits),
            overlap_count=overlap,
            merged_count=len(ranked),
            keyword_boost=self.keyword_boost,
        )

        return AdapterResult(hits=ranked, total=keyword.total + semantic.total)
