"""Keyword retriever backed by OpenSearch full-text indices.

Each entity type lives in its own index. A keyword search issues one query
per entity type in scope, concurrently, and fails as a whole if any of them
fails.
"""

import asyncio
from typing import Any, Dict, List, Optional

import structlog
from opensearchpy import AsyncOpenSearch

from libs.common.metrics import MetricsCollector
from libs.filters import Eq, FilterExpr, all_of
from libs.filters.opensearch import filter_context
from ..errors import AdapterFailure
from ..models import AdapterResult, EntityType, Highlights, SearchFilters, SearchHit, SearchScope
from .filter_builder import build_catalog_filter

logger = structlog.get_logger("search_service.keyword")

SEARCH_FIELDS = ["name^3", "title^3", "description^2", "tags^2", "content"]
SUGGEST_FIELDS = ["name", "tags"]

HIGHLIGHT = {
    "pre_tags": ["<em>"],
    "post_tags": ["</em>"],
    "fields": {
        "name": {"number_of_fragments": 0},
        "title": {"number_of_fragments": 0},
        "description": {"number_of_fragments": 0},
        "content": {"fragment_size": 150, "number_of_fragments": 1},
    },
}


class KeywordSearchAdapter:
    """Full-text search over the per-entity-type OpenSearch indices."""

    def __init__(
        self,
        client: AsyncOpenSearch,
        index_names: Dict[EntityType, str],
        metrics: Optional[MetricsCollector] = None,
    ):
        self.client = client
        self.index_names = index_names
        self.metrics = metrics

    def build_request(
        self,
        query: str,
        entity_type: EntityType,
        filter_expr: Optional[FilterExpr],
        limit: int,
        page: int,
    ) -> Dict[str, Any]:
        """Query body for one index.

        Docs carry no catalog fields, so their index is searched unfiltered.
        """
        if entity_type is EntityType.DOC:
            filter_expr = None
        return _query_body(query, filter_expr, limit, page)

    async def _query(self, index: str, body: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = await self.client.search(index=index, body=body)
        except Exception as e:
            if self.metrics:
                self.metrics.record_adapter_call("keyword", "error")
            logger.error("Keyword index query failed", index=index, error=str(e))
            raise AdapterFailure("keyword", f"index {index} query failed: {e}") from e

        if self.metrics:
            self.metrics.record_adapter_call("keyword")
        return response

    async def _search_index(
        self,
        query: str,
        entity_type: EntityType,
        filter_expr: Optional[FilterExpr],
        limit: int,
        page: int,
    ) -> AdapterResult:
        body = self.build_request(query, entity_type, filter_expr, limit, page)
        response = await self._query(self.index_names[entity_type], body)
        return parse_response(response, entity_type)

    async def search(
        self,
        query: str,
        scope: SearchScope,
        filters: SearchFilters,
        limit: int,
        page: int = 0,
    ) -> AdapterResult:
        """Search every index in ``scope`` and concatenate hits in type order.

        Resources are indexed as components too, so an id can come back from
        more than one index; only its first occurrence is kept. The total is
        the sum of the per-index totals.
        """
        filter_expr = build_catalog_filter(filters)
        entity_types = scope.entity_types()

        per_type = await asyncio.gather(*[
            self._search_index(query, entity_type, filter_expr, limit, page)
            for entity_type in entity_types
        ])

        hits: List[SearchHit] = []
        seen = set()
        total = 0
        for result in per_type:
            total += result.total
            for hit in result.hits:
                if hit.id in seen:
                    continue
                seen.add(hit.id)
                hits.append(hit)

        logger.info(
            "Keyword search completed",
            indices=[self.index_names[t] for t in entity_types],
            results_count=len(hits),
            total=total,
        )
        return AdapterResult(hits=hits, total=total)

    async def search_documentation(
        self,
        query: str,
        category: Optional[str] = None,
        doc_type: Optional[str] = None,
        limit: int = 10,
    ) -> List[SearchHit]:
        """Search the docs index alone, optionally narrowed by category and page type."""
        filter_expr = all_of([
            Eq("category", category) if category else None,
            Eq("type", doc_type) if doc_type else None,
        ])
        response = await self._query(
            self.index_names[EntityType.DOC],
            _query_body(query, filter_expr, limit, 0),
        )
        return parse_response(response, EntityType.DOC).hits

    async def suggest(self, text: str, limit: int = 5) -> List[str]:
        """Lower-cased component names and tags matching ``text`` as a prefix.

        Names come before the tags of the same hit; duplicates are dropped.
        """
        body = {
            "size": limit,
            "_source": ["name", "tags"],
            "query": {
                "multi_match": {
                    "query": text,
                    "type": "bool_prefix",
                    "fields": SUGGEST_FIELDS,
                }
            },
        }
        response = await self._query(self.index_names[EntityType.COMPONENT], body)

        suggestions: List[str] = []
        for raw in response.get("hits", {}).get("hits", []):
            source = raw.get("_source", {})
            candidates = [source.get("name")] + list(source.get("tags") or [])
            for candidate in candidates:
                if not candidate:
                    continue
                value = candidate.lower()
                if value not in suggestions:
                    suggestions.append(value)

        return suggestions[:limit]

    async def health_check(self) -> bool:
        try:
            return bool(await self.client.ping())
        except Exception as e:
            logger.error("OpenSearch health check failed", error=str(e))
            return False

    async def close(self) -> None:
        await self.client.close()


def _query_body(
    query: str,
    filter_expr: Optional[FilterExpr],
    limit: int,
    page: int,
) -> Dict[str, Any]:
    bool_query: Dict[str, Any] = {
        "must": [
            {
                "multi_match": {
                    "query": query,
                    "fields": SEARCH_FIELDS,
                    "type": "best_fields",
                }
            }
        ]
    }
    clauses = filter_context(filter_expr)
    if clauses:
        bool_query["filter"] = clauses

    return {
        "from": page * limit,
        "size": limit,
        "track_total_hits": True,
        "query": {"bool": bool_query},
        "highlight": HIGHLIGHT,
    }


def _first(fragments: Any) -> Optional[str]:
    if isinstance(fragments, list):
        return fragments[0] if fragments else None
    return fragments


def _reported_total(hits_section: Dict[str, Any]) -> int:
    total = hits_section.get("total", 0)
    if isinstance(total, dict):
        return int(total.get("value", 0))
    return int(total or 0)


def parse_response(response: Dict[str, Any], entity_type: EntityType) -> AdapterResult:
    """Turn one OpenSearch response into hits.

    Scores are divided by the response's ``max_score`` so keyword scores land
    in ``0..1`` like vector similarities.
    """
    hits_section = response.get("hits", {})
    max_score = hits_section.get("max_score") or 0.0

    hits = []
    for raw in hits_section.get("hits", []):
        source = raw.get("_source", {})
        highlight = raw.get("highlight", {})
        raw_score = raw.get("_score") or 0.0
        score = raw_score / max_score if max_score > 0 else 1.0

        description = source.get("description")
        if not description:
            description = (source.get("content") or "")[:200]

        framework = source.get("framework")
        if isinstance(framework, list):
            framework = framework[0] if framework else None

        hits.append(SearchHit(
            id=str(raw["_id"]),
            type=entity_type,
            title=source.get("name") or source.get("title") or "",
            description=description,
            url=source.get("url") or source.get("demo_url"),
            framework=framework,
            category=source.get("category"),
            tags=list(source.get("tags") or []),
            score=score,
            highlights=Highlights(
                title=_first(highlight.get("name")) or _first(highlight.get("title")),
                description=_first(highlight.get("description")),
                content=_first(highlight.get("content")),
            ),
            metadata=source,
        ))

    return AdapterResult(hits=hits, total=_reported_total(hits_section))
