"""Semantic retriever: query embedding, vector similarity, catalog enrichment.

The vector index can still reference resources deleted from the catalog.
Such matches disappear at the enrichment step instead of failing the search;
the number dropped is logged and counted so index drift stays visible.
"""

from typing import Any, Dict, List, Optional

import structlog

from libs.common.metrics import MetricsCollector
from libs.vector_store.base import VectorMatch, VectorStore
from ..errors import AdapterFailure
from ..models import AdapterResult, EntityType, SearchFilters, SearchHit
from .catalog import CatalogRepository, resource_ids
from .embeddings import QueryEmbedder
from .filter_builder import build_vector_filter

logger = structlog.get_logger("search_service.semantic")


class SemanticSearchAdapter:
    """Nearest-neighbour search over resource embeddings."""

    def __init__(
        self,
        embedder: QueryEmbedder,
        vector_store: VectorStore,
        catalog: CatalogRepository,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.embedder = embedder
        self.vector_store = vector_store
        self.catalog = catalog
        self.metrics = metrics

    def _record(self, source: str, status: str = "ok") -> None:
        if self.metrics:
            self.metrics.record_adapter_call(source, status)

    async def _call(self, source: str, coro):
        try:
            result = await coro
        except Exception as e:
            self._record(source, "error")
            logger.error("Semantic backend call failed", source=source, error=str(e))
            raise AdapterFailure(source, str(e)) from e
        self._record(source)
        return result

    async def search(self, query: str, filters: SearchFilters, limit: int) -> AdapterResult:
        """Return up to ``limit`` enriched hits; total is the enriched count."""
        vector = await self._call("embedding", self.embedder.embed(query))
        matches = await self._call(
            "vector_store",
            self.vector_store.search_similar(vector, limit=limit, filters=build_vector_filter(filters)),
        )
        hits = await self._enrich(matches)

        logger.info(
            "Semantic search completed",
            matches_count=len(matches),
            results_count=len(hits),
        )
        return AdapterResult(hits=hits, total=len(hits))

    async def find_similar(self, resource_id: str, limit: int = 5) -> List[SearchHit]:
        """Resources closest to ``resource_id``, excluding itself.

        Returns an empty list when the resource has no stored vector.
        """
        vector = await self._call("vector_store", self.vector_store.get_embedding(resource_id))
        if vector is None:
            logger.info("No embedding stored for resource", resource_id=resource_id)
            return []

        matches = await self._call(
            "vector_store",
            self.vector_store.search_similar(vector, limit=limit + 1),
        )
        neighbours = [m for m in matches if m.entity_id != resource_id][:limit]
        return await self._enrich(neighbours)

    async def _enrich(self, matches: List[VectorMatch]) -> List[SearchHit]:
        if not matches:
            return []

        rows = await self._call("catalog", self.catalog.fetch_resources(resource_ids(matches)))

        hits = []
        for match in matches:
            row = rows.get(match.entity_id)
            if row is None:
                continue
            hits.append(hit_from_row(match, row))

        dropped = len(matches) - len(hits)
        if dropped:
            logger.warning(
                "Dropped vector matches without catalog rows",
                dropped=dropped,
                matches_count=len(matches),
            )
            if self.metrics:
                self.metrics.record_enrichment_dropped(dropped)

        return hits

    async def health_check(self) -> bool:
        return await self.vector_store.health_check() and await self.catalog.health_check()

    async def close(self) -> None:
        await self.embedder.close()
        await self.vector_store.close()
        await self.catalog.close()


def hit_from_row(match: VectorMatch, row: Dict[str, Any]) -> SearchHit:
    """Build a resource hit from a vector match and its catalog row."""
    frameworks = row.get("frameworks") or []
    return SearchHit(
        id=match.entity_id,
        type=EntityType.RESOURCE,
        title=row.get("name") or "",
        description=row.get("description") or "",
        url=row.get("demo_url"),
        framework=frameworks[0] if frameworks else None,
        category=row.get("category"),
        tags=list(row.get("tags") or []),
        score=match.score,
        metadata={**match.metadata, "resource": row},
    )
