"""Search manager for hybrid keyword and semantic search.

Coordinates the keyword retriever (OpenSearch full-text), the semantic
retriever (pgvector similarity enriched from the catalog) and the response
cache, and merges hybrid results with a fixed keyword boost.

Failure policy: nothing is retried and nothing degrades to a single backend.
Any error during a search is logged and re-raised as ``SearchFailure``.
"""

import asyncio
import math
import time
from typing import List, Optional

import structlog
from opensearchpy import AsyncOpenSearch

from libs.common.config import SearchConfig
from libs.common.logging import log_performance
from libs.common.metrics import MetricsCollector
from libs.common.tracing import SearchTracer
from libs.vector_store.pgvector import PgVectorStore
from ..errors import SearchFailure
from ..models import AdapterResult, EntityType, SearchHit, SearchMode, SearchQuery, SearchResponse
from ..ranking.fusion import KeywordBoostMerger
from ..retrievers.cache_manager import build_cache_key, build_suggestion_key, create_response_cache
from ..retrievers.catalog import CatalogRepository
from ..retrievers.embeddings import QueryEmbedder
from ..retrievers.keyword import KeywordSearchAdapter
from ..retrievers.semantic import SemanticSearchAdapter

logger = structlog.get_logger("search_service.search_manager")

MIN_SUGGESTION_LENGTH = 2
SUGGESTION_TTL = 300


class SearchManager:
    """Manages hybrid search operations.

    Responsibilities
    - Serve cached responses while they are live
    - Fan out to the keyword and semantic retrievers per search mode
    - Merge, page and cache the response
    """

    def __init__(
        self,
        keyword_adapter: KeywordSearchAdapter,
        semantic_adapter: SemanticSearchAdapter,
        cache,
        merger: Optional[KeywordBoostMerger] = None,
        cache_enabled: bool = True,
        cache_ttl: int = 300,
        popular_queries: Optional[List[str]] = None,
        metrics: Optional[MetricsCollector] = None,
        tracer: Optional[SearchTracer] = None,
    ):
        """Construct a search manager from already-built collaborators.

        Parameters
        - keyword_adapter / semantic_adapter: the two retrievers
        - cache: a response cache (``ResponseCache`` or ``RedisResponseCache``)
        - merger: hybrid merge policy, defaults to a 1.2 keyword boost
        - cache_enabled / cache_ttl: response caching switch and TTL seconds
        - popular_queries: curated list served by ``popular_searches``
        """
        self.keyword_adapter = keyword_adapter
        self.semantic_adapter = semantic_adapter
        self.cache = cache
        self.merger = merger or KeywordBoostMerger()
        self.cache_enabled = cache_enabled
        self.cache_ttl = cache_ttl
        self.popular_queries = list(popular_queries or [])
        self.metrics = metrics
        self.tracer = tracer or SearchTracer("search-service")

    async def search(self, query: SearchQuery) -> SearchResponse:
        """Run one search and return a fresh ``SearchResponse``.

        Raises ``SearchFailure`` for any error, whatever its origin.
        """
        start_time = time.perf_counter()
        use_cache = self.cache_enabled and query.use_cache

        try:
            cache_key = build_cache_key(query)

            if use_cache:
                cached = await self.cache.get(cache_key)
                if cached is not None:
                    if self.metrics:
                        self.metrics.record_cache_hit(self.cache.backend)
                    logger.info("Search cache hit", query=query.query[:50], mode=query.mode.value)
                    return cached.model_copy(
                        update={"processing_time_ms": _elapsed_ms(start_time)},
                        deep=True,
                    )
                if self.metrics:
                    self.metrics.record_cache_miss(self.cache.backend)

            with self.tracer.trace_search_query(query.mode.value, query.limit, scope=query.type.value):
                result = await self._execute(query)

            response = SearchResponse(
                hits=result.hits,
                total=result.total,
                page=query.page,
                total_pages=math.ceil(result.total / query.limit),
                processing_time_ms=_elapsed_ms(start_time),
                mode=query.mode,
            )

            if use_cache:
                await self.cache.set(cache_key, response.model_copy(deep=True), self.cache_ttl)

        except Exception as e:
            if self.metrics:
                self.metrics.record_search(query.mode.value, time.perf_counter() - start_time, "error")
            logger.error("Search failed", query=query.query, mode=query.mode.value, error=str(e))
            raise SearchFailure("Search failed") from e

        if self.metrics:
            self.metrics.record_search(query.mode.value, time.perf_counter() - start_time)
        log_performance(
            "search",
            response.processing_time_ms,
            mode=query.mode.value,
            results_count=len(response.hits),
            total=response.total,
            cache_miss=use_cache,
        )
        return response

    async def _execute(self, query: SearchQuery) -> AdapterResult:
        if query.mode is SearchMode.KEYWORD:
            return await self.keyword_adapter.search(
                query.query, query.type, query.filters, query.limit, query.page
            )

        if query.mode is SearchMode.SEMANTIC:
            return await self.semantic_adapter.search(query.query, query.filters, query.limit)

        # Hybrid: each backend fills half a page; either failing fails the search.
        half = math.ceil(query.limit / 2)
        keyword, semantic = await asyncio.gather(
            self.keyword_adapter.search(query.query, query.type, query.filters, half, query.page),
            self.semantic_adapter.search(query.query, query.filters, half),
        )
        return self.merger.merge(keyword, semantic, query.limit)

    async def find_similar(self, resource_id: str, limit: int = 5) -> List[SearchHit]:
        """Resources most similar to ``resource_id``."""
        try:
            return await self.semantic_adapter.find_similar(resource_id, limit)
        except Exception as e:
            logger.error("Similar resource lookup failed", resource_id=resource_id, error=str(e))
            raise SearchFailure("Similar resource lookup failed") from e

    def popular_searches(self, limit: int = 10) -> List[str]:
        return self.popular_queries[:limit]

    async def suggestions(self, text: str, limit: int = 5) -> List[str]:
        """Component names and tags completing ``text``, cached for five minutes.

        Inputs shorter than two characters get no suggestions and never reach
        the index.
        """
        text = text.strip()
        if len(text) < MIN_SUGGESTION_LENGTH:
            return []

        cache_key = build_suggestion_key(text, limit)
        try:
            if self.cache_enabled:
                cached = await self.cache.get_value(cache_key)
                if cached is not None:
                    return list(cached)

            suggestions = await self.keyword_adapter.suggest(text, limit)

            if self.cache_enabled:
                await self.cache.set_value(cache_key, suggestions, SUGGESTION_TTL)
        except Exception as e:
            logger.error("Suggestion lookup failed", text=text, error=str(e))
            raise SearchFailure("Suggestion lookup failed") from e

        return suggestions

    async def search_documentation(
        self,
        query: str,
        category: Optional[str] = None,
        doc_type: Optional[str] = None,
        limit: int = 10,
    ) -> List[SearchHit]:
        try:
            return await self.keyword_adapter.search_documentation(query, category, doc_type, limit)
        except Exception as e:
            logger.error("Documentation search failed", query=query, error=str(e))
            raise SearchFailure("Documentation search failed") from e

    async def clear_cache(self) -> None:
        await self.cache.clear()

    async def health_check(self) -> bool:
        """Check if both retrievers can reach their backends."""
        keyword_ok, semantic_ok = await asyncio.gather(
            self.keyword_adapter.health_check(),
            self.semantic_adapter.health_check(),
        )
        return keyword_ok and semantic_ok

    async def cleanup(self) -> None:
        """Close backend clients and the cache."""
        try:
            await self.keyword_adapter.close()
            await self.semantic_adapter.close()
            await self.cache.close()
            logger.info("Search manager cleanup completed")
        except Exception as e:
            logger.error("Search manager cleanup failed", error=str(e))


def _elapsed_ms(start_time: float) -> float:
    return (time.perf_counter() - start_time) * 1000


def create_search_manager(
    config: SearchConfig,
    metrics: Optional[MetricsCollector] = None,
    tracer: Optional[SearchTracer] = None,
) -> SearchManager:
    """Build every backend client from ``config`` and wire a ``SearchManager``.

    Called once at process startup; the result is shared by all requests.
    """
    auth = None
    if config.ml_opensearch_username and config.ml_opensearch_password:
        auth = (config.ml_opensearch_username, config.ml_opensearch_password)
    hosts = config.opensearch_host_list()
    opensearch_client = AsyncOpenSearch(
        hosts=hosts,
        http_auth=auth,
        verify_certs=config.ml_opensearch_verify_certs,
        use_ssl=hosts[0].startswith("https") if hosts else False,
    )

    keyword_adapter = KeywordSearchAdapter(
        opensearch_client,
        index_names={
            EntityType.COMPONENT: config.ml_opensearch_component_index,
            EntityType.DOC: config.ml_opensearch_doc_index,
            EntityType.RESOURCE: config.ml_opensearch_resource_index,
        },
        metrics=metrics,
    )

    semantic_adapter = SemanticSearchAdapter(
        embedder=QueryEmbedder(config.ml_embedding_service_url, model=config.ml_embedding_model),
        vector_store=PgVectorStore(
            dsn=config.ml_catalog_db_dsn,
            table=config.ml_vector_table,
            pool_size=config.ml_catalog_pool_size,
            vector_dimension=config.ml_vector_dimension,
        ),
        catalog=CatalogRepository(config.ml_catalog_db_dsn, pool_size=config.ml_catalog_pool_size),
        metrics=metrics,
    )

    return SearchManager(
        keyword_adapter=keyword_adapter,
        semantic_adapter=semantic_adapter,
        cache=create_response_cache(config.ml_search_cache_backend, config.ml_redis_url),
        merger=KeywordBoostMerger(config.ml_search_keyword_boost),
        cache_enabled=config.ml_search_cache_enabled,
        cache_ttl=config.ml_search_cache_ttl,
        popular_queries=config.ml_search_popular_queries,
        metrics=metrics,
        tracer=tracer,
    )
