"""Search indexer for catalog resources, documentation and embeddings.

Reads the catalog in keyset-paginated batches and writes them to the keyword
indices with the bulk helper, or through the embedding service into the
vector store. Every resource is indexed twice, once in the resource index and
once in the component index, so both scopes find it.

Failures are not swallowed: a failed batch stops the run and propagates to
the caller. Per-document bulk rejections are logged and counted as failed.
"""

import asyncio
from typing import Any, Dict, List, Optional, Sequence

import structlog
from opensearchpy import AsyncOpenSearch
from opensearchpy.helpers import async_bulk

from libs.vector_store.base import VectorStore
from ..models import DocPage, EntityType, IndexStats
from ..retrievers.catalog import CatalogRepository
from ..retrievers.embeddings import QueryEmbedder
from .documents import (
    CATALOG_MAPPING,
    DOC_MAPPING,
    doc_document,
    resource_document,
    vector_metadata,
    vector_text,
)

logger = structlog.get_logger("search_service.indexer")


class SearchIndexer:
    """Builds and maintains the keyword indices and the resource vectors."""

    def __init__(
        self,
        client: AsyncOpenSearch,
        index_names: Dict[EntityType, str],
        catalog: CatalogRepository,
        embedder: QueryEmbedder,
        vector_store: VectorStore,
        batch_size: int = 100,
    ):
        self.client = client
        self.index_names = index_names
        self.catalog = catalog
        self.embedder = embedder
        self.vector_store = vector_store
        self.batch_size = batch_size

    def _mapping(self, entity_type: EntityType) -> Dict[str, Any]:
        return DOC_MAPPING if entity_type is EntityType.DOC else CATALOG_MAPPING

    async def ensure_indices(self) -> List[str]:
        """Create missing indices; returns the names that were created."""
        created = []
        for entity_type, index_name in self.index_names.items():
            if await self.client.indices.exists(index=index_name):
                continue
            await self.client.indices.create(index=index_name, body=self._mapping(entity_type))
            logger.info("OpenSearch index created", index_name=index_name)
            created.append(index_name)
        return created

    async def _bulk(self, actions: List[Dict[str, Any]]) -> int:
        if not actions:
            return 0

        success_count, failed_items = await async_bulk(self.client, actions, raise_on_error=False)
        if failed_items:
            logger.warning(
                "Some documents failed to index",
                failed_count=len(failed_items),
                total_count=len(actions),
            )
        return success_count

    async def index_resources(self) -> int:
        """Index every live catalog resource into the resource and component indices.

        Returns the number of resources processed.
        """
        targets = [
            self.index_names[EntityType.RESOURCE],
            self.index_names[EntityType.COMPONENT],
        ]
        processed = 0
        indexed = 0

        async for batch in self.catalog.iter_resources(self.batch_size):
            actions = []
            for row in batch:
                document = resource_document(row)
                for index_name in targets:
                    actions.append({"_index": index_name, "_id": row["id"], "_source": document})

            indexed += await self._bulk(actions)
            processed += len(batch)
            logger.info("Indexed resource batch", batch_size=len(batch), processed=processed)

        logger.info("Resource indexing completed", resources=processed, documents=indexed, indices=targets)
        return processed

    async def index_documentation(self, pages: Sequence[DocPage]) -> int:
        """Index documentation pages; returns the number accepted by the index."""
        index_name = self.index_names[EntityType.DOC]
        actions = [
            {"_index": index_name, "_id": page.id, "_source": doc_document(page)}
            for page in pages
        ]
        indexed = await self._bulk(actions)
        logger.info("Documentation indexing completed", pages=len(pages), indexed=indexed)
        return indexed

    async def index_embeddings(self) -> int:
        """Embed every live catalog resource and upsert the vectors."""
        stored = 0
        async for batch in self.catalog.iter_resources(self.batch_size):
            texts = [vector_text(row) for row in batch]
            vectors = await self.embedder.embed_many(texts)
            items = [
                (row["id"], vector, vector_metadata(row, text))
                for row, text, vector in zip(batch, texts, vectors)
            ]
            stored += await self.vector_store.upsert_embeddings(items)
            logger.info("Embedded resource batch", batch_size=len(batch), stored=stored)

        logger.info("Embedding indexing completed", stored=stored)
        return stored

    async def _count(self, entity_type: EntityType) -> int:
        response = await self.client.count(index=self.index_names[entity_type])
        return int(response.get("count", 0))

    async def index_stats(self) -> IndexStats:
        components, documentation, resources, vectors = await asyncio.gather(
            self._count(EntityType.COMPONENT),
            self._count(EntityType.DOC),
            self._count(EntityType.RESOURCE),
            self.vector_store.count_embeddings(),
        )
        return IndexStats(
            components=components,
            documentation=documentation,
            resources=resources,
            vectors=vectors,
        )

    async def clear_indices(self) -> None:
        """Delete every document from the keyword indices, keeping their mappings."""
        for index_name in self.index_names.values():
            await self.client.delete_by_query(
                index=index_name,
                body={"query": {"match_all": {}}},
                refresh=True,
            )
            logger.info("OpenSearch index cleared", index_name=index_name)


def create_search_indexer(search_manager, batch_size: int = 100) -> SearchIndexer:
    """Build an indexer sharing the clients of an already-wired ``SearchManager``."""
    keyword_adapter = search_manager.keyword_adapter
    semantic_adapter = search_manager.semantic_adapter
    return SearchIndexer(
        client=keyword_adapter.client,
        index_names=keyword_adapter.index_names,
        catalog=semantic_adapter.catalog,
        embedder=semantic_adapter.embedder,
        vector_store=semantic_adapter.vector_store,
        batch_size=batch_size,
    )
