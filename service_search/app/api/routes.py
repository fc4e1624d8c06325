"""API routes for search service."""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, Request
from pydantic import BaseModel, Field, ValidationError
import structlog

from ..errors import SearchFailure
from ..hybrid.search_manager import SearchManager
from ..indexing.indexer import SearchIndexer
from ..models import (
    DocPage,
    DocType,
    IndexStats,
    SearchFilters,
    SearchHit,
    SearchMode,
    SearchQuery,
    SearchResponse,
    SearchScope,
)

logger = structlog.get_logger("search_service.api")

router = APIRouter()


class SuggestionsResponse(BaseModel):
    """Response model for the suggestions endpoint."""
    suggestions: List[str] = Field(..., description="Suggested queries")


class PopularSearchesResponse(BaseModel):
    """Response model for the popular searches endpoint."""
    queries: List[str] = Field(..., description="Popular queries")


class DocSearchResponse(BaseModel):
    """Response model for the documentation search endpoint."""
    results: List[SearchHit] = Field(..., description="Matching documentation pages")


class IndexResponse(BaseModel):
    """Response model for indexing operations."""
    status: str = Field(..., description="Operation status")
    indexed: int = Field(..., description="Number of entities processed")


class SimilarResponse(BaseModel):
    """Response model for the similar components endpoint."""
    resource_id: str = Field(..., description="Reference resource")
    results: List[SearchHit] = Field(..., description="Similar resources, closest first")


def get_search_manager(request: Request) -> SearchManager:
    """Get search manager from application state."""
    return request.app.state.search_manager


def get_indexer(request: Request) -> SearchIndexer:
    """Get search indexer from application state."""
    return request.app.state.indexer


@router.get("/search/unified", response_model=SearchResponse)
async def unified_search(
    q: str = Query(..., min_length=1, description="Search query"),
    type: SearchScope = Query(SearchScope.ALL, description="Entity type scope"),
    mode: SearchMode = Query(SearchMode.HYBRID, description="keyword, semantic or hybrid"),
    limit: int = Query(20, ge=1, le=100, description="Page size"),
    page: int = Query(0, ge=0, description="Zero-based page number"),
    framework: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    tag: Optional[List[str]] = Query(None, description="Repeatable tag filter"),
    free: Optional[bool] = Query(None),
    premium: Optional[bool] = Query(None),
    typescript: Optional[bool] = Query(None),
    cache: bool = Query(True, description="Serve from and store in the response cache"),
    search_manager: SearchManager = Depends(get_search_manager),
):
    """Perform keyword, semantic or hybrid search."""
    try:
        query = SearchQuery(
            query=q,
            type=type,
            mode=mode,
            limit=limit,
            page=page,
            use_cache=cache,
            filters=SearchFilters(
                framework=framework,
                category=category,
                tags=tag or (),
                is_free=free,
                is_premium=premium,
                has_typescript=typescript,
            ),
        )
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False))

    try:
        return await search_manager.search(query)
    except SearchFailure as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/search/suggestions", response_model=SuggestionsResponse)
async def search_suggestions(
    q: str = Query("", description="Partial query"),
    limit: int = Query(5, ge=1, le=20),
    search_manager: SearchManager = Depends(get_search_manager),
):
    """Suggest component names and tags completing the partial input."""
    try:
        suggestions = await search_manager.suggestions(q, limit)
    except SearchFailure as e:
        raise HTTPException(status_code=500, detail=str(e))
    return SuggestionsResponse(suggestions=suggestions)


@router.get("/search/docs", response_model=DocSearchResponse)
async def search_documentation(
    q: str = Query(..., min_length=1, description="Search query"),
    category: Optional[str] = Query(None),
    type: Optional[DocType] = Query(None, description="Documentation page type"),
    limit: int = Query(10, ge=1, le=100),
    search_manager: SearchManager = Depends(get_search_manager),
):
    """Search documentation pages, optionally by category and page type."""
    try:
        results = await search_manager.search_documentation(
            q, category, type.value if type else None, limit
        )
    except SearchFailure as e:
        raise HTTPException(status_code=500, detail=str(e))
    return DocSearchResponse(results=results)


@router.get("/search/popular", response_model=PopularSearchesResponse)
async def popular_searches(
    limit: int = Query(10, ge=1, le=50),
    search_manager: SearchManager = Depends(get_search_manager),
):
    """Curated popular searches."""
    return PopularSearchesResponse(queries=search_manager.popular_searches(limit))


@router.get("/components/{resource_id}/similar", response_model=SimilarResponse)
async def similar_components(
    resource_id: str = Path(..., min_length=1),
    limit: int = Query(5, ge=1, le=50),
    search_manager: SearchManager = Depends(get_search_manager),
):
    """Resources most similar to the given one."""
    try:
        results = await search_manager.find_similar(resource_id, limit)
    except SearchFailure as e:
        raise HTTPException(status_code=500, detail=str(e))
    return SimilarResponse(resource_id=resource_id, results=results)


@router.delete("/search/cache")
async def clear_search_cache(
    search_manager: SearchManager = Depends(get_search_manager),
) -> Dict[str, Any]:
    """Drop every cached search response."""
    await search_manager.clear_cache()
    logger.info("Search cache cleared via API")
    return {"status": "success", "message": "Search cache cleared"}


@router.post("/index/setup")
async def setup_indices(
    indexer: SearchIndexer = Depends(get_indexer),
) -> Dict[str, Any]:
    """Create any missing keyword index with its mapping."""
    try:
        created = await indexer.ensure_indices()
        return {"status": "success", "created": created}
    except Exception as e:
        logger.error("Index setup failed", error=str(e))
        raise HTTPException(status_code=500, detail=f"Indexing failed: {str(e)}")


@router.post("/index/resources", response_model=IndexResponse)
async def index_resources(
    indexer: SearchIndexer = Depends(get_indexer),
    search_manager: SearchManager = Depends(get_search_manager),
):
    """Load every live catalog resource into the keyword indices."""
    try:
        count = await indexer.index_resources()
        await search_manager.clear_cache()
        return IndexResponse(status="success", indexed=count)
    except Exception as e:
        logger.error("Resource indexing failed", error=str(e))
        raise HTTPException(status_code=500, detail=f"Indexing failed: {str(e)}")


@router.post("/index/docs", response_model=IndexResponse)
async def index_documentation(
    pages: List[DocPage],
    indexer: SearchIndexer = Depends(get_indexer),
    search_manager: SearchManager = Depends(get_search_manager),
):
    """Index a batch of documentation pages."""
    try:
        count = await indexer.index_documentation(pages)
        await search_manager.clear_cache()
        return IndexResponse(status="success", indexed=count)
    except Exception as e:
        logger.error("Documentation indexing failed", error=str(e))
        raise HTTPException(status_code=500, detail=f"Indexing failed: {str(e)}")


@router.post("/index/embeddings", response_model=IndexResponse)
async def index_embeddings(
    indexer: SearchIndexer = Depends(get_indexer),
    search_manager: SearchManager = Depends(get_search_manager),
):
    """Embed every live catalog resource and upsert the vectors."""
    try:
        count = await indexer.index_embeddings()
        await search_manager.clear_cache()
        return IndexResponse(status="success", indexed=count)
    except Exception as e:
        logger.error("Embedding indexing failed", error=str(e))
        raise HTTPException(status_code=500, detail=f"Indexing failed: {str(e)}")


@router.get("/index/stats", response_model=IndexStats)
async def index_stats(
    indexer: SearchIndexer = Depends(get_indexer),
):
    """Document counts of the keyword indices and the vector table."""
    try:
        return await indexer.index_stats()
    except Exception as e:
        logger.error("Index stats failed", error=str(e))
        raise HTTPException(status_code=500, detail=f"Failed to get stats: {str(e)}")


@router.delete("/index")
async def clear_indices(
    indexer: SearchIndexer = Depends(get_indexer),
    search_manager: SearchManager = Depends(get_search_manager),
) -> Dict[str, Any]:
    """Delete every document from the keyword indices."""
    try:
        await indexer.clear_indices()
        await search_manager.clear_cache()
        return {"status": "success", "message": "Search indices cleared"}
    except Exception as e:
        logger.error("Index clear failed", error=str(e))
        raise HTTPException(status_code=500, detail=f"Indexing failed: {str(e)}")
