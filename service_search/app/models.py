"""Domain models for marketplace search.

``SearchQuery`` and ``SearchFilters`` are frozen; ``SearchHit`` is only ever
re-scored through ``model_copy`` by the merger; ``SearchResponse`` is built
fresh per request.
"""

from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


class EntityType(str, Enum):
    """Kinds of searchable entities, one text index each."""
    COMPONENT = "component"
    DOC = "doc"
    RESOURCE = "resource"


class SearchScope(str, Enum):
    """Entity-type scope requested by the caller."""
    ALL = "all"
    COMPONENT = "component"
    DOC = "doc"
    RESOURCE = "resource"

    def entity_types(self) -> List[EntityType]:
        """Entity types covered by this scope, in index order."""
        if self is SearchScope.ALL:
            return [EntityType.COMPONENT, EntityType.DOC, EntityType.RESOURCE]
        return [EntityType(self.value)]


class SearchMode(str, Enum):
    """Which backends answer a search."""
    KEYWORD = "keyword"
    SEMANTIC = "semantic"
    HYBRID = "hybrid"


class SearchFilters(BaseModel):
    """Catalog filters shared by both backends."""
    model_config = ConfigDict(frozen=True)

    framework: Optional[str] = None
    category: Optional[str] = None
    tags: Tuple[str, ...] = ()
    is_free: Optional[bool] = None
    is_premium: Optional[bool] = None
    has_typescript: Optional[bool] = None

    @field_validator("tags", mode="before")
    @classmethod
    def _drop_blank_tags(cls, value):
        if value is None:
            return ()
        return tuple(tag for tag in value if tag)

    def canonical(self) -> Dict[str, Any]:
        """Order-independent, JSON-ready form used for cache keys."""
        data = self.model_dump(exclude_none=True)
        data["tags"] = sorted(set(self.tags))
        return data


class SearchQuery(BaseModel):
    """One search request."""
    model_config = ConfigDict(frozen=True)

    query: str
    type: SearchScope = SearchScope.ALL
    filters: SearchFilters = Field(default_factory=SearchFilters)
    page: int = Field(default=0, ge=0)
    limit: int = Field(default=20, ge=1)
    mode: SearchMode = SearchMode.HYBRID
    use_cache: bool = True


class Highlights(BaseModel):
    """Highlighted fragments returned by the text index."""
    title: Optional[str] = None
    description: Optional[str] = None
    content: Optional[str] = None


class SearchHit(BaseModel):
    """A single ranked result."""
    id: str
    type: EntityType
    title: str = ""
    description: str = ""
    url: Optional[str] = None
    framework: Optional[str] = None
    category: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    score: float
    highlights: Optional[Highlights] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class AdapterResult(BaseModel):
    """Hits produced by one backend plus the total that backend reported."""
    hits: List[SearchHit] = Field(default_factory=list)
    total: int = 0


class SearchResponse(BaseModel):
    """Response returned to callers and stored in the cache."""
    hits: List[SearchHit]
    total: int
    page: int
    total_pages: int
    processing_time_ms: float
    mode: SearchMode


class DocType(str, Enum):
    """Kinds of documentation pages."""
    GUIDE = "guide"
    API = "api"
    TUTORIAL = "tutorial"
    REFERENCE = "reference"


class DocPage(BaseModel):
    """A documentation page to load into the docs index."""
    id: str = Field(..., min_length=1)
    title: str
    content: str = ""
    url: str
    category: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    headings: List[str] = Field(default_factory=list)
    type: DocType = DocType.GUIDE


class IndexStats(BaseModel):
    """Document counts per text index plus stored resource vectors."""
    components: int
    documentation: int
    resources: int
    vectors: int
