"""Base vector store interface.

Defines the abstract contract the search service depends on, independent of
the backing implementation.

All methods are asynchronous to support the service's event loop.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, NamedTuple, Optional, Sequence, Tuple
import numpy as np

from libs.filters import FilterExpr


class VectorMatch(NamedTuple):
    """One nearest-neighbour result: identifier, similarity, stored metadata."""
    entity_id: str
    score: float
    metadata: Dict[str, Any]


class VectorStore(ABC):
    """Abstract base class for vector stores.

    Implementations should return similarity scores where larger means closer
    and order results by descending similarity.
    """

    @abstractmethod
    async def search_similar(
        self,
        query_vector: Sequence[float],
        limit: int = 10,
        filters: Optional[FilterExpr] = None
    ) -> List[VectorMatch]:
        """Return up to ``limit`` matches for ``query_vector`` honouring ``filters``."""

    @abstractmethod
    async def get_embedding(self, entity_id: str) -> Optional[np.ndarray]:
        """Return the stored vector for ``entity_id`` or ``None``."""

    @abstractmethod
    async def upsert_embeddings(
        self,
        items: Sequence[Tuple[str, Sequence[float], Dict[str, Any]]]
    ) -> int:
        """Insert or replace ``(entity_id, vector, metadata)`` rows; returns the count."""

    @abstractmethod
    async def count_embeddings(self) -> int:
        """Number of stored vectors."""

    @abstractmethod
    async def health_check(self) -> bool:
        """Check if the vector store is healthy."""

    async def close(self) -> None:
        """Release connections held by the store."""


class VectorStoreError(Exception):
    """Base exception for vector store operations."""
    pass


class VectorStoreConnectionError(VectorStoreError):
    """Connection error to vector store."""
    pass


class VectorStoreQueryError(VectorStoreError):
    """Query error in vector store."""
    pass
