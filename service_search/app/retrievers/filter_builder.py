"""Builds backend-neutral filter expressions from ``SearchFilters``."""

from typing import Optional

from libs.filters import AnyOf, Eq, FilterExpr, all_of
from ..models import SearchFilters


def build_catalog_filter(filters: SearchFilters) -> Optional[FilterExpr]:
    """Full catalog filter: equality clauses plus the OR-grouped tag list."""
    return all_of([
        Eq("framework", filters.framework) if filters.framework else None,
        Eq("category", filters.category) if filters.category else None,
        AnyOf("tags", filters.tags) if filters.tags else None,
        Eq("is_free", filters.is_free) if filters.is_free is not None else None,
        Eq("is_premium", filters.is_premium) if filters.is_premium is not None else None,
        Eq("has_typescript", filters.has_typescript) if filters.has_typescript is not None else None,
    ])


def build_vector_filter(filters: SearchFilters) -> Optional[FilterExpr]:
    """Vector metadata only carries framework, category and tags."""
    return all_of([
        Eq("framework", filters.framework) if filters.framework else None,
        Eq("category", filters.category) if filters.category else None,
        AnyOf("tags", filters.tags) if filters.tags else None,
    ])
