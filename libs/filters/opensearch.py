"""OpenSearch translator for filter expressions."""

from typing import Any, Dict, List, Optional

from .expressions import And, AnyOf, Eq, FilterExpr


def to_opensearch_filter(expr: FilterExpr) -> Dict[str, Any]:
    """Render one expression as an OpenSearch query-DSL clause.

    ``Eq`` becomes ``term``, ``AnyOf`` becomes ``terms`` (matches when any
    value matches) and ``And`` becomes a ``bool.filter`` list.
    """
    if isinstance(expr, Eq):
        return {"term": {expr.field: expr.value}}
    if isinstance(expr, AnyOf):
        return {"terms": {expr.field: list(expr.values)}}
    if isinstance(expr, And):
        return {"bool": {"filter": [to_opensearch_filter(clause) for clause in expr.clauses]}}
    raise TypeError(f"Unsupported filter expression: {type(expr).__name__}")


def filter_context(expr: Optional[FilterExpr]) -> List[Dict[str, Any]]:
    """Return the list to place under a query's ``bool.filter`` key.

    A top-level ``And`` is unrolled so each clause sits directly in the filter
    context instead of a nested bool.
    """
    if expr is None:
        return []
    if isinstance(expr, And):
        return [to_opensearch_filter(clause) for clause in expr.clauses]
    return [to_opensearch_filter(expr)]
