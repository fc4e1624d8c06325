"""Typed filter expressions and per-backend translators.

Primary components:
- ``expressions``: the ``Eq`` / ``AnyOf`` / ``And`` clause types and ``all_of``.
- ``opensearch``: renders an expression to an OpenSearch query-DSL clause.
- ``pgvector``: renders an expression to a parameterised SQL ``WHERE`` fragment.

Callers build one expression and hand it to whichever backend they query, so
backend syntax and escaping never leak into search logic.
"""

from .expressions import And, AnyOf, Eq, FilterExpr, all_of

__all__ = ["And", "AnyOf", "Eq", "FilterExpr", "all_of"]
