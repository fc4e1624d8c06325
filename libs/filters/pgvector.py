"""PostgreSQL translator for filter expressions over a JSONB metadata column.

Values are always passed as bind parameters; field names are checked against
an identifier pattern because they are inlined as JSON keys.
"""

import re
from typing import Any, List, Optional, Tuple

from .expressions import And, AnyOf, Eq, FilterExpr

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _check_identifier(name: str) -> str:
    if not _IDENTIFIER.match(name):
        raise ValueError(f"Invalid filter field name: {name!r}")
    return name


def to_pgvector_clause(
    expr: Optional[FilterExpr],
    column: str = "meta",
    start_index: int = 1
) -> Tuple[str, List[Any]]:
    """Render an expression as ``(sql_fragment, params)``.

    Parameters
    - expr: Expression to render; ``None`` yields ``("", [])``
    - column: JSONB column holding the filterable metadata
    - start_index: Number of the first ``$n`` placeholder to emit

    ``AnyOf`` uses the ``?|`` operator, which matches a JSON string equal to
    one of the values as well as an array containing one of them.
    """
    if expr is None:
        return "", []

    column = _check_identifier(column)
    params: List[Any] = []

    def render(node: FilterExpr) -> str:
        if isinstance(node, Eq):
            field = _check_identifier(node.field)
            params.append(node.value if isinstance(node.value, bool) else str(node.value))
            placeholder = f"${start_index + len(params) - 1}"
            if isinstance(node.value, bool):
                return f"({column}->>'{field}')::boolean = {placeholder}"
            return f"{column}->>'{field}' = {placeholder}"
        if isinstance(node, AnyOf):
            field = _check_identifier(node.field)
            params.append(list(node.values))
            placeholder = f"${start_index + len(params) - 1}"
            return f"{column}->'{field}' ?| {placeholder}::text[]"
        if isinstance(node, And):
            return "(" + " AND ".join(render(clause) for clause in node.clauses) + ")"
        raise TypeError(f"Unsupported filter expression: {type(node).__name__}")

    return render(expr), params
