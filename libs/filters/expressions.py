"""Filter expression clauses.

Three clause kinds cover everything the search backends need:

- ``Eq(field, value)``: field equals a scalar value
- ``AnyOf(field, values)``: field (or one of its array elements) is in values
- ``And(clauses)``: every clause holds

Expressions are immutable and hashable so they can take part in cache keys.
"""

from dataclasses import dataclass
from typing import Iterable, Optional, Tuple, Union

Scalar = Union[str, bool, int, float]


@dataclass(frozen=True)
class Eq:
    """Equality clause."""
    field: str
    value: Scalar


@dataclass(frozen=True)
class AnyOf:
    """Set-membership clause; OR semantics over ``values``."""
    field: str
    values: Tuple[str, ...]

    def __post_init__(self):
        if not self.values:
            raise ValueError(f"AnyOf({self.field!r}) needs at least one value")


@dataclass(frozen=True)
class And:
    """Conjunction of clauses."""
    clauses: Tuple["FilterExpr", ...]


FilterExpr = Union[Eq, AnyOf, And]


def all_of(clauses: Iterable[Optional[FilterExpr]]) -> Optional[FilterExpr]:
    """Conjoin clauses, skipping ``None`` and flattening nested ``And``.

    Returns ``None`` when nothing is left and the bare clause when only one
    remains, so translators never see an empty or single-member ``And``.
    """
    flat = []
    for clause in clauses:
        if clause is None:
            continue
        if isinstance(clause, And):
            flat.extend(clause.clauses)
        else:
            flat.append(clause)

    if not flat:
        return None
    if len(flat) == 1:
        return flat[0]
    return And(tuple(flat))
