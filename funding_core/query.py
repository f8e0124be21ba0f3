"""Compile FilterCriteria into parameterized SQL over the funding table.

User-supplied text is always bound as a parameter; only fixed predicate
fragments and the validated table identifier appear in the query text.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, List, Tuple

from funding_core.config import DEFAULT_TABLE, validate_identifier
from funding_core.filters import FilterCriteria

LIKE_ESCAPE = "\\"


@dataclass(frozen=True)
class BuiltQuery:
    text: str
    params: Tuple[Any, ...] = ()


def escape_like(term: str) -> str:
    """Escape LIKE wildcards so the term matches as a literal substring."""
    return (
        term.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )


def base_query(table: str = DEFAULT_TABLE) -> str:
    return f'SELECT * FROM "{validate_identifier(table)}"'


def build_query(criteria: FilterCriteria, *, table: str = DEFAULT_TABLE) -> BuiltQuery:
    predicates: List[str] = []
    params: List[Any] = []

    if criteria.search_term:
        predicates.append(f"LOWER(name) LIKE ? ESCAPE '{LIKE_ESCAPE}'")
        params.append(f"%{escape_like(criteria.search_term.lower())}%")

    if criteria.round:
        predicates.append("latestRound = ?")
        params.append(criteria.round)

    if criteria.min_funding is not None and math.isfinite(criteria.min_funding):
        predicates.append("COALESCE(totalRaised, 0) >= ?")
        params.append(criteria.min_funding)

    if criteria.max_funding is not None and math.isfinite(criteria.max_funding):
        predicates.append("COALESCE(totalRaised, 0) <= ?")
        params.append(criteria.max_funding)

    text = base_query(table)
    if predicates:
        text += " WHERE " + " AND ".join(predicates)
    return BuiltQuery(text=text, params=tuple(params))


def round_options_query(*, table: str = DEFAULT_TABLE) -> BuiltQuery:
    return BuiltQuery(
        text=(
            f'SELECT DISTINCT latestRound FROM "{validate_identifier(table)}" '
            "WHERE latestRound IS NOT NULL AND latestRound != '' ORDER BY latestRound"
        )
    )
