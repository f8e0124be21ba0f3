from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Iterable, List, Optional, Sequence

from funding_core.errors import ProjectionError

logger = logging.getLogger(__name__)

# Positional layout of a `mytable` row.
COLUMN_INDEX = {
    "name": 6,
    "date": 7,
    "total_raised": 8,
    "latest_round": 11,
    "valuation": 16,
    "location": 17,
}


@dataclass(frozen=True)
class Company:
    name: Optional[str]
    latest_round: Optional[str]
    date: Optional[str]
    total_raised: float
    valuation: Any
    location: Optional[str]


def _at(row: Sequence[Any], index: int) -> Any:
    return row[index] if index < len(row) else None


def coerce_amount(value: Any) -> float:
    """Null-coalesce a raw funding amount: absent or falsy values become 0."""
    if not value:
        return 0.0
    if isinstance(value, (int, float)):
        amount = float(value)
    elif isinstance(value, str):
        try:
            amount = float(value.strip())
        except ValueError:
            raise ProjectionError(f"Non-numeric funding amount: {value!r}") from None
    else:
        raise ProjectionError(f"Unsupported funding amount type: {type(value).__name__}")
    return 0.0 if math.isnan(amount) else amount


def project(row: Sequence[Any]) -> Company:
    if isinstance(row, (str, bytes)) or not isinstance(row, Sequence):
        raise ProjectionError(f"Expected a positional row, got {type(row).__name__}")
    return Company(
        name=_at(row, COLUMN_INDEX["name"]),
        latest_round=_at(row, COLUMN_INDEX["latest_round"]),
        date=_at(row, COLUMN_INDEX["date"]),
        total_raised=coerce_amount(_at(row, COLUMN_INDEX["total_raised"])),
        valuation=_at(row, COLUMN_INDEX["valuation"]),
        location=_at(row, COLUMN_INDEX["location"]),
    )


def project_rows(rows: Iterable[Sequence[Any]]) -> List[Company]:
    """Project a result batch, dropping (and logging) rows that cannot be mapped."""
    companies: List[Company] = []
    dropped = 0
    for position, row in enumerate(rows):
        try:
            companies.append(project(row))
        except ProjectionError as exc:
            dropped += 1
            logger.warning("Dropping row %d: %s", position, exc)
    if dropped:
        logger.info("Projected %d rows, dropped %d", len(companies), dropped)
    return companies
