from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Optional, Tuple

# Funding bounds are typed into the form in millions.
FUNDING_INPUT_SCALE = 1_000_000


@dataclass(frozen=True)
class FilterCriteria:
    search_term: str = ""
    round: str = ""
    min_funding: Optional[float] = None
    max_funding: Optional[float] = None

    @property
    def funding_bounds(self) -> Tuple[float, float]:
        low = self.min_funding if self.min_funding is not None else 0.0
        high = self.max_funding if self.max_funding is not None else math.inf
        return low, high

    @property
    def is_default(self) -> bool:
        return self == FilterCriteria()


def parse_amount(value: Any, *, scale: float = 1.0) -> Optional[float]:
    """Parse a numeric form value; None when it is blank or not a finite number."""
    if value is None or isinstance(value, bool):
        return None
    try:
        amount = float(str(value).strip()) * scale
    except ValueError:
        return None
    return amount if math.isfinite(amount) else None


def normalize_filters(raw: dict, *, funding_scale: float = FUNDING_INPUT_SCALE) -> FilterCriteria:
    search_term = raw.get("search_term")
    round_ = raw.get("round")
    return FilterCriteria(
        search_term="" if search_term is None else str(search_term),
        round="" if round_ is None else str(round_),
        min_funding=parse_amount(raw.get("min_funding"), scale=funding_scale),
        max_funding=parse_amount(raw.get("max_funding"), scale=funding_scale),
    )
