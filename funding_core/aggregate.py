from __future__ import annotations

from typing import Any, Dict, List, Sequence

import pandas as pd

from funding_core.config import TOP_N
from funding_core.records import Company

# Category label for companies with no latest round.
UNSET_ROUND_LABEL = "Unspecified"


def companies_frame(companies: Sequence[Company]) -> pd.DataFrame:
    return pd.DataFrame(
        {
            "name": pd.Series([c.name for c in companies], dtype=object),
            "latest_round": pd.Series([c.latest_round for c in companies], dtype=object),
            "total_raised": pd.Series([c.total_raised for c in companies], dtype=float),
        }
    )


def round_label(value: Any) -> str:
    if value is None or (isinstance(value, str) and not value):
        return UNSET_ROUND_LABEL
    return str(value)


def top_funded(companies: Sequence[Company], n: int = TOP_N) -> List[Dict[str, Any]]:
    """Largest ``n`` by total raised; ties keep their original relative order."""
    df = companies_frame(companies)
    if df.empty or n <= 0:
        return []
    top = df.sort_values("total_raised", ascending=False, kind="stable").head(n)
    return [
        {"name": row.name, "total_raised": float(row.total_raised)}
        for row in top[["name", "total_raised"]].itertuples(index=False)
    ]


def round_counts(companies: Sequence[Company]) -> List[Dict[str, Any]]:
    """Company count per latest round, in order of first occurrence."""
    df = companies_frame(companies)
    if df.empty:
        return []
    labels = df["latest_round"].map(round_label)
    counts = labels.groupby(labels, sort=False).size()
    return [{"category": str(category), "count": int(count)} for category, count in counts.items()]
