from __future__ import annotations

from typing import Any, Dict, List, Optional

import altair as alt
import pandas as pd

alt.data_transformers.disable_max_rows()


def to_vega_spec(chart: alt.Chart) -> Dict[str, Any]:
    """Convert an Altair chart into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()


def top_funded_chart(records: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not records:
        return None
    df = pd.DataFrame(records)
    # Ranked labels keep duplicate company names on separate bars.
    df["label"] = [f"{rank}. {name if name is not None else ''}" for rank, name in enumerate(df["name"], start=1)]
    bar = (
        alt.Chart(df)
        .mark_bar(cornerRadiusEnd=3)
        .encode(
            x=alt.X("total_raised:Q", title="Total Raised", axis=alt.Axis(format="$~s", gridDash=[4, 4])),
            y=alt.Y("label:N", title=None, sort=df["label"].tolist()),
            tooltip=[
                alt.Tooltip("name:N", title="Company"),
                alt.Tooltip("total_raised:Q", title="Total Raised", format="$,.0f"),
            ],
        )
        .properties(height=260, title="Top Funded Companies")
    )
    return to_vega_spec(bar)


def round_distribution_chart(records: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not records:
        return None
    df = pd.DataFrame(records)
    pie = (
        alt.Chart(df)
        .mark_arc()
        .encode(
            theta=alt.Theta("count:Q"),
            color=alt.Color("category:N", title="Round", sort=df["category"].tolist()),
            tooltip=[alt.Tooltip("category:N", title="Round"), alt.Tooltip("count:Q", title="Companies")],
        )
        .properties(height=260, title="Funding Rounds")
    )
    return to_vega_spec(pie)
