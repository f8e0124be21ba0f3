from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, List, Sequence

from funding_core.charts import round_distribution_chart, top_funded_chart
from funding_core.pagination import Page
from funding_core.pipeline import DashboardView
from funding_core.records import Company

TABLE_COLUMNS = [
    ("name", "Name"),
    ("latest_round", "Latest Round"),
    ("date", "Date"),
    ("total_raised", "Total Raised"),
    ("valuation", "Valuation"),
    ("location", "Location"),
]


def format_funding(value: object) -> str:
    """Millions with two decimals, e.g. 12_500_000 -> "$12.50M"; "N/A" when zero or absent."""
    if not value:
        return "N/A"
    return f"${float(value) / 1_000_000:.2f}M"


def _cell(value: Any) -> str:
    return "" if value is None else str(value)


def table_rows(companies: Sequence[Company]) -> List[Dict[str, str]]:
    rows = []
    for company in companies:
        rows.append(
            {
                "name": _cell(company.name),
                "latest_round": _cell(company.latest_round),
                "date": _cell(company.date),
                "total_raised": format_funding(company.total_raised),
                "valuation": _cell(company.valuation),
                "location": _cell(company.location),
            }
        )
    return rows


def page_indicator(page: Page) -> str:
    return f"Page {page.current_page} of {page.total_pages}"


def render_dashboard(view: DashboardView) -> Dict[str, Any]:
    charts: Dict[str, Any] = {}
    top_spec = top_funded_chart(view.top_funded)
    if top_spec is not None:
        charts["top_funded"] = top_spec
    rounds_spec = round_distribution_chart(view.round_counts)
    if rounds_spec is not None:
        charts["round_distribution"] = rounds_spec

    page = view.page
    return {
        "filters": asdict(view.criteria),
        "sequence": view.sequence,
        "result_count": page.total_items,
        "pagination": {
            "current_page": page.current_page,
            "total_pages": page.total_pages,
            "label": page_indicator(page),
            "has_prev": page.has_prev,
            "has_next": page.has_next,
        },
        "columns": [{"key": key, "label": label} for key, label in TABLE_COLUMNS],
        "table": table_rows(page.visible),
        "summary": {"top_funded": view.top_funded, "round_counts": view.round_counts},
        "charts": charts,
    }
