from __future__ import annotations

import json

import pytest

from funding_core.charts import round_distribution_chart, top_funded_chart
from funding_core.filters import FilterCriteria
from funding_core.pagination import Page
from funding_core.pipeline import DashboardView
from funding_core.records import Company
from funding_core.render import format_funding, page_indicator, render_dashboard, table_rows


def mark_type(spec):
    mark = spec["mark"]
    return mark["type"] if isinstance(mark, dict) else mark


def dataset_values(spec):
    return next(iter(spec["datasets"].values()))


@pytest.mark.parametrize(
    "value, expected",
    [(25_000_000, "$25.00M"), (1_500_000.0, "$1.50M"), (12_345, "$0.01M"), (0, "N/A"), (None, "N/A")],
)
def test_format_funding(value, expected):
    assert format_funding(value) == expected


def test_table_rows_render_blank_for_missing_fields():
    company = Company(name="Delta Health", latest_round=None, date="2021-11-20", total_raised=0.0, valuation=None, location="Chicago")
    assert table_rows([company]) == [
        {
            "name": "Delta Health",
            "latest_round": "",
            "date": "2021-11-20",
            "total_raised": "N/A",
            "valuation": "",
            "location": "Chicago",
        }
    ]


def test_page_indicator():
    assert page_indicator(Page(visible=[], total_pages=4, current_page=2)) == "Page 2 of 4"


def test_top_funded_chart_ranks_bars():
    spec = top_funded_chart(
        [{"name": "Gamma AI", "total_raised": 80_000_000.0}, {"name": "Zeta_Works", "total_raised": 42_000_000.0}]
    )
    assert mark_type(spec) == "bar"
    assert spec["title"] == "Top Funded Companies"
    assert [row["label"] for row in dataset_values(spec)] == ["1. Gamma AI", "2. Zeta_Works"]
    assert spec["encoding"]["y"]["sort"] == ["1. Gamma AI", "2. Zeta_Works"]


def test_round_distribution_chart():
    spec = round_distribution_chart([{"category": "Seed", "count": 2}, {"category": "Unspecified", "count": 1}])
    assert mark_type(spec) == "arc"
    assert spec["title"] == "Funding Rounds"
    assert spec["encoding"]["theta"]["field"] == "count"
    assert dataset_values(spec) == [{"category": "Seed", "count": 2}, {"category": "Unspecified", "count": 1}]


def test_charts_are_omitted_for_empty_results():
    assert top_funded_chart([]) is None
    assert round_distribution_chart([]) is None


def test_render_dashboard_payload():
    companies = [
        Company(name="Gamma AI", latest_round="Series B", date="2023-03-15", total_raised=80_000_000.0, valuation="600M", location="San Francisco"),
        Company(name="Beta Labs", latest_round="Seed", date="2022-06-01", total_raised=5_000_000.0, valuation="20M", location="Boston"),
    ]
    view = DashboardView(
        criteria=FilterCriteria(search_term="a"),
        page=Page(visible=companies[:1], total_pages=2, current_page=1, total_items=2),
        top_funded=[{"name": "Gamma AI", "total_raised": 80_000_000.0}, {"name": "Beta Labs", "total_raised": 5_000_000.0}],
        round_counts=[{"category": "Series B", "count": 1}, {"category": "Seed", "count": 1}],
        sequence=4,
    )
    payload = render_dashboard(view)

    assert payload["filters"] == {"search_term": "a", "round": "", "min_funding": None, "max_funding": None}
    assert payload["sequence"] == 4
    assert payload["result_count"] == 2
    assert payload["pagination"] == {
        "current_page": 1,
        "total_pages": 2,
        "label": "Page 1 of 2",
        "has_prev": False,
        "has_next": True,
    }
    assert [c["label"] for c in payload["columns"]] == [
        "Name", "Latest Round", "Date", "Total Raised", "Valuation", "Location",
    ]
    assert payload["table"][0]["total_raised"] == "$80.00M"
    assert set(payload["charts"]) == {"top_funded", "round_distribution"}
    json.dumps(payload)


def test_render_empty_view_has_no_charts():
    view = DashboardView(criteria=FilterCriteria(round="Series Z"), page=Page())
    payload = render_dashboard(view)
    assert payload["table"] == []
    assert payload["charts"] == {}
    assert payload["pagination"]["label"] == "Page 1 of 1"
