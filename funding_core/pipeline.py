"""Filter -> query -> project -> paginate -> aggregate.

DashboardPipeline is the per-session controller. Every filter change is tagged
with a sequence number, and a response is published only if no newer query
was issued while it was in flight. A failed query leaves the last-good view
in place.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Sequence

from funding_core.aggregate import round_counts, top_funded
from funding_core.config import DEFAULT_TABLE, ITEMS_PER_PAGE, TOP_N
from funding_core.errors import DashboardError, InitError, QueryError
from funding_core.filters import FilterCriteria
from funding_core.pagination import Page, PageState, paginate
from funding_core.query import build_query
from funding_core.records import Company, project_rows
from funding_core.state import FilterState

logger = logging.getLogger(__name__)


class RowSource(Protocol):
    async def initialize(self) -> None: ...

    def reset(self) -> None: ...

    async def execute(self, query_text: str, params: Sequence[Any] = ()) -> List[Sequence[Any]]: ...


@dataclass(frozen=True)
class DashboardView:
    criteria: FilterCriteria
    page: Page[Company]
    top_funded: List[Dict[str, Any]] = field(default_factory=list)
    round_counts: List[Dict[str, Any]] = field(default_factory=list)
    sequence: int = 0


@dataclass(frozen=True)
class _Result:
    criteria: FilterCriteria
    companies: List[Company]
    top_funded: List[Dict[str, Any]]
    round_counts: List[Dict[str, Any]]
    sequence: int


def _summarize(criteria: FilterCriteria, companies: List[Company], *, top_n: int, sequence: int) -> _Result:
    return _Result(
        criteria=criteria,
        companies=companies,
        top_funded=top_funded(companies, top_n),
        round_counts=round_counts(companies),
        sequence=sequence,
    )


def _view(result: _Result, page_state: PageState) -> DashboardView:
    return DashboardView(
        criteria=result.criteria,
        page=paginate(result.companies, page_state),
        top_funded=result.top_funded,
        round_counts=result.round_counts,
        sequence=result.sequence,
    )


async def fetch_companies(source: RowSource, criteria: FilterCriteria, *, table: str = DEFAULT_TABLE) -> List[Company]:
    query = build_query(criteria, table=table)
    logger.debug("Executing %s with %r", query.text, query.params)
    rows = await source.execute(query.text, query.params)
    return project_rows(rows)


async def load_view(
    source: RowSource,
    criteria: FilterCriteria,
    *,
    page: int = 1,
    table: str = DEFAULT_TABLE,
    items_per_page: int = ITEMS_PER_PAGE,
    top_n: int = TOP_N,
) -> DashboardView:
    """One-shot (stateless) render of a filtered page; errors propagate."""
    companies = await fetch_companies(source, criteria, table=table)
    result = _summarize(criteria, companies, top_n=top_n, sequence=0)
    return _view(result, PageState(current_page=page, items_per_page=items_per_page))


class DashboardPipeline:
    def __init__(
        self,
        source: RowSource,
        *,
        table: str = DEFAULT_TABLE,
        items_per_page: int = ITEMS_PER_PAGE,
        top_n: int = TOP_N,
    ) -> None:
        self._source = source
        self._table = table
        self._top_n = top_n
        self.state = FilterState(items_per_page=items_per_page)
        self._issued = 0
        self._result: Optional[_Result] = None
        self.view: Optional[DashboardView] = None
        self.last_error: Optional[DashboardError] = None

    @property
    def latest_sequence(self) -> int:
        return self._issued

    async def start(self) -> Optional[DashboardView]:
        try:
            await self._source.initialize()
        except InitError as exc:
            logger.error("Dataset initialization failed: %s", exc)
            self.last_error = exc
            return None
        return await self.apply_filters(self.state.criteria)

    async def retry(self) -> Optional[DashboardView]:
        self._source.reset()
        return await self.start()

    async def apply_filters(self, criteria: FilterCriteria) -> Optional[DashboardView]:
        """Re-query for ``criteria``; None if the result was stale or the query failed."""
        self.state.update(criteria)
        self._issued += 1
        sequence = self._issued
        try:
            companies = await fetch_companies(self._source, criteria, table=self._table)
        except QueryError as exc:
            if sequence == self._issued:
                logger.error("Query #%d failed (%s): %s", sequence, exc.kind.value, exc)
                self.last_error = exc
                if self.view is not None:
                    # Page moves keep working on the last-good view.
                    self.state.page.current_page = self.view.page.current_page
                    self.state.record_result(self.view.page.total_items)
            else:
                logger.debug("Query #%d failed after being superseded: %s", sequence, exc)
            return None

        if sequence != self._issued:
            logger.debug("Discarding stale result for query #%d (latest is #%d)", sequence, self._issued)
            return None

        self._result = _summarize(criteria, companies, top_n=self._top_n, sequence=sequence)
        self.state.record_result(len(companies))
        self.last_error = None
        return self._publish()

    def set_page(self, page: int) -> Optional[DashboardView]:
        if self.state.total_pages is None:
            # A query for new criteria is in flight.
            return self.view
        self.state.set_page(page)
        return self._publish()

    def change_page(self, direction: int) -> Optional[DashboardView]:
        if self.state.total_pages is None:
            return self.view
        self.state.change_page(direction)
        return self._publish()

    def _publish(self) -> Optional[DashboardView]:
        if self._result is None:
            return None
        self.view = _view(self._result, self.state.page)
        return self.view
