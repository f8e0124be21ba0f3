from __future__ import annotations

from typing import Optional

from funding_core.config import ITEMS_PER_PAGE
from funding_core.filters import FilterCriteria
from funding_core.pagination import PageState, clamp_page, total_pages


class FilterState:
    """Current filter criteria and page position for one dashboard session."""

    def __init__(self, items_per_page: int = ITEMS_PER_PAGE) -> None:
        self.criteria = FilterCriteria()
        self.page = PageState(items_per_page=items_per_page)
        # Unknown until a query for the current criteria completes.
        self.total_pages: Optional[int] = None

    @property
    def current_page(self) -> int:
        return self.page.current_page

    def update(self, criteria: FilterCriteria) -> None:
        self.criteria = criteria
        self.page.current_page = 1
        self.total_pages = None

    def record_result(self, result_count: int) -> int:
        self.total_pages = total_pages(result_count, self.page.items_per_page)
        self.page.current_page = clamp_page(self.page.current_page, self.total_pages)
        return self.total_pages

    def set_page(self, page: int) -> int:
        if self.total_pages is not None:
            self.page.current_page = clamp_page(page, self.total_pages)
        return self.page.current_page

    def change_page(self, direction: int) -> int:
        return self.set_page(self.page.current_page + direction)
