from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Generic, List, Sequence, TypeVar

from funding_core.config import ITEMS_PER_PAGE

T = TypeVar("T")


@dataclass
class PageState:
    current_page: int = 1
    items_per_page: int = ITEMS_PER_PAGE

    def __post_init__(self) -> None:
        if self.items_per_page <= 0:
            raise ValueError("items_per_page must be positive")
        if self.current_page < 1:
            raise ValueError("current_page is 1-indexed")


@dataclass(frozen=True)
class Page(Generic[T]):
    visible: List[T] = field(default_factory=list)
    total_pages: int = 1
    current_page: int = 1
    total_items: int = 0

    @property
    def has_prev(self) -> bool:
        return self.current_page > 1

    @property
    def has_next(self) -> bool:
        return self.current_page < self.total_pages


def total_pages(count: int, items_per_page: int) -> int:
    """Number of pages for ``count`` rows; never less than 1."""
    return max(1, math.ceil(count / items_per_page))


def clamp_page(page: int, pages: int) -> int:
    return max(1, min(int(page), max(1, pages)))


def paginate(rows: Sequence[T], page_state: PageState) -> Page[T]:
    """Slice the visible window; a page past the end is empty rather than an error."""
    per_page = page_state.items_per_page
    start = (page_state.current_page - 1) * per_page
    return Page(
        visible=list(rows[start:start + per_page]),
        total_pages=total_pages(len(rows), per_page),
        current_page=page_state.current_page,
        total_items=len(rows),
    )
