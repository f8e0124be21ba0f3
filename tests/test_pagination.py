from __future__ import annotations

import pytest

from funding_core.pagination import PageState, clamp_page, paginate, total_pages


@pytest.mark.parametrize("count, per_page, expected", [(0, 15, 1), (1, 15, 1), (15, 15, 1), (16, 15, 2), (45, 15, 3)])
def test_total_pages_is_at_least_one(count, per_page, expected):
    assert total_pages(count, per_page) == expected


@pytest.mark.parametrize("n", [0, 1, 7, 10, 23])
@pytest.mark.parametrize("k", [1, 5, 10])
@pytest.mark.parametrize("p", [1, 2, 3, 9])
def test_visible_slice_length(n, k, p):
    rows = list(range(n))
    page = paginate(rows, PageState(current_page=p, items_per_page=k))
    assert len(page.visible) == min(k, max(0, n - (p - 1) * k))
    assert page.visible == rows[(p - 1) * k:p * k]
    assert page.total_pages >= 1


def test_page_past_the_end_is_empty_not_an_error():
    page = paginate(list(range(4)), PageState(current_page=5, items_per_page=3))
    assert page.visible == []
    assert page.total_pages == 2
    assert page.current_page == 5
    assert page.total_items == 4


def test_prev_next_flags():
    rows = list(range(30))
    first = paginate(rows, PageState(current_page=1, items_per_page=15))
    last = paginate(rows, PageState(current_page=2, items_per_page=15))
    assert (first.has_prev, first.has_next) == (False, True)
    assert (last.has_prev, last.has_next) == (True, False)
    single = paginate([], PageState())
    assert (single.has_prev, single.has_next) == (False, False)


def test_clamp_page():
    assert clamp_page(0, 3) == 1
    assert clamp_page(7, 3) == 3
    assert clamp_page(2, 0) == 1


def test_page_state_validation():
    with pytest.raises(ValueError):
        PageState(items_per_page=0)
    with pytest.raises(ValueError):
        PageState(current_page=0)
