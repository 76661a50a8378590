"""
Tests for page slicing and the stateful paginator.
"""

import sys
from pathlib import Path

import pandas as pd
import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from pagination import Paginator, count_pages, paginate


def test_first_page_of_25():
    page = paginate(list(range(25)), page=1, page_size=10)
    assert page.items == list(range(10))
    assert page.total_pages == 3
    assert page.total_items == 25
    assert not page.has_previous
    assert page.has_next


def test_last_partial_page():
    page = paginate(list(range(25)), page=3, page_size=10)
    assert page.items == [20, 21, 22, 23, 24]
    assert (page.first_item, page.last_item) == (21, 25)
    assert not page.has_next


def test_page_past_the_end_is_empty():
    page = paginate(list(range(25)), page=4, page_size=10)
    assert page.items == []
    assert page.total_pages == 3
    assert (page.first_item, page.last_item) == (0, 0)


def test_page_below_one_is_empty():
    assert paginate(list(range(5)), page=0, page_size=10).items == []


def test_empty_input():
    page = paginate([], page=1, page_size=10)
    assert page.items == []
    assert page.total_pages == 0


def test_pages_cover_every_item_once():
    items = list(range(47))
    seen = []
    for number in range(1, count_pages(len(items), 10) + 1):
        seen.extend(paginate(items, page=number, page_size=10).items)
    assert seen == items


def test_dataframe_rows_are_paged():
    df = pd.DataFrame({"scheme_id": [f"S-{i}" for i in range(12)]})
    page = paginate(df, page=2, page_size=5)
    assert page.items["scheme_id"].tolist() == ["S-5", "S-6", "S-7", "S-8", "S-9"]
    assert page.total_pages == 3


def test_non_positive_page_size_raises():
    with pytest.raises(ValueError):
        paginate([1, 2, 3], page=1, page_size=0)
    with pytest.raises(ValueError):
        Paginator(page_size=-1)


def test_paginator_resets_when_page_disappears():
    paginator = Paginator(page_size=10)
    paginator.paginate(list(range(25)))
    paginator.set_page(3)
    assert paginator.paginate(list(range(25))).items == [20, 21, 22, 23, 24]

    # New filter result only has 2 pages
    page = paginator.paginate(list(range(12)))
    assert paginator.page == 1
    assert page.page == 1
    assert page.items == list(range(10))


def test_paginator_keeps_page_that_still_exists():
    paginator = Paginator(page_size=10)
    paginator.paginate(list(range(25)))
    paginator.set_page(2)

    page = paginator.paginate(list(range(15)))
    assert paginator.page == 2
    assert page.items == list(range(10, 15))


def test_paginator_resets_on_page_size_change():
    paginator = Paginator(page_size=10)
    paginator.set_page(3)
    paginator.set_page_size(25)
    assert paginator.page == 1
    assert paginator.page_size == 25

    paginator.set_page(2)
    paginator.set_page_size(25)
    assert paginator.page == 2


def test_update_total_reports_reset():
    paginator = Paginator(page_size=10)
    paginator.update_total(30)
    paginator.set_page(3)
    assert paginator.update_total(5) is True
    assert paginator.update_total(50) is False
