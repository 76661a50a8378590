"""
Pagination for dashboard detail tables.

Pages are 1-indexed. Asking for a page past the end is not an error: it
returns an empty page, and the stateful Paginator resets to page 1 whenever
a new filter result no longer has the page it was on.
"""

import logging
import math
from dataclasses import dataclass
from typing import Any, Sequence, Union

import pandas as pd

from config import DEFAULT_PAGE_SIZE

# Configure logging
logger = logging.getLogger(__name__)


Pageable = Union[Sequence[Any], pd.DataFrame]


@dataclass
class Page:
    items: Pageable
    total_pages: int
    total_items: int
    page: int
    page_size: int

    @property
    def has_previous(self) -> bool:
        return self.page > 1

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def first_item(self) -> int:
        """1-based position of the first item shown (0 for an empty page)."""
        if not len(self.items):
            return 0
        return (self.page - 1) * self.page_size + 1

    @property
    def last_item(self) -> int:
        if not len(self.items):
            return 0
        return self.first_item + len(self.items) - 1


def count_pages(total_items: int, page_size: int) -> int:
    if page_size <= 0:
        raise ValueError(f"page_size must be positive, got {page_size}")
    return math.ceil(total_items / page_size)


def paginate(items: Pageable, page: int = 1, page_size: int = DEFAULT_PAGE_SIZE) -> Page:
    """
    Slice a list or DataFrame into one page.

    Args:
        items: List-like or DataFrame (rows are paged)
        page: 1-indexed page number
        page_size: Items per page (must be positive)

    Returns:
        Page: The slice plus totals; `items` is empty when `page` is out of range

    Example:
        >>> p = paginate(list(range(25)), page=3, page_size=10)
        >>> p.items, p.total_pages
        ([20, 21, 22, 23, 24], 3)
    """
    total_items = len(items)
    total_pages = count_pages(total_items, page_size)

    if page < 1 or page > total_pages:
        start = stop = 0
    else:
        start = (page - 1) * page_size
        stop = start + page_size

    if isinstance(items, pd.DataFrame):
        sliced = items.iloc[start:stop]
    else:
        sliced = list(items)[start:stop]

    return Page(
        items=sliced,
        total_pages=total_pages,
        total_items=total_items,
        page=page,
        page_size=page_size,
    )


class Paginator:
    """
    Page state for one detail table.

    Call `paginate()` with each new filter result; the page resets to 1
    when the result shrinks below the current page, or when the page size
    changes.
    """

    def __init__(self, page_size: int = DEFAULT_PAGE_SIZE):
        count_pages(0, page_size)
        self.page = 1
        self.page_size = page_size
        self.total_items = 0

    def set_page(self, page: int) -> None:
        self.page = max(1, int(page))

    def set_page_size(self, page_size: int) -> None:
        count_pages(0, page_size)
        if page_size != self.page_size:
            self.page_size = page_size
            self.page = 1

    def update_total(self, total_items: int) -> bool:
        """
        Record a new result length.

        Returns:
            bool: True if the page was reset to 1
        """
        changed = total_items != self.total_items
        self.total_items = total_items

        if changed and self.page > 1 and self.page > count_pages(total_items, self.page_size):
            logger.debug(f"Page {self.page} no longer exists for {total_items} items; resetting to 1")
            self.page = 1
            return True
        return False

    def paginate(self, items: Pageable) -> Page:
        self.update_total(len(items))
        return paginate(items, self.page, self.page_size)
