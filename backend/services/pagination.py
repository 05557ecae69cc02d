"""Pagination - slices an ordered collection and reports navigation metadata."""

import math
from dataclasses import dataclass, field, replace
from typing import Generic, Sequence, TypeVar

T = TypeVar("T")

DEFAULT_PAGE = 1
DEFAULT_PAGE_SIZE = 25
PAGE_SIZE_OPTIONS = (10, 25, 50, 100)
MAX_VISIBLE_PAGES = 5

ELLIPSIS = "ellipsis"


@dataclass(frozen=True)
class PaginationMeta:
    current_page: int
    page_size: int
    total_items: int
    total_pages: int
    has_next_page: bool
    has_previous_page: bool
    start_index: int  # zero-based, inclusive
    end_index: int    # zero-based, exclusive


@dataclass(frozen=True)
class Page(Generic[T]):
    items: list[T]
    meta: PaginationMeta


def paginate(items: Sequence[T], page: int = DEFAULT_PAGE, page_size: int = DEFAULT_PAGE_SIZE) -> Page[T]:
    """
    Return one page of ``items``.

    Out-of-range pages are clamped, never rejected: page 0 becomes 1 and a
    page past the end becomes the last page (1 when there are no items).
    """
    if page_size <= 0:
        raise ValueError("page_size must be positive")

    total_items = len(items)
    total_pages = math.ceil(total_items / page_size)
    current_page = max(1, min(page, total_pages or 1))

    start_index = (current_page - 1) * page_size
    end_index = min(start_index + page_size, total_items)

    return Page(
        items=list(items[start_index:end_index]),
        meta=PaginationMeta(
            current_page=current_page,
            page_size=page_size,
            total_items=total_items,
            total_pages=total_pages,
            has_next_page=current_page < total_pages,
            has_previous_page=current_page > 1,
            start_index=start_index,
            end_index=end_index,
        ),
    )


def page_numbers(current_page: int, total_pages: int, max_visible: int = MAX_VISIBLE_PAGES) -> list[int | str]:
    """
    Page buttons to display, with "ellipsis" markers for gaps.

    The first and last page are always shown. Between them sits a window of
    ``max_visible - 2`` pages centered on the current page and shifted inward
    at either end, e.g. (5, 10, 5) -> [1, "ellipsis", 4, 5, 6, "ellipsis", 10].
    """
    if total_pages <= 0:
        return []
    if total_pages <= max_visible:
        return list(range(1, total_pages + 1))

    current = max(1, min(current_page, total_pages))
    window = max(max_visible - 2, 1)
    before = (window - 1) // 2

    start = current - before
    end = start + window - 1
    # Keep the window between the first and last page
    if start < 2:
        start, end = 2, 1 + window
    if end > total_pages - 1:
        end = total_pages - 1
        start = end - window + 1

    pages: list[int | str] = [1]
    if start > 2:
        pages.append(ELLIPSIS)
    pages.extend(range(start, end + 1))
    if end < total_pages - 1:
        pages.append(ELLIPSIS)
    pages.append(total_pages)
    return pages


@dataclass(frozen=True)
class PaginationState:
    """Browsing position. Changing the page size always returns to page 1."""
    page: int = DEFAULT_PAGE
    page_size: int = DEFAULT_PAGE_SIZE
    initial_page_size: int = field(default=DEFAULT_PAGE_SIZE, compare=False)

    def go_to_page(self, page: int) -> "PaginationState":
        return replace(self, page=max(1, page))

    def next_page(self) -> "PaginationState":
        return replace(self, page=self.page + 1)

    def previous_page(self) -> "PaginationState":
        return replace(self, page=max(1, self.page - 1))

    def with_page_size(self, page_size: int) -> "PaginationState":
        if page_size <= 0:
            raise ValueError("page_size must be positive")
        return replace(self, page=1, page_size=page_size)

    def reset(self) -> "PaginationState":
        return replace(self, page=1, page_size=self.initial_page_size)
