"""Stateless paging over result lists."""

import math
from typing import List, Sequence, TypeVar

T = TypeVar('T')


def page(items: Sequence[T], page_number: int, page_size: int) -> List[T]:
    """Slice one 1-based page out of ``items``.

    No clamping is done here; callers clamp ``page_number`` with
    ``clamp_page`` first.
    """
    if page_size < 1:
        raise ValueError("page_size must be at least 1")
    start = (page_number - 1) * page_size
    if start < 0:
        return []
    return list(items[start:start + page_size])


def page_count(total: int, page_size: int) -> int:
    """Number of pages for ``total`` items; an empty list still has one page."""
    if page_size < 1:
        raise ValueError("page_size must be at least 1")
    return max(1, math.ceil(total / page_size))


def clamp_page(page_number: int, total: int, page_size: int) -> int:
    """Clamp a page number into ``[1, page_count(total, page_size)]``."""
    return min(max(1, page_number), page_count(total, page_size))
