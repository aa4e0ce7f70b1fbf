"""
Limit/offset clamping and page metadata for feeds and searches.
"""

import math
from dataclasses import dataclass

from app.config import settings


@dataclass(frozen=True)
class PageWindow:
    limit: int
    offset: int


def clamp_page(limit: int, offset: int, default_limit: int = None, max_limit: int = None) -> PageWindow:
    """
    Clamp raw limit/offset.

    A limit outside (0, max_limit] becomes default_limit; a negative offset
    becomes 0.
    """
    default_limit = default_limit or settings.feed_default_limit
    max_limit = max_limit or settings.feed_max_limit
    if limit is None or limit <= 0 or limit > max_limit:
        limit = default_limit
    if offset is None or offset < 0:
        offset = 0
    return PageWindow(limit=limit, offset=offset)


def clamp_search_limit(limit: int) -> int:
    if limit is None or limit <= 0 or limit > settings.search_max_limit:
        return settings.search_default_limit
    return limit


def total_pages(total: int, page_size: int) -> int:
    """ceil(total / page_size), never below 1."""
    if page_size <= 0:
        return 1
    return max(1, math.ceil(total / page_size))


def page_number(window: PageWindow) -> int:
    return window.offset // window.limit + 1
