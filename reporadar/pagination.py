"""
Pagination helpers: RFC 5988 ``Link`` headers and page arithmetic.
"""

import math
import re

import httpx

from reporadar.types.search import PaginationInfo

# GitHub only exposes the first 1000 results of any search
GITHUB_SEARCH_LIMIT = 1000

_LINK_RE = re.compile(r"<([^>]+)>\s*;\s*rel=\"([^\"]+)\"")


def parse_link_header(value: str | None) -> dict[str, str]:
    """
    Parse a ``Link`` header into a mapping of relation to URL.

    Example:
        ```python
        parse_link_header('<https://api.github.com/user/starred?page=2>; rel="next"')
        # {"next": "https://api.github.com/user/starred?page=2"}
        ```
    """
    if not value:
        return {}
    links: dict[str, str] = {}
    for url, rels in _LINK_RE.findall(value):
        # A single link may carry several space-separated relations
        for rel in rels.split():
            links[rel] = url
    return links


def last_page_number(link_header: str | None) -> int | None:
    """Page number of the ``rel="last"`` link, or None when there is none."""
    last_url = parse_link_header(link_header).get("last")
    if last_url is None:
        return None
    page = httpx.URL(last_url).params.get("page")
    if page is None:
        return None
    try:
        return int(page)
    except ValueError:
        return None


def pages_needed(total_items: int, per_page: int) -> int:
    """Number of pages of ``per_page`` items that hold ``total_items``."""
    if total_items <= 0:
        return 0
    return math.ceil(total_items / per_page)


def calculate_pagination(total_items: int, current_page: int, per_page: int) -> PaginationInfo:
    """Compute pagination info for any result set (pages are 1-indexed)."""
    total_pages = pages_needed(total_items, per_page)
    start_index = (current_page - 1) * per_page
    return PaginationInfo(
        total_pages=total_pages,
        current_page=current_page,
        has_next_page=current_page < total_pages,
        has_previous_page=current_page > 1,
        start_index=start_index,
        end_index=min(start_index + per_page, total_items),
        total_items=total_items,
    )


def calculate_search_pagination(
    total_count: int, current_page: int, per_page: int
) -> PaginationInfo:
    """Pagination for upstream search, capped at the reachable 1000 results."""
    return calculate_pagination(min(total_count, GITHUB_SEARCH_LIMIT), current_page, per_page)
