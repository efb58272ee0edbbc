"""Search and pagination data models."""

from dataclasses import dataclass

from reporadar.types.repos import TrackedRepository


@dataclass(frozen=True)
class PaginationInfo:
    """Page arithmetic for a result set."""

    total_pages: int
    current_page: int
    has_next_page: bool
    has_previous_page: bool
    start_index: int
    end_index: int
    total_items: int


@dataclass
class SearchResults:
    """One page of search results."""

    repositories: list[TrackedRepository]
    total_count: int
    api_search_result_total: int
    pagination: PaginationInfo

    @property
    def is_limited(self) -> bool:
        return self.total_count > self.api_search_result_total
