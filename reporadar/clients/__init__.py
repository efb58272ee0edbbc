"""reporadar resource clients."""

from reporadar.clients.rate_limit import RateLimitClient
from reporadar.clients.repos import ReposClient
from reporadar.clients.search import SearchClient, build_search_query, search_starred
from reporadar.clients.stars import StarsClient

__all__ = [
    "RateLimitClient",
    "ReposClient",
    "SearchClient",
    "StarsClient",
    "build_search_query",
    "search_starred",
]
