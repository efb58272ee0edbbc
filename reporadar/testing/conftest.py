"""
Pytest plugin for reporadar testing fixtures.

To use these fixtures in your tests, add this to your conftest.py:

    pytest_plugins = ["reporadar.testing.conftest"]
"""

# Re-export all fixtures for pytest auto-discovery
from reporadar.testing.fixtures import (
    cache_store,
    fake_clock,
    fake_github,
    memory_storage,
    radar_client,
    reconciler,
)

__all__ = [
    "fake_github",
    "fake_clock",
    "memory_storage",
    "cache_store",
    "reconciler",
    "radar_client",
]
