"""reporadar testing utilities.

Provides an in-process GitHub double, a controllable clock and factories for
testing applications that use reporadar.
"""

from reporadar.testing.fixtures import (
    TEST_TOKEN,
    create_snapshot,
    make_release_json,
    make_repo_json,
)
from reporadar.testing.mock import REFRESH_PATH, FakeClock, FakeGitHub, MockCall, MockFailure

__all__ = [
    # GitHub double
    "FakeGitHub",
    "MockCall",
    "MockFailure",
    "REFRESH_PATH",
    "FakeClock",
    # Helper functions
    "create_snapshot",
    "make_repo_json",
    "make_release_json",
    "TEST_TOKEN",
]
