"""
Growth and trend metrics for repositories.

Metrics compare the latest snapshot with a prior one. A single snapshot never
produces a trend: without history every flag is False.
"""

from reporadar.types.metrics import DerivedMetrics, MetricsThresholds
from reporadar.types.repos import RepositorySnapshot


def calculate_growth_rate(current: int, previous: int) -> float:
    """
    Fractional change between two counts (0.25 = 25% growth).

    The denominator is floored at 1.

    Example:
        ```python
        calculate_growth_rate(125, 100)  # 0.25
        calculate_growth_rate(80, 100)   # -0.2
        calculate_growth_rate(3, 0)      # 3.0
        ```
    """
    return (current - previous) / max(previous, 1)


def calculate_stars_gained(current: int, previous: int) -> int:
    return current - previous


def is_hot_repo(
    stars: int,
    growth_rate: float,
    stars_gained: int,
    thresholds: MetricsThresholds | None = None,
) -> bool:
    """True when all three "hot" minimums are met."""
    t = thresholds or MetricsThresholds()
    return (
        stars >= t.hot_min_stars
        and growth_rate >= t.hot_min_growth_rate
        and stars_gained >= t.hot_min_stars_gained
    )


def is_trending_repo(
    stars: int,
    growth_rate: float,
    stars_gained: int,
    thresholds: MetricsThresholds | None = None,
) -> bool:
    t = thresholds or MetricsThresholds()
    if not t.trending_enabled:
        return False
    return (
        stars >= t.trending_min_stars
        and growth_rate >= t.trending_min_growth_rate
        and stars_gained >= t.trending_min_stars_gained
    )


class MetricsEngine:
    """Derives DerivedMetrics from a snapshot pair."""

    def __init__(self, thresholds: MetricsThresholds | None = None) -> None:
        self.thresholds = thresholds or MetricsThresholds()

    def compute(
        self, current: RepositorySnapshot, previous: RepositorySnapshot | None
    ) -> DerivedMetrics:
        if previous is None:
            return DerivedMetrics(
                growth_rate=None, stars_gained=None, is_trending=False, is_hot=False
            )

        growth_rate = calculate_growth_rate(current.stars, previous.stars)
        stars_gained = calculate_stars_gained(current.stars, previous.stars)
        return DerivedMetrics(
            growth_rate=growth_rate,
            stars_gained=stars_gained,
            is_trending=is_trending_repo(
                current.stars, growth_rate, stars_gained, self.thresholds
            ),
            is_hot=is_hot_repo(current.stars, growth_rate, stars_gained, self.thresholds),
        )
