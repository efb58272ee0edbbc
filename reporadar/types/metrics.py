"""Derived metric data models."""

from dataclasses import dataclass


@dataclass(frozen=True)
class DerivedMetrics:
    """Trend metrics computed from a snapshot pair. Never persisted."""

    growth_rate: float | None
    stars_gained: int | None
    is_trending: bool
    is_hot: bool


@dataclass(frozen=True)
class MetricsThresholds:
    """Minimums for the "hot" and "trending" badges. All are conjunctive."""

    hot_min_stars: int = 100
    hot_min_growth_rate: float = 0.25
    hot_min_stars_gained: int = 50
    trending_min_stars: int = 50
    trending_min_growth_rate: float = 0.10
    trending_min_stars_gained: int = 10
    trending_enabled: bool = True
