"""
Shared defaults and configuration checks for the book genre analyses.

Every stage validates its configuration up front and raises ConfigurationError
before touching any records. Malformed data never raises; bad settings do.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

DEFAULT_YEAR_MIN = 1980
DEFAULT_YEAR_MAX = 2025
DEFAULT_TOP_GENRES = 25
DEFAULT_WINDOW_RADIUS = 2
DEFAULT_TOP_BIGRAMS = 200
DEFAULT_HIGH_RATING = 4.4
DEFAULT_LOW_RATING = 2.0
DEFAULT_TREEMAP_METRIC = "reviews"

ENGAGEMENT_METRICS = ("ratings", "reviews")


class ConfigurationError(ValueError):
    """Invalid analysis setting (programmer or CLI error, not a data error)."""


def require_top_k(k: int, name: str = "top_k") -> int:
    if isinstance(k, bool) or not isinstance(k, int) or k <= 0:
        raise ConfigurationError(f"{name} must be a positive integer, got {k!r}")
    return k


def require_window_radius(radius: int) -> int:
    if isinstance(radius, bool) or not isinstance(radius, int) or radius < 0:
        raise ConfigurationError(f"window_radius must be a non-negative integer, got {radius!r}")
    return radius


def require_year_range(year_min: Optional[int], year_max: Optional[int]) -> None:
    if year_min is not None and year_max is not None and year_min > year_max:
        raise ConfigurationError(f"year_min ({year_min}) is greater than year_max ({year_max})")


def require_metric(metric: str) -> str:
    if metric not in ENGAGEMENT_METRICS:
        raise ConfigurationError(f"metric must be one of {', '.join(ENGAGEMENT_METRICS)}, got {metric!r}")
    return metric


def require_rating_cohorts(high: float, low: float) -> None:
    if low > high:
        raise ConfigurationError(f"low rating threshold ({low}) is above the high threshold ({high})")


@dataclass(frozen=True)
class TrendConfig:
    """Settings for the genre release-trend series."""

    year_min: Optional[int] = DEFAULT_YEAR_MIN
    year_max: Optional[int] = DEFAULT_YEAR_MAX
    top_n: int = DEFAULT_TOP_GENRES
    window_radius: int = DEFAULT_WINDOW_RADIUS

    def validate(self) -> "TrendConfig":
        require_year_range(self.year_min, self.year_max)
        require_top_k(self.top_n, "top_n")
        require_window_radius(self.window_radius)
        return self
