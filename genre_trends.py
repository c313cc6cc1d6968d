"""
Genre release counts per year and their moving average.

The moving average uses a centered window of ``2 * window_radius + 1`` years
that shrinks at both ends of a series instead of padding: the first point of a
series averages itself and the ``window_radius`` points after it.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Hashable, Iterable, List, Optional, Sequence

import pandas as pd

from analysis_config import TrendConfig, require_window_radius, require_year_range
from book_records import Record
from genre_frequency import aggregate, by_genre_year, genre_counts, restrict_to_keys, top_k

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class TimeSeriesPoint:
    key: Hashable
    year: int
    count: int
    smoothed: Optional[float] = None


def in_year_range(records: Iterable[Record], year_min: Optional[int], year_max: Optional[int]) -> List[Record]:
    """Records with a known year inside [year_min, year_max]; ``None`` leaves a side open."""
    require_year_range(year_min, year_max)
    kept = []
    for record in records:
        if record.year is None:
            continue
        if year_min is not None and record.year < year_min:
            continue
        if year_max is not None and record.year > year_max:
            continue
        kept.append(record)
    return kept


def smooth(points: Iterable[TimeSeriesPoint], window_radius: int = 2) -> List[TimeSeriesPoint]:
    """Moving average per key over year-sorted counts.

    Keys come back in first-seen order, each series sorted by year. Repeated
    years within one key raise ValueError.
    """
    require_window_radius(window_radius)
    series: Dict[Hashable, List[TimeSeriesPoint]] = {}
    for point in points:
        series.setdefault(point.key, []).append(point)

    smoothed_points: List[TimeSeriesPoint] = []
    for key, key_points in series.items():
        key_points = sorted(key_points, key=lambda p: p.year)
        years = [p.year for p in key_points]
        if len(set(years)) != len(years):
            raise ValueError(f"series {key!r} has repeated years")
        counts = pd.Series([p.count for p in key_points], dtype="float64")
        means = counts.rolling(2 * window_radius + 1, min_periods=1, center=True).mean()
        for point, mean in zip(key_points, means):
            smoothed_points.append(TimeSeriesPoint(key=key, year=point.year, count=point.count, smoothed=float(mean)))
    return smoothed_points


def yearly_counts(
    records: Iterable[Record],
    keys: Sequence[str],
    year_min: Optional[int] = None,
    year_max: Optional[int] = None,
) -> List[TimeSeriesPoint]:
    """Count (genre, year) memberships for the genres in ``keys``, ordered by ``keys`` then year."""
    records = restrict_to_keys(in_year_range(records, year_min, year_max), keys)
    stats = aggregate(records, by_genre_year)
    by_key: Dict[str, List[TimeSeriesPoint]] = {key: [] for key in keys}
    for stat in stats:
        genre, year = stat.key
        by_key[genre].append(TimeSeriesPoint(key=genre, year=year, count=stat.count))
    points: List[TimeSeriesPoint] = []
    for key in keys:
        points.extend(sorted(by_key[key], key=lambda p: p.year))
    return points


def release_trends(records: Iterable[Record], config: TrendConfig = TrendConfig()) -> List[TimeSeriesPoint]:
    """Smoothed yearly release counts for the ``top_n`` most frequent genres in the year range."""
    config.validate()
    in_range = in_year_range(records, config.year_min, config.year_max)
    top_genres = [stat.key for stat in top_k(genre_counts(in_range), config.top_n)]
    LOGGER.debug("Release trends over %s records, top genres: %s", len(in_range), top_genres)
    points = yearly_counts(in_range, top_genres)
    return smooth(points, config.window_radius)


def trends_frame(points: Sequence[TimeSeriesPoint]) -> pd.DataFrame:
    return pd.DataFrame(
        [{"genre": p.key, "year": p.year, "count": p.count, "smoothed": p.smoothed} for p in points],
        columns=["genre", "year", "count", "smoothed"],
    )
