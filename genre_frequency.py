"""
Grouped counts and engagement totals over normalized records.

A record can belong to several groups (one per genre), so aggregation runs
over an explicit stream of (record, key) pairs produced by ``fan_out``.
Groups come back in first-seen order; ``top_k`` is a stable descending sort,
so equal counts keep that order.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Callable, Dict, Hashable, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple

import pandas as pd

from analysis_config import ConfigurationError, require_metric, require_top_k
from book_records import Record

LOGGER = logging.getLogger(__name__)

KeyFn = Callable[[Record], Iterable[Hashable]]
MeasureFn = Callable[[Record], float]

ENGAGEMENT_MEASURES: Dict[str, MeasureFn] = {
    "ratings": lambda r: r.ratings,
    "reviews": lambda r: r.reviews,
}


@dataclass(frozen=True)
class GroupStat:
    key: Hashable
    count: int
    totals: Mapping[str, float] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # read-only view over a private copy
        object.__setattr__(self, "totals", MappingProxyType(dict(self.totals)))

    @property
    def ratings_total(self) -> Optional[float]:
        return self.totals.get("ratings")

    @property
    def reviews_total(self) -> Optional[float]:
        return self.totals.get("reviews")


# ----------------------------
# Key functions
# ----------------------------
def by_genre(record: Record) -> Tuple[str, ...]:
    return record.genres


def by_genre_year(record: Record) -> List[Tuple[str, int]]:
    if record.year is None:
        return []
    return [(genre, record.year) for genre in record.genres]


def fan_out(records: Iterable[Record], key_fn: KeyFn) -> Iterator[Tuple[Record, Hashable]]:
    for record in records:
        for key in key_fn(record):
            yield record, key


# ----------------------------
# Aggregation
# ----------------------------
def aggregate(
    records: Iterable[Record],
    key_fn: KeyFn = by_genre,
    measure_fns: Optional[Mapping[str, MeasureFn]] = None,
) -> List[GroupStat]:
    measure_fns = dict(measure_fns or {})
    counts: Dict[Hashable, int] = {}
    totals: Dict[Hashable, Dict[str, float]] = {}
    for record, key in fan_out(records, key_fn):
        if key not in counts:
            counts[key] = 0
            totals[key] = {name: 0 for name in measure_fns}
        counts[key] += 1
        group_totals = totals[key]
        for name, fn in measure_fns.items():
            group_totals[name] += fn(record)
    LOGGER.debug("Aggregated %s groups", len(counts))
    return [GroupStat(key=key, count=count, totals=totals[key]) for key, count in counts.items()]


def merge_group_stats(partials: Iterable[Sequence[GroupStat]]) -> List[GroupStat]:
    """Combine partial aggregations (e.g. one per CSV chunk) by adding counts and totals."""
    counts: Dict[Hashable, int] = {}
    totals: Dict[Hashable, Dict[str, float]] = {}
    for partial in partials:
        for stat in partial:
            if stat.key not in counts:
                counts[stat.key] = 0
                totals[stat.key] = {}
            counts[stat.key] += stat.count
            merged = totals[stat.key]
            for name, value in stat.totals.items():
                merged[name] = merged.get(name, 0) + value
    return [GroupStat(key=key, count=count, totals=totals[key]) for key, count in counts.items()]


def _sort_value(stat: GroupStat, by: str) -> float:
    if by == "count":
        return stat.count
    try:
        return stat.totals[by]
    except KeyError:
        raise ConfigurationError(f"groups have no measure named {by!r}") from None


def rank_groups(groups: Iterable[GroupStat], by: str = "count") -> List[GroupStat]:
    """Descending by ``by``; ties keep their input order."""
    return sorted(groups, key=lambda g: -_sort_value(g, by))


def top_k(groups: Iterable[GroupStat], k: int, by: str = "count") -> List[GroupStat]:
    require_top_k(k, "k")
    return rank_groups(groups, by)[:k]


# ----------------------------
# Genre tables
# ----------------------------
def genre_counts(records: Iterable[Record]) -> List[GroupStat]:
    return aggregate(records, by_genre)


def genre_engagement(records: Iterable[Record], metric: str = "ratings") -> List[GroupStat]:
    """Ratings and reviews totals per genre, ranked by ``metric``."""
    require_metric(metric)
    return rank_groups(aggregate(records, by_genre, ENGAGEMENT_MEASURES), by=metric)


def restrict_to_keys(records: Iterable[Record], keys: Iterable[str]) -> List[Record]:
    """Keep only genres in ``keys``; records left with no genre drop out."""
    allowed = set(keys)
    restricted = []
    for record in records:
        genres = tuple(g for g in record.genres if g in allowed)
        if genres:
            restricted.append(record if genres == record.genres else replace(record, genres=genres))
    return restricted


def stats_frame(groups: Sequence[GroupStat], key_name: str = "genre") -> pd.DataFrame:
    rows = []
    for stat in groups:
        row = {key_name: stat.key, "count": stat.count}
        row.update(stat.totals)
        rows.append(row)
    return pd.DataFrame(rows, columns=None if rows else [key_name, "count"])
