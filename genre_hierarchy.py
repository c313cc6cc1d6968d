"""
Single-level genre hierarchy for treemap-style sizing.

Each child carries ``size`` (number of records) and ``weight`` (an engagement
sum). Nodes nest, so a caller can build deeper trees by rolling up
pre-filtered subsets and joining the results with ``nest``.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from analysis_config import require_metric
from book_records import Record
from genre_frequency import ENGAGEMENT_MEASURES


@dataclass(frozen=True)
class HierarchyNode:
    label: str
    size: int = 0
    weight: float = 0
    children: Tuple["HierarchyNode", ...] = ()

    @property
    def is_leaf(self) -> bool:
        return not self.children

    def leaves(self) -> List["HierarchyNode"]:
        if self.is_leaf:
            return [self]
        out: List[HierarchyNode] = []
        for child in self.children:
            out.extend(child.leaves())
        return out

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"label": self.label, "size": self.size, "weight": self.weight}
        if self.children:
            data["children"] = [child.to_dict() for child in self.children]
        return data


def _sorted_by_size(nodes: Iterable[HierarchyNode]) -> Tuple[HierarchyNode, ...]:
    return tuple(sorted(nodes, key=lambda n: -n.size))


def nest(label: str, nodes: Iterable[HierarchyNode]) -> HierarchyNode:
    children = _sorted_by_size(nodes)
    return HierarchyNode(
        label=label,
        size=sum(c.size for c in children),
        weight=sum(c.weight for c in children),
        children=children,
    )


def rollup_to_hierarchy(
    records: Iterable[Record],
    label_fn: Callable[[Record], Optional[str]],
    weight_fn: Callable[[Record], float],
    root_label: str = "genres",
) -> HierarchyNode:
    """Group records by ``label_fn``; records with an empty label are skipped."""
    sizes: Dict[str, int] = {}
    weights: Dict[str, float] = {}
    for record in records:
        label = label_fn(record)
        if label is None:
            continue
        label = label.strip()
        if not label:
            continue
        if label not in sizes:
            sizes[label] = 0
            weights[label] = 0
        sizes[label] += 1
        weights[label] += weight_fn(record)
    leaves = [HierarchyNode(label=label, size=sizes[label], weight=weights[label]) for label in sizes]
    return nest(root_label, leaves)


def explode_genres(records: Iterable[Record]) -> List[Record]:
    """Long-form view: one single-genre record per (record, genre)."""
    exploded = []
    for record in records:
        if len(record.genres) == 1:
            exploded.append(record)
            continue
        for genre in record.genres:
            exploded.append(replace(record, genres=(genre,)))
    return exploded


def first_genre(record: Record) -> Optional[str]:
    return record.genres[0] if record.genres else None


def genre_treemap(records: Iterable[Record], metric: str = "reviews") -> HierarchyNode:
    """Books per genre (size) with total reviews or ratings (weight)."""
    require_metric(metric)
    return rollup_to_hierarchy(explode_genres(records), first_genre, ENGAGEMENT_MEASURES[metric])
