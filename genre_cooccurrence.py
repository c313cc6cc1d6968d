"""
Genre co-occurrence matrix.

Every ordered pair (a, b) drawn from a record's genre list, including a == b,
adds one to cell [a][b]. The matrix is therefore symmetric and its diagonal
holds the number of records listing each genre.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

import numpy as np
import pandas as pd

from book_records import Record

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class CoOccurrenceCell:
    row: str
    col: str
    count: int


def build_vocabulary(records: Iterable[Record]) -> List[str]:
    vocab = set()
    for record in records:
        vocab.update(record.genres)
    return sorted(vocab)


def cooccurrence_counts(records: Iterable[Record], vocabulary: Sequence[str]) -> np.ndarray:
    """Dense (len(vocabulary) x len(vocabulary)) count matrix.

    Genres missing from ``vocabulary`` are ignored.
    """
    index = {genre: i for i, genre in enumerate(vocabulary)}
    matrix = np.zeros((len(vocabulary), len(vocabulary)), dtype=np.int64)
    for record in records:
        idx = [index[g] for g in record.genres if g in index]
        if not idx:
            continue
        # genres are unique per record, so fancy-index += touches each cell once
        matrix[np.ix_(idx, idx)] += 1
    return matrix


def build_matrix(records: Iterable[Record], vocabulary: Optional[Sequence[str]] = None) -> List[CoOccurrenceCell]:
    """Row-major cells over the (sorted) vocabulary, zeros included."""
    records = list(records)
    if vocabulary is None:
        vocabulary = build_vocabulary(records)
    matrix = cooccurrence_counts(records, vocabulary)
    LOGGER.debug("Co-occurrence matrix over %s genres from %s records", len(vocabulary), len(records))
    return [
        CoOccurrenceCell(row=row, col=col, count=int(matrix[i, j]))
        for i, row in enumerate(vocabulary)
        for j, col in enumerate(vocabulary)
    ]


def cells_frame(cells: Sequence[CoOccurrenceCell]) -> pd.DataFrame:
    return pd.DataFrame(
        [{"row": c.row, "col": c.col, "count": c.count} for c in cells],
        columns=["row", "col", "count"],
    )


def matrix_frame(cells: Sequence[CoOccurrenceCell]) -> pd.DataFrame:
    """Square table indexed by row genre with one column per genre."""
    long_df = cells_frame(cells)
    if long_df.empty:
        return pd.DataFrame()
    order = list(dict.fromkeys(long_df["row"]))
    wide = long_df.pivot(index="row", columns="col", values="count")
    return wide.reindex(index=order, columns=order).rename_axis(index="genre", columns=None)
