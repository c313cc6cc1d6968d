"""
Field normalization for Goodreads-style book and review exports.

Raw rows come from CSV exports where the same information is encoded several
ways: genre lists wrapped in brackets and quotes (``"['fantasy', 'romance']"``)
or joined with semicolons, counts written with thousands separators
(``"1,234,567"``) and publication years split over two columns. ``normalize``
turns one raw row into an immutable ``Record``; nothing here raises on bad data.
"""
from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

import pandas as pd

from analysis_config import ConfigurationError

LOGGER = logging.getLogger(__name__)

GENRE_DECORATION = re.compile(r"[\[\]'\"]+")
THOUSANDS_SEPARATOR = ","
BAD_TOKENS = {"<na>", "nan", "none", "null"}
REQUIRED_FIELDS = ("genres", "content", "record_id")


@dataclass(frozen=True)
class NormalizerConfig:
    """Column names and genre delimiter for one export format."""

    genre_column: str = "genres_mapped_clean"
    genre_delimiter: str = ","
    year_columns: Tuple[str, ...] = ("original_publication_year", "publication_year")
    ratings_column: str = "num_ratings"
    reviews_column: str = "num_reviews"
    content_column: str = "review_content_clean"
    rating_column: str = "review_rating_n"
    id_columns: Tuple[str, ...] = ("book_id", "title", "review_id")
    # Record attribute a row must carry to be analysed; callers drop the rest.
    required_field: str = "genres"

    def validate(self) -> "NormalizerConfig":
        if not self.genre_delimiter:
            raise ConfigurationError("genre_delimiter must be a non-empty string")
        if not self.id_columns:
            raise ConfigurationError("at least one identifying column is required")
        if not self.year_columns:
            raise ConfigurationError("at least one year column is required")
        if self.required_field not in REQUIRED_FIELDS:
            raise ConfigurationError(
                f"required_field must be one of {', '.join(REQUIRED_FIELDS)}, got {self.required_field!r}"
            )
        return self


# Wide export: "['fantasy', 'romance']"; long export: "fantasy;romance".
WIDE_GENRES = NormalizerConfig()
LONG_GENRES = NormalizerConfig(genre_delimiter=";")
# Review export: rows count as long as they carry review text.
REVIEWS = NormalizerConfig(required_field="content")


@dataclass(frozen=True)
class Record:
    record_id: Optional[str] = None
    year: Optional[int] = None
    genres: Tuple[str, ...] = ()
    ratings: int = 0
    reviews: int = 0
    content: Optional[str] = None
    rating: Optional[float] = None

    def to_row(self, config: NormalizerConfig = WIDE_GENRES) -> Dict[str, str]:
        """Canonical raw row; normalizing it gives back an equal record."""
        row = {
            config.genre_column: config.genre_delimiter.join(self.genres),
            config.year_columns[0]: "" if self.year is None else str(self.year),
            config.ratings_column: str(self.ratings),
            config.reviews_column: str(self.reviews),
        }
        if self.record_id is not None:
            row[config.id_columns[0]] = self.record_id
        if self.content is not None:
            row[config.content_column] = self.content
        if self.rating is not None:
            row[config.rating_column] = repr(self.rating)
        return row


RawRow = Union[Mapping[str, Any], Record]


# ----------------------------
# Field parsers
# ----------------------------
def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def _text(value: Any) -> Optional[str]:
    if _is_missing(value):
        return None
    text = str(value).strip()
    if not text or text.lower() in BAD_TOKENS:
        return None
    return text


def parse_genres_field(value: Any, delimiter: str = ",") -> Tuple[str, ...]:
    """Split a decorated genre cell into unique, trimmed genre names."""
    text = _text(value)
    if text is None:
        return ()
    text = GENRE_DECORATION.sub("", text)
    genres: List[str] = []
    seen = set()
    for token in text.split(delimiter):
        genre = token.strip()
        if genre and genre not in seen:
            seen.add(genre)
            genres.append(genre)
    return tuple(genres)


def _to_number(value: Any) -> float:
    text = _text(value)
    if text is None:
        return float("nan")
    try:
        return float(text.replace(THOUSANDS_SEPARATOR, ""))
    except ValueError:
        return float("nan")


def parse_count(value: Any) -> int:
    """Non-negative integer from a count cell, 0 when it does not parse."""
    number = _to_number(value)
    if math.isnan(number) or math.isinf(number) or number < 0:
        return 0
    return int(number)


def parse_rating(value: Any) -> Optional[float]:
    number = _to_number(value)
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def extract_year(row: Mapping[str, Any], year_columns: Sequence[str]) -> Optional[int]:
    """First column holding a non-zero year wins (negative years are BCE); 0 and garbage fall through."""
    for col in year_columns:
        number = _to_number(row.get(col))
        if math.isnan(number) or math.isinf(number):
            continue
        year = int(number)
        if year != 0:
            return year
    return None


def _record_id(row: Mapping[str, Any], id_columns: Sequence[str]) -> Optional[str]:
    for col in id_columns:
        text = _text(row.get(col))
        if text is not None:
            return text
    return None


# ----------------------------
# Normalization
# ----------------------------
def normalize(row: RawRow, config: NormalizerConfig = WIDE_GENRES) -> Record:
    if isinstance(row, Record):
        row = row.to_row(config)
    content = row.get(config.content_column)
    return Record(
        record_id=_record_id(row, config.id_columns),
        year=extract_year(row, config.year_columns),
        genres=parse_genres_field(row.get(config.genre_column), config.genre_delimiter),
        ratings=parse_count(row.get(config.ratings_column)),
        reviews=parse_count(row.get(config.reviews_column)),
        content=None if _is_missing(content) else str(content),
        rating=parse_rating(row.get(config.rating_column)),
    )


def normalize_rows(rows: Iterable[RawRow], config: NormalizerConfig = WIDE_GENRES) -> List[Record]:
    config.validate()
    return [normalize(row, config) for row in rows]


def normalize_frame(df: pd.DataFrame, config: NormalizerConfig = WIDE_GENRES) -> List[Record]:
    """Normalize every row of a DataFrame (or one read_csv chunk)."""
    config.validate()
    records = [normalize(row, config) for row in df.to_dict(orient="records")]
    if LOGGER.isEnabledFor(logging.DEBUG) and records:
        no_year = sum(1 for r in records if r.year is None)
        no_genre = sum(1 for r in records if not r.genres)
        LOGGER.debug(
            "Normalized %s rows (%s without year, %s without genres)", len(records), no_year, no_genre
        )
    return records


def is_eligible(record: Record, config: NormalizerConfig = WIDE_GENRES) -> bool:
    """Callers drop records missing the field their export requires (genres for books, text for reviews)."""
    return bool(getattr(record, config.required_field))


def eligible(records: Iterable[Record], config: NormalizerConfig = WIDE_GENRES) -> List[Record]:
    return [r for r in records if is_eligible(r, config)]
