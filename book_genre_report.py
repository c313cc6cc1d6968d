"""
CLI to derive the book genre tables behind the genre charts.

Reads Goodreads-style CSV exports and writes plain data for the presentation layer:
- Genre counts and ratings/reviews totals per genre.
- Smoothed yearly release counts for the top genres.
- Genre co-occurrence matrix (long and square form).
- Genre treemap hierarchy (JSON): books per genre sized, engagement weighted.
- Bigram frequency tables for high- and low-rated reviews.
"""
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

import pandas as pd

from analysis_config import (
    ConfigurationError,
    DEFAULT_HIGH_RATING,
    DEFAULT_LOW_RATING,
    DEFAULT_TOP_BIGRAMS,
    DEFAULT_TOP_GENRES,
    DEFAULT_TREEMAP_METRIC,
    DEFAULT_WINDOW_RADIUS,
    DEFAULT_YEAR_MAX,
    DEFAULT_YEAR_MIN,
    ENGAGEMENT_METRICS,
    TrendConfig,
    require_metric,
    require_rating_cohorts,
    require_top_k,
)
from book_records import LONG_GENRES, REVIEWS, WIDE_GENRES, NormalizerConfig, Record, eligible, normalize_frame
from genre_cooccurrence import build_matrix, cells_frame, matrix_frame
from genre_frequency import GroupStat, genre_counts, genre_engagement, merge_group_stats, rank_groups, stats_frame
from genre_hierarchy import genre_treemap
from genre_trends import release_trends, trends_frame
from review_bigrams import cohort_bigrams, ngrams_frame

DEFAULT_CHUNKSIZE = 200_000


# ----------------------------
# Argument parsing and setup
# ----------------------------
def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Derive genre frequency, trend, co-occurrence, treemap and review bigram tables.")
    parser.add_argument("--books-csv", required=True, help="Book export with bracketed, comma-separated genres")
    parser.add_argument("--long-genres-csv", default=None, help="Optional book export with semicolon-separated genres")
    parser.add_argument("--reviews-csv", default=None, help="Optional review export (text + star rating)")
    parser.add_argument("--outdir", default="./outputs_genre_report")
    parser.add_argument("--year-min", type=int, default=DEFAULT_YEAR_MIN)
    parser.add_argument("--year-max", type=int, default=DEFAULT_YEAR_MAX)
    parser.add_argument("--top-genres", type=int, default=DEFAULT_TOP_GENRES, help="Genres kept in the release trends")
    parser.add_argument("--window-radius", type=int, default=DEFAULT_WINDOW_RADIUS, help="Years on each side of the moving average")
    parser.add_argument("--treemap-metric", choices=list(ENGAGEMENT_METRICS), default=DEFAULT_TREEMAP_METRIC)
    parser.add_argument("--top-bigrams", type=int, default=DEFAULT_TOP_BIGRAMS)
    parser.add_argument("--high-rating", type=float, default=DEFAULT_HIGH_RATING, help="Reviews rated at least this are 'high'")
    parser.add_argument("--low-rating", type=float, default=DEFAULT_LOW_RATING, help="Reviews rated below this are 'low'")
    parser.add_argument("--chunksize", type=int, default=DEFAULT_CHUNKSIZE, help="Rows per chunk when reading CSVs")
    parser.add_argument("--verbose", action="store_true", help="Debug logging from the analysis modules")
    return parser.parse_args(argv)


def build_trend_config(args: argparse.Namespace) -> TrendConfig:
    """Check every setting up front so bad options fail before any file is read."""
    config = TrendConfig(
        year_min=args.year_min,
        year_max=args.year_max,
        top_n=args.top_genres,
        window_radius=args.window_radius,
    ).validate()
    require_top_k(args.top_bigrams, "top_bigrams")
    require_top_k(args.chunksize, "chunksize")
    require_metric(args.treemap_metric)
    require_rating_cohorts(args.high_rating, args.low_rating)
    return config


# ----------------------------
# Loading
# ----------------------------
def load_records(csv_path: Path, config: NormalizerConfig, chunksize: int) -> Tuple[List[Record], List[GroupStat]]:
    """Read a CSV in chunks; return eligible records and their merged genre counts."""
    if not csv_path.exists():
        raise FileNotFoundError(f"CSV file {csv_path} not found.")
    records: List[Record] = []
    partial_counts = []
    rows_seen = 0
    reader = pd.read_csv(csv_path, chunksize=chunksize, dtype="string", low_memory=False)
    for chunk_idx, chunk in enumerate(reader, start=1):
        chunk_records = eligible(normalize_frame(chunk, config), config)
        partial_counts.append(genre_counts(chunk_records))
        records.extend(chunk_records)
        rows_seen += len(chunk)
        if chunk_idx % 5 == 0:
            print(f"[load] {csv_path.name}: processed {rows_seen:,} rows")
    dropped = rows_seen - len(records)
    print(f"[load] {csv_path.name}: {len(records):,} records kept, {dropped:,} without {config.required_field}")
    return records, merge_group_stats(partial_counts)


# ----------------------------
# Outputs
# ----------------------------
def write_table(df: pd.DataFrame, path: Path, label: str) -> None:
    df.to_csv(path, index=False)
    if df.empty:
        print(f"{label}: no data (wrote empty {path.name})")
    else:
        print(f"{label}: {len(df):,} rows -> {path.name}")


def build_book_outputs(
    books: List[Record],
    counts: List[GroupStat],
    long_books: Optional[List[Record]],
    trend_config: TrendConfig,
    args: argparse.Namespace,
    outdir: Path,
) -> None:
    write_table(stats_frame(rank_groups(counts)), outdir / "genre_counts.csv", "Genre counts")

    # One genre per row in the long export; fall back to the wide one.
    per_genre_books = long_books if long_books is not None else books
    write_table(
        stats_frame(genre_engagement(per_genre_books, "ratings")),
        outdir / "genre_engagement.csv",
        "Genre engagement",
    )

    write_table(trends_frame(release_trends(books, trend_config)), outdir / "genre_trends.csv", "Release trends")

    cells = build_matrix(books)
    write_table(cells_frame(cells), outdir / "genre_cooccurrence.csv", "Co-occurrence cells")
    square = matrix_frame(cells)
    square.to_csv(outdir / "genre_cooccurrence_matrix.csv", index=not square.empty)

    tree = genre_treemap(per_genre_books, args.treemap_metric)
    treemap_path = outdir / "genre_treemap.json"
    treemap_path.write_text(json.dumps(tree.to_dict(), indent=2))
    if tree.is_leaf:
        print(f"Genre treemap: no data (wrote {treemap_path.name})")
    else:
        print(f"Genre treemap: {len(tree.children)} genres -> {treemap_path.name}")


def build_review_outputs(reviews: List[Record], args: argparse.Namespace, outdir: Path) -> None:
    tables = cohort_bigrams(reviews, args.top_bigrams, args.high_rating, args.low_rating)
    for cohort, freqs in tables.items():
        write_table(ngrams_frame(freqs), outdir / f"bigrams_{cohort}.csv", f"Bigrams ({cohort}-rated)")
        if freqs:
            preview = ", ".join(f"{f.text} ({f.count})" for f in freqs[:5])
            print(f"  top {cohort}: {preview}")


# ----------------------------
# Main
# ----------------------------
def main(argv: Optional[Sequence[str]] = None) -> None:
    args = parse_args(argv)
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(asctime)s %(levelname)s %(name)s %(message)s")

    try:
        trend_config = build_trend_config(args)
    except ConfigurationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(2)

    outdir = Path(args.outdir)
    outdir.mkdir(parents=True, exist_ok=True)

    try:
        books, counts = load_records(Path(args.books_csv), WIDE_GENRES, args.chunksize)
        long_books = None
        if args.long_genres_csv:
            long_books, _ = load_records(Path(args.long_genres_csv), LONG_GENRES, args.chunksize)
        reviews = None
        if args.reviews_csv:
            reviews, _ = load_records(Path(args.reviews_csv), REVIEWS, args.chunksize)
    except FileNotFoundError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)

    build_book_outputs(books, counts, long_books, trend_config, args, outdir)
    if reviews is not None:
        build_review_outputs(reviews, args, outdir)
    else:
        print("No reviews CSV given; skipping bigram tables.")
    print(f"Finished. Outputs written to {outdir}")


if __name__ == "__main__":
    main()
