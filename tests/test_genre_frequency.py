import pytest

from analysis_config import ConfigurationError
from book_records import Record
from genre_frequency import (
    GroupStat,
    aggregate,
    by_genre,
    by_genre_year,
    fan_out,
    genre_counts,
    genre_engagement,
    merge_group_stats,
    rank_groups,
    restrict_to_keys,
    stats_frame,
    top_k,
)


def _book(genres, year=None, ratings=0, reviews=0, book_id="b"):
    return Record(record_id=book_id, year=year, genres=tuple(genres), ratings=ratings, reviews=reviews)


BOOKS = [
    _book(["fantasy", "romance"], 2001, ratings=100, reviews=10),
    _book(["fantasy"], 2002, ratings=50, reviews=5),
    _book(["horror"], 2002, ratings=7, reviews=70),
]


def test_fan_out_emits_one_pair_per_genre() -> None:
    pairs = list(fan_out(BOOKS, by_genre))
    assert [key for _, key in pairs] == ["fantasy", "romance", "fantasy", "horror"]
    assert pairs[0][0] is BOOKS[0]


def test_genre_counts_end_to_end() -> None:
    counts = {s.key: s.count for s in genre_counts(BOOKS)}
    assert counts == {"fantasy": 2, "romance": 1, "horror": 1}


def test_count_conservation() -> None:
    books = BOOKS + [_book([]), _book(["a", "b", "c"])]
    stats = genre_counts(books)
    assert sum(s.count for s in stats) == sum(len(b.genres) for b in books)


def test_measures_are_summed_per_group() -> None:
    stats = aggregate(BOOKS, by_genre, {"ratings": lambda r: r.ratings, "reviews": lambda r: r.reviews})
    fantasy = stats[0]
    assert fantasy.key == "fantasy"
    assert fantasy.count == 2
    assert fantasy.ratings_total == 150
    assert fantasy.reviews_total == 15


def test_composite_keys_skip_records_without_year() -> None:
    stats = aggregate(BOOKS + [_book(["fantasy"])], by_genre_year)
    assert [(s.key, s.count) for s in stats] == [
        (("fantasy", 2001), 1),
        (("romance", 2001), 1),
        (("fantasy", 2002), 1),
        (("horror", 2002), 1),
    ]


def test_top_k_ties_keep_first_seen_order() -> None:
    groups = [GroupStat("A", 3), GroupStat("B", 3), GroupStat("C", 3)]
    assert [g.key for g in top_k(groups, 2)] == ["A", "B"]


def test_top_k_sorts_descending() -> None:
    groups = [GroupStat("A", 1), GroupStat("B", 5), GroupStat("C", 3), GroupStat("D", 5)]
    assert [g.key for g in top_k(groups, 3)] == ["B", "D", "C"]


@pytest.mark.parametrize("k", [0, -1])
def test_top_k_rejects_non_positive_k(k) -> None:
    with pytest.raises(ConfigurationError):
        top_k([GroupStat("A", 1)], k)


def test_rank_groups_by_unknown_measure() -> None:
    with pytest.raises(ConfigurationError):
        rank_groups([GroupStat("A", 1)], by="pages")


def test_genre_engagement_ranks_by_metric() -> None:
    by_ratings = genre_engagement(BOOKS, "ratings")
    by_reviews = genre_engagement(BOOKS, "reviews")
    assert [s.key for s in by_ratings] == ["fantasy", "romance", "horror"]
    assert [s.key for s in by_reviews] == ["horror", "fantasy", "romance"]
    with pytest.raises(ConfigurationError):
        genre_engagement(BOOKS, "likes")


def test_merge_partials_matches_single_pass() -> None:
    measures = {"ratings": lambda r: r.ratings}
    whole = aggregate(BOOKS, by_genre, measures)
    merged = merge_group_stats([aggregate(BOOKS[:1], by_genre, measures), aggregate(BOOKS[1:], by_genre, measures)])
    assert merged == whole


def test_group_totals_are_read_only() -> None:
    source = {"ratings": 1.0}
    stat = GroupStat(key="fantasy", count=1, totals=source)
    source["ratings"] = 99.0
    assert stat.ratings_total == 1.0
    with pytest.raises(TypeError):
        stat.totals["ratings"] = 2.0
    [merged] = merge_group_stats([[stat], [stat]])
    assert merged.totals == {"ratings": 2.0}
    assert stat.totals == {"ratings": 1.0}


def test_top_k_after_merge_sees_every_candidate() -> None:
    part_a = [GroupStat("x", 2), GroupStat("y", 1)]
    part_b = [GroupStat("y", 2), GroupStat("z", 2)]
    merged = merge_group_stats([part_a, part_b])
    assert [g.key for g in top_k(merged, 1)] == ["y"]


def test_restrict_to_keys_drops_records_outside_key_set() -> None:
    restricted = restrict_to_keys(BOOKS, ["fantasy"])
    assert [r.genres for r in restricted] == [("fantasy",), ("fantasy",)]


def test_empty_input_gives_empty_results() -> None:
    assert genre_counts([]) == []
    assert top_k([], 3) == []
    assert stats_frame([]).empty


def test_stats_frame_columns() -> None:
    df = stats_frame(genre_engagement(BOOKS, "ratings"))
    assert list(df.columns) == ["genre", "count", "ratings", "reviews"]
    assert df.iloc[0].to_dict() == {"genre": "fantasy", "count": 2, "ratings": 150, "reviews": 15}
