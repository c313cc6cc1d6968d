from __future__ import annotations

import json
from pathlib import Path

import pandas as pd
import pytest

import book_genre_report

BOOKS_CSV = """book_id,title,original_publication_year,publication_year,genres_mapped_clean,num_ratings,num_reviews
1,Alpha,2001,,"['fantasy', 'romance']","1,000",100
2,Beta,,2003,['fantasy'],500,50
3,Gamma,2002,2002,"[""horror""]",20,"2,000"
5,Epsilon,2002,,,999,999
4,Delta,1950,,['western'],1,1
"""

LONG_CSV = """book_id,genres_mapped_clean,num_ratings,num_reviews
1,fantasy;romance,"1,000",100
2,fantasy,500,50
3,horror,20,"2,000"
"""

REVIEWS_CSV = """review_id,review_rating_n,review_content_clean
r1,5,"Gorgeous world building. Gorgeous world building!"
r2,4.5,"Gorgeous world building"
r3,1,"Flat characters, flat characters."
r4,3,"Middling pacing"
"""


@pytest.fixture
def inputs(tmp_path: Path) -> dict:
    paths = {
        "books": tmp_path / "books.csv",
        "long": tmp_path / "long.csv",
        "reviews": tmp_path / "reviews.csv",
    }
    paths["books"].write_text(BOOKS_CSV)
    paths["long"].write_text(LONG_CSV)
    paths["reviews"].write_text(REVIEWS_CSV)
    return paths


def test_full_report(inputs: dict, tmp_path: Path) -> None:
    outdir = tmp_path / "out"
    book_genre_report.main(
        [
            "--books-csv", str(inputs["books"]),
            "--long-genres-csv", str(inputs["long"]),
            "--reviews-csv", str(inputs["reviews"]),
            "--outdir", str(outdir),
            "--top-genres", "2",
            "--chunksize", "2",
        ]
    )

    counts = pd.read_csv(outdir / "genre_counts.csv")
    assert counts.to_dict(orient="records") == [
        {"genre": "fantasy", "count": 2},
        {"genre": "romance", "count": 1},
        {"genre": "horror", "count": 1},
        {"genre": "western", "count": 1},
    ]

    engagement = pd.read_csv(outdir / "genre_engagement.csv")
    assert engagement["genre"].tolist() == ["fantasy", "romance", "horror"]
    assert engagement["ratings"].tolist() == [1500, 1000, 20]

    trends = pd.read_csv(outdir / "genre_trends.csv")
    assert set(trends["genre"]) == {"fantasy", "romance"}
    assert trends[trends["genre"] == "fantasy"]["year"].tolist() == [2001, 2003]

    cells = pd.read_csv(outdir / "genre_cooccurrence.csv")
    assert len(cells) == 16
    square = pd.read_csv(outdir / "genre_cooccurrence_matrix.csv", index_col=0)
    assert square.loc["fantasy", "fantasy"] == 2
    assert square.loc["fantasy", "romance"] == square.loc["romance", "fantasy"] == 1

    tree = json.loads((outdir / "genre_treemap.json").read_text())
    assert [(c["label"], c["size"], c["weight"]) for c in tree["children"]] == [
        ("fantasy", 2, 150),
        ("romance", 1, 100),
        ("horror", 1, 2000),
    ]

    high = pd.read_csv(outdir / "bigrams_high.csv")
    low = pd.read_csv(outdir / "bigrams_low.csv")
    assert high.iloc[0].to_dict() == {"text": "gorgeous world", "count": 3}
    assert low.iloc[0].to_dict() == {"text": "flat characters", "count": 2}


def test_without_optional_inputs(inputs: dict, tmp_path: Path, capsys: pytest.CaptureFixture) -> None:
    outdir = tmp_path / "out"
    book_genre_report.main(["--books-csv", str(inputs["books"]), "--outdir", str(outdir), "--treemap-metric", "ratings"])
    assert not (outdir / "bigrams_high.csv").exists()
    tree = json.loads((outdir / "genre_treemap.json").read_text())
    assert tree["children"][0] == {"label": "fantasy", "size": 2, "weight": 1500}
    assert "skipping bigram tables" in capsys.readouterr().out


def test_bad_configuration_exits_before_reading(tmp_path: Path, capsys: pytest.CaptureFixture) -> None:
    outdir = tmp_path / "out"
    with pytest.raises(SystemExit) as excinfo:
        book_genre_report.main(["--books-csv", str(tmp_path / "missing.csv"), "--outdir", str(outdir), "--window-radius", "-1"])
    assert excinfo.value.code == 2
    assert "window_radius" in capsys.readouterr().err
    assert not outdir.exists()


def test_missing_file_exits_with_error(tmp_path: Path, capsys: pytest.CaptureFixture) -> None:
    with pytest.raises(SystemExit) as excinfo:
        book_genre_report.main(["--books-csv", str(tmp_path / "missing.csv"), "--outdir", str(tmp_path / "out")])
    assert excinfo.value.code == 1
    assert "not found" in capsys.readouterr().err


def test_empty_export_reports_no_data(tmp_path: Path, capsys: pytest.CaptureFixture) -> None:
    books = tmp_path / "books.csv"
    books.write_text("book_id,original_publication_year,genres_mapped_clean,num_ratings,num_reviews\n")
    outdir = tmp_path / "out"
    book_genre_report.main(["--books-csv", str(books), "--outdir", str(outdir)])
    out = capsys.readouterr().out
    assert "Genre counts: no data" in out
    assert "Genre treemap: no data" in out
    assert json.loads((outdir / "genre_treemap.json").read_text()) == {"label": "genres", "size": 0, "weight": 0}


def test_exports_without_identifier_columns(tmp_path: Path, capsys: pytest.CaptureFixture) -> None:
    books = tmp_path / "books.csv"
    books.write_text(
        "original_publication_year,publication_year,genres_mapped_clean,num_ratings,num_reviews\n"
        "2001,,\"['fantasy', 'romance']\",10,1\n"
        ",2002,['fantasy'],5,2\n"
        "2003,,,7,7\n"
    )
    reviews = tmp_path / "reviews.csv"
    reviews.write_text(
        "review_rating_n,review_content_clean\n"
        "5,\"Gorgeous world building\"\n"
        "1,\"Flat characters\"\n"
        "5,\n"
    )
    outdir = tmp_path / "out"
    book_genre_report.main(["--books-csv", str(books), "--reviews-csv", str(reviews), "--outdir", str(outdir)])

    counts = pd.read_csv(outdir / "genre_counts.csv")
    assert counts.to_dict(orient="records") == [
        {"genre": "fantasy", "count": 2},
        {"genre": "romance", "count": 1},
    ]
    assert pd.read_csv(outdir / "bigrams_high.csv").to_dict(orient="records") == [
        {"text": "gorgeous world", "count": 1},
        {"text": "world building", "count": 1},
    ]
    assert pd.read_csv(outdir / "bigrams_low.csv").to_dict(orient="records") == [{"text": "flat characters", "count": 1}]
    out = capsys.readouterr().out
    assert "books.csv: 2 records kept, 1 without genres" in out
    assert "reviews.csv: 2 records kept, 1 without content" in out
