from __future__ import annotations

import pytest

from pytests.common import problem_url, write_snapshot_csv
from utils.snapshot_csv import (
    SnapshotParseError,
    load_company_snapshots,
    parse_percent,
    read_snapshot_file,
)
from utils.snapshot_merger import Window


@pytest.mark.parametrize(
    "text, expected",
    [
        ("46.8%", 46.8),
        (" 75.0 % ", 75.0),
        ("12", 12.0),
        ("", None),
        ("  ", None),
        (None, None),
        ("n/a", None),
    ],
)
def test_parse_percent(text, expected):
    assert parse_percent(text) == expected


def test_read_snapshot_file_parses_rows(tmp_path):
    path = write_snapshot_csv(
        tmp_path / "acme",
        "all.csv",
        [
            (79, problem_url("word-search"), "Word Search", "Medium", "46.8%", "75.0%"),
            (1, problem_url("two-sum"), "Two Sum", "Easy", "", ""),
        ],
    )

    rows = read_snapshot_file(path, Window.ALL)

    assert set(rows) == {1, 79}
    ws = rows[79]
    assert ws.title == "Word Search"
    assert ws.url == "https://leetcode.com/problems/word-search"
    assert ws.difficulty == "Medium"
    assert ws.acceptance == 46.8
    assert ws.frequency == 75.0
    assert rows[1].acceptance is None
    assert rows[1].frequency is None


def test_header_variants_are_accepted(tmp_path):
    path = write_snapshot_csv(
        tmp_path / "acme",
        "six-months.csv",
        [(2, problem_url("add-two-numbers"), "Add Two Numbers", "Medium", "41%", "12%")],
        header=("Id", "Link", "title", "DIFFICULTY", "Acceptance Rate", "Frequency%"),
    )

    row = read_snapshot_file(path, Window.SIX_MONTHS)[2]

    assert row.url.endswith("/add-two-numbers")
    assert row.title == "Add Two Numbers"
    assert row.acceptance == 41.0
    assert row.frequency == 12.0


def test_utf8_bom_header_is_handled(tmp_path):
    path = tmp_path / "all.csv"
    path.write_bytes(b"\xef\xbb\xbfID,Title\n3,Longest Substring\n")

    rows = read_snapshot_file(path, Window.ALL)

    assert rows[3].title == "Longest Substring"


def test_bad_ids_and_blank_lines_are_skipped(tmp_path):
    path = tmp_path / "all.csv"
    path.write_text("ID,Title\n\n,No id\nabc,Bad id\n4,Median\n", encoding="utf-8")

    rows = read_snapshot_file(path, Window.ALL)

    assert list(rows) == [4]


def test_missing_id_column_raises(tmp_path):
    path = tmp_path / "all.csv"
    path.write_text("Title,Difficulty\nTwo Sum,Easy\n", encoding="utf-8")

    with pytest.raises(SnapshotParseError):
        read_snapshot_file(path, Window.ALL)


def test_missing_file_raises_file_not_found(tmp_path):
    with pytest.raises(FileNotFoundError):
        read_snapshot_file(tmp_path / "nope.csv", Window.ALL)


def test_load_company_snapshots_skips_missing_and_broken_files(tmp_path):
    company = tmp_path / "acme"
    write_snapshot_csv(company, "all.csv", [(1, problem_url("two-sum"), "Two Sum", "Easy", "", "")])
    write_snapshot_csv(
        company, "thirty-days.csv", [(1, problem_url("two-sum"), "Two Sum", "Easy", "", "")]
    )
    (company / "three-months.csv").write_text("Title\nOops\n", encoding="utf-8")

    snapshots = load_company_snapshots(company)

    assert set(snapshots) == {Window.ALL, Window.THIRTY_DAYS}
    assert set(snapshots[Window.THIRTY_DAYS]) == {1}


def test_empty_file_is_empty_window(tmp_path):
    path = tmp_path / "all.csv"
    path.write_text("", encoding="utf-8")

    assert read_snapshot_file(path, Window.ALL) == {}


@pytest.mark.parametrize(
    "raw_id",
    ["1_0", "99999999999999999999", "-9223372036854775809", "+5", "1.0", "٣"],
)
def test_ids_outside_signed_64_bit_decimal_are_skipped(tmp_path, raw_id):
    path = tmp_path / "all.csv"
    path.write_text(f"ID,Title\n{raw_id},Bad\n7,Good\n", encoding="utf-8")

    rows = read_snapshot_file(path, Window.ALL)

    assert list(rows) == [7]


def test_signed_64_bit_bounds_are_accepted(tmp_path):
    path = tmp_path / "all.csv"
    path.write_text(
        "ID,Title\n9223372036854775807,Max\n-9223372036854775808,Min\n", encoding="utf-8"
    )

    rows = read_snapshot_file(path, Window.ALL)

    assert set(rows) == {2**63 - 1, -(2**63)}


def test_unreadable_window_file_raises_parse_error(tmp_path):
    (tmp_path / "all.csv").mkdir()

    with pytest.raises(SnapshotParseError):
        read_snapshot_file(tmp_path / "all.csv", Window.ALL)


def test_load_company_snapshots_skips_unreadable_file(tmp_path):
    company = tmp_path / "acme"
    (company / "all.csv").mkdir(parents=True)
    write_snapshot_csv(
        company, "thirty-days.csv", [(1, problem_url("two-sum"), "Two Sum", "Easy", "", "")]
    )

    snapshots = load_company_snapshots(company)

    assert set(snapshots) == {Window.THIRTY_DAYS}
