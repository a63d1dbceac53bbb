from __future__ import annotations

from datetime import datetime

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker

import jobs.ingest_companies as ingest_mod
from jobs.ingest_companies import run_ingest, upsert_company, write_company
from models.companies import Company
from models.company_problems import CompanyProblem
from models.problems import Problem
from pytests.common import problem_url, table_rows, write_snapshot_csv
from utils.snapshot_merger import MergedProblem, SnapshotRow, Timeframe, Window


def _two_sum(title: str = "Two Sum", freq: str = "50%"):
    return (1, problem_url("two-sum"), title, "Easy", "49.1%", freq)


def _word_search():
    return (79, problem_url("word-search"), "Word Search", "Medium", "46.8%", "75.0%")


def _pairs(session_factory) -> dict[tuple[str, int], CompanyProblem]:
    with session_factory() as s:
        rows = s.execute(
            select(Company.name, CompanyProblem).join(
                Company, Company.id == CompanyProblem.company_id
            )
        ).all()
    return {(name, cp.problem_id): cp for name, cp in rows}


def test_ingest_merges_windows_per_company(tmp_path, primary_db):
    session_factory, _engine = primary_db
    root = tmp_path / "root"
    write_snapshot_csv(root / "acme", "all.csv", [_two_sum(), _word_search()])
    write_snapshot_csv(root / "acme", "six-months.csv", [_two_sum(title="Two Sum (old)")])
    write_snapshot_csv(root / "acme", "thirty-days.csv", [_two_sum()])
    write_snapshot_csv(root / "globex", "more-than-six-months.csv", [_word_search()])
    (root / ".git").mkdir()
    (root / "README.md").write_text("not a company", encoding="utf-8")

    summary = run_ingest(session_factory=session_factory, root_dir=root)

    assert summary == {
        "companies": 2,
        "committed": 2,
        "rolled_back": 0,
        "problems_written": 3,
        "problems_failed": 0,
    }

    pairs = _pairs(session_factory)
    assert pairs[("acme", 1)].timeframe_tag == "thirty-days"
    assert pairs[("acme", 1)].source_file == "thirty-days"
    assert pairs[("acme", 79)].timeframe_tag is None
    assert pairs[("acme", 79)].source_file == "all"
    assert pairs[("globex", 79)].timeframe_tag is None
    assert pairs[("globex", 79)].source_file == "more-than-six"

    with session_factory() as s:
        two_sum = s.get(Problem, 1)
        assert two_sum.title == "Two Sum"
        assert two_sum.acceptance == 49.1
        assert two_sum.frequency == 50.0
        assert s.get(Problem, 79).difficulty == "Medium"


def test_rerun_keeps_company_ids_and_rows(tmp_path, primary_db):
    session_factory, engine = primary_db
    root = tmp_path / "root"
    write_snapshot_csv(root / "acme", "all.csv", [_two_sum()])
    write_snapshot_csv(root / "acme", "three-months.csv", [_two_sum()])

    run_ingest(session_factory=session_factory, root_dir=root)
    companies_before = table_rows(engine, Company.__table__)
    pairs_before = {
        k: (v.timeframe_tag, v.source_file) for k, v in _pairs(session_factory).items()
    }

    run_ingest(session_factory=session_factory, root_dir=root)

    assert table_rows(engine, Company.__table__) == companies_before
    assert {
        k: (v.timeframe_tag, v.source_file) for k, v in _pairs(session_factory).items()
    } == pairs_before
    assert len(table_rows(engine, Problem.__table__)) == 1


def test_unobserved_association_keeps_persisted_state(tmp_path, primary_db):
    session_factory, _engine = primary_db
    root = tmp_path / "root"
    write_snapshot_csv(root / "acme", "all.csv", [_two_sum(), _word_search()])
    write_snapshot_csv(root / "acme", "thirty-days.csv", [_two_sum()])
    run_ingest(session_factory=session_factory, root_dir=root)
    first = _pairs(session_factory)

    # Next snapshot no longer lists Two Sum at all.
    (root / "acme" / "thirty-days.csv").unlink()
    write_snapshot_csv(root / "acme", "all.csv", [_word_search()])
    run_ingest(session_factory=session_factory, root_dir=root)
    second = _pairs(session_factory)

    assert second[("acme", 1)].timeframe_tag == "thirty-days"
    assert second[("acme", 1)].source_file == "thirty-days"
    assert second[("acme", 1)].last_seen == first[("acme", 1)].last_seen
    assert second[("acme", 79)].last_seen >= first[("acme", 79)].last_seen


def test_timeframe_tag_downgrades_when_reobserved_in_wider_window(tmp_path, primary_db):
    session_factory, _engine = primary_db
    root = tmp_path / "root"
    write_snapshot_csv(root / "acme", "thirty-days.csv", [_two_sum()])
    run_ingest(session_factory=session_factory, root_dir=root)

    (root / "acme" / "thirty-days.csv").unlink()
    write_snapshot_csv(root / "acme", "six-months.csv", [_two_sum()])
    run_ingest(session_factory=session_factory, root_dir=root)

    assert _pairs(session_factory)[("acme", 1)].timeframe_tag == "six-months"


def test_problem_metadata_is_overwritten_and_empty_fields_become_null(tmp_path, primary_db):
    session_factory, _engine = primary_db
    root = tmp_path / "root"
    write_snapshot_csv(root / "acme", "all.csv", [_two_sum()])
    run_ingest(session_factory=session_factory, root_dir=root)
    with session_factory() as s:
        first_updated = s.get(Problem, 1).updated_at

    write_snapshot_csv(root / "acme", "all.csv", [(1, problem_url("two-sum"), "", "", "", "80%")])
    run_ingest(session_factory=session_factory, root_dir=root)

    with session_factory() as s:
        p = s.get(Problem, 1)
        assert p.title is None
        assert p.difficulty is None
        assert p.acceptance is None
        assert p.frequency == 80.0
        assert p.updated_at >= first_updated


def test_upsert_company_returns_stable_id(primary_db):
    session_factory, _engine = primary_db
    with session_factory() as s:
        a = upsert_company(s, "acme")
        b = upsert_company(s, "globex")
        again = upsert_company(s, "acme")
        s.commit()

    assert a == again
    assert a != b


def test_failing_pair_is_skipped_and_company_commits(primary_db, monkeypatch):
    session_factory, _engine = primary_db
    real = ingest_mod.upsert_company_problem

    def _flaky(session, company_id, problem_id, *args, **kwargs):
        if problem_id == 79:
            raise OperationalError("INSERT", {}, Exception("disk I/O error"))
        return real(session, company_id, problem_id, *args, **kwargs)

    monkeypatch.setattr(ingest_mod, "upsert_company_problem", _flaky)

    merged = {
        1: MergedProblem(SnapshotRow(id=1, title="Two Sum"), Timeframe.NONE, Window.ALL),
        79: MergedProblem(SnapshotRow(id=79, title="Word Search"), Timeframe.NONE, Window.ALL),
    }
    result = write_company(session_factory, "acme", merged)

    assert result.committed is True
    assert (result.written, result.failed) == (1, 1)
    with session_factory() as s:
        # The failed pair's problem row was rolled back with its savepoint.
        assert s.get(Problem, 79) is None
        assert s.get(Problem, 1) is not None
    assert set(_pairs(session_factory)) == {("acme", 1)}


class _CommitFailsFor:
    """Session factory whose sessions fail on commit after writing `company`."""

    def __init__(self, session_factory: sessionmaker, company: str):
        self._factory = session_factory
        self._company = company

    def __call__(self) -> Session:
        session = self._factory()
        company = self._company

        def _commit():
            names = session.execute(select(Company.name)).scalars().all()
            if company in names:
                raise OperationalError("COMMIT", {}, Exception("database is locked"))
            Session.commit(session)

        session.commit = _commit  # type: ignore[method-assign]
        return session


def test_commit_failure_rolls_back_company_and_continues(tmp_path, primary_db):
    session_factory, _engine = primary_db
    root = tmp_path / "root"
    write_snapshot_csv(root / "acme", "all.csv", [_two_sum()])
    write_snapshot_csv(root / "globex", "all.csv", [_word_search()])

    summary = run_ingest(
        session_factory=_CommitFailsFor(session_factory, "acme"), root_dir=root
    )

    assert summary["companies"] == 2
    assert summary["committed"] == 1
    assert summary["rolled_back"] == 1
    with session_factory() as s:
        assert s.execute(select(Company.name)).scalars().all() == ["globex"]
        assert s.get(Problem, 1) is None
        assert s.get(Problem, 79) is not None


def test_company_with_no_files_is_created_without_problems(tmp_path, primary_db):
    session_factory, _engine = primary_db
    (tmp_path / "root" / "initech").mkdir(parents=True)

    summary = run_ingest(session_factory=session_factory, root_dir=tmp_path / "root")

    assert summary["committed"] == 1
    with session_factory() as s:
        assert s.execute(select(Company.name)).scalars().all() == ["initech"]


def test_main_runs_ingest_against_database_url(tmp_path, monkeypatch):
    root = tmp_path / "root"
    write_snapshot_csv(root / "acme", "all.csv", [_two_sum()])
    db_path = tmp_path / "cli.sqlite"
    monkeypatch.delenv("ROOT_DIR", raising=False)

    ingest_mod.main(["--root-dir", str(root), "--database-url", f"sqlite:///{db_path}"])

    from pytests.common import make_sqlite_engine

    engine = make_sqlite_engine(db_path)
    try:
        assert len(table_rows(engine, Problem.__table__)) == 1
    finally:
        engine.dispose()


def test_main_requires_root_dir(monkeypatch):
    monkeypatch.delenv("ROOT_DIR", raising=False)
    with pytest.raises(SystemExit):
        ingest_mod.main(["--database-url", "sqlite://"])


def test_last_seen_is_timezone_consistent(tmp_path, primary_db):
    session_factory, _engine = primary_db
    root = tmp_path / "root"
    write_snapshot_csv(root / "acme", "all.csv", [_two_sum()])
    run_ingest(session_factory=session_factory, root_dir=root)

    last_seen = _pairs(session_factory)[("acme", 1)].last_seen
    assert isinstance(last_seen, datetime)


def test_oversized_id_row_is_skipped_and_run_continues(tmp_path, primary_db):
    session_factory, _engine = primary_db
    root = tmp_path / "root"
    write_snapshot_csv(
        root / "acme", "all.csv", [(99999999999999999999, "", "Too big", "", "", ""), _two_sum()]
    )
    write_snapshot_csv(root / "globex", "all.csv", [_word_search()])

    summary = run_ingest(session_factory=session_factory, root_dir=root)

    assert summary["committed"] == 2
    assert set(_pairs(session_factory)) == {("acme", 1), ("globex", 79)}


def test_unreadable_window_file_does_not_stop_run(tmp_path, primary_db):
    session_factory, _engine = primary_db
    root = tmp_path / "root"
    (root / "acme" / "all.csv").mkdir(parents=True)
    write_snapshot_csv(root / "acme", "thirty-days.csv", [_two_sum()])
    write_snapshot_csv(root / "globex", "all.csv", [_word_search()])

    summary = run_ingest(session_factory=session_factory, root_dir=root)

    assert summary["committed"] == 2
    pairs = _pairs(session_factory)
    assert pairs[("acme", 1)].timeframe_tag == "thirty-days"
    assert ("globex", 79) in pairs
