from __future__ import annotations

from sqlalchemy import select

from jobs.enrich_tags import run_enrichment
from models.problem_tags import ProblemTag
from models.problems import Problem
from pytests.common import add_dicts, problem_url
from utils.leetcode_graphql import GraphQLApiError
from utils.problem_tags import replace_problem_tags
from utils.time_utils import utcnow


class _FakeFetch:
    def __init__(self, answers: dict[str, list[str] | None], fail_on: set[str] | None = None):
        self.answers = answers
        self.fail_on = fail_on or set()
        self.batches: list[list[str]] = []

    def __call__(self, slugs):
        self.batches.append(list(slugs))
        if self.fail_on & set(slugs):
            raise GraphQLApiError("status=429")
        return {s: self.answers.get(s) for s in slugs}


def _seed(session_factory, rows: list[tuple[int, str | None]]) -> None:
    now = utcnow()
    with session_factory() as s:
        add_dicts(s, Problem, [{"id": pid, "url": url, "updated_at": now} for pid, url in rows])


def _tags(session_factory) -> dict[int, list[str]]:
    out: dict[int, list[str]] = {}
    with session_factory() as s:
        for pid, tag in s.execute(
            select(ProblemTag.problem_id, ProblemTag.tag).order_by(ProblemTag.problem_id, ProblemTag.tag)
        ):
            out.setdefault(pid, []).append(tag)
    return out


def test_enrichment_batches_sleeps_and_replaces_tags(primary_db):
    session_factory, _engine = primary_db
    _seed(
        session_factory,
        [
            (1, problem_url("two-sum")),
            (2, problem_url("add-two-numbers")),
            (3, problem_url("longest-substring")),
            (4, "https://example.com/not-a-problem"),
            (5, None),
        ],
    )
    fetch = _FakeFetch(
        {"two-sum": ["Array", "Hash Table"], "add-two-numbers": ["Linked List"], "longest-substring": []}
    )
    sleeps: list[float] = []

    summary = run_enrichment(
        session_factory=session_factory,
        batch_size=2,
        delay_seconds=0.25,
        fetch=fetch,
        sleep=sleeps.append,
    )

    assert fetch.batches == [["two-sum", "add-two-numbers"], ["longest-substring"]]
    assert sleeps == [0.25, 0.25]
    assert summary["problems"] == 4
    assert summary["invalid_urls"] == 1
    assert summary["batches"] == 2
    assert summary["resolved"] == 3
    assert summary["updated"] == 3
    assert _tags(session_factory) == {1: ["Array", "Hash Table"], 2: ["Linked List"]}


def test_unresolved_problems_keep_existing_tags(primary_db):
    session_factory, _engine = primary_db
    _seed(session_factory, [(1, problem_url("two-sum")), (2, problem_url("gone"))])
    replace_problem_tags(session_factory, 2, ["Old Tag"])

    summary = run_enrichment(
        session_factory=session_factory,
        batch_size=40,
        delay_seconds=0,
        fetch=_FakeFetch({"two-sum": ["Array"], "gone": None}),
        sleep=lambda _s: None,
    )

    assert summary["unresolved"] == 1
    assert _tags(session_factory) == {1: ["Array"], 2: ["Old Tag"]}


def test_failed_batch_is_skipped_and_next_batch_runs(primary_db):
    session_factory, _engine = primary_db
    _seed(
        session_factory,
        [(1, problem_url("two-sum")), (2, problem_url("add-two-numbers")), (3, problem_url("lru-cache"))],
    )
    replace_problem_tags(session_factory, 1, ["Kept"])
    sleeps: list[float] = []

    summary = run_enrichment(
        session_factory=session_factory,
        batch_size=2,
        delay_seconds=0.3,
        fetch=_FakeFetch({"lru-cache": ["Design"]}, fail_on={"two-sum"}),
        sleep=sleeps.append,
    )

    assert summary["failed_batches"] == 1
    assert summary["updated"] == 1
    assert sleeps == [0.3, 0.3]
    assert _tags(session_factory) == {1: ["Kept"], 3: ["Design"]}


def test_shared_slug_is_requested_once(primary_db):
    session_factory, _engine = primary_db
    _seed(session_factory, [(1, problem_url("two-sum")), (2, problem_url("two-sum") + "/")])
    fetch = _FakeFetch({"two-sum": ["Array"]})

    run_enrichment(
        session_factory=session_factory, batch_size=40, delay_seconds=0, fetch=fetch, sleep=lambda _s: None
    )

    assert fetch.batches == [["two-sum"]]
    assert _tags(session_factory) == {1: ["Array"], 2: ["Array"]}


def test_limit_caps_processed_problems(primary_db):
    session_factory, _engine = primary_db
    _seed(session_factory, [(i, problem_url(f"p-{i}")) for i in range(1, 6)])
    fetch = _FakeFetch({})

    summary = run_enrichment(
        session_factory=session_factory,
        batch_size=40,
        delay_seconds=0,
        fetch=fetch,
        sleep=lambda _s: None,
        limit=3,
    )

    assert summary["problems"] == 3
    assert fetch.batches == [["p-1", "p-2", "p-3"]]
