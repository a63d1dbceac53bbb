from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request
from sqlalchemy import func, select

from api.schemas.api_responses import ApiMeta, fail, ok
from api.session import get_session_factory
from models.companies import Company
from models.company_problems import CompanyProblem
from models.problem_tags import ProblemTag
from models.problems import Problem
from utils.snapshot_merger import Timeframe
from utils.time_utils import isoformat_or_none

companies_v1_bp = Blueprint("companies_v1", __name__)


def _limit_param(default: int = 100) -> int:
    max_limit = int(current_app.config.get("MAX_PAGE_SIZE", 500))
    try:
        limit = int((request.args.get("limit") or "").strip() or default)
    except ValueError:
        limit = default
    return max(1, min(limit, max_limit))


@companies_v1_bp.get("/companies")
def list_companies():
    """List companies with their problem counts.

    Query params:
    - q: optional case-insensitive substring of the company name
    - limit: optional (default 100, capped by MAX_PAGE_SIZE)
    """

    q = (request.args.get("q") or "").strip()
    limit = _limit_param()

    problem_count = func.count(CompanyProblem.problem_id)
    stmt = (
        select(Company.id, Company.name, problem_count.label("problem_count"))
        .outerjoin(CompanyProblem, CompanyProblem.company_id == Company.id)
        .group_by(Company.id, Company.name)
        .order_by(Company.name)
        .limit(limit)
    )
    if q:
        stmt = stmt.where(Company.name.ilike(f"%{q}%"))

    with get_session_factory()() as session:
        rows = session.execute(stmt).all()

    return jsonify(
        ok(
            [
                {"id": r.id, "name": r.name, "problem_count": int(r.problem_count)}
                for r in rows
            ],
            meta=ApiMeta(limit=limit),
        )
    )


@companies_v1_bp.get("/companies/<int:company_id>/problems")
def company_problems(company_id: int):
    """Problems asked by one company.

    Each item carries its tags, the other companies asking it and the
    timeframe tag of this company's association.

    Query params:
    - timeframe: optional, one of thirty-days/three-months/six-months/none
    - tag: optional exact tag name
    - difficulty: optional, case-insensitive
    """

    timeframe_raw = (request.args.get("timeframe") or "").strip().lower()
    tag = (request.args.get("tag") or "").strip() or None
    difficulty = (request.args.get("difficulty") or "").strip() or None

    timeframe: Timeframe | None = None
    if timeframe_raw:
        try:
            timeframe = Timeframe(timeframe_raw)
        except ValueError:
            return (
                jsonify(
                    fail(
                        f"unknown timeframe: {timeframe_raw}",
                        code="invalid_timeframe",
                        details={"allowed": [t.value for t in Timeframe]},
                    )
                ),
                400,
            )

    with get_session_factory()() as session:
        company = session.get(Company, company_id)
        if company is None:
            return (
                jsonify(
                    fail(
                        f"company {company_id} not found",
                        code="not_found",
                        details={"company_id": company_id},
                    )
                ),
                404,
            )

        stmt = (
            select(Problem, CompanyProblem)
            .join(CompanyProblem, CompanyProblem.problem_id == Problem.id)
            .where(CompanyProblem.company_id == company_id)
            .order_by(Problem.frequency.desc().nullslast(), Problem.id)
        )
        if timeframe is Timeframe.NONE:
            stmt = stmt.where(CompanyProblem.timeframe_tag.is_(None))
        elif timeframe is not None:
            stmt = stmt.where(CompanyProblem.timeframe_tag == timeframe.tag)
        if tag:
            stmt = stmt.where(
                Problem.id.in_(select(ProblemTag.problem_id).where(ProblemTag.tag == tag))
            )
        if difficulty:
            stmt = stmt.where(func.lower(Problem.difficulty) == difficulty.lower())

        rows = session.execute(stmt).all()
        problem_ids = [p.id for p, _ in rows]

        tags_by_problem: dict[int, list[str]] = {pid: [] for pid in problem_ids}
        others_by_problem: dict[int, list[str]] = {pid: [] for pid in problem_ids}
        if problem_ids:
            for pid, t in session.execute(
                select(ProblemTag.problem_id, ProblemTag.tag)
                .where(ProblemTag.problem_id.in_(problem_ids))
                .order_by(ProblemTag.problem_id, ProblemTag.tag)
            ):
                tags_by_problem[pid].append(t)

            for pid, name in session.execute(
                select(CompanyProblem.problem_id, Company.name)
                .join(Company, Company.id == CompanyProblem.company_id)
                .where(
                    CompanyProblem.problem_id.in_(problem_ids),
                    CompanyProblem.company_id != company_id,
                )
                .order_by(CompanyProblem.problem_id, Company.name)
            ):
                others_by_problem[pid].append(name)

    data = {
        "company": {"id": company.id, "name": company.name},
        "count": len(rows),
        "problems": [
            {
                "id": p.id,
                "title": p.title,
                "url": p.url,
                "difficulty": p.difficulty,
                "acceptance": p.acceptance,
                "frequency": p.frequency,
                "timeframe_tag": cp.timeframe_tag,
                "source_file": cp.source_file,
                "last_seen": isoformat_or_none(cp.last_seen),
                "tags": tags_by_problem[p.id],
                "other_companies": others_by_problem[p.id],
            }
            for p, cp in rows
        ],
    }
    return jsonify(ok(data))
