from __future__ import annotations

from flask import Blueprint, jsonify
from sqlalchemy import func, select

from api.schemas.api_responses import ok
from api.session import get_session_factory
from models.problem_tags import ProblemTag

tags_v1_bp = Blueprint("tags_v1", __name__)


@tags_v1_bp.get("/tags")
def list_tags():
    """Tag vocabulary with the number of problems carrying each tag."""

    problem_count = func.count(func.distinct(ProblemTag.problem_id))
    stmt = (
        select(ProblemTag.tag, problem_count.label("problem_count"))
        .group_by(ProblemTag.tag)
        .order_by(problem_count.desc(), ProblemTag.tag)
    )

    with get_session_factory()() as session:
        rows = session.execute(stmt).all()

    return jsonify(
        ok([{"tag": r.tag, "problem_count": int(r.problem_count)} for r in rows])
    )
