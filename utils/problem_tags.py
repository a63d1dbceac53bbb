from __future__ import annotations

from collections.abc import Iterable

from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from db import upsert_insert
from logging_utils import get_logger
from models.problem_tags import ProblemTag
from utils.time_utils import utcnow

logger = get_logger(__name__)


def _clean_tags(tags: Iterable[str]) -> list[str]:
    # de-dupe while preserving order
    out: list[str] = []
    seen: set[str] = set()
    for t in tags:
        s = (t or "").strip()
        if s and s not in seen:
            out.append(s)
            seen.add(s)
    return out


def replace_problem_tags(
    session_factory: sessionmaker, problem_id: int, tags: Iterable[str]
) -> bool:
    """Replace the tag set of one problem in a single transaction.

    An empty `tags` clears every tag of the problem.

    Returns True on commit, False (logged) when the database rejected the change.
    """

    cleaned = _clean_tags(tags)

    with session_factory() as session:
        try:
            session.execute(
                delete(ProblemTag).where(ProblemTag.problem_id == int(problem_id))
            )
            if cleaned:
                now = utcnow()
                dialect_name = session.get_bind().dialect.name
                stmt = upsert_insert(dialect_name, ProblemTag.__table__).values(
                    [
                        {"problem_id": int(problem_id), "tag": t, "added_at": now}
                        for t in cleaned
                    ]
                )
                session.execute(
                    stmt.on_conflict_do_nothing(index_elements=["problem_id", "tag"])
                )
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.warning(
                "Tag replace failed | problem_id=%s tags=%s err=%s",
                problem_id,
                len(cleaned),
                e,
            )
            return False

    logger.debug("Tags replaced | problem_id=%s tags=%s", problem_id, len(cleaned))
    return True
