"""Shared helpers for tests.

Intended usage:
- spin up a temporary SQLite database with all tables
- write per-company snapshot CSV fixtures
- seed rows and read tables back as plain tuples

These utilities keep tests small and consistent.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import Any

from sqlalchemy import select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from db import make_engine, make_session_factory
from models import Base

__all__ = [
    "SNAPSHOT_HEADER",
    "make_sqlite_engine",
    "create_empty_sqlite_db",
    "problem_url",
    "write_snapshot_csv",
    "add_dicts",
    "table_rows",
]

SNAPSHOT_HEADER = ("ID", "URL", "Title", "Difficulty", "Acceptance %", "Frequency %")


def make_sqlite_engine(db_path: Path | str) -> Engine:
    """Create a SQLite engine configured like production (pragmas, BEGIN handling)."""

    return make_engine(f"sqlite:///{db_path}")


def create_empty_sqlite_db(db_path: Path) -> tuple[sessionmaker, Engine]:
    """Create an empty SQLite DB file and initialize all models.

    Returns (session_factory, engine).
    """

    engine = make_sqlite_engine(db_path)
    Base.metadata.create_all(engine)
    return make_session_factory(engine), engine


def problem_url(slug: str) -> str:
    return f"https://leetcode.com/problems/{slug}"


def write_snapshot_csv(
    company_dir: Path,
    file_name: str,
    rows: Iterable[Sequence[Any]],
    *,
    header: Sequence[str] = SNAPSHOT_HEADER,
) -> Path:
    """Write one window file; rows are written verbatim after the header."""

    company_dir.mkdir(parents=True, exist_ok=True)
    lines = [",".join(header)]
    for row in rows:
        lines.append(",".join("" if v is None else str(v) for v in row))
    path = company_dir / file_name
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


def add_dicts(session: Session, model, rows: Iterable[dict[str, Any]]) -> None:
    """Bulk insert a list of dicts into a SQLAlchemy model table."""

    session.add_all([model(**row) for row in rows])
    session.commit()


def table_rows(engine: Engine, table) -> list[tuple]:
    """All rows of `table` ordered by primary key, as plain tuples."""

    with engine.connect() as conn:
        stmt = select(table).order_by(*table.primary_key.columns)
        return [tuple(r) for r in conn.execute(stmt)]
