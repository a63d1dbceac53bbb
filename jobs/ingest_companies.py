"""Ingest per-company snapshot CSVs into the primary store.

For every company directory under the root:

1. load the window files (`utils.snapshot_csv`)
2. merge them into one record per problem (`utils.snapshot_merger`)
3. write company, problems and company/problem pairs in one transaction

A problem/pair that fails to write is rolled back to its SAVEPOINT, logged and
skipped. A company whose transaction fails is rolled back entirely and logged;
the run continues with the next company. Pairs not observed in a run are left
untouched.

Usage:
    python jobs/ingest_companies.py --root-dir /path/to/companywise-questions
"""

from __future__ import annotations

import argparse
import os
import sys
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

# Allow running this file directly (e.g. `python jobs/ingest_companies.py`) by
# ensuring the project root is importable.
_PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(_PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(_PROJECT_ROOT))

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session as SASession
from sqlalchemy.orm import sessionmaker

from config import SyncConfig
from db import make_engine, make_session_factory, upsert_insert
from logging_utils import configure_app_logging, get_logger
from models import Base
from models.companies import Company
from models.company_problems import CompanyProblem
from models.problems import Problem
from utils.snapshot_csv import load_company_snapshots
from utils.snapshot_merger import MergedProblem, SnapshotRow, merge_snapshots
from utils.time_utils import utcnow
from utils.timing import timed_block

logger = get_logger(__name__)


@dataclass(frozen=True)
class CompanyIngestResult:
    company: str
    committed: bool
    problems: int
    written: int
    failed: int
    error: str | None = None


def _dialect_name(session: SASession) -> str:
    return session.get_bind().dialect.name


def upsert_company(session: SASession, name: str) -> int:
    """Create the company if absent and return its id (unchanged on re-runs)."""

    stmt = upsert_insert(_dialect_name(session), Company.__table__).values(name=name)
    stmt = stmt.on_conflict_do_update(
        index_elements=["name"], set_={"name": stmt.excluded.name}
    ).returning(Company.__table__.c.id)
    return int(session.execute(stmt).scalar_one())


def upsert_problem(session: SASession, row: SnapshotRow, now: datetime) -> None:
    """Insert or overwrite a problem's metadata; `updated_at` always advances."""

    values = {
        "id": row.id,
        "url": row.url or None,
        "title": row.title or None,
        "difficulty": row.difficulty or None,
        "acceptance": row.acceptance,
        "frequency": row.frequency,
        "updated_at": now,
    }
    stmt = upsert_insert(_dialect_name(session), Problem.__table__).values(**values)
    stmt = stmt.on_conflict_do_update(
        index_elements=["id"],
        set_={k: stmt.excluded[k] for k in values if k != "id"},
    )
    session.execute(stmt)


def upsert_company_problem(
    session: SASession,
    company_id: int,
    problem_id: int,
    source_file: str,
    timeframe_tag: str | None,
    now: datetime,
) -> None:
    stmt = upsert_insert(_dialect_name(session), CompanyProblem.__table__).values(
        company_id=company_id,
        problem_id=problem_id,
        source_file=source_file,
        timeframe_tag=timeframe_tag,
        last_seen=now,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["company_id", "problem_id"],
        set_={
            "source_file": stmt.excluded.source_file,
            "timeframe_tag": stmt.excluded.timeframe_tag,
            "last_seen": stmt.excluded.last_seen,
        },
    )
    session.execute(stmt)


def write_company(
    session_factory: sessionmaker,
    company_name: str,
    merged: dict[int, MergedProblem],
) -> CompanyIngestResult:
    """Persist one company's merged records atomically."""

    written = 0
    failed = 0

    with session_factory() as session:
        try:
            company_id = upsert_company(session, company_name)
            now = utcnow()

            for problem_id in sorted(merged):
                mp = merged[problem_id]
                try:
                    with session.begin_nested():
                        upsert_problem(session, mp.row, now)
                        upsert_company_problem(
                            session,
                            company_id,
                            problem_id,
                            mp.source_window.value,
                            mp.timeframe.tag,
                            now,
                        )
                except SQLAlchemyError as e:
                    failed += 1
                    logger.warning(
                        "Skipping problem | company=%s problem_id=%s err=%s",
                        company_name,
                        problem_id,
                        e,
                    )
                    continue
                written += 1

            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(
                "Company transaction rolled back | company=%s problems=%s err=%s",
                company_name,
                len(merged),
                e,
            )
            return CompanyIngestResult(
                company=company_name,
                committed=False,
                problems=len(merged),
                written=0,
                failed=len(merged),
                error=str(e),
            )

    logger.info(
        "Company done | company=%s problems=%s written=%s failed=%s",
        company_name,
        len(merged),
        written,
        failed,
    )
    return CompanyIngestResult(
        company=company_name,
        committed=True,
        problems=len(merged),
        written=written,
        failed=failed,
    )


def _iter_company_dirs(root_dir: Path):
    for p in sorted(root_dir.iterdir(), key=lambda p: p.name):
        # skip hidden folders like .git
        if not p.is_dir() or p.name.startswith("."):
            continue
        yield p


def run_ingest(*, session_factory: sessionmaker, root_dir: Path | str) -> dict[str, int]:
    """Run one full ingest pass over `root_dir`.

    Returns summary counts.
    """

    root_dir = Path(root_dir)
    summary = {
        "companies": 0,
        "committed": 0,
        "rolled_back": 0,
        "problems_written": 0,
        "problems_failed": 0,
    }

    for company_dir in _iter_company_dirs(root_dir):
        company_name = company_dir.name
        summary["companies"] += 1

        with timed_block(f"ingest company={company_name}", logger_obj=logger):
            merged = merge_snapshots(load_company_snapshots(company_dir))
            result = write_company(session_factory, company_name, merged)

        if result.committed:
            summary["committed"] += 1
            summary["problems_written"] += result.written
            summary["problems_failed"] += result.failed
        else:
            summary["rolled_back"] += 1

    return summary


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        description="Merge per-company snapshot CSVs into the primary database"
    )
    p.add_argument(
        "--root-dir",
        default=None,
        help="Directory with one subdirectory per company (default: $ROOT_DIR)",
    )
    p.add_argument(
        "--database-url",
        default=None,
        help="Primary database URL (default: $PRIMARY_DATABASE_URL)",
    )
    p.add_argument(
        "--log-level",
        default=None,
        help="Override LOG_LEVEL for this run (e.g. DEBUG, INFO, WARNING)",
    )
    return p.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    args = _parse_args(argv)

    config = SyncConfig.from_env().with_overrides(
        root_dir=Path(args.root_dir) if args.root_dir else None,
        primary_database_url=args.database_url,
        log_level=args.log_level.upper() if args.log_level else None,
    )
    configure_app_logging(config.log_level)

    if config.root_dir is None:
        raise SystemExit("Set ROOT_DIR or pass --root-dir")
    if not config.root_dir.is_dir():
        raise SystemExit(f"Root directory not found: {config.root_dir}")

    logger.info(
        "ingest_companies starting | cwd=%s root_dir=%s", os.getcwd(), config.root_dir
    )

    try:
        engine = make_engine(config.primary_database_url)
        Base.metadata.create_all(bind=engine)
        summary = run_ingest(
            session_factory=make_session_factory(engine),
            root_dir=config.root_dir,
        )
    except Exception:
        logger.exception("ingest_companies crashed")
        raise

    logger.info(
        "ingest_companies complete | companies=%s committed=%s rolled_back=%s problems_written=%s problems_failed=%s",
        summary["companies"],
        summary["committed"],
        summary["rolled_back"],
        summary["problems_written"],
        summary["problems_failed"],
    )
    engine.dispose()


if __name__ == "__main__":
    main()
