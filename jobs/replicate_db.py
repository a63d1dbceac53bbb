"""Mirror the primary store into the replica store.

Tables are copied in foreign-key order. Each table is synced in one
destination transaction:

1. drop any leftover staging table
2. create a TEMPORARY staging table shaped like the destination table
3. stream source rows in chunks and bulk-append them to staging
4. upsert staging into the destination keyed by primary key
5. drop staging and commit

Re-running against an already synced replica is a no-op. Source ids are copied
verbatim, so the replica's `companies` auto-increment counter is repaired right
after that table commits.

Usage:
    python jobs/replicate_db.py --dest-url postgresql+psycopg://...
"""

from __future__ import annotations

import argparse
import sys
from dataclasses import dataclass, field
from pathlib import Path

_PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(_PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(_PROJECT_ROOT))

from sqlalchemy import Column, MetaData, Table, func, select, text, true
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from config import SyncConfig
from db import UnsupportedDialectError, make_engine, upsert_insert
from logging_utils import configure_app_logging, get_logger
from models import Base
from models.companies import Company
from models.company_problems import CompanyProblem
from models.problem_tags import ProblemTag
from models.problems import Problem
from utils.timing import timed_block

logger = get_logger(__name__)


REPLICATION_ORDER: tuple[Table, ...] = (
    Company.__table__,
    Problem.__table__,
    ProblemTag.__table__,
    CompanyProblem.__table__,
)


class ReplicationError(RuntimeError):
    def __init__(self, table: str, message: str = ""):
        self.table = table
        super().__init__(f"replication failed table={table}" + (f": {message}" if message else ""))


@dataclass
class ReplicationSummary:
    rows: dict[str, int] = field(default_factory=dict)
    companies_sequence: int | None = None


def _staging_table(table: Table) -> Table:
    """Unconstrained TEMPORARY copy of `table`'s columns."""

    return Table(
        f"staging_{table.name}",
        MetaData(),
        *[Column(c.name, c.type, nullable=True) for c in table.columns],
        prefixes=["TEMPORARY"],
    )


def _drop_table_if_exists(conn: Connection, name: str) -> None:
    quoted = conn.dialect.identifier_preparer.quote(name)
    conn.exec_driver_sql(f"DROP TABLE IF EXISTS {quoted}")


def _stage_rows(
    source_engine: Engine,
    conn: Connection,
    table: Table,
    staging: Table,
    chunk_size: int,
) -> int:
    stmt = select(table).order_by(*table.primary_key.columns)
    staged = 0
    with source_engine.connect() as src:
        result = src.execution_options(stream_results=True).execute(stmt)
        for chunk in result.mappings().partitions(chunk_size):
            conn.execute(staging.insert(), [dict(r) for r in chunk])
            staged += len(chunk)
    return staged


def _upsert_from_staging(conn: Connection, table: Table, staging: Table) -> None:
    cols = [c.name for c in table.columns]
    pk = [c.name for c in table.primary_key.columns]

    # WHERE true keeps SQLite from reading ON CONFLICT as a join constraint.
    source = select(*[staging.c[c] for c in cols]).where(true())
    stmt = upsert_insert(conn.dialect.name, table).from_select(cols, source)

    non_key = [c for c in cols if c not in pk]
    if non_key:
        stmt = stmt.on_conflict_do_update(
            index_elements=pk, set_={c: stmt.excluded[c] for c in non_key}
        )
    else:
        stmt = stmt.on_conflict_do_nothing(index_elements=pk)
    conn.execute(stmt)


def sync_table(
    source_engine: Engine,
    dest_engine: Engine,
    table: Table,
    *,
    chunk_size: int = 1000,
) -> int:
    """Copy every row of `table` from source to destination.

    Returns the number of source rows staged.

    Raises:
        ReplicationError: on any failure; the destination table is unchanged.
    """

    if chunk_size < 1:
        raise ValueError("chunk_size must be >= 1")

    staging = _staging_table(table)
    try:
        with dest_engine.begin() as conn:
            _drop_table_if_exists(conn, staging.name)
            staging.create(conn)
            staged = _stage_rows(source_engine, conn, table, staging, chunk_size)
            _upsert_from_staging(conn, table, staging)
            _drop_table_if_exists(conn, staging.name)
    except (SQLAlchemyError, UnsupportedDialectError) as e:
        logger.error("Table sync rolled back | table=%s err=%s", table.name, e)
        raise ReplicationError(table.name, str(e)) from e

    logger.info("Table synced | table=%s rows=%s", table.name, staged)
    return staged


def _repair_postgresql(conn: Connection, table: Table, column: str) -> int | None:
    prep = conn.dialect.identifier_preparer
    col = prep.quote(column)
    stmt = text(
        f"SELECT setval(pg_get_serial_sequence(:table, :column), "
        f"COALESCE(MAX({col}), 1), MAX({col}) IS NOT NULL) "
        f"FROM {prep.format_table(table)}"
    )
    conn.execute(stmt, {"table": table.name, "column": column})
    return conn.execute(select(func.max(table.c[column]))).scalar()


def _repair_sqlite(conn: Connection, table: Table, column: str) -> int | None:
    max_id = conn.execute(select(func.max(table.c[column]))).scalar()
    if max_id is None:
        return None

    has_sequence = conn.execute(
        text("SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = 'sqlite_sequence'")
    ).first()
    if not has_sequence:
        # Table was not created with AUTOINCREMENT; SQLite uses max(rowid) + 1.
        logger.debug("No sqlite_sequence table | table=%s", table.name)
        return int(max_id)

    current = conn.execute(
        text("SELECT seq FROM sqlite_sequence WHERE name = :name"), {"name": table.name}
    ).scalar()
    if current is None:
        conn.execute(
            text("INSERT INTO sqlite_sequence (name, seq) VALUES (:name, :seq)"),
            {"name": table.name, "seq": int(max_id)},
        )
    elif int(current) < int(max_id):
        conn.execute(
            text("UPDATE sqlite_sequence SET seq = :seq WHERE name = :name"),
            {"name": table.name, "seq": int(max_id)},
        )
    return int(max_id)


_SEQUENCE_REPAIRS = {
    "postgresql": _repair_postgresql,
    "sqlite": _repair_sqlite,
}


def repair_sequence(dest_engine: Engine, table: Table, column: str = "id") -> int | None:
    """Advance the destination auto-increment counter past the largest id.

    Returns the largest id seen (None for an empty table).
    """

    repair = _SEQUENCE_REPAIRS.get(dest_engine.dialect.name)
    if repair is None:
        raise ReplicationError(
            table.name, f"sequence repair unsupported for dialect={dest_engine.dialect.name}"
        )

    try:
        with dest_engine.begin() as conn:
            value = repair(conn, table, column)
    except SQLAlchemyError as e:
        logger.error("Sequence repair failed | table=%s err=%s", table.name, e)
        raise ReplicationError(table.name, str(e)) from e

    logger.info("Sequence repaired | table=%s column=%s max_id=%s", table.name, column, value)
    return value


def replicate(
    source_engine: Engine,
    dest_engine: Engine,
    *,
    chunk_size: int = 1000,
) -> ReplicationSummary:
    """Run one full replication pass; stops at the first failing table."""

    summary = ReplicationSummary()
    for table in REPLICATION_ORDER:
        with timed_block(f"replicate table={table.name}", logger_obj=logger):
            summary.rows[table.name] = sync_table(
                source_engine, dest_engine, table, chunk_size=chunk_size
            )
        if table is Company.__table__:
            summary.companies_sequence = repair_sequence(dest_engine, table, "id")
    return summary


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Replicate the primary database into the replica")
    p.add_argument(
        "--source-url",
        default=None,
        help="Source database URL (default: $PRIMARY_DATABASE_URL)",
    )
    p.add_argument(
        "--dest-url",
        default=None,
        help="Destination database URL (default: $REPLICA_DATABASE_URL)",
    )
    p.add_argument(
        "--chunk-size",
        type=int,
        default=None,
        help="Rows per staging insert (default: $REPLICATION_CHUNK_SIZE or 1000)",
    )
    p.add_argument(
        "--create-schema",
        action="store_true",
        help="Create missing tables on the destination before copying",
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
        primary_database_url=args.source_url,
        replica_database_url=args.dest_url,
        replication_chunk_size=args.chunk_size,
        log_level=args.log_level.upper() if args.log_level else None,
    )
    configure_app_logging(config.log_level)

    if not config.replica_database_url:
        raise SystemExit("Set REPLICA_DATABASE_URL or pass --dest-url")

    source_engine = make_engine(config.primary_database_url)
    dest_engine = make_engine(config.replica_database_url)

    try:
        if args.create_schema:
            Base.metadata.create_all(bind=dest_engine)
        summary = replicate(
            source_engine, dest_engine, chunk_size=config.replication_chunk_size
        )
    except ReplicationError as e:
        logger.error("replicate_db failed | table=%s err=%s", e.table, e)
        raise SystemExit(1) from e
    except Exception:
        logger.exception("replicate_db crashed")
        raise
    finally:
        source_engine.dispose()
        dest_engine.dispose()

    logger.info(
        "replicate_db complete | %s companies_sequence=%s",
        " ".join(f"{name}={count}" for name, count in summary.rows.items()),
        summary.companies_sequence,
    )


if __name__ == "__main__":
    main()
