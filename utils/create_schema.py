"""Create (or drop and recreate) the problemset tables on a database.

Dropping is destructive; without `--yes` the CLI asks for confirmation.

Usage:
    python utils/create_schema.py                          # primary DB, create missing tables
    python utils/create_schema.py --database-url postgresql+psycopg://...
    python utils/create_schema.py --drop --yes             # drop + recreate, no prompt
"""

from __future__ import annotations

import argparse
import os
import sys

# Allow running as: `python utils/create_schema.py`
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import inspect
from sqlalchemy.engine import Engine

from config import SyncConfig
from db import make_engine
from logging_utils import configure_app_logging, get_logger
from models import Base

logger = get_logger(__name__)


def create_schema(engine: Engine, *, drop: bool = False) -> list[str]:
    """Create every model table on `engine`; drop them first when `drop`.

    Returns the sorted table names present afterwards.
    """

    if drop:
        logger.warning("Dropping all tables | url=%s", engine.url.render_as_string(hide_password=True))
        Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)

    tables = sorted(inspect(engine).get_table_names())
    logger.info("Schema ready | tables=%s", ",".join(tables))
    return tables


def _confirm_or_exit(url: str, assume_yes: bool) -> None:
    if assume_yes:
        return
    resp = input(
        f"\nThis will DROP and RECREATE ALL TABLES in:\n  {url}\n\n"
        "ALL DATA WILL BE LOST!\n\n"
        "Continue? [y/N]: "
    ).strip()
    if resp.lower() not in {"y", "yes"}:
        print("Aborted.")
        raise SystemExit(1)


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        description="Create the problemset tables, optionally dropping them first."
    )
    parser.add_argument(
        "--database-url",
        default=None,
        help="Target database URL (default: $PRIMARY_DATABASE_URL)",
    )
    parser.add_argument(
        "--drop",
        action="store_true",
        help="Drop all tables before creating them.",
    )
    parser.add_argument(
        "--yes",
        "-y",
        action="store_true",
        help="Do not prompt for confirmation.",
    )
    args = parser.parse_args(argv)

    config = SyncConfig.from_env().with_overrides(primary_database_url=args.database_url)
    configure_app_logging(config.log_level)

    engine = make_engine(config.primary_database_url)
    try:
        if args.drop:
            _confirm_or_exit(engine.url.render_as_string(hide_password=True), args.yes)
        tables = create_schema(engine, drop=args.drop)
    finally:
        engine.dispose()

    print(f"Tables ({len(tables)}):")
    for table in tables:
        print(f"  - {table}")


if __name__ == "__main__":
    main()
