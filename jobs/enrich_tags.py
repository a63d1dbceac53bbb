"""Enrich stored problems with topic tags from the question-metadata service.

Problems are read from the primary store, their title slug is derived from the
URL and slugs are resolved in aliased GraphQL batches. Every resolved problem
gets its tag set replaced; unresolved problems keep whatever tags they had.

Usage:
    python jobs/enrich_tags.py --batch-size 40 --delay 0.3
"""

from __future__ import annotations

import argparse
import sys
import time
from collections.abc import Callable, Sequence
from functools import partial
from pathlib import Path

_PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(_PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(_PROJECT_ROOT))

import requests
from sqlalchemy import select
from sqlalchemy.orm import sessionmaker

from config import SyncConfig
from db import make_engine, make_session_factory
from logging_utils import configure_app_logging, get_logger
from models.problems import Problem
from utils.leetcode_graphql import GraphQLApiError, extract_slug, fetch_topic_tags
from utils.problem_tags import replace_problem_tags
from utils.timing import timed_block

logger = get_logger(__name__)

FetchFn = Callable[[Sequence[str]], dict]


def _load_targets(
    session_factory: sessionmaker, limit: int | None
) -> tuple[list[tuple[int, str]], int]:
    """Return ([(problem_id, slug)], invalid_url_count) ordered by problem id."""

    stmt = select(Problem.id, Problem.url).where(Problem.url.is_not(None)).order_by(
        Problem.id
    )
    if limit is not None:
        stmt = stmt.limit(int(limit))

    with session_factory() as session:
        rows = session.execute(stmt).all()

    targets: list[tuple[int, str]] = []
    invalid = 0
    for problem_id, url in rows:
        slug = extract_slug(url)
        if not slug:
            invalid += 1
            logger.warning("Skipping problem with unusable url | problem_id=%s url=%r", problem_id, url)
            continue
        targets.append((int(problem_id), slug))
    return targets, invalid


def run_enrichment(
    *,
    session_factory: sessionmaker,
    batch_size: int = 40,
    delay_seconds: float = 0.3,
    fetch: FetchFn = fetch_topic_tags,
    sleep: Callable[[float], None] = time.sleep,
    limit: int | None = None,
) -> dict[str, int]:
    """Run one enrichment pass.

    Batches are processed sequentially with `delay_seconds` between them. A
    batch whose request fails is skipped with a warning.

    Returns summary counts.
    """

    if batch_size < 1:
        raise ValueError("batch_size must be >= 1")

    targets, invalid = _load_targets(session_factory, limit)
    summary = {
        "problems": len(targets) + invalid,
        "invalid_urls": invalid,
        "batches": 0,
        "failed_batches": 0,
        "resolved": 0,
        "unresolved": 0,
        "updated": 0,
        "write_failed": 0,
    }

    for start in range(0, len(targets), batch_size):
        batch = targets[start : start + batch_size]
        summary["batches"] += 1

        # Several problems may share a slug; ask for each slug once.
        slugs = list(dict.fromkeys(slug for _, slug in batch))
        try:
            resolved = fetch(slugs)
        except GraphQLApiError as e:
            summary["failed_batches"] += 1
            logger.warning(
                "Skipping batch | offset=%s size=%s err=%s", start, len(batch), e
            )
            sleep(delay_seconds)
            continue

        for problem_id, slug in batch:
            tags = resolved.get(slug)
            if tags is None:
                summary["unresolved"] += 1
                logger.debug("Slug not resolved | problem_id=%s slug=%s", problem_id, slug)
                continue
            summary["resolved"] += 1
            if replace_problem_tags(session_factory, problem_id, tags):
                summary["updated"] += 1
            else:
                summary["write_failed"] += 1

        logger.info(
            "Batch done | offset=%s size=%s resolved=%s",
            start,
            len(batch),
            sum(1 for _, s in batch if resolved.get(s) is not None),
        )
        sleep(delay_seconds)

    return summary


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        description="Replace problem topic tags from the question-metadata GraphQL service"
    )
    p.add_argument(
        "--database-url",
        default=None,
        help="Primary database URL (default: $PRIMARY_DATABASE_URL)",
    )
    p.add_argument(
        "--batch-size",
        type=int,
        default=None,
        help="Slugs per GraphQL request (default: $ENRICH_BATCH_SIZE or 40)",
    )
    p.add_argument(
        "--delay",
        type=float,
        default=None,
        help="Seconds to wait between batches (default: $ENRICH_DELAY_MS/1000 or 0.3)",
    )
    p.add_argument("--limit", type=int, default=None, help="Max problems to process")
    p.add_argument(
        "--log-level",
        default=None,
        help="Override LOG_LEVEL for this run (e.g. DEBUG, INFO, WARNING)",
    )
    return p.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    args = _parse_args(argv)

    config = SyncConfig.from_env().with_overrides(
        primary_database_url=args.database_url,
        enrich_batch_size=args.batch_size,
        enrich_delay_seconds=args.delay,
        log_level=args.log_level.upper() if args.log_level else None,
    )
    configure_app_logging(config.log_level)

    engine = make_engine(config.primary_database_url)
    http = requests.Session()
    fetch = partial(
        fetch_topic_tags,
        session=http,
        url=config.graphql_url,
        user_agent=config.graphql_user_agent,
        timeout_seconds=config.http_timeout_seconds,
    )

    try:
        with timed_block("enrich_tags", logger_obj=logger):
            summary = run_enrichment(
                session_factory=make_session_factory(engine),
                batch_size=config.enrich_batch_size,
                delay_seconds=config.enrich_delay_seconds,
                fetch=fetch,
                limit=args.limit,
            )
    except Exception:
        logger.exception("enrich_tags crashed")
        raise
    finally:
        http.close()
        engine.dispose()

    logger.info(
        "enrich_tags complete | problems=%s invalid_urls=%s batches=%s failed_batches=%s resolved=%s unresolved=%s updated=%s write_failed=%s",
        summary["problems"],
        summary["invalid_urls"],
        summary["batches"],
        summary["failed_batches"],
        summary["resolved"],
        summary["unresolved"],
        summary["updated"],
        summary["write_failed"],
    )


if __name__ == "__main__":
    main()
