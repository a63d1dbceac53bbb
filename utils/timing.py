from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from time import perf_counter


@contextmanager
def timed_block(name: str, *, logger_obj: logging.Logger):
    """Log START/END lines with wall-clock bounds and elapsed seconds for a block."""

    start_wall = datetime.now(timezone.utc)
    start = perf_counter()
    logger_obj.info("START %s", name)
    try:
        yield
    finally:
        elapsed = perf_counter() - start
        logger_obj.info(
            "END %s | started=%s elapsed=%.2fs",
            name,
            start_wall.isoformat(timespec="seconds"),
            elapsed,
        )
