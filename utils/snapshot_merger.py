"""Merge a company's per-window snapshot files into one record per problem.

Pure functions only: callers load the files (see `utils.snapshot_csv`) and
persist the result (see `jobs.ingest_companies`).

Rules:

- Windows are merged in the fixed order `all`, `more-than-six`, `six-months`,
  `three-months`, `thirty-days`, whatever order the input mapping uses.
- Metadata from `all` wins outright. For ids missing from `all`, the first
  window (in merge order) that contains the id keeps its metadata; later
  windows never overwrite it.
- Presence in `six-months` / `three-months` / `thirty-days` is tracked per id
  and resolved to a single timeframe with precedence
  `thirty-days > three-months > six-months > none`.
- `source_window` is the window of the last file that touched the id.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum


class Window(str, Enum):
    ALL = "all"
    MORE_THAN_SIX = "more-than-six"
    SIX_MONTHS = "six-months"
    THREE_MONTHS = "three-months"
    THIRTY_DAYS = "thirty-days"


MERGE_ORDER: tuple[Window, ...] = (
    Window.ALL,
    Window.MORE_THAN_SIX,
    Window.SIX_MONTHS,
    Window.THREE_MONTHS,
    Window.THIRTY_DAYS,
)


class Timeframe(str, Enum):
    THIRTY_DAYS = "thirty-days"
    THREE_MONTHS = "three-months"
    SIX_MONTHS = "six-months"
    NONE = "none"

    @property
    def tag(self) -> str | None:
        """Value stored in `company_problems.timeframe_tag` (NULL for NONE)."""

        return None if self is Timeframe.NONE else self.value


# Highest priority first.
TIMEFRAME_PRIORITY: tuple[tuple[Window, Timeframe], ...] = (
    (Window.THIRTY_DAYS, Timeframe.THIRTY_DAYS),
    (Window.THREE_MONTHS, Timeframe.THREE_MONTHS),
    (Window.SIX_MONTHS, Timeframe.SIX_MONTHS),
)


@dataclass(frozen=True)
class SnapshotRow:
    id: int
    url: str = ""
    title: str = ""
    difficulty: str = ""
    acceptance: float | None = None
    frequency: float | None = None


@dataclass(frozen=True)
class MergedProblem:
    row: SnapshotRow
    timeframe: Timeframe
    source_window: Window

    @property
    def id(self) -> int:
        return self.row.id


def resolve_timeframe(seen_in: Iterable[Window]) -> Timeframe:
    """Pick the narrowest dated window among `seen_in`.

    `all` and `more-than-six` never produce a timeframe.
    """

    seen = set(seen_in)
    for window, timeframe in TIMEFRAME_PRIORITY:
        if window in seen:
            return timeframe
    return Timeframe.NONE


def merge_snapshots(
    snapshots: Mapping[Window, Mapping[int, SnapshotRow]],
) -> dict[int, MergedProblem]:
    """Merge the loaded windows of one company.

    Windows absent from `snapshots` count as zero observations.
    """

    meta: dict[int, SnapshotRow] = {}
    seen_in: dict[int, set[Window]] = {}
    source_for: dict[int, Window] = {}

    for window in MERGE_ORDER:
        rows = snapshots.get(window)
        if not rows:
            continue
        for problem_id, row in rows.items():
            if window is Window.ALL or problem_id not in meta:
                meta[problem_id] = row
            seen_in.setdefault(problem_id, set()).add(window)
            source_for[problem_id] = window

    return {
        problem_id: MergedProblem(
            row=row,
            timeframe=resolve_timeframe(seen_in[problem_id]),
            source_window=source_for[problem_id],
        )
        for problem_id, row in meta.items()
    }
