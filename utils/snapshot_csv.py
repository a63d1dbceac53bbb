"""Read per-company snapshot CSV files.

Expected layout under the root directory:

    <root>/<company>/all.csv
    <root>/<company>/more-than-six-months.csv
    <root>/<company>/six-months.csv
    <root>/<company>/three-months.csv
    <root>/<company>/thirty-days.csv

Each file is header-driven, e.g.:

    ID,URL,Title,Difficulty,Acceptance %,Frequency %
    79,https://leetcode.com/problems/word-search,Word Search,Medium,46.8%,75.0%

Any of the files may be missing.
"""

from __future__ import annotations

import csv
import re
from pathlib import Path

from logging_utils import get_logger
from utils.snapshot_merger import SnapshotRow, Window

logger = get_logger(__name__)


WINDOW_FILES: dict[Window, str] = {
    Window.ALL: "all.csv",
    Window.MORE_THAN_SIX: "more-than-six-months.csv",
    Window.SIX_MONTHS: "six-months.csv",
    Window.THREE_MONTHS: "three-months.csv",
    Window.THIRTY_DAYS: "thirty-days.csv",
}

# Signed decimal only; ids are stored as BIGINT.
_ID_RE = re.compile(r"-?[0-9]+")
_ID_MIN = -(2**63)
_ID_MAX = 2**63 - 1

# Normalized header spellings (lowercase, whitespace removed).
_HEADER_VARIANTS: dict[str, tuple[str, ...]] = {
    "id": ("id", "questionid", "problemid"),
    "url": ("url", "link"),
    "title": ("title", "name"),
    "difficulty": ("difficulty",),
    "acceptance": ("acceptance%", "acceptance", "acceptancerate"),
    "frequency": ("frequency%", "frequency"),
}


class SnapshotParseError(ValueError):
    pass


def _normalize_header(h: str) -> str:
    return "".join((h or "").split()).lower()


def parse_percent(text: str | None) -> float | None:
    """Parse '46.8%' / '46.8' into 46.8; empty or invalid input yields None."""

    if text is None:
        return None
    s = str(text).strip().removesuffix("%").strip()
    if not s:
        return None
    try:
        return float(s)
    except ValueError:
        logger.debug("Ignoring invalid percentage value=%r", text)
        return None


def _parse_id(raw: str) -> int | None:
    """Decimal id within the signed 64-bit range, else None."""

    if not _ID_RE.fullmatch(raw):
        return None
    value = int(raw)
    if value < _ID_MIN or value > _ID_MAX:
        return None
    return value


def _column_index(header: list[str]) -> dict[str, int]:
    normalized = {_normalize_header(h): i for i, h in enumerate(header)}
    out: dict[str, int] = {}
    for field, variants in _HEADER_VARIANTS.items():
        for v in variants:
            if v in normalized:
                out[field] = normalized[v]
                break
    return out


def read_snapshot_file(path: Path | str, window: Window) -> dict[int, SnapshotRow]:
    """Parse one window file into `{problem_id: SnapshotRow}`.

    Raises:
        FileNotFoundError: if the file does not exist.
        SnapshotParseError: if the file cannot be read, has no ID column or is
            not valid CSV.
    """

    path = Path(path)
    try:
        with path.open("r", encoding="utf-8-sig", newline="") as f:
            records = list(csv.reader(f, skipinitialspace=True))
    except FileNotFoundError:
        raise
    except OSError as e:
        raise SnapshotParseError(f"cannot read {path}: {e}") from e
    except (csv.Error, UnicodeDecodeError) as e:
        raise SnapshotParseError(f"cannot parse {path}: {e}") from e

    if not records:
        return {}

    cols = _column_index(records[0])
    if "id" not in cols:
        raise SnapshotParseError(f"ID column not found in {path}")

    def _cell(row: list[str], field: str) -> str | None:
        idx = cols.get(field)
        if idx is None or idx >= len(row):
            return None
        return row[idx].strip()

    out: dict[int, SnapshotRow] = {}
    for line_no, row in enumerate(records[1:], start=2):
        if not any(cell.strip() for cell in row):
            continue

        raw_id = _cell(row, "id")
        if not raw_id:
            logger.warning(
                "Skipping row without id | file=%s window=%s line=%s",
                path,
                window.value,
                line_no,
            )
            continue
        problem_id = _parse_id(raw_id)
        if problem_id is None:
            logger.warning(
                "Skipping row with invalid id | file=%s window=%s line=%s id=%r",
                path,
                window.value,
                line_no,
                raw_id,
            )
            continue

        out[problem_id] = SnapshotRow(
            id=problem_id,
            url=_cell(row, "url") or "",
            title=_cell(row, "title") or "",
            difficulty=_cell(row, "difficulty") or "",
            acceptance=parse_percent(_cell(row, "acceptance")),
            frequency=parse_percent(_cell(row, "frequency")),
        )

    return out


def load_company_snapshots(
    company_dir: Path | str,
) -> dict[Window, dict[int, SnapshotRow]]:
    """Load every window file present for one company.

    Missing files are treated as empty windows. Unparsable files are logged and
    skipped so the remaining windows still merge.
    """

    company_dir = Path(company_dir)
    snapshots: dict[Window, dict[int, SnapshotRow]] = {}

    for window, file_name in WINDOW_FILES.items():
        path = company_dir / file_name
        try:
            snapshots[window] = read_snapshot_file(path, window)
        except FileNotFoundError:
            logger.debug("Window file missing | company_dir=%s file=%s", company_dir, file_name)
        except SnapshotParseError as e:
            logger.warning(
                "Skipping unparsable window file | company_dir=%s window=%s err=%s",
                company_dir,
                window.value,
                e,
            )

    return snapshots
