"""Pivot parser — turn a USUÁRIO x HORA cell matrix into pivot tuples.

The matching steps (header row, user column, hour columns) are plain
normalise-then-match functions kept apart from the row walk, so a different
matching strategy can replace one of them without touching the walk.
"""

from __future__ import annotations

import logging
import math
import re
import unicodedata
from collections.abc import Sequence
from numbers import Real
from typing import Any, NamedTuple

from pivot_reconcile import TOTAL_MARKER, USER_LABEL
from pivot_reconcile.models import MAX_HOUR, MIN_HOUR, PivotTuple

logger = logging.getLogger(__name__)

_HOUR_DIGITS_RE = re.compile(r"\d{1,2}", re.ASCII)
_LEADING_FLOAT_RE = re.compile(r"^\s*[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?", re.ASCII)


class HourColumn(NamedTuple):
    col: int
    hour: int


# ── Cell helpers ─────────────────────────────────────────────────


def cell_text(value: Any) -> str:
    """Render a raw cell as text; ``None`` is empty, ``8.0`` is ``"8"``."""
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _normalize_label(value: Any) -> str:
    return unicodedata.normalize("NFC", cell_text(value)).strip().upper()


def _cell_at(row: Sequence[Any] | None, col: int) -> Any:
    if not row or col >= len(row):
        return None
    return row[col]


def parse_locale_number(value: Any) -> float:
    """Coerce a cell to a float using ``.`` thousands / ``,`` decimal.

    Returns ``nan`` when the cell holds no number. Native numeric cells are
    returned unchanged; text has its dots stripped and the comma turned into
    the decimal point before the leading number is read.
    """
    if value is None or isinstance(value, bool):
        return math.nan
    if isinstance(value, Real):
        return float(value)
    if not isinstance(value, str):
        return math.nan

    token = value.lstrip().replace(".", "").replace(",", ".", 1)
    match = _LEADING_FLOAT_RE.match(token)
    if match is None:
        return math.nan
    return float(match.group(0))


# ── Header matching ──────────────────────────────────────────────


def find_header_row(matrix: Sequence[Sequence[Any] | None], label: str = USER_LABEL) -> int | None:
    """Index of the first row holding a cell equal to *label*, or ``None``."""
    wanted = _normalize_label(label)
    for idx, row in enumerate(matrix):
        if any(_normalize_label(cell) == wanted for cell in row or ()):
            return idx
    return None


def find_user_column(header: Sequence[Any], label: str = USER_LABEL) -> int | None:
    wanted = _normalize_label(label)
    for idx, cell in enumerate(header):
        if _normalize_label(cell) == wanted:
            return idx
    return None


def extract_hour(value: Any) -> int | None:
    """First run of 1-2 digits in a header cell, if it is a valid hour.

    ``"Hora 08"`` -> 8, ``"08h"`` -> 8, ``"Hora 25"`` -> ``None``.
    """
    match = _HOUR_DIGITS_RE.search(cell_text(value))
    if match is None:
        return None
    hour = int(match.group(0))
    if MIN_HOUR <= hour <= MAX_HOUR:
        return hour
    return None


def find_hour_columns(header: Sequence[Any], user_col: int) -> list[HourColumn]:
    """Bind every column right of *user_col* whose header names an hour.

    Two columns naming the same hour are both kept.
    """
    columns: list[HourColumn] = []
    for col in range(user_col + 1, len(header)):
        hour = extract_hour(header[col])
        if hour is not None:
            columns.append(HourColumn(col, hour))
    return columns


# ── Row walk ─────────────────────────────────────────────────────


def parse_pivot_with_stats(
    matrix: Sequence[Sequence[Any] | None],
) -> tuple[list[PivotTuple], int]:
    """Parse *matrix* and return ``(tuples, malformed_cells)``.

    ``malformed_cells`` counts non-blank cells under an hour column that did
    not hold a number. Blank cells are skipped without being counted.
    """
    header_idx = find_header_row(matrix)
    if header_idx is None:
        logger.debug("No %s header row found", USER_LABEL)
        return [], 0

    header = matrix[header_idx] or []
    user_col = find_user_column(header)
    if user_col is None:
        return [], 0

    hour_cols = find_hour_columns(header, user_col)
    if not hour_cols:
        logger.debug("Header row %d has no hour columns", header_idx)
        return [], 0
    logger.debug(
        "Header row %d, user column %d, hours %s",
        header_idx,
        user_col,
        [hc.hour for hc in hour_cols],
    )

    out: list[PivotTuple] = []
    malformed = 0
    for r_idx in range(header_idx + 1, len(matrix)):
        row = matrix[r_idx]
        name = cell_text(_cell_at(row, user_col)).strip()
        if not name:
            continue
        if TOTAL_MARKER in name.upper():
            logger.debug("Stopped at %r on row %d", name, r_idx)
            break

        for hc in hour_cols:
            raw = _cell_at(row, hc.col)
            value = parse_locale_number(raw)
            if math.isfinite(value):
                out.append(PivotTuple(name, hc.hour, value))
            elif cell_text(raw).strip():
                malformed += 1

    return out, malformed


def parse_pivot(matrix: Sequence[Sequence[Any] | None]) -> list[PivotTuple]:
    """Parse a USUÁRIO x HORA pivot sheet into ``(user, hour, value)`` tuples.

    Returns an empty list when no header row is found; never raises on data.
    """
    tuples, _malformed = parse_pivot_with_stats(matrix)
    return tuples
