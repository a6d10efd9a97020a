"""Aggregations over unified records — pure functions, no side effects."""

from __future__ import annotations

from collections.abc import Sequence

import pandas as pd

from pivot_reconcile import DEFAULT_WINDOW
from pivot_reconcile.models import HourAggregate, Totals, UnifiedRecord, UserAggregate
from pivot_reconcile.utils import hour_label

PARETO_SHARE = 0.8

RECORD_COLUMNS: list[str] = ["user", "hour", "units", "cases"]


# ── Frames ───────────────────────────────────────────────────────


def records_frame(records: Sequence[UnifiedRecord]) -> pd.DataFrame:
    """Records as a DataFrame with ``user, hour, units, cases, total``."""
    if not records:
        return pd.DataFrame(columns=[*RECORD_COLUMNS, "total"])
    df = pd.DataFrame([r.to_dict() for r in records], columns=RECORD_COLUMNS)
    df["units"] = df["units"].astype(float)
    df["cases"] = df["cases"].astype(float)
    df["total"] = df["units"] + df["cases"]
    return df


def _grouped(records: Sequence[UnifiedRecord], by: str) -> pd.DataFrame:
    df = records_frame(records)
    return (
        df.groupby(by, as_index=False, sort=False)
        .agg(units=("units", "sum"), cases=("cases", "sum"))
        .assign(total=lambda g: g["units"] + g["cases"])
    )


# ── Core aggregates ──────────────────────────────────────────────


def per_user(records: Sequence[UnifiedRecord]) -> list[UserAggregate]:
    """Sum units/cases per user, ordered by total descending.

    Users with equal totals keep the order in which they first appear.
    """
    if not records:
        return []
    grouped = _grouped(records, "user").sort_values("total", ascending=False, kind="stable")
    return [
        UserAggregate(str(row.user), float(row.units), float(row.cases), float(row.total))
        for row in grouped.itertuples(index=False)
    ]


def per_hour(records: Sequence[UnifiedRecord]) -> list[HourAggregate]:
    """Sum units/cases per hour, ordered by hour ascending."""
    if not records:
        return []
    grouped = _grouped(records, "hour").sort_values("hour", kind="stable")
    return [
        HourAggregate(int(row.hour), float(row.units), float(row.cases), float(row.total))
        for row in grouped.itertuples(index=False)
    ]


def grand_totals(records: Sequence[UnifiedRecord]) -> Totals:
    units = float(sum(r.units for r in records))
    cases = float(sum(r.cases for r in records))
    return Totals(units=units, cases=cases, total=units + cases)


def pareto_cutoff(values: Sequence[float], share: float = PARETO_SHARE) -> int:
    """How many of the largest *values* it takes to reach *share* of the sum.

    A zero sum is treated as 1. When the running sum never gets there the
    result is one past the last value, so empty input returns 1.
    """
    total = sum(values) or 1
    ordered = sorted(values, reverse=True)
    acc = 0.0
    for idx, value in enumerate(ordered, start=1):
        acc += value
        if acc / total >= share:
            return idx
    return len(ordered) + 1


def moving_average(values: Sequence[float], window: int = DEFAULT_WINDOW) -> list[float]:
    """Trailing moving average; the window shrinks at the start of the series."""
    if window < 1:
        raise ValueError(f"window must be >= 1, got {window}")
    if not values:
        return []
    series = pd.Series(list(values), dtype=float)
    return series.rolling(window=window, min_periods=1).mean().tolist()


def cumulative_sum(values: Sequence[float]) -> list[float]:
    if not values:
        return []
    return pd.Series(list(values), dtype=float).cumsum().tolist()


# ── Dashboard derivations ────────────────────────────────────────


def peak_hour(hours: Sequence[HourAggregate]) -> HourAggregate | None:
    """First hour with the largest total."""
    best: HourAggregate | None = None
    for item in hours:
        if best is None or item.total > best.total:
            best = item
    return best


def low_hour(hours: Sequence[HourAggregate]) -> HourAggregate | None:
    """First hour with the smallest total."""
    best: HourAggregate | None = None
    for item in hours:
        if best is None or item.total < best.total:
            best = item
    return best


def pareto_curve(users: Sequence[UserAggregate]) -> list[float]:
    """Cumulative share (percent) of each user, largest contributor first."""
    totals = sorted((u.total for u in users), reverse=True)
    grand = sum(totals) or 1
    return [c / grand * 100 for c in cumulative_sum(totals)]


def share_of_total(users: Sequence[UserAggregate]) -> list[float]:
    grand = sum(u.total for u in users) or 1
    return [u.total / grand * 100 for u in users]


def heatmap(records: Sequence[UnifiedRecord]) -> pd.DataFrame:
    """User x hour matrix of ``units + cases``; rows follow :func:`per_user`."""
    if not records:
        return pd.DataFrame()
    df = records_frame(records)
    matrix = df.pivot_table(
        index="user", columns="hour", values="total", aggfunc="sum", fill_value=0.0
    )
    users = [u.user for u in per_user(records)]
    return matrix.reindex(index=users, columns=sorted(matrix.columns), fill_value=0.0)


def insights(
    records: Sequence[UnifiedRecord],
    users: Sequence[UserAggregate],
    hours: Sequence[HourAggregate],
) -> list[str]:
    """Short Portuguese sentences summarising the run for the dashboard."""
    if not records:
        return []
    pareto = pareto_cutoff([u.total for u in users])
    peak = peak_hour(hours)
    low = low_hour(hours)
    top3 = ", ".join(u.user for u in users[:3]) or "—"
    return [
        f"Pareto: ~{pareto} usuário(s) concentram ~80% do volume.",
        f"Hora de pico: {hour_label(peak.hour if peak else 0)}.",
        f"Hora de menor movimento: {hour_label(low.hour if low else 0)}.",
        f"Top 3 usuários: {top3}.",
    ]
