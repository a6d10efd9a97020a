"""Data models shared by the parser, reconciler, aggregator and CLI."""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass, field
from numbers import Integral, Real
from typing import Any, NamedTuple

CellMatrix = list[list[Any]]

MIN_HOUR = 0
MAX_HOUR = 23


def _to_non_negative_int(value: Any, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, Integral):
        raise TypeError(f"{field_name} must be an integer")
    result = int(value)
    if result < 0:
        raise ValueError(f"{field_name} must be >= 0")
    return result


def _to_hour(value: Any, field_name: str = "hour") -> int:
    if isinstance(value, bool) or not isinstance(value, Integral):
        raise TypeError(f"{field_name} must be an integer")
    result = int(value)
    if not MIN_HOUR <= result <= MAX_HOUR:
        raise ValueError(f"{field_name} must be within {MIN_HOUR}..{MAX_HOUR}")
    return result


def _to_number(value: Any, field_name: str) -> float:
    if isinstance(value, bool) or not isinstance(value, Real):
        raise TypeError(f"{field_name} must be a number")
    result = float(value)
    if not math.isfinite(result):
        raise ValueError(f"{field_name} must be finite")
    return result


def _to_string_list(values: Sequence[Any] | None, field_name: str) -> list[str]:
    if values is None:
        return []
    if isinstance(values, str):
        raise TypeError(f"{field_name} must be a sequence of strings")
    normalized: list[str] = []
    for item in values:
        if not isinstance(item, str):
            raise TypeError(f"{field_name} items must be strings")
        normalized.append(item)
    return normalized


# ── Core records ─────────────────────────────────────────────────


class RecordKey(NamedTuple):
    """Compound ``(user, hour)`` key of a unified record."""

    user: str
    hour: int


@dataclass(frozen=True)
class PivotTuple:
    """One ``(user, hour, value)`` observation read from a pivot sheet."""

    user: str
    hour: int
    value: float

    def __post_init__(self) -> None:
        object.__setattr__(self, "hour", _to_hour(self.hour))
        object.__setattr__(self, "value", _to_number(self.value, "value"))

    @property
    def key(self) -> RecordKey:
        return RecordKey(self.user, self.hour)


@dataclass(frozen=True)
class UnifiedRecord:
    """Units and cases for a single user in a single hour."""

    user: str
    hour: int
    units: float = 0.0
    cases: float = 0.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "hour", _to_hour(self.hour))
        object.__setattr__(self, "units", _to_number(self.units, "units"))
        object.__setattr__(self, "cases", _to_number(self.cases, "cases"))

    @property
    def key(self) -> RecordKey:
        return RecordKey(self.user, self.hour)

    @property
    def total(self) -> float:
        return self.units + self.cases

    def to_dict(self) -> dict[str, Any]:
        return {
            "user": self.user,
            "hour": self.hour,
            "units": self.units,
            "cases": self.cases,
        }


# ── Aggregates ───────────────────────────────────────────────────


@dataclass(frozen=True)
class UserAggregate:
    user: str
    units: float
    cases: float
    total: float


@dataclass(frozen=True)
class HourAggregate:
    hour: int
    units: float
    cases: float
    total: float


@dataclass(frozen=True)
class Totals:
    units: float = 0.0
    cases: float = 0.0
    total: float = 0.0


# ── Run audit trail ──────────────────────────────────────────────


@dataclass
class QCReport:
    """Quality-control report emitted alongside every run.

    Contract invariant: ``records_out <= units_tuples + cases_tuples``.
    """

    units_sheet: str = ""
    cases_sheet: str = ""
    units_tuples: int = 0
    cases_tuples: int = 0
    records_out: int = 0
    skipped_cells: int = 0
    duplicate_keys: int = 0
    warnings: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.units_tuples = _to_non_negative_int(self.units_tuples, "units_tuples")
        self.cases_tuples = _to_non_negative_int(self.cases_tuples, "cases_tuples")
        self.records_out = _to_non_negative_int(self.records_out, "records_out")
        self.skipped_cells = _to_non_negative_int(self.skipped_cells, "skipped_cells")
        self.duplicate_keys = _to_non_negative_int(self.duplicate_keys, "duplicate_keys")
        self.warnings = _to_string_list(self.warnings, "warnings")
        if self.records_out > self.units_tuples + self.cases_tuples:
            raise ValueError("records_out must be <= units_tuples + cases_tuples")

    def to_dict(self) -> dict[str, Any]:
        return {
            "units_sheet": self.units_sheet,
            "cases_sheet": self.cases_sheet,
            "units_tuples": self.units_tuples,
            "cases_tuples": self.cases_tuples,
            "records_out": self.records_out,
            "skipped_cells": self.skipped_cells,
            "duplicate_keys": self.duplicate_keys,
            "warnings": list(self.warnings),
        }


@dataclass
class RunManifest:
    """Audit-trail manifest for a single run."""

    tool: str = "pivot-reconcile"
    version: str = ""
    input_path: str = ""
    output_dir: str = ""
    created_at_utc: str = ""
    records_out: int = 0
    sha256: str = ""
    status: str = "success"
    error_code: int | None = None
    error_message: str = ""

    def __post_init__(self) -> None:
        self.records_out = _to_non_negative_int(self.records_out, "records_out")
        if self.status not in {"success", "failed"}:
            raise ValueError("status must be 'success' or 'failed'")
        if self.error_code is not None:
            self.error_code = _to_non_negative_int(self.error_code, "error_code")

    def to_dict(self) -> dict[str, Any]:
        return {
            "tool": self.tool,
            "version": self.version,
            "input_path": self.input_path,
            "output_dir": self.output_dir,
            "created_at_utc": self.created_at_utc,
            "records_out": self.records_out,
            "sha256": self.sha256,
            "status": self.status,
            "error_code": self.error_code,
            "error_message": self.error_message,
        }
