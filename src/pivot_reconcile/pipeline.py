"""Locate + parse + reconcile + aggregate — pure orchestration, no I/O."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from pivot_reconcile import CASES_SHEET, DEFAULT_WINDOW, UNITS_SHEET, USER_LABEL
from pivot_reconcile.aggregate import (
    grand_totals,
    insights,
    moving_average,
    per_hour,
    per_user,
)
from pivot_reconcile.errors import (
    EmptyResultError,
    PivotReconcileError,
    SheetNotFoundError,
    UnreadableFileError,
)
from pivot_reconcile.io import WorkbookData
from pivot_reconcile.locator import require_sheet
from pivot_reconcile.models import (
    HourAggregate,
    PivotTuple,
    QCReport,
    Totals,
    UnifiedRecord,
    UserAggregate,
)
from pivot_reconcile.parser import parse_pivot_with_stats
from pivot_reconcile.reconcile import count_duplicate_keys, merge_pivots

logger = logging.getLogger(__name__)


@dataclass
class PipelineConfig:
    units_sheet: str = UNITS_SHEET
    cases_sheet: str = CASES_SHEET
    window: int = DEFAULT_WINDOW

    def __post_init__(self) -> None:
        if not self.units_sheet.strip() or not self.cases_sheet.strip():
            raise ValueError("Sheet labels must be non-empty")
        if isinstance(self.window, bool) or not isinstance(self.window, int):
            raise TypeError("window must be an integer")
        if self.window < 1:
            raise ValueError(f"window must be >= 1, got {self.window}")


@dataclass
class ParsedSheets:
    """Tuples read from both pivot sheets, before merging."""

    units_sheet: str
    cases_sheet: str
    units: list[PivotTuple] = field(default_factory=list)
    cases: list[PivotTuple] = field(default_factory=list)
    qc: QCReport = field(default_factory=QCReport)

    @property
    def is_empty(self) -> bool:
        return not self.units and not self.cases


@dataclass
class ReconcileResult:
    """Everything a presentation layer needs for one loaded file."""

    records: list[UnifiedRecord]
    users: list[UserAggregate]
    hours: list[HourAggregate]
    totals: Totals
    trend: list[float]
    insights: list[str]
    qc: QCReport

    @property
    def status(self) -> str:
        return f"Arquivo processado ✓ • {len(self.records)} registros"


# ── Steps ────────────────────────────────────────────────────────


def parse_workbook(workbook: WorkbookData, config: PipelineConfig | None = None) -> ParsedSheets:
    """Locate both pivot sheets and parse them.

    Raises :class:`SheetNotFoundError` when either sheet is missing. An empty
    parse is returned as-is; see :func:`reconcile_workbook`.
    """
    config = config or PipelineConfig()
    units_idx = require_sheet(workbook.sheet_names, config.units_sheet)
    cases_idx = require_sheet(workbook.sheet_names, config.cases_sheet)
    units_name = workbook.sheet_names[units_idx]
    cases_name = workbook.sheet_names[cases_idx]

    units, units_bad = parse_pivot_with_stats(workbook.matrix_at(units_idx))
    cases, cases_bad = parse_pivot_with_stats(workbook.matrix_at(cases_idx))
    logger.debug("Parsed %d units tuples from %r", len(units), units_name)
    logger.debug("Parsed %d cases tuples from %r", len(cases), cases_name)

    qc = QCReport(
        units_sheet=units_name,
        cases_sheet=cases_name,
        units_tuples=len(units),
        cases_tuples=len(cases),
        skipped_cells=units_bad + cases_bad,
    )

    for sheet, tuples, bad in ((units_name, units, units_bad), (cases_name, cases, cases_bad)):
        if not tuples:
            qc.warnings.append(f"No {USER_LABEL} x HORA values found in sheet {sheet!r}")
        if bad:
            suffix = "" if bad == 1 else "s"
            qc.warnings.append(f"Skipped {bad} non-numeric cell{suffix} in sheet {sheet!r}")
        duplicates = count_duplicate_keys(tuples)
        if duplicates:
            qc.duplicate_keys += duplicates
            qc.warnings.append(
                f"Found {duplicates} repeated (user, hour) pairs in sheet {sheet!r}; "
                "last value kept"
            )

    return ParsedSheets(units_name, cases_name, units=units, cases=cases, qc=qc)


def reconcile_workbook(
    workbook: WorkbookData, config: PipelineConfig | None = None
) -> ReconcileResult:
    """Run the whole core on one workbook.

    Raises
    ------
    SheetNotFoundError
        If either pivot sheet cannot be located.
    EmptyResultError
        If both sheets exist but neither yields a value.
    """
    config = config or PipelineConfig()
    parsed = parse_workbook(workbook, config)
    if parsed.is_empty:
        raise EmptyResultError()

    records = merge_pivots(parsed.units, parsed.cases)
    qc = parsed.qc
    qc.records_out = len(records)

    users = per_user(records)
    hours = per_hour(records)
    return ReconcileResult(
        records=records,
        users=users,
        hours=hours,
        totals=grand_totals(records),
        trend=moving_average([h.total for h in hours], config.window),
        insights=insights(records, users, hours),
        qc=qc,
    )


def status_message(exc: PivotReconcileError, config: PipelineConfig | None = None) -> str:
    """User-facing status line for a failed run."""
    config = config or PipelineConfig()
    if isinstance(exc, SheetNotFoundError):
        return (
            f"Não encontrei as abas '{config.units_sheet}' e '{config.cases_sheet}'. "
            "Verifique os nomes."
        )
    if isinstance(exc, EmptyResultError):
        return f"Não encontrei dados em formato {USER_LABEL} × HORA."
    if isinstance(exc, UnreadableFileError):
        return f"Erro ao processar arquivo: {exc}"
    return str(exc)
