"""Excel dashboard writer for Painel_Reposicao.xlsx."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import pandas as pd
from openpyxl import Workbook
from openpyxl.formatting.rule import ColorScaleRule
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.table import Table, TableStyleInfo
from openpyxl.worksheet.worksheet import Worksheet

from pivot_reconcile.aggregate import (
    heatmap,
    pareto_curve,
    pareto_cutoff,
    peak_hour,
    share_of_total,
)
from pivot_reconcile.pipeline import ReconcileResult
from pivot_reconcile.utils import hour_label

REPORT_FILENAME = "Painel_Reposicao.xlsx"

# ── Style constants ──────────────────────────────────────────────

HEADER_FONT = Font(name="Calibri", bold=True, size=11, color="FFFFFF")
HEADER_FILL = PatternFill(start_color="2563EB", end_color="2563EB", fill_type="solid")
HEADER_ALIGN = Alignment(horizontal="center", vertical="center", wrap_text=True)

TITLE_FONT = Font(name="Calibri", bold=True, size=14, color="2563EB")
SUBTITLE_FONT = Font(name="Calibri", bold=False, size=10, color="808080")
LABEL_FONT = Font(name="Calibri", bold=True, size=11)
VALUE_FONT = Font(name="Calibri", size=11)
WARN_FONT = Font(name="Calibri", italic=True, size=10, color="CC6600")

NOTE_FILL = PatternFill(start_color="FFF2CC", end_color="FFF2CC", fill_type="solid")
KPI_FILL = PatternFill(start_color="DBEAFE", end_color="DBEAFE", fill_type="solid")

COUNT_FMT = '#,##0'
TREND_FMT = '#,##0.00'
# Shares arrive as percent-points (e.g. 62.5), so the sign is a literal.
PCT_FMT = '0.0"%"'

# Column-name → format mapping for data sheets
_COL_FORMATS: dict[str, str] = {
    "unidades": COUNT_FMT,
    "caixas": COUNT_FMT,
    "total": COUNT_FMT,
    "pct_total": PCT_FMT,
    "acumulado_pct": PCT_FMT,
    "tendencia_mm": TREND_FMT,
}

# Heatmap colours run from pale blue (low) to deep teal (high).
HEATMAP_LOW = "EFF6FF"
HEATMAP_HIGH = "0E7490"

_AUTO_WIDTH_SAMPLE_ROWS = 300
_EXCEL_FORMULA_PREFIXES = ("=", "+", "-", "@")


# ── Helpers ──────────────────────────────────────────────────────


def _style_header(ws: Worksheet, ncols: int) -> None:
    for c in range(1, ncols + 1):
        cell = ws.cell(row=1, column=c)
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        cell.alignment = HEADER_ALIGN


def _auto_width(ws: Worksheet) -> None:
    max_row = min(ws.max_row, _AUTO_WIDTH_SAMPLE_ROWS + 1)  # include header row
    for c_idx in range(1, ws.max_column + 1):
        letter = get_column_letter(c_idx)
        width = 0
        for row in ws.iter_rows(min_row=1, max_row=max_row, min_col=c_idx, max_col=c_idx):
            width = max(width, len(str(row[0].value or "")))
        ws.column_dimensions[letter].width = min(width + 4, 30)


def _apply_number_formats(ws: Worksheet, col_names: list[str]) -> None:
    """Apply number formats to data columns (rows 2+) by column name."""
    if ws.max_row < 2:
        return

    for c_idx, name in enumerate(col_names, 1):
        fmt = _COL_FORMATS.get(name.lower())
        if fmt:
            for row in ws.iter_rows(min_row=2, max_row=ws.max_row, min_col=c_idx, max_col=c_idx):
                for cell in row:
                    cell.number_format = fmt


def _add_excel_table(ws: Worksheet, name: str, ncols: int, nrows: int) -> None:
    """Turn the data range into a proper Excel Table object."""
    if nrows < 1 or ncols < 1:
        return
    ref = f"A1:{get_column_letter(ncols)}{nrows + 1}"  # +1 for header
    table = Table(displayName=f"tbl_{name}", ref=ref)
    table.tableStyleInfo = TableStyleInfo(
        name="TableStyleMedium2", showFirstColumn=False,
        showLastColumn=False, showRowStripes=True, showColumnStripes=False,
    )
    ws.add_table(table)


def _excel_value(val: Any) -> Any:
    try:
        if pd.isna(val):
            return None
    except (TypeError, ValueError):
        return val

    item = getattr(val, "item", None)
    if callable(item):
        val = item()

    if isinstance(val, str):
        if val.startswith("'"):
            return val
        stripped = val.lstrip()
        if stripped and stripped[0] in _EXCEL_FORMULA_PREFIXES:
            return f"'{val}"

    return val


def _df_to_sheet(
    wb: Workbook, name: str, df: pd.DataFrame, *, as_table: bool = True,
) -> Worksheet:
    ws = wb.create_sheet(title=name)
    col_names = [str(c) for c in df.columns]

    if not col_names:
        ws.cell(row=1, column=1, value="Sem dados").font = VALUE_FONT
        ws.column_dimensions["A"].width = 18
        return ws

    for c_idx, col_name in enumerate(col_names, 1):
        ws.cell(row=1, column=c_idx, value=col_name)
    for r_idx, row_vals in enumerate(df.itertuples(index=False, name=None), 2):
        for c_idx, val in enumerate(row_vals, 1):
            ws.cell(row=r_idx, column=c_idx, value=_excel_value(val))
    _style_header(ws, len(col_names))
    _apply_number_formats(ws, col_names)
    ws.freeze_panes = "A2"
    if (not as_table) and (len(df) > 0):
        ws.auto_filter.ref = ws.dimensions
    _auto_width(ws)
    if as_table and len(df) > 0:
        _add_excel_table(ws, name, len(col_names), len(df))
    return ws


# ── Frames ───────────────────────────────────────────────────────


def users_frame(result: ReconcileResult) -> pd.DataFrame:
    return pd.DataFrame(
        {
            "Usuario": [u.user for u in result.users],
            "Unidades": [u.units for u in result.users],
            "Caixas": [u.cases for u in result.users],
            "Total": [u.total for u in result.users],
            "Pct_Total": share_of_total(result.users),
        }
    )


def hours_frame(result: ReconcileResult) -> pd.DataFrame:
    return pd.DataFrame(
        {
            "Hora": [hour_label(h.hour) for h in result.hours],
            "Unidades": [h.units for h in result.hours],
            "Caixas": [h.cases for h in result.hours],
            "Total": [h.total for h in result.hours],
            "Tendencia_MM": list(result.trend),
        }
    )


def pareto_frame(result: ReconcileResult) -> pd.DataFrame:
    ordered = sorted(result.users, key=lambda u: u.total, reverse=True)
    return pd.DataFrame(
        {
            "Usuario": [u.user for u in ordered],
            "Total": [u.total for u in ordered],
            "Acumulado_Pct": pareto_curve(ordered),
        }
    )


def heatmap_frame(result: ReconcileResult) -> pd.DataFrame:
    matrix = heatmap(result.records)
    if matrix.empty:
        return pd.DataFrame()
    matrix.columns = [f"{int(h):02d}" for h in matrix.columns]
    return matrix.rename_axis("Usuario").reset_index()


def records_frame(result: ReconcileResult) -> pd.DataFrame:
    return pd.DataFrame(
        {
            "Usuario": [r.user for r in result.records],
            "Hora": [r.hour for r in result.records],
            "Unidades": [r.units for r in result.records],
            "Caixas": [r.cases for r in result.records],
        }
    )


# ── Sheets ───────────────────────────────────────────────────────


def _write_dashboard(wb: Workbook, result: ReconcileResult) -> None:
    ws = wb.create_sheet(title="Painel")
    qc = result.qc

    # ── Title ────────────────────────────────────────────────────
    ws.cell(row=1, column=1, value="Reposição — Painel Executivo").font = TITLE_FONT
    ws.merge_cells("A1:D1")
    generated = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M UTC")
    ws.cell(row=2, column=1, value=f"Gerado em {generated}").font = SUBTITLE_FONT
    ws.merge_cells("A2:D2")

    # ── Notes block (from QC) ────────────────────────────────────
    row = 4
    ws.cell(row=row, column=1, value="Notas").font = LABEL_FONT
    ws.merge_cells(f"A{row}:D{row}")
    for c in range(1, 5):
        ws.cell(row=row, column=c).fill = NOTE_FILL
    row += 1
    ws.cell(row=row, column=1, value=f"Unidades: {qc.units_sheet}")
    ws.cell(row=row, column=2, value=f"Caixas: {qc.cases_sheet}")
    ws.cell(row=row, column=3, value=f"Registros: {qc.records_out}")
    for c in range(1, 5):
        ws.cell(row=row, column=c).fill = NOTE_FILL
    row += 1
    if qc.warnings:
        for warn in qc.warnings:
            ws.cell(row=row, column=1, value=f"⚠ {warn}").font = WARN_FONT
            for c in range(1, 5):
                ws.cell(row=row, column=c).fill = NOTE_FILL
            row += 1
    else:
        ws.cell(row=row, column=1, value="Sem avisos").font = VALUE_FONT
        for c in range(1, 5):
            ws.cell(row=row, column=c).fill = NOTE_FILL
        row += 1

    # ── KPI cards ────────────────────────────────────────────────
    row += 1
    ws.cell(row=row, column=1, value="Indicadores").font = LABEL_FONT
    ws.merge_cells(f"A{row}:D{row}")
    for c in range(1, 5):
        ws.cell(row=row, column=c).fill = KPI_FILL
    row += 1

    peak = peak_hour(result.hours)
    kpis: list[tuple[str, Any, str | None]] = [
        ("Unidades (Alto Giro)", result.totals.units, COUNT_FMT),
        ("Caixas (Baixo Giro)", result.totals.cases, COUNT_FMT),
        ("Total", result.totals.total, COUNT_FMT),
        ("Usuários", len(result.users), COUNT_FMT),
        ("Pareto 80% (usuários)", pareto_cutoff([u.total for u in result.users]), COUNT_FMT),
        ("Hora de pico", hour_label(peak.hour) if peak else "—", None),
    ]
    for label, value, fmt in kpis:
        lbl_cell = ws.cell(row=row, column=1, value=label)
        lbl_cell.font = LABEL_FONT
        lbl_cell.fill = KPI_FILL
        val_cell = ws.cell(row=row, column=2, value=value)
        val_cell.font = VALUE_FONT
        val_cell.fill = KPI_FILL
        if fmt:
            val_cell.number_format = fmt
            val_cell.alignment = Alignment(horizontal="right")
        row += 1

    # ── Insights ─────────────────────────────────────────────────
    if result.insights:
        row += 1
        ws.cell(row=row, column=1, value="Insights Automáticos").font = LABEL_FONT
        row += 1
        for line in result.insights:
            ws.cell(row=row, column=1, value=f"• {line}").font = VALUE_FONT
            ws.merge_cells(f"A{row}:D{row}")
            row += 1

    ws.column_dimensions["A"].width = 26
    ws.column_dimensions["B"].width = 22
    ws.column_dimensions["C"].width = 18
    ws.column_dimensions["D"].width = 18


def _write_heatmap(wb: Workbook, df: pd.DataFrame) -> None:
    ws = _df_to_sheet(wb, "Heatmap", df, as_table=False)
    if df.empty or len(df.columns) < 2:
        return
    ref = f"B2:{get_column_letter(len(df.columns))}{len(df) + 1}"
    ws.conditional_formatting.add(
        ref,
        ColorScaleRule(
            start_type="min", start_color=HEATMAP_LOW,
            end_type="max", end_color=HEATMAP_HIGH,
        ),
    )
    for row in ws.iter_rows(min_row=2, max_row=ws.max_row, min_col=2, max_col=ws.max_column):
        for cell in row:
            cell.number_format = COUNT_FMT


# ── Public API ───────────────────────────────────────────────────


def write_report(out_dir: Path, result: ReconcileResult) -> Path:
    """Write ``Painel_Reposicao.xlsx`` and return the path."""
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    report_path = out_dir / REPORT_FILENAME

    wb = Workbook()
    active_sheet = wb.active
    if active_sheet is not None:
        wb.remove(active_sheet)  # remove default sheet

    _write_dashboard(wb, result)
    _df_to_sheet(wb, "Por_Usuario", users_frame(result))
    _df_to_sheet(wb, "Por_Hora", hours_frame(result))
    _df_to_sheet(wb, "Pareto", pareto_frame(result))
    _write_heatmap(wb, heatmap_frame(result))
    _df_to_sheet(wb, "Registros", records_frame(result))

    tmp_path = out_dir / "Painel_Reposicao.tmp.xlsx"
    wb.save(tmp_path)
    tmp_path.replace(report_path)
    return report_path
