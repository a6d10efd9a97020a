"""CLI entry point for pivot-reconcile."""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table as RichTable

from pivot_reconcile import CASES_SHEET, DEFAULT_WINDOW, UNITS_SHEET, __version__
from pivot_reconcile.aggregate import peak_hour
from pivot_reconcile.errors import EmptyResultError, PivotReconcileError
from pivot_reconcile.io import (
    WorkbookData,
    load_workbook,
    write_csv_export,
    write_json,
    write_text,
)
from pivot_reconcile.models import QCReport, RunManifest
from pivot_reconcile.pipeline import (
    PipelineConfig,
    ReconcileResult,
    parse_workbook,
    reconcile_workbook,
    status_message,
)
from pivot_reconcile.qc import failed_qc, write_qc_report
from pivot_reconcile.report import write_report
from pivot_reconcile.utils import format_number, hour_label, sha256_file, utcnow_iso

CSV_FILENAME = "reposicao_enriquecido.csv"
MANIFEST_FILENAME = "run_manifest.json"
SUMMARY_FILENAME = "summary.txt"

app = typer.Typer(
    name="pivotrec",
    help="pivot-reconcile — Merge ALTO GIRO / BAIXO GIRO pivot sheets into one record set.",
    add_completion=False,
    no_args_is_help=True,
)
console = Console()


def _noop(*_args: object, **_kwargs: object) -> None:
    return None


def _printer(quiet: bool) -> Callable[..., None]:
    return _noop if quiet else console.print


def _err(msg: str) -> None:
    console.print(f"[red]x[/red] {msg}")


def _configure_logging(verbose: bool) -> None:
    if not verbose:
        return
    logging.basicConfig(
        level=logging.DEBUG,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


# ── Helpers ──────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"pivot-reconcile v{__version__}")
        raise typer.Exit()


def _write_manifest(
    out_dir: Path,
    input_file: Path,
    created_at: str,
    qc: QCReport,
    *,
    status: str = "success",
    error_code: int | None = None,
    error_message: str = "",
) -> Path:
    sha256 = ""
    try:
        sha256 = sha256_file(input_file)
    except OSError:
        pass

    manifest = RunManifest(
        version=__version__,
        input_path=str(input_file.resolve()),
        output_dir=str(out_dir.resolve()),
        created_at_utc=created_at,
        records_out=qc.records_out,
        sha256=sha256,
        status=status,
        error_code=error_code,
        error_message=error_message,
    )
    return write_json(out_dir / MANIFEST_FILENAME, manifest.to_dict())


def _fail(
    out_dir: Path,
    input_file: Path,
    created_at: str,
    *,
    message: str,
    base: QCReport | None = None,
    error_code: int = 2,
) -> typer.Exit:
    """Write failure artifacts, report *message* and return the exit to raise."""
    qc = failed_qc(message, base)
    qc_path = write_qc_report(out_dir, qc)
    manifest_path = _write_manifest(
        out_dir,
        input_file,
        created_at,
        qc,
        status="failed",
        error_code=error_code,
        error_message=message,
    )
    _err(message)
    console.print(f"  QC report -> {qc_path}")
    console.print(f"  Manifest  -> {manifest_path}")
    return typer.Exit(code=error_code)


def _load_or_fail(
    input_file: Path, out_dir: Path, created_at: str, config: PipelineConfig
) -> WorkbookData:
    try:
        return load_workbook(input_file)
    except PivotReconcileError as exc:
        raise _fail(
            out_dir, input_file, created_at, message=status_message(exc, config)
        ) from exc


def _summary_lines(input_file: Path, result: ReconcileResult, config: PipelineConfig) -> list[str]:
    qc = result.qc
    peak = peak_hour(result.hours)
    lines = [
        "pivot-reconcile summary",
        f"tool_version: pivot-reconcile v{__version__}",
        f"input_file: {input_file.name}",
        f"units_sheet: {qc.units_sheet}",
        f"cases_sheet: {qc.cases_sheet}",
        f"units_tuples: {qc.units_tuples}",
        f"cases_tuples: {qc.cases_tuples}",
        f"records_out: {qc.records_out}",
        f"skipped_cells: {qc.skipped_cells}",
        f"warning_count: {len(qc.warnings)}",
        f"total_units: {format_number(result.totals.units)}",
        f"total_cases: {format_number(result.totals.cases)}",
        f"total: {format_number(result.totals.total)}",
        f"users: {len(result.users)}",
        f"peak_hour: {hour_label(peak.hour) if peak else 'N/A'}",
        f"moving_average_window: {config.window}",
        f"status: {result.status}",
    ]
    lines.extend(f"insight_{idx}: {text}" for idx, text in enumerate(result.insights, start=1))
    return lines


def _print_users_table(result: ReconcileResult, limit: int = 10) -> None:
    tbl = RichTable(title="Ranking por Usuário", show_lines=False)
    tbl.add_column("Usuário", style="bold")
    tbl.add_column("Unidades", justify="right")
    tbl.add_column("Caixas", justify="right")
    tbl.add_column("Total", justify="right")
    for u in result.users[:limit]:
        tbl.add_row(u.user, format_number(u.units), format_number(u.cases), format_number(u.total))
    if len(result.users) > limit:
        tbl.add_row(f"… +{len(result.users) - limit}", "", "", "")
    console.print(tbl)


# ── Callbacks ────────────────────────────────────────────────────


@app.callback()
def main(
    version: bool | None = typer.Option(
        None, "--version", "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """pivot-reconcile CLI."""


# ── run command ──────────────────────────────────────────────────


@app.command()
def run(
    input_file: Path = typer.Option(
        ..., "--input", "-i",
        help="Path to the .xlsx/.xls workbook.",
        exists=True, readable=True,
    ),
    out_dir: Path = typer.Option(
        Path("output"), "--out-dir", "-o",
        help="Output directory for CSV + report + QC + manifest.",
    ),
    units_sheet: str = typer.Option(
        UNITS_SHEET, "--units-sheet",
        help="Name (or part of the name) of the units pivot sheet.",
    ),
    cases_sheet: str = typer.Option(
        CASES_SHEET, "--cases-sheet",
        help="Name (or part of the name) of the cases pivot sheet.",
    ),
    window: int = typer.Option(
        DEFAULT_WINDOW, "--window", "-w",
        min=1,
        help="Moving-average window for the hourly trend.",
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q",
        help="Suppress informational output; still writes all artifacts.",
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v",
        help="Log parser diagnostics.",
    ),
) -> None:
    """Parse, reconcile and report on a workbook."""
    echo = _printer(quiet)
    _configure_logging(verbose)
    created_at = utcnow_iso()
    out_dir.mkdir(parents=True, exist_ok=True)
    try:
        config = PipelineConfig(units_sheet=units_sheet, cases_sheet=cases_sheet, window=window)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc

    if not quiet:
        console.print(Panel(
            f"[bold]pivot-reconcile[/bold] v{__version__}\n"
            f"Input:  {input_file}\nOutput: {out_dir}",
            title="Pipeline Start", border_style="blue",
        ))
        console.print(f"  Sheets: units={units_sheet!r}, cases={cases_sheet!r}")

    # ── Load ─────────────────────────────────────────────────────
    echo("[blue]>[/blue] Reading workbook …")
    workbook = _load_or_fail(input_file, out_dir, created_at, config)
    echo(f"  {len(workbook.sheet_names)} sheets: {', '.join(workbook.sheet_names)}")

    qc: QCReport | None = None
    try:
        # ── Parse + reconcile ────────────────────────────────────
        echo("[blue]>[/blue] Parsing pivot sheets …")
        try:
            result = reconcile_workbook(workbook, config)
        except PivotReconcileError as exc:
            raise _fail(
                out_dir, input_file, created_at, message=status_message(exc, config)
            ) from exc
        qc = result.qc

        qc_path = write_qc_report(out_dir, qc)
        echo(f"  QC report -> {qc_path}")
        if not quiet:
            for w in qc.warnings:
                console.print(f"  [yellow]![/yellow] {w}")
            console.print(f"  {qc.records_out} records reconciled")

        # ── Artifacts ────────────────────────────────────────────
        echo(f"[blue]>[/blue] Writing {CSV_FILENAME} …")
        csv_path = write_csv_export(out_dir / CSV_FILENAME, result.records)
        echo(f"  CSV      -> {csv_path}")

        echo("[blue]>[/blue] Writing report …")
        report_path = write_report(out_dir, result)
        echo(f"  Report   -> {report_path}")

        manifest_path = _write_manifest(out_dir, input_file, created_at, qc)
        echo(f"  Manifest -> {manifest_path}")

        summary_path = write_text(
            out_dir / SUMMARY_FILENAME,
            "\n".join(_summary_lines(input_file, result, config)) + "\n",
        )
        echo(f"  Summary  -> {summary_path}")

        if not quiet:
            _print_users_table(result)
            for line in result.insights:
                console.print(f"  • {line}")
            console.print(Panel(
                f"[green]{result.status}[/green] -> {report_path}",
                title="Pipeline Complete", border_style="green",
            ))
    except typer.Exit:
        raise
    except Exception as exc:
        raise _fail(
            out_dir,
            input_file,
            created_at,
            message=f"Unexpected internal error: {exc}",
            base=qc,
            error_code=1,
        ) from exc


# ── validate command ─────────────────────────────────────────────


@app.command()
def validate(
    input_file: Path = typer.Option(
        ..., "--input", "-i",
        help="Path to the .xlsx/.xls workbook.",
        exists=True, readable=True,
    ),
    out_dir: Path = typer.Option(
        Path("output"), "--out-dir", "-o",
        help="Output directory for QC + manifest.",
    ),
    units_sheet: str = typer.Option(
        UNITS_SHEET, "--units-sheet",
        help="Name (or part of the name) of the units pivot sheet.",
    ),
    cases_sheet: str = typer.Option(
        CASES_SHEET, "--cases-sheet",
        help="Name (or part of the name) of the cases pivot sheet.",
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q",
        help="Suppress informational output; still writes QC + manifest.",
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v",
        help="Log parser diagnostics.",
    ),
) -> None:
    """Check that both pivot sheets are found and parse, without writing the report.

    Writes qc_report.json + run_manifest.json only.
    Exit 0 = OK, exit 2 = sheets missing, empty or unreadable.
    """
    _configure_logging(verbose)
    created_at = utcnow_iso()
    out_dir.mkdir(parents=True, exist_ok=True)
    try:
        config = PipelineConfig(units_sheet=units_sheet, cases_sheet=cases_sheet)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc

    if not quiet:
        console.print(Panel(
            f"[bold]pivot-reconcile[/bold] v{__version__}  [dim]validate mode[/dim]\n"
            f"Input: {input_file}",
            title="Validate", border_style="cyan",
        ))

    workbook = _load_or_fail(input_file, out_dir, created_at, config)

    qc: QCReport | None = None
    try:
        try:
            parsed = parse_workbook(workbook, config)
        except PivotReconcileError as exc:
            raise _fail(
                out_dir, input_file, created_at, message=status_message(exc, config)
            ) from exc
        qc = parsed.qc

        if parsed.is_empty:
            raise _fail(
                out_dir,
                input_file,
                created_at,
                message=status_message(EmptyResultError(), config),
                base=qc,
            )

        qc_path = write_qc_report(out_dir, qc)
        manifest_path = _write_manifest(out_dir, input_file, created_at, qc)

        if not quiet:
            tbl = RichTable(title="Validation Summary", show_lines=True)
            tbl.add_column("Check", style="bold")
            tbl.add_column("Result")
            tbl.add_row("Units sheet", parsed.units_sheet)
            tbl.add_row("Cases sheet", parsed.cases_sheet)
            tbl.add_row("Units values", str(qc.units_tuples))
            tbl.add_row("Cases values", str(qc.cases_tuples))
            tbl.add_row("Skipped cells", str(qc.skipped_cells))
            for w in qc.warnings:
                tbl.add_row("Warning", f"[yellow]{w}[/yellow]")
            tbl.add_row("Status", "[green]PASS[/green]")
            console.print(tbl)
        console.print(f"  QC       -> {qc_path}")
        console.print(f"  Manifest -> {manifest_path}")
    except typer.Exit:
        raise
    except Exception as exc:
        raise _fail(
            out_dir,
            input_file,
            created_at,
            message=f"Unexpected internal error: {exc}",
            base=qc,
            error_code=1,
        ) from exc
