"""QC report construction for failed runs, and persistence."""

from __future__ import annotations

from pathlib import Path

from pivot_reconcile.io import write_json
from pivot_reconcile.models import QCReport

QC_FILENAME = "qc_report.json"


def failed_qc(message: str, base: QCReport | None = None) -> QCReport:
    """Copy of *base* (or an empty report) with no output and *message* appended."""
    qc = QCReport(**base.to_dict()) if base is not None else QCReport()
    qc.records_out = 0
    qc.warnings.append(message)
    return qc


def write_qc_report(out_dir: Path, qc: QCReport) -> Path:
    """Write ``qc_report.json`` into *out_dir* and return the path."""
    return write_json(Path(out_dir) / QC_FILENAME, qc.to_dict())
