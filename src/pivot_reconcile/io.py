"""I/O helpers — decode workbooks into cell matrices, write artifacts."""

from __future__ import annotations

import csv
import json
import zipfile
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date, datetime
from io import StringIO
from pathlib import Path
from typing import Any, Callable, cast

import pandas as pd
from openpyxl import load_workbook as _openpyxl_load
from openpyxl.utils.exceptions import InvalidFileException

from pivot_reconcile import CSV_COLUMNS
from pivot_reconcile.errors import UnreadableFileError
from pivot_reconcile.models import CellMatrix, UnifiedRecord
from pivot_reconcile.utils import format_number

OPENPYXL_SUFFIXES = (".xlsx", ".xlsm", ".xltx", ".xltm")

# ── Workbook abstraction ─────────────────────────────────────────


@dataclass
class WorkbookData:
    """Ordered sheet names plus each sheet's rows, missing cells as ``None``."""

    sheet_names: list[str] = field(default_factory=list)
    sheets: dict[str, CellMatrix] = field(default_factory=dict)

    def __post_init__(self) -> None:
        missing = [name for name in self.sheet_names if name not in self.sheets]
        if missing:
            raise ValueError(f"No cell matrix for sheets: {', '.join(missing)}")

    def matrix_at(self, index: int) -> CellMatrix:
        return self.sheets[self.sheet_names[index]]

    @classmethod
    def from_matrices(cls, matrices: dict[str, Sequence[Sequence[Any]]]) -> WorkbookData:
        """Build a workbook from ``{sheet_name: rows}`` in insertion order."""
        sheets = {name: [list(row) for row in rows] for name, rows in matrices.items()}
        return cls(sheet_names=list(sheets), sheets=sheets)


# ── Loading ──────────────────────────────────────────────────────


def _pad_rows(rows: CellMatrix) -> CellMatrix:
    width = max((len(row) for row in rows), default=0)
    return [row + [None] * (width - len(row)) for row in rows]


def _read_openpyxl(path: Path) -> WorkbookData:
    try:
        wb = _openpyxl_load(path, read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, ValueError, OSError) as exc:
        raise UnreadableFileError(f"Could not read workbook {path.name}: {exc}") from exc

    try:
        sheets: dict[str, CellMatrix] = {}
        for ws in wb.worksheets:
            # read-only mode trusts the stored <dimension>, which can be stale
            ws.reset_dimensions()
            sheets[ws.title] = _pad_rows([list(row) for row in ws.iter_rows(values_only=True)])
    finally:
        wb.close()
    return WorkbookData(sheet_names=list(sheets), sheets=sheets)


def _frame_to_matrix(df: pd.DataFrame) -> CellMatrix:
    cleaned = df.astype(object).where(pd.notna(df), None)
    return cast(CellMatrix, cleaned.values.tolist())


def _read_xls(path: Path) -> WorkbookData:
    read_excel = cast(Callable[..., dict[str, pd.DataFrame]], getattr(pd, "read_excel"))
    try:
        frames = read_excel(path, engine="xlrd", sheet_name=None, header=None)
    except ImportError as exc:
        raise UnreadableFileError(
            "Unsupported .xls input unless 'xlrd' is installed. "
            "Either convert to .xlsx or add dependency: pip install xlrd"
        ) from exc
    except Exception as exc:
        raise UnreadableFileError(f"Could not read workbook {path.name}: {exc}") from exc

    sheets = {str(name): _frame_to_matrix(df) for name, df in frames.items()}
    return WorkbookData(sheet_names=list(sheets), sheets=sheets)


def load_workbook(path: Path) -> WorkbookData:
    """Decode an Excel workbook into a :class:`WorkbookData`.

    Raises
    ------
    UnreadableFileError
        If *path* is missing, is not a file, has an unsupported extension,
        or cannot be decoded.
    """
    path = Path(path)
    if not path.exists():
        raise UnreadableFileError(f"Input file not found: {path}")
    if not path.is_file():
        raise UnreadableFileError(f"Input path is not a file: {path}")

    suffix = path.suffix.lower()
    if suffix in OPENPYXL_SUFFIXES:
        return _read_openpyxl(path)
    if suffix == ".xls":
        return _read_xls(path)

    raise UnreadableFileError(f"Unsupported file type: {suffix!r}. Use .xlsx or .xls")


# ── Writing ──────────────────────────────────────────────────────


def _json_default(obj: Any) -> Any:
    if isinstance(obj, Path):
        return str(obj)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    item = getattr(obj, "item", None)
    if callable(item):
        converted = item()
        if isinstance(converted, (str, int, float, bool)) or converted is None:
            return converted
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def write_text(path: Path, text: str) -> Path:
    """Write *text* to *path* through a temp file, then rename into place."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    tmp_path.write_text(text, encoding="utf-8")
    tmp_path.replace(path)
    return path


def write_json(path: Path, data: Any) -> Path:
    """Write *data* as pretty-printed JSON to *path* (atomic + deterministic)."""
    payload = json.dumps(
        data,
        indent=2,
        sort_keys=True,
        ensure_ascii=False,
        default=_json_default,
    ) + "\n"
    return write_text(path, payload)


def records_to_csv(records: Sequence[UnifiedRecord]) -> str:
    """Serialise records as ``Usuario,Hora,Unidades,Caixas`` lines.

    Lines are ``\\n``-separated with no trailing newline; integral numbers
    carry no ``.0``.
    """
    buf = StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(CSV_COLUMNS)
    for r in records:
        writer.writerow([r.user, r.hour, format_number(r.units), format_number(r.cases)])
    return buf.getvalue().rstrip("\n")


def write_csv_export(path: Path, records: Sequence[UnifiedRecord]) -> Path:
    return write_text(path, records_to_csv(records))
