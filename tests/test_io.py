from __future__ import annotations

import json
import re
import zipfile
from datetime import datetime
from pathlib import Path

import pandas as pd
import pytest

from pivot_reconcile.errors import UnreadableFileError
from pivot_reconcile.io import (
    WorkbookData,
    load_workbook,
    records_to_csv,
    write_csv_export,
    write_json,
)
from pivot_reconcile.models import UnifiedRecord

from conftest import CASES_ROWS, UNITS_ROWS, WorkbookWriter


def test_load_workbook_reads_sheets_in_order_with_none_for_blanks(
    write_workbook: WorkbookWriter,
) -> None:
    path = write_workbook({"Capa": [["x"]], "ALTO GIRO": UNITS_ROWS, "BAIXO GIRO": CASES_ROWS})

    wb = load_workbook(path)

    assert wb.sheet_names == ["Capa", "ALTO GIRO", "BAIXO GIRO"]
    units = wb.sheets["ALTO GIRO"]
    assert units[0] == ["Relatório de reposição", None, None]
    assert units[2] == ["USUÁRIO", "Hora 08", "Hora 09"]
    assert wb.matrix_at(2) == [["USUÁRIO", "08h", "09h"], ["Ana", "2", "0"]]


def test_load_workbook_keeps_numeric_cells_numeric(write_workbook: WorkbookWriter) -> None:
    path = write_workbook({"S": [["USUÁRIO", 8], ["Ana", 12.5]]})

    matrix = load_workbook(path).sheets["S"]

    assert matrix[0][1] == 8
    assert matrix[1][1] == 12.5


def test_load_workbook_ignores_stale_dimension(tmp_path: Path, sample_workbook: Path) -> None:
    stale = tmp_path / "stale.xlsx"
    with zipfile.ZipFile(sample_workbook) as src, zipfile.ZipFile(stale, "w") as dst:
        for item in src.infolist():
            data = src.read(item.filename)
            if item.filename.startswith("xl/worksheets/sheet"):
                data = re.sub(rb"<dimension ref=\"[^\"]*\"\s*/>", b'<dimension ref="A1"/>', data)
            dst.writestr(item, data)

    wb = load_workbook(stale)

    assert wb.matrix_at(0) == UNITS_ROWS
    assert wb.matrix_at(1) == CASES_ROWS


def test_load_workbook_missing_file(tmp_path: Path) -> None:
    with pytest.raises(UnreadableFileError, match="not found"):
        load_workbook(tmp_path / "missing.xlsx")


def test_load_workbook_rejects_directory(tmp_path: Path) -> None:
    folder = tmp_path / "fake.xlsx"
    folder.mkdir()

    with pytest.raises(UnreadableFileError, match="not a file"):
        load_workbook(folder)


def test_load_workbook_rejects_unsupported_extension(tmp_path: Path) -> None:
    path = tmp_path / "data.csv"
    path.write_text("a,b\n", encoding="utf-8")

    with pytest.raises(UnreadableFileError, match="Unsupported file type"):
        load_workbook(path)


def test_load_workbook_wraps_corrupt_xlsx(tmp_path: Path) -> None:
    path = tmp_path / "broken.xlsx"
    path.write_bytes(b"this is not a zip archive")

    with pytest.raises(UnreadableFileError, match="broken.xlsx"):
        load_workbook(path)


def test_unreadable_file_error_is_a_value_error() -> None:
    assert issubclass(UnreadableFileError, ValueError)


def test_load_workbook_xls_uses_xlrd_and_no_header(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    path = tmp_path / "legacy.xls"
    path.write_bytes(b"x")
    calls: list[dict[str, object]] = []

    def _fake_read_excel(p: Path, **kwargs: object) -> dict[str, pd.DataFrame]:
        calls.append({"path": p, **kwargs})
        return {"ALTO GIRO": pd.DataFrame([["USUÁRIO", "Hora 08"], ["Ana", float("nan")]])}

    monkeypatch.setattr(pd, "read_excel", _fake_read_excel)

    wb = load_workbook(path)

    assert calls[0]["engine"] == "xlrd"
    assert calls[0]["sheet_name"] is None
    assert calls[0]["header"] is None
    assert wb.sheet_names == ["ALTO GIRO"]
    assert wb.sheets["ALTO GIRO"] == [["USUÁRIO", "Hora 08"], ["Ana", None]]


def test_load_workbook_xls_missing_xlrd_raises_friendly_error(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    path = tmp_path / "legacy.xls"
    path.write_bytes(b"x")

    def _fake_read_excel(p: Path, **kwargs: object) -> dict[str, pd.DataFrame]:
        del p, kwargs
        raise ImportError("No module named xlrd")

    monkeypatch.setattr(pd, "read_excel", _fake_read_excel)

    with pytest.raises(UnreadableFileError, match="xlrd"):
        load_workbook(path)


def test_workbook_data_requires_matrix_per_sheet() -> None:
    with pytest.raises(ValueError, match="GHOST"):
        WorkbookData(sheet_names=["GHOST"], sheets={})


def test_workbook_data_from_matrices_copies_rows() -> None:
    rows = [("USUÁRIO", "08")]

    wb = WorkbookData.from_matrices({"A": rows})

    assert wb.sheet_names == ["A"]
    assert wb.sheets["A"] == [["USUÁRIO", "08"]]


# ── Writing ──────────────────────────────────────────────────────


def test_records_to_csv_header_order_and_number_rendering() -> None:
    records = [
        UnifiedRecord("Ana", 8, units=10, cases=2),
        UnifiedRecord("Ana", 9, units=5.5, cases=0),
    ]

    assert records_to_csv(records) == "Usuario,Hora,Unidades,Caixas\nAna,8,10,2\nAna,9,5.5,0"


def test_records_to_csv_empty_has_header_only() -> None:
    assert records_to_csv([]) == "Usuario,Hora,Unidades,Caixas"


def test_records_to_csv_quotes_names_with_commas() -> None:
    csv_text = records_to_csv([UnifiedRecord("Silva, Ana", 7, units=1)])

    assert csv_text.splitlines()[1] == '"Silva, Ana",7,1,0'


def test_write_csv_export_is_atomic(tmp_path: Path) -> None:
    out = write_csv_export(tmp_path / "nested" / "out.csv", [UnifiedRecord("Ana", 8, units=1)])

    assert out.read_text(encoding="utf-8") == "Usuario,Hora,Unidades,Caixas\nAna,8,1,0"
    assert not (tmp_path / "nested" / "out.csv.tmp").exists()


def test_write_json_sorted_and_serialises_paths_and_dates(tmp_path: Path) -> None:
    out = write_json(
        tmp_path / "data.json",
        {"b": Path("x/y"), "a": datetime(2024, 1, 2, 3, 4, 5), "c": "Usuário"},
    )

    text = out.read_text(encoding="utf-8")
    assert text.endswith("\n")
    assert "Usuário" in text
    assert list(json.loads(text)) == ["a", "b", "c"]
    assert json.loads(text)["b"] == "x/y"


def test_write_json_rejects_unknown_objects(tmp_path: Path) -> None:
    with pytest.raises(TypeError, match="not JSON serializable"):
        write_json(tmp_path / "bad.json", {"x": object()})
