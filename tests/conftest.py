from __future__ import annotations

from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any

import pytest
from openpyxl import Workbook

UNITS_ROWS: list[list[Any]] = [
    ["Relatório de reposição", None, None],
    [None, None, None],
    ["USUÁRIO", "Hora 08", "Hora 09"],
    ["Ana", "10", "5"],
    ["TOTAL", "999", "999"],
]

CASES_ROWS: list[list[Any]] = [
    ["USUÁRIO", "08h", "09h"],
    ["Ana", "2", "0"],
]

WorkbookWriter = Callable[..., Path]


@pytest.fixture
def write_workbook(tmp_path: Path) -> WorkbookWriter:
    """Return a factory writing ``{sheet: rows}`` into an .xlsx under tmp_path."""

    def _write(
        sheets: dict[str, Sequence[Sequence[Any]]], name: str = "reposicao.xlsx"
    ) -> Path:
        wb = Workbook()
        default = wb.active
        if default is not None:
            wb.remove(default)
        for title, rows in sheets.items():
            ws = wb.create_sheet(title=title)
            for row in rows:
                ws.append(list(row))
        path = tmp_path / name
        wb.save(path)
        return path

    return _write


@pytest.fixture
def sample_workbook(write_workbook: WorkbookWriter) -> Path:
    return write_workbook({"ALTO GIRO": UNITS_ROWS, "BAIXO GIRO": CASES_ROWS})
