"""CLI integration tests for pivot-reconcile."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from openpyxl import load_workbook
from typer.testing import CliRunner

import pivot_reconcile.cli as cli_mod
from pivot_reconcile import __version__
from pivot_reconcile.cli import app

from conftest import CASES_ROWS, UNITS_ROWS, WorkbookWriter

runner = CliRunner()


def _read_json(path: Path) -> dict[str, object]:
    return json.loads(path.read_text(encoding="utf-8"))


def test_version_flag() -> None:
    result = runner.invoke(app, ["--version"])

    assert result.exit_code == 0
    assert f"v{__version__}" in result.output


def test_run_writes_all_artifacts(tmp_path: Path, sample_workbook: Path) -> None:
    out_dir = tmp_path / "out"

    result = runner.invoke(
        app, ["run", "--input", str(sample_workbook), "--out-dir", str(out_dir), "--quiet"]
    )

    assert result.exit_code == 0, result.output
    csv_text = (out_dir / "reposicao_enriquecido.csv").read_text(encoding="utf-8")
    assert csv_text == "Usuario,Hora,Unidades,Caixas\nAna,8,10,2\nAna,9,5,0"
    qc = _read_json(out_dir / "qc_report.json")
    assert qc["records_out"] == 2
    assert qc["units_sheet"] == "ALTO GIRO"
    manifest = _read_json(out_dir / "run_manifest.json")
    assert manifest["status"] == "success"
    assert manifest["records_out"] == 2
    assert manifest["error_code"] is None
    assert len(str(manifest["sha256"])) == 64
    assert load_workbook(out_dir / "Painel_Reposicao.xlsx").sheetnames[0] == "Painel"
    summary = (out_dir / "summary.txt").read_text(encoding="utf-8")
    assert "records_out: 2" in summary
    assert "peak_hour: 08:00" in summary


def test_run_prints_status_when_not_quiet(tmp_path: Path, sample_workbook: Path) -> None:
    result = runner.invoke(
        app, ["run", "--input", str(sample_workbook), "--out-dir", str(tmp_path / "o")]
    )

    assert result.exit_code == 0, result.output
    assert "Arquivo processado" in result.output
    assert "Ranking por Usuário" in result.output


def test_run_missing_sheet_exits_2_with_failure_artifacts(
    tmp_path: Path, write_workbook: WorkbookWriter
) -> None:
    path = write_workbook({"ALTO GIRO": UNITS_ROWS, "Outra": CASES_ROWS})
    out_dir = tmp_path / "fail"

    result = runner.invoke(app, ["run", "--input", str(path), "--out-dir", str(out_dir), "-q"])

    assert result.exit_code == 2
    assert "Não encontrei as abas" in result.output
    manifest = _read_json(out_dir / "run_manifest.json")
    assert manifest["status"] == "failed"
    assert manifest["error_code"] == 2
    qc = _read_json(out_dir / "qc_report.json")
    assert qc["records_out"] == 0
    assert not (out_dir / "reposicao_enriquecido.csv").exists()
    assert not (out_dir / "Painel_Reposicao.xlsx").exists()


def test_run_empty_pivots_exits_2(tmp_path: Path, write_workbook: WorkbookWriter) -> None:
    path = write_workbook({"ALTO GIRO": [["x"]], "BAIXO GIRO": [["y"]]})
    out_dir = tmp_path / "empty"

    result = runner.invoke(app, ["run", "--input", str(path), "--out-dir", str(out_dir), "-q"])

    assert result.exit_code == 2
    assert "USUÁRIO × HORA" in result.output
    assert _read_json(out_dir / "run_manifest.json")["status"] == "failed"


def test_run_unreadable_file_exits_2(tmp_path: Path) -> None:
    path = tmp_path / "broken.xlsx"
    path.write_bytes(b"not a workbook")
    out_dir = tmp_path / "bad"

    result = runner.invoke(app, ["run", "--input", str(path), "--out-dir", str(out_dir), "-q"])

    assert result.exit_code == 2
    assert "Erro ao processar arquivo" in result.output
    manifest = _read_json(out_dir / "run_manifest.json")
    assert "broken.xlsx" in str(manifest["error_message"])


def test_run_unexpected_error_exits_1(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path, sample_workbook: Path
) -> None:
    def _boom(*_args: object, **_kwargs: object) -> Path:
        raise RuntimeError("disk on fire")

    monkeypatch.setattr(cli_mod, "write_report", _boom)
    out_dir = tmp_path / "boom"

    result = runner.invoke(
        app, ["run", "--input", str(sample_workbook), "--out-dir", str(out_dir), "-q"]
    )

    assert result.exit_code == 1
    manifest = _read_json(out_dir / "run_manifest.json")
    assert manifest["error_code"] == 1
    assert "disk on fire" in str(manifest["error_message"])
    qc = _read_json(out_dir / "qc_report.json")
    assert qc["units_tuples"] == 2
    assert qc["records_out"] == 0


def test_run_custom_sheet_names_and_window(tmp_path: Path, write_workbook: WorkbookWriter) -> None:
    path = write_workbook({"Unidades": UNITS_ROWS, "Caixas": CASES_ROWS})
    out_dir = tmp_path / "custom"

    result = runner.invoke(
        app,
        [
            "run",
            "--input", str(path),
            "--out-dir", str(out_dir),
            "--units-sheet", "unidades",
            "--cases-sheet", "caixas",
            "--window", "2",
            "--quiet",
        ],
    )

    assert result.exit_code == 0, result.output
    assert "moving_average_window: 2" in (out_dir / "summary.txt").read_text(encoding="utf-8")


def test_run_rejects_zero_window(tmp_path: Path, sample_workbook: Path) -> None:
    result = runner.invoke(
        app, ["run", "--input", str(sample_workbook), "--out-dir", str(tmp_path), "-w", "0"]
    )

    assert result.exit_code == 2


def test_validate_pass_writes_qc_and_manifest_only(tmp_path: Path, sample_workbook: Path) -> None:
    out_dir = tmp_path / "val"

    result = runner.invoke(app, ["validate", "--input", str(sample_workbook), "--out-dir", str(out_dir)])

    assert result.exit_code == 0, result.output
    assert "PASS" in result.output
    assert _read_json(out_dir / "qc_report.json")["units_tuples"] == 2
    assert _read_json(out_dir / "run_manifest.json")["status"] == "success"
    assert not (out_dir / "Painel_Reposicao.xlsx").exists()
    assert not (out_dir / "reposicao_enriquecido.csv").exists()


def test_validate_empty_pivots_exits_2(tmp_path: Path, write_workbook: WorkbookWriter) -> None:
    path = write_workbook({"ALTO GIRO": [["x"]], "BAIXO GIRO": [["y"]]})
    out_dir = tmp_path / "val_empty"

    result = runner.invoke(app, ["validate", "--input", str(path), "--out-dir", str(out_dir), "-q"])

    assert result.exit_code == 2
    qc = _read_json(out_dir / "qc_report.json")
    assert any("USUÁRIO × HORA" in w for w in qc["warnings"])  # type: ignore[union-attr]


def test_validate_missing_sheet_exits_2(tmp_path: Path, write_workbook: WorkbookWriter) -> None:
    path = write_workbook({"Capa": [["x"]]})

    result = runner.invoke(app, ["validate", "--input", str(path), "--out-dir", str(tmp_path), "-q"])

    assert result.exit_code == 2
    assert _read_json(tmp_path / "run_manifest.json")["error_code"] == 2
