# tests/test_cli_commands.py
import json

import pytest
from typer.testing import CliRunner

from tradedata_export import __version__
from tradedata_export.cli import app

runner = CliRunner()


@pytest.fixture
def workspace(tmp_path, trade_csv, monkeypatch):
    """Temp working dir with a CSV-backed export.yml; logs, errors and manifest land here."""
    monkeypatch.chdir(tmp_path)
    for key in ("DB_SERVER", "DB_NAME", "DB_USER", "DB_PASSWORD", "OUTPUT_DIRECTORY", "MAX_WORKERS"):
        monkeypatch.delenv(key, raising=False)
    cfg = tmp_path / "export.yml"
    cfg.write_text(f"""
source:
  type: csv
  path: {trade_csv.as_posix()}
output:
  directory: {(tmp_path / "exports").as_posix()}
  use_desktop: false
execution:
  confirm_threshold: 3
""")
    return tmp_path


def test_version():
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.stdout


def test_plan_command(workspace):
    result = runner.invoke(app, [
        "plan", "--hs", "01,02", "--from", "202401", "--to", "202401", "--config", "export.yml"
    ])
    assert result.exit_code == 0
    assert "Combinations: 2" in result.stdout
    assert "01_JAN24EXP.xlsx" in result.stdout
    assert "02_JAN24EXP.xlsx" in result.stdout


def test_plan_rejects_reversed_months(workspace):
    result = runner.invoke(app, ["plan", "--from", "202403", "--to", "202401", "--config", "export.yml"])
    assert result.exit_code == 1
    assert "after" in result.stdout


def test_plan_missing_config(workspace):
    result = runner.invoke(app, ["plan", "--config", "nope.yml"])
    assert result.exit_code == 1
    assert "Failed to load config" in result.stdout


def test_run_command_exports_files(workspace):
    result = runner.invoke(app, [
        "run", "--hs", "0101,0201", "--from", "202401", "--to", "202403", "--config", "export.yml"
    ])

    assert result.exit_code == 0, result.stdout
    exports = workspace / "exports"
    assert (exports / "0101_JAN24-MAR24EXP.xlsx").exists()
    assert (exports / "0201_JAN24-MAR24EXP.xlsx").exists()

    manifest = json.loads((workspace / "manifest.json").read_text())
    assert manifest["runs"][0]["succeeded"] == 2
    assert list((workspace / "logs").glob("TradeDataEXP_Log_*.txt"))


def test_run_large_batch_asks_for_confirmation(workspace):
    result = runner.invoke(
        app,
        ["run", "--hs", "01,02,03,04", "--from", "202401", "--to", "202401", "--config", "export.yml"],
        input="n\n",
    )
    assert result.exit_code == 0
    assert "4 combinations" in result.stdout
    assert "Export cancelled" in result.stdout
    assert not (workspace / "exports").exists()


def test_run_yes_skips_confirmation(workspace):
    result = runner.invoke(app, [
        "run", "--hs", "01,02,03,04", "--from", "202401", "--to", "202401", "--config", "export.yml", "--yes"
    ])
    assert result.exit_code == 0, result.stdout
    assert "Continue?" not in result.stdout


def test_run_invalid_month(workspace):
    result = runner.invoke(app, ["run", "--from", "2024", "--to", "202401", "--config", "export.yml"])
    assert result.exit_code == 1
    assert "not a valid month serial" in result.stdout


def test_preflight_command(workspace):
    result = runner.invoke(app, ["preflight", "--config", "export.yml"])
    assert result.exit_code == 0
    assert "Preflight passed" in result.stdout


def test_preflight_command_fails_for_missing_source(workspace, trade_csv):
    trade_csv.unlink()
    result = runner.invoke(app, ["preflight", "--config", "export.yml"])
    assert result.exit_code == 1
    assert "Preflight failed" in result.stdout


def test_manifest_command_without_file(workspace):
    result = runner.invoke(app, ["manifest"])
    assert result.exit_code == 0
    assert "not found" in result.stdout


def test_manifest_command_after_run(workspace):
    runner.invoke(app, ["run", "--hs", "0101", "--from", "202401", "--to", "202403", "--config", "export.yml"])
    result = runner.invoke(app, ["manifest"])

    assert result.exit_code == 0
    assert "success" in result.stdout


def test_manifest_command_reads_path_from_config(workspace, trade_csv):
    cfg = workspace / "history.yml"
    cfg.write_text(f"""
source:
  type: csv
  path: {trade_csv.as_posix()}
output:
  directory: {(workspace / "exports").as_posix()}
  use_desktop: false
  manifest_path: {(workspace / "history" / "runs.json").as_posix()}
""")
    runner.invoke(app, ["run", "--hs", "0101", "--from", "202401", "--to", "202403", "--config", "history.yml"])

    result = runner.invoke(app, ["manifest", "--config", "history.yml"])
    assert result.exit_code == 0
    assert "success" in result.stdout
    assert (workspace / "history" / "runs.json").exists()
    assert not (workspace / "manifest.json").exists()

    overridden = runner.invoke(app, ["manifest", "--config", "history.yml", "-m", "manifest.json"])
    assert overridden.exit_code == 0
    assert "not found" in overridden.stdout
