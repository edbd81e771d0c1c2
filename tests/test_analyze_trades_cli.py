import json
import logging
from pathlib import Path

import structlog

from backtest_metrics.monitoring.logging import configure_logging
from backtest_metrics.tools import analyze_trades

CSV_LINES = [
    "id,datetime,trade_action,entry_price,price,sl,tp,size",
    "1,2024-01-01T00:00:00Z,buy,,100,95,110,1",
    "2,2024-01-01T06:00:00Z,close,100,110,,,",
    "3,2024-01-02T00:00:00Z,sell,,200,210,180,1",
    "4,2024-01-02T03:00:00Z,close,200,210,,,",
]


def _write_actions(root: Path) -> Path:
    path = root / "backtest_1.csv"
    path.write_text("\n".join(CSV_LINES) + "\n", encoding="utf-8")
    return path


def test_cli_writes_report_and_prints_json(
    workspace_tmp_path: Path, capsys, restore_logging
) -> None:
    actions_path = _write_actions(workspace_tmp_path)
    out_dir = workspace_tmp_path / "report"

    exit_code = analyze_trades.main(
        [
            "--actions",
            str(actions_path),
            "--config",
            str(workspace_tmp_path / "missing.yaml"),
            "--out-dir",
            str(out_dir),
            "--initial-capital",
            "1000",
            "--json",
        ]
    )

    assert exit_code == 0
    summary = json.loads(capsys.readouterr().out)
    assert summary["label"] == "backtest_1"
    assert summary["total_trades"] == 2
    assert summary["tp_hit_rate"] == 50.0
    assert summary["sl_hit_rate"] == 50.0
    assert summary["total_pnl"] == 0.0
    assert summary["config"]["initial_capital"] == 1000.0
    assert (out_dir / "positions.csv").exists()
    assert (out_dir / "summary.json").exists()


def test_cli_reports_bad_input(workspace_tmp_path: Path, capsys, restore_logging) -> None:
    bad = workspace_tmp_path / "actions.txt"
    bad.write_text("nope")

    exit_code = analyze_trades.main(
        ["--actions", str(bad), "--config", str(workspace_tmp_path / "missing.yaml")]
    )

    assert exit_code == 1
    assert "Unsupported" in capsys.readouterr().err


def test_configure_logging_writes_error_log(workspace_tmp_path: Path, restore_logging) -> None:
    logs_path = workspace_tmp_path / "logs"
    configure_logging("INFO", str(logs_path))

    structlog.get_logger("test").error("metrics_failed", backtest_id="42")
    structlog.get_logger("test").info("metrics_ok")
    for handler in logging.getLogger().handlers:
        handler.flush()

    content = (logs_path / "errors.log").read_text(encoding="utf-8")
    assert "metrics_failed" in content
    assert "metrics_ok" not in content


def test_cli_keeps_stdout_json_only(workspace_tmp_path: Path, capsys, restore_logging) -> None:
    actions_path = _write_actions(workspace_tmp_path)

    analyze_trades.main(
        [
            "--actions",
            str(actions_path),
            "--config",
            str(workspace_tmp_path / "missing.yaml"),
            "--out-dir",
            str(workspace_tmp_path / "report"),
            "--json",
        ]
    )

    captured = capsys.readouterr()
    assert json.loads(captured.out)["total_trades"] == 2
    assert "analyze_trades_completed" in captured.err


def test_cli_rejects_invalid_config(workspace_tmp_path: Path, capsys) -> None:
    actions_path = _write_actions(workspace_tmp_path)
    config_path = workspace_tmp_path / "config.yaml"
    config_path.write_text("metrics:\n  initial_capital: -5\n", encoding="utf-8")

    exit_code = analyze_trades.main(["--actions", str(actions_path), "--config", str(config_path)])

    assert exit_code == 1
    err = capsys.readouterr().err
    assert err.startswith("Error: invalid config")
    assert "initial_capital" in err
