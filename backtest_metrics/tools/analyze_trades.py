"""CLI tool to reconcile a backtest's trade actions and report performance metrics.

Usage:
    python -m backtest_metrics.tools.analyze_trades \
        --actions ./exports/backtest_42_trade_actions.csv \
        --current-price 101.5 --out-dir ./reports/backtest_42
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

import structlog
import yaml

from backtest_metrics.config.settings import MetricsConfig, load_settings
from backtest_metrics.data import load_trade_actions
from backtest_metrics.metrics.reporting import generate_report
from backtest_metrics.monitoring.logging import configure_logging

log = structlog.get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Match trade actions into positions and compute performance metrics."
    )
    parser.add_argument(
        "--actions",
        type=Path,
        required=True,
        help="Trade action export (.csv or .json)",
    )
    parser.add_argument("--config", default=None, help="Path to config.yaml")
    parser.add_argument(
        "--current-price",
        type=float,
        default=None,
        help="Price used to value open positions (default: their entry price)",
    )
    parser.add_argument(
        "--initial-capital",
        type=float,
        default=None,
        help="Equity-curve seed (overrides config)",
    )
    parser.add_argument(
        "--tolerance-pct",
        type=float,
        default=None,
        help="Price tolerance in percent, e.g. 0.1 (overrides config)",
    )
    parser.add_argument(
        "--out-dir",
        type=Path,
        default=None,
        help="Report directory (default: <reports_path>/<actions file stem>)",
    )
    parser.add_argument("--label", default=None, help="Label recorded in the summary")
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the summary as JSON instead of a table",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = load_settings(args.config)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        print(f"Error: invalid config: {exc}", file=sys.stderr)
        return 1
    configure_logging(
        settings.monitoring.log_level,
        settings.storage.logs_path if settings.monitoring.error_log_enabled else None,
        settings.monitoring,
    )

    overrides = {
        key: value
        for key, value in {
            "current_price": args.current_price,
            "initial_capital": args.initial_capital,
            "price_tolerance_percent": args.tolerance_pct,
        }.items()
        if value is not None
    }
    try:
        config = MetricsConfig.model_validate(settings.metrics.model_dump() | overrides)
        actions = load_trade_actions(args.actions)
    except (OSError, ValueError) as exc:
        log.error("analyze_trades_failed", actions=str(args.actions), error=str(exc))
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    out_dir = args.out_dir or Path(settings.storage.reports_path) / args.actions.stem
    summary = generate_report(
        actions,
        out_dir,
        config=config,
        label=args.label or args.actions.stem,
        echo=not args.json,
    )
    if args.json:
        print(json.dumps(summary, indent=2, default=str))
    log.info(
        "analyze_trades_completed",
        actions=len(actions),
        total_trades=summary["total_trades"],
        open_positions=summary["open_positions_count"],
        out_dir=str(out_dir),
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
