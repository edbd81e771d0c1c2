"""Reporting utilities for trade metrics.

Formatting lives here, not in the aggregator: metric records stay numeric and
this module renders them for files and the console.
"""

from __future__ import annotations

import csv
import json
import math
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Sequence

from backtest_metrics.config.settings import MetricsConfig
from backtest_metrics.metrics.aggregator import TradeMetrics, summarize_positions
from backtest_metrics.models import CompletedPosition, TradeAction
from backtest_metrics.positions.matcher import match_positions


def format_currency(value: float, decimals: int = 2) -> str:
    """Format as US dollars, e.g. 1234.5 -> "$1,234.50", -12 -> "-$12.00"."""
    sign = "-" if value < 0 else ""
    return f"{sign}${abs(value):,.{decimals}f}"


def format_percentage(value: float, decimals: int = 2) -> str:
    """Format a 0-100 scaled value, e.g. 12.345 -> "12.35%"."""
    return f"{value:.{decimals}f}%"


def _round(value: float, digits: int) -> float | str:
    if math.isinf(value):
        return "inf" if value > 0 else "-inf"
    return round(value, digits)


def metrics_to_dict(metrics: TradeMetrics, digits: int = 4) -> dict[str, Any]:
    """Rounded, JSON-safe dictionary of a metrics record."""
    result: dict[str, Any] = {}
    for key, value in metrics.to_dict().items():
        if isinstance(value, float):
            result[key] = _round(value, digits)
        else:
            result[key] = value
    return result


def write_positions_csv(positions: Sequence[CompletedPosition], path: Path) -> None:
    """Write reconstructed positions (closed and open) to CSV."""
    fieldnames = [
        "entry_id",
        "close_id",
        "direction",
        "entry_time",
        "exit_time",
        "entry_price",
        "exit_price",
        "size",
        "pnl",
        "pnl_pct",
        "is_win",
        "close_reason",
        "confidence",
        "match_tier",
        "duration_hours",
        "entry_tp",
        "entry_sl",
        "risk_reward",
    ]

    with open(path, "w", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=fieldnames)
        writer.writeheader()
        for position in positions:
            close = position.close_action
            writer.writerow(
                {
                    "entry_id": position.entry_action.id,
                    "close_id": close.id if close else "",
                    "direction": position.direction,
                    "entry_time": position.entry_date.isoformat(),
                    "exit_time": position.exit_date.isoformat() if position.exit_date else "",
                    "entry_price": position.entry_price,
                    "exit_price": position.exit_price if close else "",
                    "size": position.entry_action.size,
                    "pnl": round(position.pnl, 6),
                    "pnl_pct": round(position.pnl_percentage, 4),
                    "is_win": position.is_win,
                    "close_reason": position.close_reason.type,
                    "confidence": position.close_reason.confidence,
                    "match_tier": position.match_tier.value if position.match_tier else "",
                    "duration_hours": (
                        round(position.duration_hours, 2)
                        if position.duration_hours is not None
                        else ""
                    ),
                    "entry_tp": position.entry_tp,
                    "entry_sl": position.entry_sl,
                    "risk_reward": round(position.actual_risk_reward, 4),
                }
            )


def write_summary_json(summary: dict[str, Any], path: Path) -> None:
    """Write summary metrics to JSON file."""
    with open(path, "w") as f:
        json.dump(summary, f, indent=2, default=str)


def print_summary(summary: dict[str, Any]) -> None:
    """Print a formatted summary to console."""
    print("\n" + "=" * 60)
    print(f"TRADE METRICS{' - ' + summary['label'] if summary.get('label') else ''}")
    print("=" * 60)

    print(f"\n{'PERFORMANCE':=^40}")
    print(f"  Total PnL:          {format_currency(summary['total_pnl']):>12}")
    print(f"  PnL %:              {format_percentage(summary['total_pnl_percentage']):>12}")
    print(f"  Win Rate:           {format_percentage(summary['win_rate']):>12}")
    print(f"  Profit Factor:      {summary['profit_factor']:>12}")

    print(f"\n{'TRADES':=^40}")
    print(f"  Total Trades:       {summary['total_trades']:>12}")
    print(f"  Winning Trades:     {summary['winning_trades']:>12}")
    print(f"  Losing Trades:      {summary['losing_trades']:>12}")
    print(f"  Open Positions:     {summary.get('open_positions_count', 0):>12}")
    print(f"  Expectancy:         {format_currency(summary['expectancy']):>12}")

    print(f"\n{'TRADE DETAILS':=^40}")
    print(f"  Avg PnL:            {format_currency(summary['average_pnl']):>12}")
    print(f"  Avg Win:            {format_currency(summary['average_win']):>12}")
    print(f"  Avg Loss:           {format_currency(abs(summary['average_loss'])):>12}")
    print(f"  Best Trade:         {format_currency(summary['best_trade']):>12}")
    print(f"  Worst Trade:        {format_currency(summary['worst_trade']):>12}")

    print(f"\n{'RISK':=^40}")
    print(f"  Sharpe Ratio:       {summary['sharpe_ratio']:>12.2f}")
    print(f"  Sortino Ratio:      {summary['sortino_ratio']:>12.2f}")
    print(f"  Max Drawdown:       {format_currency(summary['max_drawdown']):>12}")
    print(f"  Max Drawdown %:     {format_percentage(summary['max_drawdown_percentage']):>12}")
    print(f"  Avg Drawdown:       {format_currency(summary['average_drawdown']):>12}")

    if "tp_hit_rate" in summary:
        print(f"\n{'EXITS':=^40}")
        print(f"  TP Hit Rate:        {format_percentage(summary['tp_hit_rate']):>12}")
        print(f"  SL Hit Rate:        {format_percentage(summary['sl_hit_rate']):>12}")
        print(f"  Manual Close Rate:  {format_percentage(summary['manual_close_rate']):>12}")
        print(f"  Avg Risk/Reward:    {summary['average_risk_reward']:>12.2f}")

        print(f"\n{'DIRECTION':=^40}")
        print(f"  Long Positions:     {summary['long_positions']:>12}")
        print(f"  Long Win Rate:      {format_percentage(summary['long_win_rate']):>12}")
        print(f"  Short Positions:    {summary['short_positions']:>12}")
        print(f"  Short Win Rate:     {format_percentage(summary['short_win_rate']):>12}")

        print(f"\n{'DURATION (HRS)':=^40}")
        print(f"  Avg Trade:          {summary['average_trade_duration_hours']:>12.2f}")
        print(f"  Avg Win:            {summary['average_win_duration_hours']:>12.2f}")
        print(f"  Avg Loss:           {summary['average_loss_duration_hours']:>12.2f}")

    print("\n" + "=" * 60)


def generate_report(
    actions: Iterable[TradeAction],
    out_dir: Path,
    config: MetricsConfig | None = None,
    label: str | None = None,
    echo: bool = True,
) -> dict[str, Any]:
    """Match positions, compute metrics and write report artifacts.

    Creates:
    - positions.csv: Every reconstructed position, open ones included
    - summary.json: All computed metrics plus run parameters

    Returns the summary dictionary written to summary.json.
    """
    config = config or MetricsConfig()
    out_dir.mkdir(parents=True, exist_ok=True)

    positions = match_positions(actions, config.current_price, config.tolerance)
    metrics = summarize_positions(positions, config.initial_capital)

    summary = metrics_to_dict(metrics)
    summary["label"] = label
    summary["generated_at"] = datetime.now(timezone.utc).isoformat()
    summary["config"] = config.model_dump()

    write_positions_csv(positions, out_dir / "positions.csv")
    write_summary_json(summary, out_dir / "summary.json")

    if echo:
        print_summary(summary)
        print(f"\nReport saved to: {out_dir}")
        print(f"  - positions.csv ({len(positions)} positions)")
        print("  - summary.json")

    return summary
