"""Performance metrics over reconstructed positions."""

from backtest_metrics.metrics.aggregator import (
    DrawdownStats,
    TradeMetrics,
    TradeMetricsExtended,
    build_equity_curve,
    calculate_trade_metrics_extended,
    compute_drawdowns,
    sharpe_ratio,
    sortino_ratio,
    summarize_positions,
    summarize_round_trips,
)
from backtest_metrics.metrics.legacy import calculate_trade_metrics, pair_buy_sell_trades
from backtest_metrics.metrics.reporting import (
    format_currency,
    format_percentage,
    generate_report,
    metrics_to_dict,
)

__all__ = [
    "DrawdownStats",
    "TradeMetrics",
    "TradeMetricsExtended",
    "build_equity_curve",
    "calculate_trade_metrics",
    "calculate_trade_metrics_extended",
    "compute_drawdowns",
    "format_currency",
    "format_percentage",
    "generate_report",
    "metrics_to_dict",
    "pair_buy_sell_trades",
    "sharpe_ratio",
    "sortino_ratio",
    "summarize_positions",
    "summarize_round_trips",
]
