"""Trade-position reconciliation and performance metrics for backtest exports."""

from backtest_metrics.config.settings import MetricsConfig
from backtest_metrics.metrics.aggregator import (
    TradeMetrics,
    TradeMetricsExtended,
    calculate_trade_metrics_extended,
)
from backtest_metrics.models import CloseReason, CompletedPosition, MatchTier, TradeAction
from backtest_metrics.positions.matcher import match_positions

__all__ = [
    "CloseReason",
    "CompletedPosition",
    "MatchTier",
    "MetricsConfig",
    "TradeAction",
    "TradeMetrics",
    "TradeMetricsExtended",
    "calculate_trade_metrics_extended",
    "match_positions",
]
