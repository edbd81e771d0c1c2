"""Performance metrics over reconstructed positions.

Everything is recomputed from the full list of trade actions on each call. Only
closed positions feed the ratio and average statistics; open positions are
counted but otherwise ignored.

Conventions:
- Rates and percentages are on a 0-100 scale
- Sharpe/Sortino use per-trade pnl_percentage returns, population variance,
  annualized by sqrt(252)
- The equity curve is seeded at initial_capital and walked in close order
- Empty subsets yield 0; profit_factor is inf when there are no losses but
  some profit
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from typing import Any, Iterable, Protocol, Sequence

from backtest_metrics.config.settings import MetricsConfig
from backtest_metrics.models import CompletedPosition, TradeAction
from backtest_metrics.positions.matcher import match_positions

TRADING_DAYS_PER_YEAR = 252


class RoundTrip(Protocol):
    pnl: float
    pnl_percentage: float
    is_win: bool


@dataclass(frozen=True)
class TradeMetrics:
    """Core trade statistics."""

    total_trades: int = 0
    winning_trades: int = 0
    losing_trades: int = 0
    win_rate: float = 0.0

    total_pnl: float = 0.0
    total_pnl_percentage: float = 0.0
    average_pnl: float = 0.0
    average_win: float = 0.0
    average_loss: float = 0.0
    best_trade: float = 0.0
    worst_trade: float = 0.0
    profit_factor: float = 0.0

    sharpe_ratio: float = 0.0
    sortino_ratio: float = 0.0

    max_drawdown: float = 0.0
    max_drawdown_percentage: float = 0.0
    average_drawdown: float = 0.0

    total_profit: float = 0.0
    total_loss: float = 0.0
    expectancy: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class TradeMetricsExtended(TradeMetrics):
    """Core statistics plus exit-type, direction, risk/reward and duration breakdowns."""

    tp_hit_rate: float = 0.0
    sl_hit_rate: float = 0.0
    manual_close_rate: float = 0.0
    open_positions_count: int = 0
    average_risk_reward: float = 0.0

    win_rate_tp_hit: float = 0.0
    win_rate_sl_hit: float = 0.0
    win_rate_manual: float = 0.0

    long_positions: int = 0
    short_positions: int = 0
    long_win_rate: float = 0.0
    short_win_rate: float = 0.0

    average_trade_duration_hours: float = 0.0
    average_win_duration_hours: float = 0.0
    average_loss_duration_hours: float = 0.0


@dataclass(frozen=True)
class DrawdownStats:
    max_drawdown: float
    max_drawdown_percentage: float
    average_drawdown: float


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _win_rate(items: Sequence[RoundTrip]) -> float:
    if not items:
        return 0.0
    return sum(1 for item in items if item.is_win) / len(items) * 100


def sharpe_ratio(returns: Sequence[float]) -> float:
    if not returns:
        return 0.0
    avg = _mean(returns)
    variance = sum((r - avg) ** 2 for r in returns) / len(returns)
    std_dev = math.sqrt(variance)
    if std_dev == 0:
        return 0.0
    return (avg / std_dev) * math.sqrt(TRADING_DAYS_PER_YEAR)


def sortino_ratio(returns: Sequence[float]) -> float:
    """Sortino with a zero target: downside deviation is the RMS of negative returns."""
    if not returns:
        return 0.0
    negative = [r for r in returns if r < 0]
    downside_variance = sum(r**2 for r in negative) / len(negative) if negative else 0.0
    downside_deviation = math.sqrt(downside_variance)
    if downside_deviation == 0:
        return 0.0
    return (_mean(returns) / downside_deviation) * math.sqrt(TRADING_DAYS_PER_YEAR)


def build_equity_curve(pnls: Iterable[float], initial_capital: float) -> list[float]:
    curve = [initial_capital]
    for pnl in pnls:
        curve.append(curve[-1] + pnl)
    return curve


def compute_drawdowns(equity_curve: Sequence[float]) -> DrawdownStats:
    """Walk the curve tracking the running peak.

    The percentage reported is relative to the peak at the point of maximum
    drawdown. The average only includes points that are below their peak.
    """
    if not equity_curve:
        return DrawdownStats(0.0, 0.0, 0.0)
    peak = equity_curve[0]
    max_drawdown = 0.0
    max_drawdown_percentage = 0.0
    drawdowns: list[float] = []
    for equity in equity_curve[1:]:
        if equity > peak:
            peak = equity
        drawdown = peak - equity
        if drawdown > max_drawdown:
            max_drawdown = drawdown
            max_drawdown_percentage = (drawdown / peak) * 100 if peak > 0 else 0.0
        if drawdown > 0:
            drawdowns.append(drawdown)
    return DrawdownStats(
        max_drawdown=max_drawdown,
        max_drawdown_percentage=max_drawdown_percentage,
        average_drawdown=_mean(drawdowns),
    )


def summarize_round_trips(trades: Sequence[RoundTrip], initial_capital: float) -> TradeMetrics:
    """Core statistics for closed round trips, in the order they closed."""
    if not trades:
        return TradeMetrics()

    total_trades = len(trades)
    wins = [t for t in trades if t.is_win]
    losses = [t for t in trades if not t.is_win]

    pnls = [t.pnl for t in trades]
    total_pnl = sum(pnls)
    total_profit = sum(t.pnl for t in wins)
    total_loss = abs(sum(t.pnl for t in losses))
    if total_loss > 0:
        profit_factor = total_profit / total_loss
    elif total_profit > 0:
        profit_factor = float("inf")
    else:
        profit_factor = 0.0

    returns = [t.pnl_percentage for t in trades]
    drawdowns = compute_drawdowns(build_equity_curve(pnls, initial_capital))

    return TradeMetrics(
        total_trades=total_trades,
        winning_trades=len(wins),
        losing_trades=len(losses),
        win_rate=len(wins) / total_trades * 100,
        total_pnl=total_pnl,
        total_pnl_percentage=total_pnl / initial_capital * 100 if initial_capital else 0.0,
        average_pnl=total_pnl / total_trades,
        average_win=_mean([t.pnl for t in wins]),
        average_loss=_mean([t.pnl for t in losses]),
        best_trade=max(pnls),
        worst_trade=min(pnls),
        profit_factor=profit_factor,
        sharpe_ratio=sharpe_ratio(returns),
        sortino_ratio=sortino_ratio(returns),
        max_drawdown=drawdowns.max_drawdown,
        max_drawdown_percentage=drawdowns.max_drawdown_percentage,
        average_drawdown=drawdowns.average_drawdown,
        total_profit=total_profit,
        total_loss=total_loss,
        expectancy=total_pnl / total_trades,
    )


def _average_duration(positions: Sequence[CompletedPosition]) -> float:
    return _mean([p.duration_hours for p in positions if p.duration_hours is not None])


def summarize_positions(
    positions: Sequence[CompletedPosition], initial_capital: float
) -> TradeMetricsExtended:
    """Extended statistics for an already-matched list of positions."""
    completed = [p for p in positions if not p.is_open]
    open_count = len(positions) - len(completed)
    if not completed:
        return TradeMetricsExtended(open_positions_count=open_count)

    core = summarize_round_trips(completed, initial_capital)
    total_trades = core.total_trades

    by_reason = {
        reason: [p for p in completed if p.close_reason.type == reason]
        for reason in ("tp_hit", "sl_hit", "manual")
    }
    longs = [p for p in completed if p.direction == "long"]
    shorts = [p for p in completed if p.direction == "short"]
    wins = [p for p in completed if p.is_win]
    losses = [p for p in completed if not p.is_win]

    return TradeMetricsExtended(
        **core.to_dict(),
        tp_hit_rate=len(by_reason["tp_hit"]) / total_trades * 100,
        sl_hit_rate=len(by_reason["sl_hit"]) / total_trades * 100,
        manual_close_rate=len(by_reason["manual"]) / total_trades * 100,
        open_positions_count=open_count,
        average_risk_reward=_mean([p.actual_risk_reward for p in completed]),
        win_rate_tp_hit=_win_rate(by_reason["tp_hit"]),
        win_rate_sl_hit=_win_rate(by_reason["sl_hit"]),
        win_rate_manual=_win_rate(by_reason["manual"]),
        long_positions=len(longs),
        short_positions=len(shorts),
        long_win_rate=_win_rate(longs),
        short_win_rate=_win_rate(shorts),
        average_trade_duration_hours=_average_duration(completed),
        average_win_duration_hours=_average_duration(wins),
        average_loss_duration_hours=_average_duration(losses),
    )


def calculate_trade_metrics_extended(
    actions: Iterable[TradeAction],
    config: MetricsConfig | None = None,
) -> TradeMetricsExtended:
    """Match positions from raw trade actions and compute the full metrics record.

    Args:
        actions: Trade actions in any order
        config: Initial capital, tolerance (percent) and optional current price

    Returns:
        TradeMetricsExtended. Never raises for a valid action list; with no
        closed positions every statistic is zero and only
        open_positions_count is populated.
    """
    config = config or MetricsConfig()
    positions = match_positions(actions, config.current_price, config.tolerance)
    return summarize_positions(positions, config.initial_capital)
