"""Long-only round-trip metrics from buy -> sell pairs.

Superseded by `calculate_trade_metrics_extended`, which understands close
actions, short entries and TP/SL exits. Kept for callers that still export
plain buy/sell streams.
"""

from __future__ import annotations

import warnings
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable

from backtest_metrics.metrics.aggregator import TradeMetrics, summarize_round_trips
from backtest_metrics.models import TradeAction
from backtest_metrics.positions.pnl import calculate_pnl


@dataclass(frozen=True)
class RoundTripTrade:
    entry_price: float
    exit_price: float
    size: float
    pnl: float
    pnl_percentage: float
    is_win: bool
    entry_date: datetime
    exit_date: datetime


def pair_buy_sell_trades(actions: Iterable[TradeAction]) -> list[RoundTripTrade]:
    """Pair each sell with the oldest unpaired buy (FIFO).

    Buys without a price or size are ignored, as are sells with no open buy.
    """
    open_buys: OrderedDict[str, TradeAction] = OrderedDict()
    trades: list[RoundTripTrade] = []
    for action in sorted(actions, key=lambda a: a.timestamp):
        if action.trade_action == "buy" and action.price and action.size:
            open_buys[action.id] = action
        elif action.trade_action == "sell" and open_buys:
            _, buy = open_buys.popitem(last=False)
            result = calculate_pnl("long", buy.price, action.price, buy.size)
            trades.append(
                RoundTripTrade(
                    entry_price=buy.price,
                    exit_price=action.price,
                    size=buy.size,
                    pnl=result.pnl,
                    pnl_percentage=result.pnl_percentage,
                    is_win=result.is_win,
                    entry_date=buy.timestamp,
                    exit_date=action.timestamp,
                )
            )
    return trades


def calculate_trade_metrics(
    actions: Iterable[TradeAction], initial_capital: float = 10_000.0
) -> TradeMetrics:
    warnings.warn(
        "calculate_trade_metrics is deprecated; use calculate_trade_metrics_extended",
        DeprecationWarning,
        stacklevel=2,
    )
    return summarize_round_trips(pair_buy_sell_trades(actions), initial_capital)
