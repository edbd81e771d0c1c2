"""PnL and risk/reward computation for reconstructed positions."""

from __future__ import annotations

from dataclasses import dataclass

from backtest_metrics.models import (
    CloseReason,
    CompletedPosition,
    Direction,
    MatchTier,
    TradeAction,
)
from backtest_metrics.positions.classifier import detect_close_reason


@dataclass(frozen=True)
class PositionPnL:
    pnl: float
    pnl_percentage: float
    is_win: bool


@dataclass(frozen=True)
class RiskProfile:
    potential_profit: float
    potential_loss: float
    risk_reward: float


def calculate_pnl(
    direction: Direction, entry_price: float, exit_price: float, size: float
) -> PositionPnL:
    """Directional PnL. A flat (zero) result is not a win."""
    if direction == "long":
        move = exit_price - entry_price
    else:
        move = entry_price - exit_price
    pnl = move * size
    pnl_percentage = (move / entry_price) * 100 if entry_price else 0.0
    return PositionPnL(pnl=pnl, pnl_percentage=pnl_percentage, is_win=pnl > 0)


def calculate_risk_profile(entry: TradeAction) -> RiskProfile:
    """Potential profit/loss implied by the entry's TP/SL levels."""
    entry_price = entry.price
    size = entry.size
    if entry.direction == "long":
        potential_profit = (entry.take_profit - entry_price) * size
        potential_loss = abs((entry.stop_loss - entry_price) * size)
    else:
        potential_profit = (entry_price - entry.take_profit) * size
        potential_loss = abs((entry_price - entry.stop_loss) * size)
    risk_reward = potential_profit / potential_loss if potential_loss > 0 else 0.0
    return RiskProfile(
        potential_profit=potential_profit,
        potential_loss=potential_loss,
        risk_reward=risk_reward,
    )


def build_closed_position(
    entry: TradeAction,
    close: TradeAction,
    tolerance: float,
    match_tier: MatchTier = MatchTier.EXACT,
) -> CompletedPosition:
    pnl = calculate_pnl(entry.direction, entry.price, close.price, entry.size)
    risk = calculate_risk_profile(entry)
    duration_hours = (close.timestamp - entry.timestamp).total_seconds() / 3600
    close_reason = detect_close_reason(close.price, entry.tp, entry.sl, tolerance)
    return CompletedPosition(
        entry_action=entry,
        close_action=close,
        direction=entry.direction,
        close_reason=close_reason,
        pnl=pnl.pnl,
        pnl_percentage=pnl.pnl_percentage,
        is_win=pnl.is_win,
        entry_date=entry.timestamp,
        exit_date=close.timestamp,
        duration_hours=duration_hours,
        entry_tp=entry.take_profit,
        entry_sl=entry.stop_loss,
        potential_profit=risk.potential_profit,
        potential_loss=risk.potential_loss,
        actual_risk_reward=risk.risk_reward,
        match_tier=match_tier,
    )


def build_open_position(entry: TradeAction, current_price: float | None) -> CompletedPosition:
    """Value an unclosed entry at the current price, or at its own entry price."""
    exit_price = current_price if current_price else entry.price
    pnl = calculate_pnl(entry.direction, entry.price, exit_price, entry.size)
    risk = calculate_risk_profile(entry)
    description = (
        f"Open position (valued at {current_price})" if current_price else "Open position"
    )
    return CompletedPosition(
        entry_action=entry,
        close_action=None,
        direction=entry.direction,
        close_reason=CloseReason(type="open", confidence="certain", description=description),
        pnl=pnl.pnl,
        pnl_percentage=pnl.pnl_percentage,
        is_win=pnl.is_win,
        entry_date=entry.timestamp,
        exit_date=None,
        duration_hours=None,
        entry_tp=entry.take_profit,
        entry_sl=entry.stop_loss,
        potential_profit=risk.potential_profit,
        potential_loss=risk.potential_loss,
        actual_risk_reward=risk.risk_reward,
    )
