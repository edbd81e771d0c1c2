"""Position reconstruction: matching, close-reason classification and PnL."""

from backtest_metrics.positions.classifier import LIKELY_PROXIMITY_BAND, detect_close_reason
from backtest_metrics.positions.matcher import (
    CLOSEST_MATCH_BAND,
    ClosestPriceMatch,
    EntryMatch,
    ExactPriceMatch,
    MatchStrategy,
    PositionMatcher,
    find_matching_entry,
    match_positions,
)
from backtest_metrics.positions.pnl import (
    build_closed_position,
    build_open_position,
    calculate_pnl,
    calculate_risk_profile,
)

__all__ = [
    "CLOSEST_MATCH_BAND",
    "LIKELY_PROXIMITY_BAND",
    "ClosestPriceMatch",
    "EntryMatch",
    "ExactPriceMatch",
    "MatchStrategy",
    "PositionMatcher",
    "build_closed_position",
    "build_open_position",
    "calculate_pnl",
    "calculate_risk_profile",
    "detect_close_reason",
    "find_matching_entry",
    "match_positions",
]
