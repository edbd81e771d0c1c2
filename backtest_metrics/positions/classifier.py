"""Close-reason detection from TP/SL levels."""

from __future__ import annotations

from backtest_metrics.models import CloseReason, CloseReasonType

# Distance to the nearest TP/SL level, as a fraction of the close price, under
# which the exit is reported as a "likely" hit of that level.
LIKELY_PROXIMITY_BAND = 0.01

_LEVEL_NAMES: dict[CloseReasonType, str] = {
    "tp_hit": "take profit",
    "sl_hit": "stop loss",
}


def _within_tolerance(close_price: float, level: float, tolerance: float) -> bool:
    return abs(close_price - level) <= level * tolerance


def detect_close_reason(
    close_price: float,
    entry_tp: float | None,
    entry_sl: float | None,
    tolerance: float,
) -> CloseReason:
    """Infer why a position was closed.

    Args:
        close_price: Execution price of the close action
        entry_tp: Take-profit level set at entry (None if unset)
        entry_sl: Stop-loss level set at entry (None if unset)
        tolerance: Match tolerance as a fraction (0.001 = 0.1%)

    Returns:
        CloseReason. TP is checked before SL. When neither level is within
        tolerance, the nearer level is reported as "likely" if its distance is
        under 1% of the close price; otherwise the exit is treated as manual.
    """
    if entry_tp is not None and _within_tolerance(close_price, entry_tp, tolerance):
        return CloseReason(type="tp_hit", confidence="certain", description="Take profit hit")

    if entry_sl is not None and _within_tolerance(close_price, entry_sl, tolerance):
        return CloseReason(type="sl_hit", confidence="certain", description="Stop loss hit")

    distances: list[tuple[float, CloseReasonType]] = []
    if entry_tp is not None:
        distances.append((abs(close_price - entry_tp), "tp_hit"))
    if entry_sl is not None:
        distances.append((abs(close_price - entry_sl), "sl_hit"))

    if distances and close_price > 0:
        # min() keeps the first of equal distances, so TP wins ties.
        distance, nearest_type = min(distances, key=lambda item: item[0])
        fraction_off = distance / close_price
        if fraction_off < LIKELY_PROXIMITY_BAND:
            return CloseReason(
                type=nearest_type,
                confidence="likely",
                description=(
                    f"Probably {_LEVEL_NAMES[nearest_type]} ({fraction_off * 100:.2f}% off)"
                ),
            )

    return CloseReason(
        type="manual",
        confidence="uncertain",
        description="Manual close or signal-based exit",
    )
