"""Reconstruct round-trip positions from an unordered stream of trade actions.

Close actions only carry the entry price of the position they terminate, so each
close is paired with an earlier, still-unmatched entry using a ranked list of
price-match strategies:
- ExactPriceMatch: within the caller's tolerance, oldest entry first (FIFO)
- ClosestPriceMatch: within a fixed 1% band, nearest price first, then FIFO

Closes that no strategy can pair are logged and dropped. Entries that are never
consumed are reported as open positions.
"""

from __future__ import annotations

from abc import abstractmethod
from dataclasses import dataclass
from typing import Iterable, Protocol, Sequence

import structlog

from backtest_metrics.models import CompletedPosition, MatchTier, TradeAction
from backtest_metrics.positions.pnl import build_closed_position, build_open_position

log = structlog.get_logger(__name__)

# Fallback band for the closest-price strategy. Deliberately independent of the
# caller-supplied tolerance.
CLOSEST_MATCH_BAND = 0.01


@dataclass(frozen=True)
class EntryMatch:
    """An entry selected for a close, tagged with the strategy that found it."""

    entry: TradeAction
    tier: MatchTier
    price_distance: float


def relative_price_distance(close: TradeAction, entry: TradeAction) -> float | None:
    """Distance between the close's recorded entry price and an entry's fill.

    Returns None when the pair cannot be compared.
    """
    if close.entry_price is None or entry.price <= 0:
        return None
    return abs(close.entry_price - entry.price) / entry.price


class MatchStrategy(Protocol):
    """One tier of the ranked matching list."""

    tier: MatchTier

    @abstractmethod
    def select(self, close: TradeAction, candidates: Sequence[TradeAction]) -> EntryMatch | None:
        """Pick an entry for the close, or None if this tier finds nothing.

        Candidates are unmatched entries strictly earlier than the close, in
        chronological order.
        """
        ...


class ExactPriceMatch:
    """Oldest candidate whose price is within `tolerance` of the close's entry price."""

    tier = MatchTier.EXACT

    def __init__(self, tolerance: float) -> None:
        self.tolerance = tolerance

    def select(self, close: TradeAction, candidates: Sequence[TradeAction]) -> EntryMatch | None:
        matches: list[tuple[TradeAction, float]] = []
        for entry in candidates:
            distance = relative_price_distance(close, entry)
            if distance is not None and distance <= self.tolerance:
                matches.append((entry, distance))
        if not matches:
            return None
        entry, distance = min(matches, key=lambda item: item[0].timestamp)
        return EntryMatch(entry=entry, tier=self.tier, price_distance=distance)


class ClosestPriceMatch:
    """Nearest-priced candidate inside a fixed band; ties go to the oldest."""

    tier = MatchTier.CLOSEST

    def __init__(self, band: float = CLOSEST_MATCH_BAND) -> None:
        self.band = band

    def select(self, close: TradeAction, candidates: Sequence[TradeAction]) -> EntryMatch | None:
        scored: list[tuple[float, TradeAction]] = []
        for entry in candidates:
            distance = relative_price_distance(close, entry)
            if distance is not None and distance <= self.band:
                scored.append((distance, entry))
        if not scored:
            return None
        distance, entry = min(scored, key=lambda item: (item[0], item[1].timestamp))
        return EntryMatch(entry=entry, tier=self.tier, price_distance=distance)


def default_strategies(tolerance: float) -> list[MatchStrategy]:
    return [ExactPriceMatch(tolerance), ClosestPriceMatch()]


def find_matching_entry(
    close: TradeAction,
    entries: Sequence[TradeAction],
    matched_entry_ids: set[str],
    tolerance: float,
    strategies: Iterable[MatchStrategy] | None = None,
) -> EntryMatch | None:
    """Find the entry a close action terminates.

    Args:
        close: The close action
        entries: All entry actions in chronological order
        matched_entry_ids: Ids of entries already consumed by earlier closes
        tolerance: Exact-match tolerance as a fraction (0.001 = 0.1%)
        strategies: Ranked strategies to try (defaults to exact, then closest)

    Returns:
        EntryMatch from the first strategy that finds one, or None.
    """
    candidates = [
        entry
        for entry in entries
        if entry.id not in matched_entry_ids and entry.timestamp < close.timestamp
    ]
    if not candidates:
        log.warning(
            "close_without_prior_entry",
            close_id=close.id,
            close_time=close.timestamp.isoformat(),
        )
        return None

    ranked = list(strategies) if strategies is not None else default_strategies(tolerance)
    for strategy in ranked:
        match = strategy.select(close, candidates)
        if match is None:
            continue
        if match.tier is not MatchTier.EXACT:
            log.info(
                "close_matched_by_fallback",
                tier=match.tier.value,
                close_id=close.id,
                close_time=close.timestamp.isoformat(),
                close_entry_price=close.entry_price,
                entry_id=match.entry.id,
                entry_price=match.entry.price,
                diff_pct=round(match.price_distance * 100, 3),
            )
        return match

    log.warning(
        "close_without_matching_entry",
        close_id=close.id,
        close_time=close.timestamp.isoformat(),
        close_entry_price=close.entry_price,
        candidates_checked=len(candidates),
    )
    log.debug(
        "unmatched_entry_sample",
        entries=[
            {"id": e.id, "price": e.price, "datetime": e.timestamp.isoformat()}
            for e in candidates[:3]
        ],
    )
    return None


class PositionMatcher:
    """Pair close actions with entries and value whatever remains open."""

    def __init__(
        self,
        tolerance: float,
        strategies: Sequence[MatchStrategy] | None = None,
    ) -> None:
        self.tolerance = tolerance
        self.strategies = list(strategies) if strategies is not None else default_strategies(
            tolerance
        )

    def match(
        self,
        actions: Iterable[TradeAction],
        current_price: float | None = None,
    ) -> list[CompletedPosition]:
        ordered = sorted(actions, key=lambda action: action.timestamp)
        entries = [action for action in ordered if action.is_entry]
        closes = [action for action in ordered if action.is_close]

        positions: list[CompletedPosition] = []
        matched_entry_ids: set[str] = set()

        for close in closes:
            match = find_matching_entry(
                close, entries, matched_entry_ids, self.tolerance, self.strategies
            )
            if match is None:
                continue
            positions.append(
                build_closed_position(match.entry, close, self.tolerance, match.tier)
            )
            matched_entry_ids.add(match.entry.id)

        open_entries = [entry for entry in entries if entry.id not in matched_entry_ids]
        if open_entries:
            log.info(
                "positions_still_open",
                count=len(open_entries),
                valued_at=current_price if current_price else "entry_price",
            )
            for entry in open_entries:
                positions.append(build_open_position(entry, current_price))

        return positions


def match_positions(
    actions: Iterable[TradeAction],
    current_price: float | None,
    tolerance: float,
) -> list[CompletedPosition]:
    """Match closes to entries; closed positions first (in close order), then open ones."""
    return PositionMatcher(tolerance).match(actions, current_price)
