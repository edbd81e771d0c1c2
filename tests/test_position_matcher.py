from datetime import datetime, timedelta, timezone

from structlog.testing import capture_logs

from backtest_metrics.models import MatchTier, TradeAction
from backtest_metrics.positions.matcher import (
    ClosestPriceMatch,
    ExactPriceMatch,
    PositionMatcher,
    find_matching_entry,
    match_positions,
)

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _action(
    action_id: str,
    kind: str,
    price: float,
    hours: float,
    entry_price: float | None = None,
    size: float | None = 1.0,
    tp: float | None = None,
    sl: float | None = None,
) -> TradeAction:
    return TradeAction(
        id=action_id,
        datetime=T0 + timedelta(hours=hours),
        trade_action=kind,
        price=price,
        entry_price=entry_price,
        size=size,
        tp=tp,
        sl=sl,
    )


def _closed(positions):
    return [p for p in positions if not p.is_open]


def test_oldest_entry_within_tolerance_wins_even_if_later_one_is_tighter() -> None:
    actions = [
        _action("e1", "buy", 101.0, 0),
        _action("e2", "buy", 100.0, 1),
        _action("c1", "close", 102.0, 2, entry_price=100.05),
    ]
    positions = match_positions(actions, current_price=None, tolerance=0.01)

    closed = _closed(positions)
    assert len(closed) == 1
    assert closed[0].entry_action.id == "e1"
    assert closed[0].match_tier is MatchTier.EXACT


def test_fifo_between_two_exact_candidates() -> None:
    actions = [
        _action("e1", "buy", 100.0, 0),
        _action("e2", "buy", 101.0, 1),
        _action("c1", "close", 102.0, 2, entry_price=100.05),
    ]
    closed = _closed(match_positions(actions, None, 0.01))
    assert [p.entry_action.id for p in closed] == ["e1"]


def test_close_before_all_entries_matches_nothing() -> None:
    actions = [
        _action("c1", "close", 100.0, 0, entry_price=100.0),
        _action("e1", "buy", 100.0, 1),
        _action("e2", "sell", 100.0, 2),
    ]
    with capture_logs() as logs:
        positions = match_positions(actions, None, 0.001)

    assert _closed(positions) == []
    assert [p.entry_action.id for p in positions] == ["e1", "e2"]
    assert all(p.close_reason.type == "open" for p in positions)
    assert any(entry["event"] == "close_without_prior_entry" for entry in logs)


def test_unsorted_input_is_matched_chronologically() -> None:
    actions = [
        _action("c1", "close", 110.0, 5, entry_price=100.0),
        _action("e1", "buy", 100.0, 1),
    ]
    closed = _closed(match_positions(actions, None, 0.001))
    assert len(closed) == 1
    assert closed[0].entry_action.id == "e1"
    assert closed[0].close_action.id == "c1"


def test_closest_match_fallback_is_tagged() -> None:
    actions = [
        _action("e1", "buy", 100.0, 0),
        _action("e2", "buy", 100.6, 1),
        _action("c1", "close", 105.0, 2, entry_price=100.4),
    ]
    with capture_logs() as logs:
        closed = _closed(match_positions(actions, None, 0.001))

    assert len(closed) == 1
    assert closed[0].entry_action.id == "e2"
    assert closed[0].match_tier is MatchTier.CLOSEST
    assert any(entry["event"] == "close_matched_by_fallback" for entry in logs)


def test_closest_match_ties_break_by_oldest_entry() -> None:
    actions = [
        _action("e1", "buy", 100.0, 0),
        _action("e2", "buy", 100.0, 1),
        _action("c1", "close", 105.0, 2, entry_price=100.5),
    ]
    closed = _closed(match_positions(actions, None, 0.001))
    assert closed[0].entry_action.id == "e1"
    assert closed[0].match_tier is MatchTier.CLOSEST


def test_close_outside_fallback_band_is_dropped() -> None:
    actions = [
        _action("e1", "buy", 100.0, 0),
        _action("c1", "close", 105.0, 1, entry_price=105.0),
    ]
    with capture_logs() as logs:
        positions = match_positions(actions, None, 0.001)

    assert _closed(positions) == []
    assert len(positions) == 1
    assert positions[0].is_open
    assert any(entry["event"] == "close_without_matching_entry" for entry in logs)


def test_close_without_entry_price_is_dropped() -> None:
    actions = [
        _action("e1", "buy", 100.0, 0),
        _action("c1", "close", 105.0, 1, entry_price=None),
    ]
    positions = match_positions(actions, None, 0.001)
    assert _closed(positions) == []


def test_entry_is_never_matched_twice() -> None:
    actions = [
        _action("e1", "buy", 100.0, 0),
        _action("c1", "close", 101.0, 1, entry_price=100.0),
        _action("c2", "close", 102.0, 2, entry_price=100.0),
    ]
    positions = match_positions(actions, None, 0.001)
    assert len(positions) == 1
    assert positions[0].close_action.id == "c1"


def test_each_close_consumes_its_own_entry() -> None:
    actions = [
        _action("e1", "buy", 100.0, 0),
        _action("e2", "sell", 200.0, 1),
        _action("c1", "close", 190.0, 2, entry_price=200.0),
        _action("c2", "close", 110.0, 3, entry_price=100.0),
    ]
    positions = match_positions(actions, None, 0.001)
    assert [(p.entry_action.id, p.close_action.id) for p in positions] == [
        ("e2", "c1"),
        ("e1", "c2"),
    ]
    assert [p.direction for p in positions] == ["short", "long"]


def test_open_positions_follow_closed_ones_and_use_current_price() -> None:
    actions = [
        _action("e1", "buy", 100.0, 0, size=2.0),
        _action("e2", "buy", 50.0, 1),
        _action("c1", "close", 60.0, 2, entry_price=50.0),
    ]
    positions = match_positions(actions, current_price=110.0, tolerance=0.001)

    assert [p.is_open for p in positions] == [False, True]
    open_position = positions[1]
    assert open_position.entry_action.id == "e1"
    assert open_position.pnl == 20.0
    assert open_position.close_reason.type == "open"
    assert open_position.close_reason.description == "Open position (valued at 110.0)"
    assert open_position.match_tier is None
    assert open_position.exit_date is None
    assert open_position.duration_hours is None


def test_open_position_without_current_price_is_flat() -> None:
    positions = match_positions([_action("e1", "sell", 100.0, 0, size=3.0)], None, 0.001)
    assert positions[0].pnl == 0.0
    assert positions[0].pnl_percentage == 0.0
    assert not positions[0].is_win
    assert positions[0].close_reason.description == "Open position"


def test_input_list_is_not_mutated() -> None:
    actions = [
        _action("c1", "close", 110.0, 5, entry_price=100.0),
        _action("e1", "buy", 100.0, 1),
    ]
    snapshot = list(actions)
    match_positions(actions, None, 0.001)
    assert actions == snapshot


def test_matching_is_idempotent() -> None:
    actions = [
        _action("e1", "buy", 100.0, 0, tp=110.0, sl=95.0),
        _action("c1", "close", 110.0, 3, entry_price=100.0),
        _action("e2", "sell", 100.0, 4),
    ]
    assert match_positions(actions, 99.0, 0.001) == match_positions(actions, 99.0, 0.001)


def test_exact_strategy_in_isolation() -> None:
    close = _action("c1", "close", 110.0, 2, entry_price=100.05)
    entries = [_action("e1", "buy", 100.0, 0), _action("e2", "buy", 100.05, 1)]

    match = ExactPriceMatch(0.001).select(close, entries)
    assert match is not None
    assert match.entry.id == "e1"
    assert match.tier is MatchTier.EXACT

    assert ExactPriceMatch(0.0).select(close, entries).entry.id == "e2"
    assert ExactPriceMatch(0.0).select(close, entries[:1]) is None


def test_closest_strategy_in_isolation() -> None:
    close = _action("c1", "close", 110.0, 2, entry_price=100.0)
    entries = [_action("e1", "buy", 100.9, 0), _action("e2", "buy", 100.5, 1)]

    match = ClosestPriceMatch().select(close, entries)
    assert match is not None
    assert match.entry.id == "e2"
    assert match.price_distance == abs(100.0 - 100.5) / 100.5

    assert ClosestPriceMatch(band=0.001).select(close, entries) is None


def test_find_matching_entry_skips_used_and_later_entries() -> None:
    close = _action("c1", "close", 110.0, 2, entry_price=100.0)
    entries = [
        _action("e1", "buy", 100.0, 0),
        _action("e2", "buy", 100.0, 1),
        _action("e3", "buy", 100.0, 3),
    ]
    match = find_matching_entry(close, entries, {"e1"}, 0.001)
    assert match is not None
    assert match.entry.id == "e2"

    assert find_matching_entry(close, entries, {"e1", "e2"}, 0.001) is None


def test_custom_strategy_list_is_respected() -> None:
    actions = [
        _action("e1", "buy", 100.0, 0),
        _action("c1", "close", 110.0, 1, entry_price=100.0),
    ]
    positions = PositionMatcher(0.001, strategies=[ClosestPriceMatch()]).match(actions)
    assert positions[0].match_tier is MatchTier.CLOSEST
