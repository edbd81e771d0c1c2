"""Shared data models for trade reconciliation."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator


ActionType = Literal["buy", "sell", "close"]
Direction = Literal["long", "short"]
CloseReasonType = Literal["tp_hit", "sl_hit", "manual", "open"]
Confidence = Literal["certain", "likely", "uncertain"]


class MatchTier(str, Enum):
    """Which matching strategy paired a close with its entry."""

    EXACT = "exact"
    CLOSEST = "closest"


class TradeAction(BaseModel):
    """A single buy/sell/close record exported by the backtesting service.

    Missing sizes are coerced to 0 here, once. TP/SL stay optional so the
    close-reason classifier can tell "not set" apart from a level of zero; use
    `take_profit` / `stop_loss` for the zero-defaulted values.
    """

    id: str
    timestamp: datetime = Field(alias="datetime")
    trade_action: ActionType
    price: float
    entry_price: float | None = None
    tp: float | None = None
    sl: float | None = None
    size: float = 0.0
    backtest_id: str | None = None
    created_at: datetime | None = None

    model_config = {
        "frozen": True,
        "populate_by_name": True,
        "extra": "ignore",
    }

    @field_validator("id", "backtest_id", mode="before")
    @classmethod
    def coerce_identifier(cls, v: Any) -> str | None:
        if v is None:
            return None
        return str(v)

    @field_validator("timestamp", "created_at")
    @classmethod
    def assume_utc(cls, v: datetime | None) -> datetime | None:
        # Exports mix "Z"-suffixed and bare timestamps; bare ones are UTC.
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @field_validator("size", mode="before")
    @classmethod
    def coerce_size(cls, v: Any) -> float:
        if v is None:
            return 0.0
        return float(v)

    @property
    def is_entry(self) -> bool:
        return self.trade_action in ("buy", "sell")

    @property
    def is_close(self) -> bool:
        return self.trade_action == "close"

    @property
    def direction(self) -> Direction:
        return "long" if self.trade_action == "buy" else "short"

    @property
    def take_profit(self) -> float:
        return self.tp or 0.0

    @property
    def stop_loss(self) -> float:
        return self.sl or 0.0


@dataclass(frozen=True)
class CloseReason:
    type: CloseReasonType
    confidence: Confidence
    description: str


@dataclass(frozen=True)
class CompletedPosition:
    """A round trip reconstructed from an entry and (optionally) its close."""

    entry_action: TradeAction
    close_action: TradeAction | None
    direction: Direction
    close_reason: CloseReason
    pnl: float
    pnl_percentage: float
    is_win: bool
    entry_date: datetime
    exit_date: datetime | None
    duration_hours: float | None
    entry_tp: float
    entry_sl: float
    potential_profit: float
    potential_loss: float
    actual_risk_reward: float
    match_tier: MatchTier | None = None

    @property
    def is_open(self) -> bool:
        return self.close_action is None

    @property
    def entry_price(self) -> float:
        return self.entry_action.price

    @property
    def exit_price(self) -> float | None:
        if self.close_action is None:
            return None
        return self.close_action.price
