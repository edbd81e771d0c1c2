"""Trade action loading from backtest exports."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Iterable, Mapping

import orjson
import pandas as pd
from pydantic import ValidationError

from backtest_metrics.models import TradeAction

_LIST_KEYS = ("trade_actions", "data")
_NUMERIC_COLUMNS = ("price", "entry_price", "tp", "sl", "size")


def parse_trade_actions(records: Iterable[Mapping[str, Any]]) -> list[TradeAction]:
    """Validate already-deserialized trade action records.

    Raises:
        ValueError: If a record is not a valid trade action.
    """
    actions: list[TradeAction] = []
    for index, record in enumerate(records):
        try:
            actions.append(TradeAction.model_validate(dict(record)))
        except ValidationError as exc:
            raise ValueError(f"Invalid trade action at index {index}: {exc}") from exc
    return actions


def _records_from_json(payload: Any) -> list[Mapping[str, Any]]:
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for key in _LIST_KEYS:
            value = payload.get(key)
            if isinstance(value, list):
                return value
    raise ValueError(
        f"JSON must be a list of trade actions or an object with one of {list(_LIST_KEYS)}"
    )


def load_trade_actions_json(path: str | Path) -> list[TradeAction]:
    with open(path, "rb") as handle:
        payload = orjson.loads(handle.read())
    return parse_trade_actions(_records_from_json(payload))


def load_trade_actions_csv(path: str | Path) -> list[TradeAction]:
    """Load a CSV export. Blank cells become None (sizes then default to 0)."""
    df = pd.read_csv(path, dtype=str)
    df.columns = [str(c).strip().lower() for c in df.columns]
    required = {"id", "datetime", "trade_action", "price"}
    missing = required - set(df.columns)
    if missing:
        raise ValueError(
            f"CSV is missing required columns {sorted(missing)}. Found: {list(df.columns)}"
        )
    for col in _NUMERIC_COLUMNS:
        if col in df.columns:
            df[col] = pd.to_numeric(df[col], errors="coerce").astype(float)
    df["trade_action"] = df["trade_action"].str.strip().str.lower()
    df = df.astype(object).where(pd.notna(df), None)
    return parse_trade_actions(df.to_dict(orient="records"))


def load_trade_actions(path: str | Path) -> list[TradeAction]:
    """Load trade actions from a .csv or .json export."""
    suffix = Path(path).suffix.lower()
    if suffix == ".csv":
        return load_trade_actions_csv(path)
    if suffix == ".json":
        return load_trade_actions_json(path)
    raise ValueError(f"Unsupported trade action file type: {suffix or '<none>'}")
