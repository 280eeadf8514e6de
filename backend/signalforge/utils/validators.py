"""
SignalForge — Input Validators

Ingestion-boundary helpers for tickers, prices and raw OHLCV rows.
Raise ValueError on invalid scalar input; malformed bars are dropped.
"""

from __future__ import annotations

import datetime as dt
import math
import re
from typing import Any, Iterable, Mapping

import structlog
from pydantic import ValidationError

from signalforge.models import PriceBar

log = structlog.get_logger(__name__)

# 1-5 uppercase letters, optional share-class suffix (BRK.B / BRK-B)
_TICKER_RE = re.compile(r"^[A-Z]{1,5}([.-][A-Z]{1,2})?$")


def validate_ticker(raw: str) -> str:
    """Clean and validate a stock ticker symbol.

    Returns the normalized ticker or raises ValueError.

    >>> validate_ticker('aapl')
    'AAPL'
    >>> validate_ticker('BRK.B')
    'BRK.B'
    """
    ticker = raw.strip().upper()
    if not ticker:
        raise ValueError("Ticker cannot be empty")
    if not _TICKER_RE.match(ticker):
        raise ValueError(
            f"Invalid ticker '{ticker}'. Expected 1-5 uppercase letters, "
            f"optionally followed by a class suffix (e.g. BRK.B)"
        )
    return ticker


def validate_price(value: Any) -> float:
    """Return a finite positive float or raise ValueError."""
    try:
        price = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"Price must be numeric, got {value!r}") from None
    if not math.isfinite(price) or price <= 0:
        raise ValueError(f"Price must be a positive finite number, got {price}")
    return price


def clean_bars(rows: Iterable[Mapping[str, Any]]) -> list[PriceBar]:
    """Convert raw OHLCV rows into validated bars, oldest first.

    Rows with missing, non-positive or non-finite prices, or with broken
    high/low ordering, are dropped. A later row for the same date replaces
    an earlier one.
    """
    by_date: dict[dt.date, PriceBar] = {}
    dropped = 0

    for row in rows:
        try:
            bar = PriceBar(
                date=_as_date(row["date"]),
                open=row["open"],
                high=row["high"],
                low=row["low"],
                close=row["close"],
                volume=_as_volume(row.get("volume", 0)),
            )
        except (KeyError, TypeError, ValueError, ValidationError):
            dropped += 1
            continue
        by_date[bar.date] = bar

    if dropped:
        log.debug("bars_dropped", dropped=dropped, kept=len(by_date))

    return [by_date[d] for d in sorted(by_date)]


def _as_date(value: Any) -> Any:
    # datetime / pandas Timestamp carry a .date(); plain dates and strings pass through
    if isinstance(value, dt.datetime) or hasattr(value, "to_pydatetime"):
        return value.date()
    return value


def _as_volume(value: Any) -> int:
    try:
        volume = float(value)
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(volume) or volume < 0:
        return 0
    return int(volume)
