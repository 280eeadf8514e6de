"""
SignalForge — Historical Data Providers

Daily OHLCV history behind one small protocol. yfinance is the live source;
a seeded synthetic random walk stands in when the live source is down.
Every provider either returns validated bars (oldest first) or raises
DataUnavailableError.
"""

from __future__ import annotations

import datetime as dt
import time
import zlib
from typing import Callable, Optional, Protocol, runtime_checkable

import numpy as np
import pandas as pd
import structlog
import yfinance as yf
from yfinance.exceptions import YFRateLimitError

from signalforge.models import PriceBar
from signalforge.utils.retry import TRANSIENT_ERRORS, with_retry
from signalforge.utils.validators import clean_bars

log = structlog.get_logger(__name__)


class DataUnavailableError(Exception):
    """Provider returned nothing usable or failed after retries."""

    def __init__(self, symbol: str, reason: str):
        self.symbol = symbol
        self.reason = reason
        super().__init__(f"No history for {symbol}: {reason}")


@runtime_checkable
class HistoricalDataProvider(Protocol):
    def get_history(self, symbol: str, lookback_days: int) -> list[PriceBar]:
        ...


# ──────────────────────────────────────────────
# yfinance
# ──────────────────────────────────────────────

class YFinanceHistoryProvider:
    """Daily bars from Yahoo Finance.

    Network errors, explicit rate-limit errors and empty frames (Yahoo's
    usual throttling reply) are all retried with backoff.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._download = with_retry(
            max_attempts=max_attempts,
            base_delay=base_delay,
            retry_on=TRANSIENT_ERRORS + (YFRateLimitError,),
            retry_if=_is_empty_frame,
            sleep=sleep,
        )(self._download_history)

    def get_history(self, symbol: str, lookback_days: int) -> list[PriceBar]:
        end = dt.date.today() + dt.timedelta(days=1)  # end is exclusive
        start = end - dt.timedelta(days=lookback_days + 1)

        try:
            df = self._download(symbol, start, end)
        except Exception as e:
            log.warning("history_fetch_failed", symbol=symbol, error=str(e))
            raise DataUnavailableError(symbol, str(e)) from e

        bars = clean_bars(self._frame_to_rows(df))
        if not bars:
            raise DataUnavailableError(symbol, "provider returned no valid bars")

        log.info("history_fetched", symbol=symbol, bars=len(bars), source="yfinance")
        return bars

    @staticmethod
    def _download_history(symbol: str, start: dt.date, end: dt.date) -> pd.DataFrame:
        return yf.Ticker(symbol).history(start=start, end=end, interval="1d", auto_adjust=False)

    @staticmethod
    def _frame_to_rows(df: Optional[pd.DataFrame]) -> list[dict]:
        if _is_empty_frame(df):
            return []
        return [
            {
                "date": idx,
                "open": row["Open"],
                "high": row["High"],
                "low": row["Low"],
                "close": row["Close"],
                "volume": row["Volume"],
            }
            for idx, row in df.iterrows()
        ]


def _is_empty_frame(df: Optional[pd.DataFrame]) -> bool:
    return df is None or df.empty


# ──────────────────────────────────────────────
# Synthetic fallback
# ──────────────────────────────────────────────

class SyntheticHistoryProvider:
    """Seeded geometric random walk over business days.

    The same (seed, symbol, end_date) always yields the same bars.
    """

    def __init__(
        self,
        seed: int = 42,
        base_price: float = 100.0,
        drift: float = 0.0005,
        volatility: float = 0.02,
        base_volume: int = 1_000_000,
        end_date: Optional[dt.date] = None,
    ):
        self.seed = seed
        self.base_price = base_price
        self.drift = drift
        self.volatility = volatility
        self.base_volume = base_volume
        self.end_date = end_date

    def get_history(self, symbol: str, lookback_days: int) -> list[PriceBar]:
        end = self.end_date or dt.date.today()
        dates = pd.bdate_range(end=end, start=end - dt.timedelta(days=lookback_days))
        n = len(dates)
        if n == 0:
            raise DataUnavailableError(symbol, f"no trading days in {lookback_days}-day window")

        rng = np.random.default_rng([self.seed, zlib.crc32(symbol.encode())])

        closes = self.base_price * np.exp(np.cumsum(rng.normal(self.drift, self.volatility, n)))
        opens = np.concatenate([[self.base_price], closes[:-1]])
        wick = np.clip(np.abs(rng.normal(0, self.volatility / 2, (2, n))), 0, 0.5)
        highs = np.maximum(opens, closes) * (1 + wick[0])
        lows = np.minimum(opens, closes) * (1 - wick[1])
        volumes = (self.base_volume * rng.lognormal(0, 0.3, n)).astype(int)

        rows = [
            {
                "date": dates[i],
                "open": round(float(opens[i]), 4),
                "high": round(float(highs[i]), 4),
                "low": round(float(lows[i]), 4),
                "close": round(float(closes[i]), 4),
                "volume": int(volumes[i]),
            }
            for i in range(n)
        ]
        return clean_bars(rows)


# ──────────────────────────────────────────────
# Fallback chain
# ──────────────────────────────────────────────

class FallbackHistoryProvider:
    """Try the primary provider, then the fallback when one is configured."""

    def __init__(
        self,
        primary: HistoricalDataProvider,
        fallback: Optional[HistoricalDataProvider] = None,
    ):
        self.primary = primary
        self.fallback = fallback

    def get_history(self, symbol: str, lookback_days: int) -> list[PriceBar]:
        try:
            return self.primary.get_history(symbol, lookback_days)
        except DataUnavailableError as e:
            if self.fallback is None:
                raise
            log.warning("history_provider_fallback", symbol=symbol, reason=e.reason)
            return self.fallback.get_history(symbol, lookback_days)
