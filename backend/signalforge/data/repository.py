"""
SignalForge — Tracked Stock Repository

Explicit, thread-safe registry of the symbols a scan covers and their
latest quotes. Callers own the instance; nothing here is module-global.
"""

from __future__ import annotations

import threading
from typing import Iterable, Mapping, Optional

import structlog

from signalforge.models import TrackedStock
from signalforge.utils.validators import validate_price

log = structlog.get_logger(__name__)

KNOWN_NAMES = {
    "AAPL": "Apple Inc.",
    "GOOGL": "Alphabet Inc.",
    "MSFT": "Microsoft Corporation",
    "AMZN": "Amazon.com Inc.",
    "TSLA": "Tesla Inc.",
    "NVDA": "NVIDIA Corporation",
    "META": "Meta Platforms Inc.",
    "NFLX": "Netflix Inc.",
}


class StockRepository:
    """In-memory tracked-symbol store.

    Reads return copies so a caller can never mutate shared state
    without going through update_price().

    Usage:
        repo = StockRepository.from_symbols(["AAPL", "MSFT"])
        repo.update_price("AAPL", 187.2, previous_close=185.0)
    """

    def __init__(self, stocks: Iterable[TrackedStock] = ()):
        self._lock = threading.Lock()
        self._stocks: dict[str, TrackedStock] = {}
        for stock in stocks:
            self.add(stock)

    @classmethod
    def from_symbols(
        cls,
        symbols: Iterable[str],
        names: Optional[Mapping[str, str]] = None,
    ) -> "StockRepository":
        names = {**KNOWN_NAMES, **(names or {})}
        return cls(
            TrackedStock(symbol=s.upper(), name=names.get(s.upper(), s.upper()))
            for s in symbols
        )

    def add(self, stock: TrackedStock) -> TrackedStock:
        """Insert or replace by symbol."""
        stock = stock.model_copy(update={"symbol": stock.symbol.upper()})
        with self._lock:
            self._stocks[stock.symbol] = stock
        return stock.model_copy()

    def get(self, symbol: str) -> Optional[TrackedStock]:
        with self._lock:
            stock = self._stocks.get(symbol.upper())
        return stock.model_copy() if stock else None

    def remove(self, symbol: str) -> bool:
        with self._lock:
            return self._stocks.pop(symbol.upper(), None) is not None

    def symbols(self) -> list[str]:
        with self._lock:
            return list(self._stocks)

    def all(self) -> list[TrackedStock]:
        with self._lock:
            return [s.model_copy() for s in self._stocks.values()]

    def priced(self) -> list[TrackedStock]:
        """Stocks that already carry a positive current price."""
        return [s for s in self.all() if s.current_price > 0]

    def update_price(
        self,
        symbol: str,
        price: float,
        previous_close: Optional[float] = None,
        volume: Optional[int] = None,
    ) -> Optional[TrackedStock]:
        """Record a new quote. Unknown symbols are ignored and return None.

        Raises ValueError for a non-numeric, non-finite or non-positive price.
        """
        price = validate_price(price)
        if previous_close is not None:
            previous_close = validate_price(previous_close)
        key = symbol.upper()
        with self._lock:
            stock = self._stocks.get(key)
            if stock is None:
                log.debug("price_update_ignored", symbol=key)
                return None

            prev = previous_close if previous_close is not None else stock.previous_close
            change = ((price - prev) / prev) * 100 if prev > 0 else 0.0
            updated = stock.model_copy(update={
                "current_price": price,
                "previous_close": prev,
                "change_percent": round(change, 4),
                "volume": volume if volume is not None else stock.volume,
            })
            self._stocks[key] = updated
        return updated.model_copy()

    def __len__(self) -> int:
        with self._lock:
            return len(self._stocks)

    def __contains__(self, symbol: object) -> bool:
        if not isinstance(symbol, str):
            return False
        with self._lock:
            return symbol.upper() in self._stocks
