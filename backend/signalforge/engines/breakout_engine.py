"""
SignalForge — Breakout Engine

The caller of the core: fetches history for tracked symbols, runs the
signal engine, and hands each finished strategy to the store and the
broadcaster. Scans fan out over a thread pool with a per-symbol timeout.

This is the only layer that reads Settings.
"""

from __future__ import annotations

import concurrent.futures
import datetime as dt
from typing import Callable, Optional

import structlog

from signalforge.config import Settings, get_settings
from signalforge.data.providers import (
    DataUnavailableError,
    FallbackHistoryProvider,
    HistoricalDataProvider,
    SyntheticHistoryProvider,
    YFinanceHistoryProvider,
)
from signalforge.data.repository import StockRepository
from signalforge.data.sinks import SignalBroadcaster, SignalStore
from signalforge.engines.ensemble_engine import EntropySource
from signalforge.engines.signal_engine import SignalEngine
from signalforge.models import BreakoutStrategy, PatternAnalysis, PriceBar, TechnicalContext
from signalforge.observability import traced
from signalforge.utils.validators import validate_ticker

log = structlog.get_logger(__name__)


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def default_provider(settings: Settings) -> HistoricalDataProvider:
    """yfinance, backed by the seeded synthetic walk when the fallback is enabled."""
    fallback = (
        SyntheticHistoryProvider(seed=settings.synthetic_seed)
        if settings.synthetic_fallback_enabled
        else None
    )
    return FallbackHistoryProvider(
        YFinanceHistoryProvider(max_attempts=settings.provider_max_attempts),
        fallback,
    )


class BreakoutEngine:
    """Scan tracked symbols and publish a BreakoutStrategy for each.

    Usage:
        repo = StockRepository.from_symbols(settings.tracked_symbol_list)
        engine = BreakoutEngine(provider, repo, store=InMemorySignalStore())
        strategies = engine.scan_tracked()
    """

    def __init__(
        self,
        provider: Optional[HistoricalDataProvider],
        repository: StockRepository,
        store: Optional[SignalStore] = None,
        broadcaster: Optional[SignalBroadcaster] = None,
        settings: Optional[Settings] = None,
        signal_engine: Optional[SignalEngine] = None,
        clock: Callable[[], dt.datetime] = _utcnow,
    ):
        self.settings = settings or get_settings()
        self.provider = provider or default_provider(self.settings)
        self.repository = repository
        self.store = store
        self.broadcaster = broadcaster
        self.clock = clock

        if signal_engine is None:
            entropy = (
                EntropySource.live(self.settings.live_jitter_seed)
                if self.settings.live_jitter_enabled
                else EntropySource.disabled()
            )
            signal_engine = SignalEngine(entropy, min_bars=self.settings.min_history_bars)
        self.signal_engine = signal_engine

    # ──────────────────────────────────────────
    # Public API
    # ──────────────────────────────────────────

    def analyze_symbol(self, symbol: str) -> BreakoutStrategy:
        """Fetch, analyze, store and publish one symbol.

        Invalid tickers and provider failures degrade to the neutral
        default strategy; nothing raises. Invalid tickers are not emitted.
        """
        strategy, valid = self._analyze(symbol)
        if valid:
            self._emit(strategy)
        return strategy

    def scan_tracked(self) -> list[BreakoutStrategy]:
        """Analyze every tracked symbol concurrently, in repository order.

        The whole batch shares one analysis_timeout_seconds deadline counted
        from submission. A symbol still pending at the deadline gets the
        default strategy tagged "Analysis timed out"; its worker is abandoned
        and whatever it later computes is discarded. Only the strategies
        returned here are stored and published.
        """
        symbols = self.repository.symbols()
        if not symbols:
            return []

        timeout = self.settings.analysis_timeout_seconds
        results: list[BreakoutStrategy] = []

        pool = concurrent.futures.ThreadPoolExecutor(
            max_workers=min(self.settings.scan_max_workers, len(symbols)),
            thread_name_prefix="signalforge-scan",
        )
        try:
            futures = [(s, pool.submit(self._analyze, s)) for s in symbols]
            done, _ = concurrent.futures.wait([f for _, f in futures], timeout=timeout)

            for symbol, future in futures:
                if future in done:
                    strategy, valid = future.result()
                else:
                    future.cancel()
                    log.warning("analysis_timed_out", symbol=symbol, timeout_s=timeout)
                    strategy = SignalEngine.default_strategy(
                        symbol, self._known_price(symbol), "Analysis timed out", self.clock(),
                    )
                    valid = True
                if valid:
                    self._emit(strategy)
                results.append(strategy)
        finally:
            # Stuck workers are abandoned, not joined
            pool.shutdown(wait=False, cancel_futures=True)

        log.info(
            "scan_completed",
            symbols=len(symbols),
            degraded=sum(1 for s in results if s.reason),
        )
        return results

    @traced("breakout_engine.pattern_analysis")
    def pattern_analysis(self, symbol: str) -> PatternAnalysis:
        """Pattern recognition for one symbol plus its technical context."""
        try:
            ticker = validate_ticker(symbol)
            bars = self.provider.get_history(ticker, self.settings.history_lookback_days)
        except (ValueError, DataUnavailableError) as e:
            log.warning("pattern_analysis_failed", symbol=symbol, error=str(e))
            return PatternAnalysis(symbol=symbol, error="Failed to analyze patterns")

        if not bars:
            return PatternAnalysis(symbol=ticker, error="No historical data")

        current_price = bars[-1].close
        engine = self.signal_engine
        indicators = engine.indicators.compute_indicators(bars)
        levels = engine.levels.analyze(bars, current_price)

        return PatternAnalysis(
            symbol=ticker,
            current_price=current_price,
            last_updated=self.clock(),
            pattern_recognition=engine.patterns.recognize(bars, current_price),
            technical_context=TechnicalContext(
                rsi=indicators.rsi,
                current_trend=indicators.trend,
                volatility=indicators.volatility,
                support_level=levels.current_support,
                resistance_level=levels.current_resistance,
            ),
        )

    # ──────────────────────────────────────────
    # Helpers
    # ──────────────────────────────────────────

    def _analyze(self, symbol: str) -> tuple[BreakoutStrategy, bool]:
        """Compute one strategy without storing or publishing it.

        The flag is False for an invalid ticker, which has nothing to be
        stored under.
        """
        now = self.clock()
        try:
            ticker = validate_ticker(symbol)
        except ValueError as e:
            log.warning("invalid_symbol", symbol=symbol, error=str(e))
            return SignalEngine.default_strategy(symbol, 0.0, "Invalid symbol", now), False

        try:
            bars = self.provider.get_history(ticker, self.settings.history_lookback_days)
        except DataUnavailableError as e:
            log.warning("history_unavailable", symbol=ticker, reason=e.reason)
            strategy = SignalEngine.default_strategy(
                ticker, self._known_price(ticker), "Historical data unavailable", now,
            )
            return strategy, True

        price = self._current_price(ticker, bars)
        return self.signal_engine.calculate_breakout_strategy(ticker, price, bars, as_of=now), True

    def _known_price(self, symbol: str) -> float:
        stock = self.repository.get(symbol)
        return stock.current_price if stock else 0.0

    def _current_price(self, symbol: str, bars: list[PriceBar]) -> float:
        """Repository quote when present, else the last close.

        Falling back to the last close also refreshes the tracked quote.
        """
        price = self._known_price(symbol)
        if price > 0 or not bars:
            return price

        last = bars[-1]
        previous = bars[-2].close if len(bars) > 1 else last.open
        self.repository.update_price(symbol, last.close, previous_close=previous, volume=last.volume)
        return last.close

    def _emit(self, strategy: BreakoutStrategy) -> None:
        if self.store is not None:
            self.store.save(strategy)
        if self.broadcaster is not None:
            self.broadcaster.publish(strategy)
