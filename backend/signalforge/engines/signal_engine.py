"""
SignalForge — Signal Fusion Engine

Turns one price series into one BreakoutStrategy: indicators, patterns,
support/resistance and heuristic ensemble, fused by deterministic point
scoring into a direction, probability, confidence and recommendation.

Never raises for missing or insufficient data: every failure path degrades
to a neutral default strategy tagged with a human-readable reason.
"""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from typing import Optional

import structlog

from signalforge.engines.ensemble_engine import EnsembleEngine, EntropySource
from signalforge.engines.indicator_engine import IndicatorEngine
from signalforge.engines.levels_engine import SupportResistanceEngine
from signalforge.engines.pattern_engine import PatternEngine
from signalforge.models import (
    BreakoutStrategy,
    DayTradingPattern,
    Direction,
    IndicatorSet,
    ModelPredictions,
    PriceBar,
    Trend,
)
from signalforge.observability import trace_span

log = structlog.get_logger(__name__)

MIN_HISTORY_BARS = 20
ENSEMBLE_THRESHOLD = 0.6


@dataclass
class SignalDecision:
    """Outcome of point scoring before it is folded into a strategy."""
    direction: Direction = Direction.NEUTRAL
    probability: float = 0.5
    confidence: float = 0.0
    bullish_score: int = 0
    bearish_score: int = 0
    signals: list[str] = field(default_factory=list)


class SignalEngine:
    """Pure one-shot strategy computation for a single series.

    Usage:
        engine = SignalEngine()
        strategy = engine.calculate_breakout_strategy("AAPL", 187.2, bars)
    """

    def __init__(
        self,
        entropy: Optional[EntropySource] = None,
        min_bars: int = MIN_HISTORY_BARS,
    ):
        self.indicators = IndicatorEngine()
        self.patterns = PatternEngine()
        self.levels = SupportResistanceEngine()
        self.ensemble = EnsembleEngine(entropy)
        self.min_bars = min_bars

    # ──────────────────────────────────────────
    # Public API
    # ──────────────────────────────────────────

    def calculate_breakout_strategy(
        self,
        symbol: str,
        current_price: float,
        bars: list[PriceBar],
        as_of: Optional[dt.datetime] = None,
    ) -> BreakoutStrategy:
        """Compute the composite strategy for one symbol.

        Args:
            symbol: Label carried into the output and recommendation text.
            current_price: Latest traded price.
            bars: Daily bars, oldest first. Not mutated.
            as_of: Calculation timestamp. Defaults to the last bar's date so
                identical input yields identical output.
        """
        stamp = as_of or self._series_timestamp(bars)

        if current_price <= 0:
            return self.default_strategy(symbol, current_price, "Invalid current price", stamp)
        if len(bars) < self.min_bars:
            return self.default_strategy(symbol, current_price, "Insufficient historical data", stamp)

        try:
            return self._compute(symbol, current_price, bars, stamp)
        except Exception as e:
            log.error("breakout_strategy_failed", symbol=symbol, bars=len(bars), error=str(e))
            return self.default_strategy(symbol, current_price, "Error in analysis", stamp)

    def determine_signal(
        self,
        indicators: IndicatorSet,
        predictions: ModelPredictions,
        day_patterns: list[DayTradingPattern],
    ) -> SignalDecision:
        """Deterministic point scoring across every evidence source."""
        bull = 0
        bear = 0
        signals: list[str] = []

        if indicators.rsi < 30:
            bull += 2
            signals.append("RSI oversold")
        elif indicators.rsi > 70:
            bear += 2
            signals.append("RSI overbought")

        if indicators.trend == Trend.UPWARD:
            bull += 2
            signals.append("Upward trend")
        elif indicators.trend == Trend.DOWNWARD:
            bear += 2
            signals.append("Downward trend")

        if indicators.macd.macd > indicators.macd.signal:
            bull += 1
            signals.append("MACD bullish")
        elif indicators.macd.macd < indicators.macd.signal:
            bear += 1
            signals.append("MACD bearish")

        # Heavy volume reinforces whichever side already leads
        if indicators.avg_volume > 0 and indicators.volume > indicators.avg_volume * 1.5:
            if bull > bear:
                bull += 1
                signals.append("High volume supports bullish trend")
            elif bear > bull:
                bear += 1
                signals.append("High volume supports bearish trend")

        average = predictions.average()
        if average > ENSEMBLE_THRESHOLD:
            bull += 2
            signals.append("Ensemble heuristics lean bullish")
        elif average < -ENSEMBLE_THRESHOLD:
            bear += 2
            signals.append("Ensemble heuristics lean bearish")

        bullish_patterns = sum(1 for p in day_patterns if p.direction == Direction.BULLISH)
        bearish_patterns = sum(1 for p in day_patterns if p.direction == Direction.BEARISH)
        if bullish_patterns > bearish_patterns:
            bull += bullish_patterns
            signals.append(f"{bullish_patterns} bullish patterns detected")
        elif bearish_patterns > bullish_patterns:
            bear += bearish_patterns
            signals.append(f"{bearish_patterns} bearish patterns detected")

        decision = SignalDecision(
            confidence=float(min((bull + bear) * 10, 100)),
            bullish_score=bull,
            bearish_score=bear,
            signals=signals,
        )
        if bull > bear and bull >= 3:
            decision.direction = Direction.BULLISH
            decision.probability = min(0.5 + (bull - bear) * 0.1, 0.9)
        elif bear > bull and bear >= 3:
            decision.direction = Direction.BEARISH
            decision.probability = min(0.5 + (bear - bull) * 0.1, 0.9)
        return decision

    @staticmethod
    def generate_recommendation(direction: Direction, signals: list[str], symbol: str) -> str:
        signal_text = ", ".join(signals) if signals else "Mixed signals"

        if direction == Direction.BULLISH:
            return (
                f"CONSIDER BUYING {symbol}. Bullish indicators: {signal_text}. "
                f"Monitor for entry opportunities."
            )
        if direction == Direction.BEARISH:
            return (
                f"CONSIDER SELLING/SHORTING {symbol}. Bearish indicators: {signal_text}. "
                f"Look for exit points or short positions."
            )
        return f"HOLD/WATCH {symbol}. Neutral signals: {signal_text}. Wait for clearer direction."

    @staticmethod
    def default_strategy(
        symbol: str,
        current_price: float,
        reason: str,
        as_of: Optional[dt.datetime] = None,
    ) -> BreakoutStrategy:
        """Neutral low-confidence strategy used whenever analysis cannot run."""
        price = max(current_price, 0.0)
        return BreakoutStrategy(
            symbol=symbol,
            signal=Direction.NEUTRAL,
            probability=0.5,
            confidence=0.1,
            support_level=price * 0.95,
            resistance_level=price * 1.05,
            volatility=0.2,
            rsi=50.0,
            recommendation=f"No trading data available: {reason}",
            reason=reason,
            last_calculated=as_of,
        )

    # ──────────────────────────────────────────
    # Pipeline
    # ──────────────────────────────────────────

    def _compute(
        self,
        symbol: str,
        current_price: float,
        bars: list[PriceBar],
        stamp: Optional[dt.datetime],
    ) -> BreakoutStrategy:
        with trace_span("signal_engine.indicators", symbol=symbol):
            indicators = self.indicators.compute_indicators(bars)
            volume = self.indicators.analyze_volume(bars)

        with trace_span("signal_engine.patterns", symbol=symbol):
            day_patterns = self.patterns.detect_day_trading_patterns(bars, current_price)
            recognition = self.patterns.recognize(bars, current_price)

        with trace_span("signal_engine.levels", symbol=symbol):
            levels = self.levels.analyze(bars, current_price)

        with trace_span("signal_engine.ensemble", symbol=symbol):
            scores, ensemble, predictions = self.ensemble.evaluate(bars, indicators)

        decision = self.determine_signal(indicators, predictions, day_patterns)
        log.info(
            "breakout_strategy_computed",
            symbol=symbol,
            signal=decision.direction.value,
            bullish_score=decision.bullish_score,
            bearish_score=decision.bearish_score,
        )

        return BreakoutStrategy(
            symbol=symbol,
            signal=decision.direction,
            probability=decision.probability,
            confidence=decision.confidence,
            support_level=levels.current_support,
            resistance_level=levels.current_resistance,
            current_trend=indicators.trend,
            volatility=indicators.volatility,
            rsi=indicators.rsi,
            bollinger_position=indicators.bollinger_position,
            recommendation=self.generate_recommendation(decision.direction, decision.signals, symbol),
            last_calculated=stamp,
            day_trading_patterns=day_patterns,
            pattern_recognition=recognition,
            technical_indicators=indicators,
            volume_analysis=volume,
            support_resistance=levels,
            model_predictions=predictions,
            model_scores=scores,
            ensemble=ensemble,
        )

    @staticmethod
    def _series_timestamp(bars: list[PriceBar]) -> Optional[dt.datetime]:
        if not bars:
            return None
        return dt.datetime.combine(bars[-1].date, dt.time.min, tzinfo=dt.timezone.utc)
