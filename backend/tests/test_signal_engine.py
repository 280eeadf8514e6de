"""
SignalForge — Signal Fusion Test Suite

End-to-end strategy computation for one series, point scoring and the
neutral fallbacks.
"""

import sys

import pytest

sys.path.insert(0, "backend")


class TestSignalEngine:
    """Test the BreakoutStrategy pipeline."""

    def _make_bars(self, closes: list[float], volume: int | None = None):
        """Helper: create OHLCV bars from close prices."""
        from datetime import date, timedelta
        from signalforge.models import PriceBar

        base = date(2024, 1, 1)
        return [
            PriceBar(
                date=base + timedelta(days=i),
                open=c * 0.99,
                high=c * 1.01,
                low=c * 0.98,
                close=c,
                volume=volume if volume is not None else 1_000_000 + i * 10000,
            )
            for i, c in enumerate(closes)
        ]

    def _indicators(self, **overrides):
        from signalforge.models import BollingerBands, IndicatorSet
        return IndicatorSet(bollinger=BollingerBands(upper=105, middle=100, lower=95), **overrides)

    def test_import(self):
        from signalforge.engines.signal_engine import SignalEngine
        assert SignalEngine() is not None

    # ── Fallbacks ──

    def test_insufficient_history(self):
        from signalforge.engines.signal_engine import SignalEngine
        from signalforge.models import Direction
        bars = self._make_bars([100, 101, 102, 103, 104])
        strategy = SignalEngine().calculate_breakout_strategy("AAPL", 104.0, bars)

        assert strategy.signal == Direction.NEUTRAL
        assert strategy.reason == "Insufficient historical data"
        assert strategy.rsi == 50.0
        assert strategy.confidence == pytest.approx(0.1)
        assert strategy.support_level == pytest.approx(104.0 * 0.95)
        assert strategy.resistance_level == pytest.approx(104.0 * 1.05)
        assert "No trading data available" in strategy.recommendation

    def test_invalid_price(self):
        from signalforge.engines.signal_engine import SignalEngine
        bars = self._make_bars([100.0] * 30)
        strategy = SignalEngine().calculate_breakout_strategy("AAPL", 0.0, bars)
        assert strategy.reason == "Invalid current price"
        assert strategy.support_level == 0.0

    def test_unexpected_error_degrades(self, monkeypatch):
        from signalforge.engines.signal_engine import SignalEngine
        engine = SignalEngine()

        def boom(*args, **kwargs):
            raise RuntimeError("detector exploded")

        monkeypatch.setattr(engine.patterns, "recognize", boom)
        strategy = engine.calculate_breakout_strategy("AAPL", 100.0, self._make_bars([100.0] * 30))
        assert strategy.reason == "Error in analysis"

    def test_default_strategy_timestamp(self):
        from datetime import datetime, timezone
        from signalforge.engines.signal_engine import SignalEngine
        now = datetime(2024, 6, 1, 15, 30, tzinfo=timezone.utc)
        strategy = SignalEngine.default_strategy("MSFT", 50.0, "Analysis timed out", now)
        assert strategy.last_calculated == now
        assert strategy.recommendation == "No trading data available: Analysis timed out"

    # ── Full pipeline ──

    def test_rising_series_is_bullish(self):
        from signalforge.engines.signal_engine import SignalEngine
        from signalforge.models import Direction, Trend
        closes = [100 * 1.5 ** (i / 251) for i in range(252)]
        bars = self._make_bars(closes)
        strategy = SignalEngine().calculate_breakout_strategy("NVDA", closes[-1], bars)

        assert strategy.reason is None
        assert strategy.current_trend == Trend.UPWARD
        assert strategy.signal == Direction.BULLISH
        assert strategy.probability > 0.5
        assert strategy.recommendation.startswith("CONSIDER BUYING NVDA")
        assert strategy.support_level < closes[-1] < strategy.resistance_level

    def test_linear_rise_is_never_bearish(self):
        from signalforge.engines.signal_engine import SignalEngine
        from signalforge.models import Direction, Trend
        closes = [100 + 50 * i / 251 for i in range(252)]
        bars = self._make_bars(closes, volume=1_000_000)
        engine = SignalEngine()
        strategy = engine.calculate_breakout_strategy("SPY", closes[-1], bars)

        assert strategy.reason is None
        assert strategy.current_trend == Trend.UPWARD
        assert strategy.rsi > 50
        assert strategy.signal != Direction.BEARISH
        directions = [p.direction for p in strategy.day_trading_patterns]
        assert directions.count(Direction.BEARISH) <= directions.count(Direction.BULLISH)

        # No losses pins RSI at 100 (overbought) against the upward trend
        decision = engine.determine_signal(
            strategy.technical_indicators, strategy.model_predictions, strategy.day_trading_patterns,
        )
        assert "RSI overbought" in decision.signals
        assert "Upward trend" in decision.signals
        assert decision.bearish_score <= decision.bullish_score

    def test_flat_series_is_neutral(self):
        from signalforge.engines.signal_engine import SignalEngine
        from signalforge.models import BandPosition, Direction
        bars = self._make_bars([100.0] * 30, volume=1_000_000)
        strategy = SignalEngine().calculate_breakout_strategy("KO", 100.0, bars)

        assert strategy.signal == Direction.NEUTRAL
        assert strategy.probability == 0.5
        assert strategy.bollinger_position == BandPosition.MIDDLE
        assert [p.type for p in strategy.day_trading_patterns] == ["none"]
        assert strategy.recommendation.startswith("HOLD/WATCH KO")

    def test_value_ranges(self):
        import math
        from signalforge.engines.signal_engine import SignalEngine
        closes = [100 + 8 * math.sin(i * 0.25) + i * 0.1 for i in range(120)]
        strategy = SignalEngine().calculate_breakout_strategy("AMD", closes[-1], self._make_bars(closes))

        assert 0 <= strategy.probability <= 1
        assert 0 <= strategy.confidence <= 100
        assert 0 <= strategy.rsi <= 100
        assert strategy.volatility >= 0
        assert strategy.support_level < closes[-1] < strategy.resistance_level
        assert len(strategy.model_scores) == 9

    def test_same_input_same_output(self):
        import math
        from signalforge.engines.signal_engine import SignalEngine
        closes = [100 + 5 * math.sin(i * 0.2) for i in range(90)]
        bars = self._make_bars(closes)
        first = SignalEngine().calculate_breakout_strategy("AAPL", closes[-1], bars)
        second = SignalEngine().calculate_breakout_strategy("AAPL", closes[-1], bars)
        assert first.to_dict() == second.to_dict()
        assert first.last_calculated.date() == bars[-1].date

    def test_input_not_mutated(self):
        from signalforge.engines.signal_engine import SignalEngine
        bars = self._make_bars([100 + i for i in range(40)])
        snapshot = list(bars)
        SignalEngine().calculate_breakout_strategy("AAPL", 139.0, bars)
        assert bars == snapshot

    def test_live_jitter_still_valid(self):
        import math
        from signalforge.engines.ensemble_engine import EntropySource
        from signalforge.engines.signal_engine import SignalEngine
        closes = [100 + 5 * math.sin(i * 0.2) for i in range(90)]
        engine = SignalEngine(EntropySource.live(seed=11))
        strategy = engine.calculate_breakout_strategy("AAPL", closes[-1], self._make_bars(closes))
        assert strategy.reason is None
        assert all(-1 <= s.value <= 1 for s in strategy.model_scores)

    # ── Point scoring ──

    def test_determine_signal_bullish(self):
        from signalforge.engines.signal_engine import SignalEngine
        from signalforge.models import Direction, MACDValues, ModelPredictions, Trend
        indicators = self._indicators(rsi=25, trend=Trend.UPWARD, macd=MACDValues(macd=1.0, signal=0.5))
        decision = SignalEngine().determine_signal(indicators, ModelPredictions(), [])

        assert decision.bullish_score == 5
        assert decision.bearish_score == 0
        assert decision.direction == Direction.BULLISH
        assert decision.probability == pytest.approx(0.9)
        assert decision.confidence == 50.0
        assert decision.signals == ["RSI oversold", "Upward trend", "MACD bullish"]

    def test_determine_signal_needs_three_points(self):
        from signalforge.engines.signal_engine import SignalEngine
        from signalforge.models import Direction
        decision = SignalEngine().determine_signal(self._indicators(rsi=80), _predictions(), [])
        assert decision.bearish_score == 2
        assert decision.direction == Direction.NEUTRAL
        assert decision.probability == 0.5

    def test_volume_reinforces_leader(self):
        from signalforge.engines.signal_engine import SignalEngine
        from signalforge.models import Direction, MACDValues, Trend
        indicators = self._indicators(
            trend=Trend.DOWNWARD, macd=MACDValues(macd=-1.0, signal=0.0),
            volume=2_000_000, avg_volume=1_000_000,
        )
        decision = SignalEngine().determine_signal(indicators, _predictions(), [])
        assert decision.bearish_score == 4
        assert "High volume supports bearish trend" in decision.signals
        assert decision.direction == Direction.BEARISH

    def test_ensemble_threshold_is_symmetric(self):
        from signalforge.engines.signal_engine import SignalEngine
        bullish = SignalEngine().determine_signal(self._indicators(), _predictions(0.7), [])
        bearish = SignalEngine().determine_signal(self._indicators(), _predictions(-0.7), [])
        quiet = SignalEngine().determine_signal(self._indicators(), _predictions(0.5), [])
        assert bullish.bullish_score == 2
        assert bearish.bearish_score == 2
        assert quiet.bullish_score == quiet.bearish_score == 0

    def test_day_patterns_add_majority_count(self):
        from signalforge.engines.signal_engine import SignalEngine
        from signalforge.models import DayTradingPattern, Direction

        def setup(direction):
            return DayTradingPattern(
                type="flag", confidence=0.7, direction=direction,
                entry_point=100, target_price=104, stop_loss=98,
            )

        patterns = [setup(Direction.BULLISH), setup(Direction.BULLISH), setup(Direction.BEARISH)]
        decision = SignalEngine().determine_signal(self._indicators(), _predictions(), patterns)
        assert decision.bullish_score == 2
        assert "2 bullish patterns detected" in decision.signals

    def test_generate_recommendation(self):
        from signalforge.engines.signal_engine import SignalEngine
        from signalforge.models import Direction
        text = SignalEngine.generate_recommendation(Direction.BEARISH, ["RSI overbought"], "TSLA")
        assert text == (
            "CONSIDER SELLING/SHORTING TSLA. Bearish indicators: RSI overbought. "
            "Look for exit points or short positions."
        )
        neutral = SignalEngine.generate_recommendation(Direction.NEUTRAL, [], "TSLA")
        assert "Mixed signals" in neutral


def _predictions(value: float = 0.0):
    """Predictions whose five headline values all equal `value`."""
    from signalforge.models import ModelPredictions
    return ModelPredictions(
        feature_weighted=value, band_reversion=value, ensemble=value,
        momentum=value, mean_reversion=value,
    )
