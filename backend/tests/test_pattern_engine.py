"""
SignalForge — Pattern Engine Test Suite

Candlestick, chart and day-trading detectors plus the recognition summary.
"""

import sys

import numpy as np
import pytest

sys.path.insert(0, "backend")


def _piecewise(anchors: list[tuple[int, float]]) -> list[float]:
    """Linear interpolation through (index, value) anchors."""
    xs, ys = zip(*anchors)
    return [float(v) for v in np.interp(range(xs[-1] + 1), xs, ys)]


# ═══════════════════════════════════════════════
#  CANDLESTICK PATTERNS
# ═══════════════════════════════════════════════

class TestCandlestickPatterns:
    """Single and multi-bar candle formations."""

    def _bar(self, day: int, o: float, h: float, l: float, c: float):
        from datetime import date, timedelta
        from signalforge.models import PriceBar
        return PriceBar(
            date=date(2024, 1, 1) + timedelta(days=day),
            open=o, high=h, low=l, close=c, volume=1_000_000,
        )

    def test_doji(self):
        from signalforge.engines.pattern_engine import PatternEngine
        found = PatternEngine._check_doji(self._bar(0, 100, 102, 98, 100.05))
        assert found is not None
        assert found.type == "doji"
        assert found.confidence == 0.8
        assert found.reliability == 0.65

    def test_not_doji_with_large_body(self):
        from signalforge.engines.pattern_engine import PatternEngine
        assert PatternEngine._check_doji(self._bar(0, 98.5, 102, 98, 101.5)) is None

    def test_hammer_after_decline(self):
        from signalforge.engines.pattern_engine import PatternEngine
        from signalforge.models import Direction
        prev = self._bar(0, 103, 104, 101, 102)
        bar = self._bar(1, 100, 100.6, 97, 100.5)
        found = PatternEngine._check_hammer(bar, prev)
        assert found.type == "hammer"
        assert found.direction == Direction.BULLISH

    def test_hanging_man_after_rise(self):
        from signalforge.engines.pattern_engine import PatternEngine
        from signalforge.models import Direction
        prev = self._bar(0, 98, 99.5, 97.5, 99)
        bar = self._bar(1, 100, 100.6, 97, 100.5)
        found = PatternEngine._check_hammer(bar, prev)
        assert found.type == "hanging_man"
        assert found.direction == Direction.BEARISH

    def test_engulfing(self):
        from signalforge.engines.pattern_engine import PatternEngine
        down = self._bar(0, 101, 101.5, 98.5, 99)
        up = self._bar(1, 98.5, 102, 98, 101.5)
        assert PatternEngine._check_engulfing(up, down).type == "bullish_engulfing"

        up_prev = self._bar(0, 99, 101.5, 98.5, 101)
        down_now = self._bar(1, 101.5, 102, 98, 98.5)
        assert PatternEngine._check_engulfing(down_now, up_prev).type == "bearish_engulfing"

    def test_morning_star(self):
        from signalforge.engines.pattern_engine import PatternEngine
        prev2 = self._bar(0, 105, 105.5, 99.5, 100)
        prev = self._bar(1, 99.5, 100, 98.5, 99)
        bar = self._bar(2, 99.5, 103.5, 99, 103)
        assert PatternEngine._check_star(bar, prev, prev2).type == "morning_star"

    def test_evening_star(self):
        from signalforge.engines.pattern_engine import PatternEngine
        prev2 = self._bar(0, 100, 105.5, 99.5, 105)
        prev = self._bar(1, 105.5, 106.5, 105, 106)
        bar = self._bar(2, 105.5, 106, 100.5, 101)
        assert PatternEngine._check_star(bar, prev, prev2).type == "evening_star"

    def test_detect_requires_three_bars(self):
        from signalforge.engines.pattern_engine import PatternEngine
        bars = [self._bar(0, 100, 102, 98, 100.05), self._bar(1, 100, 102, 98, 100.05)]
        assert PatternEngine().detect_candlestick_patterns(bars) == []

    def test_detect_scans_last_ten_bars(self):
        from signalforge.engines.pattern_engine import PatternEngine
        bars = [self._bar(i, 100, 102, 98, 100.05) for i in range(15)]
        found = PatternEngine().detect_candlestick_patterns(bars)
        # Bars 2..9 of the last ten are each compared against two predecessors
        assert [p.type for p in found] == ["doji"] * 8
        assert found[-1].date == bars[-1].date


# ═══════════════════════════════════════════════
#  CHART PATTERNS
# ═══════════════════════════════════════════════

class TestChartPatterns:
    """Multi-week formations over the trailing window."""

    def _make_bars(self, closes: list[float]):
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
                volume=1_000_000,
            )
            for i, c in enumerate(closes)
        ]

    def _make_envelope(self, highs: list[float], lows: list[float]):
        """Bars with independent high/low trendlines, closing mid-range."""
        from datetime import date, timedelta
        from signalforge.models import PriceBar

        base = date(2024, 1, 1)
        bars = []
        for i, (h, l) in enumerate(zip(highs, lows)):
            mid = (h + l) / 2
            bars.append(PriceBar(
                date=base + timedelta(days=i),
                open=mid, high=h, low=l, close=mid, volume=1_000_000,
            ))
        return bars

    def _types(self, bars):
        from signalforge.engines.pattern_engine import PatternEngine
        return [p.type for p in PatternEngine().detect_chart_patterns(bars, bars[-1].close)]

    def test_requires_twenty_bars(self):
        assert self._types(self._make_bars([100.0 + i for i in range(19)])) == []

    def test_double_top(self):
        closes = _piecewise([(0, 100), (8, 110), (15, 101), (20, 110.5), (29, 97)])
        assert "double_top" in self._types(self._make_bars(closes))

    def test_double_bottom(self):
        closes = [200 - c for c in _piecewise([(0, 100), (8, 110), (15, 101), (20, 110.5), (29, 97)])]
        assert "double_bottom" in self._types(self._make_bars(closes))

    def test_head_and_shoulders(self):
        closes = _piecewise([(0, 100), (8, 110), (14, 100), (20, 120), (26, 100), (32, 110.5), (39, 103)])
        assert "head_and_shoulders" in self._types(self._make_bars(closes))

    def test_inverse_head_and_shoulders(self):
        closes = [200 - c for c in _piecewise(
            [(0, 100), (8, 110), (14, 100), (20, 120), (26, 100), (32, 110.5), (39, 103)]
        )]
        assert "inverse_head_and_shoulders" in self._types(self._make_bars(closes))

    def test_ascending_triangle(self):
        bars = self._make_envelope([110.0] * 25, [90 + i * 0.5 for i in range(25)])
        assert "ascending_triangle" in self._types(bars)

    def test_descending_triangle(self):
        bars = self._make_envelope([110 - i * 0.5 for i in range(25)], [90.0] * 25)
        assert "descending_triangle" in self._types(bars)

    def test_symmetrical_triangle_is_neutral(self):
        from signalforge.engines.pattern_engine import PatternEngine
        from signalforge.models import Direction
        bars = self._make_envelope([110 - i * 0.4 for i in range(25)], [90 + i * 0.4 for i in range(25)])
        found = [p for p in PatternEngine().detect_chart_patterns(bars, 100.0)
                 if p.type == "symmetrical_triangle"]
        assert len(found) == 1
        assert found[0].direction == Direction.NEUTRAL

    def test_rising_wedge(self):
        bars = self._make_envelope([110 + i * 1.0 for i in range(30)], [90 + i * 0.2 for i in range(30)])
        assert "rising_wedge" in self._types(bars)

    def test_falling_wedge(self):
        bars = self._make_envelope([140 - i * 0.2 for i in range(30)], [120 - i * 1.0 for i in range(30)])
        assert "falling_wedge" in self._types(bars)

    def test_proportional_rise_is_not_a_wedge(self):
        closes = [100 * 1.01 ** i for i in range(30)]
        assert "rising_wedge" not in self._types(self._make_bars(closes))

    def test_bull_flag(self):
        from signalforge.engines.pattern_engine import PatternEngine
        pole = [100.0, 101.0, 102.0, 103.0, 104.0, 105.0, 106.0]
        flag = [106.5, 106.8, 106.4, 106.7, 106.6, 106.5, 106.9, 106.6]
        bars = self._make_bars([100.0] * 10 + pole + flag)
        found = [p for p in PatternEngine().detect_chart_patterns(bars, 106.6) if p.type == "bull_flag"]
        assert len(found) == 1
        assert found[0].breakout_target == pytest.approx(106.6 * 1.04)
        assert found[0].stop_loss == pytest.approx(106.6 * 0.98)

    def test_flat_series_has_no_chart_patterns(self):
        assert self._types(self._make_bars([100.0] * 40)) == []


# ═══════════════════════════════════════════════
#  DAY-TRADING PATTERNS
# ═══════════════════════════════════════════════

class TestDayTradingPatterns:
    """Short-horizon setups and the `none` placeholder."""

    def _make_bars(self, closes: list[float]):
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
                volume=1_000_000,
            )
            for i, c in enumerate(closes)
        ]

    def test_flat_series_yields_none_placeholder(self):
        from signalforge.engines.pattern_engine import PatternEngine
        from signalforge.models import Direction
        found = PatternEngine().detect_day_trading_patterns(self._make_bars([100.0] * 30), 100.0)
        assert len(found) == 1
        assert found[0].type == "none"
        assert found[0].direction == Direction.NEUTRAL
        assert found[0].stop_loss == pytest.approx(98.0)

    def test_bull_flag(self):
        from signalforge.engines.pattern_engine import PatternEngine
        from signalforge.models import Direction
        tail = [100.0, 102.0, 104.0, 106.0, 108.0, 108.5, 108.2, 108.6, 108.4, 108.5]
        bars = self._make_bars([100.0] * 10 + tail)
        flags = [p for p in PatternEngine().detect_day_trading_patterns(bars, 108.5)
                 if p.type == "flag" and p.confidence == 0.7]
        assert len(flags) == 1
        assert flags[0].direction == Direction.BULLISH
        assert flags[0].target_price == pytest.approx(108.5 * (1 + 0.085 * 0.5))

    def test_double_bottom_needs_pullback(self):
        from signalforge.engines.pattern_engine import PatternEngine
        closes = [110.0] * 5 + [100.0] + [105.0] * 6 + [100.5] + [108.0] * 12
        found = PatternEngine._day_double(self._make_bars(closes), 108.0)
        assert found is not None
        assert found.type == "double_bottom"
        assert found.stop_loss == pytest.approx(98.0)

    def test_flat_top_is_not_a_double_top(self):
        from signalforge.engines.pattern_engine import PatternEngine
        assert PatternEngine._day_double(self._make_bars([100.0] * 25), 100.0) is None

    def test_head_shoulders(self):
        from signalforge.engines.pattern_engine import PatternEngine
        closes = [100, 101, 105, 101, 100, 102, 110, 102, 100, 101, 105.5, 101, 100, 99, 98, 97]
        found = PatternEngine._day_head_shoulders(self._make_bars(closes), 97.0)
        assert found.type == "head_shoulders"
        assert found.stop_loss == pytest.approx(110 * 1.01)

    def test_attention_flag_confidence_scales_targets(self):
        from signalforge.engines.pattern_engine import PatternEngine
        from signalforge.models import Direction
        closes = [10.0 * 2 ** i for i in range(10)]
        found = PatternEngine._attention_flag(self._make_bars(closes), closes[-1])
        assert found is not None
        assert found.direction == Direction.BULLISH
        assert 0.6 < found.confidence <= 1
        assert found.target_price == pytest.approx(closes[-1] * (1.03 + found.confidence * 0.02))

    def test_attention_weights(self):
        from signalforge.engines.pattern_engine import attention_weights
        weights = attention_weights(np.array([100.0] * 5))
        assert weights.sum() == pytest.approx(1.0)
        assert np.all(np.diff(weights) > 0)
        assert len(attention_weights(np.array([]))) == 0


# ═══════════════════════════════════════════════
#  RECOGNITION SUMMARY
# ═══════════════════════════════════════════════

class TestPatternRecognition:
    """Summary counts, score and suggested action."""

    def test_recognize_empty(self):
        from signalforge.engines.pattern_engine import PatternEngine
        from signalforge.models import PatternAction
        result = PatternEngine().recognize([], 100.0)
        assert result.pattern_score == 0.5
        assert result.recommended_action == PatternAction.HOLD
        assert result.all_patterns == []

    def test_summarize_majority(self):
        from signalforge.engines.pattern_engine import PatternEngine
        from signalforge.models import CandlestickPattern, Direction, LevelStrength
        from datetime import date

        def candle(kind, direction):
            return CandlestickPattern(
                type=kind, confidence=0.8, direction=direction,
                significance=LevelStrength.STRONG, reliability=0.7, date=date(2024, 1, 1),
            )

        summary = PatternEngine.summarize_patterns(
            [candle("hammer", Direction.BULLISH), candle("morning_star", Direction.BULLISH),
             candle("doji", Direction.NEUTRAL)],
            [],
        )
        assert summary.bullish_signals == 2
        assert summary.neutral_signals == 1
        assert summary.overall_sentiment == Direction.BULLISH
        assert summary.confidence == pytest.approx(2 / 3)

    def test_summarize_tie_is_neutral(self):
        from signalforge.engines.pattern_engine import PatternEngine
        from signalforge.models import CandlestickPattern, Direction, LevelStrength
        from datetime import date

        patterns = [
            CandlestickPattern(
                type=kind, confidence=0.8, direction=direction,
                significance=LevelStrength.STRONG, reliability=0.7, date=date(2024, 1, 1),
            )
            for kind, direction in (("hammer", Direction.BULLISH), ("hanging_man", Direction.BEARISH))
        ]
        summary = PatternEngine.summarize_patterns(patterns, [])
        assert summary.overall_sentiment == Direction.NEUTRAL
        assert summary.confidence == 0.0

    def test_recommend_action(self):
        from signalforge.engines.pattern_engine import PatternEngine
        from signalforge.models import Direction, PatternAction, PatternSummary

        def summary(direction, confidence):
            return PatternSummary(overall_sentiment=direction, confidence=confidence)

        assert PatternEngine.recommend_action(summary(Direction.BULLISH, 0.8), 0.7) == PatternAction.BUY
        assert PatternEngine.recommend_action(summary(Direction.BEARISH, 0.8), 0.7) == PatternAction.SELL
        assert PatternEngine.recommend_action(summary(Direction.BULLISH, 0.6), 0.6) == PatternAction.WATCH
        assert PatternEngine.recommend_action(summary(Direction.BEARISH, 0.6), 0.4) == PatternAction.WATCH
        assert PatternEngine.recommend_action(summary(Direction.NEUTRAL, 1.0), 0.9) == PatternAction.HOLD

    def test_recognized_pattern_union_dispatches_on_type(self):
        from pydantic import TypeAdapter
        from signalforge.models import ChartPattern, RecognizedPattern

        parsed = TypeAdapter(RecognizedPattern).validate_python({
            "type": "double_top",
            "confidence": 0.78,
            "direction": "bearish",
            "breakout_target": 92.0,
            "stop_loss": 105.0,
            "pattern_start": "2024-01-05",
            "pattern_end": "2024-01-20",
        })
        assert isinstance(parsed, ChartPattern)

    def test_from_patterns_routes_mixed_list_by_type(self):
        from signalforge.models import CandlestickPattern, ChartPattern, PatternRecognition

        doji = CandlestickPattern(
            type="doji", confidence=0.8, direction="neutral",
            significance="moderate", reliability=0.65, date="2024-01-22",
        )
        result = PatternRecognition.from_patterns(
            [
                {
                    "type": "bull_flag",
                    "confidence": 0.7,
                    "direction": "bullish",
                    "breakout_target": 110.0,
                    "stop_loss": 97.0,
                    "pattern_start": "2024-01-08",
                    "pattern_end": "2024-01-22",
                },
                doji,
            ],
            pattern_score=0.75,
        )

        assert result.candlestick_patterns == [doji]
        assert len(result.chart_patterns) == 1
        assert isinstance(result.chart_patterns[0], ChartPattern)
        assert result.pattern_score == 0.75
        assert [p.type for p in result.all_patterns] == ["doji", "bull_flag"]

    def test_from_patterns_rejects_unknown_type(self):
        from pydantic import ValidationError
        from signalforge.models import PatternRecognition

        with pytest.raises(ValidationError):
            PatternRecognition.from_patterns([{"type": "cup_and_handle", "confidence": 0.5}])
