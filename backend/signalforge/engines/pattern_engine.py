"""
SignalForge — Pattern Detection Engine

Rule-based detection of candlestick, chart and day-trading patterns from
daily OHLCV bars. Every detector is independent and emits a fixed confidence
constant with price targets derived as fixed offsets from the current price.

Candlestick Patterns (last 10 bars):
  Doji, Hammer, Hanging Man, Bullish/Bearish Engulfing,
  Morning/Evening Star

Chart Patterns (≥20 bars):
  Double Top/Bottom, Head & Shoulders (& Inverse),
  Ascending/Descending/Symmetrical Triangle, Rising/Falling Wedge,
  Bull/Bear Flag

Day-Trading Patterns:
  Flag, Pennant, Double Top/Bottom, Head & Shoulders (& Inverse),
  Triangle, attention-weighted Flag
"""

from __future__ import annotations

from typing import Optional

import numpy as np

from signalforge.models import (
    CandlestickPattern,
    ChartPattern,
    DayTradingPattern,
    Direction,
    LevelStrength,
    PatternAction,
    PatternRecognition,
    PatternSummary,
    PriceBar,
)


# ──────────────────────────────────────────────
# Attention weighting
# ──────────────────────────────────────────────

def attention_weights(closes: np.ndarray) -> np.ndarray:
    """Recency × (1 + |daily change|) weights, normalized to sum to 1."""
    n = len(closes)
    if n == 0:
        return np.array([], dtype=float)

    changes = np.zeros(n, dtype=float)
    changes[1:] = np.abs(np.diff(closes) / closes[:-1])
    recency = np.arange(1, n + 1, dtype=float) / n
    weights = recency * (1 + changes)
    return weights / weights.sum()


def attention_weighted_change(closes: np.ndarray, weights: np.ndarray) -> float:
    """Σ daily change × attention weight of the later bar."""
    if len(closes) < 2:
        return 0.0
    changes = np.diff(closes) / closes[:-1]
    return float(np.dot(changes, weights[1:]))


class PatternEngine:
    """Rule-based candlestick, chart and day-trading pattern detector.

    Usage:
        engine = PatternEngine()
        recognition = engine.recognize(bars, current_price)
        setups = engine.detect_day_trading_patterns(bars, current_price)
    """

    # ──────────────────────────────────────────
    # Public API
    # ──────────────────────────────────────────

    def recognize(self, bars: list[PriceBar], current_price: float) -> PatternRecognition:
        """Candlestick + chart scan with summary, score and suggested action."""
        candlesticks = self.detect_candlestick_patterns(bars)
        charts = self.detect_chart_patterns(bars, current_price)
        summary = self.summarize_patterns(candlesticks, charts)

        confidences = [p.confidence for p in (*candlesticks, *charts)]
        score = sum(confidences) / len(confidences) if confidences else 0.5

        return PatternRecognition.from_patterns(
            [*candlesticks, *charts],
            pattern_summary=summary,
            pattern_score=score,
            recommended_action=self.recommend_action(summary, score),
        )

    def detect_candlestick_patterns(self, bars: list[PriceBar]) -> list[CandlestickPattern]:
        """Scan the last 10 bars, comparing each to its two predecessors."""
        if len(bars) < 3:
            return []

        recent = bars[-10:]
        patterns: list[CandlestickPattern] = []

        for i in range(2, len(recent)):
            current, prev, prev2 = recent[i], recent[i - 1], recent[i - 2]

            for found in (
                self._check_doji(current),
                self._check_hammer(current, prev),
                self._check_engulfing(current, prev),
                self._check_star(current, prev, prev2),
            ):
                if found is not None:
                    patterns.append(found)

        return patterns

    def detect_chart_patterns(self, bars: list[PriceBar], current_price: float) -> list[ChartPattern]:
        """Multi-week formations; empty below 20 bars."""
        if len(bars) < 20:
            return []

        patterns: list[ChartPattern] = []
        for detector in (
            self._check_double,
            self._check_head_and_shoulders,
            self._check_triangle,
            self._check_wedge,
            self._check_flag,
        ):
            found = detector(bars, current_price)
            if found is not None:
                patterns.append(found)
        return patterns

    def detect_day_trading_patterns(
        self,
        bars: list[PriceBar],
        current_price: float,
    ) -> list[DayTradingPattern]:
        """Short-horizon setups; a single `none` placeholder if nothing fires."""
        patterns: list[DayTradingPattern] = []
        for detector in (
            self._attention_flag,
            self._day_flag,
            self._day_pennant,
            self._day_double,
            self._day_head_shoulders,
            self._day_triangle,
        ):
            found = detector(bars, current_price)
            if found is not None:
                patterns.append(found)

        if not patterns:
            patterns.append(DayTradingPattern(
                type="none",
                confidence=0.0,
                direction=Direction.NEUTRAL,
                entry_point=current_price,
                target_price=current_price,
                stop_loss=current_price * 0.98,
                description="No clear day trading patterns detected",
            ))
        return patterns

    @staticmethod
    def summarize_patterns(
        candlesticks: list[CandlestickPattern],
        charts: list[ChartPattern],
    ) -> PatternSummary:
        """Count directions; the majority must beat both other counts."""
        directions = [p.direction for p in (*candlesticks, *charts)]
        bullish = directions.count(Direction.BULLISH)
        bearish = directions.count(Direction.BEARISH)
        neutral = directions.count(Direction.NEUTRAL)
        total = bullish + bearish + neutral

        sentiment = Direction.NEUTRAL
        confidence = 0.0
        if total > 0:
            if bullish > bearish and bullish > neutral:
                sentiment, confidence = Direction.BULLISH, bullish / total
            elif bearish > bullish and bearish > neutral:
                sentiment, confidence = Direction.BEARISH, bearish / total
            else:
                confidence = neutral / total

        return PatternSummary(
            bullish_signals=bullish,
            bearish_signals=bearish,
            neutral_signals=neutral,
            overall_sentiment=sentiment,
            confidence=confidence,
        )

    @staticmethod
    def recommend_action(summary: PatternSummary, pattern_score: float) -> PatternAction:
        sentiment, confidence = summary.overall_sentiment, summary.confidence

        if confidence > 0.7 and pattern_score > 0.65:
            if sentiment == Direction.BULLISH:
                return PatternAction.BUY
            if sentiment == Direction.BEARISH:
                return PatternAction.SELL

        if confidence > 0.5:
            if sentiment == Direction.BULLISH and pattern_score > 0.55:
                return PatternAction.WATCH
            if sentiment == Direction.BEARISH and pattern_score < 0.45:
                return PatternAction.WATCH

        return PatternAction.HOLD

    # ──────────────────────────────────────────
    # Candlestick Patterns
    # ──────────────────────────────────────────

    @staticmethod
    def _check_doji(bar: PriceBar) -> Optional[CandlestickPattern]:
        body = abs(bar.close - bar.open)
        rng = bar.high - bar.low
        if rng <= 0 or body / rng >= 0.1:
            return None

        return CandlestickPattern(
            type="doji", confidence=0.8, direction=Direction.NEUTRAL,
            significance=LevelStrength.MODERATE, reliability=0.65, date=bar.date,
            description="Doji pattern indicates market indecision",
        )

    @staticmethod
    def _check_hammer(bar: PriceBar, prev: PriceBar) -> Optional[CandlestickPattern]:
        body = abs(bar.close - bar.open)
        lower_shadow = min(bar.open, bar.close) - bar.low
        upper_shadow = bar.high - max(bar.open, bar.close)

        if not (lower_shadow > body * 2 and upper_shadow < body * 0.5):
            return None

        # Prior close above: selling into the bar, so a hammer
        if prev.close > bar.close:
            return CandlestickPattern(
                type="hammer", confidence=0.75, direction=Direction.BULLISH,
                significance=LevelStrength.STRONG, reliability=0.72, date=bar.date,
                description="Hammer pattern suggests potential reversal from downtrend",
            )
        if prev.close < bar.close:
            return CandlestickPattern(
                type="hanging_man", confidence=0.75, direction=Direction.BEARISH,
                significance=LevelStrength.STRONG, reliability=0.68, date=bar.date,
                description="Hanging man pattern suggests potential reversal from uptrend",
            )
        return None

    @staticmethod
    def _check_engulfing(bar: PriceBar, prev: PriceBar) -> Optional[CandlestickPattern]:
        bar_up = bar.close > bar.open
        prev_up = prev.close > prev.open

        if not prev_up and bar_up and bar.open < prev.close and bar.close > prev.open:
            return CandlestickPattern(
                type="bullish_engulfing", confidence=0.85, direction=Direction.BULLISH,
                significance=LevelStrength.STRONG, reliability=0.78, date=bar.date,
                description="Bullish engulfing pattern indicates strong buying pressure",
            )
        if prev_up and not bar_up and bar.open > prev.close and bar.close < prev.open:
            return CandlestickPattern(
                type="bearish_engulfing", confidence=0.85, direction=Direction.BEARISH,
                significance=LevelStrength.STRONG, reliability=0.78, date=bar.date,
                description="Bearish engulfing pattern indicates strong selling pressure",
            )
        return None

    @staticmethod
    def _check_star(bar: PriceBar, prev: PriceBar, prev2: PriceBar) -> Optional[CandlestickPattern]:
        bar_up = bar.close > bar.open
        prev_up = prev.close > prev.open
        prev2_up = prev2.close > prev2.open

        prev_body = abs(prev.close - prev.open)
        prev2_body = abs(prev2.close - prev2.open)
        first_mid = (prev2.open + prev2.close) / 2
        small_middle = prev_body < prev2_body * 0.5

        if not prev2_up and not prev_up and bar_up and small_middle and bar.close > first_mid:
            return CandlestickPattern(
                type="morning_star", confidence=0.82, direction=Direction.BULLISH,
                significance=LevelStrength.STRONG, reliability=0.75, date=bar.date,
                description="Morning star pattern indicates potential bullish reversal",
            )
        if prev2_up and prev_up and not bar_up and small_middle and bar.close < first_mid:
            return CandlestickPattern(
                type="evening_star", confidence=0.82, direction=Direction.BEARISH,
                significance=LevelStrength.STRONG, reliability=0.75, date=bar.date,
                description="Evening star pattern indicates potential bearish reversal",
            )
        return None

    # ──────────────────────────────────────────
    # Chart Patterns
    # ──────────────────────────────────────────

    def _check_double(self, bars: list[PriceBar], current_price: float) -> Optional[ChartPattern]:
        """Two strict local extrema within 3% of each other, ≥5 bars apart."""
        recent = bars[-30:]
        highs = np.array([b.high for b in recent])
        lows = np.array([b.low for b in recent])

        peaks = self._local_extrema(highs, 3, mode="max")
        if len(peaks) >= 2:
            p1, p2 = peaks[-2:]
            if p2 - p1 >= 5 and abs(highs[p1] - highs[p2]) / highs[p1] < 0.03:
                return ChartPattern(
                    type="double_top", confidence=0.78, direction=Direction.BEARISH,
                    breakout_target=current_price * 0.92, stop_loss=current_price * 1.05,
                    pattern_start=recent[p1].date, pattern_end=recent[p2].date,
                    volume_confirmation=self._volume_confirmation(recent, [p1, p2]),
                    description="Double top pattern suggests bearish reversal",
                )

        troughs = self._local_extrema(lows, 3, mode="min")
        if len(troughs) >= 2:
            t1, t2 = troughs[-2:]
            if t2 - t1 >= 5 and abs(lows[t1] - lows[t2]) / lows[t1] < 0.03:
                return ChartPattern(
                    type="double_bottom", confidence=0.78, direction=Direction.BULLISH,
                    breakout_target=current_price * 1.08, stop_loss=current_price * 0.95,
                    pattern_start=recent[t1].date, pattern_end=recent[t2].date,
                    volume_confirmation=self._volume_confirmation(recent, [t1, t2]),
                    description="Double bottom pattern suggests bullish reversal",
                )
        return None

    def _check_head_and_shoulders(
        self,
        bars: list[PriceBar],
        current_price: float,
    ) -> Optional[ChartPattern]:
        """Last three strict extrema (window 5): middle beyond both shoulders,
        shoulders within 5% of each other."""
        recent = bars[-40:]
        highs = np.array([b.high for b in recent])
        lows = np.array([b.low for b in recent])

        peaks = self._local_extrema(highs, 5, mode="max")
        if len(peaks) >= 3:
            left, head, right = peaks[-3:]
            if (
                highs[head] > highs[left]
                and highs[head] > highs[right]
                and abs(highs[left] - highs[right]) / highs[left] < 0.05
            ):
                return ChartPattern(
                    type="head_and_shoulders", confidence=0.82, direction=Direction.BEARISH,
                    breakout_target=current_price * 0.88, stop_loss=current_price * 1.08,
                    pattern_start=recent[left].date, pattern_end=recent[right].date,
                    volume_confirmation=self._volume_confirmation(recent, [left, head, right]),
                    description="Head and shoulders pattern indicates bearish reversal",
                )

        troughs = self._local_extrema(lows, 5, mode="min")
        if len(troughs) >= 3:
            left, head, right = troughs[-3:]
            if (
                lows[head] < lows[left]
                and lows[head] < lows[right]
                and abs(lows[left] - lows[right]) / lows[left] < 0.05
            ):
                return ChartPattern(
                    type="inverse_head_and_shoulders", confidence=0.82, direction=Direction.BULLISH,
                    breakout_target=current_price * 1.12, stop_loss=current_price * 0.92,
                    pattern_start=recent[left].date, pattern_end=recent[right].date,
                    volume_confirmation=self._volume_confirmation(recent, [left, head, right]),
                    description="Inverse head and shoulders pattern indicates bullish reversal",
                )
        return None

    def _check_triangle(self, bars: list[PriceBar], current_price: float) -> Optional[ChartPattern]:
        """Regression slopes of the last 25 highs and lows, as a fraction of
        price per bar."""
        recent = bars[-25:]
        high_slope = self._relative_slope([b.high for b in recent])
        low_slope = self._relative_slope([b.low for b in recent])
        start, end = recent[0].date, recent[-1].date
        confirmed = self._decreasing_volume(recent)

        if abs(high_slope) < 0.001 and low_slope > 0.001:
            return ChartPattern(
                type="ascending_triangle", confidence=0.75, direction=Direction.BULLISH,
                breakout_target=current_price * 1.06, stop_loss=current_price * 0.96,
                pattern_start=start, pattern_end=end, volume_confirmation=confirmed,
                description="Ascending triangle suggests bullish breakout",
            )
        if high_slope < -0.001 and abs(low_slope) < 0.001:
            return ChartPattern(
                type="descending_triangle", confidence=0.75, direction=Direction.BEARISH,
                breakout_target=current_price * 0.94, stop_loss=current_price * 1.04,
                pattern_start=start, pattern_end=end, volume_confirmation=confirmed,
                description="Descending triangle suggests bearish breakout",
            )
        if high_slope < -0.001 and low_slope > 0.001:
            return ChartPattern(
                type="symmetrical_triangle", confidence=0.65, direction=Direction.NEUTRAL,
                breakout_target=current_price * 1.05, stop_loss=current_price * 0.95,
                pattern_start=start, pattern_end=end, volume_confirmation=confirmed,
                description="Symmetrical triangle, breakout direction unresolved",
            )
        return None

    def _check_wedge(self, bars: list[PriceBar], current_price: float) -> Optional[ChartPattern]:
        """Both trendlines sloping the same way at materially different rates."""
        recent = bars[-30:]
        high_slope = self._relative_slope([b.high for b in recent])
        low_slope = self._relative_slope([b.low for b in recent])
        start, end = recent[0].date, recent[-1].date
        confirmed = self._decreasing_volume(recent)

        if high_slope > 0 and low_slope > 0 and high_slope - low_slope >= 0.0005:
            return ChartPattern(
                type="rising_wedge", confidence=0.72, direction=Direction.BEARISH,
                breakout_target=current_price * 0.95, stop_loss=current_price * 1.03,
                pattern_start=start, pattern_end=end, volume_confirmation=confirmed,
                description="Rising wedge suggests bearish reversal",
            )
        if high_slope < 0 and low_slope < 0 and high_slope - low_slope >= 0.0005:
            return ChartPattern(
                type="falling_wedge", confidence=0.72, direction=Direction.BULLISH,
                breakout_target=current_price * 1.05, stop_loss=current_price * 0.97,
                pattern_start=start, pattern_end=end, volume_confirmation=confirmed,
                description="Falling wedge suggests bullish reversal",
            )
        return None

    def _check_flag(self, bars: list[PriceBar], current_price: float) -> Optional[ChartPattern]:
        """A >3% move in the first half of the last 15 mid-prices, then a
        <2% consolidation in the second half."""
        recent = bars[-15:]
        mids = [(b.high + b.low) / 2 for b in recent]
        split = len(mids) // 2
        first, second = mids[:split], mids[split:]
        if len(first) < 2 or not second:
            return None

        move = (first[-1] - first[0]) / first[0]
        consolidation = (max(second) - min(second)) / min(second)
        if abs(move) <= 0.03 or consolidation >= 0.02:
            return None

        bullish = move > 0
        return ChartPattern(
            type="bull_flag" if bullish else "bear_flag",
            confidence=0.76,
            direction=Direction.BULLISH if bullish else Direction.BEARISH,
            breakout_target=current_price * (1.04 if bullish else 0.96),
            stop_loss=current_price * (0.98 if bullish else 1.02),
            pattern_start=recent[0].date,
            pattern_end=recent[-1].date,
            volume_confirmation=self._flag_volume_pattern(recent),
            description=f"{'Bull' if bullish else 'Bear'} flag pattern suggests continuation",
        )

    # ──────────────────────────────────────────
    # Day-Trading Patterns
    # ──────────────────────────────────────────

    @staticmethod
    def _attention_flag(bars: list[PriceBar], current_price: float) -> Optional[DayTradingPattern]:
        """Flag scored by the attention-weighted sum of daily changes."""
        if len(bars) < 2:
            return None

        closes = np.array([b.close for b in bars], dtype=float)
        weighted = attention_weighted_change(closes, attention_weights(closes))
        score = abs(float(np.tanh(weighted)))
        if score <= 0.6:
            return None

        if weighted > 0.01:
            direction = Direction.BULLISH
        elif weighted < -0.01:
            direction = Direction.BEARISH
        else:
            direction = Direction.NEUTRAL

        if direction == Direction.BULLISH:
            target = current_price * (1.03 + score * 0.02)
            stop = current_price * (0.98 - score * 0.01)
        else:
            target = current_price * (0.97 - score * 0.02)
            stop = current_price * (1.02 + score * 0.01)

        return DayTradingPattern(
            type="flag", confidence=score, direction=direction,
            entry_point=current_price, target_price=target, stop_loss=stop,
            description=f"Attention-weighted flag pattern with {score * 100:.1f}% confidence",
        )

    @staticmethod
    def _day_flag(bars: list[PriceBar], current_price: float) -> Optional[DayTradingPattern]:
        """>5% move over the last 10 closes, last 5 within a 3% range."""
        if len(bars) < 10:
            return None

        closes = [b.close for b in bars[-10:]]
        momentum = (closes[-1] - closes[0]) / closes[0]
        if abs(momentum) <= 0.05:
            return None

        tail = closes[-5:]
        range_pct = (max(tail) - min(tail)) / (sum(tail) / 5)
        if range_pct >= 0.03:
            return None

        bullish = momentum > 0
        return DayTradingPattern(
            type="flag", confidence=0.7,
            direction=Direction.BULLISH if bullish else Direction.BEARISH,
            entry_point=current_price,
            target_price=current_price * (1 + momentum * 0.5),
            stop_loss=current_price * (0.97 if bullish else 1.03),
            description=(
                f"{'Bullish' if bullish else 'Bearish'} flag pattern detected with "
                f"{abs(momentum) * 100:.1f}% initial move"
            ),
        )

    def _day_pennant(self, bars: list[PriceBar], current_price: float) -> Optional[DayTradingPattern]:
        """Converging highs and lows over the last 10 bars."""
        if len(bars) < 15:
            return None

        recent = bars[-10:]
        high_slope = self._relative_slope([b.high for b in recent])
        low_slope = self._relative_slope([b.low for b in recent])

        if high_slope < 0 and low_slope > 0 and abs(high_slope - low_slope) > 0.001:
            return DayTradingPattern(
                type="pennant", confidence=0.6, direction=Direction.BULLISH,
                entry_point=current_price,
                target_price=current_price * 1.04,
                stop_loss=current_price * 0.98,
                description="Pennant pattern detected - converging price action suggesting continuation",
            )
        return None

    @staticmethod
    def _day_double(bars: list[PriceBar], current_price: float) -> Optional[DayTradingPattern]:
        """Two visits within 1% of the series extreme, >5 bars apart, with a
        pullback bar outside that band between them."""
        if len(bars) < 20:
            return None

        highs = [b.high for b in bars]
        lows = [b.low for b in bars]

        max_high = max(highs)
        near_top = [i for i, h in enumerate(highs) if h >= max_high * 0.99]
        if len(near_top) >= 2 and near_top[-1] - near_top[0] > 5 \
                and near_top[-1] - near_top[0] + 1 > len(near_top):
            return DayTradingPattern(
                type="double_top", confidence=0.65, direction=Direction.BEARISH,
                entry_point=current_price,
                target_price=current_price * 0.96,
                stop_loss=max_high,
                description="Double top pattern detected - bearish reversal signal",
            )

        min_low = min(lows)
        near_bottom = [i for i, l in enumerate(lows) if l <= min_low * 1.01]
        if len(near_bottom) >= 2 and near_bottom[-1] - near_bottom[0] > 5 \
                and near_bottom[-1] - near_bottom[0] + 1 > len(near_bottom):
            return DayTradingPattern(
                type="double_bottom", confidence=0.65, direction=Direction.BULLISH,
                entry_point=current_price,
                target_price=current_price * 1.04,
                stop_loss=min_low,
                description="Double bottom pattern detected - bullish reversal signal",
            )
        return None

    @staticmethod
    def _day_head_shoulders(bars: list[PriceBar], current_price: float) -> Optional[DayTradingPattern]:
        """Last three one-bar peaks (troughs) with the middle one extreme."""
        if len(bars) < 15:
            return None

        highs = [b.high for b in bars]
        peaks = [
            i for i in range(1, len(highs) - 1)
            if highs[i] > highs[i - 1] and highs[i] > highs[i + 1]
        ]
        if len(peaks) >= 3:
            left, head, right = (highs[i] for i in peaks[-3:])
            if head > left and head > right and abs(left - right) / left < 0.05:
                return DayTradingPattern(
                    type="head_shoulders", confidence=0.7, direction=Direction.BEARISH,
                    entry_point=current_price,
                    target_price=current_price * 0.94,
                    stop_loss=head,
                    description="Head and shoulders pattern detected - strong bearish reversal signal",
                )

        lows = [b.low for b in bars]
        troughs = [
            i for i in range(1, len(lows) - 1)
            if lows[i] < lows[i - 1] and lows[i] < lows[i + 1]
        ]
        if len(troughs) >= 3:
            left, head, right = (lows[i] for i in troughs[-3:])
            if head < left and head < right and abs(left - right) / left < 0.05:
                return DayTradingPattern(
                    type="inverse_head_shoulders", confidence=0.7, direction=Direction.BULLISH,
                    entry_point=current_price,
                    target_price=current_price * 1.06,
                    stop_loss=head,
                    description="Inverse head and shoulders pattern detected - strong bullish reversal signal",
                )
        return None

    def _day_triangle(self, bars: list[PriceBar], current_price: float) -> Optional[DayTradingPattern]:
        """One flat trendline over the last 12 bars against a sloped one."""
        if len(bars) < 12:
            return None

        recent = bars[-12:]
        high_slope = self._relative_slope([b.high for b in recent])
        low_slope = self._relative_slope([b.low for b in recent])

        if abs(high_slope) < 0.001 and low_slope > 0.002:
            return DayTradingPattern(
                type="triangle", confidence=0.55, direction=Direction.BULLISH,
                entry_point=current_price,
                target_price=current_price * 1.03,
                stop_loss=current_price * 0.98,
                description="Ascending triangle pattern - bullish continuation",
            )
        if abs(low_slope) < 0.001 and high_slope < -0.002:
            return DayTradingPattern(
                type="triangle", confidence=0.55, direction=Direction.BEARISH,
                entry_point=current_price,
                target_price=current_price * 0.97,
                stop_loss=current_price * 1.02,
                description="Descending triangle pattern - bearish continuation",
            )
        return None

    # ──────────────────────────────────────────
    # Helpers
    # ──────────────────────────────────────────

    @staticmethod
    def _local_extrema(data: np.ndarray, window: int, mode: str = "max") -> list[int]:
        """Indices strictly above (below) every value within ±window."""
        found = []
        for i in range(window, len(data) - window):
            neighbors = np.concatenate([data[i - window:i], data[i + 1:i + window + 1]])
            if mode == "max" and np.all(neighbors < data[i]):
                found.append(i)
            elif mode == "min" and np.all(neighbors > data[i]):
                found.append(i)
        return found

    @staticmethod
    def _relative_slope(values: list[float]) -> float:
        """Least-squares slope as a fraction of the mean value per bar."""
        if len(values) < 2:
            return 0.0
        arr = np.asarray(values, dtype=float)
        mean = float(arr.mean())
        if mean <= 0:
            return 0.0
        slope = np.polyfit(np.arange(len(arr)), arr, 1)[0]
        return float(slope) / mean

    @staticmethod
    def _volume_confirmation(bars: list[PriceBar], indices: list[int]) -> bool:
        avg = sum(b.volume for b in bars) / len(bars)
        return any(bars[i].volume > avg * 1.2 for i in indices)

    @staticmethod
    def _decreasing_volume(bars: list[PriceBar]) -> bool:
        mid = len(bars) // 2
        if mid == 0:
            return False
        first = sum(b.volume for b in bars[:mid]) / mid
        second = sum(b.volume for b in bars[mid:]) / (len(bars) - mid)
        return second < first * 0.8

    @staticmethod
    def _flag_volume_pattern(bars: list[PriceBar]) -> bool:
        """Volume spike in the pole, lighter volume through the flag."""
        volumes = [b.volume for b in bars]
        avg = sum(volumes) / len(volumes)
        mid = len(volumes) // 2
        pole_spike = any(v > avg * 1.5 for v in volumes[:mid])
        quiet_flag = all(v < avg * 1.2 for v in volumes[mid:])
        return pole_spike and quiet_flag
