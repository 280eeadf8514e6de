"""
SignalForge — Support / Resistance Engine

Finds strict local pivots, clusters them into price zones by proximity,
scores each zone by touch count, and computes classic floor-trader pivot
points from the most recent bar.
"""

from __future__ import annotations

import datetime as dt
from typing import Optional

from signalforge.models import (
    KeyZone,
    LevelStrength,
    LevelType,
    PivotPoints,
    PriceBar,
    PriceZone,
    SupportResistanceAnalysis,
    SupportResistanceLevel,
)

MIN_BARS = 20
PIVOT_WINDOW = 5
CLUSTER_PROXIMITY = 0.01
MAX_LEVELS = 5
MAX_KEY_ZONES = 8


class SupportResistanceEngine:
    """Pivot clustering support/resistance analyzer.

    Usage:
        engine = SupportResistanceEngine()
        analysis = engine.analyze(bars, current_price)
    """

    # ──────────────────────────────────────────
    # Public API
    # ──────────────────────────────────────────

    def analyze(self, bars: list[PriceBar], current_price: float) -> SupportResistanceAnalysis:
        """Full support/resistance picture for the current price.

        Below 20 bars the levels fall back to ±5% of price with low
        confidence.
        """
        pivots = self.pivot_points(bars, current_price)

        if len(bars) < MIN_BARS:
            last_date = bars[-1].date if bars else None
            support = current_price * 0.95
            resistance = current_price * 1.05
            return SupportResistanceAnalysis(
                current_support=support,
                current_resistance=resistance,
                support_levels=[self._default_level(support, LevelType.SUPPORT, last_date)],
                resistance_levels=[self._default_level(resistance, LevelType.RESISTANCE, last_date)],
                pivot_points=pivots,
                key_zones=[],
            )

        support_levels = self.build_levels(
            [p for _, p in self.find_pivots(bars, "low")], bars, current_price, LevelType.SUPPORT,
        )
        resistance_levels = self.build_levels(
            [p for _, p in self.find_pivots(bars, "high")], bars, current_price, LevelType.RESISTANCE,
        )

        return SupportResistanceAnalysis(
            current_support=support_levels[0].price if support_levels else current_price * 0.95,
            current_resistance=resistance_levels[0].price if resistance_levels else current_price * 1.05,
            support_levels=support_levels,
            resistance_levels=resistance_levels,
            pivot_points=pivots,
            key_zones=self.key_zones(support_levels, resistance_levels),
        )

    @staticmethod
    def find_pivots(
        bars: list[PriceBar],
        mode: str = "high",
        window: int = PIVOT_WINDOW,
    ) -> list[tuple[int, float]]:
        """Pivot highs (lows): strictly above (below) every bar within ±window.

        Returns list of (index, price).
        """
        values = [b.high if mode == "high" else b.low for b in bars]
        pivots = []
        for i in range(window, len(values) - window):
            neighbors = values[i - window:i] + values[i + 1:i + window + 1]
            if mode == "high" and all(values[i] > v for v in neighbors):
                pivots.append((i, values[i]))
            elif mode == "low" and all(values[i] < v for v in neighbors):
                pivots.append((i, values[i]))
        return pivots

    @staticmethod
    def cluster_prices(prices: list[float], proximity: float = CLUSTER_PROXIMITY) -> list[list[float]]:
        """Greedy grouping of sorted prices.

        A price joins the first group whose running average it is within
        `proximity` of; otherwise it starts a new group.
        """
        groups: list[list[float]] = []
        for price in sorted(prices):
            for group in groups:
                avg = sum(group) / len(group)
                if abs(price - avg) / avg <= proximity:
                    group.append(price)
                    break
            else:
                groups.append([price])
        return groups

    def build_levels(
        self,
        pivot_prices: list[float],
        bars: list[PriceBar],
        current_price: float,
        level_type: LevelType,
    ) -> list[SupportResistanceLevel]:
        """Score pivot clusters and keep the closest levels on the right side."""
        levels = []
        for group in self.cluster_prices(pivot_prices):
            price = sum(group) / len(group)
            touches = len(group)

            if touches >= 3:
                strength = LevelStrength.STRONG
            elif touches == 2:
                strength = LevelStrength.MODERATE
            else:
                strength = LevelStrength.WEAK

            levels.append(SupportResistanceLevel(
                price=price,
                strength=strength,
                type=level_type,
                touches=touches,
                confidence=min(touches * 0.2, 1.0),
                zone=PriceZone(upper=price * 1.005, lower=price * 0.995),
                last_tested=self._last_tested(price, bars, level_type),
            ))

        if level_type == LevelType.SUPPORT:
            levels = [lv for lv in levels if lv.price < current_price]
        else:
            levels = [lv for lv in levels if lv.price > current_price]

        levels.sort(key=lambda lv: abs(current_price - lv.price))
        return levels[:MAX_LEVELS]

    @staticmethod
    def pivot_points(bars: list[PriceBar], current_price: float) -> PivotPoints:
        """Classic pivots from the most recent bar (flat at price if empty)."""
        if bars:
            high, low, close = bars[-1].high, bars[-1].low, bars[-1].close
        else:
            high = low = close = current_price

        pivot = (high + low + close) / 3
        return PivotPoints(
            pivot=pivot,
            r1=2 * pivot - low,
            s1=2 * pivot - high,
            r2=pivot + (high - low),
            s2=pivot - (high - low),
            r3=high + 2 * (pivot - low),
            s3=low - 2 * (high - pivot),
        )

    @staticmethod
    def key_zones(
        support_levels: list[SupportResistanceLevel],
        resistance_levels: list[SupportResistanceLevel],
    ) -> list[KeyZone]:
        """Strong or high-confidence levels, top 8 by confidence."""
        zones = [
            KeyZone(price=lv.price, type=lv.type, strength=lv.confidence)
            for lv in (*support_levels, *resistance_levels)
            if lv.strength == LevelStrength.STRONG or lv.confidence > 0.7
        ]
        zones.sort(key=lambda z: z.strength, reverse=True)
        return zones[:MAX_KEY_ZONES]

    # ──────────────────────────────────────────
    # Helpers
    # ──────────────────────────────────────────

    @staticmethod
    def _last_tested(level: float, bars: list[PriceBar], level_type: LevelType) -> Optional[dt.date]:
        """Date of the most recent bar whose low (high) came within 1%."""
        for bar in reversed(bars):
            test = bar.low if level_type == LevelType.SUPPORT else bar.high
            if abs(test - level) / level <= 0.01:
                return bar.date
        return bars[-1].date if bars else None

    @staticmethod
    def _default_level(price: float, level_type: LevelType, last_date: Optional[dt.date]) -> SupportResistanceLevel:
        return SupportResistanceLevel(
            price=price,
            strength=LevelStrength.WEAK,
            type=level_type,
            touches=0,
            confidence=0.3,
            zone=PriceZone(upper=price * 1.002, lower=price * 0.998),
            last_tested=last_date,
        )
