"""
SignalForge — Indicator Engine

Pure domain logic mapping a price/volume series to scalar or small-struct
indicators. Every indicator degrades to a documented default when the series
is shorter than its window; nothing in this module raises for short input.

Bollinger Bands, Stochastic %K and Williams %R are computed with the `ta`
library on a pandas DataFrame. RSI, moving averages, MACD, ATR and volatility
are numpy helpers because their formulas intentionally differ from the
smoothed variants `ta` ships (simple-average RSI, SMA-seeded EMA, SMA of
true range).
"""

from __future__ import annotations

import math
from typing import Sequence

import numpy as np
import pandas as pd
import structlog
from ta.momentum import StochasticOscillator, WilliamsRIndicator
from ta.volatility import BollingerBands as BollingerIndicator

from signalforge.models import (
    ATRValues,
    BandPosition,
    BollingerBands,
    IndicatorSet,
    MACDValues,
    OscillatorSignal,
    PriceBar,
    SpikeSignificance,
    StochasticValues,
    Trend,
    VolatilityClass,
    VolatilityRegime,
    VolumeAnalysis,
    VolumeSpike,
    VolumeStrength,
    VolumeTrend,
    WilliamsRValues,
)

log = structlog.get_logger(__name__)

TRADING_DAYS = 252


class IndicatorEngine:
    """Technical indicator library.

    Usage:
        engine = IndicatorEngine()
        indicators = engine.compute_indicators(bars)
        volume = engine.analyze_volume(bars)
    """

    # ──────────────────────────────────────────
    # Public API
    # ──────────────────────────────────────────

    def compute_indicators(self, bars: list[PriceBar]) -> IndicatorSet:
        """Compute the full indicator bundle for a series of bars.

        Args:
            bars: Daily bars, oldest first.

        Returns:
            IndicatorSet with defaults wherever the series is too short.
        """
        if not bars:
            return IndicatorSet(bollinger=BollingerBands(upper=0.0, middle=0.0, lower=0.0))

        closes = np.array([b.close for b in bars], dtype=float)
        volumes = np.array([b.volume for b in bars], dtype=float)

        sma20 = self.sma(closes, 20)
        sma50 = self.sma(closes, 50)
        bands = self.bollinger(closes, 20, 2)

        return IndicatorSet(
            rsi=self.rsi(closes, 14),
            sma20=sma20,
            sma50=sma50,
            sma200=self.sma(closes, 200),
            ema9=self.ema(closes, 9),
            ema12=self.ema(closes, 12),
            ema26=self.ema(closes, 26),
            macd=self.macd(closes, 12, 26, 9),
            bollinger=bands,
            stochastic=self.stochastic(bars, 14, 3),
            williams_r=self.williams_r(bars, 14),
            atr=self.atr(bars, 14),
            volatility=self.volatility(closes, 20),
            volatility_regime=self.volatility_regime(bars, 10, 50),
            trend=self.trend(closes, sma20, sma50),
            bollinger_position=self.bollinger_position(float(closes[-1]), bands),
            volume=int(volumes[-1]),
            avg_volume=self.sma(volumes, 20),
        )

    def analyze_volume(self, bars: list[PriceBar]) -> VolumeAnalysis:
        """Volume context: ratio to average, VWAP, spikes, trend, strength."""
        if not bars:
            return VolumeAnalysis()

        volumes = np.array([b.volume for b in bars], dtype=float)
        current = int(volumes[-1])
        avg = self.sma(volumes, 20)

        return VolumeAnalysis(
            current_volume=current,
            avg_volume=avg,
            volume_ratio=current / avg if avg > 0 else 0.0,
            vwap=self.vwap(bars),
            volume_spikes=self.volume_spikes(bars),
            volume_trend=self.volume_trend(bars),
            volume_strength=self.volume_strength(bars),
        )

    # ──────────────────────────────────────────
    # Moving Averages & Momentum
    # ──────────────────────────────────────────

    @staticmethod
    def rsi(closes: Sequence[float], period: int = 14) -> float:
        """Relative Strength Index using a simple average of gains/losses.

        Not Wilder-smoothed: the mean of the last `period` positive and
        negative changes. 50 when fewer than period+1 closes, 100 when the
        window holds no losses.
        """
        values = np.asarray(closes, dtype=float)
        if len(values) < period + 1:
            return 50.0

        changes = np.diff(values)[-period:]
        avg_gain = float(np.clip(changes, 0, None).sum()) / period
        avg_loss = float(-np.clip(changes, None, 0).sum()) / period

        if avg_loss == 0:
            return 100.0
        rs = avg_gain / avg_loss
        return 100.0 - 100.0 / (1.0 + rs)

    @staticmethod
    def sma(values: Sequence[float], period: int) -> float:
        """Trailing mean; the last value (or 0 when empty) if too short."""
        arr = np.asarray(values, dtype=float)
        if len(arr) == 0:
            return 0.0
        if len(arr) < period:
            return float(arr[-1])
        return float(np.mean(arr[-period:]))

    @staticmethod
    def _ema_series(values: np.ndarray, period: int) -> np.ndarray:
        """EMA at every index from period-1 onward, seeded with the SMA of
        the first `period` values. Empty when the series is too short."""
        if len(values) < period:
            return np.array([], dtype=float)

        multiplier = 2.0 / (period + 1)
        out = np.empty(len(values) - period + 1, dtype=float)
        ema = float(np.mean(values[:period]))
        out[0] = ema
        for j, price in enumerate(values[period:], start=1):
            ema = (float(price) - ema) * multiplier + ema
            out[j] = ema
        return out

    def ema(self, values: Sequence[float], period: int) -> float:
        """Exponential moving average; the last value (or 0) if too short."""
        arr = np.asarray(values, dtype=float)
        if len(arr) < period:
            return float(arr[-1]) if len(arr) else 0.0
        return float(self._ema_series(arr, period)[-1])

    def macd(
        self,
        closes: Sequence[float],
        fast: int = 12,
        slow: int = 26,
        signal: int = 9,
    ) -> MACDValues:
        """MACD line, signal and histogram, rounded to 4 decimals.

        The signal line is the EMA of the MACD value at every prefix of the
        series from index slow-1 onward. A recursive EMA evaluated on a
        prefix equals the running EMA at that index, so one forward pass
        yields the same values as re-deriving each prefix.
        """
        values = np.asarray(closes, dtype=float)
        if len(values) < slow:
            return MACDValues()

        # Align the fast series to start at index slow-1 like the slow one
        fast_series = self._ema_series(values, fast)[slow - fast:]
        slow_series = self._ema_series(values, slow)
        macd_series = fast_series - slow_series

        line = float(macd_series[-1])
        signal_line = self.ema(macd_series, signal)
        return MACDValues(
            macd=round(line, 4),
            signal=round(signal_line, 4),
            histogram=round(line - signal_line, 4),
        )

    # ──────────────────────────────────────────
    # Oscillators (ta library)
    # ──────────────────────────────────────────

    def stochastic(
        self,
        bars: list[PriceBar],
        k_period: int = 14,
        d_period: int = 3,
    ) -> StochasticValues:
        """Stochastic %K and %D (SMA of the last d_period %K values).

        A window with zero high-low range reads 50 rather than dividing by 0.
        """
        if len(bars) < k_period:
            return StochasticValues()

        df = self._bars_to_dataframe(bars)
        k_series = StochasticOscillator(
            df["high"], df["low"], df["close"], window=k_period, smooth_window=d_period,
        ).stoch()
        k_values = (
            k_series.iloc[k_period - 1:]
            .replace([np.inf, -np.inf], np.nan)
            .fillna(50.0)
            .clip(0.0, 100.0)
        )

        k = float(k_values.iloc[-1])
        d = float(k_values.iloc[-d_period:].mean()) if len(k_values) >= d_period else k

        if k > 80 and d > 80:
            signal = OscillatorSignal.OVERBOUGHT
        elif k < 20 and d < 20:
            signal = OscillatorSignal.OVERSOLD
        else:
            signal = OscillatorSignal.NEUTRAL

        return StochasticValues(k=round(k, 2), d=round(d, 2), signal=signal)

    def williams_r(self, bars: list[PriceBar], period: int = 14) -> WilliamsRValues:
        """Williams %R in [-100, 0]; -50 when short or when the range is 0."""
        if len(bars) < period:
            return WilliamsRValues()

        df = self._bars_to_dataframe(bars)
        raw = WilliamsRIndicator(df["high"], df["low"], df["close"], lbp=period).williams_r().iloc[-1]
        if not np.isfinite(raw):
            return WilliamsRValues()

        value = min(0.0, max(-100.0, float(raw)))
        if value > -20:
            signal = OscillatorSignal.OVERBOUGHT
        elif value < -80:
            signal = OscillatorSignal.OVERSOLD
        else:
            signal = OscillatorSignal.NEUTRAL

        return WilliamsRValues(value=round(value, 2), signal=signal)

    # ──────────────────────────────────────────
    # Volatility
    # ──────────────────────────────────────────

    def bollinger(
        self,
        closes: Sequence[float],
        period: int = 20,
        num_std: int = 2,
    ) -> BollingerBands:
        """SMA ± num_std population standard deviations.

        With fewer than `period` closes the bands collapse onto the SMA
        fallback (the last close).
        """
        values = np.asarray(closes, dtype=float)
        if len(values) < period:
            middle = self.sma(values, period)
            return BollingerBands(upper=middle, middle=middle, lower=middle)

        bb = BollingerIndicator(pd.Series(values), window=period, window_dev=num_std)
        return BollingerBands(
            upper=float(bb.bollinger_hband().iloc[-1]),
            middle=float(bb.bollinger_mavg().iloc[-1]),
            lower=float(bb.bollinger_lband().iloc[-1]),
        )

    @staticmethod
    def bollinger_position(close: float, bands: BollingerBands, edge: float = 0.05) -> BandPosition:
        """Classify the close within the band envelope.

        Upper/lower when the close sits in the outer `edge` fraction of the
        band width (or beyond it); middle otherwise and for degenerate bands.
        """
        width = bands.upper - bands.lower
        if width <= abs(bands.middle) * 1e-9:
            return BandPosition.MIDDLE

        percent_b = (close - bands.lower) / width
        if percent_b >= 1 - edge:
            return BandPosition.UPPER
        if percent_b <= edge:
            return BandPosition.LOWER
        return BandPosition.MIDDLE

    @staticmethod
    def volatility(closes: Sequence[float], period: int = 20) -> float:
        """Annualized stddev of the last `period` daily returns; 0.2 if short."""
        values = np.asarray(closes, dtype=float)
        if len(values) < period + 1:
            return 0.2
        returns = np.diff(values) / values[:-1]
        return float(np.std(returns[-period:]) * math.sqrt(TRADING_DAYS))

    def atr(self, bars: list[PriceBar], period: int = 14) -> ATRValues:
        """Simple average of the last `period` true ranges."""
        if len(bars) < period + 1:
            return ATRValues()

        h = np.array([b.high for b in bars], dtype=float)
        l = np.array([b.low for b in bars], dtype=float)
        c = np.array([b.close for b in bars], dtype=float)
        prev_close = c[:-1]

        true_range = np.maximum.reduce([
            h[1:] - l[1:],
            np.abs(h[1:] - prev_close),
            np.abs(l[1:] - prev_close),
        ])
        atr = float(np.mean(true_range[-period:]))
        normalized = atr / c[-1] * 100 if c[-1] > 0 else 0.0

        return ATRValues(value=round(atr, 2), normalized=round(normalized, 2))

    def volatility_regime(
        self,
        bars: list[PriceBar],
        short_period: int = 10,
        long_period: int = 50,
    ) -> VolatilityRegime:
        """Rank short-window volatility against its rolling history.

        The rolling history includes the current window, so the rank is the
        fraction of historical windows strictly calmer than today's.
        """
        if len(bars) < long_period:
            return VolatilityRegime()

        closes = np.array([b.close for b in bars], dtype=float)
        returns = np.diff(closes) / closes[:-1]

        current = self._annualized_pct(returns[-short_period:])
        average = self._annualized_pct(returns[-long_period:])
        history = np.sort(np.array([
            self._annualized_pct(returns[i - short_period:i])
            for i in range(short_period, len(returns) + 1)
        ]))

        position = int(np.searchsorted(history, current, side="left"))
        rank = position / len(history) * 100

        if rank < 25:
            regime = VolatilityClass.LOW
        elif rank > 75:
            regime = VolatilityClass.HIGH
        else:
            regime = VolatilityClass.NORMAL

        return VolatilityRegime(
            historical_volatility=round(current, 2),
            average_volatility=round(average, 2),
            rank=round(rank, 2),
            regime=regime,
        )

    @staticmethod
    def _annualized_pct(returns: np.ndarray) -> float:
        return float(np.std(returns) * math.sqrt(TRADING_DAYS) * 100)

    # ──────────────────────────────────────────
    # Trend
    # ──────────────────────────────────────────

    @staticmethod
    def trend(closes: Sequence[float], sma20: float, sma50: float) -> Trend:
        """Upward when close > sma20 > sma50 and the close rose; mirrored for
        downward; sideways otherwise."""
        if len(closes) == 0:
            return Trend.SIDEWAYS

        current = float(closes[-1])
        previous = float(closes[-2]) if len(closes) > 1 else current

        if current > sma20 > sma50 and current > previous:
            return Trend.UPWARD
        if current < sma20 < sma50 and current < previous:
            return Trend.DOWNWARD
        return Trend.SIDEWAYS

    # ──────────────────────────────────────────
    # Volume
    # ──────────────────────────────────────────

    @staticmethod
    def vwap(bars: list[PriceBar]) -> float:
        """Volume-weighted typical price over the whole series."""
        total_volume = sum(b.volume for b in bars)
        if total_volume <= 0:
            return 0.0
        weighted = sum((b.high + b.low + b.close) / 3 * b.volume for b in bars)
        return weighted / total_volume

    def volume_spikes(self, bars: list[PriceBar]) -> list[VolumeSpike]:
        """Bars in the last 10 sessions trading ≥2× the 20-bar average."""
        if len(bars) < 10:
            return []

        avg = self.sma([b.volume for b in bars], 20)
        if avg <= 0:
            return []

        spikes = []
        for bar in bars[-10:]:
            ratio = bar.volume / avg
            if ratio < 2.0:
                continue
            if ratio >= 3.0:
                significance = SpikeSignificance.HIGH
            elif ratio >= 2.5:
                significance = SpikeSignificance.MEDIUM
            else:
                significance = SpikeSignificance.LOW
            spikes.append(VolumeSpike(
                date=bar.date, volume=bar.volume, ratio=ratio, significance=significance,
            ))

        return sorted(spikes, key=lambda s: s.ratio, reverse=True)

    @staticmethod
    def volume_trend(bars: list[PriceBar]) -> VolumeTrend:
        """Compare the two halves of the last 10 sessions' volume."""
        if len(bars) < 10:
            return VolumeTrend.STABLE

        recent = [b.volume for b in bars[-10:]]
        first_avg = sum(recent[:5]) / 5
        second_avg = sum(recent[5:]) / 5
        if first_avg <= 0:
            return VolumeTrend.INCREASING if second_avg > 0 else VolumeTrend.STABLE

        change_pct = (second_avg - first_avg) / first_avg * 100
        if change_pct > 20:
            return VolumeTrend.INCREASING
        if change_pct < -20:
            return VolumeTrend.DECREASING
        return VolumeTrend.STABLE

    def volume_strength(self, bars: list[PriceBar]) -> VolumeStrength:
        """Current volume relative to the 20-bar average."""
        if len(bars) < 20:
            return VolumeStrength.LOW

        avg = self.sma([b.volume for b in bars], 20)
        if avg <= 0:
            return VolumeStrength.LOW

        ratio = bars[-1].volume / avg
        if ratio >= 1.5:
            return VolumeStrength.HIGH
        if ratio >= 0.8:
            return VolumeStrength.MEDIUM
        return VolumeStrength.LOW

    # ──────────────────────────────────────────
    # Helpers
    # ──────────────────────────────────────────

    @staticmethod
    def _bars_to_dataframe(bars: list[PriceBar]) -> pd.DataFrame:
        """Convert bars to a pandas DataFrame indexed by date."""
        data = {
            "date": [b.date for b in bars],
            "open": [b.open for b in bars],
            "high": [b.high for b in bars],
            "low": [b.low for b in bars],
            "close": [b.close for b in bars],
            "volume": [float(b.volume) for b in bars],
        }
        df = pd.DataFrame(data)
        df.set_index("date", inplace=True)
        return df
