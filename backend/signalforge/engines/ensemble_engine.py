"""
SignalForge — Heuristic Ensemble Engine

Independent scoring heuristics mapping engineered features to a signed value
in [-1, 1], combined with confidence-proportional weights. None of these are
trained models: each is a fixed, inspectable weighted sum passed through a
saturating function.

Heuristics:
  feature_weighted    fixed weights over RSI, MA gap, volatility, volume, momentum
  band_reversion      Bollinger band breach + RSI extremes, contrarian
  composite           RSI / trend / volatility / band position blend
  momentum            2-bar and 5-bar rate of change
  mean_reversion      contrarian distance from SMA20
  alternating_trees   alternating-sign sum over 12 engineered features
  bagged_features     weighted sum over the same features (jittered weights in live mode)
  sequence_attention  attention-pooled 20-bar normalized sequences
  attention_flow      attention-weighted daily change

Wall clock and randomness only enter through an explicit EntropySource,
disabled by default, so every score is a pure function of the series.
"""

from __future__ import annotations

import math
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

import numpy as np
import structlog

from signalforge.engines.pattern_engine import attention_weighted_change, attention_weights
from signalforge.models import (
    BandPosition,
    Direction,
    EnsembleResult,
    IndicatorSet,
    ModelPredictions,
    ModelScore,
    PriceBar,
    Trend,
)

log = structlog.get_logger(__name__)

DIRECTION_THRESHOLD = 0.15


# ──────────────────────────────────────────────
# Entropy Source
# ──────────────────────────────────────────────

@dataclass(frozen=True)
class EntropySource:
    """Optional live-jitter inputs: a random generator and a wall clock.

    Disabled (the default) means every jitter term is exactly 0 and random
    weights fall back to a constant 0.5.
    """
    rng: Optional[np.random.Generator] = None
    clock: Optional[Callable[[], float]] = None

    @classmethod
    def disabled(cls) -> "EntropySource":
        return cls()

    @classmethod
    def live(cls, seed: Optional[int] = None, clock: Callable[[], float] = time.time) -> "EntropySource":
        return cls(rng=np.random.default_rng(seed), clock=clock)

    @property
    def enabled(self) -> bool:
        return self.rng is not None or self.clock is not None

    def jitter(self, amplitude: float) -> float:
        """Uniform noise in [-amplitude, amplitude], 0 when disabled."""
        if self.rng is None:
            return 0.0
        return float(self.rng.uniform(-amplitude, amplitude))

    def cycle(self, period: float, wave: Callable[[float], float] = math.sin) -> float:
        """wave(now / period), 0 when no clock is attached."""
        if self.clock is None:
            return 0.0
        return wave(self.clock() / period)

    def weights(self, n: int) -> np.ndarray:
        if self.rng is None:
            return np.full(n, 0.5)
        return self.rng.random(n)


# ──────────────────────────────────────────────
# Feature Context
# ──────────────────────────────────────────────

@dataclass
class FeatureContext:
    """Everything a heuristic may read for one series."""
    bars: list[PriceBar]
    indicators: IndicatorSet
    entropy: EntropySource = field(default_factory=EntropySource.disabled)
    closes: np.ndarray = field(init=False)
    volumes: np.ndarray = field(init=False)

    def __post_init__(self):
        self.closes = np.array([b.close for b in self.bars], dtype=float)
        self.volumes = np.array([b.volume for b in self.bars], dtype=float)

    @property
    def price(self) -> float:
        return float(self.closes[-1]) if len(self.closes) else 0.0

    def engineered_features(self) -> list[float]:
        """The 12-feature vector shared by the tree-style heuristics.

        Non-finite entries are replaced by 0 so the vector keeps its
        positional meaning.
        """
        ind = self.indicators
        closes = self.closes
        price = self.price

        features = [
            ind.rsi / 100,
            _ratio(price - ind.sma20, ind.sma20),
            _ratio(ind.sma20 - ind.sma50, ind.sma50),
            ind.volatility,
            _ratio(ind.volume - ind.avg_volume, ind.avg_volume),
            _volume_ratio(self.volumes),
            _rate_of_change(closes, 2),
            _acceleration(closes),
            _volatility_clustering(closes),
            _spread_proxy(self.bars),
            _fractal_dimension(closes),
            _hurst_exponent(closes),
        ]
        return [f if math.isfinite(f) else 0.0 for f in features]


# ──────────────────────────────────────────────
# Heuristics
# ──────────────────────────────────────────────

class ScoringHeuristic:
    """Base for one named scoring function.

    Subclasses implement `_compute`, returning (value, rationale). The base
    clamps the value to [-1, 1] and derives confidence and direction.
    """
    source: str = ""

    def score(self, ctx: FeatureContext) -> ModelScore:
        if len(ctx.closes) == 0:
            return ModelScore(
                source=self.source, value=0.0, confidence=0.0,
                direction=Direction.NEUTRAL, rationale="No price data",
            )

        value, rationale = self._compute(ctx)
        if not math.isfinite(value):
            value = 0.0
        value = max(-1.0, min(1.0, value))

        return ModelScore(
            source=self.source,
            value=value,
            confidence=abs(value),
            direction=_direction(value),
            rationale=rationale,
        )

    def _compute(self, ctx: FeatureContext) -> tuple[float, str]:
        raise NotImplementedError


class FeatureWeightedHeuristic(ScoringHeuristic):
    source = "feature_weighted"
    WEIGHTS = (0.35, 0.45, -0.25, 0.15, 0.8, 0.2)

    def _compute(self, ctx):
        ind = ctx.indicators
        price = ctx.price
        previous = float(ctx.closes[-2]) if len(ctx.closes) > 1 else price

        features = [
            ind.rsi / 100,
            _ratio(ind.sma20 - price, price),
            ind.volatility,
            _ratio(ind.volume - ind.avg_volume, ind.avg_volume),
            _ratio(price - previous, previous),
            ctx.entropy.cycle(100_000),
        ]
        raw = sum(f * w for f, w in zip(features, self.WEIGHTS))
        raw += _trend_bias(ind.trend, 0.3)
        raw += ctx.entropy.jitter(0.2)

        value = max(-0.9, min(0.9, math.tanh(raw * 2)))
        return value, f"Weighted feature sum {raw:+.3f} with {ind.trend.value} trend bias"


class BandReversionHeuristic(ScoringHeuristic):
    source = "band_reversion"

    def _compute(self, ctx):
        ind = ctx.indicators
        price = ctx.price
        value = 0.0
        notes = []

        if price > ind.bollinger.upper:
            value -= 0.5
            notes.append("above upper band")
        elif price < ind.bollinger.lower:
            value += 0.5
            notes.append("below lower band")

        if ind.rsi > 70:
            value -= 0.3
            notes.append("RSI overbought")
        elif ind.rsi < 30:
            value += 0.3
            notes.append("RSI oversold")

        return value, ", ".join(notes) or "Price inside bands, RSI neutral"


class CompositeHeuristic(ScoringHeuristic):
    source = "composite"

    def _compute(self, ctx):
        ind = ctx.indicators
        rsi_signal = (ind.rsi - 50) / 50
        trend_signal = _trend_bias(ind.trend, 0.5)
        vol_signal = -0.2 if ind.volatility > 0.25 else 0.2
        band_signal = {BandPosition.UPPER: -0.3, BandPosition.LOWER: 0.3}.get(ind.bollinger_position, 0.0)

        market_cycle = ctx.entropy.cycle(200_000) * 0.3
        daily_variation = ctx.entropy.cycle(80_000, math.cos) * 0.2

        value = (
            rsi_signal * 0.3
            + trend_signal * 0.4
            + vol_signal * 0.1
            + band_signal * 0.3
            + market_cycle * 0.2
            + daily_variation * 0.15
        )
        return max(-0.8, min(0.8, value)), "Blend of RSI, trend, volatility and band position"


class MomentumHeuristic(ScoringHeuristic):
    source = "momentum"

    def _compute(self, ctx):
        closes = ctx.closes
        if len(closes) < 6:
            return 0.0, "Not enough bars for momentum"

        short = _rate_of_change(closes, 2)
        long = _rate_of_change(closes, 5)
        value = (short * 0.6 + long * 0.4) * 10
        return value, f"2-bar {short:+.2%}, 5-bar {long:+.2%} rate of change"


class MeanReversionHeuristic(ScoringHeuristic):
    source = "mean_reversion"

    def _compute(self, ctx):
        deviation = _ratio(ctx.price - ctx.indicators.sma20, ctx.indicators.sma20)
        return -math.tanh(deviation * 5), f"Price {deviation:+.2%} from SMA20"


class AlternatingTreesHeuristic(ScoringHeuristic):
    source = "alternating_trees"

    def _compute(self, ctx):
        features = ctx.engineered_features()
        raw = sum(f * (1 if i % 2 == 0 else -1) for i, f in enumerate(features))
        return math.tanh(raw), "Alternating-sign sum over engineered features"


class BaggedFeaturesHeuristic(ScoringHeuristic):
    source = "bagged_features"

    def _compute(self, ctx):
        features = np.array(ctx.engineered_features())
        weights = ctx.entropy.weights(len(features))
        return math.tanh(float(np.dot(features, weights))), "Bagged weighted sum over engineered features"


class SequenceAttentionHeuristic(ScoringHeuristic):
    source = "sequence_attention"
    LOOKBACK = 20

    def _compute(self, ctx):
        closes = ctx.closes
        n = self.LOOKBACK
        if len(closes) <= n:
            return 0.0, "Not enough bars for sequence attention"

        windows = np.lib.stride_tricks.sliding_window_view(closes[:-1], n)
        normalized = windows / windows[:, :1] - 1
        position = np.arange(1, n + 1) / n
        hidden = np.tanh(normalized * position)

        attention = np.abs(hidden).mean(axis=1)
        total = attention.sum()
        attention = attention / total if total > 0 else np.full(len(attention), 1 / len(attention))

        context = attention @ hidden
        value = max(-0.85, min(0.85, math.tanh(float(context.sum()))))
        strength = "strong" if abs(value) > 0.7 else "moderate" if abs(value) > 0.4 else "weak"
        return value, f"Attention over {len(windows)} sequences shows {strength} drift"


class AttentionFlowHeuristic(ScoringHeuristic):
    source = "attention_flow"

    def _compute(self, ctx):
        weighted = attention_weighted_change(ctx.closes, attention_weights(ctx.closes))
        return math.tanh(weighted), f"Attention-weighted change {weighted:+.4f}"


DEFAULT_HEURISTICS: tuple[ScoringHeuristic, ...] = (
    FeatureWeightedHeuristic(),
    BandReversionHeuristic(),
    CompositeHeuristic(),
    MomentumHeuristic(),
    MeanReversionHeuristic(),
    AlternatingTreesHeuristic(),
    BaggedFeaturesHeuristic(),
    SequenceAttentionHeuristic(),
    AttentionFlowHeuristic(),
)


# ──────────────────────────────────────────────
# Engine
# ──────────────────────────────────────────────

class EnsembleEngine:
    """Runs every heuristic and combines them.

    Usage:
        engine = EnsembleEngine()                      # deterministic
        engine = EnsembleEngine(EntropySource.live())  # live jitter mode
        scores = engine.score_all(bars, indicators)
        result = engine.combine(scores)
    """

    def __init__(
        self,
        entropy: Optional[EntropySource] = None,
        heuristics: Optional[tuple[ScoringHeuristic, ...]] = None,
    ):
        self.entropy = entropy or EntropySource.disabled()
        self.heuristics = heuristics or DEFAULT_HEURISTICS

    def score_all(self, bars: list[PriceBar], indicators: IndicatorSet) -> list[ModelScore]:
        ctx = FeatureContext(bars=bars, indicators=indicators, entropy=self.entropy)
        return [h.score(ctx) for h in self.heuristics]

    @staticmethod
    def combine(scores: list[ModelScore]) -> EnsembleResult:
        """Weight each score by its own confidence.

        A neutral score contributes weight but no direction. With zero total
        confidence the result is the neutral default.
        """
        total = sum(s.confidence for s in scores)
        if total <= 0:
            return EnsembleResult(
                value=0.0, direction=Direction.NEUTRAL, confidence=0.1,
                rationale="No heuristic expressed any conviction",
            )

        weights = {s.source: s.confidence / total for s in scores}
        value = 0.0
        confidence = 0.0
        for s in scores:
            w = s.confidence / total
            if s.direction != Direction.NEUTRAL:
                value += w * s.value
            confidence += w * s.confidence

        value = max(-1.0, min(1.0, value))
        return EnsembleResult(
            value=value,
            direction=_direction(value),
            confidence=min(1.0, confidence),
            weights=weights,
            rationale=f"Confidence-weighted blend of {len(scores)} heuristics",
        )

    @staticmethod
    def predictions(scores: list[ModelScore], ensemble: EnsembleResult) -> ModelPredictions:
        """Headline values averaged by the signal fusion step."""
        by_source = {s.source: s.value for s in scores}
        return ModelPredictions(
            feature_weighted=by_source.get("feature_weighted", 0.0),
            band_reversion=by_source.get("band_reversion", 0.0),
            ensemble=ensemble.value,
            momentum=by_source.get("momentum", 0.0),
            mean_reversion=by_source.get("mean_reversion", 0.0),
        )

    def evaluate(
        self,
        bars: list[PriceBar],
        indicators: IndicatorSet,
    ) -> tuple[list[ModelScore], EnsembleResult, ModelPredictions]:
        scores = self.score_all(bars, indicators)
        ensemble = self.combine(scores)
        log.debug(
            "ensemble_evaluated",
            value=round(ensemble.value, 4),
            direction=ensemble.direction.value,
            live_jitter=self.entropy.enabled,
        )
        return scores, ensemble, self.predictions(scores, ensemble)


# ──────────────────────────────────────────────
# Feature helpers
# ──────────────────────────────────────────────

def _direction(value: float) -> Direction:
    if value > DIRECTION_THRESHOLD:
        return Direction.BULLISH
    if value < -DIRECTION_THRESHOLD:
        return Direction.BEARISH
    return Direction.NEUTRAL


def _ratio(numerator: float, denominator: float) -> float:
    return numerator / denominator if denominator else 0.0


def _trend_bias(trend: Trend, magnitude: float) -> float:
    if trend == Trend.UPWARD:
        return magnitude
    if trend == Trend.DOWNWARD:
        return -magnitude
    return 0.0


def _rate_of_change(closes: np.ndarray, lag: int) -> float:
    if len(closes) <= lag:
        return 0.0
    return _ratio(float(closes[-1] - closes[-1 - lag]), float(closes[-1 - lag]))


def _acceleration(closes: np.ndarray) -> float:
    if len(closes) < 4:
        return 0.0
    return _rate_of_change(closes, 1) - _rate_of_change(closes[:-1], 1)


def _volume_ratio(volumes: np.ndarray) -> float:
    """Mean of the last 5 volumes over the 5 before them."""
    if len(volumes) < 10:
        return 1.0
    older = float(volumes[-10:-5].mean())
    return float(volumes[-5:].mean()) / older if older > 0 else 1.0


def _volatility_clustering(closes: np.ndarray) -> float:
    """Mean absolute change between consecutive absolute returns."""
    if len(closes) < 3:
        return 0.0
    abs_returns = np.abs(np.diff(closes) / closes[:-1])
    return float(np.abs(np.diff(abs_returns)).mean())


def _spread_proxy(bars: list[PriceBar]) -> float:
    recent = bars[-10:]
    if not recent:
        return 0.0
    return sum((b.high - b.low) / b.close for b in recent) / len(recent)


def _fractal_dimension(closes: np.ndarray) -> float:
    if len(closes) < 10:
        return 1.5
    log_returns = np.diff(np.log(closes))
    return 1.5 + 0.5 * math.tanh(float(np.var(log_returns)) * 100)


def _hurst_exponent(closes: np.ndarray) -> float:
    """Single-window rescaled-range estimate clamped to [0, 1]."""
    if len(closes) < 20:
        return 0.5
    log_returns = np.diff(np.log(closes))
    std = float(np.std(log_returns))
    if std == 0:
        return 0.5

    cumulative = np.cumsum(log_returns - log_returns.mean())
    rs = float(cumulative.max() - cumulative.min()) / std
    if rs <= 0:
        return 0.5
    return max(0.0, min(1.0, 0.5 + 0.3 * math.log(rs) / math.log(len(log_returns))))
