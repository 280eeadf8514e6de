"""
SignalForge — Pydantic Models

All I/O schemas for the engine. Engines return these, the orchestrating
caller persists and broadcasts these, consumers serialize these.
"""

from __future__ import annotations

import datetime as dt
from enum import Enum
from typing import Annotated, Any, Iterable, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, model_validator


# ──────────────────────────────────────────────
# Enums
# ──────────────────────────────────────────────

class Direction(str, Enum):
    """Directional bias of a signal, pattern, or model score."""
    BULLISH = "bullish"
    BEARISH = "bearish"
    NEUTRAL = "neutral"


class Trend(str, Enum):
    """Short-term trend classification."""
    UPWARD = "upward"
    DOWNWARD = "downward"
    SIDEWAYS = "sideways"


class BandPosition(str, Enum):
    """Where the close sits inside the Bollinger envelope."""
    UPPER = "upper"
    MIDDLE = "middle"
    LOWER = "lower"


class OscillatorSignal(str, Enum):
    OVERBOUGHT = "overbought"
    OVERSOLD = "oversold"
    NEUTRAL = "neutral"


class VolatilityClass(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"


class LevelStrength(str, Enum):
    """Support/resistance strength by touch count."""
    STRONG = "strong"
    MODERATE = "moderate"
    WEAK = "weak"


class LevelType(str, Enum):
    SUPPORT = "support"
    RESISTANCE = "resistance"


class VolumeTrend(str, Enum):
    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"


class VolumeStrength(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class SpikeSignificance(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class PatternAction(str, Enum):
    """Action suggested by the pattern recognition summary."""
    BUY = "buy"
    SELL = "sell"
    HOLD = "hold"
    WATCH = "watch"


# ──────────────────────────────────────────────
# Market Data Models
# ──────────────────────────────────────────────

class PriceBar(BaseModel):
    """Single daily OHLCV bar. Immutable once built."""
    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    date: dt.date
    open: float = Field(gt=0)
    high: float = Field(gt=0)
    low: float = Field(gt=0)
    close: float = Field(gt=0)
    volume: int = Field(ge=0)

    @model_validator(mode="after")
    def _check_ordering(self) -> "PriceBar":
        if self.high < max(self.open, self.close) or self.low > min(self.open, self.close):
            raise ValueError(
                f"Inconsistent bar on {self.date}: high={self.high} low={self.low} "
                f"open={self.open} close={self.close}"
            )
        return self


class TrackedStock(BaseModel):
    """A symbol tracked by the repository, with its live-updated quote."""
    symbol: str
    name: str = ""
    current_price: float = 0.0
    previous_close: float = 0.0
    change_percent: float = 0.0
    volume: int = 0


# ──────────────────────────────────────────────
# Indicator Models
# ──────────────────────────────────────────────

class MACDValues(BaseModel):
    macd: float = 0.0
    signal: float = 0.0
    histogram: float = 0.0


class BollingerBands(BaseModel):
    upper: float
    middle: float
    lower: float


class StochasticValues(BaseModel):
    k: float = Field(default=50.0, ge=0, le=100)
    d: float = Field(default=50.0, ge=0, le=100)
    signal: OscillatorSignal = OscillatorSignal.NEUTRAL


class WilliamsRValues(BaseModel):
    value: float = Field(default=-50.0, ge=-100, le=0)
    signal: OscillatorSignal = OscillatorSignal.NEUTRAL


class ATRValues(BaseModel):
    value: float = 0.0
    normalized: float = 0.0  # ATR as % of close


class VolatilityRegime(BaseModel):
    """Short-window volatility ranked against its own rolling history."""
    historical_volatility: float = 0.0
    average_volatility: float = 0.0
    rank: float = Field(default=50.0, ge=0, le=100)
    regime: VolatilityClass = VolatilityClass.NORMAL


class IndicatorSet(BaseModel):
    """Per-call indicator bundle. Recomputed on every invocation."""
    rsi: float = Field(default=50.0, ge=0, le=100)
    sma20: float = 0.0
    sma50: float = 0.0
    sma200: float = 0.0
    ema9: float = 0.0
    ema12: float = 0.0
    ema26: float = 0.0
    macd: MACDValues = Field(default_factory=MACDValues)
    bollinger: BollingerBands
    stochastic: StochasticValues = Field(default_factory=StochasticValues)
    williams_r: WilliamsRValues = Field(default_factory=WilliamsRValues)
    atr: ATRValues = Field(default_factory=ATRValues)
    volatility: float = 0.2
    volatility_regime: VolatilityRegime = Field(default_factory=VolatilityRegime)
    trend: Trend = Trend.SIDEWAYS
    bollinger_position: BandPosition = BandPosition.MIDDLE
    volume: int = 0
    avg_volume: float = 0.0


class VolumeSpike(BaseModel):
    date: dt.date
    volume: int
    ratio: float
    significance: SpikeSignificance


class VolumeAnalysis(BaseModel):
    current_volume: int = 0
    avg_volume: float = 0.0
    volume_ratio: float = 0.0
    vwap: float = 0.0
    volume_spikes: list[VolumeSpike] = Field(default_factory=list)
    volume_trend: VolumeTrend = VolumeTrend.STABLE
    volume_strength: VolumeStrength = VolumeStrength.LOW


# ──────────────────────────────────────────────
# Pattern Models (tagged by `type`)
# ──────────────────────────────────────────────

CandlestickType = Literal[
    "doji",
    "hammer",
    "hanging_man",
    "bullish_engulfing",
    "bearish_engulfing",
    "morning_star",
    "evening_star",
]

ChartType = Literal[
    "double_top",
    "double_bottom",
    "head_and_shoulders",
    "inverse_head_and_shoulders",
    "ascending_triangle",
    "descending_triangle",
    "symmetrical_triangle",
    "rising_wedge",
    "falling_wedge",
    "bull_flag",
    "bear_flag",
]

DayTradingType = Literal[
    "flag",
    "pennant",
    "double_top",
    "double_bottom",
    "head_shoulders",
    "inverse_head_shoulders",
    "triangle",
    "none",
]


class CandlestickPattern(BaseModel):
    """One to three bar formation ending on `date`."""
    type: CandlestickType
    confidence: float = Field(ge=0, le=1)
    direction: Direction
    significance: LevelStrength
    reliability: float = Field(ge=0, le=1)
    date: dt.date
    timeframe: str = "daily"
    description: str = ""


class ChartPattern(BaseModel):
    """Multi-week formation with a fixed-offset target and stop."""
    type: ChartType
    confidence: float = Field(ge=0, le=1)
    direction: Direction
    breakout_target: float
    stop_loss: float
    pattern_start: dt.date
    pattern_end: dt.date
    volume_confirmation: bool = False
    timeframe: str = "daily"
    description: str = ""


class DayTradingPattern(BaseModel):
    """Short-horizon setup scored by the signal fusion step."""
    type: DayTradingType
    confidence: float = Field(ge=0, le=1)
    direction: Direction
    entry_point: float
    target_price: float
    stop_loss: float
    timeframe: str = "1d"
    description: str = ""


RecognizedPattern = Annotated[
    Union[CandlestickPattern, ChartPattern],
    Field(discriminator="type"),
]

_RECOGNIZED_PATTERNS = TypeAdapter(list[RecognizedPattern])


class PatternSummary(BaseModel):
    bullish_signals: int = 0
    bearish_signals: int = 0
    neutral_signals: int = 0
    overall_sentiment: Direction = Direction.NEUTRAL
    confidence: float = Field(default=0.0, ge=0, le=1)


class PatternRecognition(BaseModel):
    candlestick_patterns: list[CandlestickPattern] = Field(default_factory=list)
    chart_patterns: list[ChartPattern] = Field(default_factory=list)
    pattern_summary: PatternSummary = Field(default_factory=PatternSummary)
    pattern_score: float = Field(default=0.5, ge=0, le=1)
    recommended_action: PatternAction = PatternAction.HOLD

    @classmethod
    def from_patterns(cls, patterns: Iterable[Any], **fields: Any) -> PatternRecognition:
        """Route a mixed list of patterns (models or raw dicts) by their `type` tag."""
        parsed = _RECOGNIZED_PATTERNS.validate_python(list(patterns))
        return cls(
            candlestick_patterns=[p for p in parsed if isinstance(p, CandlestickPattern)],
            chart_patterns=[p for p in parsed if isinstance(p, ChartPattern)],
            **fields,
        )

    @property
    def all_patterns(self) -> list[RecognizedPattern]:
        return [*self.candlestick_patterns, *self.chart_patterns]


# ──────────────────────────────────────────────
# Support / Resistance Models
# ──────────────────────────────────────────────

class PriceZone(BaseModel):
    upper: float
    lower: float


class SupportResistanceLevel(BaseModel):
    price: float
    strength: LevelStrength
    type: LevelType
    touches: int = Field(ge=0)
    confidence: float = Field(ge=0, le=1)
    zone: PriceZone
    timeframe: str = "daily"
    last_tested: Optional[dt.date] = None


class PivotPoints(BaseModel):
    """Classic floor-trader pivots from the most recent bar."""
    pivot: float
    r1: float
    r2: float
    r3: float
    s1: float
    s2: float
    s3: float


class KeyZone(BaseModel):
    price: float
    type: LevelType
    strength: float = Field(ge=0, le=1)


class SupportResistanceAnalysis(BaseModel):
    current_support: float
    current_resistance: float
    support_levels: list[SupportResistanceLevel] = Field(default_factory=list)
    resistance_levels: list[SupportResistanceLevel] = Field(default_factory=list)
    pivot_points: PivotPoints
    key_zones: list[KeyZone] = Field(default_factory=list)


# ──────────────────────────────────────────────
# Ensemble Models
# ──────────────────────────────────────────────

class ModelScore(BaseModel):
    """Output of one scoring heuristic."""
    source: str
    value: float = Field(ge=-1, le=1)
    confidence: float = Field(ge=0, le=1)
    direction: Direction
    rationale: str = ""


class EnsembleResult(BaseModel):
    """Confidence-weighted combination of heuristic scores."""
    value: float = Field(ge=-1, le=1)
    direction: Direction
    confidence: float = Field(ge=0, le=1)
    weights: dict[str, float] = Field(default_factory=dict)
    rationale: str = ""


class ModelPredictions(BaseModel):
    """Signed headline values averaged by the signal fusion step."""
    feature_weighted: float = Field(default=0.0, ge=-1, le=1)
    band_reversion: float = Field(default=0.0, ge=-1, le=1)
    ensemble: float = Field(default=0.0, ge=-1, le=1)
    momentum: float = Field(default=0.0, ge=-1, le=1)
    mean_reversion: float = Field(default=0.0, ge=-1, le=1)

    def average(self) -> float:
        values = [
            self.feature_weighted,
            self.band_reversion,
            self.ensemble,
            self.momentum,
            self.mean_reversion,
        ]
        return sum(values) / len(values)


# ──────────────────────────────────────────────
# Final Output
# ──────────────────────────────────────────────

class BreakoutStrategy(BaseModel):
    """Composite trading signal for one (symbol, series) call."""
    model_config = ConfigDict(frozen=True)

    symbol: str
    signal: Direction = Direction.NEUTRAL
    probability: float = Field(default=0.5, ge=0, le=1)
    confidence: float = Field(default=0.1, ge=0, le=100)
    support_level: float = 0.0
    resistance_level: float = 0.0
    current_trend: Trend = Trend.SIDEWAYS
    volatility: float = 0.2
    rsi: float = Field(default=50.0, ge=0, le=100)
    bollinger_position: BandPosition = BandPosition.MIDDLE
    recommendation: str = ""
    reason: Optional[str] = None
    last_calculated: Optional[dt.datetime] = None
    day_trading_patterns: list[DayTradingPattern] = Field(default_factory=list)
    pattern_recognition: PatternRecognition = Field(default_factory=PatternRecognition)
    technical_indicators: Optional[IndicatorSet] = None
    volume_analysis: VolumeAnalysis = Field(default_factory=VolumeAnalysis)
    support_resistance: Optional[SupportResistanceAnalysis] = None
    model_predictions: ModelPredictions = Field(default_factory=ModelPredictions)
    model_scores: list[ModelScore] = Field(default_factory=list)
    ensemble: Optional[EnsembleResult] = None

    def to_dict(self) -> dict:
        return self.model_dump(mode="json")


class TechnicalContext(BaseModel):
    rsi: float
    current_trend: Trend
    volatility: float
    support_level: float
    resistance_level: float


class PatternAnalysis(BaseModel):
    """Pattern recognition for one symbol plus the technical backdrop."""
    symbol: str
    current_price: float = 0.0
    last_updated: Optional[dt.datetime] = None
    pattern_recognition: Optional[PatternRecognition] = None
    technical_context: Optional[TechnicalContext] = None
    error: Optional[str] = None
