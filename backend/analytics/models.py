"""
Analytics Output Types
Dataclasses for analytics results.

All results are derived views over the Time-Series Store:
computed on demand, never stored, safe to cache and share.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Tuple


def _iso(ts: Optional[datetime]) -> Optional[str]:
    return ts.isoformat() if ts is not None else None


# =============================================================================
# STATISTICS
# =============================================================================

@dataclass(frozen=True)
class StatisticsResult:
    """
    Descriptive statistics over a window.

    Percentiles are nearest-rank; std_dev is the sample (n-1) estimate.
    """
    asset_id: str
    window_start: datetime
    window_end: datetime
    mean: float
    std_dev: float
    min: float
    max: float
    percentiles: Dict[str, float]   # p50, p90, p99
    sample_count: int
    volatility: float                # Std of simple returns
    vwap: Optional[float] = None
    total_volume: float = 0.0

    def to_dict(self) -> dict:
        return {
            "asset_id": self.asset_id,
            "window_start": _iso(self.window_start),
            "window_end": _iso(self.window_end),
            "mean": self.mean,
            "std_dev": self.std_dev,
            "min": self.min,
            "max": self.max,
            "percentiles": dict(self.percentiles),
            "sample_count": self.sample_count,
            "volatility": self.volatility,
            "vwap": self.vwap,
            "total_volume": self.total_volume,
        }


# =============================================================================
# SEASONAL DECOMPOSITION
# =============================================================================

@dataclass(frozen=True)
class SeasonalDecomposition:
    """
    Additive decomposition: observed = trend + seasonal + residual.

    Trend and residual are None at the edge points where the centered
    moving average is unavailable; edge_mask flags those points.
    """
    asset_id: str
    period: int
    timestamps: List[datetime]
    observed: List[float]
    trend: List[Optional[float]]
    seasonal: List[float]
    residual: List[Optional[float]]
    seasonal_index: List[float]      # One value per phase, sums to zero
    edge_mask: List[bool]
    peak_phase: int
    trough_phase: int
    seasonal_strength: float         # 0 = no seasonality, 1 = pure seasonality

    @property
    def trend_points(self) -> List[Tuple[int, float]]:
        """(index, value) for every point where the trend is estimated"""
        return [(i, t) for i, t in enumerate(self.trend) if t is not None]

    def to_dict(self) -> dict:
        return {
            "asset_id": self.asset_id,
            "period": self.period,
            "timestamps": [_iso(t) for t in self.timestamps],
            "observed": list(self.observed),
            "trend": list(self.trend),
            "seasonal": list(self.seasonal),
            "residual": list(self.residual),
            "seasonal_index": list(self.seasonal_index),
            "edge_mask": list(self.edge_mask),
            "peak_phase": self.peak_phase,
            "trough_phase": self.trough_phase,
            "seasonal_strength": self.seasonal_strength,
        }


# =============================================================================
# PREDICTION
# =============================================================================

class TrendDirection(str, Enum):
    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"


@dataclass(frozen=True)
class ForecastPoint:
    timestamp: datetime
    value: float


@dataclass(frozen=True)
class PredictionResult:
    """
    Trend + seasonal extrapolation with a widening confidence band.

    confidence_low/high align index-for-index with forecast.
    """
    asset_id: str
    horizon: int
    period: int
    forecast: List[ForecastPoint]
    confidence_low: List[float]
    confidence_high: List[float]
    trend_slope: float
    trend_direction: TrendDirection
    residual_std: float

    def to_dict(self) -> dict:
        return {
            "asset_id": self.asset_id,
            "horizon": self.horizon,
            "period": self.period,
            "forecast": [
                {"timestamp": _iso(p.timestamp), "value": p.value}
                for p in self.forecast
            ],
            "confidence_low": list(self.confidence_low),
            "confidence_high": list(self.confidence_high),
            "trend_slope": self.trend_slope,
            "trend_direction": self.trend_direction.value,
            "residual_std": self.residual_std,
        }


# =============================================================================
# RANKING & COMPARISON
# =============================================================================

METRIC_FIELDS = {
    "price": "latest_price",
    "trend": "trend_slope",
    "volatility": "volatility",
    "liquidity": "liquidity_depth",
}


@dataclass(frozen=True)
class AssetMetrics:
    """Per-asset inputs to ranking."""
    asset_id: str
    latest_price: float
    trend_slope: float
    volatility: float
    liquidity_depth: float

    def value(self, metric: str) -> float:
        return getattr(self, METRIC_FIELDS[metric])

    def to_dict(self) -> dict:
        return {
            "asset_id": self.asset_id,
            "latest_price": self.latest_price,
            "trend_slope": self.trend_slope,
            "volatility": self.volatility,
            "liquidity_depth": self.liquidity_depth,
        }


@dataclass(frozen=True)
class RankingEntry:
    asset_id: str
    score: float
    rank: int
    metrics: AssetMetrics
    normalized: Dict[str, float]

    def to_dict(self) -> dict:
        return {
            "rank": self.rank,
            "asset_id": self.asset_id,
            "score": self.score,
            "metrics": self.metrics.to_dict(),
            "normalized": dict(self.normalized),
        }


@dataclass(frozen=True)
class RankingResult:
    """Assets ordered by score desc, ties broken by asset_id asc."""
    weights: Dict[str, float]
    entries: List[RankingEntry] = field(default_factory=list)

    @property
    def order(self) -> List[str]:
        return [e.asset_id for e in self.entries]

    def to_dict(self) -> dict:
        return {
            "weights": dict(self.weights),
            "entries": [e.to_dict() for e in self.entries],
        }


@dataclass(frozen=True)
class ComparisonResult:
    """Head-to-head view of two assets over the same normalization."""
    asset_a: AssetMetrics
    asset_b: AssetMetrics
    weights: Dict[str, float]
    deltas: Dict[str, float]               # a - b
    relative: Dict[str, Optional[float]]   # (a - b) / |b| in percent
    normalized_a: Dict[str, float]
    normalized_b: Dict[str, float]
    score_a: float
    score_b: float

    @property
    def leader(self) -> Optional[str]:
        if self.score_a == self.score_b:
            return None
        return self.asset_a.asset_id if self.score_a > self.score_b else self.asset_b.asset_id

    def to_dict(self) -> dict:
        return {
            "asset_a": self.asset_a.to_dict(),
            "asset_b": self.asset_b.to_dict(),
            "weights": dict(self.weights),
            "deltas": dict(self.deltas),
            "relative": dict(self.relative),
            "normalized_a": dict(self.normalized_a),
            "normalized_b": dict(self.normalized_b),
            "score_a": self.score_a,
            "score_b": self.score_b,
            "leader": self.leader,
        }


# =============================================================================
# TIME SERIES VIEW
# =============================================================================

@dataclass(frozen=True)
class TimeSeriesSlice:
    """Raw samples for one asset over a window, ready for export."""
    asset_id: str
    window_start: Optional[datetime]
    window_end: Optional[datetime]
    timestamps: List[datetime]
    prices: List[float]
    volumes: List[float]

    def to_dict(self) -> dict:
        return {
            "asset_id": self.asset_id,
            "window_start": _iso(self.window_start),
            "window_end": _iso(self.window_end),
            "count": len(self.timestamps),
            "data": [
                {"timestamp": _iso(t), "price": p, "volume": v}
                for t, p, v in zip(self.timestamps, self.prices, self.volumes)
            ],
        }
