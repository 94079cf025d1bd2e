"""
Prediction Engine
Forecast = linear trend extrapolation + cyclic seasonal index.

Builds on the seasonal decomposition:
- Trend is extended through its last two estimated points
- The seasonal index for each future phase is added back
- Confidence band = +/- 1.96 x residual std x sqrt(steps ahead)
"""

import math
from datetime import timedelta
from typing import List

import numpy as np

from core.models import Sample

from .models import ForecastPoint, PredictionResult, TrendDirection
from .seasonal import decompose


Z_95 = 1.96
# Slope below 0.1% of the trend level per step counts as flat
STABLE_THRESHOLD = 0.001


def median_step(samples: List[Sample]) -> timedelta:
    """Typical spacing between samples, used to place forecast timestamps."""
    seconds = np.diff([s.ts.timestamp() for s in samples])
    return timedelta(seconds=float(np.median(seconds)))


def classify_trend(slope: float, level: float) -> TrendDirection:
    if abs(slope) <= STABLE_THRESHOLD * abs(level):
        return TrendDirection.STABLE
    return TrendDirection.INCREASING if slope > 0 else TrendDirection.DECREASING


def predict(asset_id: str, samples: List[Sample], horizon: int, period: int) -> PredictionResult:
    """
    Forecast `horizon` steps past the last sample.

    Args:
        asset_id: Asset the samples belong to
        samples: Chronological samples used to fit the decomposition
        horizon: Number of future steps (>= 1)
        period: Seasonal period passed to the decomposition

    Returns:
        PredictionResult

    Raises:
        ValueError: horizon < 1 or period < 2
        InsufficientData: decomposition failed
    """
    if horizon < 1:
        raise ValueError(f"horizon must be >= 1, got {horizon}")

    decomposition = decompose(asset_id, samples, period)

    trend_points = decomposition.trend_points
    (i_prev, t_prev), (i_last, t_last) = trend_points[-2], trend_points[-1]
    slope = (t_last - t_prev) / (i_last - i_prev)

    residuals = np.array([r for r in decomposition.residual if r is not None])
    residual_std = float(np.std(residuals, ddof=1)) if len(residuals) > 1 else 0.0

    n = len(samples)
    step = median_step(samples)
    last_ts = samples[-1].ts
    index = decomposition.seasonal_index

    forecast: List[ForecastPoint] = []
    low: List[float] = []
    high: List[float] = []
    for ahead in range(1, horizon + 1):
        position = n - 1 + ahead
        value = t_last + slope * (position - i_last) + index[position % period]
        width = Z_95 * residual_std * math.sqrt(ahead)
        forecast.append(ForecastPoint(timestamp=last_ts + step * ahead, value=float(value)))
        low.append(float(value - width))
        high.append(float(value + width))

    return PredictionResult(
        asset_id=asset_id,
        horizon=horizon,
        period=period,
        forecast=forecast,
        confidence_low=low,
        confidence_high=high,
        trend_slope=float(slope),
        trend_direction=classify_trend(slope, t_last),
        residual_std=residual_std,
    )
