"""
Seasonal Decomposition Engine
Classical additive decomposition: observed = trend + seasonal + residual.

Algorithm:
1. Trend = centered moving average of span `period`
   (2 x period average for even periods so the window stays centered)
2. Detrended = observed - trend at points where the trend exists
3. Seasonal index per phase (i % period) = mean detrended value,
   centered to sum to zero over one period
4. Residual = observed - trend - seasonal

The first and last period // 2 points have no trend estimate.
They are flagged in edge_mask and carry None for trend and residual.
"""

from typing import List

import numpy as np

from core.errors import InsufficientData
from core.models import Sample

from .models import SeasonalDecomposition


# Below this, seasonal + residual counts as flat
FLAT_VARIANCE = 1e-12


def min_samples(period: int) -> int:
    """Two full cycles are needed for a stable seasonal estimate."""
    return 2 * period


def moving_average_weights(period: int) -> np.ndarray:
    """
    Centered moving-average kernel.

    Odd period:  [1, ..., 1] / p          (p taps)
    Even period: [.5, 1, ..., 1, .5] / p  (p + 1 taps)
    """
    if period % 2 == 1:
        return np.full(period, 1.0 / period)
    weights = np.ones(period + 1)
    weights[0] = weights[-1] = 0.5
    return weights / period


def centered_trend(values: np.ndarray, period: int) -> np.ndarray:
    """
    Trend with NaN at the edges.

    Output has the same length as `values`.
    """
    half = period // 2
    trend = np.full(len(values), np.nan)
    smoothed = np.convolve(values, moving_average_weights(period), mode="valid")
    trend[half:half + len(smoothed)] = smoothed
    return trend


def seasonal_index(detrended: np.ndarray, period: int) -> np.ndarray:
    """Mean detrended value per phase, centered to sum to zero."""
    phases = np.arange(len(detrended)) % period
    index = np.zeros(period)
    for phase in range(period):
        values = detrended[(phases == phase) & ~np.isnan(detrended)]
        index[phase] = values.mean() if len(values) else 0.0
    return index - index.mean()


def seasonal_strength(seasonal: np.ndarray, residual: np.ndarray) -> float:
    """
    Share of non-trend variance explained by the seasonal component.

    max(0, 1 - var(residual) / var(seasonal + residual)), 0 when flat.
    """
    combined_var = float(np.var(seasonal + residual))
    if combined_var < FLAT_VARIANCE:
        return 0.0
    return max(0.0, 1.0 - float(np.var(residual)) / combined_var)


def _optional(values: np.ndarray) -> List:
    return [None if np.isnan(v) else float(v) for v in values]


def decompose(asset_id: str, samples: List[Sample], period: int) -> SeasonalDecomposition:
    """
    Decompose a window of samples.

    Args:
        asset_id: Asset the samples belong to
        samples: Chronological samples already restricted to the window
        period: Samples per seasonal cycle (>= 2)

    Returns:
        SeasonalDecomposition

    Raises:
        ValueError: period < 2
        InsufficientData: fewer than 2 x period samples
    """
    if period < 2:
        raise ValueError(f"period must be >= 2, got {period}")

    required = min_samples(period)
    if len(samples) < required:
        raise InsufficientData(
            f"Seasonal decomposition of {asset_id} needs {required} samples "
            f"for period {period}, have {len(samples)}",
            asset_id=asset_id, required=required, available=len(samples)
        )

    observed = np.array([s.price for s in samples], dtype=float)
    trend = centered_trend(observed, period)
    edge = np.isnan(trend)

    index = seasonal_index(observed - trend, period)
    seasonal = index[np.arange(len(observed)) % period]
    residual = observed - trend - seasonal

    return SeasonalDecomposition(
        asset_id=asset_id,
        period=period,
        timestamps=[s.ts for s in samples],
        observed=observed.tolist(),
        trend=_optional(trend),
        seasonal=seasonal.tolist(),
        residual=_optional(residual),
        seasonal_index=index.tolist(),
        edge_mask=edge.tolist(),
        peak_phase=int(np.argmax(index)),
        trough_phase=int(np.argmin(index)),
        seasonal_strength=seasonal_strength(seasonal[~edge], residual[~edge]),
    )
