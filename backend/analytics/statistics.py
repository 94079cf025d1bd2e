"""
Statistics Engine
Descriptive statistics over a window of samples.

Update: Per query (results are cached by the analytics service)
Use: Market overview, project detail pages, reports
"""

import math
from typing import Dict, List, Optional, Sequence

import numpy as np

from core.errors import InsufficientData
from core.models import Sample, TimeWindow

from .models import StatisticsResult


PERCENTILES = (50, 90, 99)


def nearest_rank(sorted_values: Sequence[float], p: float) -> float:
    """
    Nearest-rank percentile.

    rank = ceil(p/100 * n), clamped to [1, n]. Always returns an observed value.
    """
    n = len(sorted_values)
    rank = max(1, math.ceil(p / 100.0 * n))
    return float(sorted_values[min(rank, n) - 1])


def simple_returns(prices: np.ndarray) -> np.ndarray:
    """(p[t] - p[t-1]) / p[t-1]"""
    if len(prices) < 2:
        return np.array([], dtype=float)
    return np.diff(prices) / prices[:-1]


def return_volatility(prices: np.ndarray) -> float:
    """Sample std of simple returns, 0 when fewer than two returns."""
    returns = simple_returns(prices)
    if len(returns) < 2:
        return 0.0
    return float(np.std(returns, ddof=1))


def compute_statistics(
    asset_id: str,
    samples: List[Sample],
    window: Optional[TimeWindow] = None
) -> StatisticsResult:
    """
    Compute statistics over the samples of one window.

    Args:
        asset_id: Asset the samples belong to
        samples: Chronological samples already restricted to the window
        window: Requested window; open bounds fall back to the data range

    Returns:
        StatisticsResult

    Raises:
        InsufficientData: window holds no samples
    """
    if not samples:
        raise InsufficientData(
            f"No samples for {asset_id} in the requested window",
            asset_id=asset_id, required=1, available=0
        )

    prices = np.array([s.price for s in samples], dtype=float)
    volumes = np.array([s.volume for s in samples], dtype=float)
    n = len(prices)

    ordered = np.sort(prices)
    percentiles: Dict[str, float] = {
        f"p{p}": nearest_rank(ordered, p) for p in PERCENTILES
    }

    total_volume = float(volumes.sum())
    vwap = float((prices * volumes).sum() / total_volume) if total_volume > 0 else None

    window_start = window.start if window is not None and window.start else samples[0].ts
    window_end = window.end if window is not None and window.end else samples[-1].ts

    return StatisticsResult(
        asset_id=asset_id,
        window_start=window_start,
        window_end=window_end,
        mean=float(prices.mean()),
        std_dev=float(np.std(prices, ddof=1)) if n > 1 else 0.0,
        min=float(ordered[0]),
        max=float(ordered[-1]),
        percentiles=percentiles,
        sample_count=n,
        volatility=return_volatility(prices),
        vwap=vwap,
        total_volume=total_volume,
    )
