"""
Ranking & Comparison Engine
Blended scoring of assets across price, trend, volatility and liquidity.

Each metric is min-max normalized across the candidate set
(0 when every candidate has the same value), then

    score = sum(weight_i * normalized_i)

Ordering is score descending, asset_id ascending on ties, so the
result never depends on the order candidates were passed in.
"""

import math
from typing import Dict, List, Optional, Sequence

import numpy as np
from scipy import stats

from core.errors import AssetNotFound, InvalidWeights
from core.models import Sample

from .models import (
    METRIC_FIELDS,
    AssetMetrics,
    ComparisonResult,
    RankingEntry,
    RankingResult,
)
from .statistics import return_volatility


WEIGHT_TOLERANCE = 1e-9

DEFAULT_WEIGHTS = {
    "price": 0.25,
    "trend": 0.25,
    "volatility": 0.25,
    "liquidity": 0.25,
}


# =============================================================================
# METRICS
# =============================================================================

def trend_slope(prices: np.ndarray) -> float:
    """OLS slope of price against sample index (price units per step)."""
    if len(prices) < 2:
        return 0.0
    slope, _, _, _, _ = stats.linregress(np.arange(len(prices)), prices)
    return float(slope)


def compute_metrics(asset_id: str, samples: List[Sample], liquidity_depth: float) -> AssetMetrics:
    """
    Ranking inputs for one asset.

    Raises:
        AssetNotFound: no samples for the asset
    """
    if not samples:
        raise AssetNotFound(asset_id)

    prices = np.array([s.price for s in samples], dtype=float)
    return AssetMetrics(
        asset_id=asset_id,
        latest_price=float(prices[-1]),
        trend_slope=trend_slope(prices),
        volatility=return_volatility(prices),
        liquidity_depth=float(liquidity_depth),
    )


# =============================================================================
# WEIGHTS & NORMALIZATION
# =============================================================================

def validate_weights(weights: Dict[str, float]) -> Dict[str, float]:
    """
    Check a weight map and return it as plain floats.

    Raises:
        InvalidWeights: unknown metric, negative weight, or sum != 1
    """
    unknown = sorted(set(weights) - set(METRIC_FIELDS))
    if unknown:
        raise InvalidWeights(
            f"Unknown metrics {unknown}; expected a subset of {sorted(METRIC_FIELDS)}",
            unknown=unknown
        )

    cleaned = {k: float(v) for k, v in weights.items()}
    negative = sorted(k for k, v in cleaned.items() if v < 0 or math.isnan(v))
    if negative:
        raise InvalidWeights(f"Weights must be non-negative: {negative}", metrics=negative)

    total = math.fsum(cleaned.values())
    if abs(total - 1.0) > WEIGHT_TOLERANCE:
        raise InvalidWeights(f"Weights must sum to 1, got {total}", total=total)

    return cleaned


def normalize(values: Sequence[float]) -> List[float]:
    """Min-max to [0, 1]; all zeros when the values are identical."""
    lo, hi = min(values), max(values)
    span = hi - lo
    if span == 0:
        return [0.0] * len(values)
    return [(v - lo) / span for v in values]


def _normalized_table(candidates: Sequence[AssetMetrics]) -> List[Dict[str, float]]:
    table: List[Dict[str, float]] = [{} for _ in candidates]
    for metric in sorted(METRIC_FIELDS):
        column = normalize([m.value(metric) for m in candidates])
        for row, value in zip(table, column):
            row[metric] = value
    return table


def _score(normalized: Dict[str, float], weights: Dict[str, float]) -> float:
    # Fixed summation order keeps scores bit-identical across calls
    return math.fsum(weights[k] * normalized[k] for k in sorted(weights))


# =============================================================================
# RANKING
# =============================================================================

def rank(candidates: Sequence[AssetMetrics], weights: Dict[str, float]) -> RankingResult:
    """
    Rank assets by weighted normalized score.

    Args:
        candidates: Metrics per asset (any order)
        weights: Metric weights summing to 1

    Returns:
        RankingResult ordered by score desc, asset_id asc
    """
    weights = validate_weights(weights)
    if not candidates:
        return RankingResult(weights=weights, entries=[])

    # Canonical order first so normalization input is order independent
    candidates = sorted(candidates, key=lambda m: m.asset_id)
    table = _normalized_table(candidates)
    scored = [
        (_score(norm, weights), metrics, norm)
        for metrics, norm in zip(candidates, table)
    ]
    scored.sort(key=lambda item: (-item[0], item[1].asset_id))

    entries = [
        RankingEntry(
            asset_id=metrics.asset_id,
            score=score,
            rank=position,
            metrics=metrics,
            normalized=norm,
        )
        for position, (score, metrics, norm) in enumerate(scored, start=1)
    ]
    return RankingResult(weights=weights, entries=entries)


# =============================================================================
# COMPARISON
# =============================================================================

def _relative(a: float, b: float) -> Optional[float]:
    if b == 0:
        return None
    return (a - b) / abs(b) * 100.0


def compare(
    metrics_a: AssetMetrics,
    metrics_b: AssetMetrics,
    weights: Optional[Dict[str, float]] = None
) -> ComparisonResult:
    """
    Head-to-head comparison over the same normalization as rank().

    Deltas are a - b; relative differences are percent of |b|
    (None when b is zero).
    """
    weights = validate_weights(weights if weights is not None else DEFAULT_WEIGHTS)
    norm_a, norm_b = _normalized_table([metrics_a, metrics_b])

    deltas = {}
    relative = {}
    for metric in sorted(METRIC_FIELDS):
        a, b = metrics_a.value(metric), metrics_b.value(metric)
        deltas[metric] = a - b
        relative[metric] = _relative(a, b)

    return ComparisonResult(
        asset_a=metrics_a,
        asset_b=metrics_b,
        weights=weights,
        deltas=deltas,
        relative=relative,
        normalized_a=norm_a,
        normalized_b=norm_b,
        score_a=_score(norm_a, weights),
        score_b=_score(norm_b, weights),
    )
