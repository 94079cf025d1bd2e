"""
Analytics Service
Reads from the Time-Series Store and runs the analytics engines.

Results are cached under (operation, asset_id, latest sample timestamp,
parameters): a new sample changes the key, so stale results are never
served and nothing has to be invalidated explicitly.
"""

import logging
import threading
from collections import OrderedDict
from datetime import datetime
from typing import Callable, Dict, Hashable, Optional, Sequence

from core.engine import IngestionEngine, get_engine
from core.errors import AssetNotFound
from core.models import TimeWindow

from .models import (
    AssetMetrics,
    ComparisonResult,
    PredictionResult,
    RankingResult,
    SeasonalDecomposition,
    StatisticsResult,
    TimeSeriesSlice,
)
from .prediction import predict
from .ranking import DEFAULT_WEIGHTS, compare, compute_metrics, rank, validate_weights
from .seasonal import decompose
from .statistics import compute_statistics


logger = logging.getLogger(__name__)

LiquidityProvider = Callable[[str], float]


class ResultCache:
    """Bounded LRU keyed by hashable tuples. Thread-safe."""

    def __init__(self, max_size: int = 256):
        self.max_size = max_size
        self._data: "OrderedDict[Hashable, object]" = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get_or_compute(self, key: Hashable, compute: Callable[[], object]):
        if self.max_size <= 0:
            return compute()
        with self._lock:
            if key in self._data:
                self._data.move_to_end(key)
                self.hits += 1
                return self._data[key]
            self.misses += 1

        # Computed outside the lock; a concurrent duplicate just overwrites
        value = compute()
        with self._lock:
            self._data[key] = value
            self._data.move_to_end(key)
            while len(self._data) > self.max_size:
                self._data.popitem(last=False)
        return value

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def stats(self) -> dict:
        return {"size": len(self._data), "max_size": self.max_size, "hits": self.hits, "misses": self.misses}


class AnalyticsService:
    """
    Analytics over the ingestion engine's store.

    Usage:
        service = AnalyticsService(engine)
        stats = service.statistics("mangrove")
        forecast = service.prediction("mangrove", horizon=6, period=4)
    """

    def __init__(
        self,
        engine: Optional[IngestionEngine] = None,
        liquidity_provider: Optional[LiquidityProvider] = None,
        default_period: int = 12,
        max_horizon: int = 365,
        metrics_lookback: int = 90,
        cache_size: int = 256,
    ):
        self.engine = engine or get_engine()
        self._liquidity_provider = liquidity_provider
        self.default_period = default_period
        self.max_horizon = max_horizon
        self.metrics_lookback = metrics_lookback
        self.cache = ResultCache(cache_size)

    def set_liquidity_provider(self, provider: LiquidityProvider) -> None:
        self._liquidity_provider = provider

    # =========================================================================
    # Helpers
    # =========================================================================

    def _latest_ts(self, asset_id: str) -> datetime:
        latest = self.engine.store.latest(asset_id)
        if latest is None:
            raise AssetNotFound(asset_id)
        return latest.ts

    def _key(self, op: str, asset_id: str, *params) -> tuple:
        return (op, asset_id, self._latest_ts(asset_id), params)

    def _liquidity(self, asset_id: str) -> float:
        if self._liquidity_provider is not None:
            return self._liquidity_provider(asset_id)
        latest = self.engine.store.latest(asset_id)
        return latest.volume if latest else 0.0

    # =========================================================================
    # Operations
    # =========================================================================

    def time_series(
        self,
        asset_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None
    ) -> TimeSeriesSlice:
        window = TimeWindow(start=start, end=end)
        samples = self.engine.require_samples(asset_id, window.start, window.end)
        return TimeSeriesSlice(
            asset_id=asset_id,
            window_start=window.start,
            window_end=window.end,
            timestamps=[s.ts for s in samples],
            prices=[s.price for s in samples],
            volumes=[s.volume for s in samples],
        )

    def statistics(
        self,
        asset_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None
    ) -> StatisticsResult:
        window = TimeWindow(start=start, end=end)
        key = self._key("statistics", asset_id, window.start, window.end)

        def compute():
            samples = self.engine.require_samples(asset_id, window.start, window.end)
            return compute_statistics(asset_id, samples, window)

        return self.cache.get_or_compute(key, compute)

    def seasonal(
        self,
        asset_id: str,
        period: Optional[int] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None
    ) -> SeasonalDecomposition:
        period = period or self.default_period
        window = TimeWindow(start=start, end=end)
        key = self._key("seasonal", asset_id, period, window.start, window.end)

        def compute():
            samples = self.engine.require_samples(asset_id, window.start, window.end)
            return decompose(asset_id, samples, period)

        return self.cache.get_or_compute(key, compute)

    def prediction(
        self,
        asset_id: str,
        horizon: int,
        period: Optional[int] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None
    ) -> PredictionResult:
        if horizon > self.max_horizon:
            raise ValueError(f"horizon must be <= {self.max_horizon}, got {horizon}")
        period = period or self.default_period
        window = TimeWindow(start=start, end=end)
        key = self._key("prediction", asset_id, horizon, period, window.start, window.end)

        def compute():
            samples = self.engine.require_samples(asset_id, window.start, window.end)
            return predict(asset_id, samples, horizon, period)

        return self.cache.get_or_compute(key, compute)

    def metrics(self, asset_id: str) -> AssetMetrics:
        """
        Ranking inputs over the last metrics_lookback samples.

        Price-derived values are cached; liquidity is read fresh because
        fills change it without adding samples.
        """
        key = self._key("metrics", asset_id, self.metrics_lookback)

        def compute():
            samples = self.engine.require_samples(asset_id)[-self.metrics_lookback:]
            return compute_metrics(asset_id, samples, 0.0)

        base = self.cache.get_or_compute(key, compute)
        return AssetMetrics(
            asset_id=base.asset_id,
            latest_price=base.latest_price,
            trend_slope=base.trend_slope,
            volatility=base.volatility,
            liquidity_depth=float(self._liquidity(asset_id)),
        )

    def rankings(
        self,
        asset_ids: Optional[Sequence[str]] = None,
        weights: Optional[Dict[str, float]] = None
    ) -> RankingResult:
        """Rank the given assets, or every asset in the store."""
        weights = validate_weights(weights if weights is not None else DEFAULT_WEIGHTS)
        ids = sorted(set(asset_ids)) if asset_ids else self.engine.get_assets()
        return rank([self.metrics(a) for a in ids], weights)

    def comparison(
        self,
        asset_a: str,
        asset_b: str,
        weights: Optional[Dict[str, float]] = None
    ) -> ComparisonResult:
        return compare(self.metrics(asset_a), self.metrics(asset_b), weights)

    def stats(self) -> dict:
        return {"cache": self.cache.stats()}


# =============================================================================
# Singleton
# =============================================================================

_service: Optional[AnalyticsService] = None


def get_analytics_service() -> AnalyticsService:
    """Get singleton analytics service wired to the order engine's liquidity"""
    global _service
    if _service is None:
        from core.config import get_settings
        from execution import get_order_engine
        settings = get_settings()
        _service = AnalyticsService(
            engine=get_engine(),
            liquidity_provider=get_order_engine().available_liquidity,
            default_period=settings.default_period,
            max_horizon=settings.max_horizon,
            metrics_lookback=settings.metrics_lookback,
            cache_size=settings.cache_size,
        )
        logger.info("Analytics service ready (cache size %d)", settings.cache_size)
    return _service
