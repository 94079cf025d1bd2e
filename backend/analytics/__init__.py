"""
Analytics Module
Carbon market analytics over the Time-Series Store.

Structure:
    analytics/
    ├── models.py      → Output types (dataclasses)
    ├── statistics.py  → Descriptive statistics
    ├── seasonal.py    → Additive seasonal decomposition
    ├── prediction.py  → Trend + seasonal forecast
    ├── ranking.py     → Ranking & head-to-head comparison
    ├── export.py      → JSON / CSV reports
    └── service.py     → Store-backed, cached entry point

Usage:
    from analytics import get_analytics_service

    service = get_analytics_service()
    stats = service.statistics("mangrove")
    ranking = service.rankings(["mangrove", "seagrass"], {"price": 0.5, "volatility": 0.5})

Design Principles:
    ✓ Engine functions are PURE (samples in, result out)
    ✓ NO database access outside the service
    ✓ Results are never stored, only cached
"""

from .models import (
    StatisticsResult,
    SeasonalDecomposition,
    PredictionResult,
    ForecastPoint,
    TrendDirection,
    AssetMetrics,
    RankingEntry,
    RankingResult,
    ComparisonResult,
    TimeSeriesSlice,
)
from .statistics import compute_statistics
from .seasonal import decompose
from .prediction import predict
from .ranking import compute_metrics, validate_weights, rank, compare, DEFAULT_WEIGHTS
from .export import ExportFormat, export_result
from .service import AnalyticsService, get_analytics_service

__all__ = [
    # Types
    "StatisticsResult",
    "SeasonalDecomposition",
    "PredictionResult",
    "ForecastPoint",
    "TrendDirection",
    "AssetMetrics",
    "RankingEntry",
    "RankingResult",
    "ComparisonResult",
    "TimeSeriesSlice",
    # Engines
    "compute_statistics",
    "decompose",
    "predict",
    "compute_metrics",
    "validate_weights",
    "rank",
    "compare",
    "DEFAULT_WEIGHTS",
    # Export
    "ExportFormat",
    "export_result",
    # Service
    "AnalyticsService",
    "get_analytics_service",
]
