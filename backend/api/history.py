"""
History API
Time series, statistics, seasonal decomposition and forecasts per asset.
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Query

from analytics import get_analytics_service

from .errors import ok

router = APIRouter(prefix="/history", tags=["History"])


@router.get("/timeseries/{asset_id}")
async def get_time_series(
    asset_id: str,
    start: Optional[datetime] = Query(default=None),
    end: Optional[datetime] = Query(default=None)
):
    """Raw samples in [start, end]."""
    return ok(get_analytics_service().time_series(asset_id, start, end).to_dict())


@router.get("/statistics/{asset_id}")
async def get_statistics(
    asset_id: str,
    start: Optional[datetime] = Query(default=None),
    end: Optional[datetime] = Query(default=None)
):
    """
    Descriptive statistics over a window.

    Returns:
        mean, std_dev, min, max, p50/p90/p99, volatility, vwap
    """
    return ok(get_analytics_service().statistics(asset_id, start, end).to_dict())


@router.get("/seasonal/{asset_id}")
async def get_seasonal_analysis(
    asset_id: str,
    period: Optional[int] = Query(default=None, ge=2, description="Samples per cycle"),
    start: Optional[datetime] = Query(default=None),
    end: Optional[datetime] = Query(default=None)
):
    """Additive trend / seasonal / residual decomposition."""
    return ok(get_analytics_service().seasonal(asset_id, period, start, end).to_dict())


@router.get("/prediction/{asset_id}")
async def get_prediction(
    asset_id: str,
    horizon: int = Query(default=12, ge=1, description="Steps to forecast"),
    period: Optional[int] = Query(default=None, ge=2),
    start: Optional[datetime] = Query(default=None),
    end: Optional[datetime] = Query(default=None)
):
    """Trend + seasonal forecast with a 95% confidence band."""
    return ok(get_analytics_service().prediction(asset_id, horizon, period, start, end).to_dict())
