"""
Comparison API
Ranking and head-to-head comparison of assets.

Weights are passed as query parameters (price, trend, volatility,
liquidity) and must sum to 1. With none given, all four are weighted
equally.
"""

from typing import Dict, Optional

from fastapi import APIRouter, Query

from analytics import get_analytics_service

from .errors import ok

router = APIRouter(prefix="/comparison", tags=["Comparison"])


def _weights(
    price: Optional[float],
    trend: Optional[float],
    volatility: Optional[float],
    liquidity: Optional[float]
) -> Optional[Dict[str, float]]:
    given = {
        "price": price,
        "trend": trend,
        "volatility": volatility,
        "liquidity": liquidity,
    }
    weights = {k: v for k, v in given.items() if v is not None}
    return weights or None


@router.get("/rankings")
async def get_rankings(
    assets: Optional[str] = Query(default=None, description="Comma-separated asset ids (default: all)"),
    price: Optional[float] = Query(default=None),
    trend: Optional[float] = Query(default=None),
    volatility: Optional[float] = Query(default=None),
    liquidity: Optional[float] = Query(default=None)
):
    asset_ids = [a.strip() for a in assets.split(",") if a.strip()] if assets else None
    result = get_analytics_service().rankings(
        asset_ids, _weights(price, trend, volatility, liquidity)
    )
    return ok(result.to_dict())


@router.get("")
async def compare_projects(
    asset_a: str = Query(...),
    asset_b: str = Query(...),
    price: Optional[float] = Query(default=None),
    trend: Optional[float] = Query(default=None),
    volatility: Optional[float] = Query(default=None),
    liquidity: Optional[float] = Query(default=None)
):
    result = get_analytics_service().comparison(
        asset_a, asset_b, _weights(price, trend, volatility, liquidity)
    )
    return ok(result.to_dict())
