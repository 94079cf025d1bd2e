"""
Market API
Price history, market summary and order execution.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from core import get_engine, AssetNotFound, INTERVAL_SECONDS
from execution import get_order_engine

from .errors import actor_id, ok

router = APIRouter(prefix="/market", tags=["Market"])


class PlaceOrderRequest(BaseModel):
    """
    Order request.

    The execution engine checks the fields itself so that every
    attempt, valid or not, leaves an audit entry.
    """
    asset_id: str = Field(min_length=1, max_length=64)
    side: str
    amount: Optional[float] = None
    slippage_tolerance_pct: float = 1.0
    reference_price: Optional[float] = None


@router.get("/price-history/{asset_id}")
async def get_price_history(
    asset_id: str,
    days: int = Query(default=30, ge=1, le=365),
    interval: str = Query(default="1d", description=", ".join(INTERVAL_SECONDS))
):
    """OHLC bars covering the last `days` days of data."""
    if interval not in INTERVAL_SECONDS:
        raise HTTPException(400, f"Unknown interval '{interval}'")

    bars = get_engine().get_price_history(asset_id, days, interval)
    return ok({
        "asset_id": asset_id,
        "days": days,
        "interval": interval,
        "count": len(bars),
        "bars": [
            {
                "timestamp": b.ts.isoformat(),
                "open": b.open,
                "high": b.high,
                "low": b.low,
                "close": b.close,
                "volume": b.volume,
                "samples": b.sample_count
            }
            for b in bars
        ]
    })


@router.get("/assets")
async def list_assets():
    engine = get_engine()
    order_engine = get_order_engine()
    assets = []
    for asset_id in engine.get_assets():
        latest = engine.store.latest(asset_id)
        assets.append({
            "asset_id": asset_id,
            "latest_price": latest.price,
            "latest_timestamp": latest.ts.isoformat(),
            "available_liquidity": order_engine.available_liquidity(asset_id),
            "samples": engine.store.count(asset_id),
        })
    return ok(assets)


@router.get("/stats")
async def get_market_stats():
    """Trading summary plus ingestion statistics"""
    return ok({
        "trading": get_order_engine().stats(),
        "ingestion": get_engine().stats(),
    })


@router.post("/order")
async def place_order(request: PlaceOrderRequest, actor: str = Depends(actor_id)):
    """
    Execute a buy or sell order.

    Rejections (slippage, liquidity, limits) are a normal response
    with status "rejected".
    """
    result = get_order_engine().place_order(
        asset_id=request.asset_id.strip(),
        side=request.side.strip().lower(),
        amount=request.amount,
        slippage_tolerance_pct=request.slippage_tolerance_pct,
        actor_id=actor,
        reference_price=request.reference_price,
    )
    return ok(result.to_dict())


@router.get("/order/{order_id}")
async def get_order(order_id: str):
    result = get_order_engine().get_result(order_id)
    if result is None:
        raise HTTPException(404, f"Unknown order {order_id}")
    return ok(result.to_dict())


@router.get("/orders")
async def list_orders(
    asset_id: Optional[str] = Query(default=None),
    limit: int = Query(default=100, ge=1, le=10000)
):
    results = get_order_engine().list_results(asset_id, limit)
    return ok([r.to_dict() for r in results])


@router.get("/liquidity/{asset_id}")
async def get_liquidity(asset_id: str):
    latest = get_engine().store.latest(asset_id)
    if latest is None:
        raise AssetNotFound(asset_id)
    return ok({
        "asset_id": asset_id,
        "price": latest.price,
        "quoted_depth": latest.volume,
        "available": get_order_engine().available_liquidity(asset_id),
        "as_of": latest.ts.isoformat(),
    })
