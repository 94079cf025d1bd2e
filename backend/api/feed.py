"""
Price Feed API
Endpoints to control the external price feed.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from audit import AuditAction, TargetType, get_audit_log
from services import get_price_feed

from .errors import actor_id

router = APIRouter(prefix="/feed", tags=["Price Feed"])


class StartFeedRequest(BaseModel):
    """Request to start the price feed"""
    assets: List[str] = []
    url: Optional[str] = None


class FeedResponse(BaseModel):
    """Response for feed operations"""
    status: str
    url: Optional[str] = None
    assets: Optional[List[str]] = None
    message: Optional[str] = None
    total_samples: Optional[int] = None


@router.post("/start", response_model=FeedResponse)
async def start_price_feed(request: StartFeedRequest, actor: str = Depends(actor_id)):
    """
    Start the price feed.

    Connects to the configured websocket and ingests every sample
    it receives into the store.
    """
    feed = get_price_feed()
    result = feed.start(request.assets, request.url)
    if result["status"] == "started":
        get_audit_log().record(actor, AuditAction.FEED_STARTED, TargetType.FEED,
                               result["url"], {"assets": result["assets"]})
    return result


@router.post("/stop", response_model=FeedResponse)
async def stop_price_feed(actor: str = Depends(actor_id)):
    """Stop the price feed"""
    feed = get_price_feed()
    url = feed.url
    result = feed.stop()
    if result["status"] == "stopped":
        get_audit_log().record(actor, AuditAction.FEED_STOPPED, TargetType.FEED,
                               url or "", {"total_samples": result["total_samples"]})
    return result


@router.get("/status")
async def get_feed_status():
    """
    Get current status of the price feed.

    Returns:
        Feed statistics including sample count, reconnects, uptime
    """
    feed = get_price_feed()
    return {
        "status": "running" if feed.is_running else "stopped",
        **feed.stats.to_dict()
    }
