"""
Admin API
Read-only audit trail plus data maintenance.
"""

from datetime import datetime
from itertools import islice
from typing import Optional

from fastapi import APIRouter, Depends, Query

from analytics import get_analytics_service
from audit import AuditAction, TargetType, get_audit_log
from core import get_engine

from .errors import actor_id, ok

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.get("/audit")
async def get_audit_logs(
    actor_id: Optional[str] = Query(default=None),
    action: Optional[AuditAction] = Query(default=None),
    target_type: Optional[str] = Query(default=None),
    target_id: Optional[str] = Query(default=None),
    start: Optional[datetime] = Query(default=None),
    end: Optional[datetime] = Query(default=None),
    limit: int = Query(default=100, ge=1, le=10000)
):
    """Matching entries, oldest first."""
    entries = get_audit_log().query(
        actor_id=actor_id,
        action=action,
        target_type=target_type,
        target_id=target_id,
        start=start,
        end=end,
    )
    data = [e.to_dict() for e in islice(entries, limit)]
    return ok({"count": len(data), "entries": data})


@router.get("/audit/stats")
async def get_audit_stats():
    """Totals by action and by actor"""
    return ok(get_audit_log().stats())


@router.delete("/data")
async def clear_data(
    asset_id: Optional[str] = Query(default=None, description="Asset to clear (default: all)"),
    actor: str = Depends(actor_id)
):
    """Drop stored samples. The audit trail and order results are kept."""
    get_engine().clear(asset_id)
    get_analytics_service().cache.clear()
    get_audit_log().record(actor, AuditAction.DATA_CLEARED, TargetType.ASSET, asset_id or "*")
    return ok({"cleared": asset_id or "all"})
