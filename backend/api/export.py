"""
Data Export API
Download analytics results as report files.

Formats:
    - CSV — Excel/pandas compatible
    - JSON — For programmatic access

Kinds:
    timeseries, statistics, seasonal, prediction  (asset_id)
    rankings                                       (assets, weights)
    comparison                                     (asset_id, asset_b, weights)
"""

import io
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from analytics import get_analytics_service
from analytics.export import MEDIA_TYPES, export_filename, export_result, parse_format
from audit import AuditAction, TargetType, get_audit_log

from .errors import actor_id

router = APIRouter(prefix="/export", tags=["Export"])


class ReportKind(str, Enum):
    TIMESERIES = "timeseries"
    STATISTICS = "statistics"
    SEASONAL = "seasonal"
    PREDICTION = "prediction"
    RANKINGS = "rankings"
    COMPARISON = "comparison"


class ExportRequest(BaseModel):
    """What to export and in which format"""
    kind: ReportKind
    format: str = "csv"
    asset_id: Optional[str] = None
    asset_b: Optional[str] = None
    assets: List[str] = []
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    period: Optional[int] = Field(default=None, ge=2)
    horizon: int = Field(default=12, ge=1)
    weights: Optional[Dict[str, float]] = None


def _require_asset(request: ExportRequest) -> str:
    if not request.asset_id:
        raise ValueError(f"asset_id is required for a {request.kind.value} export")
    return request.asset_id


def _build(request: ExportRequest):
    service = get_analytics_service()
    kind = request.kind

    if kind == ReportKind.TIMESERIES:
        return service.time_series(_require_asset(request), request.start, request.end)
    if kind == ReportKind.STATISTICS:
        return service.statistics(_require_asset(request), request.start, request.end)
    if kind == ReportKind.SEASONAL:
        return service.seasonal(_require_asset(request), request.period, request.start, request.end)
    if kind == ReportKind.PREDICTION:
        return service.prediction(_require_asset(request), request.horizon, request.period,
                                  request.start, request.end)
    if kind == ReportKind.RANKINGS:
        return service.rankings(request.assets or None, request.weights)

    if not request.asset_b:
        raise ValueError("asset_b is required for a comparison export")
    return service.comparison(_require_asset(request), request.asset_b, request.weights)


@router.post("")
async def export_report(request: ExportRequest, actor: str = Depends(actor_id)):
    """
    Export an analytics result.

    Returns:
        CSV or JSON file download
    """
    fmt = parse_format(request.format)
    result = _build(request)
    content = export_result(result, fmt)

    subject = request.asset_id or "all"
    if request.kind == ReportKind.COMPARISON:
        subject = f"{request.asset_id}_vs_{request.asset_b}"
    filename = export_filename(request.kind.value, subject, fmt)

    get_audit_log().record(
        actor, AuditAction.REPORT_EXPORTED, TargetType.REPORT, filename,
        {"kind": request.kind.value, "format": fmt.value, "bytes": len(content)}
    )

    return StreamingResponse(
        io.BytesIO(content),
        media_type=MEDIA_TYPES[fmt],
        headers={"Content-Disposition": f"attachment; filename={filename}"}
    )
