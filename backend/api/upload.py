"""
Upload API
Bulk ingestion of price/volume samples.

CSV columns: timestamp, price, volume (optional), asset_id (optional
when the asset query parameter is given). Field aliases accepted by
core.to_sample_event apply to every format.
"""

import json
from io import StringIO
from typing import List, Optional, Tuple

import pandas as pd
from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile
from pydantic import ValidationError

from core import (
    DataSource,
    IngestionResult,
    SampleBatch,
    SampleEvent,
    get_engine,
    to_sample_event,
)
from audit import AuditAction, TargetType, get_audit_log

from .errors import actor_id

router = APIRouter(prefix="/upload", tags=["Upload"])


def _parse_records(
    records: List[dict],
    source: DataSource,
    asset_id: Optional[str] = None
) -> Tuple[List[SampleEvent], int]:
    events = []
    errors = 0
    for data in records:
        if asset_id:
            data = {**data, "asset_id": asset_id}
        try:
            events.append(to_sample_event(data, source=source))
        except (KeyError, TypeError, ValueError, ValidationError):
            errors += 1
    return events, errors


def _ingest(events: List[SampleEvent], errors: int, actor: str) -> IngestionResult:
    if not events:
        raise HTTPException(400, "No valid records in file")

    result = get_engine().ingest_batch(events)
    result.errors += errors
    result.success = result.errors == 0

    for asset in result.assets:
        get_audit_log().record(
            actor, AuditAction.DATA_INGESTED, TargetType.ASSET, asset,
            {"count": sum(1 for e in events if e.asset_id == asset)}
        )
    return result


@router.post("/csv", response_model=IngestionResult)
async def upload_csv(
    file: UploadFile = File(...),
    asset_id: Optional[str] = Query(default=None, description="Asset for every row (e.g., mangrove)"),
    actor: str = Depends(actor_id)
):
    content = await file.read()
    df = pd.read_csv(StringIO(content.decode('utf-8')))
    df.columns = df.columns.str.lower().str.strip()

    if 'price' not in df.columns and 'close' not in df.columns:
        raise HTTPException(400, "CSV must have a 'price' column")

    # NaN -> None so missing cells fall through to defaults
    df = df.astype(object).where(pd.notna(df), None)
    events, errors = _parse_records(df.to_dict("records"), DataSource.UPLOAD, asset_id)
    return _ingest(events, errors, actor)


@router.post("/ndjson", response_model=IngestionResult)
async def upload_ndjson(
    file: UploadFile = File(...),
    asset_id: Optional[str] = Query(default=None, description="Override asset"),
    actor: str = Depends(actor_id)
):
    content = await file.read()
    lines = content.decode('utf-8').strip().split('\n')

    records = []
    errors = 0
    for line in lines:
        if not line.strip():
            continue
        try:
            data = json.loads(line)
        except ValueError:
            errors += 1
            continue
        if isinstance(data, dict):
            records.append(data)
        else:
            errors += 1

    events, parse_errors = _parse_records(records, DataSource.UPLOAD, asset_id)
    return _ingest(events, errors + parse_errors, actor)


@router.post("/samples", response_model=IngestionResult)
async def upload_sample_batch(payload: SampleBatch, actor: str = Depends(actor_id)):
    events, errors = _parse_records(payload.samples, DataSource.API)
    return _ingest(events, errors, actor)
