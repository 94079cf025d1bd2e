"""
Domain Models
The SINGLE SOURCE OF TRUTH for market data formats.

After normalization, the system only sees these types.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, List, Tuple
from datetime import datetime, timezone
from enum import Enum


# =============================================================================
# Data Source
# =============================================================================

class DataSource(str, Enum):
    """Where data came from — tagged at entry, never changes"""
    FEED = "feed"
    UPLOAD = "upload"
    API = "api"
    STORAGE = "storage"


def parse_timestamp(v):
    """
    Normalize a timestamp to a timezone-aware UTC datetime.

    Accepts datetimes (naive → UTC), ISO strings (trailing Z allowed)
    and unix timestamps in seconds or milliseconds.
    """
    if isinstance(v, str):
        v = datetime.fromisoformat(v.strip().replace('Z', '+00:00'))
    elif isinstance(v, (int, float)) and not isinstance(v, bool):
        # Unix timestamp (seconds or milliseconds)
        if v > 1e12:
            v = v / 1000
        v = datetime.fromtimestamp(v, tz=timezone.utc)
    if isinstance(v, datetime):
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)
    return v


# =============================================================================
# Sample — The Core Data Contract
# =============================================================================

class Sample(BaseModel):
    """
    A single timestamped price/volume observation for one asset.

    Immutable once recorded. The volume quoted with a sample is the
    liquidity depth available at that price.
    """
    model_config = ConfigDict(frozen=True)

    ts: datetime
    price: float = Field(..., gt=0)
    volume: float = Field(default=0.0, ge=0)
    source: DataSource = DataSource.API

    @field_validator('ts', mode='before')
    @classmethod
    def normalize_ts(cls, v):
        return parse_timestamp(v)


class SampleEvent(BaseModel):
    """
    A sample tagged with the asset it belongs to.

    This is what uploads and the price feed produce; the store
    only ever receives (asset_id, Sample) pairs.
    """
    asset_id: str = Field(..., min_length=1, max_length=64)
    ts: datetime
    price: float = Field(..., gt=0)
    volume: float = Field(default=0.0, ge=0)
    source: DataSource = DataSource.UPLOAD

    @field_validator('asset_id', mode='before')
    @classmethod
    def strip_asset_id(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator('ts', mode='before')
    @classmethod
    def normalize_ts(cls, v):
        return parse_timestamp(v)

    def to_sample(self) -> Sample:
        return Sample(ts=self.ts, price=self.price, volume=self.volume, source=self.source)


# =============================================================================
# TimeWindow: closed interval, open when a bound is missing
# =============================================================================

class TimeWindow(BaseModel):
    """Closed time interval [start, end]. None means unbounded."""
    model_config = ConfigDict(frozen=True)

    start: Optional[datetime] = None
    end: Optional[datetime] = None

    @field_validator('start', 'end', mode='before')
    @classmethod
    def normalize_bounds(cls, v):
        return None if v is None else parse_timestamp(v)

    def contains(self, ts: datetime) -> bool:
        if self.start is not None and ts < self.start:
            return False
        if self.end is not None and ts > self.end:
            return False
        return True


# =============================================================================
# PriceBar — Aggregated Price Data
# =============================================================================

class PriceBar(BaseModel):
    """
    A resampled price bar.

    Built from samples by the resampler for price history views.
    """
    asset_id: str
    ts: datetime  # Bucket open time
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0
    sample_count: int = 0

    def update(self, price: float, volume: float = 0.0):
        """Fold one more sample into the bar (mutates in place)"""
        self.high = max(self.high, price)
        self.low = min(self.low, price)
        self.close = price
        self.volume += volume
        self.sample_count += 1


# =============================================================================
# API Response Models
# =============================================================================

class IngestionResult(BaseModel):
    """Result of data ingestion"""
    success: bool = True
    count: int = 0
    errors: int = 0
    assets: List[str] = []
    message: str = ""


class SampleBatch(BaseModel):
    """Batch of samples from external source"""
    samples: List[dict]


# =============================================================================
# Converters — External → Internal
# =============================================================================

def to_sample_event(data: dict, source: DataSource = DataSource.UPLOAD) -> SampleEvent:
    """
    Convert external data format to SampleEvent.

    This is the NORMALIZATION POINT.
    All external formats go through here.

    Handles:
    - timestamp/ts/time/date field variants
    - asset_id/asset/project_id/symbol field variants
    - volume/size/qty/liquidity field variants
    """
    ts = _first(data, 'timestamp', 'ts', 'time', 'date')
    asset_id = _first(data, 'asset_id', 'asset', 'project_id', 'symbol')
    price = _first(data, 'price', 'close', 'price_per_credit')
    volume = _first(data, 'volume', 'size', 'qty', 'liquidity') or 0.0

    if asset_id is None:
        raise ValueError("record has no asset identifier")
    if ts is None:
        raise ValueError("record has no timestamp")
    if price is None:
        raise ValueError("record has no price")

    return SampleEvent(
        asset_id=str(asset_id),
        ts=ts,
        price=float(price),
        volume=float(volume),
        source=source,
    )


def sample_rows(samples: List[Sample]) -> List[Tuple[str, float, float]]:
    """(iso timestamp, price, volume) rows for serialization"""
    return [(s.ts.isoformat(), s.price, s.volume) for s in samples]


def _first(data: dict, *keys):
    for key in keys:
        value = data.get(key)
        if value is not None and value != "":
            return value
    return None
