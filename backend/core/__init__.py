"""
Core Module
Market data contracts, the Time-Series Store and ingestion.

Exports:
    Models: Sample, SampleEvent, TimeWindow, PriceBar, DataSource, IngestionResult
    Store: TimeSeriesStore
    Engine: get_engine, IngestionEngine
    Resampler: PriceResampler, resample_samples
    Errors: MarketCoreError and the error kinds
    Config: Settings, get_settings
"""

from .models import (
    Sample,
    SampleEvent,
    TimeWindow,
    PriceBar,
    DataSource,
    IngestionResult,
    SampleBatch,
    parse_timestamp,
    to_sample_event,
)

from .errors import (
    ErrorKind,
    MarketCoreError,
    OutOfOrderSample,
    InsufficientData,
    InvalidWeights,
    SlippageExceeded,
    UnsupportedFormat,
    AssetNotFound,
    StoreUnavailable,
    InvalidStateTransition,
)

from .config import Settings, get_settings, reload_settings
from .store import TimeSeriesStore
from .engine import get_engine, IngestionEngine
from .resampler import PriceResampler, resample_samples, INTERVAL_SECONDS

__all__ = [
    # Models
    "Sample",
    "SampleEvent",
    "TimeWindow",
    "PriceBar",
    "DataSource",
    "IngestionResult",
    "SampleBatch",
    "parse_timestamp",
    "to_sample_event",
    # Errors
    "ErrorKind",
    "MarketCoreError",
    "OutOfOrderSample",
    "InsufficientData",
    "InvalidWeights",
    "SlippageExceeded",
    "UnsupportedFormat",
    "AssetNotFound",
    "StoreUnavailable",
    "InvalidStateTransition",
    # Config
    "Settings",
    "get_settings",
    "reload_settings",
    # Store / Engine
    "TimeSeriesStore",
    "get_engine",
    "IngestionEngine",
    # Resampler
    "PriceResampler",
    "resample_samples",
    "INTERVAL_SECONDS",
]
