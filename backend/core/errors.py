"""
Error Kinds
Every failure the core reports to a caller.

Business errors (caller can fix the request):
    OutOfOrderSample, InsufficientData, InvalidWeights,
    SlippageExceeded, UnsupportedFormat, AssetNotFound

Infrastructure faults (caller may retry with backoff):
    StoreUnavailable
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    """Tag carried by every core error"""
    OUT_OF_ORDER_SAMPLE = "OutOfOrderSample"
    INSUFFICIENT_DATA = "InsufficientData"
    INVALID_WEIGHTS = "InvalidWeights"
    SLIPPAGE_EXCEEDED = "SlippageExceeded"
    UNSUPPORTED_FORMAT = "UnsupportedFormat"
    ASSET_NOT_FOUND = "AssetNotFound"
    STORE_UNAVAILABLE = "StoreUnavailable"
    INVALID_STATE_TRANSITION = "InvalidStateTransition"


class MarketCoreError(Exception):
    """Base class for core errors."""

    kind: ErrorKind = ErrorKind.STORE_UNAVAILABLE
    retryable: bool = False

    def __init__(self, message: str, **detail: Any):
        super().__init__(message)
        self.message = message
        self.detail: Dict[str, Any] = detail

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "retryable": self.retryable,
            "detail": self.detail,
        }


class OutOfOrderSample(MarketCoreError):
    kind = ErrorKind.OUT_OF_ORDER_SAMPLE


class InsufficientData(MarketCoreError):
    kind = ErrorKind.INSUFFICIENT_DATA


class InvalidWeights(MarketCoreError):
    kind = ErrorKind.INVALID_WEIGHTS


class SlippageExceeded(MarketCoreError):
    """Raised only by explicit slippage checks; order execution reports it as a rejection."""
    kind = ErrorKind.SLIPPAGE_EXCEEDED


class UnsupportedFormat(MarketCoreError):
    kind = ErrorKind.UNSUPPORTED_FORMAT


class AssetNotFound(MarketCoreError):
    kind = ErrorKind.ASSET_NOT_FOUND

    def __init__(self, asset_id: str, message: Optional[str] = None):
        super().__init__(message or f"No samples recorded for asset '{asset_id}'", asset_id=asset_id)
        self.asset_id = asset_id


class StoreUnavailable(MarketCoreError):
    kind = ErrorKind.STORE_UNAVAILABLE
    retryable = True


class InvalidStateTransition(MarketCoreError):
    """Programming error: an order tried to leave a terminal state."""
    kind = ErrorKind.INVALID_STATE_TRANSITION
