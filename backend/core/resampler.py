"""
Price Resampler
Converts a sample series to price bars for price history views.

Flow:
1. Sample arrives
2. Find correct time bucket
3. Update building bar (open/high/low/close/volume)
4. If bucket boundary crossed → emit completed bar
"""

from typing import Dict, Optional, List
from datetime import datetime, timezone

from .models import Sample, PriceBar


# =============================================================================
# Interval Configuration
# =============================================================================

INTERVAL_SECONDS = {
    "1m": 60,
    "5m": 300,
    "15m": 900,
    "1h": 3600,
    "4h": 14400,
    "1d": 86400,
    "1w": 604800,
}


# =============================================================================
# Resampler
# =============================================================================

class PriceResampler:
    """
    Incremental price bar builder.

    Maintains the current "building" bar per asset.
    Emits completed bars when a bucket boundary is crossed.

    Usage:
        resampler = PriceResampler("1d")

        for sample in samples:
            completed = resampler.process("mangrove", sample)
            if completed:
                bars.append(completed)
    """

    def __init__(self, interval: str = "1d"):
        if interval not in INTERVAL_SECONDS:
            raise ValueError(f"Unknown interval '{interval}'. Use one of {sorted(INTERVAL_SECONDS)}")
        self.interval_name = interval
        self.interval = INTERVAL_SECONDS[interval]

        # Current building bars: asset_id -> PriceBar
        self._building: Dict[str, PriceBar] = {}

    def _get_bucket(self, ts: datetime) -> datetime:
        """
        Get bucket open time for a given timestamp.

        Example (1d bars):
            2024-03-05T13:22Z → 2024-03-05T00:00Z
        """
        epoch = ts.timestamp()
        bucket_epoch = (epoch // self.interval) * self.interval
        return datetime.fromtimestamp(bucket_epoch, tz=timezone.utc)

    def process(self, asset_id: str, sample: Sample) -> Optional[PriceBar]:
        """
        Process a single sample.

        Returns:
            - Completed bar if bucket boundary crossed
            - None if bar still building
        """
        bucket = self._get_bucket(sample.ts)
        current = self._building.get(asset_id)

        if current is None or current.ts != bucket:
            self._building[asset_id] = PriceBar(
                asset_id=asset_id,
                ts=bucket,
                open=sample.price,
                high=sample.price,
                low=sample.price,
                close=sample.price,
                volume=sample.volume,
                sample_count=1,
            )
            return current

        current.update(sample.price, sample.volume)
        return None

    def flush(self, asset_id: str = None) -> List[PriceBar]:
        """
        Force-complete building bars.

        Returns flushed bars.
        """
        if asset_id:
            bar = self._building.pop(asset_id, None)
            return [bar] if bar else []

        bars = list(self._building.values())
        self._building.clear()
        return bars


# =============================================================================
# Batch Resampling
# =============================================================================

def resample_samples(
    asset_id: str,
    samples: List[Sample],
    interval: str = "1d"
) -> List[PriceBar]:
    """
    Batch resample an asset's samples to price bars.

    Stateless utility; samples are expected in time order
    (as returned by the store).
    """
    if not samples:
        return []

    resampler = PriceResampler(interval)
    completed = []
    for sample in samples:
        bar = resampler.process(asset_id, sample)
        if bar:
            completed.append(bar)

    return completed + resampler.flush(asset_id)
