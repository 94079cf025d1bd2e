"""
Time-Series Store
Append-only, asset-keyed sample storage. The substrate for all analytics.

Purpose:
- Owns every Sample in the system
- Analytics and order execution read from here
- Timestamps strictly increasing per asset

Concurrency:
- One lock per asset: appends to the same asset are serialized
- Appends to different assets proceed independently
- Reads take a snapshot and never block writers for long
"""

import logging
import threading
from bisect import bisect_left, bisect_right
from contextlib import contextmanager
from datetime import datetime
from typing import Dict, Iterator, List, Optional

from .errors import OutOfOrderSample
from .models import Sample


logger = logging.getLogger(__name__)


class _AssetSeries:
    """Samples for one asset plus a parallel timestamp index for bisect."""

    __slots__ = ("lock", "samples", "timestamps")

    def __init__(self):
        self.lock = threading.Lock()
        self.samples: List[Sample] = []
        self.timestamps: List[datetime] = []


class TimeSeriesStore:
    """
    In-memory time-series store.

    - Per-asset ordered lists, never reordered or evicted
    - O(1) append, O(log n) window lookup, O(1) latest access

    Usage:
        store = TimeSeriesStore()
        store.append("mangrove", sample)
        recent = store.query("mangrove", start, end)
    """

    def __init__(self):
        self._series: Dict[str, _AssetSeries] = {}
        # Guards creation of per-asset entries only
        self._registry_lock = threading.Lock()

    def _get_series(self, asset_id: str, create: bool = False) -> Optional[_AssetSeries]:
        series = self._series.get(asset_id)
        if series is None and create:
            with self._registry_lock:
                series = self._series.get(asset_id)
                if series is None:
                    series = _AssetSeries()
                    self._series[asset_id] = series
        return series

    def lock_for(self, asset_id: str) -> threading.Lock:
        """The single-writer lock for an asset"""
        return self._get_series(asset_id, create=True).lock

    def append(self, asset_id: str, sample: Sample) -> None:
        """
        Record a sample.

        Raises:
            OutOfOrderSample: sample.ts is not after the last recorded timestamp
        """
        series = self._get_series(asset_id, create=True)
        with series.lock:
            self._append_locked(asset_id, series, sample)

    def append_locked(self, asset_id: str, sample: Sample) -> None:
        """Append while the caller already holds lock_for(asset_id)."""
        self._append_locked(asset_id, self._get_series(asset_id, create=True), sample)

    def check_order(self, asset_id: str, sample: Sample) -> None:
        """Raise OutOfOrderSample if the sample could not be appended now."""
        series = self._get_series(asset_id)
        if series and series.timestamps and sample.ts <= series.timestamps[-1]:
            raise OutOfOrderSample(
                f"Sample at {sample.ts.isoformat()} is not after last recorded "
                f"{series.timestamps[-1].isoformat()} for '{asset_id}'",
                asset_id=asset_id,
                timestamp=sample.ts.isoformat(),
                last_timestamp=series.timestamps[-1].isoformat(),
            )

    def _append_locked(self, asset_id: str, series: _AssetSeries, sample: Sample) -> None:
        self.check_order(asset_id, sample)
        series.samples.append(sample)
        series.timestamps.append(sample.ts)

    def query(
        self,
        asset_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[Sample]:
        """Samples with start <= ts <= end, oldest first. Empty if none."""
        series = self._get_series(asset_id)
        if series is None:
            return []

        # samples is appended first and replaced last on clear, so the
        # timestamp length is a consistent snapshot
        timestamps = series.timestamps
        samples = series.samples
        n = len(timestamps)
        lo = bisect_left(timestamps, start, 0, n) if start is not None else 0
        hi = bisect_right(timestamps, end, 0, n) if end is not None else n
        return samples[lo:hi]

    def latest(self, asset_id: str) -> Optional[Sample]:
        """Get most recent sample"""
        series = self._get_series(asset_id)
        if series is None:
            return None
        timestamps = series.timestamps
        samples = series.samples
        if not timestamps or len(samples) < len(timestamps):
            return None
        return samples[len(timestamps) - 1]

    def has_asset(self, asset_id: str) -> bool:
        series = self._get_series(asset_id)
        return bool(series and series.samples)

    def assets(self) -> List[str]:
        """List all assets with at least one sample"""
        return sorted(a for a, s in list(self._series.items()) if s.samples)

    def count(self, asset_id: str = None) -> int:
        """Get sample count"""
        if asset_id:
            series = self._get_series(asset_id)
            return len(series.samples) if series else 0
        return sum(len(s.samples) for s in list(self._series.values()))

    @contextmanager
    def exclusive(self, asset_id: str = None) -> Iterator[None]:
        """
        Hold the write lock of one asset, or of every asset.

        Without an asset the registry lock is held too, so no new asset
        can start ingesting until the block exits.
        """
        if asset_id:
            with self.lock_for(asset_id):
                yield
            return

        with self._registry_lock:
            locks = [s.lock for _, s in sorted(self._series.items())]
            for lock in locks:
                lock.acquire()
            try:
                yield
            finally:
                for lock in reversed(locks):
                    lock.release()

    def clear_locked(self, asset_id: str = None) -> None:
        """Drop samples while the caller holds exclusive(asset_id)."""
        if asset_id:
            targets = [self._series.get(asset_id)]
        else:
            targets = list(self._series.values())
        for series in targets:
            if series is None:
                continue
            # Fresh lists: concurrent readers keep the snapshot they already hold
            series.timestamps = []
            series.samples = []

    def clear(self, asset_id: str = None) -> None:
        """Drop stored samples (admin/test utility)"""
        with self.exclusive(asset_id):
            self.clear_locked(asset_id)
        logger.info("Cleared time-series store%s", f" for {asset_id}" if asset_id else "")

    def stats(self) -> dict:
        """Store statistics"""
        return {
            "total_samples": self.count(),
            "assets": len(self.assets()),
            "per_asset": {a: len(s.samples) for a, s in list(self._series.items()) if s.samples},
        }
