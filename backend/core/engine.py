import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

from .errors import AssetNotFound, OutOfOrderSample
from .models import Sample, SampleEvent, IngestionResult, PriceBar
from .resampler import resample_samples
from .store import TimeSeriesStore


logger = logging.getLogger(__name__)

OnSampleCallback = Callable[[str, Sample], None]


class IngestionEngine:
    """
    Entry point for market data: validates ordering, persists, then
    appends to the Time-Series Store and notifies listeners.

    A sample is written to storage before it becomes visible in memory,
    so a storage failure leaves the store unchanged.
    """

    def __init__(
        self,
        store: Optional[TimeSeriesStore] = None,
        storage=None,
        warm_start: bool = True,
    ):
        self.store = store or TimeSeriesStore()
        self._storage = storage
        self._on_sample: List[OnSampleCallback] = []
        self._stats = {
            "samples_ingested": 0,
            "samples_rejected": 0,
            "samples_loaded": 0,
            "start_time": datetime.now(timezone.utc)
        }
        if storage is not None and warm_start:
            self._load_from_storage()

    def _load_from_storage(self) -> None:
        loaded = 0
        for asset_id, sample in self._storage.load_samples():
            try:
                self.store.append(asset_id, sample)
                loaded += 1
            except OutOfOrderSample:
                logger.warning("Skipping stored sample out of order for %s at %s", asset_id, sample.ts)
        self._stats["samples_loaded"] = loaded
        if loaded:
            logger.info("Loaded %d samples from storage", loaded)

    def ingest(self, asset_id: str, sample: Sample) -> None:
        """
        Record one sample.

        Raises:
            OutOfOrderSample: timestamp not after the asset's last sample
            StoreUnavailable: persistence failed (nothing recorded)
        """
        with self.store.lock_for(asset_id):
            self.store.check_order(asset_id, sample)
            if self._storage is not None:
                self._storage.save_samples(asset_id, [sample])
            self.store.append_locked(asset_id, sample)
        self._stats["samples_ingested"] += 1

        for callback in self._on_sample:
            try:
                callback(asset_id, sample)
            except Exception:
                logger.exception("on_sample callback failed for %s", asset_id)

    def ingest_event(self, event: SampleEvent) -> None:
        self.ingest(event.asset_id, event.to_sample())

    def ingest_batch(self, events: List[SampleEvent]) -> IngestionResult:
        """
        Ingest many samples. Out-of-order records are counted and skipped;
        storage failures propagate.
        """
        if not events:
            return IngestionResult(success=True, count=0, message="No samples")

        errors = 0
        for event in sorted(events, key=lambda e: (e.asset_id, e.ts)):
            try:
                self.ingest_event(event)
            except OutOfOrderSample as e:
                errors += 1
                self._stats["samples_rejected"] += 1
                logger.debug("Rejected sample for %s: %s", event.asset_id, e)

        assets = sorted(set(e.asset_id for e in events))
        count = len(events) - errors
        logger.info("Ingested %d samples (%d rejected) for %s", count, errors, assets)
        return IngestionResult(
            success=errors == 0,
            count=count,
            errors=errors,
            assets=assets,
            message=f"Ingested {count} samples"
        )

    def get_samples(
        self,
        asset_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[Sample]:
        return self.store.query(asset_id, start, end)

    def require_samples(
        self,
        asset_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[Sample]:
        """Like get_samples, but an asset with no data at all is AssetNotFound."""
        if not self.store.has_asset(asset_id):
            raise AssetNotFound(asset_id)
        return self.store.query(asset_id, start, end)

    def get_price_history(self, asset_id: str, days: int = 30, interval: str = "1d") -> List[PriceBar]:
        """
        Price bars for the last `days` days of data.

        The window is anchored at the asset's latest sample rather than
        the wall clock, so replayed history behaves the same as live data.
        """
        latest = self.store.latest(asset_id)
        if latest is None:
            raise AssetNotFound(asset_id)
        start = latest.ts - timedelta(days=days)
        return resample_samples(asset_id, self.store.query(asset_id, start, latest.ts), interval)

    def get_assets(self) -> List[str]:
        return self.store.assets()

    def on_sample(self, callback: OnSampleCallback) -> None:
        self._on_sample.append(callback)

    def clear(self, asset_id: str = None) -> None:
        """
        Drop samples from storage and memory.

        Runs under the asset write locks so an in-flight ingest lands
        either before the clear (and is removed) or after it (and is kept).
        """
        with self.store.exclusive(asset_id):
            if self._storage is not None:
                self._storage.clear_samples(asset_id)
            self.store.clear_locked(asset_id)
        logger.info("Cleared samples%s", f" for {asset_id}" if asset_id else "")

    def stats(self) -> Dict[str, Any]:
        uptime = (datetime.now(timezone.utc) - self._stats["start_time"]).total_seconds()
        return {
            **self._stats,
            "uptime_seconds": uptime,
            "store": self.store.stats(),
            "assets": self.get_assets(),
            "persistent": self._storage is not None,
        }


_engine: Optional[IngestionEngine] = None


def get_engine() -> IngestionEngine:
    global _engine
    if _engine is None:
        from .config import get_settings
        settings = get_settings()
        storage = None
        if settings.persist:
            from db import get_storage
            storage = get_storage()
        _engine = IngestionEngine(storage=storage)
    return _engine
