"""
Price Feed Service
Connects to an external market-data websocket and ingests samples.

Message format (JSON, one object or a list of objects per frame):
    {"asset_id": "mangrove", "timestamp": "2024-05-01T00:00:00Z",
     "price": 21.4, "volume": 1200}

Field aliases accepted by core.to_sample_event apply here too.

Usage:
    from services import get_price_feed

    feed = get_price_feed()
    feed.start(["mangrove", "seagrass"])
    # Samples automatically flow into the ingestion engine
    feed.stop()
"""

import asyncio
import json
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import websockets
from pydantic import ValidationError

from core import get_engine, get_settings, to_sample_event, DataSource, OutOfOrderSample


logger = logging.getLogger(__name__)


@dataclass
class FeedStats:
    """Price feed statistics"""
    is_running: bool = False
    url: Optional[str] = None
    assets: List[str] = field(default_factory=list)
    samples_received: int = 0
    samples_rejected: int = 0
    last_sample_time: Optional[datetime] = None
    connected_at: Optional[datetime] = None
    reconnects: int = 0
    errors: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_running": self.is_running,
            "url": self.url,
            "assets": list(self.assets),
            "samples_received": self.samples_received,
            "samples_rejected": self.samples_rejected,
            "last_sample_time": self.last_sample_time.isoformat() if self.last_sample_time else None,
            "connected_at": self.connected_at.isoformat() if self.connected_at else None,
            "uptime_seconds": (datetime.now(timezone.utc) - self.connected_at).total_seconds() if self.connected_at else 0,
            "reconnects": self.reconnects,
            "errors": self.errors,
        }


class _FeedRun:
    """State owned by one start() .. stop() cycle."""

    def __init__(self, stats: FeedStats):
        self.stats = stats
        self.stopped = threading.Event()
        self.thread: Optional[threading.Thread] = None
        self.loop: Optional[asyncio.AbstractEventLoop] = None
        self.wake: Optional[asyncio.Event] = None
        self.ws = None


class PriceFeedService:
    """
    Websocket price feed.

    Runs its own event loop in a daemon thread and pushes every
    sample into the IngestionEngine. An empty asset list means
    every asset on the stream is accepted.

    Each start() gets a fresh run with its own stop event, so a run
    that is still shutting down never touches the one after it.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        reconnect_delay: float = 5.0,
        engine=None,
        join_timeout: float = 5.0,
    ):
        self.url = url
        self.reconnect_delay = reconnect_delay
        self.join_timeout = join_timeout
        self._engine = engine
        self._run: Optional[_FeedRun] = None
        self._assets: set = set()
        self._stats = FeedStats()

    @property
    def is_running(self) -> bool:
        return self._run is not None and not self._run.stopped.is_set()

    @property
    def stats(self) -> FeedStats:
        return self._stats

    def start(self, assets: Optional[List[str]] = None, url: Optional[str] = None) -> Dict[str, Any]:
        """
        Start the feed.

        Args:
            assets: Asset ids to accept (empty = all)
            url: Override the configured feed url

        Returns:
            Status dict
        """
        if self.is_running:
            return {"status": "already_running", "assets": self._stats.assets}

        url = url or self.url
        if not url:
            return {"status": "error", "message": "No feed url configured"}

        self._join_previous()

        assets = sorted(set(a.strip() for a in (assets or []) if a and a.strip()))
        self.url = url
        self._assets = set(assets)
        if self._engine is None:
            self._engine = get_engine()

        self._stats = FeedStats(is_running=True, url=url, assets=assets)
        run = _FeedRun(self._stats)
        run.thread = threading.Thread(target=self._run_async_loop, args=(run,), daemon=True)
        self._run = run
        run.thread.start()
        logger.info("Price feed started: %s (%s)", url, ", ".join(assets) or "all assets")

        return {"status": "started", "url": url, "assets": assets}

    def stop(self) -> Dict[str, Any]:
        """Stop the feed and wait (up to join_timeout) for its thread"""
        run = self._run
        if run is None or run.stopped.is_set():
            return {"status": "not_running"}

        run.stopped.set()
        run.stats.is_running = False
        loop = run.loop
        if loop is not None:
            try:
                loop.call_soon_threadsafe(self._wake, run)
            except RuntimeError:
                # Loop already closed; the thread is exiting on its own
                logger.debug("Price feed loop closed before stop")

        self._join_previous()
        logger.info("Price feed stopped after %d samples", run.stats.samples_received)
        return {
            "status": "stopped",
            "total_samples": run.stats.samples_received
        }

    def _join_previous(self) -> None:
        run = self._run
        if run is None or run.thread is None or run.thread is threading.current_thread():
            return
        run.thread.join(self.join_timeout)
        if run.thread.is_alive():
            logger.warning("Price feed thread still shutting down after %.1fs", self.join_timeout)

    def _wake(self, run: _FeedRun) -> None:
        """Runs on the feed loop: interrupt sleeps and close the socket"""
        if run.wake is not None:
            run.wake.set()
        if run.ws is not None:
            asyncio.ensure_future(run.ws.close())

    def _run_async_loop(self, run: _FeedRun):
        """Run async event loop in background thread"""
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        run.loop = loop

        try:
            loop.run_until_complete(self._connect(run))
        except Exception:
            run.stats.errors += 1
            logger.exception("Price feed loop crashed")
        finally:
            run.loop = None
            loop.close()
            # Only this run's state; a newer run is left alone
            run.stopped.set()
            run.stats.is_running = False

    async def _connect(self, run: _FeedRun):
        """Connect and keep reconnecting until this run is stopped"""
        run.wake = asyncio.Event()
        while not run.stopped.is_set():
            try:
                async with websockets.connect(self.url) as ws:
                    run.ws = ws
                    run.stats.connected_at = datetime.now(timezone.utc)
                    if self._assets:
                        await ws.send(json.dumps({"action": "subscribe", "assets": sorted(self._assets)}))

                    while not run.stopped.is_set():
                        try:
                            message = await asyncio.wait_for(ws.recv(), timeout=30.0)
                        except asyncio.TimeoutError:
                            # Keep alive
                            await ws.ping()
                            continue
                        except websockets.ConnectionClosed:
                            break
                        if run.stopped.is_set():
                            break
                        self._ingest(message, run.stats)
                run.ws = None

            except (OSError, asyncio.TimeoutError, websockets.WebSocketException) as e:
                run.ws = None
                run.stats.errors += 1
                logger.warning("Price feed connection error: %s", e)

            if not run.stopped.is_set():
                run.stats.reconnects += 1
                try:
                    await asyncio.wait_for(run.wake.wait(), timeout=self.reconnect_delay)
                except asyncio.TimeoutError:
                    pass

    def process_message(self, message) -> int:
        """
        Ingest one websocket frame.

        Returns:
            Number of samples ingested
        """
        return self._ingest(message, self._stats)

    def _ingest(self, message, stats: FeedStats) -> int:
        try:
            payload = json.loads(message)
        except (TypeError, ValueError) as e:
            stats.errors += 1
            logger.warning("Discarding malformed feed message: %s", e)
            return 0

        records = payload if isinstance(payload, list) else [payload]
        ingested = 0
        for record in records:
            if not isinstance(record, dict):
                stats.samples_rejected += 1
                continue
            try:
                event = to_sample_event(record, DataSource.FEED)
            except (ValueError, ValidationError) as e:
                stats.samples_rejected += 1
                logger.warning("Discarding invalid feed sample: %s", e)
                continue

            if self._assets and event.asset_id not in self._assets:
                continue

            try:
                self._engine.ingest_event(event)
            except OutOfOrderSample as e:
                stats.samples_rejected += 1
                logger.debug("Feed sample out of order: %s", e)
                continue

            ingested += 1
            stats.samples_received += 1
            stats.last_sample_time = event.ts
        return ingested


# Singleton
_price_feed: Optional[PriceFeedService] = None


def get_price_feed() -> PriceFeedService:
    """Get or create price feed service singleton"""
    global _price_feed
    if _price_feed is None:
        settings = get_settings()
        _price_feed = PriceFeedService(url=settings.feed_url, reconnect_delay=settings.feed_reconnect_delay)
    return _price_feed
