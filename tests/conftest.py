"""Shared fixtures: fresh in-memory engines, no SQLite unless a test asks for it."""

import os

os.environ.setdefault("CARBON_PERSIST", "false")

from datetime import datetime, timedelta, timezone
from typing import List, Optional

import pytest

from core import IngestionEngine, Sample, reload_settings
from audit import AuditLog
from execution import OrderExecutionEngine
from analytics import AnalyticsService
from services import PriceFeedService


T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)
MANGROVE_PRICES = [20, 21, 19, 22, 23, 21, 24, 25]


def make_samples(
    prices: List[float],
    volume: float = 100.0,
    start: datetime = T0,
    step: timedelta = timedelta(days=30),
    volumes: Optional[List[float]] = None,
) -> List[Sample]:
    return [
        Sample(ts=start + step * i, price=p, volume=volumes[i] if volumes else volume)
        for i, p in enumerate(prices)
    ]


@pytest.fixture(autouse=True)
def _settings():
    reload_settings(persist=False)
    yield
    reload_settings(persist=False)


@pytest.fixture
def engine():
    return IngestionEngine()


@pytest.fixture
def seed(engine):
    """seed("mangrove", [20, 21, ...], volume=100) -> samples"""
    def _seed(asset_id, prices, **kwargs):
        samples = make_samples(prices, **kwargs)
        for s in samples:
            engine.ingest(asset_id, s)
        return samples
    return _seed


@pytest.fixture
def audit_log():
    return AuditLog()


@pytest.fixture
def order_engine(engine, audit_log):
    return OrderExecutionEngine(engine.store, audit_log)


@pytest.fixture
def service(engine, order_engine):
    return AnalyticsService(
        engine=engine,
        liquidity_provider=order_engine.available_liquidity,
        default_period=4,
    )


@pytest.fixture
def client(monkeypatch, engine, audit_log, order_engine, service):
    """TestClient with every module singleton replaced by the fixtures above"""
    from fastapi.testclient import TestClient
    import core.engine
    import audit.log
    import execution.engine
    import analytics.service
    import services.price_feed

    monkeypatch.setattr(core.engine, "_engine", engine)
    monkeypatch.setattr(audit.log, "_audit_log", audit_log)
    monkeypatch.setattr(execution.engine, "_order_engine", order_engine)
    monkeypatch.setattr(analytics.service, "_service", service)
    monkeypatch.setattr(services.price_feed, "_price_feed", PriceFeedService(engine=engine))

    from main import app
    return TestClient(app)
