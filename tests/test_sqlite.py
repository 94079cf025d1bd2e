import sqlite3

import pytest

from audit import AuditAction, AuditLog
from core import IngestionEngine, StoreUnavailable
from db import SQLiteStorage
from execution import OrderExecutionEngine, OrderStatus

from conftest import make_samples


@pytest.fixture
def storage(tmp_path):
    return SQLiteStorage(str(tmp_path / "market.db"))


def _seeded_engine(storage, prices, volume=100.0):
    engine = IngestionEngine(storage=storage)
    for s in make_samples(prices, volume=volume):
        engine.ingest("mangrove", s)
    return engine


def test_samples_survive_restart(storage):
    _seeded_engine(storage, [20, 21, 22])

    restarted = IngestionEngine(storage=storage)
    samples = restarted.get_samples("mangrove")
    assert [s.price for s in samples] == [20, 21, 22]
    assert restarted.stats()["samples_loaded"] == 3


def test_audit_survives_restart(storage):
    log = AuditLog(storage=storage)
    first = log.record("alice", AuditAction.DATA_INGESTED, "asset", "mangrove", {"count": 3})
    log.record("bob", AuditAction.DATA_CLEARED, "asset", "mangrove")

    restarted = AuditLog(storage=storage)
    assert len(restarted) == 2
    assert restarted.get(first).detail == {"count": 3}
    # New entries still sort after the loaded ones
    new_id = restarted.record("carol", AuditAction.DATA_INGESTED, "asset", "seagrass")
    entries = list(restarted.query())
    assert entries[-1].entry_id == new_id
    assert entries[-2].timestamp < entries[-1].timestamp


def test_orders_and_consumed_depth_survive_restart(storage):
    engine = _seeded_engine(storage, [20], volume=100.0)
    log = AuditLog(storage=storage)
    orders = OrderExecutionEngine(engine.store, log, storage=storage)
    result = orders.place_order("mangrove", "buy", 60, 1.0)
    assert result.status == OrderStatus.FILLED

    engine2 = IngestionEngine(storage=storage)
    orders2 = OrderExecutionEngine(engine2.store, AuditLog(storage=storage), storage=storage)
    assert orders2.get_result(result.order_id).executed_amount == 60
    assert orders2.available_liquidity("mangrove") == pytest.approx(40.0)


def test_order_result_written_once(storage):
    engine = _seeded_engine(storage, [20])
    orders = OrderExecutionEngine(engine.store, AuditLog(), storage=storage)
    result = orders.place_order("mangrove", "sell", 10, 1.0)
    with pytest.raises(StoreUnavailable):
        storage.save_order_result(result.to_dict())


def test_clear_keeps_audit_and_orders(storage):
    engine = _seeded_engine(storage, [20, 21])
    log = AuditLog(storage=storage)
    OrderExecutionEngine(engine.store, log, storage=storage).place_order("mangrove", "buy", 5, 1.0)

    engine.clear()
    stats = storage.get_stats()
    assert stats["sample_count"] == 0
    assert stats["audit_count"] == 1
    assert stats["order_count"] == 1


def test_duplicate_sample_surfaces_as_store_unavailable(storage):
    sample = make_samples([20])[0]
    storage.save_samples("mangrove", [sample])
    with pytest.raises(StoreUnavailable):
        storage.save_samples("mangrove", [sample])


def test_failed_write_leaves_store_unchanged(storage, monkeypatch):
    engine = _seeded_engine(storage, [20])

    def broken(*args, **kwargs):
        raise StoreUnavailable("disk full")

    monkeypatch.setattr(storage, "save_samples", broken)
    with pytest.raises(StoreUnavailable):
        engine.ingest("mangrove", make_samples([21, 22])[1])
    assert len(engine.get_samples("mangrove")) == 1


def test_unopenable_database(tmp_path):
    target = tmp_path / "a_directory.db"
    target.mkdir()
    with pytest.raises(StoreUnavailable):
        SQLiteStorage(str(target))


def test_schema_tables(storage):
    conn = sqlite3.connect(storage.db_path)
    try:
        tables = {row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")}
    finally:
        conn.close()
    assert {"samples", "audit_log", "order_results"} <= tables
