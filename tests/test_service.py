from datetime import timedelta

import pytest

from core import AssetNotFound, InsufficientData, InvalidWeights

from conftest import MANGROVE_PRICES, T0, make_samples


def test_statistics_cached_until_new_sample(service, seed, engine):
    seed("mangrove", MANGROVE_PRICES)

    first = service.statistics("mangrove")
    assert service.statistics("mangrove") is first
    assert service.cache.hits == 1

    engine.ingest("mangrove", make_samples([30], start=T0 + timedelta(days=365))[0])
    refreshed = service.statistics("mangrove")
    assert refreshed is not first
    assert refreshed.sample_count == len(MANGROVE_PRICES) + 1


def test_window_is_part_of_cache_key(service, seed):
    seed("mangrove", MANGROVE_PRICES)
    full = service.statistics("mangrove")
    part = service.statistics("mangrove", start=T0 + timedelta(days=90))
    assert part.sample_count == len(MANGROVE_PRICES) - 3
    assert full.sample_count == len(MANGROVE_PRICES)


def test_unknown_asset_vs_empty_window(service, seed):
    seed("mangrove", MANGROVE_PRICES)

    with pytest.raises(AssetNotFound):
        service.statistics("kelp")
    with pytest.raises(InsufficientData):
        service.statistics("mangrove", start=T0 + timedelta(days=3650))


def test_seasonal_uses_default_period(service, seed):
    seed("mangrove", MANGROVE_PRICES)
    assert service.seasonal("mangrove").period == 4

    with pytest.raises(InsufficientData):
        service.seasonal("mangrove", period=6)


def test_prediction_horizon_limit(service, seed):
    seed("mangrove", MANGROVE_PRICES)
    result = service.prediction("mangrove", horizon=3)
    assert len(result.forecast) == 3

    with pytest.raises(ValueError):
        service.prediction("mangrove", horizon=service.max_horizon + 1)


def test_time_series_slice(service, seed):
    seed("mangrove", [20, 21, 22, 23])
    ts = service.time_series("mangrove", start=T0 + timedelta(days=30), end=T0 + timedelta(days=60))
    assert ts.prices == [21, 22]


def test_metrics_reflect_consumed_liquidity(service, seed, order_engine):
    seed("mangrove", MANGROVE_PRICES, volume=100.0)
    assert service.metrics("mangrove").liquidity_depth == 100.0

    order_engine.place_order("mangrove", "buy", 30, 1.0)
    assert service.metrics("mangrove").liquidity_depth == pytest.approx(70.0)


def test_rankings_all_assets(service, seed):
    seed("mangrove", MANGROVE_PRICES, volume=100.0)
    seed("seagrass", [10, 10.5, 10.2, 10.4], volume=500.0)

    result = service.rankings(weights={"liquidity": 1.0})
    assert [e.asset_id for e in result.entries] == ["seagrass", "mangrove"]
    assert [e.rank for e in result.entries] == [1, 2]


def test_rankings_reject_bad_weights(service, seed):
    seed("mangrove", MANGROVE_PRICES)
    with pytest.raises(InvalidWeights):
        service.rankings(["mangrove"], {"price": 0.7})


def test_comparison(service, seed):
    seed("mangrove", MANGROVE_PRICES)
    seed("seagrass", [10, 11, 12, 13])
    result = service.comparison("mangrove", "seagrass", {"price": 1.0})
    assert result.leader == "mangrove"
    assert result.deltas["price"] == pytest.approx(25 - 13)

    with pytest.raises(AssetNotFound):
        service.comparison("mangrove", "kelp")


def test_cache_disabled():
    from analytics import AnalyticsService
    from core import IngestionEngine

    engine = IngestionEngine()
    for s in make_samples([1, 2, 3]):
        engine.ingest("a", s)
    service = AnalyticsService(engine=engine, cache_size=0)
    assert service.statistics("a") is not service.statistics("a")
    assert service.stats()["cache"]["size"] == 0
