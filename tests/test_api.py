import json

from conftest import MANGROVE_PRICES


def _seed(seed):
    seed("mangrove", MANGROVE_PRICES, volume=100.0)
    seed("seagrass", [10, 11, 10.5, 11.5, 12, 11, 12.5, 13], volume=400.0)


def test_root_and_health(client):
    assert client.get("/").json()["name"] == "Carbon Market Analytics API"
    health = client.get("/health").json()
    assert health["status"] == "healthy"
    assert health["engine"]["persistent"] is False


# =============================================================================
# Upload
# =============================================================================

def test_upload_csv(client, engine, audit_log):
    csv_body = "timestamp,price,volume\n2024-01-01,20,100\n2024-02-01,21,\n2024-03-01,,50\n"
    response = client.post(
        "/api/upload/csv?asset_id=mangrove",
        files={"file": ("prices.csv", csv_body, "text/csv")},
        headers={"X-Actor-Id": "loader"},
    )
    body = response.json()
    assert response.status_code == 200
    assert body["count"] == 2
    assert body["errors"] == 1
    assert engine.store.latest("mangrove").volume == 0.0

    entries = list(audit_log.query(action="data_ingested"))
    assert [(e.actor_id, e.target_id) for e in entries] == [("loader", "mangrove")]


def test_upload_csv_without_price_column(client):
    response = client.post(
        "/api/upload/csv?asset_id=mangrove",
        files={"file": ("prices.csv", "timestamp,volume\n2024-01-01,1\n", "text/csv")},
    )
    assert response.status_code == 400


def test_upload_ndjson(client, engine):
    lines = "\n".join([
        json.dumps({"asset_id": "kelp", "timestamp": "2024-01-01", "price": 5}),
        "garbage",
        json.dumps({"asset_id": "kelp", "timestamp": "2024-01-02", "price": 6}),
    ])
    body = client.post(
        "/api/upload/ndjson",
        files={"file": ("prices.ndjson", lines, "application/x-ndjson")},
    ).json()
    assert body["count"] == 2
    assert body["errors"] == 1
    assert [s.price for s in engine.get_samples("kelp")] == [5, 6]


def test_upload_samples_out_of_order_counted(client, seed):
    seed("mangrove", [20])
    body = client.post("/api/upload/samples", json={"samples": [
        {"asset_id": "mangrove", "timestamp": "2023-01-01", "price": 19},
        {"asset_id": "mangrove", "timestamp": "2030-01-01", "price": 22},
    ]}).json()
    assert body["count"] == 1
    assert body["errors"] == 1


# =============================================================================
# History
# =============================================================================

def test_history_endpoints(client, seed):
    _seed(seed)

    stats = client.get("/api/history/statistics/mangrove").json()
    assert stats["success"] is True
    assert stats["data"]["sample_count"] == len(MANGROVE_PRICES)

    series = client.get("/api/history/timeseries/mangrove").json()["data"]
    assert [p["price"] for p in series["data"]] == MANGROVE_PRICES

    seasonal = client.get("/api/history/seasonal/mangrove?period=4").json()["data"]
    assert seasonal["edge_mask"][:2] == [True, True]

    forecast = client.get("/api/history/prediction/mangrove?horizon=3&period=4").json()["data"]
    assert len(forecast["forecast"]) == 3


def test_unknown_asset_is_404(client):
    response = client.get("/api/history/statistics/kelp")
    assert response.status_code == 404
    body = response.json()
    assert body["success"] is False
    assert body["error"]["kind"] == "AssetNotFound"


def test_insufficient_data_is_400(client, seed):
    seed("mangrove", [20, 21, 22])
    response = client.get("/api/history/seasonal/mangrove?period=4")
    assert response.status_code == 400
    assert response.json()["error"]["kind"] == "InsufficientData"


def test_horizon_above_limit_is_invalid_request(client, seed, service):
    _seed(seed)
    response = client.get(f"/api/history/prediction/mangrove?horizon={service.max_horizon + 1}&period=4")
    assert response.status_code == 400
    assert response.json()["error"]["kind"] == "InvalidRequest"


# =============================================================================
# Market & orders
# =============================================================================

def test_price_history_and_assets(client, seed):
    _seed(seed)
    history = client.get("/api/market/price-history/mangrove?days=365&interval=1d").json()["data"]
    assert history["count"] == len(MANGROVE_PRICES)

    assert client.get("/api/market/price-history/mangrove?interval=7m").status_code == 400

    assets = client.get("/api/market/assets").json()["data"]
    assert [a["asset_id"] for a in assets] == ["mangrove", "seagrass"]


def test_place_order_audited_once(client, seed, audit_log):
    _seed(seed)
    response = client.post(
        "/api/market/order",
        json={"asset_id": "mangrove", "side": "buy", "amount": 40, "slippage_tolerance_pct": 1.0},
        headers={"X-Actor-Id": "trader-1"},
    )
    result = response.json()["data"]
    assert response.status_code == 200
    assert result["status"] == "filled"
    assert result["executed_amount"] == 40

    entries = list(audit_log.query(target_id=result["order_id"]))
    assert len(entries) == 1
    assert entries[0].actor_id == "trader-1"
    assert entries[0].entry_id == result["audit_entry_id"]

    fetched = client.get(f"/api/market/order/{result['order_id']}").json()["data"]
    assert fetched == result

    liquidity = client.get("/api/market/liquidity/mangrove").json()["data"]
    assert liquidity["available"] == 60


def test_invalid_order_is_rejected_and_audited(client, seed, audit_log):
    _seed(seed)
    result = client.post(
        "/api/market/order",
        json={"asset_id": "mangrove", "side": "sell", "amount": -5},
    ).json()["data"]
    assert result["status"] == "rejected"
    assert result["reject_code"] == "InvalidAmount"
    assert len(list(audit_log.query(action="trade_rejected"))) == 1


def test_unknown_side_is_rejected_and_audited(client, seed, audit_log):
    _seed(seed)
    response = client.post(
        "/api/market/order",
        json={"asset_id": "mangrove", "side": "hold", "amount": 5},
    )
    assert response.status_code == 200
    result = response.json()["data"]
    assert result["status"] == "rejected"
    assert result["reject_code"] == "InvalidSide"
    assert len(list(audit_log.query(target_id=result["order_id"]))) == 1


def test_partial_fill_over_api(client, seed):
    _seed(seed)
    result = client.post(
        "/api/market/order",
        json={"asset_id": "mangrove", "side": "buy", "amount": 150},
    ).json()["data"]
    assert result["status"] == "partially_filled"
    assert result["executed_amount"] == 100
    assert result["shortfall"] == 50


def test_unknown_order_is_404(client):
    assert client.get("/api/market/order/ord_missing").status_code == 404


def test_orders_listing_and_stats(client, seed):
    _seed(seed)
    for amount in (10, 20):
        client.post("/api/market/order", json={"asset_id": "seagrass", "side": "buy", "amount": amount})
    orders = client.get("/api/market/orders?asset_id=seagrass").json()["data"]
    assert [o["requested_amount"] for o in orders] == [10, 20]

    trading = client.get("/api/market/stats").json()["data"]["trading"]
    assert trading["total_orders"] == 2
    assert trading["buy_volume"] == 30


# =============================================================================
# Comparison
# =============================================================================

def test_rankings_and_comparison(client, seed):
    _seed(seed)
    ranking = client.get("/api/comparison/rankings?liquidity=1").json()["data"]
    assert [e["asset_id"] for e in ranking["entries"]] == ["seagrass", "mangrove"]

    comparison = client.get("/api/comparison?asset_a=mangrove&asset_b=seagrass&price=1").json()["data"]
    assert comparison["leader"] == "mangrove"


def test_invalid_weights_is_400(client, seed):
    _seed(seed)
    response = client.get("/api/comparison/rankings?price=0.5&trend=0.2")
    assert response.status_code == 400
    assert response.json()["error"]["kind"] == "InvalidWeights"


# =============================================================================
# Export
# =============================================================================

def test_export_csv_download(client, seed, audit_log):
    _seed(seed)
    response = client.post(
        "/api/export",
        json={"kind": "statistics", "format": "csv", "asset_id": "mangrove"},
        headers={"X-Actor-Id": "analyst"},
    )
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert "attachment; filename=statistics_mangrove_" in response.headers["content-disposition"]
    assert response.text.splitlines()[0] == "metric,value"

    entries = list(audit_log.query(action="report_exported"))
    assert len(entries) == 1
    assert entries[0].actor_id == "analyst"


def test_export_comparison_json(client, seed):
    _seed(seed)
    response = client.post("/api/export", json={
        "kind": "comparison", "format": "json",
        "asset_id": "mangrove", "asset_b": "seagrass",
    })
    assert response.status_code == 200
    assert response.json()["asset_a"]["asset_id"] == "mangrove"


def test_export_unsupported_format(client, seed, audit_log):
    _seed(seed)
    response = client.post("/api/export", json={"kind": "statistics", "format": "xml", "asset_id": "mangrove"})
    assert response.status_code == 400
    assert response.json()["error"]["kind"] == "UnsupportedFormat"
    assert len(audit_log) == 0


def test_export_missing_asset(client, seed):
    _seed(seed)
    response = client.post("/api/export", json={"kind": "seasonal", "format": "csv"})
    assert response.status_code == 400
    assert response.json()["error"]["kind"] == "InvalidRequest"


# =============================================================================
# Admin
# =============================================================================

def test_audit_endpoints(client, seed):
    _seed(seed)
    client.post("/api/market/order", json={"asset_id": "mangrove", "side": "buy", "amount": 1},
                headers={"X-Actor-Id": "alice"})
    client.post("/api/market/order", json={"asset_id": "mangrove", "side": "buy", "amount": 0},
                headers={"X-Actor-Id": "bob"})

    entries = client.get("/api/admin/audit?actor_id=alice").json()["data"]["entries"]
    assert len(entries) == 1
    assert entries[0]["action"] == "trade_executed"

    stats = client.get("/api/admin/audit/stats").json()["data"]
    assert stats["by_actor"] == {"alice": 1, "bob": 1}


def test_clear_data_keeps_audit(client, seed, engine, audit_log):
    _seed(seed)
    response = client.delete("/api/admin/data?asset_id=mangrove", headers={"X-Actor-Id": "ops"})
    assert response.json()["data"] == {"cleared": "mangrove"}
    assert engine.get_assets() == ["seagrass"]
    assert [e.action.value for e in audit_log.query()] == ["data_cleared"]


# =============================================================================
# Feed
# =============================================================================

def test_feed_status_and_stop(client):
    status = client.get("/api/feed/status").json()
    assert status["status"] == "stopped"
    assert client.post("/api/feed/stop").json()["status"] == "not_running"


def test_feed_start_without_url(client, audit_log):
    assert client.post("/api/feed/start", json={"assets": ["mangrove"]}).json()["status"] == "error"
    assert len(audit_log) == 0
