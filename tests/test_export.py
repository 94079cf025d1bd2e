import csv
import io
import json

import pytest

from analytics import (
    AssetMetrics,
    compare,
    compute_statistics,
    decompose,
    export_result,
    predict,
    rank,
)
from analytics.export import ExportFormat
from core import UnsupportedFormat

from conftest import MANGROVE_PRICES, make_samples


def _csv_rows(content: bytes):
    return list(csv.reader(io.StringIO(content.decode("utf-8"))))


def test_statistics_json():
    stats = compute_statistics("mangrove", make_samples(MANGROVE_PRICES))
    data = json.loads(export_result(stats, "json"))
    assert data["asset_id"] == "mangrove"
    assert data["percentiles"]["p50"] == stats.percentiles["p50"]
    assert data["window_start"] == stats.window_start.isoformat()


def test_statistics_csv_is_metric_value_rows():
    stats = compute_statistics("mangrove", make_samples(MANGROVE_PRICES))
    rows = _csv_rows(export_result(stats, ExportFormat.CSV))
    assert rows[0] == ["metric", "value"]
    metrics = dict(rows[1:])
    assert float(metrics["mean"]) == pytest.approx(stats.mean)
    assert "percentiles_p90" in metrics


def test_seasonal_csv_row_per_point():
    result = decompose("mangrove", make_samples(MANGROVE_PRICES), 4)
    rows = _csv_rows(export_result(result, "csv"))
    assert rows[0] == ["timestamp", "observed", "trend", "seasonal", "residual", "edge"]
    assert len(rows) == 9
    # Edge points have empty trend / residual cells
    assert rows[1][2] == "" and rows[1][4] == ""
    assert rows[3][2] != ""


def test_prediction_csv():
    result = predict("mangrove", make_samples(MANGROVE_PRICES), 3, 4)
    rows = _csv_rows(export_result(result, "csv"))
    assert rows[0] == ["timestamp", "forecast", "confidence_low", "confidence_high"]
    assert len(rows) == 4


def test_ranking_and_comparison():
    a = AssetMetrics("A", 30, 0, 0.05, 10)
    b = AssetMetrics("B", 20, 0, 0.2, 10)

    rows = _csv_rows(export_result(rank([a, b], {"price": 1.0}), "csv"))
    assert [r[1] for r in rows[1:]] == ["A", "B"]

    data = json.loads(export_result(compare(a, b, {"price": 1.0}), "JSON"))
    assert data["leader"] == "A"


@pytest.mark.parametrize("fmt", ["xml", "pdf", "", "xlsx"])
def test_unsupported_format(fmt):
    stats = compute_statistics("a", make_samples([1, 2]))
    with pytest.raises(UnsupportedFormat):
        export_result(stats, fmt)


def test_export_does_not_mutate_result():
    stats = compute_statistics("a", make_samples([1, 2, 3]))
    before = stats.to_dict()
    export_result(stats, "csv")
    export_result(stats, "json")
    assert stats.to_dict() == before
