import pytest

from analytics import AssetMetrics, compare, compute_metrics, rank, validate_weights
from core import AssetNotFound, InvalidWeights

from conftest import make_samples


def metrics(asset_id, price=10.0, trend=0.0, volatility=0.1, liquidity=100.0):
    return AssetMetrics(asset_id, price, trend, volatility, liquidity)


A = metrics("A", price=30.0, volatility=0.05)
B = metrics("B", price=20.0, volatility=0.20)


# =============================================================================
# Weights
# =============================================================================

@pytest.mark.parametrize("weights", [
    {"price": 0.5, "volatility": 0.4},
    {"price": 0.7, "volatility": 0.7},
    {"price": 1.5, "volatility": -0.5},
    {"price": 0.5, "yield": 0.5},
    {},
])
def test_invalid_weights(weights):
    with pytest.raises(InvalidWeights):
        validate_weights(weights)


def test_weights_within_tolerance():
    assert validate_weights({"price": 0.1, "trend": 0.2, "volatility": 0.3, "liquidity": 0.4})
    assert validate_weights({"price": 1.0})


def test_rank_rejects_invalid_weights_before_ranking():
    with pytest.raises(InvalidWeights):
        rank([A, B], {"price": 0.6, "volatility": 0.6})


# =============================================================================
# Ranking
# =============================================================================

def test_higher_price_lower_volatility_ranks_first():
    result = rank([A, B], {"price": 0.5, "volatility": 0.5})
    assert result.order == ["A", "B"]
    assert [e.rank for e in result.entries] == [1, 2]


def test_volatility_only_reverses_order():
    result = rank([A, B], {"volatility": 1.0})
    assert result.order == ["B", "A"]


def test_price_only():
    result = rank([B, A], {"price": 1.0})
    assert result.order == ["A", "B"]
    assert result.entries[0].score == 1.0
    assert result.entries[1].score == 0.0


def test_ranking_is_deterministic_and_order_independent():
    candidates = [
        metrics("c", price=12, trend=0.3, volatility=0.1, liquidity=40),
        metrics("a", price=15, trend=-0.1, volatility=0.2, liquidity=90),
        metrics("d", price=9, trend=0.5, volatility=0.05, liquidity=10),
        metrics("b", price=15, trend=-0.1, volatility=0.2, liquidity=90),
    ]
    weights = {"price": 0.4, "trend": 0.3, "volatility": 0.1, "liquidity": 0.2}

    first = rank(candidates, weights)
    second = rank(candidates, weights)
    reversed_ = rank(list(reversed(candidates)), weights)

    assert first.to_dict() == second.to_dict()
    assert first.order == reversed_.order
    assert [e.score for e in first.entries] == [e.score for e in reversed_.entries]


def test_ties_broken_by_asset_id():
    result = rank([metrics("z"), metrics("m"), metrics("a")], {"price": 1.0})
    assert result.order == ["a", "m", "z"]
    assert all(e.score == 0.0 for e in result.entries)


def test_identical_metric_normalizes_to_zero():
    result = rank([metrics("a", price=5), metrics("b", price=5)], {"price": 1.0})
    assert all(e.normalized["price"] == 0.0 for e in result.entries)


def test_rank_empty():
    assert rank([], {"price": 1.0}).entries == []


# =============================================================================
# Metrics & Comparison
# =============================================================================

def test_compute_metrics():
    m = compute_metrics("a", make_samples([10, 11, 12, 13]), liquidity_depth=55)
    assert m.latest_price == 13
    assert m.trend_slope == pytest.approx(1.0)
    assert m.liquidity_depth == 55
    assert m.volatility > 0


def test_compute_metrics_single_sample():
    m = compute_metrics("a", make_samples([10]), liquidity_depth=0)
    assert m.trend_slope == 0
    assert m.volatility == 0


def test_compute_metrics_requires_samples():
    with pytest.raises(AssetNotFound):
        compute_metrics("a", [], 0)


def test_compare():
    result = compare(A, B, {"price": 0.5, "volatility": 0.5})

    assert result.deltas["price"] == pytest.approx(10)
    assert result.relative["price"] == pytest.approx(50)
    assert result.normalized_a["price"] == 1.0
    assert result.normalized_b["volatility"] == 1.0
    assert result.score_a == result.score_b
    assert result.leader is None


def test_compare_leader_and_zero_base():
    a = metrics("a", trend=0.5)
    b = metrics("b", trend=0.0)
    result = compare(a, b, {"trend": 1.0})
    assert result.leader == "a"
    assert result.relative["trend"] is None
