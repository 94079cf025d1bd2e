import numpy as np
import pytest

from analytics import decompose
from analytics.seasonal import centered_trend, moving_average_weights
from core import InsufficientData

from conftest import MANGROVE_PRICES, make_samples


def test_mangrove_needs_two_full_cycles():
    with pytest.raises(InsufficientData):
        decompose("mangrove", make_samples(MANGROVE_PRICES[:7]), period=4)

    result = decompose("mangrove", make_samples(MANGROVE_PRICES), period=4)
    assert result.period == 4
    assert len(result.trend) == len(result.seasonal) == len(result.residual) == 8


def test_edges_flagged():
    result = decompose("mangrove", make_samples(MANGROVE_PRICES), period=4)
    assert result.edge_mask == [True, True, False, False, False, False, True, True]
    assert result.trend[:2] == [None, None]
    assert result.residual[-2:] == [None, None]
    assert all(t is not None for t in result.trend[2:6])


@pytest.mark.parametrize("period", [2, 3, 4, 5, 12])
def test_round_trip_at_non_edge_points(period):
    rng = np.random.default_rng(7)
    n = period * 4 + 1
    prices = 50 + np.arange(n) * 0.3 + rng.normal(0, 1, n) + 5 * np.sin(np.arange(n) * 2 * np.pi / period)
    samples = make_samples(prices.tolist())

    result = decompose("a", samples, period)

    for i, observed in enumerate(result.observed):
        if result.edge_mask[i]:
            continue
        rebuilt = result.trend[i] + result.seasonal[i] + result.residual[i]
        assert abs(rebuilt - observed) < 1e-6


def test_seasonal_index_sums_to_zero_and_repeats():
    result = decompose("mangrove", make_samples(MANGROVE_PRICES), period=4)
    assert sum(result.seasonal_index) == pytest.approx(0, abs=1e-9)
    for i, value in enumerate(result.seasonal):
        assert value == result.seasonal_index[i % 4]


def test_pure_seasonal_pattern_is_recovered():
    pattern = [1, -1, 2, -2]
    samples = make_samples([10 + pattern[i % 4] for i in range(16)])

    result = decompose("a", samples, 4)

    assert result.seasonal_index == pytest.approx(pattern)
    assert [t for t in result.trend if t is not None] == pytest.approx([10] * 12)
    assert result.peak_phase == 2
    assert result.trough_phase == 3
    assert result.seasonal_strength == pytest.approx(1.0)


def test_linear_series_has_no_seasonality():
    result = decompose("a", make_samples([10 + i for i in range(12)]), 4)
    assert result.seasonal_index == pytest.approx([0, 0, 0, 0], abs=1e-9)
    assert result.seasonal_strength == 0.0


def test_period_must_be_at_least_two():
    with pytest.raises(ValueError):
        decompose("a", make_samples([1, 2, 3, 4]), 1)


def test_moving_average_weights():
    assert moving_average_weights(3).tolist() == pytest.approx([1 / 3] * 3)
    assert moving_average_weights(4).tolist() == pytest.approx([0.125, 0.25, 0.25, 0.25, 0.125])


def test_centered_trend_odd_period():
    trend = centered_trend(np.array([1.0, 2.0, 3.0, 4.0, 5.0]), 3)
    assert np.isnan(trend[0]) and np.isnan(trend[-1])
    assert trend[1:4].tolist() == pytest.approx([2, 3, 4])
