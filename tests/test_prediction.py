import math
from datetime import timedelta

import numpy as np
import pytest

from analytics import TrendDirection, predict
from core import InsufficientData

from conftest import MANGROVE_PRICES, make_samples


def test_linear_trend_extrapolated():
    samples = make_samples([10 + i for i in range(12)])
    result = predict("a", samples, horizon=3, period=4)

    assert [p.value for p in result.forecast] == pytest.approx([22, 23, 24])
    assert result.trend_slope == pytest.approx(1)
    assert result.trend_direction == TrendDirection.INCREASING
    assert result.residual_std == pytest.approx(0, abs=1e-9)
    assert result.confidence_low == pytest.approx(result.confidence_high)


def test_forecast_timestamps_follow_sample_spacing():
    samples = make_samples([10 + i for i in range(12)], step=timedelta(days=7))
    result = predict("a", samples, horizon=2, period=4)
    assert result.forecast[0].timestamp == samples[-1].ts + timedelta(days=7)
    assert result.forecast[1].timestamp == samples[-1].ts + timedelta(days=14)


def test_seasonal_pattern_reapplied():
    pattern = [1, -1, 2, -2]
    samples = make_samples([10 + pattern[i % 4] for i in range(16)])
    result = predict("a", samples, horizon=4, period=4)

    # Next positions are 16..19, phases 0..3
    assert [p.value for p in result.forecast] == pytest.approx([11, 9, 12, 8])
    assert result.trend_direction == TrendDirection.STABLE


def test_band_widens_with_sqrt_of_steps():
    rng = np.random.default_rng(3)
    prices = (30 + rng.normal(0, 2, 24)).tolist()
    result = predict("a", make_samples(prices), horizon=9, period=4)

    widths = [hi - lo for lo, hi in zip(result.confidence_low, result.confidence_high)]
    assert widths[0] == pytest.approx(2 * 1.96 * result.residual_std)
    assert widths[3] == pytest.approx(widths[0] * math.sqrt(4))
    assert widths[8] == pytest.approx(widths[0] * 3)
    for point, lo, hi in zip(result.forecast, result.confidence_low, result.confidence_high):
        assert lo <= point.value <= hi


def test_decreasing_trend():
    result = predict("a", make_samples([50 - 2 * i for i in range(12)]), horizon=1, period=4)
    assert result.trend_direction == TrendDirection.DECREASING


def test_insufficient_data_propagates():
    with pytest.raises(InsufficientData):
        predict("mangrove", make_samples(MANGROVE_PRICES[:7]), horizon=3, period=4)


def test_horizon_must_be_positive():
    with pytest.raises(ValueError):
        predict("mangrove", make_samples(MANGROVE_PRICES), horizon=0, period=4)


def test_horizon_length():
    result = predict("mangrove", make_samples(MANGROVE_PRICES), horizon=5, period=4)
    assert len(result.forecast) == len(result.confidence_low) == len(result.confidence_high) == 5
