"""
Tests for volume-derived indicators.
"""

import numpy as np
import pandas as pd
import pytest

from strategylab.indicators.exceptions import InsufficientDataError
from strategylab.indicators.volume import (
    calculate_accumulation_distribution,
    calculate_obv,
    calculate_relative_volume,
    calculate_volume_metrics,
    detect_volume_divergences,
)


class TestCalculateOBV:
    """Tests for calculate_obv function."""

    def test_obv_direction(self):
        """Test volume is added on up closes, subtracted on down, kept on equal."""
        close = pd.Series([10.0, 11.0, 10.0, 10.0, 12.0])
        volume = pd.Series([100.0, 200.0, 300.0, 400.0, 500.0])
        result = calculate_obv(close, volume)
        assert result.tolist() == [100.0, 300.0, 0.0, 0.0, 500.0]

    def test_obv_length(self, sample_ohlcv_data):
        result = calculate_obv(sample_ohlcv_data["Close"], sample_ohlcv_data["Volume"])
        assert len(result) == len(sample_ohlcv_data)
        assert result.notna().all()


class TestAccumulationDistribution:
    """Tests for calculate_accumulation_distribution."""

    def test_money_flow_multiplier(self):
        high = pd.Series([12.0])
        low = pd.Series([8.0])
        close = pd.Series([11.0])
        volume = pd.Series([100.0])
        result = calculate_accumulation_distribution(high, low, close, volume)
        # ((11 - 8) - (12 - 11)) / (12 - 8) = 0.5
        assert result.iloc[0] == pytest.approx(50.0)

    def test_zero_range_bar(self):
        """Test high == low contributes nothing."""
        high = pd.Series([12.0, 10.0])
        low = pd.Series([8.0, 10.0])
        close = pd.Series([11.0, 10.0])
        volume = pd.Series([100.0, 1000.0])
        result = calculate_accumulation_distribution(high, low, close, volume)
        assert result.tolist() == pytest.approx([50.0, 50.0])


class TestRelativeVolume:
    """Tests for calculate_relative_volume."""

    def test_relative_volume(self):
        volume = pd.Series([1.0, 1.0, 1.0, 4.0])
        result = calculate_relative_volume(volume, period=2)
        assert pd.isna(result.iloc[0])
        assert result.iloc[1] == pytest.approx(1.0)
        assert result.iloc[3] == pytest.approx(4.0 / 2.5)

    def test_zero_average(self):
        volume = pd.Series([0.0, 0.0, 0.0])
        result = calculate_relative_volume(volume, period=2)
        assert pd.isna(result.iloc[0])
        assert result.iloc[1:].tolist() == [0.0, 0.0]

    def test_insufficient_data(self):
        with pytest.raises(InsufficientDataError):
            calculate_relative_volume(pd.Series([1.0] * 5), period=20)


class TestVolumeDivergences:
    """Tests for detect_volume_divergences."""

    def test_bullish_divergence(self):
        """Test lower low in price with higher low in OBV."""
        close = pd.Series([10.0, 11.0, 12.0, 9.0])
        volume = pd.Series([100.0] * 4)
        obv = calculate_obv(close, volume)
        result = detect_volume_divergences(close, obv, volume, lookback=3)

        assert len(result) == 1
        divergence = result[0]
        assert divergence.index == 3
        assert divergence.bullish
        assert not divergence.bearish
        # obv move 100 / window volume 300, price move 1 / 10
        assert divergence.strength == pytest.approx((100 / 300) / 0.1)

    def test_bearish_divergence(self):
        """Test higher high in price with lower high in OBV."""
        close = pd.Series([12.0, 11.0, 10.0, 13.0])
        volume = pd.Series([100.0, 100.0, 100.0, 10.0])
        obv = calculate_obv(close, volume)
        result = detect_volume_divergences(close, obv, volume, lookback=3)

        divergence = result[0]
        assert divergence.bearish
        assert not divergence.bullish
        assert divergence.strength == pytest.approx((190 / 300) / (1 / 12))

    def test_no_divergence(self):
        close = pd.Series(np.arange(1.0, 10.0))
        volume = pd.Series([100.0] * 9)
        obv = calculate_obv(close, volume)
        result = detect_volume_divergences(close, obv, volume, lookback=3)
        assert all(not d.bullish and not d.bearish for d in result)
        assert all(d.strength == 0.0 for d in result)


class TestVolumeMetrics:
    """Tests for calculate_volume_metrics."""

    def test_all_metrics(self, sample_ohlcv_data):
        metrics = calculate_volume_metrics(sample_ohlcv_data)
        assert len(metrics.obv) == len(sample_ohlcv_data)
        assert len(metrics.accumulation_distribution) == len(sample_ohlcv_data)
        assert len(metrics.relative_volume) == len(sample_ohlcv_data)
        assert len(metrics.divergences) == len(sample_ohlcv_data) - 14
        assert metrics.latest_divergence().index == len(sample_ohlcv_data) - 1
