"""
Tests for IndicatorSettings, IndicatorCache and SeriesBundle.
"""

import pandas as pd
import pytest

from strategylab.indicators.calculations import calculate_rsi
from strategylab.indicators.exceptions import InvalidPeriodError
from strategylab.indicators.series import (
    IndicatorCache,
    IndicatorSettings,
    SeriesBundle,
    series_hash,
)


class TestIndicatorSettings:
    """Tests for IndicatorSettings.from_params."""

    def test_defaults(self):
        settings = IndicatorSettings()
        assert settings.rsi_period == 14
        assert (settings.macd_fast, settings.macd_slow, settings.macd_signal) == (12, 26, 9)
        assert settings.bollinger_period == 20
        assert settings.bollinger_multiplier == 2.0

    def test_period_alias(self):
        settings = IndicatorSettings.from_params({"period": 7})
        assert settings.rsi_period == 7

    def test_overrides_and_unknown_names(self):
        settings = IndicatorSettings.from_params(
            {"bollinger_multiplier": "2.5", "oversold": 25, "macd_fast": 5}
        )
        assert settings.bollinger_multiplier == 2.5
        assert settings.macd_fast == 5
        assert settings.rsi_period == 14

    def test_empty_params(self):
        assert IndicatorSettings.from_params(None) == IndicatorSettings()

    @pytest.mark.parametrize("value", ["fast", [14], True])
    def test_non_numeric_parameter(self, value):
        with pytest.raises(InvalidPeriodError) as exc_info:
            IndicatorSettings.from_params({"period": value})
        assert exc_info.value.name == "period"
        assert "must be a number" in str(exc_info.value)


class TestIndicatorCache:
    """Tests for IndicatorCache."""

    def test_hit_and_miss(self):
        cache = IndicatorCache()
        calls = []

        def compute():
            calls.append(1)
            return 42

        assert cache.get_or_compute("rsi", (14,), 1, compute) == 42
        assert cache.get_or_compute("rsi", (14,), 1, compute) == 42
        assert len(calls) == 1
        assert cache.hits == 1
        assert cache.misses == 1

    def test_key_includes_params_and_hash(self):
        cache = IndicatorCache()
        cache.get_or_compute("rsi", (14,), 1, lambda: 1)
        cache.get_or_compute("rsi", (7,), 1, lambda: 2)
        cache.get_or_compute("rsi", (14,), 2, lambda: 3)
        assert len(cache) == 3
        assert ("rsi", (14,), 1) in cache

    def test_clear(self):
        cache = IndicatorCache()
        cache.get_or_compute("rsi", (14,), 1, lambda: 1)
        cache.clear()
        assert len(cache) == 0


class TestSeriesHash:
    """Tests for series_hash."""

    def test_same_content_same_hash(self):
        assert series_hash(pd.Series([1.0, 2.0])) == series_hash(pd.Series([1.0, 2.0]))

    def test_different_content(self):
        assert series_hash(pd.Series([1.0, 2.0])) != series_hash(pd.Series([1.0, 3.0]))


class TestSeriesBundle:
    """Tests for SeriesBundle."""

    def test_rsi_matches_calculation(self, sample_ohlcv_data):
        bundle = SeriesBundle(sample_ohlcv_data)
        expected = calculate_rsi(sample_ohlcv_data["Close"], 14)
        pd.testing.assert_series_equal(bundle.rsi(), expected)

    def test_memoized(self, sample_ohlcv_data):
        bundle = SeriesBundle(sample_ohlcv_data)
        first = bundle.macd()
        second = bundle.macd()
        assert first is second
        assert bundle.cache.hits == 1

    def test_shared_cache_across_bundles(self, sample_ohlcv_data):
        """Test a caller-owned cache is reused for identical bars."""
        cache = IndicatorCache()
        SeriesBundle(sample_ohlcv_data, cache=cache).rsi()
        SeriesBundle(sample_ohlcv_data.copy(), cache=cache).rsi()
        assert cache.misses == 1
        assert cache.hits == 1

    def test_private_caches_are_independent(self, sample_ohlcv_data):
        first = SeriesBundle(sample_ohlcv_data)
        second = SeriesBundle(sample_ohlcv_data)
        first.rsi()
        assert len(second.cache) == 0

    def test_settings_change_key(self, sample_ohlcv_data):
        bundle = SeriesBundle(sample_ohlcv_data)
        other = bundle.with_settings(IndicatorSettings(rsi_period=7))
        assert other.cache is bundle.cache
        assert not bundle.rsi().equals(other.rsi())
        assert len(bundle.cache) == 2

    def test_fibonacci_windows(self, sample_ohlcv_data):
        bundle = SeriesBundle(sample_ohlcv_data)
        whole = bundle.fibonacci()
        assert whole.swing_high == pytest.approx(sample_ohlcv_data["High"].max())

        trailing = bundle.fibonacci(index=29, lookback=10)
        window = sample_ohlcv_data.iloc[20:30]
        assert trailing.swing_low == pytest.approx(window["Low"].min())

    def test_volume_metrics(self, sample_ohlcv_data):
        metrics = SeriesBundle(sample_ohlcv_data).volume_metrics()
        assert len(metrics.obv) == len(sample_ohlcv_data)
