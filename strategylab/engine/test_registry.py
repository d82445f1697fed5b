"""
Tests for the strategy registry and built-in strategies.
"""

import pandas as pd
import pytest

from strategylab.engine.constants import Signal
from strategylab.engine.exceptions import InvalidParameterError, UnknownStrategyError
from strategylab.engine.registry import (
    get_strategy,
    is_registered,
    list_strategies,
    register_strategy,
    unregister_strategy,
)
from strategylab.indicators.calculations import BollingerBands, MACDResult
from strategylab.indicators.series import SeriesBundle


@pytest.fixture
def registered_name():
    """Name registered during a test and removed afterwards."""
    name = "test_breakout"
    yield name
    unregister_strategy(name)


class TestRegistry:
    """Tests for registration and lookup."""

    def test_builtins_registered(self):
        for name in ("rsi", "macd", "bollinger", "fibonacci"):
            assert is_registered(name)
        assert set(list_strategies()) >= {"rsi", "macd", "bollinger", "fibonacci"}

    def test_register_and_lookup(self, registered_name):
        @register_strategy(registered_name, requires=("bollinger",), defaults={"k": 2})
        def breakout(bars, index, bundle, params):
            return 1

        entry = get_strategy(registered_name.upper())
        assert entry.func is breakout
        assert entry.requires == ("bollinger",)
        assert entry.timeout == pytest.approx(0.5)
        assert entry.merged_params({"x": 1}) == {"k": 2, "x": 1}
        assert entry.merged_params({"k": 3}) == {"k": 3}

    def test_decorator_returns_function(self, registered_name):
        def fn(bars, index, bundle, params):
            return 0

        assert register_strategy(registered_name)(fn) is fn

    def test_unknown_requirement_rejected(self):
        with pytest.raises(InvalidParameterError, match="requires"):
            register_strategy("t_bad", requires=("ichimoku",))
        assert not is_registered("t_bad")

    def test_unknown_strategy(self):
        with pytest.raises(UnknownStrategyError, match="nope"):
            get_strategy("nope")

    def test_unregister_missing_is_noop(self):
        unregister_strategy("never_registered")
        assert not is_registered("never_registered")


class FixedBundle:
    """Bundle with hand-set series."""

    def __init__(self, close=None, rsi=None, macd=None, signal=None, upper=None, lower=None):
        self.close = pd.Series(close or [100.0], dtype=float)
        self._rsi = pd.Series(rsi or [50.0], dtype=float)
        self._macd = (macd, signal)
        self._bands = (upper, lower)

    def rsi(self):
        return self._rsi

    def macd(self):
        line = pd.Series(self._macd[0], dtype=float)
        signal = pd.Series(self._macd[1], dtype=float)
        return MACDResult(line, signal, line - signal)

    def bollinger(self):
        upper = pd.Series(self._bands[0], dtype=float)
        lower = pd.Series(self._bands[1], dtype=float)
        return BollingerBands(upper, (upper + lower) / 2, lower)


def call(name, bundle, index, **params):
    entry = get_strategy(name)
    return entry.func(None, index, bundle, entry.merged_params(params))


class TestBuiltinStrategies:
    """Tests for the built-in strategy functions."""

    @pytest.mark.parametrize(
        "rsi, expected", [(25.0, Signal.BUY), (75.0, Signal.SELL), (50.0, Signal.HOLD)]
    )
    def test_rsi(self, rsi, expected):
        assert call("rsi", FixedBundle(rsi=[rsi]), 0) == expected

    def test_rsi_custom_thresholds(self):
        assert call("rsi", FixedBundle(rsi=[35.0]), 0, oversold=40) == Signal.BUY

    def test_macd_crossovers(self):
        up = FixedBundle(macd=[-1.0, 1.0], signal=[0.0, 0.0])
        down = FixedBundle(macd=[1.0, -1.0], signal=[0.0, 0.0])
        flat = FixedBundle(macd=[1.0, 2.0], signal=[0.0, 0.0])
        assert call("macd", up, 1) == Signal.BUY
        assert call("macd", down, 1) == Signal.SELL
        assert call("macd", flat, 1) == Signal.HOLD
        assert call("macd", up, 0) == Signal.HOLD

    def test_bollinger(self):
        assert call("bollinger", FixedBundle(close=[85.0], upper=[110.0], lower=[90.0]), 0) == Signal.BUY
        assert call("bollinger", FixedBundle(close=[115.0], upper=[110.0], lower=[90.0]), 0) == Signal.SELL
        assert call("bollinger", FixedBundle(close=[100.0], upper=[110.0], lower=[90.0]), 0) == Signal.HOLD

    def test_fibonacci_whole_series(self, make_bars):
        # Swing high 201, swing low 99
        bundle = SeriesBundle(make_bars(list(range(100, 201))))
        assert call("fibonacci", bundle, 62) == Signal.BUY  # close 162 ~ 38.2%
        assert call("fibonacci", bundle, 100) == Signal.SELL  # close 200 ~ 0%
        assert call("fibonacci", bundle, 30) == Signal.HOLD

    def test_fibonacci_trailing_lookback_warms_up(self, make_bars):
        bundle = SeriesBundle(make_bars(list(range(100, 201))))
        assert call("fibonacci", bundle, 5, lookback=20) == Signal.HOLD

    def test_fibonacci_trailing_lookback(self, make_bars):
        # Window of bars 31-50: high 151, low 130; close 150 is within 1% of 151
        bundle = SeriesBundle(make_bars(list(range(100, 201))))
        assert call("fibonacci", bundle, 50, lookback=20) == Signal.SELL
