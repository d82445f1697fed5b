"""
Indicator series bundle and caller-owned memoization.

A SeriesBundle wraps one bar series and lazily computes the indicators that
conditions and strategies read. Results are memoized in an IndicatorCache
keyed by ``(indicator_name, params, series_hash)``. The cache belongs to
whoever created it; there is no module-level cache, so concurrent runs that
each build their own bundle share no state.
"""

from dataclasses import dataclass, fields, replace
from typing import Any, Callable, Dict, Hashable, Mapping, Optional, Tuple

import pandas as pd

from strategylab.indicators.calculations import (
    BollingerBands,
    MACDResult,
    calculate_bollinger_bands,
    calculate_macd,
    calculate_rsi,
)
from strategylab.indicators.exceptions import InvalidPeriodError
from strategylab.indicators.fibonacci import FibonacciLevels, calculate_fibonacci_levels
from strategylab.indicators.volume import VolumeMetrics, calculate_volume_metrics

CacheKey = Tuple[str, Tuple[Any, ...], int]


@dataclass(frozen=True)
class IndicatorSettings:
    """Periods and multipliers used by a SeriesBundle."""

    rsi_period: int = 14
    macd_fast: int = 12
    macd_slow: int = 26
    macd_signal: int = 9
    bollinger_period: int = 20
    bollinger_multiplier: float = 2.0
    volume_period: int = 20
    divergence_lookback: int = 14

    # Strategy parameter names accepted as aliases
    ALIASES = {"period": "rsi_period"}

    @classmethod
    def from_params(
        cls, params: Optional[Mapping[str, Any]] = None, base: Optional["IndicatorSettings"] = None
    ) -> "IndicatorSettings":
        """
        Build settings, overriding defaults with matching strategy parameters.

        Unknown parameter names are ignored.

        Raises:
            InvalidPeriodError: If a matching parameter is not numeric.
        """
        settings = base or cls()
        if not params:
            return settings

        names = {f.name for f in fields(cls)}
        overrides = {}
        for key, value in params.items():
            name = cls.ALIASES.get(key, key)
            if name not in names or value is None:
                continue
            convert = float if name == "bollinger_multiplier" else int
            if isinstance(value, bool):
                raise InvalidPeriodError("strategy", key, value, "a number")
            try:
                overrides[name] = convert(value)
            except (TypeError, ValueError, OverflowError):
                raise InvalidPeriodError("strategy", key, value, "a number")
        return replace(settings, **overrides)


def series_hash(data: Any) -> int:
    """Content hash of a Series or DataFrame (index included)."""
    return int(pd.util.hash_pandas_object(data, index=True).sum())


class IndicatorCache:
    """
    Explicit memoization table for indicator results.

    Keys are ``(indicator_name, params, series_hash)`` so a cached value is
    only reused for identical inputs.
    """

    def __init__(self) -> None:
        self._entries: Dict[CacheKey, Any] = {}
        self.hits = 0
        self.misses = 0

    def get_or_compute(
        self,
        name: str,
        params: Tuple[Hashable, ...],
        data_hash: int,
        compute: Callable[[], Any],
    ) -> Any:
        """Return the cached value for the key, computing it on a miss."""
        key = (name, params, data_hash)
        if key in self._entries:
            self.hits += 1
            return self._entries[key]

        self.misses += 1
        value = compute()
        self._entries[key] = value
        return value

    def clear(self) -> None:
        """Drop all cached entries."""
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: CacheKey) -> bool:
        return key in self._entries


class SeriesBundle:
    """
    Lazily computed indicator series for one bar series.

    Args:
        bars: Validated OHLCV DataFrame.
        settings: Indicator periods (defaults to IndicatorSettings()).
        cache: Memoization table; a private one is created when omitted.
    """

    def __init__(
        self,
        bars: pd.DataFrame,
        settings: Optional[IndicatorSettings] = None,
        cache: Optional[IndicatorCache] = None,
    ) -> None:
        self.bars = bars
        self.settings = settings or IndicatorSettings()
        self.cache = cache if cache is not None else IndicatorCache()
        self._bars_hash = series_hash(bars[["Date", "Open", "High", "Low", "Close", "Volume"]])
        self._fib_whole: Optional[FibonacciLevels] = None

    def __len__(self) -> int:
        return len(self.bars)

    @property
    def close(self) -> pd.Series:
        return self.bars["Close"]

    @property
    def volume(self) -> pd.Series:
        return self.bars["Volume"]

    def rsi(self) -> pd.Series:
        """RSI series for ``settings.rsi_period``."""
        period = self.settings.rsi_period
        return self.cache.get_or_compute(
            "rsi", (period,), self._bars_hash,
            lambda: calculate_rsi(self.close, period),
        )

    def macd(self) -> MACDResult:
        """MACD components for the configured fast/slow/signal periods."""
        s = self.settings
        params = (s.macd_fast, s.macd_slow, s.macd_signal)
        return self.cache.get_or_compute(
            "macd", params, self._bars_hash,
            lambda: calculate_macd(self.close, *params),
        )

    def bollinger(self) -> BollingerBands:
        """Bollinger Bands for the configured period and multiplier."""
        s = self.settings
        params = (s.bollinger_period, s.bollinger_multiplier)
        return self.cache.get_or_compute(
            "bollinger", params, self._bars_hash,
            lambda: calculate_bollinger_bands(self.close, *params),
        )

    def volume_metrics(self) -> VolumeMetrics:
        """OBV, A/D, relative volume and divergences."""
        s = self.settings
        params = (s.volume_period, s.divergence_lookback)
        return self.cache.get_or_compute(
            "volume", params, self._bars_hash,
            lambda: calculate_volume_metrics(self.bars, *params),
        )

    def fibonacci(self, index: Optional[int] = None, lookback: Optional[int] = None) -> FibonacciLevels:
        """
        Fibonacci levels.

        Args:
            index: Last bar of the window (inclusive); whole series when None.
            lookback: Trailing window length ending at ``index``; the whole
                prefix up to ``index`` (or the whole series) when None.
        """
        if index is None and lookback is None:
            if self._fib_whole is None:
                self._fib_whole = self.cache.get_or_compute(
                    "fibonacci", (None, None), self._bars_hash,
                    lambda: calculate_fibonacci_levels(self.bars, None),
                )
            return self._fib_whole

        end = len(self.bars) if index is None else index + 1
        return self.cache.get_or_compute(
            "fibonacci", (end, lookback), self._bars_hash,
            lambda: calculate_fibonacci_levels(self.bars.iloc[:end], lookback),
        )

    def with_settings(self, settings: IndicatorSettings) -> "SeriesBundle":
        """Bundle over the same bars and cache with different settings."""
        return SeriesBundle(self.bars, settings=settings, cache=self.cache)
