"""
Vectorized indicator math over pandas Series.

Every function returns new Series aligned 1:1 with its input, NaN over the
warm-up window, and leaves the input untouched. Covered here: SMA, the
SMA-seeded EMA, Wilder RSI, MACD and Bollinger Bands (population std).
"""

from dataclasses import dataclass

import numpy as np
import pandas as pd

from strategylab.indicators.exceptions import InsufficientDataError, InvalidPeriodError


@dataclass(frozen=True)
class MACDResult:
    """MACD components aligned to the input series."""

    macd_line: pd.Series
    signal_line: pd.Series
    histogram: pd.Series


@dataclass(frozen=True)
class BollingerBands:
    """Bollinger Band components aligned to the input series."""

    upper: pd.Series
    middle: pd.Series
    lower: pd.Series


def check_period(indicator: str, name: str, value: int) -> int:
    """Validate that ``value`` is a positive integer period."""
    if isinstance(value, bool) or not isinstance(value, (int, np.integer)) or value <= 0:
        raise InvalidPeriodError(indicator, name, value)
    return int(value)


def require_length(indicator: str, series: pd.Series, required: int) -> None:
    """Raise InsufficientDataError when ``series`` is shorter than ``required``."""
    if len(series) < required:
        raise InsufficientDataError(indicator, required, len(series))


def _as_float(series: pd.Series) -> pd.Series:
    return pd.Series(series, dtype=float)


# =============================================================================
# Moving Averages
# =============================================================================


def calculate_sma(series: pd.Series, period: int) -> pd.Series:
    """
    Trailing arithmetic mean over ``period`` bars.

    Args:
        series: Values to average.
        period: Lookback period.

    Returns:
        Means, NaN for the first ``period - 1`` bars.
    """
    period = check_period("SMA", "period", period)
    require_length("SMA", series, period)
    return _as_float(series).rolling(window=period, min_periods=period).mean()


def _seeded_ema(series: pd.Series, period: int) -> pd.Series:
    """
    EMA seeded with the SMA of the first ``period`` valid values.

    Leading NaNs (e.g. the warm-up of an upstream indicator) are skipped;
    the first EMA value sits at the last bar of the seed window.
    """
    values = _as_float(series)
    result = pd.Series(np.nan, index=values.index)

    valid_positions = np.flatnonzero(values.notna().to_numpy())
    if len(valid_positions) < period:
        return result

    first = valid_positions[0]
    seed_pos = first + period - 1
    seeded = values.copy()
    seeded.iloc[:seed_pos] = np.nan
    seeded.iloc[seed_pos] = values.iloc[first:seed_pos + 1].mean()

    ema = seeded.iloc[seed_pos:].ewm(span=period, adjust=False).mean()
    result.iloc[seed_pos:] = ema.to_numpy()
    return result


def calculate_ema(series: pd.Series, period: int) -> pd.Series:
    """
    Exponential moving average seeded with a simple average.

    Uses span-based smoothing (alpha = 2 / (period + 1)) seeded with the
    simple average of the first ``period`` values, so the first ``period - 1``
    entries are NaN.

    Args:
        series: Values to average.
        period: Lookback period (span).

    Returns:
        EMA series.
    """
    period = check_period("EMA", "period", period)
    require_length("EMA", series, period)
    return _seeded_ema(series, period)


# =============================================================================
# RSI (Relative Strength Index)
# =============================================================================


def _wilder_average(values: pd.Series, period: int) -> pd.Series:
    """Wilder smoothing seeded with the mean of the first ``period`` changes."""
    seeded = values.copy()
    seeded.iloc[:period] = np.nan
    seeded.iloc[period] = values.iloc[1:period + 1].mean()
    return seeded.ewm(alpha=1 / period, adjust=False).mean()


def calculate_rsi(close: pd.Series, period: int = 14) -> pd.Series:
    """
    Wilder's RSI on a 0-100 scale.

    RSI = 100 - (100 / (1 + RS))
    where RS = Average Gain / Average Loss

    The first average is the plain mean of the first ``period`` price
    changes; later averages follow ``(prev * (period - 1) + x) / period``.

    Args:
        close: Closing prices.
        period: Smoothing window.

    Returns:
        RSI series (0-100 scale). The first ``period`` entries are NaN.

    Raises:
        InsufficientDataError: If fewer than ``period + 1`` closes are given.
    """
    period = check_period("RSI", "period", period)
    require_length("RSI", close, period + 1)

    delta = _as_float(close).diff()

    gain = delta.where(delta > 0, 0.0)
    loss = (-delta).where(delta < 0, 0.0)
    gain.iloc[0] = np.nan
    loss.iloc[0] = np.nan

    avg_gain = _wilder_average(gain, period)
    avg_loss = _wilder_average(loss, period)

    rsi = pd.Series(np.nan, index=close.index, dtype=float)

    # RS is defined only where losses occurred
    normal_mask = avg_loss > 0
    rs = avg_gain[normal_mask] / avg_loss[normal_mask]
    rsi[normal_mask] = 100.0 - (100.0 / (1.0 + rs))

    # Gains only
    all_gains_mask = (avg_loss == 0) & (avg_gain > 0)
    rsi[all_gains_mask] = 100.0

    # Flat prices -> neutral
    both_zero_mask = (avg_loss == 0) & (avg_gain == 0)
    rsi[both_zero_mask] = 50.0

    return rsi


# =============================================================================
# MACD (Moving Average Convergence Divergence)
# =============================================================================


def calculate_macd(
    close: pd.Series,
    fast_period: int = 12,
    slow_period: int = 26,
    signal_period: int = 9,
) -> MACDResult:
    """
    Fast EMA minus slow EMA, with its signal line and histogram.

    Args:
        close: Closing prices.
        fast_period: Fast EMA period (default 12).
        slow_period: Slow EMA period (default 26).
        signal_period: Signal line EMA period (default 9).

    Returns:
        MACDResult with macd_line (valid from ``slow_period - 1``),
        signal_line and histogram (valid from ``slow_period + signal_period - 2``).

    Raises:
        InsufficientDataError: If fewer than ``slow_period + signal_period - 1``
            closes are given.
    """
    fast_period = check_period("MACD", "fast_period", fast_period)
    slow_period = check_period("MACD", "slow_period", slow_period)
    signal_period = check_period("MACD", "signal_period", signal_period)
    if fast_period >= slow_period:
        raise InvalidPeriodError("MACD", "fast_period", fast_period)

    require_length("MACD", close, slow_period + signal_period - 1)

    ema_fast = _seeded_ema(close, fast_period)
    ema_slow = _seeded_ema(close, slow_period)

    macd_line = ema_fast - ema_slow
    signal_line = _seeded_ema(macd_line, signal_period)
    histogram = macd_line - signal_line

    return MACDResult(macd_line=macd_line, signal_line=signal_line, histogram=histogram)


# =============================================================================
# Bollinger Bands
# =============================================================================


def calculate_bollinger_bands(
    close: pd.Series, period: int = 20, std_dev: float = 2.0
) -> BollingerBands:
    """
    Bands at ``std_dev`` standard deviations around a simple average.

    Uses a simple moving average and the population standard deviation
    (ddof=0) over the trailing window.

    Args:
        close: Closing prices.
        period: SMA period (default 20).
        std_dev: Standard deviation multiplier (default 2).

    Returns:
        BollingerBands(upper, middle, lower).
    """
    period = check_period("Bollinger", "period", period)
    if not isinstance(std_dev, (int, float)) or isinstance(std_dev, bool) or std_dev <= 0:
        raise InvalidPeriodError("Bollinger", "std_dev", std_dev)
    require_length("Bollinger", close, period)

    values = _as_float(close)
    middle = values.rolling(window=period, min_periods=period).mean()
    rolling_std = values.rolling(window=period, min_periods=period).std(ddof=0)

    upper = middle + (rolling_std * std_dev)
    lower = middle - (rolling_std * std_dev)

    return BollingerBands(upper=upper, middle=middle, lower=lower)
