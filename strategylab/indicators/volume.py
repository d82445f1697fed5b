"""
Volume-derived indicators.

On-Balance Volume, the Accumulation/Distribution line, relative volume and
price/OBV divergence detection.
"""

from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np
import pandas as pd

from strategylab.indicators.calculations import check_period, require_length


@dataclass(frozen=True)
class VolumeDivergence:
    """Divergence state between price and OBV at one bar."""

    index: int
    bullish: bool
    bearish: bool
    strength: float


@dataclass(frozen=True)
class VolumeMetrics:
    """All volume metrics for a bar series."""

    obv: pd.Series
    accumulation_distribution: pd.Series
    relative_volume: pd.Series
    divergences: List[VolumeDivergence] = field(default_factory=list)

    def latest_divergence(self) -> Optional[VolumeDivergence]:
        """Most recent divergence record, if any bars were evaluated."""
        return self.divergences[-1] if self.divergences else None


def calculate_obv(close: pd.Series, volume: pd.Series) -> pd.Series:
    """
    Calculate On-Balance Volume.

    OBV starts at the first bar's volume, then adds volume when the close
    rises, subtracts it when the close falls and is unchanged on equal
    closes.

    Args:
        close: Close price series.
        volume: Volume series.

    Returns:
        OBV series.
    """
    require_length("OBV", close, 1)

    direction = np.sign(close.astype(float).diff())

    # First bar has no prior close; its volume seeds the running total
    direction.iloc[0] = 1.0

    return (direction * volume.astype(float)).cumsum()


def calculate_accumulation_distribution(
    high: pd.Series, low: pd.Series, close: pd.Series, volume: pd.Series
) -> pd.Series:
    """
    Calculate the Accumulation/Distribution line.

    Money flow multiplier = ((close - low) - (high - close)) / (high - low),
    taken as 0 on bars where high == low.

    Returns:
        Cumulative A/D series.
    """
    require_length("Accumulation/Distribution", close, 1)

    price_range = (high - low).astype(float)
    multiplier = ((close - low) - (high - close)).astype(float)
    multiplier = multiplier.where(price_range != 0, 0.0) / price_range.where(
        price_range != 0, 1.0
    )

    return (multiplier * volume.astype(float)).cumsum()


def calculate_relative_volume(volume: pd.Series, period: int = 20) -> pd.Series:
    """
    Calculate relative volume: current volume over its trailing average.

    The trailing window includes the current bar. Warm-up entries are NaN;
    a zero average yields 0.0.

    Args:
        volume: Volume series.
        period: Averaging period (default 20).

    Returns:
        Relative volume series.
    """
    period = check_period("Relative Volume", "period", period)
    require_length("Relative Volume", volume, period)

    volume = volume.astype(float)
    average = volume.rolling(window=period, min_periods=period).mean()

    relative = volume / average.where(average != 0, np.nan)
    relative[(average == 0)] = 0.0
    return relative


def detect_volume_divergences(
    close: pd.Series,
    obv: pd.Series,
    volume: pd.Series,
    lookback: int = 14,
) -> List[VolumeDivergence]:
    """
    Detect price/OBV divergences over a trailing window.

    For each bar ``i >= lookback`` the reference window is the previous
    ``lookback`` bars.

    - Bullish: the close makes a lower low than the window while OBV stays
      above its window low (a higher low).
    - Bearish: the close makes a higher high than the window while OBV stays
      below its window high (a lower high).

    Strength is the OBV move (relative to the window's total volume) divided
    by the price move (relative to the reference extreme). It is 0 when no
    divergence is present or either scale is zero.

    Returns:
        One VolumeDivergence per evaluated bar, in bar order.
    """
    lookback = check_period("Volume Divergence", "lookback", lookback)
    require_length("Volume Divergence", close, lookback + 1)

    closes = close.astype(float).to_numpy()
    obvs = obv.astype(float).to_numpy()
    volumes = volume.astype(float).to_numpy()

    divergences = []
    for i in range(lookback, len(closes)):
        window = slice(i - lookback, i)
        price_low = closes[window].min()
        price_high = closes[window].max()
        obv_low = obvs[window].min()
        obv_high = obvs[window].max()
        window_volume = volumes[window].sum()

        bullish = bool(closes[i] < price_low and obvs[i] > obv_low)
        bearish = bool(closes[i] > price_high and obvs[i] < obv_high)

        strength = 0.0
        if bullish or bearish:
            ref_price = price_low if bullish else price_high
            ref_obv = obv_low if bullish else obv_high
            price_move = abs(closes[i] - ref_price) / ref_price if ref_price else 0.0
            obv_move = abs(obvs[i] - ref_obv) / window_volume if window_volume else 0.0
            if price_move > 0:
                strength = float(obv_move / price_move)

        divergences.append(
            VolumeDivergence(index=i, bullish=bullish, bearish=bearish, strength=strength)
        )

    return divergences


def calculate_volume_metrics(
    bars: pd.DataFrame, period: int = 20, divergence_lookback: int = 14
) -> VolumeMetrics:
    """
    Calculate every volume metric for an OHLCV DataFrame.

    Args:
        bars: OHLCV DataFrame.
        period: Relative volume averaging period.
        divergence_lookback: Trailing window for divergence detection.

    Returns:
        VolumeMetrics.
    """
    obv = calculate_obv(bars["Close"], bars["Volume"])
    ad_line = calculate_accumulation_distribution(
        bars["High"], bars["Low"], bars["Close"], bars["Volume"]
    )
    relative = calculate_relative_volume(bars["Volume"], period)
    divergences = detect_volume_divergences(
        bars["Close"], obv, bars["Volume"], divergence_lookback
    )

    return VolumeMetrics(
        obv=obv,
        accumulation_distribution=ad_line,
        relative_volume=relative,
        divergences=divergences,
    )
