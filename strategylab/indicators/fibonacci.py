"""
Fibonacci retracement and extension levels.

Levels are derived from the swing high (max High) and swing low (min Low)
of a trailing window of bars, or of the whole series when no lookback is
given.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import pandas as pd

from strategylab.indicators.calculations import check_period
from strategylab.indicators.exceptions import InsufficientDataError

RETRACEMENT_LEVELS = (0.236, 0.382, 0.5, 0.618, 0.786)
EXTENSION_LEVELS = (1.618, 2.618, 3.618)
DEFAULT_LOOKBACK = 20
DEFAULT_TOLERANCE = 0.01


@dataclass(frozen=True)
class FibonacciLevel:
    """A single level ratio and its price."""

    level: float
    price: float


@dataclass(frozen=True)
class FibonacciLevels:
    """Retracement and extension levels for one swing."""

    swing_high: float
    swing_low: float
    retracement: List[FibonacciLevel] = field(default_factory=list)
    extension: List[FibonacciLevel] = field(default_factory=list)

    def ladder(self) -> List[Tuple[float, float]]:
        """
        Retracement ladder as ``(percentage, price)`` in ascending percentage.

        0% is the swing high and 100% the swing low.
        """
        rungs = [(0.0, self.swing_high)]
        rungs.extend((round(lvl.level * 100, 1), lvl.price) for lvl in self.retracement)
        rungs.append((100.0, self.swing_low))
        return rungs

    def match_level(
        self, price: float, tolerance: float = DEFAULT_TOLERANCE
    ) -> Optional[float]:
        """
        Return the first ladder percentage within ``tolerance`` of ``price``.

        A price matches a level when ``|price - level_price| / level_price``
        is at most ``tolerance``. Levels are tested in ascending percentage
        order so ties resolve to the lowest percentage.

        Returns:
            Matching percentage (e.g. 38.2) or None.
        """
        for percentage, level_price in self.ladder():
            if level_price == 0:
                continue
            if abs(price - level_price) / abs(level_price) <= tolerance:
                return percentage
        return None

    def to_dict(self) -> dict:
        """Convert levels to a dictionary."""
        return {
            "swing_high": self.swing_high,
            "swing_low": self.swing_low,
            "retracement": [{"level": lvl.level, "price": lvl.price} for lvl in self.retracement],
            "extension": [{"level": lvl.level, "price": lvl.price} for lvl in self.extension],
        }


def calculate_fibonacci_levels(
    bars: pd.DataFrame, lookback: Optional[int] = DEFAULT_LOOKBACK
) -> FibonacciLevels:
    """
    Calculate Fibonacci retracement and extension levels.

    Retracement: ``high - (high - low) * level`` for 0.236 ... 0.786.
    Extension: ``high + (high - low) * (level - 1)`` for 1.618, 2.618, 3.618.

    Args:
        bars: OHLCV DataFrame (uses High and Low).
        lookback: Number of trailing bars to use, or None for the whole series.

    Returns:
        FibonacciLevels for the window.

    Raises:
        InsufficientDataError: If fewer than ``lookback`` bars are available
            (at least 2 for the whole-series variant).
    """
    if lookback is None:
        if len(bars) < 2:
            raise InsufficientDataError("Fibonacci", 2, len(bars))
        window = bars
    else:
        lookback = check_period("Fibonacci", "lookback", lookback)
        if len(bars) < lookback:
            raise InsufficientDataError("Fibonacci", lookback, len(bars))
        window = bars.iloc[-lookback:]

    swing_high = float(window["High"].max())
    swing_low = float(window["Low"].min())
    price_range = swing_high - swing_low

    retracement = [
        FibonacciLevel(level=level, price=swing_high - price_range * level)
        for level in RETRACEMENT_LEVELS
    ]
    extension = [
        FibonacciLevel(level=level, price=swing_high + price_range * (level - 1))
        for level in EXTENSION_LEVELS
    ]

    return FibonacciLevels(
        swing_high=swing_high,
        swing_low=swing_low,
        retracement=retracement,
        extension=extension,
    )


def identify_fibonacci_zones(
    bars: pd.DataFrame, lookback: Optional[int] = DEFAULT_LOOKBACK
) -> Tuple[List[float], List[float]]:
    """
    Identify support and resistance zones from Fibonacci levels.

    Returns:
        Tuple of (support_zones, resistance_zones), each sorted ascending.
        Support is the swing low plus retracement prices; resistance is the
        swing high plus extension prices.
    """
    levels = calculate_fibonacci_levels(bars, lookback)

    support = sorted([levels.swing_low] + [lvl.price for lvl in levels.retracement])
    resistance = sorted([levels.swing_high] + [lvl.price for lvl in levels.extension])

    return support, resistance
