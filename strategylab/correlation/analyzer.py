"""
Pairwise Pearson correlation between asset close-price series.

The default p-value is a coarse closed-form approximation of the Student-t
tail, kept for parity with existing dashboards. It is NOT a rigorous test;
pass ``exact=True`` to use scipy's t distribution instead (this changes the
p-values and can change significance buckets).
"""

import logging
import math
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Mapping, Sequence

import numpy as np
import pandas as pd
from scipy import stats

from strategylab.correlation.exceptions import MisalignedSeriesError
from strategylab.indicators.bars import BarsLike, bars_to_frame

logger = logging.getLogger(__name__)

HIGH = "high"
MEDIUM = "medium"
LOW = "low"


@dataclass(frozen=True)
class CorrelationResult:
    """Correlation of one asset against the base asset."""

    asset: str
    correlation: float
    p_value: float
    significance: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def pearson_correlation(x: Sequence[float], y: Sequence[float]) -> float:
    """
    Pearson correlation via the sum-of-products formula.

    Returns 0.0 when either series is constant (zero variance) or empty.
    The result is clamped to [-1, 1].

    Raises:
        MisalignedSeriesError: If the series differ in length.
    """
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)
    if len(x) != len(y):
        raise MisalignedSeriesError("y", len(x), len(y))

    n = len(x)
    # Rounding in the sums can leave a constant series with a tiny variance
    if n == 0 or np.ptp(x) == 0 or np.ptp(y) == 0:
        return 0.0

    numerator = n * np.dot(x, y) - x.sum() * y.sum()
    variance_product = (n * np.dot(x, x) - x.sum() ** 2) * (n * np.dot(y, y) - y.sum() ** 2)
    if variance_product <= 0:
        return 0.0
    return float(np.clip(numerator / math.sqrt(variance_product), -1.0, 1.0))


def _t_statistic(r: float, n: int) -> float:
    return r * math.sqrt((n - 2) / (1 - r * r))


def approximate_p_value(r: float, n: int) -> float:
    """
    Two-sided p-value from a simplified t-distribution CDF.

    ``cdf(t) = 0.5 * (1 + x * (1 + x^2 / (2 df)))`` with
    ``x = t / sqrt(df + t^2)``. Clamped to [0, 1].
    """
    if n <= 2:
        return 1.0
    if abs(r) >= 1:
        return 0.0
    t = abs(_t_statistic(r, n))
    df = n - 2
    x = t / math.sqrt(df + t * t)
    cdf = 0.5 * (1 + x * (1 + x * x / (2 * df)))
    return min(1.0, max(0.0, 2 * (1 - cdf)))


def exact_p_value(r: float, n: int) -> float:
    """Two-sided p-value from the Student-t survival function."""
    if n <= 2:
        return 1.0
    if abs(r) >= 1:
        return 0.0
    t = abs(_t_statistic(r, n))
    return float(min(1.0, 2 * stats.t.sf(t, n - 2)))


def significance_bucket(r: float, p_value: float) -> str:
    """``high`` if |r| > 0.7 and p < 0.05, ``medium`` if |r| > 0.5 and p < 0.1, else ``low``."""
    if abs(r) > 0.7 and p_value < 0.05:
        return HIGH
    if abs(r) > 0.5 and p_value < 0.1:
        return MEDIUM
    return LOW


def _closes(bars: BarsLike) -> np.ndarray:
    return bars_to_frame(bars)["Close"].to_numpy(dtype=float)


def calculate_correlations(
    base_bars: BarsLike,
    others: Mapping[str, BarsLike],
    exact: bool = False,
) -> List[CorrelationResult]:
    """
    Correlate each asset's closes against the base asset's closes.

    Args:
        base_bars: Bars of the base asset.
        others: Asset name -> bars. Every series must have the base length.
        exact: Use the exact Student-t p-value instead of the approximation.

    Returns:
        Results sorted by descending absolute correlation.

    Raises:
        MisalignedSeriesError: If a series length differs from the base.
    """
    base = _closes(base_bars)
    p_value_fn = exact_p_value if exact else approximate_p_value

    results = []
    for asset, bars in others.items():
        closes = _closes(bars)
        if len(closes) != len(base):
            raise MisalignedSeriesError(asset, len(base), len(closes))

        r = pearson_correlation(base, closes)
        p = p_value_fn(r, len(base))
        results.append(
            CorrelationResult(asset=asset, correlation=r, p_value=p, significance=significance_bucket(r, p))
        )
        logger.debug("Correlation with %s: r=%.4f p=%.4f", asset, r, p)

    return sorted(results, key=lambda res: abs(res.correlation), reverse=True)


def correlation_matrix(assets: Mapping[str, BarsLike]) -> pd.DataFrame:
    """
    Pairwise Pearson correlation matrix of close prices.

    Raises:
        MisalignedSeriesError: If the series differ in length.
    """
    closes = {name: _closes(bars) for name, bars in assets.items()}
    names = list(closes)
    if names:
        expected = len(closes[names[0]])
        for name in names[1:]:
            if len(closes[name]) != expected:
                raise MisalignedSeriesError(name, expected, len(closes[name]))

    matrix = pd.DataFrame(1.0, index=names, columns=names)
    for i, a in enumerate(names):
        for b in names[i + 1:]:
            r = pearson_correlation(closes[a], closes[b])
            matrix.loc[a, b] = r
            matrix.loc[b, a] = r
    return matrix


def align_on_dates(base_bars: BarsLike, others: Mapping[str, BarsLike]) -> Dict[str, pd.DataFrame]:
    """
    Restrict every series to the dates all of them share.

    Returns:
        Mapping with key ``""`` for the base bars and each asset name for the
        others, all with identical Date columns.
    """
    frames = {"": bars_to_frame(base_bars)}
    frames.update({name: bars_to_frame(bars) for name, bars in others.items()})

    common = None
    for df in frames.values():
        dates = pd.Index(df["Date"])
        common = dates if common is None else common.intersection(dates)

    aligned = {}
    for name, df in frames.items():
        aligned[name] = df[df["Date"].isin(common)].reset_index(drop=True)
    logger.info("Aligned %d series on %d common dates", len(frames), len(common))
    return aligned
