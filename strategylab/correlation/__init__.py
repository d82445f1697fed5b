"""
Correlation Analyzer.

Pairwise Pearson correlation of asset close prices with a significance
estimate, independent of the backtest engine.
"""

from strategylab.correlation.analyzer import (
    CorrelationResult,
    align_on_dates,
    approximate_p_value,
    calculate_correlations,
    correlation_matrix,
    exact_p_value,
    pearson_correlation,
    significance_bucket,
)
from strategylab.correlation.exceptions import CorrelationError, MisalignedSeriesError

__all__ = [
    "CorrelationError",
    "CorrelationResult",
    "MisalignedSeriesError",
    "align_on_dates",
    "approximate_p_value",
    "calculate_correlations",
    "correlation_matrix",
    "exact_p_value",
    "pearson_correlation",
    "significance_bucket",
]
