"""
Indicator Library.

Pure indicator functions over OHLCV bars plus loading and validation.

Modules:
    - bars: Bar record and DataFrame normalization
    - loader: CSV loading and parsing
    - validators: Data validation functions
    - calculations: SMA, EMA, RSI, MACD, Bollinger Bands
    - fibonacci: Fibonacci retracement/extension levels
    - volume: OBV, A/D line, relative volume, divergences
    - series: Indicator memoization and per-series bundles
    - main: build_indicators API and CLI
"""

from strategylab.indicators.bars import Bar, bars_to_frame, filter_date_range, frame_to_bars
from strategylab.indicators.calculations import (
    BollingerBands,
    MACDResult,
    calculate_bollinger_bands,
    calculate_ema,
    calculate_macd,
    calculate_rsi,
    calculate_sma,
)
from strategylab.indicators.exceptions import (
    IndicatorError,
    InsufficientDataError,
    InvalidPeriodError,
    ValidationError,
)
from strategylab.indicators.fibonacci import (
    FibonacciLevels,
    calculate_fibonacci_levels,
    identify_fibonacci_zones,
)
from strategylab.indicators.loader import load_bars
from strategylab.indicators.main import add_indicator_columns, build_indicators
from strategylab.indicators.series import IndicatorCache, IndicatorSettings, SeriesBundle
from strategylab.indicators.volume import (
    VolumeDivergence,
    VolumeMetrics,
    calculate_accumulation_distribution,
    calculate_obv,
    calculate_relative_volume,
    calculate_volume_metrics,
    detect_volume_divergences,
)

__all__ = [
    "Bar",
    "BollingerBands",
    "FibonacciLevels",
    "IndicatorCache",
    "IndicatorError",
    "IndicatorSettings",
    "InsufficientDataError",
    "InvalidPeriodError",
    "MACDResult",
    "SeriesBundle",
    "ValidationError",
    "VolumeDivergence",
    "VolumeMetrics",
    "add_indicator_columns",
    "bars_to_frame",
    "build_indicators",
    "calculate_accumulation_distribution",
    "calculate_bollinger_bands",
    "calculate_ema",
    "calculate_fibonacci_levels",
    "calculate_macd",
    "calculate_obv",
    "calculate_relative_volume",
    "calculate_rsi",
    "calculate_sma",
    "calculate_volume_metrics",
    "detect_volume_divergences",
    "filter_date_range",
    "frame_to_bars",
    "identify_fibonacci_zones",
    "load_bars",
]
