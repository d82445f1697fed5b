#!/usr/bin/env python3
"""
Indicator Generation Module.

Calculates the indicator series used by the backtest engine from OHLCV data
and returns them as extra DataFrame columns.

Usage (Python API):
    from strategylab.indicators import build_indicators
    df = build_indicators("BTC.csv")

Usage (CLI):
    python -m strategylab.indicators --input_file BTC.csv --output_file BTC_ind.csv
    python -m strategylab.indicators -i BTC.csv --fibonacci 50

Indicators calculated:
    Momentum: RSI, MACD (line, signal, histogram)
    Volatility: Bollinger Bands
    Volume: OBV, Accumulation/Distribution, relative volume
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

import pandas as pd

from strategylab.indicators.bars import BarsLike, bars_to_frame
from strategylab.indicators.exceptions import IndicatorError
from strategylab.indicators.fibonacci import (
    DEFAULT_LOOKBACK,
    calculate_fibonacci_levels,
    identify_fibonacci_zones,
)
from strategylab.indicators.loader import load_bars
from strategylab.indicators.series import IndicatorSettings, SeriesBundle
from strategylab.indicators.validators import REQUIRED_COLUMNS

logger = logging.getLogger(__name__)


def add_indicator_columns(
    bars: BarsLike, settings: Optional[IndicatorSettings] = None
) -> pd.DataFrame:
    """
    Return a copy of the bars with every indicator series as a column.

    Column names carry their parameters, e.g. ``rsi_14``,
    ``macd_12_26_9``, ``bb_upper_20_2``.

    Raises:
        InsufficientDataError: If the bars are too short for an indicator.
    """
    df = bars_to_frame(bars)
    settings = settings or IndicatorSettings()
    bundle = SeriesBundle(df, settings)

    macd_suffix = f"{settings.macd_fast}_{settings.macd_slow}_{settings.macd_signal}"
    bb_suffix = f"{settings.bollinger_period}_{settings.bollinger_multiplier:g}"

    df[f"rsi_{settings.rsi_period}"] = bundle.rsi()

    macd = bundle.macd()
    df[f"macd_{macd_suffix}"] = macd.macd_line
    df[f"macd_signal_{macd_suffix}"] = macd.signal_line
    df[f"macd_hist_{macd_suffix}"] = macd.histogram

    bands = bundle.bollinger()
    df[f"bb_upper_{bb_suffix}"] = bands.upper
    df[f"bb_mid_{bb_suffix}"] = bands.middle
    df[f"bb_lower_{bb_suffix}"] = bands.lower

    volume = bundle.volume_metrics()
    df["obv"] = volume.obv
    df["ad_line"] = volume.accumulation_distribution
    df[f"rel_volume_{settings.volume_period}"] = volume.relative_volume

    logger.debug("Added %d indicator columns to %d bars", len(df.columns) - 6, len(df))
    return df


def build_indicators(
    input_file: str,
    output_file: Optional[str] = None,
    settings: Optional[IndicatorSettings] = None,
) -> pd.DataFrame:
    """
    Load OHLCV data from CSV and calculate all indicator columns.

    Args:
        input_file: CSV of OHLCV bars.
        output_file: Optional path to save output CSV.
        settings: Indicator periods (defaults to IndicatorSettings()).

    Returns:
        DataFrame with the original bars plus indicator columns.

    Raises:
        FileNotFoundError: If the bar file is missing.
        EmptyFileError: If it has no rows.
        LoaderError: If it cannot be parsed.
        ValidationError: If the bars fail a quality check.
        InsufficientDataError: If there are too few bars for an indicator.
    """
    df = load_bars(input_file)
    df = add_indicator_columns(df, settings)

    if output_file:
        save_to_csv(df, output_file)

    return df


def save_to_csv(df: pd.DataFrame, output_file: str) -> None:
    """Write bars to CSV, creating parent directories as needed."""
    path = Path(output_file)
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, index=False)


def create_parser() -> argparse.ArgumentParser:
    """Build the indicators command line parser."""
    parser = argparse.ArgumentParser(
        prog="strategylab.indicators",
        description="Add RSI, MACD, Bollinger and volume columns to a CSV of bars.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m strategylab.indicators --input_file BTC.csv
  python -m strategylab.indicators -i BTC.csv -o BTC_indicators.csv
  python -m strategylab.indicators -i BTC.csv --rsi-period 21 --fibonacci 50

Indicators calculated:
  Momentum:   rsi_14, macd_12_26_9, macd_signal_12_26_9, macd_hist_12_26_9
  Volatility: bb_upper_20_2, bb_mid_20_2, bb_lower_20_2
  Volume:     obv, ad_line, rel_volume_20
""",
    )

    parser.add_argument(
        "--input_file",
        "-i",
        required=True,
        type=str,
        help="CSV of OHLCV bars",
    )

    parser.add_argument(
        "--output_file",
        "-o",
        type=str,
        default=None,
        help="Write bars plus indicator columns here (default: print the latest values)",
    )

    parser.add_argument(
        "--rsi-period",
        type=int,
        default=14,
        help="RSI period (default: 14)",
    )

    parser.add_argument(
        "--bollinger-period",
        type=int,
        default=20,
        help="Bollinger Band period (default: 20)",
    )

    parser.add_argument(
        "--fibonacci",
        type=int,
        nargs="?",
        const=DEFAULT_LOOKBACK,
        default=None,
        metavar="LOOKBACK",
        help=f"Also print Fibonacci levels and zones (default lookback: {DEFAULT_LOOKBACK})",
    )

    return parser


def _print_fibonacci(df: pd.DataFrame, lookback: int) -> None:
    levels = calculate_fibonacci_levels(df, lookback)
    support, resistance = identify_fibonacci_zones(df, lookback)

    print(f"\nFibonacci levels (last {lookback} bars):")
    print(f"  Swing high: {levels.swing_high:.4f}")
    print(f"  Swing low:  {levels.swing_low:.4f}")
    for percentage, price in levels.ladder():
        print(f"  {percentage:5.1f}%: {price:.4f}")
    for ext in levels.extension:
        print(f"  {ext.level * 100:5.1f}% ext: {ext.price:.4f}")
    print(f"  Support zones:    {', '.join(f'{p:.2f}' for p in support)}")
    print(f"  Resistance zones: {', '.join(f'{p:.2f}' for p in resistance)}")


def main(args: Optional[List[str]] = None) -> int:
    """Run the indicators CLI and return the process exit code."""
    parser = create_parser()
    parsed_args = parser.parse_args(args)

    try:
        settings = IndicatorSettings(
            rsi_period=parsed_args.rsi_period,
            bollinger_period=parsed_args.bollinger_period,
        )
        df = build_indicators(
            input_file=parsed_args.input_file,
            output_file=parsed_args.output_file,
            settings=settings,
        )

        print(f"Processed {len(df)} rows from {parsed_args.input_file}")
        print(f"Date range: {df['Date'].min()} to {df['Date'].max()}")
        print(f"Indicators added: {len(df.columns) - len(REQUIRED_COLUMNS)}")

        if parsed_args.output_file:
            print(f"Output saved to: {parsed_args.output_file}")
        else:
            print("\nLatest indicator values:")
            latest = df.iloc[-1].drop(labels=REQUIRED_COLUMNS).dropna()
            for name, value in latest.items():
                print(f"  {name}: {value:.4f}")

        if parsed_args.fibonacci is not None:
            _print_fibonacci(df, parsed_args.fibonacci)

        return 0

    except IndicatorError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
