"""
CLI entry point for the correlation analyzer.

Usage:
    python -m strategylab.correlation --base BTC.csv --compare ETH=eth.csv LTC=ltc.csv
"""

import argparse
import logging
import sys
from typing import List, Optional, Tuple

from strategylab.correlation.analyzer import align_on_dates, calculate_correlations
from strategylab.correlation.exceptions import CorrelationError
from strategylab.indicators.exceptions import IndicatorError
from strategylab.indicators.loader import load_bars


def setup_logging(verbose: bool = False, debug: bool = False) -> None:
    """Configure logging based on verbosity level."""
    if debug:
        level = logging.DEBUG
    elif verbose:
        level = logging.INFO
    else:
        level = logging.WARNING

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def parse_asset(value: str) -> Tuple[str, str]:
    """Parse a NAME=path argument."""
    name, sep, path = value.partition("=")
    if not sep or not name or not path:
        raise argparse.ArgumentTypeError(f"expected NAME=path, got '{value}'")
    return name, path


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser for CLI."""
    parser = argparse.ArgumentParser(
        prog="strategylab.correlation",
        description="Correlate asset close prices against a base asset",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m strategylab.correlation --base BTC.csv --compare ETH=eth.csv LTC=ltc.csv
  python -m strategylab.correlation --base BTC.csv --compare ETH=eth.csv --align --exact
        """,
    )
    parser.add_argument("--base", "-b", required=True, help="CSV file of the base asset")
    parser.add_argument(
        "--compare",
        nargs="+",
        required=True,
        type=parse_asset,
        metavar="NAME=PATH",
        help="Assets to compare against the base",
    )
    parser.add_argument(
        "--align",
        action="store_true",
        help="Restrict all series to their common dates before comparing",
    )
    parser.add_argument(
        "--exact",
        action="store_true",
        help="Use the exact Student-t p-value instead of the approximation",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose output")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    return parser


def main(args: Optional[List[str]] = None) -> int:
    """
    Main entry point for CLI.

    Returns:
        Exit code (0 for success, 1 for error).
    """
    parser = create_parser()
    parsed_args = parser.parse_args(args)
    setup_logging(parsed_args.verbose, parsed_args.debug)

    try:
        base = load_bars(parsed_args.base)
        others = {name: load_bars(path) for name, path in parsed_args.compare}
        if parsed_args.align:
            aligned = align_on_dates(base, others)
            base = aligned.pop("")
            others = aligned

        results = calculate_correlations(base, others, exact=parsed_args.exact)

        print(f"{'Asset':<12} {'Correlation':>12} {'p-value':>10} {'Significance':>13}")
        print("-" * 50)
        for result in results:
            print(
                f"{result.asset:<12} {result.correlation:>12.4f} "
                f"{result.p_value:>10.4f} {result.significance:>13}"
            )
        return 0

    except (CorrelationError, IndicatorError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
