"""
Main runner module for the backtest engine.

This module provides the primary API and CLI for running backtests:

- ``run_backtest``: one strategy over one bar series.
- ``compare_strategies``: the same configuration for several strategies,
  ranked by a performance metric.
"""

import argparse
import logging
import math
import numbers
import sys
import warnings
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import pandas as pd

from strategylab.engine.constants import (
    DEFAULT_INITIAL_BALANCE,
    DEFAULT_WARMUP,
    RANKING_METRICS,
    SMALL_BALANCE_WARNING,
)
from strategylab.engine.exceptions import BacktestError, InvalidParameterError
from strategylab.engine.performance import (
    AdvancedMetrics,
    PerformanceSummary,
    calculate_advanced_metrics,
    monthly_returns,
    summarize,
)
from strategylab.engine.registry import is_registered, list_strategies
from strategylab.engine.simulator import Trade, format_date, simulate
from strategylab.engine.strategy_loader import Strategy, coerce_strategy
from strategylab.indicators.bars import BarsLike, bars_to_frame, filter_date_range
from strategylab.indicators.exceptions import IndicatorError, InvalidPeriodError
from strategylab.indicators.loader import load_bars
from strategylab.indicators.series import IndicatorCache, IndicatorSettings

logger = logging.getLogger(__name__)

CUSTOM_STRATEGY = "custom"

StrategyLike = Union[str, Strategy, Mapping[str, Any]]


def _parse_date(name: str, value: Any) -> Optional[pd.Timestamp]:
    if value is None:
        return None
    try:
        ts = pd.Timestamp(value)
    except (TypeError, ValueError) as e:
        raise InvalidParameterError(name, value, f"unparseable date ({e})")
    if ts is pd.NaT:
        raise InvalidParameterError(name, value, "unparseable date")
    # Compare boundaries on a common naive UTC clock
    if ts.tzinfo is not None:
        ts = ts.tz_convert(None)
    return ts


def _is_strategy_file(value: Any) -> bool:
    return isinstance(value, str) and value.lower().endswith((".yaml", ".yml"))


@dataclass
class BacktestConfig:
    """
    Configuration for a single backtest run.

    Attributes:
        start_date: First bar date to include (inclusive), or None.
        end_date: Last bar date to include (inclusive), or None.
        initial_balance: Starting cash.
        strategy: Registered strategy name (rsi, macd, bollinger,
            fibonacci), ``"custom"``, a YAML file path, a Strategy or a
            strategy definition dict.
        custom_strategy: Definition used when ``strategy`` is ``"custom"``.
        warmup: Leading bars skipped before signals are used.
    """

    start_date: Any = None
    end_date: Any = None
    initial_balance: float = DEFAULT_INITIAL_BALANCE
    strategy: StrategyLike = "rsi"
    custom_strategy: Optional[StrategyLike] = None
    warmup: int = DEFAULT_WARMUP

    def validate(self) -> None:
        """
        Fail fast on invalid configuration.

        Raises:
            InvalidParameterError: Naming the first invalid field.
        """
        balance = self.initial_balance
        if isinstance(balance, bool) or not isinstance(balance, numbers.Real):
            raise InvalidParameterError("initial_balance", balance, "must be a number")
        if not math.isfinite(balance) or balance <= 0:
            raise InvalidParameterError("initial_balance", balance, "must be positive and finite")
        if balance < SMALL_BALANCE_WARNING:
            warnings.warn(
                f"Initial balance {balance} is very small. "
                "Results may have precision issues with very small position sizes.",
                UserWarning,
            )

        start = _parse_date("start_date", self.start_date)
        end = _parse_date("end_date", self.end_date)
        if start is not None and end is not None and start > end:
            raise InvalidParameterError(
                "start_date", self.start_date, f"must not be after end_date {self.end_date!r}"
            )

        if isinstance(self.warmup, bool) or not isinstance(self.warmup, int) or self.warmup < 0:
            raise InvalidParameterError("warmup", self.warmup, "must be a non-negative integer")

        if isinstance(self.strategy, str) and not _is_strategy_file(self.strategy):
            name = self.strategy.lower()
            if name == CUSTOM_STRATEGY:
                if self.custom_strategy is None:
                    raise InvalidParameterError(
                        "custom_strategy", None, "required when strategy is 'custom'"
                    )
            elif not is_registered(name):
                raise InvalidParameterError(
                    "strategy",
                    self.strategy,
                    f"unknown strategy, must be one of: {', '.join(list_strategies())}, "
                    f"{CUSTOM_STRATEGY}",
                )
        elif not isinstance(self.strategy, (str, Strategy, Mapping)):
            raise InvalidParameterError(
                "strategy", self.strategy, "must be a name, YAML path, Strategy or mapping"
            )

    def resolve_strategy(self) -> Strategy:
        """
        Build the Strategy this configuration selects.

        Raises:
            StrategyError: If a definition is invalid.
            FileNotFoundError: If a strategy YAML file does not exist.
            InvalidParameterError: If an indicator parameter of the strategy
                is not a number.
        """
        if isinstance(self.strategy, str) and self.strategy.lower() == CUSTOM_STRATEGY:
            strategy = coerce_strategy(self.custom_strategy)
        else:
            strategy = coerce_strategy(self.strategy)

        try:
            IndicatorSettings.from_params(strategy.params())
        except InvalidPeriodError as e:
            raise InvalidParameterError(e.name, e.value, "must be a number")
        return strategy


@dataclass(frozen=True)
class BacktestResult:
    """Complete, read-only results from a backtest run."""

    config: BacktestConfig
    strategy_name: str
    initial_balance: float
    final_balance: float
    profit: float
    profit_percentage: float
    total_trades: int
    winning_trades: int
    win_rate: float
    max_drawdown: float
    sharpe_ratio: float
    trade_history: Tuple[Trade, ...]
    equity_curve: Tuple[float, ...]
    equity_dates: Tuple[str, ...]
    date_range: Tuple[str, str]
    num_bars: int
    cancelled: bool = False
    _advanced: Dict[str, AdvancedMetrics] = field(
        default_factory=dict, repr=False, compare=False
    )

    @property
    def performance(self) -> PerformanceSummary:
        return PerformanceSummary(
            final_balance=self.final_balance,
            profit=self.profit,
            profit_percentage=self.profit_percentage,
            total_trades=self.total_trades,
            winning_trades=self.winning_trades,
            win_rate=self.win_rate,
            max_drawdown=self.max_drawdown,
            sharpe_ratio=self.sharpe_ratio,
        )

    def summary(self) -> str:
        """Generate human-readable summary."""
        lines = [
            "=" * 60,
            "BACKTEST RESULTS",
            "=" * 60,
            "",
            f"Strategy: {self.strategy_name}",
            f"Date Range: {self.date_range[0]} to {self.date_range[1]}",
            f"Bars: {self.num_bars} (warm-up {self.config.warmup})",
            f"Initial Balance: ${self.initial_balance:,.2f}",
        ]
        if self.cancelled:
            lines.append("Status: CANCELLED (partial result)")

        lines.extend([
            "",
            "-" * 60,
            "PERFORMANCE",
            "-" * 60,
            "",
            f"Final Balance: ${self.final_balance:,.2f}",
            f"Profit: ${self.profit:,.2f} ({self.profit_percentage:+.2f}%)",
            f"Max Drawdown: {self.max_drawdown:.2f}%",
            f"Sharpe Ratio: {self.sharpe_ratio:.4f}",
            "",
            "-" * 60,
            "TRADING SUMMARY",
            "-" * 60,
            "",
            f"Total Trades: {self.total_trades}",
            f"  - Winning: {self.winning_trades}",
            f"  - Open: {sum(1 for t in self.trade_history if t.is_open)}",
            f"Win Rate: {self.win_rate:.2f}%",
            "",
            "=" * 60,
        ])

        return "\n".join(lines)

    def trades_to_dataframe(self) -> pd.DataFrame:
        """Convert the trade log to a DataFrame (one row per trade)."""
        columns = [
            "entry_date", "entry_price", "exit_date", "exit_price",
            "quantity", "profit", "profit_percentage", "is_open",
        ]
        if not self.trade_history:
            return pd.DataFrame(columns=columns)
        return pd.DataFrame([t.to_dict() for t in self.trade_history], columns=columns)

    def equity_to_dataframe(self) -> pd.DataFrame:
        """Equity curve as a DataFrame with Date and Equity columns."""
        return pd.DataFrame({"Date": list(self.equity_dates), "Equity": list(self.equity_curve)})

    def advanced_metrics(self) -> AdvancedMetrics:
        """Advanced risk/return metrics (computed once)."""
        if "metrics" not in self._advanced:
            self._advanced["metrics"] = calculate_advanced_metrics(self)
        return self._advanced["metrics"]

    def monthly_returns(self) -> pd.DataFrame:
        return monthly_returns(self.equity_curve, self.equity_dates)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a plain dictionary (config echo, metrics, trades, equity)."""
        return {
            "config": {
                "start_date": None if self.config.start_date is None else str(self.config.start_date),
                "end_date": None if self.config.end_date is None else str(self.config.end_date),
                "initial_balance": self.initial_balance,
                "strategy": self.strategy_name,
                "warmup": self.config.warmup,
            },
            **self.performance.to_dict(),
            "trade_history": [t.to_dict() for t in self.trade_history],
            "equity_curve": list(self.equity_curve),
            "equity_dates": list(self.equity_dates),
            "cancelled": self.cancelled,
        }


def run_backtest(
    bars: BarsLike,
    config: Optional[BacktestConfig] = None,
    cache: Optional[IndicatorCache] = None,
    should_cancel: Optional[Callable[[], bool]] = None,
) -> BacktestResult:
    """
    Run a complete backtest.

    This is the main API function for programmatic usage.

    Args:
        bars: OHLCV DataFrame, sequence of Bar, or sequence of mappings.
            Never modified.
        config: Backtest configuration (defaults to BacktestConfig()).
        cache: Optional indicator memoization table owned by the caller.
        should_cancel: Optional cooperative cancellation check.

    Returns:
        BacktestResult with all results and metrics.

    Raises:
        InvalidParameterError: If the configuration is invalid.
        StrategyError: If the strategy definition is invalid.
        ValidationError: If the bars are malformed.
        InsufficientRangeError: If the date range leaves no bars after warm-up.
        InsufficientDataError: If the bars are too short for an indicator.

    Example:
        >>> config = BacktestConfig(initial_balance=1000, strategy="rsi")
        >>> result = run_backtest(load_bars("BTC.csv"), config)
        >>> print(result.summary())
    """
    config = config or BacktestConfig()
    config.validate()
    strategy = config.resolve_strategy()

    df = bars_to_frame(bars)
    df = filter_date_range(df, config.start_date, config.end_date)

    sim = simulate(
        df,
        strategy,
        float(config.initial_balance),
        warmup=config.warmup,
        should_cancel=should_cancel,
        cache=cache,
    )
    perf = summarize(sim.trades, sim.equity_curve, float(config.initial_balance), sim.max_drawdown)

    return BacktestResult(
        config=config,
        strategy_name=strategy.name,
        initial_balance=float(config.initial_balance),
        final_balance=perf.final_balance,
        profit=perf.profit,
        profit_percentage=perf.profit_percentage,
        total_trades=perf.total_trades,
        winning_trades=perf.winning_trades,
        win_rate=perf.win_rate,
        max_drawdown=perf.max_drawdown,
        sharpe_ratio=perf.sharpe_ratio,
        trade_history=tuple(sim.trades),
        equity_curve=tuple(sim.equity_curve),
        equity_dates=tuple(sim.equity_dates),
        date_range=(format_date(df["Date"].iloc[0]), format_date(df["Date"].iloc[-1])),
        num_bars=len(df),
        cancelled=sim.cancelled,
    )


def compare_strategies(
    bars: BarsLike,
    strategies: Sequence[StrategyLike],
    config: Optional[BacktestConfig] = None,
    metric: str = "profit",
) -> pd.DataFrame:
    """
    Run the same configuration for several strategies and rank them.

    Each run gets its own simulation state; only the indicator memoization
    table (read-only derived series) is shared within the batch.

    Args:
        bars: OHLCV bars.
        strategies: Names, YAML paths, Strategy objects or definition dicts.
        config: Shared configuration; its ``strategy`` field is replaced per run.
        metric: One of profit, profit_percentage, sharpe_ratio, win_rate,
            max_drawdown (lower drawdown ranks first).

    Returns:
        DataFrame with one row per strategy, sorted best first, with a
        1-based ``rank`` column.

    Raises:
        InvalidParameterError: If ``metric`` is unknown or no strategies given.
    """
    if metric not in RANKING_METRICS:
        raise InvalidParameterError(
            "metric", metric, f"must be one of: {', '.join(sorted(RANKING_METRICS))}"
        )
    if not strategies:
        raise InvalidParameterError("strategies", strategies, "at least one strategy required")

    config = config or BacktestConfig()
    df = bars_to_frame(bars)
    cache = IndicatorCache()

    rows: List[Dict[str, Any]] = []
    for strategy in strategies:
        run_config = replace(config, strategy=strategy, custom_strategy=None)
        result = run_backtest(df, run_config, cache=cache)
        logger.info("Strategy '%s': profit %.2f", result.strategy_name, result.profit)
        rows.append({"strategy": result.strategy_name, **result.performance.to_dict()})

    table = pd.DataFrame(rows)
    table = table.sort_values(
        metric, ascending=not RANKING_METRICS[metric], kind="mergesort"
    ).reset_index(drop=True)
    table.insert(0, "rank", range(1, len(table) + 1))
    return table


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


def create_parser() -> argparse.ArgumentParser:
    """
    Create argument parser for CLI.

    Returns:
        Configured ArgumentParser.
    """
    parser = argparse.ArgumentParser(
        prog="strategylab.engine",
        description="Backtest a trading strategy on OHLCV bar data.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m strategylab.engine --data BTC.csv --strategy rsi
  python -m strategylab.engine -d BTC.csv -s strategy.yaml -c 1000 --start 2023-01-01
  python -m strategylab.engine -d BTC.csv -s rsi -t trades.csv -e equity.csv
  python -m strategylab.engine -d BTC.csv -s rsi --compare macd bollinger --metric sharpe_ratio

Strategy YAML Format:
  name: "RSI reversal"
  type: predefined        # predefined | combined | custom
  conditions:             # first matching condition wins
    - {indicator: rsi, operator: greater, value: 70, action: sell}
    - {indicator: rsi, operator: less, value: 30, action: buy}
  parameters:
    - {name: period, value: 14}
""",
    )

    parser.add_argument(
        "--data",
        "-d",
        required=True,
        type=str,
        help="Path to CSV file with OHLCV data",
    )

    parser.add_argument(
        "--strategy",
        "-s",
        type=str,
        default="rsi",
        help="Built-in strategy name or path to a strategy YAML file (default: rsi)",
    )

    parser.add_argument("--start", type=str, default=None, help="Start date (inclusive)")
    parser.add_argument("--end", type=str, default=None, help="End date (inclusive)")

    parser.add_argument(
        "--capital",
        "-c",
        type=float,
        default=DEFAULT_INITIAL_BALANCE,
        help=f"Initial balance (default: {DEFAULT_INITIAL_BALANCE:,.0f})",
    )

    parser.add_argument(
        "--warmup",
        type=int,
        default=DEFAULT_WARMUP,
        help=f"Bars skipped before trading (default: {DEFAULT_WARMUP})",
    )

    parser.add_argument(
        "--trades",
        "-t",
        type=str,
        default=None,
        help="Path to save trade log CSV",
    )

    parser.add_argument(
        "--equity",
        "-e",
        type=str,
        default=None,
        help="Path to save equity curve CSV",
    )

    parser.add_argument(
        "--compare",
        nargs="+",
        default=None,
        metavar="STRATEGY",
        help="Also run these strategies and print a ranking",
    )

    parser.add_argument(
        "--metric",
        choices=sorted(RANKING_METRICS),
        default="profit",
        help="Ranking metric for --compare (default: profit)",
    )

    parser.add_argument(
        "--show-advanced",
        action="store_true",
        help="Print advanced metrics",
    )

    parser.add_argument(
        "--show-monthly",
        action="store_true",
        help="Print monthly returns",
    )

    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose output")
    parser.add_argument("--debug", action="store_true", help="Enable debug output")

    return parser


def main(args: Optional[List[str]] = None) -> int:
    """
    Main entry point for CLI.

    Args:
        args: Command line arguments. If None, uses sys.argv.

    Returns:
        Exit code (0 for success, 1 for error).
    """
    parser = create_parser()
    parsed_args = parser.parse_args(args)
    setup_logging(parsed_args.verbose, parsed_args.debug)

    try:
        bars = load_bars(parsed_args.data)
        config = BacktestConfig(
            start_date=parsed_args.start,
            end_date=parsed_args.end,
            initial_balance=parsed_args.capital,
            strategy=parsed_args.strategy,
            warmup=parsed_args.warmup,
        )
        result = run_backtest(bars, config)
        print(result.summary())

        if parsed_args.show_advanced:
            print("\nADVANCED METRICS")
            for key, value in result.advanced_metrics().to_dict().items():
                print(f"  {key:24} {value:>14.4f}")

        if parsed_args.show_monthly:
            print("\nMONTHLY RETURNS")
            print(result.monthly_returns().to_string(index=False))

        if parsed_args.compare:
            table = compare_strategies(
                bars,
                [parsed_args.strategy] + parsed_args.compare,
                config,
                metric=parsed_args.metric,
            )
            print(f"\nSTRATEGY COMPARISON (by {parsed_args.metric})")
            print(table.to_string(index=False))

        if parsed_args.trades:
            result.trades_to_dataframe().to_csv(parsed_args.trades, index=False)
            print(f"\nTrade log saved to: {parsed_args.trades}")

        if parsed_args.equity:
            result.equity_to_dataframe().to_csv(parsed_args.equity, index=False)
            print(f"Equity curve saved to: {parsed_args.equity}")

        return 0

    except (BacktestError, IndicatorError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
