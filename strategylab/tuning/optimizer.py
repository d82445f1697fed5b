"""
Grid search parameter optimizer for strategy definitions.

Each point of the Cartesian grid described by a ParamConfig is written
into a copy of the strategy template and backtested on the same bars.
Runs are ranked by one PerformanceSummary metric; grid order breaks ties.
"""

import argparse
import itertools
import json
import logging
import sys
import warnings
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

import pandas as pd

from strategylab.engine.constants import (
    DEFAULT_INITIAL_BALANCE,
    DEFAULT_WARMUP,
    MAX_SEARCH_SPACE_SIZE,
    RANKING_METRICS,
)
from strategylab.engine.exceptions import BacktestError
from strategylab.engine.performance import PerformanceSummary
from strategylab.engine.runner import BacktestConfig, run_backtest
from strategylab.engine.strategy_loader import Strategy
from strategylab.indicators.bars import BarsLike, bars_to_frame
from strategylab.indicators.exceptions import IndicatorError
from strategylab.indicators.loader import load_bars
from strategylab.indicators.series import IndicatorCache
from strategylab.tuning.exceptions import SearchFailedError, TemplateError, TuningError
from strategylab.tuning.param_config import ParamConfig, load_param_config, param_config_from_dict
from strategylab.tuning.path_utils import clone_and_modify, load_definition

logger = logging.getLogger(__name__)

# Search space size above which progress is logged at INFO
LARGE_SEARCH_SPACE = 10000

TemplateLike = Union[str, Strategy, Mapping[str, Any]]
ParamConfigLike = Union[str, ParamConfig, Mapping[str, Any]]


@dataclass(frozen=True)
class ParameterResult:
    """Result for a single parameter combination."""

    parameters: Dict[str, Any]
    performance: PerformanceSummary

    def metric(self, name: str) -> float:
        return getattr(self.performance, name)

    def to_dict(self) -> Dict[str, Any]:
        return {"parameters": dict(self.parameters), **self.performance.to_dict()}


@dataclass
class SearchResult:
    """Result of a parameter grid search."""

    top_results: List[ParameterResult]
    total_combinations: int
    evaluated_combinations: int
    metric: str
    search_space: Dict[str, List[Any]]
    failed_combinations: int = 0
    best_parameters: Dict[str, Any] = field(default_factory=dict)
    best_value: float = 0.0

    def summary(self) -> str:
        """Generate human-readable summary of search results."""
        lines = [
            "=" * 70,
            "PARAMETER SEARCH RESULTS",
            "=" * 70,
            "",
            f"Combinations evaluated: {self.evaluated_combinations}/{self.total_combinations}",
            f"Failed: {self.failed_combinations}",
            f"Ranked by: {self.metric}",
            "",
            "SEARCH SPACE:",
        ]
        for name, values in self.search_space.items():
            lines.append(f"  {name}: {values[0]} to {values[-1]} ({len(values)} values)")

        lines.extend([
            "",
            "=" * 70,
            "TOP PERFORMING PARAMETER SETS",
            "=" * 70,
            "",
        ])
        for rank, result in enumerate(self.top_results, 1):
            perf = result.performance
            lines.append(f"Rank #{rank}")
            lines.append("-" * 40)
            for name, value in result.parameters.items():
                lines.append(f"  {name}: {value}")
            lines.append(f"Final Balance: ${perf.final_balance:,.2f}")
            lines.append(f"Profit: ${perf.profit:,.2f} ({perf.profit_percentage:+.2f}%)")
            lines.append(f"Max Drawdown: {perf.max_drawdown:.2f}%")
            lines.append(f"Sharpe Ratio: {perf.sharpe_ratio:.4f}")
            lines.append(f"Trades: {perf.total_trades} (win rate {perf.win_rate:.2f}%)")
            lines.append("")

        lines.extend([
            "=" * 70,
            "BEST PARAMETERS",
            "=" * 70,
        ])
        for name, value in self.best_parameters.items():
            lines.append(f"  {name}: {value}")
        lines.append(f"  -> {self.metric}: {self.best_value:,.4f}")
        lines.append("=" * 70)
        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "top_results": [r.to_dict() for r in self.top_results],
            "total_combinations": self.total_combinations,
            "evaluated_combinations": self.evaluated_combinations,
            "failed_combinations": self.failed_combinations,
            "metric": self.metric,
            "best_parameters": self.best_parameters,
            "best_value": self.best_value,
            "search_space": self.search_space,
        }

    def to_dataframe(self) -> pd.DataFrame:
        """One row per top result: rank, parameter values, then metrics."""
        rows = [
            {"rank": rank, **r.parameters, **r.performance.to_dict()}
            for rank, r in enumerate(self.top_results, 1)
        ]
        return pd.DataFrame(rows)


def generate_parameter_combinations(param_config: ParamConfig) -> List[Dict[str, Any]]:
    """
    All parameter combinations, in row-major order of the configured specs.

    An empty configuration yields a single empty combination.
    """
    if not param_config.parameters:
        return [{}]

    names = [p.name for p in param_config.parameters]
    value_lists = [p.get_values() for p in param_config.parameters]
    return [dict(zip(names, values)) for values in itertools.product(*value_lists)]


def build_path_mapping(param_config: ParamConfig, parameter_values: Mapping[str, Any]) -> Dict[str, Any]:
    """Map each spec's definition path to its value in ``parameter_values``."""
    return {
        spec.path: parameter_values[spec.name]
        for spec in param_config.parameters
        if spec.name in parameter_values
    }


def _resolve_template(template: TemplateLike) -> Dict[str, Any]:
    if isinstance(template, Strategy):
        return template.to_dict()
    if isinstance(template, Mapping):
        return dict(template)
    if isinstance(template, str):
        return load_definition(template)
    raise TemplateError(repr(template), "expected a YAML path, Strategy or mapping")


def _resolve_param_config(param_config: ParamConfigLike) -> ParamConfig:
    if isinstance(param_config, ParamConfig):
        return param_config
    if isinstance(param_config, Mapping):
        return param_config_from_dict(param_config)
    return load_param_config(param_config)


def _check_search_space_size(total_combinations: int) -> None:
    if total_combinations > MAX_SEARCH_SPACE_SIZE:
        warnings.warn(
            f"{total_combinations:,} parameter combinations exceeds the suggested "
            f"limit of {MAX_SEARCH_SPACE_SIZE:,}; widen the steps or narrow the ranges",
            UserWarning,
        )
    elif total_combinations > LARGE_SEARCH_SPACE:
        logger.info("Large search space (%d combinations)", total_combinations)


def run_parameter_search(
    bars: BarsLike,
    strategy_template: TemplateLike,
    param_config: ParamConfigLike,
    config: Optional[BacktestConfig] = None,
    metric: str = "profit",
    top_n: int = 10,
) -> SearchResult:
    """
    Run a grid search over strategy definition parameters.

    Every combination runs on an independent copy of the template with the
    same bars and configuration. Combinations whose backtest fails (for
    example a period longer than the data) are logged and skipped.

    Args:
        bars: OHLCV bars.
        strategy_template: Strategy definition mapping, Strategy or YAML path.
        param_config: ParamConfig, its mapping form or a YAML path.
        config: Backtest configuration; its strategy is replaced per run.
        metric: profit, profit_percentage, sharpe_ratio, win_rate or
            max_drawdown (lower drawdown ranks first).
        top_n: Number of top results to keep.

    Returns:
        SearchResult with the top parameter sets, best first. Ties keep
        grid order.

    Raises:
        TuningError: If the search setup is invalid or every combination failed.
        BacktestError: If the backtest configuration or template is invalid.
    """
    if metric not in RANKING_METRICS:
        raise TuningError(
            f"Unknown ranking metric '{metric}', must be one of: {', '.join(sorted(RANKING_METRICS))}"
        )
    if isinstance(top_n, bool) or not isinstance(top_n, int) or top_n < 1:
        raise TuningError("top_n must be at least 1")

    config = config or BacktestConfig()
    param_config = _resolve_param_config(param_config)
    template = _resolve_template(strategy_template)
    replace(config, strategy=template, custom_strategy=None).validate()

    combinations = generate_parameter_combinations(param_config)
    total_combinations = len(combinations)
    _check_search_space_size(total_combinations)

    if not param_config.parameters:
        warnings.warn(
            "No parameters to tune; running single backtest with original values",
            UserWarning,
        )

    # Fail fast on bad paths or a bad template before any simulation
    first = clone_and_modify(template, build_path_mapping(param_config, combinations[0]))
    replace(config, strategy=first, custom_strategy=None).resolve_strategy()

    df = bars_to_frame(bars)
    cache = IndicatorCache()
    higher_is_better = RANKING_METRICS[metric]

    logger.info("Starting parameter search with %d combinations", total_combinations)
    results: List[ParameterResult] = []
    last_error = ""
    for i, combo in enumerate(combinations, 1):
        definition = clone_and_modify(template, build_path_mapping(param_config, combo))
        run_config = replace(config, strategy=definition, custom_strategy=None)
        try:
            backtest = run_backtest(df, run_config, cache=cache)
        except (BacktestError, IndicatorError) as e:
            last_error = str(e)
            logger.warning("Backtest failed for %s: %s", combo, e)
            continue

        results.append(ParameterResult(parameters=combo, performance=backtest.performance))
        logger.debug("[%d/%d] %s -> %s=%.4f", i, total_combinations, combo, metric,
                     getattr(backtest, metric))

    if not results:
        raise SearchFailedError(total_combinations, last_error)

    results.sort(key=lambda r: r.metric(metric), reverse=higher_is_better)
    top_results = results[:top_n]

    search_result = SearchResult(
        top_results=top_results,
        total_combinations=total_combinations,
        evaluated_combinations=len(results),
        failed_combinations=total_combinations - len(results),
        metric=metric,
        search_space=param_config.search_space(),
        best_parameters=dict(top_results[0].parameters),
        best_value=top_results[0].metric(metric),
    )
    logger.info(
        "Completed: %d/%d combinations evaluated, best %s=%.4f",
        len(results), total_combinations, metric, search_result.best_value,
    )
    return search_result


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
    """Create argument parser for CLI."""
    parser = argparse.ArgumentParser(
        prog="strategylab.tuning",
        description="Run a parameter grid search over a strategy definition.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Basic parameter search
  python -m strategylab.tuning -d bars.csv -s strategy.yaml -p params.yaml

  # Rank by Sharpe ratio, keep the top 3, custom capital
  python -m strategylab.tuning -d bars.csv -s strategy.yaml -p params.yaml --metric sharpe_ratio -n 3 -c 50000

  # Save results as JSON
  python -m strategylab.tuning -d bars.csv -s strategy.yaml -p params.yaml -o results.json
        """,
    )
    parser.add_argument("-d", "--data", required=True, help="Path to OHLCV CSV file")
    parser.add_argument("-s", "--strategy", required=True, help="Path to strategy template YAML")
    parser.add_argument("-p", "--params", required=True, help="Path to parameter configuration YAML")
    parser.add_argument(
        "-c", "--capital",
        type=float,
        default=DEFAULT_INITIAL_BALANCE,
        help=f"Initial balance (default: {DEFAULT_INITIAL_BALANCE:g})",
    )
    parser.add_argument("--start", help="Start date (inclusive)")
    parser.add_argument("--end", help="End date (inclusive)")
    parser.add_argument(
        "--warmup",
        type=int,
        default=DEFAULT_WARMUP,
        help=f"Warm-up bars before signals are used (default: {DEFAULT_WARMUP})",
    )
    parser.add_argument(
        "--metric",
        default="profit",
        choices=sorted(RANKING_METRICS),
        help="Ranking metric (default: profit)",
    )
    parser.add_argument(
        "-n", "--top-n",
        type=int,
        default=5,
        help="Number of top results to report (default: 5)",
    )
    parser.add_argument("-o", "--output", help="Path to save results JSON file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log progress during search")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Returns:
        Exit code (0 for success, 1 for error).
    """
    parser = create_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose, args.debug)

    try:
        config = BacktestConfig(
            start_date=args.start,
            end_date=args.end,
            initial_balance=args.capital,
            warmup=args.warmup,
        )
        result = run_parameter_search(
            bars=load_bars(args.data),
            strategy_template=args.strategy,
            param_config=args.params,
            config=config,
            metric=args.metric,
            top_n=args.top_n,
        )
        print(result.summary())

        if args.output:
            output_path = Path(args.output)
            output_path.parent.mkdir(parents=True, exist_ok=True)
            with open(output_path, "w") as f:
                json.dump(result.to_dict(), f, indent=2)
            print(f"\nResults saved to: {args.output}")

        return 0

    except (TuningError, BacktestError, IndicatorError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
