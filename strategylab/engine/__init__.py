"""
Backtest Engine Module.

Turns OHLCV bars plus a strategy definition into a simulated trade history,
an equity curve and summary performance statistics.

Usage (Python API):
    from strategylab.engine import BacktestConfig, run_backtest
    result = run_backtest(bars, BacktestConfig(initial_balance=1000, strategy="rsi"))
    print(result.summary())

    # Rank several strategies on the same bars
    table = compare_strategies(bars, ["rsi", "macd", "strategy.yaml"], metric="sharpe_ratio")

Usage (CLI):
    python -m strategylab.engine --data BTC.csv --strategy rsi
    python -m strategylab.engine --data BTC.csv --strategy strategy.yaml --trades trades.csv
"""

from strategylab.engine.conditions import evaluate_conditions, indicator_value
from strategylab.engine.constants import Signal
from strategylab.engine.exceptions import (
    BacktestError,
    InsufficientRangeError,
    InvalidConditionError,
    InvalidParameterError,
    InvalidStrategyError,
    StrategyError,
    StrategyExecutionError,
    StrategyTimeoutError,
    UnknownStrategyError,
)
from strategylab.engine.performance import (
    AdvancedMetrics,
    PerformanceSummary,
    calculate_advanced_metrics,
    monthly_returns,
    summarize,
)
from strategylab.engine.registry import list_strategies, register_strategy, unregister_strategy
from strategylab.engine.runner import (
    BacktestConfig,
    BacktestResult,
    compare_strategies,
    run_backtest,
)
from strategylab.engine.sandbox import run_strategy
from strategylab.engine.simulator import SimulationResult, Trade, simulate
from strategylab.engine.strategy_loader import (
    Condition,
    Strategy,
    StrategyParameter,
    load_strategy_file,
    strategy_from_dict,
)

__all__ = [
    # Main API functions
    "run_backtest",
    "compare_strategies",
    "simulate",
    "summarize",
    "run_strategy",
    "evaluate_conditions",
    "indicator_value",
    "calculate_advanced_metrics",
    "monthly_returns",
    # Strategy definitions
    "Condition",
    "Strategy",
    "StrategyParameter",
    "load_strategy_file",
    "strategy_from_dict",
    "register_strategy",
    "unregister_strategy",
    "list_strategies",
    # Result classes
    "AdvancedMetrics",
    "BacktestConfig",
    "BacktestResult",
    "PerformanceSummary",
    "SimulationResult",
    "Trade",
    # Constants
    "Signal",
    # Exceptions
    "BacktestError",
    "InsufficientRangeError",
    "InvalidConditionError",
    "InvalidParameterError",
    "InvalidStrategyError",
    "StrategyError",
    "StrategyExecutionError",
    "StrategyTimeoutError",
    "UnknownStrategyError",
]
