"""
StrategyLab Package.

Technical indicators over OHLCV bars, rule- and code-based trading
strategies, a long-only backtest simulator and companion analysis tools.

Modules:
    - indicators: Technical indicator calculations
    - engine: Backtest engine for strategy evaluation
    - correlation: Pairwise correlation between assets
    - tuning: Parameter grid search over strategy definitions

Main APIs:
    - build_indicators: Calculate technical indicators from OHLCV bars
    - run_backtest: Run one strategy over a bar series
    - compare_strategies: Rank several strategies on the same bars
    - calculate_correlations: Correlate assets against a base asset
    - run_parameter_search: Grid search strategy parameters
"""

from strategylab.correlation import calculate_correlations
from strategylab.engine import BacktestConfig, compare_strategies, run_backtest
from strategylab.indicators import build_indicators
from strategylab.tuning import run_parameter_search

__all__ = [
    "BacktestConfig",
    "build_indicators",
    "calculate_correlations",
    "compare_strategies",
    "run_backtest",
    "run_parameter_search",
]
__version__ = "1.0.0"
