"""
Constants and type aliases for the backtest engine.

This module centralizes magic numbers, strings, and common type definitions.
"""

from typing import Any, Dict

# Type aliases
YAMLData = Dict[str, Any]


class Signal:
    """Trading signal constants."""
    BUY = 1
    SELL = -1
    HOLD = 0


class Action:
    """Condition action constants."""
    BUY = "buy"
    SELL = "sell"


class Operator:
    """Condition operator constants."""
    GREATER = "greater"
    LESS = "less"
    EQUAL = "equal"
    CROSS_ABOVE = "cross-above"
    CROSS_BELOW = "cross-below"


class StrategyType:
    """Strategy definition variants."""
    PREDEFINED = "predefined"
    COMBINED = "combined"
    CUSTOM = "custom"


class IndicatorKey:
    """Indicator keys understood by the condition evaluator."""
    RSI = "rsi"
    MACD = "macd"
    BOLLINGER = "bollinger"
    PRICE = "price"
    VOLUME = "volume"


# Indicator groups a SeriesBundle can precompute
INDICATOR_GROUPS = ("rsi", "macd", "bollinger", "fibonacci", "volume")

KNOWN_INDICATOR_KEYS = {
    IndicatorKey.RSI,
    IndicatorKey.MACD,
    IndicatorKey.BOLLINGER,
    IndicatorKey.PRICE,
    IndicatorKey.VOLUME,
}

VALID_OPERATORS = {
    Operator.GREATER,
    Operator.LESS,
    Operator.EQUAL,
    Operator.CROSS_ABOVE,
    Operator.CROSS_BELOW,
}
VALID_ACTIONS = {Action.BUY, Action.SELL}

# Absolute tolerance for the "equal" operator
EQUAL_TOLERANCE = 1e-3

# Simulation defaults
DEFAULT_WARMUP = 20
DEFAULT_INITIAL_BALANCE = 10000.0
SMALL_BALANCE_WARNING = 100.0

# Custom strategy execution budgets
EXPRESSION_MAX_STEPS = 10000
FUNCTION_TIME_BUDGET = 0.5  # seconds

# Daily crypto bars trade every calendar day
PERIODS_PER_YEAR = 365

# Optimizer constants
MAX_SEARCH_SPACE_SIZE = 100000  # Maximum combinations before warning

# Ranking metrics and their sort direction (True = higher is better)
RANKING_METRICS = {
    "profit": True,
    "profit_percentage": True,
    "sharpe_ratio": True,
    "win_rate": True,
    "max_drawdown": False,
}
