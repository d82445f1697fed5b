"""
Custom exceptions for the backtest engine module.

This module defines all custom exceptions used throughout the backtest engine.
"""

from typing import Any, Optional


class BacktestError(Exception):
    """Base exception for all backtest-related errors."""

    pass


class InvalidParameterError(BacktestError):
    """Exception raised when an invalid configuration parameter is provided."""

    def __init__(self, param_name: str, value: Any, reason: str = "") -> None:
        self.param_name = param_name
        self.value = value
        message = f"Invalid parameter '{param_name}': {value!r}"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class InsufficientRangeError(BacktestError):
    """Exception raised when the date-filtered bars cannot cover the warm-up."""

    def __init__(self, rows: int, warmup: int) -> None:
        self.rows = rows
        self.warmup = warmup
        super().__init__(
            f"Insufficient bars in date range: got {rows}, "
            f"need more than the warm-up of {warmup}"
        )


class FileNotFoundError(BacktestError):
    """Exception raised when a required file is not found."""

    def __init__(self, file_path: str) -> None:
        self.file_path = file_path
        super().__init__(f"File not found: {file_path}")


class StrategyError(BacktestError):
    """Exception raised when strategy loading or validation fails."""

    pass


class InvalidStrategyError(StrategyError):
    """Exception raised when a strategy definition is invalid."""

    def __init__(self, source: str, details: str = "") -> None:
        self.source = source
        message = f"Invalid strategy: {source}"
        if details:
            message += f": {details}"
        super().__init__(message)


class InvalidConditionError(StrategyError):
    """Exception raised when a condition definition is invalid."""

    def __init__(self, condition_details: str, reason: str = "") -> None:
        self.condition_details = condition_details
        message = f"Invalid condition: {condition_details}"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class UnknownStrategyError(StrategyError):
    """Exception raised when a named strategy is not registered."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Unknown strategy '{name}'")


class StrategyExecutionError(StrategyError):
    """
    Exception raised when custom strategy code fails at one bar.

    The sandbox catches it, logs it and treats the bar as a hold.
    """

    def __init__(
        self,
        details: str,
        strategy_name: Optional[str] = None,
        index: Optional[int] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        self.details = details
        self.strategy_name = strategy_name
        self.index = index
        self.cause = cause
        message = "Strategy execution failed"
        if strategy_name:
            message += f" in '{strategy_name}'"
        if index is not None:
            message += f" at bar {index}"
        message += f": {details}"
        super().__init__(message)


class StrategyTimeoutError(StrategyExecutionError):
    """Exception raised when custom strategy code exceeds its execution budget."""

    def __init__(
        self,
        budget: str,
        strategy_name: Optional[str] = None,
        index: Optional[int] = None,
    ) -> None:
        self.budget = budget
        super().__init__(f"exceeded {budget}", strategy_name, index)
