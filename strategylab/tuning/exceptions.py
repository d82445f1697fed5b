"""
Custom exceptions for the parameter tuning module.
"""


class TuningError(Exception):
    """Base exception for all tuning-related errors."""

    pass


class ParamConfigError(TuningError):
    """Exception raised when a parameter search configuration is invalid."""

    def __init__(self, source: str, details: str = "") -> None:
        self.source = source
        self.details = details
        message = f"Invalid parameter config: {source}"
        if details:
            message += f": {details}"
        super().__init__(message)


class InvalidPathError(TuningError):
    """Exception raised when a path does not address a strategy definition field."""

    def __init__(self, path: str, reason: str = "") -> None:
        self.path = path
        self.reason = reason
        message = f"Invalid definition path '{path}'"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class ParameterRangeError(TuningError):
    """Exception raised when a parameter's start/end/step do not form a range."""

    def __init__(self, param_name: str, reason: str = "") -> None:
        self.param_name = param_name
        self.reason = reason
        message = f"Invalid parameter range for '{param_name}'"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class SearchFailedError(TuningError):
    """Exception raised when no parameter combination produced a backtest result."""

    def __init__(self, total: int, last_error: str = "") -> None:
        self.total = total
        self.last_error = last_error
        message = f"All {total} parameter combinations failed during backtesting"
        if last_error:
            message += f" (last error: {last_error})"
        super().__init__(message)


class TemplateError(TuningError):
    """Exception raised when a strategy template cannot be loaded."""

    def __init__(self, source: str, details: str = "") -> None:
        self.source = source
        self.details = details
        message = f"Invalid strategy template: {source}"
        if details:
            message += f": {details}"
        super().__init__(message)
