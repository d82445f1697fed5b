"""
Custom exceptions for the correlation analyzer.
"""


class CorrelationError(Exception):
    """Base exception for all correlation-related errors."""

    pass


class MisalignedSeriesError(CorrelationError):
    """Exception raised when compared price series differ in length."""

    def __init__(self, asset: str, expected: int, actual: int) -> None:
        self.asset = asset
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Series for '{asset}' has {actual} bars, expected {expected}; "
            f"align the series on common dates first"
        )
