"""
Exception hierarchy for bar loading, validation and indicator computation.

Everything raised by this package derives from IndicatorError, so callers
can catch one type at their boundary.
"""

from typing import List, Optional


class IndicatorError(Exception):
    """Base exception for the indicators package."""

    pass


class LoaderError(IndicatorError):
    """A bar file could not be read or parsed."""

    pass


class ValidationError(IndicatorError):
    """Bars failed a data quality check."""

    pass


class MissingColumnError(ValidationError):
    """One or more OHLCV fields are absent."""

    def __init__(self, missing_columns: List[str]) -> None:
        self.missing_columns = missing_columns
        super().__init__(f"Bars lack required fields: {', '.join(missing_columns)}")


class InvalidDataTypeError(ValidationError):
    """A field holds values that are not usable numbers."""

    def __init__(self, column: str, details: str = "") -> None:
        self.column = column
        message = f"Bad values in '{column}'"
        if details:
            message = f"{message}: {details}"
        super().__init__(message)


class DuplicateDateError(ValidationError):
    """Two or more bars share a timestamp."""

    def __init__(self, duplicate_dates: list) -> None:
        self.duplicate_dates = duplicate_dates
        shown = ", ".join(str(d) for d in duplicate_dates[:5])
        extra = len(duplicate_dates) - 5
        message = f"Repeated bar timestamps: {shown}"
        if extra > 0:
            message += f" (+{extra} more)"
        super().__init__(message)


class NonMonotonicDateError(ValidationError):
    """Bar timestamps do not strictly increase."""

    def __init__(self, details: str = "") -> None:
        message = "Bars must be in strictly ascending time order"
        if details:
            message = f"{message}: {details}"
        super().__init__(message)


class EmptyDataError(ValidationError):
    """No bars were supplied."""

    def __init__(self) -> None:
        super().__init__("No bars to process")


class FileNotFoundError(LoaderError):
    """The bar file does not exist."""

    def __init__(self, file_path: str) -> None:
        self.file_path = file_path
        super().__init__(f"Bar file not found: {file_path}")


class EmptyFileError(LoaderError):
    """The bar file has no data rows."""

    def __init__(self, file_path: str) -> None:
        self.file_path = file_path
        super().__init__(f"Bar file has no rows: {file_path}")


class InsufficientDataError(IndicatorError):
    """A series is shorter than an indicator's minimum length."""

    def __init__(
        self, indicator: str, required: int, available: Optional[int] = None
    ) -> None:
        self.indicator = indicator
        self.required = required
        self.available = available
        message = f"{indicator} needs at least {required} bars"
        if available is not None:
            message += f", got {available}"
        super().__init__(message)


class InvalidPeriodError(IndicatorError):
    """An indicator period or multiplier is not a positive integer."""

    def __init__(
        self, indicator: str, name: str, value: object, expected: str = "a positive integer"
    ) -> None:
        self.indicator = indicator
        self.name = name
        self.value = value
        super().__init__(f"{indicator} {name} must be {expected}, got {value!r}")
