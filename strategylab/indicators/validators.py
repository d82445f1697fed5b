"""
Data quality checks for OHLCV bars.

Each check inspects one property of a bar DataFrame and raises a
ValidationError subclass on the first problem found. validate_all runs
them in the order the loader needs.
"""

import pandas as pd

from strategylab.indicators.exceptions import (
    DuplicateDateError,
    EmptyDataError,
    InvalidDataTypeError,
    MissingColumnError,
    NonMonotonicDateError,
)

NUMERIC_COLUMNS = ["Open", "High", "Low", "Close", "Volume"]
REQUIRED_COLUMNS = ["Date"] + NUMERIC_COLUMNS


def validate_not_empty(df: pd.DataFrame) -> None:
    """Raise EmptyDataError when there are no bars."""
    if len(df) == 0:
        raise EmptyDataError()


def validate_required_columns(df: pd.DataFrame) -> None:
    """Raise MissingColumnError listing every absent OHLCV field."""
    missing = [col for col in REQUIRED_COLUMNS if col not in df.columns]
    if missing:
        raise MissingColumnError(missing)


def validate_numeric_columns(df: pd.DataFrame) -> pd.DataFrame:
    """
    Coerce the price and volume columns to float.

    Args:
        df: Bars, possibly with string or integer fields.

    Returns:
        A copy with float OHLCV columns. Missing values stay NaN.

    Raises:
        InvalidDataTypeError: If a non-missing value is not a number.
    """
    result = df.copy()

    for col in (c for c in NUMERIC_COLUMNS if c in result.columns):
        raw = result[col]
        converted = pd.to_numeric(raw, errors="coerce").astype(float)

        # NaN after coercion but not before means the raw value was text
        rejected = converted.isna() & raw.notna()
        if rejected.any():
            bad_value = raw[rejected].iloc[0]
            raise InvalidDataTypeError(col, f"'{bad_value}' is not a number")

        result[col] = converted

    return result


def validate_no_missing_ohlcv(df: pd.DataFrame) -> None:
    """Raise InvalidDataTypeError when any OHLCV field has gaps."""
    for col in (c for c in NUMERIC_COLUMNS if c in df.columns):
        gaps = int(df[col].isna().sum())
        if gaps:
            raise InvalidDataTypeError(col, f"{gaps} missing value(s)")


def validate_positive_prices(df: pd.DataFrame) -> None:
    """
    Closes must be above zero and volumes must not be negative.

    Returns and log-based indicators divide by the close, so a zero close
    would poison everything downstream.
    """
    non_positive = int((df["Close"] <= 0).sum())
    if non_positive:
        raise InvalidDataTypeError("Close", f"{non_positive} value(s) <= 0")

    negative = int((df["Volume"] < 0).sum())
    if negative:
        raise InvalidDataTypeError("Volume", f"{negative} negative value(s)")


def validate_no_duplicate_dates(df: pd.DataFrame) -> None:
    """Raise DuplicateDateError listing the repeated timestamps."""
    if "Date" not in df.columns:
        return

    dates = df["Date"]
    repeated = dates[dates.duplicated(keep=False)].unique()
    if len(repeated):
        raise DuplicateDateError(list(repeated))


def validate_chronological_order(df: pd.DataFrame) -> None:
    """Raise NonMonotonicDateError at the first timestamp that does not advance."""
    if "Date" not in df.columns or len(df) < 2:
        return

    dates = df["Date"].reset_index(drop=True)
    stalled = dates.diff() <= pd.Timedelta(0)
    if stalled.any():
        pos = int(stalled.to_numpy().argmax())
        raise NonMonotonicDateError(f"{dates.iloc[pos]} follows {dates.iloc[pos - 1]}")


def validate_all(df: pd.DataFrame) -> pd.DataFrame:
    """
    Run every check and return the bars with float OHLCV columns.

    Args:
        df: Bars with a parsed ``Date`` column.

    Raises:
        ValidationError: The subclass matching the first failed check.
    """
    validate_not_empty(df)
    validate_required_columns(df)
    df = validate_numeric_columns(df)
    validate_no_missing_ohlcv(df)
    validate_positive_prices(df)
    validate_no_duplicate_dates(df)
    validate_chronological_order(df)
    return df
