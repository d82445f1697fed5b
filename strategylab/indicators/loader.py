"""
Reading OHLCV bars from CSV files.

load_bars is the entry point; the smaller steps are exposed for reuse
with frames that come from elsewhere.
"""

from pathlib import Path

import pandas as pd

from strategylab.indicators.bars import bars_to_frame
from strategylab.indicators.exceptions import EmptyFileError
from strategylab.indicators.exceptions import FileNotFoundError as CustomFileNotFoundError
from strategylab.indicators.exceptions import LoaderError


def load_csv(file_path: str) -> pd.DataFrame:
    """
    Read a CSV without interpreting its columns.

    Raises:
        FileNotFoundError: If nothing exists at ``file_path``.
        EmptyFileError: If the file has no data rows.
        LoaderError: If pandas cannot parse it.
    """
    path = Path(file_path)

    if not path.exists():
        raise CustomFileNotFoundError(file_path)

    if path.stat().st_size == 0:
        raise EmptyFileError(file_path)

    try:
        df = pd.read_csv(file_path)
    except pd.errors.EmptyDataError:
        raise EmptyFileError(file_path)
    except Exception as e:
        raise LoaderError(f"Could not read {file_path} as CSV: {e}")

    # Headers only
    if df.empty:
        raise EmptyFileError(file_path)

    return df


def clean_column_names(df: pd.DataFrame) -> pd.DataFrame:
    """Strip whitespace from column names."""
    df = df.copy()
    df.columns = df.columns.str.strip()
    return df


def parse_dates(df: pd.DataFrame, date_column: str = "Date") -> pd.DataFrame:
    """Convert ``date_column`` to datetimes, raising LoaderError on bad values."""
    if date_column not in df.columns:
        # Reported as a missing column during validation
        return df

    df = df.copy()

    try:
        df[date_column] = pd.to_datetime(df[date_column])
    except Exception as e:
        raise LoaderError(f"Unparseable timestamps in '{date_column}': {e}")

    return df


def sort_by_date(df: pd.DataFrame, date_column: str = "Date") -> pd.DataFrame:
    """Sort DataFrame by date in ascending order."""
    if date_column not in df.columns:
        return df

    return df.sort_values(date_column, ascending=True).reset_index(drop=True)


def load_bars(file_path: str) -> pd.DataFrame:
    """
    Load a CSV file of OHLCV bars ready for indicator calculation.

    Combines file loading, column cleaning, date parsing, chronological
    sorting and validation. Column names are matched case-insensitively
    and ``timestamp`` is accepted in place of ``Date``.

    Args:
        file_path: CSV with a header row.

    Returns:
        Validated OHLCV DataFrame in ascending time order.

    Raises:
        LoaderError: If the file is missing, empty or unparseable.
        ValidationError: If the bars are invalid.
    """
    df = load_csv(file_path)
    df = clean_column_names(df)
    df = prepare_bars(df)
    return df


def prepare_bars(df: pd.DataFrame) -> pd.DataFrame:
    """Normalize column names, parse and sort dates, then validate."""
    lower = {col.lower(): col for col in df.columns}
    for alias in ("date", "timestamp", "time"):
        if "Date" not in df.columns and alias in lower:
            df = df.rename(columns={lower[alias]: "Date"})
    df = parse_dates(df)
    df = sort_by_date(df)
    return bars_to_frame(df)
