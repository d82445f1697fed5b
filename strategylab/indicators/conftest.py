"""
Pytest configuration and fixtures for indicator tests.

Bar fixtures are built in memory; the CSV fixtures write small files
with one defect each for the loader tests.
"""

import tempfile
from pathlib import Path

import numpy as np
import pandas as pd
import pytest

HEADER = "Date,Open,High,Low,Close,Volume"


def _frame_from_closes(closes, start="2023-01-01", volume=None) -> pd.DataFrame:
    closes = np.asarray(closes, dtype=float)
    n = len(closes)
    if volume is None:
        volume = np.full(n, 1_000_000.0)
    return pd.DataFrame(
        {
            "Date": pd.date_range(start=start, periods=n, freq="D"),
            "Open": closes,
            "High": closes + 1.0,
            "Low": closes - 1.0,
            "Close": closes,
            "Volume": np.asarray(volume, dtype=float),
        }
    )


def _write_csv(directory: Path, name: str, *lines: str) -> Path:
    path = directory / name
    path.write_text("".join(line + "\n" for line in lines))
    return path


@pytest.fixture
def make_bars():
    """Factory building an OHLCV DataFrame from a list of closes."""
    return _frame_from_closes


@pytest.fixture
def sample_ohlcv_data() -> pd.DataFrame:
    """100 business days of seeded random-walk bars."""
    rng = np.random.default_rng(42)
    close = 100 + np.cumsum(rng.standard_normal(100) * 0.5)
    high = close + np.abs(rng.standard_normal(100) * 0.5)
    low = close - np.abs(rng.standard_normal(100) * 0.5)

    return pd.DataFrame(
        {
            "Date": pd.date_range(start="2023-01-01", periods=100, freq="B"),
            "Open": low + (high - low) * rng.random(100),
            "High": high,
            "Low": low,
            "Close": close,
            "Volume": rng.integers(1_000_000, 5_000_000, 100),
        }
    )


@pytest.fixture
def minimal_ohlcv_data() -> pd.DataFrame:
    """Ten business days zig-zagging upwards, too short for default periods."""
    close = 100.5 + np.arange(10) * 0.5 + np.tile([0.0, 1.0], 5)
    return pd.DataFrame(
        {
            "Date": pd.date_range(start="2023-01-02", periods=10, freq="B"),
            "Open": close - 0.25,
            "High": close + 0.75,
            "Low": close - 1.25,
            "Close": close,
            "Volume": 1_000_000 + np.arange(10) * 50_000,
        }
    )


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def valid_csv_file(temp_dir, sample_ohlcv_data) -> Path:
    file_path = temp_dir / "valid.csv"
    sample_ohlcv_data.to_csv(file_path, index=False)
    return file_path


@pytest.fixture
def minimal_csv_file(temp_dir, minimal_ohlcv_data) -> Path:
    file_path = temp_dir / "minimal.csv"
    minimal_ohlcv_data.to_csv(file_path, index=False)
    return file_path


@pytest.fixture
def empty_file(temp_dir) -> Path:
    return _write_csv(temp_dir, "empty.csv")


@pytest.fixture
def headers_only_file(temp_dir) -> Path:
    return _write_csv(temp_dir, "headers_only.csv", HEADER)


@pytest.fixture
def missing_column_file(temp_dir) -> Path:
    """No Volume column."""
    return _write_csv(
        temp_dir, "missing_column.csv", "Date,Open,High,Low,Close", "2023-03-01,50,51,49,50.5"
    )


@pytest.fixture
def invalid_dtype_file(temp_dir) -> Path:
    """A text value in the Open column."""
    return _write_csv(
        temp_dir,
        "invalid_dtype.csv",
        HEADER,
        "2023-03-01,50,51,49,50.5,20000",
        "2023-03-02,n/a,52,50,51.5,21000",
    )


@pytest.fixture
def duplicate_dates_file(temp_dir) -> Path:
    return _write_csv(
        temp_dir,
        "duplicate_dates.csv",
        HEADER,
        "2023-03-01,50,51,49,50.5,20000",
        "2023-03-01,51,52,50,51.5,21000",
        "2023-03-02,52,53,51,52.5,22000",
    )


@pytest.fixture
def unsorted_dates_file(temp_dir) -> Path:
    """Lowercase headers with a timestamp column, rows out of order."""
    return _write_csv(
        temp_dir,
        "unsorted_dates.csv",
        "timestamp,open,high,low,close,volume",
        "2023-03-03,102,103,101,102.5,22000",
        "2023-03-01,100,101,99,100.5,20000",
        "2023-03-02,101,102,100,101.5,21000",
    )


@pytest.fixture
def whitespace_columns_file(temp_dir) -> Path:
    """Column names padded with spaces."""
    return _write_csv(
        temp_dir,
        "whitespace_columns.csv",
        " Date , Open , High , Low , Close , Volume ",
        "2023-03-01,50,51,49,50.5,20000",
        "2023-03-02,51,52,50,51.5,21000",
    )
