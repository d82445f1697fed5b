"""
Tests for the loader module.
"""

import pandas as pd
import pytest

from strategylab.indicators.exceptions import (
    DuplicateDateError,
    EmptyFileError,
    InvalidDataTypeError,
    LoaderError,
    MissingColumnError,
)
from strategylab.indicators.exceptions import FileNotFoundError as CustomFileNotFoundError
from strategylab.indicators.loader import (
    clean_column_names,
    load_bars,
    load_csv,
    parse_dates,
    sort_by_date,
)


class TestLoadCsv:
    """Tests for load_csv function."""

    def test_load_valid(self, valid_csv_file):
        df = load_csv(str(valid_csv_file))
        assert len(df) == 100

    def test_file_not_found(self, temp_dir):
        with pytest.raises(CustomFileNotFoundError):
            load_csv(str(temp_dir / "missing.csv"))

    def test_not_found_is_loader_error(self, temp_dir):
        with pytest.raises(LoaderError):
            load_csv(str(temp_dir / "missing.csv"))

    def test_empty_file(self, empty_file):
        with pytest.raises(EmptyFileError):
            load_csv(str(empty_file))

    def test_headers_only(self, headers_only_file):
        with pytest.raises(EmptyFileError):
            load_csv(str(headers_only_file))


class TestHelpers:
    """Tests for cleaning, parsing and sorting helpers."""

    def test_clean_column_names(self):
        df = pd.DataFrame({" Date ": [1], " Close": [2]})
        assert list(clean_column_names(df).columns) == ["Date", "Close"]

    def test_parse_dates(self):
        df = pd.DataFrame({"Date": ["2024-01-01", "2024-01-02"]})
        result = parse_dates(df)
        assert pd.api.types.is_datetime64_any_dtype(result["Date"])

    def test_parse_dates_invalid(self):
        df = pd.DataFrame({"Date": ["not-a-date", "2024-01-02"]})
        with pytest.raises(LoaderError):
            parse_dates(df)

    def test_sort_by_date(self):
        df = pd.DataFrame({"Date": pd.to_datetime(["2024-01-02", "2024-01-01"]), "x": [2, 1]})
        result = sort_by_date(df)
        assert result["x"].tolist() == [1, 2]


class TestLoadBars:
    """Tests for load_bars."""

    def test_load_bars(self, valid_csv_file):
        df = load_bars(str(valid_csv_file))
        assert len(df) == 100
        assert df["Close"].dtype == float

    def test_sorts_and_normalizes(self, unsorted_dates_file):
        df = load_bars(str(unsorted_dates_file))
        assert df["Close"].tolist() == [100.5, 101.5, 102.5]
        assert df["Date"].is_monotonic_increasing

    def test_whitespace_columns(self, whitespace_columns_file):
        df = load_bars(str(whitespace_columns_file))
        assert len(df) == 2

    def test_missing_column(self, missing_column_file):
        with pytest.raises(MissingColumnError):
            load_bars(str(missing_column_file))

    def test_invalid_dtype(self, invalid_dtype_file):
        with pytest.raises(InvalidDataTypeError):
            load_bars(str(invalid_dtype_file))

    def test_duplicate_dates(self, duplicate_dates_file):
        with pytest.raises(DuplicateDateError):
            load_bars(str(duplicate_dates_file))
