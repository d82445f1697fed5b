"""
Pytest fixtures for backtest engine tests.
"""

import tempfile
from pathlib import Path

import numpy as np
import pandas as pd
import pytest

from strategylab.indicators.series import SeriesBundle


def _frame_from_closes(closes, start="2023-01-01") -> pd.DataFrame:
    closes = np.asarray(closes, dtype=float)
    n = len(closes)
    return pd.DataFrame(
        {
            "Date": pd.date_range(start=start, periods=n, freq="D"),
            "Open": closes,
            "High": closes + 1.0,
            "Low": closes - 1.0,
            "Close": closes,
            "Volume": np.full(n, 1_000_000.0),
        }
    )


def _rsi_round_trip_closes():
    """
    Closes whose 14-period RSI first drops below 30 at bar 25 and first
    rises above 70 at bar 40.

    Bars 0-24 alternate 100/101 (RSI near 50), bar 25 drops to 85
    (RSI about 22), bars 26-39 stay flat (RSI unchanged), bar 40 jumps to
    115 (RSI about 82) and the rest stay flat.
    """
    closes = [100.0 if i % 2 == 0 else 101.0 for i in range(25)]
    closes += [85.0] * 15
    closes += [115.0] * 10
    return closes


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def make_bars():
    """Factory building an OHLCV DataFrame from a list of closes."""
    return _frame_from_closes


@pytest.fixture
def rsi_round_trip_bars() -> pd.DataFrame:
    """Bars producing one RSI buy at bar 25 and one sell at bar 40."""
    return _frame_from_closes(_rsi_round_trip_closes())


@pytest.fixture
def flat_bars() -> pd.DataFrame:
    """60 bars with a constant close."""
    return _frame_from_closes([100.0] * 60)


@pytest.fixture
def sample_ohlcv_data() -> pd.DataFrame:
    """Create sample OHLCV data for testing."""
    rng = np.random.default_rng(7)
    n_days = 120

    close = 100 + np.cumsum(rng.standard_normal(n_days) * 2)
    high = close + np.abs(rng.standard_normal(n_days))
    low = close - np.abs(rng.standard_normal(n_days))

    return pd.DataFrame(
        {
            "Date": pd.date_range(start="2023-01-01", periods=n_days, freq="D"),
            "Open": (high + low) / 2,
            "High": high,
            "Low": low,
            "Close": close,
            "Volume": rng.integers(1_000_000, 5_000_000, n_days).astype(float),
        }
    )


@pytest.fixture
def sample_bundle(sample_ohlcv_data) -> SeriesBundle:
    """SeriesBundle over the sample data."""
    return SeriesBundle(sample_ohlcv_data)


@pytest.fixture
def sample_ohlcv_csv(temp_dir, sample_ohlcv_data) -> Path:
    """Sample OHLCV data written to CSV."""
    file_path = temp_dir / "bars.csv"
    sample_ohlcv_data.to_csv(file_path, index=False)
    return file_path


@pytest.fixture
def rsi_strategy_yaml(temp_dir) -> Path:
    """Predefined RSI strategy YAML file."""
    content = """name: "RSI reversal"
type: predefined
conditions:
  - indicator: rsi
    operator: greater
    value: 70
    action: sell
  - indicator: rsi
    operator: less
    value: 30
    action: buy
parameters:
  - name: period
    value: 14
"""
    file_path = temp_dir / "rsi_strategy.yaml"
    file_path.write_text(content)
    return file_path
