"""
Pytest configuration and fixtures for correlation tests.
"""

import tempfile
from pathlib import Path

import numpy as np
import pandas as pd
import pytest

N_BARS = 30


def _frame_from_closes(closes, start="2023-01-01") -> pd.DataFrame:
    closes = np.asarray(closes, dtype=float)
    return pd.DataFrame(
        {
            "Date": pd.date_range(start=start, periods=len(closes), freq="D"),
            "Open": closes,
            "High": closes + 1.0,
            "Low": closes - 1.0,
            "Close": closes,
            "Volume": np.full(len(closes), 1_000_000.0),
        }
    )


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
def base_bars() -> pd.DataFrame:
    """Steadily rising closes."""
    return _frame_from_closes([100.0 + i for i in range(N_BARS)])


@pytest.fixture
def other_assets():
    """Assets with strong positive, perfect negative and negligible correlation to the base."""
    wiggle = [0.5 if i % 2 == 0 else -0.5 for i in range(N_BARS)]
    return {
        "follower": _frame_from_closes([100.0 + i + w for i, w in enumerate(wiggle)]),
        "inverse": _frame_from_closes([200.0 - i for i in range(N_BARS)]),
        "noise": _frame_from_closes([100.0 + 2 * w for w in wiggle]),
    }
