"""
Pytest fixtures for parameter tuning tests.
"""

import tempfile
from pathlib import Path

import numpy as np
import pandas as pd
import pytest


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


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def rsi_round_trip_bars() -> pd.DataFrame:
    """
    50 bars whose 14-period RSI sits near 22 over bars 25-39 and near 82
    from bar 40.
    """
    closes = [100.0 if i % 2 == 0 else 101.0 for i in range(25)]
    closes += [85.0] * 15
    closes += [115.0] * 10
    return _frame_from_closes(closes)


@pytest.fixture
def dip_bars() -> pd.DataFrame:
    """Like rsi_round_trip_bars but closes dip from 85 to 80 at bar 35."""
    closes = [100.0 if i % 2 == 0 else 101.0 for i in range(25)]
    closes += [85.0] * 10 + [80.0] * 5
    closes += [115.0] * 10
    return _frame_from_closes(closes)


@pytest.fixture
def rsi_template():
    """Predefined RSI strategy definition."""
    return {
        "name": "RSI reversal",
        "type": "predefined",
        "conditions": [
            {"indicator": "rsi", "operator": "greater", "value": 70, "action": "sell"},
            {"indicator": "rsi", "operator": "less", "value": 30, "action": "buy"},
        ],
        "parameters": [{"name": "period", "value": 14}],
    }


@pytest.fixture
def oversold_params():
    """Varies the buy threshold over 5 and 30."""
    return {
        "parameters": [
            {"name": "oversold", "path": "conditions[1].value", "start": 5, "end": 30, "step": 25},
        ]
    }


@pytest.fixture
def template_yaml(temp_dir) -> Path:
    """RSI strategy template on disk."""
    content = """strategy:
  name: "RSI reversal"
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
    file_path = temp_dir / "template.yaml"
    file_path.write_text(content)
    return file_path


@pytest.fixture
def params_yaml(temp_dir) -> Path:
    """Parameter config on disk."""
    content = """parameters:
  - name: oversold
    path: conditions[1].value
    start: 5
    end: 30
    step: 25
"""
    file_path = temp_dir / "params.yaml"
    file_path.write_text(content)
    return file_path


@pytest.fixture
def bars_csv(temp_dir, rsi_round_trip_bars) -> Path:
    file_path = temp_dir / "bars.csv"
    rsi_round_trip_bars.to_csv(file_path, index=False)
    return file_path
