"""
OHLCV bar representation.

Bars travel through the package as a DataFrame with the columns
``Date, Open, High, Low, Close, Volume``. The ``Bar`` record is offered for
callers that hold plain per-bar objects; ``bars_to_frame`` normalizes either
form into a fresh, validated DataFrame so the caller's data is never mutated.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, List, Mapping, Sequence, Union

import pandas as pd

from strategylab.indicators.exceptions import MissingColumnError
from strategylab.indicators.validators import REQUIRED_COLUMNS, validate_all


@dataclass(frozen=True)
class Bar:
    """One OHLCV sample for a fixed time interval."""

    timestamp: datetime
    open: float
    high: float
    low: float
    close: float
    volume: float

    def to_dict(self) -> dict:
        """Convert bar to a row dictionary using frame column names."""
        return {
            "Date": self.timestamp,
            "Open": self.open,
            "High": self.high,
            "Low": self.low,
            "Close": self.close,
            "Volume": self.volume,
        }


BarsLike = Union[pd.DataFrame, Sequence[Bar], Sequence[Mapping[str, Any]]]

# Accepted mapping keys (lower-case) for each frame column
_KEY_ALIASES = {
    "Date": ("date", "timestamp", "time"),
    "Open": ("open",),
    "High": ("high",),
    "Low": ("low",),
    "Close": ("close",),
    "Volume": ("volume",),
}


def _mapping_to_row(record: Mapping[str, Any]) -> dict:
    lowered = {str(k).lower(): v for k, v in record.items()}
    row = {}
    missing = []
    for column, aliases in _KEY_ALIASES.items():
        for alias in aliases:
            if alias in lowered:
                row[column] = lowered[alias]
                break
        else:
            missing.append(column)
    if missing:
        raise MissingColumnError(missing)
    return row


def _normalize_columns(df: pd.DataFrame) -> pd.DataFrame:
    """Map case-insensitive column names (and ``timestamp``) onto frame names."""
    lookup = {str(col).strip().lower(): col for col in df.columns}
    renames = {}
    for column, aliases in _KEY_ALIASES.items():
        if column in df.columns:
            continue
        for alias in aliases:
            if alias in lookup:
                renames[lookup[alias]] = column
                break
    return df.rename(columns=renames)


def bars_to_frame(bars: BarsLike) -> pd.DataFrame:
    """
    Convert bars into a validated OHLCV DataFrame.

    Args:
        bars: DataFrame, sequence of ``Bar`` or sequence of mappings.

    Returns:
        New DataFrame with ``REQUIRED_COLUMNS`` (extra columns are kept),
        a datetime ``Date`` column and a fresh RangeIndex.

    Raises:
        ValidationError: If the bars are empty, malformed or out of order.
    """
    if isinstance(bars, pd.DataFrame):
        df = _normalize_columns(bars.copy())
    else:
        rows: List[dict] = []
        for record in bars:
            if isinstance(record, Bar):
                rows.append(record.to_dict())
            else:
                rows.append(_mapping_to_row(record))
        df = pd.DataFrame(rows, columns=REQUIRED_COLUMNS)

    if "Date" in df.columns:
        df["Date"] = pd.to_datetime(df["Date"])

    df = validate_all(df)
    return df.reset_index(drop=True)


def frame_to_bars(df: pd.DataFrame) -> List[Bar]:
    """Convert an OHLCV DataFrame back into ``Bar`` records."""
    return [
        Bar(
            timestamp=row.Date.to_pydatetime(),
            open=float(row.Open),
            high=float(row.High),
            low=float(row.Low),
            close=float(row.Close),
            volume=float(row.Volume),
        )
        for row in df[REQUIRED_COLUMNS].itertuples(index=False)
    ]


def filter_date_range(
    df: pd.DataFrame, start_date: Any = None, end_date: Any = None
) -> pd.DataFrame:
    """
    Restrict bars to ``[start_date, end_date]`` inclusive.

    Returns:
        New DataFrame with a fresh RangeIndex.
    """
    tz = df["Date"].dt.tz
    mask = pd.Series(True, index=df.index)
    if start_date is not None:
        mask &= df["Date"] >= as_timestamp(start_date, tz)
    if end_date is not None:
        mask &= df["Date"] <= as_timestamp(end_date, tz)
    return df.loc[mask].reset_index(drop=True)


def as_timestamp(value: Any, tz: Any = None) -> pd.Timestamp:
    """Parse a boundary date, aligning its timezone with the bar timestamps."""
    ts = pd.Timestamp(value)
    if tz is not None and ts.tzinfo is None:
        return ts.tz_localize(tz)
    if tz is None and ts.tzinfo is not None:
        return ts.tz_convert(None)
    return ts
