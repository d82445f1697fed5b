"""
Performance summary metrics.

Core summary (win rate, Sharpe ratio, drawdown, profit) plus advanced
risk/return metrics and monthly returns derived from a backtest's trade log
and equity curve. Every division by zero has an explicit 0.0 fallback so a
finished simulation always yields a full summary.
"""

import math
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Sequence, Tuple

import numpy as np
import pandas as pd

from strategylab.engine.constants import PERIODS_PER_YEAR
from strategylab.engine.simulator import Trade


@dataclass(frozen=True)
class PerformanceSummary:
    """Headline backtest statistics."""

    final_balance: float
    profit: float
    profit_percentage: float
    total_trades: int
    winning_trades: int
    win_rate: float
    max_drawdown: float
    sharpe_ratio: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class AdvancedMetrics:
    """Risk-adjusted and per-trade metrics over closed trades."""

    total_return: float
    annualized_return: float
    volatility: float
    sortino_ratio: float
    calmar_ratio: float
    profit_factor: float
    expectancy: float
    average_win: float
    average_loss: float
    risk_reward_ratio: float
    largest_win: float
    largest_loss: float
    average_holding_days: float
    closed_trades: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def calculate_returns(equity_curve: Sequence[float]) -> np.ndarray:
    """
    Per-step returns ``(equity[i] - equity[i-1]) / equity[i-1]``.

    A step from a zero balance has return 0.0.
    """
    equity = np.asarray(equity_curve, dtype=float)
    if equity.size < 2:
        return np.array([], dtype=float)
    previous = equity[:-1]
    change = np.diff(equity)
    returns = np.zeros_like(change)
    nonzero = previous != 0
    returns[nonzero] = change[nonzero] / previous[nonzero]
    return returns


def calculate_sharpe_ratio(returns: np.ndarray) -> float:
    """
    Mean return over the population standard deviation of returns.

    Returns 0.0 when there are no returns or the deviation is 0.
    """
    if len(returns) == 0:
        return 0.0
    std = float(np.std(returns))
    if std == 0:
        return 0.0
    return float(np.mean(returns)) / std


def calculate_win_rate(trades: Sequence[Trade]) -> Tuple[int, float]:
    """
    Winning trade count and win rate (percent) over all recorded trades.

    An open stub has zero profit, so it counts towards the total but never
    as a win.
    """
    if not trades:
        return 0, 0.0
    winning = sum(1 for t in trades if t.profit > 0)
    return winning, winning / len(trades) * 100


def summarize(
    trades: Sequence[Trade],
    equity_curve: Sequence[float],
    initial_balance: float,
    max_drawdown: float,
) -> PerformanceSummary:
    """
    Build the headline summary.

    Args:
        trades: Trade log (including a trailing open stub, if any).
        equity_curve: Equity snapshots starting with the initial balance.
        initial_balance: Starting cash.
        max_drawdown: Peak-to-trough drawdown as a fraction.

    Returns:
        PerformanceSummary with percentages on a 0-100 scale.
    """
    final_balance = float(equity_curve[-1]) if len(equity_curve) else float(initial_balance)
    profit = final_balance - initial_balance
    profit_percentage = (final_balance / initial_balance - 1) * 100 if initial_balance else 0.0
    winning, win_rate = calculate_win_rate(trades)

    return PerformanceSummary(
        final_balance=final_balance,
        profit=profit,
        profit_percentage=profit_percentage,
        total_trades=len(trades),
        winning_trades=winning,
        win_rate=win_rate,
        max_drawdown=max_drawdown * 100,
        sharpe_ratio=calculate_sharpe_ratio(calculate_returns(equity_curve)),
    )


def _elapsed_years(equity_dates: Sequence[str], steps: int, periods_per_year: int) -> float:
    if len(equity_dates) >= 2:
        start = pd.Timestamp(equity_dates[0])
        end = pd.Timestamp(equity_dates[-1])
        days = (end - start).total_seconds() / 86400
        if days > 0:
            return days / 365.25
    return steps / periods_per_year


def _holding_days(trade: Trade) -> float:
    delta = pd.Timestamp(trade.exit_date) - pd.Timestamp(trade.entry_date)
    return delta.total_seconds() / 86400


def calculate_advanced_metrics(result: Any, periods_per_year: int = PERIODS_PER_YEAR) -> AdvancedMetrics:
    """
    Advanced metrics for a finished backtest.

    Args:
        result: Object exposing ``trade_history``, ``equity_curve``,
            ``equity_dates`` and ``max_drawdown`` (percent), such as a
            BacktestResult.
        periods_per_year: Bars per year used to annualize volatility and
            the Sortino ratio.

    Returns:
        AdvancedMetrics. Percentages are on a 0-100 scale.
    """
    equity = list(result.equity_curve)
    returns = calculate_returns(equity)
    closed = [t for t in result.trade_history if not t.is_open]
    profits = np.array([t.profit for t in closed], dtype=float)

    total_return = (equity[-1] / equity[0] - 1) if equity and equity[0] else 0.0
    years = _elapsed_years(result.equity_dates, len(returns), periods_per_year)
    if years > 0 and 1 + total_return > 0:
        annualized = ((1 + total_return) ** (1 / years) - 1) * 100
    else:
        annualized = 0.0

    if len(returns):
        volatility = float(np.std(returns)) * math.sqrt(periods_per_year) * 100
        downside_dev = math.sqrt(float(np.mean(np.minimum(returns, 0.0) ** 2)))
        sortino = (
            float(np.mean(returns)) / downside_dev * math.sqrt(periods_per_year)
            if downside_dev > 0
            else 0.0
        )
    else:
        volatility = 0.0
        sortino = 0.0

    max_drawdown = float(result.max_drawdown)
    calmar = annualized / max_drawdown if max_drawdown > 0 else 0.0

    wins = profits[profits > 0]
    losses = profits[profits < 0]
    gross_profit = float(wins.sum())
    gross_loss = float(-losses.sum())
    average_win = float(wins.mean()) if wins.size else 0.0
    average_loss = float(-losses.mean()) if losses.size else 0.0

    return AdvancedMetrics(
        total_return=total_return * 100,
        annualized_return=annualized,
        volatility=volatility,
        sortino_ratio=sortino,
        calmar_ratio=calmar,
        profit_factor=gross_profit / gross_loss if gross_loss > 0 else 0.0,
        expectancy=float(profits.mean()) if profits.size else 0.0,
        average_win=average_win,
        average_loss=average_loss,
        risk_reward_ratio=average_win / average_loss if average_loss > 0 else 0.0,
        largest_win=float(wins.max()) if wins.size else 0.0,
        largest_loss=float(losses.min()) if losses.size else 0.0,
        average_holding_days=(
            float(np.mean([_holding_days(t) for t in closed])) if closed else 0.0
        ),
        closed_trades=len(closed),
    )


def monthly_returns(equity_curve: Sequence[float], equity_dates: Sequence[str]) -> pd.DataFrame:
    """
    Calendar-month returns of an equity curve.

    Each month starts from the previous month's closing equity (the first
    month from the first snapshot).

    Returns:
        DataFrame with columns month (``YYYY-MM``), start_value, end_value
        and return_pct.
    """
    columns = ["month", "start_value", "end_value", "return_pct"]
    if len(equity_curve) == 0:
        return pd.DataFrame(columns=columns)

    dates = pd.to_datetime(pd.Series(list(equity_dates)))
    if dates.dt.tz is not None:
        dates = dates.dt.tz_localize(None)

    equity = pd.Series(list(equity_curve), index=dates.dt.to_period("M"), dtype=float)
    month_end = equity.groupby(level=0).last()

    rows: List[Dict[str, Any]] = []
    start_value = float(equity.iloc[0])
    for period, end_value in month_end.items():
        return_pct = (end_value / start_value - 1) * 100 if start_value else 0.0
        rows.append(
            {
                "month": str(period),
                "start_value": start_value,
                "end_value": float(end_value),
                "return_pct": return_pct,
            }
        )
        start_value = float(end_value)

    return pd.DataFrame(rows, columns=columns)
